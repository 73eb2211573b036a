"""
Global settings and constants for sendemail.

This module provides configuration constants, environment loading and the
EngineConfig describing where each kind of resource lives under a tool root.
It is framework-agnostic and designed to be easily unit-testable.
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


# Installed package root (the directory containing sendemail/)
PACKAGE_ROOT: Path = Path(__file__).resolve().parent.parent

# Name of a local tool copy looked up under the working directory
LOCAL_COPY_DIR_NAME = "sendEmail"

DEFAULT_ACCOUNT: str = "_default"
DEFAULT_SMTP_PORT: int = 587
DEFAULT_SSL_SMTP_PORT: int = 465
DEFAULT_FROM_ADDRESS: str = "noreply@example.com"

# SMTP timeout in seconds
SMTP_TIMEOUT: int = 30

# 1 = strictly sequential bulk sends
BULK_WORKERS: int = 1

ROOT_OVERRIDE: Optional[Path] = None
LOG_DIR: Path = Path.home() / ".sendemail" / "logs"
SECRET_KEY: Optional[str] = None
SECRET_KEY_FILE: Path = Path.home() / ".sendemail" / "secret.key"


def load_env() -> None:
    """
    Load environment variables and apply sensible defaults.

    Reads a .env file if one exists, then applies SENDEMAIL_* overrides.
    It should be called at command startup.
    """
    global DEFAULT_ACCOUNT, SMTP_TIMEOUT, BULK_WORKERS, ROOT_OVERRIDE, LOG_DIR, SECRET_KEY

    load_dotenv()

    DEFAULT_ACCOUNT = os.environ.get("SENDEMAIL_DEFAULT_ACCOUNT", DEFAULT_ACCOUNT)
    SECRET_KEY = os.environ.get("SENDEMAIL_SECRET_KEY") or SECRET_KEY

    timeout_env = os.environ.get("SENDEMAIL_SMTP_TIMEOUT")
    if timeout_env:
        try:
            SMTP_TIMEOUT = int(timeout_env)
        except ValueError:
            pass

    workers_env = os.environ.get("SENDEMAIL_BULK_WORKERS")
    if workers_env:
        try:
            BULK_WORKERS = max(1, int(workers_env))
        except ValueError:
            pass

    root_env = os.environ.get("SENDEMAIL_ROOT")
    if root_env:
        ROOT_OVERRIDE = Path(root_env).expanduser().resolve()

    log_dir_env = os.environ.get("SENDEMAIL_LOG_DIR")
    if log_dir_env:
        LOG_DIR = Path(log_dir_env).expanduser()


@dataclass(frozen=True)
class EngineConfig:
    """Absolute paths to each resource directory of a tool root."""
    root_path: Path
    accounts_path: Path
    emails_path: Path
    globals_path: Path
    lists_path: Path
    default_account: str = "_default"


def create_engine_config(root_path, default_account: Optional[str] = None) -> EngineConfig:
    """
    Create an EngineConfig with every path resolved relative to a root.

    Args:
        root_path: Root directory of the sendemail tool instance.
        default_account: Account used when none is requested. Defaults to
            the DEFAULT_ACCOUNT setting.

    Returns:
        A fully resolved EngineConfig.
    """
    root = Path(root_path).resolve()
    return EngineConfig(
        root_path=root,
        accounts_path=root / "config" / "accounts",
        emails_path=root / "config" / "emails",
        globals_path=root / "config" / "globals",
        lists_path=root / "lists",
        default_account=default_account or DEFAULT_ACCOUNT,
    )


def find_root_path(cwd: Optional[Path] = None) -> Path:
    """
    Resolve the tool root used for email operations.

    Checks for a local copy under <cwd>/sendEmail, then <cwd> itself, before
    falling back to SENDEMAIL_ROOT and finally the installed package root.

    Args:
        cwd: Working directory to start from. Defaults to Path.cwd().

    Returns:
        Absolute path of the tool root.
    """
    cwd = Path(cwd) if cwd else Path.cwd()

    local_copy = cwd / LOCAL_COPY_DIR_NAME
    if (local_copy / "config" / "emails").is_dir():
        return local_copy.resolve()
    if (cwd / "config" / "emails").is_dir():
        return cwd.resolve()
    if ROOT_OVERRIDE:
        return ROOT_OVERRIDE
    return PACKAGE_ROOT
