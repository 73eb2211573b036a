from dataclasses import fields
from pathlib import Path

from sendemail import config
from sendemail.config import create_engine_config, find_root_path


def test_engine_config_paths(tmp_path):
    engine_config = create_engine_config(tmp_path, default_account="work")

    root = tmp_path.resolve()
    assert engine_config.root_path == root
    assert engine_config.accounts_path == root / "config" / "accounts"
    assert engine_config.emails_path == root / "config" / "emails"
    assert engine_config.globals_path == root / "config" / "globals"
    assert engine_config.lists_path == root / "lists"
    assert engine_config.default_account == "work"
    assert sorted(f.name for f in fields(engine_config)) == [
        "accounts_path", "default_account", "emails_path", "globals_path", "lists_path", "root_path",
    ]


def test_default_account_follows_setting(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "DEFAULT_ACCOUNT", "personal")
    assert create_engine_config(tmp_path).default_account == "personal"


def test_find_root_prefers_local_copy(tmp_path):
    (tmp_path / "sendEmail" / "config" / "emails").mkdir(parents=True)
    (tmp_path / "config" / "emails").mkdir(parents=True)
    assert find_root_path(tmp_path) == (tmp_path / "sendEmail").resolve()


def test_find_root_uses_cwd_then_override(tmp_path, monkeypatch):
    (tmp_path / "config" / "emails").mkdir(parents=True)
    assert find_root_path(tmp_path) == tmp_path.resolve()

    elsewhere = tmp_path / "elsewhere"
    elsewhere.mkdir()
    assert find_root_path(elsewhere) == config.PACKAGE_ROOT

    monkeypatch.setattr(config, "ROOT_OVERRIDE", Path("/opt/sendemail"))
    assert find_root_path(elsewhere) == Path("/opt/sendemail")


def test_load_env_reads_overrides(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for name in ("DEFAULT_ACCOUNT", "SMTP_TIMEOUT"):
        monkeypatch.setattr(config, name, getattr(config, name))
    monkeypatch.setenv("SENDEMAIL_DEFAULT_ACCOUNT", "work")
    monkeypatch.setenv("SENDEMAIL_SMTP_TIMEOUT", "5")
    monkeypatch.setenv("SENDEMAIL_BULK_WORKERS", "0")
    monkeypatch.setenv("SENDEMAIL_ROOT", str(tmp_path))
    monkeypatch.setenv("SENDEMAIL_LOG_DIR", str(tmp_path / "logs"))

    config.load_env()

    assert config.DEFAULT_ACCOUNT == "work"
    assert config.SMTP_TIMEOUT == 5
    assert config.BULK_WORKERS == 1
    assert config.ROOT_OVERRIDE == tmp_path.resolve()
    assert config.LOG_DIR == tmp_path / "logs"


def test_load_env_ignores_bad_numbers(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(config, "SMTP_TIMEOUT", 30)
    monkeypatch.setattr(config, "DEFAULT_ACCOUNT", config.DEFAULT_ACCOUNT)
    monkeypatch.setenv("SENDEMAIL_SMTP_TIMEOUT", "soon")
    config.load_env()
    assert config.SMTP_TIMEOUT == 30
