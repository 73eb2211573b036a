"""
Centralized error hierarchy for sendemail.

This module provides a base exception class and specific error types
for each failure category (configuration, validation, network, file),
along with helpers for converting errors to terminal-friendly messages.
"""
import sys
from typing import List, Optional, Union


class SendEmailError(Exception):
    """
    Base exception class for all sendemail errors.

    Every error carries a category, optional detail lines (e.g. the paths
    that were tried) and an optional remediation suggestion.
    """

    category = "Error"

    def __init__(
        self,
        message: str,
        details: Optional[List[str]] = None,
        suggestion: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.details: List[str] = list(details or [])
        self.suggestion = suggestion


class ConfigurationError(SendEmailError):
    """Raised when a configuration resource is missing or malformed."""
    category = "Configuration"


class ConfigParseError(ConfigurationError):
    """
    Raised when a JSON resource cannot be used.

    ``reason`` is ``"malformed"`` when the file is not valid JSON and
    ``"missing_key"`` when a required key is absent or has the wrong shape.
    """

    MALFORMED = "malformed"
    MISSING_KEY = "missing_key"

    def __init__(
        self,
        message: str,
        reason: str,
        details: Optional[List[str]] = None,
        suggestion: Optional[str] = None
    ):
        super().__init__(message, details, suggestion)
        self.reason = reason


class ValidationError(SendEmailError):
    """Raised when user input (addresses, lists, messages) is invalid."""
    category = "Validation"


class NetworkError(SendEmailError):
    """Raised when the mail transport fails to deliver a message."""
    category = "Network"


class FileError(SendEmailError):
    """Raised when a filesystem operation fails for reasons other than not-found."""
    category = "File"


class DecryptionError(SendEmailError):
    """Raised when an encrypted credential cannot be decrypted."""
    category = "Authentication"


def human_friendly_message(exc: Union[SendEmailError, Exception]) -> str:
    """
    Convert an exception to a message suitable for the terminal.

    sendemail errors are rendered with their category, detail lines and
    suggestion. Standard Python exceptions are mapped to short generic
    explanations.

    Args:
        exc: The exception to convert.

    Returns:
        A multi-line, user-facing error message.
    """
    if isinstance(exc, SendEmailError):
        lines = [f"{exc.category} error: {exc.message}"]
        for detail in exc.details:
            lines.append(f"  • {detail}")
        if exc.suggestion:
            lines.append("")
            lines.append(exc.suggestion)
        return "\n".join(lines)

    error_msg = str(exc) if str(exc) else ""

    if isinstance(exc, ConnectionError):
        return (
            "Could not connect to the mail server. Please check your internet "
            "connection and try again."
        )
    elif isinstance(exc, TimeoutError):
        return (
            "The operation timed out. This might be due to a slow connection "
            "or server issues. Please try again."
        )
    elif isinstance(exc, PermissionError):
        return (
            "Permission denied. Please check that you have the necessary "
            "permissions to read the configuration and attachment files."
        )
    elif isinstance(exc, FileNotFoundError):
        return f"A required file could not be found: {error_msg}"
    elif isinstance(exc, ValueError):
        return f"Invalid input: {error_msg}"
    elif isinstance(exc, KeyError):
        return f"Missing required information: {error_msg}"

    return f"Unexpected error: {error_msg or type(exc).__name__}\n\nIf this error persists, please report it."


def handle_error(exc: Exception) -> int:
    """
    Print a friendly error message to stderr.

    Args:
        exc: The exception to report.

    Returns:
        The process exit code to use (always 1).
    """
    print(human_friendly_message(exc), file=sys.stderr)
    return 1
