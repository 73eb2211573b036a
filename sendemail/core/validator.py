"""
Input validation for addresses, messages and attachment options.
"""
import re
from email.utils import parseaddr
from typing import List, Optional, Sequence, Union

from sendemail.models import EmailMessage
from sendemail.utils.errors import ValidationError


# Simplified RFC 5322: something@domain.tld, no whitespace
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

CONTENT_DISPOSITIONS = ("attachment", "inline")


def is_valid_email(address: str) -> bool:
    """Check one address; accepts the "Name <user@host>" form."""
    _, email = parseaddr(address.strip())
    return bool(email) and bool(EMAIL_PATTERN.match(email))


def validate_email_address(address: str) -> None:
    """
    Validate a single email address.

    Raises:
        ValidationError: If the address is malformed.
    """
    if not is_valid_email(address):
        raise ValidationError(
            f"Invalid email address: '{address}'",
            [f"The address '{address}' does not appear to be valid."],
            "Use format: user@domain.com"
        )


def validate_email_addresses(addresses: Union[str, Sequence[str]]) -> None:
    """Validate a single address or a list of addresses."""
    if isinstance(addresses, str):
        addresses = [addresses]
    for address in addresses:
        validate_email_address(address)


def _is_empty(value: Optional[Union[str, Sequence[str]]]) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return not any(v and v.strip() for v in value)


def validate_email_message(message: EmailMessage) -> None:
    """
    Validate a fully built message before it is sent.

    Requires non-empty from, to and subject, and at least one of text/html.
    All problems are reported together.

    Raises:
        ValidationError: If any requirement is not met.
    """
    problems: List[str] = []

    if _is_empty(message.from_):
        problems.append("from: From address is required")
    if _is_empty(message.to):
        problems.append("to: At least one recipient is required")
    if _is_empty(message.subject):
        problems.append("subject: Subject is required")
    if not message.text and not message.html:
        problems.append("content: Either text or html content is required")

    for i, att in enumerate(message.attachments):
        if not att.path:
            problems.append(f"attachments.{i}: path is required")

    if problems:
        raise ValidationError(
            "Email message validation failed",
            problems,
            "Check that all required fields are present: from, to, subject, and text/html content."
        )


def validate_content_disposition(value: str) -> str:
    """
    Check an attachment content disposition.

    Raises:
        ValidationError: If the value is not 'attachment' or 'inline'.
    """
    if value not in CONTENT_DISPOSITIONS:
        raise ValidationError(
            f"Invalid --attach-content-disp value: '{value}'",
            ["Must be 'attachment' or 'inline'."]
        )
    return value
