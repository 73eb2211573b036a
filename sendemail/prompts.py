"""
Confirmation prompts shown before sending.

Every prompt defaults to No; the user must type 'y' to confirm. Passing
force=True skips the prompt.
"""
from typing import Callable, List, Optional, Union

from sendemail.models import EmailMessage


InputFunc = Callable[[str], str]

_RULE = "─" * 50


def _format_addresses(addresses: Union[str, List[str], None]) -> str:
    if isinstance(addresses, list):
        return ", ".join(addresses)
    return addresses or ""


def ask_yes_no(question: str, input_func: Optional[InputFunc] = None) -> bool:
    """Ask a y/N question; only 'y' confirms."""
    input_func = input_func or input
    try:
        answer = input_func(f"{question} (y/N): ")
    except EOFError:
        return False
    return answer.strip().lower() == "y"


def confirm_send(
    message: EmailMessage,
    force: bool = False,
    input_func: Optional[InputFunc] = None
) -> bool:
    """Show a preview of the message and ask for confirmation."""
    if force:
        return True

    print()
    print("Email Preview:")
    print(_RULE)
    print(f"  To:      {_format_addresses(message.to)}")
    if message.cc:
        print(f"  CC:      {_format_addresses(message.cc)}")
    if message.bcc:
        print(f"  BCC:     {_format_addresses(message.bcc)}")
    print(f"  From:    {message.from_}")
    if message.reply_to:
        print(f"  ReplyTo: {_format_addresses(message.reply_to)}")
    print(f"  Subject: {message.subject}")

    if message.attachments:
        print("  Attachments:")
        for att in message.attachments:
            print(f"    - {att.filename} ({att.path})")

    body = message.html or message.text or ""
    if body:
        preview = body[:200].replace("\n", " ")
        suffix = "..." if len(body) > 200 else ""
        print(f"  Body:    {preview}{suffix}")

    print(_RULE)
    print()
    return ask_yes_no("Send this email?", input_func)


def confirm_bulk_send(
    list_name: str,
    count: int,
    force: bool = False,
    input_func: Optional[InputFunc] = None
) -> bool:
    """Show list details and ask before sending one email per contact."""
    if force:
        return True

    print()
    print("Bulk Send Preview:")
    print(_RULE)
    print(f"  List:    {list_name}")
    print(f"  Count:   {count} recipients")
    print(_RULE)
    print(f"⚠  This will send {count} emails.")
    print()
    return ask_yes_no(f"Send to all {count} recipients?", input_func)


def confirm_send_all(
    list_name: str,
    count: int,
    force: bool = False,
    input_func: Optional[InputFunc] = None
) -> bool:
    """Ask before sending a single email addressed to the whole list."""
    if force:
        return True

    print()
    print("Send-All Preview:")
    print(_RULE)
    print(f"  List:    {list_name}")
    print(f"  Count:   {count} recipients in one message")
    print("  Note:    per-contact fields such as the name are not filled in")
    print(_RULE)
    print()
    return ask_yes_no(f"Send one email to all {count} recipients?", input_func)
