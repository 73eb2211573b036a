"""
Command-line entry point for sendemail.

Modes:
    raw         -t ADDRESS [MESSAGE]             quick plain-text email
    normal      --send-to / --config-email       one message
    repetitive  --config-email X --email-list Y  one message per contact
    send-all    ... --send-all                   one message to every contact

Usage:
    sendemail -t someone@example.com "Hello"
    sendemail --config-email newsletter --send-to someone@example.com
    sendemail --config-email newsletter --email-list subscribers
    sendemail --config-email newsletter --email-list subscribers --send-all
"""
import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from sendemail import config
from sendemail.config import create_engine_config, find_root_path
from sendemail.core import resolver
from sendemail.core.engine import EmailEngine
from sendemail.core.template_engine import build_single_vars
from sendemail.core.validator import validate_email_address, validate_email_addresses
from sendemail.models import Attachment, ContentRef, EmailConfig, EmailList, EmailMessage
from sendemail.network.transport import MailTransport
from sendemail.prompts import confirm_bulk_send, confirm_send, confirm_send_all
from sendemail.utils.errors import ValidationError, handle_error
from sendemail.utils.logging_cfg import setup_logging
from sendemail.utils.markdown_html import get_content_type


logger = logging.getLogger(__name__)

# argparse cannot declare option names containing ':'
_COLON_OPTIONS = {
    "--global-config:root": "--global-config-root",
    "--global-config:path": "--global-config-path",
}


def normalize_argv(argv: Sequence[str]) -> List[str]:
    return [_COLON_OPTIONS.get(arg, arg) for arg in argv]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sendemail",
        description="Command-line tool to send an email, or automate repetitive emails.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  sendemail -t someone@example.com "Hello there"
  sendemail --config-email newsletter --send-to someone@example.com
  sendemail --config-email newsletter --email-list subscribers
  sendemail --config-email newsletter --email-list subscribers --send-all
        """
    )

    parser.add_argument('--account', help='Account from config/accounts/')
    parser.add_argument('--config-email', help='Email from config/emails/')
    parser.add_argument('-f', '--force', action='store_true', help='Skip the confirmation prompt')
    parser.add_argument('-t', '--text', nargs='+', metavar='ARG', help='Quick raw text email: ADDRESS [MESSAGE]')
    parser.add_argument('--debug', action='store_true', help='Verbose console logging')

    parser.add_argument('--send-to', nargs='+', help='Recipient address(es)')
    parser.add_argument('--subject', help='Email subject')
    parser.add_argument('--message-file', help='Message file (.txt, .html, .htm, .md)')
    parser.add_argument('--message-html', help='HTML message file')
    parser.add_argument('--message-text', help='Plain text message file')
    parser.add_argument('--from-address', help='From address (overrides the account)')
    parser.add_argument('--reply-to', nargs='+', help='Reply-to address(es)')
    parser.add_argument('--cc', nargs='+', help='CC recipient(s)')
    parser.add_argument('--bcc', nargs='+', help='BCC recipient(s)')

    parser.add_argument('--attach-file', nargs='+', help='Attachment filename(s)')
    parser.add_argument('--attach-path', nargs='+', help='Attachment path(s)')
    parser.add_argument('--attach-cid', nargs='+', help='Content ID(s) for inline images')
    parser.add_argument('--attach-content-disp', nargs='+', help='inline|attachment, one per attachment')

    parser.add_argument('--global-config', nargs='+', help='Global config(s) by name or path')
    parser.add_argument('--global-config-root', nargs='+', help='Global config(s) from config/globals only')
    parser.add_argument('--global-config-path', nargs='+', help='Global config(s) by path from the current directory only')

    parser.add_argument('--email-list', help='Email list from lists/ (one email per contact)')
    parser.add_argument('--send-all', action='store_true', help='Send one email to every contact on the list')
    return parser


def _single_or_list(values: Optional[List[str]]):
    if not values:
        return None
    return values[0] if len(values) == 1 else values


def build_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Collect EmailConfig field overrides from CLI options."""
    overrides: Dict[str, Any] = {}

    if args.send_to:
        overrides["to"] = _single_or_list(args.send_to)
    if args.subject:
        overrides["subject"] = args.subject
    if args.from_address:
        overrides["from_"] = args.from_address
    if args.reply_to:
        overrides["reply_to"] = _single_or_list(args.reply_to)
    if args.cc:
        overrides["cc"] = _single_or_list(args.cc)
    if args.bcc:
        overrides["bcc"] = _single_or_list(args.bcc)

    if args.message_html:
        overrides["html"] = [ContentRef.file(args.message_html)]
    elif args.message_text:
        overrides["text"] = ContentRef.file(args.message_text)
    elif args.message_file:
        if get_content_type(Path(args.message_file)) == "text":
            overrides["text"] = ContentRef.file(args.message_file)
        else:
            overrides["html"] = [ContentRef.file(args.message_file)]

    return overrides


def validate_args(args: argparse.Namespace) -> None:
    """
    Check option combinations and addresses before anything is loaded.

    Raises:
        ValidationError: On an invalid combination or address.
    """
    if args.text and len(args.text) > 2:
        raise ValidationError(
            "--text takes an address and an optional message",
            [f"Got {len(args.text)} values."],
            'Quote the message: sendemail -t someone@example.com "Hello there"'
        )
    if args.email_list and not args.config_email:
        raise ValidationError(
            "Email list requires an email config",
            ["--config-email is required when sending to a list."],
            "Specify an email: sendemail --config-email newsletter --email-list subscribers"
        )
    if not args.text and not args.send_to and not args.config_email:
        raise ValidationError(
            "Recipient address required",
            ["No --send-to address specified and no --config-email given."],
            'Specify a recipient: sendemail --send-to "someone@example.com" ...'
        )
    if args.send_to:
        validate_email_addresses(args.send_to)
    if args.from_address:
        validate_email_address(args.from_address)


def collect_attachments(
    engine: EmailEngine,
    args: argparse.Namespace,
    email_config: EmailConfig
) -> List[Attachment]:
    """
    Gather attachments in declaration order: email-specific, CLI, then
    --global-config variants.
    """
    attachments: List[Attachment] = list(email_config.attachments or [])

    if args.config_email:
        attachments.extend(engine.load_email_attachments(args.config_email))

    attachments.extend(engine.attachments.build_from_cli(
        file_names=args.attach_file,
        paths=args.attach_path,
        cids=args.attach_cid,
        dispositions=args.attach_content_disp,
    ))

    global_requests = [
        (args.global_config, resolver.MODE_DEFAULT),
        (args.global_config_root, resolver.MODE_ROOT_ONLY),
        (args.global_config_path, resolver.MODE_PATH_ONLY),
    ]
    for names, mode in global_requests:
        for name in names or []:
            attachments.extend(engine.loader.load_global_attachments(name, mode=mode))

    missing = engine.attachments.validate_attachments(attachments)
    if missing:
        print(f"⚠  {len(missing)} attachment(s) not found; sending will fail for them.")

    return attachments


def _run_raw(engine: EmailEngine, args: argparse.Namespace) -> int:
    address = args.text[0]
    text = args.text[1] if len(args.text) > 1 else ""
    validate_email_address(address)

    message = EmailMessage(
        from_=args.from_address or engine.get_account_email(),
        to=address,
        subject=args.subject or "(no subject)",
        text=text or "(empty message)",
    )

    if not confirm_send(message, args.force):
        print("Send cancelled.")
        return 0

    result = engine.send_email(message)
    print(f"✓ Email sent to {address} ({result.message_id})")
    return 0


def _run_send_all(
    engine: EmailEngine,
    args: argparse.Namespace,
    email_config: EmailConfig,
    email_list: EmailList,
    overrides: Dict[str, Any]
) -> int:
    source = email_list.name or "embedded"
    count = engine.list_processor.count(email_list)

    if not confirm_send_all(source, count, args.force):
        print("Send cancelled.")
        return 0

    print(f"Sending one email to {count} recipients from list '{source}'...")
    result = engine.send_all(email_config, email_list, overrides)
    print(f"✓ Email sent to {count} recipients ({result.message_id})")
    return 0


def _run_bulk(
    engine: EmailEngine,
    args: argparse.Namespace,
    email_config: EmailConfig,
    email_list: EmailList,
    overrides: Dict[str, Any]
) -> int:
    source = email_list.name or "embedded"
    count = engine.list_processor.count(email_list)

    if not confirm_bulk_send(source, count, args.force):
        print("Bulk send cancelled.")
        return 0

    print(f"Sending to {count} recipients from list '{source}'...")

    def on_progress(current, total, result):
        if result.success:
            print(f"  Sent {current}/{total}: {result.recipient}")
        else:
            print(f"  Failed {current}/{total}: {result.recipient} - {result.error}")

    subject = overrides.get("subject") or email_config.subject or ""
    result = engine.send_bulk(
        email_config,
        email_list,
        overrides,
        on_progress=on_progress,
        extra_vars={"subject": subject, "CHANGE_MESSAGE_HEADER": subject},
    )

    print()
    print(f"✓ Bulk send complete: {result.successful}/{result.total} sent, {result.failed} failed.")
    return 1 if result.failed else 0


def _run_normal(
    engine: EmailEngine,
    args: argparse.Namespace,
    email_config: EmailConfig,
    overrides: Dict[str, Any]
) -> int:
    to = overrides.get("to") or email_config.to or ""
    first_to = to[0] if isinstance(to, list) and to else to
    variables = build_single_vars(first_to or "", overrides.get("subject") or email_config.subject)

    message = engine.build_message(email_config, variables, overrides)

    if not confirm_send(message, args.force):
        print("Send cancelled.")
        return 0

    result = engine.send_email(message)
    print(f"✓ Email sent to {result.recipient} ({result.message_id})")
    return 0


def run(args: argparse.Namespace, transport: Optional[MailTransport] = None, cwd: Optional[Path] = None) -> int:
    """
    Execute a parsed command.

    Returns:
        Exit code: 0 on success, 1 when any recipient failed.
    """
    validate_args(args)

    root_path = find_root_path(cwd)
    logger.debug(f"Using sendemail root: {root_path}")
    engine = EmailEngine(create_engine_config(root_path), cwd)
    engine.initialize(args.account, transport=transport)

    try:
        if args.text:
            return _run_raw(engine, args)

        email_config = EmailConfig()
        if args.config_email:
            email_config = engine.load_email_config(args.config_email)

        # --email-list > emailList in email.json > inline "email-list"
        email_list = None
        list_name = args.email_list or email_config.email_list_name
        if list_name:
            email_list = engine.load_email_list(list_name)
        elif email_config.email_list is not None:
            email_list = EmailList(contacts=list(email_config.email_list))

        overrides = build_overrides(args)
        attachments = collect_attachments(engine, args, email_config)
        if attachments:
            overrides["attachments"] = attachments

        send_all = args.send_all or email_config.send_all
        if send_all and email_list is None:
            raise ValidationError(
                "--send-all requires an email list",
                ["Use --email-list, or emailList/email-list in email.json."]
            )

        if email_list is not None:
            if not args.config_email:
                raise ValidationError(
                    "Email list requires an email config",
                    ["--config-email is required when sending to a list."]
                )
            if send_all:
                return _run_send_all(engine, args, email_config, email_list, overrides)
            return _run_bulk(engine, args, email_config, email_list, overrides)

        return _run_normal(engine, args, email_config, overrides)
    finally:
        engine.close()


def main(argv: Optional[Sequence[str]] = None, transport: Optional[MailTransport] = None) -> int:
    """Parse arguments, configure logging and run. Returns the exit code."""
    argv = sys.argv[1:] if argv is None else argv
    args = build_parser().parse_args(normalize_argv(argv))

    config.load_env()
    setup_logging(debug=args.debug)

    try:
        return run(args, transport=transport)
    except KeyboardInterrupt:
        print("\nCancelled.")
        return 1
    except Exception as e:
        logger.info("Command failed", exc_info=True)
        return handle_error(e)


if __name__ == "__main__":
    sys.exit(main())
