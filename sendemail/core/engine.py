"""
Email engine: message building and send orchestration.

The engine is interface-agnostic. The CLI (or any other caller) loads
configuration through it, builds fully resolved messages and hands them to
the initialized mail transport. Message building is a pure function of
(config, variables, overrides); the only long-lived state is the transport.
"""
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import fields, replace
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from sendemail import config as settings
from sendemail.config import EngineConfig
from sendemail.core import resolver
from sendemail.core.attachments import AttachmentResolver, merge, resolve_attachments_from_base
from sendemail.core.config_loader import ConfigLoader
from sendemail.core.list_processor import ListItem, ListProcessor
from sendemail.core.template_engine import (
    build_single_vars,
    extract_global_tags,
    process_global_tags,
    strip_placeholder,
    substitute,
)
from sendemail.core.validator import validate_email_message
from sendemail.models import (
    AddressField,
    Attachment,
    BulkSendResult,
    ContentRef,
    EmailConfig,
    EmailList,
    EmailMessage,
    GlobalContent,
    SendResult,
    TemplateValue,
    TemplateVariables,
)
from sendemail.network.smtp_client import SmtpError, create_transport
from sendemail.network.transport import MailTransport
from sendemail.utils.errors import ConfigurationError, NetworkError, SendEmailError
from sendemail.utils.markdown_html import get_content_type, markdown_to_html


logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, SendResult], None]

_EMAIL_CONFIG_FIELDS = {f.name for f in fields(EmailConfig)}


def apply_overrides(email_config: EmailConfig, overrides: Optional[Mapping[str, Any]]) -> EmailConfig:
    """
    Shallow-merge overrides over an email config; overrides win per field.

    Keys are EmailConfig field names. String html/text overrides are
    classified into ContentRef values the same way config files are.

    Raises:
        ConfigurationError: If an override names an unknown field.
    """
    if not overrides:
        return email_config

    unknown = sorted(set(overrides) - _EMAIL_CONFIG_FIELDS)
    if unknown:
        raise ConfigurationError(
            "Unknown email override",
            [f"Field: {name}" for name in unknown]
        )

    values = {k: v for k, v in overrides.items() if v is not None}
    if "html" in values:
        html = values["html"]
        parts = html if isinstance(html, list) else [html]
        values["html"] = [ContentRef.classify(p) for p in parts]
    if "text" in values:
        values["text"] = ContentRef.classify(values["text"])

    return replace(email_config, **values)


def _substitute_addresses(
    addresses: Optional[AddressField],
    variables: Mapping[str, TemplateValue]
) -> Optional[AddressField]:
    if not addresses:
        return None
    if isinstance(addresses, list):
        return [substitute(a, variables) for a in addresses]
    return substitute(addresses, variables)


class MessageBuilder:
    """
    Builds one fully resolved EmailMessage per call.

    Inline global tags are resolved once per unique name within a call; no
    state is carried between calls.
    """

    def __init__(self, loader: ConfigLoader, attachments: AttachmentResolver):
        self.loader = loader
        self.attachments = attachments

    def _read_content(self, ref: ContentRef, source_dir: Optional[Path]) -> str:
        if not ref.is_file:
            return ref.value
        path = self.loader.resolve_content_path(ref.value, source_dir)
        content = path.read_text(encoding="utf-8")
        if get_content_type(path) == "markdown":
            return markdown_to_html(content)
        return content

    def _read_global_data(self, path: Optional[Path]) -> str:
        if not path:
            return ""
        content = path.read_text(encoding="utf-8")
        if get_content_type(path) == "markdown":
            return markdown_to_html(content)
        return content

    def _load_inline_global(
        self,
        name: str,
        variables: Mapping[str, TemplateValue]
    ) -> Optional[GlobalContent]:
        """Resolve one inline global; None when it cannot be used."""
        try:
            found = resolver.resolve_global_folder(
                name,
                root_path=self.loader.config.root_path,
                cwd=self.loader.cwd
            )
            attachments: List[Attachment] = []
            if found.config_path:
                attachments = resolve_attachments_from_base(
                    self.loader.load_global_config(found.config_path),
                    found.asset_base_path
                )
            return GlobalContent(
                name=name,
                html=substitute(self._read_global_data(found.html_data_path), variables),
                text=substitute(self._read_global_data(found.text_data_path), variables),
                attachments=attachments,
            )
        except (SendEmailError, OSError, UnicodeDecodeError) as e:
            logger.warning(f"Inline global '{name}' skipped: {e}")
            return None

    def _apply_inline_globals(
        self,
        subject: str,
        html: Optional[str],
        text: Optional[str],
        variables: Mapping[str, TemplateValue]
    ) -> Tuple[str, Optional[str], Optional[str], List[Attachment]]:
        names: List[str] = []
        for stream in (html, text, subject):
            for name in extract_global_tags(stream):
                if name not in names:
                    names.append(name)

        if not names:
            return subject, html, text, []

        cache: Dict[str, Optional[GlobalContent]] = {}
        for name in names:
            cache[name] = self._load_inline_global(name, variables)

        loaded = [g for g in cache.values() if g]
        html_contents = {g.name: g.html or g.text for g in loaded}
        text_contents = {g.name: g.text or g.html for g in loaded}

        if html is not None:
            html = process_global_tags(html, html_contents)
        if text is not None:
            text = process_global_tags(text, text_contents)
        subject = process_global_tags(subject, text_contents)

        inline_attachments: List[Attachment] = []
        for g in loaded:
            inline_attachments = merge(inline_attachments, g.attachments)
        return subject, html, text, inline_attachments

    def _declared_global_attachments(self, names: List[str]) -> List[Attachment]:
        attachments: List[Attachment] = []
        for name in names:
            attachments = merge(attachments, self.loader.load_global_attachments(name))
        return attachments

    def build(
        self,
        email_config: EmailConfig,
        variables: Mapping[str, TemplateValue],
        overrides: Optional[Mapping[str, Any]] = None,
        account_email: str = settings.DEFAULT_FROM_ADDRESS
    ) -> EmailMessage:
        """
        Build a transport-ready message.

        Args:
            email_config: The loaded email config.
            variables: Template variables for this message.
            overrides: Field overrides keyed by EmailConfig field names.
            account_email: Sender used when ``from`` is not a literal address.

        Returns:
            The resolved message.

        Raises:
            ValidationError: If from/to/subject or all content is empty.
            ConfigurationError: If a content file or declared global is missing.
        """
        merged = apply_overrides(email_config, overrides)

        if merged.from_ and "@" in merged.from_:
            from_address = merged.from_
        else:
            from_address = account_email

        to = _substitute_addresses(merged.to, variables) or ""
        cc = _substitute_addresses(merged.cc, variables)
        bcc = _substitute_addresses(merged.bcc, variables)
        reply_to = _substitute_addresses(merged.reply_to, variables)

        subject = substitute(merged.subject or "", variables)

        html = None
        if merged.html:
            parts = [self._read_content(ref, merged.source_dir) for ref in merged.html]
            html = substitute("\n".join(parts), variables)

        text = None
        if merged.text:
            text = substitute(self._read_content(merged.text, merged.source_dir), variables)

        subject, html, text, inline_attachments = self._apply_inline_globals(
            subject, html, text, variables
        )

        attachments = self.attachments.resolve_attachments(merged.attachments or [])
        attachments = merge(attachments, self._declared_global_attachments(merged.globals))
        attachments = merge(attachments, inline_attachments)

        message = EmailMessage(
            from_=from_address,
            to=to,
            subject=subject,
            cc=cc,
            bcc=bcc,
            reply_to=reply_to,
            text=text or None,
            html=html or None,
            attachments=attachments,
        )
        validate_email_message(message)
        return message


class EmailEngine:
    """
    The primary entry point for sending email.

    Typical use:
        engine = EmailEngine(create_engine_config(root))
        engine.initialize("work")
        message = engine.build_message(email_config, variables)
        engine.send_email(message)
    """

    def __init__(self, engine_config: EngineConfig, cwd: Optional[Path] = None):
        self.config = engine_config
        self.loader = ConfigLoader(engine_config, cwd)
        self.attachments = AttachmentResolver(engine_config.root_path, cwd)
        self.list_processor = ListProcessor()
        self.builder = MessageBuilder(self.loader, self.attachments)
        self.transport: Optional[MailTransport] = None

    def initialize(
        self,
        account_name: Optional[str] = None,
        transport: Optional[MailTransport] = None
    ) -> None:
        """
        Set up the mail transport.

        Args:
            account_name: Account file to load. Defaults to the default account.
            transport: A ready transport; when given no account file is read.

        Raises:
            ConfigurationError: If the account cannot be loaded or used.
        """
        if transport is not None:
            self.transport = transport
            return

        name = account_name or self.config.default_account
        logger.debug(f"Initializing with account: {name}")
        account = self.loader.load_account(name)

        try:
            self.transport = create_transport(
                account=account.config,
                options=account.transport_options
            )
        except SmtpError as e:
            raise ConfigurationError(
                f"Account '{name}' could not be used",
                [str(e)],
                "Set 'host' or a known 'service' in the account file."
            ) from e

    def close(self) -> None:
        if self.transport:
            self.transport.close()

    # Loading

    def load_email_config(self, email_name: str) -> EmailConfig:
        return self.loader.load_email_config(email_name)

    def load_email_list(self, list_name: str) -> EmailList:
        return self.loader.load_email_list(list_name)

    def load_email_attachments(self, email_name: str) -> List[Attachment]:
        return self.loader.load_email_attachments(email_name)

    def get_account_email(self) -> str:
        """Address of the initialized account, or the fallback sender."""
        if self.transport and self.transport.sender_address:
            return self.transport.sender_address
        return settings.DEFAULT_FROM_ADDRESS

    # Building

    def build_message(
        self,
        email_config: EmailConfig,
        variables: Mapping[str, TemplateValue],
        overrides: Optional[Mapping[str, Any]] = None
    ) -> EmailMessage:
        return self.builder.build(
            email_config, variables, overrides, account_email=self.get_account_email()
        )

    def preview(
        self,
        email_config: EmailConfig,
        variables: Mapping[str, TemplateValue],
        overrides: Optional[Mapping[str, Any]] = None
    ) -> EmailMessage:
        """Build a message for inspection without sending it."""
        return self.build_message(email_config, variables, overrides)

    # Sending

    def send_email(self, message: EmailMessage) -> SendResult:
        """
        Send one message.

        Raises:
            ConfigurationError: If initialize() was not called.
            NetworkError: If the transport fails.
        """
        if not self.transport:
            raise ConfigurationError(
                "Engine not initialized",
                ["Call engine.initialize() before sending."]
            )

        recipient = message.first_recipient
        logger.debug(f"Sending to: {recipient}")

        try:
            info = self.transport.send(message)
        except Exception as e:
            raise NetworkError(
                f"Failed to send email to '{recipient}'",
                [str(e)],
                "Check your account credentials and SMTP settings in config/accounts/"
            ) from e

        return SendResult(success=True, message_id=info.message_id, recipient=recipient)

    def _send_item(
        self,
        email_config: EmailConfig,
        item: ListItem,
        overrides: Mapping[str, Any]
    ) -> SendResult:
        contact_overrides = dict(overrides)
        contact_overrides["to"] = item.contact.email
        try:
            message = self.build_message(email_config, item.variables, contact_overrides)
            result = self.send_email(message)
        except Exception as e:
            logger.error(f"Failed ({item.index + 1}/{item.total}): {item.contact.email}: {e}")
            return SendResult(success=False, error=e, recipient=item.contact.email)

        logger.info(f"Sent ({item.index + 1}/{item.total}): {item.contact.email}")
        return result

    def send_bulk(
        self,
        email_config: EmailConfig,
        email_list: EmailList,
        overrides: Optional[Mapping[str, Any]] = None,
        on_progress: Optional[ProgressCallback] = None,
        max_workers: Optional[int] = None,
        extra_vars: Optional[Mapping[str, TemplateValue]] = None
    ) -> BulkSendResult:
        """
        Send one personalized message per contact.

        A failure for one contact is recorded and the run continues. Results
        are returned in list order regardless of worker count.

        Args:
            email_config: The email to send.
            email_list: Recipients.
            overrides: Field overrides applied to every message.
            on_progress: Called after every attempt with (done, total, result).
            max_workers: Values above 1 send through a bounded thread pool.
                Defaults to the BULK_WORKERS setting.
            extra_vars: Additional template variables for every contact.

        Raises:
            ValidationError: If the list is empty or has invalid entries.
        """
        overrides = dict(overrides or {})
        workers = max_workers or settings.BULK_WORKERS
        # Validation runs on the first next(), before any message is sent
        items = self.list_processor.process(email_list, extra_vars)
        total = self.list_processor.count(email_list)

        results: List[Optional[SendResult]] = [None] * total

        if workers <= 1:
            for item in items:
                result = self._send_item(email_config, item, overrides)
                results[item.index] = result
                if on_progress:
                    on_progress(item.index + 1, total, result)
        else:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                futures = {
                    pool.submit(self._send_item, email_config, item, overrides): item.index
                    for item in items
                }
                for done, future in enumerate(as_completed(futures), start=1):
                    result = future.result()
                    results[futures[future]] = result
                    if on_progress:
                        on_progress(done, total, result)

        successful = sum(1 for r in results if r.success)
        return BulkSendResult(
            total=total,
            successful=successful,
            failed=total - successful,
            results=results,
        )

    def send_all(
        self,
        email_config: EmailConfig,
        email_list: EmailList,
        overrides: Optional[Mapping[str, Any]] = None
    ) -> SendResult:
        """
        Send a single message with every contact in ``to``.

        Templating uses the first contact's address only; per-contact fields
        such as the name are not available and leftover CH-EMAILONLIST
        placeholders are removed.

        Raises:
            ValidationError: If the list is invalid or the message is incomplete.
            NetworkError: If the transport fails.
        """
        contacts = self.list_processor.validate(email_list)
        overrides = dict(overrides or {})
        overrides["to"] = [c.email for c in contacts]

        subject = overrides.get("subject") or email_config.subject
        variables: TemplateVariables = build_single_vars(contacts[0].email, subject)

        message = self.build_message(email_config, variables, overrides)
        message.subject = strip_placeholder(message.subject, "CH-EMAILONLIST")
        if message.html:
            message.html = strip_placeholder(message.html, "CH-EMAILONLIST")
        if message.text:
            message.text = strip_placeholder(message.text, "CH-EMAILONLIST")

        logger.info(f"Sending one message to {len(contacts)} recipients")
        return self.send_email(message)

    def verify_connection(self) -> bool:
        """Check that the initialized transport can reach its server."""
        if not self.transport:
            return False
        try:
            return self.transport.verify()
        except Exception as e:
            logger.warning(f"Connection check failed: {e}")
            return False
