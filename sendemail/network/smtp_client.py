"""
SMTP transport for sending emails.

This module provides the smtplib-backed MailTransport. It maps well-known
service names to servers, authenticates with the account's credentials and
composes MIME messages with text/html alternatives, attachments and inline
images referenced by Content-ID.
"""
import logging
import mimetypes
import smtplib
import ssl
import threading
from email.message import EmailMessage as MimeMessage
from email.utils import formatdate, getaddresses, make_msgid
from pathlib import Path
from typing import Any, Dict, List, Optional

from sendemail import config
from sendemail.models import AccountAuth, AccountConfig, Attachment, EmailMessage
from sendemail.network.transport import DeliveryInfo, MailTransport


logger = logging.getLogger(__name__)


class SmtpError(Exception):
    """Base exception for SMTP-related errors."""
    pass


class SmtpConnectionError(SmtpError):
    """Raised when SMTP connection fails."""
    pass


class SmtpAuthenticationError(SmtpError):
    """Raised when SMTP authentication fails."""
    pass


class SmtpSendError(SmtpError):
    """Raised when sending an email fails."""
    pass


# Well-known services and their submission servers
_SERVICE_CONFIGS = {
    "gmail": {"host": "smtp.gmail.com", "port": 465, "secure": True},
    "outlook": {"host": "smtp.office365.com", "port": 587, "secure": False},
    "hotmail": {"host": "smtp.office365.com", "port": 587, "secure": False},
    "office365": {"host": "smtp.office365.com", "port": 587, "secure": False},
    "yahoo": {"host": "smtp.mail.yahoo.com", "port": 465, "secure": True},
    "icloud": {"host": "smtp.mail.me.com", "port": 587, "secure": False},
    "zoho": {"host": "smtp.zoho.com", "port": 465, "secure": True},
}


def _as_list(value) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return [v for v in value if v]


def _join(value) -> str:
    return ", ".join(_as_list(value))


class SmtpTransport(MailTransport):
    """
    smtplib-based mail transport.

    A new connection is opened lazily on the first send and reused until
    close() is called.
    """

    def __init__(
        self,
        host: str,
        port: Optional[int] = None,
        secure: Optional[bool] = None,
        user: str = "",
        password: str = "",
        timeout: Optional[int] = None
    ):
        """
        Initialize the SMTP transport.

        Args:
            host: SMTP server host.
            port: Server port. Defaults to 465 when secure, 587 otherwise.
            secure: True for implicit TLS. Defaults to port == 465.
            user: Login user, also used as the default sender address.
            password: Login password.
            timeout: Socket timeout in seconds. Defaults to SMTP_TIMEOUT.
        """
        if port is None:
            port = config.DEFAULT_SSL_SMTP_PORT if secure else config.DEFAULT_SMTP_PORT
        if secure is None:
            secure = port == config.DEFAULT_SSL_SMTP_PORT

        self.host = host
        self.port = int(port)
        self.secure = bool(secure)
        self.user = user
        self.password = password
        self.timeout = timeout or config.SMTP_TIMEOUT
        self.connection: Optional[smtplib.SMTP] = None
        # One SMTP session cannot interleave commands from several threads
        self._lock = threading.Lock()

    @classmethod
    def from_account(cls, account: AccountConfig) -> "SmtpTransport":
        """Create a transport from a structured account config."""
        service = _SERVICE_CONFIGS.get((account.service or "").lower(), {})
        host = account.host or service.get("host")
        if not host:
            raise SmtpConnectionError(
                f"No SMTP host configured (service: {account.service or 'none'})"
            )
        return cls(
            host=host,
            port=account.port or service.get("port"),
            secure=account.secure if account.secure is not None else service.get("secure"),
            user=account.auth.user,
            password=account.auth.password,
        )

    @classmethod
    def from_options(cls, options: Dict[str, Any]) -> "SmtpTransport":
        """Create a transport from legacy transporter options."""
        auth = options.get("auth") or {}
        account = AccountConfig(
            service=options.get("service"),
            host=options.get("host"),
            port=options.get("port"),
            secure=options.get("secure"),
            auth=AccountAuth(user=auth.get("user", ""), password=auth.get("pass", "")),
        )
        return cls.from_account(account)

    @property
    def sender_address(self) -> Optional[str]:
        return self.user or None

    def _connect(self) -> None:
        """Establish connection to SMTP server and authenticate."""
        if self.connection:
            return

        host, port = self.host, self.port
        logger.info(f"Connecting to SMTP server {host}:{port}")

        try:
            # Port 465 uses SSL from the start, 587 upgrades with STARTTLS
            if self.secure:
                connection = smtplib.SMTP_SSL(
                    host, port, timeout=self.timeout, context=ssl.create_default_context()
                )
            else:
                connection = smtplib.SMTP(host, port, timeout=self.timeout)
        except (smtplib.SMTPException, OSError) as e:
            raise SmtpConnectionError(f"Failed to connect to SMTP server {host}:{port}: {e}") from e

        if not self.secure:
            try:
                connection.starttls(context=ssl.create_default_context())
            except (smtplib.SMTPException, OSError) as e:
                connection.close()
                raise SmtpConnectionError(f"STARTTLS failed on {host}:{port}: {e}") from e

        if self.user:
            try:
                connection.login(self.user, self.password)
            except smtplib.SMTPAuthenticationError as e:
                connection.close()
                raise SmtpAuthenticationError(f"SMTP authentication failed: {e}") from e
            except smtplib.SMTPException as e:
                connection.close()
                raise SmtpAuthenticationError(f"Authentication error: {e}") from e

        self.connection = connection
        logger.info("SMTP connection established")

    def _add_attachment(self, msg: MimeMessage, attachment: Attachment) -> None:
        path = Path(attachment.path)
        data = path.read_bytes()

        mime_type, _ = mimetypes.guess_type(attachment.filename or path.name)
        main_type, sub_type = (mime_type or "application/octet-stream").split("/", 1)

        disposition = attachment.content_disposition or "attachment"
        body = msg.get_body(("related", "html")) if attachment.cid else None
        if body is not None and disposition == "inline":
            # Inline images live next to the HTML part so cid: references resolve
            body.add_related(
                data,
                maintype=main_type,
                subtype=sub_type,
                cid=f"<{attachment.cid}>",
                filename=attachment.filename,
                disposition="inline",
            )
            return

        msg.add_attachment(
            data,
            maintype=main_type,
            subtype=sub_type,
            filename=attachment.filename or path.name,
            disposition=disposition,
        )
        if attachment.cid:
            msg.get_payload()[-1]["Content-ID"] = f"<{attachment.cid}>"

    def build_mime_message(self, message: EmailMessage, message_id: str) -> MimeMessage:
        """
        Build a MIME message from a resolved EmailMessage.

        Args:
            message: The resolved message.
            message_id: Value for the Message-ID header.

        Returns:
            A MIME message ready for send_message().
        """
        msg = MimeMessage()
        msg["From"] = message.from_
        msg["To"] = _join(message.to)
        if message.cc:
            msg["Cc"] = _join(message.cc)
        if message.reply_to:
            msg["Reply-To"] = _join(message.reply_to)
        msg["Subject"] = message.subject
        msg["Date"] = formatdate(localtime=True)
        msg["Message-ID"] = message_id

        if message.text:
            msg.set_content(message.text)
            if message.html:
                msg.add_alternative(message.html, subtype="html")
        elif message.html:
            msg.set_content(message.html, subtype="html")
        else:
            msg.set_content("")

        for attachment in message.attachments:
            self._add_attachment(msg, attachment)
            logger.debug(f"Added attachment: {attachment.filename}")

        return msg

    def send(self, message: EmailMessage) -> DeliveryInfo:
        """
        Send one message.

        Raises:
            SmtpError: If connecting, authenticating or sending fails.
        """
        with self._lock:
            return self._send(message)

    def _send(self, message: EmailMessage) -> DeliveryInfo:
        self._connect()

        domain = message.from_.rsplit("@", 1)[-1].strip(" >") if "@" in message.from_ else None
        message_id = make_msgid(domain=domain)

        try:
            mime_msg = self.build_mime_message(message, message_id)
        except OSError as e:
            raise SmtpSendError(f"Failed to read attachment: {e}") from e

        recipients = [
            address for _, address in getaddresses(
                _as_list(message.to) + _as_list(message.cc) + _as_list(message.bcc)
            ) if address
        ]
        _, sender = getaddresses([message.from_])[0]

        logger.info(f"Sending email to {len(recipients)} recipient(s)")

        try:
            refused = self.connection.send_message(mime_msg, from_addr=sender, to_addrs=recipients)
        except smtplib.SMTPRecipientsRefused as e:
            raise SmtpSendError(f"Recipients refused: {e}") from e
        except smtplib.SMTPDataError as e:
            raise SmtpSendError(f"Server rejected message data: {e}") from e
        except smtplib.SMTPServerDisconnected as e:
            self.connection = None
            raise SmtpSendError(f"Server disconnected: {e}") from e
        except smtplib.SMTPException as e:
            raise SmtpSendError(f"SMTP error: {e}") from e

        rejected = list(refused.keys()) if refused else []
        if rejected:
            logger.warning(f"Recipients rejected by server: {', '.join(rejected)}")

        return DeliveryInfo(
            message_id=message_id,
            accepted=[r for r in recipients if r not in rejected],
            rejected=rejected,
        )

    def verify(self) -> bool:
        """Connect, authenticate and issue NOOP."""
        self._connect()
        code, _ = self.connection.noop()
        return code == 250

    def close(self) -> None:
        """Close the SMTP connection."""
        if not self.connection:
            return
        try:
            self.connection.quit()
            logger.debug("SMTP connection closed gracefully")
        except smtplib.SMTPException:
            self.connection.close()
            logger.debug("SMTP connection closed")
        finally:
            self.connection = None


def create_transport(account: AccountConfig = None, options: Dict[str, Any] = None) -> SmtpTransport:
    """Create an SmtpTransport from either account form."""
    if account is not None:
        return SmtpTransport.from_account(account)
    if options is not None:
        return SmtpTransport.from_options(options)
    raise SmtpConnectionError("No account configuration given")
