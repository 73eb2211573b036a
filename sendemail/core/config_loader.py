"""
Configuration loading for accounts, emails, globals and recipient lists.

All resources are JSON files under the tool root:
    config/accounts/<name>.json
    config/emails/<name>/email.json
    config/emails/<name>/attachments.json
    config/globals/<name...>/global.json
    lists/<name>.json

Every loader checks existence first and raises ConfigurationError naming
the path it tried. Malformed JSON and missing keys raise ConfigParseError
with the matching reason.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from sendemail.config import EngineConfig
from sendemail.core import resolver
from sendemail.core.attachments import resolve_attachments_from_base
from sendemail.models import (
    AccountAuth,
    AccountConfig,
    Attachment,
    ContentRef,
    EmailConfig,
    EmailList,
    LoadedAccount,
)
from sendemail.storage.encryption import decrypt_text
from sendemail.utils.errors import ConfigParseError, ConfigurationError


logger = logging.getLogger(__name__)

EMAIL_CONFIG_FILE = "email.json"
EMAIL_ATTACHMENTS_FILE = "attachments.json"
EMAIL_HTML_FOLDER = "html"
LIST_KEY = "email-list"


def read_json(path: Path, what: str) -> Any:
    """
    Read and parse a JSON file.

    Args:
        path: File to read.
        what: Human-readable resource name used in error messages.

    Raises:
        ConfigParseError: If the file is not valid JSON.
        ConfigurationError: If the file cannot be read.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigParseError(
            f"Failed to parse {what}",
            ConfigParseError.MALFORMED,
            [f"{e.msg} (line {e.lineno}, column {e.colno})", f"File: {path}"],
            "Check that the file is valid JSON."
        ) from e
    except OSError as e:
        raise ConfigurationError(
            f"Failed to read {what}",
            [str(e), f"File: {path}"]
        ) from e


def _parse_attachments(raw: Any, source: Path) -> List[Attachment]:
    if not isinstance(raw, list):
        raise ConfigParseError(
            "Attachments must be a list",
            ConfigParseError.MISSING_KEY,
            [f"File: {source}"]
        )
    attachments = []
    for i, item in enumerate(raw):
        if not isinstance(item, dict) or not item.get("path"):
            raise ConfigParseError(
                f"Attachment {i} has no 'path'",
                ConfigParseError.MISSING_KEY,
                [f"File: {source}"],
                'Each attachment needs at least: { "path": "..." }'
            )
        attachments.append(Attachment.from_dict(item))
    return attachments


def _parse_account(data: Dict[str, Any], path: Path) -> AccountConfig:
    auth_data = data.get("auth") or {}
    password = auth_data.get("pass", "")
    if auth_data.get("pass_encrypted"):
        password = decrypt_text(auth_data["pass_encrypted"])

    port = data.get("port")
    try:
        port = int(port) if port is not None else None
    except (TypeError, ValueError) as e:
        raise ConfigParseError(
            "Account port must be a number",
            ConfigParseError.MISSING_KEY,
            [f"port: {port!r}", f"File: {path}"]
        ) from e

    return AccountConfig(
        service=data.get("service"),
        host=data.get("host"),
        port=port,
        secure=data.get("secure"),
        auth=AccountAuth(user=auth_data.get("user", ""), password=password),
    )


def _classify_content(value: Any, field_name: str, path: Path) -> ContentRef:
    try:
        return ContentRef.classify(value)
    except ValueError as e:
        raise ConfigParseError(
            f"Invalid '{field_name}' value in email config",
            ConfigParseError.MISSING_KEY,
            [str(e), f"File: {path}"]
        ) from e


class ConfigLoader:
    """Loads typed configuration resources from a tool root."""

    def __init__(self, engine_config: EngineConfig, cwd: Optional[Path] = None):
        self.config = engine_config
        self.cwd = Path(cwd or Path.cwd()).resolve()

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def load_account(self, account_name: str) -> LoadedAccount:
        """
        Load an account by name.

        Supports the structured ``{"account": {...}}`` form and the legacy
        ``{"transporter": {...}}`` form.

        Raises:
            ConfigurationError: If the file is missing or has neither key.
        """
        account_path = self.config.accounts_path / f"{account_name}.json"

        if not account_path.is_file():
            raise ConfigurationError(
                f"Account '{account_name}' not found",
                [f"Expected file: {account_path}", "The account file must exist in config/accounts/"],
                "Create a default account configuration:\n"
                "  cp config/accounts/example.json config/accounts/_default.json\n\n"
                "Then edit _default.json with your email credentials.\n"
                f"Available accounts: {', '.join(self.list_accounts()) or '(none)'}"
            )

        logger.debug(f"Loading account: {account_path}")
        data = read_json(account_path, f"account '{account_name}'")

        if isinstance(data, dict) and isinstance(data.get("account"), dict):
            return LoadedAccount(
                name=account_name,
                config=_parse_account(data["account"], account_path)
            )
        if isinstance(data, dict) and isinstance(data.get("transporter"), dict):
            options = dict(data["transporter"])
            auth = options.get("auth")
            if isinstance(auth, dict) and auth.get("pass_encrypted"):
                auth = dict(auth)
                auth["pass"] = decrypt_text(auth.pop("pass_encrypted"))
                options["auth"] = auth
            return LoadedAccount(name=account_name, transport_options=options)

        raise ConfigurationError(
            f"Account '{account_name}' has invalid format",
            [
                f"File: {account_path}",
                "Expected a top-level 'account' object or a legacy 'transporter' object",
            ]
        )

    # ------------------------------------------------------------------
    # Emails
    # ------------------------------------------------------------------

    def email_dir(self, email_name: str) -> Path:
        return self.config.emails_path / email_name

    def load_email_config(self, email_name: str) -> EmailConfig:
        """
        Load config/emails/<name>/email.json into an EmailConfig.

        Body content is classified into inline text or file references here,
        once. A string ``attachments`` value names a JSON file in the email
        folder.
        """
        email_dir = self.email_dir(email_name)
        email_path = email_dir / EMAIL_CONFIG_FILE

        if not email_path.is_file():
            raise ConfigurationError(
                f"Email config '{email_name}' not found",
                [f"Expected file: {email_path}"],
                "Create an email configuration or check the --config-email value.\n"
                f"Available emails: {', '.join(self.list_emails()) or '(none)'}"
            )

        logger.debug(f"Loading email config: {email_path}")
        data = read_json(email_path, f"email config '{email_name}'")
        if not isinstance(data, dict):
            raise ConfigParseError(
                f"Email config '{email_name}' must be a JSON object",
                ConfigParseError.MISSING_KEY,
                [f"File: {email_path}"]
            )

        return self.parse_email_config(data, email_path, name=email_name)

    def parse_email_config(
        self,
        data: Dict[str, Any],
        path: Path,
        name: Optional[str] = None
    ) -> EmailConfig:
        """Build an EmailConfig from an already parsed JSON object."""
        html = data.get("html")
        html_refs = None
        if html:
            parts = html if isinstance(html, list) else [html]
            html_refs = [_classify_content(part, "html", path) for part in parts]

        text = data.get("text")
        text_ref = _classify_content(text, "text", path) if text else None

        attachments = None
        raw_attachments = data.get("attachments")
        if isinstance(raw_attachments, str):
            attachments = self._load_attachment_file(path.parent / raw_attachments)
        elif raw_attachments is not None:
            attachments = _parse_attachments(raw_attachments, path)

        email_list = data.get(LIST_KEY)
        if email_list is not None and not isinstance(email_list, list):
            raise ConfigParseError(
                f'"{LIST_KEY}" in email config must be an array',
                ConfigParseError.MISSING_KEY,
                [f"File: {path}"]
            )

        global_names = data.get("globals") or []
        if isinstance(global_names, str):
            global_names = [global_names]

        return EmailConfig(
            to=data.get("to"),
            cc=data.get("cc"),
            bcc=data.get("bcc"),
            reply_to=data.get("replyTo"),
            from_=data.get("from"),
            subject=data.get("subject"),
            html=html_refs,
            text=text_ref,
            attachments=attachments,
            globals=list(global_names),
            email_list=email_list,
            email_list_name=data.get("emailList"),
            send_all=bool(data.get("sendAll", False)),
            log=bool(data.get("log", False)),
            name=name,
            source_dir=path.parent,
        )

    def _load_attachment_file(self, path: Path) -> List[Attachment]:
        data = read_json(path, "attachments file")
        if isinstance(data, dict):
            if "emailAttachments" not in data:
                raise ConfigParseError(
                    "Attachments file has no 'emailAttachments' key",
                    ConfigParseError.MISSING_KEY,
                    [f"File: {path}"]
                )
            data = data["emailAttachments"]
        return _parse_attachments(data, path)

    def load_email_attachments(self, email_name: str) -> List[Attachment]:
        """
        Load config/emails/<name>/attachments.json.

        Returns:
            The declared attachments, or an empty list when the file is absent.
        """
        attach_path = self.email_dir(email_name) / EMAIL_ATTACHMENTS_FILE
        if not attach_path.is_file():
            logger.debug(f"No {EMAIL_ATTACHMENTS_FILE} found for '{email_name}', skipping attachments")
            return []

        logger.debug(f"Loading email attachments: {attach_path}")
        return self._load_attachment_file(attach_path)

    def load_email_html(self, email_name: str, file_name: str) -> str:
        """Load config/emails/<name>/html/<file>.htm, falling back to .html."""
        html_dir = self.email_dir(email_name) / EMAIL_HTML_FOLDER
        tried = [html_dir / f"{file_name}.htm", html_dir / f"{file_name}.html"]

        for candidate in tried:
            if candidate.is_file():
                return candidate.read_text(encoding="utf-8")

        raise ConfigurationError(
            f"HTML file '{file_name}' not found for email '{email_name}'",
            [f"Tried: {p}" for p in tried]
        )

    def resolve_content_path(self, ref: str, source_dir: Optional[Path] = None) -> Path:
        """
        Find the file a content reference points at.

        Lookup order: absolute path, <email dir>/html/<ref>, <email dir>/<ref>,
        <cwd>/<ref>, <root>/<ref>.

        Raises:
            ConfigurationError: If no candidate exists; lists every path tried.
        """
        path = Path(ref).expanduser()
        if path.is_absolute():
            candidates = [path]
        else:
            candidates = []
            if source_dir:
                candidates.append(Path(source_dir) / EMAIL_HTML_FOLDER / path)
                candidates.append(Path(source_dir) / path)
            candidates.append(self.cwd / path)
            candidates.append(self.config.root_path / path)

        for candidate in candidates:
            if candidate.is_file():
                return candidate

        raise ConfigurationError(
            f"Content file '{ref}' not found",
            [f"Tried: {p}" for p in candidates],
            "Put the file in the email's html/ folder or pass an absolute path."
        )

    def read_content(self, ref: str, source_dir: Optional[Path] = None) -> str:
        """Read the file a content reference points at."""
        path = self.resolve_content_path(ref, source_dir)
        logger.debug(f"Loading content file: {path}")
        return path.read_text(encoding="utf-8")

    # ------------------------------------------------------------------
    # Globals
    # ------------------------------------------------------------------

    def load_global_config(self, config_path: Path) -> List[Attachment]:
        """
        Read the attachments declared by a global.json file.

        Paths are returned as written; callers resolve them against the
        global's asset base path.
        """
        data = read_json(config_path, f"global config '{config_path}'")
        if isinstance(data, list):
            return _parse_attachments(data, config_path)
        if not isinstance(data, dict):
            raise ConfigParseError(
                "Global config must be a JSON object",
                ConfigParseError.MISSING_KEY,
                [f"File: {config_path}"]
            )

        raw = data.get("attachments", data.get("globalAttachments", []))
        return _parse_attachments(raw, config_path)

    def load_global_attachments(
        self,
        global_name: str,
        mode: str = resolver.MODE_DEFAULT
    ) -> List[Attachment]:
        """
        Resolve a global by name and return its attachments with absolute paths.

        Raises:
            ConfigurationError: If the global cannot be found.
        """
        found = resolver.resolve_global_config(
            global_name,
            mode=mode,
            root_path=self.config.root_path,
            cwd=self.cwd
        )
        logger.debug(f"Loading global attachments: {found.config_path}")
        attachments = self.load_global_config(found.config_path)
        return resolve_attachments_from_base(attachments, found.asset_base_path)

    # ------------------------------------------------------------------
    # Lists
    # ------------------------------------------------------------------

    def load_email_list(self, list_name: str) -> EmailList:
        """
        Load lists/<name>.json.

        Raises:
            ConfigurationError: If the file is missing.
            ConfigParseError: If "email-list" is absent or not an array.
        """
        list_path = self.config.lists_path / f"{list_name}.json"

        if not list_path.is_file():
            raise ConfigurationError(
                f"Email list '{list_name}' not found",
                [f"Expected file: {list_path}"],
                "Create the list file in lists/.\n"
                f"Available lists: {', '.join(self.list_email_lists()) or '(none)'}"
            )

        logger.debug(f"Loading email list: {list_path}")
        data = read_json(list_path, f"email list '{list_name}'")

        if not isinstance(data, dict) or not isinstance(data.get(LIST_KEY), list):
            raise ConfigParseError(
                f"Failed to parse email list '{list_name}'",
                ConfigParseError.MISSING_KEY,
                [f'Expected top-level key "{LIST_KEY}" to be an array', f"File: {list_path}"]
            )

        return EmailList(contacts=list(data[LIST_KEY]), name=list_name)

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    @staticmethod
    def _list_files(folder: Path, suffix: str) -> List[str]:
        if not folder.is_dir():
            return []
        return sorted(p.stem for p in folder.iterdir() if p.is_file() and p.suffix == suffix)

    @staticmethod
    def _list_dirs(folder: Path) -> List[str]:
        if not folder.is_dir():
            return []
        return sorted(p.name for p in folder.iterdir() if p.is_dir())

    def list_accounts(self) -> List[str]:
        return self._list_files(self.config.accounts_path, ".json")

    def list_emails(self) -> List[str]:
        return self._list_dirs(self.config.emails_path)

    def list_globals(self) -> List[str]:
        return self._list_dirs(self.config.globals_path)

    def list_email_lists(self) -> List[str]:
        return self._list_files(self.config.lists_path, ".json")
