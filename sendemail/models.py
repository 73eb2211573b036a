"""
Core domain models for sendemail.

This module contains pure domain models (dataclasses) without any file or
network dependencies. These models describe accounts, email configurations,
attachments, recipient lists and the fully resolved outbound message.
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union


TemplateValue = Union[str, int, float, bool]
TemplateVariables = Dict[str, TemplateValue]
AddressField = Union[str, List[str]]

CONTENT_FILE_EXTENSIONS = (".htm", ".html", ".txt", ".md", ".markdown")


@dataclass(slots=True)
class Attachment:
    """Represents an attachment handed to the mail transport."""
    filename: str = ""
    path: str = ""
    content_disposition: Optional[str] = None  # 'attachment' or 'inline'
    cid: Optional[str] = None  # Content ID for <img src="cid:...">

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Attachment":
        """Build an attachment from its JSON form (camelCase keys accepted)."""
        disposition = data.get("contentDisposition", data.get("content_disposition"))
        path = str(data.get("path") or "")
        return cls(
            filename=str(data.get("filename") or Path(path).name),
            path=path,
            content_disposition=disposition,
            cid=data.get("cid"),
        )


@dataclass(slots=True)
class AccountAuth:
    """SMTP credentials."""
    user: str = ""
    password: str = ""


@dataclass(slots=True)
class AccountConfig:
    """SMTP connection descriptor loaded from config/accounts/<name>.json."""
    service: Optional[str] = None  # e.g. 'gmail', 'outlook'
    host: Optional[str] = None
    port: Optional[int] = None
    secure: Optional[bool] = None  # True = implicit TLS, False = STARTTLS
    auth: AccountAuth = field(default_factory=AccountAuth)


@dataclass(slots=True)
class LoadedAccount:
    """
    Result of loading an account file.

    Exactly one of ``config`` (structured form) and ``transport_options``
    (legacy pre-built transport form, passed to the transport untouched)
    is set.
    """
    name: str
    config: Optional[AccountConfig] = None
    transport_options: Optional[Dict[str, Any]] = None


@dataclass(frozen=True, slots=True)
class ContentRef:
    """
    Body content decided once at load time: inline text or a file reference.
    """
    kind: str
    value: str

    INLINE = "inline"
    FILE = "file"

    @classmethod
    def inline(cls, value: str) -> "ContentRef":
        return cls(cls.INLINE, value)

    @classmethod
    def file(cls, value: str) -> "ContentRef":
        return cls(cls.FILE, value)

    @property
    def is_file(self) -> bool:
        return self.kind == self.FILE

    @classmethod
    def classify(cls, value: Union[str, Dict[str, str], "ContentRef"]) -> "ContentRef":
        """
        Classify a raw configuration value.

        Explicit ``{"file": ...}`` / ``{"inline": ...}`` objects win. A bare
        string is a file reference only when it is a single line without
        markup and ends in a known content extension.
        """
        if isinstance(value, ContentRef):
            return value
        if isinstance(value, dict):
            if "file" in value:
                return cls.file(str(value["file"]))
            if "inline" in value:
                return cls.inline(str(value["inline"]))
            raise ValueError("Content object must have a 'file' or 'inline' key")

        text = str(value)
        stripped = text.strip()
        looks_like_file = (
            bool(stripped)
            and "\n" not in stripped
            and "<" not in stripped
            and stripped.lower().endswith(CONTENT_FILE_EXTENSIONS)
        )
        return cls.file(stripped) if looks_like_file else cls.inline(text)


@dataclass(slots=True)
class EmailConfig:
    """A named, reusable email template descriptor (config/emails/<name>/email.json)."""
    to: Optional[AddressField] = None
    cc: Optional[AddressField] = None
    bcc: Optional[AddressField] = None
    reply_to: Optional[AddressField] = None
    from_: Optional[str] = None  # Literal address or account name
    subject: Optional[str] = None
    html: Optional[List[ContentRef]] = None
    text: Optional[ContentRef] = None
    attachments: Optional[List[Attachment]] = None
    globals: List[str] = field(default_factory=list)
    email_list: Optional[List[Dict[str, Any]]] = None  # inline "email-list"
    email_list_name: Optional[str] = None  # "emailList"
    send_all: bool = False
    log: bool = False
    name: Optional[str] = None
    source_dir: Optional[Path] = None  # Folder the config was loaded from


@dataclass(slots=True)
class EmailContact:
    """A single recipient from an email list."""
    email: str
    name: str
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EmailContact":
        extra = {k: v for k, v in data.items() if k not in ("email", "name")}
        return cls(email=str(data["email"]), name=str(data["name"]), extra=extra)

    def as_dict(self) -> Dict[str, Any]:
        """All contact fields, required ones first."""
        data: Dict[str, Any] = {"email": self.email, "name": self.name}
        data.update(self.extra)
        return data


@dataclass(slots=True)
class EmailList:
    """Recipient list: the raw ``"email-list"`` entries in file order."""
    contacts: List[Dict[str, Any]] = field(default_factory=list)
    name: Optional[str] = None


@dataclass(slots=True)
class EmailMessage:
    """The final, fully resolved, transport-ready message."""
    from_: str
    to: AddressField
    subject: str
    cc: Optional[AddressField] = None
    bcc: Optional[AddressField] = None
    reply_to: Optional[AddressField] = None
    text: Optional[str] = None
    html: Optional[str] = None
    attachments: List[Attachment] = field(default_factory=list)

    @property
    def first_recipient(self) -> str:
        """First 'to' address, used for progress reporting."""
        if isinstance(self.to, list):
            return self.to[0] if self.to else ""
        return self.to


@dataclass(slots=True)
class SendResult:
    """Result of a single send."""
    success: bool
    message_id: Optional[str] = None
    error: Optional[Exception] = None
    recipient: Optional[str] = None


@dataclass(slots=True)
class BulkSendResult:
    """Aggregate result of a bulk send; results are in list order."""
    total: int = 0
    successful: int = 0
    failed: int = 0
    results: List[SendResult] = field(default_factory=list)


@dataclass(slots=True)
class ResolvedGlobal:
    """Location of a global config found by the path resolver."""
    name: str
    config_path: Path
    asset_base_path: Path


@dataclass(slots=True)
class GlobalDataResolution:
    """
    Fully resolved structure of a global folder referenced by an inline tag.

    ``asset_base_path`` is the directory attachments declared by the global
    resolve against (the working directory or the tool root).
    """
    name: str
    folder_path: Path
    asset_base_path: Path
    config_path: Optional[Path] = None
    html_data_path: Optional[Path] = None
    text_data_path: Optional[Path] = None
    html_data_type: Optional[str] = None  # 'global:data:html' | 'global:data:folder:html'
    text_data_type: Optional[str] = None  # 'global:data:text' | 'global:data:folder:data'


@dataclass(slots=True)
class GlobalContent:
    """Content and attachments contributed by one inline global tag."""
    name: str
    html: str = ""
    text: str = ""
    attachments: List[Attachment] = field(default_factory=list)
