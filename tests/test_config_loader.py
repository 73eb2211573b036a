import pytest

from sendemail import config
from sendemail.core.config_loader import ConfigLoader
from sendemail.models import Attachment, ContentRef
from sendemail.storage.encryption import encrypt_text
from sendemail.utils.errors import ConfigParseError, ConfigurationError
from tests.helpers import write_json


@pytest.fixture
def loader(engine_config, workdir):
    return ConfigLoader(engine_config, cwd=workdir)


def test_load_structured_account(loader, tool_root):
    write_json(tool_root / "config/accounts/work.json", {
        "account": {"service": "gmail", "auth": {"user": "me@gmail.com", "pass": "secret"}}
    })

    account = loader.load_account("work")

    assert account.transport_options is None
    assert account.config.service == "gmail"
    assert account.config.auth.user == "me@gmail.com"
    assert account.config.auth.password == "secret"


def test_load_account_with_encrypted_password(loader, tool_root, monkeypatch):
    from cryptography.fernet import Fernet
    monkeypatch.setattr(config, "SECRET_KEY", Fernet.generate_key().decode())
    write_json(tool_root / "config/accounts/enc.json", {
        "account": {"host": "smtp.example.com", "port": "587",
                    "auth": {"user": "me@example.com", "pass_encrypted": encrypt_text("hunter2")}}
    })

    account = loader.load_account("enc")

    assert account.config.auth.password == "hunter2"
    assert account.config.port == 587


def test_load_legacy_transporter_account(loader, tool_root):
    options = {"host": "smtp.example.com", "port": 25, "auth": {"user": "u@example.com", "pass": "p"}}
    write_json(tool_root / "config/accounts/_default.json", {"transporter": options})

    account = loader.load_account("_default")

    assert account.config is None
    assert account.transport_options == options


def test_account_with_neither_shape_is_rejected(loader, tool_root):
    write_json(tool_root / "config/accounts/bad.json", {"smtp": {}})
    with pytest.raises(ConfigurationError, match="invalid format"):
        loader.load_account("bad")


def test_missing_account_names_path(loader, tool_root):
    with pytest.raises(ConfigurationError) as exc_info:
        loader.load_account("nope")
    assert str(tool_root.resolve() / "config/accounts/nope.json") in exc_info.value.details[0]


def test_malformed_json_reason(loader, tool_root):
    path = tool_root / "config/accounts/broken.json"
    path.write_text("{not json")
    with pytest.raises(ConfigParseError) as exc_info:
        loader.load_account("broken")
    assert exc_info.value.reason == ConfigParseError.MALFORMED


def test_load_email_config_classifies_content(loader, tool_root):
    write_json(tool_root / "config/emails/news/email.json", {
        "to": ["a@example.com", "b@example.com"],
        "replyTo": "reply@example.com",
        "from": "work",
        "subject": "News for {{contact.name}}",
        "html": ["intro.htm", "<p>Contact me at me@example.com</p>", {"file": "notes"}],
        "text": "Plain body text.",
        "globals": ["footer"],
        "emailList": "subscribers",
        "sendAll": True,
        "attachments": [{"path": "attachments/a.pdf"}],
    })

    email = loader.load_email_config("news")

    assert email.name == "news"
    assert email.source_dir == tool_root.resolve() / "config/emails/news"
    assert email.to == ["a@example.com", "b@example.com"]
    assert email.reply_to == "reply@example.com"
    assert email.from_ == "work"
    assert email.html == [
        ContentRef.file("intro.htm"),
        ContentRef.inline("<p>Contact me at me@example.com</p>"),
        ContentRef.file("notes"),
    ]
    assert email.text == ContentRef.inline("Plain body text.")
    assert email.globals == ["footer"]
    assert email.email_list_name == "subscribers"
    assert email.send_all is True
    assert email.attachments == [Attachment(filename="a.pdf", path="attachments/a.pdf")]


def test_missing_email_config_lists_available(loader, tool_root):
    write_json(tool_root / "config/emails/welcome/email.json", {})
    with pytest.raises(ConfigurationError) as exc_info:
        loader.load_email_config("nope")
    assert "welcome" in exc_info.value.suggestion


def test_email_attachments_file(loader, tool_root):
    write_json(tool_root / "config/emails/news/attachments.json", {
        "emailAttachments": [{"filename": "Logo", "path": "img/logo.png", "cid": "logo",
                              "contentDisposition": "inline"}]
    })

    attachments = loader.load_email_attachments("news")

    assert attachments == [Attachment("Logo", "img/logo.png", "inline", "logo")]


def test_email_attachments_missing_file_is_empty(loader):
    assert loader.load_email_attachments("news") == []


def test_attachment_without_path_is_missing_key(loader, tool_root):
    write_json(tool_root / "config/emails/news/attachments.json", [{"filename": "x"}])
    with pytest.raises(ConfigParseError) as exc_info:
        loader.load_email_attachments("news")
    assert exc_info.value.reason == ConfigParseError.MISSING_KEY


def test_load_email_html_prefers_htm(loader, tool_root):
    html_dir = tool_root / "config/emails/news/html"
    html_dir.mkdir(parents=True)
    (html_dir / "body.html").write_text("html")
    (html_dir / "body.htm").write_text("htm")

    assert loader.load_email_html("news", "body") == "htm"
    with pytest.raises(ConfigurationError) as exc_info:
        loader.load_email_html("news", "other")
    assert len(exc_info.value.details) == 2


def test_resolve_content_path_order(loader, tool_root, workdir):
    email_dir = tool_root / "config/emails/news"
    (email_dir / "html").mkdir(parents=True)
    (workdir / "body.htm").write_text("cwd")
    assert loader.resolve_content_path("body.htm", email_dir) == workdir.resolve() / "body.htm"

    (email_dir / "body.htm").write_text("email dir")
    assert loader.resolve_content_path("body.htm", email_dir) == email_dir / "body.htm"

    (email_dir / "html/body.htm").write_text("html dir")
    assert loader.read_content("body.htm", email_dir) == "html dir"


def test_resolve_content_path_not_found(loader, tool_root):
    email_dir = tool_root / "config/emails/news"
    with pytest.raises(ConfigurationError) as exc_info:
        loader.resolve_content_path("ghost.htm", email_dir)
    assert len(exc_info.value.details) == 4


def test_load_email_list(loader, tool_root):
    write_json(tool_root / "lists/subs.json", {"email-list": [{"email": "a@b.com", "name": "A"}]})
    email_list = loader.load_email_list("subs")
    assert email_list.name == "subs"
    assert email_list.contacts == [{"email": "a@b.com", "name": "A"}]


def test_email_list_requires_array(loader, tool_root):
    write_json(tool_root / "lists/bad.json", {"email-list": {"email": "a@b.com"}})
    with pytest.raises(ConfigParseError) as exc_info:
        loader.load_email_list("bad")
    assert exc_info.value.reason == ConfigParseError.MISSING_KEY


def test_load_global_attachments_resolves_against_base(loader, tool_root):
    write_json(tool_root / "config/globals/footer/global.json", {
        "globalAttachments": [{"filename": "x.jpg", "path": "img/x.jpg"}]
    })

    attachments = loader.load_global_attachments("footer")

    assert attachments[0].path == str(tool_root.resolve() / "img" / "x.jpg")


def test_listings(loader, tool_root):
    write_json(tool_root / "config/accounts/b.json", {})
    write_json(tool_root / "config/accounts/a.json", {})
    write_json(tool_root / "config/emails/news/email.json", {})
    (tool_root / "config/globals/footer").mkdir()
    write_json(tool_root / "lists/subs.json", {})

    assert loader.list_accounts() == ["a", "b"]
    assert loader.list_emails() == ["news"]
    assert loader.list_globals() == ["footer"]
    assert loader.list_email_lists() == ["subs"]
