import pytest

from sendemail import cli
from tests.helpers import FakeTransport, write_json


@pytest.fixture(autouse=True)
def cli_env(tool_root, workdir, monkeypatch):
    """Point the command at the test tool root and keep logging untouched."""
    monkeypatch.setenv("SENDEMAIL_ROOT", str(tool_root))
    monkeypatch.setattr(cli, "setup_logging", lambda debug=False: None)


@pytest.fixture
def newsletter(tool_root):
    write_json(tool_root / "config/emails/news/email.json", {
        "subject": "News for CH-EMAILONLIST",
        "html": "<p>Hello {{contact.name}}</p>",
        "text": "Hello {{contact.name}}",
    })
    write_json(tool_root / "lists/subs.json", {"email-list": [
        {"email": "alice@example.com", "name": "Alice"},
        {"email": "bob@example.com", "name": "Bob"},
        {"email": "carol@example.com", "name": "Carol"},
    ]})


def test_normalize_argv():
    assert cli.normalize_argv(["--global-config:root", "a", "--global-config:path", "b"]) == [
        "--global-config-root", "a", "--global-config-path", "b",
    ]


def test_raw_mode():
    transport = FakeTransport()

    code = cli.main(["-t", "x@example.com", "Hello there", "-f"], transport=transport)

    assert code == 0
    message = transport.sent[0]
    assert (message.to, message.text, message.subject) == ("x@example.com", "Hello there", "(no subject)")
    assert message.from_ == "sender@example.com"
    assert transport.closed


def test_raw_mode_rejects_extra_values(capsys):
    transport = FakeTransport()
    assert cli.main(["-t", "x@example.com", "Hello", "there", "-f"], transport=transport) == 1
    assert "--text takes an address" in capsys.readouterr().err
    assert transport.sent == []


def test_normal_mode_with_email_config(tool_root):
    write_json(tool_root / "config/emails/welcome/email.json", {
        "to": "ada@example.com",
        "subject": "Welcome CHANGE_SEND_TO",
        "html": "<p>Sent to {{contact.email}}</p>",
    })
    transport = FakeTransport()

    assert cli.main(["--config-email", "welcome", "-f"], transport=transport) == 0

    message = transport.sent[0]
    assert message.subject == "Welcome ada@example.com"
    assert message.html == "<p>Sent to ada@example.com</p>"


def test_command_line_overrides(tool_root, workdir):
    write_json(tool_root / "config/emails/welcome/email.json", {
        "to": "ada@example.com", "subject": "Old", "text": "Body",
    })
    (workdir / "note.txt").write_text("From a file")
    transport = FakeTransport()

    code = cli.main([
        "--config-email", "welcome",
        "--send-to", "grace@example.com", "linus@example.com",
        "--subject", "New",
        "--message-text", "note.txt",
        "--cc", "boss@example.com",
        "--from-address", "Team <team@example.com>",
        "-f",
    ], transport=transport)

    assert code == 0
    message = transport.sent[0]
    assert message.to == ["grace@example.com", "linus@example.com"]
    assert message.cc == "boss@example.com"
    assert message.subject == "New"
    assert message.text == "From a file"
    assert message.from_ == "Team <team@example.com>"


def test_bulk_mode_reports_failures(newsletter, capsys):
    transport = FakeTransport(fail_for={"bob@example.com"})

    code = cli.main(["--config-email", "news", "--email-list", "subs", "-f"], transport=transport)

    assert code == 1
    assert [m.subject for m in transport.sent] == ["News for Alice", "News for Carol"]
    out = capsys.readouterr().out
    assert "Failed 2/3: bob@example.com" in out
    assert "2/3 sent, 1 failed" in out


def test_bulk_mode_success(newsletter):
    transport = FakeTransport()
    assert cli.main(["--config-email", "news", "--email-list", "subs", "-f"], transport=transport) == 0
    assert [m.to for m in transport.sent] == ["alice@example.com", "bob@example.com", "carol@example.com"]
    assert transport.sent[1].text == "Hello Bob"


def test_send_all_mode(newsletter):
    transport = FakeTransport()

    code = cli.main(["--config-email", "news", "--email-list", "subs", "--send-all", "-f"], transport=transport)

    assert code == 0
    assert len(transport.sent) == 1
    message = transport.sent[0]
    assert message.to == ["alice@example.com", "bob@example.com", "carol@example.com"]
    assert message.subject == "News for"


def test_email_list_named_in_config(tool_root, newsletter):
    write_json(tool_root / "config/emails/news/email.json", {
        "subject": "Hi", "text": "Hello {{contact.name}}", "emailList": "subs",
    })
    transport = FakeTransport()
    assert cli.main(["--config-email", "news", "-f"], transport=transport) == 0
    assert len(transport.sent) == 3


def test_attachments_from_cli_and_global_config(tool_root, newsletter):
    write_json(tool_root / "config/globals/brand/global.json", {
        "attachments": [{"filename": "logo.png", "path": "img/logo.png", "cid": "logo",
                         "contentDisposition": "inline"}]
    })
    transport = FakeTransport()

    code = cli.main([
        "--config-email", "news",
        "--send-to", "x@example.com",
        "--attach-file", "Report",
        "--attach-path", "docs/report.pdf",
        "--global-config:root", "brand",
        "-f",
    ], transport=transport)

    assert code == 0
    attachments = transport.sent[0].attachments
    assert [a.filename for a in attachments] == ["Report", "logo.png"]
    assert attachments[1].path == str(tool_root.resolve() / "img" / "logo.png")
    assert attachments[1].cid == "logo"


def test_path_only_global_config_ignores_root(tool_root, newsletter, capsys):
    write_json(tool_root / "config/globals/brand/global.json", {"attachments": []})
    transport = FakeTransport()

    code = cli.main([
        "--config-email", "news", "--send-to", "x@example.com",
        "--global-config:path", "brand", "-f",
    ], transport=transport)

    assert code == 1
    assert "Global config 'brand' not found" in capsys.readouterr().err
    assert transport.sent == []


def test_declined_confirmation_sends_nothing(newsletter, monkeypatch):
    monkeypatch.setattr("builtins.input", lambda prompt: "n")
    transport = FakeTransport()

    assert cli.main(["--config-email", "news", "--send-to", "x@example.com"], transport=transport) == 0
    assert transport.sent == []


@pytest.mark.parametrize("argv, expected", [
    (["--email-list", "subs"], "Email list requires an email config"),
    (["--subject", "Hi"], "Recipient address required"),
    (["--send-to", "not-an-address"], "Invalid email address"),
    (["--config-email", "missing", "-f"], "Email config 'missing' not found"),
])
def test_invalid_commands_exit_with_one(argv, expected, capsys):
    transport = FakeTransport()
    assert cli.main(argv, transport=transport) == 1
    assert expected in capsys.readouterr().err
    assert transport.sent == []
