import json
from pathlib import Path

from sendemail.network.transport import DeliveryInfo, MailTransport


class FakeTransport(MailTransport):
    """Records sent messages; raises for addresses listed in fail_for."""

    def __init__(self, user="sender@example.com", fail_for=()):
        self.user = user
        self.fail_for = set(fail_for)
        self.sent = []
        self.closed = False

    @property
    def sender_address(self):
        return self.user

    def send(self, message):
        if message.first_recipient in self.fail_for:
            raise RuntimeError(f"550 mailbox unavailable: {message.first_recipient}")
        self.sent.append(message)
        return DeliveryInfo(message_id=f"<{len(self.sent)}@test>", accepted=[message.first_recipient])

    def verify(self):
        return True

    def close(self):
        self.closed = True


def write_json(path: Path, data) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")
    return path
