import pytest

from sendemail import config
from sendemail.config import create_engine_config
from sendemail.core.engine import EmailEngine
from tests.helpers import FakeTransport


@pytest.fixture
def tool_root(tmp_path):
    """An empty sendemail tool root with the standard folders."""
    root = tmp_path / "root"
    for sub in ("config/accounts", "config/emails", "config/globals", "lists"):
        (root / sub).mkdir(parents=True)
    return root


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    """A separate working directory the test runs from."""
    cwd = tmp_path / "work"
    cwd.mkdir()
    monkeypatch.chdir(cwd)
    return cwd


@pytest.fixture
def engine_config(tool_root):
    return create_engine_config(tool_root)


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def engine(engine_config, workdir, fake_transport):
    engine = EmailEngine(engine_config, cwd=workdir)
    engine.initialize(transport=fake_transport)
    return engine


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Keep keys and logs out of the real home directory."""
    monkeypatch.setattr(config, "SECRET_KEY", None)
    monkeypatch.setattr(config, "SECRET_KEY_FILE", tmp_path / "secret.key")
    monkeypatch.setattr(config, "LOG_DIR", tmp_path / "logs")
    monkeypatch.setattr(config, "BULK_WORKERS", 1)
    monkeypatch.setattr(config, "ROOT_OVERRIDE", None)
