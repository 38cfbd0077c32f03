import json
from pathlib import Path

import pytest

from nozbe_client.business.config_manager import ConfigManager
from nozbe_client.business.config_schema import AppConfig
from nozbe_client.business.session_manager import SessionManager
from nozbe_client.utils.error_handler import AuthenticationError


pytestmark = pytest.mark.unit


@pytest.fixture
def config_manager(tmp_path, monkeypatch):
    for name in ("NOZBE_BASE_URL", "NOZBE_HTTP_TIMEOUT", "NOZBE_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    manager = ConfigManager(str(tmp_path / "config"))
    config = AppConfig()
    config.nozbe.base_url = "http://nozbe.test/api"
    config.nozbe.http_timeout = 5
    manager.save_app_config(config)
    return manager


def test_create_client_requires_login(config_manager):
    session = SessionManager(config_manager)

    assert session.is_logged_in() is False
    with pytest.raises(AuthenticationError):
        session.create_client()


def test_create_client_uses_stored_options(config_manager):
    client = SessionManager(config_manager).create_client(require_api_key=False)

    assert client.base_url == "http://nozbe.test/api"
    assert client.timeout == 5
    assert client.get_api_key() is None


def test_login_persists_api_key(config_manager, mock_get, response_factory, last_url):
    mock_get.return_value = response_factory('{"key": "k42"}')

    client = SessionManager(config_manager).login("a@b.c", "pw")

    assert client.get_api_key() == "k42"
    assert last_url(mock_get) == "http://nozbe.test/api/login/email-a@b.c/password-pw/"

    # a fresh session reuses the cached key without logging in again
    fresh = SessionManager(config_manager)
    assert fresh.is_logged_in() is True
    assert fresh.create_client().get_api_key() == "k42"
    assert fresh.app_config.nozbe.email == "a@b.c"


def test_login_without_key_raises(config_manager, mock_get, response_factory):
    mock_get.return_value = response_factory('{"error": "invalid"}')

    with pytest.raises(AuthenticationError):
        SessionManager(config_manager).login("a@b.c", "bad")

    assert SessionManager(config_manager).is_logged_in() is False


def test_logout_forgets_key(config_manager, mock_get, response_factory):
    mock_get.return_value = response_factory('{"key": "k42"}')
    SessionManager(config_manager).login("a@b.c", "pw")

    SessionManager(config_manager).logout()

    assert SessionManager(config_manager).is_logged_in() is False


def test_logout_when_not_logged_in(config_manager):
    SessionManager(config_manager).logout()
    assert SessionManager(config_manager).is_logged_in() is False


def stored_nozbe_section(config_manager):
    with open(config_manager.get_config_path(), encoding="utf-8") as f:
        return json.load(f)["nozbe"]


def test_login_does_not_persist_env_overrides(config_manager, mock_get, response_factory, last_url,
                                              monkeypatch):
    monkeypatch.setenv("NOZBE_BASE_URL", "http://override.test/api")
    monkeypatch.setenv("NOZBE_HTTP_TIMEOUT", "42")
    mock_get.return_value = response_factory('{"key": "k42"}')

    session = SessionManager(config_manager)
    session.login("a@b.c", "pw")

    assert last_url(mock_get).startswith("http://override.test/api/login/")
    stored = stored_nozbe_section(config_manager)
    assert stored["base_url"] == "http://nozbe.test/api"
    assert stored["http_timeout"] == 5
    assert stored["email"] == "a@b.c"
    # the running session keeps the effective values
    assert session.app_config.nozbe.base_url == "http://override.test/api"
    assert session.create_client().get_api_key() == "k42"


def test_logout_does_not_persist_env_overrides(config_manager, mock_get, response_factory, monkeypatch):
    mock_get.return_value = response_factory('{"key": "k42"}')
    SessionManager(config_manager).login("a@b.c", "pw")

    monkeypatch.setenv("NOZBE_BASE_URL", "http://override.test/api")
    monkeypatch.setenv("NOZBE_API_KEY", "envkey")
    SessionManager(config_manager).logout()

    stored = stored_nozbe_section(config_manager)
    assert stored["base_url"] == "http://nozbe.test/api"
    assert stored["api_key"] == ""
    assert "envkey" not in Path(config_manager.get_config_path()).read_text(encoding="utf-8")
