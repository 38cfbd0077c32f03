import logging
import sys
from pathlib import Path
from unittest.mock import patch

import pytest
import requests

# Add the src directory to the Python path
src_root = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_root))

from nozbe_client.data.nozbe_client import NozbeClient  # noqa: E402

BASE_URL = "http://nozbe.test/api"
API_KEY = "abc123"


def make_response(body: str, status_code: int = 200, url: str = BASE_URL) -> requests.Response:
    """Build a real requests.Response carrying the given body."""
    response = requests.Response()
    response.status_code = status_code
    response.reason = "OK" if status_code < 400 else "Error"
    response._content = body.encode("utf-8")
    response.encoding = "utf-8"
    response.url = url
    return response


@pytest.fixture
def client():
    """Client pointed at a fake endpoint with an API key already set."""
    nozbe = NozbeClient({"base_url": BASE_URL})
    nozbe.set_api_key(API_KEY)
    return nozbe


@pytest.fixture
def mock_get():
    """Patch requests.get as used by the client module."""
    with patch("nozbe_client.data.nozbe_client.requests.get") as mocked:
        mocked.return_value = make_response("[]")
        yield mocked


@pytest.fixture
def sample_actions_body():
    """Raw actions payload as returned by the server."""
    return (
        '[{"id": "1", "name": "Buy milk", "project_id": "10", "context_id": "20",'
        ' "done_time": "0", "next": "next"},'
        ' {"id": "2", "name": "Call mom", "project_id": "10", "context_id": "21",'
        ' "done_time": "2011-05-06 00:00:00", "next": ""}]'
    )


@pytest.fixture(autouse=True)
def reset_app_logger():
    """Drop handlers installed by initialize_logging between tests."""
    yield
    app_logger = logging.getLogger("nozbe_client")
    for handler in list(app_logger.handlers):
        handler.close()
        app_logger.removeHandler(handler)


def requested_url(mocked) -> str:
    """URL passed to the most recent requests.get call."""
    args, kwargs = mocked.call_args
    return args[0] if args else kwargs["url"]


@pytest.fixture
def response_factory():
    return make_response


@pytest.fixture
def last_url():
    return requested_url
