"""
Pytest configuration and shared fixtures for Keen driver tests.

Provides:
- Mock transport (session.send) fixtures
- Response factory
- Test data
- Configuration
"""

import pytest
from unittest.mock import MagicMock
from typing import Dict, Any

import requests


READ_KEY = "test_read_key_12345"
WRITE_KEY = "test_write_key_67890"
PROJECT_ID = "test_project"


def _build_response(status_code: int = 200, body: str = "") -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    response._content = body.encode("utf-8")
    response.encoding = "utf-8"
    return response


@pytest.fixture
def mock_env_vars(monkeypatch):
    """Set up mock environment variables."""
    monkeypatch.setenv("KEEN_PROJECT_ID", PROJECT_ID)
    monkeypatch.setenv("KEEN_READ_KEY", READ_KEY)
    monkeypatch.setenv("KEEN_WRITE_KEY", WRITE_KEY)
    monkeypatch.delenv("KEEN_API_URL", raising=False)
    monkeypatch.delenv("KEEN_TIMEOUT", raising=False)
    monkeypatch.setenv("KEEN_DEBUG", "false")


@pytest.fixture
def make_response():
    """Factory for real requests.Response objects with a given status and body."""
    return _build_response


@pytest.fixture
def mock_send():
    """Mock transport: replaces Session.send, answers 201 by default."""
    return MagicMock(return_value=_build_response(201, '{"created": true}'))


@pytest.fixture
def keen_client(mock_send):
    """Create a test Keen driver whose session never touches the network."""
    from keen_driver import KeenDriver

    client = KeenDriver(
        api_key=READ_KEY,
        write_key=WRITE_KEY,
        project_id=PROJECT_ID,
    )
    client.session.send = mock_send
    return client


@pytest.fixture
def sent_request(mock_send):
    """Return the PreparedRequest passed to the most recent send() call."""
    def _sent_request() -> requests.PreparedRequest:
        assert mock_send.called, "no request was sent"
        return mock_send.call_args[0][0]
    return _sent_request


@pytest.fixture
def sample_event() -> Dict[str, Any]:
    """Create a sample purchase event."""
    return {
        "item": "golden gadget",
        "price": 25.50,
        "customer": {"id": "u1", "name": "Ada"},
        "keen": {"timestamp": "2021-03-04T15:00:00.000Z"},
    }


@pytest.fixture
def sample_batch() -> Dict[str, Any]:
    """Create a sample multi-collection batch."""
    return {
        "signups": [
            {"username": "ada", "referred_by": "grace"},
            {"username": "grace", "referred_by": None},
        ],
        "purchases": [
            {"item": "widget", "price": 10},
        ],
    }


@pytest.fixture
def mock_count_response() -> str:
    """Mock body of a plain count analysis."""
    return '{"result": 42}'


@pytest.fixture
def mock_list_response() -> str:
    """Mock body of a list-shaped analysis result."""
    return '{"result": [{"result": 42.5, "userId": "u1"}]}'


@pytest.fixture
def mock_grouped_response() -> str:
    """Mock body of a grouped analysis result."""
    return (
        '{"result": ['
        '{"page": "/home", "result": 12}, '
        '{"page": "/pricing", "result": 30}, '
        '{"page": "/docs", "result": 7}'
        ']}'
    )
