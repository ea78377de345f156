"""Shared fixtures for the commitmeta tests"""

import json
from unittest.mock import MagicMock, patch

import pytest
from requests.structures import CaseInsensitiveDict

from commitmeta.fetching.http_client import HttpClientManager

NOW = 1700000000  # epoch seconds used by the clock fixture
NOW_MS = NOW * 1000


def build_response(status_code=200, body=None, headers=None, content=None, reason='OK'):
    """Create a mock requests.Response"""
    response = MagicMock()
    response.status_code = status_code
    response.headers = CaseInsensitiveDict(headers or {})
    if content is None:
        content = b'' if body is None else json.dumps(body).encode('utf-8')
    response.content = content
    response.reason = reason
    return response


@pytest.fixture
def make_response():
    return build_response


@pytest.fixture
def session():
    """Mock requests.Session; set session.get.return_value or side_effect"""
    return MagicMock()


@pytest.fixture
def http_client(session):
    return HttpClientManager(session=session, user_agent='commitmeta-test')


@pytest.fixture
def clock():
    """Freeze the scheduler clock at NOW; change clock.time.return_value to move it"""
    with patch('commitmeta.fetching.fetch_scheduler.time') as mock_time:
        mock_time.time.return_value = float(NOW)
        yield mock_time


@pytest.fixture
def now_ms(clock):
    """Frozen scheduler time in epoch ms"""
    return NOW_MS
