"""Tests for the HTTP client manager and FetchResult"""

from unittest.mock import PropertyMock

import pytest
import requests

from commitmeta.fetching.exceptions import ParseError, TransportError
from commitmeta.fetching.http_client import FetchResult, HttpRequest


class TestHttpRequest:
    def test_url_with_port_and_scheme(self):
        request = HttpRequest('ci.example.com', '/job/x/api/json', port='8080', scheme='http')
        assert request.url == 'http://ci.example.com:8080/job/x/api/json'

    def test_url_defaults_to_https(self):
        assert HttpRequest('api.github.com', '/repos/a/b').url == 'https://api.github.com/repos/a/b'


class TestFetchResult:
    def test_json_parse_error(self):
        """Invalid JSON raises ParseError"""
        result = FetchResult('https://x', 200, content=b'not json')
        with pytest.raises(ParseError):
            result.json()

    def test_error_message_from_body(self):
        result = FetchResult('https://x', 404, content=b'{"message": "Not Found"}', reason='Not Found Reason')
        assert result.error_message() == 'Not Found'

    def test_error_message_falls_back_to_reason(self):
        result = FetchResult('https://x', 401, content=b'<html>', reason='Unauthorized')
        assert result.error_message() == 'Unauthorized'

    def test_headers_are_case_insensitive(self):
        result = FetchResult('https://x', 200, headers={'X-RateLimit-Remaining': '5'})
        assert result.headers['x-ratelimit-remaining'] == '5'

    def test_from_error(self):
        result = FetchResult.from_error('https://x', TransportError('boom', 'GitHub'))
        assert result.failed
        assert str(result.error) == '[GitHub] boom'


class TestHttpClientManager:
    """Test request handling and one-shot error resolution"""

    def test_get_success(self, session, http_client, make_response):
        """A response is turned into a FetchResult and the response is closed"""
        response = make_response(200, body={'ok': True}, headers={'Link': '<x>'})
        session.get.return_value = response

        result = http_client.get(HttpRequest('api.github.com', '/repos/a/b', {'Accept': 'json'}), 'GitHub')

        assert not result.failed
        assert result.status_code == 200
        assert result.json() == {'ok': True}
        response.close.assert_called_once()
        _, kwargs = session.get.call_args
        assert kwargs['headers'] == {'User-Agent': 'commitmeta-test', 'Accept': 'json'}
        assert kwargs['timeout'] == 15

    def test_connection_error(self, session, http_client):
        """A connection error resolves to a TransportError result"""
        session.get.side_effect = requests.exceptions.ConnectionError('refused')

        result = http_client.get_url('https://secure.gravatar.com/avatar/x', 'Gravatar')

        assert result.failed
        assert isinstance(result.error, TransportError)
        assert http_client.get_stats()['requests_failed'] == 1

    def test_error_while_reading_body_resolves_once(self, session, http_client, make_response, caplog):
        """An error after the status line yields exactly one error result"""
        response = make_response(200)
        type(response).content = PropertyMock(side_effect=requests.exceptions.ChunkedEncodingError('cut'))
        session.get.return_value = response

        with caplog.at_level('INFO'):
            result = http_client.get_url('https://api.github.com/x', 'GitHub')

        assert result.failed
        assert result.status_code == 0
        assert len([r for r in caplog.records if 'HTTPS Error' in r.getMessage()]) == 1
        response.close.assert_called_once()

    def test_stats(self, session, http_client, make_response):
        session.get.return_value = make_response(200)
        http_client.get_url('https://x', 'GitHub')
        session.get.side_effect = requests.exceptions.Timeout('slow')
        http_client.get_url('https://x', 'GitHub')

        stats = http_client.get_stats()
        assert stats['requests_made'] == 1
        assert stats['requests_failed'] == 1
        assert stats['success_rate'] == 50
