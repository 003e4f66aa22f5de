"""Scenario tests for request assembly, field validation and execution."""

import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from saul.errors import MissingURLError, ValidationError
from saul.executor import build_request, execute_request, parse_timeout, validate_request_field
from saul.store import Document


def _build(request=None, headers=None, body=None, query=None, **kwargs):
    return build_request(
        Document(request or {}, kind="request"),
        Document(headers or {}, kind="headers"),
        Document(body or {}, kind="body"),
        Document(query or {}, kind="query"),
        **kwargs,
    )


# ── Assembly ──────────────────────────────────────────────────────────────


class TestBuildRequest:
    def test_minimal_get(self):
        req = _build({"url": "http://x/api"})
        assert req == {
            "method": "GET",
            "url": "http://x/api",
            "timeout": 30,
            "headers": {},
            "query": {},
            "body": None,
        }

    def test_method_uppercased(self):
        assert _build({"url": "http://x", "method": "post"})["method"] == "POST"

    @pytest.mark.parametrize(
        "headers, query, body",
        [
            ({}, {}, {}),
            ({"A": "b"}, {"q": "1"}, {"k": "v"}),
        ],
    )
    def test_missing_url_always_fails(self, headers, query, body):
        with pytest.raises(MissingURLError):
            _build({"method": "GET"}, headers, body, query)

    def test_empty_url_fails(self):
        with pytest.raises(MissingURLError):
            _build({"url": ""})

    def test_timeout_parsing(self):
        assert _build({"url": "http://x", "timeout": "5"})["timeout"] == 5
        assert _build({"url": "http://x", "timeout": "soon"})["timeout"] == 30
        assert _build({"url": "http://x"}, default_timeout=12)["timeout"] == 12

    def test_empty_header_and_query_values_dropped(self):
        req = _build(
            {"url": "http://x"},
            headers={"A": "1", "B": ""},
            query={"page": "2", "q": "", "tags": ["a", "b"], "on": True},
        )
        assert req["headers"] == {"A": "1"}
        assert req["query"] == {"page": "2", "tags": "a,b", "on": "true"}

    def test_dotted_names_sent_as_stored(self):
        req = _build(
            {"url": "http://x"},
            headers={"X-Api.Version": "2"},
            query={"filter.name": "bob", "page": "2"},
        )
        assert req["headers"] == {"X-Api.Version": "2"}
        assert req["query"] == {"filter.name": "bob", "page": "2"}

    def test_body_serialized_with_content_type(self):
        req = _build({"url": "http://x"}, body={"user": {"name": "a", "active": True}})
        assert json.loads(req["body"]) == {"user": {"name": "a", "active": True}}
        assert req["headers"]["Content-Type"] == "application/json"

    def test_explicit_content_type_kept(self):
        req = _build(
            {"url": "http://x"},
            headers={"content-type": "application/vnd.api+json"},
            body={"a": "b"},
        )
        assert req["headers"] == {"content-type": "application/vnd.api+json"}

    def test_no_body_no_content_type(self):
        assert "Content-Type" not in _build({"url": "http://x"})["headers"]


# ── Write-time validation ─────────────────────────────────────────────────


class TestValidateRequestField:
    @pytest.mark.parametrize("method", ["get", "POST", "Patch", "options", "CONNECT"])
    def test_valid_methods(self, method):
        validate_request_field("method", method)

    @pytest.mark.parametrize("method", ["FETCH", "fetch"])
    def test_invalid_method(self, method):
        with pytest.raises(ValidationError, match="Invalid HTTP method 'FETCH'"):
            validate_request_field("method", method)

    @pytest.mark.parametrize("url", ["", "ftp://x", "example.com"])
    def test_invalid_urls(self, url):
        with pytest.raises(ValidationError):
            validate_request_field("url", url)

    def test_valid_url(self):
        validate_request_field("url", "https://example.com")

    @pytest.mark.parametrize("value", ["abc", "-1", "1.5"])
    def test_invalid_timeout(self, value):
        with pytest.raises(ValidationError):
            validate_request_field("timeout", value)

    def test_history_cap(self):
        validate_request_field("history", "100")
        with pytest.raises(ValidationError, match="cannot exceed 100"):
            validate_request_field("history_count", "101")

    def test_other_keys_unchecked(self):
        validate_request_field("anything", "")

    def test_parse_timeout(self):
        assert parse_timeout(None) == 30
        assert parse_timeout("0", 9) == 9
        assert parse_timeout(" 15 ") == 15


# ── Execution ─────────────────────────────────────────────────────────────


def _response(status=200, reason="OK", json_body=None, text="", headers=None):
    resp = MagicMock()
    resp.status_code = status
    resp.reason = reason
    resp.headers = headers or {"Content-Type": "application/json"}
    if json_body is not None:
        resp.text = json.dumps(json_body)
        resp.json.return_value = json_body
    else:
        resp.text = text
        resp.json.side_effect = ValueError("not json")
    return resp


class TestExecuteRequest:
    @patch("saul.executor.requests.request")
    def test_json_response(self, mock_request):
        mock_request.return_value = _response(json_body={"id": 1})
        result = execute_request("get", "http://x", query={"a": "1"}, body='{"k": 1}')
        assert result.error is None
        assert result.status_line == "200 OK"
        assert result.body == {"id": 1}
        _, kwargs = mock_request.call_args
        assert kwargs["method"] == "GET"
        assert kwargs["params"] == {"a": "1"}
        assert kwargs["data"] == b'{"k": 1}'

    @patch("saul.executor.requests.request")
    def test_text_response(self, mock_request):
        mock_request.return_value = _response(status=404, reason="Not Found", text="nope")
        result = execute_request("GET", "http://x")
        assert result.status_code == 404
        assert result.body == "nope"
        _, kwargs = mock_request.call_args
        assert kwargs["params"] is None
        assert kwargs["data"] is None

    @patch("saul.executor.requests.request")
    def test_timeout_sets_error(self, mock_request):
        mock_request.side_effect = requests.exceptions.Timeout()
        result = execute_request("GET", "http://x", timeout=3)
        assert result.error == "Request timed out after 3s"

    @patch("saul.executor.requests.request")
    def test_connection_error_sets_error(self, mock_request):
        mock_request.side_effect = requests.exceptions.ConnectionError("refused")
        result = execute_request("GET", "http://x")
        assert result.error.startswith("Connection error")
