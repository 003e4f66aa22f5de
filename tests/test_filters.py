"""Scenario tests for response field extraction and output formatting."""

import pytest

from saul.errors import ValidationError
from saul.filters import (
    extract_response_field,
    extract_value,
    format_entry,
    format_history,
    format_output,
)
from tests.conftest import make_request_result

ENTRY = {
    "timestamp": "2026-10-18T10:00:00+00:00",
    "method": "GET",
    "url": "http://x/users",
    "status": "200 OK",
    "duration": "12ms",
    "headers": {"Content-Type": "application/json"},
    "body": {"data": [{"id": 1, "name": "A"}, {"id": 2, "name": "B"}], "token": "t"},
}


class TestExtractValue:
    def test_nested_key(self):
        assert extract_value({"a": {"b": 1}}, "a.b") == 1

    def test_case_insensitive(self):
        assert extract_value({"Token": "x"}, "token") == "x"

    def test_index_and_iteration(self):
        data = ENTRY["body"]
        assert extract_value(data, "data[0].name") == "A"
        assert extract_value(data, "data[-1].id") == 2
        assert extract_value(data, "data.1.id") == 2
        assert extract_value(data, "data[].id") == [1, 2]

    def test_missing(self):
        assert extract_value({"a": 1}, "b") is None
        assert extract_value({"a": [1]}, "a[5]") is None


class TestExtractResponseField:
    def test_top_level_fields(self):
        assert extract_response_field(ENTRY, "status") == "200 OK"
        assert extract_response_field(ENTRY, "URL") == "http://x/users"

    def test_path_below_field(self):
        assert extract_response_field(ENTRY, "body.token") == "t"
        assert extract_response_field(ENTRY, "headers[content-type]") == "application/json"

    def test_unknown_field(self):
        with pytest.raises(ValidationError, match="Unknown response field 'cookies'"):
            extract_response_field(ENTRY, "cookies")

    def test_missing_path(self):
        with pytest.raises(ValidationError, match="'body.nope' not found"):
            extract_response_field(ENTRY, "body.nope")


class TestFormatOutput:
    def test_default_format(self):
        result = make_request_result(body={"status": "ok"})
        output = format_output(result)
        assert output.splitlines()[:3] == ["STATUS: 200 OK", "TIME: 42ms", "BODY:"]
        assert '"status": "ok"' in output

    def test_verbose_adds_headers(self):
        result = make_request_result(body="x", headers={"X-Id": "1"})
        assert "HEADERS:\n  X-Id: 1" in format_output(result, verbose=True)
        assert "HEADERS" not in format_output(result)

    def test_raw_is_body_only(self):
        assert format_output(make_request_result(body="plain"), raw=True) == "plain"
        assert format_output(make_request_result(body=[1]), raw=True) == "[\n  1\n]"

    def test_empty_body_omitted(self):
        assert "BODY" not in format_output(make_request_result(body=""))

    def test_error(self):
        assert format_output(make_request_result(error="boom")) == "ERROR: boom"


class TestFormatHistory:
    def test_entry(self):
        text = format_entry(ENTRY)
        assert text.startswith("GET http://x/users\nSTATUS: 200 OK\nTIME: 12ms")
        assert '"token": "t"' in text

    def test_listing_keeps_given_numbers(self):
        older = dict(ENTRY, url="http://x/old")
        lines = format_history([(1, ENTRY), (3, older)]).splitlines()
        assert lines[0].lstrip().startswith("1 ")
        assert lines[0].endswith("http://x/users")
        assert lines[1].lstrip().startswith("3 ")
        assert lines[1].endswith("http://x/old")

    def test_empty(self):
        assert format_history([]) == "No history."
