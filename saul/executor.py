"""saul executor - request assembly, field validation and HTTP execution."""

import json
import time
from typing import Any

import requests

from saul.errors import MissingURLError, RequestBuildError, ValidationError
from saul.store import Document, stringify

DEFAULT_METHOD = "GET"
DEFAULT_TIMEOUT = 30
MAX_HISTORY_COUNT = 100

HTTP_METHODS = (
    "GET",
    "POST",
    "PUT",
    "DELETE",
    "PATCH",
    "HEAD",
    "OPTIONS",
    "TRACE",
    "CONNECT",
)

# Short names accepted by `set request history=N`.
REQUEST_KEY_ALIASES = {"history": "history_count"}


class RequestResult:
    """Result of an HTTP request."""

    def __init__(self):
        self.status_code: int = 0
        self.reason: str = ""
        self.headers: dict[str, str] = {}
        self.body: Any = None  # parsed JSON or raw text
        self.elapsed_ms: float = 0
        self.error: str | None = None
        self.raw_text: str = ""

    @property
    def status_line(self) -> str:
        return f"{self.status_code} {self.reason}".strip()


# ── Validation ───────────────────────────────────────────────────────────


def validate_request_field(key: str, value: str) -> None:
    """Reject bad method/url/timeout/history values before they are written."""
    key = key.lower()
    if key == "method":
        if value.upper() not in HTTP_METHODS:
            raise ValidationError(
                f"Invalid HTTP method '{value.upper()}'. Use one of: {', '.join(HTTP_METHODS)}"
            )
    elif key == "url":
        if not value:
            raise ValidationError("URL cannot be empty.")
        if not value.startswith(("http://", "https://")):
            raise ValidationError("URL must start with 'http://' or 'https://'.")
    elif key == "timeout":
        _parse_count(value, "timeout")
    elif key in ("history", "history_count"):
        count = _parse_count(value, "history count")
        if count > MAX_HISTORY_COUNT:
            raise ValidationError(
                f"History count cannot exceed {MAX_HISTORY_COUNT}: {count}"
            )


def _parse_count(value: str, what: str) -> int:
    try:
        number = int(str(value).strip())
    except ValueError:
        raise ValidationError(f"Invalid {what} '{value}' (must be a whole number).") from None
    if number < 0:
        raise ValidationError(f"{what.capitalize()} cannot be negative: {number}")
    return number


def parse_timeout(value: Any, default: int = DEFAULT_TIMEOUT) -> int:
    """Timeout in seconds from a stored value; unset or unparsable gives default."""
    if isinstance(value, bool) or value is None:
        return default
    try:
        timeout = int(str(value).strip())
    except ValueError:
        return default
    return timeout if timeout > 0 else default


# ── Assembly ─────────────────────────────────────────────────────────────


def build_request(
    request_doc: Document,
    headers_doc: Document,
    body_doc: Document,
    query_doc: Document,
    default_timeout: int = DEFAULT_TIMEOUT,
) -> dict:
    """Build one request from the four documents. Each field has one source.

    Returns: {
        "method": ..., "url": ..., "timeout": ...,
        "headers": {...}, "query": {...}, "body": str | None,
    }
    """
    method = request_doc.get_str("method").upper() or DEFAULT_METHOD

    url = request_doc.get_str("url")
    if not url:
        raise MissingURLError()

    timeout = parse_timeout(request_doc.get("timeout"), default_timeout)

    # Names are taken as stored, so "filter.name" stays one parameter.
    headers = _string_pairs(headers_doc)
    query = _string_pairs(query_doc)

    body = None
    if body_doc.keys():
        try:
            body = body_doc.to_json()
        except (TypeError, ValueError) as e:
            raise RequestBuildError(f"Failed to convert body to JSON: {e}") from e
        if not any(k.lower() == "content-type" for k in headers):
            headers["Content-Type"] = "application/json"

    return {
        "method": method,
        "url": url,
        "timeout": timeout,
        "headers": headers,
        "query": query,
        "body": body,
    }


def _string_pairs(document: Document) -> dict[str, str]:
    pairs = {}
    for key, value in document.data.items():
        text = stringify(value)
        if text:
            pairs[key] = text
    return pairs


# ── Execution ────────────────────────────────────────────────────────────


def execute_request(
    method: str,
    url: str,
    headers: dict[str, str] | None = None,
    query: dict[str, str] | None = None,
    body: str | None = None,
    timeout: int = DEFAULT_TIMEOUT,
) -> RequestResult:
    """Execute an HTTP request and return structured result.

    - Attempts to parse response as JSON
    - Falls back to raw text
    - Captures timing
    - Never raises - transport failures set the error field
    """
    result = RequestResult()

    try:
        start = time.monotonic()
        resp = requests.request(
            method=method.upper(),
            url=url,
            headers=headers,
            params=query or None,
            data=body.encode("utf-8") if body else None,
            timeout=timeout,
            allow_redirects=True,
        )
        result.elapsed_ms = (time.monotonic() - start) * 1000

        result.status_code = resp.status_code
        result.reason = resp.reason or ""
        result.headers = dict(resp.headers)
        result.raw_text = resp.text

        try:
            result.body = resp.json()
        except (json.JSONDecodeError, ValueError):
            result.body = resp.text

    except requests.exceptions.Timeout:
        result.error = f"Request timed out after {timeout}s"
    except requests.exceptions.ConnectionError as e:
        result.error = f"Connection error: {e}"
    except requests.exceptions.RequestException as e:
        result.error = f"Request failed: {e}"

    return result
