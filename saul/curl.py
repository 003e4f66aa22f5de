"""saul curl - convert presets to and from curl command lines.

Placeholders are exported as they are ({@token}, {?name}), so an exported
command documents the preset rather than one resolved call.
"""

import shlex
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from saul import workspace
from saul.errors import MissingURLError, RequestBuildError, ValidationError
from saul.executor import DEFAULT_METHOD, validate_request_field
from saul.store import Document, stringify
from saul.variables import detect_variable


def parse_curl(curl_command: str) -> dict:
    """Parse a curl command string into components.

    Returns: {"method": ..., "url": ..., "base_url": ..., "headers": {...},
              "query": {...}, "body": ...}
    Handles: -X, -H, -d, --data, --data-raw, --json, -G/--get with
    --data-urlencode, quoted strings, escaped newlines. Query parameters in
    the URL are split out into "query".
    """
    result: dict[str, Any] = {
        "method": DEFAULT_METHOD,
        "url": "",
        "base_url": "",
        "headers": {},
        "query": {},
        "body": None,
    }

    # Normalize line continuations
    cmd = curl_command.replace("\\\r\n", " ").replace("\\\n", " ").strip()

    try:
        tokens = shlex.split(cmd)
    except ValueError as e:
        raise ValidationError(f"Failed to parse curl command: {e}") from None

    if not tokens or tokens[0] != "curl":
        raise ValidationError("Command must start with 'curl'.")
    tokens = tokens[1:]

    explicit_method = False
    get_mode = False
    url_encoded: list[str] = []

    i = 0
    while i < len(tokens):
        tok = tokens[i]
        has_value = i + 1 < len(tokens)

        if tok in ("-X", "--request") and has_value:
            result["method"] = tokens[i + 1].upper()
            explicit_method = True
            i += 2
        elif tok in ("-H", "--header") and has_value:
            header = tokens[i + 1]
            colon = header.find(":")
            if colon != -1:
                key = header[:colon].strip()
                val = header[colon + 1 :].strip()
                result["headers"][key] = val
            i += 2
        elif tok in ("-d", "--data", "--data-raw", "--data-binary") and has_value:
            result["body"] = tokens[i + 1]
            i += 2
        elif tok == "--data-urlencode" and has_value:
            url_encoded.append(tokens[i + 1])
            i += 2
        elif tok == "--json" and has_value:
            result["body"] = tokens[i + 1]
            result["headers"].setdefault("Content-Type", "application/json")
            result["headers"].setdefault("Accept", "application/json")
            i += 2
        elif tok in ("-G", "--get"):
            get_mode = True
            i += 1
        elif tok.startswith("-"):
            # Skip unknown flags; consume next token if it looks like a value
            if has_value and not tokens[i + 1].startswith("-"):
                i += 2
            else:
                i += 1
        else:
            # Positional argument = URL
            if not result["url"]:
                result["url"] = tok
            i += 1

    if not result["url"]:
        raise ValidationError("No URL found in curl command.")

    parts = urlsplit(result["url"])
    result["base_url"] = urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))
    for key, value in parse_qsl(parts.query, keep_blank_values=True):
        result["query"].setdefault(key, value)

    # --data-urlencode pairs are stored as query parameters, with or without -G.
    for pair in url_encoded:
        key, _, value = pair.partition("=")
        result["query"][key] = value

    if not explicit_method and not get_mode and result["body"] is not None:
        result["method"] = "POST"

    return result


def import_curl(preset: str, curl_command: str) -> dict:
    """Write the request, headers, query and body documents of a preset
    from a curl command. Headers and query merge into existing documents;
    the body replaces the existing one.
    """
    parsed = parse_curl(curl_command)

    # Nothing is written unless the whole command is acceptable.
    for field, value in (("url", parsed["base_url"]), ("method", parsed["method"])):
        if detect_variable(value) is None:
            validate_request_field(field, value)

    body_doc = None
    if parsed["body"]:
        try:
            body_doc = Document.from_json(parsed["body"], kind="body")
        except ValidationError as e:
            raise ValidationError(f"Curl body is not a JSON object: {e}") from None

    workspace.create_preset(preset)

    if body_doc is not None:
        workspace.save_document(preset, "body", body_doc)

    for kind in ("headers", "query"):
        if parsed[kind]:
            doc = workspace.load_document(preset, kind)
            for key, value in parsed[kind].items():
                doc.data[key] = value
            workspace.save_document(preset, kind, doc)

    request_doc = workspace.load_document(preset, "request")
    request_doc.set("method", parsed["method"])
    request_doc.set("url", parsed["base_url"])
    workspace.save_document(preset, "request", request_doc)
    return parsed


def export_curl(preset: str) -> str:
    """Render a preset as a multi-line curl command."""
    request_doc = workspace.load_document(preset, "request")
    headers_doc = workspace.load_document(preset, "headers")
    query_doc = workspace.load_document(preset, "query")
    body_doc = workspace.load_document(preset, "body")

    method = request_doc.get_str("method").upper() or DEFAULT_METHOD
    url = request_doc.get_str("url")
    if not url:
        raise MissingURLError()

    parts = ["curl"]
    if method != DEFAULT_METHOD:
        parts.append(f"-X {method}")

    query = [(key, stringify(value)) for key, value in query_doc.data.items()]
    if query and method == DEFAULT_METHOD:
        parts.append("-G")
        for key, value in query:
            parts.append(f"--data-urlencode {shlex.quote(f'{key}={value}')}")
    elif query:
        url += ("&" if "?" in url else "?") + urlencode(query)

    parts.append(shlex.quote(url))

    for key, value in headers_doc.data.items():
        parts.append(f"-H {shlex.quote(f'{key}: {stringify(value)}')}")

    if body_doc.keys():
        try:
            body = body_doc.to_json()
        except (TypeError, ValueError) as e:
            raise RequestBuildError(f"Failed to convert body to JSON: {e}") from e
        parts.append(f"-d {shlex.quote(body)}")

    return _multiline(parts)


def _multiline(parts: list[str]) -> str:
    if len(parts) == 1:
        return parts[0]
    lines = [parts[0] + " \\"]
    lines.extend(f"  {part} \\" for part in parts[1:-1])
    lines.append(f"  {parts[-1]}")
    return "\n".join(lines)
