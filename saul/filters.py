"""saul filters - response field extraction and plain-text output."""

from __future__ import annotations

import json
import re
from typing import Any

from saul.errors import ValidationError

# Fields every history entry carries, addressable by `get response [N] <field>`.
RESPONSE_FIELDS = ("body", "headers", "status", "url", "method", "duration", "timestamp")

# ---------------------------------------------------------------------------
# Segment types returned by _parse_path_segments:
#   str   → dict key  (case-insensitive lookup)
#   int   → list index (supports negative)
#   None  → every element of a list
# ---------------------------------------------------------------------------

_INT_RE = re.compile(r"^-?\d+$")
_PART_RE = re.compile(r"^([^\[]*)((?:\[[^\]]*\])+)$")


def _parse_path_segments(path: str) -> list[Any]:
    """Parse a field path into typed segments.

      token                  → key
      data.token             → key, key
      items[].id             → key, iter, key
      items[0].id            → key, 0, key
      headers[Content-Type]  → key, key
      items.2                → key, 2
    """
    segments: list = []
    for part in path.strip().split("."):
        part = part.strip()
        if not part:
            continue
        m = _PART_RE.match(part)
        if m:
            if m.group(1).strip():
                segments.append(m.group(1).strip())
            for bracket in re.findall(r"\[([^\]]*)\]", m.group(2)):
                bracket = bracket.strip()
                if not bracket:
                    segments.append(None)
                elif _INT_RE.match(bracket):
                    segments.append(int(bracket))
                else:
                    segments.append(bracket)
        elif _INT_RE.match(part):
            segments.append(int(part))
        else:
            segments.append(part)
    return segments


def _ci_get(d: dict[str, Any], key: str) -> tuple[str | None, Any]:
    """Case-insensitive dict lookup.  Returns (actual_key, value)."""
    if key in d:
        return key, d[key]
    lower = key.lower()
    for k, v in d.items():
        if k.lower() == lower:
            return k, v
    return None, None


def _walk(data: Any, segments: list[Any]) -> tuple[bool, Any]:
    current = data
    for i, seg in enumerate(segments):
        if seg is None:
            if not isinstance(current, list):
                return False, None
            rest = segments[i + 1 :]
            values = []
            for item in current:
                ok, value = _walk(item, rest)
                if ok:
                    values.append(value)
            return True, values
        if isinstance(seg, str):
            if not isinstance(current, dict):
                return False, None
            actual, current = _ci_get(current, seg)
            if actual is None:
                return False, None
        else:
            if not isinstance(current, list):
                return False, None
            try:
                current = current[seg]
            except IndexError:
                return False, None
    return True, current


def extract_value(data: Any, path: str) -> Any:
    """Extract the value at path from data, or None when it is absent."""
    found, value = _walk(data, _parse_path_segments(path))
    return value if found else None


def extract_response_field(entry: dict, path: str) -> Any:
    """Extract a field (or a path below one) from a history entry.

    "status", "body", "body.token" and "headers.Content-Type" are all valid;
    the first segment must name one of RESPONSE_FIELDS.
    """
    segments = _parse_path_segments(path)
    if not segments or not isinstance(segments[0], str):
        raise ValidationError(f"Invalid response field '{path}'.")
    field = segments[0].lower()
    if field not in RESPONSE_FIELDS:
        raise ValidationError(
            f"Unknown response field '{segments[0]}'. Use one of: {', '.join(RESPONSE_FIELDS)}"
        )
    found, value = _walk(entry.get(field), segments[1:])
    if not found:
        raise ValidationError(f"Response field '{path}' not found.")
    return value


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


def render_value(value: Any) -> str:
    """Plain-text form of a single value: JSON for containers, str otherwise."""
    if isinstance(value, dict | list):
        return json.dumps(value, indent=2)
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def format_output(result, verbose: bool = False, raw: bool = False) -> str:
    """Format a RequestResult for the terminal.

    Default output:
        STATUS: 200 OK
        TIME: 45ms
        BODY:
        {...}
    verbose adds response headers, raw prints only the body.
    """
    if result.error:
        return f"ERROR: {result.error}"

    if raw:
        return render_value(result.body)

    lines = [f"STATUS: {result.status_line}", f"TIME: {int(result.elapsed_ms)}ms"]

    if verbose and result.headers:
        lines.append("HEADERS:")
        for key, value in result.headers.items():
            lines.append(f"  {key}: {value}")

    if result.body is not None and result.body != "":
        lines.append("BODY:")
        lines.append(render_value(result.body))

    return "\n".join(lines)


def format_entry(entry: dict, raw: bool = False) -> str:
    """Format a stored history entry the same way as a live response."""
    if raw:
        return render_value(entry.get("body"))
    lines = [
        f"{entry.get('method', '')} {entry.get('url', '')}",
        f"STATUS: {entry.get('status', '')}",
        f"TIME: {entry.get('duration', '')}",
        f"DATE: {entry.get('timestamp', '')}",
    ]
    body = entry.get("body")
    if body is not None and body != "":
        lines.append("BODY:")
        lines.append(render_value(body))
    return "\n".join(lines)


def format_history(numbered: list[tuple[int, dict]]) -> str:
    """One line per (N, entry) pair, in the order given."""
    if not numbered:
        return "No history."
    lines = []
    for number, entry in numbered:
        lines.append(
            f"{number:>3}  {entry.get('timestamp', ''):<25}  "
            f"{entry.get('method', ''):<7} {entry.get('status', ''):<20} "
            f"{entry.get('duration', ''):>8}  {entry.get('url', '')}"
        )
    return "\n".join(lines)
