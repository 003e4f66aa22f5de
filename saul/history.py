"""saul history - bounded, rotating per-preset response log.

Entries live in <preset>/.history/ as 001.json, 002.json, ... with no gaps.
The highest number is the most recent response.
"""

import datetime
import json
import logging
import re
import shutil
from pathlib import Path

from saul import workspace
from saul.errors import HistoryNotFoundError, StorageError
from saul.store import Document, atomic_write, batch_rename

logger = logging.getLogger(__name__)

_ENTRY_RE = re.compile(r"^\d+\.json$")

ENTRY_FIELDS = ("timestamp", "method", "url", "status", "duration", "headers", "body")


def entry_file_name(number: int) -> str:
    return f"{number:03d}.json"


def _history_files(history_path: Path) -> list[Path]:
    """Entry files in chronological (numeric) order."""
    if not history_path.is_dir():
        return []
    files = [p for p in history_path.iterdir() if p.is_file() and _ENTRY_RE.match(p.name)]
    return sorted(files, key=lambda p: int(p.stem))


def entry_from_result(request: dict, result) -> dict:
    """Shape a request/response pair as a history entry."""
    return {
        "timestamp": _now(),
        "method": request.get("method", ""),
        "url": request.get("url", ""),
        "status": result.status_line,
        "duration": f"{int(result.elapsed_ms)}ms",
        "headers": dict(result.headers or {}),
        "body": result.body,
    }


def history_capacity(request_doc: Document, default: int = 0) -> int:
    """Entries to keep for a preset: request.history_count, else default."""
    value = request_doc.get("history_count")
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def store_response(preset: str, entry: dict, capacity: int) -> Path | None:
    """Append an entry, evicting the oldest ones beyond capacity.

    capacity <= 0 disables history (returns None without touching disk).
    """
    if capacity <= 0:
        return None

    history_path = workspace.history_dir(preset)
    try:
        history_path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise StorageError("create history for", preset, e) from e

    entry = {field: entry.get(field) for field in ENTRY_FIELDS}
    if not entry["timestamp"]:
        entry["timestamp"] = _now()

    files = _history_files(history_path)
    if len(files) >= capacity:
        evicted = files[: len(files) - capacity + 1]
        for old in evicted:
            try:
                old.unlink()
            except OSError as e:
                raise StorageError("evict history entry", old, e) from e
        files = files[len(evicted) :]
    # Close any gaps so the new entry never lands on an existing number.
    _renumber(history_path, files)
    next_number = len(files) + 1

    target = history_path / entry_file_name(next_number)
    try:
        atomic_write(target, json.dumps(entry, indent=2))
    except (OSError, TypeError) as e:
        raise StorageError("write", target, e) from e
    logger.debug("Stored response %s for '%s'", target.name, preset)
    return target


def _renumber(history_path: Path, remaining: list[Path]) -> None:
    operations = []
    for i, path in enumerate(remaining, start=1):
        new_path = history_path / entry_file_name(i)
        if path != new_path:
            operations.append((path, new_path))
    try:
        batch_rename(operations)
    except OSError as e:
        raise StorageError("renumber history in", history_path, e) from e


def list_responses(preset: str) -> list[dict]:
    """All entries, oldest first. Unreadable files are skipped with a warning."""
    responses = []
    for path in _history_files(workspace.history_dir(preset)):
        try:
            responses.append(json.loads(path.read_text()))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Skipping unreadable history file %s: %s", path, e)
    return responses


def count_responses(preset: str) -> int:
    return len(_history_files(workspace.history_dir(preset)))


def numbered_responses(preset: str) -> list[tuple[int, dict]]:
    """(N, entry) pairs, most recent first, with N as load_response counts it.

    Unreadable files are skipped but still hold their number.
    """
    files = _history_files(workspace.history_dir(preset))
    numbered = []
    for number, path in enumerate(reversed(files), start=1):
        try:
            numbered.append((number, json.loads(path.read_text())))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Skipping unreadable history file %s: %s", path, e)
    return numbered


def load_response(preset: str, number: int) -> dict:
    """Load entry number N counting back from the most recent (1 = latest)."""
    files = _history_files(workspace.history_dir(preset))
    if not files:
        raise HistoryNotFoundError(f"No history found for preset '{preset}'.")
    if number < 1 or number > len(files):
        raise HistoryNotFoundError(
            f"History response {number} not found (available: 1-{len(files)})."
        )
    path = files[len(files) - number]
    try:
        return json.loads(path.read_text())
    except OSError as e:
        raise StorageError("read", path, e) from e
    except json.JSONDecodeError as e:
        raise StorageError("parse", path, e) from e


def delete_history(preset: str) -> None:
    history_path = workspace.history_dir(preset)
    if not history_path.exists():
        return
    try:
        shutil.rmtree(history_path)
    except OSError as e:
        raise StorageError("delete history for", preset, e) from e


def _now() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat(timespec="seconds")
