"""saul store - TOML documents with dotted-path access and atomic writes."""

import contextlib
import copy
import json
import logging
import os
import tempfile
import tomllib
from pathlib import Path
from typing import Any

import tomli_w

from saul.errors import KeyNotFoundError, StorageError, ValidationError

logger = logging.getLogger(__name__)

FILE_PERMISSIONS = 0o644

# Spellings accepted as booleans (the strconv.ParseBool word forms).
_TRUE_WORDS = {"true", "True", "TRUE"}
_FALSE_WORDS = {"false", "False", "FALSE"}


def infer_value(text: str) -> str | bool | list[str]:
    """Turn caller-supplied text into a typed document value.

    [a, b, "c"]  -> ["a", "b", "c"]   (bracket notation only, [] is empty)
    true / false -> bool
    anything else stays a string; commas alone never make an array.
    """
    if not isinstance(text, str):
        return text
    if text.startswith("[") and text.endswith("]"):
        content = text[1:-1].strip()
        if not content:
            return []
        items = []
        for part in content.split(","):
            item = part.strip()
            if len(item) >= 2 and item[0] == '"' and item[-1] == '"':
                item = item[1:-1]
            items.append(item)
        return items
    if text in _TRUE_WORDS:
        return True
    if text in _FALSE_WORDS:
        return False
    return text


def stringify(value: Any) -> str:
    """Render a document value as the plain string sent over the wire."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list):
        return ",".join(stringify(v) for v in value)
    if isinstance(value, dict):
        return json.dumps(value)
    return str(value)


def split_key(key: str) -> list[str]:
    """Split a dotted path, rejecting empty segments like 'a..b'."""
    parts = key.split(".")
    if not key or any(not p for p in parts):
        raise ValidationError(f"Invalid key '{key}'.")
    return parts


def atomic_write(path: str | Path, data: str | bytes) -> None:
    """Write data via a temp file in the same directory, then rename over path.

    A reader sees either the old file (or nothing) or the complete new one.
    """
    path = Path(path)
    if isinstance(data, str):
        data = data.encode("utf-8")
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=".saul_", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp, FILE_PERMISSIONS)
        os.replace(tmp, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp)
        raise


def batch_rename(operations: list[tuple[Path, Path]]) -> None:
    """Rename every (old, new) pair, or none of them.

    On the first failure the renames already done are reversed, newest first,
    and the original error is re-raised.
    """
    completed: list[tuple[Path, Path]] = []
    for old, new in operations:
        try:
            os.rename(old, new)
        except OSError:
            for done_old, done_new in reversed(completed):
                try:
                    os.rename(done_new, done_old)
                except OSError as e:
                    logger.error("Rollback of %s -> %s failed: %s", done_new, done_old, e)
            raise
        completed.append((old, new))


class Document:
    """One TOML config document addressed by dotted keys.

    A document loaded from a missing file is empty but still bound to its
    path, so the first write() is what creates the file.
    """

    def __init__(
        self,
        data: dict | None = None,
        path: str | Path | None = None,
        kind: str | None = None,
    ):
        self.data: dict[str, Any] = data if data is not None else {}
        self.path: Path | None = Path(path) if path is not None else None
        self.kind = kind

    # ── Construction ─────────────────────────────────────────────────────

    @classmethod
    def load(cls, path: str | Path, kind: str | None = None) -> "Document":
        path = Path(path)
        if not path.exists():
            return cls(path=path, kind=kind)
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise StorageError("parse", path, e) from e
        except OSError as e:
            raise StorageError("read", path, e) from e
        return cls(data, path, kind)

    @classmethod
    def from_dict(cls, data: dict, path=None, kind=None) -> "Document":
        return cls(copy.deepcopy(data), path, kind)

    @classmethod
    def from_json(cls, text: str | bytes, path=None, kind=None) -> "Document":
        """Build a document from a JSON object. null values are dropped."""
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ValidationError("JSON document must be an object.")
        return cls(_drop_nulls(data), path, kind)

    # ── Access ───────────────────────────────────────────────────────────

    def get(self, key: str) -> Any:
        current: Any = self.data
        for part in split_key(key):
            if not isinstance(current, dict) or part not in current:
                return None
            current = current[part]
        return current

    def get_str(self, key: str) -> str:
        return stringify(self.get(key))

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def set(self, key: str, value: Any) -> None:
        """Set a value, creating intermediate tables.

        A scalar standing where a table is needed is replaced by the table.
        """
        parts = split_key(key)
        current = self.data
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]
        current[parts[-1]] = value

    def delete(self, key: str) -> None:
        parts = split_key(key)
        parent = self.get(".".join(parts[:-1])) if len(parts) > 1 else self.data
        if not isinstance(parent, dict) or parts[-1] not in parent:
            raise KeyNotFoundError(key, self.kind or "document")
        del parent[parts[-1]]

    def keys(self) -> list[str]:
        return list(self.data.keys())

    def __len__(self) -> int:
        return len(self.data)

    def merge(self, other: "Document") -> None:
        """Deep-merge other into this document.

        Tables merge key by key; everything else (arrays included) is
        replaced wholesale by other's value.
        """
        _deep_merge(self.data, other.data)

    # ── Serialization ────────────────────────────────────────────────────

    def to_dict(self) -> dict:
        return copy.deepcopy(self.data)

    def to_json(self, indent: int | None = None) -> str:
        return json.dumps(self.data, indent=indent)

    def to_toml(self) -> str:
        return tomli_w.dumps(self.data)

    def write(self, path: str | Path | None = None) -> Path:
        """Persist atomically to path (or the bound path). Returns the target."""
        target = Path(path) if path is not None else self.path
        if target is None:
            raise StorageError("write", self.kind or "document", "no file path bound")
        try:
            content = self.to_toml()
        except TypeError as e:
            raise StorageError("serialize", target, e) from e
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            atomic_write(target, content)
        except OSError as e:
            raise StorageError("write", target, e) from e
        self.path = target
        return target


def _deep_merge(base: dict, override: dict) -> None:
    """Deep merge override into base (mutates base)."""
    for k, v in override.items():
        if isinstance(base.get(k), dict) and isinstance(v, dict):
            _deep_merge(base[k], v)
        else:
            base[k] = copy.deepcopy(v)


def _drop_nulls(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {k: _drop_nulls(v) for k, v in obj.items() if v is not None}
    if isinstance(obj, list):
        return [_drop_nulls(v) for v in obj if v is not None]
    return obj
