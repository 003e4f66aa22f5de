"""saul session - the current preset of one terminal.

Each terminal keeps its own current preset in <config-root>/.session_<tty>,
so `saul set ...` can omit the preset name after `saul api`. The session is
loaded once per invocation and written back only when it changed.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

from saul.errors import StorageError
from saul.store import atomic_write
from saul.workspace import config_dir


def tty_id(env: dict[str, str] | None = None) -> str:
    """Filename-safe terminal identifier from $TTY, or 'default'."""
    env = os.environ if env is None else env
    tty = env.get("TTY", "")
    if not tty:
        return "default"
    return Path(tty).name.replace("/", "_") or "default"


@dataclass
class Session:
    tty: str
    path: Path
    current_preset: str = ""
    _saved_preset: str = field(default="", repr=False)

    @classmethod
    def load(cls, tty: str | None = None) -> "Session":
        tty = tty or tty_id()
        path = config_dir() / f".session_{tty}"
        try:
            preset = path.read_text().strip()
        except OSError:
            preset = ""
        return cls(tty=tty, path=path, current_preset=preset, _saved_preset=preset)

    @property
    def changed(self) -> bool:
        return self.current_preset != self._saved_preset

    def save_if_changed(self) -> bool:
        if not self.changed:
            return False
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            atomic_write(self.path, self.current_preset)
        except OSError as e:
            raise StorageError("save session", self.path, e) from e
        self._saved_preset = self.current_preset
        return True
