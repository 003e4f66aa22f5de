"""saul config - optional global defaults from <config-root>/config.yaml.

    defaults:
      timeout: 30          # seconds, used when a preset sets none
      history_count: 0     # responses kept per preset when it sets none
      editor: vim          # for `edit` without a key; falls back to $EDITOR
"""

from pathlib import Path

import yaml

from saul.errors import StorageError
from saul.workspace import config_dir

CONFIG_FILE_NAME = "config.yaml"

DEFAULTS = {
    "timeout": 30,
    "history_count": 0,
    "editor": None,
}


def config_path() -> Path:
    return config_dir() / CONFIG_FILE_NAME


def load_config(path: str | Path | None = None) -> dict:
    """Load the YAML config. A missing file yields the built-in defaults.

    Returns {"defaults": {...}, "_config_dir": Path | None}.
    """
    path = Path(path) if path is not None else config_path()
    if not path.exists():
        return {"defaults": dict(DEFAULTS), "_config_dir": None}
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise StorageError("parse", path, e) from e
    except OSError as e:
        raise StorageError("read", path, e) from e
    defaults = dict(DEFAULTS)
    defaults.update((data.get("defaults") if isinstance(data, dict) else None) or {})
    return {
        "defaults": defaults,
        "_config_dir": path.resolve().parent,
    }
