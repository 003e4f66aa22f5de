"""Shared fixtures for saul scenario tests."""

import json

import pytest
from click.testing import CliRunner

from saul.executor import RequestResult


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def config_root(tmp_path, monkeypatch):
    """Point all saul state at a temp directory instead of ~/.config/saul."""
    root = tmp_path / "saul_config"
    root.mkdir()
    monkeypatch.setenv("SAUL_CONFIG_DIR", str(root))
    monkeypatch.delenv("TTY", raising=False)
    monkeypatch.delenv("EDITOR", raising=False)
    return root


@pytest.fixture
def presets_root(config_root):
    return config_root / "presets"


def make_request_result(
    status_code=200,
    reason="OK",
    body=None,
    headers=None,
    elapsed_ms=42.0,
    error=None,
    raw_text="",
):
    """Factory for mock RequestResult objects."""
    r = RequestResult()
    r.status_code = status_code
    r.reason = reason
    r.headers = headers or {}
    r.body = body
    r.elapsed_ms = elapsed_ms
    r.error = error
    r.raw_text = raw_text or (
        json.dumps(body) if isinstance(body, dict | list) else str(body or "")
    )
    return r
