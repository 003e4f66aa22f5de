"""Scenario tests for the rotating per-preset response history."""

import json
import os

import pytest

from saul import history, workspace
from saul.errors import HistoryNotFoundError, StorageError
from saul.store import Document
from tests.conftest import make_request_result


@pytest.fixture
def api():
    workspace.create_preset("api")
    return "api"


def _entry(n):
    return {
        "timestamp": f"2026-01-0{n}T00:00:00+00:00",
        "method": "GET",
        "url": f"http://x/{n}",
        "status": "200 OK",
        "duration": f"{n}ms",
        "headers": {},
        "body": {"n": n},
    }


def _files(preset):
    return sorted(p.name for p in workspace.history_dir(preset).iterdir())


class TestRotation:
    def test_capacity_three_keeps_last_three(self, api):
        for n in range(1, 6):
            history.store_response(api, _entry(n), capacity=3)

        assert _files(api) == ["001.json", "002.json", "003.json"]
        stored = [json.loads((workspace.history_dir(api) / f).read_text()) for f in _files(api)]
        assert [e["body"]["n"] for e in stored] == [3, 4, 5]
        assert history.load_response(api, 1)["body"] == {"n": 5}
        assert history.load_response(api, 3)["body"] == {"n": 3}

    def test_below_capacity_appends(self, api):
        history.store_response(api, _entry(1), capacity=5)
        history.store_response(api, _entry(2), capacity=5)
        assert _files(api) == ["001.json", "002.json"]

    def test_shrinking_capacity_evicts_extra(self, api):
        for n in range(1, 6):
            history.store_response(api, _entry(n), capacity=5)
        history.store_response(api, _entry(6), capacity=2)
        assert [e["body"]["n"] for e in history.list_responses(api)] == [5, 6]

    def test_gap_closed_before_append(self, api):
        hdir = workspace.history_dir(api)
        hdir.mkdir()
        (hdir / "001.json").write_text(json.dumps(_entry(1)))
        (hdir / "003.json").write_text(json.dumps(_entry(2)))

        history.store_response(api, _entry(3), capacity=5)

        assert _files(api) == ["001.json", "002.json", "003.json"]
        assert [e["body"]["n"] for e in history.list_responses(api)] == [1, 2, 3]

    @pytest.mark.parametrize("capacity", [0, -1])
    def test_disabled(self, api, capacity):
        assert history.store_response(api, _entry(1), capacity=capacity) is None
        assert not workspace.history_dir(api).exists()

    def test_entry_shape(self, api):
        path = history.store_response(api, {"method": "GET", "extra": "x"}, capacity=1)
        data = json.loads(path.read_text())
        assert set(data) == set(history.ENTRY_FIELDS)
        assert data["timestamp"]

    def test_failed_renumber_rolls_back(self, api, monkeypatch):
        for n in range(1, 4):
            history.store_response(api, _entry(n), capacity=3)

        real_rename = os.rename
        calls = []

        def flaky_rename(src, dst):
            calls.append((src, dst))
            if len(calls) == 2:
                raise OSError("device busy")
            return real_rename(src, dst)

        monkeypatch.setattr(os, "rename", flaky_rename)
        with pytest.raises(StorageError, match="renumber history"):
            history.store_response(api, _entry(4), capacity=3)

        # Oldest entry evicted, the rest back under their original numbers.
        assert _files(api) == ["002.json", "003.json"]


class TestRetrieval:
    def test_out_of_range_names_valid_range(self, api):
        history.store_response(api, _entry(1), capacity=3)
        history.store_response(api, _entry(2), capacity=3)
        with pytest.raises(HistoryNotFoundError, match="available: 1-2"):
            history.load_response(api, 3)
        with pytest.raises(HistoryNotFoundError):
            history.load_response(api, 0)

    def test_no_history(self, api):
        with pytest.raises(HistoryNotFoundError, match="No history"):
            history.load_response(api, 1)
        assert history.list_responses(api) == []

    def test_unreadable_file_skipped(self, api, caplog):
        history.store_response(api, _entry(1), capacity=3)
        (workspace.history_dir(api) / "002.json").write_text("{broken")
        assert len(history.list_responses(api)) == 1
        assert "Skipping unreadable history file" in caplog.text

    def test_numbers_match_load_response_past_corrupt_file(self, api):
        for n in range(1, 4):
            history.store_response(api, _entry(n), capacity=3)
        (workspace.history_dir(api) / "002.json").write_text("{broken")

        numbered = history.numbered_responses(api)
        assert [number for number, _ in numbered] == [1, 3]
        for number, entry in numbered:
            assert history.load_response(api, number) == entry

    def test_numeric_ordering_past_999(self, api):
        hdir = workspace.history_dir(api)
        hdir.mkdir()
        (hdir / "999.json").write_text(json.dumps({"n": 999}))
        (hdir / "1000.json").write_text(json.dumps({"n": 1000}))
        assert history.load_response(api, 1) == {"n": 1000}

    def test_delete_history_idempotent(self, api):
        history.store_response(api, _entry(1), capacity=3)
        history.delete_history(api)
        history.delete_history(api)
        assert not workspace.history_dir(api).exists()


class TestEntryHelpers:
    def test_entry_from_result(self):
        result = make_request_result(status_code=201, reason="Created", body={"id": 1})
        entry = history.entry_from_result({"method": "POST", "url": "http://x"}, result)
        assert entry["status"] == "201 Created"
        assert entry["duration"] == "42ms"
        assert entry["body"] == {"id": 1}

    def test_capacity_from_request(self):
        assert history.history_capacity(Document({"history_count": "5"})) == 5
        assert history.history_capacity(Document(), default=2) == 2
        assert history.history_capacity(Document({"history_count": "x"}), default=1) == 1
