"""
Tests for the archived-case store.
"""
import threading
from pathlib import Path

import pytest

from storage import cases, db
from workflow import dashboard
from workflow.local_state import DEFAULT_STATE_PATH, LocalState, get_local_state, owner_key


class TestArchive:
    def test_archive_and_unarchive_round_trip(self, tmp_path):
        state = LocalState(tmp_path / "state.json")
        owner = owner_key("provider", 1)

        state.archive(owner, "P-1")
        assert state.archived_ids(owner) == {"P-1"}

        state.unarchive(owner, "P-1")
        assert state.archived_ids(owner) == set()

    def test_owners_are_separate(self, tmp_path):
        state = LocalState(tmp_path / "state.json")
        state.archive("provider:1", "P-1")
        assert state.archived_ids("admin:2") == set()

    def test_missing_file_is_empty(self, tmp_path):
        assert LocalState(tmp_path / "nope.json").archived_ids("x") == set()

    def test_corrupt_file_is_empty(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{not json", encoding="utf-8")
        state = LocalState(path)
        assert state.archived_ids("x") == set()
        state.archive("x", "P-9")
        assert state.archived_ids("x") == {"P-9"}

    def test_singleton_uses_configured_path(self, isolated_store):
        assert get_local_state().path == isolated_store / "local_state.json"

    def test_default_file_sits_next_to_the_database(self, monkeypatch):
        monkeypatch.delenv("LAKBAY_LOCAL_STATE_PATH")
        monkeypatch.delenv("LAKBAY_DB_PATH")
        assert LocalState().path == DEFAULT_STATE_PATH
        assert DEFAULT_STATE_PATH.parent == db.db_path().parent
        assert DEFAULT_STATE_PATH.is_absolute()

    def test_archiving_never_touches_the_store(self, draft):
        case = cases.create_case(draft())
        owner = owner_key("provider", 1)

        get_local_state().archive(owner, case.id)
        parts = dashboard.partition(cases.list_cases(), get_local_state().archived_ids(owner))
        assert parts.active == []
        assert [c.id for c in parts.archived] == [case.id]

        get_local_state().unarchive(owner, case.id)
        parts = dashboard.partition(cases.list_cases(), get_local_state().archived_ids(owner))
        assert [c.id for c in parts.active] == [case.id]
        assert cases.get_case(case.id).version == 1


class TestConcurrentWrites:
    def test_parallel_archives_from_many_owners_are_all_kept(self, tmp_path):
        state = LocalState(tmp_path / "state.json")
        errors = []

        def worker(n):
            try:
                for i in range(30):
                    state.archive(f"provider:{n}", f"P-{n}-{i}")
            except OSError as exc:
                errors.append(exc)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert sum(len(state.archived_ids(f"provider:{n}")) for n in range(6)) == 180
        assert list(tmp_path.glob("*.tmp")) == []

    def test_failed_write_leaves_no_temp_file(self, tmp_path, monkeypatch):
        state = LocalState(tmp_path / "state.json")
        state.archive("admin:1", "P-1")

        def refuse(self, target):
            raise OSError("read-only file system")

        with monkeypatch.context() as m:
            m.setattr(Path, "replace", refuse)
            with pytest.raises(OSError):
                state.archive("admin:1", "P-2")

        assert state.archived_ids("admin:1") == {"P-1"}
        assert list(tmp_path.glob("*.tmp")) == []
