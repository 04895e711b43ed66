"""
workflow/local_state.py

Tiny JSON store for client-local flags that never reach the database.

- Uses <project>/data/local_state.json by default, next to the database
  (LAKBAY_LOCAL_STATE_PATH overrides)
- Atomic writes through a unique temp file in the same directory
- Read-modify-write cycles hold a process-wide lock; every Streamlit
  session shares one LocalState
- Reads are best-effort: a missing or unreadable file is empty state
- Keys are namespaced per signed-in identity (e.g. "admin:3")

Today it only holds ``archivedCaseIds``: cases hidden from the active view
without being deleted.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

_PROJECT_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_STATE_PATH = _PROJECT_ROOT / "data" / "local_state.json"
ARCHIVED_KEY = "archivedCaseIds"

_WRITE_LOCK = threading.Lock()


def _atomic_write_json(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        "w",
        encoding="utf-8",
        dir=path.parent,
        prefix=path.stem + ".",
        suffix=".tmp",
        delete=False,
    ) as fh:
        json.dump(data, fh, indent=2, default=str)
        tmp = Path(fh.name)
    try:
        tmp.replace(path)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise


def owner_key(role: str, user_id: int) -> str:
    return f"{role}:{user_id}"


class LocalState:
    def __init__(self, path: Optional[Path] = None):
        override = os.environ.get("LAKBAY_LOCAL_STATE_PATH")
        self.path = path or (Path(override) if override else DEFAULT_STATE_PATH)

    def load(self) -> dict:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable local state %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def save(self, data: dict) -> None:
        _atomic_write_json(self.path, data)

    # -------------------------
    # Archived case ids
    # -------------------------
    def archived_ids(self, owner: str) -> set[str]:
        archived = self.load().get(ARCHIVED_KEY)
        raw = archived.get(owner, []) if isinstance(archived, dict) else []
        if not isinstance(raw, list):
            return set()
        return {str(x) for x in raw}

    def _write_archived(self, owner: str, ids: set[str]) -> None:
        data = self.load()
        archived = data.get(ARCHIVED_KEY)
        if not isinstance(archived, dict):
            archived = {}
        archived[owner] = sorted(ids)
        data[ARCHIVED_KEY] = archived
        self.save(data)

    def archive(self, owner: str, case_id: str) -> set[str]:
        with _WRITE_LOCK:
            ids = self.archived_ids(owner) | {case_id}
            self._write_archived(owner, ids)
        logger.info("Archived case %s for %s", case_id, owner)
        return ids

    def unarchive(self, owner: str, case_id: str) -> set[str]:
        with _WRITE_LOCK:
            ids = self.archived_ids(owner) - {case_id}
            self._write_archived(owner, ids)
        logger.info("Restored case %s for %s", case_id, owner)
        return ids


_STATE_SINGLETON: Optional[LocalState] = None


def get_local_state() -> LocalState:
    global _STATE_SINGLETON
    with _WRITE_LOCK:
        if _STATE_SINGLETON is None:
            _STATE_SINGLETON = LocalState()
    return _STATE_SINGLETON
