"""Snapshot repositories — load() / save(snapshot) for one JSON document.

Learn: The reference backend rewrites the whole document on every write.
That is simple and crash-tolerant enough for a single-process dispatcher:
we write to a temp file and os.replace() it, so a reader never sees a
half-written file. Swapping in a different backend (SQLite below, or an
append-only log) never touches orchestration code.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional, Protocol

import structlog

logger = structlog.get_logger()

DOCUMENTS = ("tasks", "payments", "reputation", "used_signatures")


class Repository(Protocol):
    """Durable home of one snapshot document."""

    name: str

    def load(self) -> Optional[Any]:
        """Return the last saved snapshot, or None if nothing was saved yet."""
        ...

    def save(self, snapshot: Any) -> None:
        """Replace the stored snapshot."""
        ...


class MemoryRepository:
    """Keeps the snapshot in memory. Used in tests and for ephemeral runs."""

    def __init__(self, name: str, initial: Optional[Any] = None):
        self.name = name
        self._data = json.dumps(initial) if initial is not None else None
        self.saves = 0

    def load(self) -> Optional[Any]:
        if self._data is None:
            return None
        return json.loads(self._data)

    def save(self, snapshot: Any) -> None:
        # Serialize eagerly so later mutation of the live object can't leak in
        self._data = json.dumps(snapshot)
        self.saves += 1


class JsonFileRepository:
    """One pretty-printed JSON file per document under data_dir."""

    def __init__(self, path: Path | str, name: Optional[str] = None):
        self.path = Path(path)
        self.name = name or self.path.stem

    def load(self) -> Optional[Any]:
        if not self.path.exists():
            return None
        try:
            with self.path.open("r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("store.load_failed", document=self.name, error=str(e))
            return None

    def save(self, snapshot: Any) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(snapshot, f, indent=2)
            os.replace(tmp, self.path)
        except OSError:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise


def build_repositories(
    backend: str,
    data_dir: str = "data",
    sqlite_url: str = "sqlite:///data/hivemind.db",
) -> dict[str, Repository]:
    """Create one repository per persisted document for the given backend."""
    if backend == "memory":
        return {name: MemoryRepository(name) for name in DOCUMENTS}

    if backend == "json":
        base = Path(data_dir)
        files = {
            "tasks": "tasks.json",
            "payments": "payments.json",
            "reputation": "reputation.json",
            "used_signatures": "used-signatures.json",
        }
        return {
            name: JsonFileRepository(base / files[name], name=name)
            for name in DOCUMENTS
        }

    if backend == "sqlite":
        from hivemind.store.sql import SqlSnapshotRepository, create_snapshot_engine

        engine = create_snapshot_engine(sqlite_url)
        return {name: SqlSnapshotRepository(engine, name) for name in DOCUMENTS}

    raise ValueError(
        f"Unknown storage backend '{backend}'. Available: json, memory, sqlite"
    )
