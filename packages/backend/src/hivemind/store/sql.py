"""SQLAlchemy snapshot backend — one row per document in an embedded DB.

Learn: Same load/save contract as the JSON files, but the snapshots live
in a single `snapshots` table keyed by document name. Useful when the data
directory is on a filesystem where atomic rename isn't reliable, and a
first step towards a real relational store.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from sqlalchemy import (
    Column,
    DateTime,
    Engine,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    select,
)

metadata = MetaData()

snapshots = Table(
    "snapshots",
    metadata,
    Column("name", String(64), primary_key=True),
    Column("body", Text, nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)


def create_snapshot_engine(url: str) -> Engine:
    """Create the engine and make sure the snapshots table exists."""
    if url.startswith("sqlite:///") and not url.startswith("sqlite:///:memory:"):
        Path(url.removeprefix("sqlite:///")).parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(url)
    metadata.create_all(engine)
    return engine


class SqlSnapshotRepository:
    """Stores one named snapshot document as a JSON text row."""

    def __init__(self, engine: Engine, name: str):
        self.engine = engine
        self.name = name

    def load(self) -> Optional[Any]:
        with self.engine.connect() as conn:
            row = conn.execute(
                select(snapshots.c.body).where(snapshots.c.name == self.name)
            ).first()
        if row is None:
            return None
        return json.loads(row.body)

    def save(self, snapshot: Any) -> None:
        body = json.dumps(snapshot)
        now = datetime.now(timezone.utc)
        with self.engine.begin() as conn:
            updated = conn.execute(
                snapshots.update()
                .where(snapshots.c.name == self.name)
                .values(body=body, updated_at=now)
            )
            if updated.rowcount == 0:
                conn.execute(
                    snapshots.insert().values(name=self.name, body=body, updated_at=now)
                )
