"""Persistence — repositories and the in-memory stores built on them.

Learn: Every durable document is rewritten wholesale on each mutation
through a small Repository interface (load/save). The stores on top hold
the live state in memory and own the critical sections around it.
"""

from hivemind.store.repository import (
    JsonFileRepository,
    MemoryRepository,
    Repository,
    build_repositories,
)

__all__ = [
    "JsonFileRepository",
    "MemoryRepository",
    "Repository",
    "build_repositories",
]
