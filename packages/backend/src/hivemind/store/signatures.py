"""Used-signature set — replay guard for inbound paid requests.

Learn: consume() is the only way a signature becomes used, and it does
the membership check and the insert in one step. The specialist endpoint
is async and nothing awaits between the two, so on the event loop a
second request with the same signature always sees the first one's
insert. The lock keeps that true for callers on worker threads.

Insertion order is kept (dict keys) so pruning can retain the most
recent N signatures.
"""

import threading

import structlog

from hivemind.store.repository import Repository

logger = structlog.get_logger()


class UsedSignatureStore:
    def __init__(self, repository: Repository):
        self.repository = repository
        self._lock = threading.Lock()
        self._used: dict[str, None] = dict.fromkeys(repository.load() or [])
        if self._used:
            logger.info("payments.signatures_loaded", count=len(self._used))

    def __contains__(self, signature: str) -> bool:
        return signature in self._used

    def __len__(self) -> int:
        return len(self._used)

    def consume(self, signature: str) -> bool:
        """Atomically mark a signature used. Returns False if it already was."""
        with self._lock:
            if signature in self._used:
                return False
            self._used[signature] = None
            self.repository.save(list(self._used))
            return True

    def prune(self, max_size: int, keep: int) -> int:
        """Once the set exceeds max_size, keep only the `keep` most recent entries.

        Returns the number of signatures dropped.
        """
        with self._lock:
            if len(self._used) <= max_size:
                return 0
            recent = list(self._used)[-keep:] if keep > 0 else []
            dropped = len(self._used) - len(recent)
            self._used = dict.fromkeys(recent)
            self.repository.save(recent)
        logger.info("payments.signatures_pruned", dropped=dropped, kept=len(recent))
        return dropped
