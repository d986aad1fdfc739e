"""Reputation ledger — per-specialist votes, success rate, legacy counters.

Learn: The ledger keys votes by (voter, task). A voter gets one active
vote per task: repeating it is rejected, flipping it moves exactly one
count from the old direction to the new one. The index remembers which
specialist got the vote, so a flip naming a different specialist takes
the old count back from the one that actually received it. The lookup
and the write happen under one lock, so two back-to-back requests from
the same voter cannot both be counted.

Persisted layout (one JSON document):

    {
        "specialists": {"magos": {...}},
        "voterTaskIndex": {"voter:task": {"vote": "up", "specialist": "magos"}},
    }

Older stores were a flat {specialist: {successCount, failureCount}} map;
those are migrated on load, with successes and failures seeding the
vote counts. Index entries written before the specialist was recorded
(a bare "up"/"down") are resolved against the vote history on load.
"""

import hashlib
import threading
from typing import Any, NamedTuple, Optional

import structlog
from pydantic import ValidationError

from hivemind.models import (
    ReputationStats,
    SpecialistReputation,
    Vote,
    VoteDirection,
    VoteResult,
    VoterKind,
    utcnow,
)
from hivemind.store.repository import Repository

logger = structlog.get_logger()

VOTE_HISTORY_LIMIT = 100
RECENT_VOTES = 10


class SpecialistNotSyncedError(Exception):
    """Raised when a sync proof is requested before any sync happened."""


def vote_key(voter_id: str, task_id: str) -> str:
    return f"{voter_id}:{task_id}"


class IndexedVote(NamedTuple):
    vote: VoteDirection
    specialist: Optional[str]


class ReputationLedger:
    def __init__(self, repository: Repository):
        self.repository = repository
        self._lock = threading.Lock()
        self._specialists: dict[str, SpecialistReputation] = {}
        self._index: dict[str, IndexedVote] = {}
        self._load()

    # ─── Persistence ──────────────────────────────────────

    def _load(self) -> None:
        raw = self.repository.load()
        if raw is None:
            return
        if "specialists" not in raw:
            self._migrate_legacy(raw)
            return
        for specialist, record in (raw.get("specialists") or {}).items():
            try:
                self._specialists[specialist] = SpecialistReputation.model_validate(record)
            except ValidationError as e:
                logger.warning(
                    "reputation.load_skipped", specialist=specialist, error=str(e)
                )
        for key, entry in (raw.get("voterTaskIndex") or {}).items():
            if isinstance(entry, dict):
                vote, specialist = entry.get("vote"), entry.get("specialist")
            else:
                vote, specialist = entry, self._find_voted_specialist(key)
            if vote in ("up", "down"):
                self._index[key] = IndexedVote(vote, specialist)
        logger.info("reputation.loaded", specialists=len(self._specialists))

    def _find_voted_specialist(self, key: str) -> Optional[str]:
        """Latest specialist in the vote history that this voter:task voted on."""
        latest = None
        for specialist, record in self._specialists.items():
            for v in record.votes:
                if vote_key(v.voter_id, v.task_id) == key and (
                    latest is None or v.timestamp >= latest[1]
                ):
                    latest = (specialist, v.timestamp)
        return latest[0] if latest else None

    def _migrate_legacy(self, raw: dict[str, Any]) -> None:
        for specialist, legacy in raw.items():
            if not isinstance(legacy, dict):
                continue
            successes = int(legacy.get("successCount") or 0)
            failures = int(legacy.get("failureCount") or 0)
            self._specialists[specialist] = SpecialistReputation(
                success_count=successes,
                failure_count=failures,
                upvotes=successes,
                downvotes=failures,
            )
        self._save()
        logger.info("reputation.migrated_legacy", specialists=len(self._specialists))

    def _save(self) -> None:
        for record in self._specialists.values():
            if len(record.votes) > VOTE_HISTORY_LIMIT:
                record.votes = record.votes[-VOTE_HISTORY_LIMIT:]
        self.repository.save(
            {
                "specialists": {k: v.to_wire() for k, v in self._specialists.items()},
                "voterTaskIndex": {k: v._asdict() for k, v in self._index.items()},
            }
        )

    def _record(self, specialist: str) -> SpecialistReputation:
        record = self._specialists.get(specialist)
        if record is None:
            record = self._specialists[specialist] = SpecialistReputation()
        return record

    # ─── Votes ────────────────────────────────────────────

    def submit_vote(
        self,
        specialist: str,
        task_id: str,
        voter_id: str,
        voter_type: VoterKind,
        direction: VoteDirection,
    ) -> VoteResult:
        key = vote_key(voter_id, task_id)
        with self._lock:
            record = self._record(specialist)
            previous = self._index.get(key)
            existing = previous.vote if previous else None

            if existing == direction:
                return VoteResult(
                    success=False,
                    message=f"Already {direction}voted this response",
                    new_rate=record.success_rate,
                    upvotes=record.upvotes,
                    downvotes=record.downvotes,
                )

            if previous:
                undone = self._record(previous.specialist or specialist)
                if existing == "up":
                    undone.upvotes = max(0, undone.upvotes - 1)
                else:
                    undone.downvotes = max(0, undone.downvotes - 1)

            if direction == "up":
                record.upvotes += 1
            else:
                record.downvotes += 1

            record.votes.append(
                Vote(
                    task_id=task_id,
                    voter_id=voter_id,
                    voter_type=voter_type,
                    vote=direction,
                )
            )
            self._index[key] = IndexedVote(direction, specialist)
            self._save()

            result = VoteResult(
                success=True,
                message=(
                    f"Vote changed to {direction}vote"
                    if existing
                    else ("Upvote recorded" if direction == "up" else "Downvote recorded")
                ),
                new_rate=record.success_rate,
                upvotes=record.upvotes,
                downvotes=record.downvotes,
            )

        logger.info(
            "reputation.vote_recorded",
            specialist=specialist,
            task_id=task_id,
            voter_type=voter_type,
            vote=direction,
            changed=existing is not None,
            new_rate=result.new_rate,
        )
        return result

    def get_vote(self, task_id: str, voter_id: str) -> Optional[VoteDirection]:
        entry = self._index.get(vote_key(voter_id, task_id))
        return entry.vote if entry else None

    # ─── Scores ───────────────────────────────────────────

    def success_rate(self, specialist: str) -> int:
        record = self._specialists.get(specialist)
        return record.success_rate if record else 100

    def record_outcome(self, specialist: str, success: bool) -> None:
        """Bump the legacy success/failure counter. Votes are untouched."""
        with self._lock:
            record = self._record(specialist)
            if success:
                record.success_count += 1
            else:
                record.failure_count += 1
            self._save()
        logger.info("reputation.outcome_recorded", specialist=specialist, success=success)

    def stats(self, specialist: str) -> ReputationStats:
        record = self._specialists.get(specialist) or SpecialistReputation()
        return ReputationStats(
            success_rate=record.success_rate,
            upvotes=record.upvotes,
            downvotes=record.downvotes,
            total_votes=record.upvotes + record.downvotes,
            success_count=record.success_count,
            failure_count=record.failure_count,
            recent_votes=record.votes[-RECENT_VOTES:],
            last_sync_tx=record.last_sync_tx,
            last_sync_timestamp=record.last_sync_timestamp,
        )

    def all(self) -> dict[str, dict[str, int]]:
        return {
            specialist: {
                "successRate": record.success_rate,
                "upvotes": record.upvotes,
                "downvotes": record.downvotes,
            }
            for specialist, record in self._specialists.items()
        }

    # ─── External sync ────────────────────────────────────

    def mark_synced(self, specialist: str) -> str:
        """Record an external sync of the current score and return its reference.

        The reference is a digest of the synced state, so syncing the same
        numbers twice yields the same reference.
        """
        with self._lock:
            record = self._record(specialist)
            digest = hashlib.sha256(
                f"{specialist}:{record.upvotes}:{record.downvotes}:{record.success_rate}".encode()
            ).hexdigest()
            record.last_sync_tx = f"0x{digest}"
            record.last_sync_timestamp = utcnow()
            self._save()
        logger.info("reputation.synced", specialist=specialist, tx=record.last_sync_tx)
        return record.last_sync_tx

    def proof(self, specialist: str) -> dict[str, Any]:
        record = self._specialists.get(specialist)
        if record is None or not record.last_sync_tx:
            raise SpecialistNotSyncedError(f"No sync recorded for {specialist}")
        return {
            "specialist": specialist,
            "successRate": record.success_rate,
            "upvotes": record.upvotes,
            "downvotes": record.downvotes,
            "lastSyncTx": record.last_sync_tx,
            "lastSyncTimestamp": record.last_sync_timestamp.isoformat()
            if record.last_sync_timestamp
            else None,
        }
