"""Reputation ledger tests — votes, success rate, migration, sync markers."""

import threading

import pytest

from hivemind.services.reputation import (
    VOTE_HISTORY_LIMIT,
    ReputationLedger,
    SpecialistNotSyncedError,
)
from hivemind.store.repository import MemoryRepository


@pytest.fixture()
def repo():
    return MemoryRepository("reputation")


@pytest.fixture()
def ledger(repo):
    return ReputationLedger(repo)


def _vote(ledger, direction, voter="alice", task="task-1", specialist="magos"):
    return ledger.submit_vote(specialist, task, voter, "human", direction)


# ═══════════════════════════════════════════════════════════
# Votes
# ═══════════════════════════════════════════════════════════


def test_unvoted_specialist_is_at_100(ledger):
    assert ledger.success_rate("magos") == 100
    stats = ledger.stats("magos")
    assert stats.total_votes == 0


def test_upvote_then_duplicate_then_flip(ledger):
    first = _vote(ledger, "up")
    assert first.success
    assert first.message == "Upvote recorded"
    assert (first.upvotes, first.downvotes, first.new_rate) == (1, 0, 100)

    again = _vote(ledger, "up")
    assert not again.success
    assert again.message == "Already upvoted this response"
    assert (again.upvotes, again.downvotes) == (1, 0)

    flipped = _vote(ledger, "down")
    assert flipped.success
    assert flipped.message == "Vote changed to downvote"
    assert (flipped.upvotes, flipped.downvotes, flipped.new_rate) == (0, 1, 0)
    assert ledger.get_vote("task-1", "alice") == "down"


def test_duplicate_downvote_rejected(ledger):
    _vote(ledger, "down")
    result = _vote(ledger, "down")
    assert not result.success
    assert result.message == "Already downvoted this response"
    assert ledger.stats("magos").downvotes == 1


def test_votes_are_per_voter_and_task(ledger):
    _vote(ledger, "up", voter="alice", task="t1")
    _vote(ledger, "up", voter="bob", task="t1")
    _vote(ledger, "down", voter="alice", task="t2")
    stats = ledger.stats("magos")
    assert (stats.upvotes, stats.downvotes) == (2, 1)
    assert stats.success_rate == 67


def test_flip_onto_another_specialist_takes_back_the_first_vote(ledger):
    """One voter, one task: the old count comes off whoever received it."""
    _vote(ledger, "up", specialist="magos")
    result = _vote(ledger, "down", specialist="aura")
    assert result.success
    assert result.message == "Vote changed to downvote"

    magos, aura = ledger.stats("magos"), ledger.stats("aura")
    assert (magos.upvotes, magos.downvotes) == (0, 0)
    assert (aura.upvotes, aura.downvotes) == (0, 1)
    assert magos.total_votes + aura.total_votes == 1


def test_success_rate_rounds_half_up(ledger):
    _vote(ledger, "up", voter="a")
    for voter in ("b", "c", "d", "e", "f", "g", "h"):
        _vote(ledger, "down", voter=voter)
    # 1 / 8 = 12.5% → 13, not banker's 12
    assert ledger.success_rate("magos") == 13


def test_concurrent_identical_votes_count_once(ledger):
    threads = [threading.Thread(target=_vote, args=(ledger, "up")) for _ in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert ledger.stats("magos").upvotes == 1


def test_vote_history_is_trimmed(ledger):
    for i in range(VOTE_HISTORY_LIMIT + 15):
        _vote(ledger, "up", voter=f"v{i}")
    stats = ledger.stats("magos")
    assert stats.upvotes == VOTE_HISTORY_LIMIT + 15
    assert len(stats.recent_votes) == 10
    assert len(ledger._specialists["magos"].votes) == VOTE_HISTORY_LIMIT


# ─── Outcomes ─────────────────────────────────────────────


def test_outcomes_do_not_move_votes(ledger):
    ledger.record_outcome("aura", True)
    ledger.record_outcome("aura", False)
    stats = ledger.stats("aura")
    assert (stats.success_count, stats.failure_count) == (1, 1)
    assert (stats.upvotes, stats.downvotes) == (0, 0)
    assert stats.success_rate == 100


# ═══════════════════════════════════════════════════════════
# Persistence
# ═══════════════════════════════════════════════════════════


def test_state_survives_reload(repo, ledger):
    _vote(ledger, "up")
    reloaded = ReputationLedger(repo)
    assert reloaded.stats("magos").upvotes == 1
    assert not _vote(reloaded, "up").success


def test_bare_direction_index_resolved_from_history(ledger):
    _vote(ledger, "up", specialist="magos")
    saved = ledger.repository.load()
    saved["voterTaskIndex"] = {"alice:task-1": "up"}
    reloaded = ReputationLedger(MemoryRepository("reputation", initial=saved))

    assert reloaded.get_vote("task-1", "alice") == "up"
    _vote(reloaded, "down", specialist="aura")
    assert reloaded.stats("magos").upvotes == 0
    assert reloaded.stats("aura").downvotes == 1


def test_legacy_flat_format_is_migrated():
    repo = MemoryRepository(
        "reputation",
        initial={"magos": {"successCount": 3, "failureCount": 1}},
    )
    ledger = ReputationLedger(repo)

    stats = ledger.stats("magos")
    assert (stats.success_count, stats.failure_count) == (3, 1)
    assert (stats.upvotes, stats.downvotes) == (3, 1)
    assert stats.success_rate == 75
    assert "specialists" in repo.load()


def test_all_lists_every_known_specialist(ledger):
    _vote(ledger, "up", specialist="magos")
    ledger.record_outcome("bankr", True)
    everything = ledger.all()
    assert set(everything) == {"magos", "bankr"}
    assert everything["magos"] == {"successRate": 100, "upvotes": 1, "downvotes": 0}


# ═══════════════════════════════════════════════════════════
# External sync
# ═══════════════════════════════════════════════════════════


def test_proof_requires_sync(ledger):
    with pytest.raises(SpecialistNotSyncedError):
        ledger.proof("magos")


def test_sync_marker_is_deterministic(ledger):
    _vote(ledger, "up")
    tx1 = ledger.mark_synced("magos")
    tx2 = ledger.mark_synced("magos")
    assert tx1 == tx2
    assert tx1.startswith("0x")

    proof = ledger.proof("magos")
    assert proof["lastSyncTx"] == tx1
    assert proof["successRate"] == 100
    assert ledger.stats("magos").last_sync_tx == tx1


def test_sync_marker_changes_with_score(ledger):
    _vote(ledger, "up")
    before = ledger.mark_synced("magos")
    _vote(ledger, "down", voter="bob")
    assert ledger.mark_synced("magos") != before
