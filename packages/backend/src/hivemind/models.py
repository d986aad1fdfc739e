"""Domain models — tasks, payments, votes, reputation.

Learn: These are pydantic models, not ORM rows. Every persisted document
(task map, payment log, reputation store) is a plain JSON snapshot of
these models, so the same classes serve the store, the API responses and
the WebSocket payloads.

Wire format is camelCase (taskId, createdAt, txHash) to match what the
dashboard and callback consumers expect; Python code uses snake_case.
"""

import enum
import math
import uuid
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the camelCase JSON shape used on disk and on the wire."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ─── Tasks ───────────────────────────────────────────────


class TaskStatus(str, enum.Enum):
    PENDING = "pending"
    ROUTING = "routing"
    AWAITING_PAYMENT = "awaiting_payment"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)


PaymentStatus = Literal["pending", "completed", "failed"]
VoteDirection = Literal["up", "down"]
VoterKind = Literal["human", "agent"]


class PaymentInfo(_WireModel):
    """A fee as quoted or reported by a specialist."""

    amount: str
    currency: str
    network: str
    recipient: str


class PaymentRecord(PaymentInfo):
    """One settled or attempted fee. Append-only."""

    tx_hash: Optional[str] = None
    status: PaymentStatus = "pending"
    timestamp: datetime = Field(default_factory=utcnow)
    error: Optional[str] = None

    @classmethod
    def create(
        cls,
        amount: str,
        currency: str,
        network: str,
        recipient: str,
        tx_hash: Optional[str] = None,
        error: Optional[str] = None,
    ) -> "PaymentRecord":
        """Build a record; status follows from whether a tx reference exists."""
        return cls(
            amount=amount,
            currency=currency,
            network=network,
            recipient=recipient,
            tx_hash=tx_hash,
            status="completed" if tx_hash else "pending",
            error=error,
        )


class AgentMessage(_WireModel):
    """One entry in a task's audit log of inter-party notices."""

    id: str = Field(default_factory=lambda: f"msg-{uuid.uuid4().hex[:12]}")
    sender: str = Field(alias="from")
    recipient: str = Field(alias="to")
    content: str
    timestamp: datetime = Field(default_factory=utcnow)


class SpecialistResult(_WireModel):
    """Structured output of one specialist invocation."""

    success: bool
    data: dict[str, Any] = Field(default_factory=dict)
    confidence: Optional[float] = None
    timestamp: datetime = Field(default_factory=utcnow)
    execution_time_ms: int = 0
    cost: Optional[PaymentInfo] = None


class Task(_WireModel):
    """The unit of work. Mutated only by the orchestrator."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    prompt: str
    user_id: Optional[str] = None
    status: TaskStatus = TaskStatus.PENDING
    specialist: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    result: Optional[SpecialistResult] = None
    payments: list[PaymentRecord] = Field(default_factory=list)
    messages: list[AgentMessage] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    callback_url: Optional[str] = None

    @property
    def hops(self) -> list[str]:
        return list(self.metadata.get("hops") or [])

    @property
    def dry_run(self) -> bool:
        return bool(self.metadata.get("dryRun"))


# ─── Reputation ──────────────────────────────────────────


class Vote(_WireModel):
    task_id: str
    voter_id: str
    voter_type: VoterKind
    vote: VoteDirection
    timestamp: datetime = Field(default_factory=utcnow)


class SpecialistReputation(_WireModel):
    """Aggregate reputation for one specialist."""

    success_count: int = 0
    failure_count: int = 0
    upvotes: int = 0
    downvotes: int = 0
    votes: list[Vote] = Field(default_factory=list)
    last_sync_tx: Optional[str] = None
    last_sync_timestamp: Optional[datetime] = None

    @property
    def success_rate(self) -> int:
        total = self.upvotes + self.downvotes
        if total == 0:
            return 100
        # half-up, not banker's rounding
        return math.floor(self.upvotes * 100 / total + 0.5)


class VoteResult(_WireModel):
    """Outcome of a vote submission. Duplicates come back with success=False."""

    success: bool
    message: str
    new_rate: int
    upvotes: int
    downvotes: int


class ReputationStats(_WireModel):
    success_rate: int
    upvotes: int
    downvotes: int
    total_votes: int
    success_count: int = 0
    failure_count: int = 0
    recent_votes: list[Vote] = Field(default_factory=list)
    last_sync_tx: Optional[str] = None
    last_sync_timestamp: Optional[datetime] = None
