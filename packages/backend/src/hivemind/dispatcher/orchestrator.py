"""Orchestrator — task lifecycle, single-hop and multi-hop execution.

Learn: This is the CORE of the dispatcher. dispatch() creates a task and
returns at once; the work runs later as a scheduled job. Every step of
that job is:
1. Validated against VALID_TRANSITIONS (status only moves forward)
2. Applied to the task (status, metadata, messages, payments)
3. Persisted through the task store
4. Published to subscribers, in the order it happened

The state machine:

  pending → routing → [awaiting_payment] → processing → completed | failed
  pending → processing (× hops) → completed | failed      (multi-hop)

Nothing raised inside a scheduled run escapes it: run_task() converts any
exception into a `failed` task carrying the error text, and the process
keeps serving other tasks.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional

import structlog

from hivemind.config import Settings
from hivemind.dispatcher.router import MULTI_HOP, Router, extract_tokens
from hivemind.dispatcher.scheduler import Scheduler
from hivemind.models import AgentMessage, SpecialistResult, Task, TaskStatus, utcnow
from hivemind.realtime.broadcaster import EventBroadcaster
from hivemind.services.payment_gateway import PaymentGateway
from hivemind.services.reputation import ReputationLedger
from hivemind.services.webhook_service import (
    CallbackNotifier,
    CallbackUrlError,
    build_callback_payload,
    validate_callback_url,
)
from hivemind.specialists import SpecialistRegistry, UnknownSpecialistError
from hivemind.specialists.formatting import extract_response_content
from hivemind.store.tasks import TaskStore

logger = structlog.get_logger()


# ═══════════════════════════════════════════════════════════
# State Machine
# ═══════════════════════════════════════════════════════════

VALID_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.PENDING: {TaskStatus.ROUTING, TaskStatus.PROCESSING, TaskStatus.FAILED},
    TaskStatus.ROUTING: {
        TaskStatus.AWAITING_PAYMENT,
        TaskStatus.PROCESSING,
        TaskStatus.FAILED,
    },
    TaskStatus.AWAITING_PAYMENT: {TaskStatus.PROCESSING, TaskStatus.FAILED},
    # processing → processing once per multi-hop step
    TaskStatus.PROCESSING: {
        TaskStatus.PROCESSING,
        TaskStatus.COMPLETED,
        TaskStatus.FAILED,
    },
    TaskStatus.COMPLETED: set(),  # terminal state
    TaskStatus.FAILED: set(),  # terminal state
}

# Hops whose output can name the asset for the next hop
CONTEXT_PRODUCERS = frozenset({"aura", "magos", "seeker"})


class InvalidTransitionError(Exception):
    """Raised when a status transition is not allowed."""


class InsufficientFundsError(Exception):
    """Raised when payment enforcement is on and the balance can't cover a fee."""


class InvalidDispatchError(ValueError):
    """Raised when a dispatch request is rejected before a task exists."""


@dataclass
class DispatchRequest:
    prompt: str
    user_id: Optional[str] = None
    preferred_specialist: Optional[str] = None
    dry_run: bool = False
    callback_url: Optional[str] = None
    hired_agents: Optional[list[str]] = None


@dataclass
class DispatchResponse:
    task_id: str
    status: TaskStatus
    specialist: str

    def to_wire(self) -> dict[str, Any]:
        return {
            "taskId": self.task_id,
            "status": self.status.value,
            "specialist": self.specialist,
        }


@dataclass
class _Run:
    """Bookkeeping for one execution of one task."""

    called: list[str] = field(default_factory=list)
    recorded: set[str] = field(default_factory=set)
    callback_allowed: bool = False


# ═══════════════════════════════════════════════════════════
# Orchestrator
# ═══════════════════════════════════════════════════════════


class Orchestrator:
    def __init__(
        self,
        *,
        settings: Settings,
        store: TaskStore,
        broadcaster: EventBroadcaster,
        router: Router,
        registry: SpecialistRegistry,
        gateway: PaymentGateway,
        reputation: ReputationLedger,
        scheduler: Scheduler,
        callbacks: Optional[CallbackNotifier] = None,
    ):
        self.settings = settings
        self.store = store
        self.broadcaster = broadcaster
        self.router = router
        self.registry = registry
        self.gateway = gateway
        self.reputation = reputation
        self.scheduler = scheduler
        self.callbacks = callbacks

    # ─── Dispatch ─────────────────────────────────────────

    def resolve(self, request: DispatchRequest) -> tuple[str, Optional[list[str]]]:
        """Pick the specialist (or multi-hop pipeline) for a request."""
        preferred = request.preferred_specialist
        if preferred:
            if preferred not in self.registry:
                raise UnknownSpecialistError(f"Unknown specialist '{preferred}'")
            return preferred, None

        hired = request.hired_agents or None
        hops = self.router.detect_multi_hop(request.prompt)
        if hops and hired is not None and not set(hops) <= set(hired):
            hops = None
        if hops:
            return MULTI_HOP, hops
        return self.router.route(request.prompt, allowed=hired), None

    async def dispatch(self, request: DispatchRequest) -> DispatchResponse:
        """Create a pending task and schedule its execution."""
        prompt = (request.prompt or "").strip()
        if not prompt:
            raise InvalidDispatchError("Prompt is required")

        specialist, hops = self.resolve(request)
        metadata: dict[str, Any] = {"dryRun": bool(request.dry_run)}
        if hops:
            metadata["hops"] = hops

        task = Task(
            prompt=prompt,
            user_id=request.user_id,
            specialist=specialist,
            metadata=metadata,
            callback_url=request.callback_url,
        )
        self._commit(task)
        logger.info(
            "dispatcher.task_created",
            task_id=task.id,
            specialist=specialist,
            hops=hops,
            dry_run=task.dry_run,
        )

        # Delay lets observers subscribe before the first transition fires
        self.scheduler.call_later(
            self.settings.dispatch_delay_seconds,
            lambda: self.run_task(task.id),
            name=f"task:{task.id}",
        )
        return DispatchResponse(task.id, task.status, specialist)

    def get_task(self, task_id: str) -> Optional[Task]:
        return self.store.get(task_id)

    def list_tasks(self, user_id: Optional[str], limit: int = 10) -> list[Task]:
        return self.store.list_recent(limit=limit, user_id=user_id)

    # ─── Execution ────────────────────────────────────────

    async def run_task(self, task_id: str) -> None:
        """Scheduled entry point. Never raises (except on cancellation)."""
        task = self.store.get(task_id)
        if task is None:
            logger.warning("dispatcher.task_missing", task_id=task_id)
            return

        run = _Run()
        try:
            await self.execute_task(task, run)
        except Exception as e:
            logger.warning(
                "dispatcher.task_failed",
                task_id=task.id,
                specialist=task.specialist,
                error=str(e),
            )
            await self._fail(task, run, str(e))

    async def execute_task(self, task: Task, run: Optional[_Run] = None) -> None:
        run = run or _Run()
        await self.scheduler.sleep(self.settings.execution_warmup_seconds)
        if len(task.hops) > 1:
            await self._execute_multi_hop(task, run)
        else:
            await self._execute_single(task, run)

    async def _execute_single(self, task: Task, run: _Run) -> None:
        specialist = task.specialist
        fee = self.gateway.fee_for(specialist)

        self._transition(task, TaskStatus.ROUTING)
        self._add_message(task, "dispatcher", specialist, f'Routing task: "{task.prompt[:80]}..."')

        priced = self.gateway.is_priced(specialist)
        if priced and not task.dry_run:
            self._transition(task, TaskStatus.AWAITING_PAYMENT)
            self._add_message(task, "dispatcher", specialist, "Checking x402 payment...")
            if self.settings.enforce_payments:
                await self._check_balance(task, specialist, fee)

        self._transition(task, TaskStatus.PROCESSING)
        self._add_message(
            task, "dispatcher", specialist, f"Processing with {specialist}... (fee: {fee} USDC)"
        )
        await self.scheduler.sleep(self.settings.specialist_delay_seconds)

        result = await self._call(specialist, task.prompt, run)
        self._add_message(task, specialist, "dispatcher", extract_response_content(result))

        if priced and not task.dry_run:
            await self._charge(task, specialist)

        if result.cost is not None:
            record = self.gateway.record_reported_cost(result.cost)
            task.payments.append(record)
            self._add_message(
                task, "x402", "dispatcher", f"Payment: {record.amount} {record.currency}"
            )

        self._record_outcome(run, specialist, result.success)
        task.result = result
        self._prepare_callback(task, run)
        if result.success:
            self._transition(task, TaskStatus.COMPLETED)
        else:
            error = str(result.data.get("error") or f"{specialist} reported failure")
            self._transition(task, TaskStatus.FAILED, error=error)

        logger.info(
            "dispatcher.task_finished",
            task_id=task.id,
            specialist=specialist,
            status=task.status.value,
            execution_time_ms=result.execution_time_ms,
        )
        await self._send_callback(task, run)

    async def _execute_multi_hop(self, task: Task, run: _Run) -> None:
        hops = task.hops
        total = len(hops)

        self._transition(task, TaskStatus.PROCESSING)
        self._add_message(
            task, "dispatcher", MULTI_HOP, f"Executing multi-hop workflow: {' → '.join(hops)}"
        )

        context = task.prompt
        steps: list[tuple[str, SpecialistResult, str]] = []

        for i, specialist in enumerate(hops):
            step = i + 1
            self._transition(
                task, TaskStatus.PROCESSING, currentStep=step, totalSteps=total
            )
            self._add_message(
                task, "dispatcher", specialist, f"[Step {step}/{total}] Routing to {specialist}..."
            )

            result = await self._call(specialist, context, run)
            content = extract_response_content(result)
            steps.append((specialist, result, content))
            self._add_message(task, specialist, "dispatcher", content)

            if self.gateway.is_priced(specialist) and not task.dry_run:
                await self._charge(task, specialist)

            self._record_outcome(run, specialist, result.success)

            if not result.success:
                task.result = result
                self._prepare_callback(task, run)
                self._transition(
                    task,
                    TaskStatus.FAILED,
                    error=str(result.data.get("error") or f"{specialist} reported failure"),
                    failedStep=step,
                )
                await self._send_callback(task, run)
                return

            if specialist in CONTEXT_PRODUCERS:
                next_context = self._next_context(content)
                if next_context:
                    context = next_context
                    self._add_message(task, "dispatcher", "system", f"Next step: {context}")

            if step < total:
                await self.scheduler.sleep(self.settings.hop_delay_seconds)

        last = steps[-1][1]
        task.result = last.model_copy(
            update={
                "data": {
                    **last.data,
                    "isMultiHop": True,
                    "hops": hops,
                    "steps": [
                        {"specialist": name, "summary": summary}
                        for name, _, summary in steps
                    ],
                }
            }
        )
        self._prepare_callback(task, run)
        self._transition(task, TaskStatus.COMPLETED)
        logger.info("dispatcher.multi_hop_finished", task_id=task.id, hops=hops)
        await self._send_callback(task, run)

    @staticmethod
    def _next_context(content: str) -> Optional[str]:
        """Turn an asset named in a hop's output into the next hop's instruction."""
        tokens = extract_tokens(content)
        if not tokens:
            return None
        # SOL is what we pay with, so prefer another asset as the target
        target = next((t for t in tokens if t != "SOL"), tokens[0])
        return f"Buy 0.1 SOL of {target}"

    # ─── Steps ────────────────────────────────────────────

    async def _call(self, specialist: str, text: str, run: _Run) -> SpecialistResult:
        run.called.append(specialist)
        return await self.registry.invoke(specialist, text)

    async def _check_balance(self, task: Task, specialist: str, fee: str) -> None:
        balances = await self.gateway.balances()
        logger.info(
            "dispatcher.balance_checked",
            task_id=task.id,
            usdc=balances.solana_usdc,
            fee=fee,
        )
        if Decimal(str(balances.solana_usdc)) < Decimal(fee):
            message = (
                f"Insufficient balance: {balances.solana_usdc} USDC < {fee} USDC "
                f"required for {specialist}"
            )
            self._add_message(task, "x402", "dispatcher", message)
            raise InsufficientFundsError(message)

    async def _charge(self, task: Task, specialist: str) -> None:
        record = await self.gateway.charge(specialist, task.prompt)
        task.payments.append(record)
        if record.tx_hash:
            content = f"x402 Fee: {record.amount} USDC → {specialist}"
        else:
            content = f"x402 fee unsettled: {record.amount} USDC → {specialist}"
        self._add_message(task, "x402", "dispatcher", content)

    def _record_outcome(self, run: _Run, specialist: str, success: bool) -> None:
        self.reputation.record_outcome(specialist, success)
        run.recorded.add(specialist)

    # ─── Callbacks ────────────────────────────────────────

    def _prepare_callback(self, task: Task, run: _Run) -> None:
        """Validate the callback URL while the task can still take an audit note."""
        run.callback_allowed = False
        if not task.callback_url or self.callbacks is None:
            return
        try:
            validate_callback_url(task.callback_url)
        except CallbackUrlError as e:
            logger.warning(
                "dispatcher.callback_blocked",
                task_id=task.id,
                url=task.callback_url,
                reason=str(e),
            )
            self._add_message(
                task, "system", "dispatcher", "Security: Blocked invalid callbackUrl (SSRF protection)"
            )
            return
        run.callback_allowed = True

    async def _send_callback(self, task: Task, run: _Run) -> None:
        if not run.callback_allowed or self.callbacks is None:
            return
        await self.callbacks.notify(
            task.callback_url, build_callback_payload(task, task.result)
        )

    # ─── Failure ──────────────────────────────────────────

    async def _fail(self, task: Task, run: _Run, error: str) -> None:
        if task.status.is_terminal:
            logger.error(
                "dispatcher.error_after_terminal",
                task_id=task.id,
                status=task.status.value,
                error=error,
            )
            return
        for specialist in run.called:
            if specialist not in run.recorded:
                self._record_outcome(run, specialist, False)
        self._add_message(task, "system", "dispatcher", f"Task failed: {error}")
        self._prepare_callback(task, run)
        self._transition(task, TaskStatus.FAILED, error=error)
        await self._send_callback(task, run)

    # ─── Mutation helpers ─────────────────────────────────

    def _transition(self, task: Task, status: TaskStatus, **metadata: Any) -> None:
        allowed = VALID_TRANSITIONS[task.status]
        if status not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition from '{task.status.value}' to '{status.value}'. "
                f"Allowed: {sorted(s.value for s in allowed)}"
            )
        task.status = status
        task.metadata.update(metadata)
        self._commit(task)

    def _add_message(self, task: Task, sender: str, recipient: str, content: str) -> None:
        task.messages.append(
            AgentMessage(sender=sender, recipient=recipient, content=content)
        )
        self._commit(task)

    def _commit(self, task: Task) -> None:
        task.updated_at = utcnow()
        self.store.create_or_update(task)
        self.broadcaster.publish(task)
