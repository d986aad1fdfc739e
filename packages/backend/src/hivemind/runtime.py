"""Runtime — the object graph, built once per process (or per test).

Learn: There are no module-level stores or singletons. build_runtime()
constructs every store and service from a Settings instance and wires
them together; the app keeps the result on `app.state.runtime`. Tests
build their own runtime with in-memory repositories and fake
collaborators, so each test case gets isolated state.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from hivemind.config import Settings
from hivemind.dispatcher.orchestrator import Orchestrator
from hivemind.dispatcher.router import Router
from hivemind.dispatcher.scheduler import Scheduler
from hivemind.realtime.broadcaster import EventBroadcaster
from hivemind.services.payment_gateway import PaymentGateway
from hivemind.services.reputation import ReputationLedger
from hivemind.services.settlement import AgentWalletClient, Settlement
from hivemind.services.webhook_service import CallbackNotifier
from hivemind.specialists import SpecialistRegistry, build_default_registry
from hivemind.store import Repository, build_repositories
from hivemind.store.payments import PaymentLog
from hivemind.store.signatures import UsedSignatureStore
from hivemind.store.tasks import TaskStore

logger = structlog.get_logger()


@dataclass
class Runtime:
    settings: Settings
    tasks: TaskStore
    payment_log: PaymentLog
    signatures: UsedSignatureStore
    reputation: ReputationLedger
    registry: SpecialistRegistry
    router: Router
    scheduler: Scheduler
    broadcaster: EventBroadcaster
    settlement: Settlement
    gateway: PaymentGateway
    callbacks: CallbackNotifier
    orchestrator: Orchestrator

    def start_background_jobs(self) -> None:
        """Periodic work that lives as long as the app (signature pruning)."""
        self.scheduler.every(
            self.settings.signature_prune_interval_seconds,
            self.gateway.prune_signatures,
            name="signatures:prune",
        )

    async def aclose(self) -> None:
        await self.scheduler.shutdown()
        await self.callbacks.aclose()
        close = getattr(self.settlement, "aclose", None)
        if close is not None:
            await close()


def build_runtime(
    settings: Settings,
    *,
    repositories: Optional[dict[str, Repository]] = None,
    settlement: Optional[Settlement] = None,
    callbacks: Optional[CallbackNotifier] = None,
    registry: Optional[SpecialistRegistry] = None,
) -> Runtime:
    repos = repositories or build_repositories(
        settings.storage_backend, settings.data_dir, settings.sqlite_url
    )

    tasks = TaskStore(repos["tasks"])
    payment_log = PaymentLog(repos["payments"])
    signatures = UsedSignatureStore(repos["used_signatures"])
    reputation = ReputationLedger(repos["reputation"])

    registry = registry or build_default_registry(settings.treasury_wallet_solana)
    router = Router()
    scheduler = Scheduler()
    broadcaster = EventBroadcaster(tasks)

    settlement = settlement or AgentWalletClient(
        settings.agentwallet_api_url,
        settings.agentwallet_username,
        settings.agentwallet_token,
        timeout=settings.settlement_timeout_seconds,
    )
    gateway = PaymentGateway(settings, settlement, signatures, payment_log)
    callbacks = callbacks or CallbackNotifier(timeout=settings.callback_timeout_seconds)

    orchestrator = Orchestrator(
        settings=settings,
        store=tasks,
        broadcaster=broadcaster,
        router=router,
        registry=registry,
        gateway=gateway,
        reputation=reputation,
        scheduler=scheduler,
        callbacks=callbacks,
    )

    logger.info(
        "hivemind.runtime_built",
        storage=settings.storage_backend,
        specialists=registry.ids(),
        enforce_payments=settings.enforce_payments,
    )
    return Runtime(
        settings=settings,
        tasks=tasks,
        payment_log=payment_log,
        signatures=signatures,
        reputation=reputation,
        registry=registry,
        router=router,
        scheduler=scheduler,
        broadcaster=broadcaster,
        settlement=settlement,
        gateway=gateway,
        callbacks=callbacks,
        orchestrator=orchestrator,
    )
