"""Test fixtures — an isolated in-memory runtime per test.

Learn: Testing pattern for the dispatcher + FastAPI:

1. Each test gets fresh Settings (memory storage, every delay set to 0)
2. build_runtime() wires real stores and services around two fakes:
   a settlement wallet that records transfers, and a callback notifier
   whose HTTP transport records requests instead of sending them
3. The app is created around that runtime, so HTTP calls and direct
   orchestrator calls see the same state
4. `await runtime.scheduler.drain()` waits for scheduled task runs

No Redis, no network, no files (unless a test asks for tmp_path).
"""

import json

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from hivemind.config import Settings
from hivemind.main import create_app
from hivemind.runtime import build_runtime
from hivemind.services.settlement import Balances, SettlementError, SettlementReceipt
from hivemind.services.webhook_service import CallbackNotifier

API_KEY = "test-key-alpha"
OTHER_API_KEY = "test-key-bravo"


class FakeSettlement:
    """Settlement wallet double: records transfers, optionally fails them."""

    def __init__(self, usdc: float = 10.0, fail: bool = False):
        self.balances = Balances(solana_sol=1.5, solana_usdc=usdc)
        self.fail = fail
        self.transfers: list[dict] = []

    async def get_balances(self) -> Balances:
        return self.balances

    async def execute_payment(self, recipient, amount, currency, network):
        if self.fail:
            raise SettlementError("wallet offline")
        self.transfers.append(
            {"recipient": recipient, "amount": amount, "currency": currency, "network": network}
        )
        return SettlementReceipt(
            tx_hash=f"tx-{len(self.transfers)}", network=network, amount=amount
        )


class CallbackRecorder:
    """httpx transport handler that stores every callback POST."""

    def __init__(self, status_code: int = 200):
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json={"ok": True})

    @property
    def payloads(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests]


def make_settings(**overrides) -> Settings:
    values = dict(
        storage_backend="memory",
        api_keys=[API_KEY, OTHER_API_KEY],
        jwt_secret="test-secret-with-enough-length-for-hs256",
        dispatch_delay_seconds=0,
        execution_warmup_seconds=0,
        specialist_delay_seconds=0,
        hop_delay_seconds=0,
        treasury_wallet_evm="0xTreasuryEvm",
        treasury_wallet_solana="TreasurySolanaWallet",
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture()
def settings() -> Settings:
    return make_settings()


@pytest.fixture()
def settlement() -> FakeSettlement:
    return FakeSettlement()


@pytest.fixture()
def callbacks() -> CallbackRecorder:
    return CallbackRecorder()


@pytest_asyncio.fixture()
async def runtime(settings, settlement, callbacks):
    """Fully wired runtime with in-memory repositories."""
    rt = build_runtime(
        settings,
        settlement=settlement,
        callbacks=CallbackNotifier(transport=httpx.MockTransport(callbacks)),
    )
    yield rt
    await rt.aclose()


@pytest_asyncio.fixture()
async def make_runtime(callbacks):
    """Factory for runtimes with non-default settings or wallet behavior."""
    built = []

    def factory(settlement=None, **overrides):
        rt = build_runtime(
            make_settings(**overrides),
            settlement=settlement or FakeSettlement(),
            callbacks=CallbackNotifier(transport=httpx.MockTransport(callbacks)),
        )
        built.append(rt)
        return rt

    yield factory
    for rt in built:
        await rt.aclose()


@pytest.fixture()
def orchestrator(runtime):
    return runtime.orchestrator


@pytest.fixture()
def app(runtime):
    return create_app(runtime)


def _client(app, headers: dict) -> AsyncClient:
    return AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test", headers=headers
    )


@pytest_asyncio.fixture()
async def client(app):
    """HTTP client authenticated with API_KEY."""
    async with _client(app, {"x-api-key": API_KEY}) as ac:
        yield ac


@pytest_asyncio.fixture()
async def other_client(app):
    """A second, different caller — for ownership checks."""
    async with _client(app, {"x-api-key": OTHER_API_KEY}) as ac:
        yield ac


@pytest_asyncio.fixture()
async def unauthenticated_client(app):
    """HTTP client with no credentials — for 401 and open-route tests."""
    async with _client(app, {}) as ac:
        yield ac
