"""Settlement collaborator — custodial wallet API (AgentWallet).

Learn: The dispatcher never signs anything itself. Fees are executed by
an external custodial wallet over HTTP, and balances are read from the
same service. Only two calls are needed:

    GET  {api}/wallets/{username}/balances
    POST {api}/wallets/{username}/actions/transfer

Anything that goes wrong on the wire surfaces as SettlementError; the
payment gateway decides what a failed settlement means for the task.
"""

from dataclasses import asdict, dataclass
from typing import Any, Optional, Protocol

import httpx
import structlog

logger = structlog.get_logger()


class SettlementError(Exception):
    """Raised when a fee could not be settled."""


class SettlementUnavailableError(SettlementError):
    """Raised when no settlement credentials are configured."""


@dataclass
class Balances:
    solana_sol: float = 0.0
    solana_usdc: float = 0.0
    evm_eth: float = 0.0
    evm_usdc: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "solana": {"sol": self.solana_sol, "usdc": self.solana_usdc},
            "evm": {"eth": self.evm_eth, "usdc": self.evm_usdc},
        }


@dataclass
class SettlementReceipt:
    tx_hash: str
    network: str
    amount: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class Settlement(Protocol):
    async def get_balances(self) -> Balances:
        ...

    async def execute_payment(
        self, recipient: str, amount: str, currency: str, network: str
    ) -> SettlementReceipt:
        ...


def _amount(entries: list[dict], asset: str, chain: Optional[str] = None) -> float:
    for entry in entries:
        if entry.get("asset") != asset:
            continue
        if chain is not None and entry.get("chain") != chain:
            continue
        try:
            return float(entry["rawValue"]) / 10 ** int(entry.get("decimals", 0))
        except (KeyError, TypeError, ValueError):
            return 0.0
    return 0.0


class AgentWalletClient:
    """HTTP client for the custodial wallet."""

    def __init__(
        self,
        api_url: str,
        username: str,
        token: str,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.username = username
        self.token = token
        self._client = httpx.AsyncClient(
            base_url=self.api_url, timeout=timeout, transport=transport
        )

    @property
    def configured(self) -> bool:
        return bool(self.token)

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}

    async def get_balances(self) -> Balances:
        """Read balances. Returns zeros (and logs) when the wallet is unreachable."""
        if not self.configured:
            logger.warning("settlement.balances_unavailable", reason="no token")
            return Balances()
        try:
            r = await self._client.get(
                f"/wallets/{self.username}/balances", headers=self._headers()
            )
            r.raise_for_status()
            data = r.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("settlement.balances_failed", error=str(e))
            return Balances()

        solana = (data.get("solana") or {}).get("balances") or []
        evm = (data.get("evm") or {}).get("balances") or []
        return Balances(
            solana_sol=_amount(solana, "sol"),
            solana_usdc=_amount(solana, "usdc"),
            evm_eth=_amount(evm, "eth", chain="base"),
            evm_usdc=_amount(evm, "usdc", chain="base"),
        )

    async def execute_payment(
        self, recipient: str, amount: str, currency: str, network: str
    ) -> SettlementReceipt:
        if not self.configured:
            raise SettlementUnavailableError("No AgentWallet token configured")
        try:
            r = await self._client.post(
                f"/wallets/{self.username}/actions/transfer",
                headers=self._headers(),
                json={
                    "to": recipient,
                    "amount": amount,
                    "asset": currency.lower(),
                    "chain": network,
                },
            )
            r.raise_for_status()
            data = r.json()
        except httpx.HTTPError as e:
            raise SettlementError(f"Settlement request failed: {e}") from e
        except ValueError as e:
            raise SettlementError("Settlement response was not JSON") from e

        tx_hash = data.get("txHash") or data.get("signature") or data.get("eventId")
        if not data.get("success", True) or not tx_hash:
            raise SettlementError(data.get("error") or "Settlement returned no transaction reference")
        logger.info("settlement.executed", recipient=recipient, amount=amount, tx_hash=tx_hash)
        return SettlementReceipt(tx_hash=tx_hash, network=network, amount=amount)

    async def aclose(self) -> None:
        await self._client.aclose()
