"""x402 payment gateway — fee table, settlement and inbound replay guard.

Learn: Two directions of money flow through here.

Outbound: when the orchestrator calls a priced specialist, charge() pays
the specialist's fee through the settlement collaborator and returns a
PaymentRecord for the task. A failed settlement still yields a record,
marked pending with the error attached; whether that also fails the task
is a setting (fail_on_settlement_error), off by default.

Inbound: a caller hitting a specialist directly must present an x402
payment signature. verify_inbound_payment() either returns (free, or a
fresh well-formed signature which is now consumed) or raises one of the
PaymentError subclasses below. The HTTP layer turns all of them into 402.
"""

import base64
import json
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import structlog

from hivemind.config import Settings
from hivemind.models import PaymentInfo, PaymentRecord
from hivemind.services.settlement import Balances, Settlement, SettlementError
from hivemind.store.payments import PaymentLog
from hivemind.store.signatures import UsedSignatureStore

logger = structlog.get_logger()

X402_VERSION = 2
BASE_MAINNET = "eip155:8453"
SOLANA_DEVNET = "solana:EtWTRABZaYq6iMfeYKouRu166VU2xqa1"
USDC_DECIMALS = 6

DEFAULT_PRICING: dict[str, tuple[str, str]] = {
    "magos": ("0.001", "Market analysis & predictions"),
    "aura": ("0.0005", "Social sentiment analysis"),
    "bankr": ("0.0001", "Wallet operations"),
    "scribe": ("0.0001", "General assistant & fallback"),
    "seeker": ("0.0001", "Web research & search"),
    "general": ("0", "General queries"),
    "multi-hop": ("0", "Orchestrated multi-agent workflow"),
}


class PaymentError(Exception):
    """Base for inbound payment rejections."""


class PaymentRequiredError(PaymentError):
    """A fee is owed and no payment signature was presented."""

    def __init__(self, specialist: str, fee: str, requirements: dict[str, Any]):
        super().__init__(f"Payment required: {fee} USDC for {specialist}")
        self.specialist = specialist
        self.fee = fee
        self.requirements = requirements

    @property
    def encoded(self) -> str:
        return encode_requirements(self.requirements)


class PaymentReplayError(PaymentError):
    """The presented signature was already consumed."""


class InvalidPaymentSignatureError(PaymentError):
    """The presented signature is not well formed."""


class PaymentSettlementError(Exception):
    """Raised by charge() when settlement fails and failures are fatal."""


def encode_requirements(requirements: dict[str, Any]) -> str:
    return base64.b64encode(json.dumps(requirements).encode()).decode()


def decode_requirements(encoded: str) -> dict[str, Any]:
    return json.loads(base64.b64decode(encoded))


def _normalize_fee(value: Any) -> str:
    try:
        fee = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Invalid fee: {value!r}") from None
    if fee < 0:
        raise ValueError(f"Fee must not be negative: {value!r}")
    return "0" if fee == 0 else f"{fee.normalize():f}"


class PaymentGateway:
    def __init__(
        self,
        settings: Settings,
        settlement: Settlement,
        signatures: UsedSignatureStore,
        payment_log: PaymentLog,
    ):
        self.settings = settings
        self.settlement = settlement
        self.signatures = signatures
        self.payment_log = payment_log
        self.pricing: dict[str, tuple[str, str]] = dict(DEFAULT_PRICING)
        for specialist, fee in settings.fee_overrides.items():
            description = self.pricing.get(specialist, ("0", specialist))[1]
            self.pricing[specialist] = (_normalize_fee(fee), description)

    # ─── Fee table ────────────────────────────────────────

    def fee_for(self, specialist: str) -> str:
        return self.pricing.get(specialist, ("0", ""))[0]

    def description_for(self, specialist: str) -> str:
        return self.pricing.get(specialist, ("0", ""))[1]

    def is_priced(self, specialist: str) -> bool:
        return Decimal(self.fee_for(specialist)) > 0

    def recipient_for(self, specialist: str) -> str:
        return self.settings.specialist_wallets.get(specialist, specialist)

    # ─── Outbound: paying specialists ─────────────────────

    async def charge(self, specialist: str, context: str = "") -> PaymentRecord:
        """Pay the specialist's fee and log the resulting record."""
        fee = self.fee_for(specialist)
        recipient = self.recipient_for(specialist)
        currency, network = self.settings.fee_currency, self.settings.fee_network
        try:
            receipt = await self.settlement.execute_payment(
                recipient, fee, currency, network
            )
        except SettlementError as e:
            logger.warning(
                "payments.settlement_failed",
                specialist=specialist,
                amount=fee,
                error=str(e),
            )
            record = PaymentRecord.create(
                fee, currency, network, recipient, error=str(e)
            )
            self.payment_log.append(record)
            if self.settings.fail_on_settlement_error:
                raise PaymentSettlementError(
                    f"Fee settlement failed for {specialist}: {e}"
                ) from e
            return record

        record = PaymentRecord.create(
            fee, currency, network, recipient, tx_hash=receipt.tx_hash
        )
        self.payment_log.append(record)
        logger.info(
            "payments.fee_settled",
            specialist=specialist,
            amount=fee,
            tx_hash=receipt.tx_hash,
            context=context[:80],
        )
        return record

    async def balances(self) -> Balances:
        return await self.settlement.get_balances()

    def record_reported_cost(self, cost: PaymentInfo) -> PaymentRecord:
        """Log a cost a specialist reported for itself (e.g. network fees)."""
        record = PaymentRecord.create(
            cost.amount, cost.currency, cost.network, cost.recipient
        )
        self.payment_log.append(record)
        return record

    # ─── Inbound: x402 gating ─────────────────────────────

    def payment_requirements(self, specialist: str) -> dict[str, Any]:
        """x402 v2 document: Base USDC first, Solana devnet as fallback."""
        fee = Decimal(self.fee_for(specialist))
        amount = str(int(fee * 10**USDC_DECIMALS))
        s = self.settings
        return {
            "x402Version": X402_VERSION,
            "accepts": [
                {
                    "scheme": "exact",
                    "network": BASE_MAINNET,
                    "asset": s.base_usdc_asset,
                    "amount": amount,
                    "payTo": s.treasury_wallet_evm,
                    "description": f"Query the {specialist} specialist",
                    "extra": {
                        "name": f"{specialist} specialist",
                        "description": f"Query the {specialist} AI specialist via Hivemind",
                        "feePayer": s.treasury_wallet_evm,
                    },
                },
                {
                    "scheme": "exact",
                    "network": SOLANA_DEVNET,
                    "asset": s.solana_usdc_mint,
                    "amount": amount,
                    "payTo": s.treasury_wallet_solana,
                    "description": f"Query the {specialist} specialist (Solana fallback)",
                    "extra": {
                        "name": f"{specialist} specialist",
                        "description": f"Query the {specialist} AI specialist (Solana fallback)",
                        "feePayer": s.treasury_wallet_solana,
                    },
                },
            ],
        }

    def verify_inbound_payment(self, specialist: str, signature: Optional[str]) -> None:
        """Gate a direct specialist call. Returns when the call may proceed."""
        fee = self.fee_for(specialist)
        if Decimal(fee) == 0:
            return
        if not signature:
            logger.info("payments.payment_required", specialist=specialist, fee=fee)
            raise PaymentRequiredError(
                specialist, fee, self.payment_requirements(specialist)
            )
        if signature in self.signatures:
            logger.warning("payments.signature_replayed", specialist=specialist)
            raise PaymentReplayError(
                "Payment signature already used (replay protection)"
            )
        if len(signature) < self.settings.min_signature_length:
            raise InvalidPaymentSignatureError("Invalid payment signature format")
        if not self.signatures.consume(signature):
            # Consumed by another thread since the check above
            logger.warning("payments.signature_replayed", specialist=specialist)
            raise PaymentReplayError(
                "Payment signature already used (replay protection)"
            )
        logger.info("payments.signature_accepted", specialist=specialist, fee=fee)

    def prune_signatures(self) -> int:
        return self.signatures.prune(
            self.settings.signature_retention_max,
            self.settings.signature_retention_keep,
        )
