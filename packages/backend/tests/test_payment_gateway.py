"""Payment gateway tests — fee table, outbound charges, inbound x402 gating.

Learn: The inbound check order matters and is pinned here: free → pass,
no signature → PaymentRequired, already used → Replay, too short →
InvalidSignature, otherwise the signature is consumed exactly once.
"""

from decimal import Decimal

import pytest

from hivemind.services.payment_gateway import (
    BASE_MAINNET,
    SOLANA_DEVNET,
    InvalidPaymentSignatureError,
    PaymentGateway,
    PaymentReplayError,
    PaymentRequiredError,
    PaymentSettlementError,
    decode_requirements,
)
from hivemind.store.payments import PaymentLog
from hivemind.store.repository import MemoryRepository
from hivemind.store.signatures import UsedSignatureStore

from conftest import FakeSettlement, make_settings

SIGNATURE = "5" * 64


def _gateway(settlement=None, **overrides):
    return PaymentGateway(
        make_settings(**overrides),
        settlement or FakeSettlement(),
        UsedSignatureStore(MemoryRepository("used_signatures")),
        PaymentLog(MemoryRepository("payments")),
    )


# ═══════════════════════════════════════════════════════════
# Fee table
# ═══════════════════════════════════════════════════════════


def test_default_fees():
    gw = _gateway()
    assert gw.fee_for("magos") == "0.001"
    assert gw.fee_for("aura") == "0.0005"
    assert gw.fee_for("bankr") == "0.0001"
    assert gw.fee_for("general") == "0"
    assert gw.fee_for("multi-hop") == "0"
    assert gw.fee_for("unknown") == "0"


def test_fee_overrides_are_normalized():
    gw = _gateway(fee_overrides={"magos": 0.0020, "general": 0})
    assert gw.fee_for("magos") == "0.002"
    assert gw.fee_for("general") == "0"
    assert gw.description_for("magos") == "Market analysis & predictions"


def test_negative_fee_override_rejected():
    with pytest.raises(ValueError):
        _gateway(fee_overrides={"magos": -1})


def test_is_priced():
    gw = _gateway()
    assert gw.is_priced("magos")
    assert not gw.is_priced("general")


def test_recipient_defaults_to_specialist_id():
    gw = _gateway(specialist_wallets={"magos": "MagosWallet111"})
    assert gw.recipient_for("magos") == "MagosWallet111"
    assert gw.recipient_for("aura") == "aura"


# ═══════════════════════════════════════════════════════════
# Outbound charges
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_charge_settles_and_logs():
    settlement = FakeSettlement()
    gw = _gateway(settlement)

    record = await gw.charge("aura", "what's hot")

    assert record.status == "completed"
    assert record.tx_hash == "tx-1"
    assert record.amount == "0.0005"
    assert gw.payment_log.all() == [record]
    assert settlement.transfers[0]["recipient"] == "aura"


@pytest.mark.asyncio
async def test_charge_failure_returns_pending_record():
    gw = _gateway(FakeSettlement(fail=True))

    record = await gw.charge("magos")

    assert record.status == "pending"
    assert record.error == "wallet offline"
    assert len(gw.payment_log.all()) == 1


@pytest.mark.asyncio
async def test_charge_failure_raises_when_fatal():
    gw = _gateway(FakeSettlement(fail=True), fail_on_settlement_error=True)
    with pytest.raises(PaymentSettlementError):
        await gw.charge("magos")
    # The attempt is still on the audit trail
    assert gw.payment_log.all()[0].status == "pending"


@pytest.mark.asyncio
async def test_balances_come_from_settlement():
    gw = _gateway(FakeSettlement(usdc=3.25))
    balances = await gw.balances()
    assert balances.to_dict()["solana"]["usdc"] == 3.25


# ═══════════════════════════════════════════════════════════
# Inbound x402
# ═══════════════════════════════════════════════════════════


def test_free_specialist_needs_no_signature():
    _gateway().verify_inbound_payment("general", None)


def test_missing_signature_requires_payment():
    gw = _gateway()
    with pytest.raises(PaymentRequiredError) as exc:
        gw.verify_inbound_payment("magos", None)

    doc = exc.value.requirements
    assert doc["x402Version"] == 2
    assert [a["network"] for a in doc["accepts"]] == [BASE_MAINNET, SOLANA_DEVNET]
    assert all(a["amount"] == "1000" for a in doc["accepts"])
    assert doc["accepts"][0]["payTo"] == "0xTreasuryEvm"
    assert doc["accepts"][1]["payTo"] == "TreasurySolanaWallet"
    assert decode_requirements(exc.value.encoded) == doc


def test_requirement_amount_in_usdc_base_units():
    doc = _gateway().payment_requirements("aura")
    assert doc["accepts"][0]["amount"] == str(int(Decimal("0.0005") * 10**6))


def test_valid_signature_is_consumed_once():
    gw = _gateway()
    gw.verify_inbound_payment("magos", SIGNATURE)
    assert SIGNATURE in gw.signatures

    with pytest.raises(PaymentReplayError):
        gw.verify_inbound_payment("magos", SIGNATURE)


def test_replay_rejected_across_specialists():
    gw = _gateway()
    gw.verify_inbound_payment("magos", SIGNATURE)
    with pytest.raises(PaymentReplayError):
        gw.verify_inbound_payment("aura", SIGNATURE)


def test_short_signature_rejected_and_not_consumed():
    gw = _gateway()
    with pytest.raises(InvalidPaymentSignatureError):
        gw.verify_inbound_payment("magos", "too-short")
    assert len(gw.signatures) == 0


def test_prune_signatures_uses_retention_settings():
    gw = _gateway(signature_retention_max=3, signature_retention_keep=2)
    for i in range(4):
        gw.verify_inbound_payment("magos", f"{i}" * 32)

    assert gw.prune_signatures() == 2
    assert len(gw.signatures) == 2
    assert "3" * 32 in gw.signatures
    assert "0" * 32 not in gw.signatures
