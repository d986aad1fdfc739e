"""Bankr — wallet actions (swaps, transfers, balances, DCA).

Every action is simulated; nothing here signs a transaction. Swaps and
transfers report the network fee they would cost as `result.cost`.
"""

import re

from hivemind.models import PaymentInfo, SpecialistResult
from hivemind.specialists.base import Specialist

_AMOUNT = re.compile(r"([\d.]+)\s*(SOL|USDC|BONK|WIF|JUP)", re.IGNORECASE)
_ADDRESS = re.compile(r"[1-9A-HJ-NP-Za-km-z]{32,44}")
_SWAP = re.compile(r"(?:swap|buy|trade|sell)\s+(?:([\d.]+)\s+)?(\w+)\s+(?:for|to|of)\s+(\w+)", re.IGNORECASE)
_FREQUENCY = re.compile(r"(daily|weekly|hourly|monthly)")

NETWORK_FEE = PaymentInfo(amount="0.000005", currency="SOL", network="solana", recipient="network")

SOL_USD = 125.5


class Bankr(Specialist):
    id = "bankr"
    name = "Bankr"
    description = "Wallet operations"
    capabilities = ("swap", "transfer", "balance", "dca", "monitoring")

    def __init__(self, wallet_address: str = "5xUugg8ysgqpcGneM6qpM2AZ8ZGuMaH5TnGNWdCQC1Z1"):
        self.wallet_address = wallet_address

    async def handle(self, text: str) -> SpecialistResult:
        lower = text.lower()
        amount_match = _AMOUNT.search(text)
        amount = amount_match.group(1) if amount_match else None
        token = amount_match.group(2).upper() if amount_match else "SOL"
        address_match = _ADDRESS.search(text)
        address = address_match.group(0) if address_match else self.wallet_address

        if any(w in lower for w in ("swap", "buy", "sell", "trade")):
            data = self._swap(text, amount)
            return self.result(data, confidence=0.95, cost=NETWORK_FEE)
        if "transfer" in lower or "send" in lower:
            data = {
                "type": "transfer",
                "status": "simulated",
                "details": {
                    "to": address,
                    "amount": amount or "0.1",
                    "token": token,
                    "estimatedFee": "0.000005 SOL",
                    "note": "Transfer simulated for safety.",
                },
            }
            return self.result(data, confidence=0.95, cost=NETWORK_FEE)
        if any(w in lower for w in ("balance", "wallet", "holdings")):
            return self.result(self._balance(address), confidence=0.95)
        if any(w in lower for w in ("dca", "recurring", "auto-buy")):
            freq = _FREQUENCY.search(lower)
            data = {
                "type": "dca",
                "status": "simulated",
                "details": {
                    "token": token,
                    "amount": amount or "0.1",
                    "frequency": freq.group(1) if freq else "daily",
                    "summary": f"DCA plan: {amount or '0.1'} {token} {freq.group(1) if freq else 'daily'}",
                },
            }
            return self.result(data, confidence=0.95)

        return self.result(self._balance(address), confidence=0.95)

    @staticmethod
    def _swap(text: str, amount) -> dict:
        match = _SWAP.search(text)
        if match:
            qty = match.group(1) or amount or "0.1"
            src, dst = match.group(2).upper(), match.group(3).upper()
        else:
            qty, src, dst = amount or "0.1", "SOL", "USDC"
        try:
            estimated = f"{float(qty) * SOL_USD * 0.98:.2f}"
        except ValueError:
            estimated = "0"
        return {
            "type": "swap",
            "status": "simulated",
            "details": {
                "from": src,
                "to": dst,
                "amount": qty,
                "estimatedOutput": estimated,
                "estimatedFee": "0.000005 SOL",
                "summary": f"Swap simulated: {qty} {src} → {dst}",
            },
        }

    @staticmethod
    def _balance(address: str) -> dict:
        return {
            "type": "balance",
            "status": "simulated",
            "details": {
                "address": address,
                "sol": 0.97,
                "tokens": {},
                "summary": f"{address[:8]}... holds 0.97 SOL",
            },
        }
