"""Magos — price predictions, risk assessment and token analysis."""

import re

from hivemind.models import SpecialistResult
from hivemind.specialists.base import Specialist

_TOKEN = re.compile(r"\b(SOL|BTC|ETH|BONK|WIF|JUP)\b", re.IGNORECASE)
_HORIZON = re.compile(r"(\d+)\s*(h|hour|hr|d|day|w|week|m|min)", re.IGNORECASE)
_ANALYSIS_INTENT = re.compile(
    r"analy[sz]e|analysis|deep dive|good buy|should i|recommend|is \w+ a good"
)

MOCK_PRICES = {
    "SOL": 125.50,
    "BTC": 67500.0,
    "ETH": 3450.0,
    "BONK": 0.000025,
    "WIF": 2.15,
    "JUP": 0.85,
}

RISK_FACTORS = {
    "low": ["Verified contract", "High liquidity", "Strong holder distribution"],
    "medium": ["Some whale concentration", "Moderate liquidity"],
    "high": ["Low liquidity", "Concentrated holdings", "Recent large sells"],
    "extreme": ["Honeypot indicators", "Extreme whale control", "Suspicious contract"],
}


class Magos(Specialist):
    id = "magos"
    name = "Magos"
    description = "Market analysis & predictions"
    capabilities = ("predictions", "risk-analysis", "price-targets", "technical-analysis")

    async def handle(self, text: str) -> SpecialistResult:
        lower = text.lower()
        match = _TOKEN.search(text)
        token = match.group(1).upper() if match else "SOL"
        rng = self.rng(text)

        if "predict" in lower or "price" in lower or "forecast" in lower:
            data = self._predict(rng, token, self._horizon(text))
            return self.result(data, confidence=data["confidence"])
        if "risk" in lower or "danger" in lower or "safe" in lower:
            return self.result(self._risk(rng, token), confidence=0.7)
        if _ANALYSIS_INTENT.search(lower):
            data = self._analyze(rng, token)
            return self.result(data, confidence=data["analysis"]["sentiment"]["confidence"])

        return self.result(
            {
                "insight": (
                    f'Magos analysis of "{text}": Market conditions suggest cautious '
                    "optimism. Multiple factors indicate potential volatility ahead. "
                    "Consider dollar-cost averaging for major positions."
                ),
                "relatedTokens": ["SOL", "BTC", "ETH"],
            },
            confidence=0.65,
        )

    @staticmethod
    def _horizon(text: str) -> str:
        match = _HORIZON.search(text)
        if not match:
            return "4h"
        return f"{int(match.group(1))}{match.group(2).lower()[0]}"

    @staticmethod
    def _predict(rng, token: str, horizon: str) -> dict:
        current = MOCK_PRICES.get(token, 1.0)
        volatility = 0.05 + rng.random() * 0.1
        bullish = rng.random() > 0.5
        change = volatility * current * (1 if bullish else -1)
        direction = "bullish" if bullish else "bearish"
        return {
            "token": token,
            "currentPrice": current,
            "predictedPrice": current + change,
            "timeHorizon": horizon,
            "confidence": round(0.6 + rng.random() * 0.3, 2),
            "direction": direction,
            "reasoning": (
                f"Based on recent momentum and volume analysis for {token}. "
                + (
                    "Buying pressure detected with accumulation pattern."
                    if bullish
                    else "Distribution pattern suggests near-term weakness."
                )
            ),
        }

    @staticmethod
    def _risk(rng, token: str) -> dict:
        score = rng.random()
        if score < 0.25:
            level = "low"
        elif score < 0.5:
            level = "medium"
        elif score < 0.75:
            level = "high"
        else:
            level = "extreme"
        recommendation = (
            "Proceed with standard position sizing"
            if level in ("low", "medium")
            else "Avoid or use minimal exposure"
        )
        return {
            "token": token,
            "riskLevel": level,
            "riskScore": round(score, 3),
            "factors": RISK_FACTORS[level],
            "recommendation": recommendation,
            "summary": f"{token} risk level: {level}. {recommendation}",
        }

    def _analyze(self, rng, token: str) -> dict:
        prediction = self._predict(rng, token, "24h")
        risk = self._risk(rng, token)
        pct = round(prediction["confidence"] * 100)
        return {
            "token": token,
            "analysis": {
                "technicals": {
                    "trend": prediction["direction"],
                    "priceTarget": prediction["predictedPrice"],
                    "support": prediction["currentPrice"] * 0.95,
                    "resistance": prediction["currentPrice"] * 1.05,
                },
                "fundamentals": {
                    "riskLevel": risk["riskLevel"],
                    "factors": risk["factors"],
                },
                "sentiment": {
                    "overall": "positive" if prediction["direction"] == "bullish" else "negative",
                    "confidence": prediction["confidence"],
                },
            },
            "summary": (
                f"{token} shows {prediction['direction']} signals with {pct}% confidence. "
                f"Risk level: {risk['riskLevel']}. {risk['recommendation']}"
            ),
        }
