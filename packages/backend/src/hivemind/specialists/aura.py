"""Aura — social sentiment, trending topics and alpha signals."""

import re

from hivemind.models import SpecialistResult
from hivemind.specialists.base import Specialist

_TOPIC = re.compile(r"\b(SOL|BTC|ETH|BONK|WIF|JUP|PEPE|DOGE)\b", re.IGNORECASE)

TRENDING = (
    ("BONK", 8500, "fomo"),
    ("WIF", 6200, "bullish"),
    ("SOL", 15000, "bullish"),
    ("JUP", 4800, "neutral"),
    ("RENDER", 3200, "bullish"),
)

SENTIMENTS = ("bullish", "bearish", "neutral", "fomo", "fud")


class Aura(Specialist):
    id = "aura"
    name = "Aura"
    description = "Social sentiment analysis"
    capabilities = ("sentiment", "trending", "alpha-detection", "influencer-tracking")

    async def handle(self, text: str) -> SpecialistResult:
        lower = text.lower()
        match = _TOPIC.search(text)
        topic = match.group(1).upper() if match else "crypto"
        rng = self.rng(text)

        if any(w in lower for w in ("trending", "hot", "popular")):
            return self.result(self._trending(rng, "meme" if "meme" in lower else "all"), confidence=0.75)
        if "alpha" in lower or "gem" in lower:
            return self.result(self._alpha(topic), confidence=0.7)

        data = self._sentiment(rng, topic)
        return self.result(data, confidence=round(abs(data["score"]), 2))

    @staticmethod
    def _sentiment(rng, topic: str) -> dict:
        sentiment = rng.choice(SENTIMENTS)
        base = {
            "bullish": 0.6 + rng.random() * 0.4,
            "bearish": -(0.6 + rng.random() * 0.4),
            "neutral": -0.2 + rng.random() * 0.4,
            "fomo": 0.8 + rng.random() * 0.2,
            "fud": -(0.8 + rng.random() * 0.2),
        }[sentiment]
        intensity = (
            "strongly" if abs(base) > 0.7 else "moderately" if abs(base) > 0.4 else "slightly"
        )
        summaries = {
            "bullish": f"{topic} sentiment is {intensity} bullish. Social chatter indicates growing optimism.",
            "bearish": f"{topic} sentiment is {intensity} bearish. Negative sentiment dominates social channels.",
            "neutral": f"{topic} sentiment is neutral. Mixed opinions with no clear directional bias.",
            "fomo": f"{topic} is in FOMO territory. Intense hype across social platforms.",
            "fud": f"{topic} is facing significant FUD. Verify claims before acting.",
        }
        return {
            "topic": topic,
            "sentiment": sentiment,
            "score": round(base, 3),
            "volume": 1000 + int(rng.random() * 50000),
            "sources": ["X/Twitter", "Discord", "Telegram"],
            "summary": summaries[sentiment],
        }

    @staticmethod
    def _trending(rng, category: str) -> dict:
        trending = [
            {
                "rank": i + 1,
                "topic": topic,
                "mentions": mentions + int(rng.random() * 2000),
                "sentiment": sentiment,
                "change24h": round(-20 + rng.random() * 60, 2),
            }
            for i, (topic, mentions, sentiment) in enumerate(TRENDING)
        ]
        top = "\n".join(f"• {t['topic']} ({t['sentiment']})" for t in trending[:3])
        return {
            "category": category,
            "trending": trending,
            "summary": f"Trending Topics:\n{top}",
        }

    @staticmethod
    def _alpha(topic: str) -> dict:
        opportunities = [
            {"token": "WIF", "signal": "Whale accumulation", "confidence": 0.72},
            {"token": "JUP", "signal": "Rising developer activity", "confidence": 0.65},
        ]
        return {
            "topic": topic,
            "opportunities": opportunities,
            "summary": (
                f"Found {len(opportunities)} potential alpha signals. "
                f"Highest confidence: {opportunities[0]['signal']}"
            ),
        }
