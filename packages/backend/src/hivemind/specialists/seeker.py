"""Seeker — web research and news lookup (offline heuristic results)."""

import re

from hivemind.models import SpecialistResult
from hivemind.specialists.base import Specialist

_PREFIX = re.compile(
    r"^(search|find|look up|lookup|google|what is|what are|who is|where is|when did)\s+",
    re.IGNORECASE,
)


class Seeker(Specialist):
    id = "seeker"
    name = "Seeker"
    description = "Web research & search"
    capabilities = ("search", "news", "fact-check")

    async def handle(self, text: str) -> SpecialistResult:
        query = _PREFIX.sub("", text).rstrip("?").strip() or text
        lower = text.lower()
        kind = "news" if any(w in lower for w in ("news", "latest", "recent")) else "search"
        rng = self.rng(text)
        results = [
            {
                "title": f"{query.title()} overview {i + 1}",
                "url": f"https://example.org/{kind}/{i + 1}",
                "relevance": round(0.95 - i * 0.1 - rng.random() * 0.05, 2),
            }
            for i in range(3)
        ]
        return self.result(
            {
                "query": query,
                "type": kind,
                "results": results,
                "summary": f"Found {len(results)} {kind} results for \"{query}\".",
            },
            confidence=0.85,
        )
