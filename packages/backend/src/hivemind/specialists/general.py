"""General — fallback that combines Magos and Aura on the same prompt."""

import asyncio
from typing import Optional

from hivemind.models import SpecialistResult
from hivemind.specialists.aura import Aura
from hivemind.specialists.base import Specialist
from hivemind.specialists.magos import Magos

FALLBACK_TEXT = (
    "I'm not sure how to help with that. Try asking about wallet balances, "
    "market analysis, or social sentiment."
)


class General(Specialist):
    id = "general"
    name = "General"
    description = "General queries"
    capabilities = ("fallback",)

    def __init__(self, magos: Optional[Magos] = None, aura: Optional[Aura] = None):
        self.magos = magos or Magos()
        self.aura = aura or Aura()

    async def handle(self, text: str) -> SpecialistResult:
        magos_result, aura_result = await asyncio.gather(
            self.magos.handle(text), self.aura.handle(text)
        )
        confidence = ((magos_result.confidence or 0) + (aura_result.confidence or 0)) / 2
        return self.result(
            {
                "magos": magos_result.data,
                "aura": aura_result.data,
                "combined": FALLBACK_TEXT,
            },
            confidence=round(confidence, 3),
        )
