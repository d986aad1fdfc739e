"""Specialist base — pluggable worker interface.

Learn: A specialist takes request text and returns a SpecialistResult.
That single `handle(text)` contract is all the orchestrator knows about;
adding a specialist means subclassing this and registering it, never
touching dispatch code.

The built-in specialists are heuristic generators. Their "randomness" is
seeded from the prompt, so the same text always yields the same result.
"""

import random
from abc import ABC, abstractmethod
from typing import Any, Optional

from hivemind.models import PaymentInfo, SpecialistResult


class Specialist(ABC):
    """Abstract base for specialists."""

    id: str = ""
    name: str = ""
    description: str = ""
    capabilities: tuple[str, ...] = ()

    @abstractmethod
    async def handle(self, text: str) -> SpecialistResult:
        """Produce a structured result for the request text."""

    def rng(self, text: str) -> random.Random:
        """Deterministic random source for one request."""
        return random.Random(f"{self.id}:{text}")

    def result(
        self,
        data: dict[str, Any],
        confidence: Optional[float] = None,
        cost: Optional[PaymentInfo] = None,
        success: bool = True,
    ) -> SpecialistResult:
        return SpecialistResult(
            success=success, data=data, confidence=confidence, cost=cost
        )

    def describe(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "capabilities": list(self.capabilities),
        }
