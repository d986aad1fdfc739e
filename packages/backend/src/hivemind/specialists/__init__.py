"""Specialist registry — id → Specialist.

Learn: The orchestrator looks specialists up by string id. Instead of a
switch over known ids, it asks the registry, so a new specialist is one
`registry.register(MySpecialist())` call away:

    registry = build_default_registry()
    result = await registry.invoke("magos", "Will SOL hit 200?")

invoke() is the gated call wrapper: it times the call and converts any
exception raised by a specialist into a `success=False` result, so a
buggy specialist fails its task instead of crashing the dispatcher.
"""

import time
from typing import Iterator

import structlog

from hivemind.models import SpecialistResult
from hivemind.specialists.aura import Aura
from hivemind.specialists.bankr import Bankr
from hivemind.specialists.base import Specialist
from hivemind.specialists.general import General
from hivemind.specialists.magos import Magos
from hivemind.specialists.scribe import Scribe
from hivemind.specialists.seeker import Seeker

__all__ = [
    "Specialist",
    "SpecialistRegistry",
    "UnknownSpecialistError",
    "build_default_registry",
]

logger = structlog.get_logger()


class UnknownSpecialistError(Exception):
    """Raised when a specialist id is not registered."""


class SpecialistRegistry:
    def __init__(self):
        self._specialists: dict[str, Specialist] = {}

    def register(self, specialist: Specialist) -> None:
        self._specialists[specialist.id] = specialist

    def get(self, specialist_id: str) -> Specialist:
        specialist = self._specialists.get(specialist_id)
        if specialist is None:
            available = ", ".join(sorted(self._specialists))
            raise UnknownSpecialistError(
                f"Unknown specialist '{specialist_id}'. Available: {available}"
            )
        return specialist

    def __contains__(self, specialist_id: object) -> bool:
        return specialist_id in self._specialists

    def __iter__(self) -> Iterator[Specialist]:
        return iter(self._specialists.values())

    def ids(self) -> list[str]:
        return list(self._specialists)

    async def invoke(self, specialist_id: str, text: str) -> SpecialistResult:
        """Call a specialist, never raising. Failures come back as success=False."""
        start = time.monotonic()
        try:
            result = await self.get(specialist_id).handle(text)
        except Exception as e:
            logger.warning(
                "specialists.call_failed", specialist=specialist_id, error=str(e)
            )
            result = SpecialistResult(success=False, data={"error": str(e)})
        result.execution_time_ms = int((time.monotonic() - start) * 1000)
        return result


def build_default_registry(wallet_address: str = "") -> SpecialistRegistry:
    """Registry with every built-in specialist."""
    registry = SpecialistRegistry()
    magos, aura = Magos(), Aura()
    registry.register(magos)
    registry.register(aura)
    registry.register(Bankr(wallet_address) if wallet_address else Bankr())
    registry.register(Scribe())
    registry.register(Seeker())
    registry.register(General(magos, aura))
    return registry
