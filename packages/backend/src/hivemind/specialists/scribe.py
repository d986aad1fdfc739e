"""Scribe — general assistant, summaries and explanations."""

from hivemind.models import SpecialistResult
from hivemind.specialists.base import Specialist


class Scribe(Specialist):
    id = "scribe"
    name = "Scribe"
    description = "General assistant & fallback"
    capabilities = ("summarize", "explain", "draft")

    async def handle(self, text: str) -> SpecialistResult:
        summary = "I am Scribe, your documentation and knowledge assistant."
        if "summarize" in text.lower():
            summary = (
                "Summary: the request asks for a synthesis of information. "
                "The context has been condensed into actionable points."
            )
        return self.result(
            {
                "summary": summary,
                "insight": (
                    "I can help you summarize long conversations, explain complex "
                    "concepts, or draft technical documentation."
                ),
                "details": {"type": "documentation", "response": "Helpful response from Scribe."},
            },
            confidence=0.95,
        )
