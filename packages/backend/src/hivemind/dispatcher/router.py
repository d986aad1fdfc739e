"""Prompt router — weighted keyword rules → specialist id.

Learn: Every pattern of every rule is tested against the lowercased
prompt; each hit adds the rule's weight to that specialist's score. The
strictly highest score wins, so on a tie the specialist declared first in
SCORE_ORDER keeps priority. No randomness anywhere: the same text and the
same rule table always produce the same answer.

Intent phrases that the plain keyword rules get wrong ("is BONK a good
buy?" is a prediction question, not a trade) are checked first, in
order, and the first hit decides outright without any scoring. An intent
whose specialist is outside `allowed` is skipped, and scoring decides.
"""

import re
from dataclasses import dataclass
from typing import Iterable, Optional

import structlog

logger = structlog.get_logger()

DEFAULT_SPECIALIST = "general"
MULTI_HOP = "multi-hop"

# Enumeration order of the score table (tie-break order)
SCORE_ORDER = ("magos", "aura", "bankr", "scribe", "seeker", DEFAULT_SPECIALIST)

TOKEN_PATTERN = re.compile(r"\b(SOL|BONK|WIF|PEPE|DOGE|SHIB|FOMO)\b", re.IGNORECASE)


@dataclass(frozen=True)
class RoutingRule:
    specialist: str
    patterns: tuple[re.Pattern, ...]
    weight: float = 1.0

    @classmethod
    def of(cls, specialist: str, patterns: Iterable[str], weight: float = 1.0) -> "RoutingRule":
        return cls(specialist, tuple(re.compile(p) for p in patterns), weight)


INTENT_RULES: tuple[RoutingRule, ...] = (
    RoutingRule.of("magos", [r"good buy", r"should i", r"recommend", r"is \w+ a good"]),
    RoutingRule.of("aura", [r"talking about", r"mentions", r"discussing"]),
)

DEFAULT_RULES: tuple[RoutingRule, ...] = (
    RoutingRule.of(
        "magos",
        [
            r"predict|forecast|price\s+target|will\s+\w+\s+(go|reach|hit)",
            r"risk|danger|safe|analysis|analyze|technical",
            r"support|resistance|trend|pattern|chart",
        ],
    ),
    RoutingRule.of(
        "aura",
        [
            r"sentiment|vibe|mood|feeling|social",
            r"trending|hot|popular|alpha|gem",
            r"influencer|kol|whale\s+watch|twitter|x\s+",
            r"fomo|fud|hype|buzz",
        ],
    ),
    RoutingRule.of(
        "bankr",
        [
            r"swap|trade|buy|sell|exchange",
            r"transfer|send|withdraw|deposit",
            r"balance|wallet|holdings|portfolio",
            r"dca|dollar\s+cost|recurring|auto-buy",
            r"solana|sol|transaction|tx",
        ],
    ),
    RoutingRule.of(
        "seeker",
        [
            r"search|find|lookup|what is|who is|where is|news about|latest on",
            r"research|google|brave|internet|web|look up",
        ],
        weight=1.2,
    ),
    RoutingRule.of(
        "scribe",
        [
            r"summarize|explain|write|draft|document",
            r"help|question|how to|what can you",
        ],
        weight=0.5,
    ),
)


@dataclass
class Router:
    """Scores prompts against an ordered rule table."""

    rules: tuple[RoutingRule, ...] = DEFAULT_RULES
    intents: tuple[RoutingRule, ...] = INTENT_RULES
    score_order: tuple[str, ...] = SCORE_ORDER
    default: str = DEFAULT_SPECIALIST

    def scores(self, text: str, allowed: Optional[Iterable[str]] = None) -> dict[str, float]:
        """Score table for a prompt, in tie-break order."""
        lower = text.lower()
        allowed_set = set(allowed) if allowed is not None else None
        table = {s: 0.0 for s in self.score_order}
        for rule in self.rules:
            if allowed_set is not None and rule.specialist not in allowed_set:
                continue
            for pattern in rule.patterns:
                if pattern.search(lower):
                    table[rule.specialist] = table.get(rule.specialist, 0.0) + rule.weight
        return table

    def match_intent(self, text: str, allowed: Optional[Iterable[str]] = None) -> Optional[str]:
        """Specialist of the first intent phrase found, if any."""
        lower = text.lower()
        for rule in self.intents:
            if allowed is not None and rule.specialist not in allowed:
                continue
            if any(p.search(lower) for p in rule.patterns):
                return rule.specialist
        return None

    def route(self, text: str, allowed: Optional[Iterable[str]] = None) -> str:
        """Return the best-matching specialist id, or the default one.

        `allowed` restricts the candidates (e.g. the caller's hired
        specialists). The default is returned when nothing scores.
        """
        allowed = list(allowed) if allowed is not None else None
        intent = self.match_intent(text, allowed)
        if intent is not None:
            logger.debug("router.intent", specialist=intent)
            return intent
        table = self.scores(text, allowed)
        best, best_score = self.default, 0.0
        for specialist, score in table.items():
            if score > best_score:
                best, best_score = specialist, score
        logger.debug("router.scored", scores=table, specialist=best)
        return best

    def detect_multi_hop(self, text: str) -> Optional[list[str]]:
        """Ordered pipeline for prompts that need two specialists, else None."""
        lower = text.lower()
        if "buy" in lower and any(w in lower for w in ("trending", "popular", "hot")):
            return ["aura", "bankr"]
        if ("analyze" in lower or "research" in lower) and "buy" in lower:
            return ["magos", "bankr"]
        return None


def extract_tokens(text: str) -> list[str]:
    """Unique asset symbols mentioned in a response, in order of appearance."""
    seen: list[str] = []
    for match in TOKEN_PATTERN.findall(text):
        symbol = match.upper()
        if symbol not in seen:
            seen.append(symbol)
    return seen
