"""Router tests — keyword scoring, intent overrides, multi-hop detection.

Learn: The router is pure: same text in, same specialist out. These
tests pin the routing table's behavior for the phrases the rest of the
system (and users) depend on.
"""

import pytest

from hivemind.dispatcher.router import (
    DEFAULT_SPECIALIST,
    Router,
    RoutingRule,
    extract_tokens,
)


@pytest.fixture()
def router():
    return Router()


# ═══════════════════════════════════════════════════════════
# Keyword scoring
# ═══════════════════════════════════════════════════════════


@pytest.mark.parametrize(
    "prompt, expected",
    [
        ("Will SOL reach 300? Give me a price target", "magos"),
        ("What's the social sentiment and vibe on WIF?", "aura"),
        ("Swap 5 USDC to SOL", "bankr"),
        ("Send 0.5 SOL to my friend", "bankr"),
        ("Search the web for news about Jupiter", "seeker"),
        ("Please summarize this document", "scribe"),
    ],
)
def test_routes_by_keywords(router, prompt, expected):
    assert router.route(prompt) == expected


def test_no_match_falls_back_to_general(router):
    assert router.route("hello there") == DEFAULT_SPECIALIST


def test_routing_is_deterministic(router):
    prompt = "Analyze the chart and tell me the sentiment"
    assert len({router.route(prompt) for _ in range(20)}) == 1


def test_tie_goes_to_first_in_score_order():
    """Equal scores: the earlier specialist in the enumeration wins."""
    r = Router(
        rules=(
            RoutingRule.of("seeker", [r"alpha"]),
            RoutingRule.of("aura", [r"alpha"]),
        )
    )
    assert r.route("alpha") == "aura"


def test_case_insensitive(router):
    assert router.route("PREDICT the price") == "magos"


# ─── Intent overrides ─────────────────────────────────────


def test_good_buy_question_goes_to_magos(router):
    """'Is BONK a good buy?' is a prediction question, not a trade."""
    assert router.route("Is BONK a good buy?") == "magos"


def test_should_i_goes_to_magos(router):
    assert router.route("Should I swap my SOL into WIF?") == "magos"


def test_talking_about_goes_to_aura(router):
    assert router.route("What are people talking about on crypto twitter?") == "aura"


def test_intent_decides_regardless_of_keyword_count(router):
    """The first intent hit wins even when another specialist outscores it."""
    prompt = "Everyone is discussing the sentiment, vibe, hype and social buzz. Should I buy?"
    assert router.scores(prompt)["aura"] > router.scores(prompt)["magos"]
    assert router.route(prompt) == "magos"

    prompt = "Who is talking about the chart pattern, the trend and the risk analysis?"
    assert router.scores(prompt)["magos"] > router.scores(prompt)["aura"]
    assert router.route(prompt) == "aura"


def test_match_intent(router):
    assert router.match_intent("Do you recommend WIF?") == "magos"
    assert router.match_intent("Do you recommend WIF?", allowed=["aura"]) is None
    assert router.match_intent("Swap SOL to USDC") is None


# ─── Allowed set ──────────────────────────────────────────


def test_allowed_restricts_candidates(router):
    prompt = "Is BONK a good buy?"
    assert router.route(prompt, allowed=["bankr", "aura"]) == "bankr"


def test_allowed_with_no_match_returns_default(router):
    assert router.route("Swap SOL to USDC", allowed=["seeker"]) == DEFAULT_SPECIALIST


def test_scores_lists_every_specialist(router):
    table = router.scores("buy SOL")
    assert list(table) == ["magos", "aura", "bankr", "scribe", "seeker", "general"]
    assert table["bankr"] > 0
    assert table["general"] == 0


# ═══════════════════════════════════════════════════════════
# Multi-hop detection
# ═══════════════════════════════════════════════════════════


def test_trending_buy_is_aura_then_bankr(router):
    assert router.detect_multi_hop("Find trending tokens and buy the top one") == [
        "aura",
        "bankr",
    ]


def test_research_buy_is_magos_then_bankr(router):
    assert router.detect_multi_hop("Research WIF and buy some if it looks good") == [
        "magos",
        "bankr",
    ]


def test_plain_buy_is_single_hop(router):
    assert router.detect_multi_hop("Buy 1 SOL of BONK") is None


def test_trending_without_buy_is_single_hop(router):
    assert router.detect_multi_hop("What's trending today?") is None


# ═══════════════════════════════════════════════════════════
# Token extraction
# ═══════════════════════════════════════════════════════════


def test_extract_tokens_in_order_unique():
    assert extract_tokens("bonk up, SOL flat, BONK again, wif?") == ["BONK", "SOL", "WIF"]


def test_extract_tokens_whole_words_only():
    assert extract_tokens("solution and bonking") == []
