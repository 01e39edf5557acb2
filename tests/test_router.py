import pytest

from caseboard_ai.core.errors import ConfigurationError
from caseboard_ai.llm.router import ProviderRouter, percent_bucket, sanitize_model_name

from fakes import ScriptedProvider, make_settings


def make_router(anthropic=True, openai=True, **cfg):
    providers = {
        "anthropic": ScriptedProvider("anthropic", configured=anthropic),
        "openai": ScriptedProvider("openai", configured=openai),
    }
    return ProviderRouter(providers, make_settings(**cfg))


def test_bucket_is_deterministic_and_in_range():
    for seed in ("b1:u1", "b2:u1", "board:someone", ""):
        value = percent_bucket(seed)
        assert 0 <= value < 100
        assert percent_bucket(seed) == value


def test_fixed_modes():
    assert make_router(AI_PROVIDER_MODE="openai").route("b1", "u1").primary == "openai"
    assert make_router(AI_PROVIDER_MODE="anthropic").route("b1", "u1").primary == "anthropic"


def test_unknown_mode_falls_back_to_default():
    router = make_router(AI_PROVIDER_MODE="mystery")
    assert router.mode == "anthropic"


def test_ab_split_is_sticky_per_board_and_user():
    router = make_router(AI_PROVIDER_MODE="ab", AI_OPENAI_PERCENT=50)
    first = router.route("board-7", "user-3").primary
    for _ in range(20):
        assert router.route("board-7", "user-3").primary == first


def test_ab_split_uses_both_providers():
    router = make_router(AI_PROVIDER_MODE="ab", AI_OPENAI_PERCENT=50)
    chosen = {router.route("board", f"user-{i}").primary for i in range(200)}
    assert chosen == {"anthropic", "openai"}


@pytest.mark.parametrize("percent,expected", [(0, "anthropic"), (100, "openai"), (-20, "anthropic"), (400, "openai")])
def test_ab_split_percent_bounds(percent, expected):
    router = make_router(AI_PROVIDER_MODE="ab", AI_OPENAI_PERCENT=percent)
    assert {router.route("b", f"u{i}").primary for i in range(50)} == {expected}


def test_requested_provider_wins():
    decision = make_router(AI_PROVIDER_MODE="anthropic").route("b1", "u1", requested="openai")
    assert decision.primary == "openai"
    assert decision.fallback == "anthropic"
    assert not decision.substituted


def test_unconfigured_primary_is_substituted():
    decision = make_router(anthropic=False).route("b1", "u1")
    assert decision.primary == "openai"
    assert decision.fallback is None
    assert decision.substituted


def test_unconfigured_fallback_is_dropped():
    decision = make_router(openai=False).route("b1", "u1")
    assert decision.primary == "anthropic"
    assert decision.fallback is None


def test_no_configured_provider():
    with pytest.raises(ConfigurationError) as exc:
        make_router(anthropic=False, openai=False).route("b1", "u1")
    assert exc.value.public_message == "AI service not configured"


def test_resolve_model_precedence():
    router = make_router(ANTHROPIC_COMPLEX_MODEL="claude-custom", OPENAI_SIMPLE_MODEL="  ")
    assert router.resolve_model("anthropic", True, "claude-override") == "claude-override"
    assert router.resolve_model("anthropic", True) == "claude-custom"
    assert router.resolve_model("anthropic", False) == "claude-3-5-haiku-latest"
    assert router.resolve_model("openai", False) == "gpt-4.1-mini"
    assert router.resolve_model("openai", True) == "gpt-4.1"


@pytest.mark.parametrize(
    "value,expected",
    [
        ("gpt-4.1", "gpt-4.1"),
        ("  claude-sonnet-4-20250514 ", "claude-sonnet-4-20250514"),
        ("ft:gpt-4o:org:custom", "ft:gpt-4o:org:custom"),
        ("bad model", None),
        ("", None),
        ("x" * 129, None),
        (None, None),
        (42, None),
    ],
)
def test_sanitize_model_name(value, expected):
    assert sanitize_model_name(value) == expected
