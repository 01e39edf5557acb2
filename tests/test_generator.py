import asyncio

import pytest

from caseboard_ai.agent.classifier import ComplexityClassifier
from caseboard_ai.agent.generator import PlanGenerator, expansion_reasons
from caseboard_ai.agent.validator import validate_tool_calls
from caseboard_ai.core.errors import ConfigurationError, UpstreamFailureError, UpstreamRateLimitError
from caseboard_ai.llm.prompts import COMPLEX_SYSTEM, SIMPLE_SYSTEM
from caseboard_ai.llm.router import ProviderRouter
from caseboard_ai.llm.schemas import Complexity, PlanRequest
from caseboard_ai.llm.tracing import Tracer

from fakes import ScriptedProvider, make_settings, plan, sticky, stickies

GRID_PROMPT = "Create a 2x3 grid of sticky notes"
SIMPLE_PROMPT = "Add a sticky note saying hello"


def make_generator(anthropic: ScriptedProvider, openai: ScriptedProvider, tracer=None, **cfg):
    settings = make_settings(**cfg)
    router = ProviderRouter({"anthropic": anthropic, "openai": openai}, settings)
    return PlanGenerator(router, ComplexityClassifier(cache_enabled=False), tracer or Tracer(enabled=False), settings)


def generate(generator, prompt, **kwargs):
    request = PlanRequest(prompt=prompt, board_id="board-1", actor_id="user-1", **kwargs)
    return asyncio.run(generator.generate(request))


def test_grid_request_is_expanded_once():
    anthropic = ScriptedProvider("anthropic", [stickies(2), stickies(6, start=10)])
    openai = ScriptedProvider("openai")
    result = generate(make_generator(anthropic, openai), GRID_PROMPT)

    assert len(anthropic.calls) == 2
    assert openai.calls == []
    assert len(result.tool_calls) == 6
    assert validate_tool_calls(result.tool_calls) == []
    assert result.provider == "anthropic"
    assert result.model == "claude-sonnet-4-20250514"

    initial, expansion = anthropic.calls
    assert initial["system"] == COMPLEX_SYSTEM
    assert initial["user_content"] == GRID_PROMPT
    assert "Original user request: " + GRID_PROMPT in expansion["user_content"]
    assert "Previous tool calls (2):" in expansion["user_content"]
    assert "expected at least 6 tool calls, got 2" in expansion["user_content"]


def test_simple_valid_plan_is_not_expanded():
    anthropic = ScriptedProvider("anthropic", [plan(sticky(0), text="Done.")])
    result = generate(make_generator(anthropic, ScriptedProvider("openai")), SIMPLE_PROMPT)

    assert len(anthropic.calls) == 1
    assert anthropic.calls[0]["system"] == SIMPLE_SYSTEM
    assert anthropic.calls[0]["model"] == "claude-3-5-haiku-latest"
    assert result.message == "Done."
    assert result.stop_reason == "tool_use"


def test_invalid_simple_plan_is_expanded_and_replaced():
    anthropic = ScriptedProvider("anthropic", [plan(sticky(0, text="")), plan(sticky(1))])
    result = generate(make_generator(anthropic, ScriptedProvider("openai")), SIMPLE_PROMPT)

    assert len(anthropic.calls) == 2
    assert "Tool calls have validation issues: createStickyNote (Missing required input: text)" in (
        anthropic.calls[1]["user_content"]
    )
    assert [c.id for c in result.tool_calls] == ["call-1"]


def test_tied_expansion_keeps_initial_plan():
    anthropic = ScriptedProvider("anthropic", [stickies(2), stickies(2, start=50)])
    result = generate(make_generator(anthropic, ScriptedProvider("openai")), GRID_PROMPT)

    assert len(anthropic.calls) == 2
    assert [c.id for c in result.tool_calls] == ["call-0", "call-1"]


def test_worse_expansion_keeps_initial_plan():
    anthropic = ScriptedProvider("anthropic", [stickies(3), plan(*(sticky(i, y=None) for i in range(8)))])
    result = generate(make_generator(anthropic, ScriptedProvider("openai")), GRID_PROMPT)
    assert len(result.tool_calls) == 3


def test_expansion_failure_keeps_initial_plan():
    anthropic = ScriptedProvider("anthropic", [stickies(2), UpstreamFailureError("overloaded")])
    openai = ScriptedProvider("openai")
    result = generate(make_generator(anthropic, openai), GRID_PROMPT)

    assert len(result.tool_calls) == 2
    assert result.provider == "anthropic"
    assert openai.calls == []


def test_expansion_rate_limit_propagates():
    anthropic = ScriptedProvider("anthropic", [stickies(2), UpstreamRateLimitError("429")])
    openai = ScriptedProvider("openai")
    with pytest.raises(UpstreamRateLimitError):
        generate(make_generator(anthropic, openai), GRID_PROMPT)
    assert openai.calls == []


def test_rate_limit_never_falls_back():
    anthropic = ScriptedProvider("anthropic", [UpstreamRateLimitError("429")])
    openai = ScriptedProvider("openai", [stickies(1)])
    with pytest.raises(UpstreamRateLimitError):
        generate(make_generator(anthropic, openai), SIMPLE_PROMPT)
    assert openai.calls == []


def test_upstream_failure_falls_back_to_other_provider():
    anthropic = ScriptedProvider("anthropic", [UpstreamFailureError("500 from anthropic")])
    openai = ScriptedProvider("openai", [stickies(1)])
    result = generate(make_generator(anthropic, openai), SIMPLE_PROMPT)

    assert result.provider == "openai"
    assert result.model == "gpt-4.1-mini"
    assert len(anthropic.calls) == 1
    assert len(openai.calls) == 1


def test_fallback_ignores_model_override():
    anthropic = ScriptedProvider("anthropic", [UpstreamFailureError("down")])
    openai = ScriptedProvider("openai", [stickies(6)])
    result = generate(
        make_generator(anthropic, openai),
        GRID_PROMPT,
        provider="anthropic",
        model_override="claude-experimental",
    )

    assert anthropic.calls[0]["model"] == "claude-experimental"
    assert openai.calls[0]["model"] == "gpt-4.1"
    assert result.model == "gpt-4.1"


def test_unexpected_provider_exception_counts_as_upstream_failure():
    anthropic = ScriptedProvider("anthropic", [RuntimeError("socket closed")])
    openai = ScriptedProvider("openai", [stickies(1)])
    result = generate(make_generator(anthropic, openai), SIMPLE_PROMPT)
    assert result.provider == "openai"


def test_failure_without_fallback():
    anthropic = ScriptedProvider("anthropic", [UpstreamFailureError("secret internal detail")])
    openai = ScriptedProvider("openai", configured=False)
    with pytest.raises(UpstreamFailureError) as exc:
        generate(make_generator(anthropic, openai), SIMPLE_PROMPT)
    assert str(exc.value) == "AI request failed"
    assert exc.value.public_message == "AI request failed"


def test_both_providers_failing():
    anthropic = ScriptedProvider("anthropic", [UpstreamFailureError("a")])
    openai = ScriptedProvider("openai", [UpstreamFailureError("b")])
    with pytest.raises(UpstreamFailureError):
        generate(make_generator(anthropic, openai), SIMPLE_PROMPT)
    assert len(anthropic.calls) == len(openai.calls) == 1


def test_substituted_provider_ignores_override():
    anthropic = ScriptedProvider("anthropic", configured=False)
    openai = ScriptedProvider("openai", [stickies(1)])
    result = generate(make_generator(anthropic, openai), SIMPLE_PROMPT, model_override="claude-x")
    assert result.provider == "openai"
    assert result.model == "gpt-4.1-mini"


def test_no_provider_configured():
    generator = make_generator(
        ScriptedProvider("anthropic", configured=False), ScriptedProvider("openai", configured=False)
    )
    with pytest.raises(ConfigurationError):
        generate(generator, SIMPLE_PROMPT)


def test_board_state_is_sent_with_initial_request():
    anthropic = ScriptedProvider("anthropic", [stickies(1)])
    generate(
        make_generator(anthropic, ScriptedProvider("openai")),
        SIMPLE_PROMPT,
        board_state={"n1": {"type": "sticky", "text": "hi"}},
    )
    content = anthropic.calls[0]["user_content"]
    assert content.startswith('Current board objects: {"n1"')
    assert content.endswith("\n\nUser request: " + SIMPLE_PROMPT)


def test_expansion_reasons():
    complex_ = Complexity(is_complex=True, minimum_tool_calls=5)
    simple = Complexity(is_complex=False, minimum_tool_calls=1)
    assert expansion_reasons(simple, [], []) == []
    assert expansion_reasons(complex_, [sticky(i) for i in range(5)], []) == []
    assert len(expansion_reasons(complex_, [sticky(0)], [])) == 1

    bad = [sticky(0, text=None)]
    reasons = expansion_reasons(complex_, bad, validate_tool_calls(bad))
    assert len(reasons) == 2
    assert reasons[1].startswith("Tool calls have validation issues:")
