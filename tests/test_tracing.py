import asyncio

import pytest
from fastapi.testclient import TestClient

from caseboard_ai.agent.classifier import ComplexityClassifier
from caseboard_ai.agent.generator import PlanGenerator
from caseboard_ai.llm.router import ProviderRouter
from caseboard_ai.llm.schemas import PlanRequest
from caseboard_ai.llm.tracing import Tracer
from caseboard_ai.main import create_app

from fakes import MemorySink, ScriptedProvider, StaticAccess, StaticVerifier, make_settings, stickies


async def double(*, value):
    return value * 2


def test_disabled_tracer_returns_callable_untouched():
    tracer = Tracer(enabled=False)
    assert tracer.traced("noop")(double) is double
    tracer.record("r", "noop", "start", {})
    assert tracer.pending == []


def test_enabled_tracer_records_start_and_end():
    tracer = Tracer(enabled=True, project="unit")
    wrapped = tracer.traced(
        "unit.double",
        {"kind": "test"},
        process_inputs=lambda kw: {"value": kw["value"]},
        process_outputs=lambda out: {"result": out},
    )(double)

    assert asyncio.run(wrapped(value=21)) == 42

    start, end = tracer.pending
    assert start.run_id == end.run_id
    assert (start.run_name, start.event_type, start.project) == ("unit.double", "start", "unit")
    assert start.payload == {"metadata": {"kind": "test"}, "inputs": {"value": 21}}
    assert end.event_type == "end"
    assert end.payload["outputs"] == {"result": 42}


def test_errors_are_recorded_and_reraised():
    tracer = Tracer(enabled=True)

    async def broken():
        raise ValueError("nope")

    with pytest.raises(ValueError):
        asyncio.run(tracer.traced("unit.broken")(broken)())

    assert [e.event_type for e in tracer.pending] == ["start", "error"]
    assert tracer.pending[1].payload["error"] == "ValueError"


def test_flush_hands_pending_events_to_sink():
    sink = MemorySink()
    tracer = Tracer(enabled=True, sink=sink)
    asyncio.run(tracer.traced("unit.double")(double)(value=1))

    assert asyncio.run(tracer.flush()) == 2
    assert len(sink.events) == 2
    assert tracer.pending == []
    assert asyncio.run(tracer.flush()) == 0


def test_best_effort_flush_gives_up_on_slow_sink():
    async def slow_sink(events):
        await asyncio.sleep(5)

    tracer = Tracer(enabled=True, flush_timeout_ms=20, sink=slow_sink)
    tracer.record("r1", "unit", "start", {})
    asyncio.run(tracer.flush_best_effort())


def test_slow_write_finishes_after_best_effort_timeout():
    written = []

    async def slow_sink(events):
        await asyncio.sleep(0.05)
        written.extend(events)

    tracer = Tracer(enabled=True, flush_timeout_ms=10, sink=slow_sink)

    async def scenario():
        tracer.record("r1", "unit", "start", {})
        await tracer.flush_best_effort()
        assert written == []
        assert tracer.pending == []
        await tracer.drain()

    asyncio.run(scenario())
    assert [e.run_id for e in written] == ["r1"]


def test_best_effort_flush_swallows_sink_errors():
    async def failing_sink(events):
        raise RuntimeError("trace store down")

    tracer = Tracer(enabled=True, sink=failing_sink)
    tracer.record("r1", "unit", "start", {})
    asyncio.run(tracer.flush_best_effort())


def test_generator_traces_pipeline_and_provider_calls():
    tracer = Tracer(enabled=True, project="caseboard-test", sink=MemorySink())
    anthropic = ScriptedProvider("anthropic", [stickies(2), stickies(6)])
    settings = make_settings()
    router = ProviderRouter({"anthropic": anthropic, "openai": ScriptedProvider("openai")}, settings)
    generator = PlanGenerator(router, ComplexityClassifier(), tracer, settings)

    request = PlanRequest(prompt="Create a 2x3 grid of sticky notes", board_id="b1", actor_id="u1")
    asyncio.run(generator.generate(request))

    runs = [(e.run_name, e.event_type) for e in tracer.pending]
    assert ("ai.generate.pipeline", "start") in runs
    assert ("ai.generate.pipeline", "end") in runs
    assert ("ai.generate.initial-plan.anthropic", "end") in runs
    assert ("ai.generate.expansion-plan.anthropic", "end") in runs

    pipeline_end = next(e for e in tracer.pending if e.run_name == "ai.generate.pipeline" and e.event_type == "end")
    assert pipeline_end.payload["outputs"]["toolCallCount"] == 6
    pipeline_start = tracer.pending[0]
    assert pipeline_start.payload["inputs"]["boardId"] == "b1"
    assert pipeline_start.payload["metadata"] == {"route": "/api/ai/generate"}


def test_request_scopes_flush_only_their_own_events():
    sink = MemorySink()
    tracer = Tracer(enabled=True, sink=sink)

    async def request(run_id, pause):
        with tracer.request_scope():
            tracer.record(run_id, "unit", "start", {})
            await asyncio.sleep(pause)
            tracer.record(run_id, "unit", "end", {})
            return await tracer.flush()

    async def scenario():
        return await asyncio.gather(request("fast", 0), request("slow", 0.02))

    assert asyncio.run(scenario()) == [2, 2]
    assert [{e.run_id for e in batch} for batch in sink.batches] == [{"fast"}, {"slow"}]
    assert tracer.pending == []


def test_generate_endpoint_flushes_its_own_runs():
    sink = MemorySink()
    settings = make_settings()
    tracer = Tracer(enabled=True, sink=sink)
    tracer.record("outside", "unit", "start", {})
    router = ProviderRouter(
        {"anthropic": ScriptedProvider("anthropic", [stickies(1)]), "openai": ScriptedProvider("openai")}, settings
    )
    app = create_app(
        generator=PlanGenerator(router, ComplexityClassifier(), tracer, settings),
        verifier=StaticVerifier(),
        access=StaticAccess(),
        tracer=tracer,
        cfg=settings,
        init_database=False,
    )
    with TestClient(app) as client:
        response = client.post(
            "/api/ai/generate",
            json={"prompt": "Add a sticky note saying hello", "boardId": "b1"},
            headers={"Authorization": "Bearer good-token"},
        )

    assert response.status_code == 200
    assert "outside" not in {e.run_id for e in sink.events}
    assert {e.run_name for e in sink.events} >= {"ai.generate.pipeline"}
    assert [e.run_id for e in tracer.pending] == ["outside"]
