import hmac
import time
from typing import Any

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from caseboard_ai.api.services import ensure_services
from caseboard_ai.api.types import BenchmarkRunRequest, GenerateResponse
from caseboard_ai.bench.orchestrator import BenchmarkConfig, run_benchmark
from caseboard_ai.bench.suite import DEFAULT_MODEL_MATRIX, parse_board_ids
from caseboard_ai.core.auth import extract_bearer_token
from caseboard_ai.core.config import Settings
from caseboard_ai.core.errors import (
    AuthError,
    AuthorizationError,
    BenchmarkSetupError,
    CaseboardError,
    ConfigurationError,
    InputValidationError,
)
from caseboard_ai.core.logging import get_logger
from caseboard_ai.llm.router import is_provider, sanitize_model_name
from caseboard_ai.llm.schemas import PlanRequest

log = get_logger("api.generate")
bench_log = get_logger("api.benchmark")

OVERRIDES_DISABLED = (
    "Model/provider overrides are disabled. "
    "Set AI_ALLOW_EXPERIMENT_OVERRIDES=true to enable benchmarking overrides."
)

router = APIRouter()


async def _json_body(request: Request) -> dict:
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _object_count(board_state: Any) -> int:
    return len(board_state) if isinstance(board_state, (dict, list)) else 0


def truncate_board_state(board_state: Any, limit: int) -> Any:
    if isinstance(board_state, dict) and len(board_state) > limit:
        return dict(list(board_state.items())[:limit])
    if isinstance(board_state, list) and len(board_state) > limit:
        return board_state[:limit]
    return board_state


def _check_request(body: dict, cfg: Settings) -> tuple[str, str, Any, Any]:
    prompt = body.get("prompt")
    if not isinstance(prompt, str) or not prompt:
        log.warning("Request rejected: missing or invalid prompt")
        raise InputValidationError(public_message="Missing or invalid prompt")

    board_id = body.get("boardId")
    if not isinstance(board_id, str) or not board_id.strip():
        log.warning("Request rejected: missing or invalid boardId")
        raise InputValidationError(public_message="Missing or invalid boardId")

    if len(prompt) > cfg.MAX_PROMPT_LENGTH:
        log.warning(f"Request rejected: prompt too long ({len(prompt)}/{cfg.MAX_PROMPT_LENGTH})")
        raise InputValidationError(public_message=f"Prompt too long (max {cfg.MAX_PROMPT_LENGTH} characters)")

    preview = prompt[:60] + ("..." if len(prompt) > 60 else "")
    log.info(
        f"AI generate request received: '{preview}' board={board_id.strip()} "
        f"objects={_object_count(body.get('boardState'))}"
    )

    provider = body.get("providerOverride")
    model = body.get("modelOverride")
    if (provider is not None or model is not None) and not cfg.AI_ALLOW_EXPERIMENT_OVERRIDES:
        raise AuthorizationError(public_message=OVERRIDES_DISABLED)
    if provider is not None and not is_provider(provider):
        raise InputValidationError(public_message="Invalid providerOverride. Must be anthropic or openai.")
    model_override = sanitize_model_name(model)
    if model is not None and model_override is None:
        raise InputValidationError(public_message="Invalid modelOverride format.")

    return prompt, board_id.strip(), provider, model_override


@router.options("/api/ai/generate")
async def api_generate_options():
    return Response(status_code=200)


@router.post("/api/ai/generate")
async def api_generate(request: Request):
    cfg: Settings = request.app.state.cfg
    body = await _json_body(request)
    prompt, board_id, provider, model_override = _check_request(body, cfg)

    token = extract_bearer_token(request.headers.get("authorization"))
    if not token:
        raise AuthError(public_message="Missing Authorization bearer token")

    services = ensure_services(request.app)
    try:
        actor_id = await services.verifier.verify(token)
    except ConfigurationError as e:
        log.error(f"Auth service not configured: {e}")
        raise ConfigurationError(public_message="Auth service not configured") from e
    except AuthError as e:
        log.warning(f"Auth token verification failed: {e} board={board_id}")
        raise

    try:
        allowed = await services.access.can_invoke_ai(board_id, actor_id)
    except CaseboardError:
        raise
    except Exception as e:
        log.error(f"Board access check failed: {type(e).__name__}: {e} board={board_id} user={actor_id}")
        raise CaseboardError(public_message="Unable to validate board access") from e
    if not allowed:
        log.warning(f"Access denied: no AI editor access board={board_id} user={actor_id}")
        raise AuthorizationError()

    board_state = body.get("boardState")
    count = _object_count(board_state)
    if count > cfg.MAX_BOARD_STATE_OBJECTS:
        log.warning(f"Board state truncated: {count} objects -> {cfg.MAX_BOARD_STATE_OBJECTS} (max) board={board_id}")
        board_state = truncate_board_state(board_state, cfg.MAX_BOARD_STATE_OBJECTS)

    started = time.perf_counter()
    with services.tracer.request_scope():
        try:
            result = await services.generator.generate(
                PlanRequest(
                    prompt=prompt,
                    board_state=board_state,
                    board_id=board_id,
                    actor_id=actor_id,
                    provider=provider,
                    model_override=model_override,
                )
            )
        finally:
            await services.tracer.flush_best_effort()

    log.info(
        f"AI plan generated: {len(result.tool_calls)} tool call(s) via {result.provider}/{result.model} "
        f"in {int((time.perf_counter() - started) * 1000)}ms "
        f"tools={[c.name for c in result.tool_calls[:10]]} stop={result.stop_reason}"
    )
    return JSONResponse(
        GenerateResponse.from_result(result).model_dump(by_alias=True),
        headers={"X-AI-Provider": result.provider, "X-AI-Model": result.model},
    )


def _benchmark_secret(request: Request, body: dict) -> str:
    for candidate in (
        request.headers.get("x-benchmark-secret"),
        body.get("secret"),
        request.query_params.get("secret"),
    ):
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    return ""


@router.options("/api/ai/benchmark")
async def api_benchmark_options():
    return Response(status_code=200)


@router.post("/api/ai/benchmark")
async def api_benchmark(request: Request):
    cfg: Settings = request.app.state.cfg
    run_secret = (cfg.BENCHMARK_RUN_SECRET or "").strip()
    if not run_secret:
        raise ConfigurationError(public_message="BENCHMARK_RUN_SECRET is not configured")

    body = await _json_body(request)
    if not hmac.compare_digest(_benchmark_secret(request, body).encode(), run_secret.encode()):
        raise AuthError(public_message="Unauthorized benchmark trigger")

    try:
        opts = BenchmarkRunRequest.model_validate(body)
    except ValidationError as e:
        raise InputValidationError(public_message="Invalid benchmark options") from e

    config = BenchmarkConfig(
        base_url=(opts.base_url or str(request.base_url)).rstrip("/"),
        board_ids=parse_board_ids(opts.board_ids),
        auto_create_boards=opts.auto_create_boards,
        board_prefix=(opts.board_prefix or "").strip() or "ab-bench",
        rounds=opts.rounds,
        matrix=opts.matrix or DEFAULT_MODEL_MATRIX,
        concurrency=opts.concurrency,
        prompt_suite=opts.prompt_suite_path,
        timeout_ms=opts.timeout_ms,
        delay_ms=opts.delay_ms,
        max_requests=opts.max_requests,
        wait_ready=opts.wait_ready,
        ready_timeout_ms=opts.ready_timeout_ms,
        ready_interval_ms=opts.ready_interval_ms,
    )
    try:
        report = await run_benchmark(config, cfg=cfg, client=request.app.state.bench_client)
    except BenchmarkSetupError as e:
        bench_log.warning(f"Benchmark setup failed: {e}")
        return JSONResponse({"error": str(e)}, status_code=400)

    return {
        "ok": True,
        "generatedAt": report["generatedAt"],
        "config": report["config"],
        "summary": report["summary"],
    }
