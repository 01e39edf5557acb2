"""
Benchmark run orchestration and it does:
- Loads the prompt suite and model matrix
- Resolves the credential and provisions boards if asked
- Optionally waits for the endpoint to become ready
- Executes the request matrix and summarizes the rows

Main purpose:
One entry point shared by the CLI and the server-side benchmark endpoint.
"""


import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from caseboard_ai.bench.provisioning import create_benchmark_boards, resolve_auth
from caseboard_ai.bench.report import summarize_results
from caseboard_ai.bench.runner import BenchmarkRunner, wait_for_api_ready
from caseboard_ai.bench.suite import (
    DEFAULT_MODEL_MATRIX,
    build_request_matrix,
    load_prompt_suite,
    parse_model_matrix,
    unique_strings,
)
from caseboard_ai.core.config import Settings, settings as default_settings
from caseboard_ai.core.errors import BenchmarkSetupError
from caseboard_ai.core.logging import get_logger

log = get_logger("bench.orchestrator")

GENERATE_PATH = "/api/ai/generate"


@dataclass
class BenchmarkConfig:
    base_url: str = "http://127.0.0.1:8000"
    token: Optional[str] = None
    user_id: Optional[str] = None
    board_ids: List[str] = field(default_factory=list)
    auto_create_boards: int = 0
    board_prefix: str = "ab-bench"
    rounds: int = 2
    matrix: str = DEFAULT_MODEL_MATRIX
    concurrency: int = 4
    prompt_suite: Optional[str] = None
    timeout_ms: int = 45000
    delay_ms: int = 50
    max_requests: int = 0
    wait_ready: bool = False
    ready_timeout_ms: int = 600000
    ready_interval_ms: int = 10000

    @property
    def api_url(self) -> str:
        return f"{self.base_url.rstrip('/')}{GENERATE_PATH}"


async def run_benchmark(
    config: BenchmarkConfig,
    *,
    client: Optional[httpx.AsyncClient] = None,
    cfg: Settings = default_settings,
    session_factory: Optional[Callable[[], AsyncSession]] = None,
) -> Dict[str, Any]:
    """Run the whole matrix and return the report (config, summary, results)."""
    prompts = load_prompt_suite(config.prompt_suite)
    matrix = parse_model_matrix(config.matrix)
    auth = resolve_auth(config.token, cfg, config.user_id)

    created = await create_benchmark_boards(
        config.auto_create_boards, config.board_prefix, auth.user_id, session_factory
    )
    board_ids = unique_strings([*config.board_ids, *created])
    if not board_ids:
        raise BenchmarkSetupError("No board IDs available. Provide board ids or enable auto-created boards.")

    items = build_request_matrix(board_ids, prompts, matrix, config.rounds, config.max_requests)
    log.info(
        f"Starting {len(items)} requests on {len(board_ids)} boards with {len(prompts)} prompts, "
        f"{len(matrix)} provider/model configs, rounds={config.rounds}, concurrency={config.concurrency}"
    )
    log.info(f"auth source={auth.source} user={auth.user_id} baseUrl={config.base_url}")

    owns_client = client is None
    http = client or httpx.AsyncClient()
    started_at = datetime.now(timezone.utc)
    started = time.perf_counter()
    try:
        if config.wait_ready:
            await wait_for_api_ready(http, config.api_url, config.ready_timeout_ms, config.ready_interval_ms)
        runner = BenchmarkRunner(
            http,
            config.api_url,
            auth.token,
            timeout_ms=config.timeout_ms,
            delay_ms=config.delay_ms,
        )
        rows = await runner.run(items, config.concurrency)
    finally:
        if owns_client:
            await http.aclose()

    summary = summarize_results(rows)
    log.info(
        f"success={summary['totalSuccesses']}/{summary['totalRequests']} failures={summary['totalFailures']}"
    )
    return {
        "generatedAt": datetime.now(timezone.utc).isoformat(),
        "startedAt": started_at.isoformat(),
        "config": {
            "baseUrl": config.base_url,
            "authSource": auth.source,
            "userId": auth.user_id,
            "boardIds": board_ids,
            "autoCreatedBoardCount": len(created),
            "promptSuitePath": config.prompt_suite,
            "promptCount": len(prompts),
            "modelMatrix": [m.to_dict() for m in matrix],
            "rounds": config.rounds,
            "concurrency": config.concurrency,
            "timeoutMs": config.timeout_ms,
            "delayMs": config.delay_ms,
            "maxRequests": config.max_requests,
            "waitReady": config.wait_ready,
            "readyTimeoutMs": config.ready_timeout_ms,
            "readyIntervalMs": config.ready_interval_ms,
            "requestCount": len(rows),
            "durationMs": int((time.perf_counter() - started) * 1000),
        },
        "summary": summary,
        "results": [row.to_dict() for row in rows],
    }
