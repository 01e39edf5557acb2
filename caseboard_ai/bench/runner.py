"""
Benchmark execution and it does:
- Runs a fixed pool of workers over a shared index cursor
- Sends one planning request per matrix item with a bounded total time
- Records status, latency, provider/model actually used and a shape score
- Polls the endpoint until it is ready (optional, before a run)

Main purpose:
Drive the planning endpoint as a black box and collect one row per request.
"""


import asyncio
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Sequence, TypeVar

import httpx

from caseboard_ai.bench.scoring import normalize_tool_calls, score_prompt_accuracy
from caseboard_ai.bench.suite import BenchmarkRequestItem
from caseboard_ai.core.errors import BenchmarkSetupError
from caseboard_ai.core.logging import get_logger

log = get_logger("bench.runner")

T = TypeVar("T")
R = TypeVar("R")

MAX_TOOL_NAMES = 12


@dataclass
class BenchmarkRow:
    index: int
    round: int
    board_id: str
    prompt_id: str
    category: str
    requested_provider: str
    requested_model: str
    provider: Optional[str] = None
    model: Optional[str] = None
    success: bool = False
    status: int = 0
    latency_ms: int = 0
    tool_call_count: int = 0
    tool_names: List[str] = field(default_factory=list)
    stop_reason: Optional[str] = None
    message_length: int = 0
    accuracy_score: float = 0.0
    error: Optional[str] = None

    def to_dict(self) -> dict:
        d = asdict(self)
        return {
            "index": d["index"],
            "round": d["round"],
            "boardId": d["board_id"],
            "promptId": d["prompt_id"],
            "category": d["category"],
            "requestedProvider": d["requested_provider"],
            "requestedModel": d["requested_model"],
            "provider": d["provider"],
            "model": d["model"],
            "success": d["success"],
            "status": d["status"],
            "latencyMs": d["latency_ms"],
            "toolCallCount": d["tool_call_count"],
            "toolNames": d["tool_names"],
            "stopReason": d["stop_reason"],
            "messageLength": d["message_length"],
            "accuracyScore": d["accuracy_score"],
            "error": d["error"],
        }


async def run_with_concurrency(
    items: Sequence[T],
    concurrency: int,
    worker: Callable[[T, int], Awaitable[R]],
) -> List[R]:
    """
    Fixed pool of min(concurrency, len(items)) tasks pulling from one cursor.
    Each result lands in its own slot, so the output follows submission order.
    """
    if not items:
        return []

    results: List[Any] = [None] * len(items)
    cursor = 0

    async def _loop() -> None:
        nonlocal cursor
        while True:
            # No await between read and increment: the claim is atomic on the event loop
            current = cursor
            cursor += 1
            if current >= len(items):
                return
            results[current] = await worker(items[current], current)

    await asyncio.gather(*(_loop() for _ in range(max(1, min(concurrency, len(items))))))
    return results


def _response_payload(response: httpx.Response) -> dict:
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


class BenchmarkRunner:
    def __init__(
        self,
        client: httpx.AsyncClient,
        api_url: str,
        token: str,
        *,
        timeout_ms: int = 45000,
        delay_ms: int = 0,
        total: int = 0,
    ):
        self.client = client
        self.api_url = api_url
        self.token = token
        self.timeout_ms = timeout_ms
        self.delay_ms = delay_ms
        self.total = total

    async def run_item(self, item: BenchmarkRequestItem, index: int) -> BenchmarkRow:
        if self.delay_ms > 0:
            await asyncio.sleep(self.delay_ms / 1000.0)

        row = BenchmarkRow(
            index=index + 1,
            round=item.round,
            board_id=item.board_id,
            prompt_id=item.prompt_id,
            category=item.category,
            requested_provider=item.provider_override,
            requested_model=item.model_override,
        )
        started = time.perf_counter()
        try:
            response = await asyncio.wait_for(self._post(item), timeout=self.timeout_ms / 1000.0)
            self._record_response(row, item, response)
        except asyncio.TimeoutError:
            row.error = f"Request timed out after {self.timeout_ms}ms"
        except httpx.HTTPError as e:
            row.error = str(e) or type(e).__name__
        except Exception as e:
            log.warning(f"Benchmark row {row.index} failed: {type(e).__name__}: {e}")
            row.error = str(e) or type(e).__name__

        row.latency_ms = int((time.perf_counter() - started) * 1000)
        if row.error:
            row.success = False
            row.accuracy_score = 0.0

        label = "OK" if row.success else "ERR"
        log.info(
            f"{row.index:04d}/{self.total:04d} {label} board={row.board_id} round={row.round} "
            f"prompt={row.prompt_id} requested={row.requested_provider}:{row.requested_model} "
            f"actual={row.provider or 'unknown'}:{row.model or 'unknown'} status={row.status} "
            f"latency={row.latency_ms}ms tools={row.tool_call_count}"
            + (f' error="{row.error}"' if row.error else "")
        )
        return row

    def _record_response(self, row: BenchmarkRow, item: BenchmarkRequestItem, response: httpx.Response) -> None:
        payload = _response_payload(response)
        tool_calls = normalize_tool_calls(payload.get("toolCalls"))
        row.status = response.status_code
        row.provider = response.headers.get("x-ai-provider") or _str_or_none(payload.get("provider"))
        row.model = response.headers.get("x-ai-model") or _str_or_none(payload.get("model"))
        row.stop_reason = _str_or_none(payload.get("stopReason"))
        row.message_length = len(payload["message"]) if isinstance(payload.get("message"), str) else 0
        row.tool_call_count = len(tool_calls)
        row.tool_names = [c["name"] for c in tool_calls[:MAX_TOOL_NAMES]]
        if not response.is_success:
            row.error = _str_or_none(payload.get("error")) or f"HTTP {response.status_code}"
        row.success = 200 <= row.status < 300 and not row.error
        row.accuracy_score = score_prompt_accuracy(item.prompt_id, tool_calls, row.success)

    async def _post(self, item: BenchmarkRequestItem) -> httpx.Response:
        return await self.client.post(
            self.api_url,
            headers={"Authorization": f"Bearer {self.token}"},
            json={
                "prompt": item.prompt,
                "boardId": item.board_id,
                "boardState": {},
                "providerOverride": item.provider_override,
                "modelOverride": item.model_override,
            },
        )

    async def run(self, items: Sequence[BenchmarkRequestItem], concurrency: int) -> List[BenchmarkRow]:
        self.total = len(items)
        return await run_with_concurrency(items, concurrency, self.run_item)


def _str_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


async def wait_for_api_ready(
    client: httpx.AsyncClient,
    api_url: str,
    timeout_ms: int,
    interval_ms: int,
) -> int:
    """Probe with OPTIONS until a 2xx answer; returns the number of probes."""
    started = time.monotonic()
    attempts = 0
    last_status = "n/a"
    last_error = ""
    while (time.monotonic() - started) * 1000 <= timeout_ms:
        attempts += 1
        try:
            response = await client.options(api_url)
            last_status = str(response.status_code)
            if response.is_success:
                log.info(f"API ready after {attempts} probe(s) ({int((time.monotonic() - started) * 1000)}ms)")
                return attempts
        except httpx.HTTPError as e:
            last_error = str(e) or type(e).__name__
        await asyncio.sleep(interval_ms / 1000.0)

    details = f"{last_status} ({last_error})" if last_error else last_status
    raise BenchmarkSetupError(
        f"Timed out waiting for API readiness at {api_url} after {timeout_ms}ms. Last probe: {details}"
    )
