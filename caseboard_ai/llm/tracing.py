"""
Stores execution traces for outbound model calls.
What it records:
- Run name and metadata per provider call / pipeline run
- Summarized inputs and outputs
- Errors and durations

And, the main purpose:
Observability of the planning pipeline without slowing responses down.
"""


import asyncio
import contextlib
import contextvars
import functools
import time
import uuid
from typing import Any, Awaitable, Callable, Optional

from caseboard_ai.core.config import Settings, settings as default_settings
from caseboard_ai.core.logging import get_logger
from caseboard_ai.db.models import TraceEvent

log = get_logger("llm.tracing")

TraceSink = Callable[[list[TraceEvent]], Awaitable[Any]]
Summarizer = Callable[[Any], Any]

# (tracer, buffer) owned by the current request
_request_buffer: contextvars.ContextVar[Optional[tuple["Tracer", list[TraceEvent]]]] = contextvars.ContextVar(
    "trace_request_buffer", default=None
)


async def _db_sink(events: list[TraceEvent]) -> None:
    from caseboard_ai.db.repo import add_traces
    from caseboard_ai.db.session import SessionLocal

    async with SessionLocal() as db:
        await add_traces(db, events)


class Tracer:
    def __init__(
        self,
        *,
        enabled: bool,
        project: str = "",
        flush_timeout_ms: int = 900,
        sink: Optional[TraceSink] = None,
    ):
        self.enabled = enabled
        self.project = project
        self.flush_timeout_ms = flush_timeout_ms
        self._sink = sink or _db_sink
        self._pending: list[TraceEvent] = []
        self._writes: set[asyncio.Future] = set()

    @classmethod
    def from_settings(cls, cfg: Settings = default_settings, sink: Optional[TraceSink] = None) -> "Tracer":
        return cls(
            enabled=cfg.TRACING_ENABLED,
            project=cfg.TRACING_PROJECT,
            flush_timeout_ms=cfg.TRACE_FLUSH_TIMEOUT_MS,
            sink=sink,
        )

    @property
    def pending(self) -> list[TraceEvent]:
        return list(self._buffer())

    def _buffer(self) -> list[TraceEvent]:
        scope = _request_buffer.get()
        if scope is not None and scope[0] is self:
            return scope[1]
        return self._pending

    @contextlib.contextmanager
    def request_scope(self):
        """
        Collect events recorded inside the block in a buffer of their own, so a
        flush only hands over the current request's runs.
        """
        token = _request_buffer.set((self, []))
        try:
            yield
        finally:
            _request_buffer.reset(token)

    def record(self, run_id: str, run_name: str, event_type: str, payload: dict) -> None:
        if not self.enabled:
            return
        self._buffer().append(
            TraceEvent(
                id=f"tr_{uuid.uuid4().hex[:16]}",
                run_id=run_id,
                run_name=run_name,
                project=self.project,
                event_type=event_type,
                payload=payload,
            )
        )

    def traced(
        self,
        run_name: str,
        metadata: Optional[dict] = None,
        *,
        process_inputs: Optional[Summarizer] = None,
        process_outputs: Optional[Summarizer] = None,
    ):
        """
        Decorate an async callable so each invocation is recorded as a run.
        When tracing is disabled the callable is returned untouched.
        """
        def deco(fn: Callable[..., Awaitable[Any]]):
            if not self.enabled:
                return fn

            @functools.wraps(fn)
            async def wrapper(*args, **kwargs):
                run_id = f"run_{uuid.uuid4().hex[:16]}"
                started = time.perf_counter()
                inputs = process_inputs(kwargs) if process_inputs else {}
                self.record(run_id, run_name, "start", {"metadata": metadata or {}, "inputs": inputs})
                try:
                    result = await fn(*args, **kwargs)
                except Exception as e:
                    self.record(
                        run_id,
                        run_name,
                        "error",
                        {"error": type(e).__name__, "duration_ms": _elapsed_ms(started)},
                    )
                    raise
                outputs = process_outputs(result) if process_outputs else {}
                self.record(run_id, run_name, "end", {"outputs": outputs, "duration_ms": _elapsed_ms(started)})
                return result

            return wrapper

        return deco

    def _take_batch(self) -> list[TraceEvent]:
        buffer = self._buffer()
        batch = list(buffer)
        buffer.clear()
        return batch

    async def flush(self) -> int:
        batch = self._take_batch()
        if not batch:
            return 0
        await self._sink(batch)
        return len(batch)

    async def flush_best_effort(self) -> None:
        """
        Flush pending traces, waiting at most the flush timeout. Never raises.
        A write still running at the timeout carries on in the background.
        """
        if not self.enabled:
            return
        batch = self._take_batch()
        if not batch:
            return
        write = asyncio.ensure_future(self._sink(batch))
        try:
            await asyncio.wait_for(asyncio.shield(write), timeout=self.flush_timeout_ms / 1000.0)
        except asyncio.TimeoutError:
            self._writes.add(write)
            write.add_done_callback(self._write_done)
            log.warning(f"Trace flush exceeded {self.flush_timeout_ms}ms, {len(batch)} event(s) still being written")
        except Exception as e:
            log.warning(f"Trace flush warning: {e}")

    def _write_done(self, write: asyncio.Future) -> None:
        self._writes.discard(write)
        if not write.cancelled() and write.exception() is not None:
            log.warning(f"Background trace write failed: {write.exception()}")

    async def drain(self) -> None:
        """Wait for background trace writes (shutdown)."""
        if self._writes:
            await asyncio.gather(*list(self._writes), return_exceptions=True)


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)
