"""
API request and response schemas.
What it defines:
- The plan response body
- The server-side benchmark request (with clamped numeric options)

And, the main purpose:
Ensure structured communication between client and server. The generate
request itself is checked field by field in the route so every rejection
gets its own status code and message.
"""


import os
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from caseboard_ai.llm.json_parse import drop_non_finite
from caseboard_ai.llm.schemas import PlanResult


class ToolCallOut(BaseModel):
    id: str
    name: str
    input: dict = Field(default_factory=dict)

    @field_validator("input")
    @classmethod
    def _json_safe_input(cls, v):
        return drop_non_finite(v)


class GenerateResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    tool_calls: List[ToolCallOut] = Field(default_factory=list, alias="toolCalls")
    message: Optional[str] = None
    stop_reason: Optional[str] = Field(default=None, alias="stopReason")
    provider: str
    model: str

    @classmethod
    def from_result(cls, result: PlanResult) -> "GenerateResponse":
        return cls(
            tool_calls=[ToolCallOut(**c.model_dump()) for c in result.tool_calls],
            message=result.message,
            stop_reason=result.stop_reason,
            provider=result.provider,
            model=result.model,
        )


def _clamp(value: Any, default: int, low: int, high: int) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        parsed = default
    return max(low, min(high, parsed))


# Body field -> environment variable consulted when the field is absent or blank
BENCHMARK_ENV_FALLBACKS = {
    "baseUrl": "AI_BASE_URL",
    "boardIds": "AB_BOARD_IDS",
    "matrix": "AB_MODEL_MATRIX",
    "promptSuitePath": "AB_PROMPT_SUITE",
    "boardPrefix": "AB_BOARD_PREFIX",
    "rounds": "AB_ROUNDS",
    "concurrency": "AB_CONCURRENCY",
    "delayMs": "AB_DELAY_MS",
    "timeoutMs": "AB_TIMEOUT_MS",
    "autoCreateBoards": "AB_AUTO_CREATE_BOARDS",
    "maxRequests": "AB_MAX_REQUESTS",
    "readyTimeoutMs": "AB_READY_TIMEOUT_MS",
    "readyIntervalMs": "AB_READY_INTERVAL_MS",
}


class BenchmarkRunRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    secret: Optional[str] = None
    base_url: Optional[str] = Field(default=None, alias="baseUrl")
    board_ids: Any = Field(default=None, alias="boardIds")
    matrix: Optional[str] = None
    prompt_suite_path: Optional[str] = Field(default=None, alias="promptSuitePath")
    board_prefix: Optional[str] = Field(default=None, alias="boardPrefix")
    rounds: Any = 4
    concurrency: Any = 8
    delay_ms: Any = Field(default=0, alias="delayMs")
    timeout_ms: Any = Field(default=45000, alias="timeoutMs")
    auto_create_boards: Any = Field(default=6, alias="autoCreateBoards")
    max_requests: Any = Field(default=0, alias="maxRequests")
    wait_ready: Any = Field(default=False, alias="waitReady")
    ready_timeout_ms: Any = Field(default=600000, alias="readyTimeoutMs")
    ready_interval_ms: Any = Field(default=10000, alias="readyIntervalMs")

    @model_validator(mode="before")
    @classmethod
    def _environment_defaults(cls, data):
        if not isinstance(data, dict):
            return data
        merged = dict(data)
        for key, env_name in BENCHMARK_ENV_FALLBACKS.items():
            value = merged.get(key)
            if value is None or (isinstance(value, str) and not value.strip()):
                env_value = os.environ.get(env_name, "").strip()
                if env_value:
                    merged[key] = env_value
        if merged.get("waitReady") is not True and os.environ.get("AB_WAIT_READY", "").strip().lower() == "true":
            merged["waitReady"] = True
        return merged

    @field_validator("rounds")
    @classmethod
    def _rounds(cls, v):
        return _clamp(v, 4, 1, 20)

    @field_validator("concurrency")
    @classmethod
    def _concurrency(cls, v):
        return _clamp(v, 8, 1, 20)

    @field_validator("delay_ms")
    @classmethod
    def _delay(cls, v):
        return _clamp(v, 0, 0, 5000)

    @field_validator("timeout_ms")
    @classmethod
    def _timeout(cls, v):
        return _clamp(v, 45000, 1000, 120000)

    @field_validator("auto_create_boards")
    @classmethod
    def _auto_create(cls, v):
        return _clamp(v, 6, 0, 20)

    @field_validator("max_requests")
    @classmethod
    def _max_requests(cls, v):
        return _clamp(v, 0, 0, 2000)

    @field_validator("ready_timeout_ms")
    @classmethod
    def _ready_timeout(cls, v):
        return _clamp(v, 600000, 5000, 1200000)

    @field_validator("ready_interval_ms")
    @classmethod
    def _ready_interval(cls, v):
        return _clamp(v, 10000, 1000, 60000)

    @field_validator("wait_ready")
    @classmethod
    def _wait_ready(cls, v):
        return v is True
