"""
Model provider clients and they do:
- Send one planning request (system prompt + user content + tool schemas)
- Normalize the answer into tool calls, free text and a stop reason
- Classify failures as rate limits or generic upstream failures

Main purpose:
Two interchangeable backends (Anthropic Messages, OpenAI Chat Completions)
behind one small interface. Retries and fallback live in the plan generator.
"""


from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from caseboard_ai.core.config import Settings, settings as default_settings
from caseboard_ai.core.errors import UpstreamFailureError, UpstreamRateLimitError
from caseboard_ai.core.logging import get_logger
from caseboard_ai.llm.json_parse import drop_non_finite, ensure_record, loads_json, parse_tool_arguments
from caseboard_ai.llm.schemas import ProviderResponse, ToolCall
from caseboard_ai.tools.registry import anthropic_tool_schemas, openai_tool_schemas

log = get_logger("llm.providers")

ANTHROPIC_VERSION = "2023-06-01"


def _safe_snippet(text: str, n: int = 400) -> str:
    return (text or "")[:n].replace("\n", "\\n").replace("\r", "\\r")


class LLMProvider(ABC):
    name: str = ""

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str,
        max_tokens: int = 4096,
        timeout_seconds: float = 40.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = (api_key or "").strip()
        self.base_url = base_url.rstrip("/")
        self.max_tokens = max_tokens
        self.timeout = httpx.Timeout(timeout_seconds, connect=10.0)
        self._client = http_client

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @abstractmethod
    async def create_plan(self, *, model: str, system: str, user_content: str) -> ProviderResponse:
        """Send one planning request and normalize the answer."""

    async def _post(self, url: str, headers: dict, payload: dict) -> dict:
        try:
            if self._client is not None:
                r = await self._client.post(url, headers=headers, json=payload, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    r = await client.post(url, headers=headers, json=payload)
        except httpx.HTTPError as e:
            raise UpstreamFailureError(f"{self.name} transport error: {type(e).__name__}: {e}") from e

        if r.status_code == 429:
            log.warning(f"{self.name} rate limited: {_safe_snippet(r.text)}")
            raise UpstreamRateLimitError(f"{self.name} rate limited (429)")

        if r.status_code >= 400:
            raise UpstreamFailureError(f"{self.name} error {r.status_code}: {_safe_snippet(r.text)}")

        try:
            data = loads_json(r.text)
        except ValueError as e:
            raise UpstreamFailureError(f"{self.name} returned non-JSON body: {_safe_snippet(r.text)}") from e
        if not isinstance(data, dict):
            raise UpstreamFailureError(f"Unexpected {self.name} response: {_safe_snippet(str(data))}")
        return data


class AnthropicProvider(LLMProvider):
    name = "anthropic"

    async def create_plan(self, *, model: str, system: str, user_content: str) -> ProviderResponse:
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }
        payload = {
            "model": model,
            "max_tokens": self.max_tokens,
            "system": system,
            "tools": anthropic_tool_schemas(),
            "messages": [{"role": "user", "content": user_content}],
        }
        data = await self._post(f"{self.base_url}/v1/messages", headers, payload)
        return parse_anthropic_message(data)


class OpenAIProvider(LLMProvider):
    name = "openai"

    async def create_plan(self, *, model: str, system: str, user_content: str) -> ProviderResponse:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        payload = {
            "model": model,
            "max_tokens": self.max_tokens,
            "tools": openai_tool_schemas(),
            "tool_choice": "auto",
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user_content},
            ],
        }
        data = await self._post(f"{self.base_url}/chat/completions", headers, payload)
        return parse_openai_completion(data)


def parse_anthropic_message(data: dict) -> ProviderResponse:
    blocks = data.get("content")
    if not isinstance(blocks, list):
        raise UpstreamFailureError(f"Unexpected anthropic response: {_safe_snippet(str(data))}")

    tool_calls: list[ToolCall] = []
    texts: list[str] = []
    for block in blocks:
        if not isinstance(block, dict):
            continue
        if block.get("type") == "tool_use":
            tool_calls.append(
                ToolCall(
                    id=str(block.get("id") or f"anthropic-tool-{len(tool_calls) + 1}"),
                    name=str(block.get("name") or ""),
                    input=drop_non_finite(ensure_record(block.get("input"))),
                )
            )
        elif block.get("type") == "text":
            text = block.get("text")
            if isinstance(text, str) and text.strip():
                texts.append(text)

    return ProviderResponse(
        tool_calls=tool_calls,
        text="\n".join(texts) or None,
        stop_reason=data.get("stop_reason"),
    )


def _openai_text(content: Any) -> Optional[str]:
    if isinstance(content, str):
        trimmed = content.strip()
        return trimmed or None
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and isinstance(part.get("text"), str):
                parts.append(part["text"])
        joined = "\n".join(parts).strip()
        return joined or None
    return None


def parse_openai_completion(data: dict) -> ProviderResponse:
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        raise UpstreamFailureError(f"Unexpected openai response: {_safe_snippet(str(data))}")

    choice = ensure_record(choices[0])
    message = ensure_record(choice.get("message"))
    tool_calls: list[ToolCall] = []
    raw_calls = message.get("tool_calls") or []
    for index, raw in enumerate(raw_calls if isinstance(raw_calls, list) else []):
        raw = ensure_record(raw)
        function = ensure_record(raw.get("function"))
        if raw.get("type", "function") != "function" or not isinstance(function.get("name"), str):
            continue
        tool_calls.append(
            ToolCall(
                id=str(raw.get("id") or f"openai-tool-{index + 1}"),
                name=function["name"],
                input=parse_tool_arguments(function.get("arguments")),
            )
        )

    return ProviderResponse(
        tool_calls=tool_calls,
        text=_openai_text(message.get("content")),
        stop_reason=choice.get("finish_reason"),
    )


def build_providers(
    cfg: Settings = default_settings,
    http_client: Optional[httpx.AsyncClient] = None,
) -> dict[str, LLMProvider]:
    common = {
        "max_tokens": cfg.LLM_MAX_TOKENS,
        "timeout_seconds": cfg.LLM_TIMEOUT_SECONDS,
        "http_client": http_client,
    }
    return {
        "anthropic": AnthropicProvider(api_key=cfg.ANTHROPIC_API_KEY, base_url=cfg.ANTHROPIC_BASE_URL, **common),
        "openai": OpenAIProvider(api_key=cfg.OPENAI_API_KEY, base_url=cfg.OPENAI_BASE_URL, **common),
    }
