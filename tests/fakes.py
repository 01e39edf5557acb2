"""Test doubles shared by the test modules."""

from typing import Iterable, Optional, Union

from caseboard_ai.core.config import Settings
from caseboard_ai.core.errors import AuthError
from caseboard_ai.llm.providers import LLMProvider
from caseboard_ai.llm.schemas import ProviderResponse, ToolCall

Scripted = Union[ProviderResponse, Exception]


def make_settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


class ScriptedProvider(LLMProvider):
    """Answers create_plan from a script; exceptions in the script are raised."""

    def __init__(self, name: str, script: Iterable[Scripted] = (), *, configured: bool = True):
        super().__init__(api_key="test-key" if configured else "", base_url=f"http://{name}.test")
        self.name = name
        self.script = list(script)
        self.calls: list[dict] = []

    async def create_plan(self, *, model: str, system: str, user_content: str) -> ProviderResponse:
        self.calls.append({"model": model, "system": system, "user_content": user_content})
        if not self.script:
            raise AssertionError(f"{self.name} called more times than scripted")
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def sticky(i: int, **overrides) -> ToolCall:
    data = {"text": f"note {i}", "x": 200 * i, "y": 0}
    data.update(overrides)
    return ToolCall(id=f"call-{i}", name="createStickyNote", input=data)


def plan(*calls: ToolCall, text: Optional[str] = None, stop_reason: str = "tool_use") -> ProviderResponse:
    return ProviderResponse(tool_calls=list(calls), text=text, stop_reason=stop_reason)


def stickies(n: int, start: int = 0) -> ProviderResponse:
    return plan(*(sticky(i) for i in range(start, start + n)))


class StaticVerifier:
    def __init__(self, actor_id: str = "user-1", error: Optional[Exception] = None):
        self.actor_id = actor_id
        self.error = error
        self.tokens: list[str] = []

    async def verify(self, token: str) -> str:
        self.tokens.append(token)
        if self.error is not None:
            raise self.error
        if token == "bad":
            raise AuthError("rejected by test verifier")
        return self.actor_id


class StaticAccess:
    def __init__(self, allowed: bool = True, error: Optional[Exception] = None):
        self.allowed = allowed
        self.error = error
        self.checked: list[tuple[str, str]] = []

    async def can_invoke_ai(self, board_id: str, actor_id: str) -> bool:
        self.checked.append((board_id, actor_id))
        if self.error is not None:
            raise self.error
        return self.allowed


class MemorySink:
    def __init__(self):
        self.batches: list = []

    async def __call__(self, events) -> None:
        self.batches.append(list(events))

    @property
    def events(self) -> list:
        return [e for batch in self.batches for e in batch]
