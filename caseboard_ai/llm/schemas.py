from pydantic import BaseModel, Field
from typing import Any, Dict, List, Literal, Optional

Provider = Literal["anthropic", "openai"]
PROVIDERS: tuple[str, ...] = ("anthropic", "openai")


class ToolCall(BaseModel):
    id: str
    name: str
    input: Dict[str, Any] = Field(default_factory=dict)


class ValidationIssue(BaseModel):
    tool_call_id: str
    tool_name: str
    reason: str


class ProviderResponse(BaseModel):
    tool_calls: List[ToolCall] = []
    text: Optional[str] = None
    stop_reason: Optional[str] = None


class Complexity(BaseModel):
    is_complex: bool
    minimum_tool_calls: int
    source: str = "default"  # cache | trigger | simple | default


class PlanRequest(BaseModel):
    prompt: str
    board_state: Any = None
    board_id: str
    actor_id: str
    provider: Optional[Provider] = None
    model_override: Optional[str] = None


class PlanResult(BaseModel):
    tool_calls: List[ToolCall] = []
    message: Optional[str] = None
    stop_reason: Optional[str] = None
    provider: Provider
    model: str
