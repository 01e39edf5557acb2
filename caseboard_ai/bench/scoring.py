"""
Per-prompt accuracy heuristics.

Each scorer looks only at the shape of the returned tool calls (which tools,
which inputs, how many objects). Latency and provider never count. Scores are
clamped to [0, 1]; a failed request always scores 0.
"""

import math
from typing import Any, Callable, Dict, List

ToolCallDict = Dict[str, Any]
Scorer = Callable[["CallIndex"], float]

SCORERS: Dict[str, Scorer] = {}


def register(prompt_id: str):
    def deco(fn: Scorer) -> Scorer:
        SCORERS[prompt_id] = fn
        return fn

    return deco


def normalize_tool_calls(raw: Any) -> List[ToolCallDict]:
    """Keep entries with a non-empty name; inputs default to {}."""
    if not isinstance(raw, list):
        return []
    calls = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        name = entry.get("name")
        if not isinstance(name, str) or not name:
            continue
        data = entry.get("input")
        calls.append({"name": name, "input": data if isinstance(data, dict) else {}})
    return calls


def has_number(data: dict, key: str) -> bool:
    value = data.get(key)
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    try:
        return math.isfinite(float(value))
    except (OverflowError, ValueError):
        return False


def has_text(data: dict, key: str) -> bool:
    value = data.get(key)
    return isinstance(value, str) and bool(value.strip())


class CallIndex:
    def __init__(self, tool_calls: List[ToolCallDict]):
        self.calls = tool_calls
        self.by_name: Dict[str, List[ToolCallDict]] = {}
        for call in tool_calls:
            self.by_name.setdefault(call["name"], []).append(call)

    def named(self, name: str) -> List[ToolCallDict]:
        return self.by_name.get(name, [])

    def has(self, name: str) -> bool:
        return bool(self.named(name))

    def any_positioned(self, name: str) -> bool:
        return any(has_number(c["input"], "x") and has_number(c["input"], "y") for c in self.named(name))

    def __len__(self) -> int:
        return len(self.calls)


@register("create_sticky")
def _create_sticky(idx: CallIndex) -> float:
    score = 0.6 if idx.has("createStickyNote") else 0.0
    if any("user research" in str(c["input"].get("text") or "").lower() for c in idx.named("createStickyNote")):
        score += 0.2
    if idx.any_positioned("createStickyNote"):
        score += 0.2
    return score


@register("create_shape")
def _create_shape(idx: CallIndex) -> float:
    score = 0.6 if idx.has("createShape") else 0.0
    if any(str(c["input"].get("type") or "") == "rect" for c in idx.named("createShape")):
        score += 0.2
    if idx.any_positioned("createShape"):
        score += 0.2
    return score


@register("change_color")
def _change_color(idx: CallIndex) -> float:
    score = 0.7 if idx.has("changeColor") else 0.0
    if any(has_text(c["input"], "objectId") and has_text(c["input"], "color") for c in idx.named("changeColor")):
        score += 0.3
    return score


@register("move_notes")
def _move_notes(idx: CallIndex) -> float:
    score = 0.5 if idx.has("moveObject") else 0.0
    score += 0.3 if idx.has("getBoardState") else 0.0
    score += 0.2 if idx.any_positioned("moveObject") else 0.0
    return score


@register("grid_arrange")
def _grid_arrange(idx: CallIndex) -> float:
    score = 0.5 if idx.has("moveObject") else 0.0
    score += 0.3 if idx.has("getBoardState") else 0.0
    score += 0.2 if len(idx) >= 2 else 0.0
    return score


@register("grid_generate")
def _grid_generate(idx: CallIndex) -> float:
    stickies = len(idx.named("createStickyNote"))
    score = 0.5 if stickies >= 4 else 0.0
    score += 0.3 if stickies >= 6 else 0.0
    score += 0.2 if idx.has("createFrame") or idx.has("createShape") else 0.0
    return score


@register("swot_template")
def _swot_template(idx: CallIndex) -> float:
    score = 0.4 if idx.has("createFrame") else 0.0
    if len(idx.named("createStickyNote")) >= 4 or len(idx.named("createShape")) >= 4:
        score += 0.4
    score += 0.2 if len(idx) >= 5 else 0.0
    return score


@register("retro_template")
def _retro_template(idx: CallIndex) -> float:
    score = 0.4 if idx.has("createFrame") else 0.0
    score += 0.4 if len(idx.named("createStickyNote")) >= 3 else 0.0
    score += 0.2 if len(idx) >= 4 else 0.0
    return score


def score_prompt_accuracy(prompt_id: str, tool_calls: List[ToolCallDict], success: bool) -> float:
    if not success:
        return 0.0
    scorer = SCORERS.get(prompt_id)
    if scorer is None:
        return 1.0
    return max(0.0, min(1.0, round(scorer(CallIndex(tool_calls)), 4)))
