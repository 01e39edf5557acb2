import json
from typing import Any, Sequence

from caseboard_ai.llm.schemas import ToolCall

BASE_SYSTEM = """You are an AI whiteboard assistant for a collaborative case-board app. You help users create and manipulate objects on an infinite canvas.

You have access to tools to create sticky notes, shapes, frames, connectors, and to move, resize, recolor, and update text on existing objects.

Guidelines:
- Place objects at reasonable positions (avoid overlapping). Space items ~200px apart.
- Use pleasant colors. Default sticky note color: #FFEB3B (yellow). Other good colors: #81C784 (green), #64B5F6 (blue), #E57373 (red), #FFB74D (orange), #BA68C8 (purple).
- Standard sticky note size: 150x100. Standard shape size: 120x80.
- For line shapes, provide width + height or line endpoints (x2, y2).
- Always use the getBoardState tool first if you need to reference or modify existing objects.
- updateText is only valid for sticky/text objects and frame titles, not rect/circle/line/connector.
- Include stable objectId values for created objects so downstream updates can reference them."""


SIMPLE_SYSTEM = BASE_SYSTEM + """

This is a single, focused edit:
- Answer with the one tool call that performs it (plus getBoardState only if you must look up an existing object).
- Do not add extra objects the user did not ask for."""


COMPLEX_SYSTEM = BASE_SYSTEM + """

This request needs a multi-step plan:
- Return a complete multi-step plan in a single response. Do not stop after one creation call.
- For templates (SWOT, Kanban, Retro), create frames first, then populate with sticky notes inside.
- When arranging in a grid, use consistent spacing (e.g. 200px horizontal, 150px vertical).
- For an explicit grid size (e.g. 2x3), create exactly rows x columns objects.
- When the request refers to several existing objects, emit one call per object."""


EXPANSION_REQUIREMENTS = [
    "Return a complete end-to-end tool plan now.",
    "Requirements:",
    "- Include all required structural objects for the request, not just the first object.",
    "- Provide all necessary create/update calls in one response.",
    "- Every tool call must include required inputs and valid values.",
    "- Use stable objectId values for created objects when possible.",
    "- Output tool calls only; avoid explanatory text unless absolutely necessary.",
]


def system_prompt(is_complex: bool) -> str:
    return COMPLEX_SYSTEM if is_complex else SIMPLE_SYSTEM


def board_state_is_empty(board_state: Any) -> bool:
    return board_state is None or (isinstance(board_state, (dict, list)) and not board_state)


def build_initial_user_content(prompt: str, board_state: Any) -> str:
    if board_state_is_empty(board_state):
        return prompt
    snapshot = json.dumps(board_state, ensure_ascii=False, default=str)
    return f"Current board objects: {snapshot}\n\nUser request: {prompt}"


def build_expansion_user_content(
    prompt: str,
    previous_calls: Sequence[ToolCall],
    previous_text: str | None,
    reasons: Sequence[str],
) -> str:
    calls_json = json.dumps([c.model_dump() for c in previous_calls], ensure_ascii=False, default=str)
    lines = [
        f"Original user request: {prompt}",
        f"Previous assistant text: {previous_text or '(none)'}",
        f"Previous tool calls ({len(previous_calls)}): {calls_json}",
        "Your previous tool plan needs correction.",
        *[f"- {reason}" for reason in reasons],
        *EXPANSION_REQUIREMENTS,
    ]
    return "\n".join(lines)
