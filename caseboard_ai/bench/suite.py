"""
Benchmark inputs and it handles:
- Prompt suite loading (JSON file or built-in fallback)
- provider:model matrix parsing
- Board id parsing
- Request matrix construction (rounds x boards x prompts x matrix)

Main purpose:
Build the immutable request list a benchmark run executes.
"""


import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

from caseboard_ai.core.errors import BenchmarkSetupError
from caseboard_ai.llm.router import is_provider, sanitize_model_name

DEFAULT_MODEL_MATRIX = "anthropic:claude-sonnet-4-20250514,openai:gpt-4.1-mini,openai:gpt-4.1"


@dataclass(frozen=True)
class PromptEntry:
    id: str
    category: str
    prompt: str


@dataclass(frozen=True)
class MatrixEntry:
    provider: str
    model: str

    @property
    def key(self) -> str:
        return f"{self.provider}:{self.model}"

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class BenchmarkRequestItem:
    round: int
    board_id: str
    prompt_id: str
    category: str
    prompt: str
    provider_override: str
    model_override: str


FALLBACK_PROMPT_SUITE: tuple[PromptEntry, ...] = (
    PromptEntry("create_sticky", "creation", "Add a yellow sticky note that says 'User Research'."),
    PromptEntry("create_shape", "creation", "Create a blue rectangle at position 100, 200."),
    PromptEntry("change_color", "manipulation", "Change the sticky note color to green."),
    PromptEntry("move_notes", "manipulation", "Move all pink sticky notes to the right side."),
    PromptEntry("grid_arrange", "layout", "Arrange these sticky notes in a grid."),
    PromptEntry("grid_generate", "layout", "Create a 2x3 grid of sticky notes for pros and cons."),
    PromptEntry("swot_template", "complex", "Create a SWOT analysis template with four quadrants."),
    PromptEntry(
        "retro_template",
        "complex",
        "Set up a retrospective board with What Went Well, What Didn't, and Action Items columns.",
    ),
)


def parse_prompt_entries(raw: Any) -> list[PromptEntry]:
    if not isinstance(raw, list):
        raise BenchmarkSetupError("Prompt suite must be a JSON array.")

    prompts: list[PromptEntry] = []
    for index, entry in enumerate(raw):
        default_id = f"prompt_{index + 1}"
        if isinstance(entry, str):
            text = entry.strip()
            if text:
                prompts.append(PromptEntry(default_id, "unspecified", text))
            continue
        if not isinstance(entry, dict):
            continue

        text = entry.get("prompt").strip() if isinstance(entry.get("prompt"), str) else ""
        if not text:
            continue
        pid = entry.get("id").strip() if isinstance(entry.get("id"), str) else ""
        category = entry.get("category").strip() if isinstance(entry.get("category"), str) else ""
        prompts.append(PromptEntry(pid or default_id, category or "unspecified", text))

    if not prompts:
        raise BenchmarkSetupError("Prompt suite is empty.")
    return prompts


def load_prompt_suite(path: Optional[str]) -> list[PromptEntry]:
    if not path:
        return list(FALLBACK_PROMPT_SUITE)
    p = Path(path).expanduser().resolve()
    if not p.exists():
        return list(FALLBACK_PROMPT_SUITE)
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise BenchmarkSetupError(f"Prompt suite {p} is not valid JSON: {e}") from e
    return parse_prompt_entries(raw)


def parse_model_matrix(raw: Optional[str]) -> list[MatrixEntry]:
    matrix: list[MatrixEntry] = []
    for entry in (raw or "").split(","):
        entry = entry.strip()
        if not entry:
            continue
        provider, _, model_raw = entry.partition(":")
        provider = provider.strip()
        if not is_provider(provider):
            raise BenchmarkSetupError(f'Invalid provider in matrix entry "{entry}".')
        model = sanitize_model_name(model_raw)
        if model is None:
            raise BenchmarkSetupError(f'Invalid model name in matrix: "{model_raw}"')
        matrix.append(MatrixEntry(provider, model))

    if not matrix:
        raise BenchmarkSetupError("Model matrix is empty.")
    return matrix


def parse_board_ids(raw: Any) -> list[str]:
    if isinstance(raw, (list, tuple)):
        values: Iterable[str] = (str(v) for v in raw)
    else:
        values = str(raw or "").split(",")
    return unique_strings(v.strip() for v in values)


def unique_strings(values: Iterable[str]) -> list[str]:
    seen: dict[str, None] = {}
    for v in values:
        if v:
            seen.setdefault(v, None)
    return list(seen)


def build_request_matrix(
    board_ids: Sequence[str],
    prompts: Sequence[PromptEntry],
    matrix: Sequence[MatrixEntry],
    rounds: int,
    max_requests: int = 0,
) -> list[BenchmarkRequestItem]:
    items = [
        BenchmarkRequestItem(
            round=round_no,
            board_id=board_id,
            prompt_id=entry.id,
            category=entry.category,
            prompt=entry.prompt,
            provider_override=m.provider,
            model_override=m.model,
        )
        for round_no in range(1, rounds + 1)
        for board_id in board_ids
        for entry in prompts
        for m in matrix
    ]
    if max_requests > 0:
        return items[:max_requests]
    return items
