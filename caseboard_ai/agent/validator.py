import math
from typing import Any, Iterable, Sequence

from caseboard_ai.llm.schemas import ToolCall, ValidationIssue
from caseboard_ai.tools.registry import get_tool

UNSUPPORTED_TOOL = "Unsupported tool name."


def is_value_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, float):
        return not math.isfinite(value)
    return False


def validate_tool_calls(tool_calls: Iterable[ToolCall]) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    for call in tool_calls:
        try:
            definition = get_tool(call.name)
        except KeyError:
            issues.append(ValidationIssue(tool_call_id=call.id, tool_name=call.name, reason=UNSUPPORTED_TOOL))
            continue

        missing = [key for key in definition.required_fields if is_value_missing(call.input.get(key))]
        if missing:
            issues.append(
                ValidationIssue(
                    tool_call_id=call.id,
                    tool_name=call.name,
                    reason=f"Missing required input: {', '.join(missing)}",
                )
            )
    return issues


def plan_quality_score(tool_calls: Sequence[ToolCall], issues: Sequence[ValidationIssue]) -> int:
    """Lower is better. Any issue outweighs any number of extra calls."""
    return len(issues) * 100 - len(tool_calls)


def describe_issues(issues: Iterable[ValidationIssue]) -> str:
    return "; ".join(f"{issue.tool_name} ({issue.reason})" for issue in issues)


"""
Structural plan checks and it does:
- Flags tool calls whose name is not in the registry
- Flags known tools with missing, blank or non-finite required inputs
- Scores a plan so the generator can pick the better of two attempts

Main purpose:
Purely structural validation; values are never range-checked.
"""
