"""
Canvas tool catalog.
What it holds:
- Every canvas mutation the planner may ask for
- Required input fields and property types per tool
- Provider-specific tool schema renderings

And, the main purpose:
Single read-only source of truth for tool names and inputs.
"""


from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    required_fields: tuple[str, ...]
    property_types: Mapping[str, str]
    input_schema: Mapping[str, Any] = field(repr=False)


def _prop(kind: str, description: str, enum: list[str] | None = None) -> dict:
    p: dict[str, Any] = {"type": kind, "description": description}
    if enum:
        p["enum"] = enum
    return p


def _define(name: str, description: str, properties: dict, required: list[str]) -> ToolDefinition:
    schema = {"type": "object", "properties": properties, "required": required}
    return ToolDefinition(
        name=name,
        description=description,
        required_fields=tuple(required),
        property_types=MappingProxyType({k: v["type"] for k, v in properties.items()}),
        input_schema=MappingProxyType(schema),
    )


_DEFINITIONS = [
    _define(
        "createStickyNote",
        "Create a sticky note on the whiteboard",
        {
            "text": _prop("string", "The text content of the sticky note"),
            "x": _prop("number", "X position in world coordinates"),
            "y": _prop("number", "Y position in world coordinates"),
            "color": _prop("string", "Hex color for the sticky note background (e.g. #FFEB3B)"),
        },
        ["text", "x", "y"],
    ),
    _define(
        "createShape",
        "Create a shape (rectangle, circle, etc.) on the whiteboard",
        {
            "type": _prop("string", "The type of shape to create", ["rect", "circle", "line"]),
            "x": _prop("number", "X position in world coordinates"),
            "y": _prop("number", "Y position in world coordinates"),
            "x2": _prop("number", "Optional end X for line shapes. Use with y2."),
            "y2": _prop("number", "Optional end Y for line shapes. Use with x2."),
            "width": _prop("number", "Width of the shape"),
            "height": _prop("number", "Height of the shape"),
            "color": _prop("string", "Hex fill color"),
        },
        ["type", "x", "y", "width", "height"],
    ),
    _define(
        "createFrame",
        "Create a frame (grouping container) on the whiteboard",
        {
            "title": _prop("string", "Title of the frame"),
            "x": _prop("number", "X position in world coordinates"),
            "y": _prop("number", "Y position in world coordinates"),
            "width": _prop("number", "Width of the frame"),
            "height": _prop("number", "Height of the frame"),
        },
        ["title", "x", "y", "width", "height"],
    ),
    _define(
        "createConnector",
        "Create a connector (arrow/line) between two objects",
        {
            "fromId": _prop("string", "ID of the source object"),
            "toId": _prop("string", "ID of the target object"),
            "style": _prop("string", "Visual style of the connector", ["arrow", "line", "dashed"]),
        },
        ["fromId", "toId"],
    ),
    _define(
        "moveObject",
        "Move an existing object to a new position",
        {
            "objectId": _prop("string", "ID of the object to move"),
            "x": _prop("number", "New X position"),
            "y": _prop("number", "New Y position"),
        },
        ["objectId", "x", "y"],
    ),
    _define(
        "resizeObject",
        "Resize an existing object",
        {
            "objectId": _prop("string", "ID of the object to resize"),
            "width": _prop("number", "New width"),
            "height": _prop("number", "New height"),
        },
        ["objectId", "width", "height"],
    ),
    _define(
        "updateText",
        "Update text for sticky/text objects, or update frame title text for frame objects.",
        {
            "objectId": _prop("string", "ID of the object to update"),
            "newText": _prop("string", "New text content"),
        },
        ["objectId", "newText"],
    ),
    _define(
        "changeColor",
        "Change the color of an existing object",
        {
            "objectId": _prop("string", "ID of the object to recolor"),
            "color": _prop("string", "New hex color (e.g. #4CAF50)"),
        },
        ["objectId", "color"],
    ),
    _define(
        "deleteObject",
        "Delete an existing object from the whiteboard",
        {"objectId": _prop("string", "ID of the object to delete")},
        ["objectId"],
    ),
    _define(
        "getBoardState",
        "Get the current state of all objects on the board. "
        "Use this to understand what exists before making changes.",
        {},
        [],
    ),
]

TOOLS: Mapping[str, ToolDefinition] = MappingProxyType({d.name: d for d in _DEFINITIONS})


def get_tool(name: str) -> ToolDefinition:
    if name not in TOOLS:
        raise KeyError(f"Unknown tool: {name}. Known: {list(TOOLS.keys())}")
    return TOOLS[name]


def has_tool(name: str) -> bool:
    return name in TOOLS


def tool_names() -> list[str]:
    return list(TOOLS.keys())


def required_fields(tool: str | ToolDefinition) -> tuple[str, ...]:
    definition = tool if isinstance(tool, ToolDefinition) else get_tool(tool)
    return definition.required_fields


def _plain_schema(definition: ToolDefinition) -> dict:
    schema = definition.input_schema
    return {
        "type": schema["type"],
        "properties": {k: dict(v) for k, v in schema["properties"].items()},
        "required": list(schema["required"]),
    }


def anthropic_tool_schemas() -> list[dict]:
    return [
        {"name": d.name, "description": d.description, "input_schema": _plain_schema(d)}
        for d in TOOLS.values()
    ]


def openai_tool_schemas() -> list[dict]:
    return [
        {
            "type": "function",
            "function": {"name": d.name, "description": d.description, "parameters": _plain_schema(d)},
        }
        for d in TOOLS.values()
    ]
