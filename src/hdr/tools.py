"""Tool descriptors advertised to the model and tool result shaping."""

from __future__ import annotations

from collections.abc import Iterator
from copy import deepcopy
from dataclasses import dataclass, replace
from typing import Any, Literal

from mcp.types import CallToolResult, ImageContent, TextContent

from hdr.types import ToolResult

ToolSource = Literal["computer", "mcp"]

DEFAULT_DISPLAY_WIDTH = 1024
DEFAULT_DISPLAY_HEIGHT = 768
IMAGE_PLACEHOLDER = "<image omitted>"


@dataclass(frozen=True)
class ToolDescriptor:
    """One tool as advertised to the model.

    Built-in computer-use tools carry an Anthropic ``type``; extension tools
    carry a JSON ``input_schema`` instead.
    """

    name: str
    type: str | None = None
    description: str | None = None
    input_schema: dict[str, Any] | None = None
    display_width_px: int | None = None
    display_height_px: int | None = None
    display_number: int | None = None
    source: ToolSource = "computer"

    def to_param(self) -> dict[str, Any]:
        param: dict[str, Any] = {"name": self.name}
        if self.type is not None:
            param["type"] = self.type
        if self.description is not None:
            param["description"] = self.description
        if self.input_schema is not None:
            param["input_schema"] = deepcopy(self.input_schema)
        if self.display_width_px is not None:
            param["display_width_px"] = self.display_width_px
        if self.display_height_px is not None:
            param["display_height_px"] = self.display_height_px
        if self.display_number is not None:
            param["display_number"] = self.display_number
        return param

    def with_display(self, width: int | None, height: int | None, number: int | None = None) -> ToolDescriptor:
        return replace(
            self,
            display_width_px=width if width is not None else self.display_width_px,
            display_height_px=height if height is not None else self.display_height_px,
            display_number=number if number is not None else self.display_number,
        )


BASH_TOOL = ToolDescriptor(name="bash", type="bash_20241022")
# Placeholder geometry; replaced once the welcome frame reports the real display.
COMPUTER_TOOL = ToolDescriptor(
    name="computer",
    type="computer_20241022",
    display_width_px=DEFAULT_DISPLAY_WIDTH,
    display_height_px=DEFAULT_DISPLAY_HEIGHT,
)
EDIT_TOOL = ToolDescriptor(name="str_replace_editor", type="text_editor_20241022")
DEFAULT_TOOLS = (BASH_TOOL, COMPUTER_TOOL, EDIT_TOOL)


@dataclass(frozen=True)
class ToolSet:
    """Immutable, versioned set of tool descriptors keyed by name.

    Every change returns a new ``ToolSet`` with ``version`` bumped.
    """

    tools: tuple[ToolDescriptor, ...] = DEFAULT_TOOLS
    version: int = 0

    def __iter__(self) -> Iterator[ToolDescriptor]:
        return iter(self.tools)

    def __len__(self) -> int:
        return len(self.tools)

    def names(self) -> list[str]:
        return [tool.name for tool in self.tools]

    def get(self, name: str) -> ToolDescriptor | None:
        for tool in self.tools:
            if tool.name == name:
                return tool
        return None

    def register(self, *descriptors: ToolDescriptor) -> ToolSet:
        """Add descriptors; a descriptor with an existing name replaces it in place."""

        tools = list(self.tools)
        for descriptor in descriptors:
            for idx, existing in enumerate(tools):
                if existing.name == descriptor.name:
                    tools[idx] = descriptor
                    break
            else:
                tools.append(descriptor)
        return ToolSet(tools=tuple(tools), version=self.version + 1)

    def replace(self, descriptor: ToolDescriptor) -> ToolSet:
        if self.get(descriptor.name) is None:
            raise KeyError(descriptor.name)
        return self.register(descriptor)

    def to_params(self) -> list[dict[str, Any]]:
        return [tool.to_param() for tool in self.tools]


def make_tool_result(result: ToolResult, tool_use_id: str) -> dict[str, Any]:
    """Convert a computer result into an Anthropic ``tool_result`` block."""

    content: list[dict[str, Any]] = []
    is_error = False
    if result.error:
        is_error = True
        content.append({"type": "text", "text": result.error})
    else:
        if result.output:
            content.append({"type": "text", "text": result.output})
        if result.base64_image:
            content.append({
                "type": "image",
                "source": {"type": "base64", "media_type": "image/png", "data": result.base64_image},
            })
    return {"type": "tool_result", "tool_use_id": tool_use_id, "content": content, "is_error": is_error}


def make_mcp_tool_result(result: CallToolResult, tool_use_id: str) -> dict[str, Any]:
    """Convert an MCP call result into an Anthropic ``tool_result`` block."""

    content: list[dict[str, Any]] = []
    for block in result.content:
        if isinstance(block, TextContent):
            content.append({"type": "text", "text": block.text})
        elif isinstance(block, ImageContent):
            content.append({
                "type": "image",
                "source": {"type": "base64", "media_type": block.mimeType, "data": block.data},
            })
        else:
            content.append({"type": "text", "text": block.model_dump_json(exclude_none=True)})
    return {"type": "tool_result", "tool_use_id": tool_use_id, "content": content, "is_error": bool(result.isError)}


def make_error_result(message: str, tool_use_id: str) -> dict[str, Any]:
    return {
        "type": "tool_result",
        "tool_use_id": tool_use_id,
        "content": [{"type": "text", "text": message}],
        "is_error": True,
    }


def strip_images(value: Any) -> Any:
    """Return a copy of message content with base64 image data replaced by a placeholder."""

    if isinstance(value, list):
        return [strip_images(item) for item in value]
    if not isinstance(value, dict):
        return value
    if value.get("type") == "image" and isinstance(value.get("source"), dict):
        source = dict(value["source"])
        if "data" in source:
            source["data"] = IMAGE_PLACEHOLDER
        return {**value, "source": source}
    return {key: strip_images(item) for key, item in value.items()}
