"""Wire models exchanged with the remote computer."""

from __future__ import annotations

import json
from datetime import datetime
from uuid import UUID

import pydantic
from mcp.types import Tool as McpTool
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

MACHINE_ID_FIELDS = ("machine_id", "hostname")


class ToolResult(BaseModel):
    """Result payload of one executed action."""

    output: str | None = None
    error: str | None = None
    base64_image: str | None = None
    system: str | None = None


class MessageMetadata(BaseModel):
    session_id: UUID
    message_id: UUID
    request_timestamp: datetime
    response_timestamp: datetime


class ComputerMessage(BaseModel):
    """One inbound frame from the computer channel."""

    raw_input: str
    tool_result: ToolResult
    metadata: MessageMetadata


class ComputerMessageLog(ComputerMessage):
    """Conversation log record; screenshots are referenced by file instead of inlined."""

    screenshot_file: str | None = None


class MachineMetadata(BaseModel):
    """Machine capabilities carried in ``tool_result.system`` of the welcome frame.

    Every key must be present, any value may be null. Older servers call the
    machine identifier ``hostname``; newer ones call it ``machine_id``.
    """

    model_config = ConfigDict(populate_by_name=True)

    display_height: int | None
    display_width: int | None
    display_num: int | None
    arch: str | None
    machine_id: str | None = Field(validation_alias=AliasChoices(*MACHINE_ID_FIELDS))
    access_token: str | None


def parse_machine_metadata(system: str | None, *, id_field: str | None = None) -> MachineMetadata | None:
    """Parse a ``system`` side payload as machine metadata, or return ``None``.

    ``id_field`` names the identifier key to prefer when a payload carries both.
    """

    if not system:
        return None
    try:
        payload = json.loads(system)
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, dict):
        return None
    if id_field and id_field in payload:
        preferred = payload[id_field]
        payload = {key: value for key, value in payload.items() if key not in MACHINE_ID_FIELDS}
        payload["machine_id"] = preferred
    try:
        return MachineMetadata.model_validate(payload)
    except pydantic.ValidationError:
        return None


class StartServerRequest(BaseModel):
    """Ask the machine to spawn an MCP server with a shell command such as ``npx`` or ``uvx``."""

    name: str = Field(min_length=1)
    command: str = Field(min_length=1)


class StartServerResponse(BaseModel):
    """Returned when a server is registered, or already running."""

    tools: list[McpTool] = Field(default_factory=list)


class McpServer(BaseModel):
    """An MCP server currently running on the machine."""

    name: str
    tools: list[McpTool] = Field(default_factory=list)
