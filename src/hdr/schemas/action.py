"""Two-stage action validation: the fixed action union, then extension tools."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Annotated, Any

import pydantic
from pydantic import Field, TypeAdapter

from hdr.errors import ValidationError
from hdr.schemas.bash import BashAction
from hdr.schemas.computer import ComputerAction
from hdr.schemas.edit import EditAction
from hdr.schemas.unknown import UnknownAction

FixedAction = BashAction | ComputerAction | EditAction
Action = Annotated[FixedAction, Field(discriminator="tool")]

ACTION_ADAPTER: TypeAdapter[FixedAction] = TypeAdapter(Action)


@dataclass(frozen=True)
class ActionValidation:
    """Outcome of validating one raw payload.

    Exactly one of ``action`` and ``error`` is set. ``extension`` marks payloads
    accepted by the permissive schema, which are routed to the MCP side channel.
    """

    action: FixedAction | UnknownAction | None = None
    error: ValidationError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def extension(self) -> bool:
        return isinstance(self.action, UnknownAction)


def _tool_name(raw: object) -> str | None:
    if not isinstance(raw, Mapping):
        return None
    tool = raw.get("tool")
    if isinstance(tool, str) and tool:
        return tool
    return None


def _format_errors(exc: pydantic.ValidationError) -> str:
    rows: list[str] = []
    for error in exc.errors(include_url=False):
        location = ".".join(str(part) for part in error["loc"])
        rows.append(f"{location}: {error['msg']}" if location else error["msg"])
    return "; ".join(rows)


def validate_action(raw: object) -> ActionValidation:
    """Validate a raw payload against the fixed actions, then the extension schema.

    Never raises for malformed input.
    """

    tool = _tool_name(raw)
    try:
        return ActionValidation(action=ACTION_ADAPTER.validate_python(raw))
    except pydantic.ValidationError as fixed_error:
        fixed_detail = _format_errors(fixed_error)

    try:
        return ActionValidation(action=UnknownAction.model_validate(raw))
    except pydantic.ValidationError as extension_error:
        if tool is None:
            detail = _format_errors(extension_error)
        else:
            detail = fixed_detail
        return ActionValidation(error=ValidationError(f"invalid action: {detail}", tool=tool))


def parse_action(raw: object) -> FixedAction:
    """Validate a fixed action and raise ``ValidationError`` otherwise."""

    result = validate_action(raw)
    if result.error is not None:
        raise result.error
    if result.extension:
        raise ValidationError(
            "not a computer action; use Computer.call_mcp_tool() for extension tools",
            tool=_tool_name(raw),
        )
    return result.action  # type: ignore[return-value]


def dump_action(action: FixedAction | UnknownAction) -> dict[str, Any]:
    """Encode an action as its JSON-compatible wire mapping."""

    return action.model_dump(mode="json", exclude_none=True)
