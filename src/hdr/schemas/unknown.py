"""Permissive schema for extension tools served over the MCP side channel."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

RESERVED_TOOLS = frozenset({"bash", "computer", "str_replace_editor"})


class UnknownAction(BaseModel):
    """Any named tool invocation that is not part of the fixed action set."""

    tool: str = Field(min_length=1)
    params: dict[str, Any] = Field(default_factory=dict)

    @field_validator("tool")
    @classmethod
    def _not_reserved(cls, value: str) -> str:
        # A malformed fixed action must stay an error instead of turning into an extension call.
        if value in RESERVED_TOOLS:
            raise ValueError(f"{value!r} is a built-in tool and must match its own schema")
        return value
