"""Shell command action."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class BashParams(BaseModel):
    """Run one shell command on the remote computer."""

    model_config = ConfigDict(extra="forbid")

    command: str = Field(min_length=1)


class BashAction(BaseModel):
    model_config = ConfigDict(extra="forbid")

    tool: Literal["bash"]
    params: BashParams
