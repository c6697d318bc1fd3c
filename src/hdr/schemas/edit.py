"""File editing actions for the ``str_replace_editor`` tool."""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictInt

EDIT_COMMANDS = ("view", "create", "str_replace", "insert", "undo_edit")


class _EditParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    path: str = Field(min_length=1)


class ViewParams(_EditParams):
    """View contents of a file."""

    command: Literal["view"]
    view_range: tuple[StrictInt, StrictInt] | None = None


class CreateParams(_EditParams):
    """Create a new file with specified content."""

    command: Literal["create"]
    file_text: str


class StrReplaceParams(_EditParams):
    """Replace text in a file."""

    command: Literal["str_replace"]
    old_str: str
    new_str: str | None = None


class InsertParams(_EditParams):
    """Insert text at specific line in a file."""

    command: Literal["insert"]
    insert_line: StrictInt = Field(ge=0)
    new_str: str


class UndoEditParams(_EditParams):
    """Undo last edit to a file."""

    command: Literal["undo_edit"]


EditParams = Annotated[
    ViewParams | CreateParams | StrReplaceParams | InsertParams | UndoEditParams,
    Field(discriminator="command"),
]


class EditAction(BaseModel):
    """File editing operations."""

    model_config = ConfigDict(extra="forbid")

    tool: Literal["str_replace_editor"]
    params: EditParams
