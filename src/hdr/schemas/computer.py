"""Pointer, keyboard and screenshot actions."""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictInt

Coordinate = tuple[StrictInt, StrictInt]

COMPUTER_ACTIONS = (
    "mouse_move",
    "left_click_drag",
    "cursor_position",
    "left_click",
    "right_click",
    "middle_click",
    "double_click",
    "key",
    "type",
    "screenshot",
)


class _ComputerParams(BaseModel):
    model_config = ConfigDict(extra="forbid")


class MouseMoveAction(_ComputerParams):
    """Move mouse cursor to specific coordinates."""

    action: Literal["mouse_move"]
    coordinate: Coordinate


class LeftClickDragAction(_ComputerParams):
    """Click and drag with left mouse button to coordinates."""

    action: Literal["left_click_drag"]
    coordinate: Coordinate


class CursorPositionAction(_ComputerParams):
    """Get current cursor position."""

    action: Literal["cursor_position"]


class LeftClickAction(_ComputerParams):
    """Perform left mouse click."""

    action: Literal["left_click"]


class RightClickAction(_ComputerParams):
    """Perform right mouse click."""

    action: Literal["right_click"]


class MiddleClickAction(_ComputerParams):
    """Perform middle mouse click."""

    action: Literal["middle_click"]


class DoubleClickAction(_ComputerParams):
    """Perform double click with left mouse button."""

    action: Literal["double_click"]


class KeyAction(_ComputerParams):
    """Press specific keyboard key(s)."""

    action: Literal["key"]
    text: str = Field(min_length=1)


class TypeAction(_ComputerParams):
    """Type text string."""

    action: Literal["type"]
    text: str = Field(min_length=1)


class ScreenshotAction(_ComputerParams):
    """Capture screenshot of current screen."""

    action: Literal["screenshot"]


ComputerParams = Annotated[
    MouseMoveAction
    | LeftClickDragAction
    | CursorPositionAction
    | LeftClickAction
    | RightClickAction
    | MiddleClickAction
    | DoubleClickAction
    | KeyAction
    | TypeAction
    | ScreenshotAction,
    Field(discriminator="action"),
]


class ComputerAction(BaseModel):
    model_config = ConfigDict(extra="forbid")

    tool: Literal["computer"]
    params: ComputerParams
