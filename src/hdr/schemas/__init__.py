"""Action schemas accepted by the remote computer."""

from hdr.schemas.action import (
    ACTION_ADAPTER,
    Action,
    ActionValidation,
    FixedAction,
    dump_action,
    parse_action,
    validate_action,
)
from hdr.schemas.bash import BashAction, BashParams
from hdr.schemas.computer import COMPUTER_ACTIONS, ComputerAction, ComputerParams
from hdr.schemas.edit import EDIT_COMMANDS, EditAction, EditParams
from hdr.schemas.unknown import RESERVED_TOOLS, UnknownAction

__all__ = [
    "ACTION_ADAPTER",
    "COMPUTER_ACTIONS",
    "EDIT_COMMANDS",
    "RESERVED_TOOLS",
    "Action",
    "ActionValidation",
    "BashAction",
    "BashParams",
    "ComputerAction",
    "ComputerParams",
    "EditAction",
    "EditParams",
    "FixedAction",
    "UnknownAction",
    "dump_action",
    "parse_action",
    "validate_action",
]
