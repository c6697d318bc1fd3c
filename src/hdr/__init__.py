"""HDR SDK - drive a remote computer over a websocket."""

from .computer import Computer
from .config import Settings, get_settings
from .constants import VERSION
from .errors import (
    ApiError,
    ChannelClosedError,
    ChannelError,
    ConfigurationError,
    HandshakeTimeoutError,
    HdrError,
    NotConnectedError,
    SideChannelUnavailableError,
    ValidationError,
)
from .loop import ComputerUseLoop, LoopResult
from .oracle import AnthropicOracle, Oracle, OracleTurn, TextBlock, ToolCall
from .schemas import Action, validate_action
from .tools import ToolDescriptor, ToolSet
from .transport import ConnectionState
from .types import ComputerMessage, MachineMetadata, ToolResult

__version__ = VERSION

__all__ = [
    "Action",
    "AnthropicOracle",
    "ApiError",
    "ChannelClosedError",
    "ChannelError",
    "Computer",
    "ComputerMessage",
    "ComputerUseLoop",
    "ConfigurationError",
    "ConnectionState",
    "HandshakeTimeoutError",
    "HdrError",
    "LoopResult",
    "MachineMetadata",
    "NotConnectedError",
    "Oracle",
    "OracleTurn",
    "Settings",
    "SideChannelUnavailableError",
    "TextBlock",
    "ToolCall",
    "ToolDescriptor",
    "ToolResult",
    "ToolSet",
    "ValidationError",
    "get_settings",
    "validate_action",
]
