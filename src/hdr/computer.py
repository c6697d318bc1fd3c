"""Client facade for one remote computer."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from pathlib import Path
from types import TracebackType
from typing import Any, Self

import httpx
from loguru import logger
from mcp.types import CallToolResult, Implementation, ServerCapabilities

from hdr.api import HdrApi
from hdr.computer_logger import ComputerLogger
from hdr.config import Settings, get_settings
from hdr.errors import ValidationError
from hdr.handshake import HandshakeExtractor
from hdr.loop import ComputerUseLoop, LoopResult
from hdr.oracle import AnthropicOracle, Oracle
from hdr.schemas import FixedAction, parse_action
from hdr.session import Session
from hdr.side_channel import McpToolRegistry
from hdr.tools import DEFAULT_TOOLS, ToolDescriptor, ToolSet
from hdr.transport import ConnectionState, Connector, MessageSink, SessionTransport, StateListener
from hdr.types import ComputerMessage, MachineMetadata, StartServerResponse


class Computer:
    """A remote HDR computer driven over one websocket channel.

    Actions go out through ``execute()``; tools registered at runtime on the
    machine are reached through the MCP side channel once ``connect_mcp()`` ran.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        tools: Iterable[ToolDescriptor] | None = None,
        connector: Connector | None = None,
        sink: MessageSink | None = None,
        http_client: httpx.AsyncClient | None = None,
        **overrides: Any,
    ) -> None:
        self.settings = settings or get_settings(**overrides)
        self.session = Session(tools=ToolSet(tools=tuple(tools) if tools is not None else DEFAULT_TOOLS))
        self.handshake = HandshakeExtractor(self.session, id_field=self.settings.machine_id_field)
        self.sink: MessageSink = sink or ComputerLogger(
            self.settings.log_dir,
            log_conversation=self.settings.log_conversation,
            log_screenshot=self.settings.log_screenshot,
        )
        self.transport = SessionTransport(
            self.settings.resolved_ws_url,
            session=self.session,
            handshake=self.handshake,
            api_key=self.settings.api_key,
            sink=self.sink,
            open_timeout=self.settings.open_timeout,
            connector=connector,
        )
        self.mcp = McpToolRegistry()
        self._http_client = http_client
        self._api: HdrApi | None = None

    @classmethod
    async def create(cls, settings: Settings | None = None, *, mcp: bool = True, **kwargs: Any) -> Computer:
        """Connect, wait for the machine metadata and optionally open the MCP side channel."""

        computer = cls(settings, **kwargs)
        await computer.connect()
        await computer.wait_for_metadata()
        if mcp:
            await computer.connect_mcp()
        return computer

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def state(self) -> ConnectionState:
        return self.transport.state

    @property
    def session_id(self) -> str | None:
        return self.session.session_id

    @property
    def machine_metadata(self) -> MachineMetadata | None:
        return self.session.machine_metadata

    @property
    def created_at(self) -> datetime:
        return self.session.created_at

    @property
    def updated_at(self) -> datetime | None:
        return self.session.updated_at

    def is_connected(self) -> bool:
        return self.transport.is_connected()

    async def connect(self) -> None:
        await self.transport.connect()

    async def close(self) -> None:
        try:
            await self.mcp.close()
        finally:
            await self.transport.close()

    def on_state_change(self, listener: StateListener) -> Callable[[], None]:
        return self.transport.on_state_change(listener)

    async def execute(self, action: FixedAction | Mapping[str, Any]) -> ComputerMessage:
        """Run one action and return the computer's response frame.

        Mappings are validated first; extension tools are rejected here and go
        through ``call_mcp_tool()`` instead.
        """

        if isinstance(action, Mapping):
            action = parse_action(action)
        return await self.transport.execute(action)

    async def screenshot(self) -> str:
        """Take a screenshot and return it base64 encoded."""

        message = await self.execute({"tool": "computer", "params": {"action": "screenshot"}})
        image = message.tool_result.base64_image
        if not image:
            raise ValidationError("no screenshot data received", tool="computer")
        return image

    async def wait_for_metadata(self, timeout: float | None = None) -> MachineMetadata:
        return await self.handshake.wait(timeout if timeout is not None else self.settings.metadata_timeout)

    def register_tools(self, *descriptors: ToolDescriptor) -> None:
        self.session.tools = self.session.tools.register(*descriptors)

    def list_computer_use_tools(self) -> list[ToolDescriptor]:
        return list(self.session.tools)

    async def list_mcp_tools(self) -> list[ToolDescriptor]:
        return await self.mcp.list_tools()

    async def list_all_tools(self) -> list[ToolDescriptor]:
        """Built-in tools followed by side-channel tools when the side channel is open."""

        tools = self.list_computer_use_tools()
        if self.mcp.is_connected():
            tools.extend(await self.list_mcp_tools())
        return tools

    def get_hostname(self) -> str:
        machine_id = self.machine_metadata.machine_id if self.machine_metadata is not None else None
        return self.settings.resolved_hostname(machine_id)

    @property
    def api(self) -> HdrApi:
        hostname = self.get_hostname()
        if self._api is None or self._api.hostname != hostname:
            self._api = HdrApi(hostname, self.settings.api_key, client=self._http_client)
        return self._api

    async def fetch_machine_metadata(self) -> MachineMetadata:
        """Ask the machine host for its metadata over HTTP. The session is left untouched."""

        return await self.api.fetch_machine_metadata()

    async def connect_mcp(self, url: str | None = None) -> None:
        api = self.api
        target = url or self.settings.mcp_url or api.paths.mcp
        await self.mcp.connect(target, api=api, headers=api.headers())

    async def call_mcp_tool(self, name: str, arguments: dict[str, Any] | None = None) -> CallToolResult:
        return await self.mcp.call_tool(name, arguments)

    async def start_mcp_server(self, name: str, command: str) -> StartServerResponse:
        return await self.mcp.start_server(name, command)

    def get_mcp_server_capabilities(self) -> ServerCapabilities | None:
        return self.mcp.get_server_capabilities()

    def get_mcp_server_version(self) -> Implementation | None:
        return self.mcp.get_server_version()

    async def mcp_ping(self) -> None:
        await self.mcp.ping()

    async def put_file(self, path: Path | str) -> httpx.Response:
        return await self.api.upload_file(path)

    async def do(
        self,
        objective: str,
        *,
        oracle: Oracle | None = None,
        on_text: Callable[[str], None] | None = None,
    ) -> LoopResult:
        """Hand ``objective`` to the model and let it drive this computer until it stops calling tools."""

        if oracle is None:
            oracle = AnthropicOracle(
                model=self.settings.model,
                max_tokens=self.settings.max_tokens,
                temperature=self.settings.temperature,
            )
        logger.info("computer.do objective={}", objective)
        loop = ComputerUseLoop(self, oracle, max_steps=self.settings.max_steps, on_text=on_text)
        return await loop.run(objective)
