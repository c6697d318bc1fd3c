"""MCP side channel for tools registered at runtime on the remote machine."""

from __future__ import annotations

from contextlib import AsyncExitStack
from typing import Any

from loguru import logger
from mcp import ClientSession
from mcp.client.sse import sse_client
from mcp.types import CallToolResult, Implementation, InitializeResult, ServerCapabilities

from hdr.api import HdrApi
from hdr.constants import MCP_CLIENT_NAME, VERSION
from hdr.errors import SideChannelUnavailableError
from hdr.tools import ToolDescriptor
from hdr.types import McpServer, StartServerResponse


class McpToolRegistry:
    """Discovers and invokes MCP tools over a connection independent of the computer channel."""

    def __init__(self, *, client_name: str = MCP_CLIENT_NAME, client_version: str = VERSION) -> None:
        self._client_info = Implementation(name=client_name, version=client_version)
        self._stack: AsyncExitStack | None = None
        self._session: ClientSession | None = None
        self._init_result: InitializeResult | None = None
        self._api: HdrApi | None = None
        self._servers: dict[str, McpServer] = {}

    def is_connected(self) -> bool:
        return self._session is not None

    async def connect(self, url: str, *, api: HdrApi | None = None, headers: dict[str, str] | None = None) -> None:
        if self._session is not None:
            return
        stack = AsyncExitStack()
        try:
            read_stream, write_stream = await stack.enter_async_context(sse_client(url, headers=headers))
            session = await stack.enter_async_context(
                ClientSession(read_stream, write_stream, client_info=self._client_info)
            )
            init_result = await session.initialize()
        except BaseException:
            await stack.aclose()
            raise
        self._stack = stack
        self._session = session
        self._init_result = init_result
        self._api = api
        logger.info(
            "mcp.connect url={} server={} version={}",
            url,
            init_result.serverInfo.name,
            init_result.serverInfo.version,
        )

    async def close(self) -> None:
        stack = self._stack
        self._stack = None
        self._session = None
        self._init_result = None
        self._servers.clear()
        if stack is not None:
            await stack.aclose()

    def _require_session(self, operation: str) -> ClientSession:
        if self._session is None:
            raise SideChannelUnavailableError(operation)
        return self._session

    async def list_tools(self) -> list[ToolDescriptor]:
        """List tools of every running MCP server, shaped for the model's tool list."""

        session = self._require_session("list_mcp_tools")
        descriptors: list[ToolDescriptor] = []
        cursor: str | None = None
        while True:
            result = await session.list_tools(cursor=cursor)
            for tool in result.tools:
                descriptors.append(
                    ToolDescriptor(
                        name=tool.name,
                        description=tool.description,
                        input_schema=dict(tool.inputSchema),
                        source="mcp",
                    )
                )
            cursor = result.nextCursor
            if not cursor:
                return descriptors

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> CallToolResult:
        session = self._require_session("call_mcp_tool")
        logger.info("mcp.call_tool name={} arguments={}", name, sorted((arguments or {}).keys()))
        result = await session.call_tool(name, arguments or {})
        if result.isError:
            logger.warning("mcp.call_tool.error name={}", name)
        return result

    async def start_server(self, name: str, command: str) -> StartServerResponse:
        """Spawn an MCP server on the machine; a server already started under ``name`` is returned as is."""

        self._require_session("start_mcp_server")
        existing = self._servers.get(name)
        if existing is not None:
            logger.info("mcp.start_server.exists name={}", name)
            return StartServerResponse(tools=existing.tools)
        if self._api is None:
            raise SideChannelUnavailableError("start_mcp_server")
        response = await self._api.start_mcp_server(name, command)
        self._servers[name] = McpServer(name=name, tools=response.tools)
        return response

    def servers(self) -> list[McpServer]:
        return list(self._servers.values())

    def get_server_capabilities(self) -> ServerCapabilities | None:
        self._require_session("get_mcp_server_capabilities")
        assert self._init_result is not None
        return self._init_result.capabilities

    def get_server_version(self) -> Implementation | None:
        self._require_session("get_mcp_server_version")
        assert self._init_result is not None
        return self._init_result.serverInfo

    async def ping(self) -> None:
        session = self._require_session("mcp_ping")
        await session.send_ping()
