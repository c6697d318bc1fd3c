"""Websocket session transport.

One full-duplex channel carries actions out and result frames in. Frames have
no request ids, so ``execute()`` runs strictly half-duplex: one exchange at a
time, queued FIFO, and the next ordinary frame after a send is its response.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
from collections.abc import AsyncIterator, Awaitable, Callable
from enum import StrEnum
from typing import Protocol

import pydantic
from loguru import logger
from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed, InvalidStatus, WebSocketException

from hdr.errors import ChannelClosedError, ChannelError, NotConnectedError, ValidationError
from hdr.handshake import HandshakeExtractor
from hdr.schemas import FixedAction, dump_action
from hdr.session import Session
from hdr.types import ComputerMessage

DEFAULT_OPEN_TIMEOUT = 10.0


class ConnectionState(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"


class ChannelConnection(Protocol):
    """The subset of a websocket client connection the transport relies on."""

    async def send(self, message: str) -> None: ...

    async def close(self, code: int = 1000, reason: str = "") -> None: ...

    def __aiter__(self) -> AsyncIterator[str | bytes]: ...


class MessageSink(Protocol):
    def log_send(self, action: FixedAction) -> None: ...

    def log_receive(self, message: ComputerMessage) -> None: ...


Connector = Callable[[str, dict[str, str], float], Awaitable[ChannelConnection]]
StateListener = Callable[[ConnectionState, ChannelError | None], None]


async def open_websocket(url: str, headers: dict[str, str], open_timeout: float) -> ChannelConnection:
    return await connect(url, additional_headers=headers, open_timeout=open_timeout)


def _close_details(exc: ConnectionClosed) -> tuple[int | None, str]:
    if exc.rcvd is not None:
        return exc.rcvd.code, exc.rcvd.reason
    if exc.sent is not None:
        return exc.sent.code, exc.sent.reason
    return None, ""


class SessionTransport:
    """Owns the channel, its connection state and the single pending exchange."""

    def __init__(
        self,
        url: str,
        *,
        session: Session,
        handshake: HandshakeExtractor,
        api_key: str | None = None,
        sink: MessageSink | None = None,
        open_timeout: float = DEFAULT_OPEN_TIMEOUT,
        connector: Connector | None = None,
    ) -> None:
        self._url = url
        self._session = session
        self._handshake = handshake
        self._api_key = api_key
        self._sink = sink
        self._open_timeout = open_timeout
        self._connector = connector or open_websocket
        self._state = ConnectionState.DISCONNECTED
        self._ws: ChannelConnection | None = None
        self._reader: asyncio.Task[None] | None = None
        self._pending: asyncio.Future[ComputerMessage] | None = None
        self._connect_lock = asyncio.Lock()
        self._exchange_lock = asyncio.Lock()
        self._listeners: list[StateListener] = []

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def url(self) -> str:
        return self._url

    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    def has_pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def on_state_change(self, listener: StateListener) -> Callable[[], None]:
        """Register a state listener; returns a callable that unregisters it."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def connect(self) -> None:
        """Open the channel if it is not open yet. Safe to call repeatedly."""

        async with self._connect_lock:
            if self._state is ConnectionState.CONNECTED:
                return
            await self._open()

    async def _open(self) -> None:
        self._set_state(ConnectionState.CONNECTING)
        self._handshake.reset()
        headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}
        logger.info("transport.connect.start url={}", self._url)
        try:
            ws = await self._connector(self._url, headers, self._open_timeout)
        except InvalidStatus as exc:
            error = ChannelError(f"channel handshake rejected: HTTP {exc.response.status_code} url={self._url}")
            self._set_state(ConnectionState.CLOSED, error)
            raise error from exc
        except (OSError, TimeoutError, WebSocketException) as exc:
            error = ChannelError(f"failed to open channel url={self._url}: {exc}")
            self._set_state(ConnectionState.CLOSED, error)
            raise error from exc

        self._ws = ws
        self._reader = asyncio.create_task(self._read_loop(ws), name="hdr-transport-read")
        self._set_state(ConnectionState.CONNECTED)
        logger.info("transport.connect.open url={}", self._url)

    async def send(self, action: FixedAction) -> None:
        """Write one action frame. Requires an open channel."""

        ws = self._ws
        if self._state is not ConnectionState.CONNECTED or ws is None:
            raise NotConnectedError(f"channel is {self._state}; call connect() first")
        self._log_send(action)
        logger.debug("transport.send tool={}", action.tool)
        try:
            await ws.send(json.dumps(dump_action(action)))
        except ConnectionClosed as exc:
            raise ChannelClosedError(*_close_details(exc)) from exc

    async def execute(self, action: FixedAction) -> ComputerMessage:
        """Send ``action`` and return the next frame, connecting first when needed.

        Concurrent callers are served one at a time in arrival order.
        """

        async with self._exchange_lock:
            await self.connect()
            if self.has_pending():
                raise ChannelError("an exchange is already pending on this channel")
            future: asyncio.Future[ComputerMessage] = asyncio.get_running_loop().create_future()
            self._pending = future
            try:
                await self.send(action)
                return await future
            finally:
                if self._pending is future:
                    self._pending = None

    async def close(self, code: int = 1000, reason: str = "") -> None:
        """Close the channel and reject any pending exchange."""

        ws, reader = self._ws, self._reader
        self._ws = None
        self._reader = None
        if self._state is not ConnectionState.CLOSED:
            error = ChannelClosedError(code, reason or "closed by client")
            self._reject_pending(error)
            self._set_state(ConnectionState.CLOSED, error)
        if ws is not None:
            logger.info("transport.close url={} code={}", self._url, code)
            with contextlib.suppress(ConnectionClosed, OSError):
                await ws.close(code, reason)
        if reader is not None and not reader.done():
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reader

    async def _read_loop(self, ws: ChannelConnection) -> None:
        error: ChannelError | None = None
        try:
            async for raw in ws:
                self._handle_frame(raw)
        except ConnectionClosed as exc:
            error = ChannelClosedError(*_close_details(exc))
        except OSError as exc:
            error = ChannelError(f"channel read failed: {exc}")
        finally:
            if error is None:
                close_code = getattr(ws, "close_code", None)
                close_reason = getattr(ws, "close_reason", None) or ""
                error = ChannelClosedError(close_code, close_reason)
            self._handle_closed(ws, error)

    def _handle_frame(self, raw: str | bytes) -> None:
        try:
            message = ComputerMessage.model_validate_json(raw)
        except pydantic.ValidationError as exc:
            logger.warning("transport.frame.invalid error={}", exc)
            self._reject_pending(ValidationError(f"invalid frame from computer: {exc}"))
            return

        self._log_receive(message)
        self._session.touch(message.metadata.response_timestamp)
        if self._handshake.inspect(message):
            return

        pending = self._pending
        if pending is None or pending.done():
            logger.debug("transport.frame.unsolicited message_id={}", message.metadata.message_id)
            return
        pending.set_result(message)

    def _handle_closed(self, ws: ChannelConnection, error: ChannelError) -> None:
        if ws is not self._ws:
            return
        self._ws = None
        self._reader = None
        logger.warning("transport.closed url={} error={}", self._url, error)
        self._reject_pending(error)
        self._set_state(ConnectionState.CLOSED, error)

    def _reject_pending(self, error: Exception) -> None:
        pending = self._pending
        if pending is not None and not pending.done():
            pending.set_exception(error)

    def _set_state(self, state: ConnectionState, error: ChannelError | None = None) -> None:
        if state is self._state:
            return
        logger.debug("transport.state {} -> {}", self._state, state)
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state, error)
            except Exception:
                logger.exception("transport.listener.error state={}", state)

    def _log_send(self, action: FixedAction) -> None:
        if self._sink is None:
            return
        try:
            self._sink.log_send(action)
        except Exception:
            logger.exception("transport.sink.error direction=send")

    def _log_receive(self, message: ComputerMessage) -> None:
        if self._sink is None:
            return
        try:
            self._sink.log_receive(message)
        except Exception:
            logger.exception("transport.sink.error direction=receive")
