from __future__ import annotations

import asyncio
import json

import pytest
from fakes import FakeConnector, FakeMachine, RecordingSink, make_frame, welcome_frame
from websockets.asyncio.server import ServerConnection, serve

from hdr.errors import ChannelClosedError, ChannelError, NotConnectedError, ValidationError
from hdr.handshake import HandshakeExtractor
from hdr.schemas import parse_action
from hdr.session import Session
from hdr.transport import ConnectionState, SessionTransport


def _transport(connector: FakeConnector | None = None, *, sink: RecordingSink | None = None) -> SessionTransport:
    session = Session()
    return SessionTransport(
        "wss://api.hdr.test/compute/ephemeral",
        session=session,
        handshake=HandshakeExtractor(session),
        api_key="test-key",
        sink=sink,
        connector=connector,
    )


def _bash(command: str):
    return parse_action({"tool": "bash", "params": {"command": command}})


async def _until_pending(transport: SessionTransport) -> None:
    while not transport.has_pending():
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_execute_connects_transparently() -> None:
    connector = FakeConnector(responder=FakeMachine())
    transport = _transport(connector)
    assert transport.state is ConnectionState.DISCONNECTED

    message = await transport.execute(_bash("echo hello world"))

    assert message.tool_result.output == "hello world"
    assert transport.state is ConnectionState.CONNECTED
    assert connector.calls == [("wss://api.hdr.test/compute/ephemeral", {"Authorization": "Bearer test-key"})]
    assert connector.last.sent == [{"tool": "bash", "params": {"command": "echo hello world"}}]
    await transport.close()


@pytest.mark.asyncio
async def test_mouse_move_then_cursor_position() -> None:
    transport = _transport(FakeConnector(responder=FakeMachine()))

    move = {"tool": "computer", "params": {"action": "mouse_move", "coordinate": [100, 100]}}
    await transport.execute(parse_action(move))
    message = await transport.execute(parse_action({"tool": "computer", "params": {"action": "cursor_position"}}))

    assert message.tool_result.output == "X=100,Y=100"
    await transport.close()


@pytest.mark.asyncio
async def test_send_requires_open_channel() -> None:
    transport = _transport(FakeConnector())
    with pytest.raises(NotConnectedError):
        await transport.send(_bash("ls"))


@pytest.mark.asyncio
async def test_welcome_frame_does_not_answer_pending_exchange() -> None:
    def responder(payload: dict) -> list[str]:
        return [welcome_frame(), make_frame(output="real answer")]

    connector = FakeConnector(responder=responder, welcome=False)
    transport = _transport(connector)

    message = await transport.execute(_bash("echo real answer"))

    assert message.tool_result.output == "real answer"
    assert transport._handshake.ready
    assert transport._session.machine_metadata is not None
    await transport.close()


@pytest.mark.asyncio
async def test_close_rejects_pending_exchange() -> None:
    transport = _transport(FakeConnector(responder=lambda payload: []))
    task = asyncio.create_task(transport.execute(_bash("sleep 100")))
    await _until_pending(transport)

    await transport.close()

    with pytest.raises(ChannelClosedError) as exc_info:
        await task
    assert exc_info.value.code == 1000
    assert transport.state is ConnectionState.CLOSED
    assert not transport.has_pending()


@pytest.mark.asyncio
async def test_remote_close_rejects_pending_exchange_with_close_details() -> None:
    connector = FakeConnector(responder=lambda payload: [])
    transport = _transport(connector)
    task = asyncio.create_task(transport.execute(_bash("sleep 100")))
    await _until_pending(transport)

    connector.last.drop(code=1011, reason="machine stopped")

    with pytest.raises(ChannelClosedError) as exc_info:
        await task
    assert exc_info.value.code == 1011
    assert exc_info.value.reason == "machine stopped"
    assert transport.state is ConnectionState.CLOSED


@pytest.mark.asyncio
async def test_invalid_frame_rejects_pending_exchange() -> None:
    transport = _transport(FakeConnector(responder=lambda payload: ['{"tool_result": 1}']))

    with pytest.raises(ValidationError):
        await transport.execute(_bash("ls"))

    assert transport.is_connected()
    await transport.close()


@pytest.mark.asyncio
async def test_concurrent_executes_are_served_in_order() -> None:
    connector = FakeConnector(responder=FakeMachine())
    transport = _transport(connector)

    messages = await asyncio.gather(*(transport.execute(_bash(f"echo {idx}")) for idx in range(5)))

    assert [message.tool_result.output for message in messages] == ["0", "1", "2", "3", "4"]
    assert [payload["params"]["command"] for payload in connector.last.sent] == [f"echo {idx}" for idx in range(5)]
    assert len(connector.calls) == 1
    await transport.close()


@pytest.mark.asyncio
async def test_connect_failure_closes_channel() -> None:
    transport = _transport(FakeConnector(fail=OSError("connection refused")))
    seen: list[tuple[ConnectionState, object]] = []
    transport.on_state_change(lambda state, error: seen.append((state, error)))

    with pytest.raises(ChannelError, match="connection refused"):
        await transport.connect()

    assert transport.state is ConnectionState.CLOSED
    assert [state for state, _ in seen] == [ConnectionState.CONNECTING, ConnectionState.CLOSED]
    assert isinstance(seen[-1][1], ChannelError)


@pytest.mark.asyncio
async def test_state_listener_can_unsubscribe() -> None:
    transport = _transport(FakeConnector())
    seen: list[ConnectionState] = []
    unsubscribe = transport.on_state_change(lambda state, error: seen.append(state))

    await transport.connect()
    unsubscribe()
    await transport.close()

    assert seen == [ConnectionState.CONNECTING, ConnectionState.CONNECTED]


@pytest.mark.asyncio
async def test_reconnect_after_close_opens_new_connection_and_handshake() -> None:
    connector = FakeConnector(responder=FakeMachine())
    transport = _transport(connector)
    handshake = transport._handshake

    await transport.connect()
    await handshake.wait(1.0)
    await transport.close()
    assert transport.state is ConnectionState.CLOSED

    message = await transport.execute(_bash("echo again"))
    await handshake.wait(1.0)

    assert message.tool_result.output == "again"
    assert len(connector.calls) == 2
    assert handshake.promotions == 1
    await transport.close()


@pytest.mark.asyncio
async def test_sink_sees_both_directions() -> None:
    sink = RecordingSink()
    transport = _transport(FakeConnector(responder=FakeMachine(), welcome=False), sink=sink)

    await transport.execute(_bash("echo logged"))

    assert [action.tool for action in sink.sent] == ["bash"]
    assert [message.tool_result.output for message in sink.received] == ["logged"]
    assert transport._session.updated_at == sink.received[0].metadata.response_timestamp
    await transport.close()


@pytest.mark.asyncio
async def test_sink_failure_does_not_break_exchange() -> None:
    transport = _transport(FakeConnector(responder=FakeMachine()), sink=RecordingSink(fail=True))

    message = await transport.execute(_bash("echo still works"))

    assert message.tool_result.output == "still works"
    await transport.close()


@pytest.mark.asyncio
async def test_real_websocket_round_trip() -> None:
    headers: list[str | None] = []

    async def handler(ws: ServerConnection) -> None:
        headers.append(ws.request.headers.get("Authorization"))
        await ws.send(welcome_frame())
        async for raw in ws:
            payload = json.loads(raw)
            await ws.send(make_frame(output=payload["params"]["command"].removeprefix("echo ")))

    async with serve(handler, "127.0.0.1", 0) as server:
        port = server.sockets[0].getsockname()[1]
        session = Session()
        handshake = HandshakeExtractor(session)
        transport = SessionTransport(f"ws://127.0.0.1:{port}", session=session, handshake=handshake, api_key="secret")

        message = await transport.execute(_bash("echo over the wire"))
        metadata = await handshake.wait(1.0)
        await transport.close()

    assert message.tool_result.output == "over the wire"
    assert metadata.machine_id == "m-123"
    assert headers == ["Bearer secret"]
    assert transport.state is ConnectionState.CLOSED


@pytest.mark.asyncio
async def test_raising_listener_does_not_strand_pending_exchange() -> None:
    connector = FakeConnector(responder=lambda payload: [])
    transport = _transport(connector)

    def listener(state: ConnectionState, error: object) -> None:
        if state is ConnectionState.CLOSED:
            raise RuntimeError("listener blew up")

    transport.on_state_change(listener)
    task = asyncio.create_task(transport.execute(_bash("sleep 100")))
    await _until_pending(transport)

    connector.last.drop(code=1011, reason="machine stopped")

    with pytest.raises(ChannelClosedError):
        await asyncio.wait_for(task, 1.0)
    assert transport.state is ConnectionState.CLOSED


@pytest.mark.asyncio
async def test_close_with_raising_listener_still_closes_connection() -> None:
    connector = FakeConnector(responder=lambda payload: [])
    transport = _transport(connector)
    await transport.connect()
    transport.on_state_change(lambda state, error: 1 / 0)
    task = asyncio.create_task(transport.execute(_bash("sleep 100")))
    await _until_pending(transport)

    await transport.close()

    with pytest.raises(ChannelClosedError):
        await task
    assert connector.last.closed
    assert transport.state is ConnectionState.CLOSED


@pytest.mark.asyncio
async def test_undecodable_binary_frame_is_an_invalid_frame() -> None:
    machine = FakeMachine()
    frames: list[list[str | bytes]] = [[b"\xff\xfe\x00garbage"]]

    def responder(payload: dict) -> list[str | bytes]:
        return frames.pop(0) if frames else machine(payload)

    transport = _transport(FakeConnector(responder=responder))

    with pytest.raises(ValidationError):
        await transport.execute(_bash("ls"))
    message = await transport.execute(_bash("echo recovered"))

    assert message.tool_result.output == "recovered"
    assert transport.is_connected()
    await transport.close()


@pytest.mark.asyncio
async def test_read_failure_rejects_pending_exchange() -> None:
    connector = FakeConnector(responder=lambda payload: [])
    transport = _transport(connector)
    seen: list[ConnectionState] = []
    transport.on_state_change(lambda state, error: seen.append(state))
    task = asyncio.create_task(transport.execute(_bash("sleep 100")))
    await _until_pending(transport)

    connector.last.fail_read(OSError("connection reset by peer"))

    with pytest.raises(ChannelError, match="channel read failed: connection reset by peer"):
        await task
    assert transport.state is ConnectionState.CLOSED
    assert seen[-1] is ConnectionState.CLOSED
    assert not transport.has_pending()
