import asyncio
import contextlib
import json
import socket

import pytest
import websockets

from sendspin.client import (
    AudioChunk,
    Client,
    ClientConfig,
    ProtocolError,
    build_hello,
    parse_audio_chunk,
)
from sendspin.messages import (
    ArtworkV1Support,
    GroupUpdate,
    PlayerCommand,
    PlayerState,
    ServerTime,
    StreamStartPlayer,
    VisualizerV1Support,
    to_wire,
)


def _chunk(timestamp: int, payload: bytes, msg_type: int = 4) -> bytes:
    return bytes([msg_type]) + timestamp.to_bytes(8, "big", signed=True) + payload


def _queues(client: Client):
    return [
        client.audio_chunks,
        client.control_msgs,
        client.time_sync_resp,
        client.stream_start,
        client.stream_clear,
        client.stream_end,
        client.server_state,
        client.group_update,
    ]


@contextlib.asynccontextmanager
async def _serve(handler):
    async with websockets.serve(handler, "127.0.0.1", 0) as server:
        port = next(iter(server.sockets)).getsockname()[1]
        yield f"127.0.0.1:{port}"


def test_new_client():
    client = Client(ClientConfig(server_addr="localhost:8927", client_id="test-client", name="Test Player"))
    assert client.config.server_addr == "localhost:8927"
    assert client.connected is False


def test_parse_audio_chunk():
    chunk = parse_audio_chunk(_chunk(1234, b"abc"))
    assert chunk == AudioChunk(timestamp=1234, data=b"abc")


def test_parse_audio_chunk_negative_timestamp_and_empty_payload():
    chunk = parse_audio_chunk(b"\x04" + b"\xff" * 8)
    assert chunk.timestamp == -1
    assert chunk.data == b""


def test_parse_audio_chunk_too_short():
    with pytest.raises(ProtocolError, match="too short"):
        parse_audio_chunk(b"\x04\x00\x00")


def test_parse_audio_chunk_unknown_type():
    with pytest.raises(ProtocolError, match="unknown binary message type: 5"):
        parse_audio_chunk(_chunk(1, b"x", msg_type=5))


def test_build_hello_default_roles():
    msg = build_hello(ClientConfig(server_addr="h:1", client_id="id", name="Player", version=1))
    assert msg.type == "client/hello"
    wire = to_wire(msg)
    assert wire["payload"]["supported_roles"] == ["player@v1", "metadata@v1"]
    assert "player@v1_support" in wire["payload"]
    assert "artwork@v1_support" not in wire["payload"]
    assert wire["payload"]["client_id"] == "id"


def test_build_hello_optional_roles():
    config = ClientConfig(
        server_addr="h:1",
        artwork_v1_support=ArtworkV1Support(),
        visualizer_v1_support=VisualizerV1Support(buffer_capacity=10),
    )
    wire = to_wire(build_hello(config))
    assert wire["payload"]["supported_roles"] == [
        "player@v1",
        "metadata@v1",
        "artwork@v1",
        "visualizer@v1",
    ]
    assert wire["payload"]["visualizer@v1_support"] == {"buffer_capacity": 10}


@pytest.mark.asyncio
async def test_send_without_connection_raises():
    client = Client(ClientConfig(server_addr="h:1"))
    with pytest.raises(ProtocolError, match="not connected"):
        await client.send_time_sync(1)


@pytest.mark.asyncio
async def test_handle_binary_routes_audio():
    client = Client(ClientConfig(server_addr="h:1"))
    await client.handle_binary(_chunk(99, b"\x01\x02"))
    assert client.audio_chunks.get_nowait() == AudioChunk(timestamp=99, data=b"\x01\x02")


@pytest.mark.asyncio
async def test_handle_text_server_time():
    client = Client(ClientConfig(server_addr="h:1"))
    text = json.dumps(
        {
            "type": "server/time",
            "payload": {"client_transmitted": 1, "server_received": 2, "server_transmitted": 3},
        }
    )
    await client.handle_text(text)
    assert client.time_sync_resp.get_nowait() == ServerTime(1, 2, 3)


@pytest.mark.asyncio
async def test_handle_text_server_command():
    client = Client(ClientConfig(server_addr="h:1"))
    await client.handle_text(
        json.dumps({"type": "server/command", "payload": {"player": {"command": "volume", "volume": 40}}})
    )
    assert client.control_msgs.get_nowait() == PlayerCommand(command="volume", volume=40)


@pytest.mark.asyncio
async def test_handle_text_command_without_player_is_ignored():
    client = Client(ClientConfig(server_addr="h:1"))
    await client.handle_text(json.dumps({"type": "server/command", "payload": {}}))
    assert client.control_msgs.empty()


@pytest.mark.asyncio
async def test_handle_text_stream_messages():
    client = Client(ClientConfig(server_addr="h:1"))
    await client.handle_text(
        json.dumps(
            {
                "type": "stream/start",
                "payload": {"player": {"codec": "pcm", "sample_rate": 48000, "channels": 2, "bit_depth": 16}},
            }
        )
    )
    await client.handle_text(json.dumps({"type": "stream/clear", "payload": {"roles": ["player"]}}))
    await client.handle_text(json.dumps({"type": "stream/end", "payload": None}))
    start = client.stream_start.get_nowait()
    assert start.player == StreamStartPlayer(codec="pcm", sample_rate=48000, channels=2, bit_depth=16)
    assert client.stream_clear.get_nowait().roles == ["player"]
    assert client.stream_end.get_nowait().roles == []


@pytest.mark.asyncio
async def test_handle_text_server_state_and_group_update():
    client = Client(ClientConfig(server_addr="h:1"))
    await client.handle_text(
        json.dumps({"type": "server/state", "payload": {"metadata": {"timestamp": 5, "title": "Song"}}})
    )
    await client.handle_text(
        json.dumps({"type": "group/update", "payload": {"group_id": "g1", "playback_state": "playing"}})
    )
    state = client.server_state.get_nowait()
    assert state.metadata.title == "Song"
    assert state.metadata.timestamp == 5
    assert client.group_update.get_nowait() == GroupUpdate(playback_state="playing", group_id="g1")


@pytest.mark.asyncio
async def test_group_update_dropped_when_queue_full():
    client = Client(ClientConfig(server_addr="h:1"))
    for _ in range(10):
        client.group_update.put_nowait(GroupUpdate())
    await client.handle_text(json.dumps({"type": "group/update", "payload": {"group_id": "late"}}))
    assert client.group_update.qsize() == 10
    assert all(client.group_update.get_nowait().group_id is None for _ in range(10))


@pytest.mark.asyncio
async def test_handle_text_unknown_type_queues_nothing():
    client = Client(ClientConfig(server_addr="h:1"))
    await client.handle_text(json.dumps({"type": "mystery", "payload": {}}))
    assert all(queue.empty() for queue in _queues(client))


@pytest.mark.asyncio
async def test_handle_text_malformed_json():
    client = Client(ClientConfig(server_addr="h:1"))
    with pytest.raises(ProtocolError, match="failed to parse JSON message"):
        await client.handle_text("{not json")


@pytest.mark.asyncio
async def test_handle_text_bad_payload():
    client = Client(ClientConfig(server_addr="h:1"))
    with pytest.raises(ProtocolError, match="failed to parse server/time"):
        await client.handle_text(json.dumps({"type": "server/time", "payload": {"client_transmitted": "x"}}))


@pytest.mark.asyncio
async def test_connect_handshake_and_routing():
    inbox: asyncio.Queue = asyncio.Queue()

    async def handler(ws, *_):
        await inbox.put(json.loads(await ws.recv()))
        await ws.send(json.dumps({"type": "server/hello", "payload": {"server_id": "s", "name": "Server"}}))
        async for raw in ws:
            message = json.loads(raw)
            await inbox.put(message)
            if message["type"] == "client/state":
                await ws.send(
                    json.dumps(
                        {
                            "type": "server/time",
                            "payload": {"client_transmitted": 7, "server_received": 8, "server_transmitted": 9},
                        }
                    )
                )
                await ws.send(_chunk(500, b"pcm"))

    async with _serve(handler) as addr:
        client = Client(ClientConfig(server_addr=addr, client_id="c1", name="Player"))
        await client.connect()
        assert client.connected is True

        hello = await asyncio.wait_for(inbox.get(), 5)
        assert hello["type"] == "client/hello"
        assert hello["payload"]["name"] == "Player"

        state = await asyncio.wait_for(inbox.get(), 5)
        assert state == {"type": "client/state", "payload": {"player": {"state": "synchronized", "volume": 100}}}

        reply = await asyncio.wait_for(client.time_sync_resp.get(), 5)
        assert reply == ServerTime(7, 8, 9)
        chunk = await asyncio.wait_for(client.audio_chunks.get(), 5)
        assert chunk == AudioChunk(timestamp=500, data=b"pcm")

        await client.send_time_sync(42)
        sent = await asyncio.wait_for(inbox.get(), 5)
        assert sent == {"type": "client/time", "payload": {"client_transmitted": 42}}

        await client.send_state(PlayerState(state="synchronized", volume=30, muted=True))
        sent = await asyncio.wait_for(inbox.get(), 5)
        assert sent["payload"]["player"] == {"state": "synchronized", "volume": 30, "muted": True}

        await client.send_goodbye("shutdown")
        sent = await asyncio.wait_for(inbox.get(), 5)
        assert sent == {"type": "client/goodbye", "payload": {"reason": "shutdown"}}

        await client.close()
        assert client.connected is False
        await client.close()
        assert client.connected is False


@pytest.mark.asyncio
async def test_connect_rejects_wrong_hello_reply():
    async def handler(ws, *_):
        await ws.recv()
        await ws.send(json.dumps({"type": "server/state", "payload": {}}))
        with contextlib.suppress(websockets.exceptions.ConnectionClosed):
            await ws.recv()

    async with _serve(handler) as addr:
        client = Client(ClientConfig(server_addr=addr))
        with pytest.raises(ProtocolError, match="expected server/hello, got server/state"):
            await client.connect()
        assert client.connected is False


@pytest.mark.asyncio
async def test_connect_dial_failure():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    client = Client(ClientConfig(server_addr=f"127.0.0.1:{port}"))
    with pytest.raises(ProtocolError, match="dial failed"):
        await client.connect()
    assert client.connected is False