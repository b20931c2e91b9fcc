"""WebSocket client for the Sendspin protocol.

The client dials ``ws://<server>/sendspin``, performs the client/server
hello handshake and then routes incoming messages into asyncio queues:
binary audio chunks, player commands, time-sync replies, stream control
and server/group state.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import struct
from dataclasses import dataclass, field
from types import TracebackType
from typing import Any

import websockets
import websockets.exceptions

from .messages import (
    ArtworkV1Support,
    ClientGoodbye,
    ClientHello,
    ClientStateMessage,
    ClientTime,
    DeviceInfo,
    GroupUpdate,
    Message,
    PlayerCommand,
    PlayerState,
    PlayerV1Support,
    ServerCommandMessage,
    ServerStateMessage,
    ServerTime,
    StreamClear,
    StreamEnd,
    StreamStart,
    VisualizerV1Support,
    from_wire,
    to_wire,
)

logger = logging.getLogger(__name__)

BINARY_HEADER_SIZE = 1 + 8
AUDIO_CHUNK_MESSAGE_TYPE = 4

HANDSHAKE_TIMEOUT_S = 5.0
STATE_DELIVERY_TIMEOUT_S = 0.1

_HEADER = struct.Struct(">Bq")


class ProtocolError(Exception):
    """Raised for connection failures and malformed protocol traffic."""


@dataclass
class ClientConfig:
    """Settings for a protocol client."""

    server_addr: str
    client_id: str = ""
    name: str = ""
    version: int = 0
    device_info: DeviceInfo = field(default_factory=DeviceInfo)
    player_v1_support: PlayerV1Support = field(default_factory=PlayerV1Support)
    artwork_v1_support: ArtworkV1Support | None = None
    visualizer_v1_support: VisualizerV1Support | None = None


@dataclass
class AudioChunk:
    """A timestamped frame of encoded audio; the timestamp is server-clock us."""

    timestamp: int
    data: bytes


def parse_audio_chunk(data: bytes) -> AudioChunk:
    """Decode a binary audio message: type byte, big-endian timestamp, payload."""
    if len(data) < BINARY_HEADER_SIZE:
        raise ProtocolError("invalid binary message: too short")
    msg_type, timestamp = _HEADER.unpack_from(data)
    if msg_type != AUDIO_CHUNK_MESSAGE_TYPE:
        raise ProtocolError(f"unknown binary message type: {msg_type}")
    return AudioChunk(timestamp=timestamp, data=bytes(data[BINARY_HEADER_SIZE:]))


def build_hello(config: ClientConfig) -> Message:
    """Build the client/hello message with versioned roles."""
    roles = ["player@v1", "metadata@v1"]
    if config.artwork_v1_support is not None:
        roles.append("artwork@v1")
    if config.visualizer_v1_support is not None:
        roles.append("visualizer@v1")
    hello = ClientHello(
        client_id=config.client_id,
        name=config.name,
        version=config.version,
        supported_roles=roles,
        device_info=config.device_info,
        player_v1_support=config.player_v1_support,
        artwork_v1_support=config.artwork_v1_support,
        visualizer_v1_support=config.visualizer_v1_support,
    )
    return Message(type="client/hello", payload=hello)


def _payload(cls: type, payload: Any, msg_type: str) -> Any:
    try:
        return from_wire(cls, {} if payload is None else payload)
    except ValueError as exc:
        raise ProtocolError(f"failed to parse {msg_type}: {exc}") from exc


class Client:
    """A Sendspin protocol client delivering incoming traffic through queues."""

    def __init__(self, config: ClientConfig) -> None:
        self.config = config
        self.audio_chunks: asyncio.Queue[AudioChunk] = asyncio.Queue(100)
        self.control_msgs: asyncio.Queue[PlayerCommand] = asyncio.Queue(10)
        self.time_sync_resp: asyncio.Queue[ServerTime] = asyncio.Queue(10)
        self.stream_start: asyncio.Queue[StreamStart] = asyncio.Queue(1)
        self.stream_clear: asyncio.Queue[StreamClear] = asyncio.Queue(10)
        self.stream_end: asyncio.Queue[StreamEnd] = asyncio.Queue(1)
        self.server_state: asyncio.Queue[ServerStateMessage] = asyncio.Queue(10)
        self.group_update: asyncio.Queue[GroupUpdate] = asyncio.Queue(10)
        self._conn: Any = None
        self._connected = False
        self._closed = asyncio.Event()
        self._reader: asyncio.Task[None] | None = None

    @property
    def connected(self) -> bool:
        """Whether the connection is open."""
        return self._connected

    async def __aenter__(self) -> Client:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def connect(self) -> None:
        """Open the connection, perform the handshake and start reading."""
        url = f"ws://{self.config.server_addr}/sendspin"
        logger.info("Connecting to %s", url)
        try:
            conn = await websockets.connect(url)
        except (OSError, asyncio.TimeoutError, websockets.exceptions.WebSocketException) as exc:
            raise ProtocolError(f"dial failed: {exc}") from exc

        self._conn = conn
        self._connected = True

        try:
            await self._handshake()
        except ProtocolError as exc:
            await self.close()
            raise ProtocolError(f"handshake failed: {exc}") from exc

        self._reader = asyncio.create_task(self._read_messages())

    async def _handshake(self) -> None:
        hello = build_hello(self.config)
        logger.debug("Sending client/hello:\n%s", json.dumps(to_wire(hello), indent=2))
        try:
            await self._send(hello)
        except (ProtocolError, websockets.exceptions.WebSocketException) as exc:
            raise ProtocolError(f"failed to send client/hello: {exc}") from exc

        try:
            raw = await asyncio.wait_for(self._conn.recv(), HANDSHAKE_TIMEOUT_S)
        except asyncio.TimeoutError as exc:
            raise ProtocolError("failed to read server/hello: timed out") from exc
        except websockets.exceptions.WebSocketException as exc:
            raise ProtocolError(f"failed to read server/hello: {exc}") from exc

        try:
            reply = Message.from_json(raw)
        except ValueError as exc:
            raise ProtocolError(f"failed to parse server/hello: {exc}") from exc
        if reply.type != "server/hello":
            raise ProtocolError(f"expected server/hello, got {reply.type}")

        logger.info("Handshake complete with server")

        state = ClientStateMessage(player=PlayerState(state="synchronized", volume=100, muted=False))
        try:
            await self._send(Message(type="client/state", payload=state))
        except (ProtocolError, websockets.exceptions.WebSocketException) as exc:
            raise ProtocolError(f"failed to send initial state: {exc}") from exc

    async def _send(self, msg: Message) -> None:
        if not self._connected:
            raise ProtocolError("not connected")
        await self._conn.send(msg.to_json())

    async def _read_messages(self) -> None:
        try:
            async for raw in self._conn:
                try:
                    if isinstance(raw, (bytes, bytearray, memoryview)):
                        await self.handle_binary(bytes(raw))
                    else:
                        await self.handle_text(raw)
                except ProtocolError as exc:
                    logger.warning("%s", exc)
        except websockets.exceptions.ConnectionClosed as exc:
            logger.info("Read error: %s", exc)
        finally:
            await self.close()

    async def _put(self, queue: asyncio.Queue, item: Any) -> None:
        """Queue an item, giving up if the client is closed meanwhile."""
        if self._closed.is_set():
            return
        put = asyncio.ensure_future(queue.put(item))
        stop = asyncio.ensure_future(self._closed.wait())
        _, pending = await asyncio.wait({put, stop}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()

    async def _put_or_drop(self, queue: asyncio.Queue, item: Any, what: str) -> None:
        try:
            await asyncio.wait_for(queue.put(item), STATE_DELIVERY_TIMEOUT_S)
        except asyncio.TimeoutError:
            logger.warning("%s channel full, dropping message", what)

    async def handle_binary(self, data: bytes) -> None:
        """Route a binary message to the audio chunk queue."""
        await self._put(self.audio_chunks, parse_audio_chunk(data))

    async def handle_text(self, text: str | bytes) -> None:
        """Parse a JSON message and route it to the matching queue."""
        try:
            msg = Message.from_json(text)
        except ValueError as exc:
            raise ProtocolError(f"failed to parse JSON message: {exc}") from exc

        kind, payload = msg.type, msg.payload
        if kind == "server/command":
            command = _payload(ServerCommandMessage, payload, kind)
            if command.player is not None:
                await self._put(self.control_msgs, command.player)
        elif kind == "server/time":
            await self._put(self.time_sync_resp, _payload(ServerTime, payload, kind))
        elif kind == "stream/start":
            await self._put(self.stream_start, _payload(StreamStart, payload, kind))
        elif kind == "stream/clear":
            await self._put(self.stream_clear, _payload(StreamClear, payload, kind))
        elif kind == "stream/end":
            await self._put(self.stream_end, _payload(StreamEnd, payload, kind))
        elif kind == "server/state":
            state = _payload(ServerStateMessage, payload, kind)
            if state.metadata is not None:
                meta = state.metadata
                logger.info(
                    "Metadata: %s - %s (%s)",
                    meta.artist or "",
                    meta.title or "",
                    meta.album or "",
                )
            await self._put_or_drop(self.server_state, state, "Server state")
        elif kind == "group/update":
            update = _payload(GroupUpdate, payload, kind)
            logger.info(
                "Group update: id=%s, state=%s",
                update.group_id or "",
                update.playback_state or "",
            )
            await self._put_or_drop(self.group_update, update, "Group update")
        else:
            logger.info("Unknown message type: %s", kind)

    async def send_state(self, state: PlayerState) -> None:
        """Send a client/state message with the player's state."""
        await self._send(Message(type="client/state", payload=ClientStateMessage(player=state)))

    async def send_goodbye(self, reason: str) -> None:
        """Send client/goodbye before disconnecting."""
        await self._send(Message(type="client/goodbye", payload=ClientGoodbye(reason=reason)))

    async def send_time_sync(self, t1: int) -> None:
        """Send a client/time request carrying the client send time in us."""
        await self._send(Message(type="client/time", payload=ClientTime(client_transmitted=t1)))

    async def close(self) -> None:
        """Close the connection; calling it again does nothing."""
        if not self._connected:
            return
        self._connected = False
        self._closed.set()
        await self._conn.close()
        reader = self._reader
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reader
        logger.info("Connection closed")