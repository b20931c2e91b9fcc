"""Sendspin protocol messages and their JSON wire form.

Every message travels as ``{"type": ..., "payload": ...}``. Payloads are
dataclasses whose fields carry their wire key and omission rule in field
metadata. ``to_wire`` turns them into JSON-ready values and ``from_wire``
builds them back from decoded JSON.
"""

import json
import types
from dataclasses import MISSING, dataclass, field, fields, is_dataclass
from typing import Any, Union, get_args, get_origin

VERSION = "0.1.0"
PRODUCT = "Sendspin Go Player"
MANUFACTURER = "sendspin-go"

_KEY = "wire_key"
_OMIT = "wire_omit"

_KEEP = "keep"
_OMIT_NONE = "none"
_OMIT_EMPTY = "empty"


def _field(default: Any = MISSING, *, key: "str | None" = None, omit: str = _KEEP, factory: Any = MISSING) -> Any:
    metadata = {_KEY: key, _OMIT: omit}
    if factory is not MISSING:
        return field(default_factory=factory, metadata=metadata)
    return field(default=default, metadata=metadata)


def _optional(key: "str | None" = None) -> Any:
    """A nullable field left out of the wire form when it is None."""
    return _field(None, key=key, omit=_OMIT_NONE)


def _omit_empty(default: Any = MISSING, *, key: "str | None" = None, factory: Any = MISSING) -> Any:
    """A field left out of the wire form when it holds a zero value."""
    return _field(default, key=key, omit=_OMIT_EMPTY, factory=factory)


@dataclass
class DeviceInfo:
    """Device identification sent in the handshake."""

    product_name: str = ""
    manufacturer: str = ""
    software_version: str = ""


@dataclass
class AudioFormat:
    """One audio format a player can accept."""

    codec: str = ""
    channels: int = 0
    sample_rate: int = 0
    bit_depth: int = 0


@dataclass
class PlayerV1Support:
    """player@v1 capabilities, with the legacy separate-array fields."""

    supported_formats: list[AudioFormat] = _field(factory=list)
    buffer_capacity: int = 0
    supported_commands: list[str] = _field(factory=list)
    support_codecs: list[str] = _omit_empty(factory=list)
    support_channels: list[int] = _omit_empty(factory=list)
    support_sample_rates: list[int] = _omit_empty(factory=list)
    support_bit_depth: list[int] = _omit_empty(factory=list)


@dataclass
class ArtworkChannel:
    """A single artwork channel: source, image format and size."""

    source: str = ""
    format: str = ""
    media_width: int = 0
    media_height: int = 0


@dataclass
class ArtworkV1Support:
    """artwork@v1 capabilities."""

    channels: list[ArtworkChannel] = _field(factory=list)


@dataclass
class VisualizerV1Support:
    """visualizer@v1 capabilities."""

    buffer_capacity: int = 0


ArtworkSupport = ArtworkV1Support
VisualizerSupport = VisualizerV1Support


@dataclass
class MetadataSupport:
    """Legacy metadata and artwork capabilities."""

    support_picture_formats: list[str] = _field(factory=list)
    media_width: int = _omit_empty(0)
    media_height: int = _omit_empty(0)


@dataclass
class PlayerSupport:
    """Legacy unversioned player capabilities."""

    supported_formats: list[AudioFormat] = _omit_empty(factory=list)
    buffer_capacity: int = _omit_empty(0)
    supported_commands: list[str] = _omit_empty(factory=list)


@dataclass
class ClientHello:
    """client/hello: opens the handshake with versioned roles."""

    client_id: str = ""
    name: str = ""
    version: int = 0
    supported_roles: list[str] = _field(factory=list)
    device_info: DeviceInfo | None = _optional()
    player_v1_support: PlayerV1Support | None = _optional("player@v1_support")
    artwork_v1_support: ArtworkV1Support | None = _optional("artwork@v1_support")
    visualizer_v1_support: VisualizerV1Support | None = _optional("visualizer@v1_support")
    player_support: PlayerSupport | None = _optional()
    metadata_support: MetadataSupport | None = _optional()
    artwork_support: ArtworkV1Support | None = _optional()
    visualizer_support: VisualizerV1Support | None = _optional()


@dataclass
class ServerHello:
    """server/hello: the server's reply to client/hello."""

    server_id: str = ""
    name: str = ""
    version: int = 0
    active_roles: list[str] = _field(factory=list)
    connection_reason: str = ""


@dataclass
class PlayerState:
    """The player's reported state."""

    state: str = ""
    volume: int = _omit_empty(0)
    muted: bool = _omit_empty(False)


@dataclass
class ClientStateMessage:
    """client/state with role-specific objects."""

    player: PlayerState | None = _optional()


@dataclass
class PlayerCommand:
    """A volume or mute command for the player."""

    command: str = ""
    volume: int = _omit_empty(0)
    mute: bool = _omit_empty(False)


@dataclass
class ServerCommandMessage:
    """server/command with role-specific objects."""

    player: PlayerCommand | None = _optional()


@dataclass
class StreamStartPlayer:
    """Audio format of a starting stream; the codec header is base64."""

    codec: str = ""
    sample_rate: int = 0
    channels: int = 0
    bit_depth: int = 0
    codec_header: str = _omit_empty("")


@dataclass
class StreamStart:
    """stream/start."""

    player: StreamStartPlayer | None = _optional()


@dataclass
class ProgressState:
    """Playback progress in milliseconds; speed is scaled by 1000."""

    track_progress: int = 0
    track_duration: int = 0
    playback_speed: int = 0


@dataclass
class MetadataState:
    """Track metadata for the metadata role."""

    timestamp: int = 0
    title: str | None = _optional()
    artist: str | None = _optional()
    album_artist: str | None = _optional()
    album: str | None = _optional()
    artwork_url: str | None = _optional()
    year: int | None = _optional()
    track: int | None = _optional()
    progress: ProgressState | None = _optional()
    repeat: str | None = _optional()
    shuffle: bool | None = _optional()


@dataclass
class ControllerState:
    """Group controller state."""

    supported_commands: list[str] = _field(factory=list)
    volume: int = 0
    muted: bool = False


@dataclass
class ServerStateMessage:
    """server/state with role-specific objects."""

    metadata: MetadataState | None = _optional()
    controller: ControllerState | None = _optional()


@dataclass
class GroupUpdate:
    """group/update."""

    playback_state: str | None = _optional()
    group_id: str | None = _optional()
    group_name: str | None = _optional()


@dataclass
class StreamClear:
    """stream/clear: drop buffered data for the given roles."""

    roles: list[str] = _omit_empty(factory=list)


@dataclass
class StreamEnd:
    """stream/end: end streams for the given roles, all when empty."""

    roles: list[str] = _omit_empty(factory=list)


@dataclass
class ClientGoodbye:
    """client/goodbye, sent before a graceful disconnect."""

    reason: str = ""


@dataclass
class ClientTime:
    """client/time: clock-sync request in microseconds."""

    client_transmitted: int = 0


@dataclass
class ServerTime:
    """server/time: clock-sync reply."""

    client_transmitted: int = 0
    server_received: int = 0
    server_transmitted: int = 0


def default_device_info() -> DeviceInfo:
    """Device information describing this player."""
    return DeviceInfo(
        product_name=PRODUCT,
        manufacturer=MANUFACTURER,
        software_version=VERSION,
    )


def to_wire(obj: Any) -> Any:
    """Convert a message object into JSON-ready dicts, lists and scalars."""
    if is_dataclass(obj) and not isinstance(obj, type):
        out = {}
        for f in fields(obj):
            value = getattr(obj, f.name)
            omit = f.metadata.get(_OMIT, _KEEP)
            if omit == _OMIT_NONE and value is None:
                continue
            if omit == _OMIT_EMPTY and not value:
                continue
            out[f.metadata.get(_KEY) or f.name] = to_wire(value)
        return out
    if isinstance(obj, (list, tuple)):
        return [to_wire(item) for item in obj]
    if isinstance(obj, dict):
        return {str(key): to_wire(value) for key, value in obj.items()}
    return obj


def _is_nullable(hint: Any) -> bool:
    return get_origin(hint) in (Union, types.UnionType)


def _convert(hint: Any, value: Any, where: str) -> Any:
    if _is_nullable(hint):
        if value is None:
            return None
        inner = [arg for arg in get_args(hint) if arg is not type(None)]
        return _convert(inner[0], value, where)
    if get_origin(hint) is list:
        if not isinstance(value, list):
            raise ValueError(f"{where}: expected a list, got {type(value).__name__}")
        (item,) = get_args(hint)
        return [_convert(item, element, f"{where}[{i}]") for i, element in enumerate(value)]
    if isinstance(hint, type) and is_dataclass(hint):
        return from_wire(hint, value)
    if hint is Any:
        return value
    if hint is bool:
        if not isinstance(value, bool):
            raise ValueError(f"{where}: expected a boolean, got {value!r}")
        return value
    if hint is int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"{where}: expected an integer, got {value!r}")
        return value
    if hint is float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"{where}: expected a number, got {value!r}")
        return float(value)
    if hint is str:
        if not isinstance(value, str):
            raise ValueError(f"{where}: expected a string, got {value!r}")
        return value
    return value


def from_wire(cls: type, data: Any) -> Any:
    """Build a message dataclass from decoded JSON; unknown keys are ignored."""
    if not (isinstance(cls, type) and is_dataclass(cls)):
        raise TypeError(f"{cls!r} is not a message class")
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object for {cls.__name__}, got {type(data).__name__}")
    kwargs = {}
    for f in fields(cls):
        key = f.metadata.get(_KEY) or f.name
        if key not in data:
            continue
        value = data[key]
        hint = f.type
        if value is None and not _is_nullable(hint):
            continue
        kwargs[f.name] = _convert(hint, value, f"{cls.__name__}.{key}")
    return cls(**kwargs)


@dataclass
class Message:
    """Top-level envelope: a message type and its payload."""

    type: str = ""
    payload: Any = None

    def to_json(self) -> str:
        """Serialise the envelope and its payload to JSON text."""
        return json.dumps(to_wire(self))

    @classmethod
    def from_json(cls, text: "str | bytes") -> "Message":
        """Parse an envelope; the payload is left as decoded JSON."""
        decoded = json.loads(text)
        if not isinstance(decoded, dict):
            raise ValueError("message is not a JSON object")
        msg_type = decoded.get("type", "")
        if msg_type is None:
            msg_type = ""
        if not isinstance(msg_type, str):
            raise ValueError(f"message type must be a string, got {msg_type!r}")
        return cls(type=msg_type, payload=decoded.get("payload"))