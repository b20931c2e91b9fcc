"""Terminal status view for the player: state, rendering and key handling."""

from __future__ import annotations

import queue
from dataclasses import dataclass

from .clock import Quality

MIN_WIDTH = 60
VOLUME_STEP = 5
HELP_TEXT = "↑/↓:Volume  m:Mute  r:Reconnect  d:Debug  q:Quit"


@dataclass
class StatusMsg:
    """A partial update of the view's state.

    Empty strings and zero sync values leave the current state alone; the
    counters are always applied because zero is a legitimate value.
    """

    connected: bool | None = None
    server_name: str = ""
    sync_offset: int = 0
    sync_rtt: int = 0
    sync_quality: Quality = Quality.GOOD
    codec: str = ""
    sample_rate: int = 0
    channels: int = 0
    bit_depth: int = 0
    title: str = ""
    artist: str = ""
    album: str = ""
    artwork_path: str = ""
    volume: int = 0
    received: int = 0
    played: int = 0
    dropped: int = 0
    buffer_depth: int = 0
    goroutines: int = 0
    mem_alloc: int = 0
    mem_sys: int = 0


@dataclass(frozen=True)
class VolumeChange:
    """A volume or mute change requested from the keyboard."""

    volume: int
    muted: bool


class VolumeControl:
    """Queues carrying volume changes and quit requests to the player."""

    def __init__(self) -> None:
        self.changes: queue.Queue[VolumeChange] = queue.Queue(maxsize=10)
        self.quit: queue.Queue[bool] = queue.Queue(maxsize=1)


def render_bar(value: int, maximum: int, width: int) -> str:
    """Draw a bar of ``width`` cells filled in proportion to value/maximum."""
    filled = (value * width) // maximum
    return "█" * filled + "░" * (width - filled)


def truncate(text: str, length: int) -> str:
    """Shorten text to ``length`` characters, ending in an ellipsis."""
    if len(text) <= length:
        return text
    return text[: max(length - 3, 0)] + "..."


def channel_name(channels: int) -> str:
    """Name a channel layout: Mono for one channel, Stereo otherwise."""
    return "Mono" if channels == 1 else "Stereo"


def _line(inner: int, text: str) -> str:
    return f"│ {text:<{inner}} │\n"


@dataclass
class Model:
    """State of the player's status view."""

    connected: bool = False
    server_name: str = ""
    sync_offset: int = 0
    sync_rtt: int = 0
    sync_quality: Quality = Quality.GOOD
    codec: str = ""
    sample_rate: int = 0
    channels: int = 0
    bit_depth: int = 0
    title: str = ""
    artist: str = ""
    album: str = ""
    artwork_path: str = ""
    state: str = "idle"
    volume: int = 100
    muted: bool = False
    received: int = 0
    played: int = 0
    dropped: int = 0
    buffer_depth: int = 0
    show_debug: bool = False
    goroutines: int = 0
    mem_alloc: int = 0
    mem_sys: int = 0
    width: int = 0
    height: int = 0
    volume_control: VolumeControl | None = None

    def resize(self, width: int, height: int) -> None:
        """Record the terminal dimensions."""
        self.width = width
        self.height = height

    def apply_status(self, msg: StatusMsg) -> None:
        """Merge a status update into the state."""
        if msg.connected is not None:
            self.connected = msg.connected
        if msg.server_name:
            self.server_name = msg.server_name
        if msg.sync_offset != 0 or msg.sync_rtt != 0:
            self.sync_offset = msg.sync_offset
            self.sync_rtt = msg.sync_rtt
            self.sync_quality = msg.sync_quality
        if msg.codec:
            self.codec = msg.codec
            self.sample_rate = msg.sample_rate
            self.channels = msg.channels
            self.bit_depth = msg.bit_depth
        if msg.title:
            self.title = msg.title
            self.artist = msg.artist
            self.album = msg.album
        if msg.artwork_path:
            self.artwork_path = msg.artwork_path
        if msg.volume != 0:
            self.volume = msg.volume
        self.received = msg.received
        self.played = msg.played
        self.dropped = msg.dropped
        self.buffer_depth = msg.buffer_depth
        self.goroutines = msg.goroutines
        self.mem_alloc = msg.mem_alloc
        self.mem_sys = msg.mem_sys

    def _offer(self, target: queue.Queue, item: object) -> None:
        try:
            target.put_nowait(item)
        except queue.Full:
            pass

    def _notify_volume(self) -> None:
        if self.volume_control is not None:
            self._offer(
                self.volume_control.changes,
                VolumeChange(volume=self.volume, muted=self.muted),
            )

    def handle_key(self, key: str) -> bool:
        """Handle a key press; return True when the view should quit."""
        if key in ("q", "ctrl+c"):
            if self.volume_control is not None:
                self._offer(self.volume_control.quit, True)
            return True
        if key == "up":
            if self.volume < 100:
                self.volume = min(self.volume + VOLUME_STEP, 100)
                self._notify_volume()
        elif key == "down":
            if self.volume > 0:
                self.volume = max(self.volume - VOLUME_STEP, 0)
                self._notify_volume()
        elif key == "m":
            self.muted = not self.muted
            self._notify_volume()
        elif key == "d":
            self.show_debug = not self.show_debug
        return False

    @property
    def _frame_width(self) -> int:
        return max(self.width, MIN_WIDTH)

    def view(self) -> str:
        """Render the whole status screen."""
        if self.width == 0:
            return "Loading..."
        parts = [
            self._render_header(),
            self._render_stream_info(),
            self._render_controls(),
            self._render_stats(),
        ]
        if self.show_debug:
            parts.append(self._render_debug())
        parts.append(self._render_help())
        return "".join(parts)

    def _separator(self) -> str:
        return "├" + "─" * (self._frame_width - 2) + "┤\n"

    def _render_header(self) -> str:
        width = self._frame_width
        inner = width - 4
        conn_status = f"Connected to {self.server_name}" if self.connected else "Disconnected"

        if self.sync_quality == Quality.GOOD:
            icon = "✓"
            sync_text = (
                f"Synced (offset: {self.sync_offset / 1000.0:+.1f}ms, "
                f"jitter: {self.sync_rtt / 1000.0:.1f}ms)"
            )
        elif self.sync_quality == Quality.DEGRADED:
            icon, sync_text = "⚠", "Degraded"
        else:
            icon, sync_text = "✗", "Lost"

        title = "┌─ Sendspin Player " + "─" * max(width - 20, 0) + "┐\n"
        status = f"│ Status: {truncate(conn_status, inner - 9):<{inner - 9}} │\n"
        sync = f"│ Sync:   {icon} {truncate(sync_text, inner - 11):<{inner - 11}} │\n"
        return title + status + sync + self._separator()

    def _render_stream_info(self) -> str:
        inner = self._frame_width - 4
        if not self.connected or not self.codec:
            return _line(inner, "No stream")

        meta_width = inner - 10
        lines = [_line(inner, "Now Playing:")]
        if self.title:
            fields = [("Track:  ", self.title), ("Artist: ", self.artist), ("Album:  ", self.album)]
            if self.artwork_path:
                fields.append(("Art:    ", self.artwork_path))
            lines.extend(
                f"│   {label}{truncate(value, meta_width):<{meta_width}} │\n"
                for label, value in fields
            )
        else:
            lines.append(f"│   {'(No metadata)':<{inner - 3}} │\n")
        lines.append(_line(inner, ""))
        fmt = (
            f"Format: {self.codec} {self.sample_rate}Hz "
            f"{channel_name(self.channels)} {self.bit_depth}-bit"
        )
        lines.append(_line(inner, fmt))
        return "".join(lines)

    def _render_controls(self) -> str:
        inner = self._frame_width - 4
        mute_icon = " 🔇" if self.muted else ""
        bar = render_bar(self.volume, 100, 10)
        chunks = int(self.buffer_depth / 10)
        return (
            _line(inner, "")
            + _line(inner, f"Volume: [{bar}] {self.volume}%{mute_icon}")
            + _line(inner, f"Buffer: {self.buffer_depth}ms ({chunks} chunks)")
        )

    def _render_stats(self) -> str:
        inner = self._frame_width - 4
        stats = f"Stats:  RX: {self.received}  Played: {self.played}  Dropped: {self.dropped}"
        return self._separator() + _line(inner, stats) + _line(inner, "")

    def _render_debug(self) -> str:
        inner = self._frame_width - 4
        alloc_mb = self.mem_alloc / 1024 / 1024
        sys_mb = self.mem_sys / 1024 / 1024
        return (
            _line(inner, "DEBUG:")
            + _line(inner, f"  Goroutines: {self.goroutines}")
            + _line(inner, f"  Memory: {alloc_mb:.1f} MB / {sys_mb:.1f} MB")
            + _line(inner, f"  Clock Offset: {self.sync_offset:+d}μs")
        )

    def _render_help(self) -> str:
        width = self._frame_width
        return _line(width - 4, HELP_TEXT) + "└" + "─" * (width - 2) + "┘\n"