"""Clock synchronisation against the server's loop clock."""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timedelta, timezone
from enum import IntEnum

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

HIGH_RTT_LIMIT_US = 100_000
GOOD_RTT_LIMIT_US = 50_000
STALE_AFTER_S = 5.0


class Quality(IntEnum):
    """Sync quality."""

    GOOD = 0
    DEGRADED = 1
    LOST = 2


def _unix_micros() -> int:
    return time.time_ns() // 1000


class ClockSync:
    """Maps the server's loop clock onto local wall-clock time."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._server_loop_start_unix = 0
        self._rtt = 0
        self._quality = Quality.LOST
        self._last_sync: float | None = None
        self._sample_count = 0
        self._synced = False

    def process_sync_response(self, t1: int, t2: int, t3: int, t4: int) -> None:
        """Handle a server/time reply.

        t1 and t4 are client send/receive times in Unix microseconds; t2 and
        t3 are server receive/send times in server-loop microseconds.
        """
        rtt = (t4 - t1) - (t3 - t2)
        with self._lock:
            self._rtt = rtt
            self._last_sync = time.monotonic()

            if rtt > HIGH_RTT_LIMIT_US:
                logger.info("Discarding sync sample: high RTT %dus", rtt)
                return

            if not self._synced:
                self._server_loop_start_unix = _unix_micros() - t2
                self._synced = True
                self._quality = Quality.GOOD
                self._sample_count += 1
                logger.info(
                    "Clock sync established: serverLoopStart=%d, rtt=%dus",
                    self._server_loop_start_unix,
                    rtt,
                )
                return

            self._quality = Quality.GOOD if rtt < GOOD_RTT_LIMIT_US else Quality.DEGRADED
            self._sample_count += 1
            if self._sample_count < 10:
                logger.info(
                    "Sync #%d: rtt=%dus, quality=%s",
                    self._sample_count,
                    rtt,
                    self._quality.name,
                )

    def stats(self) -> tuple[int, Quality]:
        """Return the latest round-trip time (us) and quality."""
        with self._lock:
            return self._rtt, self._quality

    def check_quality(self) -> Quality:
        """Mark sync as lost when no reply arrived for five seconds."""
        with self._lock:
            if self._last_sync is None or time.monotonic() - self._last_sync > STALE_AFTER_S:
                self._quality = Quality.LOST
            return self._quality

    def server_to_local_time(self, server_time: int) -> datetime:
        """Convert a server-loop timestamp (us) to a local UTC datetime."""
        with self._lock:
            micros = server_time
            if self._synced:
                micros += self._server_loop_start_unix
        return _EPOCH + timedelta(microseconds=micros)

    def _server_micros_now(self) -> int:
        with self._lock:
            now = _unix_micros()
            if not self._synced:
                return now
            return now - self._server_loop_start_unix


_registry: dict[str, ClockSync | None] = {"clock": None}


def set_global_clock_sync(clock: ClockSync | None) -> ClockSync | None:
    """Install the process-wide clock synchroniser and return the previous one."""
    previous = _registry["clock"]
    _registry["clock"] = clock
    return previous


def server_micros_now() -> int:
    """Current time in the server's loop clock, or Unix us before sync."""
    clock = _registry["clock"]
    if clock is None:
        return _unix_micros()
    return clock._server_micros_now()