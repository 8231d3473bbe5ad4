"""Append-only entropy pool with size watches.

Digest bytes are appended in batch order and never removed, except by
an explicit :meth:`EntropyPool.reset` which empties the pool and tells
every size watch that the pool it was counting against is gone.

The pool is only touched from the driver's thread, so it takes no locks.
"""

from __future__ import annotations

import enum
import logging
from typing import Callable

import numpy as np

logger = logging.getLogger(__name__)


class WatchState(enum.Enum):
    PENDING = "pending"
    SATISFIED = "satisfied"
    CANCELLED = "cancelled"


class SizeWatch:
    """A consumer waiting for the pool to hold at least *required* bytes.

    ``on_ready(pool)`` fires once per pool generation when the size is
    reached. ``on_restart(pool)`` fires when the pool is reset; the watch
    then counts again from zero against the fresh pool.
    """

    def __init__(
        self,
        pool: EntropyPool,
        required: int,
        on_ready: Callable[[EntropyPool], None] | None = None,
        on_restart: Callable[[EntropyPool], None] | None = None,
    ) -> None:
        self._pool = pool
        self.required = required
        self.on_ready = on_ready
        self.on_restart = on_restart
        self.state = WatchState.PENDING
        self.restarts = 0
        self.generation = pool.generation

    @property
    def progress(self) -> float:
        if self.state is WatchState.SATISFIED:
            return 1.0
        return min(len(self._pool) / self.required, 1.0) if self.required else 1.0

    def cancel(self) -> None:
        self.state = WatchState.CANCELLED
        self._pool._drop_watch(self)

    def _check(self) -> None:
        if self.state is WatchState.PENDING and len(self._pool) >= self.required:
            self.state = WatchState.SATISFIED
            if self.on_ready is not None:
                self.on_ready(self._pool)

    def _restart(self) -> None:
        self.state = WatchState.PENDING
        self.restarts += 1
        self.generation = self._pool.generation
        if self.on_restart is not None:
            self.on_restart(self._pool)

    def __repr__(self) -> str:
        return f"<SizeWatch required={self.required} state={self.state.value} restarts={self.restarts}>"


class EntropyPool:
    """Append-only store of whitened digest bytes.

    Usage::

        pool = EntropyPool()
        pool.append(event.digest)
        key = pool.tail(32)
    """

    def __init__(self) -> None:
        self._buffer = bytearray()
        self._watches: list[SizeWatch] = []
        self._reset_listeners: list[Callable[[EntropyPool], None]] = []
        self.generation = 0
        self.appends = 0
        self.resets = 0

    # ── growth ──

    def append(self, digest_bytes: bytes) -> None:
        if not digest_bytes:
            return
        self._buffer.extend(digest_bytes)
        self.appends += 1
        for watch in list(self._watches):
            watch._check()

    # ── reads ──

    def length(self) -> int:
        return len(self._buffer)

    def __len__(self) -> int:
        return len(self._buffer)

    @property
    def bit_length(self) -> int:
        return len(self._buffer) * 8

    def snapshot(self) -> bytes:
        """Read-only copy of the whole pool."""
        return bytes(self._buffer)

    def tail(self, n: int) -> bytes:
        """The most recent *n* bytes (fewer if the pool is smaller)."""
        if n <= 0:
            return b""
        return bytes(self._buffer[-n:])

    def bits(self, start: int, stop: int) -> np.ndarray:
        """Bits ``[start, stop)`` of the pool, MSB first within each byte.

        Only the bytes covering the range are unpacked.
        """
        stop = min(stop, self.bit_length)
        if start >= stop:
            return np.empty(0, dtype=np.uint8)
        first, last = start // 8, (stop + 7) // 8
        chunk = np.frombuffer(bytes(self._buffer[first:last]), dtype=np.uint8)
        bits = np.unpackbits(chunk, bitorder="big")
        offset = first * 8
        return bits[start - offset : stop - offset]

    # ── watches ──

    def watch(
        self,
        required: int,
        on_ready: Callable[[EntropyPool], None] | None = None,
        on_restart: Callable[[EntropyPool], None] | None = None,
    ) -> SizeWatch:
        """Register a "waiting for *required* bytes" observer."""
        w = SizeWatch(self, required, on_ready=on_ready, on_restart=on_restart)
        self._watches.append(w)
        w._check()
        return w

    @property
    def watches(self) -> list[SizeWatch]:
        return list(self._watches)

    def _drop_watch(self, watch: SizeWatch) -> None:
        if watch in self._watches:
            self._watches.remove(watch)

    def on_reset(self, listener: Callable[[EntropyPool], None]) -> None:
        """Call *listener* with the fresh pool after every :meth:`reset`."""
        self._reset_listeners.append(listener)

    # ── reset ──

    def reset(self) -> None:
        """Empty the pool and restart every watch against the fresh pool."""
        self._buffer = bytearray()
        self.generation += 1
        self.resets += 1
        logger.info("entropy pool reset (generation %d, %d watch(es))", self.generation, len(self._watches))
        for watch in list(self._watches):
            watch._restart()
        for listener in list(self._reset_listeners):
            listener(self)

    def stats(self) -> dict:
        return {
            "length": len(self._buffer),
            "bits": self.bit_length,
            "digests": self.appends,
            "resets": self.resets,
            "generation": self.generation,
            "watches": len(self._watches),
        }
