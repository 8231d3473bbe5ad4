"""Incremental waterfall renderer for the pool's bit stream.

The renderer keeps a cursor (``last_bit_count``) into the pool's bit
sequence and, on every :meth:`StreamRenderer.update`, reads only the bits
after it. Bits collect in a row buffer; each full row is committed by
shifting the grid one row away from the insertion edge and writing the
new row at that edge. A committed row costs O(W*H), so the per-bit cost
stays O(1) amortised no matter how long the pool grows.

Two independent bounds keep each call cheap, and either may leave the
cursor behind the pool for a while:

* a throttle that skips calls arriving sooner than ``min_interval``
  after the previous productive one, and
* a chunk policy that caps how many bits one call may consume.

Neither drops data. The cursor only advances over bits that were
actually drawn, so later calls catch up.
"""

from __future__ import annotations

import enum
import logging
import time
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

import numpy as np

from entropy_stream.surface import ONE, UNSET, ZERO, Palette, RenderSurface

if TYPE_CHECKING:
    from entropy_stream.config import StreamConfig
    from entropy_stream.pool import EntropyPool

logger = logging.getLogger(__name__)


class RenderState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    STREAMING = "streaming"


@dataclass
class RenderResult:
    """What one :meth:`StreamRenderer.update` call did.

    ``skipped`` is ``None`` for a productive call, otherwise one of
    ``"detached"``, ``"idle"`` or ``"throttled"``.
    """

    bits_consumed: int = 0
    rows_committed: int = 0
    presented: bool = False
    skipped: str | None = None


# ── chunk policies ──


class ChunkPolicy(ABC):
    """Decides how many new bits one update may consume."""

    @abstractmethod
    def size(self) -> int:
        ...

    def record(self, duration: float) -> None:
        """Feed back the wall time of a productive update."""

    def reset(self) -> None:
        """Forget history."""


class FixedChunkPolicy(ChunkPolicy):
    def __init__(self, bits: int = 4096) -> None:
        self.bits = max(1, int(bits))

    def size(self) -> int:
        return self.bits


class AdaptiveChunkPolicy(ChunkPolicy):
    """Grows or shrinks the chunk from a rolling average of update times.

    An average below half of *target* doubles the chunk, an average above
    *target* halves it. The chunk stays within ``[minimum, maximum]``.
    """

    def __init__(
        self,
        base: int = 4096,
        minimum: int = 256,
        maximum: int = 65536,
        target: float = 0.008,
        window: int = 10,
    ) -> None:
        if minimum < 1 or minimum >= maximum:
            raise ValueError(f"need 1 <= minimum < maximum, got {minimum}, {maximum}")
        self.base = min(max(base, minimum), maximum)
        self.minimum = minimum
        self.maximum = maximum
        self.target = target
        self._durations: deque[float] = deque(maxlen=window)
        self._chunk = self.base

    def size(self) -> int:
        return self._chunk

    @property
    def average(self) -> float:
        if not self._durations:
            return 0.0
        return sum(self._durations) / len(self._durations)

    def record(self, duration: float) -> None:
        self._durations.append(duration)
        avg = self.average
        if avg < self.target / 2:
            self._chunk = min(self._chunk * 2, self.maximum)
        elif avg > self.target:
            self._chunk = max(self._chunk // 2, self.minimum)

    def reset(self) -> None:
        self._durations.clear()
        self._chunk = self.base


# ── renderer ──


class StreamRenderer:
    """Paints an unbounded bit stream into a fixed ``height x width`` waterfall.

    Parameters
    ----------
    width, height:
        Bits per row and number of rows kept.
    newest_on_top:
        Insert new rows at the top (older rows scroll down) when True,
        at the bottom (older rows scroll up) otherwise.
    min_interval:
        Minimum seconds between productive updates; 0 disables the throttle.
    chunk_policy:
        Bounds the bits consumed per update. Defaults to an adaptive policy.
    clock, timer:
        Injectable time sources for the throttle and for measuring update
        durations.
    """

    def __init__(
        self,
        width: int = 64,
        height: int = 32,
        palette: Palette | None = None,
        newest_on_top: bool = True,
        min_interval: float = 0.0,
        chunk_policy: ChunkPolicy | None = None,
        surface: RenderSurface | None = None,
        clock: Callable[[], float] = time.monotonic,
        timer: Callable[[], float] = time.perf_counter,
    ) -> None:
        if width < 1 or height < 1:
            raise ValueError(f"grid must be at least 1x1, got {width}x{height}")
        self.width = width
        self.height = height
        self.palette = palette or Palette()
        self.newest_on_top = newest_on_top
        self.min_interval = min_interval
        self.chunk_policy = chunk_policy or AdaptiveChunkPolicy()
        self._clock = clock
        self._timer = timer
        self._surface: RenderSurface | None = None
        self._grid = np.full((height, width), UNSET, dtype=np.uint8)
        self._row = np.empty(0, dtype=np.uint8)
        self._last_bit_count = 0
        self._last_render: float | None = None
        self._generation: int | None = None
        self.state = RenderState.UNINITIALIZED
        if surface is not None:
            self.attach(surface)

    @classmethod
    def from_config(cls, config: StreamConfig, surface: RenderSurface | None = None) -> StreamRenderer:
        if config.adaptive_chunk:
            policy: ChunkPolicy = AdaptiveChunkPolicy(
                base=config.base_chunk_bits,
                minimum=config.min_chunk_bits,
                maximum=config.max_chunk_bits,
                target=config.render_budget,
            )
        else:
            policy = FixedChunkPolicy(config.base_chunk_bits)
        return cls(
            width=config.matrix_width,
            height=config.matrix_height,
            palette=Palette(unset=config.unset_color, zero=config.zero_color, one=config.one_color),
            newest_on_top=config.newest_on_top,
            min_interval=config.min_render_interval,
            chunk_policy=policy,
            surface=surface,
        )

    # ── surface ──

    @property
    def surface(self) -> RenderSurface | None:
        return self._surface

    def attach(self, surface: RenderSurface) -> None:
        self._surface = surface
        self.reset()

    def detach(self) -> None:
        self._surface = None

    # ── state ──

    @property
    def last_bit_count(self) -> int:
        return self._last_bit_count

    @property
    def pending_row(self) -> list[int]:
        return [int(b) for b in self._row]

    @property
    def grid(self) -> np.ndarray:
        """Copy of the grid of cell values (``UNSET``, ``ZERO``, ``ONE``)."""
        return self._grid.copy()

    def bit_rows(self) -> list[list[int | None]]:
        """Grid rows top to bottom as bits, ``None`` for unset cells."""
        lookup = {UNSET: None, ZERO: 0, ONE: 1}
        return [[lookup[int(c)] for c in row] for row in self._grid]

    def reset(self) -> None:
        """Back to UNINITIALIZED: cursor 0, empty row buffer, blank grid."""
        if self._surface is None:
            return
        self._grid.fill(UNSET)
        self._row = np.empty(0, dtype=np.uint8)
        self._last_bit_count = 0
        self._last_render = None
        self.chunk_policy.reset()
        self.state = RenderState.UNINITIALIZED
        self._surface.present(self._grid, self.palette)

    def drop_partial_row(self) -> None:
        """Forget bits waiting for a full row; the cursor stays where it is."""
        self._row = np.empty(0, dtype=np.uint8)

    def pool_reset(self, pool: EntropyPool) -> None:
        """Restart against a freshly reset *pool* without waiting for the next update."""
        self.reset()
        self._generation = pool.generation

    def resize(self, width: int, height: int) -> None:
        """Change grid dimensions; partial rows are meaningless afterwards, so reset."""
        if width < 1 or height < 1:
            raise ValueError(f"grid must be at least 1x1, got {width}x{height}")
        self.width = width
        self.height = height
        self._grid = np.full((height, width), UNSET, dtype=np.uint8)
        self._row = np.empty(0, dtype=np.uint8)
        self._last_bit_count = 0
        self.state = RenderState.UNINITIALIZED
        self.reset()

    def set_direction(self, newest_on_top: bool) -> None:
        """Move the insertion edge, flipping the grid so row age order is kept."""
        if newest_on_top == self.newest_on_top:
            return
        self.newest_on_top = newest_on_top
        if self._surface is None:
            return
        self._grid = np.ascontiguousarray(self._grid[::-1])
        self._surface.present(self._grid, self.palette)

    # ── rendering ──

    def update(self, pool: EntropyPool) -> RenderResult:
        """Render whatever part of *pool* is new since the last call."""
        if self._surface is None:
            return RenderResult(skipped="detached")

        if self._generation != pool.generation:
            if self._generation is not None:
                logger.debug("pool generation changed; resetting renderer")
                self.reset()
            self._generation = pool.generation

        total = pool.bit_length
        if total <= self._last_bit_count:
            return RenderResult(skipped="idle")

        now = self._clock()
        if (
            self.min_interval > 0
            and self._last_render is not None
            and now - self._last_render < self.min_interval
        ):
            return RenderResult(skipped="throttled")
        self._last_render = now

        started = self._timer()
        stop = min(total, self._last_bit_count + self.chunk_policy.size())
        bits = pool.bits(self._last_bit_count, stop)
        rows = self._take_rows(bits)
        for row in rows:
            self._commit(row)
        self._last_bit_count += len(bits)
        self.state = RenderState.STREAMING

        presented = False
        if len(rows):
            self._surface.present(self._grid, self.palette)
            presented = True
        self.chunk_policy.record(self._timer() - started)
        return RenderResult(bits_consumed=len(bits), rows_committed=len(rows), presented=presented)

    def catch_up(self, pool: EntropyPool, max_calls: int = 1_000_000) -> int:
        """Call :meth:`update` until the cursor reaches the pool or nothing moves."""
        calls = 0
        while calls < max_calls and self._surface is not None and self._last_bit_count < pool.bit_length:
            result = self.update(pool)
            calls += 1
            if result.skipped == "throttled":
                break
        return calls

    def _take_rows(self, bits: np.ndarray) -> np.ndarray:
        """Append *bits* to the row buffer and split off every full row."""
        pending = np.concatenate((self._row, bits))
        full = len(pending) // self.width
        self._row = pending[full * self.width :].copy()
        return pending[: full * self.width].reshape(full, self.width)

    def _commit(self, row: np.ndarray) -> None:
        cells = np.where(row == 1, ONE, ZERO).astype(np.uint8)
        if self.newest_on_top:
            self._grid[1:] = self._grid[:-1]
            self._grid[0] = cells
        else:
            self._grid[:-1] = self._grid[1:]
            self._grid[-1] = cells
