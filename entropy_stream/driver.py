"""Pipeline wiring and the cooperative capture loop.

:class:`Pipeline` owns every stage and passes data between them
explicitly. :class:`Driver` pulls one frame per tick from a sample
source, pushes it through the pipeline and lets the renderer catch up.
Everything runs on the caller's thread; nothing here blocks except the
source read and the pacing sleep between ticks.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

import numpy as np

from entropy_stream.conditioning import BatchHasher, BitExtractor, ByteAssembler, DigestEvent, sample_lsbs
from entropy_stream.config import StreamConfig
from entropy_stream.pool import EntropyPool
from entropy_stream.renderer import RenderResult, StreamRenderer
from entropy_stream.sources.base import SampleSource
from entropy_stream.stats import rms_level
from entropy_stream.surface import RenderSurface

logger = logging.getLogger(__name__)

DigestListener = Callable[[DigestEvent], None]


class Pipeline:
    """raw samples → BitExtractor → ByteAssembler → BatchHasher → EntropyPool → StreamRenderer."""

    def __init__(
        self,
        extractor: BitExtractor | None = None,
        assembler: ByteAssembler | None = None,
        hasher: BatchHasher | None = None,
        pool: EntropyPool | None = None,
        renderer: StreamRenderer | None = None,
    ) -> None:
        self.extractor = extractor or BitExtractor()
        self.assembler = assembler or ByteAssembler()
        self.hasher = hasher or BatchHasher()
        self.pool = pool or EntropyPool()
        self.renderer = renderer or StreamRenderer()
        self.pool.on_reset(self.renderer.pool_reset)
        self._listeners: list[DigestListener] = []
        self.last_digest: DigestEvent | None = None
        self.samples_in = 0
        self.bytes_assembled = 0

    @classmethod
    def from_config(cls, config: StreamConfig, surface: RenderSurface | None = None) -> Pipeline:
        return cls(
            hasher=BatchHasher(
                batch_size=config.batch_size,
                algorithm=config.digest_algorithm,
                encoding=config.digest_encoding,
            ),
            renderer=StreamRenderer.from_config(config, surface=surface),
        )

    def on_digest(self, listener: DigestListener) -> None:
        """Call *listener* with every :class:`DigestEvent`, in batch order."""
        self._listeners.append(listener)

    def feed(self, frame: np.ndarray) -> list[DigestEvent]:
        """Push one frame of unsigned 8-bit samples through every stage."""
        frame = np.asarray(frame, dtype=np.uint8)
        self.samples_in += len(frame)
        bits = self.extractor.consume(sample_lsbs(frame))
        data = self.assembler.consume(bits)
        self.bytes_assembled += len(data)
        events = self.hasher.consume(data)
        for event in events:
            self.pool.append(event.digest)
            self.last_digest = event
            for listener in self._listeners:
                listener(event)
        return events

    def render(self) -> RenderResult:
        return self.renderer.update(self.pool)

    def discard_partial(self) -> None:
        """Drop the pending raw bit, partial byte, partial batch and partial render row."""
        self.extractor.reset()
        self.assembler.reset()
        self.hasher.reset()
        self.renderer.drop_partial_row()

    def reset(self) -> None:
        """Consumer-triggered reset: empty the pool and restart the renderer together."""
        self.pool.reset()
        self.last_digest = None

    def status(self) -> dict:
        return {
            "samples": self.samples_in,
            "pending_raw_bit": self.extractor.pending,
            "partial_bits": self.assembler.pending_bits,
            "batch_fill": self.hasher.fill,
            "batch_size": self.hasher.batch_size,
            "bytes_assembled": self.bytes_assembled,
            "pool_bytes": len(self.pool),
            "digests": self.hasher.batches,
            "last_digest": self.last_digest.hex if self.last_digest else None,
            "render_cursor": self.renderer.last_bit_count,
            "render_state": self.renderer.state.value,
        }


class Driver:
    """Cooperative tick loop over a :class:`SampleSource`.

    Usage::

        driver = Driver(SimulatedSource(seed=1), Pipeline())
        driver.start()
        driver.run(ticks=100)
        driver.stop()
    """

    def __init__(
        self,
        source: SampleSource,
        pipeline: Pipeline,
        frame_size: int = 2048,
        tick_interval: float = 0.0,
    ) -> None:
        self.source = source
        self.pipeline = pipeline
        self.frame_size = frame_size
        self.tick_interval = tick_interval
        self.running = False
        self.ticks = 0
        self.level = 0.0

    @classmethod
    def from_config(
        cls, config: StreamConfig, source: SampleSource, surface: RenderSurface | None = None
    ) -> Driver:
        return cls(
            source,
            Pipeline.from_config(config, surface=surface),
            frame_size=config.frame_size,
            tick_interval=config.tick_interval,
        )

    def start(self) -> None:
        """Open the source and begin from a clean slate."""
        if self.running:
            return
        self.pipeline.discard_partial()
        self.pipeline.reset()
        self.source.open()
        self.running = True
        logger.info("driver started on %s", self.source.name)

    def stop(self) -> None:
        """Close the source and discard all in-flight and pooled state."""
        if not self.running:
            return
        self.running = False
        try:
            self.source.close()
        finally:
            self.pipeline.discard_partial()
            self.pipeline.reset()
            self.level = 0.0
            logger.info("driver stopped after %d tick(s)", self.ticks)

    def tick(self) -> list[DigestEvent]:
        """Read one frame, feed it, and render. Capture errors propagate."""
        frame = self.source.read_frame(self.frame_size)
        self.level = rms_level(frame)
        events = self.pipeline.feed(frame)
        self.pipeline.render()
        self.ticks += 1
        return events

    def run(self, ticks: int | None = None, stop_event: threading.Event | None = None) -> int:
        """Tick until *ticks* have run, *stop_event* is set, or :meth:`stop` is called."""
        if not self.running:
            self.start()
        done = 0
        while self.running and (ticks is None or done < ticks):
            if stop_event is not None and stop_event.is_set():
                break
            started = time.monotonic()
            self.tick()
            done += 1
            if self.tick_interval > 0:
                remaining = self.tick_interval - (time.monotonic() - started)
                if remaining > 0:
                    if stop_event is not None:
                        stop_event.wait(remaining)
                    else:
                        time.sleep(remaining)
        return done

    def run_until(self, n_bytes: int, max_ticks: int = 1_000_000) -> int:
        """Tick until the pool holds at least *n_bytes* (or *max_ticks* elapse)."""
        if not self.running:
            self.start()
        done = 0
        while self.running and len(self.pipeline.pool) < n_bytes and done < max_ticks:
            self.tick()
            done += 1
        return done
