"""Tests for pipeline wiring and the capture loop."""

import hashlib

import numpy as np
import pytest

from entropy_stream.consumers import Status, generate_password
from entropy_stream.driver import Driver, Pipeline
from entropy_stream.exceptions import CaptureError
from entropy_stream.pool import WatchState
from entropy_stream.renderer import RenderState
from entropy_stream.sources.base import SampleSource
from entropy_stream.sources.simulated import SimulatedSource
from entropy_stream.surface import UNSET


def _reference_pool(frame: np.ndarray, batch_size: int = 1000) -> bytes:
    """One-shot model of the whole pipeline for a single frame."""
    raw = frame & 1
    raw = raw[: len(raw) - len(raw) % 2].reshape(-1, 2)
    bits = raw[raw[:, 0] != raw[:, 1], 0]
    bits = bits[: len(bits) - len(bits) % 8]
    data = np.packbits(bits).tobytes()
    out = b""
    for i in range(0, len(data) - batch_size + 1, batch_size):
        out += hashlib.sha256(data[i:i + batch_size]).digest()
    return out


class FailingSource(SampleSource):
    name = "failing"

    def is_available(self):
        return True

    def read_frame(self, n_samples):
        raise CaptureError("device unplugged")


class TestPipeline:
    def test_matches_reference_model(self):
        frame = SimulatedSource(bias=0.7, seed=11).read_frame(200_000)
        p = Pipeline()
        p.feed(frame)
        expected = _reference_pool(frame)
        assert len(expected) > 0
        assert p.pool.snapshot() == expected

    def test_frame_boundaries_do_not_matter(self):
        frame = SimulatedSource(seed=5).read_frame(150_000)
        whole = Pipeline()
        whole.feed(frame)

        split = Pipeline()
        for i in range(0, len(frame), 777):
            split.feed(frame[i:i + 777])
        assert split.pool.snapshot() == whole.pool.snapshot()
        assert split.status()["batch_fill"] == whole.status()["batch_fill"]

    def test_digest_listeners_in_order(self):
        events = []
        p = Pipeline()
        p.on_digest(events.append)
        returned = p.feed(SimulatedSource(seed=2).read_frame(120_000))
        assert events == returned
        assert [e.index for e in events] == list(range(len(events)))
        assert all(len(e.hex) == 64 for e in events)
        assert p.last_digest == events[-1]
        assert p.pool.snapshot() == b"".join(e.digest for e in events)

    def test_discard_partial(self):
        p = Pipeline()
        p.feed(np.array([1, 0, 0, 1, 1, 0, 1], dtype=np.uint8))
        status = p.status()
        assert status["pending_raw_bit"] == 1
        assert status["partial_bits"] == [1, 0, 1]
        p.discard_partial()
        status = p.status()
        assert status["pending_raw_bit"] is None
        assert status["partial_bits"] == []
        assert status["batch_fill"] == 0

    def test_reset_clears_pool_and_renderer_together(self, pipeline):
        pipeline.feed(SimulatedSource(seed=3).read_frame(100_000))
        pipeline.render()
        assert pipeline.renderer.last_bit_count > 0
        restarted = []
        watch = pipeline.pool.watch(64, on_restart=lambda pool: restarted.append(len(pool)))
        pipeline.reset()
        assert len(pipeline.pool) == 0
        assert pipeline.renderer.last_bit_count == 0
        assert pipeline.renderer.state is RenderState.UNINITIALIZED
        assert restarted == [0]
        assert watch.state is WatchState.PENDING

    def test_consumer_reset_clears_render_cursor(self, pipeline):
        pipeline.feed(SimulatedSource(seed=3).read_frame(100_000))
        pipeline.render()
        assert pipeline.status()["render_cursor"] > 0
        result = generate_password(pipeline.pool, reset_after=True)
        assert result.status is Status.OK
        status = pipeline.status()
        assert status["pool_bytes"] == 0
        assert status["render_cursor"] == 0
        assert status["render_state"] == RenderState.UNINITIALIZED.value
        assert (pipeline.renderer.grid == UNSET).all()

        pipeline.feed(SimulatedSource(seed=4).read_frame(100_000))
        pipeline.render()
        assert pipeline.renderer.last_bit_count == min(pipeline.pool.bit_length, 2048)

    def test_render_catches_up(self, pipeline):
        pipeline.feed(SimulatedSource(seed=4).read_frame(200_000))
        pipeline.renderer.catch_up(pipeline.pool)
        assert pipeline.renderer.last_bit_count == pipeline.pool.bit_length


class TestDriver:
    def test_run_until(self, driver):
        driver.start()
        ticks = driver.run_until(64)
        assert ticks > 0
        assert len(driver.pipeline.pool) >= 64
        assert driver.pipeline.renderer.last_bit_count > 0
        assert 0.0 <= driver.level <= 100.0

    def test_run_ticks(self, driver):
        assert driver.run(ticks=5) == 5
        assert driver.ticks == 5
        assert driver.pipeline.samples_in == 5 * 2048

    def test_stop_discards_everything(self, driver):
        driver.start()
        driver.run_until(32)
        driver.tick()
        driver.stop()
        status = driver.pipeline.status()
        assert not driver.running
        assert status["pool_bytes"] == 0
        assert status["pending_raw_bit"] is None
        assert status["partial_bits"] == []
        assert status["batch_fill"] == 0
        assert status["render_cursor"] == 0

    def test_restart_is_clean_slate(self, driver):
        driver.start()
        driver.run_until(64)
        first = driver.pipeline.pool.tail(64)
        driver.stop()
        driver.start()
        driver.run_until(64)
        # the simulated source reseeds on open, so a clean restart repeats itself
        assert driver.pipeline.pool.tail(64) == first

    def test_capture_error_propagates(self, pipeline):
        d = Driver(FailingSource(), pipeline)
        d.start()
        with pytest.raises(CaptureError):
            d.tick()
        d.stop()
        assert not d.running
