"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from entropy_stream.driver import Driver, Pipeline
from entropy_stream.renderer import FixedChunkPolicy, StreamRenderer
from entropy_stream.sources.simulated import SimulatedSource
from entropy_stream.surface import ArraySurface


@pytest.fixture
def surface() -> ArraySurface:
    return ArraySurface()


@pytest.fixture
def pipeline(surface) -> Pipeline:
    """Pipeline with an attached in-memory surface and no render throttle."""
    renderer = StreamRenderer(width=32, height=16, surface=surface, chunk_policy=FixedChunkPolicy(2048))
    return Pipeline(renderer=renderer)


@pytest.fixture
def driver(pipeline) -> Driver:
    return Driver(SimulatedSource(seed=1234), pipeline, frame_size=2048)
