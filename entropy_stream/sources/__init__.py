"""Raw sample sources."""

from __future__ import annotations

from typing import TYPE_CHECKING

from entropy_stream.sources.audio import AudioCaptureSource, list_input_devices
from entropy_stream.sources.base import SampleSource
from entropy_stream.sources.simulated import SimulatedSource

if TYPE_CHECKING:
    from entropy_stream.config import StreamConfig

ALL_SOURCES: list[type[SampleSource]] = [
    AudioCaptureSource,
    SimulatedSource,
]


def make_source(config: StreamConfig) -> SampleSource:
    """Build the source named by ``config.source``."""
    if config.source == "simulated":
        return SimulatedSource(bias=config.simulated_bias, seed=config.seed)
    device: int | str | None = config.device
    if device is not None and str(device).isdigit():
        device = int(device)
    return AudioCaptureSource(device=device, sample_rate=config.sample_rate, gain=config.gain)


__all__ = [
    "ALL_SOURCES",
    "AudioCaptureSource",
    "SampleSource",
    "SimulatedSource",
    "list_input_devices",
    "make_source",
]
