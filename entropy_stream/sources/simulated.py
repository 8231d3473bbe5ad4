"""Seeded synthetic sample source with a controllable LSB bias."""

from __future__ import annotations

import numpy as np

from entropy_stream.sources.base import SampleSource


class SimulatedSource(SampleSource):
    """Noise frames whose least-significant bit is 1 with probability *bias*.

    The upper seven bits are uniform, so frames look like a noisy signal
    while the bit the pipeline actually uses carries a known bias. Handy
    for headless runs and for checking the debiasing stage.
    """

    name = "simulated"
    description = "Seeded synthetic noise with configurable LSB bias"

    def __init__(self, bias: float = 0.5, seed: int | None = None) -> None:
        if not 0.0 < bias < 1.0:
            raise ValueError(f"bias must be in (0, 1), got {bias}")
        self.bias = bias
        self.seed = seed
        self._rng = np.random.default_rng(seed)
        self.frames = 0

    def is_available(self) -> bool:
        return True

    def open(self) -> None:
        self._rng = np.random.default_rng(self.seed)
        self.frames = 0

    def read_frame(self, n_samples: int) -> np.ndarray:
        high = self._rng.integers(0, 128, size=n_samples, dtype=np.uint8) << 1
        lsb = (self._rng.random(n_samples) < self.bias).astype(np.uint8)
        self.frames += 1
        return (high | lsb).astype(np.uint8)
