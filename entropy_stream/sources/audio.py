"""Microphone capture source (requires sounddevice)."""

from __future__ import annotations

import logging

import numpy as np

from entropy_stream.exceptions import CaptureError
from entropy_stream.sources.base import SampleSource

logger = logging.getLogger(__name__)


def list_input_devices() -> list[dict]:
    """Input-capable devices as ``{"index", "name", "channels", "default_samplerate"}``."""
    import sounddevice as sd

    devices = []
    for index, dev in enumerate(sd.query_devices()):
        if dev.get("max_input_channels", 0) > 0:  # type: ignore[union-attr]
            devices.append({
                "index": index,
                "name": dev["name"],  # type: ignore[index]
                "channels": dev["max_input_channels"],  # type: ignore[index]
                "default_samplerate": dev["default_samplerate"],  # type: ignore[index]
            })
    return devices


def to_unsigned_bytes(samples: np.ndarray, gain: float = 1.0) -> np.ndarray:
    """Quantise float samples in [-1, 1] to unsigned 8-bit amplitudes.

    Same mapping as a browser analyser's byte time-domain data:
    ``floor(128 * (1 + gain * x))`` clipped to ``[0, 255]``.
    """
    scaled = np.floor(128.0 * (1.0 + gain * np.asarray(samples, dtype=np.float64)))
    return np.clip(scaled, 0, 255).astype(np.uint8)


class AudioCaptureSource(SampleSource):
    """Frames from the microphone ADC.

    With no signal present the input still digitises thermal agitation of
    electrons in the input impedance; the LSB of each quantised sample is
    the raw bit the pipeline consumes. Echo cancellation and similar
    processing do not exist at this level, so the samples are unprocessed.
    """

    name = "audio"
    description = "Microphone ADC noise, quantised to 8 bits"
    platform_requirements = ["sounddevice", "microphone"]

    def __init__(
        self,
        device: int | str | None = None,
        sample_rate: int = 44100,
        gain: float = 1.0,
    ) -> None:
        self.device = device
        self.sample_rate = sample_rate
        self.gain = gain
        self._stream = None
        self.overflows = 0

    def is_available(self) -> bool:
        try:
            return bool(list_input_devices())
        except Exception:
            return False

    def open(self) -> None:
        if self._stream is not None:
            return
        try:
            import sounddevice as sd

            self._stream = sd.InputStream(
                device=self.device,
                samplerate=self.sample_rate,
                channels=1,
                dtype="float32",
            )
            self._stream.start()
        except Exception as exc:
            self._stream = None
            raise CaptureError(f"cannot open audio input {self.device!r}: {exc}") from exc
        logger.info("audio capture started (device=%r, %d Hz)", self.device, self.sample_rate)

    def close(self) -> None:
        if self._stream is None:
            return
        try:
            self._stream.stop()
            self._stream.close()
        finally:
            self._stream = None
            logger.info("audio capture stopped")

    def read_frame(self, n_samples: int) -> np.ndarray:
        if self._stream is None:
            raise CaptureError("audio source is not open")
        try:
            data, overflowed = self._stream.read(n_samples)
        except Exception as exc:
            raise CaptureError(f"audio read failed: {exc}") from exc
        if overflowed:
            self.overflows += 1
            logger.debug("audio input overflow (%d so far)", self.overflows)
        return to_unsigned_bytes(data.flatten(), self.gain)
