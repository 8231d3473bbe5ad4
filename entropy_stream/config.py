"""Configuration for the capture pipeline and the bit-stream renderer.

Uses pydantic-settings for layered configuration:
init kwargs -> environment variables (ENTROPY_STREAM_*) -> .env file -> defaults.

Numeric fields that leave their documented range are clamped back into
it (with a warning) rather than rejected. Combinations that cannot be
satisfied by clamping raise.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Any

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from entropy_stream.exceptions import ConfigValidationError

logger = logging.getLogger(__name__)

# (low, high) inclusive bounds for clamped fields.
BOUNDS: dict[str, tuple[float, float]] = {
    "frame_size": (64, 32768),
    "gain": (0.0, 2.0),
    "batch_size": (32, 1_000_000),
    "matrix_width": (8, 512),
    "matrix_height": (4, 256),
    "pixel_scale": (1, 16),
    "min_render_interval": (0.0, 5.0),
    "base_chunk_bits": (8, 1 << 20),
    "min_chunk_bits": (8, 1 << 20),
    "max_chunk_bits": (8, 1 << 22),
    "render_budget": (0.0005, 1.0),
    "tick_interval": (0.0, 10.0),
}

_DIGEST_SIZE = 32


def clamp(name: str, value: Any) -> Any:
    """Clamp *value* into ``BOUNDS[name]``, keeping its type."""
    low, high = BOUNDS[name]
    clamped = min(max(value, low), high)
    if clamped != value:
        logger.warning("%s=%r out of range [%s, %s]; using %r", name, value, low, high, clamped)
    return type(value)(clamped)


class StreamConfig(BaseSettings):
    """Settings consumed by the pipeline, renderer and driver."""

    model_config = SettingsConfigDict(
        env_prefix="ENTROPY_STREAM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Capture ---

    source: str = Field(default="audio", description="Sample source: 'audio' or 'simulated'")
    device: str | None = Field(default=None, description="Input device index or name substring")
    sample_rate: int = Field(default=44100, description="Capture sample rate in Hz")
    frame_size: int = Field(default=2048, description="Samples per frame (one frame per tick)")
    gain: float = Field(default=1.0, description="Linear input gain applied before quantisation")
    simulated_bias: float = Field(default=0.5, description="P(LSB = 1) for the simulated source")
    seed: int | None = Field(default=None, description="Seed for the simulated source")

    # --- Whitening ---

    batch_size: int = Field(default=1000, description="Assembled bytes per whitening batch")
    digest_algorithm: str = Field(default="sha256", description="hashlib algorithm (32-byte digest)")
    digest_encoding: str = Field(
        default="raw",
        description="'raw' hashes byte values, 'utf8' hashes them as UTF-8 text code points",
    )

    # --- Renderer ---

    matrix_width: int = Field(default=64, description="Bits per rendered row")
    matrix_height: int = Field(default=32, description="Rows kept in the waterfall")
    pixel_scale: int = Field(default=4, description="Pixels per cell for raster surfaces")
    newest_on_top: bool = Field(default=True, description="Insert rows at the top edge")
    one_color: str = Field(default="#4caf50", description="Colour of a 1 bit")
    zero_color: str = Field(default="#1b1b1b", description="Colour of a 0 bit")
    unset_color: str = Field(default="#000000", description="Colour of never-written cells")
    min_render_interval: float = Field(default=1 / 30, description="Seconds between renders")
    adaptive_chunk: bool = Field(default=True, description="Adapt bits-per-render to frame time")
    base_chunk_bits: int = Field(default=4096, description="Starting bits per render")
    min_chunk_bits: int = Field(default=256, description="Lower bound for adaptive chunk")
    max_chunk_bits: int = Field(default=65536, description="Upper bound for adaptive chunk")
    render_budget: float = Field(default=0.008, description="Target seconds per render")

    # --- Driver ---

    tick_interval: float = Field(default=0.02, description="Seconds between capture ticks")
    log_level: str = Field(default="WARNING", description="Logging level name")

    @field_validator(
        "frame_size",
        "gain",
        "batch_size",
        "matrix_width",
        "matrix_height",
        "pixel_scale",
        "min_render_interval",
        "base_chunk_bits",
        "min_chunk_bits",
        "max_chunk_bits",
        "render_budget",
        "tick_interval",
    )
    @classmethod
    def _clamp_range(cls, value: Any, info: Any) -> Any:
        return clamp(info.field_name, value)

    @field_validator("simulated_bias")
    @classmethod
    def _check_bias(cls, value: float) -> float:
        if not 0.0 < value < 1.0:
            raise ConfigValidationError(f"simulated_bias must be in (0, 1), got {value}")
        return value

    @field_validator("source")
    @classmethod
    def _check_source(cls, value: str) -> str:
        if value not in ("audio", "simulated"):
            raise ConfigValidationError(f"Unknown source '{value}' (expected 'audio' or 'simulated')")
        return value

    @field_validator("digest_algorithm")
    @classmethod
    def _check_algorithm(cls, value: str) -> str:
        try:
            size = hashlib.new(value).digest_size
        except (ValueError, TypeError) as exc:
            raise ConfigValidationError(f"Unknown digest algorithm '{value}'") from exc
        if size != _DIGEST_SIZE:
            raise ConfigValidationError(
                f"Digest algorithm '{value}' yields {size} bytes, need {_DIGEST_SIZE}"
            )
        return value

    @field_validator("digest_encoding")
    @classmethod
    def _check_encoding(cls, value: str) -> str:
        if value not in ("raw", "utf8"):
            raise ConfigValidationError(f"digest_encoding must be 'raw' or 'utf8', got '{value}'")
        return value

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ConfigValidationError(f"Unknown log level '{value}'")
        return level

    @model_validator(mode="after")
    def _check_chunk_bounds(self) -> StreamConfig:
        if self.min_chunk_bits >= self.max_chunk_bits:
            raise ConfigValidationError(
                f"min_chunk_bits ({self.min_chunk_bits}) must be below "
                f"max_chunk_bits ({self.max_chunk_bits})"
            )
        base = min(max(self.base_chunk_bits, self.min_chunk_bits), self.max_chunk_bits)
        if base != self.base_chunk_bits:
            logger.warning("base_chunk_bits=%d outside chunk bounds; using %d", self.base_chunk_bits, base)
            self.base_chunk_bits = base
        return self


def load_config(**overrides: Any) -> StreamConfig:
    """Build a :class:`StreamConfig`, raising :class:`ConfigValidationError` on bad input.

    ``None`` overrides are dropped so CLI options left unset fall back to
    the environment and defaults.
    """
    kwargs = {k: v for k, v in overrides.items() if v is not None}
    try:
        return StreamConfig(**kwargs)
    except ValidationError as exc:
        raise ConfigValidationError(str(exc)) from exc
