"""Tests for settings loading, clamping and validation."""

import pytest

from entropy_stream.config import StreamConfig, clamp, load_config
from entropy_stream.driver import Pipeline
from entropy_stream.exceptions import ConfigValidationError
from entropy_stream.renderer import AdaptiveChunkPolicy, FixedChunkPolicy
from entropy_stream.surface import ArraySurface


class TestDefaults:
    def test_defaults(self):
        cfg = StreamConfig()
        assert cfg.source == "audio"
        assert cfg.frame_size == 2048
        assert cfg.batch_size == 1000
        assert cfg.digest_algorithm == "sha256"
        assert cfg.digest_encoding == "raw"
        assert (cfg.matrix_width, cfg.matrix_height) == (64, 32)
        assert cfg.newest_on_top is True

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("ENTROPY_STREAM_MATRIX_WIDTH", "128")
        monkeypatch.setenv("ENTROPY_STREAM_SOURCE", "simulated")
        cfg = load_config()
        assert cfg.matrix_width == 128
        assert cfg.source == "simulated"

    def test_none_overrides_fall_back(self, monkeypatch):
        monkeypatch.setenv("ENTROPY_STREAM_GAIN", "1.5")
        assert load_config(gain=None).gain == 1.5
        assert load_config(gain=0.5).gain == 0.5


class TestClamping:
    def test_clamp_helper(self):
        assert clamp("matrix_width", 10_000) == 512
        assert clamp("matrix_width", 100) == 100
        assert isinstance(clamp("gain", 5), int)

    @pytest.mark.parametrize(
        "field,value,expected",
        [("matrix_width", 10_000, 512), ("matrix_height", 1, 4), ("gain", 5.0, 2.0), ("frame_size", 1, 64)],
    )
    def test_out_of_range_is_clamped(self, field, value, expected):
        assert getattr(load_config(**{field: value}), field) == expected

    def test_base_chunk_pulled_into_bounds(self):
        cfg = load_config(min_chunk_bits=512, max_chunk_bits=1024, base_chunk_bits=4096)
        assert cfg.base_chunk_bits == 1024


class TestValidation:
    def test_chunk_bounds_must_be_ordered(self):
        with pytest.raises(ConfigValidationError):
            load_config(min_chunk_bits=1024, max_chunk_bits=1024)

    @pytest.mark.parametrize("algorithm", ["sha512", "md5", "nope"])
    def test_algorithm_must_give_32_bytes(self, algorithm):
        with pytest.raises(ConfigValidationError):
            load_config(digest_algorithm=algorithm)

    def test_other_32_byte_algorithm(self):
        assert load_config(digest_algorithm="sha3_256").digest_algorithm == "sha3_256"

    @pytest.mark.parametrize(
        "overrides",
        [{"simulated_bias": 0.0}, {"simulated_bias": 1.5}, {"source": "radio"}, {"digest_encoding": "utf16"}],
    )
    def test_rejected(self, overrides):
        with pytest.raises(ConfigValidationError):
            load_config(**overrides)

    def test_log_level_normalised(self):
        assert load_config(log_level="debug").log_level == "DEBUG"

    def test_unknown_log_level(self):
        with pytest.raises(ConfigValidationError):
            load_config(log_level="loud")

    def test_error_is_a_value_error(self):
        with pytest.raises(ValueError):
            load_config(source="radio")


class TestFromConfig:
    def test_pipeline_follows_config(self):
        cfg = load_config(
            source="simulated", batch_size=500, matrix_width=16, matrix_height=8,
            newest_on_top=False, adaptive_chunk=False, base_chunk_bits=1024,
        )
        p = Pipeline.from_config(cfg)
        assert p.hasher.batch_size == 500
        assert p.renderer.grid.shape == (8, 16)
        assert p.renderer.newest_on_top is False
        assert isinstance(p.renderer.chunk_policy, FixedChunkPolicy)
        assert p.renderer.chunk_policy.size() == 1024

    def test_adaptive_policy_by_default(self):
        p = Pipeline.from_config(load_config(source="simulated"))
        assert isinstance(p.renderer.chunk_policy, AdaptiveChunkPolicy)

    def test_array_surface_pixel_scale(self):
        surface = ArraySurface.from_config(load_config(pixel_scale=3))
        p = Pipeline.from_config(load_config(matrix_width=8, matrix_height=4), surface=surface)
        assert p.renderer.surface is surface
        assert surface.image.shape == (12, 24, 3)
