"""
entropy-stream: whitened randomness from physical noise, drawn as it grows.

Raw sample LSBs are debiased with a Von Neumann extractor, packed into
bytes, whitened in 1000-byte batches through SHA-256 and appended to an
entropy pool whose bit stream is painted incrementally as a waterfall.
"""

__version__ = "0.3.0"
__author__ = "Amenti Labs"

from entropy_stream.conditioning import BatchHasher, BitExtractor, ByteAssembler, DigestEvent
from entropy_stream.config import StreamConfig, load_config
from entropy_stream.driver import Driver, Pipeline
from entropy_stream.pool import EntropyPool, SizeWatch
from entropy_stream.renderer import (
    AdaptiveChunkPolicy,
    FixedChunkPolicy,
    RenderResult,
    RenderState,
    StreamRenderer,
)
from entropy_stream.sources.base import SampleSource
from entropy_stream.surface import ArraySurface, Palette, RenderSurface, RichSurface

__all__ = [
    "AdaptiveChunkPolicy",
    "ArraySurface",
    "BatchHasher",
    "BitExtractor",
    "ByteAssembler",
    "DigestEvent",
    "Driver",
    "EntropyPool",
    "FixedChunkPolicy",
    "Palette",
    "Pipeline",
    "RenderResult",
    "RenderState",
    "RenderSurface",
    "RichSurface",
    "SampleSource",
    "SizeWatch",
    "StreamConfig",
    "StreamRenderer",
    "__version__",
    "load_config",
]
