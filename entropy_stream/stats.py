"""Quick statistics for the monitor: byte entropy, bit balance, input level."""

from __future__ import annotations

import zlib
from collections import Counter

import numpy as np


def shannon_entropy(data: bytes | np.ndarray) -> float:
    """Shannon entropy in bits per byte."""
    data = np.frombuffer(data, dtype=np.uint8) if isinstance(data, (bytes, bytearray)) else np.asarray(data)
    data = data.flatten()
    if len(data) == 0:
        return 0.0
    counts = np.array(list(Counter(data.tolist()).values()))
    probs = counts / len(data)
    return float(-np.sum(probs * np.log2(probs + 1e-15)))


def bit_bias(bits: np.ndarray) -> float:
    """Fraction of ones in a 0/1 array (0.5 is unbiased)."""
    bits = np.asarray(bits).flatten()
    if len(bits) == 0:
        return 0.0
    return float(np.mean(bits & 1))


def byte_histogram(data: bytes) -> np.ndarray:
    """Counts of each byte value, length 256."""
    return np.bincount(np.frombuffer(bytes(data), dtype=np.uint8), minlength=256)


def compression_ratio(data: bytes) -> float:
    """Compression ratio via zlib level 9.  ≈1.0 means incompressible."""
    if len(data) < 10:
        return 0.0
    return len(zlib.compress(bytes(data), 9)) / len(data)


def rms_level(frame: np.ndarray, min_db: float = -60.0) -> float:
    """Input level on a 0-100 logarithmic scale.

    Samples are centred on 128 and normalised to [-1, 1); their RMS is
    mapped from ``min_db``..0 dB onto 0..100.
    """
    frame = np.asarray(frame, dtype=np.float64).flatten()
    if len(frame) == 0:
        return 0.0
    rms = float(np.sqrt(np.mean(((frame - 128.0) / 128.0) ** 2)))
    if rms <= 0:
        return 0.0
    db = 20 * np.log10(rms)
    return float(np.clip((db - min_db) / (0.0 - min_db) * 100.0, 0.0, 100.0))


def quick_quality(data: bytes, label: str = "") -> dict:
    """Lightweight grade of whitened output for the dashboard."""
    if len(data) < 16:
        return {"label": label, "grade": "?", "error": "insufficient data", "samples": len(data)}

    shannon = shannon_entropy(data)
    comp = compression_ratio(data)
    n_unique = int(np.count_nonzero(byte_histogram(data)))
    # A short sample cannot reach 8 bits/byte; judge against what it could reach.
    ceiling = min(8.0, float(np.log2(len(data))))
    score = shannon / ceiling * 60 + min(comp, 1.0) * 20 + min(n_unique / min(len(data), 256), 1.0) * 20
    grade = (
        "A" if score >= 80 else
        "B" if score >= 60 else
        "C" if score >= 40 else
        "D" if score >= 20 else "F"
    )
    return {
        "label": label,
        "samples": len(data),
        "unique_values": n_unique,
        "shannon_entropy": round(shannon, 4),
        "compression_ratio": round(comp, 4),
        "quality_score": round(score, 1),
        "grade": grade,
    }
