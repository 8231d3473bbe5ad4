"""Entropy conditioning: Von Neumann debiasing, byte packing and whitening.

Three stateful stages carry partial work across calls so that frame
boundaries never lose or reorder data::

    raw LSBs -> BitExtractor -> ByteAssembler -> BatchHasher -> digests
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field

import numpy as np

from entropy_stream.exceptions import ConfigValidationError

logger = logging.getLogger(__name__)

DIGEST_SIZE = 32
DEFAULT_BATCH_SIZE = 1000


def von_neumann_debias(bits: np.ndarray) -> tuple[np.ndarray, dict]:
    """Von Neumann debiasing of a bit stream.

    Pairs (0,1)→0, (1,0)→1; equal pairs discarded. A trailing odd bit is
    ignored here; :class:`BitExtractor` carries it instead.
    """
    bits = np.asarray(bits, dtype=np.uint8).flatten() & 1
    n = len(bits) - (len(bits) % 2)
    pairs = bits[:n].reshape(-1, 2)
    mask = pairs[:, 0] != pairs[:, 1]
    output = pairs[mask, 0].astype(np.uint8)
    return output, {
        "input_bits": len(bits),
        "output_bits": len(output),
        "efficiency": len(output) / max(len(bits), 1),
    }


def pack_bits_msb(bits: np.ndarray) -> bytes:
    """Pack a multiple of 8 bits into bytes, first bit most significant."""
    bits = np.asarray(bits, dtype=np.uint8)
    if len(bits) % 8:
        raise ValueError(f"bit count {len(bits)} is not a multiple of 8")
    return np.packbits(bits, bitorder="big").tobytes()


def unpack_bits_msb(data: bytes) -> np.ndarray:
    """Inverse of :func:`pack_bits_msb`."""
    return np.unpackbits(np.frombuffer(bytes(data), dtype=np.uint8), bitorder="big")


def sample_lsbs(frame: np.ndarray) -> np.ndarray:
    """Least-significant bit of each unsigned 8-bit sample."""
    return (np.asarray(frame, dtype=np.uint8) & 1).astype(np.uint8)


class BitExtractor:
    """Stateful Von Neumann extractor.

    Raw bits are paired strictly in arrival order. When a call ends on an
    odd count the last bit is held and becomes the first half of the next
    pair.
    """

    def __init__(self) -> None:
        self._pending: int | None = None
        self.raw_bits = 0
        self.output_bits = 0

    @property
    def pending(self) -> int | None:
        """The buffered raw bit, or ``None``."""
        return self._pending

    def consume(self, raw_bits: np.ndarray) -> np.ndarray:
        raw = np.asarray(raw_bits, dtype=np.uint8).flatten() & 1
        self.raw_bits += len(raw)
        if self._pending is not None:
            raw = np.concatenate((np.array([self._pending], dtype=np.uint8), raw))
            self._pending = None
        if len(raw) % 2:
            self._pending = int(raw[-1])
            raw = raw[:-1]
        out, _ = von_neumann_debias(raw)
        self.output_bits += len(out)
        return out

    def reset(self) -> None:
        self._pending = None


class ByteAssembler:
    """Packs debiased bits into bytes, MSB first.

    Fewer than 8 bits are ever held between calls.
    """

    def __init__(self) -> None:
        self._bits = np.empty(0, dtype=np.uint8)

    @property
    def pending_bits(self) -> list[int]:
        return [int(b) for b in self._bits]

    def consume(self, bits: np.ndarray) -> bytes:
        bits = np.concatenate((self._bits, np.asarray(bits, dtype=np.uint8).flatten()))
        whole = len(bits) - len(bits) % 8
        self._bits = bits[whole:].copy()
        return pack_bits_msb(bits[:whole])

    def reset(self) -> None:
        self._bits = np.empty(0, dtype=np.uint8)


@dataclass(frozen=True)
class DigestEvent:
    """One whitened batch: its sequence number and 32-byte digest."""

    index: int
    digest: bytes
    hex: str = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "hex", self.digest.hex())


class BatchHasher:
    """Whitens exactly-full byte batches through a cryptographic hash.

    Parameters
    ----------
    batch_size:
        Bytes per batch. A batch is hashed the moment it is full and never
        before; partial batches wait for the next call.
    algorithm:
        ``hashlib`` algorithm name. Must produce a 32-byte digest.
    encoding:
        ``"raw"`` hashes the byte values themselves. ``"utf8"`` hashes the
        UTF-8 encoding of a text whose code points are the byte values,
        which is what browser implementations hashing a ``fromCharCode``
        string produce.
    """

    def __init__(
        self,
        batch_size: int = DEFAULT_BATCH_SIZE,
        algorithm: str = "sha256",
        encoding: str = "raw",
    ) -> None:
        if batch_size < 1:
            raise ConfigValidationError(f"batch_size must be positive, got {batch_size}")
        if encoding not in ("raw", "utf8"):
            raise ConfigValidationError(f"Unknown digest encoding '{encoding}'")
        try:
            size = hashlib.new(algorithm).digest_size
        except ValueError as exc:
            raise ConfigValidationError(f"Unknown digest algorithm '{algorithm}'") from exc
        if size != DIGEST_SIZE:
            raise ConfigValidationError(f"'{algorithm}' digest is {size} bytes, need {DIGEST_SIZE}")
        self.batch_size = batch_size
        self.algorithm = algorithm
        self.encoding = encoding
        self._batch = bytearray()
        self._count = 0

    @property
    def fill(self) -> int:
        """Bytes waiting in the current batch."""
        return len(self._batch)

    @property
    def batches(self) -> int:
        return self._count

    def digest(self, batch: bytes) -> bytes:
        """Hash one full batch."""
        if self.encoding == "utf8":
            batch = bytes(batch).decode("latin-1").encode("utf-8")
        return hashlib.new(self.algorithm, bytes(batch)).digest()

    def consume(self, data: bytes) -> list[DigestEvent]:
        events: list[DigestEvent] = []
        view = memoryview(bytes(data))
        while len(view):
            take = min(self.batch_size - len(self._batch), len(view))
            self._batch.extend(view[:take])
            view = view[take:]
            if len(self._batch) == self.batch_size:
                events.append(DigestEvent(self._count, self.digest(self._batch)))
                self._count += 1
                self._batch.clear()
        if events:
            logger.debug("whitened %d batch(es); last %s", len(events), events[-1].hex)
        return events

    def reset(self) -> None:
        self._batch.clear()
