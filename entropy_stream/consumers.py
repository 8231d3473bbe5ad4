"""Thin consumers of the entropy pool.

They report problems as a :class:`Status` instead of raising: running
short of entropy is the normal state right after start-up, and an
unsatisfiable request (no character set selected) stops before any
work is done.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from pathlib import Path

from entropy_stream.pool import EntropyPool, SizeWatch, WatchState

logger = logging.getLogger(__name__)

UPPER = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
LOWER = "abcdefghijklmnopqrstuvwxyz"
DIGITS = "0123456789"
SYMBOLS = "!@#$%^&*()-_=+[]{};:,.<>?"

PASSWORD_MIN, PASSWORD_MAX, PASSWORD_DEFAULT = 8, 64, 16
PASSWORD_MIN_POOL = 32
FILE_MIN, FILE_MAX = 32, 10 * 1024 * 1024


class Status(enum.Enum):
    OK = "ok"
    INSUFFICIENT_ENTROPY = "insufficient_entropy"
    INVALID_REQUEST = "invalid_request"


@dataclass(frozen=True)
class PasswordResult:
    status: Status
    password: str = ""
    message: str = ""
    length: int = 0


@dataclass(frozen=True)
class ByteResult:
    status: Status
    data: bytes = b""
    message: str = ""


def clamp_password_length(length: int | None) -> int:
    if not length:
        return PASSWORD_DEFAULT
    return max(PASSWORD_MIN, min(PASSWORD_MAX, int(length)))


def build_charset(upper: bool = True, lower: bool = True, digits: bool = True, symbols: bool = True) -> str:
    return (UPPER if upper else "") + (LOWER if lower else "") + (DIGITS if digits else "") + (SYMBOLS if symbols else "")


def generate_password(
    pool: EntropyPool,
    length: int | None = PASSWORD_DEFAULT,
    upper: bool = True,
    lower: bool = True,
    digits: bool = True,
    symbols: bool = True,
    reset_after: bool = True,
) -> PasswordResult:
    """Map the newest pool bytes onto a character set.

    Character ``i`` is ``charset[b % len(charset)]`` for the ``i``-th of the
    last *length* pool bytes. With *reset_after* the pool is emptied so the
    next password is built from fresh digests only.
    """
    charset = build_charset(upper, lower, digits, symbols)
    if not charset:
        return PasswordResult(Status.INVALID_REQUEST, message="Select at least one character set.")

    n = clamp_password_length(length)
    need = max(PASSWORD_MIN_POOL, n)
    have = len(pool)
    if have < need:
        return PasswordResult(
            Status.INSUFFICIENT_ENTROPY,
            message=f"Need at least {need} bytes of whitened entropy, have {have}.",
            length=n,
        )

    password = "".join(charset[b % len(charset)] for b in pool.tail(n))
    if reset_after:
        pool.reset()
    logger.debug("generated %d-character password from %d-symbol charset", n, len(charset))
    return PasswordResult(Status.OK, password=password, length=n)


def read_bytes(pool: EntropyPool, n: int, reset_after: bool = False) -> ByteResult:
    """The newest *n* pool bytes, or an INSUFFICIENT_ENTROPY status."""
    if n <= 0:
        return ByteResult(Status.INVALID_REQUEST, message=f"Byte count must be positive, got {n}.")
    if len(pool) < n:
        return ByteResult(Status.INSUFFICIENT_ENTROPY, message=f"Need {n} bytes, have {len(pool)}.")
    data = pool.tail(n)
    if reset_after:
        pool.reset()
    return ByteResult(Status.OK, data=data)


class FileRequest:
    """Collects *size* bytes of whitened entropy for a file.

    The size is clamped to ``[FILE_MIN, FILE_MAX]``. The request waits on a
    pool size watch; if the pool is reset before the size is reached the
    watch restarts and progress starts again from zero against the fresh
    pool.
    """

    def __init__(self, pool: EntropyPool, size: int) -> None:
        self.size = max(FILE_MIN, min(FILE_MAX, int(size)))
        if self.size != size:
            logger.warning("file size %d clamped to %d", size, self.size)
        self._pool = pool
        self.data: bytes | None = None
        self.restarts = 0
        self._watch: SizeWatch | None = None
        self._watch = pool.watch(self.size, on_ready=self._ready, on_restart=self._restarted)
        if self.data is not None:
            self._watch.cancel()

    @property
    def status(self) -> Status:
        return Status.OK if self.data is not None else Status.INSUFFICIENT_ENTROPY

    @property
    def progress(self) -> float:
        if self.data is not None:
            return 1.0
        return self._watch.progress if self._watch is not None else 0.0

    def _ready(self, pool: EntropyPool) -> None:
        self.data = pool.snapshot()[: self.size]
        if self._watch is not None:
            self._watch.cancel()
        logger.info("file request of %d bytes satisfied", self.size)

    def _restarted(self, pool: EntropyPool) -> None:
        self.restarts += 1
        logger.info("pool reset while waiting for %d bytes; restarting", self.size)

    def cancel(self) -> None:
        if self._watch is not None and self._watch.state is not WatchState.CANCELLED:
            self._watch.cancel()

    def write(self, path: str | Path) -> ByteResult:
        if self.data is None:
            return ByteResult(
                Status.INSUFFICIENT_ENTROPY,
                message=f"Collected {len(self._pool)}/{self.size} bytes.",
            )
        Path(path).write_bytes(self.data)
        return ByteResult(Status.OK, data=self.data)
