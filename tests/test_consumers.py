"""Tests for pool consumers and their status reporting."""

from entropy_stream.consumers import (
    DIGITS,
    FILE_MIN,
    PASSWORD_MAX,
    PASSWORD_MIN,
    FileRequest,
    Status,
    build_charset,
    clamp_password_length,
    generate_password,
    read_bytes,
)
from entropy_stream.pool import EntropyPool


def _pool(n):
    pool = EntropyPool()
    pool.append(bytes(i % 256 for i in range(n)))
    return pool


class TestPassword:
    def test_insufficient_entropy(self):
        result = generate_password(EntropyPool())
        assert result.status is Status.INSUFFICIENT_ENTROPY
        assert result.password == ""
        assert "32" in result.message

    def test_empty_charset_is_invalid(self):
        pool = _pool(64)
        result = generate_password(pool, upper=False, lower=False, digits=False, symbols=False)
        assert result.status is Status.INVALID_REQUEST
        assert len(pool) == 64

    def test_empty_charset_checked_before_entropy(self):
        result = generate_password(EntropyPool(), upper=False, lower=False, digits=False, symbols=False)
        assert result.status is Status.INVALID_REQUEST

    def test_length_clamped(self):
        assert clamp_password_length(3) == PASSWORD_MIN
        assert clamp_password_length(500) == PASSWORD_MAX
        assert clamp_password_length(None) == 16
        assert clamp_password_length(20) == 20

    def test_maps_tail_bytes(self):
        pool = _pool(40)
        result = generate_password(pool, length=10, upper=False, lower=False, digits=True, symbols=False)
        assert result.status is Status.OK
        assert result.password == "".join(DIGITS[b % 10] for b in range(30, 40))

    def test_long_password_needs_more_bytes(self):
        pool = _pool(40)
        result = generate_password(pool, length=64)
        assert result.status is Status.INSUFFICIENT_ENTROPY
        assert len(pool) == 40

    def test_resets_pool_after_use(self):
        pool = _pool(64)
        result = generate_password(pool, length=12)
        assert result.status is Status.OK
        assert len(result.password) == 12
        assert set(result.password) <= set(build_charset())
        assert len(pool) == 0

    def test_keep_pool(self):
        pool = _pool(64)
        generate_password(pool, reset_after=False)
        assert len(pool) == 64


class TestReadBytes:
    def test_ok(self):
        result = read_bytes(_pool(10), 4)
        assert result.status is Status.OK
        assert result.data == bytes([6, 7, 8, 9])

    def test_insufficient(self):
        assert read_bytes(_pool(3), 4).status is Status.INSUFFICIENT_ENTROPY

    def test_invalid(self):
        assert read_bytes(_pool(3), 0).status is Status.INVALID_REQUEST


class TestFileRequest:
    def test_size_clamped(self):
        assert FileRequest(EntropyPool(), 1).size == FILE_MIN

    def test_waits_then_completes(self, tmp_path):
        pool = EntropyPool()
        req = FileRequest(pool, 64)
        assert req.status is Status.INSUFFICIENT_ENTROPY
        assert req.write(tmp_path / "x.bin").status is Status.INSUFFICIENT_ENTROPY
        pool.append(bytes(32))
        assert req.progress == 0.5
        pool.append(bytes(range(32, 96)))
        assert req.status is Status.OK
        assert req.progress == 1.0
        assert req.data == bytes(32) + bytes(range(32, 64))
        out = tmp_path / "random.bin"
        assert req.write(out).status is Status.OK
        assert out.read_bytes() == req.data
        assert pool.watches == []

    def test_restarts_on_reset(self):
        pool = EntropyPool()
        req = FileRequest(pool, 64)
        pool.append(bytes(48))
        pool.reset()
        assert req.restarts == 1
        assert req.progress == 0.0
        assert req.status is Status.INSUFFICIENT_ENTROPY
        pool.append(bytes(64))
        assert req.status is Status.OK

    def test_already_available(self):
        req = FileRequest(_pool(100), 40)
        assert req.status is Status.OK
        assert req.data == bytes(range(40))

    def test_cancel(self):
        pool = EntropyPool()
        req = FileRequest(pool, 64)
        req.cancel()
        pool.append(bytes(64))
        assert req.status is Status.INSUFFICIENT_ENTROPY
