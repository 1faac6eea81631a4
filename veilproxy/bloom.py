"""Bloom filters used to reject replayed salts and nonces."""

from __future__ import annotations

import hashlib
import math
import os
import threading


class BloomFilter:
    """A fixed-size Bloom filter sized for a capacity and false-positive rate."""

    def __init__(self, capacity: int, fp_rate: float) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        if not 0.0 < fp_rate < 1.0:
            raise ValueError("fp_rate must be between 0 and 1")
        ln2 = math.log(2)
        self._num_bits = max(1, math.ceil(-capacity * math.log(fp_rate) / (ln2 * ln2)))
        self._num_hashes = max(1, math.ceil(self._num_bits / capacity * ln2))
        self._bits = bytearray((self._num_bits + 7) // 8)

    def _positions(self, item: bytes):
        digest = hashlib.blake2b(bytes(item), digest_size=16).digest()
        h1 = int.from_bytes(digest[:8], "little")
        h2 = int.from_bytes(digest[8:], "little") | 1
        for i in range(self._num_hashes):
            yield (h1 + i * h2) % self._num_bits

    def add(self, item: bytes) -> None:
        """Record ``item`` in the filter."""
        for pos in self._positions(item):
            self._bits[pos >> 3] |= 1 << (pos & 7)

    def __contains__(self, item: bytes) -> bool:
        return all(self._bits[pos >> 3] & (1 << (pos & 7)) for pos in self._positions(item))

    def clear(self) -> None:
        """Forget every recorded item."""
        self._bits = bytearray(len(self._bits))


class PingPongBloom:
    """Two Bloom filters used as a ring, each holding half the entries."""

    BF_NUM_ENTRIES_FOR_SERVER = 1_000_000
    BF_NUM_ENTRIES_FOR_CLIENT = 10_000
    BF_ERROR_RATE_FOR_SERVER = 1e-6
    BF_ERROR_RATE_FOR_CLIENT = 1e-15

    def __init__(
        self,
        is_local: bool,
        *,
        capacity: int | None = None,
        fp_rate: float | None = None,
    ) -> None:
        if is_local:
            entries, rate = self.BF_NUM_ENTRIES_FOR_CLIENT, self.BF_ERROR_RATE_FOR_CLIENT
        else:
            entries, rate = self.BF_NUM_ENTRIES_FOR_SERVER, self.BF_ERROR_RATE_FOR_SERVER
        if capacity is not None:
            entries = capacity
        if fp_rate is not None:
            rate = fp_rate
        self._item_count = entries // 2
        if self._item_count <= 0:
            raise ValueError("capacity must be at least 2")
        self._blooms = [BloomFilter(self._item_count, rate) for _ in range(2)]
        self._counts = [0, 0]
        self._current = 0

    def check_and_set(self, item: bytes) -> bool:
        """Return True if ``item`` was seen; otherwise record it and return False."""
        if any(item in bloom for bloom in self._blooms):
            return True
        if self._counts[self._current] >= self._item_count:
            self._current = (self._current + 1) % 2
            self._counts[self._current] = 0
            self._blooms[self._current].clear()
        self._blooms[self._current].add(item)
        self._counts[self._current] += 1
        return False


class BloomContext:
    """Thread-safe replay detection for salts shared by a whole server."""

    def __init__(self, is_local: bool, **bloom_options) -> None:
        self._bloom = PingPongBloom(is_local, **bloom_options)
        self._lock = threading.Lock()

    def check_nonce_and_set(self, nonce: bytes) -> bool:
        """Return True if ``nonce`` is a repeat; empty nonces never are."""
        if not nonce:
            return False
        with self._lock:
            return self._bloom.check_and_set(bytes(nonce))

    def generate_nonce(self, length: int, unique: bool) -> bytes:
        """Return ``length`` random bytes, recorded as seen when ``unique``."""
        if length <= 0:
            return b""
        while True:
            nonce = os.urandom(length)
            if unique and self.check_nonce_and_set(nonce):
                continue
            return nonce