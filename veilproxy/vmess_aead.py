"""Chunked AEAD framing of a VMess data stream.

Each chunk is ``[length][encrypted payload][tag]`` where the big-endian 16-bit
length is sent in clear and counts the payload plus its tag. The nonce of
chunk ``n`` is ``n`` as a big-endian 16-bit counter followed by bytes 2..12 of
the body IV.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305

from veilproxy.ss_cipher import InvalidTagError

MAX_SIZE = 17 * 1024
CHUNK_SIZE = 1 << 14
_COUNTER_MOD = 1 << 16


class _ExactReader(Protocol):
    async def readexactly(self, n: int) -> bytes: ...


class VmessSecurity:
    """An AEAD cipher used for VMess body chunks."""

    overhead_len = 16
    nonce_len = 12
    tag_len = 16

    def __init__(self, aead: AESGCM | ChaCha20Poly1305) -> None:
        self._aead = aead

    @classmethod
    def aes_128_gcm(cls, key: bytes) -> "VmessSecurity":
        """AES-128-GCM with a 16-byte key."""
        if len(key) != 16:
            raise ValueError("aes-128-gcm requires a 16-byte key")
        return cls(AESGCM(bytes(key)))

    @classmethod
    def chacha20_poly1305(cls, key: bytes) -> "VmessSecurity":
        """ChaCha20-Poly1305 with a 32-byte key."""
        if len(key) != 32:
            raise ValueError("chacha20-poly1305 requires a 32-byte key")
        return cls(ChaCha20Poly1305(bytes(key)))

    def seal(self, nonce: bytes, plaintext: bytes) -> bytes:
        """Encrypt ``plaintext`` and append its tag."""
        return self._aead.encrypt(nonce, plaintext, None)

    def open(self, nonce: bytes, ciphertext: bytes) -> bytes:
        """Decrypt ``ciphertext`` (tag included); raise InvalidTagError on failure."""
        try:
            return self._aead.decrypt(nonce, ciphertext, None)
        except InvalidTag:
            raise InvalidTagError("invalid aead tag") from None


class _ChunkNonce:
    """Nonce generator shared by the reader and the writer."""

    def __init__(self, iv: bytes) -> None:
        iv = bytes(iv)
        if len(iv) < 12:
            raise ValueError("iv must be at least 12 bytes long")
        self._suffix = iv[2:12]
        self.count = 0

    def next(self) -> bytes:
        nonce = self.count.to_bytes(2, "big") + self._suffix
        self.count = (self.count + 1) % _COUNTER_MOD
        return nonce


class VmessAeadWriter:
    """Encrypts outgoing data into VMess AEAD chunks."""

    def __init__(self, iv: bytes, security: VmessSecurity) -> None:
        self._security = security
        self._nonce = _ChunkNonce(iv)

    def encrypt(self, data: bytes) -> bytes:
        """Return the wire bytes for ``data``; empty data yields nothing."""
        max_payload = CHUNK_SIZE - self._security.overhead_len
        view = memoryview(bytes(data))
        out = bytearray()
        for start in range(0, len(view), max_payload):
            chunk = bytes(view[start : start + max_payload])
            out += (len(chunk) + self._security.tag_len).to_bytes(2, "big")
            out += self._security.seal(self._nonce.next(), chunk)
        return bytes(out)


class VmessAeadReader:
    """Decrypts incoming VMess AEAD chunks."""

    def __init__(self, iv: bytes, security: VmessSecurity) -> None:
        self._security = security
        self._nonce = _ChunkNonce(iv)

    @staticmethod
    async def _read_exact(reader: _ExactReader, n: int) -> bytes | None:
        try:
            return await reader.readexactly(n)
        except asyncio.IncompleteReadError:
            return None

    async def read(self, reader: _ExactReader) -> bytes:
        """Return the payload of the next non-empty chunk, or b"" at end of stream."""
        while True:
            raw_len = await self._read_exact(reader, 2)
            if raw_len is None:
                return b""
            length = int.from_bytes(raw_len, "big")
            if length > MAX_SIZE:
                raise ValueError("buffer size too large!")
            sealed = await self._read_exact(reader, length)
            if sealed is None:
                return b""
            payload = self._security.open(self._nonce.next(), sealed)
            if payload:
                return payload