"""Chunked AEAD framing of a Shadowsocks TCP stream.

Each chunk is ``[encrypted length][length tag][encrypted payload][payload tag]``
with a big-endian 16-bit length; the writer sends the salt before its first
chunk.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

from veilproxy.ss_cipher import AeadCipher, CipherKind, InvalidTagError

MAX_PACKET_SIZE = 0x3FFF


class _ExactReader(Protocol):
    async def readexactly(self, n: int) -> bytes: ...


class EncryptedWriter:
    """Encrypts outgoing data into AEAD chunks."""

    def __init__(self, kind: CipherKind, key: bytes, salt: bytes) -> None:
        self.salt = bytes(salt)
        self._cipher = AeadCipher(kind, key, salt)
        self._pending_salt = self.salt

    def encrypt(self, data: bytes) -> bytes:
        """Return the wire bytes for ``data``, salt first on the first call."""
        out = bytearray(self._pending_salt)
        self._pending_salt = b""
        view = memoryview(bytes(data))
        for start in range(0, len(view), MAX_PACKET_SIZE):
            chunk = view[start : start + MAX_PACKET_SIZE]
            out += self._cipher.encrypt(len(chunk).to_bytes(2, "big"))
            out += self._cipher.encrypt(chunk)
        return bytes(out)


class DecryptedReader:
    """Decrypts incoming AEAD chunks; the salt has already been consumed."""

    def __init__(self, kind: CipherKind, key: bytes, salt: bytes) -> None:
        self._cipher = AeadCipher(kind, key, salt)
        self._tag_len = kind.tag_len()

    @staticmethod
    async def _read_exact(reader: _ExactReader, n: int) -> bytes | None:
        try:
            return await reader.readexactly(n)
        except asyncio.IncompleteReadError:
            return None

    def _decrypt_length(self, sealed: bytes) -> int:
        try:
            plain = self._cipher.decrypt(sealed)
        except InvalidTagError:
            raise InvalidTagError("invalid tag-in") from None
        length = int.from_bytes(plain, "big")
        if length > MAX_PACKET_SIZE:
            raise ValueError(
                f"buffer size too large ({length:#x}), AEAD encryption protocol "
                "requires buffer to be smaller than 0x3FFF, the higher two bits "
                "must be set to zero"
            )
        return length

    async def read(self, reader: _ExactReader) -> bytes:
        """Return the payload of the next non-empty chunk, or b"" at end of stream."""
        while True:
            sealed_len = await self._read_exact(reader, 2 + self._tag_len)
            if sealed_len is None:
                return b""
            length = self._decrypt_length(sealed_len)
            sealed = await self._read_exact(reader, length + self._tag_len)
            if sealed is None:
                return b""
            payload = self._cipher.decrypt(sealed)
            if payload:
                return payload