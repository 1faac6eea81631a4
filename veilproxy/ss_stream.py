"""A bidirectional Shadowsocks AEAD stream over an asyncio reader/writer pair."""

from __future__ import annotations

import asyncio
from typing import Protocol

from veilproxy.bloom import BloomContext
from veilproxy.ss_aead import DecryptedReader, EncryptedWriter
from veilproxy.ss_cipher import CipherKind

READ_CHUNK_SIZE = 0x4000


class ReplayError(ConnectionError):
    """Raised when the peer's salt has been seen before."""


class _Reader(Protocol):
    async def read(self, n: int = -1) -> bytes: ...

    async def readexactly(self, n: int) -> bytes: ...


class _Writer(Protocol):
    def write(self, data: bytes) -> None: ...

    async def drain(self) -> None: ...

    def close(self) -> None: ...

    async def wait_closed(self) -> None: ...


class CryptoStream:
    """Encrypts what is written and decrypts what is read.

    The local salt is generated at construction, checked against the shared
    context, and sent ahead of the first written chunk. The peer's salt is
    read before the first decrypted read and rejected if it is a repeat.
    """

    def __init__(
        self,
        context: BloomContext,
        reader: _Reader,
        writer: _Writer,
        key: bytes,
        method: CipherKind,
    ) -> None:
        self._context = context
        self._reader = reader
        self._writer = writer
        self._key = bytes(key)
        self._method = method
        self._dec: DecryptedReader | None = None
        if method is CipherKind.NONE:
            self._enc: EncryptedWriter | None = None
            self._established = True
        else:
            salt = context.generate_nonce(method.salt_len(), unique=True)
            self._enc = EncryptedWriter(method, self._key, salt)
            self._established = False

    @property
    def salt(self) -> bytes:
        """The salt this side sends; empty for the none method."""
        return self._enc.salt if self._enc is not None else b""

    async def _handshake(self) -> None:
        try:
            salt = await self._reader.readexactly(self._method.salt_len())
        except asyncio.IncompleteReadError as exc:
            raise EOFError("unexpected end of stream while reading salt") from exc
        if self._context.check_nonce_and_set(salt):
            raise ReplayError("detected repeated iv/salt")
        self._dec = DecryptedReader(self._method, self._key, salt)
        self._established = True

    async def read(self) -> bytes:
        """Return the next decrypted data, or b"" at end of stream."""
        if not self._established:
            await self._handshake()
        if self._dec is None:
            return await self._reader.read(READ_CHUNK_SIZE)
        return await self._dec.read(self._reader)

    def write(self, data: bytes) -> None:
        """Queue ``data`` for sending, encrypted."""
        if self._enc is None:
            self._writer.write(bytes(data))
        else:
            self._writer.write(self._enc.encrypt(data))

    async def drain(self) -> None:
        """Wait until the underlying writer has flushed."""
        await self._writer.drain()

    async def close(self) -> None:
        """Close the underlying writer and wait for it to finish."""
        self._writer.close()
        await self._writer.wait_closed()