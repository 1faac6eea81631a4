"""Sealing of the VMess AEAD request header and reading of its response header."""

from __future__ import annotations

import asyncio
import os
import time
import zlib
from typing import Protocol

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from veilproxy.kdf import (
    KDF_SALT_CONST_AEAD_RESP_HEADER_LEN_IV,
    KDF_SALT_CONST_AEAD_RESP_HEADER_LEN_KEY,
    KDF_SALT_CONST_AEAD_RESP_HEADER_PAYLOAD_IV,
    KDF_SALT_CONST_AEAD_RESP_HEADER_PAYLOAD_KEY,
    KDF_SALT_CONST_AUTH_ID_ENCRYPTION_KEY,
    KDF_SALT_CONST_VMESS_HEADER_PAYLOAD_AEAD_IV,
    KDF_SALT_CONST_VMESS_HEADER_PAYLOAD_AEAD_KEY,
    KDF_SALT_CONST_VMESS_HEADER_PAYLOAD_LENGTH_AEAD_IV,
    KDF_SALT_CONST_VMESS_HEADER_PAYLOAD_LENGTH_AEAD_KEY,
    vmess_kdf_1_one_shot,
    vmess_kdf_3_one_shot,
)

AES_128_GCM_TAG_LEN = 16
_SEALED_LEN_SIZE = 2 + AES_128_GCM_TAG_LEN


class VmessHeaderError(ValueError):
    """Raised when a VMess response header is malformed or fails to decrypt."""


class _ExactReader(Protocol):
    async def readexactly(self, n: int) -> bytes: ...


def create_auth_id(
    cmd_key: bytes, timestamp: int | None = None, random_bytes: bytes | None = None
) -> bytes:
    """Return the 16-byte encrypted auth id for ``cmd_key`` at ``timestamp``."""
    if timestamp is None:
        timestamp = int(time.time())
    if random_bytes is None:
        random_bytes = os.urandom(4)
    if len(random_bytes) != 4:
        raise ValueError("random_bytes must be 4 bytes long")
    plain = timestamp.to_bytes(8, "big") + bytes(random_bytes)
    plain += zlib.crc32(plain).to_bytes(4, "big")
    key = vmess_kdf_1_one_shot(cmd_key, KDF_SALT_CONST_AUTH_ID_ENCRYPTION_KEY)[:16]
    encryptor = Cipher(algorithms.AES(key), modes.ECB()).encryptor()
    return encryptor.update(plain) + encryptor.finalize()


def seal_vmess_aead_header(
    cmd_key: bytes,
    data: bytes,
    timestamp: int | None = None,
    random_bytes: bytes | None = None,
    connection_nonce: bytes | None = None,
) -> bytes:
    """Return ``auth_id | sealed length | connection nonce | sealed data``."""
    data = bytes(data)
    auth_id = create_auth_id(cmd_key, timestamp, random_bytes)
    if connection_nonce is None:
        connection_nonce = os.urandom(8)
    connection_nonce = bytes(connection_nonce)
    if len(connection_nonce) != 8:
        raise ValueError("connection_nonce must be 8 bytes long")

    def seal(key_salt: bytes, iv_salt: bytes, plaintext: bytes) -> bytes:
        key = vmess_kdf_3_one_shot(cmd_key, key_salt, auth_id, connection_nonce)[:16]
        nonce = vmess_kdf_3_one_shot(cmd_key, iv_salt, auth_id, connection_nonce)[:12]
        return AESGCM(key).encrypt(nonce, plaintext, auth_id)

    sealed_len = seal(
        KDF_SALT_CONST_VMESS_HEADER_PAYLOAD_LENGTH_AEAD_KEY,
        KDF_SALT_CONST_VMESS_HEADER_PAYLOAD_LENGTH_AEAD_IV,
        len(data).to_bytes(2, "big"),
    )
    sealed_data = seal(
        KDF_SALT_CONST_VMESS_HEADER_PAYLOAD_AEAD_KEY,
        KDF_SALT_CONST_VMESS_HEADER_PAYLOAD_AEAD_IV,
        data,
    )
    return auth_id + sealed_len + connection_nonce + sealed_data


class VmessHeaderReader:
    """Reads and checks the AEAD response header sent by a VMess server."""

    def __init__(self, resp_body_key: bytes, resp_body_iv: bytes, respv: int) -> None:
        len_key = vmess_kdf_1_one_shot(resp_body_key, KDF_SALT_CONST_AEAD_RESP_HEADER_LEN_KEY)
        len_iv = vmess_kdf_1_one_shot(resp_body_iv, KDF_SALT_CONST_AEAD_RESP_HEADER_LEN_IV)
        payload_key = vmess_kdf_1_one_shot(
            resp_body_key, KDF_SALT_CONST_AEAD_RESP_HEADER_PAYLOAD_KEY
        )
        payload_iv = vmess_kdf_1_one_shot(resp_body_iv, KDF_SALT_CONST_AEAD_RESP_HEADER_PAYLOAD_IV)
        self._len_cipher = AESGCM(len_key[:16])
        self._len_iv = len_iv[:12]
        self._payload_cipher = AESGCM(payload_key[:16])
        self._payload_iv = payload_iv[:12]
        self._respv = respv
        self.received_resp = False

    @staticmethod
    async def _read_exact(reader: _ExactReader, n: int) -> bytes | None:
        try:
            return await reader.readexactly(n)
        except asyncio.IncompleteReadError:
            return None

    async def read(self, reader: _ExactReader) -> bytes | None:
        """Read the response header and return its command bytes.

        Returns None if the stream ends before a whole header arrives.
        """
        sealed_len = await self._read_exact(reader, _SEALED_LEN_SIZE)
        if sealed_len is None:
            return None
        try:
            plain_len = self._len_cipher.decrypt(self._len_iv, sealed_len, None)
        except InvalidTag:
            raise VmessHeaderError("decrypted resp header len failed!") from None
        length = int.from_bytes(plain_len, "big")

        sealed = await self._read_exact(reader, length + AES_128_GCM_TAG_LEN)
        if sealed is None:
            return None
        try:
            payload = self._payload_cipher.decrypt(self._payload_iv, sealed, None)
        except InvalidTag:
            raise VmessHeaderError("decrypted resp header payload failed!") from None

        if len(payload) < 4:
            raise VmessHeaderError("unexpected buffer length!")
        if payload[0] != self._respv:
            raise VmessHeaderError("unexpected response header!")
        if payload[2] != 0:
            raise VmessHeaderError("dynamic port is not supported now!")
        self.received_resp = True
        return payload