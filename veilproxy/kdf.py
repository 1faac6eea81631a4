"""The nested HMAC key derivation used by the VMess AEAD header."""

from __future__ import annotations

import hashlib
import hmac
from typing import Protocol

KDF_SALT_CONST_AUTH_ID_ENCRYPTION_KEY = b"AES Auth ID Encryption"
KDF_SALT_CONST_AEAD_RESP_HEADER_LEN_KEY = b"AEAD Resp Header Len Key"
KDF_SALT_CONST_AEAD_RESP_HEADER_LEN_IV = b"AEAD Resp Header Len IV"
KDF_SALT_CONST_AEAD_RESP_HEADER_PAYLOAD_KEY = b"AEAD Resp Header Key"
KDF_SALT_CONST_AEAD_RESP_HEADER_PAYLOAD_IV = b"AEAD Resp Header IV"
KDF_SALT_CONST_VMESS_AEAD_KDF = b"VMess AEAD KDF"
KDF_SALT_CONST_VMESS_HEADER_PAYLOAD_AEAD_KEY = b"VMess Header AEAD Key"
KDF_SALT_CONST_VMESS_HEADER_PAYLOAD_AEAD_IV = b"VMess Header AEAD Nonce"
KDF_SALT_CONST_VMESS_HEADER_PAYLOAD_LENGTH_AEAD_KEY = b"VMess Header AEAD Key_Length"
KDF_SALT_CONST_VMESS_HEADER_PAYLOAD_LENGTH_AEAD_IV = b"VMess Header AEAD Nonce_Length"

_IPAD = 0x36
_OPAD = 0x5C


class _Hasher(Protocol):
    def update(self, data: bytes) -> None: ...

    def copy(self) -> "_Hasher": ...

    def digest(self) -> bytes: ...


class VmessKdf:
    """HMAC built over an arbitrary hasher (itself possibly a VmessKdf)."""

    BLOCK_LEN = 64
    TAG_LEN = 32

    def __init__(self, base: _Hasher, key: bytes) -> None:
        key = bytes(key)
        if len(key) > self.BLOCK_LEN:
            long_key = base.copy()
            long_key.update(key)
            key = long_key.digest()[: self.TAG_LEN]
        padded = key.ljust(self.BLOCK_LEN, b"\x00")
        ikey = bytes(b ^ _IPAD for b in padded)
        self._okey = bytes(b ^ _OPAD for b in padded)
        self._outer = base.copy()
        self._inner = base.copy()
        self._inner.update(ikey)

    def update(self, data: bytes) -> None:
        """Feed more message bytes."""
        self._inner.update(data)

    def copy(self) -> "VmessKdf":
        """Return an independent copy of the current state."""
        clone = object.__new__(VmessKdf)
        clone._okey = self._okey
        clone._outer = self._outer.copy()
        clone._inner = self._inner.copy()
        return clone

    def digest(self) -> bytes:
        """Return the 32-byte tag without changing the state."""
        inner_tag = self._inner.copy().digest()
        outer = self._outer.copy()
        outer.update(self._okey)
        outer.update(inner_tag)
        return outer.digest()


def get_vmess_kdf(*args: bytes) -> VmessKdf:
    """Build the KDF nested once per key, innermost key first."""
    if not args:
        raise ValueError("at least one key is required")
    base: _Hasher = hmac.new(KDF_SALT_CONST_VMESS_AEAD_KDF, digestmod=hashlib.sha256)
    kdf = None
    for key in args:
        kdf = VmessKdf(base, key)
        base = kdf
    assert kdf is not None
    return kdf


def vmess_kdf_1_one_shot(data: bytes, key1: bytes) -> bytes:
    """Derive 32 bytes from ``data`` with one key level."""
    kdf = get_vmess_kdf(key1)
    kdf.update(data)
    return kdf.digest()


def vmess_kdf_3_one_shot(data: bytes, key1: bytes, key2: bytes, key3: bytes) -> bytes:
    """Derive 32 bytes from ``data`` with three key levels."""
    kdf = get_vmess_kdf(key1, key2, key3)
    kdf.update(data)
    return kdf.digest()