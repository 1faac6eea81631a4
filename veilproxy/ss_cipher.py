"""AEAD ciphers and subkey derivation for the Shadowsocks protocol."""

from __future__ import annotations

import enum

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

_SUBKEY_INFO = b"ss-subkey"
_SUBKEY_LEN = 64
_TAG_LEN = 16


class InvalidTagError(Exception):
    """Raised when an AEAD tag does not authenticate the ciphertext."""


class CipherKind(enum.Enum):
    """AEAD methods supported by Shadowsocks."""

    NONE = "none"
    AES_128_GCM = "aes-128-gcm"
    AES_256_GCM = "aes-256-gcm"
    CHACHA20_POLY1305 = "chacha20-ietf-poly1305"

    def key_len(self) -> int:
        """Length of the master key in bytes."""
        return _KEY_LENS[self]

    def salt_len(self) -> int:
        """Length of the per-session salt; equal to the key length."""
        return self.key_len()

    def nonce_len(self) -> int:
        """Length of the AEAD nonce in bytes."""
        return 0 if self is CipherKind.NONE else 12

    def tag_len(self) -> int:
        """Length of the AEAD tag in bytes."""
        return _TAG_LEN


_KEY_LENS = {
    CipherKind.NONE: 0,
    CipherKind.AES_128_GCM: 16,
    CipherKind.AES_256_GCM: 32,
    CipherKind.CHACHA20_POLY1305: 32,
}


def ss_hkdf_sha1(salt: bytes, key: bytes) -> bytes:
    """Derive 64 bytes of session subkey material from ``key`` and ``salt``."""
    hkdf = HKDF(
        algorithm=hashes.SHA1(),
        length=_SUBKEY_LEN,
        salt=bytes(salt),
        info=_SUBKEY_INFO,
    )
    return hkdf.derive(bytes(key))


class AeadCipher:
    """A session cipher whose nonce is a little-endian counter from zero.

    The nonce advances after every encryption and every decryption attempt,
    successful or not.
    """

    def __init__(self, kind: CipherKind, key: bytes, salt: bytes) -> None:
        if kind is CipherKind.NONE:
            raise ValueError("the none method has no AEAD cipher")
        sub_key = ss_hkdf_sha1(salt, key)[: len(key)]
        if kind is CipherKind.CHACHA20_POLY1305:
            self._aead: AESGCM | ChaCha20Poly1305 = ChaCha20Poly1305(sub_key)
        else:
            self._aead = AESGCM(sub_key)
        self._nonce_len = kind.nonce_len()
        self._counter = 0

    def _next_nonce(self) -> bytes:
        nonce = self._counter.to_bytes(self._nonce_len, "little")
        self._counter = (self._counter + 1) % (1 << (8 * self._nonce_len))
        return nonce

    def encrypt(self, plaintext: bytes) -> bytes:
        """Return the ciphertext followed by its tag."""
        return self._aead.encrypt(self._next_nonce(), bytes(plaintext), None)

    def decrypt(self, ciphertext: bytes) -> bytes:
        """Return the plaintext of ``ciphertext`` (tag included)."""
        nonce = self._next_nonce()
        try:
            return self._aead.decrypt(nonce, bytes(ciphertext), None)
        except InvalidTag:
            raise InvalidTagError("invalid aead tag") from None