"""Password handling of the Trojan protocol."""

from __future__ import annotations

import hashlib


def trojan_password_hash(password: bytes | str) -> bytes:
    """Return the 56 lower-case hex bytes of SHA-224 of ``password``."""
    raw = password.encode("utf-8") if isinstance(password, str) else bytes(password)
    return hashlib.sha224(raw).hexdigest().encode("ascii")