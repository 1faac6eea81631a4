# veilproxy

Protocol building blocks for proxies that wrap one connection inside another:
Shadowsocks AEAD streams, VMess AEAD headers and body chunks, Trojan password
hashing, replay detection for salts, and the logic that decides how UDP
traffic travels through a chain of proxy protocols.

## Installation

```
pip install veilproxy
```

To run the test suite:

```
pip install "veilproxy[test]"
pytest
```

## Modules

- `veilproxy.chain`: `ProtocolType` (with `is_uot()`, true for VMess and
  Trojan), `ChainMarkers`, `iter_protocol_types`, `build_udp_marker` and
  `compute_chain_markers`. Given the protocol types of a chain and of its last
  builder, these work out which hops must build a TCP stream to carry UDP,
  whether the chain contains a blackhole, and which builder's address (or the
  chain's remote address) receives the UDP packets.
- `veilproxy.kdf`: the nested HMAC-SHA256 key derivation used by VMess AEAD:
  `VmessKdf` (`update`, `copy`, `digest`), `get_vmess_kdf`,
  `vmess_kdf_1_one_shot`, `vmess_kdf_3_one_shot`, and the `KDF_SALT_CONST_*`
  labels.
- `veilproxy.ss_cipher`: `CipherKind` (none, AES-128-GCM, AES-256-GCM,
  ChaCha20-Poly1305, with `key_len`, `salt_len`, `nonce_len`, `tag_len`),
  `AeadCipher` whose nonce is a little-endian counter advanced on every
  encryption and decryption, `InvalidTagError`, and `ss_hkdf_sha1` for the
  session subkey.
- `veilproxy.bloom`: `BloomFilter`, `PingPongBloom` (two filters used as a
  ring) and `BloomContext`, a thread-safe replay check with
  `check_nonce_and_set` and `generate_nonce`.
- `veilproxy.ss_aead`: `EncryptedWriter.encrypt`, which puts the salt before
  the first chunk, and `DecryptedReader.read`, which reads chunks of at most
  `MAX_PACKET_SIZE` bytes from anything with an async `readexactly`.
- `veilproxy.ss_stream`: `CryptoStream`, which encrypts what is written to an
  asyncio writer and decrypts what is read from an asyncio reader. It raises
  `ReplayError` when the peer's salt has been seen before.
- `veilproxy.vmess_header`: `create_auth_id`, `seal_vmess_aead_header` (the
  timestamp, random bytes and connection nonce may be given for reproducible
  output) and `VmessHeaderReader`, which checks the server's response header
  and raises `VmessHeaderError` when it is malformed.
- `veilproxy.vmess_aead`: `VmessSecurity` (`aes_128_gcm`,
  `chacha20_poly1305`), `VmessAeadWriter` and `VmessAeadReader` for VMess body
  chunks.
- `veilproxy.trojan`: `trojan_password_hash`, the 56 lower-case hex bytes of
  SHA-224 that open a Trojan request.

## Example

```python
import asyncio
import os

from veilproxy.chain import ProtocolType, compute_chain_markers
from veilproxy.ss_aead import DecryptedReader, EncryptedWriter
from veilproxy.ss_cipher import CipherKind
from veilproxy.trojan import trojan_password_hash

markers = compute_chain_markers([ProtocolType.WS, ProtocolType.VMESS], ProtocolType.SS)
print(markers.udp_marker)  # (True, False, False)

password = "password"
print(trojan_password_hash(password.encode()))


async def round_trip() -> bytes:
    kind = CipherKind.AES_128_GCM
    key = os.urandom(kind.key_len())
    salt = os.urandom(kind.salt_len())
    wire = EncryptedWriter(kind, key, salt).encrypt(b"hello")
    reader = asyncio.StreamReader()
    reader.feed_data(wire[len(salt):])
    reader.feed_eof()
    return await DecryptedReader(kind, key, salt).read(reader)


print(asyncio.run(round_trip()))  # b'hello'
```

## What it does not do

veilproxy is a library of protocol pieces. It has no command, opens no
listening sockets and makes no outbound connections of its own: there is no
SOCKS5 or HTTP inbound, no routing of targets to outbounds, no UDP relay, and
no TLS, WebSocket, gRPC or HTTP/2 transports. `compute_chain_markers` decides
how a chain would carry UDP, but building the connections is left to the
caller, as is writing the Trojan request header and the VMess request command
that `seal_vmess_aead_header` seals.