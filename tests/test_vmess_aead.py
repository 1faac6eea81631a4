import asyncio

import pytest
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from veilproxy.ss_cipher import InvalidTagError
from veilproxy.vmess_aead import (
    CHUNK_SIZE,
    MAX_SIZE,
    VmessAeadReader,
    VmessAeadWriter,
    VmessSecurity,
)

AES_KEY = bytes(range(16))
CHACHA_KEY = bytes(range(32))
IV = bytes(range(100, 116))


def _stream(data: bytes) -> asyncio.StreamReader:
    reader = asyncio.StreamReader()
    reader.feed_data(data)
    reader.feed_eof()
    return reader


def _pair(kind: str):
    if kind == "aes":
        return (
            VmessAeadWriter(IV, VmessSecurity.aes_128_gcm(AES_KEY)),
            VmessAeadReader(IV, VmessSecurity.aes_128_gcm(AES_KEY)),
        )
    return (
        VmessAeadWriter(IV, VmessSecurity.chacha20_poly1305(CHACHA_KEY)),
        VmessAeadReader(IV, VmessSecurity.chacha20_poly1305(CHACHA_KEY)),
    )


def test_chunk_layout():
    writer, _ = _pair("aes")
    data = b"hello vmess"
    wire = writer.encrypt(data)
    assert len(wire) == 2 + len(data) + 16
    assert int.from_bytes(wire[:2], "big") == len(data) + 16


def test_first_chunk_nonce_uses_zero_counter_and_iv_suffix():
    writer, _ = _pair("aes")
    data = b"payload"
    wire = writer.encrypt(data)
    nonce = b"\x00\x00" + IV[2:12]
    assert AESGCM(AES_KEY).decrypt(nonce, wire[2:], None) == data


def test_empty_data_writes_nothing():
    writer, _ = _pair("aes")
    assert writer.encrypt(b"") == b""


def test_large_data_is_split():
    writer, _ = _pair("aes")
    data = b"x" * 20000
    wire = writer.encrypt(data)
    assert len(wire) == 2 * (2 + 16) + len(data)
    first_len = int.from_bytes(wire[:2], "big")
    assert first_len == CHUNK_SIZE


@pytest.mark.asyncio
@pytest.mark.parametrize("kind", ["aes", "chacha"])
async def test_round_trip(kind):
    writer, reader = _pair(kind)
    wire = writer.encrypt(b"first") + writer.encrypt(b"second")
    stream = _stream(wire)
    assert await reader.read(stream) == b"first"
    assert await reader.read(stream) == b"second"
    assert await reader.read(stream) == b""


@pytest.mark.asyncio
async def test_round_trip_large():
    writer, reader = _pair("chacha")
    data = bytes(range(256)) * 100
    stream = _stream(writer.encrypt(data))
    received = bytearray()
    while chunk := await reader.read(stream):
        received += chunk
    assert bytes(received) == data


@pytest.mark.asyncio
async def test_tampered_chunk_fails():
    writer, reader = _pair("aes")
    wire = bytearray(writer.encrypt(b"secret data"))
    wire[5] ^= 0x01
    with pytest.raises(InvalidTagError):
        await reader.read(_stream(bytes(wire)))


@pytest.mark.asyncio
async def test_out_of_order_chunks_fail():
    writer, reader = _pair("aes")
    writer.encrypt(b"skipped")
    second = writer.encrypt(b"second")
    with pytest.raises(InvalidTagError):
        await reader.read(_stream(second))


@pytest.mark.asyncio
async def test_length_too_large():
    _, reader = _pair("aes")
    with pytest.raises(ValueError, match="too large"):
        await reader.read(_stream((MAX_SIZE + 1).to_bytes(2, "big")))


@pytest.mark.asyncio
async def test_truncated_stream_returns_empty():
    writer, reader = _pair("aes")
    wire = writer.encrypt(b"truncated")
    assert await reader.read(_stream(wire[:-3])) == b""


def test_key_length_checked():
    with pytest.raises(ValueError):
        VmessSecurity.aes_128_gcm(CHACHA_KEY)
    with pytest.raises(ValueError):
        VmessSecurity.chacha20_poly1305(AES_KEY)