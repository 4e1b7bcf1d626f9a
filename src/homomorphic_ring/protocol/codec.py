"""
Framing for the one message that crosses each hop of the ring.

Layout on the wire:

    [0..8)    u64 little-endian N, the length of the hex text
    [8..8+N)  lowercase hex digits of the ciphertext, no prefix
    [8+N..)   the encryption key as self-delimiting JSON

With KeyFraming.LENGTH_PREFIXED the key JSON is itself preceded by a u64
little-endian length. Every node in a ring must use the same framing.
"""

from __future__ import annotations

import io
import struct
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Tuple

from homomorphic_ring.crypto import EncryptionKey, dump_encryption_key, load_encryption_key
from homomorphic_ring.crypto.keys import JSON_WHITESPACE, parse_hex
from homomorphic_ring.errors import DecodingError, FramingError

LENGTH_PREFIX = struct.Struct("<Q")
DEFAULT_MAX_PAYLOAD_BYTES = 1 << 20
READ_CHUNK_BYTES = 1 << 16


class KeyFraming(str, Enum):
    SELF_DELIMITING = "self_delimiting"
    LENGTH_PREFIXED = "length_prefixed"


@dataclass(frozen=True)
class WireMessage:
    encryption_key: EncryptionKey
    ciphertext: int


def encode_message(message: WireMessage, framing: KeyFraming = KeyFraming.SELF_DELIMITING) -> bytes:
    if message.ciphertext < 0:
        raise ValueError("Ciphertexts are non-negative integers")
    text = format(message.ciphertext, "x").encode("ascii")
    key_bytes = dump_encryption_key(message.encryption_key)
    parts = [LENGTH_PREFIX.pack(len(text)), text]
    if framing == KeyFraming.LENGTH_PREFIXED:
        parts.append(LENGTH_PREFIX.pack(len(key_bytes)))
    parts.append(key_bytes)
    return b"".join(parts)


def write_message(
    stream: BinaryIO, message: WireMessage, framing: KeyFraming = KeyFraming.SELF_DELIMITING
) -> int:
    """Write one framed message and flush. Returns the byte count."""
    data = encode_message(message, framing)
    stream.write(data)
    stream.flush()
    return len(data)


def _read_exact(stream: BinaryIO, size: int, what: str) -> bytes:
    chunks = []
    remaining = size
    while remaining:
        chunk = stream.read(remaining)
        if not chunk:
            got = size - remaining
            raise FramingError(f"Stream ended after {got} of {size} bytes of {what}")
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def _read_to_end(stream: BinaryIO, limit: int, what: str) -> bytes:
    chunks = []
    total = 0
    while True:
        chunk = stream.read(min(READ_CHUNK_BYTES, limit + 1 - total))
        if not chunk:
            return b"".join(chunks)
        chunks.append(chunk)
        total += len(chunk)
        if total > limit:
            raise FramingError(f"{what} exceeds limit of {limit} bytes")


def _read_length(stream: BinaryIO, what: str, max_payload_bytes: int) -> int:
    (length,) = LENGTH_PREFIX.unpack(_read_exact(stream, LENGTH_PREFIX.size, f"{what} length prefix"))
    if length > max_payload_bytes:
        raise FramingError(f"{what} length {length} exceeds limit of {max_payload_bytes} bytes")
    return length


def read_message(
    stream: BinaryIO,
    framing: KeyFraming = KeyFraming.SELF_DELIMITING,
    max_payload_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES,
) -> Tuple[WireMessage, int]:
    """
    Read one message from stream, consuming it to end-of-stream.

    Returns the message and the number of bytes consumed.
    """
    length = _read_length(stream, "ciphertext", max_payload_bytes)
    payload = _read_exact(stream, length, "ciphertext")
    consumed = LENGTH_PREFIX.size + length
    try:
        text = payload.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecodingError(f"Ciphertext payload is not valid UTF-8: {exc}") from exc
    ciphertext = parse_hex(text)

    if framing == KeyFraming.LENGTH_PREFIXED:
        key_length = _read_length(stream, "key", max_payload_bytes)
        key_bytes = _read_exact(stream, key_length, "key")
        trailing = _read_to_end(stream, max_payload_bytes, "trailing data")
        if trailing.strip(JSON_WHITESPACE.encode("ascii")):
            raise DecodingError("Trailing bytes after length-prefixed key")
        consumed += LENGTH_PREFIX.size + key_length + len(trailing)
    else:
        key_bytes = _read_to_end(stream, max_payload_bytes, "key")
        consumed += len(key_bytes)
    if not key_bytes:
        raise DecodingError("Stream ended before the key encoding")
    key = load_encryption_key(key_bytes)

    if ciphertext >= key.nsquare:
        raise DecodingError("Ciphertext outside the key's ciphertext space")
    return WireMessage(encryption_key=key, ciphertext=ciphertext), consumed


def decode_message(
    data: bytes,
    framing: KeyFraming = KeyFraming.SELF_DELIMITING,
    max_payload_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES,
) -> WireMessage:
    message, _ = read_message(io.BytesIO(data), framing, max_payload_bytes)
    return message
