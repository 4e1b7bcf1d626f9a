"""Self-delimiting JSON encoding of Paillier encryption keys."""

import json
import string
from typing import Tuple

from phe import paillier

from homomorphic_ring.errors import DecodingError

_HEX_DIGITS = frozenset(string.hexdigits)
_DECODER = json.JSONDecoder()
JSON_WHITESPACE = " \t\r\n"


def parse_hex(text: str) -> int:
    """
    Parse bare base-16 digits into an int.

    int(text, 16) alone also accepts signs, a 0x prefix, underscores and
    surrounding whitespace; none of those are valid on the wire.
    """
    if not text or not _HEX_DIGITS.issuperset(text):
        raise DecodingError(f"Invalid hex digits in {text[:32]!r}")
    return int(text, 16)


def dump_encryption_key(key: paillier.PaillierPublicKey) -> bytes:
    payload = {"n": format(key.n, "x"), "nn": format(key.nsquare, "x")}
    return json.dumps(payload, separators=(",", ":")).encode("utf-8")


def parse_encryption_key(data: bytes) -> Tuple[paillier.PaillierPublicKey, int]:
    """
    Decode one key from the front of data.

    Returns the key and the byte offset just past its encoding; the caller
    decides what may follow.
    """
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecodingError(f"Key encoding is not valid UTF-8: {exc}") from exc
    start = len(text) - len(text.lstrip(JSON_WHITESPACE))
    try:
        obj, end = _DECODER.raw_decode(text, start)
    except json.JSONDecodeError as exc:
        raise DecodingError(f"Malformed key encoding: {exc}") from exc
    if not isinstance(obj, dict):
        raise DecodingError("Key encoding must be a JSON object")
    try:
        n_text = obj["n"]
        nn_text = obj["nn"]
    except KeyError as exc:
        raise DecodingError(f"Key encoding missing field {exc}") from exc
    if not isinstance(n_text, str) or not isinstance(nn_text, str):
        raise DecodingError("Key fields must be hex strings")
    n = parse_hex(n_text)
    nn = parse_hex(nn_text)
    if n < 3:
        raise DecodingError("Key modulus is too small")
    if nn != n * n:
        raise DecodingError("Key field 'nn' is not n squared")
    # raw_decode works on characters; report the offset in bytes.
    return paillier.PaillierPublicKey(n), len(text[:end].encode("utf-8"))


def load_encryption_key(data: bytes) -> paillier.PaillierPublicKey:
    """Decode a key that must span all of data, modulo trailing whitespace."""
    key, end = parse_encryption_key(data)
    if data[end:].strip(JSON_WHITESPACE.encode("ascii")):
        raise DecodingError("Trailing bytes after key encoding")
    return key
