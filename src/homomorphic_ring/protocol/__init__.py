from .codec import (
    DEFAULT_MAX_PAYLOAD_BYTES,
    KeyFraming,
    WireMessage,
    decode_message,
    encode_message,
    read_message,
    write_message,
)
from .fold import expected_result, fold, initial_plaintext

__all__ = [
    "DEFAULT_MAX_PAYLOAD_BYTES",
    "KeyFraming",
    "WireMessage",
    "decode_message",
    "encode_message",
    "read_message",
    "write_message",
    "expected_result",
    "fold",
    "initial_plaintext",
]
