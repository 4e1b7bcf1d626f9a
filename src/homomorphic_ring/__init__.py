"""
Ring computation of a linear expression over private values.

The master encrypts its term under a fresh Paillier key, each relay folds its
own (add, mul) pair into the ciphertext, and the master decrypts what comes
back around the ring.
"""

from .errors import DecodingError, FramingError, ProtocolViolation, RingError, TransportError

__all__ = [
    "communication",
    "config",
    "crypto",
    "node",
    "protocol",
    "utils",
    "DecodingError",
    "FramingError",
    "ProtocolViolation",
    "RingError",
    "TransportError",
]
