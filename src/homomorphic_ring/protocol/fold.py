"""The per-node algebra of the ring."""

from typing import Iterable, Optional, Tuple

from homomorphic_ring.crypto import EncryptionKey, add_plain, mul_plain


def initial_plaintext(add_term: int, mul_term: int) -> int:
    """What the master encrypts before the first hop."""
    return add_term * mul_term


def fold(key: EncryptionKey, ciphertext: int, add_term: int, mul_term: int) -> int:
    """
    Fold a relay's terms into the accumulator: Enc((p + add_term) * mul_term).

    Addition always happens before multiplication; reordering changes the
    computed expression.
    """
    accumulated = add_plain(key, ciphertext, add_term)
    return mul_plain(key, accumulated, mul_term)


def expected_result(terms: Iterable[Tuple[int, int]], modulus: Optional[int] = None) -> int:
    """
    Plaintext value the master should decrypt for a ring with these terms.

    terms[0] is the master's (add, mul) pair, followed by each relay in ring
    order. Without a modulus the exact integer is returned.
    """
    iterator = iter(terms)
    try:
        add_term, mul_term = next(iterator)
    except StopIteration:
        raise ValueError("A ring needs at least the master's terms") from None
    value = initial_plaintext(add_term, mul_term)
    for add_term, mul_term in iterator:
        value = (value + add_term) * mul_term
        if modulus is not None:
            value %= modulus
    if modulus is not None:
        value %= modulus
    return value
