from dataclasses import dataclass

from phe import paillier
from phe.util import powmod

DEFAULT_KEY_LENGTH = 2048
MIN_KEY_LENGTH = 128

EncryptionKey = paillier.PaillierPublicKey
DecryptionKey = paillier.PaillierPrivateKey


@dataclass(frozen=True)
class KeyPair:
    """Paillier keypair. Only the master ever holds one."""
    encryption_key: EncryptionKey
    decryption_key: DecryptionKey


def generate_keypair(key_length: int = DEFAULT_KEY_LENGTH) -> KeyPair:
    """Generate a fresh keypair whose modulus n has key_length bits."""
    if key_length < MIN_KEY_LENGTH:
        raise ValueError(f"Paillier key length must be at least {MIN_KEY_LENGTH} bits")
    public_key, private_key = paillier.generate_paillier_keypair(n_length=key_length)
    return KeyPair(encryption_key=public_key, decryption_key=private_key)


def plaintext_modulus(key: EncryptionKey) -> int:
    return key.n


def _check_ciphertext(key: EncryptionKey, ciphertext: int) -> None:
    if not isinstance(ciphertext, int):
        raise TypeError(f"Expected int ciphertext, got {type(ciphertext).__name__}")
    if ciphertext < 0 or ciphertext >= key.nsquare:
        raise ValueError("Ciphertext outside the key's ciphertext space")


def encrypt(key: EncryptionKey, plaintext: int) -> int:
    """
    Encrypt plaintext mod n with a fresh random obfuscator.

    Negative plaintexts are reduced into [0, n) first.
    """
    return key.raw_encrypt(plaintext % key.n)


def decrypt(key: DecryptionKey, ciphertext: int) -> int:
    """Decrypt to a plaintext in [0, n)."""
    _check_ciphertext(key.public_key, ciphertext)
    return key.raw_decrypt(ciphertext)


def add(key: EncryptionKey, left: int, right: int) -> int:
    """Ciphertext for plaintext(left) + plaintext(right) mod n."""
    _check_ciphertext(key, left)
    _check_ciphertext(key, right)
    return (left * right) % key.nsquare


def add_plain(key: EncryptionKey, ciphertext: int, plaintext: int) -> int:
    """Ciphertext for plaintext(ciphertext) + plaintext mod n."""
    return add(key, ciphertext, encrypt(key, plaintext))


def mul_plain(key: EncryptionKey, ciphertext: int, scalar: int) -> int:
    """
    Ciphertext for plaintext(ciphertext) * scalar mod n.

    Paillier has no ciphertext x ciphertext product, so the scalar must be
    a known plaintext.
    """
    _check_ciphertext(key, ciphertext)
    return powmod(ciphertext, scalar % key.n, key.nsquare)
