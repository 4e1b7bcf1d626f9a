from .paillier import (
    DEFAULT_KEY_LENGTH,
    DecryptionKey,
    EncryptionKey,
    KeyPair,
    add,
    add_plain,
    decrypt,
    encrypt,
    generate_keypair,
    mul_plain,
    plaintext_modulus,
)
from .keys import dump_encryption_key, load_encryption_key, parse_encryption_key

__all__ = [
    "DEFAULT_KEY_LENGTH",
    "DecryptionKey",
    "EncryptionKey",
    "KeyPair",
    "add",
    "add_plain",
    "decrypt",
    "encrypt",
    "generate_keypair",
    "mul_plain",
    "plaintext_modulus",
    "dump_encryption_key",
    "load_encryption_key",
    "parse_encryption_key",
]
