"""Password-based authenticated encryption for backup artifacts.

Key derivation uses Scrypt (n=2^14, r=8, p=1) over a fresh 16-byte salt;
encryption uses AES-256-GCM with a fresh 12-byte nonce.  The backup id is
bound as associated data so an artifact cannot be swapped under another
descriptor.
"""

import secrets
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

SALT_SIZE = 16
NONCE_SIZE = 12
KEY_SIZE = 32  # AES-256

SCRYPT_N = 2 ** 14
SCRYPT_R = 8
SCRYPT_P = 1


@dataclass(frozen=True)
class EncryptedPayload:
    salt: bytes
    iv: bytes
    ciphertext: bytes  # includes the 16-byte GCM tag


def derive_key(password: str, salt: bytes) -> bytes:
    """Derive a 256-bit key from a password and salt."""
    kdf = Scrypt(salt=salt, length=KEY_SIZE, n=SCRYPT_N, r=SCRYPT_R, p=SCRYPT_P)
    return kdf.derive(password.encode("utf-8"))


def encrypt(plaintext: bytes, password: str, associated_data: bytes) -> EncryptedPayload:
    """Encrypt with a key derived from ``password`` (fresh salt and nonce)."""
    salt = secrets.token_bytes(SALT_SIZE)
    iv = secrets.token_bytes(NONCE_SIZE)
    key = derive_key(password, salt)
    ciphertext = AESGCM(key).encrypt(iv, plaintext, associated_data)
    return EncryptedPayload(salt=salt, iv=iv, ciphertext=ciphertext)


def decrypt(
    payload: EncryptedPayload,
    password: str,
    associated_data: bytes,
) -> bytes:
    """Decrypt a payload.

    Raises:
        ValueError: Wrong password, wrong associated data, or tampered data.
    """
    key = derive_key(password, payload.salt)
    try:
        return AESGCM(key).decrypt(payload.iv, payload.ciphertext, associated_data)
    except InvalidTag:
        raise ValueError("Backup authentication failed: wrong password or corrupted data")
