"""
Vault Crypto Core — Key derivation, random material and AES-256-CBC.

Implements the cipher engine used by the encrypted store:
- Key derivation: PBKDF2-HMAC-SHA1(password, 8-byte salt, 10000 rounds) → 32B key
- Encryption: AES-256-CBC with PKCS#7 padding under a fixed per-store IV

Security Note:
    Never log plaintext, ciphertext or key material.
    The IV is fixed per store, so equal plaintexts encrypt to equal
    ciphertexts. This is a known weakness kept for compatibility with
    records already persisted; a per-record IV would change the format.
"""
import os

from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..exceptions import (
    CipherError,
    InvalidIVLength,
    InvalidKeyLength,
    KeyDerivationError,
)

KEY_LENGTH = 32  # AES-256
BLOCK_SIZE = 16  # AES block, also the IV length
SALT_SIZE = 8
PBKDF2_ITERATIONS = 10000

# Status codes reported by CipherError / KeyDerivationError
STATUS_PARAM_ERROR = -4300
STATUS_ALIGNMENT_ERROR = -4303
STATUS_DECODE_ERROR = -4304


# ---------------------------------------------------------------------------
# Random material
# ---------------------------------------------------------------------------

def random_data(length: int) -> bytes:
    """Return ``length`` bytes from the OS CSPRNG.

    An unavailable OS RNG raises ``NotImplementedError`` from ``os.urandom``;
    that is an environment fault and is not wrapped.
    """
    return os.urandom(length)


def random_iv() -> bytes:
    """Generate a 16-byte initialization vector."""
    return random_data(BLOCK_SIZE)


def random_salt() -> bytes:
    """Generate an 8-byte PBKDF2 salt."""
    return random_data(SALT_SIZE)


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def derive_key(
    password: bytes,
    salt: bytes,
    iterations: int = PBKDF2_ITERATIONS,
) -> bytes:
    """Derive a 32-byte AES key from a password using PBKDF2-HMAC-SHA1.

    Args:
        password: Password bytes (UTF-8 encoded by the caller).
        salt: Random salt, see :func:`random_salt`.
        iterations: PBKDF2 round count.

    Returns:
        32-byte derived key.

    Raises:
        KeyDerivationError: If the KDF rejects its parameters.
    """
    try:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA1(),
            length=KEY_LENGTH,
            salt=salt,
            iterations=iterations,
        )
        return kdf.derive(password)
    except (TypeError, ValueError) as err:
        raise KeyDerivationError(STATUS_PARAM_ERROR, str(err)) from err


# ---------------------------------------------------------------------------
# AES-256-CBC
# ---------------------------------------------------------------------------

class AES256:
    """AES-256-CBC cipher bound to one key and one IV.

    Both lengths are checked before any cipher operation so a bad
    key or IV fails at construction time.
    """

    __slots__ = ("_key", "_iv")

    def __init__(self, key: bytes, iv: bytes):
        if len(key) != KEY_LENGTH:
            raise InvalidKeyLength(len(key))
        if len(iv) != BLOCK_SIZE:
            raise InvalidIVLength(len(iv))
        self._key = bytes(key)
        self._iv = bytes(iv)

    def __repr__(self) -> str:
        return "<AES256 key_len=32 iv_len=16>"

    def _cipher(self) -> Cipher:
        return Cipher(algorithms.AES(self._key), modes.CBC(self._iv))

    def encrypt(self, plaintext: bytes) -> bytes:
        """Pad with PKCS#7 and encrypt.

        Raises:
            CipherError: If the input cannot be encrypted.
        """
        try:
            padder = padding.PKCS7(BLOCK_SIZE * 8).padder()
            padded = padder.update(plaintext) + padder.finalize()
            encryptor = self._cipher().encryptor()
            return encryptor.update(padded) + encryptor.finalize()
        except TypeError as err:
            raise CipherError(STATUS_PARAM_ERROR, str(err)) from err

    def decrypt(self, ciphertext: bytes) -> bytes:
        """Decrypt and strip the PKCS#7 padding.

        Raises:
            CipherError: If the ciphertext is not block aligned or the
                padding is invalid (corrupt record or wrong key).
        """
        if not isinstance(ciphertext, (bytes, bytearray, memoryview)):
            raise CipherError(STATUS_PARAM_ERROR, "Ciphertext must be bytes")
        if len(ciphertext) == 0 or len(ciphertext) % BLOCK_SIZE:
            raise CipherError(
                STATUS_ALIGNMENT_ERROR,
                f"Ciphertext length {len(ciphertext)} is not a multiple "
                f"of {BLOCK_SIZE}",
            )
        decryptor = self._cipher().decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        try:
            unpadder = padding.PKCS7(BLOCK_SIZE * 8).unpadder()
            return unpadder.update(padded) + unpadder.finalize()
        except ValueError as err:
            raise CipherError(STATUS_DECODE_ERROR, "Invalid padding") from err
