"""Secure Defaults exceptions.

Construction-time errors (bad key or IV length), operation-time errors
carrying the status code of the failing primitive, and vault errors raised
once the legacy-policy migration path has been exhausted.
"""
from typing import Optional


class SecureDefaultsError(Exception):
    """Base class for all Secure Defaults errors."""


class InvalidKeyLength(SecureDefaultsError, ValueError):
    """Raised when an AES key is not exactly 32 bytes."""

    def __init__(self, length: int):
        self.length = length
        super().__init__(f"AES-256 key must be 32 bytes, got {length}")


class InvalidIVLength(SecureDefaultsError, ValueError):
    """Raised when an initialization vector is not exactly 16 bytes."""

    def __init__(self, length: int):
        self.length = length
        super().__init__(f"AES initialization vector must be 16 bytes, got {length}")


class KeyDerivationError(SecureDefaultsError):
    """Raised when PBKDF2 rejects its input."""

    def __init__(self, status: int, message: str = "Key derivation failed"):
        self.status = status
        super().__init__(f"{message} (status={status})")


class CipherError(SecureDefaultsError):
    """Raised when an AES encrypt or decrypt operation fails."""

    def __init__(self, status: int, message: str = "Cipher operation failed"):
        self.status = status
        super().__init__(f"{message} (status={status})")


class SerializationError(SecureDefaultsError):
    """Raised when a value cannot be encoded or decoded by a codec."""


class VaultError(SecureDefaultsError):
    """Base class for keychain errors.

    ``accessible`` is the ``AccessibilityPolicy`` member the operation used.
    """

    def __init__(self, name: str, message: str, accessible: Optional[str] = None):
        self.name = name
        self.accessible = accessible
        super().__init__(message)


class VaultWriteError(VaultError):
    """Raised when a secret cannot be written, even after migration."""


class VaultReadError(VaultError):
    """Raised when the keychain backend fails while reading a secret."""


class PasswordNotSetError(SecureDefaultsError, RuntimeError):
    """Raised when key material must be derived but no password was set.

    This is a misconfigured store, never a data condition, so the encrypted
    store does not swallow it.
    """
