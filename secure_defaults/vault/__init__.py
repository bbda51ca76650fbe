"""Vault — AES-256 cipher engine and keychain storage of its key material.

Security Note (Threat Model):
    The derived key and IV are cached in process memory for the lifetime
    of a store. A memory dump of the application process exposes them, and
    with them every stored value. CBC records carry no authentication tag,
    so tampering is only detected when the padding or the codec fails.
"""

from .crypto import AES256, derive_key, random_iv, random_salt
from .keychain import (
    AccessibilityPolicy,
    Keychain,
    KeyringKeychain,
    MemoryKeychain,
    SecretVault,
)
from .config import SecureDefaultsConfig

__all__ = [
    "AES256",
    "derive_key",
    "random_iv",
    "random_salt",
    "AccessibilityPolicy",
    "Keychain",
    "KeyringKeychain",
    "MemoryKeychain",
    "SecretVault",
    "SecureDefaultsConfig",
]
