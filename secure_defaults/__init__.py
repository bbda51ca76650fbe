"""Secure Defaults.

Encrypted drop-in replacement for a plain preferences store.
"""
from .version import __version__
from .defaults import Defaults, MemoryDefaults
from .secure import SecureDefaults, Keys
from .codec import Codec, OrjsonCodec, JsonPickleCodec, get_codec
from .vault import (
    AccessibilityPolicy,
    MemoryKeychain,
    KeyringKeychain,
    SecretVault,
    SecureDefaultsConfig,
)
from .exceptions import (
    SecureDefaultsError,
    InvalidKeyLength,
    InvalidIVLength,
    KeyDerivationError,
    CipherError,
    SerializationError,
    VaultError,
    VaultWriteError,
    VaultReadError,
    PasswordNotSetError,
)

__all__ = [
    "__version__",
    "Defaults",
    "MemoryDefaults",
    "SecureDefaults",
    "Keys",
    "Codec",
    "OrjsonCodec",
    "JsonPickleCodec",
    "get_codec",
    "AccessibilityPolicy",
    "MemoryKeychain",
    "KeyringKeychain",
    "SecretVault",
    "SecureDefaultsConfig",
    "SecureDefaultsError",
    "InvalidKeyLength",
    "InvalidIVLength",
    "KeyDerivationError",
    "CipherError",
    "SerializationError",
    "VaultError",
    "VaultWriteError",
    "VaultReadError",
    "PasswordNotSetError",
]
