"""
SecureDefaults — Encrypted preferences store.

Wraps a plain ``Defaults`` store and encrypts every value:
- ``set(name, value)``: encode, encrypt with AES-256-CBC, write ciphertext
- ``read(name)`` / ``store[name]`` / typed getters: read, decrypt, decode
- ``raw_get`` / ``raw_set``: bypass encryption
- ``password``: seed for the PBKDF2-derived key; changing it drops the
  key and IV from the keychain
- ``ensure_key_material()``: explicit derivation of the (key, IV) pair

Key and IV live in the keychain under ``SecureDefaults.AESKey[-<suite>]``
and ``SecureDefaults.AESIV[-<suite>]`` and are cached in memory once read.

Security Note:
    Never log passwords, keys, plaintext or ciphertext values. Only log key
    names and suite names. Access to one store instance must be serialized
    by the caller; key derivation is a check-then-write sequence.
"""
import logging
from typing import Any, Optional, Union
from collections.abc import Iterator

from .codec import Codec, get_codec
from .defaults import Defaults, MemoryDefaults
from .exceptions import (
    CipherError,
    InvalidIVLength,
    InvalidKeyLength,
    PasswordNotSetError,
    SecureDefaultsError,
    SerializationError,
)
from .vault.config import SecureDefaultsConfig
from .vault.crypto import (
    AES256,
    BLOCK_SIZE,
    KEY_LENGTH,
    STATUS_PARAM_ERROR,
    derive_key,
    random_iv,
    random_salt,
)
from .vault.keychain import AccessibilityPolicy, SecretVault

logger = logging.getLogger("secure_defaults")


class Keys:
    """Keychain account names of the AES material."""

    AES_IV = "SecureDefaults.AESIV"
    AES_KEY = "SecureDefaults.AESKey"


class SecureDefaults(Defaults):
    """Preferences store that encrypts values with a password-derived key.

    Reading a value that cannot be decrypted or decoded (wrong password,
    corrupt record) returns None, and a value that cannot be encoded is
    not written. With ``config.strict`` both raise instead.

    Example:
        defaults = SecureDefaults(suite_name="app")
        if not defaults.is_key_created:
            defaults.password = "AnyPassword"
        defaults.set("token", "s3cr3t")
    """

    def __init__(
        self,
        suite_name: Optional[str] = None,
        defaults: Optional[Defaults] = None,
        vault: Optional[SecretVault] = None,
        config: Optional[SecureDefaultsConfig] = None,
        codec: Optional[Codec] = None,
    ):
        self._config = config if config is not None else SecureDefaultsConfig()
        self._suite_name = suite_name
        self._defaults = defaults if defaults is not None else MemoryDefaults(suite_name)
        self._vault = vault if vault is not None else SecretVault(
            self._config.build_keychain()
        )
        self._codec = codec if codec is not None else get_codec(self._config.codec)
        self._password: Optional[Union[str, bytes]] = None
        self._key: Optional[bytes] = None
        self._iv: Optional[bytes] = None
        self._cipher: Optional[AES256] = None

    def __repr__(self) -> str:
        return (
            f'<SecureDefaults suite={self._suite_name!r} '
            f'key_cached={self._key is not None}>'
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def suite_name(self) -> Optional[str]:
        return self._suite_name

    @property
    def keychain_accessible(self) -> AccessibilityPolicy:
        return self._config.keychain_accessible

    @property
    def keychain_access_group(self) -> Optional[str]:
        return self._config.keychain_access_group

    @property
    def strict(self) -> bool:
        return self._config.strict

    @property
    def key_name(self) -> str:
        return self._account(Keys.AES_KEY)

    @property
    def iv_name(self) -> str:
        return self._account(Keys.AES_IV)

    @property
    def password(self) -> Optional[Union[str, bytes]]:
        return self._password

    @password.setter
    def password(self, value: Optional[Union[str, bytes]]) -> None:
        self.set_password(value)

    @property
    def key(self) -> bytes:
        """AES key, derived from the password on first access."""
        return self.ensure_key_material()[0]

    @key.setter
    def key(self, value: bytes) -> None:
        if len(value) != KEY_LENGTH:
            raise InvalidKeyLength(len(value))
        self._vault_store(self.key_name, bytes(value))
        self._key = bytes(value)
        self._cipher = None

    @property
    def iv(self) -> bytes:
        """Initialization vector, generated on first access."""
        return self.ensure_key_material()[1]

    @iv.setter
    def iv(self, value: bytes) -> None:
        if len(value) != BLOCK_SIZE:
            raise InvalidIVLength(len(value))
        self._vault_store(self.iv_name, bytes(value))
        self._iv = bytes(value)
        self._cipher = None

    @property
    def is_key_created(self) -> bool:
        """True once a key exists for this suite, without deriving one.

        Useful to set a password only once per installation, or when
        several processes share the keychain group.
        """
        if self._key is not None:
            return True
        return self._vault_fetch(self.key_name) is not None

    # ------------------------------------------------------------------
    # Key material
    # ------------------------------------------------------------------

    def _account(self, base: str) -> str:
        if self._suite_name is not None:
            return f"{base}-{self._suite_name}"
        return base

    def _vault_fetch(self, name: str) -> Optional[bytes]:
        return self._vault.fetch(
            name, self._config.keychain_accessible, self._config.keychain_access_group
        )

    def _vault_store(self, name: str, data: Optional[bytes]) -> None:
        self._vault.store(
            name, data, self._config.keychain_accessible, self._config.keychain_access_group
        )

    def _password_bytes(self) -> bytes:
        if self._password is None:
            raise PasswordNotSetError(
                f"Password can't be None: no AES key stored for {self.key_name!r}"
            )
        if isinstance(self._password, str):
            return self._password.encode("utf-8")
        return bytes(self._password)

    def _load_key(self) -> tuple[bytes, bool]:
        stored = self._vault_fetch(self.key_name)
        if stored is not None:
            return stored, False
        key = derive_key(self._password_bytes(), random_salt())
        self._vault_store(self.key_name, key)
        logger.debug("Derived new AES key %s", self.key_name)
        return key, True

    def _load_iv(self) -> bytes:
        stored = self._vault_fetch(self.iv_name)
        if stored is not None:
            return stored
        iv = random_iv()
        self._vault_store(self.iv_name, iv)
        logger.debug("Generated new AES IV %s", self.iv_name)
        return iv

    def ensure_key_material(self) -> tuple[bytes, bytes]:
        """Return the (key, IV) pair, deriving and storing it if needed.

        Cached values are returned without touching the keychain.

        Returns:
            Tuple of (32-byte key, 16-byte IV).

        Raises:
            PasswordNotSetError: If no key is stored and no password is set.
            KeyDerivationError: If PBKDF2 fails.
            VaultWriteError: If the keychain refuses the new material.
        """
        if self._key is not None and self._iv is not None:
            return self._key, self._iv
        key = self._key
        created = False
        if key is None:
            key, created = self._load_key()
        iv = self._iv
        if iv is None:
            try:
                iv = self._load_iv()
            except SecureDefaultsError:
                if created:
                    # key and IV are stored as a pair
                    self._vault_store(self.key_name, None)
                raise
        self._key, self._iv = key, iv
        self._cipher = None
        return key, iv

    def set_password(self, password: Optional[Union[str, bytes]]) -> None:
        """Replace the password and forget the current key and IV.

        Both are removed from the keychain (current and legacy policy) so
        the next access derives fresh material from the new password.
        """
        self._password = password
        self._vault_store(self.iv_name, None)
        self._vault_store(self.key_name, None)
        self._key = None
        self._iv = None
        self._cipher = None
        logger.debug("Password changed, key material cleared for %s", self.key_name)

    def _aes(self) -> AES256:
        if self._cipher is None:
            key, iv = self.ensure_key_material()
            self._cipher = AES256(key, iv)
        return self._cipher

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def set(self, name: str, value: Any) -> None:
        """Encrypt and store ``value`` under ``name``.

        None removes the record. A value the codec cannot encode is
        dropped (logged), or raises SerializationError in strict mode.
        """
        if value is None:
            self._defaults.set(name, None)
            return
        try:
            data = self._codec.encode(value)
        except SerializationError:
            if self.strict:
                raise
            logger.warning(
                "Dropped write of %s: %s is not serializable",
                name, type(value).__name__,
            )
            return
        self._defaults.set(name, self._aes().encrypt(data))

    def read(self, name: str) -> Any:
        """Decrypt and return the value stored under ``name``.

        Returns:
            Decoded value, or None if absent or undecryptable.
        """
        raw = self._defaults.read(name)
        if raw is None:
            return None
        try:
            return self._decrypt(name, raw)
        except (CipherError, SerializationError) as err:
            if self.strict:
                raise
            logger.debug("Unable to decrypt %s: %s", name, type(err).__name__)
            return None

    def _decrypt(self, name: str, raw: Any) -> Any:
        if not isinstance(raw, (bytes, bytearray)):
            raise CipherError(STATUS_PARAM_ERROR, f"Record {name!r} is not ciphertext")
        return self._codec.decode(self._aes().decrypt(raw))

    def _readable(self, name: str) -> bool:
        raw = self._defaults.read(name)
        if raw is None:
            return False
        try:
            return self._decrypt(name, raw) is not None
        except (CipherError, SerializationError):
            return False

    def raw_get(self, name: str) -> Any:
        """Return the stored record without decrypting it."""
        return self._defaults.read(name)

    def raw_set(self, name: str, value: Any) -> None:
        """Store ``value`` as-is, without encrypting it."""
        self._defaults.set(name, value)

    def persist(self) -> bool:
        return self._defaults.persist()

    # --- Magic Methods ---
    # The mapping view holds only records this store can decrypt: raw
    # records and values written under another key are not listed.

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self._readable(key)

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def __iter__(self) -> Iterator[str]:
        return (name for name in list(self._defaults) if self._readable(name))
