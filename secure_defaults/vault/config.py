"""
Vault Configuration — Keychain and codec settings for the encrypted store.

Reads optional overrides from environment variables:
    SECURE_DEFAULTS_ACCESSIBLE = <policy value or name, e.g. "ck" or "after_first_unlock">
    SECURE_DEFAULTS_ACCESS_GROUP = <keychain access group>
    SECURE_DEFAULTS_KEYCHAIN = memory | keyring
    SECURE_DEFAULTS_SERVICE = <keyring service name>
    SECURE_DEFAULTS_CODEC = orjson | jsonpickle
    SECURE_DEFAULTS_STRICT = 1 | true | yes

Security Note:
    Passwords and key material are never part of the configuration.
"""
import os
import logging
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .keychain import (
    DEFAULT_ACCESSIBLE,
    AccessibilityPolicy,
    Keychain,
    KeyringKeychain,
    MemoryKeychain,
)

logger = logging.getLogger("secure_defaults.vault")

_TRUE_VALUES = ("1", "true", "yes", "on")


def parse_accessible(raw: str) -> AccessibilityPolicy:
    """Parse a policy from its attribute value (``"ck"``) or name.

    Raises:
        ValueError: If ``raw`` names no known policy.
    """
    value = raw.strip()
    try:
        return AccessibilityPolicy(value)
    except ValueError:
        pass
    try:
        return AccessibilityPolicy[value.upper()]
    except KeyError:
        raise ValueError(f"Unknown accessibility policy: {raw}") from None


class SecureDefaultsConfig(BaseModel):
    """Validated encrypted store configuration."""

    keychain_accessible: AccessibilityPolicy = Field(default=DEFAULT_ACCESSIBLE)
    keychain_access_group: Optional[str] = None
    keychain_backend: str = Field(default="memory")
    keychain_service: str = Field(default="secure_defaults", min_length=1)
    codec: str = Field(default="orjson")
    strict: bool = False

    @field_validator("keychain_accessible")
    @classmethod
    def validate_accessible(cls, v: AccessibilityPolicy) -> AccessibilityPolicy:
        """Refuse deprecated policies for new keychain items."""
        if v.deprecated:
            raise ValueError(
                f"Accessibility policy {v.name} is deprecated and only read "
                f"for migration"
            )
        return v

    @field_validator("keychain_backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        """Validate keychain backend is supported."""
        if v not in ("memory", "keyring"):
            raise ValueError(f"Unsupported keychain backend: {v}")
        return v

    @field_validator("codec")
    @classmethod
    def validate_codec(cls, v: str) -> str:
        """Validate codec is supported."""
        if v not in ("orjson", "jsonpickle"):
            raise ValueError(f"Unsupported codec: {v}")
        return v

    def build_keychain(self) -> Keychain:
        """Instantiate the configured keychain backend."""
        if self.keychain_backend == "keyring":
            return KeyringKeychain(service=self.keychain_service)
        return MemoryKeychain()

    @classmethod
    def from_env(cls) -> "SecureDefaultsConfig":
        """Create SecureDefaultsConfig from environment overrides.

        Returns:
            Populated SecureDefaultsConfig instance.
        """
        values: dict = {}
        accessible = os.environ.get("SECURE_DEFAULTS_ACCESSIBLE")
        if accessible:
            values["keychain_accessible"] = parse_accessible(accessible)
        group = os.environ.get("SECURE_DEFAULTS_ACCESS_GROUP")
        if group:
            values["keychain_access_group"] = group
        backend = os.environ.get("SECURE_DEFAULTS_KEYCHAIN")
        if backend:
            values["keychain_backend"] = backend.lower()
        service = os.environ.get("SECURE_DEFAULTS_SERVICE")
        if service:
            values["keychain_service"] = service
        codec = os.environ.get("SECURE_DEFAULTS_CODEC")
        if codec:
            values["codec"] = codec.lower()
        strict = os.environ.get("SECURE_DEFAULTS_STRICT")
        if strict is not None:
            values["strict"] = strict.strip().lower() in _TRUE_VALUES
        config = cls(**values)
        logger.debug(
            "Loaded configuration: backend=%s accessible=%s codec=%s strict=%s",
            config.keychain_backend,
            config.keychain_accessible.value,
            config.codec,
            config.strict,
        )
        return config
