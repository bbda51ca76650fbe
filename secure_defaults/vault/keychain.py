"""
Keychain — accessibility-scoped secret storage for AES keys and IVs.

A keychain backend stores named secrets (``account``) tagged with an
accessibility policy and an optional access group. ``SecretVault`` sits on
top of a backend and adds idempotent writes plus the lazy migration of
secrets written under the deprecated ``ALWAYS`` policy.

Security Note:
    Never log secret values. Only log account names and policies.
"""
import base64
import binascii
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

from ..exceptions import VaultReadError, VaultWriteError

logger = logging.getLogger("secure_defaults.vault")


class AccessibilityPolicy(str, Enum):
    """When a keychain item may be read.

    Values are the keychain ``kSecAttrAccessible`` attribute strings.
    """

    WHEN_UNLOCKED = "ak"
    AFTER_FIRST_UNLOCK = "ck"
    ALWAYS = "dk"
    WHEN_PASSCODE_SET_THIS_DEVICE_ONLY = "akpu"
    WHEN_UNLOCKED_THIS_DEVICE_ONLY = "aku"
    AFTER_FIRST_UNLOCK_THIS_DEVICE_ONLY = "cku"
    ALWAYS_THIS_DEVICE_ONLY = "dku"

    @property
    def deprecated(self) -> bool:
        return self in (AccessibilityPolicy.ALWAYS, AccessibilityPolicy.ALWAYS_THIS_DEVICE_ONLY)


DEFAULT_ACCESSIBLE = AccessibilityPolicy.AFTER_FIRST_UNLOCK
LEGACY_ACCESSIBLE = AccessibilityPolicy.ALWAYS


# ---------------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------------

class Keychain(ABC):
    """Secure secret store contract.

    An item is identified by ``(account, group)``; the accessibility
    policy is an attribute that every query must match. Adding an item
    whose identity is already taken fails, whatever its policy.
    """

    @abstractmethod
    def add(
        self,
        account: str,
        data: bytes,
        accessible: AccessibilityPolicy,
        group: Optional[str] = None,
    ) -> bool:
        """Insert a new item. Returns False if the item already exists."""

    @abstractmethod
    def copy_matching(
        self,
        account: str,
        accessible: AccessibilityPolicy,
        group: Optional[str] = None,
    ) -> Optional[bytes]:
        """Return the secret of the matching item, or None."""

    @abstractmethod
    def delete(
        self,
        account: str,
        accessible: AccessibilityPolicy,
        group: Optional[str] = None,
    ) -> bool:
        """Delete matching items. Returns False if nothing matched."""


class MemoryKeychain(Keychain):
    """Process-local keychain.

    A query without a group matches items in any group, as keychain
    queries do.
    """

    def __init__(self):
        self._items: dict[tuple[str, Optional[str]], tuple[AccessibilityPolicy, bytes]] = {}

    def __len__(self) -> int:
        return len(self._items)

    def _matches(self, account, accessible, group):
        for (acc, grp), (policy, _) in self._items.items():
            if acc != account or policy != accessible:
                continue
            if group is not None and grp != group:
                continue
            yield (acc, grp)

    def add(self, account, data, accessible, group=None) -> bool:
        if (account, group) in self._items:
            return False
        self._items[(account, group)] = (AccessibilityPolicy(accessible), bytes(data))
        return True

    def copy_matching(self, account, accessible, group=None) -> Optional[bytes]:
        for ident in self._matches(account, accessible, group):
            return self._items[ident][1]
        return None

    def delete(self, account, accessible, group=None) -> bool:
        matched = list(self._matches(account, accessible, group))
        for ident in matched:
            del self._items[ident]
        return bool(matched)


class KeyringKeychain(Keychain):
    """Keychain backed by the ``keyring`` library (OS credential store).

    keyring only addresses ``(service, username)`` pairs, so the policy and
    group are folded into the service name as
    ``"<service>/<policy>/<group or ->"``; secrets are stored base64 encoded.
    Requires the ``keyring`` extra.
    """

    def __init__(self, service: str = "secure_defaults"):
        import keyring
        from keyring.errors import KeyringError, PasswordDeleteError

        self._keyring = keyring
        self._keyring_error = KeyringError
        self._delete_error = PasswordDeleteError
        self.service = service

    def _service(self, accessible: AccessibilityPolicy, group: Optional[str]) -> str:
        return f"{self.service}/{AccessibilityPolicy(accessible).value}/{group or '-'}"

    def _read(self, account, accessible, group) -> Optional[bytes]:
        try:
            value = self._keyring.get_password(self._service(accessible, group), account)
        except self._keyring_error as err:
            raise VaultReadError(
                account, f"Keyring read failed: {err}", AccessibilityPolicy(accessible)
            ) from err
        if value is None:
            return None
        try:
            return base64.b64decode(value, validate=True)
        except binascii.Error as err:
            raise VaultReadError(
                account, "Keyring item is not a vault secret", AccessibilityPolicy(accessible)
            ) from err

    def add(self, account, data, accessible, group=None) -> bool:
        for policy in AccessibilityPolicy:
            if self._read(account, policy, group) is not None:
                return False
        try:
            self._keyring.set_password(
                self._service(accessible, group),
                account,
                base64.b64encode(bytes(data)).decode("ascii"),
            )
        except self._keyring_error as err:
            logger.warning("Keyring write failed for %s: %s", account, err)
            return False
        return True

    def copy_matching(self, account, accessible, group=None) -> Optional[bytes]:
        return self._read(account, accessible, group)

    def delete(self, account, accessible, group=None) -> bool:
        try:
            self._keyring.delete_password(self._service(accessible, group), account)
        except self._delete_error:
            return False
        return True


# ---------------------------------------------------------------------------
# Vault adapter
# ---------------------------------------------------------------------------

class SecretVault:
    """Named secret storage with legacy-policy migration.

    ``set``/``get``/``remove`` work on exactly one accessibility policy.
    ``store``/``fetch`` fall back to the legacy policy and move secrets
    found there to the requested policy.
    """

    def __init__(
        self,
        keychain: Optional[Keychain] = None,
        legacy_accessible: AccessibilityPolicy = LEGACY_ACCESSIBLE,
    ):
        self.keychain = keychain if keychain is not None else MemoryKeychain()
        self.legacy_accessible = AccessibilityPolicy(legacy_accessible)

    def set(
        self,
        name: str,
        data: Optional[bytes],
        accessible: AccessibilityPolicy,
        group: Optional[str] = None,
    ) -> bool:
        """Write ``data`` under ``name``, replacing any existing entry.

        A ``None`` value deletes the entry.
        """
        if data is None:
            return self.keychain.delete(name, accessible, group)
        self.keychain.delete(name, accessible, group)
        return self.keychain.add(name, data, accessible, group)

    def get(
        self,
        name: str,
        accessible: AccessibilityPolicy,
        group: Optional[str] = None,
    ) -> Optional[bytes]:
        return self.keychain.copy_matching(name, accessible, group)

    def remove(
        self,
        name: str,
        accessible: AccessibilityPolicy,
        group: Optional[str] = None,
    ) -> bool:
        return self.keychain.delete(name, accessible, group)

    def store(
        self,
        name: str,
        data: Optional[bytes],
        accessible: AccessibilityPolicy,
        group: Optional[str] = None,
    ) -> None:
        """Write a secret, migrating a legacy entry that blocks the write.

        Storing ``None`` removes the secret under both policies.

        Raises:
            VaultWriteError: If the write fails and no legacy entry explains it.
        """
        if data is None:
            self.remove(name, accessible, group)
            if accessible != self.legacy_accessible:
                self.remove(name, self.legacy_accessible, group)
            return
        if self.set(name, data, accessible, group):
            return
        if accessible != self.legacy_accessible and \
                self.get(name, self.legacy_accessible, group) is not None:
            # the legacy item holds the same identity, move it out of the way
            self.remove(name, self.legacy_accessible, group)
            if self.set(name, data, accessible, group):
                logger.info(
                    "Replaced legacy keychain item %s (%s -> %s)",
                    name, self.legacy_accessible.value, AccessibilityPolicy(accessible).value,
                )
                return
        raise VaultWriteError(
            name,
            f"Unable to write keychain item {name!r}",
            AccessibilityPolicy(accessible),
        )

    def fetch(
        self,
        name: str,
        accessible: AccessibilityPolicy,
        group: Optional[str] = None,
    ) -> Optional[bytes]:
        """Read a secret, migrating it from the legacy policy if needed.

        The legacy item is removed before the secret is written back under
        ``accessible``. If that write fails the secret is still returned,
        but it is no longer in the keychain and the failure is only logged
        at ERROR.

        Returns:
            Secret bytes, or None if absent under both policies.

        Raises:
            VaultReadError: If the keychain backend fails.
        """
        result = self.get(name, accessible, group)
        if result is not None or accessible == self.legacy_accessible:
            return result
        result = self.get(name, self.legacy_accessible, group)
        if result is None:
            return None
        self.remove(name, self.legacy_accessible, group)
        if self.set(name, result, accessible, group):
            logger.info(
                "Migrated keychain item %s (%s -> %s)",
                name, self.legacy_accessible.value, AccessibilityPolicy(accessible).value,
            )
        else:
            logger.error("Failed to migrate keychain item %s", name)
        return result
