"""
Tests for keychain backends and the SecretVault adapter.

Tests cover:
- MemoryKeychain item identity and policy matching
- Idempotent set / delete-on-None
- Legacy policy migration on read and on write
- Error propagation
- KeyringKeychain against an in-memory keyring backend
"""
import pytest

from secure_defaults.exceptions import VaultReadError, VaultWriteError
from secure_defaults.vault.keychain import (
    AccessibilityPolicy,
    LEGACY_ACCESSIBLE,
    MemoryKeychain,
    SecretVault,
)

CURRENT = AccessibilityPolicy.AFTER_FIRST_UNLOCK
LEGACY = AccessibilityPolicy.ALWAYS


class RefusingKeychain(MemoryKeychain):
    """Keychain that refuses every insert."""

    def add(self, account, data, accessible, group=None):
        return False


class BrokenKeychain(MemoryKeychain):
    """Keychain whose reads fail."""

    def copy_matching(self, account, accessible, group=None):
        raise VaultReadError(account, "keychain locked", accessible)


@pytest.fixture
def keychain():
    return MemoryKeychain()


@pytest.fixture
def vault(keychain):
    return SecretVault(keychain)


# --- Test Policies ---

class TestAccessibilityPolicy:
    """Tests for AccessibilityPolicy."""

    def test_attribute_values(self):
        """Test policies carry the keychain attribute strings."""
        assert AccessibilityPolicy.AFTER_FIRST_UNLOCK.value == "ck"
        assert AccessibilityPolicy.ALWAYS.value == "dk"

    def test_legacy_is_deprecated(self):
        """Test the legacy policy is flagged deprecated."""
        assert LEGACY_ACCESSIBLE is AccessibilityPolicy.ALWAYS
        assert LEGACY_ACCESSIBLE.deprecated
        assert not CURRENT.deprecated


# --- Test MemoryKeychain ---

class TestMemoryKeychain:
    """Tests for the in-memory backend."""

    def test_add_and_copy(self, keychain):
        """Test an added item is returned for its policy only."""
        assert keychain.add("acct", b"secret", CURRENT)
        assert keychain.copy_matching("acct", CURRENT) == b"secret"
        assert keychain.copy_matching("acct", LEGACY) is None

    def test_duplicate_identity(self, keychain):
        """Test the same account cannot be added under two policies."""
        assert keychain.add("acct", b"old", LEGACY)
        assert keychain.add("acct", b"new", CURRENT) is False

    def test_groups_are_separate(self, keychain):
        """Test groups partition items."""
        assert keychain.add("acct", b"a", CURRENT, "group.a")
        assert keychain.add("acct", b"b", CURRENT, "group.b")
        assert keychain.copy_matching("acct", CURRENT, "group.b") == b"b"

    def test_delete_without_group_matches_all(self, keychain):
        """Test a delete query without group removes every group's item."""
        keychain.add("acct", b"a", CURRENT, "group.a")
        keychain.add("acct", b"b", CURRENT)
        assert keychain.delete("acct", CURRENT)
        assert len(keychain) == 0

    def test_delete_missing(self, keychain):
        """Test deleting a missing item reports False."""
        assert keychain.delete("missing", CURRENT) is False


# --- Test SecretVault ---

class TestSecretVault:
    """Tests for single-policy operations."""

    def test_set_is_idempotent(self, vault):
        """Test repeated writes replace the value."""
        assert vault.set("name", b"one", CURRENT)
        assert vault.set("name", b"two", CURRENT)
        assert vault.get("name", CURRENT) == b"two"

    def test_set_none_deletes(self, vault):
        """Test writing None removes the entry."""
        vault.set("name", b"one", CURRENT)
        assert vault.set("name", None, CURRENT)
        assert vault.get("name", CURRENT) is None

    def test_remove(self, vault):
        """Test remove deletes the entry."""
        vault.set("name", b"one", CURRENT)
        assert vault.remove("name", CURRENT)
        assert vault.remove("name", CURRENT) is False

    def test_get_absent(self, vault):
        """Test reading a missing name."""
        assert vault.get("missing", CURRENT) is None


# --- Test Migration ---

class TestMigration:
    """Tests for legacy-policy migration."""

    def test_fetch_migrates_legacy_item(self, vault, keychain):
        """Test a legacy item is returned and moved to the current policy."""
        vault.set("name", b"legacy", LEGACY)
        assert vault.fetch("name", CURRENT) == b"legacy"
        assert keychain.copy_matching("name", LEGACY) is None
        assert keychain.copy_matching("name", CURRENT) == b"legacy"

    def test_fetch_migrates_once(self, vault, keychain):
        """Test a second fetch reads the current policy directly."""
        vault.set("name", b"legacy", LEGACY)
        vault.fetch("name", CURRENT)
        assert vault.fetch("name", CURRENT) == b"legacy"
        assert len(keychain) == 1

    def test_fetch_prefers_current(self, vault):
        """Test the current policy wins when both exist."""
        vault.set("name", b"legacy", LEGACY, "group.a")
        vault.set("name", b"current", CURRENT, "group.b")
        assert vault.fetch("name", CURRENT, "group.b") == b"current"

    def test_fetch_absent(self, vault):
        """Test fetch of a missing name."""
        assert vault.fetch("missing", CURRENT) is None

    def test_fetch_with_group(self, vault, keychain):
        """Test migration keeps the access group."""
        vault.set("name", b"legacy", LEGACY, "group.a")
        assert vault.fetch("name", CURRENT, "group.a") == b"legacy"
        assert keychain.copy_matching("name", CURRENT, "group.a") == b"legacy"

    def test_fetch_failed_migration(self, caplog):
        """Test a refused write-back still returns the legacy secret."""
        chain = RefusingKeychain()
        MemoryKeychain.add(chain, "name", b"legacy", LEGACY)
        vault = SecretVault(chain)
        with caplog.at_level("ERROR", logger="secure_defaults.vault"):
            assert vault.fetch("name", CURRENT) == b"legacy"
        assert len(chain) == 0
        assert "Failed to migrate keychain item name" in caplog.text

    def test_store_replaces_legacy_item(self, vault, keychain):
        """Test a write blocked by a legacy item succeeds after removing it."""
        vault.set("name", b"legacy", LEGACY)
        vault.store("name", b"fresh", CURRENT)
        assert keychain.copy_matching("name", LEGACY) is None
        assert keychain.copy_matching("name", CURRENT) == b"fresh"

    def test_store_failure(self):
        """Test a write that fails without a legacy item raises."""
        vault = SecretVault(RefusingKeychain())
        with pytest.raises(VaultWriteError) as exc:
            vault.store("name", b"data", CURRENT)
        assert exc.value.name == "name"
        assert exc.value.accessible is CURRENT

    def test_store_none_removes_both(self, vault, keychain):
        """Test storing None removes current and legacy items."""
        vault.set("name", b"legacy", LEGACY, "group.a")
        vault.set("name", b"current", CURRENT, "group.b")
        vault.store("name", None, CURRENT)
        assert len(keychain) == 0

    def test_read_error_propagates(self):
        """Test backend read failures reach the caller."""
        vault = SecretVault(BrokenKeychain())
        with pytest.raises(VaultReadError):
            vault.fetch("name", CURRENT)


# --- Test KeyringKeychain ---

class TestKeyringKeychain:
    """Tests for the keyring backed keychain."""

    @pytest.fixture
    def keyring_backend(self):
        keyring = pytest.importorskip("keyring")
        from keyring.backend import KeyringBackend
        from keyring.errors import PasswordDeleteError

        class DictKeyring(KeyringBackend):
            priority = 1

            def __init__(self):
                super().__init__()
                self.items = {}

            def get_password(self, service, username):
                return self.items.get((service, username))

            def set_password(self, service, username, password):
                self.items[(service, username)] = password

            def delete_password(self, service, username):
                try:
                    del self.items[(service, username)]
                except KeyError:
                    raise PasswordDeleteError(username) from None

        previous = keyring.get_keyring()
        backend = DictKeyring()
        keyring.set_keyring(backend)
        yield backend
        keyring.set_keyring(previous)

    @pytest.fixture
    def keyring_chain(self, keyring_backend):
        from secure_defaults.vault.keychain import KeyringKeychain
        return KeyringKeychain(service="tests")

    def test_round_trip(self, keyring_chain, keyring_backend):
        """Test secrets are stored base64 encoded per policy."""
        assert keyring_chain.add("acct", b"\x00\xffsecret", CURRENT)
        assert keyring_chain.copy_matching("acct", CURRENT) == b"\x00\xffsecret"
        assert ("tests/ck/-", "acct") in keyring_backend.items

    def test_duplicate_identity(self, keyring_chain):
        """Test an account held under the legacy policy blocks the add."""
        keyring_chain.add("acct", b"old", LEGACY)
        assert keyring_chain.add("acct", b"new", CURRENT) is False

    def test_migration(self, keyring_chain):
        """Test SecretVault migrates keyring items."""
        vault = SecretVault(keyring_chain)
        vault.set("acct", b"legacy", LEGACY)
        assert vault.fetch("acct", CURRENT) == b"legacy"
        assert keyring_chain.copy_matching("acct", LEGACY) is None

    def test_foreign_item_read_error(self, keyring_chain, keyring_backend):
        """Test an item that is not base64 raises VaultReadError."""
        keyring_backend.items[("tests/ck/-", "acct")] = "not base64!"
        with pytest.raises(VaultReadError) as exc:
            keyring_chain.copy_matching("acct", "ck")
        assert exc.value.name == "acct"
        assert exc.value.accessible is CURRENT

    def test_delete_missing(self, keyring_chain):
        """Test deleting a missing item reports False."""
        assert keyring_chain.delete("missing", CURRENT) is False
