"""Plain preferences stores.

``Defaults`` is the dict-like capability surface shared by the plain store
and the encrypted store: a primitive ``read``/``set``/``persist`` triple
plus typed getters that fall back to a per-type default on mismatch.
"""
import math
from abc import abstractmethod
from typing import Any, Optional
from collections.abc import Iterator, MutableMapping


class Defaults(MutableMapping[str, Any]):
    """Preferences store interface.

    ``None`` is never stored: setting a key to None removes it, and
    reading a missing key returns None.
    """

    @abstractmethod
    def read(self, name: str) -> Any:
        """Return the value stored under ``name``, or None."""

    @abstractmethod
    def set(self, name: str, value: Any) -> None:
        """Store ``value`` under ``name``; None removes the key."""

    @abstractmethod
    def persist(self) -> bool:
        """Flush pending writes to the durable medium."""

    def remove(self, name: str) -> None:
        self.set(name, None)

    # --- Typed getters ---

    def get_str(self, name: str) -> Optional[str]:
        value = self.read(name)
        return value if isinstance(value, str) else None

    def get_int(self, name: str) -> int:
        value = self.read(name)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        return 0

    def get_float(self, name: str) -> float:
        value = self.read(name)
        return value if isinstance(value, float) else math.nan

    # Python has a single float type
    get_double = get_float

    def get_bool(self, name: str) -> bool:
        value = self.read(name)
        return value if isinstance(value, bool) else False

    def get_list(self, name: str) -> Optional[list]:
        value = self.read(name)
        if isinstance(value, tuple):
            return list(value)
        return value if isinstance(value, list) else None

    def get_dict(self, name: str) -> Optional[dict]:
        value = self.read(name)
        return value if isinstance(value, dict) else None

    def get_bytes(self, name: str) -> Optional[bytes]:
        value = self.read(name)
        return value if isinstance(value, bytes) else None

    def get_str_list(self, name: str) -> Optional[list[str]]:
        value = self.get_list(name)
        if value is None or not all(isinstance(v, str) for v in value):
            return None
        return value

    # --- Magic Methods ---

    def __getitem__(self, key: str) -> Any:
        value = self.read(key)
        if value is None:
            raise KeyError(key)
        return value

    def __setitem__(self, key: str, value: Any) -> None:
        self.set(key, value)

    def __delitem__(self, key: str) -> None:
        if key not in self:
            raise KeyError(key)
        self.remove(key)


class MemoryDefaults(Defaults):
    """Plain store over any MutableMapping.

    Defaults to a private dict. Passing a ``shelve`` shelf (or any mapping
    with a ``sync()`` method) gives durability, ``persist()`` calls it.
    """

    def __init__(
        self,
        suite_name: Optional[str] = None,
        storage: Optional[MutableMapping[str, Any]] = None,
    ) -> None:
        self.suite_name = suite_name
        self._storage = storage if storage is not None else {}

    def __repr__(self) -> str:
        return f'<MemoryDefaults suite={self.suite_name!r} keys={len(self._storage)}>'

    def read(self, name: str) -> Any:
        return self._storage.get(name)

    def set(self, name: str, value: Any) -> None:
        if value is None:
            self._storage.pop(name, None)
        else:
            self._storage[name] = value

    def persist(self) -> bool:
        sync = getattr(self._storage, 'sync', None)
        if callable(sync):
            sync()
        return True

    def __contains__(self, key: object) -> bool:
        return key in self._storage

    def __len__(self) -> int:
        return len(self._storage)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._storage))
