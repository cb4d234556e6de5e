"""Per-key instance tables.

Manifest stores and registries are singletons per home directory. Each
kind keeps its instances in an InstanceTable so tests can reset them.
"""

from collections.abc import Callable
from typing import Generic, TypeVar

T = TypeVar("T")


class InstanceTable(Generic[T]):
    """Maps a key (a home directory path) to the single instance owned for it."""

    def __init__(self) -> None:
        self._instances: dict[str, T] = {}

    def get(self, key: str) -> T | None:
        """Return the instance for key, or None."""
        return self._instances.get(key)

    def get_or_create(self, key: str, factory: Callable[[str], T]) -> T:
        """Return the instance for key, creating it with factory(key) on first use."""
        instance = self._instances.get(key)
        if instance is None:
            instance = factory(key)
            self._instances[key] = instance
        return instance

    def replace(self, key: str, instance: T) -> T:
        """Register instance for key, overwriting any previous one."""
        self._instances[key] = instance
        return instance

    def clear(self) -> None:
        """Forget every instance."""
        self._instances.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._instances

    def __len__(self) -> int:
        return len(self._instances)
