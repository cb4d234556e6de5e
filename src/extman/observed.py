"""Change-observing mapping used for manifest record sets."""

from collections.abc import Callable, Iterator, MutableMapping
from typing import Any


class ObservedDict(MutableMapping[str, Any]):
    """A mapping that calls on_change whenever its contents change.

    Assigning a value that equals the current one, and any read or
    iteration, does not notify. Nested values are not observed; replace a
    record rather than mutating it in place.
    """

    def __init__(self, data: dict[str, Any] | None, on_change: Callable[[], None]) -> None:
        self._data: dict[str, Any] = data if data is not None else {}
        self._on_change = on_change

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        if key not in self._data or self._data[key] != value:
            self._on_change()
        self._data[key] = value

    def __delitem__(self, key: str) -> None:
        del self._data[key]
        self._on_change()

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._data!r})"

    def to_dict(self) -> dict[str, Any]:
        """Return a shallow plain-dict copy, ready for serialization."""
        return dict(self._data)
