"""Case-insensitive metadata for share items."""
from __future__ import annotations
import collections.abc
import typing as t

from .errors import InvalidArgumentError, ErrorStatus


class MetadataMap(collections.abc.MutableMapping):
    """Mapping of metadata names to values with case-insensitive keys.

        Keys are stored under their lower-case form. The casing used by the
        last assignment is kept for iteration and for the wire form, but
        callers should not rely on it.
    """

    def __init__(self, initial: t.Optional[t.Mapping[str, str]] = None):
        self._data: dict[str, tuple[str, str]] = {}
        if initial:
            self.update(initial)

    @staticmethod
    def _check_key(key):
        if key is None or not isinstance(key, str) or key == "":
            raise InvalidArgumentError("Metadata keys must be non-empty strings", 1200)

    @staticmethod
    def _check_value(key, value):
        if value is None:
            raise InvalidArgumentError(f"Metadata key [{key}] must have a non-null value", 1201)
        if not isinstance(value, str) or value == "":
            raise InvalidArgumentError(f"Metadata key [{key}] must have a non-empty string value", 1202)

    def __setitem__(self, key: str, value: str):
        self._check_key(key)
        self._check_value(key, value)
        self._data[key.lower()] = (key, value)

    def __getitem__(self, key: str) -> str:
        if not isinstance(key, str):
            raise KeyError(key)
        return self._data[key.lower()][1]

    def __delitem__(self, key: str):
        if not isinstance(key, str):
            raise KeyError(key)
        del self._data[key.lower()]

    def __contains__(self, key) -> bool:
        return isinstance(key, str) and key.lower() in self._data

    def __iter__(self) -> t.Iterator[str]:
        return iter(x[0] for x in self._data.values())

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other):
        if isinstance(other, MetadataMap):
            return {k: v[1] for k, v in self._data.items()} == {k: v[1] for k, v in other._data.items()}
        if isinstance(other, collections.abc.Mapping):
            if not all(isinstance(x, str) for x in other):
                return False
            return {k: v[1] for k, v in self._data.items()} == {k.lower(): v for k, v in other.items()}
        return NotImplemented

    def __repr__(self):
        return f"MetadataMap({self.to_dict()!r})"

    def clear(self):
        self._data.clear()

    def validate(self):
        """Check every entry again before it is sent to the service."""
        for key, value in self._data.values():
            try:
                self._check_key(key)
                self._check_value(key, value)
            except InvalidArgumentError as ex:
                raise InvalidArgumentError(
                    f"Invalid metadata entry [{key}]",
                    1203,
                    status=ErrorStatus.UNUSED
                ) from ex

    def replace_from_server(self, values: t.Optional[t.Mapping[str, str]]):
        """Load the service's view without assignment-time validation."""
        self._data = {}
        if values:
            for key in values:
                self._data[key.lower()] = (key, values[key])

    def to_dict(self) -> dict[str, str]:
        return {x[0]: x[1] for x in self._data.values()}
