"""Ordered registry of the fields of one form."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Any

from formwork.forms.exceptions import FieldNotFound, InvalidArgument
from formwork.forms.fields import Capability, Field


def flatten(items: Iterable[Any]) -> Iterator[Any]:
    """Yield the leaves of arbitrarily nested collections.

    Strings and bytes are leaves; mappings contribute their keys.
    """
    for item in items:
        if isinstance(item, Iterable) and not isinstance(item, (str, bytes)):
            yield from flatten(item)
        else:
            yield item


class FieldRegistry:
    """Maps field names to fields, keeping insertion order.

    Re-adding a name replaces the earlier field but keeps its position.
    """

    def __init__(self) -> None:
        self._fields: dict[str, Field] = {}

    def add(self, *items: Any) -> list[Field]:
        """Register fields, flattening nested collections. Returns the added fields."""
        added = []
        for item in flatten(items):
            if not isinstance(item, Field):
                raise InvalidArgument(f"The provided argument is not a valid field: {item!r}")
            self._fields[item.name] = item
            added.append(item)
        return added

    def exists(self, name: str) -> bool:
        return str(name) in self._fields

    def get(self, name: str) -> Field:
        try:
            return self._fields[str(name)]
        except KeyError:
            raise FieldNotFound(str(name)) from None

    def all(self) -> dict[str, Field]:
        return dict(self._fields)

    def with_capability(self, capability: Capability) -> Iterator[Field]:
        for field in self._fields.values():
            if capability in field.capabilities:
                yield field

    def expected_keys(self, *always: str) -> list[str]:
        """Request keys the form owns: every non-upload field, plus always."""
        keys = [
            name
            for name, field in self._fields.items()
            if Capability.UPLOAD not in field.capabilities
        ]
        keys.extend(key for key in always if key not in keys)
        return keys

    def errors(self) -> list[str]:
        """Non-empty error texts of error-reporting fields, in registry order."""
        collected = []
        for field in self.with_capability(Capability.ERRORS):
            error = field.get_errors()
            if error.strip():
                collected.append(error)
        return collected

    def values(self, *excluded: Any) -> dict[str, Any]:
        """Current values of value-carrying fields, minus the excluded names."""
        skip = {str(name) for name in flatten(excluded)}
        return {
            field.name: field.get_value()
            for field in self.with_capability(Capability.VALUE)
            if field.name not in skip
        }

    def __contains__(self, name: object) -> bool:
        return name in self._fields

    def __iter__(self) -> Iterator[Field]:
        return iter(self._fields.values())

    def __len__(self) -> int:
        return len(self._fields)
