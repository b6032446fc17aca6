"""
Field presence checks for item records.

A record is anything exposing ``has_field(name)`` / ``get(name)`` (MailItem),
a mapping, or a plain object whose attributes are its fields. Only presence
is checked, never types or emptiness.
"""

from collections.abc import Mapping
from typing import Any, Iterable, Set

from .errors import MissingFieldError


def has_field(record, name: str) -> bool:
    """Return True if ``record`` exposes a field called ``name``"""
    if hasattr(record, 'has_field'):
        return record.has_field(name)
    if isinstance(record, Mapping):
        return name in record
    return hasattr(record, name)


def get_field(record, name: str) -> Any:
    """Return the value of field ``name``, raising MissingFieldError if absent"""
    if not has_field(record, name):
        raise MissingFieldError([name])
    if hasattr(record, 'has_field'):
        return record.get(name)
    if isinstance(record, Mapping):
        return record[name]
    return getattr(record, name)


def validate(record, required_fields: Iterable[str]) -> Set[str]:
    """Return the required fields ``record`` does not expose (empty if valid)"""
    return {name for name in required_fields if not has_field(record, name)}
