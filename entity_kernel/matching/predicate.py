"""Subset-equality predicate used by filter, exclude and get lookups."""

from typing import Any, Callable, Mapping

Matcher = Callable[[Mapping[str, Any], Mapping[str, Any]], bool]

_MISSING = object()


def match(lookup: Mapping[str, Any], entity: Mapping[str, Any]) -> bool:
    """
    True when every key in ``lookup`` is present in ``entity`` with an
    equal value. Keys of ``entity`` not named in ``lookup`` are ignored,
    so an empty lookup matches every entity.
    """
    for key, expected in lookup.items():
        if entity.get(key, _MISSING) != expected:
            return False
    return True
