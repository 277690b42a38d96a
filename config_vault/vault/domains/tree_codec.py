"""Conversion between nested configuration trees and flat key/value maps.

A nested key path is encoded in a single flat key by joining its levels with
``--``::

    {"db": {"user": "app", "hosts": ["a", "b"]}}
    <->
    {"db--user": "app", "db--hosts": ["a", "b"]}

Lists are leaves and are never descended into. Keys that themselves contain
``--`` cannot be told apart from nested paths, and empty mappings produce no
flat entries.
"""
from collections.abc import Mapping
from typing import Any, Dict

LEVEL_SEPARATOR = "--"


def flatten(tree: Mapping, prefix: str = "") -> Dict[str, Any]:
    """
    Flatten a nested mapping keeping the depth path in each key.

    Args:
        tree: Nested mapping of configuration values
        prefix: Path of the current level, already terminated by ``--``

    Returns:
        Single-level dict in the iteration order of ``tree``
    """
    flattened: Dict[str, Any] = {}

    for key, value in tree.items():
        if isinstance(value, Mapping):
            flattened.update(flatten(value, f"{prefix}{key}{LEVEL_SEPARATOR}"))
        else:
            flattened[f"{prefix}{key}"] = value

    return flattened


def deflatten(flat: Mapping) -> Dict[str, Any]:
    """
    Rebuild the nested tree encoded in the keys of a flat mapping.

    Entries are applied in order. When one entry has already placed a
    non-mapping value where a later entry needs an intermediate level, the
    later entry replaces it.
    """
    restored: Dict[str, Any] = {}

    for key, value in flat.items():
        *parents, leaf = key.split(LEVEL_SEPARATOR)
        node = restored
        for member in parents:
            child = node.get(member)
            if not isinstance(child, dict):
                child = node[member] = {}
            node = child
        node[leaf] = value

    return restored
