# Maxed Dashboard - Marketing analytics dashboard core
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Dot-path access to nested settings trees.

A path such as ``sections.overviews.google.pinnedMetrics`` is split on
``.`` and walked key by key. Reads never fail: a missing or non-mapping
node yields the caller's default. Writes create the intermediate tables
they need and mutate the tree in place.

Paths are expected to come from the typed registry in settings.py; an
empty path is a programmer error.
"""

from collections.abc import Mapping, MutableMapping
from typing import Any


def _split(path: str) -> list[str]:
    if not path:
        raise ValueError("Setting path must be a non-empty dot-separated string.")
    return path.split(".")


def get_by_path(tree: Any, path: str, default: Any = None) -> Any:
    """
    Return the value stored at ``path`` in ``tree``, or ``default``.

    The default is returned when any node along the path is absent or is
    not a mapping, and when the terminal value itself is ``None``.
    """
    current = tree
    for key in _split(path):
        if not isinstance(current, Mapping) or key not in current:
            return default
        current = current[key]

    return default if current is None else current


def set_by_path(
    tree: MutableMapping[str, Any], path: str, value: Any
) -> MutableMapping[str, Any]:
    """
    Store ``value`` at ``path`` in ``tree`` and return the same tree.

    Intermediate nodes that are missing, or that hold a non-mapping value,
    are replaced by empty dicts.
    """
    *parents, last_key = _split(path)

    current: MutableMapping[str, Any] = tree
    for key in parents:
        child = current.get(key)
        if not isinstance(child, MutableMapping):
            child = {}
            current[key] = child
        current = child

    current[last_key] = value
    return tree


def delete_by_path(
    tree: MutableMapping[str, Any], path: str
) -> MutableMapping[str, Any]:
    """
    Mark ``path`` for deletion using JSON Merge Patch semantics.

    The value is set to ``None`` rather than removed, so that a patch built
    this way makes the server drop the override and fall back to the
    system default.
    """
    return set_by_path(tree, path, None)


def build_patch(path: str, value: Any) -> dict[str, Any]:
    """Return a fresh sparse override tree containing only ``path``."""
    patch: dict[str, Any] = {}
    set_by_path(patch, path, value)
    return patch
