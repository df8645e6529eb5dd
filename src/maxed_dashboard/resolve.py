# Maxed Dashboard - Marketing analytics dashboard core
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Settings resolution: sparse overrides merged onto system defaults.

Only the keys an account changed are persisted. The resolved tree that
views consume is rebuilt by ``resolve_settings()``, which deep-merges the
overrides onto the defaults using JSON Merge Patch semantics (RFC 7396):

- ``None``: delete the key from the result,
- table onto table: recurse,
- anything else (scalar, list): the override wins.

The same merge applies a PATCH body onto stored overrides, which is how a
``None`` leaf reverts a setting to its default.
"""

import copy
import json
from collections.abc import Mapping
from typing import Any, Optional

from .paths import get_by_path
from .settings import default_account_settings

_MISSING = object()


def deep_merge(
    defaults: Mapping[str, Any], overrides: Mapping[str, Any]
) -> dict[str, Any]:
    """
    Recursively merge ``overrides`` onto ``defaults``; overrides win.

    Neither input is mutated. A table override landing on a non-table
    default is merged onto an empty table so that ``None`` markers inside
    it are dropped rather than copied.
    """
    result = {k: copy.deepcopy(v) for k, v in defaults.items()}

    for key, override_value in overrides.items():
        if override_value is None:
            result.pop(key, None)
            continue

        if isinstance(override_value, Mapping):
            base = defaults.get(key)
            if not isinstance(base, Mapping):
                base = {}
            result[key] = deep_merge(base, override_value)
        else:
            result[key] = copy.deepcopy(override_value)

    return result


def resolve_settings(overrides: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    """Return the full settings tree for an account's sparse overrides."""
    return deep_merge(default_account_settings(), overrides or {})


def apply_patch(
    overrides: Mapping[str, Any], patch: Mapping[str, Any]
) -> dict[str, Any]:
    """Apply a sparse PATCH body onto stored overrides."""
    return deep_merge(overrides, patch)


def is_different_from_default(
    path: str,
    value: Any,
    defaults: Optional[Mapping[str, Any]] = None,
) -> bool:
    """
    Return True if ``value`` differs from the default stored at ``path``.

    A path absent from the defaults (or holding None there) counts as
    different unless ``value`` is None as well. Values are compared
    through their JSON form so that key order in tables does not matter.
    """
    if defaults is None:
        defaults = default_account_settings()

    default_value = get_by_path(defaults, path, _MISSING)
    if default_value is _MISSING:
        return value is not None

    return _canonical(value) != _canonical(default_value)


def _canonical(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)
