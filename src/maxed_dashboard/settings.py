# Maxed Dashboard - Marketing analytics dashboard core
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Account settings schema for Maxed Dashboard.

Settings are organised in three layers:

1. Global preferences (``global.*``)
   ---------------------------------
   Primary business goal, currency, metric importance weights and the
   list of metrics the account never wants to see.

2. Section overrides (``sections.<section>.*``)
   ---------------------------------------------
   Per-view presentation choices: pinned metrics, layout size per metric,
   default tab and a free-form ``customConfig`` table. Section names may
   themselves contain dots (``overviews.google``); they are stored as
   nested tables, so ``sections.overviews.google.pinnedMetrics`` is a
   plain dot path.

3. Platform preferences (``platforms.<platform>.*``)
   --------------------------------------------------
   Display name, goal metric and metric benchmarks per connected
   platform.

Every writable location is described by a SettingPath: a small typed
accessor holding the dot path and a validator. The module exposes one
accessor per global setting, factories for the keyed families and
``lookup_setting()`` to go from a dot path back to its accessor. Writes
through an accessor are validated; an unknown path raises KeyError since
it can only come from a programming mistake.

``validate_patch()`` applies the same checks to a whole sparse override
tree before it is sent to the settings service.
"""

import copy
import math
from collections.abc import Callable, Mapping, MutableMapping
from dataclasses import dataclass
from typing import Any, Union

from .paths import get_by_path, set_by_path

PRIMARY_GOALS: tuple[str, ...] = ("revenue", "leads", "awareness")
LAYOUT_SIZES: tuple[str, ...] = ("hero", "standard", "hidden")

OVERVIEW_PLATFORMS: tuple[str, ...] = (
    "google",
    "meta",
    "ga4",
    "shopify",
    "instagram",
    "facebook",
    "gsc",
)

SECTIONS: tuple[str, ...] = tuple(f"overviews.{p}" for p in OVERVIEW_PLATFORMS) + (
    "dashboard",
    "monitors",
)

PLATFORM_GOAL_METRICS: dict[str, str] = {
    "google": "roas",
    "meta": "roas",
    "ga4": "conversion_rate",
    "shopify": "revenue",
    "instagram": "engagement_rate",
    "facebook": "engagement_rate",
    "gsc": "ctr",
}


def _build_defaults() -> dict[str, Any]:
    sections: dict[str, Any] = {}
    for section in SECTIONS:
        if section == "monitors":
            value: dict[str, Any] = {"customConfig": {"groupBy": "severity"}}
        else:
            value = {"pinnedMetrics": None, "layout": {}}
        set_by_path(sections, section, value)

    return {
        "global": {
            "primaryGoal": "revenue",
            "currencyCode": "USD",
            "metricImportance": {},
            "hiddenMetrics": [],
        },
        "sections": sections,
        "platforms": {
            platform: {"goalMetric": goal}
            for platform, goal in PLATFORM_GOAL_METRICS.items()
        },
    }


_DEFAULT_ACCOUNT_SETTINGS = _build_defaults()


def default_account_settings() -> dict[str, Any]:
    """Return a fresh copy of the system-wide default settings."""
    return copy.deepcopy(_DEFAULT_ACCOUNT_SETTINGS)


# ---------------------------------------------------------------------------
# Value validators
# ---------------------------------------------------------------------------


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _is_str(value: Any) -> bool:
    return isinstance(value, str)


def _is_str_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(v, str) for v in value)


def _is_goal(value: Any) -> bool:
    return value in PRIMARY_GOALS


def _is_importance(value: Any) -> bool:
    return _is_number(value) and 1 <= value <= 10


def _is_layout_size(value: Any) -> bool:
    return value in LAYOUT_SIZES


def _is_any(value: Any) -> bool:
    return True


def _record_of(check: Callable[[Any], bool]) -> Callable[[Any], bool]:
    def _is_record(value: Any) -> bool:
        return isinstance(value, Mapping) and all(
            isinstance(k, str) and (v is None or check(v)) for k, v in value.items()
        )

    return _is_record


# ---------------------------------------------------------------------------
# Typed accessors
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SettingPath:
    """
    Typed accessor for one location in the settings tree.

    Attributes:
        path: Dot path of the setting (e.g. 'global.primaryGoal').
        expected: Human-readable description of the accepted values.
        check: Predicate returning True for acceptable values. ``None`` is
            always accepted since it means "revert to default".
    """

    path: str
    expected: str
    check: Callable[[Any], bool]

    def validate(self, value: Any) -> None:
        if value is not None and not self.check(value):
            raise ValueError(
                f"Invalid value for setting {self.path!r}: {value!r} "
                f"(expected {self.expected})."
            )

    def get(self, tree: Any, default: Any = None) -> Any:
        return get_by_path(tree, self.path, default)

    def set(
        self, tree: MutableMapping[str, Any], value: Any
    ) -> MutableMapping[str, Any]:
        self.validate(value)
        return set_by_path(tree, self.path, value)


PRIMARY_GOAL = SettingPath(
    "global.primaryGoal", "one of " + ", ".join(PRIMARY_GOALS), _is_goal
)
CURRENCY_CODE = SettingPath(
    "global.currencyCode", "an ISO 4217 code string", _is_str
)
METRIC_IMPORTANCE = SettingPath(
    "global.metricImportance",
    "a table of metric weights between 1 and 10",
    _record_of(_is_importance),
)
HIDDEN_METRICS = SettingPath(
    "global.hiddenMetrics", "a list of metric ids", _is_str_list
)

GLOBAL_SETTINGS: dict[str, SettingPath] = {
    s.path: s for s in (PRIMARY_GOAL, CURRENCY_CODE, METRIC_IMPORTANCE, HIDDEN_METRICS)
}

# field -> (expected, check)
_SECTION_FIELDS: dict[str, tuple[str, Callable[[Any], bool]]] = {
    "pinnedMetrics": ("a list of metric ids", _is_str_list),
    "layout": (
        "a table of metric layouts (" + ", ".join(LAYOUT_SIZES) + ")",
        _record_of(_is_layout_size),
    ),
    "defaultTab": ("a tab name string", _is_str),
    "customConfig": ("a table", _record_of(_is_any)),
}
_SECTION_RECORD_ELEMENTS: dict[str, tuple[str, Callable[[Any], bool]]] = {
    "layout": ("one of " + ", ".join(LAYOUT_SIZES), _is_layout_size),
    "customConfig": ("any value", _is_any),
}

_PLATFORM_FIELDS: dict[str, tuple[str, Callable[[Any], bool]]] = {
    "displayName": ("a display name string", _is_str),
    "goalMetric": ("a metric id string", _is_str),
    "benchmarks": ("a table of numeric targets", _record_of(_is_number)),
}
_PLATFORM_RECORD_ELEMENTS: dict[str, tuple[str, Callable[[Any], bool]]] = {
    "benchmarks": ("a finite number", _is_number),
}


def section_setting(section: str, field: str) -> SettingPath:
    """Accessor for ``sections.<section>.<field>``."""
    if field not in _SECTION_FIELDS:
        raise KeyError(f"Unknown section setting: {field!r}")
    if not section:
        raise KeyError("Section name must not be empty.")
    expected, check = _SECTION_FIELDS[field]
    return SettingPath(f"sections.{section}.{field}", expected, check)


def platform_setting(platform: str, field: str) -> SettingPath:
    """Accessor for ``platforms.<platform>.<field>``."""
    if field not in _PLATFORM_FIELDS:
        raise KeyError(f"Unknown platform setting: {field!r}")
    if not platform or "." in platform:
        raise KeyError(f"Invalid platform name: {platform!r}")
    expected, check = _PLATFORM_FIELDS[field]
    return SettingPath(f"platforms.{platform}.{field}", expected, check)


def lookup_setting(path: Union[str, SettingPath]) -> SettingPath:
    """
    Return the typed accessor for a dot path.

    Besides the fields listed in the module docstring, single entries of
    table-valued settings are addressable too
    (``global.metricImportance.roas``, ``sections.dashboard.layout.spend``,
    ``platforms.google.benchmarks.ctr``).

    Raises:
        KeyError: if the path does not designate a known setting.
    """
    if isinstance(path, SettingPath):
        return path

    if path in GLOBAL_SETTINGS:
        return GLOBAL_SETTINGS[path]

    segments = path.split(".")
    head, rest = segments[0], segments[1:]

    if head == "global" and len(rest) == 2 and rest[0] == "metricImportance":
        return SettingPath(path, "a weight between 1 and 10", _is_importance)

    if head == "sections" and len(rest) >= 2 and all(rest):
        if len(rest) >= 3 and rest[-2] in _SECTION_RECORD_ELEMENTS:
            expected, check = _SECTION_RECORD_ELEMENTS[rest[-2]]
            return SettingPath(path, expected, check)
        if rest[-1] in _SECTION_FIELDS:
            return section_setting(".".join(rest[:-1]), rest[-1])

    if head == "platforms" and all(rest):
        if len(rest) == 2 and rest[1] in _PLATFORM_FIELDS:
            return platform_setting(rest[0], rest[1])
        if len(rest) == 3 and rest[1] in _PLATFORM_RECORD_ELEMENTS:
            expected, check = _PLATFORM_RECORD_ELEMENTS[rest[1]]
            return SettingPath(path, expected, check)

    raise KeyError(f"Unknown setting path: {path!r}")


def validate_patch(patch: Mapping[str, Any], _prefix: str = "") -> None:
    """
    Check every value carried by a sparse override tree.

    Tables are descended until they reach a known setting, whose accessor
    then validates the value. ``None`` leaves (deletions) are accepted
    anywhere.

    Raises:
        ValueError: if a value has the wrong type or range, or if a
            non-table value sits at a path that is not a known setting.
    """
    if not isinstance(patch, Mapping):
        raise ValueError(f"Settings patch must be a table, got {type(patch).__name__}.")

    for key, value in patch.items():
        path = f"{_prefix}{key}"
        if value is None:
            continue

        try:
            setting = lookup_setting(path)
        except KeyError:
            if isinstance(value, Mapping):
                validate_patch(value, _prefix=f"{path}.")
                continue
            raise ValueError(f"Unknown setting path in patch: {path!r}") from None

        setting.validate(value)
