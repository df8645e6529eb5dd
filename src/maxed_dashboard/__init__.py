# Maxed Dashboard - Marketing analytics dashboard core
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Maxed Dashboard
---------------

The non-presentational core of the Maxed marketing-analytics dashboard.
Page layouts, cards and charts live in the front end; this package holds
the two pieces of logic they all depend on.

Main capabilities:
- per-account settings trees built from system defaults and sparse
  overrides (JSON Merge Patch semantics),
- dot-path access to nested settings, with a typed registry of every
  known setting,
- a settings cache with an explicit lifecycle (uninitialized, loading,
  ready, error) and optimistic writes,
- a sync client that fetches resolved settings and submits sparse
  patches to the settings service,
- a safe expression evaluator for SQL-like metric formulas such as
  ``SAFE_DIVIDE(conversions_value, spend)``,
- derived metric definitions (ROAS, CTR, CPA...) evaluated over metric
  rows or whole pandas DataFrames.

Version: 0.2.0
"""

__all__ = [
    "cache",
    "config",
    "expressions",
    "metrics",
    "paths",
    "resolve",
    "settings",
    "sync",
]

__version__ = "0.2.0"
