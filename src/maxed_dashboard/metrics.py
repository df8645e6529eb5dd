# Maxed Dashboard - Marketing analytics dashboard core
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Derived metrics for Maxed Dashboard.

Raw platform data only carries base fields (spend, clicks, impressions,
conversions, conversions_value...). Ratios such as ROAS, CTR or CPA are
derived from them with formulas kept in a TOML rules file instead of
being hard-coded in each view::

    [metrics.roas]
    label = "ROAS"
    formula = "SAFE_DIVIDE(conversions_value, spend)"
    unit = "ratio"

Each [metrics.<key>] table defines one MetricDefinition. Definitions are
evaluated in file order, and a formula may reference metrics defined
above it.

The module works at two granularities:

- one metric row (a mapping), via compute_derived_metrics(),
- a whole pandas DataFrame, via evaluate_frame() and
  add_derived_columns(), for tables and charts.

Evaluation never raises (see expressions.py): a formula that cannot be
computed for a row yields 0.0 and a logged warning.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import pandas as pd
import tomllib  # Python 3.11+

from .config import ClientConfig
from .expressions import ExpressionError, evaluate, evaluate_strict, parse_expression
from .logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class MetricDefinition:
    """
    A derived metric as defined in a rules file.

    Attributes:
        key: Identifier, also used as the output column name (e.g. 'roas').
        label: Human-readable label for display (e.g. 'ROAS').
        formula: Expression evaluated against the metric row.
        unit: Unit hint ('ratio', 'percent', 'amount', ...).
        notes: Optional description.
    """

    key: str
    label: str
    formula: str
    unit: str = "ratio"
    notes: str = ""


def _load_toml(path: Path) -> dict[str, Any]:
    """
    Load a TOML file and return its content as a dictionary.

    Raises:
        FileNotFoundError: if the file does not exist.
        ValueError: if the TOML content cannot be parsed or is not a table.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Metric rules file not found: {path}")

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:  # noqa: BLE001
        raise ValueError(f"Failed to parse TOML metric rules file: {path}") from exc

    if not isinstance(data, dict):
        raise ValueError(f"Invalid TOML root type in {path}, expected a table.")

    return data


def load_metric_definitions(rules_file: Path) -> list[MetricDefinition]:
    """
    Load derived metric definitions from the [metrics.*] tables of a file.

    For each [metrics.<key>] table the following fields are read:

    - formula → required, must parse
    - label   → default: key
    - unit    → default: "ratio"
    - notes   → default: ""

    Returns:
        Definitions in file order.

    Raises:
        ValueError: if a metric has no formula or an invalid one.
    """
    data = _load_toml(Path(rules_file))

    metrics_section = data.get("metrics") or {}
    if not isinstance(metrics_section, Mapping):
        return []

    definitions: list[MetricDefinition] = []
    for key, cfg in metrics_section.items():
        if not isinstance(cfg, Mapping):
            continue

        key_str = str(key)
        formula = str(cfg.get("formula") or "").strip()
        if not formula:
            raise ValueError(f"Metric {key_str!r} in {rules_file} has no formula.")

        try:
            parse_expression(formula)
        except ExpressionError as exc:
            raise ValueError(f"Invalid formula for metric {key_str!r}: {exc}") from exc

        definitions.append(
            MetricDefinition(
                key=key_str,
                label=str(cfg.get("label") or key_str),
                formula=formula,
                unit=str(cfg.get("unit") or "ratio"),
                notes=str(cfg.get("notes") or ""),
            )
        )

    return definitions


def load_configured_metrics(config: ClientConfig) -> list[MetricDefinition]:
    """Load the rules file named in the [metrics] section, if any."""
    if config.metrics_rules_file is None:
        return []
    return load_metric_definitions(config.metrics_rules_file)


def compute_derived_metrics(
    row: Mapping[str, Any],
    definitions: Iterable[MetricDefinition],
) -> dict[str, Any]:
    """
    Evaluate derived metrics for one metric row.

    Returns:
        A new dictionary holding the row fields plus one entry per
        definition. The input row is left untouched.
    """
    values: dict[str, Any] = dict(row)
    for definition in definitions:
        values[definition.key] = evaluate(definition.formula, values)
    return values


def _records(frame: pd.DataFrame) -> list[dict[str, Any]]:
    # NaN cells become None, the empty value of a metric row.
    cleaned = frame.astype(object).where(frame.notna(), None)
    return cleaned.to_dict(orient="records")


def evaluate_frame(
    frame: pd.DataFrame,
    expression: str,
    name: Optional[str] = None,
) -> pd.Series:
    """
    Evaluate an expression for every row of a DataFrame.

    Rows that cannot be evaluated yield 0.0. Failures are summarised in a
    single warning rather than one per row.

    Returns:
        A float Series aligned on the frame's index.
    """
    try:
        parse_expression(expression)
    except ExpressionError as exc:
        logger.warning("Failed to evaluate expression %r: %s", expression, exc)
        return pd.Series(0.0, index=frame.index, name=name, dtype=float)

    values: list[float] = []
    failures = 0
    first_error: Optional[Exception] = None

    for record in _records(frame):
        try:
            values.append(evaluate_strict(expression, record))
        except Exception as exc:  # noqa: BLE001
            failures += 1
            if first_error is None:
                first_error = exc
            values.append(0.0)

    if failures:
        logger.warning(
            "Expression %r failed on %d of %d rows (first error: %s)",
            expression,
            failures,
            len(values),
            first_error,
        )

    return pd.Series(values, index=frame.index, name=name, dtype=float)


def add_derived_columns(
    frame: pd.DataFrame,
    definitions: Iterable[MetricDefinition],
) -> pd.DataFrame:
    """
    Return a copy of ``frame`` with one column per derived metric.

    Columns are added in definition order, so a formula can use the
    columns produced by earlier definitions.
    """
    out = frame.copy()
    for definition in definitions:
        out[definition.key] = evaluate_frame(
            out, definition.formula, name=definition.key
        )
    return out
