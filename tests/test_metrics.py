import logging
from pathlib import Path

import pandas as pd
import pytest

from maxed_dashboard.config import ClientConfig
from maxed_dashboard.metrics import (
    MetricDefinition,
    add_derived_columns,
    compute_derived_metrics,
    evaluate_frame,
    load_configured_metrics,
    load_metric_definitions,
)

REPO_ROOT = Path(__file__).resolve().parents[1]
ADS_RULES = REPO_ROOT / "metrics" / "metrics_ads.toml"


def _write(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "metrics.toml"
    path.write_text(content, encoding="utf-8")
    return path


def test_shipped_ads_rules_load_in_file_order() -> None:
    """The paid media rules file loads with its metrics in file order."""
    definitions = load_metric_definitions(ADS_RULES)

    assert [d.key for d in definitions] == [
        "roas",
        "ctr",
        "cpc",
        "cpa",
        "conversion_rate",
        "profit",
    ]
    roas = definitions[0]
    assert roas.label == "ROAS"
    assert roas.formula == "SAFE_DIVIDE(conversions_value, spend)"
    assert definitions[1].unit == "percent"


def test_defaults_for_optional_fields(tmp_path: Path) -> None:
    """label defaults to the key, unit to ratio, notes to empty."""
    rules = _write(
        tmp_path,
        """
[metrics.aov]
formula = "SAFE_DIVIDE(conversions_value, conversions)"
""",
    )

    (definition,) = load_metric_definitions(rules)

    assert definition == MetricDefinition(
        key="aov",
        label="aov",
        formula="SAFE_DIVIDE(conversions_value, conversions)",
    )


def test_missing_formula_is_rejected(tmp_path: Path) -> None:
    """A metric without formula is a configuration error naming the metric."""
    rules = _write(tmp_path, '[metrics.roas]\nlabel = "ROAS"\n')

    with pytest.raises(ValueError, match="roas"):
        load_metric_definitions(rules)


def test_invalid_formula_is_rejected(tmp_path: Path) -> None:
    """Formulas are parsed at load time."""
    rules = _write(tmp_path, '[metrics.bad]\nformula = "spend ** 2"\n')

    with pytest.raises(ValueError, match="bad"):
        load_metric_definitions(rules)


def test_missing_rules_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_metric_definitions(tmp_path / "nope.toml")


def test_unparseable_rules_file(tmp_path: Path) -> None:
    rules = _write(tmp_path, "[metrics.roas\nformula = ")

    with pytest.raises(ValueError):
        load_metric_definitions(rules)


def test_file_without_metrics_table(tmp_path: Path) -> None:
    """A file without [metrics] tables defines no metric."""
    rules = _write(tmp_path, 'title = "empty"\n')

    assert load_metric_definitions(rules) == []


def test_load_configured_metrics() -> None:
    """Metric rules come from the [metrics] section of the client config."""
    assert load_configured_metrics(ClientConfig()) == []

    definitions = load_configured_metrics(ClientConfig(metrics_rules_file=ADS_RULES))
    assert len(definitions) == 6


def test_compute_derived_metrics_for_one_row() -> None:
    """The shipped rules give the expected values for one row."""
    row = {
        "spend": 200.0,
        "clicks": 400,
        "impressions": 10000,
        "conversions": 8,
        "conversions_value": 1000.0,
    }

    values = compute_derived_metrics(row, load_metric_definitions(ADS_RULES))

    assert values["roas"] == pytest.approx(5.0)
    assert values["ctr"] == pytest.approx(4.0)
    assert values["cpc"] == pytest.approx(0.5)
    assert values["cpa"] == pytest.approx(25.0)
    assert values["conversion_rate"] == pytest.approx(2.0)
    assert values["profit"] == pytest.approx(800.0)
    assert "roas" not in row


def test_later_metrics_can_use_earlier_ones() -> None:
    """A formula may use metrics defined above it."""
    definitions = [
        MetricDefinition("roas", "ROAS", "SAFE_DIVIDE(revenue, spend)"),
        MetricDefinition("roas_pct", "ROAS (%)", "roas * 100", unit="percent"),
    ]

    values = compute_derived_metrics({"revenue": 30.0, "spend": 20.0}, definitions)

    assert values["roas_pct"] == pytest.approx(150.0)


def test_row_without_data_yields_zeros() -> None:
    """Empty rows give zeros instead of errors."""
    values = compute_derived_metrics({"spend": 0.0}, load_metric_definitions(ADS_RULES))

    assert values["roas"] == 0.0
    assert values["cpc"] == 0.0
    # profit references a field the row does not have.
    assert values["profit"] == 0.0


def test_evaluate_frame_aligns_on_index() -> None:
    """The result Series keeps the frame's index."""
    frame = pd.DataFrame(
        {"spend": [100.0, 50.0, 0.0], "conversions_value": [300.0, 25.0, 10.0]},
        index=["2025-01", "2025-02", "2025-03"],
    )

    roas = evaluate_frame(frame, "SAFE_DIVIDE(conversions_value, spend)", name="roas")

    assert roas.name == "roas"
    assert list(roas.index) == ["2025-01", "2025-02", "2025-03"]
    assert roas.tolist() == pytest.approx([3.0, 0.5, 0.0])
    assert roas.dtype == float


def test_evaluate_frame_treats_nan_as_empty() -> None:
    """NaN cells are empty values: 0 in arithmetic, 0.0 from SAFE_DIVIDE."""
    frame = pd.DataFrame({"spend": [10.0, float("nan")], "clicks": [5, 2]})

    assert evaluate_frame(frame, "SAFE_DIVIDE(spend, clicks)").tolist() == [2.0, 0.0]
    assert evaluate_frame(frame, "clicks - spend").tolist() == [-5.0, 2.0]


def test_evaluate_frame_summarises_row_failures(
    caplog: pytest.LogCaptureFixture,
) -> None:
    """Rows that fail yield 0.0 and are reported in a single warning."""
    frame = pd.DataFrame({"spend": [10.0, 4.0], "clicks": [5, 0]})

    with caplog.at_level(logging.WARNING, logger="maxed_dashboard"):
        values = evaluate_frame(frame, "spend / clicks")

    assert values.tolist() == [2.0, 0.0]
    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert len(warnings) == 1
    assert "1 of 2 rows" in warnings[0].getMessage()


def test_evaluate_frame_with_invalid_expression() -> None:
    frame = pd.DataFrame({"spend": [1.0, 2.0]})

    values = evaluate_frame(frame, "spend +")

    assert values.tolist() == [0.0, 0.0]


def test_add_derived_columns_returns_a_copy() -> None:
    """One column per metric is added to a copy of the frame."""
    frame = pd.DataFrame(
        {
            "spend": [100.0, 40.0],
            "clicks": [50, 0],
            "impressions": [1000, 0],
            "conversions": [5, 0],
            "conversions_value": [400.0, 0.0],
        }
    )

    out = add_derived_columns(frame, load_metric_definitions(ADS_RULES))

    assert "roas" not in frame.columns
    assert list(out.columns[-6:]) == [
        "roas",
        "ctr",
        "cpc",
        "cpa",
        "conversion_rate",
        "profit",
    ]
    assert out.loc[0, "roas"] == pytest.approx(4.0)
    assert out.loc[0, "ctr"] == pytest.approx(5.0)
    assert out.loc[1, "cpc"] == 0.0
    assert out.loc[1, "profit"] == pytest.approx(-40.0)


def test_add_derived_columns_chains_definitions() -> None:
    frame = pd.DataFrame({"revenue": [30.0], "spend": [20.0]})
    definitions = [
        MetricDefinition("roas", "ROAS", "SAFE_DIVIDE(revenue, spend)"),
        MetricDefinition("roas_pct", "ROAS (%)", "roas * 100"),
    ]

    out = add_derived_columns(frame, definitions)

    assert out.loc[0, "roas_pct"] == pytest.approx(150.0)
