"""
Test Suite for EDA Module
=========================

Tests that every report figure is produced without a display.
"""

import matplotlib
matplotlib.use("Agg")

import matplotlib.pyplot as plt
import pandas as pd
import pytest

from salesforecast.eda import (
    generate_eda_report,
    plot_holiday_effect,
    plot_forecast,
    save_model_figures,
    print_correlation_insights,
)
from salesforecast.evaluation import MetricsRow, PredictionResult, compare_models
from salesforecast.features import build_features


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close("all")


class TestEdaReport:
    """Tests for generate_eda_report."""

    def test_writes_all_figures(self, sales_df, tmp_path):
        """Test the five descriptive figures are written."""
        report = generate_eda_report(sales_df, output_dir=str(tmp_path))

        assert len(report["figures"]) == 5
        for name in report["figures"]:
            assert (tmp_path / name).exists()

    def test_report_contents(self, sales_df, tmp_path):
        """Test the report carries store statistics and correlations."""
        report = generate_eda_report(sales_df, output_dir=str(tmp_path))

        assert set(report["store_statistics"]) == {1, 2, 3}
        assert "Weekly_Sales" in report["correlation_matrix"]
        assert report["data_shape"] == sales_df.shape

    def test_correlation_insights(self, sales_df, tmp_path, capsys):
        """Test the insights printout lists each indicator's correlation."""
        report = generate_eda_report(sales_df, output_dir=str(tmp_path))

        print_correlation_insights(pd.DataFrame(report["correlation_matrix"]))

        out = capsys.readouterr().out
        assert "CORRELATION WITH WEEKLY SALES" in out
        assert "CPI" in out


class TestModelFigures:
    """Tests for the evaluation and forecast figures."""

    def test_save_model_figures(self, tmp_path):
        """Test the diagnostic figures are written for three models."""
        index = pd.RangeIndex(4)
        actual = pd.Series([10.0, 20.0, 30.0, 40.0], index=index)
        results = [
            PredictionResult(name, actual, actual + offset)
            for name, offset in [("A", 1.0), ("B", -2.0), ("C", 3.0)]
        ]
        table = compare_models([
            MetricsRow("A", 1.0, 1.0, 5.0),
            MetricsRow("B", 2.0, 2.0, 8.0),
            MetricsRow("C", 3.0, 3.0, 12.0),
        ])

        names = save_model_figures(results, table, output_dir=str(tmp_path))

        for name in names:
            assert (tmp_path / name).exists()

    def test_plot_forecast(self, tmp_path):
        """Test the forecast plot is saved with history and band."""
        history = pd.Series(
            range(10), index=pd.date_range("2012-01-06", periods=10, freq="7D"), dtype=float
        )
        future = pd.date_range("2012-03-16", periods=3, freq="7D")
        forecast = pd.DataFrame(
            {"mean": [10.0, 11.0, 12.0], "variance": [1.0, 2.0, 3.0],
             "lower": [8.0, 8.5, 9.0], "upper": [12.0, 13.5, 15.0]},
            index=future,
        )
        path = tmp_path / "forecast.png"

        fig = plot_forecast(history, forecast, save_path=str(path))

        assert path.exists()
        assert len(fig.axes[0].lines) == 2


class TestHolidayEffect:
    """Tests for the holiday box plot."""

    def test_uses_existing_indicator(self, sales_df):
        """Test an enriched table's holiday_indicator drives the grouping."""
        enriched = build_features(sales_df)
        enriched["holiday_indicator"] = pd.Categorical(
            ["Holiday"] * len(enriched), categories=["Non-Holiday", "Holiday"]
        )

        fig = plot_holiday_effect(enriched)

        overall = enriched["Weekly_Sales"].mean()
        assert fig.axes[0].get_title() == f"Holiday Effect (mean {overall:,.0f} vs nan)"

    def test_derives_indicator_from_flag(self, sales_df):
        """Test a raw table is grouped by its holiday flag."""
        fig = plot_holiday_effect(sales_df)

        holiday = sales_df.loc[sales_df["Holiday_Flag"] == 1, "Weekly_Sales"].mean()
        regular = sales_df.loc[sales_df["Holiday_Flag"] == 0, "Weekly_Sales"].mean()
        assert fig.axes[0].get_title() == f"Holiday Effect (mean {holiday:,.0f} vs {regular:,.0f})"
