"""
Test Suite for Data Loader Module
=================================

Tests for CSV ingestion, schema enforcement and LoadError reporting.
"""

import pytest
import pandas as pd

from salesforecast.data_loader import load_config, load_data, parse_records, validate_data, get_data_summary
from salesforecast.exceptions import LoadError, ForecastError
from salesforecast.schema import RAW_COLUMNS

HEADER = "Store,Date,Weekly_Sales,Holiday_Flag,Temperature,Fuel_Price,CPI,Unemployment"
ROW_1 = "1,05-02-2010,1643690.90,0,42.31,2.572,211.0963582,8.106"
ROW_2 = "1,12-02-2010,1641957.44,1,38.51,2.548,211.2421698,8.106"


def _write(tmp_path, *lines):
    path = tmp_path / "input.csv"
    path.write_text("\n".join(lines) + "\n")
    return path


class TestLoadData:
    """Tests for load_data and parse_records."""

    def test_loads_typed_records(self, tmp_path):
        """Test a well-formed file produces the typed table."""
        df = load_data(_write(tmp_path, HEADER, ROW_1, ROW_2))

        assert list(df.columns) == RAW_COLUMNS
        assert len(df) == 2
        assert df["Store"].dtype == "int64"
        assert df["Holiday_Flag"].dtype == "int64"
        assert pd.api.types.is_datetime64_any_dtype(df["Date"])
        assert df.loc[0, "Date"] == pd.Timestamp("2010-02-05")
        assert df.loc[1, "Weekly_Sales"] == pytest.approx(1641957.44)

    def test_round_trip_fixture(self, sales_csv, sales_df):
        """Test the generated fixture file loads back unchanged."""
        df = load_data(sales_csv)

        assert len(df) == len(sales_df)
        pd.testing.assert_series_equal(df["Date"], sales_df["Date"], check_names=False)
        assert (df["Store"].to_numpy() == sales_df["Store"].to_numpy()).all()

    def test_missing_file(self, tmp_path):
        """Test a missing file raises LoadError."""
        with pytest.raises(LoadError, match="not found"):
            load_data(tmp_path / "absent.csv")

    def test_empty_file(self, tmp_path):
        """Test an empty file raises LoadError."""
        path = tmp_path / "empty.csv"
        path.write_text("")

        with pytest.raises(LoadError, match="empty"):
            load_data(path)

    def test_header_only(self, tmp_path):
        """Test a header with no data rows raises LoadError."""
        with pytest.raises(LoadError, match="No data rows"):
            load_data(_write(tmp_path, HEADER))

    def test_missing_column(self, tmp_path):
        """Test a header without CPI is rejected."""
        header = HEADER.replace(",CPI", "")
        row = "1,05-02-2010,1643690.90,0,42.31,2.572,8.106"

        with pytest.raises(LoadError, match="missing columns \\['CPI'\\]"):
            load_data(_write(tmp_path, header, row))

    def test_extra_column(self, tmp_path):
        """Test an unexpected column is rejected."""
        with pytest.raises(LoadError, match="unexpected columns \\['Region'\\]"):
            load_data(_write(tmp_path, HEADER + ",Region", ROW_1 + ",North"))

    def test_duplicate_column(self, tmp_path):
        """Test a header repeating a required column is rejected."""
        with pytest.raises(LoadError, match="repeated columns \\['CPI'\\]"):
            load_data(_write(tmp_path, HEADER + ",CPI", ROW_1 + ",211.0"))

    def test_blank_line_is_reported_at_its_line(self, tmp_path):
        """Test a blank line between rows fails at its own file line."""
        bad = "1,2010-02-19,1611968.17,0,39.93,2.514,211.2891429,8.106"

        with pytest.raises(LoadError, match="line 4: missing value"):
            load_data(_write(tmp_path, HEADER, ROW_1, ROW_2, "", bad))

    def test_row_with_too_many_fields(self, tmp_path):
        """Test an over-long row fails and names its line."""
        with pytest.raises(LoadError, match="line 3"):
            load_data(_write(tmp_path, HEADER, ROW_1, ROW_2 + ",99"))

    def test_row_with_too_few_fields(self, tmp_path):
        """Test a truncated row fails and names its line."""
        with pytest.raises(LoadError, match="line 3.*missing value"):
            load_data(_write(tmp_path, HEADER, ROW_1, "1,12-02-2010,1641957.44"))

    def test_unparseable_date(self, tmp_path):
        """Test an ISO date is rejected under the DD-MM-YYYY format."""
        bad = ROW_2.replace("12-02-2010", "2010-02-12")

        with pytest.raises(LoadError, match="line 3.*'Date'"):
            load_data(_write(tmp_path, HEADER, ROW_1, bad))

    def test_non_numeric_sales(self, tmp_path):
        """Test a text value in Weekly_Sales is rejected."""
        bad = ROW_1.replace("1643690.90", "n/a")

        with pytest.raises(LoadError, match="line 2.*'Weekly_Sales'"):
            load_data(_write(tmp_path, HEADER, bad))

    def test_invalid_holiday_flag(self, tmp_path):
        """Test a holiday flag outside {0, 1} is rejected."""
        bad = "1,05-02-2010,1643690.90,2,42.31,2.572,211.0963582,8.106"

        with pytest.raises(LoadError, match="holiday flag"):
            load_data(_write(tmp_path, HEADER, bad))

    def test_fractional_store(self, tmp_path):
        """Test a non-integer store id is rejected."""
        bad = ROW_1.replace("1,05-02-2010", "1.5,05-02-2010", 1)

        with pytest.raises(LoadError, match="store id"):
            load_data(_write(tmp_path, HEADER, bad))

    def test_load_error_is_forecast_error(self, tmp_path):
        """Test the error taxonomy shares a common base."""
        with pytest.raises(ForecastError):
            load_data(tmp_path / "absent.csv")

    def test_parse_records_does_not_mutate_input(self):
        """Test parse_records leaves the raw frame untouched."""
        raw = pd.DataFrame([ROW_1.split(",")], columns=HEADER.split(","))
        before = raw.copy()

        parse_records(raw)

        pd.testing.assert_frame_equal(raw, before)


class TestValidateData:
    """Tests for the non-fatal data quality report."""

    def test_clean_data_has_no_duplicate_issue(self, sales_df):
        """Test the fixture has no duplicate keys."""
        _, report = validate_data(sales_df, strict=False)

        assert not any("Duplicate" in issue for issue in report["issues"])
        assert report["n_stores"] == 3

    def test_duplicates_reported(self, sales_df):
        """Test duplicate (store, date) keys are flagged."""
        df = pd.concat([sales_df, sales_df.iloc[[0]]], ignore_index=True)

        is_valid, report = validate_data(df, strict=False)

        assert not is_valid
        assert any("Duplicate" in issue for issue in report["issues"])

    def test_strict_raises(self, sales_df):
        """Test strict validation raises on issues."""
        df = sales_df.copy()
        df.loc[0, "Weekly_Sales"] = -10.0

        with pytest.raises(ValueError, match="Negative weekly sales"):
            validate_data(df, strict=True)

    def test_summary(self, sales_df):
        """Test the summary reports stores and date span."""
        summary = get_data_summary(sales_df)

        assert summary["n_stores"] == 3
        assert summary["date_start"] == "2010-02-05"
        assert "Weekly_Sales" in summary["statistics"]


class TestLoadConfig:
    """Tests for YAML configuration loading."""

    def test_load_config(self, tmp_path):
        """Test nested YAML sections are returned as dicts."""
        path = tmp_path / "config.yaml"
        path.write_text("split:\n  test_size: 0.3\n  random_state: 7\n")

        config = load_config(str(path))

        assert config["split"]["test_size"] == 0.3
        assert config["split"]["random_state"] == 7

    def test_missing_config(self, tmp_path):
        """Test a missing config raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "absent.yaml"))

    def test_repository_config_loads(self):
        """Test the shipped config parses and has every section."""
        from pathlib import Path

        config = load_config(str(Path(__file__).resolve().parents[1] / "config" / "config.yaml"))

        for section in ["split", "models", "timeseries", "evaluation", "output"]:
            assert section in config
