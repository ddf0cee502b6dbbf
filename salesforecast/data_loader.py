"""
Data Loader Module
==================

Handles CSV ingestion of weekly store sales, schema enforcement and basic
data quality checks.

Functions:
    - load_config: Load YAML configuration file
    - load_data: Load the sales CSV into a typed table
    - parse_records: Convert raw string columns into typed SalesRecords
    - validate_data: Check data quality constraints
    - get_data_summary: Generate basic statistics
"""

import logging
from pathlib import Path
from typing import Dict, Any, Tuple

import pandas as pd
import numpy as np
import yaml

from .exceptions import LoadError
from .schema import (
    STORE_COL, DATE_COL, TARGET_COL, HOLIDAY_COL, FLOAT_COLS,
    RAW_COLUMNS, DATE_FORMAT,
)

logger = logging.getLogger(__name__)

# The header occupies line 1, so data row i (0-based) is file line i + 2
_HEADER_LINES = 2


def load_config(config_path: str = "config/config.yaml") -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to the configuration file

    Returns:
        Dictionary containing configuration parameters

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is malformed
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r') as f:
        config = yaml.safe_load(f) or {}

    logger.info(f"Loaded configuration from {config_path}")
    return config


def load_data(file_path: str, date_format: str = DATE_FORMAT) -> pd.DataFrame:
    """
    Load the weekly sales CSV and return a typed SalesRecord table.

    Every field is read as a string first so that type errors can be
    reported against the exact file line.

    Args:
        file_path: Path to the CSV file
        date_format: strftime format of the Date column

    Returns:
        DataFrame with one row per (store, week)

    Raises:
        LoadError: If the file is missing, empty or contains a malformed row
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise LoadError(f"Data file not found: {file_path}")

    # header=None so the header line fixes the field count for every data line;
    # blank lines are kept so row positions match file lines
    try:
        lines = pd.read_csv(
            file_path,
            header=None,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=False,
            skipinitialspace=True,
        )
    except pd.errors.EmptyDataError as e:
        raise LoadError(f"Data file is empty: {file_path}") from e
    except pd.errors.ParserError as e:
        # The tokenizer message names the offending line and its field count
        raise LoadError(f"Malformed row in {file_path}: {e}") from e

    raw = lines.iloc[1:].reset_index(drop=True)
    raw.columns = lines.iloc[0].tolist()

    df = parse_records(raw, date_format=date_format, source=str(file_path))
    logger.info(f"Loaded data from {file_path}: {df.shape[0]} rows × {df.shape[1]} columns")

    return df


def _check_columns(raw: pd.DataFrame, source: str) -> None:
    columns = [str(c).strip() for c in raw.columns]
    missing = [c for c in RAW_COLUMNS if c not in columns]
    extra = [c for c in columns if c not in RAW_COLUMNS]
    repeated = [c for c in RAW_COLUMNS if columns.count(c) > 1]

    if missing or extra:
        raise LoadError(
            f"Unexpected header in {source}: missing columns {missing}, "
            f"unexpected columns {extra}"
        )
    if repeated:
        raise LoadError(f"Unexpected header in {source}: repeated columns {repeated}")


def _fail_on_invalid(mask: pd.Series, column: str, raw: pd.DataFrame, source: str, reason: str) -> None:
    """Raise LoadError naming the first row flagged by mask."""
    if not mask.any():
        return

    position = int(np.flatnonzero(mask.to_numpy())[0])
    value = raw[column].iloc[position]
    raise LoadError(
        f"{source}: line {position + _HEADER_LINES}: {reason} in column "
        f"'{column}' (value {value!r}); {int(mask.sum())} row(s) affected"
    )


def parse_records(
    raw: pd.DataFrame,
    date_format: str = DATE_FORMAT,
    source: str = "<dataframe>"
) -> pd.DataFrame:
    """
    Convert raw string columns into a typed SalesRecord table.

    Args:
        raw: DataFrame whose cells are strings, one row per data line
        date_format: strftime format of the Date column
        source: Name used in error messages (usually the file path)

    Returns:
        Typed DataFrame with columns ordered as RAW_COLUMNS

    Raises:
        LoadError: On any missing column, extra column or unparseable cell
    """
    raw = raw.copy()
    raw.columns = [str(c).strip() for c in raw.columns]
    _check_columns(raw, source)

    if raw.empty:
        raise LoadError(f"No data rows found in {source}")

    raw = raw.reset_index(drop=True)

    # Short rows come back from the tokenizer as NaN, blank cells as ''
    for col in RAW_COLUMNS:
        cells = raw[col]
        blank = cells.isna() | (cells.astype(str).str.strip() == "")
        _fail_on_invalid(blank, col, raw, source, "missing value")

    text = raw[RAW_COLUMNS].astype(str).apply(lambda s: s.str.strip())
    out = pd.DataFrame(index=raw.index)

    # Store must be an integer identifier
    store = pd.to_numeric(text[STORE_COL], errors="coerce")
    _fail_on_invalid(store.isna() | (store % 1 != 0), STORE_COL, raw, source,
                     "store id is not an integer")
    out[STORE_COL] = store.astype("int64")

    dates = pd.to_datetime(text[DATE_COL], format=date_format, errors="coerce")
    _fail_on_invalid(dates.isna(), DATE_COL, raw, source,
                     f"date does not match format {date_format}")
    out[DATE_COL] = dates

    sales = pd.to_numeric(text[TARGET_COL], errors="coerce")
    _fail_on_invalid(sales.isna(), TARGET_COL, raw, source, "non-numeric value")
    out[TARGET_COL] = sales.astype("float64")

    flag = pd.to_numeric(text[HOLIDAY_COL], errors="coerce")
    _fail_on_invalid(~flag.isin([0, 1]), HOLIDAY_COL, raw, source,
                     "holiday flag must be 0 or 1")
    out[HOLIDAY_COL] = flag.astype("int64")

    for col in FLOAT_COLS:
        values = pd.to_numeric(text[col], errors="coerce")
        _fail_on_invalid(values.isna(), col, raw, source, "non-numeric value")
        out[col] = values.astype("float64")

    return out[RAW_COLUMNS]


def validate_data(df: pd.DataFrame, strict: bool = True) -> Tuple[bool, Dict[str, Any]]:
    """
    Validate data quality constraints for the sales table.

    Checks:
        - No negative weekly sales
        - No duplicate (store, date) keys
        - No extreme outliers (> 4 std) in numeric columns
        - Every store has at least one holiday week and one regular week

    Args:
        df: Typed DataFrame from load_data
        strict: If True, raise errors on validation failure

    Returns:
        Tuple of (is_valid, validation_report)
    """
    report = {
        "total_rows": len(df),
        "n_stores": int(df[STORE_COL].nunique()),
        "issues": []
    }

    # Check 1: Negative sales
    negative = int((df[TARGET_COL] < 0).sum())
    if negative > 0:
        issue = f"Negative weekly sales: {negative} rows"
        report["issues"].append(issue)
        logger.warning(issue)

    # Check 2: Duplicate keys
    duplicates = int(df.duplicated(subset=[STORE_COL, DATE_COL]).sum())
    if duplicates > 0:
        issue = f"Duplicate (store, date) keys found: {duplicates}"
        report["issues"].append(issue)
        logger.warning(issue)

    # Check 3: Outliers
    for col in [TARGET_COL] + FLOAT_COLS:
        col_std = df[col].std()
        if not col_std or np.isnan(col_std):
            continue
        outliers = int(((df[col] - df[col].mean()).abs() > 4 * col_std).sum())
        if outliers > 0:
            issue = f"Column '{col}' has {outliers} potential outliers (>4 std)"
            report["issues"].append(issue)
            logger.warning(issue)

    # Check 4: Holiday coverage
    coverage = df.groupby(STORE_COL)[HOLIDAY_COL].nunique()
    single_class = coverage[coverage < 2].index.tolist()
    if single_class:
        issue = f"Stores without both holiday and regular weeks: {single_class}"
        report["issues"].append(issue)
        logger.warning(issue)

    is_valid = len(report["issues"]) == 0
    report["is_valid"] = is_valid

    if strict and not is_valid:
        raise ValueError(f"Data validation failed: {report['issues']}")

    return is_valid, report


def get_data_summary(df: pd.DataFrame) -> Dict[str, Any]:
    """
    Generate summary statistics for the sales table.

    Args:
        df: DataFrame to summarize

    Returns:
        Dictionary containing summary statistics
    """
    summary = {
        "shape": df.shape,
        "n_stores": int(df[STORE_COL].nunique()),
        "date_start": df[DATE_COL].min().strftime("%Y-%m-%d"),
        "date_end": df[DATE_COL].max().strftime("%Y-%m-%d"),
        "n_holiday_weeks": int(df[HOLIDAY_COL].sum()),
        "statistics": {}
    }

    for col in [TARGET_COL] + FLOAT_COLS:
        summary["statistics"][col] = {
            "count": int(df[col].count()),
            "mean": float(df[col].mean()),
            "std": float(df[col].std()),
            "min": float(df[col].min()),
            "50%": float(df[col].quantile(0.50)),
            "max": float(df[col].max()),
        }

    return summary


def print_data_summary(df: pd.DataFrame) -> None:
    """
    Print a formatted summary of the dataset to console.

    Args:
        df: DataFrame to summarize
    """
    summary = get_data_summary(df)

    print("\n" + "=" * 60)
    print("DATASET SUMMARY")
    print("=" * 60)
    print(f"Shape: {df.shape[0]} rows × {df.shape[1]} columns")
    print(f"Stores: {summary['n_stores']}")
    print(f"Period: {summary['date_start']} to {summary['date_end']}")
    print(f"Holiday weeks: {summary['n_holiday_weeks']}")

    print("\nBasic Statistics:")
    print("-" * 40)
    print(df[[TARGET_COL] + FLOAT_COLS].describe().round(2).to_string())
    print("=" * 60 + "\n")
