"""
Feature Engineering Module
==========================

Derives calendar, lag and rolling features from the weekly sales table and
prepares the train/test partition shared by the cross-sectional models.

Functions:
    - holiday_indicator: Holiday / Non-Holiday category from the holiday flag
    - build_features: SalesRecords -> EnrichedRecords (per-store, no look-ahead)
    - drop_incomplete: Remove rows with null derived fields
    - split_train_test: Seeded random train/test partition
    - print_feature_summary: Console summary of the enriched table
"""

import logging
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd
from sklearn.model_selection import train_test_split

from .exceptions import DataOrderError, InsufficientDataError
from .schema import (
    STORE_COL, DATE_COL, TARGET_COL, HOLIDAY_COL,
    LAG_COLS, ROLLING_COL, HOLIDAY_INDICATOR_COL,
    HOLIDAY_LABEL, NON_HOLIDAY_LABEL, HOLIDAY_LABELS, SEED,
)

logger = logging.getLogger(__name__)

ROLLING_WINDOW = 4


def check_unique_keys(df: pd.DataFrame) -> None:
    """Raise DataOrderError if any (store, date) pair occurs more than once."""
    dup_mask = df.duplicated(subset=[STORE_COL, DATE_COL], keep=False)
    if dup_mask.any():
        dups = (
            df.loc[dup_mask, [STORE_COL, DATE_COL]]
            .drop_duplicates()
            .head(5)
            .itertuples(index=False, name=None)
        )
        examples = [(int(store), pd.Timestamp(date).strftime("%Y-%m-%d")) for store, date in dups]
        raise DataOrderError(
            f"Duplicate (store, date) keys: {int(dup_mask.sum())} rows, e.g. {examples}"
        )


def holiday_indicator(flags: pd.Series) -> pd.Categorical:
    """Map holiday flags 1 / 0 to the Holiday / Non-Holiday category."""
    return pd.Categorical(
        np.where(flags == 1, HOLIDAY_LABEL, NON_HOLIDAY_LABEL),
        categories=HOLIDAY_LABELS,
    )


def build_features(df: pd.DataFrame) -> pd.DataFrame:
    """
    Create the enriched feature table.

    Records are grouped by store and ordered by date before any lag or
    rolling value is computed, so each derived field depends only on
    strictly earlier weeks of the same store (the rolling mean also
    includes the current week).

    Derived columns:
        - year, month, week: calendar fields (week is the ISO-8601 week)
        - lag_1, lag_2: weekly sales 1 and 2 weeks earlier
        - rolling_mean_4: trailing 4-week mean, current week inclusive
        - holiday_indicator: "Holiday" / "Non-Holiday" category

    Args:
        df: Typed SalesRecord table from load_data

    Returns:
        New DataFrame sorted by (Store, Date) with a fresh RangeIndex

    Raises:
        DataOrderError: If duplicate (store, date) keys exist
    """
    check_unique_keys(df)

    out = (
        df.sort_values([STORE_COL, DATE_COL], kind="mergesort")
        .reset_index(drop=True)
        .copy()
    )

    # --- Calendar fields ---
    out["year"] = out[DATE_COL].dt.year.astype("int64")
    out["month"] = out[DATE_COL].dt.month.astype("int64")
    out["week"] = out[DATE_COL].dt.isocalendar().week.astype("int64")

    # --- Lags and rolling mean within each store ---
    sales = out.groupby(STORE_COL, sort=False)[TARGET_COL]
    for col in LAG_COLS:
        k = int(col.split("_")[1])
        out[col] = sales.shift(k)

    out[ROLLING_COL] = sales.transform(
        lambda s: s.rolling(window=ROLLING_WINDOW, min_periods=ROLLING_WINDOW).mean()
    )

    # --- Holiday category ---
    out[HOLIDAY_INDICATOR_COL] = holiday_indicator(out[HOLIDAY_COL])

    logger.info(
        f"Built features for {out[STORE_COL].nunique()} stores: "
        f"{len(out)} rows, {int(out[ROLLING_COL].notna().sum())} with full history"
    )

    return out


def drop_incomplete(df: pd.DataFrame, columns: Optional[List[str]] = None) -> pd.DataFrame:
    """
    Remove rows with null values in the given columns.

    Args:
        df: Enriched table
        columns: Columns that must be non-null (default: lag and rolling columns)

    Returns:
        Filtered copy; the index (record identity) is preserved
    """
    if columns is None:
        columns = LAG_COLS + [ROLLING_COL]

    complete = df.dropna(subset=columns).copy()
    dropped = len(df) - len(complete)
    if dropped:
        logger.info(f"Dropped {dropped} rows with incomplete history in {columns}")

    return complete


def split_train_test(
    df: pd.DataFrame,
    test_size: float = 0.2,
    random_state: int = SEED
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Split rows into a fixed-proportion random train/test partition.

    The same seed and input always give the same partition.

    Args:
        df: Rows to split
        test_size: Fraction of rows held out for testing
        random_state: Seed for the shuffle

    Returns:
        Tuple of (train, test) DataFrames
    """
    if len(df) < 2:
        raise InsufficientDataError(f"Need at least 2 rows to split, got {len(df)}")

    train, test = train_test_split(
        df, test_size=test_size, random_state=random_state, shuffle=True
    )

    logger.info(f"Train/Test split: {len(train)} train rows, {len(test)} test rows")
    return train, test


def print_feature_summary(df: pd.DataFrame) -> None:
    """
    Print a summary of the enriched feature table.

    Args:
        df: Output of build_features
    """
    derived = LAG_COLS + [ROLLING_COL]

    print("\n" + "=" * 50)
    print("FEATURE SUMMARY")
    print("=" * 50)
    print(f"Rows: {len(df)}")
    print(f"Stores: {df[STORE_COL].nunique()}")
    print(f"Complete rows (all lags available): {int(df[derived].notna().all(axis=1).sum())}")
    print("\nNull values per derived column:")
    for col in derived:
        print(f"  - {col}: {int(df[col].isna().sum())}")
    print("\nHoliday indicator:")
    for label, count in df[HOLIDAY_INDICATOR_COL].value_counts(sort=False).items():
        print(f"  - {label}: {count}")
    print("=" * 50 + "\n")
