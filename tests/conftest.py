"""
Shared fixtures: synthetic weekly store sales in the raw file layout.
"""

import sys
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

# Make main.py and the package importable without installation
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from salesforecast.schema import RAW_COLUMNS


def make_sales_frame(n_stores: int = 3, n_weeks: int = 60, seed: int = 42) -> pd.DataFrame:
    """Typed sales table with a yearly pattern, a holiday bump and noise."""
    rng = np.random.default_rng(seed)
    dates = pd.date_range("2010-02-05", periods=n_weeks, freq="7D")
    week_idx = np.arange(n_weeks)

    frames = []
    for store in range(1, n_stores + 1):
        holiday = (week_idx % 13 == 5).astype(int)
        sales = (
            store * 100_000.0
            + 20_000.0 * np.sin(2 * np.pi * week_idx / 52)
            + 30_000.0 * holiday
            + rng.normal(0, 5_000.0, n_weeks)
        )
        frames.append(pd.DataFrame({
            "Store": store,
            "Date": dates,
            "Weekly_Sales": sales,
            "Holiday_Flag": holiday,
            "Temperature": rng.uniform(20, 90, n_weeks),
            "Fuel_Price": rng.uniform(2.5, 4.0, n_weeks),
            "CPI": 210 + 0.05 * week_idx + rng.normal(0, 0.5, n_weeks),
            "Unemployment": rng.uniform(6, 9, n_weeks),
        }))

    return pd.concat(frames, ignore_index=True)[RAW_COLUMNS]


def write_sales_csv(df: pd.DataFrame, path: Path) -> Path:
    """Write a typed sales table in the DD-MM-YYYY file layout."""
    out = df.copy()
    out["Date"] = out["Date"].dt.strftime("%d-%m-%Y")
    out.to_csv(path, index=False)
    return path


@pytest.fixture
def sales_df():
    return make_sales_frame()


@pytest.fixture
def sales_csv(tmp_path, sales_df):
    return write_sales_csv(sales_df, tmp_path / "sales.csv")
