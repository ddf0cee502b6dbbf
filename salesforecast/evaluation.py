"""
Model Evaluation Module
=======================

Computes comparable accuracy metrics for every forecasting model.

Features:
    - RMSE, MAE, MAPE from aligned actual/predicted sequences
    - Explicit MAPE policy for zero actual values
    - Model comparison table sorted by RMSE
    - Console report and CSV export of the comparison
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Any, Iterable, Union

import numpy as np
import pandas as pd
from sklearn.metrics import mean_squared_error, mean_absolute_error

from .exceptions import LengthMismatchError, DivideByZeroError

logger = logging.getLogger(__name__)

ArrayLike = Union[np.ndarray, pd.Series, list]

ZERO_POLICIES = ("raise", "skip")


@dataclass(frozen=True)
class PredictionResult:
    """Actual and predicted values of one model, aligned by record index."""

    model_name: str
    actual: pd.Series
    predicted: pd.Series

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({
            "model": self.model_name,
            "actual": self.actual,
            "predicted": self.predicted,
        })


@dataclass(frozen=True)
class MetricsRow:
    model: str
    rmse: float
    mae: float
    mape: float

    def as_dict(self) -> Dict[str, Any]:
        return {"model": self.model, "rmse": self.rmse, "mae": self.mae, "mape": self.mape}


def _as_array(values: ArrayLike, label: str) -> np.ndarray:
    arr = np.asarray(values, dtype=float).ravel()
    if np.isnan(arr).any():
        raise ValueError(f"{label} values contain nulls")
    return arr


def mean_absolute_percentage_error(
    actual: np.ndarray,
    predicted: np.ndarray,
    zero_policy: str = "raise"
) -> float:
    """
    MAPE in percent.

    Args:
        actual: Ground truth values
        predicted: Predicted values
        zero_policy: "raise" fails on any zero actual, "skip" leaves those
            rows out of the average

    Raises:
        DivideByZeroError: If a zero actual is found under "raise", or every
            actual is zero under "skip"
    """
    if zero_policy not in ZERO_POLICIES:
        raise ValueError(f"Unknown zero_policy: {zero_policy}. Choose from: {ZERO_POLICIES}")

    nonzero = actual != 0
    n_zero = int((~nonzero).sum())

    if n_zero:
        if zero_policy == "raise":
            raise DivideByZeroError(
                f"MAPE undefined: {n_zero} actual value(s) are zero"
            )
        if n_zero == len(actual):
            raise DivideByZeroError("MAPE undefined: every actual value is zero")
        logger.warning(f"MAPE skips {n_zero} row(s) with zero actual value")

    errors = np.abs((actual[nonzero] - predicted[nonzero]) / actual[nonzero])
    return float(np.mean(errors) * 100)


def calculate_metrics(
    actual: ArrayLike,
    predicted: ArrayLike,
    model_name: str,
    zero_policy: str = "raise"
) -> MetricsRow:
    """
    Calculate RMSE, MAE and MAPE for one model.

    Args:
        actual: Ground truth values
        predicted: Predicted values, same order as actual
        model_name: Label used in the comparison table
        zero_policy: MAPE policy for zero actual values ("raise" or "skip")

    Returns:
        MetricsRow for the model

    Raises:
        LengthMismatchError: If the sequences differ in length
        DivideByZeroError: See mean_absolute_percentage_error
    """
    y_true = _as_array(actual, "Actual")
    y_pred = _as_array(predicted, "Predicted")

    if len(y_true) != len(y_pred):
        raise LengthMismatchError(
            f"{model_name}: {len(y_true)} actual values vs {len(y_pred)} predictions"
        )
    if len(y_true) == 0:
        raise ValueError(f"{model_name}: no values to evaluate")

    rmse = np.sqrt(mean_squared_error(y_true, y_pred))
    mae = mean_absolute_error(y_true, y_pred)
    mape = mean_absolute_percentage_error(y_true, y_pred, zero_policy=zero_policy)

    return MetricsRow(model=model_name, rmse=float(rmse), mae=float(mae), mape=mape)


def evaluate_predictions(result: PredictionResult, zero_policy: str = "raise") -> MetricsRow:
    """Compute the metrics row for a model's predictions."""
    if len(result.actual) != len(result.predicted):
        raise LengthMismatchError(
            f"{result.model_name}: {len(result.actual)} actual values vs "
            f"{len(result.predicted)} predictions"
        )

    # Align by record identity before comparing values
    predicted = result.predicted.reindex(result.actual.index)
    row = calculate_metrics(result.actual, predicted, result.model_name, zero_policy)

    logger.info(
        f"{row.model}: RMSE={row.rmse:.2f}, MAE={row.mae:.2f}, MAPE={row.mape:.2f}% "
        f"({len(result.actual)} rows)"
    )
    return row


def compare_models(rows: Iterable[MetricsRow]) -> pd.DataFrame:
    """
    Assemble metrics rows into a comparison table.

    Args:
        rows: One MetricsRow per model

    Returns:
        DataFrame with columns model, rmse, mae, mape sorted by RMSE ascending
        (ties keep their input order)
    """
    table = pd.DataFrame(
        [row.as_dict() for row in rows],
        columns=["model", "rmse", "mae", "mape"]
    )
    return table.sort_values("rmse", kind="mergesort").reset_index(drop=True)


def save_comparison(table: pd.DataFrame, path: str) -> str:
    """
    Write the comparison table to CSV.

    Args:
        table: Output of compare_models
        path: Destination file

    Returns:
        Path of the written file
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    table.to_csv(path, index=False)
    logger.info(f"Model comparison saved to {path}")
    return str(path)


def print_evaluation_report(table: pd.DataFrame) -> None:
    """
    Print the model comparison table to console.

    Args:
        table: Output of compare_models
    """
    print("\n" + "=" * 70)
    print("MODEL COMPARISON REPORT")
    print("=" * 70)
    print(f"{'Model':<20} {'RMSE':>15} {'MAE':>15} {'MAPE (%)':>12}")
    print("-" * 70)

    for row in table.itertuples(index=False):
        print(f"{row.model:<20} {row.rmse:>15,.2f} {row.mae:>15,.2f} {row.mape:>12.2f}")

    print("-" * 70)
    if not table.empty:
        print(f"\nBest model by RMSE: {table.iloc[0]['model']}")
    print("=" * 70 + "\n")
