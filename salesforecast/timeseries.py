"""
Time Series Module
==================

Seasonal ARIMA on a single store's weekly sales series.

The model order is chosen by exhaustive search over a bounded grid of
(p, q, P, Q), keeping the candidate with the lowest information criterion.
Differencing orders d and D and the seasonal period are fixed by config.
"""

import itertools
import logging
import warnings
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import numpy as np
import pandas as pd
from statsmodels.tsa.statespace.sarimax import SARIMAX

from .evaluation import PredictionResult
from .exceptions import DataOrderError, InsufficientDataError, PredictionError
from .schema import STORE_COL, DATE_COL, TARGET_COL

logger = logging.getLogger(__name__)

CRITERIA = ("aic", "bic", "aicc")


def store_series(enriched: pd.DataFrame, store: int) -> pd.Series:
    """
    Extract one store's weekly sales, indexed by date ascending.

    Raises:
        InsufficientDataError: If the store has no records
        DataOrderError: If a date occurs twice for the store
    """
    rows = enriched[enriched[STORE_COL] == store]
    if rows.empty:
        raise InsufficientDataError(f"No records for store {store}")

    if rows[DATE_COL].duplicated().any():
        raise DataOrderError(f"Duplicate dates in the series of store {store}")

    series = rows.set_index(DATE_COL)[TARGET_COL].sort_index().astype(float)
    series.name = f"store_{store}"
    return series


@dataclass(frozen=True)
class FittedArima:
    """Selected SARIMA model and its in-sample diagnostics."""

    order: Tuple[int, int, int]
    seasonal_order: Tuple[int, int, int, int]
    criterion: str
    score: float
    results: Any
    index: pd.Index
    n_candidates: int = 0

    @property
    def fitted_values(self) -> pd.Series:
        return pd.Series(np.asarray(self.results.fittedvalues), index=self.index, name="fitted")

    @property
    def residuals(self) -> pd.Series:
        return pd.Series(np.asarray(self.results.resid), index=self.index, name="residual")


class ArimaAdapter:
    """Seasonal ARIMA selected by information criterion."""

    name = "SARIMA"

    def __init__(
        self,
        seasonal_period: int = 52,
        d: int = 1,
        seasonal_d: int = 1,
        max_p: int = 2,
        max_q: int = 2,
        max_P: int = 0,
        max_Q: int = 1,
        criterion: str = "aic",
        min_observations: int = 60
    ):
        if criterion not in CRITERIA:
            raise ValueError(f"Unknown criterion: {criterion}. Choose from: {CRITERIA}")

        self.seasonal_period = seasonal_period
        self.d = d
        self.seasonal_d = seasonal_d
        self.max_p = max_p
        self.max_q = max_q
        self.max_P = max_P
        self.max_Q = max_Q
        self.criterion = criterion
        self.min_observations = min_observations

    def required_observations(self) -> int:
        return max(self.min_observations, self.seasonal_d * self.seasonal_period + self.d + 1)

    def candidate_orders(self):
        """Yield (order, seasonal_order) pairs in the search grid."""
        grid = itertools.product(
            range(self.max_p + 1), range(self.max_q + 1),
            range(self.max_P + 1), range(self.max_Q + 1),
        )
        for p, q, P, Q in grid:
            order = (p, self.d, q)
            if P or Q or self.seasonal_d:
                seasonal_order = (P, self.seasonal_d, Q, self.seasonal_period)
            else:
                seasonal_order = (0, 0, 0, 0)
            yield order, seasonal_order

    def fit(self, series: pd.Series) -> FittedArima:
        """
        Search the order grid and keep the best-scoring model.

        Args:
            series: Weekly sales ordered by date (see store_series)

        Returns:
            FittedArima for the selected order

        Raises:
            PredictionError: If the series contains nulls
            InsufficientDataError: If the series is too short or no
                candidate order could be fitted
        """
        if series.isna().any():
            raise PredictionError(f"{self.name}: series contains {int(series.isna().sum())} null values")

        required = self.required_observations()
        if len(series) < required:
            raise InsufficientDataError(
                f"{self.name} needs at least {required} observations, got {len(series)}"
            )

        values = series.to_numpy(dtype=float)
        best = None
        n_candidates = 0

        for order, seasonal_order in self.candidate_orders():
            n_candidates += 1
            try:
                with warnings.catch_warnings():
                    warnings.simplefilter("ignore")
                    results = SARIMAX(
                        values,
                        order=order,
                        seasonal_order=seasonal_order,
                        enforce_stationarity=False,
                        enforce_invertibility=False,
                    ).fit(disp=False)
            except (ValueError, np.linalg.LinAlgError) as e:
                logger.warning(f"{self.name}{order}x{seasonal_order} failed to fit: {e}")
                continue

            score = float(getattr(results, self.criterion))
            logger.debug(f"{self.name}{order}x{seasonal_order}: {self.criterion}={score:.2f}")
            if not np.isfinite(score):
                continue
            if best is None or score < best[0]:
                best = (score, order, seasonal_order, results)

        if best is None:
            raise InsufficientDataError(f"{self.name}: no candidate order could be fitted")

        score, order, seasonal_order, results = best
        logger.info(
            f"{self.name}: selected {order}x{seasonal_order} "
            f"({self.criterion.upper()}={score:.2f}, {n_candidates} candidates)"
        )

        return FittedArima(
            order=order,
            seasonal_order=seasonal_order,
            criterion=self.criterion,
            score=score,
            results=results,
            index=series.index,
            n_candidates=n_candidates,
        )

    def forecast(self, fitted: FittedArima, horizon: int, alpha: float = 0.05) -> pd.DataFrame:
        """
        Forecast the next `horizon` weeks.

        Args:
            fitted: Output of fit
            horizon: Number of periods to forecast
            alpha: Significance level of the confidence interval

        Returns:
            DataFrame with exactly `horizon` rows and columns
            mean, variance, lower, upper
        """
        if horizon < 1:
            raise ValueError(f"Forecast horizon must be at least 1, got {horizon}")

        prediction = fitted.results.get_forecast(steps=horizon)
        mean = np.asarray(prediction.predicted_mean, dtype=float)
        variance = np.asarray(prediction.var_pred_mean, dtype=float)
        interval = np.asarray(prediction.conf_int(alpha=alpha), dtype=float)

        return pd.DataFrame(
            {
                "mean": mean,
                "variance": variance,
                "lower": interval[:, 0],
                "upper": interval[:, 1],
            },
            index=_future_index(fitted.index, horizon),
        )

    def evaluate_holdout(
        self,
        series: pd.Series,
        holdout: int
    ) -> Tuple[FittedArima, PredictionResult]:
        """
        Fit on all but the last `holdout` weeks and forecast them.

        Returns:
            Tuple of (FittedArima, PredictionResult aligned to the held-out dates)
        """
        if holdout < 1 or holdout >= len(series):
            raise InsufficientDataError(
                f"Holdout of {holdout} weeks is not possible for a series of {len(series)}"
            )

        train, test = series.iloc[:-holdout], series.iloc[-holdout:]
        fitted = self.fit(train)
        forecast = self.forecast(fitted, horizon=holdout)

        result = PredictionResult(
            model_name=self.name,
            actual=test.astype(float),
            predicted=pd.Series(forecast["mean"].to_numpy(), index=test.index, name="predicted"),
        )
        return fitted, result


def _future_index(index: pd.Index, horizon: int) -> pd.Index:
    """Continue a date index by its median spacing; integer positions otherwise."""
    if isinstance(index, pd.DatetimeIndex) and len(index) > 1:
        step = pd.Series(index).diff().median()
        return pd.DatetimeIndex([index[-1] + step * (k + 1) for k in range(horizon)], name=index.name)

    return pd.RangeIndex(len(index), len(index) + horizon)


def build_arima(config: Dict[str, Any]) -> ArimaAdapter:
    """Build the SARIMA adapter from the `timeseries` config section."""
    ts_config = config.get('timeseries', {})
    return ArimaAdapter(
        seasonal_period=ts_config.get('seasonal_period', 52),
        d=ts_config.get('d', 1),
        seasonal_d=ts_config.get('seasonal_d', 1),
        max_p=ts_config.get('max_p', 2),
        max_q=ts_config.get('max_q', 2),
        max_P=ts_config.get('max_P', 0),
        max_Q=ts_config.get('max_Q', 1),
        criterion=ts_config.get('criterion', 'aic'),
        min_observations=ts_config.get('min_observations', 60),
    )


def print_forecast_summary(fitted: FittedArima, forecast: pd.DataFrame, store: Optional[int] = None) -> None:
    """
    Print the selected order and the forecast table.

    Args:
        fitted: Selected model
        forecast: Output of ArimaAdapter.forecast
        store: Store id shown in the header
    """
    title = f"SARIMA FORECAST - STORE {store}" if store is not None else "SARIMA FORECAST"

    print("\n" + "=" * 70)
    print(title)
    print("=" * 70)
    print(f"Order: {fitted.order} x {fitted.seasonal_order}")
    print(f"{fitted.criterion.upper()}: {fitted.score:.2f} ({fitted.n_candidates} candidates searched)")
    print(f"Residual std: {fitted.residuals.std():,.2f}")
    print(f"\n{'Week':<12} {'Forecast':>15} {'Lower':>15} {'Upper':>15}")
    print("-" * 70)

    for date, row in forecast.iterrows():
        label = date.strftime("%Y-%m-%d") if isinstance(date, pd.Timestamp) else str(date)
        print(f"{label:<12} {row['mean']:>15,.2f} {row['lower']:>15,.2f} {row['upper']:>15,.2f}")

    print("=" * 70 + "\n")
