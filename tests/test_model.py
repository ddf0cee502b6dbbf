"""
Test Suite for Model Training Module
====================================

Tests for the linear, decision tree and XGBoost adapters.
"""

import dataclasses

import numpy as np
import pandas as pd
import pytest

from salesforecast.exceptions import InsufficientDataError, PredictionError
from salesforecast.features import build_features, drop_incomplete
from salesforecast.model import (
    FittedModel,
    LinearAdapter,
    TreeAdapter,
    EnsembleAdapter,
    build_adapters,
    train_and_predict,
)
from salesforecast.schema import BASE_FEATURES


@pytest.fixture
def enriched(sales_df):
    return build_features(sales_df)


@pytest.fixture
def small_ensemble():
    return EnsembleAdapter(max_rounds=30, nfold=3, early_stopping_rounds=5)


class TestLinearAdapter:
    """Tests for the least-squares model."""

    def test_recovers_exact_linear_relation(self, enriched):
        """Test a noiseless linear target is fitted exactly."""
        rows = enriched.copy()
        rows["Weekly_Sales"] = (
            1000.0
            + 50.0 * rows["Fuel_Price"]
            + 2.0 * rows["CPI"]
            - 30.0 * rows["Unemployment"]
            + 400.0 * rows["Holiday_Flag"]
        )
        adapter = LinearAdapter()

        fitted = adapter.fit(rows)
        predictions = adapter.predict(fitted, rows)

        np.testing.assert_allclose(predictions, rows["Weekly_Sales"].to_numpy(), rtol=1e-6)
        assert fitted.training_info["coefficients"]["Holiday_Flag"] == pytest.approx(400.0, rel=1e-4)
        assert fitted.features == tuple(BASE_FEATURES)

    def test_too_few_rows(self, enriched):
        """Test fewer rows than features + 1 raises InsufficientDataError."""
        with pytest.raises(InsufficientDataError):
            LinearAdapter().fit(enriched.iloc[:4])

    def test_null_feature_at_predict(self, enriched):
        """Test a null feature value raises PredictionError."""
        adapter = LinearAdapter()
        fitted = adapter.fit(enriched)
        rows = enriched.iloc[:5].copy()
        rows.loc[rows.index[2], "CPI"] = np.nan

        with pytest.raises(PredictionError, match="CPI"):
            adapter.predict(fitted, rows)

    def test_missing_feature_column(self, enriched):
        """Test an absent feature column raises PredictionError."""
        adapter = LinearAdapter()
        fitted = adapter.fit(enriched)

        with pytest.raises(PredictionError, match="Fuel_Price"):
            adapter.predict(fitted, enriched.drop(columns=["Fuel_Price"]))

    def test_empty_rows(self, enriched):
        """Test predicting zero rows returns an empty array."""
        adapter = LinearAdapter()
        fitted = adapter.fit(enriched)

        assert adapter.predict(fitted, enriched.iloc[:0]).shape == (0,)


class TestTreeAdapter:
    """Tests for the regression tree."""

    def test_deterministic(self, enriched):
        """Test two fits on the same rows predict identically."""
        adapter = TreeAdapter()

        first = adapter.predict(adapter.fit(enriched), enriched)
        second = adapter.predict(adapter.fit(enriched), enriched)

        np.testing.assert_array_equal(first, second)

    def test_respects_min_leaf(self, enriched):
        """Test the tree has no more leaves than rows / min_samples_leaf."""
        fitted = TreeAdapter(min_samples_leaf=7).fit(enriched)

        assert fitted.training_info["n_leaves"] <= len(enriched) // 7

    def test_rejects_other_models(self, enriched):
        """Test a fitted linear model cannot be used by the tree."""
        linear = LinearAdapter().fit(enriched)

        with pytest.raises(ValueError, match="Linear Regression"):
            TreeAdapter().predict(linear, enriched)


class TestEnsembleAdapter:
    """Tests for the XGBoost model."""

    def test_deterministic(self, enriched, small_ensemble):
        """Test the same seed selects the same rounds and predictions."""
        rows = drop_incomplete(enriched)

        first = small_ensemble.fit(rows)
        second = small_ensemble.fit(rows)

        assert first.training_info["best_rounds"] == second.training_info["best_rounds"]
        assert 1 <= first.training_info["best_rounds"] <= 30
        np.testing.assert_allclose(
            small_ensemble.predict(first, rows), small_ensemble.predict(second, rows)
        )

    def test_fit_drops_incomplete_history(self, enriched, small_ensemble):
        """Test rows without lags are excluded from training."""
        fitted = small_ensemble.fit(enriched)

        assert fitted.training_info["n_samples"] == len(drop_incomplete(enriched))

    def test_predict_rejects_null_lags(self, enriched, small_ensemble):
        """Test prediction on a row without lag_2 raises PredictionError."""
        fitted = small_ensemble.fit(enriched)

        with pytest.raises(PredictionError, match="lag"):
            small_ensemble.predict(fitted, enriched.iloc[:2])

    def test_fewer_rows_than_folds(self, enriched, small_ensemble):
        """Test fewer complete rows than folds raises InsufficientDataError."""
        rows = drop_incomplete(enriched).iloc[:2]

        with pytest.raises(InsufficientDataError):
            small_ensemble.fit(rows)


class TestTrainAndPredict:
    """Tests for the shared split-fit-predict helper."""

    def test_predictions_align_with_test_rows(self, enriched):
        """Test predictions carry the index of the held-out rows."""
        fitted, result = train_and_predict(LinearAdapter(), enriched, test_size=0.2, random_state=42)

        assert isinstance(fitted, FittedModel)
        assert result.model_name == "Linear Regression"
        assert result.actual.index.equals(result.predicted.index)
        assert len(result.actual) == int(np.ceil(len(enriched) * 0.2))
        pd.testing.assert_series_equal(
            result.actual, enriched.loc[result.actual.index, "Weekly_Sales"], check_names=False
        )

    def test_fitted_model_is_immutable(self, enriched):
        """Test FittedModel fields cannot be reassigned."""
        fitted, _ = train_and_predict(TreeAdapter(), enriched)

        with pytest.raises(dataclasses.FrozenInstanceError):
            fitted.name = "other"


class TestBuildAdapters:
    """Tests for building models from configuration."""

    def test_all_enabled_by_default(self):
        """Test an empty config builds all three models in report order."""
        names = [adapter.name for adapter in build_adapters({})]

        assert names == ["Linear Regression", "Decision Tree", "XGBoost"]

    def test_disabled_models(self):
        """Test disabled models are skipped and settings are passed through."""
        config = {
            "split": {"random_state": 7},
            "models": {
                "linear": {"enabled": False},
                "tree": {"enabled": False},
                "ensemble": {"max_rounds": 10, "nfold": 4},
            },
        }

        adapters = build_adapters(config)

        assert len(adapters) == 1
        assert adapters[0].max_rounds == 10
        assert adapters[0].nfold == 4
        assert adapters[0].random_state == 7
