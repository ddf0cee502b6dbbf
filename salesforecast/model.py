"""
Model Training Module
=====================

Cross-sectional forecasting models over the enriched feature table.

Every model follows the same two-step contract:
    fit(train_rows) -> FittedModel            (immutable, reusable)
    predict(fitted, rows) -> np.ndarray

Models:
    - LinearAdapter: ordinary least squares on the economic indicators
    - TreeAdapter: CART regression tree (squared-error splits)
    - EnsembleAdapter: XGBoost with k-fold selection of the round count
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Any, List, Sequence, Tuple

import numpy as np
import pandas as pd
import xgboost as xgb
from sklearn.linear_model import LinearRegression
from sklearn.tree import DecisionTreeRegressor

from .evaluation import PredictionResult
from .exceptions import InsufficientDataError, PredictionError
from .features import drop_incomplete, split_train_test
from .schema import BASE_FEATURES, ENSEMBLE_FEATURES, TARGET_COL, SEED

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FittedModel:
    """Trained estimator plus the feature order it was trained on."""

    name: str
    estimator: Any
    features: Tuple[str, ...]
    training_info: Dict[str, Any] = field(default_factory=dict)


class ModelAdapter:
    """
    Base class for the cross-sectional models.

    Subclasses set `name` and `features` and implement `_fit_estimator`
    and `_predict_estimator`.
    """

    name = "base"
    features: Tuple[str, ...] = ()

    def min_rows(self) -> int:
        return 1

    def prepare(self, enriched: pd.DataFrame) -> pd.DataFrame:
        """Rows of the enriched table this model can train and predict on."""
        return enriched

    def feature_matrix(self, rows: pd.DataFrame, stage: str = "predict") -> pd.DataFrame:
        """
        Select the model features, failing on absent or null values.

        Raises:
            PredictionError: If a feature column is missing or has nulls
        """
        missing = [c for c in self.features if c not in rows.columns]
        if missing:
            raise PredictionError(f"{self.name} {stage}: missing feature columns {missing}")

        X = rows[list(self.features)]
        null_counts = X.isna().sum()
        if null_counts.any():
            bad = null_counts[null_counts > 0].to_dict()
            raise PredictionError(f"{self.name} {stage}: null values in features {bad}")

        return X.astype(float)

    def fit(self, train: pd.DataFrame) -> FittedModel:
        """
        Train the model on the provided rows.

        Args:
            train: Training rows containing the features and the target

        Returns:
            FittedModel holding the trained estimator

        Raises:
            InsufficientDataError: If there are fewer rows than the model needs
        """
        if len(train) < self.min_rows():
            raise InsufficientDataError(
                f"{self.name} needs at least {self.min_rows()} training rows, got {len(train)}"
            )

        start_time = datetime.now()
        X = self.feature_matrix(train, stage="fit")
        y = train[TARGET_COL].astype(float)

        logger.info(f"Training {self.name} on X={X.shape}")
        estimator, info = self._fit_estimator(X, y)

        duration = (datetime.now() - start_time).total_seconds()
        info.update({
            "n_samples": int(len(X)),
            "n_features": int(X.shape[1]),
            "training_duration_seconds": duration,
        })
        logger.info(f"{self.name} trained in {duration:.2f} seconds")

        return FittedModel(
            name=self.name,
            estimator=estimator,
            features=tuple(self.features),
            training_info=info,
        )

    def predict(self, fitted: FittedModel, rows: pd.DataFrame) -> np.ndarray:
        """
        Make predictions using a fitted model.

        Args:
            fitted: Output of fit
            rows: Rows to predict; every feature must be present and non-null

        Returns:
            Predictions array of shape (n_rows,)
        """
        if fitted.name != self.name:
            raise ValueError(f"Fitted model '{fitted.name}' was not produced by {self.name}")

        X = self.feature_matrix(rows)
        if X.empty:
            return np.array([], dtype=float)

        return np.asarray(self._predict_estimator(fitted, X), dtype=float)

    def _fit_estimator(self, X: pd.DataFrame, y: pd.Series) -> Tuple[Any, Dict[str, Any]]:
        raise NotImplementedError

    def _predict_estimator(self, fitted: FittedModel, X: pd.DataFrame) -> np.ndarray:
        raise NotImplementedError


class LinearAdapter(ModelAdapter):
    """Ordinary least squares with intercept, no interaction terms."""

    name = "Linear Regression"

    def __init__(self, features: Sequence[str] = BASE_FEATURES):
        self.features = tuple(features)

    def min_rows(self) -> int:
        return len(self.features) + 1

    def _fit_estimator(self, X, y):
        model = LinearRegression()
        model.fit(X, y)
        info = {
            "intercept": float(model.intercept_),
            "coefficients": dict(zip(self.features, map(float, model.coef_))),
        }
        return model, info

    def _predict_estimator(self, fitted, X):
        return fitted.estimator.predict(X)


class TreeAdapter(ModelAdapter):
    """Regression tree with squared-error (ANOVA) splits."""

    name = "Decision Tree"

    def __init__(
        self,
        features: Sequence[str] = BASE_FEATURES,
        min_samples_split: int = 20,
        min_samples_leaf: int = 7,
        max_depth: int = 30,
        random_state: int = SEED
    ):
        self.features = tuple(features)
        self.min_samples_split = min_samples_split
        self.min_samples_leaf = min_samples_leaf
        self.max_depth = max_depth
        self.random_state = random_state

    def min_rows(self) -> int:
        return 2

    def _fit_estimator(self, X, y):
        model = DecisionTreeRegressor(
            criterion="squared_error",
            min_samples_split=self.min_samples_split,
            min_samples_leaf=self.min_samples_leaf,
            max_depth=self.max_depth,
            random_state=self.random_state,
        )
        model.fit(X, y)
        info = {
            "depth": int(model.get_depth()),
            "n_leaves": int(model.get_n_leaves()),
            "hyperparameters": {
                "min_samples_split": self.min_samples_split,
                "min_samples_leaf": self.min_samples_leaf,
                "max_depth": self.max_depth,
            },
        }
        return model, info

    def _predict_estimator(self, fitted, X):
        return fitted.estimator.predict(X)


class EnsembleAdapter(ModelAdapter):
    """
    Gradient-boosted trees on the extended feature set.

    The number of boosting rounds is chosen by k-fold cross-validation on
    the training rows (lowest mean held-out RMSE), then the booster is
    refit once on all training rows with that round count.
    """

    name = "XGBoost"

    def __init__(
        self,
        features: Sequence[str] = ENSEMBLE_FEATURES,
        max_rounds: int = 500,
        nfold: int = 5,
        early_stopping_rounds: int = 20,
        learning_rate: float = 0.1,
        max_depth: int = 6,
        subsample: float = 0.8,
        colsample_bytree: float = 0.8,
        n_jobs: int = 1,
        random_state: int = SEED
    ):
        self.features = tuple(features)
        self.max_rounds = max_rounds
        self.nfold = nfold
        self.early_stopping_rounds = early_stopping_rounds
        self.learning_rate = learning_rate
        self.max_depth = max_depth
        self.subsample = subsample
        self.colsample_bytree = colsample_bytree
        self.n_jobs = n_jobs
        self.random_state = random_state

    def min_rows(self) -> int:
        return self.nfold

    def _params(self) -> Dict[str, Any]:
        return {
            "objective": "reg:squarederror",
            "eval_metric": "rmse",
            "eta": self.learning_rate,
            "max_depth": self.max_depth,
            "subsample": self.subsample,
            "colsample_bytree": self.colsample_bytree,
            "tree_method": "hist",
            "nthread": self.n_jobs,
            "seed": self.random_state,
        }

    def prepare(self, enriched: pd.DataFrame) -> pd.DataFrame:
        return drop_incomplete(enriched, [c for c in self.features if c in enriched.columns])

    def fit(self, train: pd.DataFrame) -> FittedModel:
        # Training tolerates incomplete history by dropping it; predict does not
        return super().fit(self.prepare(train))

    def _fit_estimator(self, X, y):
        params = self._params()
        dtrain = xgb.DMatrix(X, label=y, feature_names=list(self.features))

        cv_results = xgb.cv(
            params,
            dtrain,
            num_boost_round=self.max_rounds,
            nfold=self.nfold,
            early_stopping_rounds=self.early_stopping_rounds,
            seed=self.random_state,
            shuffle=True,
            as_pandas=True,
            verbose_eval=False,
        )
        test_rmse = cv_results["test-rmse-mean"].to_numpy()
        best_rounds = int(np.argmin(test_rmse)) + 1

        logger.info(
            f"{self.name}: {self.nfold}-fold CV selected {best_rounds} rounds "
            f"(held-out RMSE {test_rmse[best_rounds - 1]:.2f})"
        )

        booster = xgb.train(params, dtrain, num_boost_round=best_rounds)

        info = {
            "best_rounds": best_rounds,
            "cv_rmse": float(test_rmse[best_rounds - 1]),
            "hyperparameters": {
                "max_rounds": self.max_rounds,
                "nfold": self.nfold,
                "learning_rate": self.learning_rate,
                "max_depth": self.max_depth,
                "subsample": self.subsample,
                "colsample_bytree": self.colsample_bytree,
            },
        }
        return booster, info

    def _predict_estimator(self, fitted, X):
        dmatrix = xgb.DMatrix(X, feature_names=list(fitted.features))
        return fitted.estimator.predict(dmatrix)


def build_adapters(config: Dict[str, Any]) -> List[ModelAdapter]:
    """
    Build the enabled cross-sectional models from configuration.

    Args:
        config: Full configuration dictionary

    Returns:
        List of adapters in report order (linear, tree, ensemble)
    """
    models_config = config.get('models', {})
    seed = config.get('split', {}).get('random_state', SEED)
    adapters: List[ModelAdapter] = []

    linear_config = models_config.get('linear', {})
    if linear_config.get('enabled', True):
        adapters.append(LinearAdapter())

    tree_config = models_config.get('tree', {})
    if tree_config.get('enabled', True):
        adapters.append(TreeAdapter(
            min_samples_split=tree_config.get('min_samples_split', 20),
            min_samples_leaf=tree_config.get('min_samples_leaf', 7),
            max_depth=tree_config.get('max_depth', 30),
            random_state=seed,
        ))

    ensemble_config = models_config.get('ensemble', {})
    if ensemble_config.get('enabled', True):
        adapters.append(EnsembleAdapter(
            max_rounds=ensemble_config.get('max_rounds', 500),
            nfold=ensemble_config.get('nfold', 5),
            early_stopping_rounds=ensemble_config.get('early_stopping_rounds', 20),
            learning_rate=ensemble_config.get('learning_rate', 0.1),
            max_depth=ensemble_config.get('max_depth', 6),
            subsample=ensemble_config.get('subsample', 0.8),
            colsample_bytree=ensemble_config.get('colsample_bytree', 0.8),
            n_jobs=ensemble_config.get('n_jobs', 1),
            random_state=seed,
        ))

    return adapters


def train_and_predict(
    adapter: ModelAdapter,
    enriched: pd.DataFrame,
    test_size: float = 0.2,
    random_state: int = SEED
) -> Tuple[FittedModel, PredictionResult]:
    """
    Fit a model on a seeded random partition and predict the held-out rows.

    Args:
        adapter: Model to train
        enriched: Output of build_features
        test_size: Fraction of eligible rows held out
        random_state: Split seed

    Returns:
        Tuple of (FittedModel, PredictionResult aligned to the test rows)
    """
    rows = adapter.prepare(enriched)
    train, test = split_train_test(rows, test_size=test_size, random_state=random_state)

    fitted = adapter.fit(train)
    predictions = adapter.predict(fitted, test)

    result = PredictionResult(
        model_name=adapter.name,
        actual=test[TARGET_COL].astype(float),
        predicted=pd.Series(predictions, index=test.index, name="predicted"),
    )
    return fitted, result


def print_model_summary(fitted: FittedModel) -> None:
    """
    Print a summary of a trained model.

    Args:
        fitted: Trained model
    """
    info = fitted.training_info

    print("\n" + "=" * 50)
    print(f"MODEL SUMMARY: {fitted.name}")
    print("=" * 50)
    print(f"Features: {', '.join(fitted.features)}")
    print(f"Samples: {info.get('n_samples', 'N/A')}")
    print(f"Duration: {info.get('training_duration_seconds', 0.0):.2f}s")

    if "coefficients" in info:
        print(f"Intercept: {info['intercept']:.2f}")
        for name, coef in info["coefficients"].items():
            print(f"  - {name}: {coef:.4f}")
    if "n_leaves" in info:
        print(f"Tree depth: {info['depth']}, leaves: {info['n_leaves']}")
    if "best_rounds" in info:
        print(f"Boosting rounds (CV): {info['best_rounds']} (CV RMSE {info['cv_rmse']:.2f})")

    print("=" * 50 + "\n")
