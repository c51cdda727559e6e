from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional

import numpy as np
import pandas as pd
from lightgbm import LGBMClassifier
from sklearn.ensemble import RandomForestClassifier
from sklearn.neighbors import KNeighborsClassifier
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler

from .exceptions import UndefinedMetricError, UnfittedModelError


class ModelFamily(str, Enum):
    RANDOM_FOREST = "random_forest"
    KNN = "knn"
    GRADIENT_BOOSTED = "gradient_boosted"


DEFAULT_PARAMS: dict[ModelFamily, dict[str, Any]] = {
    ModelFamily.RANDOM_FOREST: {"n_estimators": 500, "max_features": "sqrt", "min_samples_leaf": 1},
    ModelFamily.KNN: {"n_neighbors": 5, "weights": "uniform"},
    ModelFamily.GRADIENT_BOOSTED: {
        "n_estimators": 200,
        "learning_rate": 0.05,
        "max_depth": 3,
        "num_leaves": 8,
        "min_child_samples": 5,
    },
}


@dataclass(frozen=True)
class ModelSpec:
    """A model family plus hyperparameters; builds fresh unfitted estimators."""
    family: ModelFamily
    params: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "family", ModelFamily(self.family))
        merged = dict(DEFAULT_PARAMS[self.family])
        merged.update(self.params or {})
        object.__setattr__(self, "params", merged)

    def with_params(self, **updates: Any) -> "ModelSpec":
        params = dict(self.params)
        params.update(updates)
        return ModelSpec(self.family, params)

    def build(self, random_state: int = 42):
        params = dict(self.params)

        if self.family is ModelFamily.RANDOM_FOREST:
            params.setdefault("random_state", random_state)
            return RandomForestClassifier(**params)

        if self.family is ModelFamily.KNN:
            # distances need comparable scales; the recipe leaves raw units
            return Pipeline(
                steps=[
                    ("scaler", StandardScaler()),
                    ("knn", KNeighborsClassifier(**params)),
                ]
            )

        params.setdefault("random_state", random_state)
        params.setdefault("verbosity", -1)
        params.setdefault("n_jobs", 1)
        return LGBMClassifier(**params)

    def describe(self) -> str:
        args = ", ".join(f"{k}={v}" for k, v in sorted(self.params.items()))
        return f"{self.family.value}({args})"


class ModelCandidate:
    """
    One classifier of a given spec. Unfitted until ``fit`` is called; every
    fold and every grid point gets its own instance.

    Input features must be purely numeric (post-recipe). Predictions carry a
    hard 0/1 label and both class probabilities.
    """

    def __init__(self, spec: ModelSpec, random_state: int = 42):
        self.spec = spec
        self.random_state = random_state
        self.estimator_ = None
        self.feature_names_: Optional[list[str]] = None

    @property
    def is_fitted(self) -> bool:
        return self.estimator_ is not None

    def fit(self, X: pd.DataFrame, y: np.ndarray) -> "ModelCandidate":
        y = np.asarray(y).astype(int)
        estimator = self.spec.build(self.random_state)
        with warnings.catch_warnings():
            warnings.filterwarnings("ignore", category=UserWarning, module="lightgbm")
            estimator.fit(X.to_numpy(dtype=float), y)
        self.estimator_ = estimator
        self.feature_names_ = list(X.columns)
        return self

    def _require_fitted(self) -> None:
        if not self.is_fitted:
            raise UnfittedModelError(
                f"{self.spec.family.value} model must be fitted before predicting"
            )

    def predict_proba(self, X: pd.DataFrame) -> np.ndarray:
        """Positive-class probability for each row."""
        self._require_fitted()
        with warnings.catch_warnings():
            warnings.filterwarnings("ignore", category=UserWarning, module="lightgbm")
            proba = self.estimator_.predict_proba(X[self.feature_names_].to_numpy(dtype=float))
        classes = list(self.estimator_.classes_)
        if 1 not in classes:
            raise UndefinedMetricError(
                f"{self.spec.family.value} model was fitted without positive records"
            )
        return proba[:, classes.index(1)].astype(float)

    def predict(self, X: pd.DataFrame, threshold: float = 0.5) -> pd.DataFrame:
        proba = self.predict_proba(X)
        return pd.DataFrame(
            {
                "predicted_class": (proba >= threshold).astype(int),
                "prob_negative": 1.0 - proba,
                "prob_positive": proba,
            },
            index=X.index,
        )

    def feature_importances(self) -> Optional[pd.Series]:
        """Importance per feature, descending; None for families without one."""
        self._require_fitted()
        if self.spec.family is ModelFamily.KNN:
            return None
        values = np.asarray(self.estimator_.feature_importances_, dtype=float)
        return (
            pd.Series(values, index=self.feature_names_, name="importance")
            .sort_values(ascending=False, kind="mergesort")
        )
