from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np
import pandas as pd
from sklearn.impute import KNNImputer
from sklearn.preprocessing import OneHotEncoder, StandardScaler

from .exceptions import SchemaMismatchError
from .utils.logger import get_logger


def _categorical_frame(X: pd.DataFrame, columns: list[str]) -> pd.DataFrame:
    """Categories as plain strings, missing entries as None."""
    data = {
        col: [str(v) if pd.notna(v) else None for v in X[col].astype(object)]
        for col in columns
    }
    return pd.DataFrame(data, index=X.index, columns=columns, dtype=object)


@dataclass(frozen=True, eq=False)
class FittedRecipe:
    """
    Imputation + encoding state learned from one training subset.

    Holds everything needed to transform another subset the same way: the
    column groups, the standardiser and k-NN reference pool used for
    imputation, the categories seen at fit time and the dummy encoder.
    ``feature_names`` is the output schema, fixed for every ``apply`` call.
    """
    continuous_cols: tuple[str, ...]
    binary_cols: tuple[str, ...]
    categorical_cols: tuple[str, ...]
    categories: Dict[str, tuple[str, ...]]
    scaler: Optional[StandardScaler]
    distance_encoder: Optional[OneHotEncoder]
    dummy_encoder: Optional[OneHotEncoder]
    imputer: KNNImputer
    feature_names: tuple[str, ...]
    use_scaler: bool = False

    @property
    def numeric_cols(self) -> list[str]:
        return list(self.continuous_cols) + list(self.binary_cols)

    @property
    def encoded_cols(self) -> list[str]:
        return [c for c in self.categorical_cols if self.categories[c]]

    @property
    def predictors(self) -> list[str]:
        return self.numeric_cols + list(self.categorical_cols)

    def _check_columns(self, X: pd.DataFrame) -> None:
        missing = [c for c in self.predictors if c not in X.columns]
        if missing:
            raise SchemaMismatchError(f"Columns expected by the fitted recipe are missing: {missing}")

    def distance_space(self, X: pd.DataFrame) -> np.ndarray:
        """Standardised numerics plus category indicators, NaN where missing."""
        blocks = []
        if self.scaler is not None:
            blocks.append(self.scaler.transform(X[self.numeric_cols].to_numpy(dtype=float)))
        if self.distance_encoder is not None:
            cats = _categorical_frame(X, self.encoded_cols)
            with warnings.catch_warnings():
                warnings.filterwarnings("ignore", message="Found unknown categories", category=UserWarning)
                indicators = self.distance_encoder.transform(cats.fillna("")).astype(float)
            start = 0
            for col in self.encoded_cols:
                width = len(self.categories[col])
                missing = cats[col].isna().to_numpy()
                indicators[missing, start:start + width] = np.nan
                start += width
            blocks.append(indicators)
        if not blocks:
            return np.empty((len(X), 0))
        return np.hstack(blocks)

    def apply(self, X: pd.DataFrame) -> pd.DataFrame:
        self._check_columns(X)
        n_num = len(self.numeric_cols)

        distance = self.distance_space(X)
        imputed = self.imputer.transform(distance) if distance.shape[1] else distance

        parts = []
        if n_num:
            original = X[self.numeric_cols].to_numpy(dtype=float)
            restored = self.scaler.inverse_transform(imputed[:, :n_num])
            numeric = np.where(np.isnan(original), restored, original)

            n_cont = len(self.continuous_cols)
            # only imputed binary cells are snapped to 0/1; observed values pass through
            binary = np.where(
                np.isnan(original[:, n_cont:]),
                np.clip(np.round(numeric[:, n_cont:]), 0.0, 1.0),
                numeric[:, n_cont:],
            )
            continuous = numeric[:, :n_cont]
            if self.use_scaler:
                continuous = self.scaler.transform(np.hstack([continuous, binary]))[:, :n_cont]
            parts.append(
                pd.DataFrame(continuous, index=X.index, columns=list(self.continuous_cols))
            )
            parts.append(pd.DataFrame(binary, index=X.index, columns=list(self.binary_cols)))

        if self.dummy_encoder is not None:
            cats = _categorical_frame(X, self.encoded_cols)
            start = n_num
            for col in self.encoded_cols:
                levels = self.categories[col]
                block = imputed[:, start:start + len(levels)]
                missing = cats[col].isna().to_numpy()
                if missing.any():
                    # argmax keeps the first sorted level on ties
                    picks = np.asarray(levels, dtype=object)[np.argmax(block[missing], axis=1)]
                    cats.loc[missing, col] = picks
                start += len(levels)

            with warnings.catch_warnings():
                warnings.filterwarnings("ignore", message="Found unknown categories", category=UserWarning)
                dummies = self.dummy_encoder.transform(cats)
            names = list(self.dummy_encoder.get_feature_names_out(self.encoded_cols))
            parts.append(pd.DataFrame(dummies.astype(float), index=X.index, columns=names))

        if not parts:
            return pd.DataFrame(index=X.index)
        out = pd.concat(parts, axis=1)
        return out[list(self.feature_names)]


class Preprocessor:
    """Fits a k-NN imputation + dummy encoding recipe on a training subset."""

    def __init__(
        self,
        neighbors: int = 5,
        use_scaler: bool = False,
        verbose: bool = False,
    ):
        """
        Parameters
        ----------
        neighbors:
            Number of reference rows averaged by the k-NN imputer.
        use_scaler:
            Whether to emit standardised continuous features. Tree models do
            not need it; the k-NN candidate scales inside its own pipeline.
        verbose:
            If True, logs detected feature groups.
        """
        if neighbors < 1:
            raise ValueError(f"neighbors must be positive, got {neighbors}")
        self.neighbors = neighbors
        self.use_scaler = use_scaler
        self.verbose = verbose
        self.logger = get_logger(self.__class__.__name__)

    @staticmethod
    def detect_groups(X: pd.DataFrame) -> tuple[list[str], list[str], list[str]]:
        """Split columns into continuous, binary (0/1 valued) and categorical."""
        numeric_cols = X.select_dtypes(include=["number", "bool"]).columns.tolist()
        categorical_cols = X.select_dtypes(include=["object", "category", "string"]).columns.tolist()

        # binary numeric columns: values subset of {0,1} (ignoring NaNs)
        binary_cols = [
            col for col in numeric_cols
            if set(pd.Series(X[col]).dropna().astype(float).unique()).issubset({0.0, 1.0})
        ]
        continuous_cols = [col for col in numeric_cols if col not in binary_cols]
        return continuous_cols, binary_cols, categorical_cols

    def fit(self, X: pd.DataFrame) -> FittedRecipe:
        """Learn imputation and encoding state from ``X`` only."""
        continuous_cols, binary_cols, categorical_cols = self.detect_groups(X)
        numeric_cols = continuous_cols + binary_cols

        cats = _categorical_frame(X, categorical_cols)
        categories = {
            col: tuple(sorted(cats[col].dropna().unique()))
            for col in categorical_cols
        }
        encoded_cols = [c for c in categorical_cols if categories[c]]

        scaler = None
        if numeric_cols:
            scaler = StandardScaler().fit(X[numeric_cols].to_numpy(dtype=float))

        distance_encoder = None
        dummy_encoder = None
        if encoded_cols:
            levels = [list(categories[c]) for c in encoded_cols]
            complete = cats[encoded_cols].copy()
            for col in encoded_cols:
                complete[col] = complete[col].fillna(categories[col][0])
            distance_encoder = OneHotEncoder(
                categories=levels, handle_unknown="ignore", sparse_output=False
            ).fit(complete)
            dummy_encoder = OneHotEncoder(
                categories=levels, drop="first", handle_unknown="ignore", sparse_output=False
            ).fit(complete)

        dummy_names = (
            list(dummy_encoder.get_feature_names_out(encoded_cols)) if dummy_encoder is not None else []
        )
        feature_names = tuple(continuous_cols + binary_cols + dummy_names)

        recipe = FittedRecipe(
            continuous_cols=tuple(continuous_cols),
            binary_cols=tuple(binary_cols),
            categorical_cols=tuple(categorical_cols),
            categories=categories,
            scaler=scaler,
            distance_encoder=distance_encoder,
            dummy_encoder=dummy_encoder,
            imputer=KNNImputer(n_neighbors=self.neighbors, keep_empty_features=True),
            feature_names=feature_names,
            use_scaler=self.use_scaler,
        )
        distance = recipe.distance_space(X)
        if distance.shape[1]:
            recipe.imputer.fit(distance)

        if self.verbose:
            self.logger.info(
                f"Columns detected: continuous={len(continuous_cols)}, "
                f"binary={len(binary_cols)}, categorical={len(categorical_cols)}, "
                f"output features={len(feature_names)}"
            )

        return recipe

    @staticmethod
    def apply(recipe: FittedRecipe, X: pd.DataFrame) -> pd.DataFrame:
        """Transform ``X`` with a recipe fitted elsewhere."""
        return recipe.apply(X)
