import os
from dataclasses import dataclass
from typing import Iterable, Optional

import joblib
import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from .data_loader import split_xy
from .exceptions import UnfittedModelError
from .metrics import roc_auc
from .models import ModelCandidate, ModelSpec
from .preprocessor import FittedRecipe, Preprocessor
from .splitter import Fold, FoldSet
from .utils.logger import get_logger

BALANCE_STRATEGIES = ("none", "oversample", "undersample")


@dataclass(frozen=True)
class CVResult:
    """Fold-level ROC-AUCs of one spec plus their aggregate."""
    spec: ModelSpec
    per_fold: tuple[float, ...]
    oof_proba: pd.Series

    @property
    def mean(self) -> float:
        return float(np.mean(self.per_fold))

    @property
    def std(self) -> float:
        return float(np.std(self.per_fold))

    @property
    def variance(self) -> float:
        return float(np.var(self.per_fold))


class ModelTrainer:
    """
    Leakage-safe cross-validation for any model candidate:
    preprocessing is fit only on training folds, then applied to validation folds.

    Provides:
      - cross_validate: fold-level ROC-AUCs and out-of-fold probabilities
      - compare: cross-validates several specs and ranks them
      - fit_final: fits recipe + model on a full training set and saves them
    """

    def __init__(
        self,
        random_state: int = 42,
        neighbors: int = 5,
        use_scaler: bool = False,
        balance_strategy: str = "none",
        n_jobs: int = 1,
        model_path: Optional[str] = None,
        recipe_path: Optional[str] = None,
    ):
        if balance_strategy not in BALANCE_STRATEGIES:
            raise ValueError(f"Unknown balancing strategy: {balance_strategy}")
        self.random_state = random_state
        self.neighbors = neighbors
        self.use_scaler = use_scaler
        self.balance_strategy = balance_strategy
        self.n_jobs = n_jobs
        self.model_path = model_path
        self.recipe_path = recipe_path

        self.logger = get_logger(self.__class__.__name__)
        self.final_model: Optional[ModelCandidate] = None
        self.final_recipe: Optional[FittedRecipe] = None

    @staticmethod
    def _balance_fold(
        X_train_df: pd.DataFrame,
        y_train: np.ndarray,
        strategy: str,
        fold_seed: int,
    ) -> tuple[pd.DataFrame, np.ndarray]:
        """
        Balance only within training fold, before preprocessing.
        Supports: none, oversample, undersample.
        """
        if strategy in (None, "none"):
            return X_train_df, y_train

        y_train = np.asarray(y_train)
        idx_pos = np.where(y_train == 1)[0]
        idx_neg = np.where(y_train == 0)[0]

        if len(idx_pos) == 0 or len(idx_neg) == 0:
            return X_train_df, y_train

        rng = np.random.RandomState(fold_seed)
        idx_minor, idx_major = sorted([idx_pos, idx_neg], key=len)

        if strategy == "oversample":
            n_to_add = len(idx_major) - len(idx_minor)
            if n_to_add <= 0:
                return X_train_df, y_train
            add_idx = rng.choice(idx_minor, size=n_to_add, replace=True)
            new_idx = np.concatenate([np.arange(len(y_train)), add_idx])
            Xb = X_train_df.iloc[new_idx].reset_index(drop=True)
            yb = y_train[new_idx]
            return Xb, yb

        if strategy == "undersample":
            keep_major = rng.choice(idx_major, size=len(idx_minor), replace=False)
            keep_idx = np.concatenate([idx_minor, keep_major])
            rng.shuffle(keep_idx)
            Xb = X_train_df.iloc[keep_idx].reset_index(drop=True)
            yb = y_train[keep_idx]
            return Xb, yb

        raise ValueError(f"Unknown balancing strategy: {strategy}")

    def _make_preprocessor(self) -> Preprocessor:
        return Preprocessor(neighbors=self.neighbors, use_scaler=self.use_scaler)

    def _run_fold(self, spec: ModelSpec, fold_set: FoldSet, fold: Fold) -> tuple[float, np.ndarray]:
        X_train_df, y_train = split_xy(fold_set.complement(fold), fold_set.outcome_col)
        X_val_df, y_val = split_xy(fold_set.holdout(fold), fold_set.outcome_col)

        # Balance only training fold (optional)
        X_train_df, y_train = self._balance_fold(
            X_train_df,
            y_train,
            strategy=self.balance_strategy,
            fold_seed=self.random_state + fold.number,
        )

        # Fit preprocessing only on training fold (prevents leakage)
        recipe = self._make_preprocessor().fit(X_train_df)
        X_train = recipe.apply(X_train_df)
        X_val = recipe.apply(X_val_df)

        model = ModelCandidate(spec, random_state=self.random_state).fit(X_train, y_train)
        val_proba = model.predict_proba(X_val)
        return roc_auc(y_val, val_proba), val_proba

    def cross_validate(self, spec: ModelSpec, fold_set: FoldSet, verbose: bool = True) -> CVResult:
        """
        Stratified CV with fold-wise preprocessing. Every fold gets its own
        recipe and model; any failing fold aborts the whole evaluation.
        """
        results = Parallel(n_jobs=self.n_jobs)(
            delayed(self._run_fold)(spec, fold_set, fold) for fold in fold_set.folds
        )

        oof_proba = pd.Series(np.nan, index=fold_set.data.index, name="prob_positive")
        fold_aucs: list[float] = []
        for fold, (auc, val_proba) in zip(fold_set.folds, results):
            oof_proba.loc[fold.val_index] = val_proba
            fold_aucs.append(float(auc))
            if verbose:
                self.logger.info(f"Fold {fold.number}/{fold_set.k} ROC-AUC: {auc:.4f}")

        result = CVResult(spec=spec, per_fold=tuple(fold_aucs), oof_proba=oof_proba)
        if verbose:
            self.logger.info(
                f"{spec.describe()} CV ROC-AUC: {result.mean:.4f} +/- {result.std:.4f}"
            )
        return result

    def compare(self, specs: Iterable[ModelSpec], fold_set: FoldSet) -> pd.DataFrame:
        """Cross-validate each spec and rank them by mean ROC-AUC."""
        rows = []
        for spec in specs:
            result = self.cross_validate(spec, fold_set, verbose=False)
            self.logger.info(f"{spec.family.value}: ROC-AUC {result.mean:.4f} +/- {result.std:.4f}")
            rows.append(
                {
                    "family": spec.family.value,
                    "mean_auc": result.mean,
                    "std_auc": result.std,
                    "params": dict(spec.params),
                }
            )
        table = pd.DataFrame(rows, columns=["family", "mean_auc", "std_auc", "params"])
        return table.sort_values(
            ["mean_auc", "std_auc"], ascending=[False, True], kind="mergesort"
        ).reset_index(drop=True)

    def fit_final(self, spec: ModelSpec, X_df: pd.DataFrame, y: np.ndarray) -> tuple[FittedRecipe, ModelCandidate]:
        """
        Fit preprocessing + final model on the full training set and save artifacts.
        """
        y = np.asarray(y).astype(int)
        X_df, y = self._balance_fold(X_df, y, self.balance_strategy, self.random_state)

        recipe = self._make_preprocessor().fit(X_df)
        model = ModelCandidate(spec, random_state=self.random_state).fit(recipe.apply(X_df), y)

        self.final_model = model
        self.final_recipe = recipe

        if self.model_path:
            os.makedirs(os.path.dirname(self.model_path) or ".", exist_ok=True)
            joblib.dump(model, self.model_path)
            self.logger.info(f"Saved model: {self.model_path}")

        if self.recipe_path:
            os.makedirs(os.path.dirname(self.recipe_path) or ".", exist_ok=True)
            joblib.dump(recipe, self.recipe_path)
            self.logger.info(f"Saved recipe: {self.recipe_path}")

        return recipe, model

    def predict_proba_test(self, X_test_df: pd.DataFrame) -> np.ndarray:
        """
        Predict probabilities on a test dataframe using the final recipe/model.
        Assumes fit_final was called in the same process.
        """
        if self.final_model is None or self.final_recipe is None:
            raise UnfittedModelError("Call fit_final() before predict_proba_test().")

        return self.final_model.predict_proba(self.final_recipe.apply(X_test_df))
