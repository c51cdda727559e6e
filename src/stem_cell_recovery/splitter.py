from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd
from sklearn.model_selection import StratifiedKFold, train_test_split

from .exceptions import InsufficientDataError
from .utils.logger import get_logger


@dataclass(frozen=True)
class Split:
    """Disjoint train/test partition of a dataset."""
    train: pd.DataFrame
    test: pd.DataFrame


@dataclass(frozen=True)
class Fold:
    number: int
    train_index: pd.Index
    val_index: pd.Index


@dataclass(frozen=True)
class FoldSet:
    """k-fold partition of a training frame, addressed by index labels."""
    data: pd.DataFrame
    outcome_col: str
    folds: tuple[Fold, ...]

    @property
    def k(self) -> int:
        return len(self.folds)

    def complement(self, fold: Fold) -> pd.DataFrame:
        return self.data.loc[fold.train_index]

    def holdout(self, fold: Fold) -> pd.DataFrame:
        return self.data.loc[fold.val_index]


class DataSplitter:
    """
    Stratified train/test splitting and stratified k-fold partitioning.

    Both operations key on the outcome column and take their randomness from
    ``random_state`` only, so a run is reproducible from the seed.
    """

    def __init__(self, outcome_col: str = "poor_recovery", random_state: int = 42):
        self.outcome_col = outcome_col
        self.random_state = random_state
        self.logger = get_logger(self.__class__.__name__)

    def _class_counts(self, df: pd.DataFrame) -> pd.Series:
        return df[self.outcome_col].value_counts()

    def split(self, df: pd.DataFrame, train_fraction: float) -> Split:
        if not 0.0 < train_fraction < 1.0:
            raise ValueError(f"train_fraction must be in (0, 1), got {train_fraction}")

        counts = self._class_counts(df)
        if len(counts) < 2 or counts.min() < 2:
            raise InsufficientDataError(
                f"Cannot stratify on '{self.outcome_col}': class counts {counts.to_dict()}"
            )

        train, test = train_test_split(
            df,
            train_size=train_fraction,
            stratify=df[self.outcome_col],
            random_state=self.random_state,
        )
        train = train.sort_index()
        test = test.sort_index()

        self.logger.info(
            f"Split {len(df)} records into train={len(train)} "
            f"(positive={train[self.outcome_col].mean():.3f}) and test={len(test)} "
            f"(positive={test[self.outcome_col].mean():.3f})"
        )
        return Split(train=train, test=test)

    def kfold(self, train: pd.DataFrame, k: int) -> FoldSet:
        if k < 2:
            raise ValueError(f"k must be at least 2, got {k}")

        counts = self._class_counts(train)
        if len(counts) < 2 or counts.min() < k:
            raise InsufficientDataError(
                f"Cannot build {k} stratified folds: class counts {counts.to_dict()}"
            )

        skf = StratifiedKFold(n_splits=k, shuffle=True, random_state=self.random_state)
        y = train[self.outcome_col].to_numpy()
        folds = []
        for number, (train_pos, val_pos) in enumerate(skf.split(np.zeros(len(y)), y), start=1):
            folds.append(
                Fold(
                    number=number,
                    train_index=train.index[train_pos],
                    val_index=train.index[val_pos],
                )
            )

        self.logger.info(
            f"Built {k} stratified folds, sizes: {[len(f.val_index) for f in folds]}"
        )
        return FoldSet(data=train, outcome_col=self.outcome_col, folds=tuple(folds))
