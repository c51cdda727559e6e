import itertools
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

import numpy as np
import optuna
import pandas as pd

from .model_trainer import ModelTrainer
from .models import ModelSpec
from .splitter import FoldSet
from .utils.logger import get_logger


@dataclass(frozen=True)
class TuningRecord:
    params: dict[str, Any]
    mean: float
    std: float
    variance: float
    per_fold: tuple[float, ...]
    position: int


@dataclass(frozen=True)
class TuningResult:
    """Grid points ranked best first."""
    spec: ModelSpec
    ranked: tuple[TuningRecord, ...]

    @property
    def best(self) -> TuningRecord:
        return self.ranked[0]

    def best_spec(self) -> ModelSpec:
        return self.spec.with_params(**self.best.params)

    def to_frame(self) -> pd.DataFrame:
        rows = []
        for rank, record in enumerate(self.ranked, start=1):
            row = {"rank": rank}
            row.update(record.params)
            row.update({"mean_auc": record.mean, "std_auc": record.std, "variance": record.variance})
            rows.append(row)
        return pd.DataFrame(rows)


def ranking_key(record: TuningRecord) -> tuple:
    """Highest mean first, then lowest variance, fewer trees, earlier grid position."""
    return (
        -record.mean,
        record.variance,
        record.params.get("n_estimators", 0),
        record.position,
    )


class HyperTuner:
    """Exhaustive grid search using leakage-safe CV from ModelTrainer."""

    def __init__(self, trainer: ModelTrainer, random_state: Optional[int] = None):
        self.trainer = trainer
        self.random_state = trainer.random_state if random_state is None else random_state
        self.logger = get_logger(self.__class__.__name__)
        self.result_: Optional[TuningResult] = None

    @staticmethod
    def _normalize_grid(grid: Mapping[str, Sequence[Any]]) -> dict[str, list[Any]]:
        if not grid:
            raise ValueError("Hyperparameter grid is empty")
        normalized = {}
        for name, values in grid.items():
            if isinstance(values, (str, bytes)) or not isinstance(values, Sequence):
                values = [values]
            unique = list(dict.fromkeys(values))
            if not unique:
                raise ValueError(f"No candidate values for hyperparameter '{name}'")
            normalized[name] = unique
        return normalized

    def tune(
        self,
        spec: ModelSpec,
        grid: Mapping[str, Sequence[Any]],
        fold_set: FoldSet,
    ) -> TuningResult:
        """
        Evaluate every combination of ``grid`` with ``trainer.cross_validate``.
        No pruning; an exception in any combination aborts the search.
        """
        grid = self._normalize_grid(grid)
        names = list(grid)
        positions = {
            combo: i for i, combo in enumerate(itertools.product(*(grid[n] for n in names)))
        }
        n_combinations = len(positions)

        self.logger.info(
            f"Starting grid search for {spec.family.value}: "
            f"{n_combinations} combinations x {fold_set.k}-fold CV"
        )

        def objective(trial: optuna.Trial) -> float:
            params = {name: trial.suggest_categorical(name, grid[name]) for name in names}
            result = self.trainer.cross_validate(spec.with_params(**params), fold_set, verbose=False)
            trial.set_user_attr("per_fold", list(result.per_fold))
            self.logger.info(f"Trial {trial.number + 1}/{n_combinations} {params}: ROC-AUC {result.mean:.4f}")
            return result.mean

        previous_verbosity = optuna.logging.get_verbosity()
        optuna.logging.set_verbosity(optuna.logging.WARNING)
        try:
            sampler = optuna.samplers.GridSampler(grid, seed=self.random_state)
            study = optuna.create_study(direction="maximize", sampler=sampler)
            study.optimize(objective, n_trials=n_combinations)
        finally:
            optuna.logging.set_verbosity(previous_verbosity)

        records = []
        for trial in study.trials:
            if trial.state != optuna.trial.TrialState.COMPLETE:
                continue
            params = {name: trial.params[name] for name in names}
            per_fold = tuple(trial.user_attrs["per_fold"])
            records.append(
                TuningRecord(
                    params=params,
                    mean=float(np.mean(per_fold)),
                    std=float(np.std(per_fold)),
                    variance=float(np.var(per_fold)),
                    per_fold=per_fold,
                    position=positions[tuple(params[n] for n in names)],
                )
            )

        ranked = tuple(sorted(records, key=ranking_key))
        self.result_ = TuningResult(spec=spec, ranked=ranked)

        self.logger.info(f"Best CV ROC-AUC: {self.result_.best.mean:.4f}")
        self.logger.info(f"Best parameters: {self.result_.best.params}")

        return self.result_
