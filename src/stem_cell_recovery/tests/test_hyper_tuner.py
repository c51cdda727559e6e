import optuna
import pandas as pd
import pytest

from stem_cell_recovery.hyper_tuner import HyperTuner, TuningRecord, ranking_key
from stem_cell_recovery.model_trainer import ModelTrainer
from stem_cell_recovery.models import ModelSpec

GRID = {"n_estimators": [10, 30], "min_samples_leaf": [1, 5], "max_features": [2, 4]}


def _record(mean, variance, n_estimators, position):
    return TuningRecord(
        params={"n_estimators": n_estimators},
        mean=mean,
        std=variance ** 0.5,
        variance=variance,
        per_fold=(),
        position=position,
    )


def test_tune_evaluates_every_grid_combination(cohort_folds):
    tuner = HyperTuner(ModelTrainer(random_state=2))
    result = tuner.tune(ModelSpec("random_forest"), GRID, cohort_folds)

    assert len(result.ranked) == 8
    combos = {tuple(sorted(r.params.items(), key=lambda kv: kv[0])) for r in result.ranked}
    assert len(combos) == 8
    assert all(len(r.per_fold) == cohort_folds.k for r in result.ranked)

    means = [r.mean for r in result.ranked]
    assert means == sorted(means, reverse=True)


def test_tune_ranking_is_reproducible(cohort_folds):
    spec = ModelSpec("random_forest")
    first = HyperTuner(ModelTrainer(random_state=2)).tune(spec, GRID, cohort_folds)
    second = HyperTuner(ModelTrainer(random_state=2)).tune(spec, GRID, cohort_folds)

    pd.testing.assert_frame_equal(first.to_frame(), second.to_frame())
    assert first.best.params == second.best.params


def test_best_spec_applies_tuned_params(cohort_folds):
    spec = ModelSpec("random_forest", {"n_jobs": 1})
    result = HyperTuner(ModelTrainer(random_state=2)).tune(
        spec, {"n_estimators": [15], "min_samples_leaf": [3, 6]}, cohort_folds
    )
    best = result.best_spec()
    assert best.params["n_estimators"] == 15
    assert best.params["min_samples_leaf"] == result.best.params["min_samples_leaf"]
    assert best.params["n_jobs"] == 1


def test_to_frame_has_rank_params_and_scores(cohort_folds):
    result = HyperTuner(ModelTrainer(random_state=2)).tune(
        ModelSpec("knn"), {"n_neighbors": [3, 5, 9]}, cohort_folds
    )
    frame = result.to_frame()
    assert list(frame.columns) == ["rank", "n_neighbors", "mean_auc", "std_auc", "variance"]
    assert frame["rank"].tolist() == [1, 2, 3]


def test_ranking_breaks_ties_by_variance_then_trees_then_grid_order():
    records = [
        _record(0.80, 0.02, 500, 0),
        _record(0.80, 0.01, 1000, 1),
        _record(0.80, 0.01, 100, 2),
        _record(0.80, 0.01, 100, 3),
        _record(0.85, 0.09, 1000, 4),
    ]
    ranked = sorted(records, key=ranking_key)
    assert [r.position for r in ranked] == [4, 2, 3, 1, 0]


def test_tune_restores_optuna_verbosity(cohort_folds):
    previous = optuna.logging.get_verbosity()
    optuna.logging.set_verbosity(optuna.logging.DEBUG)
    try:
        HyperTuner(ModelTrainer(random_state=2)).tune(ModelSpec("knn"), {"n_neighbors": [3, 5]}, cohort_folds)
        assert optuna.logging.get_verbosity() == optuna.logging.DEBUG
    finally:
        optuna.logging.set_verbosity(previous)


def test_tune_restores_optuna_verbosity_when_a_trial_fails(cohort_folds):
    previous = optuna.logging.get_verbosity()
    optuna.logging.set_verbosity(optuna.logging.INFO)
    try:
        with pytest.raises(TypeError):
            HyperTuner(ModelTrainer()).tune(ModelSpec("knn"), {"n_estimators": [10]}, cohort_folds)
        assert optuna.logging.get_verbosity() == optuna.logging.INFO
    finally:
        optuna.logging.set_verbosity(previous)


def test_empty_grid_is_rejected(cohort_folds):
    with pytest.raises(ValueError):
        HyperTuner(ModelTrainer()).tune(ModelSpec("knn"), {}, cohort_folds)
    with pytest.raises(ValueError):
        HyperTuner(ModelTrainer()).tune(ModelSpec("knn"), {"n_neighbors": []}, cohort_folds)
