import os

import joblib
import numpy as np
import pandas as pd
import pytest

from stem_cell_recovery.data_loader import split_xy
from stem_cell_recovery.exceptions import UndefinedMetricError, UnfittedModelError
from stem_cell_recovery.model_trainer import ModelTrainer
from stem_cell_recovery.models import ModelCandidate, ModelSpec
from stem_cell_recovery.preprocessor import Preprocessor
from stem_cell_recovery.splitter import Fold, FoldSet

RF = ModelSpec("random_forest", {"n_estimators": 25, "min_samples_leaf": 2})


def test_cross_validate_scores_every_fold(cohort_folds):
    result = ModelTrainer(random_state=1).cross_validate(RF, cohort_folds)

    assert len(result.per_fold) == cohort_folds.k
    assert all(0.0 <= auc <= 1.0 for auc in result.per_fold)
    assert result.mean == pytest.approx(np.mean(result.per_fold))
    assert result.std == pytest.approx(np.std(result.per_fold))
    assert result.variance == pytest.approx(result.std ** 2)


def test_cross_validate_fills_out_of_fold_probabilities(cohort_folds):
    result = ModelTrainer(random_state=1).cross_validate(RF, cohort_folds)
    pd.testing.assert_index_equal(result.oof_proba.index, cohort_folds.data.index)
    assert result.oof_proba.notna().all()


def test_cross_validate_is_reproducible(cohort_folds):
    a = ModelTrainer(random_state=8).cross_validate(RF, cohort_folds)
    b = ModelTrainer(random_state=8).cross_validate(RF, cohort_folds)
    assert a.per_fold == b.per_fold


def test_parallel_folds_match_sequential(cohort_folds):
    sequential = ModelTrainer(random_state=8, n_jobs=1).cross_validate(RF, cohort_folds)
    parallel = ModelTrainer(random_state=8, n_jobs=2).cross_validate(RF, cohort_folds)
    assert sequential.per_fold == parallel.per_fold


def test_each_fold_recipe_is_fit_on_its_complement_only(cohort_folds, monkeypatch):
    fitted_on = []
    original_fit = Preprocessor.fit

    def recording_fit(self, X):
        fitted_on.append(set(X.index))
        return original_fit(self, X)

    monkeypatch.setattr(Preprocessor, "fit", recording_fit)
    ModelTrainer(random_state=1, n_jobs=1).cross_validate(RF, cohort_folds, verbose=False)

    assert fitted_on == [set(fold.train_index) for fold in cohort_folds.folds]


def test_holdout_only_values_do_not_reach_the_fold_recipe(cohort_folds):
    fold = cohort_folds.folds[0]
    marked = fold.val_index[0]
    data = cohort_folds.data.copy()
    data["diagnosis"] = data["diagnosis"].astype(object)
    data.loc[marked, "diagnosis"] = "Amyloidosis"
    data["diagnosis"] = data["diagnosis"].astype("category")
    data.loc[marked, "cd34_brightness"] = 1e6
    fold_set = FoldSet(data=data, outcome_col="poor_recovery", folds=cohort_folds.folds)

    trainer = ModelTrainer(random_state=1)
    result = trainer.cross_validate(RF, fold_set, verbose=False)

    X_comp, y_comp = split_xy(fold_set.complement(fold), "poor_recovery")
    X_hold, _ = split_xy(fold_set.holdout(fold), "poor_recovery")
    recipe = Preprocessor().fit(X_comp)
    assert "Amyloidosis" not in recipe.categories["diagnosis"]
    assert "diagnosis_Amyloidosis" not in recipe.feature_names

    model = ModelCandidate(RF, random_state=1).fit(recipe.apply(X_comp), y_comp)
    np.testing.assert_allclose(
        result.oof_proba.loc[fold.val_index].to_numpy(), model.predict_proba(recipe.apply(X_hold))
    )


def test_single_class_holdout_aborts_evaluation(cohort_split):
    train = cohort_split.train
    negatives = train.index[train["poor_recovery"] == 0]
    val = negatives[:10]
    fold = Fold(number=1, train_index=train.index.difference(val), val_index=val)
    fold_set = FoldSet(data=train, outcome_col="poor_recovery", folds=(fold,))

    with pytest.raises(UndefinedMetricError):
        ModelTrainer().cross_validate(RF, fold_set)


def test_compare_ranks_families_by_mean_auc(cohort_folds):
    specs = [
        RF,
        ModelSpec("knn", {"n_neighbors": 7}),
        ModelSpec("gradient_boosted", {"n_estimators": 25}),
    ]
    table = ModelTrainer(random_state=1).compare(specs, cohort_folds)

    assert set(table["family"]) == {"random_forest", "knn", "gradient_boosted"}
    assert table["mean_auc"].is_monotonic_decreasing


@pytest.mark.parametrize("strategy", ["oversample", "undersample"])
def test_balance_fold_equalises_classes(strategy):
    X = pd.DataFrame({"x": np.arange(12, dtype=float)})
    y = np.array([1, 1, 1] + [0] * 9)
    Xb, yb = ModelTrainer._balance_fold(X, y, strategy, fold_seed=0)

    assert len(Xb) == len(yb)
    assert (yb == 1).sum() == (yb == 0).sum()


def test_balance_fold_none_is_identity():
    X = pd.DataFrame({"x": [1.0, 2.0, 3.0]})
    y = np.array([0, 1, 0])
    Xb, yb = ModelTrainer._balance_fold(X, y, "none", fold_seed=0)
    assert Xb is X and yb is y


def test_unknown_balance_strategy_is_rejected():
    with pytest.raises(ValueError):
        ModelTrainer(balance_strategy="smote")


def test_oversampled_cross_validation_keeps_holdout_untouched(cohort_folds):
    result = ModelTrainer(random_state=1, balance_strategy="oversample").cross_validate(RF, cohort_folds)
    assert len(result.oof_proba) == len(cohort_folds.data)
    assert result.oof_proba.notna().all()


def test_fit_final_saves_model_and_recipe(cohort_split, tmp_path):
    model_path = tmp_path / "models" / "model.joblib"
    recipe_path = tmp_path / "models" / "recipe.joblib"
    trainer = ModelTrainer(random_state=1, model_path=str(model_path), recipe_path=str(recipe_path))

    X_train, y_train = split_xy(cohort_split.train, "poor_recovery")
    X_test, _ = split_xy(cohort_split.test, "poor_recovery")
    recipe, model = trainer.fit_final(RF, X_train, y_train)

    assert os.path.exists(model_path) and os.path.exists(recipe_path)
    restored = joblib.load(model_path)
    np.testing.assert_allclose(
        restored.predict_proba(recipe.apply(X_test)), trainer.predict_proba_test(X_test)
    )


def test_predict_proba_test_before_fit_final_raises(cohort_split):
    X_test, _ = split_xy(cohort_split.test, "poor_recovery")
    with pytest.raises(UnfittedModelError):
        ModelTrainer().predict_proba_test(X_test)
