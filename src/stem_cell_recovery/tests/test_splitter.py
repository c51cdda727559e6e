from collections import Counter

import pandas as pd
import pytest

from stem_cell_recovery.exceptions import InsufficientDataError
from stem_cell_recovery.splitter import DataSplitter

OUTCOME = "poor_recovery"


@pytest.mark.parametrize("fraction", [0.5, 0.7, 0.75, 0.8, 0.9])
def test_split_is_a_partition(cohort_df, fraction):
    split = DataSplitter(OUTCOME, random_state=11).split(cohort_df, fraction)

    train_idx, test_idx = set(split.train.index), set(split.test.index)
    assert train_idx | test_idx == set(cohort_df.index)
    assert train_idx & test_idx == set()


@pytest.mark.parametrize("fraction", [0.6, 0.75, 0.8])
def test_split_preserves_class_proportion_within_one_record(cohort_df, fraction):
    split = DataSplitter(OUTCOME, random_state=5).split(cohort_df, fraction)
    overall = cohort_df[OUTCOME].mean()

    for part in (split.train, split.test):
        assert abs(part[OUTCOME].mean() - overall) <= 1.0 / len(part) + 1e-12


def test_split_is_reproducible_for_a_seed(cohort_df):
    a = DataSplitter(OUTCOME, random_state=9).split(cohort_df, 0.75)
    b = DataSplitter(OUTCOME, random_state=9).split(cohort_df, 0.75)
    pd.testing.assert_index_equal(a.train.index, b.train.index)
    pd.testing.assert_index_equal(a.test.index, b.test.index)


@pytest.mark.parametrize("fraction", [0.0, 1.0, -0.2, 1.5])
def test_split_rejects_fraction_outside_open_interval(cohort_df, fraction):
    with pytest.raises(ValueError):
        DataSplitter(OUTCOME).split(cohort_df, fraction)


def test_split_needs_two_members_per_class():
    df = pd.DataFrame({"x": range(6), OUTCOME: [0, 0, 0, 0, 0, 1]})
    with pytest.raises(InsufficientDataError):
        DataSplitter(OUTCOME).split(df, 0.5)


@pytest.mark.parametrize("k", [2, 3, 5, 10])
def test_kfold_covers_every_record_once(cohort_split, k):
    fold_set = DataSplitter(OUTCOME, random_state=2).kfold(cohort_split.train, k)
    train_index = set(cohort_split.train.index)

    held_out = Counter()
    in_complement = Counter()
    for fold in fold_set.folds:
        held_out.update(fold.val_index)
        in_complement.update(fold.train_index)
        assert set(fold.val_index) | set(fold.train_index) == train_index
        assert not set(fold.val_index) & set(fold.train_index)

    assert set(held_out) == train_index
    assert all(count == 1 for count in held_out.values())
    assert all(in_complement[i] == k - 1 for i in train_index)

    sizes = [len(f.val_index) for f in fold_set.folds]
    assert max(sizes) - min(sizes) <= 1


def test_kfold_folds_are_stratified(cohort_split):
    fold_set = DataSplitter(OUTCOME, random_state=2).kfold(cohort_split.train, 3)
    for fold in fold_set.folds:
        assert fold_set.holdout(fold)[OUTCOME].nunique() == 2


def test_kfold_fails_when_a_class_is_smaller_than_k():
    df = pd.DataFrame({"x": range(20), OUTCOME: [1] * 3 + [0] * 17})
    with pytest.raises(InsufficientDataError, match="5 stratified folds"):
        DataSplitter(OUTCOME).kfold(df, 5)


def test_kfold_rejects_k_below_two(cohort_split):
    with pytest.raises(ValueError):
        DataSplitter(OUTCOME).kfold(cohort_split.train, 1)
