import numpy as np
import pytest

from stem_cell_recovery.exceptions import UndefinedMetricError
from stem_cell_recovery.metrics import confusion_counts, roc_auc


def test_roc_auc_matches_rank_definition():
    y = [0, 0, 1, 1]
    assert roc_auc(y, [0.1, 0.4, 0.35, 0.8]) == pytest.approx(0.75)


def test_roc_auc_single_class_is_undefined():
    with pytest.raises(UndefinedMetricError):
        roc_auc([0, 0, 0], [0.2, 0.5, 0.9])


def test_roc_auc_rejects_non_finite_scores():
    with pytest.raises(UndefinedMetricError):
        roc_auc([0, 1, 1], [0.2, np.nan, 0.9])


def test_confusion_counts_at_threshold():
    y = [0, 0, 1, 1, 1]
    proba = [0.1, 0.6, 0.4, 0.7, 0.9]
    assert confusion_counts(y, proba, 0.5) == {"tn": 1, "fp": 1, "fn": 1, "tp": 2}
    assert confusion_counts(y, proba, 0.05) == {"tn": 0, "fp": 2, "fn": 0, "tp": 3}


def test_confusion_counts_rejects_threshold_outside_unit_interval():
    with pytest.raises(ValueError):
        confusion_counts([0, 1], [0.2, 0.8], 1.2)


def test_lowering_threshold_never_reduces_tp_or_fp():
    rng = np.random.RandomState(0)
    y = rng.randint(0, 2, 200)
    proba = np.clip(rng.normal(0.3 + 0.3 * y, 0.2), 0, 1)

    previous = None
    for thr in np.linspace(0.95, 0.0, 40):
        counts = confusion_counts(y, proba, thr)
        if previous is not None:
            assert counts["tp"] >= previous["tp"]
            assert counts["fp"] >= previous["fp"]
        previous = counts
