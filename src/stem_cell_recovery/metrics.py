from typing import Dict

import numpy as np
from sklearn.metrics import confusion_matrix, roc_auc_score

from .exceptions import UndefinedMetricError


def roc_auc(y_true, y_proba) -> float:
    """ROC-AUC of positive-class scores; raises instead of returning NaN."""
    y_true = np.asarray(y_true).astype(int)
    y_proba = np.asarray(y_proba).astype(float)

    if len(np.unique(y_true)) < 2:
        raise UndefinedMetricError(
            f"ROC-AUC is undefined with a single outcome class ({len(y_true)} records)"
        )
    if not np.all(np.isfinite(y_proba)):
        raise UndefinedMetricError("ROC-AUC is undefined for non-finite probabilities")
    return float(roc_auc_score(y_true, y_proba))


def confusion_counts(y_true, y_proba, threshold: float = 0.5) -> Dict[str, int]:
    """TN/FP/FN/TP when predicting positive for ``proba >= threshold``."""
    if not 0.0 <= threshold <= 1.0:
        raise ValueError(f"threshold must be in [0, 1], got {threshold}")
    y_true = np.asarray(y_true).astype(int)
    y_pred = (np.asarray(y_proba).astype(float) >= threshold).astype(int)
    tn, fp, fn, tp = confusion_matrix(y_true, y_pred, labels=[0, 1]).ravel()
    return {"tn": int(tn), "fp": int(fp), "fn": int(fn), "tp": int(tp)}
