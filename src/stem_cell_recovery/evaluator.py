import json
import os
from dataclasses import dataclass
from typing import Dict, Optional

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
from sklearn.metrics import (
    accuracy_score,
    average_precision_score,
    balanced_accuracy_score,
    f1_score,
    precision_score,
    recall_score,
)

from .data_loader import split_xy
from .metrics import confusion_counts, roc_auc
from .model_trainer import ModelTrainer
from .models import ModelCandidate, ModelSpec
from .preprocessor import FittedRecipe
from .splitter import Split
from .utils.logger import get_logger

CLASS_LABELS = ["Good recovery", "Poor recovery"]


@dataclass(frozen=True)
class FinalResult:
    model: ModelCandidate
    recipe: FittedRecipe
    metrics: Dict[str, float]
    confusion: Dict[str, int]
    predictions: pd.DataFrame
    feature_importances: Optional[pd.Series]

    def confusion_matrix(self) -> np.ndarray:
        """2x2 array, rows = actual (neg, pos), columns = predicted."""
        c = self.confusion
        return np.array([[c["tn"], c["fp"]], [c["fn"], c["tp"]]])


class Evaluator:
    """Evaluate binary classifier probabilities on the held-out test split."""

    def __init__(
        self,
        metrics_path: Optional[str] = None,
        figures_dir: Optional[str] = None,
        threshold: float = 0.5,
        verbose: bool = True,
    ):
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"threshold must be in [0, 1], got {threshold}")
        self.metrics_path = metrics_path
        self.figures_dir = figures_dir
        self.threshold = threshold
        self.verbose = verbose
        self.logger = get_logger(self.__class__.__name__)

    def _plot_confusion_matrix(self, confusion: Dict[str, int], normalize: bool = False) -> str:
        """Plot confusion matrix and save to figures_dir. Returns saved path."""
        cm = np.array([[confusion["tn"], confusion["fp"]], [confusion["fn"], confusion["tp"]]])

        if normalize:
            cm = cm.astype(float)
            row_sums = cm.sum(axis=1, keepdims=True)
            row_sums[row_sums == 0] = 1.0  # avoid division by zero
            cm = cm / row_sums

        plt.figure(figsize=(6, 5))
        sns.heatmap(
            cm,
            annot=True,
            fmt=".2f" if normalize else "d",
            cmap="Blues",
            xticklabels=CLASS_LABELS,
            yticklabels=CLASS_LABELS,
        )
        plt.xlabel("Predicted")
        plt.ylabel("Actual")
        plt.title(f"Confusion Matrix (threshold={self.threshold:g})")

        os.makedirs(self.figures_dir, exist_ok=True)
        path = os.path.join(self.figures_dir, "confusion_matrix.png")

        plt.tight_layout()
        plt.savefig(path, dpi=200)
        plt.close()

        if self.verbose:
            self.logger.info(f"Saved confusion matrix: {path}")

        return path

    def evaluate(self, y_true: np.ndarray, y_proba: np.ndarray) -> tuple[Dict[str, float], Dict[str, int]]:
        """Compute metrics at the configured threshold; save JSON + confusion matrix if configured."""
        y_true = np.asarray(y_true).astype(int)
        y_proba = np.asarray(y_proba).astype(float)
        y_pred = (y_proba >= self.threshold).astype(int)

        confusion = confusion_counts(y_true, y_proba, self.threshold)
        metrics: Dict[str, float] = {
            "ROC_AUC": roc_auc(y_true, y_proba),
            "PR_AUC": float(average_precision_score(y_true, y_proba)),
            "Balanced_Accuracy": float(balanced_accuracy_score(y_true, y_pred)),
            "F1": float(f1_score(y_true, y_pred, zero_division=0)),
            "Precision": float(precision_score(y_true, y_pred, zero_division=0)),
            "Recall": float(recall_score(y_true, y_pred, zero_division=0)),
            "Accuracy": float(accuracy_score(y_true, y_pred)),
            "Threshold": float(self.threshold),
        }

        if self.metrics_path:
            os.makedirs(os.path.dirname(self.metrics_path) or ".", exist_ok=True)
            with open(self.metrics_path, "w") as f:
                json.dump({"metrics": metrics, "confusion": confusion}, f, indent=4)
            if self.verbose:
                self.logger.info(f"Saved metrics: {self.metrics_path}")

        if self.figures_dir:
            self._plot_confusion_matrix(confusion)

        return metrics, confusion

    def finalize(
        self,
        trainer: ModelTrainer,
        spec: ModelSpec,
        split: Split,
        outcome_col: str,
    ) -> FinalResult:
        """
        Refit one recipe and one model on the whole training split, then score
        once on the untouched test split.
        """
        X_train, y_train = split_xy(split.train, outcome_col)
        X_test, y_test = split_xy(split.test, outcome_col)

        recipe, model = trainer.fit_final(spec, X_train, y_train)
        y_proba = trainer.predict_proba_test(X_test)

        metrics, confusion = self.evaluate(y_test, y_proba)

        predictions = pd.DataFrame(
            {
                outcome_col: y_test,
                "predicted_class": (y_proba >= self.threshold).astype(int),
                "prob_negative": 1.0 - y_proba,
                "prob_positive": y_proba,
            },
            index=X_test.index,
        )

        importances = model.feature_importances()
        if importances is None and self.verbose:
            self.logger.info(f"No feature importances for {spec.family.value}")

        if self.verbose:
            self.logger.info(
                f"Test ROC-AUC: {metrics['ROC_AUC']:.4f}, confusion at "
                f"{self.threshold:g}: {confusion}"
            )

        return FinalResult(
            model=model,
            recipe=recipe,
            metrics=metrics,
            confusion=confusion,
            predictions=predictions,
            feature_importances=importances,
        )
