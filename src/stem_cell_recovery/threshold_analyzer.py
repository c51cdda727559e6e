import os
from typing import Optional, Sequence

import numpy as np
import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns
from sklearn.metrics import precision_score, recall_score, f1_score

from .metrics import confusion_counts
from .utils.logger import get_logger


class ThresholdAnalyzer:
    """Sweep probability thresholds and (optionally) plot precision/recall/F1 trade-offs."""

    def __init__(
        self,
        output_dir: str = "artifacts",
        step: float = 0.05,
        filename: str = "threshold_sweep.png",
        verbose: bool = True,
    ):
        self.output_dir = output_dir
        self.step = step
        self.filename = filename
        self.verbose = verbose
        self.logger = get_logger(self.__class__.__name__)
        self.table_: Optional[pd.DataFrame] = None

    def sweep(self, y_true, y_proba, thresholds: Optional[Sequence[float]] = None) -> pd.DataFrame:
        """Confusion counts and precision/recall/F1 for each threshold."""
        y_true = np.asarray(y_true).astype(int)
        y_proba = np.asarray(y_proba).astype(float)
        if thresholds is None:
            thresholds = np.round(np.arange(0.05, 0.95, self.step), 10)

        rows = []
        for thr in thresholds:
            y_pred = (y_proba >= thr).astype(int)
            row = {"threshold": float(thr)}
            row.update(confusion_counts(y_true, y_proba, float(thr)))
            row["precision"] = float(precision_score(y_true, y_pred, zero_division=0))
            row["recall"] = float(recall_score(y_true, y_pred, zero_division=0))
            row["f1"] = float(f1_score(y_true, y_pred, zero_division=0))
            rows.append(row)

        self.table_ = pd.DataFrame(rows)
        return self.table_

    def run(self, y_true, y_proba, plot: bool = True) -> float:
        table = self.sweep(y_true, y_proba)

        best_idx = int(np.argmax(table["f1"].to_numpy()))
        best_thr = float(table["threshold"].iloc[best_idx])

        if plot:
            os.makedirs(self.output_dir, exist_ok=True)
            plt.figure(figsize=(7, 5))
            sns.lineplot(x=table["threshold"], y=table["precision"], label="Precision")
            sns.lineplot(x=table["threshold"], y=table["recall"], label="Recall")
            sns.lineplot(x=table["threshold"], y=table["f1"], label="F1")
            plt.axvline(best_thr, linestyle="--", label=f"Best F1 thr={best_thr:.2f}")
            plt.xlabel("Threshold")
            plt.ylabel("Score")
            plt.title("Threshold Sweep")
            plt.legend()

            path = os.path.join(self.output_dir, self.filename)
            plt.tight_layout()
            plt.savefig(path, dpi=200)
            plt.close()

            if self.verbose:
                self.logger.info(f"Saved threshold sweep plot: {path}")

        if self.verbose:
            self.logger.info(f"Best F1 threshold: {best_thr:.3f} (F1={table['f1'].iloc[best_idx]:.3f})")

        return best_thr
