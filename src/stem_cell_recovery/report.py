"""Report sink: writes the pipeline's tables and figures to a directory."""
import os
from typing import Optional

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
from sklearn.metrics import roc_curve

from .utils.logger import get_logger


class ReportWriter:
    """Saves CSV tables and PNG plots under ``report_dir``."""

    def __init__(self, report_dir: str = "artifacts", verbose: bool = True):
        self.report_dir = report_dir
        self.verbose = verbose
        self.logger = get_logger(self.__class__.__name__)

    def _path(self, filename: str) -> str:
        os.makedirs(self.report_dir, exist_ok=True)
        return os.path.join(self.report_dir, filename)

    def _save_figure(self, filename: str) -> str:
        path = self._path(filename)
        plt.tight_layout()
        plt.savefig(path, dpi=200)
        plt.close()
        if self.verbose:
            self.logger.info(f"Saved figure: {path}")
        return path

    def write_table(self, table: pd.DataFrame, filename: str, index: bool = False) -> str:
        path = self._path(filename)
        table.to_csv(path, index=index)
        if self.verbose:
            self.logger.info(f"Saved table: {path} ({len(table)} rows)")
        return path

    def plot_missingness(self, df: pd.DataFrame, filename: str = "missingness.png") -> str:
        """Heatmap of missing cells, one row per record."""
        plt.figure(figsize=(10, 6))
        sns.heatmap(df.isna().astype(int), cbar=False, cmap="Greys", yticklabels=False)
        plt.xlabel("Field")
        plt.ylabel("Record")
        plt.title(f"Missing values ({int(df.isna().sum().sum())} cells)")
        return self._save_figure(filename)

    def plot_roc_curve(self, y_true, y_proba, auc: float, filename: str = "roc_curve.png") -> str:
        fpr, tpr, _ = roc_curve(np.asarray(y_true).astype(int), np.asarray(y_proba).astype(float))
        plt.figure(figsize=(6, 6))
        plt.plot(fpr, tpr, label=f"ROC-AUC = {auc:.3f}")
        plt.plot([0, 1], [0, 1], linestyle="--", color="grey")
        plt.xlabel("False positive rate")
        plt.ylabel("True positive rate")
        plt.title("ROC Curve (test split)")
        plt.legend(loc="lower right")
        return self._save_figure(filename)

    def plot_feature_importances(
        self,
        importances: Optional[pd.Series],
        top_n: int = 20,
        filename: str = "feature_importance.png",
    ) -> Optional[str]:
        if importances is None or importances.empty:
            return None
        top = importances.head(top_n)
        plt.figure(figsize=(8, max(3, 0.35 * len(top))))
        sns.barplot(x=top.values, y=top.index, color="steelblue")
        plt.xlabel("Importance")
        plt.ylabel("")
        plt.title("Variable importance")
        return self._save_figure(filename)
