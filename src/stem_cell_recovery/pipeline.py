import os
from dataclasses import dataclass
from textwrap import indent
from typing import Optional

import pandas as pd

from .config import Config
from .data_loader import DataLoader
from .evaluator import Evaluator, FinalResult
from .hyper_tuner import HyperTuner, TuningResult
from .model_trainer import ModelTrainer
from .models import ModelFamily, ModelSpec
from .report import ReportWriter
from .splitter import DataSplitter
from .threshold_analyzer import ThresholdAnalyzer
from .utils.logger import get_logger


@dataclass(frozen=True)
class PipelineResult:
    comparison: pd.DataFrame
    tuning: Optional[TuningResult]
    final: FinalResult
    threshold_sweep: Optional[pd.DataFrame]


class PipelineRunner:
    """End-to-end poor-recovery classification report.

    Steps:
      1. Load the collection records and coerce column types
      2. Stratified train/test split, stratified k folds on the train split
      3. Cross-validate the candidate model families and rank them
      4. Optionally grid-search hyperparameters of one family
      5. Refit the best spec on the full train split, score once on test
      6. Optionally sweep classification thresholds
      7. Write tables and figures for the report"""

    def __init__(self, config_path: Optional[str] = None, config: Optional[Config] = None):
        if config is None:
            if config_path is None:
                raise ValueError("Either config_path or config is required")
            config = Config.from_yaml(config_path)
        self.config = config
        self.logger = get_logger(self.__class__.__name__)

    def _candidate_specs(self) -> list[ModelSpec]:
        candidates = self.config.model.get("candidates") or {f.value: {} for f in ModelFamily}
        return [ModelSpec(ModelFamily(name), params or {}) for name, params in candidates.items()]

    def run(self) -> PipelineResult:
        cfg = self.config
        self.logger.info("Starting poor-recovery classification pipeline")
        try:
            return self._run(cfg)
        except Exception:
            self.logger.exception("Pipeline aborted")
            raise

    def _run(self, cfg: Config) -> PipelineResult:
        outcome_col = cfg.data.get("outcome_col", "poor_recovery")
        random_state = cfg.validation.get("random_state", 42)
        report_dir = cfg.output.get("report_dir", "artifacts")
        threshold = cfg.validation.get("threshold", 0.5)

        loader = DataLoader(
            cfg.data["path"],
            outcome_col=outcome_col,
            categorical_cols=cfg.data.get("categorical_cols"),
            sample_size=cfg.data.get("sample_size"),
            random_state=random_state,
        )
        df = loader.load()

        report = ReportWriter(report_dir)
        report.write_table(df, "dataset.csv")
        report.plot_missingness(df.drop(columns=[outcome_col]))

        splitter = DataSplitter(outcome_col=outcome_col, random_state=random_state)
        split = splitter.split(df, cfg.validation.get("train_fraction", 0.75))
        fold_set = splitter.kfold(split.train, cfg.validation.get("n_splits", 10))

        trainer = ModelTrainer(
            random_state=random_state,
            neighbors=cfg.preprocessing.get("neighbors", 5),
            use_scaler=cfg.preprocessing.get("use_scaler", False),
            balance_strategy=cfg.validation.get("balance_strategy", "none"),
            n_jobs=cfg.validation.get("n_jobs", 1),
            model_path=cfg.output.get("model_path"),
            recipe_path=cfg.output.get("recipe_path"),
        )

        specs = self._candidate_specs()
        comparison = trainer.compare(specs, fold_set)
        report.write_table(comparison, "model_comparison.csv")
        self.logger.info(f"Model comparison:\n{indent(comparison.to_string(), ' ' * 4)}")

        family = ModelFamily(cfg.model.get("tune_family") or comparison["family"].iloc[0])
        spec = next((s for s in specs if s.family is family), ModelSpec(family))

        tuning = None
        if cfg.model.get("tune", False):
            grids = cfg.model.get("grid") or {}
            if family.value not in grids:
                raise ValueError(f"No tuning grid configured for model family '{family.value}'")
            tuner = HyperTuner(trainer)
            tuning = tuner.tune(spec, grids[family.value], fold_set)
            report.write_table(tuning.to_frame(), "tuning_results.csv")
            spec = tuning.best_spec()
            self.logger.info("Model parameters updated with tuned values")
        else:
            self.logger.info("Hyperparameter tuning disabled")

        evaluator = Evaluator(
            metrics_path=cfg.output.get("metrics_path"),
            figures_dir=report_dir,
            threshold=threshold,
        )
        final = evaluator.finalize(trainer, spec, split, outcome_col)

        metrics_str = indent(
            "\n".join([f"{k}: {v:.4f}" for k, v in final.metrics.items()]),
            " " * 4,
        )
        self.logger.info(f"Test metrics:\n{metrics_str}")

        report.write_table(final.predictions, "test_predictions.csv", index=True)
        report.plot_roc_curve(
            final.predictions[outcome_col], final.predictions["prob_positive"], final.metrics["ROC_AUC"]
        )
        if final.feature_importances is not None:
            report.write_table(final.feature_importances.rename_axis("feature").reset_index(), "feature_importance.csv")
            report.plot_feature_importances(final.feature_importances)

        sweep = None
        if cfg.validation.get("analyze_thresholds", False):
            analyzer = ThresholdAnalyzer(report_dir)
            best_thr = analyzer.run(final.predictions[outcome_col], final.predictions["prob_positive"])
            sweep = analyzer.table_
            report.write_table(sweep, "threshold_sweep.csv")
            self.logger.info(f"Best F1 threshold (test): {best_thr:.3f}")

        self.logger.info(f"Report written to {os.path.abspath(report_dir)}")
        self.logger.info("Pipeline finished")
        return PipelineResult(comparison=comparison, tuning=tuning, final=final, threshold_sweep=sweep)
