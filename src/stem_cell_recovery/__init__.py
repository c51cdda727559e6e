"""
Poor Stem-Cell Recovery: Cross-Validated Classification Report

This package compares random forest, k-nearest-neighbour and LightGBM
classifiers for predicting poor recovery after stem-cell collection, using
leakage-safe stratified cross-validation, exhaustive grid search and a
single final evaluation on a held-out test split.

Modules:
    config              — Load YAML configuration safely.
    data_loader         — Read CSV data and coerce column types.
    splitter            — Stratified train/test split and k folds.
    preprocessor        — k-NN imputation and dummy encoding recipe.
    models              — Model families behind one fit/predict interface.
    metrics             — ROC-AUC and confusion counts.
    model_trainer       — Fold-wise cross-validation and final fit.
    hyper_tuner         — Grid search with Optuna's GridSampler.
    evaluator           — Final test-split evaluation.
    threshold_analyzer  — Analyze threshold trade-offs.
    report              — Write report tables and figures.
    synthetic           — Synthetic cohorts for demos and tests.
    pipeline            — Orchestrates all components.
    utils.logger        — Unified timestamped console logger.
"""

from .config import Config
from .data_loader import DataLoader
from .splitter import DataSplitter, FoldSet, Split
from .preprocessor import FittedRecipe, Preprocessor
from .models import ModelCandidate, ModelFamily, ModelSpec
from .model_trainer import CVResult, ModelTrainer
from .hyper_tuner import HyperTuner, TuningResult
from .evaluator import Evaluator, FinalResult
from .threshold_analyzer import ThresholdAnalyzer
from .pipeline import PipelineRunner
from .exceptions import (
    InsufficientDataError,
    SchemaMismatchError,
    UndefinedMetricError,
    UnfittedModelError,
)

__all__ = [
    "Config",
    "DataLoader",
    "DataSplitter",
    "FoldSet",
    "Split",
    "FittedRecipe",
    "Preprocessor",
    "ModelCandidate",
    "ModelFamily",
    "ModelSpec",
    "CVResult",
    "ModelTrainer",
    "HyperTuner",
    "TuningResult",
    "Evaluator",
    "FinalResult",
    "ThresholdAnalyzer",
    "PipelineRunner",
    "InsufficientDataError",
    "SchemaMismatchError",
    "UndefinedMetricError",
    "UnfittedModelError",
]
