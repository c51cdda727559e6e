"""Errors raised by the recovery pipeline. All of them are fatal for a run."""


class RecoveryPipelineError(Exception):
    """Base class for pipeline errors."""


class InsufficientDataError(RecoveryPipelineError, ValueError):
    """A class has too few members to stratify a split or k folds."""


class SchemaMismatchError(RecoveryPipelineError, ValueError):
    """Input columns do not match what a fitted step or the loader expects."""


class UnfittedModelError(RecoveryPipelineError, RuntimeError):
    """Prediction was requested from a model that has not been fitted."""


class UndefinedMetricError(RecoveryPipelineError, ValueError):
    """A metric is not defined for the given labels or scores."""
