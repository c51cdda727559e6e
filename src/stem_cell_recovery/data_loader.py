from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Optional

import numpy as np
import pandas as pd

from .exceptions import SchemaMismatchError
from .utils.logger import get_logger

CONTINUOUS = "continuous"
CATEGORICAL = "categorical"
BOOLEAN = "boolean"

_TRUE_TOKENS = {"true", "t", "yes", "y", "1", "1.0"}
_FALSE_TOKENS = {"false", "f", "no", "n", "0", "0.0"}


def parse_boolean(values: pd.Series) -> pd.Series:
    """Map boolean-like values to 1/0, leaving unrecognised entries as NaN."""
    tokens = values.map(lambda v: str(v).strip().lower() if pd.notna(v) else None)
    out = pd.Series(np.nan, index=values.index, dtype=float)
    out[tokens.isin(_TRUE_TOKENS)] = 1.0
    out[tokens.isin(_FALSE_TOKENS)] = 0.0
    return out


def _looks_boolean(values: pd.Series) -> bool:
    observed = values.dropna()
    if observed.empty:
        return False
    if pd.api.types.is_numeric_dtype(observed):
        return False
    tokens = set(observed.map(lambda v: str(v).strip().lower()))
    return tokens.issubset(_TRUE_TOKENS | _FALSE_TOKENS)


@dataclass(frozen=True)
class DatasetSchema:
    """Semantic type of each predictor plus the outcome column name."""
    outcome_col: str
    fields: Dict[str, str]

    @property
    def predictors(self) -> list[str]:
        return list(self.fields)

    def columns_of(self, kind: str) -> list[str]:
        return [name for name, k in self.fields.items() if k == kind]


def infer_schema(
    df: pd.DataFrame,
    outcome_col: str,
    categorical_cols: Optional[Iterable[str]] = None,
) -> DatasetSchema:
    forced = set(categorical_cols or [])
    fields: Dict[str, str] = {}
    for col in df.columns:
        if col == outcome_col:
            continue
        if col in forced:
            fields[col] = CATEGORICAL
        elif pd.api.types.is_bool_dtype(df[col]) or _looks_boolean(df[col]):
            fields[col] = BOOLEAN
        elif pd.api.types.is_numeric_dtype(df[col]):
            fields[col] = CONTINUOUS
        else:
            fields[col] = CATEGORICAL
    return DatasetSchema(outcome_col=outcome_col, fields=fields)


def coerce(df: pd.DataFrame, schema: DatasetSchema) -> pd.DataFrame:
    """Return a copy with the outcome as int 0/1 and predictors typed per schema."""
    if schema.outcome_col not in df.columns:
        raise SchemaMismatchError(f"Outcome column '{schema.outcome_col}' not found")
    missing = [c for c in schema.predictors if c not in df.columns]
    if missing:
        raise SchemaMismatchError(f"Predictor columns not found: {missing}")

    out = df.copy()
    outcome = parse_boolean(out[schema.outcome_col])
    if outcome.isna().any():
        bad = out.loc[outcome.isna(), schema.outcome_col].head(5).tolist()
        raise SchemaMismatchError(
            f"Outcome '{schema.outcome_col}' has {int(outcome.isna().sum())} missing "
            f"or unparseable values (e.g. {bad})"
        )
    out[schema.outcome_col] = outcome.astype(int)

    for col, kind in schema.fields.items():
        if kind == CATEGORICAL:
            out[col] = out[col].map(lambda v: str(v) if pd.notna(v) else np.nan).astype("category")
        elif kind == BOOLEAN:
            out[col] = parse_boolean(out[col])
        else:
            out[col] = pd.to_numeric(out[col], errors="coerce").astype(float)
    return out


def split_xy(df: pd.DataFrame, outcome_col: str) -> tuple[pd.DataFrame, np.ndarray]:
    """Separate predictors from the 0/1 outcome array."""
    return df.drop(columns=[outcome_col]), df[outcome_col].astype(int).to_numpy()


class DataLoader:
    """Loads CSV dataset, coerces column types and optionally samples rows."""

    def __init__(
        self,
        path: str,
        outcome_col: str = "poor_recovery",
        categorical_cols: Optional[Iterable[str]] = None,
        sample_size: Optional[int] = None,
        random_state: int = 42,
    ):
        self.path = path
        self.outcome_col = outcome_col
        self.categorical_cols = list(categorical_cols or [])
        self.sample_size = sample_size
        self.random_state = random_state
        self.schema: Optional[DatasetSchema] = None
        self.logger = get_logger(self.__class__.__name__)

    def load(self) -> pd.DataFrame:
        df = pd.read_csv(self.path)
        if self.sample_size:
            df = df.sample(self.sample_size, random_state=self.random_state)

        self.schema = infer_schema(df, self.outcome_col, self.categorical_cols)
        df = coerce(df, self.schema)

        counts = {kind: len(self.schema.columns_of(kind)) for kind in (CONTINUOUS, BOOLEAN, CATEGORICAL)}
        self.logger.info(
            f"Loaded {len(df)} records, predictors: {counts}, "
            f"positive rate={df[self.outcome_col].mean():.3f}"
        )
        return df
