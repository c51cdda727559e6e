import pandas as pd
import pytest

from stem_cell_recovery.data_loader import coerce, infer_schema
from stem_cell_recovery.splitter import DataSplitter
from stem_cell_recovery.synthetic import make_scenario_dataset, make_synthetic_cohort

OUTCOME = "poor_recovery"


def _as_loaded(df: pd.DataFrame) -> pd.DataFrame:
    return coerce(df, infer_schema(df, OUTCOME))


@pytest.fixture
def scenario_df():
    """100 records, 20 positives, 2 numeric (5% missing) + 3 categorical predictors."""
    return _as_loaded(make_scenario_dataset(random_state=100))


@pytest.fixture
def cohort_df():
    return _as_loaded(make_synthetic_cohort(n_records=120, random_state=7))


@pytest.fixture
def cohort_split(cohort_df):
    return DataSplitter(OUTCOME, random_state=3).split(cohort_df, 0.75)


@pytest.fixture
def cohort_folds(cohort_split):
    return DataSplitter(OUTCOME, random_state=3).kfold(cohort_split.train, 3)
