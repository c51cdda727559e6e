"""
Synthetic stem-cell collection data.

Generates records shaped like the real cohort (continuous labs, a few flags,
categorical disease/mobilisation fields and a ``poor_recovery`` outcome) so
the pipeline can be exercised without patient data. All draws come from a
local ``RandomState`` seeded by the caller.
"""
from typing import Optional

import numpy as np
import pandas as pd

DIAGNOSES = ["Myeloma", "NHL", "Hodgkin", "AML"]
REGIMENS = ["G-CSF", "G-CSF+Plerixafor", "Chemo+G-CSF"]
DISEASE_STATUS = ["CR", "PR", "SD"]

LAB_MISSING_RATES = {
    "albumin": 0.08,
    "ldh": 0.10,
    "creatinine": 0.04,
    "precollection_cd34": 0.05,
    "monocytes": 0.06,
}


def _label_top(risk: np.ndarray, n_positive: int) -> np.ndarray:
    """Mark the ``n_positive`` highest-risk records as positive."""
    order = np.argsort(-risk, kind="mergesort")
    labels = np.zeros(len(risk), dtype=bool)
    labels[order[:n_positive]] = True
    return labels


def _inject_missing(df: pd.DataFrame, col: str, rate: float, rng: np.random.RandomState) -> None:
    n_missing = int(round(rate * len(df)))
    if n_missing:
        rows = rng.choice(len(df), size=n_missing, replace=False)
        df.loc[df.index[rows], col] = np.nan


def make_synthetic_cohort(
    n_records: int = 235,
    positive_rate: float = 0.2,
    random_state: int = 42,
    missing_rates: Optional[dict] = None,
) -> pd.DataFrame:
    """24 predictors plus a boolean ``poor_recovery`` outcome."""
    rng = np.random.RandomState(random_state)
    n = n_records

    age = np.clip(rng.normal(58, 10, n), 18, 80).round()
    sex = rng.choice(["F", "M"], size=n, p=[0.42, 0.58])
    weight_kg = np.clip(rng.normal(np.where(sex == "M", 84, 70), 13), 40, 150).round(1)
    height_cm = np.clip(rng.normal(np.where(sex == "M", 178, 165), 7), 145, 205).round()
    bmi = (weight_kg / (height_cm / 100) ** 2).round(1)
    diagnosis = rng.choice(DIAGNOSES, size=n, p=[0.5, 0.3, 0.12, 0.08])
    regimen = rng.choice(REGIMENS, size=n, p=[0.5, 0.3, 0.2])
    status = rng.choice(DISEASE_STATUS, size=n, p=[0.35, 0.5, 0.15])
    prior_lines = rng.poisson(1.5, n)
    prior_radiation = rng.rand(n) < 0.25
    prior_lenalidomide = (diagnosis == "Myeloma") & (rng.rand(n) < 0.6)
    days_since_diagnosis = rng.gamma(3.0, 90.0, n).round()

    cd34_brightness = rng.normal(100 - 6 * prior_lines - 8 * prior_lenalidomide, 18)
    precollection_cd34 = np.exp(rng.normal(3.2 - 0.15 * prior_lines, 0.6)).round(1)
    wbc = np.clip(rng.normal(25, 10, n), 2, 80).round(1)
    neutrophils = (wbc * rng.uniform(0.55, 0.85, n)).round(1)
    lymphocytes = (wbc * rng.uniform(0.08, 0.25, n)).round(1)
    monocytes = (wbc * rng.uniform(0.03, 0.12, n)).round(2)
    platelets = np.clip(rng.normal(180 - 15 * prior_lines, 55), 20, 500).round()
    hemoglobin = np.clip(rng.normal(np.where(sex == "M", 12.5, 11.5), 1.4), 7, 17).round(1)
    creatinine = np.clip(rng.lognormal(0.0, 0.3, n), 0.4, 5).round(2)
    albumin = np.clip(rng.normal(3.9, 0.45, n), 2.0, 5.2).round(2)
    ldh = np.clip(rng.lognormal(5.4, 0.3, n), 100, 1500).round()
    collection_volume_l = np.clip(rng.normal(18, 4, n), 6, 30).round(1)

    risk = (
        -0.045 * cd34_brightness
        - 0.6 * np.log(precollection_cd34)
        + 0.03 * age
        + 0.35 * prior_lines
        + 0.5 * (regimen == "G-CSF")
        + 0.4 * prior_lenalidomide
        - 0.004 * platelets
        + rng.normal(0, 0.8, n)
    )
    poor_recovery = _label_top(risk, int(round(positive_rate * n)))

    df = pd.DataFrame(
        {
            "age": age,
            "sex": sex,
            "weight_kg": weight_kg,
            "height_cm": height_cm,
            "bmi": bmi,
            "diagnosis": diagnosis,
            "disease_status": status,
            "mobilization_regimen": regimen,
            "prior_lines_of_therapy": prior_lines,
            "prior_radiation": prior_radiation,
            "prior_lenalidomide": prior_lenalidomide,
            "days_since_diagnosis": days_since_diagnosis,
            "cd34_brightness": cd34_brightness.round(1),
            "precollection_cd34": precollection_cd34,
            "wbc": wbc,
            "neutrophils": neutrophils,
            "lymphocytes": lymphocytes,
            "monocytes": monocytes,
            "platelets": platelets,
            "hemoglobin": hemoglobin,
            "creatinine": creatinine,
            "albumin": albumin,
            "ldh": ldh,
            "collection_volume_l": collection_volume_l,
            "poor_recovery": poor_recovery,
        }
    )

    for col, rate in (missing_rates or LAB_MISSING_RATES).items():
        _inject_missing(df, col, rate, rng)
    return df


def make_scenario_dataset(
    n_records: int = 100,
    positive_fraction: float = 0.2,
    missing_rate: float = 0.05,
    random_state: int = 100,
) -> pd.DataFrame:
    """
    Small benchmark frame: two numeric predictors with missing values, three
    three-level categorical predictors and an exact positive fraction.
    """
    rng = np.random.RandomState(random_state)
    n_positive = int(round(positive_fraction * n_records))
    outcome = np.zeros(n_records, dtype=bool)
    outcome[rng.choice(n_records, size=n_positive, replace=False)] = True

    levels = np.array(["A", "B", "C"])
    shift = outcome.astype(float)
    df = pd.DataFrame(
        {
            "num_1": rng.normal(0.0, 1.0, n_records) + 1.0 * shift,
            "num_2": rng.normal(10.0, 3.0, n_records) - 1.5 * shift,
            "cat_1": np.where(
                outcome,
                rng.choice(levels, size=n_records, p=[0.5, 0.3, 0.2]),
                rng.choice(levels, size=n_records, p=[0.25, 0.35, 0.4]),
            ),
            "cat_2": rng.choice(levels, size=n_records),
            "cat_3": rng.choice(levels, size=n_records),
            "poor_recovery": outcome,
        }
    )
    _inject_missing(df, "num_1", missing_rate, rng)
    _inject_missing(df, "num_2", missing_rate, rng)
    return df
