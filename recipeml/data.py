from __future__ import annotations

import numpy as np
import pandas as pd

from .config import OUTCOMES, BIVARIATE_CLASSES


def _normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    cols = []
    for c in df.columns:
        c2 = str(c).replace("\ufeff", "").strip()
        cols.append(c2)
    df = df.copy()
    df.columns = cols
    return df


def load_raw_csv(path: str) -> pd.DataFrame:
    df = pd.read_csv(path, encoding="latin1")
    return _normalize_columns(df)


def check_outcome(df: pd.DataFrame, outcome: str) -> None:
    if outcome not in df.columns:
        raise KeyError(f"Outcome column {outcome} not found in data")


def load_housing(
    data_path: str | None = None,
    data_home: str | None = None,
    outcome: str = OUTCOMES["housing"],
) -> pd.DataFrame:
    """Load the housing data: scikit-learn's California housing set, or a CSV override."""
    if data_path:
        df = load_raw_csv(data_path)
    else:
        from sklearn.datasets import fetch_california_housing

        bunch = fetch_california_housing(data_home=data_home, as_frame=True)
        df = _normalize_columns(bunch.frame)

    check_outcome(df, outcome)
    # Rows without an outcome cannot be split or scored
    df = df.dropna(subset=[outcome]).reset_index(drop=True)
    return df


def load_bivariate(n: int = 2019, seed: int = 42) -> pd.DataFrame:
    """Two positive, right-skewed predictors (A, B) and a two-level Class.

    Each class is a correlated bivariate normal in log space, so the raw
    predictors are log-normal and the class boundary is curved on the raw scale.
    """
    if n < 2:
        raise ValueError(f"n must be >= 2, got {n}")

    rng = np.random.default_rng(seed)
    labels = np.where(rng.random(n) < 0.58, BIVARIATE_CLASSES[0], BIVARIATE_CLASSES[1])
    # Guarantee both classes are present
    labels[0], labels[1] = BIVARIATE_CLASSES

    params = {
        BIVARIATE_CLASSES[0]: (np.array([7.4, 4.1]), np.array([[0.30, 0.18], [0.18, 0.20]])),
        BIVARIATE_CLASSES[1]: (np.array([7.9, 4.0]), np.array([[0.25, 0.16], [0.16, 0.22]])),
    }
    logs = np.empty((n, 2))
    for cls, (mean, cov) in params.items():
        mask = labels == cls
        logs[mask] = rng.multivariate_normal(mean, cov, size=int(mask.sum()))

    df = pd.DataFrame({
        "A": np.round(np.exp(logs[:, 0]), 2),
        "B": np.round(np.exp(logs[:, 1]), 3),
        "Class": pd.Categorical(labels, categories=list(BIVARIATE_CLASSES)),
    })
    return df
