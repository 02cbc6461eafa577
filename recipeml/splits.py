from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

import json
import math
import numpy as np
import pandas as pd
from sklearn.model_selection import StratifiedKFold, KFold, train_test_split


@dataclass
class Split:
    train_idx: np.ndarray
    test_idx: np.ndarray
    strata: bool = True

    def training(self, df: pd.DataFrame) -> pd.DataFrame:
        return df.iloc[self.train_idx].reset_index(drop=True)

    def testing(self, df: pd.DataFrame) -> pd.DataFrame:
        return df.iloc[self.test_idx].reset_index(drop=True)


@dataclass
class Fold:
    id: str
    train_idx: np.ndarray
    val_idx: np.ndarray


def make_strata(y: pd.Series, breaks: int = 4) -> pd.Series:
    """Stratification labels: class labels, or quantile bins for numeric outcomes."""
    y = pd.Series(y).reset_index(drop=True)
    if pd.api.types.is_numeric_dtype(y) and not pd.api.types.is_bool_dtype(y):
        if y.nunique() <= breaks:
            return y.astype(str)
        bins = pd.qcut(y, q=breaks, labels=False, duplicates="drop")
        return bins.astype(str)
    return y.astype(str)


def _usable_strata(strata: pd.Series, n_required: int) -> bool:
    return bool(strata.value_counts().min() >= n_required)


def _partition_sizes(n: int, prop: float) -> tuple[int, int]:
    # Same rounding as train_test_split with a float train_size
    n_train = int(math.floor(prop * n))
    return n_train, n - n_train


def initial_split(
    df: pd.DataFrame,
    outcome: str,
    prop: float = 0.75,
    strata: bool = True,
    breaks: int = 4,
    seed: int = 42,
) -> Split:
    """Train/test split stratified on the outcome."""
    if not 0.0 < prop < 1.0:
        raise ValueError(f"prop must be in (0, 1), got {prop}")
    if outcome not in df.columns:
        raise KeyError(f"Outcome column {outcome} not found in data")

    idx = np.arange(len(df))
    stratify = None
    if strata:
        labels = make_strata(df[outcome], breaks)
        n_train, n_test = _partition_sizes(len(df), prop)
        n_strata = labels.nunique()
        # Each side of a stratified split needs at least one row per stratum
        if _usable_strata(labels, 2) and min(n_train, n_test) >= n_strata:
            stratify = labels.values
        else:
            print("[WARN] Too few rows per stratum; falling back to an unstratified split.")

    tr_idx, te_idx = train_test_split(
        idx,
        train_size=prop,
        random_state=seed,
        shuffle=True,
        stratify=stratify,
    )
    return Split(np.sort(tr_idx), np.sort(te_idx), strata=stratify is not None)


def vfold_cv(
    df: pd.DataFrame,
    outcome: str,
    v: int = 10,
    strata: bool = True,
    breaks: int = 4,
    seed: int = 42,
) -> List[Fold]:
    """V-fold cross-validation folds, stratified on the outcome when possible."""
    if v < 2 or v > len(df):
        raise ValueError(f"v must be in [2, {len(df)}], got {v}")
    if outcome not in df.columns:
        raise KeyError(f"Outcome column {outcome} not found in data")

    idx = np.arange(len(df))
    labels = make_strata(df[outcome], breaks) if strata else None
    if labels is not None and _usable_strata(labels, v):
        splitter = StratifiedKFold(n_splits=v, shuffle=True, random_state=seed)
        parts = splitter.split(idx, labels.values)
    else:
        if strata:
            print(f"[WARN] Some strata have fewer than {v} rows; using unstratified folds.")
        splitter = KFold(n_splits=v, shuffle=True, random_state=seed)
        parts = splitter.split(idx)

    width = max(2, len(str(v)))
    return [
        Fold(id=f"Fold{str(i).zfill(width)}", train_idx=tr, val_idx=va)
        for i, (tr, va) in enumerate(parts, start=1)
    ]


def save_split(split: Split, path: str | Path, **meta: Any) -> Path:
    """Save split indices (plus caller metadata) for reuse."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload: Dict[str, Any] = {
        "created_at": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        "stratified": bool(split.strata),
        "n_train": int(len(split.train_idx)),
        "n_test": int(len(split.test_idx)),
        "train_idx": [int(i) for i in split.train_idx],
        "test_idx": [int(i) for i in split.test_idx],
        **meta,
    }
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)
    return path


def load_split(path: str | Path) -> Split:
    with open(path, "r", encoding="utf-8") as f:
        payload = json.load(f)
    tr_raw = payload.get("train_idx")
    te_raw = payload.get("test_idx")
    if tr_raw is None or te_raw is None:
        raise ValueError("Split payload is missing train/test indices.")
    return Split(
        np.array(tr_raw, dtype=int),
        np.array(te_raw, dtype=int),
        strata=bool(payload.get("stratified", True)),
    )
