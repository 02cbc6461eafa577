from __future__ import annotations

from typing import Dict, List, Sequence, Any

import numpy as np
import pandas as pd
from sklearn.metrics import (
    accuracy_score,
    confusion_matrix,
    mean_absolute_error,
    mean_squared_error,
    r2_score,
    roc_auc_score,
)

METRIC_DIRECTIONS: Dict[str, str] = {
    "rmse": "minimize",
    "mae": "minimize",
    "rsq": "maximize",
    "accuracy": "maximize",
    "roc_auc": "maximize",
}

METRIC_SETS: Dict[str, List[str]] = {
    "regression": ["rmse", "rsq", "mae"],
    "classification": ["accuracy", "roc_auc"],
}


def regression_metrics(y_true, y_pred) -> Dict[str, float]:
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)
    rmse = float(np.sqrt(mean_squared_error(y_true, y_pred)))
    mae = float(mean_absolute_error(y_true, y_pred))
    rsq = float(r2_score(y_true, y_pred)) if len(y_true) > 1 else float("nan")
    return {"rmse": rmse, "rsq": rsq, "mae": mae}


def classification_metrics(
    y_true: Sequence[Any],
    proba: np.ndarray,
    classes: Sequence[Any],
    event_level: str = "first",
) -> Dict[str, float]:
    """Accuracy from the argmax class, ROC AUC for the event class.

    ``proba`` columns follow ``classes``; the event is the first level unless
    ``event_level="second"``.
    """
    if event_level not in ("first", "second"):
        raise ValueError(f"event_level must be 'first' or 'second', got {event_level!r}")
    classes = list(classes)
    proba = np.asarray(proba, dtype=float)
    y_true = np.asarray(list(y_true), dtype=object)
    pred = np.asarray(classes, dtype=object)[proba.argmax(axis=1)]
    acc = float(accuracy_score(y_true, pred))

    event_idx = 0 if event_level == "first" else 1
    is_event = y_true == classes[event_idx]
    if is_event.all() or not is_event.any():
        auc = float("nan")
    else:
        auc = float(roc_auc_score(is_event.astype(int), proba[:, event_idx]))
    return {"accuracy": acc, "roc_auc": auc}


def compute_metrics(names: Sequence[str], y_true, pred, classes: Sequence[Any] | None = None) -> Dict[str, float]:
    """Dispatch to the regression or classification set and keep only ``names``."""
    unknown = [n for n in names if n not in METRIC_DIRECTIONS]
    if unknown:
        raise ValueError(f"Unknown metrics: {unknown}")
    if classes is None:
        values = regression_metrics(y_true, pred)
    else:
        values = classification_metrics(y_true, pred, classes)
    missing = [n for n in names if n not in values]
    if missing:
        mode = "regression" if classes is None else "classification"
        raise ValueError(f"Metrics {missing} are not available for {mode}")
    return {n: values[n] for n in names}


def conf_mat(y_true, y_pred, classes: Sequence[Any]) -> pd.DataFrame:
    """Confusion matrix with predictions as rows and truth as columns."""
    classes = list(classes)
    cm = confusion_matrix(np.asarray(list(y_true), dtype=object), np.asarray(list(y_pred), dtype=object), labels=classes)
    df = pd.DataFrame(cm.T, index=classes, columns=classes)
    df.index.name = "Prediction"
    df.columns.name = "Truth"
    return df
