from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

import numpy as np
import pandas as pd

from .metrics import METRIC_SETS, compute_metrics, conf_mat
from .model import ModelSpec, encode_outcome, outcome_classes
from .recipe import Recipe


@dataclass
class LastFit:
    spec: ModelSpec
    recipe: Recipe
    model: Any
    outcome: str
    features: List[str]
    classes: List[Any] | None
    predictions: pd.DataFrame
    metrics: Dict[str, float]

    def _design(self, new_data: pd.DataFrame) -> pd.DataFrame:
        baked = self.recipe.bake(new_data)
        missing = [c for c in self.features if c not in baked.columns]
        if missing:
            raise KeyError(f"Baked data is missing model features: {missing}")
        return baked[self.features]

    def predict(self, new_data: pd.DataFrame, type: str = "numeric") -> np.ndarray:
        """Predict raw rows (they are baked through the trained recipe first).

        ``type`` is ``numeric`` for regression, ``prob`` or ``class`` for classification.
        """
        X = self._design(new_data)
        if self.classes is None:
            if type != "numeric":
                raise ValueError(f"Prediction type {type} is not available for regression")
            return self.model.predict(X)
        proba = self.model.predict_proba(X)
        if type == "prob":
            return proba
        if type == "class":
            return np.asarray(self.classes, dtype=object)[proba.argmax(axis=1)]
        raise ValueError(f"Unknown prediction type: {type}")

    def conf_mat(self) -> pd.DataFrame:
        if self.classes is None:
            raise ValueError("Confusion matrix is only available for classification")
        return conf_mat(self.predictions[self.outcome], self.predictions[".pred_class"], self.classes)


def last_fit(
    spec: ModelSpec,
    recipe: Recipe,
    train: pd.DataFrame,
    test: pd.DataFrame,
    outcome: str | None = None,
    metrics: Sequence[str] | None = None,
    seed: int = 42,
    n_jobs: int | None = None,
) -> LastFit:
    """Fit the finalised model on all training rows and score it on the test rows."""
    outcome = outcome or recipe.outcome
    metrics = list(metrics or METRIC_SETS[spec.mode])
    if not recipe.trained:
        recipe.prep(train)

    train_b = recipe.bake(train)
    test_b = recipe.bake(test)
    for name, part in (("training", train_b), ("testing", test_b)):
        if outcome not in part.columns:
            raise KeyError(f"Outcome column {outcome} not found in baked {name} data")

    features = [c for c in train_b.columns if c != outcome]
    classes = outcome_classes(train_b[outcome]) if spec.mode == "classification" else None

    model = spec.build(seed=seed, n_jobs=n_jobs)
    model.fit(train_b[features], encode_outcome(np.asarray(train_b[outcome]), classes))

    X_te = test_b[features]
    y_te = np.asarray(test_b[outcome])
    if classes is None:
        pred = model.predict(X_te)
        preds_df = pd.DataFrame({
            ".pred": pred,
            outcome: y_te,
            ".resid": y_te.astype(float) - pred,
        })
        scores = compute_metrics(metrics, y_te, pred)
    else:
        proba = model.predict_proba(X_te)
        preds_df = pd.DataFrame({f".pred_{c}": proba[:, i] for i, c in enumerate(classes)})
        preds_df[".pred_class"] = np.asarray(classes, dtype=object)[proba.argmax(axis=1)]
        preds_df[outcome] = y_te
        scores = compute_metrics(metrics, y_te, proba, classes)

    return LastFit(
        spec=spec,
        recipe=recipe,
        model=model,
        outcome=outcome,
        features=features,
        classes=classes,
        predictions=preds_df,
        metrics=scores,
    )
