from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List

import numpy as np
import pandas as pd

from .config import BASE_XGB_PARAMS, BASE_MLP_PARAMS

# Main argument names -> engine argument names
ENGINE_ARGS: Dict[str, Dict[str, str]] = {
    "xgboost": {
        "trees": "n_estimators",
        "tree_depth": "max_depth",
        "learn_rate": "learning_rate",
        "min_n": "min_child_weight",
        "loss_reduction": "gamma",
        "sample_size": "subsample",
        "mtry": "colsample_bytree",
    },
    "mlp": {
        "hidden_units": "hidden_layer_sizes",
        "penalty": "alpha",
        "epochs": "max_iter",
        "activation": "activation",
    },
}

INT_ARGS = {"trees", "tree_depth", "min_n", "hidden_units", "epochs"}
MODES = ("regression", "classification")


class Tune:
    """Placeholder for a hyperparameter whose value comes from tuning."""

    def __init__(self, id: str | None = None):
        self.id = id

    def __repr__(self) -> str:
        return f"tune({self.id!r})" if self.id else "tune()"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Tune) and other.id == self.id


def tune(id: str | None = None) -> Tune:
    return Tune(id)


@dataclass
class ModelSpec:
    engine: str
    mode: str
    args: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.engine not in ENGINE_ARGS:
            raise ValueError(f"Unknown engine: {self.engine}")
        if self.mode not in MODES:
            raise ValueError(f"Unknown mode: {self.mode}")
        unknown = set(self.args) - set(ENGINE_ARGS[self.engine])
        if unknown:
            raise ValueError(f"Arguments not supported by {self.engine}: {sorted(unknown)}")

    def tunable(self) -> List[str]:
        return [k for k, v in self.args.items() if isinstance(v, Tune)]

    def set_args(self, **kwargs: Any) -> "ModelSpec":
        args = dict(self.args)
        args.update(kwargs)
        return replace(self, args=args)

    def engine_params(self, seed: int = 42, n_jobs: int | None = None) -> Dict[str, Any]:
        left = self.tunable()
        if left:
            raise ValueError(f"Model has unresolved tune() arguments: {left}; call finalize_model() first")

        mapping = ENGINE_ARGS[self.engine]
        params: Dict[str, Any] = {}
        for k, v in self.args.items():
            if v is None:
                continue
            if k in INT_ARGS:
                v = int(round(float(v)))
            params[mapping[k]] = v

        if self.engine == "xgboost":
            params.update(BASE_XGB_PARAMS)
            if self.mode == "classification":
                params["objective"] = "binary:logistic"
            params["random_state"] = int(seed)
            params["n_jobs"] = -1 if n_jobs is None else int(n_jobs)
        else:
            out = dict(BASE_MLP_PARAMS)
            out.update(params)
            params = out
            if "hidden_layer_sizes" in params:
                params["hidden_layer_sizes"] = (int(params["hidden_layer_sizes"]),)
            params["random_state"] = int(seed)
        return params

    def build(self, seed: int = 42, n_jobs: int | None = None):
        """Unfitted estimator for this specification."""
        params = self.engine_params(seed=seed, n_jobs=n_jobs)
        if self.engine == "xgboost":
            import xgboost as xgb

            if self.mode == "regression":
                return xgb.XGBRegressor(**params)
            return xgb.XGBClassifier(**params)

        from sklearn.neural_network import MLPClassifier

        return MLPClassifier(**params)

    def __repr__(self) -> str:
        args = ", ".join(f"{k}={v!r}" for k, v in self.args.items())
        return f"<ModelSpec {self.engine} ({self.mode}): {args}>"


def boost_tree(
    mode: str = "regression",
    trees: Any = None,
    tree_depth: Any = None,
    learn_rate: Any = None,
    min_n: Any = None,
    loss_reduction: Any = None,
    sample_size: Any = None,
    mtry: Any = None,
) -> ModelSpec:
    """Gradient-boosted trees (xgboost engine)."""
    args = {
        "trees": trees,
        "tree_depth": tree_depth,
        "learn_rate": learn_rate,
        "min_n": min_n,
        "loss_reduction": loss_reduction,
        "sample_size": sample_size,
        "mtry": mtry,
    }
    return ModelSpec("xgboost", mode, {k: v for k, v in args.items() if v is not None})


def mlp(
    hidden_units: Any = None,
    penalty: Any = None,
    epochs: Any = None,
    activation: str = "relu",
) -> ModelSpec:
    """Single hidden layer feed-forward classifier (scikit-learn engine)."""
    args = {
        "hidden_units": hidden_units,
        "penalty": penalty,
        "epochs": epochs,
        "activation": activation,
    }
    return ModelSpec("mlp", "classification", {k: v for k, v in args.items() if v is not None})


def finalize_model(spec: ModelSpec, params: Dict[str, Any]) -> ModelSpec:
    """Substitute tuned values for tune() placeholders."""
    values = {}
    for name in spec.tunable():
        if name not in params:
            continue
        v = params[name]
        if isinstance(v, (np.integer, np.floating)):
            v = v.item()
        values[name] = v
    final = spec.set_args(**values)
    left = final.tunable()
    if left:
        raise ValueError(f"No value supplied for tuned arguments: {left}")
    return final


def encode_outcome(y, classes: List[Any] | None) -> np.ndarray:
    """Regression outcomes pass through; class labels become codes in ``classes`` order."""
    if classes is None:
        return np.asarray(y, dtype=float)
    lookup = {c: i for i, c in enumerate(classes)}
    codes = [lookup.get(v, -1) for v in y]
    if -1 in codes:
        unknown = sorted({str(v) for v in y if v not in lookup})
        raise ValueError(f"Outcome has labels outside {list(classes)}: {unknown}")
    return np.asarray(codes, dtype=int)


def outcome_classes(y) -> List[Any]:
    """Class levels in order: categorical levels when declared, otherwise sorted labels."""
    s = pd.Series(y)
    if isinstance(s.dtype, pd.CategoricalDtype):
        present = set(s.dropna().unique())
        return [c for c in s.cat.categories if c in present]
    return sorted(s.dropna().unique().tolist())
