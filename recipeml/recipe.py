"""Declarative preprocessing recipes.

A recipe is an ordered list of steps recorded against a training template.
``prep`` estimates each step on training data (in order, each step seeing the
output of the previous one); ``bake`` applies the trained steps to new data.

    rec = (
        Recipe(train, outcome="Class")
        .step_boxcox("all_numeric_predictors")
        .step_normalize("all_numeric_predictors")
        .prep()
    )
    test_baked = rec.bake(test)
"""
from __future__ import annotations

from typing import Any, Dict, List, Sequence

import numpy as np
import pandas as pd
from sklearn.impute import SimpleImputer
from sklearn.preprocessing import OneHotEncoder, PowerTransformer, StandardScaler

SELECTORS = {"all_predictors", "all_numeric_predictors", "all_nominal_predictors", "outcome"}


def _is_numeric(s: pd.Series) -> bool:
    return pd.api.types.is_numeric_dtype(s) and not pd.api.types.is_bool_dtype(s)


def resolve_columns(df: pd.DataFrame, selectors: Sequence[str], outcome: str) -> List[str]:
    """Expand role selectors and explicit names into column names (in frame order)."""
    chosen: List[str] = []
    for sel in selectors:
        if sel == "all_predictors":
            cols = [c for c in df.columns if c != outcome]
        elif sel == "all_numeric_predictors":
            cols = [c for c in df.columns if c != outcome and _is_numeric(df[c])]
        elif sel == "all_nominal_predictors":
            cols = [c for c in df.columns if c != outcome and not _is_numeric(df[c])]
        elif sel == "outcome":
            cols = [outcome]
        else:
            if sel not in df.columns:
                raise KeyError(f"Column {sel} not found in data")
            cols = [sel]
        for c in cols:
            if c not in chosen:
                chosen.append(c)
    return [c for c in df.columns if c in chosen]


class Step:
    """Base class: resolves columns at prep time, tolerates a missing outcome at bake time."""

    operation = "step"

    def __init__(self, selectors: Sequence[str], **options: Any):
        flat: List[str] = []
        for sel in selectors:
            flat.extend([sel] if isinstance(sel, str) else list(sel))
        if not flat:
            raise ValueError(f"{self.operation} needs at least one column selector")
        self.selectors = flat
        self.options = options
        self.columns: List[str] = []
        self.trained = False

    def prep(self, df: pd.DataFrame, outcome: str) -> None:
        self.columns = resolve_columns(df, self.selectors, outcome)
        self._fit(df, self.columns)
        self.trained = True

    def bake(self, df: pd.DataFrame, outcome: str) -> pd.DataFrame:
        if not self.trained:
            raise RuntimeError(f"{self.operation} has not been trained; call prep() first")
        missing = [c for c in self.columns if c not in df.columns]
        if [c for c in missing if c != outcome]:
            raise KeyError(f"{self.operation}: columns missing from new data: {missing}")

        out = df.copy()
        if not missing:
            return self._transform(out, self.columns)

        # Outcome not supplied (e.g. a prediction grid): run with a placeholder, then drop it
        out[outcome] = np.nan
        out = self._transform(out, self.columns)
        return out.drop(columns=[c for c in [outcome] if c in out.columns])

    def _fit(self, df: pd.DataFrame, cols: List[str]) -> None:
        pass

    def _transform(self, df: pd.DataFrame, cols: List[str]) -> pd.DataFrame:
        raise NotImplementedError

    def describe(self) -> Dict[str, Any]:
        return {
            "operation": self.operation,
            "trained": self.trained,
            "columns": ", ".join(self.columns) if self.trained else ", ".join(self.selectors),
        }


class _SklearnStep(Step):
    """Step backed by a scikit-learn transformer fitted on the selected columns."""

    def _make_transformer(self):
        raise NotImplementedError

    def _fit(self, df, cols):
        self.transformer = self._make_transformer()
        if cols:
            self.transformer.fit(df[cols].astype(float))

    def _transform(self, df, cols):
        if cols:
            df[cols] = self.transformer.transform(df[cols].astype(float))
        return df


class StepLog(Step):
    operation = "log"

    def _transform(self, df, cols):
        base = self.options.get("base", np.e)
        offset = self.options.get("offset", 0.0)
        for c in cols:
            df[c] = np.log(df[c].astype(float) + offset) / np.log(base)
        return df


class StepBoxCox(_SklearnStep):
    operation = "BoxCox"

    def _fit(self, df, cols):
        bad = [c for c in cols if (df[c].dropna() <= 0).any()]
        if bad:
            raise ValueError(f"Box-Cox requires strictly positive values; offending columns: {bad}")
        super()._fit(df, cols)

    def _make_transformer(self):
        return PowerTransformer(method="box-cox", standardize=False)

    def lambdas(self) -> Dict[str, float]:
        return dict(zip(self.columns, self.transformer.lambdas_.tolist()))


class StepYeoJohnson(_SklearnStep):
    operation = "YeoJohnson"

    def _make_transformer(self):
        return PowerTransformer(method="yeo-johnson", standardize=False)


class StepNormalize(_SklearnStep):
    operation = "normalize"

    def _make_transformer(self):
        return StandardScaler()


class StepImputeMedian(_SklearnStep):
    operation = "impute_median"

    def _make_transformer(self):
        # keep_empty_features so all-missing columns are not silently dropped
        return SimpleImputer(strategy="median", keep_empty_features=True)


class StepZv(Step):
    operation = "zv"

    def _fit(self, df, cols):
        self.removed = [c for c in cols if df[c].nunique(dropna=True) <= 1]

    def _transform(self, df, cols):
        return df.drop(columns=[c for c in self.removed if c in df.columns])


class StepOther(Step):
    """Pool infrequent factor levels into a single ``other`` level."""

    operation = "other"

    def _fit(self, df, cols):
        threshold = self.options.get("threshold", 0.05)
        self.keep: Dict[str, List[Any]] = {}
        for c in cols:
            freq = df[c].value_counts(normalize=True, dropna=True)
            self.keep[c] = freq[freq >= threshold].index.tolist()

    def _transform(self, df, cols):
        other = self.options.get("other", "other")
        for c in cols:
            s = df[c].astype(object)
            pooled = ~s.isin(self.keep[c]) & s.notna()
            df[c] = s.mask(pooled, other)
        return df


class StepDummy(Step):
    """One-hot encode nominal columns, dropping the first level (reference coding)."""

    operation = "dummy"

    def _fit(self, df, cols):
        self.encoder = OneHotEncoder(
            drop="first" if self.options.get("drop_first", True) else None,
            handle_unknown="ignore",
            sparse_output=False,
        )
        if cols:
            self.encoder.fit(df[cols].astype(object))

    def _transform(self, df, cols):
        if not cols:
            return df
        names = self.encoder.get_feature_names_out(cols)
        dummies = pd.DataFrame(
            self.encoder.transform(df[cols].astype(object)),
            columns=names,
            index=df.index,
        )
        return pd.concat([df.drop(columns=cols), dummies], axis=1)


class Recipe:
    def __init__(self, data: pd.DataFrame, outcome: str):
        if outcome not in data.columns:
            raise KeyError(f"Outcome column {outcome} not found in data")
        self.template = data
        self.outcome = outcome
        self.steps: List[Step] = []
        self.trained = False
        self._juiced: pd.DataFrame | None = None

    def add_step(self, step: Step) -> "Recipe":
        self.steps.append(step)
        self.trained = False
        return self

    def step_log(self, *selectors: str, base: float = np.e, offset: float = 0.0) -> "Recipe":
        return self.add_step(StepLog(selectors, base=base, offset=offset))

    def step_boxcox(self, *selectors: str) -> "Recipe":
        return self.add_step(StepBoxCox(selectors))

    def step_yeojohnson(self, *selectors: str) -> "Recipe":
        return self.add_step(StepYeoJohnson(selectors))

    def step_normalize(self, *selectors: str) -> "Recipe":
        return self.add_step(StepNormalize(selectors))

    def step_impute_median(self, *selectors: str) -> "Recipe":
        return self.add_step(StepImputeMedian(selectors))

    def step_zv(self, *selectors: str) -> "Recipe":
        return self.add_step(StepZv(selectors))

    def step_other(self, *selectors: str, threshold: float = 0.05, other: str = "other") -> "Recipe":
        return self.add_step(StepOther(selectors, threshold=threshold, other=other))

    def step_dummy(self, *selectors: str, drop_first: bool = True) -> "Recipe":
        return self.add_step(StepDummy(selectors, drop_first=drop_first))

    def prep(self, training: pd.DataFrame | None = None, retain: bool = True) -> "Recipe":
        df = (self.template if training is None else training).copy()
        if self.outcome not in df.columns:
            raise KeyError(f"Outcome column {self.outcome} not found in training data")
        for step in self.steps:
            step.prep(df, self.outcome)
            df = step.bake(df, self.outcome)
        self._juiced = df if retain else None
        self.trained = True
        return self

    def bake(self, new_data: pd.DataFrame | None = None) -> pd.DataFrame:
        if not self.trained:
            raise RuntimeError("Recipe has not been trained; call prep() first")
        if new_data is None:
            return self.juice()
        df = new_data.copy()
        for step in self.steps:
            df = step.bake(df, self.outcome)
        return df

    def juice(self) -> pd.DataFrame:
        if not self.trained:
            raise RuntimeError("Recipe has not been trained; call prep() first")
        if self._juiced is None:
            raise RuntimeError("Training data was not retained; call prep(retain=True)")
        return self._juiced.copy()

    def summary(self) -> pd.DataFrame:
        df = self._juiced if (self.trained and self._juiced is not None) else self.template
        rows = []
        for c in df.columns:
            rows.append({
                "variable": c,
                "type": "numeric" if _is_numeric(df[c]) else "nominal",
                "role": "outcome" if c == self.outcome else "predictor",
            })
        return pd.DataFrame(rows)

    def tidy(self) -> pd.DataFrame:
        rows = []
        for i, step in enumerate(self.steps, start=1):
            rows.append({"number": i, **step.describe()})
        return pd.DataFrame(rows, columns=["number", "operation", "trained", "columns"])

    def __repr__(self) -> str:
        ops = ", ".join(s.operation for s in self.steps) or "no steps"
        state = "trained" if self.trained else "untrained"
        return f"<Recipe outcome={self.outcome!r} [{ops}] ({state})>"
