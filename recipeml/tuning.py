from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Sequence
import threading
import time

import numpy as np
import pandas as pd
import optuna
from joblib import Parallel, delayed, parallel_config, cpu_count
from sklearn.base import clone

from .grid import param_ranges
from .metrics import METRIC_DIRECTIONS, METRIC_SETS, compute_metrics
from .model import ModelSpec, finalize_model, encode_outcome, outcome_classes
from .splits import Fold


def physical_cores() -> int:
    return max(1, int(cpu_count(only_physical_cores=True)))


@contextmanager
def register_parallel(workers: int | None = None, backend: str = "loky") -> Iterator[int]:
    """Route joblib work (fold fits during tuning) to ``workers`` processes."""
    n = int(workers) if workers else physical_cores()
    if n < 1:
        raise ValueError(f"workers must be >= 1, got {n}")
    print(f"[INFO] Registered {backend} parallel backend with {n} workers")
    with parallel_config(backend=backend, n_jobs=n):
        yield n


class PlateauStopper:
    def __init__(self, patience: int, min_delta: float, direction: str = "minimize"):
        self.patience = patience
        self.min_delta = min_delta
        self.sign = 1.0 if direction == "minimize" else -1.0
        self.best = None
        self.wait = 0

    def __call__(self, study: optuna.Study, trial: optuna.trial.FrozenTrial) -> None:
        try:
            current = self.sign * study.best_value
        except ValueError:
            # no completed trial yet
            return
        if self.best is None or current < self.best - self.min_delta:
            self.best = current
            self.wait = 0
        else:
            self.wait += 1
            if self.wait >= self.patience:
                study.stop()


@dataclass
class TuneResults:
    metrics: pd.DataFrame  # one row per candidate x fold x metric
    grid: pd.DataFrame
    params: List[str]
    metric_names: List[str]
    study: optuna.Study | None = None
    ranges: Dict[str, Dict[str, Any]] = field(default_factory=dict)  # resolved search ranges

    def __repr__(self) -> str:
        return (
            f"<TuneResults {len(self.grid)} candidates x "
            f"{self.metrics['id'].nunique() if len(self.metrics) else 0} folds, "
            f"metrics={self.metric_names}>"
        )


def _fit_and_score(
    estimator,
    X: pd.DataFrame,
    y_fit: np.ndarray,
    y_true: np.ndarray,
    train_idx: np.ndarray,
    val_idx: np.ndarray,
    metrics: Sequence[str],
    classes: List[Any] | None,
) -> Dict[str, float]:
    est = clone(estimator)
    est.fit(X.iloc[train_idx], y_fit[train_idx])
    X_val = X.iloc[val_idx]
    pred = est.predict(X_val) if classes is None else est.predict_proba(X_val)
    return compute_metrics(metrics, y_true[val_idx], pred, classes)


def _suggest(trial: optuna.Trial, ranges: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
    params: Dict[str, Any] = {}
    for name, rng in ranges.items():
        log = rng.get("scale") == "log10"
        if rng["type"] == "int":
            params[name] = trial.suggest_int(name, int(rng["min"]), int(rng["max"]), log=log)
        else:
            params[name] = trial.suggest_float(name, float(rng["min"]), float(rng["max"]), log=log)
    return params


def _config_name(number: int) -> str:
    return f"Model{number + 1:02d}"


def _progress_logger(total: int, progress_path: str | Path | None) -> Callable:
    start_ts = time.time()
    lock = threading.Lock()

    def _log(study: optuna.Study, trial: optuna.trial.FrozenTrial) -> None:
        completed = len(study.trials)
        elapsed = time.time() - start_ts
        remaining = max(0.0, elapsed / completed * (total - completed)) if completed else 0.0
        pct = min(100.0, completed / total * 100.0) if total else 100.0
        line = (
            f"trial={completed}/{total} "
            f"pct={pct:0.2f}% "
            f"elapsed_s={elapsed:0.1f} "
            f"eta_s={remaining:0.1f} "
            f"value={trial.value}\n"
        )
        if progress_path is not None:
            with lock:
                Path(progress_path).parent.mkdir(parents=True, exist_ok=True)
                with open(progress_path, "a", encoding="utf-8") as f:
                    f.write(line)
        print(line, end="")

    return _log


def _run_study(
    spec: ModelSpec,
    data: pd.DataFrame,
    outcome: str,
    folds: Sequence[Fold],
    metrics: Sequence[str] | None,
    seed: int,
    n_trials: int,
    ranges: Dict[str, Dict[str, Any]] | None,
    grid: pd.DataFrame | None = None,
    callbacks: List[Callable] | None = None,
    progress_path: str | Path | None = None,
) -> TuneResults:
    if outcome not in data.columns:
        raise KeyError(f"Outcome column {outcome} not found in data")
    if not folds:
        raise ValueError("No resampling folds supplied")
    metrics = list(metrics or METRIC_SETS[spec.mode])
    unknown = [m for m in metrics if m not in METRIC_DIRECTIONS]
    if unknown:
        raise ValueError(f"Unknown metrics: {unknown}")

    rngs = param_ranges(spec, ranges)
    if not rngs:
        raise ValueError("Model has no tune() arguments to search over")

    X = data.drop(columns=[outcome])
    y_true = np.asarray(data[outcome])
    classes = outcome_classes(data[outcome]) if spec.mode == "classification" else None
    y_fit = encode_outcome(y_true, classes)

    optuna.logging.set_verbosity(optuna.logging.WARNING)
    direction = METRIC_DIRECTIONS[metrics[0]]
    study = optuna.create_study(
        direction=direction,
        sampler=optuna.samplers.TPESampler(seed=seed),
    )
    if grid is not None:
        for row in grid.to_dict(orient="records"):
            study.enqueue_trial({k: (v.item() if hasattr(v, "item") else v) for k, v in row.items()})

    rows: List[Dict[str, Any]] = []

    def objective(trial: optuna.Trial) -> float:
        params = _suggest(trial, rngs)
        # Parallelism is across folds, so each model fit is single-threaded
        estimator = finalize_model(spec, params).build(seed=seed, n_jobs=1)
        scores = Parallel()(
            delayed(_fit_and_score)(estimator, X, y_fit, y_true, f.train_idx, f.val_idx, metrics, classes)
            for f in folds
        )
        config = _config_name(trial.number)
        for fold, fold_scores in zip(folds, scores):
            for m, v in fold_scores.items():
                rows.append({**params, "id": fold.id, ".metric": m, ".estimate": v, ".config": config})
        means = {m: float(np.nanmean([s[m] for s in scores])) for m in metrics}
        for m, v in means.items():
            trial.set_user_attr(f"cv_{m}_mean", v)
        return means[metrics[0]]

    cbs = list(callbacks or [])
    cbs.append(_progress_logger(n_trials, progress_path))
    study.optimize(objective, n_trials=n_trials, callbacks=cbs)

    done = [t for t in study.trials if t.state == optuna.trial.TrialState.COMPLETE]
    if not done:
        raise RuntimeError("Every tuning candidate failed to produce a finite metric")

    metrics_df = pd.DataFrame(rows)
    params = list(rngs)
    if grid is None:
        grid = pd.DataFrame([t.params for t in study.trials], columns=params)
    return TuneResults(
        metrics=metrics_df,
        grid=grid.reset_index(drop=True),
        params=params,
        metric_names=metrics,
        study=study,
        ranges=rngs,
    )


def tune_grid(
    spec: ModelSpec,
    data: pd.DataFrame,
    outcome: str,
    folds: Sequence[Fold],
    grid: pd.DataFrame,
    metrics: Sequence[str] | None = None,
    seed: int = 42,
    ranges: Dict[str, Dict[str, Any]] | None = None,
    progress_path: str | Path | None = None,
) -> TuneResults:
    """Evaluate every grid row on every fold.

    Each row is enqueued as a fixed optuna trial; fold fits go through joblib,
    so wrapping the call in ``register_parallel`` spreads them over processes.
    The first metric is the study objective.
    """
    if grid is None or grid.empty:
        raise ValueError("Grid is empty")
    tunable = set(spec.tunable())
    if set(grid.columns) != tunable:
        raise ValueError(f"Grid columns {sorted(grid.columns)} do not match tunable arguments {sorted(tunable)}")
    grid = grid[spec.tunable()]
    return _run_study(
        spec, data, outcome, folds, metrics, seed,
        n_trials=len(grid),
        ranges=ranges,
        grid=grid,
        progress_path=progress_path,
    )


def tune_bayes(
    spec: ModelSpec,
    data: pd.DataFrame,
    outcome: str,
    folds: Sequence[Fold],
    n_trials: int = 25,
    metrics: Sequence[str] | None = None,
    seed: int = 42,
    ranges: Dict[str, Dict[str, Any]] | None = None,
    patience: int = 10,
    min_delta: float = 1e-4,
    progress_path: str | Path | None = None,
) -> TuneResults:
    """TPE search over the parameter ranges, stopping once the best value plateaus."""
    if n_trials < 1:
        raise ValueError(f"n_trials must be >= 1, got {n_trials}")
    metrics = list(metrics or METRIC_SETS[spec.mode])
    stopper = PlateauStopper(patience, min_delta, METRIC_DIRECTIONS.get(metrics[0], "minimize"))
    return _run_study(
        spec, data, outcome, folds, metrics, seed,
        n_trials=n_trials,
        ranges=ranges,
        callbacks=[stopper],
        progress_path=progress_path,
    )


def collect_metrics(results: TuneResults, summarize: bool = True) -> pd.DataFrame:
    """Per-fold estimates, or their mean / n / std_err per candidate and metric."""
    df = results.metrics
    if not summarize:
        return df.copy()
    keys = results.params + [".metric", ".config"]
    agg = df.groupby(keys, sort=False)[".estimate"].agg(["mean", "count", "std"]).reset_index()
    agg = agg.rename(columns={"count": "n"})
    agg["std_err"] = agg["std"] / np.sqrt(agg["n"])
    return agg[results.params + [".metric", "mean", "n", "std_err", ".config"]]


def show_best(results: TuneResults, metric: str | None = None, n: int = 5) -> pd.DataFrame:
    metric = metric or results.metric_names[0]
    if metric not in results.metric_names:
        raise ValueError(f"Metric {metric} was not computed; available: {results.metric_names}")
    summary = collect_metrics(results)
    summary = summary[summary[".metric"] == metric]
    ascending = METRIC_DIRECTIONS[metric] == "minimize"
    return summary.sort_values("mean", ascending=ascending, na_position="last").head(n).reset_index(drop=True)


def select_best(results: TuneResults, metric: str | None = None) -> Dict[str, Any]:
    best = show_best(results, metric, n=1).iloc[0]
    out: Dict[str, Any] = {}
    for p in results.params:
        v = best[p]
        out[p] = v.item() if hasattr(v, "item") else v
    out[".config"] = best[".config"]
    return out
