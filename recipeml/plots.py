from __future__ import annotations

from pathlib import Path
from typing import Any, Sequence

import numpy as np
import pandas as pd
from sklearn.metrics import roc_auc_score, roc_curve

from .style import COLORS
from .tuning import TuneResults, collect_metrics


def _finish(fig, out_path: str | Path | None, show: bool):
    import matplotlib.pyplot as plt

    fig.tight_layout()
    if out_path is not None:
        Path(out_path).parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(out_path)
    if show:
        plt.show()
    plt.close(fig)
    return fig


def plot_tuning(
    results: TuneResults,
    metric: str | None = None,
    out_path: str | Path | None = None,
    show: bool = False,
):
    """Mean resampled metric against each tuned parameter."""
    import matplotlib.pyplot as plt

    metric = metric or results.metric_names[0]
    summary = collect_metrics(results)
    summary = summary[summary[".metric"] == metric]
    if summary.empty:
        raise ValueError(f"No tuning results for metric {metric}")

    n = len(results.params)
    fig, axes = plt.subplots(1, n, figsize=(3.2 * n, 3), sharey=True, squeeze=False)
    for ax, param in zip(axes[0], results.params):
        ax.errorbar(
            summary[param],
            summary["mean"],
            yerr=summary["std_err"],
            fmt="o",
            markersize=4,
            alpha=0.8,
            color=COLORS["primary"],
            ecolor=COLORS["secondary"],
        )
        if results.ranges.get(param, {}).get("scale") == "log10":
            ax.set_xscale("log")
        ax.set_xlabel(param)
    axes[0][0].set_ylabel(f"{metric} (CV mean)")
    fig.suptitle(f"Tuning Results: {metric}")
    return _finish(fig, out_path, show)


def plot_residuals(
    predictions: pd.DataFrame,
    outcome: str,
    out_path: str | Path | None = None,
    show: bool = False,
):
    """Actual vs predicted and residuals vs predicted (test set)."""
    import matplotlib.pyplot as plt

    fig, axes = plt.subplots(1, 2, figsize=(8, 3.8))
    y = predictions[outcome].astype(float)
    pred = predictions[".pred"].astype(float)
    resid = predictions[".resid"].astype(float)

    axes[0].scatter(y, pred, s=10, alpha=0.5, color=COLORS["primary"])
    lims = [float(min(y.min(), pred.min())), float(max(y.max(), pred.max()))]
    axes[0].plot(lims, lims, "--", color=COLORS["accent"])
    axes[0].set_xlabel("Actual")
    axes[0].set_ylabel("Predicted")
    axes[0].set_title("Actual vs Predicted")

    axes[1].scatter(pred, resid, s=10, alpha=0.5, color=COLORS["primary"])
    axes[1].axhline(0, linestyle="--", color="k", linewidth=0.8)
    axes[1].set_xlabel("Predicted")
    axes[1].set_ylabel("Residual")
    axes[1].set_title("Residuals vs Predicted")
    return _finish(fig, out_path, show)


def plot_decision_boundary(
    fit: Any,
    data: pd.DataFrame,
    predictors: Sequence[str] = ("A", "B"),
    resolution: int = 100,
    out_path: str | Path | None = None,
    show: bool = False,
):
    """50% probability contour of a fitted classifier over two raw-scale predictors.

    ``fit`` is a ``LastFit``; grid points are baked through its recipe before
    prediction, so the boundary is drawn in the original units.
    """
    import matplotlib.pyplot as plt

    if len(predictors) != 2:
        raise ValueError(f"Exactly two predictors are needed, got {list(predictors)}")
    if fit.classes is None:
        raise ValueError("Decision boundaries need a classification fit")
    x_col, y_col = predictors

    xs = np.linspace(data[x_col].min(), data[x_col].max(), resolution)
    ys = np.linspace(data[y_col].min(), data[y_col].max(), resolution)
    xx, yy = np.meshgrid(xs, ys)
    grid = pd.DataFrame({x_col: xx.ravel(), y_col: yy.ravel()})
    prob = fit.predict(grid, type="prob")[:, 0].reshape(xx.shape)

    fig, ax = plt.subplots(figsize=(5.5, 4.5))
    palette = [COLORS["event"], COLORS["primary"], COLORS["other"], COLORS["neutral"]]
    for i, cls in enumerate(fit.classes):
        mask = data[fit.outcome] == cls
        ax.scatter(
            data.loc[mask, x_col],
            data.loc[mask, y_col],
            s=10,
            alpha=0.5,
            color=palette[i % len(palette)],
            label=str(cls),
        )
    ax.contour(xx, yy, prob, levels=[0.5], colors="k", linewidths=1.2)
    ax.set_xlabel(x_col)
    ax.set_ylabel(y_col)
    ax.set_title("Decision Boundary (p = 0.5)")
    ax.legend(title=fit.outcome)
    return _finish(fig, out_path, show)


def plot_roc(
    predictions: pd.DataFrame,
    outcome: str,
    classes: Sequence[Any],
    out_path: str | Path | None = None,
    show: bool = False,
):
    """ROC curve for the first class level."""
    import matplotlib.pyplot as plt

    event = classes[0]
    truth = (predictions[outcome] == event).astype(int)
    score = predictions[f".pred_{event}"]
    if truth.nunique() < 2:
        raise ValueError("ROC curve needs both classes in the truth column")
    fpr, tpr, _ = roc_curve(truth, score)
    auc = roc_auc_score(truth, score)

    fig, ax = plt.subplots(figsize=(4.5, 4.5))
    ax.plot(fpr, tpr, color=COLORS["primary"], label=f"AUC = {auc:.3f}")
    ax.plot([0, 1], [0, 1], "--", color=COLORS["neutral"], linewidth=0.8)
    ax.set_xlabel("1 - Specificity")
    ax.set_ylabel("Sensitivity")
    ax.set_title(f"ROC Curve (event = {event})")
    ax.legend(loc="lower right")
    return _finish(fig, out_path, show)
