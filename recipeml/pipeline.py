from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List

import pandas as pd
import optuna

from .config import HousingConfig, BivariateConfig
from .data import load_housing, load_bivariate
from .evaluation import LastFit, last_fit
from .grid import grid_latin_hypercube, grid_regular, search_space_table
from .io_utils import make_run_dir, save_json, save_csv, print_table, collect_environment
from .metrics import METRIC_SETS
from .model import ModelSpec, boost_tree, mlp, tune, finalize_model
from .recipe import Recipe
from .splits import initial_split, vfold_cv, save_split
from .style import set_plot_style
from .tuning import TuneResults, register_parallel, tune_grid, collect_metrics, show_best, select_best


def _check_metric(metric: str, mode: str) -> List[str]:
    metrics = list(METRIC_SETS[mode])
    if metric not in metrics:
        raise ValueError(f"Metric {metric} is not available for {mode}; choose from {metrics}")
    # Tuning objective first
    return [metric] + [m for m in metrics if m != metric]


def _save_param_importance(run_dir: Path, results: TuneResults) -> None:
    # Can fail for very small or degenerate grids.
    try:
        importances = optuna.importance.get_param_importances(results.study)
        imp_df = pd.DataFrame({
            "param": list(importances.keys()),
            "importance": list(importances.values()),
        }).sort_values("importance", ascending=False)
        save_csv(run_dir / "param_importance.csv", imp_df)
    except Exception as e:
        save_json(run_dir / "param_importance_error.json", {"error": str(e)})
        print(f"[WARN] Param importance skipped: {e}")


def _tune_and_fit(
    run_dir: Path,
    spec: ModelSpec,
    rec: Recipe,
    train: pd.DataFrame,
    test: pd.DataFrame,
    outcome: str,
    grid: pd.DataFrame,
    metrics: List[str],
    cv_folds: int,
    seed: int,
    workers: int | None,
    ranges: Dict[str, Dict[str, Any]] | None,
    outputs_dir: str,
    strata_breaks: int = 4,
) -> tuple[TuneResults, Dict[str, Any], LastFit]:
    """Shared middle of both workflows: bake, resample, grid search, last fit."""
    rec.prep(train)
    save_csv(run_dir / "recipe_steps.csv", rec.tidy())
    train_baked = rec.juice()
    folds = vfold_cv(train_baked, outcome, v=cv_folds, breaks=strata_breaks, seed=seed)

    save_csv(run_dir / "search_space.csv", search_space_table(spec, ranges))
    save_csv(run_dir / "grid.csv", grid)
    print_table(f"[INFO] Grid: {len(grid)} candidates x {len(folds)} folds", grid)

    progress_path = Path(outputs_dir) / "progress_logs" / f"{run_dir.name}_progress.log"
    with register_parallel(workers):
        results = tune_grid(
            spec,
            train_baked,
            outcome,
            folds,
            grid,
            metrics=metrics,
            seed=seed,
            ranges=ranges,
            progress_path=progress_path,
        )
    save_csv(run_dir / "tune_metrics.csv", collect_metrics(results))
    save_csv(run_dir / "tune_fold_metrics.csv", collect_metrics(results, summarize=False))
    _save_param_importance(run_dir, results)

    print_table(f"[INFO] Best candidates by {metrics[0]}", show_best(results, metrics[0]))
    best = select_best(results, metrics[0])
    save_json(run_dir / "best_params.json", best)
    print_table("[INFO] Selected hyperparameters", pd.DataFrame([best]))

    final_spec = finalize_model(spec, best)
    fit = last_fit(final_spec, rec, train, test, outcome=outcome, metrics=metrics, seed=seed)
    save_json(run_dir / "test_metrics.json", fit.metrics)
    save_csv(run_dir / "test_predictions.csv", fit.predictions)
    print_table(
        "[INFO] Test set metrics",
        pd.DataFrame({".metric": list(fit.metrics), ".estimate": list(fit.metrics.values())}),
    )
    return results, best, fit


def run_housing(cfg: HousingConfig) -> str:
    """Boosted trees on housing prices: log10 outcome, Latin hypercube grid, RMSE."""
    metrics = _check_metric(cfg.metric, "regression")

    df = load_housing(cfg.data_path, cfg.data_home, cfg.outcome)
    split = initial_split(df, cfg.outcome, prop=cfg.prop, breaks=cfg.strata_breaks, seed=cfg.seed)
    train, test = split.training(df), split.testing(df)

    run_dir = make_run_dir(cfg.outputs_dir, "housing", "xgboost", "workflow", cfg.run_name)
    save_json(run_dir / "environment.json", collect_environment())
    save_json(run_dir / "run_config.json", {
        **asdict(cfg),
        "n_total": int(len(df)),
        "n_train": int(len(train)),
        "n_test": int(len(test)),
    })
    save_split(split, run_dir / "split.json", outcome=cfg.outcome, seed=cfg.seed, prop=cfg.prop)
    print(f"[INFO] Housing data: {len(df)} rows; train={len(train)} test={len(test)}")

    rec = (
        Recipe(train, cfg.outcome)
        .step_log("outcome", base=10)
        .step_impute_median("all_numeric_predictors")
        .step_other("all_nominal_predictors", threshold=0.01)
        .step_dummy("all_nominal_predictors")
        .step_zv("all_predictors")
    )
    spec = boost_tree(
        mode="regression",
        trees=tune(),
        tree_depth=tune(),
        learn_rate=tune(),
        min_n=tune(),
        loss_reduction=tune(),
        sample_size=tune(),
    )
    grid = grid_latin_hypercube(spec, size=cfg.grid_size, seed=cfg.seed, ranges=cfg.ranges)

    results, _, fit = _tune_and_fit(
        run_dir, spec, rec, train, test, cfg.outcome, grid, metrics,
        cv_folds=cfg.cv_folds,
        seed=cfg.seed,
        workers=cfg.workers,
        ranges=cfg.ranges,
        outputs_dir=cfg.outputs_dir,
        strata_breaks=cfg.strata_breaks,
    )

    if cfg.make_plots:
        try:
            from .plots import plot_tuning, plot_residuals

            set_plot_style(cfg.outputs_dir, interactive=cfg.show_plots)
            plot_tuning(results, metrics[0], out_path=run_dir / "fig_tuning.pdf", show=cfg.show_plots)
            plot_residuals(fit.predictions, cfg.outcome, out_path=run_dir / "fig_residuals.pdf", show=cfg.show_plots)
        except Exception as e:
            # Plotting should not fail the run.
            save_json(run_dir / "plots_error.json", {"error": str(e)})
            print(f"[WARN] Plot generation skipped: {e}")

    return str(run_dir)


def run_bivariate(cfg: BivariateConfig) -> str:
    """Feed-forward classifier on the bivariate data: Box-Cox + normalize, regular grid, ROC AUC."""
    metrics = _check_metric(cfg.metric, "classification")

    df = load_bivariate(n=cfg.n_rows, seed=cfg.seed)
    split = initial_split(df, cfg.outcome, prop=cfg.prop, seed=cfg.seed)
    train, test = split.training(df), split.testing(df)

    run_dir = make_run_dir(cfg.outputs_dir, "bivariate", "mlp", "workflow", cfg.run_name)
    save_json(run_dir / "environment.json", collect_environment())
    save_json(run_dir / "run_config.json", {
        **asdict(cfg),
        "n_total": int(len(df)),
        "n_train": int(len(train)),
        "n_test": int(len(test)),
    })
    save_split(split, run_dir / "split.json", outcome=cfg.outcome, seed=cfg.seed, prop=cfg.prop)
    print(f"[INFO] Bivariate data: {len(df)} rows; train={len(train)} test={len(test)}")

    rec = (
        Recipe(train, cfg.outcome)
        .step_boxcox("all_numeric_predictors")
        .step_normalize("all_numeric_predictors")
    )
    spec = mlp(hidden_units=tune(), penalty=tune(), epochs=tune())
    grid = grid_regular(spec, levels=cfg.grid_levels, ranges=cfg.ranges)

    results, _, fit = _tune_and_fit(
        run_dir, spec, rec, train, test, cfg.outcome, grid, metrics,
        cv_folds=cfg.cv_folds,
        seed=cfg.seed,
        workers=cfg.workers,
        ranges=cfg.ranges,
        outputs_dir=cfg.outputs_dir,
    )

    cm = fit.conf_mat()
    save_csv(run_dir / "conf_mat.csv", cm, index=True)
    print_table("[INFO] Confusion matrix (rows = prediction, columns = truth)", cm, index=True)

    if cfg.make_plots:
        try:
            from .plots import plot_tuning, plot_decision_boundary, plot_roc

            set_plot_style(cfg.outputs_dir, interactive=cfg.show_plots)
            plot_tuning(results, metrics[0], out_path=run_dir / "fig_tuning.pdf", show=cfg.show_plots)
            plot_decision_boundary(
                fit,
                test,
                predictors=("A", "B"),
                resolution=cfg.boundary_resolution,
                out_path=run_dir / "fig_decision_boundary.pdf",
                show=cfg.show_plots,
            )
            plot_roc(fit.predictions, cfg.outcome, fit.classes, out_path=run_dir / "fig_roc.pdf", show=cfg.show_plots)
        except Exception as e:
            save_json(run_dir / "plots_error.json", {"error": str(e)})
            print(f"[WARN] Plot generation skipped: {e}")

    return str(run_dir)
