from __future__ import annotations

from dataclasses import dataclass
import os
from typing import Dict, Any

# Outcome columns per dataset
OUTCOMES: Dict[str, str] = {
    "housing": "MedHouseVal",
    "bivariate": "Class",
}

# Bivariate class levels (first level is the event)
BIVARIATE_CLASSES = ("One", "Two")

# Search ranges (update here to widen/narrow the grids)
# scale "log10" means bounds are given on the original scale and sampled in log10 space.
PARAM_RANGES: Dict[str, Dict[str, Any]] = {
    "trees": {"type": "int", "min": 50, "max": 2000, "scale": "linear"},
    "tree_depth": {"type": "int", "min": 1, "max": 15, "scale": "linear"},
    "learn_rate": {"type": "float", "min": 1e-3, "max": 0.3, "scale": "log10"},
    "min_n": {"type": "int", "min": 2, "max": 40, "scale": "linear"},
    "loss_reduction": {"type": "float", "min": 1e-3, "max": 10.0, "scale": "log10"},
    "sample_size": {"type": "float", "min": 0.1, "max": 1.0, "scale": "linear"},
    "mtry": {"type": "float", "min": 0.2, "max": 1.0, "scale": "linear"},
    "hidden_units": {"type": "int", "min": 1, "max": 10, "scale": "linear"},
    "penalty": {"type": "float", "min": 1e-10, "max": 1.0, "scale": "log10"},
    "epochs": {"type": "int", "min": 10, "max": 1000, "scale": "linear"},
}

# Fixed (untuned) engine arguments
BASE_XGB_PARAMS = {
    "objective": "reg:squarederror",
    "tree_method": "hist",
    "verbosity": 0,
}

BASE_MLP_PARAMS = {
    "solver": "adam",
    "activation": "relu",
}

# Output base
OUTPUTS_DIR = os.getenv("RECIPEML_OUTPUTS_DIR", "outputs")


@dataclass
class HousingConfig:
    data_path: str | None = None  # CSV override for the built-in data
    data_home: str | None = None
    outcome: str = OUTCOMES["housing"]
    seed: int = 42
    prop: float = 0.75
    strata_breaks: int = 4
    cv_folds: int = 10
    grid_size: int = 20
    metric: str = "rmse"
    workers: int | None = None  # None = physical cores
    run_name: str | None = None
    make_plots: bool = True
    show_plots: bool = False
    outputs_dir: str = OUTPUTS_DIR
    ranges: Dict[str, Dict[str, Any]] | None = None  # per-parameter overrides of PARAM_RANGES


@dataclass
class BivariateConfig:
    n_rows: int = 2019
    outcome: str = OUTCOMES["bivariate"]
    seed: int = 42
    prop: float = 0.75
    cv_folds: int = 10
    grid_levels: int = 3
    metric: str = "roc_auc"
    workers: int | None = None
    run_name: str | None = None
    make_plots: bool = True
    show_plots: bool = False
    outputs_dir: str = OUTPUTS_DIR
    ranges: Dict[str, Dict[str, Any]] | None = None  # per-parameter overrides of PARAM_RANGES
    boundary_resolution: int = 100
