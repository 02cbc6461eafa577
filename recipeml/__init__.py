"""Recipe -> model -> tune -> predict -> plot workflows for tabular data."""

from .config import HousingConfig, BivariateConfig, PARAM_RANGES
from .data import load_housing, load_bivariate
from .splits import initial_split, vfold_cv
from .recipe import Recipe
from .model import boost_tree, mlp, tune, finalize_model
from .grid import grid_regular, grid_latin_hypercube
from .tuning import register_parallel, tune_grid, tune_bayes, collect_metrics, show_best, select_best
from .evaluation import last_fit
from .pipeline import run_housing, run_bivariate
