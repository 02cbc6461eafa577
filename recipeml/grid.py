from __future__ import annotations

from itertools import product
from typing import Any, Dict

import numpy as np
import pandas as pd
from scipy.stats import qmc

from .config import PARAM_RANGES
from .model import ModelSpec


def param_ranges(spec: ModelSpec, overrides: Dict[str, Dict[str, Any]] | None = None) -> Dict[str, Dict[str, Any]]:
    """Ranges for the tunable arguments of ``spec`` (overrides win)."""
    overrides = overrides or {}
    out: Dict[str, Dict[str, Any]] = {}
    for name in spec.tunable():
        if name not in PARAM_RANGES and name not in overrides:
            raise KeyError(f"No range defined for tunable parameter {name}")
        rng = dict(PARAM_RANGES.get(name, {}))
        rng.update(overrides.get(name, {}))
        if rng["min"] > rng["max"]:
            raise ValueError(f"Range for {name} has min > max: {rng}")
        if rng.get("scale") == "log10" and rng["min"] <= 0:
            raise ValueError(f"Log-scaled range for {name} must be positive: {rng}")
        out[name] = rng
    return out


def _from_unit(u: np.ndarray, rng: Dict[str, Any]) -> np.ndarray:
    """Map values in [0, 1] onto a parameter range."""
    lo, hi = float(rng["min"]), float(rng["max"])
    if rng.get("scale") == "log10":
        vals = 10 ** (np.log10(lo) + u * (np.log10(hi) - np.log10(lo)))
    else:
        vals = lo + u * (hi - lo)
    vals = np.clip(vals, lo, hi)
    if rng["type"] == "int":
        vals = np.round(vals).astype(int)
    return vals


def grid_regular(
    spec: ModelSpec,
    levels: int | Dict[str, int] = 3,
    ranges: Dict[str, Dict[str, Any]] | None = None,
) -> pd.DataFrame:
    """Cartesian grid with ``levels`` evenly spaced values per parameter."""
    rngs = param_ranges(spec, ranges)
    if not rngs:
        raise ValueError("Model has no tunable parameters")
    axes = []
    for name, rng in rngs.items():
        n = levels[name] if isinstance(levels, dict) else levels
        if n < 1:
            raise ValueError(f"levels must be >= 1, got {n} for {name}")
        u = np.linspace(0.0, 1.0, n) if n > 1 else np.array([0.5])
        axes.append(pd.unique(_from_unit(u, rng)))
    grid = pd.DataFrame(list(product(*axes)), columns=list(rngs))
    return grid


def grid_latin_hypercube(
    spec: ModelSpec,
    size: int = 20,
    seed: int = 42,
    ranges: Dict[str, Dict[str, Any]] | None = None,
) -> pd.DataFrame:
    """Space-filling grid: one candidate per Latin hypercube row."""
    if size < 1:
        raise ValueError(f"size must be >= 1, got {size}")
    rngs = param_ranges(spec, ranges)
    if not rngs:
        raise ValueError("Model has no tunable parameters")

    sampler = qmc.LatinHypercube(d=len(rngs), seed=seed)
    unit = sampler.random(n=size)
    grid = pd.DataFrame({
        name: _from_unit(unit[:, j], rng)
        for j, (name, rng) in enumerate(rngs.items())
    })
    # Integer rounding can collapse rows
    return grid.drop_duplicates().reset_index(drop=True)


def search_space_table(spec: ModelSpec, ranges: Dict[str, Dict[str, Any]] | None = None) -> pd.DataFrame:
    rows = [{"param": k, **v} for k, v in param_ranges(spec, ranges).items()]
    return pd.DataFrame(rows, columns=["param", "type", "min", "max", "scale"])
