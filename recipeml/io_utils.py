from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import numpy as np
import pandas as pd


def timestamp() -> str:
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def make_run_dir(base_dir: str, dataset: str, engine: str, stage: str, run_name: Optional[str] = None) -> Path:
    base = Path(base_dir) / dataset / engine / stage
    base.mkdir(parents=True, exist_ok=True)
    name = run_name or timestamp()
    run_dir = base / name
    run_dir.mkdir(parents=True, exist_ok=True)
    return run_dir


def _to_builtin(obj: Any) -> Any:
    if isinstance(obj, (np.integer, np.floating, np.bool_)):
        return obj.item()
    if isinstance(obj, (np.ndarray, pd.Index)):
        return obj.tolist()
    if isinstance(obj, tuple):
        return list(obj)
    return str(obj)


def save_json(path: str | Path, data: Any) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, default=_to_builtin)


def save_csv(path: str | Path, df: pd.DataFrame, index: bool = False) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=index)


def print_table(title: str, df: pd.DataFrame, index: bool = False) -> None:
    print(f"\n{title}")
    print(df.to_string(index=index))


def collect_environment(packages: list[str] | None = None) -> dict[str, Any]:
    """Interpreter, platform and package versions for the run record."""
    import platform
    import sys
    from importlib import metadata

    if packages is None:
        packages = [
            "numpy",
            "pandas",
            "scikit-learn",
            "scipy",
            "joblib",
            "xgboost",
            "optuna",
            "matplotlib",
            "seaborn",
        ]

    versions: dict[str, str | None] = {}
    for pkg in packages:
        try:
            versions[pkg] = metadata.version(pkg)
        except metadata.PackageNotFoundError:
            versions[pkg] = None

    return {
        "python_version": sys.version,
        "python_executable": sys.executable,
        "platform": platform.platform(),
        "packages": versions,
    }
