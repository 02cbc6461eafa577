from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from recipeml.config import HousingConfig, OUTPUTS_DIR
from recipeml.pipeline import run_housing


def main() -> None:
    parser = argparse.ArgumentParser(description="Tune boosted trees on the housing data")
    parser.add_argument("--data-path", default=None, help="CSV to use instead of the built-in data")
    parser.add_argument("--outcome", default="MedHouseVal")
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--prop", type=float, default=0.75, help="Training fraction")
    parser.add_argument("--cv-folds", type=int, default=10)
    parser.add_argument("--grid-size", type=int, default=20)
    parser.add_argument("--metric", default="rmse", choices=["rmse", "rsq", "mae"])
    parser.add_argument("--workers", type=int, default=0, help="0 = physical core count")
    parser.add_argument("--run-name", default=None)
    parser.add_argument("--outputs-dir", default=OUTPUTS_DIR)
    parser.add_argument("--no-plots", action="store_true")
    parser.add_argument("--show", action="store_true", help="Display figures as well as saving them")
    args = parser.parse_args()

    cfg = HousingConfig(
        data_path=args.data_path,
        outcome=args.outcome,
        seed=args.seed,
        prop=args.prop,
        cv_folds=args.cv_folds,
        grid_size=args.grid_size,
        metric=args.metric,
        workers=args.workers or None,
        run_name=args.run_name,
        outputs_dir=args.outputs_dir,
        make_plots=not args.no_plots,
        show_plots=args.show,
    )
    print(run_housing(cfg))


if __name__ == "__main__":
    main()
