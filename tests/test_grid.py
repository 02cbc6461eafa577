import numpy as np
import pytest

from recipeml.config import PARAM_RANGES
from recipeml.grid import grid_regular, grid_latin_hypercube, search_space_table
from recipeml.model import boost_tree, mlp, tune


def _within(grid):
    for name in grid.columns:
        rng = PARAM_RANGES[name]
        assert grid[name].min() >= rng["min"]
        assert grid[name].max() <= rng["max"]


def test_regular_grid_is_cartesian():
    spec = mlp(hidden_units=tune(), penalty=tune(), epochs=tune())
    grid = grid_regular(spec, levels=3)
    assert list(grid.columns) == ["hidden_units", "penalty", "epochs"]
    assert len(grid) == 27
    assert len(grid.drop_duplicates()) == 27
    assert sorted(grid["penalty"].unique()) == pytest.approx([1e-10, 1e-5, 1.0])
    _within(grid)


def test_regular_grid_int_columns():
    grid = grid_regular(mlp(hidden_units=tune(), epochs=tune()), levels=2)
    assert grid["hidden_units"].dtype.kind == "i"
    assert sorted(grid["epochs"].unique()) == [10, 1000]


def test_latin_hypercube_bounds_and_reproducibility():
    spec = boost_tree(trees=tune(), learn_rate=tune(), sample_size=tune())
    a = grid_latin_hypercube(spec, size=15, seed=3)
    b = grid_latin_hypercube(spec, size=15, seed=3)
    assert len(a) == 15
    assert a.equals(b)
    _within(a)


def test_latin_hypercube_spreads_each_dimension():
    spec = boost_tree(sample_size=tune(), mtry=tune())
    grid = grid_latin_hypercube(spec, size=10, seed=1)
    # one point per tenth of the range in each dimension
    bins = np.floor((grid["sample_size"] - 0.1) / 0.09).clip(0, 9)
    assert sorted(bins.astype(int).tolist()) == list(range(10))


def test_range_override():
    spec = boost_tree(trees=tune())
    grid = grid_regular(spec, levels=2, ranges={"trees": {"min": 5, "max": 20}})
    assert grid["trees"].tolist() == [5, 20]


def test_no_tunable_parameters():
    with pytest.raises(ValueError):
        grid_regular(boost_tree(trees=10))


def test_search_space_table():
    table = search_space_table(boost_tree(trees=tune(), learn_rate=tune()))
    assert table["param"].tolist() == ["trees", "learn_rate"]
    assert table.loc[1, "scale"] == "log10"
