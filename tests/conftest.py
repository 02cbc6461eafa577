import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from recipeml.data import load_bivariate


@pytest.fixture
def bivariate_df():
    return load_bivariate(n=300, seed=7)


@pytest.fixture
def housing_df():
    """Small housing-like frame: positive price, two numeric predictors, one nominal."""
    rng = np.random.default_rng(3)
    n = 240
    rooms = rng.uniform(2, 9, n)
    age = rng.uniform(1, 50, n)
    # west is rare (5 of 240 rows)
    region = rng.permutation(np.array(["north"] * 96 + ["south"] * 72 + ["east"] * 67 + ["west"] * 5))
    bump = pd.Series(region).map({"north": 0.3, "south": 0.0, "east": 0.1, "west": -0.2}).values
    price = np.exp(11 + 0.15 * rooms - 0.01 * age + bump + rng.normal(0, 0.1, n))
    return pd.DataFrame({"rooms": rooms, "age": age, "region": region, "price": price})


@pytest.fixture
def small_tree_ranges():
    return {"trees": {"min": 5, "max": 20}}


@pytest.fixture
def small_mlp_ranges():
    return {"epochs": {"min": 20, "max": 60}, "hidden_units": {"min": 2, "max": 4}}
