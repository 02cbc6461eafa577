import numpy as np
import pandas as pd
import pytest

from recipeml.data import load_bivariate, load_housing


def test_bivariate_shape_and_levels():
    df = load_bivariate(n=500, seed=1)
    assert list(df.columns) == ["A", "B", "Class"]
    assert len(df) == 500
    assert list(df["Class"].cat.categories) == ["One", "Two"]
    assert set(df["Class"]) == {"One", "Two"}


def test_bivariate_predictors_positive():
    df = load_bivariate(n=500, seed=1)
    assert (df["A"] > 0).all()
    assert (df["B"] > 0).all()


def test_bivariate_is_deterministic():
    pd.testing.assert_frame_equal(load_bivariate(n=100, seed=5), load_bivariate(n=100, seed=5))
    assert not load_bivariate(n=100, seed=5).equals(load_bivariate(n=100, seed=6))


def test_bivariate_rejects_tiny_n():
    with pytest.raises(ValueError):
        load_bivariate(n=1)


def test_housing_csv_override(tmp_path):
    path = tmp_path / "houses.csv"
    pd.DataFrame({
        " rooms ": [3, 4, 5],
        "price": [100.0, np.nan, 300.0],
    }).to_csv(path, index=False)

    df = load_housing(data_path=str(path), outcome="price")
    assert list(df.columns) == ["rooms", "price"]
    # missing outcome rows are dropped
    assert len(df) == 2


def test_housing_missing_outcome(tmp_path):
    path = tmp_path / "houses.csv"
    pd.DataFrame({"rooms": [3, 4]}).to_csv(path, index=False)
    with pytest.raises(KeyError):
        load_housing(data_path=str(path), outcome="price")
