import numpy as np
import pandas as pd
import pytest

from recipeml.recipe import Recipe, resolve_columns


def test_resolve_selectors(housing_df):
    assert resolve_columns(housing_df, ["all_predictors"], "price") == ["rooms", "age", "region"]
    assert resolve_columns(housing_df, ["all_numeric_predictors"], "price") == ["rooms", "age"]
    assert resolve_columns(housing_df, ["all_nominal_predictors"], "price") == ["region"]
    assert resolve_columns(housing_df, ["outcome", "age"], "price") == ["age", "price"]
    with pytest.raises(KeyError):
        resolve_columns(housing_df, ["missing"], "price")


def test_normalize_centers_and_scales(bivariate_df):
    rec = Recipe(bivariate_df, "Class").step_normalize("all_numeric_predictors").prep()
    baked = rec.juice()
    assert np.allclose(baked[["A", "B"]].mean(), 0.0, atol=1e-8)
    assert np.allclose(baked[["A", "B"]].std(ddof=0), 1.0, atol=1e-8)
    assert baked["Class"].equals(bivariate_df["Class"])


def test_boxcox_reduces_skew(bivariate_df):
    rec = Recipe(bivariate_df, "Class").step_boxcox("A", "B").prep()
    baked = rec.juice()
    assert abs(baked["A"].skew()) < abs(bivariate_df["A"].skew())
    assert set(rec.steps[0].lambdas()) == {"A", "B"}


def test_boxcox_rejects_non_positive():
    df = pd.DataFrame({"x": [0.0, 1.0, 2.0, 3.0], "y": [1, 2, 3, 4]})
    with pytest.raises(ValueError):
        Recipe(df, "y").step_boxcox("x").prep()


def test_log_outcome_and_bake_without_outcome(housing_df):
    rec = Recipe(housing_df, "price").step_log("outcome", base=10).prep()
    assert np.allclose(rec.juice()["price"], np.log10(housing_df["price"]))

    new = housing_df.drop(columns=["price"]).head(5)
    baked = rec.bake(new)
    assert "price" not in baked.columns
    assert list(baked.columns) == ["rooms", "age", "region"]


def test_bake_uses_training_estimates(bivariate_df):
    train, test = bivariate_df.iloc[:200], bivariate_df.iloc[200:]
    rec = Recipe(train, "Class").step_normalize("A").prep()
    baked = rec.bake(test)
    expected = (test["A"] - train["A"].mean()) / train["A"].std(ddof=0)
    assert np.allclose(baked["A"], expected)


def test_bake_before_prep_raises(bivariate_df):
    rec = Recipe(bivariate_df, "Class").step_normalize("A")
    with pytest.raises(RuntimeError):
        rec.bake(bivariate_df)


def test_bake_missing_predictor_raises(bivariate_df):
    rec = Recipe(bivariate_df, "Class").step_normalize("A", "B").prep()
    with pytest.raises(KeyError):
        rec.bake(bivariate_df.drop(columns=["B"]))


def test_other_then_dummy(housing_df):
    rec = (
        Recipe(housing_df, "price")
        .step_other("all_nominal_predictors", threshold=0.05)
        .step_dummy("all_nominal_predictors")
        .prep()
    )
    baked = rec.juice()
    assert "region" not in baked.columns
    dummies = [c for c in baked.columns if c.startswith("region_")]
    # east is the reference level; west (2%) is pooled into other
    assert sorted(dummies) == ["region_north", "region_other", "region_south"]
    assert set(np.unique(baked[dummies].values)) <= {0.0, 1.0}


def test_dummy_ignores_unseen_levels(housing_df):
    rec = Recipe(housing_df, "price").step_dummy("region").prep()
    new = housing_df.head(2).copy()
    new["region"] = "mars"
    baked = rec.bake(new)
    dummies = [c for c in baked.columns if c.startswith("region_")]
    assert (baked[dummies].values == 0).all()


def test_zv_drops_constant_columns():
    df = pd.DataFrame({"const": [1.0] * 6, "x": np.arange(6.0), "y": np.arange(6.0)})
    rec = Recipe(df, "y").step_zv("all_predictors").prep()
    assert list(rec.juice().columns) == ["x", "y"]


def test_impute_median_fills_missing():
    df = pd.DataFrame({"x": [1.0, np.nan, 3.0, 5.0], "y": [0, 1, 0, 1]})
    rec = Recipe(df, "y").step_impute_median("x").prep()
    assert rec.juice()["x"].tolist() == [1.0, 3.0, 3.0, 5.0]


def test_tidy_and_summary(bivariate_df):
    rec = Recipe(bivariate_df, "Class").step_boxcox("all_numeric_predictors").step_normalize("all_numeric_predictors")
    tidy = rec.tidy()
    assert tidy["operation"].tolist() == ["BoxCox", "normalize"]
    assert not tidy["trained"].any()

    rec.prep()
    assert rec.tidy()["trained"].all()
    summary = rec.summary().set_index("variable")
    assert summary.loc["Class", "role"] == "outcome"
    assert summary.loc["A", "type"] == "numeric"


def test_missing_outcome_column(bivariate_df):
    with pytest.raises(KeyError):
        Recipe(bivariate_df, "target")
