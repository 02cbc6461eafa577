import numpy as np
import pandas as pd
import pytest

from recipeml.evaluation import last_fit
from recipeml.model import boost_tree, mlp, tune
from recipeml.recipe import Recipe
from recipeml.splits import initial_split


def test_last_fit_regression(housing_df):
    split = initial_split(housing_df, "price", seed=1)
    train, test = split.training(housing_df), split.testing(housing_df)
    rec = Recipe(train, "price").step_log("outcome", base=10).step_dummy("all_nominal_predictors")
    spec = boost_tree(trees=30, tree_depth=2, learn_rate=0.2)

    fit = last_fit(spec, rec, train, test, seed=1, n_jobs=1)
    assert rec.trained
    assert list(fit.predictions.columns) == [".pred", "price", ".resid"]
    assert len(fit.predictions) == len(test)
    assert np.allclose(fit.predictions["price"], np.log10(test["price"]))
    assert np.allclose(fit.predictions[".resid"], fit.predictions["price"] - fit.predictions[".pred"])
    assert set(fit.metrics) == {"rmse", "rsq", "mae"}
    assert fit.metrics["rmse"] > 0
    with pytest.raises(ValueError):
        fit.conf_mat()


def test_last_fit_classification_and_raw_predictions(bivariate_df):
    split = initial_split(bivariate_df, "Class", seed=2)
    train, test = split.training(bivariate_df), split.testing(bivariate_df)
    rec = Recipe(train, "Class").step_boxcox("A", "B").step_normalize("A", "B")
    spec = mlp(hidden_units=4, penalty=0.01, epochs=200)

    fit = last_fit(spec, rec, train, test, seed=2)
    assert fit.classes == ["One", "Two"]
    assert list(fit.predictions.columns) == [".pred_One", ".pred_Two", ".pred_class", "Class"]
    assert np.allclose(fit.predictions[[".pred_One", ".pred_Two"]].sum(axis=1), 1.0)
    assert set(fit.metrics) == {"accuracy", "roc_auc"}

    cm = fit.conf_mat()
    assert cm.values.sum() == len(test)

    # raw-scale rows without the outcome are baked before prediction
    grid = pd.DataFrame({"A": [500.0, 3000.0], "B": [40.0, 80.0]})
    proba = fit.predict(grid, type="prob")
    assert proba.shape == (2, 2)
    assert set(fit.predict(grid, type="class")) <= {"One", "Two"}
    with pytest.raises(ValueError):
        fit.predict(grid, type="numeric")


def test_last_fit_rejects_unfinalized_spec(bivariate_df):
    rec = Recipe(bivariate_df, "Class")
    with pytest.raises(ValueError):
        last_fit(mlp(hidden_units=tune()), rec, bivariate_df, bivariate_df)
