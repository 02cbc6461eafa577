import numpy as np
import pandas as pd
import pytest

from recipeml.splits import initial_split, vfold_cv, make_strata, save_split, load_split


def test_initial_split_partitions_rows(bivariate_df):
    split = initial_split(bivariate_df, "Class", prop=0.75, seed=1)
    both = np.concatenate([split.train_idx, split.test_idx])
    assert len(np.intersect1d(split.train_idx, split.test_idx)) == 0
    assert sorted(both.tolist()) == list(range(len(bivariate_df)))
    assert len(split.train_idx) == 225
    assert split.strata


def test_initial_split_keeps_class_balance(bivariate_df):
    split = initial_split(bivariate_df, "Class", prop=0.75, seed=1)
    overall = (bivariate_df["Class"] == "One").mean()
    train = (split.training(bivariate_df)["Class"] == "One").mean()
    test = (split.testing(bivariate_df)["Class"] == "One").mean()
    assert abs(train - overall) < 0.02
    assert abs(test - overall) < 0.03


def test_initial_split_numeric_outcome(housing_df):
    split = initial_split(housing_df, "price", prop=0.8, seed=2)
    assert len(split.train_idx) == 192
    assert len(split.testing(housing_df)) == 48


def test_initial_split_bad_prop(bivariate_df):
    with pytest.raises(ValueError):
        initial_split(bivariate_df, "Class", prop=1.0)


def test_initial_split_missing_outcome(bivariate_df):
    with pytest.raises(KeyError):
        initial_split(bivariate_df, "nope")


def test_make_strata_bins_numeric():
    strata = make_strata(np.arange(100, dtype=float), breaks=4)
    assert strata.nunique() == 4
    assert strata.value_counts().min() == 25


def test_vfold_cv_covers_every_row_once(bivariate_df):
    folds = vfold_cv(bivariate_df, "Class", v=5, seed=3)
    assert [f.id for f in folds] == ["Fold01", "Fold02", "Fold03", "Fold04", "Fold05"]
    val = np.concatenate([f.val_idx for f in folds])
    assert sorted(val.tolist()) == list(range(len(bivariate_df)))
    for f in folds:
        assert len(np.intersect1d(f.train_idx, f.val_idx)) == 0
        assert len(f.train_idx) + len(f.val_idx) == len(bivariate_df)


def test_vfold_cv_bad_v(bivariate_df):
    with pytest.raises(ValueError):
        vfold_cv(bivariate_df, "Class", v=1)


def test_split_payload_roundtrip(tmp_path, bivariate_df):
    split = initial_split(bivariate_df, "Class", seed=4)
    path = save_split(split, tmp_path / "split.json", seed=4)
    loaded = load_split(path)
    np.testing.assert_array_equal(loaded.train_idx, split.train_idx)
    np.testing.assert_array_equal(loaded.test_idx, split.test_idx)


def test_initial_split_falls_back_when_test_side_cannot_hold_every_stratum(capsys):
    # 4 quantile bins, but only 2 test rows
    df = pd.DataFrame({"x": np.arange(12.0), "y": np.arange(12.0)})
    split = initial_split(df, "y", prop=0.9, seed=5)
    assert "[WARN]" in capsys.readouterr().out
    assert not split.strata
    assert len(split.train_idx) == 10
    assert len(split.test_idx) == 2
    both = np.concatenate([split.train_idx, split.test_idx])
    assert sorted(both.tolist()) == list(range(12))


def test_initial_split_falls_back_on_singleton_stratum(capsys):
    df = pd.DataFrame({"x": np.arange(10.0), "y": ["a"] * 9 + ["b"]})
    split = initial_split(df, "y", prop=0.5, seed=5)
    assert "[WARN]" in capsys.readouterr().out
    assert not split.strata


def test_initial_split_stratified_without_warning(bivariate_df, capsys):
    initial_split(bivariate_df, "Class", prop=0.75, seed=1)
    assert "[WARN]" not in capsys.readouterr().out


def test_vfold_cv_falls_back_when_a_class_is_smaller_than_v(capsys):
    df = pd.DataFrame({"x": np.arange(10.0), "y": ["a"] * 8 + ["b"] * 2})
    folds = vfold_cv(df, "y", v=3, seed=5)
    assert "[WARN]" in capsys.readouterr().out
    assert len(folds) == 3
    val = np.concatenate([f.val_idx for f in folds])
    assert sorted(val.tolist()) == list(range(10))


def test_vfold_cv_more_folds_than_rows():
    df = pd.DataFrame({"x": np.arange(10.0), "y": np.arange(10.0)})
    with pytest.raises(ValueError):
        vfold_cv(df, "y", v=11)
