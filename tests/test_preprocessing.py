"""
Тесты стандартизации по общему пулу и её повторного применения при прогнозе.
"""

import numpy as np
import pandas as pd
import pytest

from kdesdm.core.errors import DegenerateFeatureError, DimensionMismatchError, MissingValueError
from kdesdm.core.preprocessing import (
    FeatureTransform,
    apply_transform,
    extract_features_from_stack,
    fit_feature_transform,
    inverse_transform,
)


def test_mean_and_scale_come_from_pooled_values():
    pool = {"bio01": [1.0, 2.0, 3.0, 4.0], "elevation": [100.0, 300.0, 200.0, 400.0]}
    t = fit_feature_transform(pool)
    assert t.names == ("bio01", "elevation")
    assert np.allclose(t.mean, [2.5, 250.0])
    assert np.allclose(t.scale, [np.std([1, 2, 3, 4]), np.std([100, 300, 200, 400])])


def test_standardized_pool_has_zero_mean_unit_scale(presence_table, background_table):
    pool = pd.concat([presence_table, background_table])[["bio01", "bio12"]]
    t = fit_feature_transform(pool)
    X = apply_transform(t, pool)
    assert np.allclose(X.mean(axis=0), 0.0, atol=1e-10)
    assert np.allclose(X.std(axis=0), 1.0)


def test_zero_variance_covariate_is_rejected():
    with pytest.raises(DegenerateFeatureError) as exc:
        fit_feature_transform({"bio01": [1.0, 2.0, 3.0], "bio12": [5.0, 5.0, 5.0]})
    assert exc.value.names == ["bio12"]


def test_missing_values_are_rejected():
    with pytest.raises(MissingValueError):
        fit_feature_transform({"bio01": [1.0, np.nan, 3.0]})


def test_columns_are_matched_by_name():
    t = fit_feature_transform({"a": [0.0, 2.0], "b": [10.0, 30.0]})
    shuffled = pd.DataFrame({"b": [20.0], "a": [1.0], "extra": [99.0]})
    assert np.allclose(apply_transform(t, shuffled), [[0.0, 0.0]])


def test_missing_column_raises_dimension_mismatch():
    t = fit_feature_transform({"a": [0.0, 2.0], "b": [10.0, 30.0]})
    with pytest.raises(DimensionMismatchError):
        apply_transform(t, pd.DataFrame({"a": [1.0]}))


def test_wrong_width_array_raises_dimension_mismatch():
    t = fit_feature_transform({"a": [0.0, 2.0], "b": [10.0, 30.0]})
    with pytest.raises(DimensionMismatchError):
        apply_transform(t, np.ones((4, 3)))


def test_inverse_transform_restores_original_units():
    t = fit_feature_transform({"a": [0.0, 2.0, 7.0], "b": [10.0, 30.0, -5.0]})
    X = np.array([[3.0, 12.0], [-1.0, 0.5]])
    assert np.allclose(inverse_transform(t, apply_transform(t, X)), X)


def test_transform_is_immutable():
    t = fit_feature_transform({"a": [0.0, 2.0], "b": [10.0, 30.0]})
    with pytest.raises(ValueError):
        t.mean[0] = 5.0
    with pytest.raises(AttributeError):
        t.names = ("x", "y")


def test_json_layout_matches_scales_file(tmp_path):
    t = fit_feature_transform({"bio01": [1.0, 3.0], "bio12": [100.0, 500.0]})
    path = tmp_path / "predictors_scales.json"
    t.save_json(path)
    loaded = FeatureTransform.load_json(path)
    assert loaded.names == t.names
    assert np.allclose(loaded.mean, t.mean)
    assert np.allclose(loaded.scale, t.scale)
    assert t.to_dict()["bio01"] == {"method": "standard", "mean": 2.0, "scale": 1.0}


def test_extract_features_from_stack():
    stack = np.arange(2 * 3 * 4, dtype=float).reshape(2, 3, 4)
    X = extract_features_from_stack(stack, np.array([0, 2]), np.array([1, 3]))
    assert X.shape == (2, 2)
    assert np.allclose(X[0], [stack[0, 0, 1], stack[1, 0, 1]])
    assert np.allclose(X[1], [stack[0, 2, 3], stack[1, 2, 3]])
