"""
Тесты KDE: выбор ширины ядра, затухание плотности, устойчивость.
"""

import dataclasses
import warnings
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest
from sklearn.model_selection import KFold

from kdesdm.core.config import SDMConfig
from kdesdm.core.density import (
    DensityModel,
    Kernel,
    fit_density,
    rule_of_thumb_bandwidth,
)
from kdesdm.core.errors import DimensionMismatchError, InsufficientSampleError


@pytest.fixture
def cluster(rng):
    return rng.normal(0.0, 1.0, size=(60, 2))


def test_density_at_training_points_exceeds_far_away(cluster):
    model = fit_density(cluster, SDMConfig(), "presence")
    far = model.density(np.array([25.0, -25.0]))
    for x in cluster:
        assert model.density(x) >= far


def test_far_points_decay_to_zero_without_nan(cluster):
    model = fit_density(cluster, SDMConfig(), "presence")
    d = model.density_many(np.array([[1e3, 1e3], [1e6, -1e6]]))
    assert np.all(np.isfinite(d))
    assert np.all(d >= 0.0)
    assert np.all(model.log_density(np.array([[1e3, 1e3]])) < -1e4)


def test_epanechnikov_is_exactly_zero_outside_support(cluster):
    model = fit_density(cluster, SDMConfig(kernel="epanechnikov"), "presence")
    assert model.kernel is Kernel.EPANECHNIKOV
    assert model.density(np.array([50.0, 50.0])) == 0.0
    assert np.isneginf(model.log_density(np.array([50.0, 50.0]))[0])
    assert model.density(cluster[0]) > 0.0


def test_gaussian_density_integrates_to_one(rng):
    samples = rng.normal(0.0, 1.0, size=(80, 1))
    model = fit_density(samples, SDMConfig(), "presence")
    grid = np.linspace(-12.0, 12.0, 4001).reshape(-1, 1)
    dx = grid[1, 0] - grid[0, 0]
    assert np.sum(model.density_many(grid)) * dx == pytest.approx(1.0, abs=1e-3)


def test_silverman_and_scott_rules_differ_by_constant_factor(rng):
    samples = rng.normal(0.0, 1.0, size=(50, 1))
    silverman = rule_of_thumb_bandwidth(samples, "silverman")
    scott = rule_of_thumb_bandwidth(samples, "scott")
    assert silverman[0] / scott[0] == pytest.approx((4.0 / 3.0) ** 0.2)


def test_constant_dimension_falls_back_to_unit_scale():
    samples = np.array([[0.0, 1.0], [1.0, 1.0], [2.0, 1.0], [3.0, 1.0]])
    h = rule_of_thumb_bandwidth(samples, "scott")
    assert h[1] == pytest.approx(4 ** (-1.0 / 6.0))


def test_fixed_scalar_bandwidth_is_broadcast(cluster):
    model = fit_density(cluster, SDMConfig(bandwidth_mode="fixed", fixed_bandwidth=0.3), "presence")
    assert np.allclose(model.bandwidth, [0.3, 0.3])


def test_fixed_vector_bandwidth_must_match_dimensionality(cluster):
    config = SDMConfig(bandwidth_mode="fixed", fixed_bandwidth=[0.1, 0.2, 0.3])
    with pytest.raises(DimensionMismatchError):
        fit_density(cluster, config, "presence")


def test_cross_validated_bandwidth_scales_rule_of_thumb(cluster):
    config = SDMConfig(bandwidth_mode="cross_validated", cv_grid_size=8)
    model = fit_density(cluster, config, "presence")
    base = rule_of_thumb_bandwidth(cluster, "silverman")
    factors = model.bandwidth / base
    assert factors[0] == pytest.approx(factors[1])
    assert 0.1 - 1e-9 <= factors[0] <= 10.0 + 1e-9


def test_cross_validated_bandwidth_is_deterministic(cluster):
    config = SDMConfig(bandwidth_mode="cross_validated", cv_grid_size=8)
    a = fit_density(cluster, config, "presence")
    b = fit_density(cluster, config, "presence")
    assert np.array_equal(a.bandwidth, b.bandwidth)


def test_epanechnikov_cross_validation_scores_product_kernel(cluster):
    config = SDMConfig(bandwidth_mode="cross_validated", kernel="epanechnikov", cv_grid_size=8)
    with warnings.catch_warnings():
        warnings.simplefilter("error", UserWarning)
        model = fit_density(cluster, config, "presence")

    factor = model.bandwidth[0] / rule_of_thumb_bandwidth(cluster, "silverman")[0]
    assert np.isclose(np.logspace(-1, 1, 8), factor).any()
    # при выбранной ширине каждая отложенная точка внутри носителя ядра
    for train_idx, test_idx in KFold(n_splits=5).split(cluster):
        fold = DensityModel(cluster[train_idx], model.bandwidth, Kernel.EPANECHNIKOV)
        assert np.all(np.isfinite(fold.log_density(cluster[test_idx])))


def test_too_few_samples_raise(rng):
    with pytest.raises(InsufficientSampleError) as exc:
        fit_density(rng.normal(size=(3, 2)), SDMConfig(), "presence")
    assert exc.value.min_samples == 4
    assert exc.value.n_samples == 3


def test_configured_minimum_is_respected(rng):
    model = fit_density(rng.normal(size=(3, 2)), SDMConfig(min_samples_per_class=3), "presence")
    assert model.n_samples == 3


def test_query_dimension_must_match(cluster):
    model = fit_density(cluster, SDMConfig(), "presence")
    with pytest.raises(DimensionMismatchError):
        model.density(np.array([0.0, 0.0, 0.0]))


def test_model_is_read_only(cluster):
    model = fit_density(cluster, SDMConfig(), "presence")
    with pytest.raises(dataclasses.FrozenInstanceError):
        model.bandwidth = np.ones(2)
    with pytest.raises(ValueError):
        model.samples[0, 0] = 100.0
    # обучающий массив вызывающего кода не связан с моделью
    cluster[0, 0] = 100.0
    assert model.samples[0, 0] != 100.0


def test_concurrent_evaluation_matches_sequential(cluster, rng):
    model = fit_density(cluster, SDMConfig(), "presence")
    queries = [rng.normal(size=(50, 2)) for _ in range(8)]
    expected = [model.density_many(q) for q in queries]
    with ThreadPoolExecutor(max_workers=4) as executor:
        got = list(executor.map(model.density_many, queries))
    for e, g in zip(expected, got):
        assert np.array_equal(e, g)


def test_chunked_evaluation_matches_direct(cluster, rng, monkeypatch):
    import kdesdm.core.density as density

    model = DensityModel(samples=cluster, bandwidth=[0.5, 0.5])
    queries = rng.normal(size=(37, 2))
    full = model.log_density(queries)
    monkeypatch.setattr(density, "PAIRS_PER_CHUNK", 5 * len(cluster))
    assert np.allclose(model.log_density(queries), full)
