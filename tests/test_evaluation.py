"""
Тесты AUC по рангам (ничьи - средний ранг).
"""

import numpy as np
import pytest
from sklearn.metrics import roc_auc_score

from kdesdm.core.errors import EmptyClassError
from kdesdm.core.evaluation import compute_auc, evaluate


def test_perfect_separation_gives_one():
    scores = [0.9, 0.8, 0.95, 0.1, 0.2, 0.3]
    labels = [1, 1, 1, 0, 0, 0]
    assert compute_auc(scores, labels) == 1.0


def test_reversed_separation_gives_zero():
    assert compute_auc([0.1, 0.2, 0.8, 0.9], [1, 1, 0, 0]) == 0.0


def test_pairwise_probability():
    # присутствие 0.35 выигрывает у 0.1 и проигрывает 0.4; 0.8 выигрывает у обоих
    assert compute_auc([0.1, 0.4, 0.35, 0.8], [0, 0, 1, 1]) == pytest.approx(0.75)


def test_ties_get_half_credit():
    assert compute_auc([0.5, 0.5, 0.2], [1, 0, 0]) == pytest.approx(0.75)
    assert compute_auc(np.full(10, 0.3), [1] * 5 + [0] * 5) == pytest.approx(0.5)


def test_matches_sklearn_with_ties(rng):
    scores = np.round(rng.uniform(size=400), 1)
    labels = rng.integers(0, 2, size=400)
    assert compute_auc(scores, labels) == pytest.approx(roc_auc_score(labels, scores))


def test_identical_distributions_average_to_half(rng):
    aucs = [
        compute_auc(rng.normal(size=200), np.r_[np.ones(100), np.zeros(100)])
        for _ in range(30)
    ]
    assert np.mean(aucs) == pytest.approx(0.5, abs=0.03)


@pytest.mark.parametrize("labels", [[1, 1, 1], [0, 0, 0]])
def test_empty_class_raises(labels):
    with pytest.raises(EmptyClassError):
        compute_auc([0.1, 0.2, 0.3], labels)


def test_evaluate_returns_roc_points():
    result = evaluate([0.9, 0.7, 0.4, 0.2], [1, 1, 0, 0])
    assert result.auc == 1.0
    assert result.n_presence == 2
    assert result.n_background == 2
    assert result.fpr[0] == 0.0 and result.tpr[-1] == 1.0
    assert "ROC AUC: 1.000" in result.summary()


def test_evaluate_without_roc():
    result = evaluate([0.9, 0.1], [1, 0], with_roc=False)
    assert result.fpr is None and result.tpr is None
