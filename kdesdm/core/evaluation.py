# kdesdm/core/evaluation.py
import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy.stats import rankdata
from sklearn.metrics import roc_curve

from .errors import DimensionMismatchError, EmptyClassError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EvaluationResult:
    auc: float
    n_presence: int
    n_background: int
    fpr: Optional[np.ndarray] = None
    tpr: Optional[np.ndarray] = None
    thresholds: Optional[np.ndarray] = None

    def summary(self):
        return f"ROC AUC: {self.auc:.3f} (присутствий: {self.n_presence}, фоновых точек: {self.n_background})"


def _split_labels(scores, labels):
    scores = np.asarray(scores, dtype=float).ravel()
    labels = np.asarray(labels).ravel().astype(int)
    if scores.shape != labels.shape:
        raise DimensionMismatchError(f"Число оценок ({scores.size}) не совпадает с числом меток ({labels.size}).")
    if not np.isin(labels, (0, 1)).all():
        raise ValueError("Метки должны быть 0 (фон) или 1 (присутствие).")
    n_pos = int(labels.sum())
    n_neg = int(labels.size - n_pos)
    if n_pos == 0 or n_neg == 0:
        raise EmptyClassError(f"Для AUC нужны оба класса: присутствий {n_pos}, фоновых точек {n_neg}.")
    return scores, labels, n_pos, n_neg


def compute_auc(scores, labels) -> float:
    """
    AUC как вероятность того, что случайное присутствие оценено выше случайной
    фоновой точки (статистика Манна-Уитни). Ничьи получают 0.5 через средние ранги.
    """
    scores, labels, n_pos, n_neg = _split_labels(scores, labels)
    ranks = rankdata(scores, method="average")
    rank_sum = ranks[labels == 1].sum()
    u = rank_sum - n_pos * (n_pos + 1) / 2.0
    return float(u / (n_pos * n_neg))


def evaluate(scores, labels, with_roc=True) -> EvaluationResult:
    scores, labels, n_pos, n_neg = _split_labels(scores, labels)
    auc = compute_auc(scores, labels)
    fpr = tpr = thresholds = None
    if with_roc:
        fpr, tpr, thresholds = roc_curve(labels, scores)
    result = EvaluationResult(
        auc=auc, n_presence=n_pos, n_background=n_neg, fpr=fpr, tpr=tpr, thresholds=thresholds
    )
    logger.info(result.summary())
    return result
