# kdesdm/core/scoring.py
import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy.special import logsumexp

from .density import DensityModel
from .errors import DimensionMismatchError, ModelNotFittedError

logger = logging.getLogger(__name__)


class SuitabilityScorer:
    """
    Пригодность = p / (p + b + eps), где p и b - плотности присутствий и фона.

    Отношение ограничено [0, 1) и показывает, насколько точка "похожа" на
    присутствия сильнее, чем на фон. Это относительный ранг, а не вероятность.
    """

    def __init__(self, presence: Optional[DensityModel], background: Optional[DensityModel], epsilon=1e-12):
        self.presence = presence
        self.background = background
        self.epsilon = float(epsilon)

    def _check_fitted(self):
        if self.presence is None or self.background is None:
            raise ModelNotFittedError("Модели плотности присутствий и фона должны быть обучены до оценки пригодности.")
        if self.presence.n_features != self.background.n_features:
            raise DimensionMismatchError("Модели присутствий и фона обучены на разных пространствах признаков.")

    def log_densities(self, X):
        self._check_fitted()
        return self.presence.log_density(X), self.background.log_density(X)

    def ratio(self, X):
        """Сырые отношения для точек X (уже в стандартизованном пространстве)."""
        lp, lb = self.log_densities(X)
        log_eps = np.full_like(lp, np.log(self.epsilon))
        with np.errstate(divide="ignore", invalid="ignore"):
            log_denominator = logsumexp(np.stack([lp, lb, log_eps]), axis=0)
            ratios = np.exp(lp - log_denominator)
        # при очень большом p округление может дать ровно 1.0
        return np.clip(np.nan_to_num(ratios, nan=0.0), 0.0, np.nextafter(1.0, 0.0))


@dataclass(frozen=True)
class Normalizer:
    """
    Приведение сырых отношений к шкале 0..1 по опорному набору.

    minmax:     (r - min) / (max - min), с обрезкой в [0, 1]
    percentile: доля опорных значений ниже r (ничьи считаются как половина)
    none:       без изменений
    """
    mode: str
    lower: float = 0.0
    upper: float = 1.0
    reference: Optional[np.ndarray] = None

    def apply(self, ratios):
        ratios = np.asarray(ratios, dtype=float)
        if self.mode == "none":
            return ratios.copy()
        if self.mode == "minmax":
            span = self.upper - self.lower
            if not span > 0:
                return np.zeros_like(ratios)
            return np.clip((ratios - self.lower) / span, 0.0, 1.0)
        if self.mode == "percentile":
            ref = self.reference
            below = np.searchsorted(ref, ratios, side="left")
            not_above = np.searchsorted(ref, ratios, side="right")
            return (below + not_above) / (2.0 * len(ref))
        raise ValueError(f"Неизвестный режим нормализации: {self.mode}")


def fit_normalizer(mode, reference_ratios) -> Normalizer:
    reference = np.asarray(reference_ratios, dtype=float).ravel()
    if mode == "none":
        return Normalizer(mode="none")
    if reference.size == 0:
        raise ValueError("Пустой опорный набор для нормализации.")
    if mode == "minmax":
        return Normalizer(mode="minmax", lower=float(reference.min()), upper=float(reference.max()))
    if mode == "percentile":
        ref = np.sort(reference)
        ref.setflags(write=False)
        return Normalizer(mode="percentile", lower=float(ref[0]), upper=float(ref[-1]), reference=ref)
    raise ValueError(f"Неизвестный режим нормализации: {mode}")


def normalize_scores(ratios, mode="minmax"):
    """Нормализация набора отношений по нему же самому."""
    return fit_normalizer(mode, ratios).apply(ratios)
