# kdesdm/core/density.py
"""
Многомерная ядерная оценка плотности (KDE) для присутствий и фона.

Обе модели обучаются в одном и том же стандартизованном пространстве
предикторов. Ядро произведённое, ширина задаётся по каждому измерению:

    f(x) = 1/n * sum_i prod_j K((x_j - x_ij) / h_j) / h_j

Сумма считается в логарифмах (logsumexp), поэтому далеко от обучающих
точек плотность плавно уходит в 0, а не в NaN.
"""

import logging
from dataclasses import dataclass
from enum import Enum

import numpy as np
from scipy.special import logsumexp
from sklearn.model_selection import GridSearchCV, KFold
from sklearn.neighbors import KernelDensity

from .config import SDMConfig
from .errors import DimensionMismatchError, InsufficientSampleError, MissingValueError

logger = logging.getLogger(__name__)

# сколько пар (запрос, обучающая точка) обрабатывать за один проход
PAIRS_PER_CHUNK = 2_000_000

LOG_2PI = np.log(2.0 * np.pi)
LOG_EPANECHNIKOV_PEAK = np.log(0.75)


class Kernel(str, Enum):
    GAUSSIAN = "gaussian"
    EPANECHNIKOV = "epanechnikov"


def _log_kernel(kernel, u):
    """log K(u) для произведённого ядра; u: (..., d) в единицах ширины."""
    d = u.shape[-1]
    if kernel is Kernel.GAUSSIAN:
        return -0.5 * np.sum(u * u, axis=-1) - 0.5 * d * LOG_2PI
    # Епанечников: K(u) = 3/4 * (1 - u^2) при |u| <= 1
    inside = np.clip(1.0 - u * u, 0.0, None)
    with np.errstate(divide="ignore"):
        return np.sum(np.log(inside), axis=-1) + d * LOG_EPANECHNIKOV_PEAK


def _robust_sigma(samples):
    std = np.std(samples, axis=0, ddof=1) if len(samples) > 1 else np.zeros(samples.shape[1])
    q75, q25 = np.percentile(samples, [75, 25], axis=0)
    iqr_sigma = (q75 - q25) / 1.349
    sigma = np.where(iqr_sigma > 0, np.minimum(std, iqr_sigma), std)
    # в стандартизованном пространстве единичный масштаб - естественный запасной вариант
    return np.where(sigma > 0, sigma, 1.0)


def rule_of_thumb_bandwidth(samples, rule="silverman"):
    """
    Ширина ядра по каждому измерению.

    silverman: h_j = sigma_j * (4 / ((d + 2) * n)) ** (1 / (d + 4))
    scott:     h_j = sigma_j * n ** (-1 / (d + 4))

    sigma_j = min(std_j, IQR_j / 1.349).
    """
    n, d = samples.shape
    sigma = _robust_sigma(samples)
    if rule == "silverman":
        factor = (4.0 / ((d + 2.0) * n)) ** (1.0 / (d + 4.0))
    elif rule == "scott":
        factor = n ** (-1.0 / (d + 4.0))
    else:
        raise ValueError(f"Неизвестное правило выбора ширины: {rule}")
    return sigma * factor


def cross_validated_bandwidth(samples, kernel, rule="silverman", folds=5, grid_size=20):
    """
    Подбирает множитель к ширине по правилу большого пальца
    по правдоподобию на отложенных фолдах.

    Для гауссова ядра в пространстве x / base радиальное ядро KernelDensity
    совпадает с произведённым, поэтому используется GridSearchCV. Радиальный
    Епанечников от произведённого отличается, и фолды для него оцениваются
    самой DensityModel.
    """
    base = rule_of_thumb_bandwidth(samples, rule)
    n = len(samples)
    if n < 2:
        return base
    factors = np.logspace(-1, 1, grid_size)
    cv = KFold(n_splits=max(2, min(folds, n)), shuffle=False)
    if Kernel(kernel) is Kernel.GAUSSIAN:
        # в пространстве x / base единичная ширина совпадает с base
        grid = GridSearchCV(KernelDensity(kernel="gaussian"), {"bandwidth": factors}, cv=cv)
        grid.fit(samples / base)
        factor = float(grid.best_params_["bandwidth"])
    else:
        factor = _product_kernel_cv_factor(samples, base, Kernel(kernel), factors, cv)
    logger.info(f"CV-подбор ширины: множитель {factor:.4f} (из {grid_size} вариантов, фолдов: {cv.n_splits})")
    return base * factor


def _product_kernel_cv_factor(samples, base, kernel, factors, cv):
    # сумма log f по отложенным точкам; -inf, если точка вне носителя ядра
    scores = np.empty(len(factors))
    for i, factor in enumerate(factors):
        total = 0.0
        for train_idx, test_idx in cv.split(samples):
            model = DensityModel(samples=samples[train_idx], bandwidth=base * factor, kernel=kernel)
            total += float(np.sum(model.log_density(samples[test_idx])))
        scores[i] = total
    if not np.isfinite(scores).any():
        # ни один множитель не покрывает все отложенные точки - берём самое широкое ядро
        return float(factors[-1])
    return float(factors[int(np.argmax(scores))])


def select_bandwidth(samples, config: SDMConfig):
    d = samples.shape[1]
    if config.bandwidth_mode == "fixed":
        h = np.atleast_1d(np.asarray(config.fixed_bandwidth, dtype=float))
        if h.size == 1:
            h = np.full(d, h[0])
        if h.size != d:
            raise DimensionMismatchError(
                f"fixed_bandwidth: ожидалось {d} значений, получено {h.size}."
            )
        return h
    if config.bandwidth_mode == "cross_validated":
        return cross_validated_bandwidth(
            samples, config.kernel, config.bandwidth_rule, config.cv_folds, config.cv_grid_size
        )
    return rule_of_thumb_bandwidth(samples, config.bandwidth_rule)


@dataclass(frozen=True)
class DensityModel:
    """Обученная KDE. После обучения не изменяется; безопасна для параллельных чтений."""
    samples: np.ndarray
    bandwidth: np.ndarray
    kernel: Kernel = Kernel.GAUSSIAN
    label: str = ""

    def __post_init__(self):
        samples = np.array(self.samples, dtype=float)
        bandwidth = np.array(self.bandwidth, dtype=float)
        samples.setflags(write=False)
        bandwidth.setflags(write=False)
        object.__setattr__(self, "samples", samples)
        object.__setattr__(self, "bandwidth", bandwidth)
        object.__setattr__(self, "kernel", Kernel(self.kernel))

    @property
    def n_samples(self):
        return self.samples.shape[0]

    @property
    def n_features(self):
        return self.samples.shape[1]

    def _check_query(self, X):
        X = np.asarray(X, dtype=float)
        if X.ndim == 1:
            X = X.reshape(1, -1)
        if X.ndim != 2 or X.shape[1] != self.n_features:
            raise DimensionMismatchError(
                f"Ожидалось {self.n_features} признаков, но получено {X.shape[-1]}."
            )
        return X

    def log_density(self, X):
        """log f(x) для каждой строки X; -inf там, где плотность ровно 0."""
        X = self._check_query(X)
        out = np.empty(X.shape[0])
        log_norm = np.log(self.n_samples) + np.sum(np.log(self.bandwidth))
        chunk = max(1, PAIRS_PER_CHUNK // self.n_samples)
        for start in range(0, X.shape[0], chunk):
            q = X[start:start + chunk]
            u = (q[:, None, :] - self.samples[None, :, :]) / self.bandwidth
            log_k = _log_kernel(self.kernel, u)
            with np.errstate(divide="ignore"):
                out[start:start + chunk] = logsumexp(log_k, axis=1) - log_norm
        return out

    def density_many(self, X):
        return np.exp(self.log_density(X))

    def density(self, x):
        """Плотность в одной точке (неотрицательный скаляр)."""
        x = np.asarray(x, dtype=float)
        if x.ndim != 1:
            raise DimensionMismatchError("density() принимает один вектор признаков.")
        return float(self.density_many(x)[0])


def fit_density(samples, config: SDMConfig, label="") -> DensityModel:
    """
    Обучает KDE по набору точек в стандартизованном пространстве.

    Args:
        samples (np.ndarray): точки, форма (n_samples, n_features).
        config (SDMConfig): режим выбора ширины, ядро, минимум точек.
        label (str): метка модели для логов ("presence" / "background").

    Returns:
        DensityModel

    Raises:
        InsufficientSampleError: если точек меньше min_samples_per_class.
    """
    samples = np.asarray(samples, dtype=float)
    if samples.ndim == 1:
        samples = samples.reshape(-1, 1)
    if samples.ndim != 2 or samples.shape[1] == 0:
        raise DimensionMismatchError("Ожидался двумерный массив признаков.")
    if not np.all(np.isfinite(samples)):
        raise MissingValueError(f"{label}: в признаках есть пропуски.")

    n, d = samples.shape
    min_samples = config.min_samples_for(d)
    if n < min_samples:
        raise InsufficientSampleError(label or "samples", n, min_samples)

    bandwidth = select_bandwidth(samples, config)
    logger.info(
        f"KDE ({label}): точек {n}, измерений {d}, ядро {config.kernel}, "
        f"ширина [{', '.join(f'{h:.4f}' for h in bandwidth)}]"
    )
    return DensityModel(samples=samples, bandwidth=bandwidth, kernel=config.kernel, label=label)
