# kdesdm/core/preprocessing.py
import json
import logging
from dataclasses import dataclass
from typing import Mapping, Tuple

import numpy as np
import pandas as pd
from sklearn.preprocessing import StandardScaler

from .errors import DegenerateFeatureError, DimensionMismatchError
from .data_loading import check_no_missing

logger = logging.getLogger(__name__)


def _readonly(values):
    arr = np.array(values, dtype=float)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True)
class FeatureTransform:
    """
    Обученное масштабирование предикторов: (x - mean) / scale.

    Считается один раз на объединённом наборе присутствий и фона и затем
    без изменений применяется ко всем точкам сетки.
    """
    names: Tuple[str, ...]
    mean: np.ndarray
    scale: np.ndarray
    method: str = "standard"

    def __post_init__(self):
        object.__setattr__(self, "names", tuple(self.names))
        object.__setattr__(self, "mean", _readonly(self.mean))
        object.__setattr__(self, "scale", _readonly(self.scale))
        if not (len(self.names) == len(self.mean) == len(self.scale)):
            raise DimensionMismatchError("Длины names, mean и scale должны совпадать.")

    @property
    def n_features(self):
        return len(self.names)

    def to_dict(self):
        # та же раскладка, что и у predictors_scales.json
        return {
            name: {"method": self.method, "mean": float(m), "scale": float(s)}
            for name, m, s in zip(self.names, self.mean, self.scale)
        }

    @classmethod
    def from_dict(cls, scales):
        names = list(scales.keys())
        methods = {scales[n].get("method", "standard") for n in names}
        if methods != {"standard"}:
            raise ValueError(f"Поддерживается только метод 'standard', получено: {sorted(methods)}")
        return cls(
            names=names,
            mean=[scales[n]["mean"] for n in names],
            scale=[scales[n]["scale"] for n in names],
        )

    def save_json(self, path):
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, ensure_ascii=False, indent=4)

    @classmethod
    def load_json(cls, path):
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_dict(json.load(f))


def fit_feature_transform(values: Mapping) -> FeatureTransform:
    """
    Обучает стандартизацию по объединённому пулу точек (присутствия + фон).

    Args:
        values: отображение "имя предиктора -> значения во всех точках"
                (dict или pandas.DataFrame).

    Returns:
        FeatureTransform с сохранёнными mean/scale.

    Raises:
        DegenerateFeatureError: если у предиктора нулевая дисперсия.
    """
    frame = pd.DataFrame({name: np.asarray(v, dtype=float) for name, v in values.items()})
    if frame.shape[1] == 0 or frame.shape[0] == 0:
        raise DimensionMismatchError("Нет данных для обучения масштабирования.")
    check_no_missing(frame, "пул предикторов")

    scaler = StandardScaler().fit(frame.values)
    mean = scaler.mean_
    std = np.sqrt(scaler.var_)

    degenerate = [
        name for name, m, s in zip(frame.columns, mean, std)
        if not s > 1e-12 * max(1.0, abs(m))
    ]
    if degenerate:
        raise DegenerateFeatureError(degenerate)

    transform = FeatureTransform(names=list(frame.columns), mean=mean, scale=std)
    for name, m, s in zip(transform.names, transform.mean, transform.scale):
        logger.debug(f"  {name:30s} mean={m:.4f} scale={s:.4f}")
    return transform


def _as_matrix(transform, values):
    # DataFrame/dict/Series -> столбцы по именам, массив -> проверка ширины
    if isinstance(values, pd.Series):
        values = values.to_frame().T
    if isinstance(values, (pd.DataFrame, Mapping)):
        missing = [n for n in transform.names if n not in values]
        if missing:
            raise DimensionMismatchError(f"Нет предикторов: {missing}")
        X = np.column_stack([np.asarray(values[n], dtype=float) for n in transform.names])
    else:
        X = np.asarray(values, dtype=float)
        if X.ndim == 1:
            X = X.reshape(1, -1)
        if X.ndim != 2 or X.shape[1] != transform.n_features:
            raise DimensionMismatchError(
                f"Ожидалось {transform.n_features} признаков, но получено {X.shape[-1] if X.ndim else 0}."
            )
    return X


def apply_transform(transform: FeatureTransform, values) -> np.ndarray:
    """Применяет обученное масштабирование. Возвращает X: (n_samples, n_features)."""
    X = _as_matrix(transform, values)
    check_no_missing(X, "точки для масштабирования")
    return (X - transform.mean) / transform.scale


def inverse_transform(transform: FeatureTransform, scaled) -> np.ndarray:
    X = _as_matrix(transform, scaled)
    return X * transform.scale + transform.mean


def extract_features_from_stack(stack, rows, cols):
    """Извлекает значения предикторов из стека по индексам пикселей.
       Возвращает X: (n_samples, n_bands)."""
    # stack: (bands, H, W)
    return stack[:, rows, cols].T
