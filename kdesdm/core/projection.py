# kdesdm/core/projection.py
"""
Прогноз пригодности для произвольных точек (например, всей сетки области).

Масштабирование берётся из обучения и не переобучается: иначе пространство
признаков сетки разойдётся с обученными плотностями.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import numpy as np
import pandas as pd

from .data_loading import load_feature_table
from .errors import DimensionMismatchError, ModelNotFittedError, ProjectionCancelledError
from .preprocessing import FeatureTransform, apply_transform
from .scoring import Normalizer, SuitabilityScorer, fit_normalizer
from .utils.helpers import get_predictor_stats

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SuitabilityScore:
    point_id: Any
    ratio: float
    score: float


@dataclass(frozen=True)
class FittedModel:
    """Всё, что нужно для прогноза: масштабирование, пара плотностей и нормализация."""
    transform: FeatureTransform
    scorer: SuitabilityScorer
    normalizer: Normalizer

    @property
    def feature_names(self):
        return self.transform.names

    def ratio(self, values):
        """Сырые отношения для точек в исходных единицах предикторов."""
        return self.scorer.ratio(apply_transform(self.transform, values))

    def score(self, values):
        return self.normalizer.apply(self.ratio(values))


def _require_model(model):
    if model is None:
        raise ModelNotFittedError("Прогноз возможен только после обучения плотностей.")
    return model


def predict_point(model: FittedModel, vector, point_id=None) -> SuitabilityScore:
    """
    Пригодность одной точки.

    Args:
        model: обученная модель (FittedModel).
        vector: значения предикторов - dict или pandas.Series {имя: значение}
                (набор имён должен совпадать с обученным) или последовательность
                в порядке model.feature_names.
        point_id: идентификатор точки (координата, номер строки и т.п.).
    """
    model = _require_model(model)
    if isinstance(vector, pd.Series):
        vector = vector.to_dict()
    if isinstance(vector, Mapping):
        # у одной точки набор предикторов должен совпадать с обученным
        if set(vector) != set(model.feature_names):
            raise DimensionMismatchError(
                f"Предикторы точки {sorted(vector)} не совпадают с обученными {list(model.feature_names)}."
            )
        vector = {name: [value] for name, value in vector.items()}
    else:
        vector = np.asarray(vector, dtype=float).reshape(1, -1)
    ratio = model.ratio(vector)
    score = model.normalizer.apply(ratio)
    return SuitabilityScore(point_id=point_id, ratio=float(ratio[0]), score=float(score[0]))


def predict_table(model: FittedModel, table, id_col=None, batch_size=50_000, max_workers=4,
                  reference="training", cancel_event: Optional[threading.Event] = None,
                  batch_timeout: Optional[float] = None) -> pd.DataFrame:
    """
    Пригодность для таблицы точек, батчами в пуле потоков.

    Args:
        model: обученная модель.
        table: DataFrame или путь к CSV с предикторами.
        id_col: столбец идентификатора точки (иначе - индекс).
        batch_size: точек в одном батче.
        max_workers: ограничение на число потоков.
        reference: "training" - нормализация по обучающим точкам,
                   "batch" - по всему набору отношений этой таблицы.
        cancel_event: внешний флаг отмены, проверяется перед каждым батчем.
        batch_timeout: сколько секунд ждать очередной батч.

    Returns:
        DataFrame со столбцами id, ratio, score.

    Raises:
        ProjectionCancelledError: при отмене или таймауте; частичный результат не возвращается.
    """
    model = _require_model(model)
    if reference not in ("training", "batch"):
        raise ValueError(f"reference должен быть 'training' или 'batch', получено: {reference}")

    ids, features = load_feature_table(table, id_col=id_col, covariates=model.feature_names)
    raw = features.to_numpy(dtype=float)
    n_points = raw.shape[0]
    ratios = np.empty(n_points)

    stop = threading.Event()

    def cancelled():
        return stop.is_set() or (cancel_event is not None and cancel_event.is_set())

    def score_batch(start):
        if cancelled():
            return None
        end = min(start + batch_size, n_points)
        ratios[start:end] = model.ratio(raw[start:end])
        return end - start

    starts = list(range(0, n_points, batch_size))
    logger.info(f"Прогноз по {n_points} точкам: батчей {len(starts)}, потоков {max_workers}")
    t0 = time.time()

    executor = ThreadPoolExecutor(max_workers=max_workers)
    try:
        futures = [executor.submit(score_batch, start) for start in starts]
        for i, future in enumerate(futures):
            try:
                done = future.result(timeout=batch_timeout)
            except FuturesTimeoutError:
                stop.set()
                raise ProjectionCancelledError(f"Таймаут батча {i + 1}/{len(futures)} ({batch_timeout} с)")
            if done is None:
                stop.set()
                raise ProjectionCancelledError(f"Прогноз отменён на батче {i + 1}/{len(futures)}")
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    logger.info(f"Прогноз завершён за {time.time() - t0:.1f} с")

    if reference == "batch":
        normalizer = fit_normalizer(model.normalizer.mode, ratios)
    else:
        normalizer = model.normalizer
    return pd.DataFrame({"id": np.asarray(ids), "ratio": ratios, "score": normalizer.apply(ratios)})


# Вспомогательная функция предсказания по стеку батчами
def predict_suitability_for_stack(model: FittedModel, stack, valid_mask, batch_size=500_000):
    """
    stack: (bands, H, W) в порядке model.feature_names, valid_mask: (H, W).
    Возвращает (H, W) float32 с NaN вне valid_mask.
    """
    model = _require_model(model)
    bands, H, W = stack.shape
    flat = stack.reshape(bands, -1).T  # (H*W, bands)
    suitability_flat = np.full(H * W, np.nan, dtype="float32")
    valid_idx = np.flatnonzero(valid_mask.ravel())
    for start in range(0, len(valid_idx), batch_size):
        sel = valid_idx[start:start + batch_size]
        suitability_flat[sel] = model.score(flat[sel]).astype("float32")
    return suitability_flat.reshape(H, W)


def summarize_scores(scores) -> dict:
    """Число клеток с высокой пригодностью (CHS05/CHS50/CHS95) и описательные статистики."""
    scores = np.asarray(scores, dtype=float)
    scores = scores[np.isfinite(scores)]
    summary = {
        "CHS05": int(np.sum(scores > 0.05)),
        "CHS50": int(np.sum(scores > 0.5)),
        "CHS95": int(np.sum(scores > 0.95)),
        "n": int(scores.size),
    }
    if scores.size:
        summary.update(get_predictor_stats(scores))
    return summary
