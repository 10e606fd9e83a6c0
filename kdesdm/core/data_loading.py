# kdesdm/core/data_loading.py
import logging

import numpy as np
import pandas as pd

from .errors import DimensionMismatchError, MissingValueError

logger = logging.getLogger(__name__)


def load_feature_table(source, id_col=None, covariates=None, sep=","):
    """
    Загружает таблицу признаков (точка + значения предикторов).

    Args:
        source: путь к CSV или готовый pandas.DataFrame.
        id_col: столбец с идентификатором точки. Если не задан, используется индекс.
        covariates: список предикторов. Если не задан, берутся все числовые столбцы, кроме id.
        sep: разделитель CSV.

    Returns:
        (ids, features): pandas.Index идентификаторов и DataFrame предикторов (float).
    """
    if isinstance(source, pd.DataFrame):
        df = source.copy()
    else:
        df = pd.read_csv(source, sep=sep, index_col=False)
        logger.info(f"Загружено записей из {source}: {len(df)}")

    if id_col is not None:
        if id_col not in df.columns:
            raise DimensionMismatchError(f"В таблице нет столбца идентификатора '{id_col}'")
        ids = pd.Index(df[id_col], name="id")
        df = df.drop(columns=[id_col])
    else:
        ids = pd.Index(df.index, name="id")

    if covariates is None:
        covariates = [c for c in df.columns if pd.api.types.is_numeric_dtype(df[c])]
    else:
        covariates = list(covariates)
        missing = [c for c in covariates if c not in df.columns]
        if missing:
            raise DimensionMismatchError(f"В таблице нет предикторов: {missing}")

    if not covariates:
        raise DimensionMismatchError("В таблице нет числовых предикторов")

    try:
        features = df[covariates].astype(float)
    except (TypeError, ValueError) as e:
        raise MissingValueError(f"Нечисловые значения в предикторах: {e}") from e
    features.index = ids
    check_no_missing(features)
    return ids, features


def check_no_missing(features, label="таблица"):
    """Пропуски недопустимы: строки не выбрасываются молча, а вызывают ошибку."""
    values = np.asarray(features, dtype=float)
    bad = ~np.isfinite(values)
    if bad.any():
        n_rows = int(bad.any(axis=1).sum()) if values.ndim == 2 else int(bad.sum())
        raise MissingValueError(f"{label}: строк с пропусками или бесконечностями: {n_rows}")


def align_tables(presence, background):
    """
    Проверяет, что наборы предикторов присутствий и фона совпадают,
    и приводит фон к порядку столбцов присутствий.
    """
    p_cols = list(presence.columns)
    b_cols = list(background.columns)
    if len(p_cols) != len(b_cols) or set(p_cols) != set(b_cols):
        raise DimensionMismatchError(
            f"Наборы предикторов не совпадают: присутствия {p_cols}, фон {b_cols}"
        )
    return presence, background[p_cols]


def deduplicate_rows(features):
    """Оставляет по одной точке на каждый уникальный набор значений предикторов."""
    deduped = features[~features.duplicated(keep="first")]
    if len(deduped) != len(features):
        logger.info(f"Удалено дубликатов: {len(features) - len(deduped)}, осталось: {len(deduped)}")
    return deduped
