# kdesdm/core/modeling.py
import logging
import os

from ..sdm import PythonSDM
from .config import SDMConfig
from .projection import summarize_scores

logger = logging.getLogger(__name__)


def run_sdm(presence, background, grid=None, config=None, id_col=None, covariates=None,
            run_id=1, holdout=False, transform_path=None):
    """
    Полный прогон: масштабирование, плотности, оценка в обучающих точках,
    AUC и (если задана сетка) прогноз по сетке.

    Args:
        presence, background: таблицы признаков (DataFrame или путь к CSV).
        grid: таблица точек для прогноза (DataFrame, путь к CSV или None).
        config: SDMConfig, dict или None (значения по умолчанию).
        id_col: столбец идентификатора точки во всех таблицах.
        covariates: список предикторов (по умолчанию все числовые столбцы).
        run_id: идентификатор прогона для логов.
        holdout: дополнительно посчитать AUC на отложенной выборке.
        transform_path: куда сохранить параметры масштабирования (JSON).

    Returns:
        dict с ключами evaluation, holdout_evaluation, training_scores,
        grid_scores, grid_summary, transform, model.
    """
    if isinstance(config, dict):
        config = SDMConfig.from_dict(config)

    sdm = PythonSDM(config, run_id=run_id)
    sdm.fit(presence, background, id_col=id_col, covariates=covariates)
    training_scores = sdm.score_training()
    evaluation = sdm.evaluate()

    holdout_evaluation = None
    if holdout:
        holdout_evaluation = sdm.evaluate_holdout()

    if transform_path:
        dir_path = os.path.dirname(transform_path)
        if dir_path:
            os.makedirs(dir_path, exist_ok=True)
        sdm.save_transform(transform_path)

    grid_scores = None
    grid_summary = None
    if grid is not None:
        grid_scores = sdm.predict_table(grid, id_col=id_col)
        grid_summary = summarize_scores(grid_scores["score"])
        logger.info(
            f"CHS05:{grid_summary['CHS05']} CHS50:{grid_summary['CHS50']} CHS95:{grid_summary['CHS95']}"
        )

    return {
        "evaluation": evaluation,
        "holdout_evaluation": holdout_evaluation,
        "training_scores": training_scores,
        "grid_scores": grid_scores,
        "grid_summary": grid_summary,
        "transform": sdm.transform,
        "model": sdm.model,
    }
