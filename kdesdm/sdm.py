# kdesdm/sdm.py

import logging
from concurrent.futures import ThreadPoolExecutor
from enum import IntEnum

import numpy as np
import pandas as pd
from sklearn.model_selection import train_test_split

from .core.config import SDMConfig
from .core.data_loading import align_tables, deduplicate_rows, load_feature_table
from .core.density import fit_density
from .core.errors import InvalidStateError, ModelNotFittedError
from .core.evaluation import evaluate
from .core.preprocessing import apply_transform, fit_feature_transform
from .core.projection import FittedModel, predict_point, predict_table
from .core.scoring import SuitabilityScorer, fit_normalizer

logger = logging.getLogger(__name__)


class EngineState(IntEnum):
    UNFITTED = 0
    PREPROCESSED = 1
    DENSITIES_FITTED = 2
    SCORED = 3
    EVALUATED = 4


class PythonSDM:
    """
    Модель пригодности местообитаний по присутствиям и фоновым точкам.

    Этапы идут строго по порядку:
        preprocess -> fit_densities -> score_training -> evaluate
    Повторный preprocess сбрасывает модель в начальное состояние; повторить
    отдельный этап без него нельзя (InvalidStateError).
    Прогноз (predict_point / predict_table) доступен после fit_densities.
    """

    def __init__(self, config=None, run_id=1):
        if config is None:
            config = SDMConfig()
        elif isinstance(config, dict):
            config = SDMConfig.from_dict(config)
        self.config = config
        self.run_id = run_id
        self._reset()

    def _reset(self):
        self.state = EngineState.UNFITTED
        self.transform = None
        self.presence = None
        self.background = None
        self.X_pres = None
        self.X_bg = None
        self.presence_model = None
        self.background_model = None
        self.model = None
        self._training_ratios = None
        self.training_scores = None
        self.evaluation = None

    def _require(self, state, action, exact=False):
        if self.state < state:
            raise ModelNotFittedError(
                f"{action}: модель в состоянии {self.state.name}, требуется {state.name}."
            )
        # этапы обучения не повторяются: назад только через preprocess
        if exact and self.state != state:
            raise InvalidStateError(
                f"{action}: этап уже пройден (состояние {self.state.name}). Начните заново с preprocess или fit."
            )

    @property
    def feature_names(self):
        self._require(EngineState.PREPROCESSED, "feature_names")
        return self.transform.names

    def preprocess(self, presence, background, id_col=None, covariates=None):
        # 1) Загрузка таблиц и масштабирование предикторов
        self._reset()
        logger.info(f"-- 1. Масштабирование предикторов ({self.run_id})")
        pres_ids, pres = load_feature_table(presence, id_col=id_col, covariates=covariates)
        bg_ids, bg = load_feature_table(background, id_col=id_col, covariates=covariates)
        pres, bg = align_tables(pres, bg)

        if self.config.deduplicate_presence:
            pres = deduplicate_rows(pres)

        logger.info(f"Присутствий: {len(pres)}, фоновых точек: {len(bg)}, предикторов: {pres.shape[1]}")
        logger.info(f"Предикторы: {list(pres.columns)}")

        # mean/scale считаются по объединённому пулу, чтобы оба пространства совпадали
        pool = pd.concat([pres, bg], ignore_index=True)
        self.transform = fit_feature_transform(pool)
        self.presence = pres
        self.background = bg
        self.X_pres = apply_transform(self.transform, pres)
        self.X_bg = apply_transform(self.transform, bg)
        self.state = EngineState.PREPROCESSED
        return self

    def fit_densities(self):
        # 2) Обучение плотностей присутствий и фона
        self._require(EngineState.PREPROCESSED, "fit_densities", exact=True)
        logger.info(f"-- 2. Обучение плотностей присутствий и фона ({self.run_id})")

        if self.config.max_workers > 1:
            # модели независимы - обучаем параллельно
            with ThreadPoolExecutor(max_workers=2) as executor:
                f_pres = executor.submit(fit_density, self.X_pres, self.config, "presence")
                f_bg = executor.submit(fit_density, self.X_bg, self.config, "background")
                presence_model, background_model = f_pres.result(), f_bg.result()
        else:
            presence_model = fit_density(self.X_pres, self.config, "presence")
            background_model = fit_density(self.X_bg, self.config, "background")

        scorer = SuitabilityScorer(presence_model, background_model, self.config.epsilon)
        ratios = scorer.ratio(np.vstack([self.X_pres, self.X_bg]))
        normalizer = fit_normalizer(self.config.normalization_mode, ratios)

        self.presence_model = presence_model
        self.background_model = background_model
        self.model = FittedModel(transform=self.transform, scorer=scorer, normalizer=normalizer)
        self._training_ratios = ratios
        self.training_scores = None
        self.evaluation = None
        self.state = EngineState.DENSITIES_FITTED
        return self

    def fit(self, presence, background, id_col=None, covariates=None):
        return self.preprocess(presence, background, id_col=id_col, covariates=covariates).fit_densities()

    def run(self, presence, background, id_col=None, covariates=None, with_roc=True):
        """Все этапы подряд: preprocess -> fit_densities -> score_training -> evaluate."""
        self.fit(presence, background, id_col=id_col, covariates=covariates)
        self.score_training()
        return self.evaluate(with_roc=with_roc)

    def score_training(self):
        # 3) Пригодность в обучающих точках
        self._require(EngineState.DENSITIES_FITTED, "score_training", exact=True)
        logger.info(f"-- 3. Оценка пригодности в обучающих точках ({self.run_id})")
        ids = np.concatenate([np.asarray(self.presence.index), np.asarray(self.background.index)])
        labels = np.concatenate([np.ones(len(self.X_pres), dtype=int), np.zeros(len(self.X_bg), dtype=int)])
        ratios = self._training_ratios
        self.training_scores = pd.DataFrame({
            "id": ids,
            "label": labels,
            "ratio": ratios,
            "score": self.model.normalizer.apply(ratios),
        })
        self.evaluation = None
        self.state = EngineState.SCORED
        return self.training_scores

    def evaluate(self, with_roc=True):
        # 4) ROC AUC по сырым отношениям
        self._require(EngineState.SCORED, "evaluate", exact=True)
        logger.info(f"-- 4. Оценка качества модели ({self.run_id})")
        self.evaluation = evaluate(self.training_scores["ratio"], self.training_scores["label"], with_roc=with_roc)
        self.state = EngineState.EVALUATED
        return self.evaluation

    def evaluate_holdout(self, test_size=0.2):
        """
        AUC на отложенной выборке: присутствия и фон делятся отдельно
        (стратификация по классу), модель с тем же конфигом обучается на train.
        """
        self._require(EngineState.PREPROCESSED, "evaluate_holdout")
        logger.info(f"-- Разделение на train/test ({self.run_id})")
        seed = self.config.random_seed
        pres_train, pres_test = train_test_split(self.presence, test_size=test_size, random_state=seed)
        bg_train, bg_test = train_test_split(self.background, test_size=test_size, random_state=seed)

        holdout = PythonSDM(self.config, run_id=f"{self.run_id}-holdout")
        holdout.fit(pres_train, bg_train)

        test = pd.concat([pres_test, bg_test])
        labels = np.concatenate([np.ones(len(pres_test), dtype=int), np.zeros(len(bg_test), dtype=int)])
        ratios = holdout.model.ratio(test)
        result = evaluate(ratios, labels)
        logger.info(f"ROC AUC (holdout): {result.auc:.3f}")
        return result

    def predict_point(self, vector, point_id=None):
        self._require(EngineState.DENSITIES_FITTED, "predict_point")
        return predict_point(self.model, vector, point_id=point_id)

    def predict_table(self, table, id_col=None, reference="training", cancel_event=None, batch_timeout=None):
        # 5) Прогноз на сетку
        self._require(EngineState.DENSITIES_FITTED, "predict_table")
        logger.info(f"-- 5. Прогноз пригодности на сетку ({self.run_id})")
        return predict_table(
            self.model, table, id_col=id_col,
            batch_size=self.config.batch_size,
            max_workers=self.config.max_workers,
            reference=reference,
            cancel_event=cancel_event,
            batch_timeout=batch_timeout,
        )

    def save_transform(self, path):
        self._require(EngineState.PREPROCESSED, "save_transform")
        self.transform.save_json(path)
        logger.info(f"Параметры масштабирования сохранены: {path}")
