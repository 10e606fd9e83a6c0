# kdesdm/core/errors.py


class SDMError(Exception):
    """Базовый класс ошибок движка пригодности."""


class DegenerateFeatureError(SDMError, ValueError):
    """Предиктор с нулевой дисперсией: ширина ядра по этому измерению не определена."""

    def __init__(self, names):
        self.names = list(names)
        super().__init__(f"Предикторы с нулевой дисперсией: {', '.join(self.names)}")


class InsufficientSampleError(SDMError, ValueError):
    """Слишком мало точек для надёжной оценки плотности."""

    def __init__(self, label, n_samples, min_samples):
        self.label = label
        self.n_samples = n_samples
        self.min_samples = min_samples
        super().__init__(
            f"Недостаточно точек ({label}). Должно быть не менее {min_samples}, сейчас: {n_samples}."
        )


class ModelNotFittedError(SDMError, RuntimeError):
    """Операция вызвана раньше, чем модель прошла нужный этап обучения."""


class EmptyClassError(SDMError, ValueError):
    """В оценке отсутствует один из классов (присутствие или фон)."""


class DimensionMismatchError(SDMError, ValueError):
    """Размерность или набор предикторов не совпадает с обученной моделью."""


class MissingValueError(SDMError, ValueError):
    """Во входной таблице есть пропуски или нечисловые значения."""


class ProjectionCancelledError(SDMError, RuntimeError):
    """Прогноз по сетке прерван (отмена или таймаут батча)."""


class InvalidStateError(SDMError, RuntimeError):
    """Шаг уже пройден: повторный запуск начинается с preprocess (или fit)."""
