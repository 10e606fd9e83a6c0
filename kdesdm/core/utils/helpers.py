import math

import numpy as np


def round_to_significant_figures(number: float, sig_digits: int = 4) -> float:
    """
    Округляет число до заданного количества значащих цифр.

    Args:
        number: Число, которое нужно округлить.
        sig_digits: Количество значащих цифр. По умолчанию 4.

    Returns:
        Округленное число.
    """
    if not isinstance(sig_digits, int) or sig_digits <= 0:
        raise ValueError("Количество значащих цифр должно быть положительным целым числом.")

    number = float(number)
    if number == 0 or not math.isfinite(number):
        return number

    # порядок величины: 340 -> 2, 1029.6 -> 3
    order_of_magnitude = math.floor(math.log10(abs(number)))
    power_for_rounding = order_of_magnitude - (sig_digits - 1)
    return round(number, -power_for_rounding)


def get_predictor_stats(data: np.ndarray) -> dict:
    """
    Вычисляет основные статистические показатели для набора данных.
    """
    return {
        'mean': round_to_significant_figures(np.mean(data), 4),
        'median': round_to_significant_figures(np.median(data), 4),
        'min': round_to_significant_figures(np.min(data), 4),
        'max': round_to_significant_figures(np.max(data), 4),
        'p5': round_to_significant_figures(np.percentile(data, 5), 4),
        'p95': round_to_significant_figures(np.percentile(data, 95), 4)
    }