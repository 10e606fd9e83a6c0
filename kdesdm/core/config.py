# kdesdm/core/config.py
"""
Параметры движка пригодности.

Конфиг передаётся словарём (как в PythonSDM) или JSON-файлом. Ключи можно
писать как в snake_case, так и в camelCase (bandwidthMode, fixedBandwidth,
epsilon, normalizationMode, minSamplesPerClass, ...).
"""

import json
import re
from dataclasses import dataclass, fields
from typing import Optional, Sequence, Union

BANDWIDTH_MODES = ("rule_of_thumb", "fixed", "cross_validated")
BANDWIDTH_RULES = ("silverman", "scott")
KERNELS = ("gaussian", "epanechnikov")
NORMALIZATION_MODES = ("none", "minmax", "percentile")


def _to_snake(name):
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


@dataclass(frozen=True)
class SDMConfig:
    bandwidth_mode: str = "rule_of_thumb"
    # Формула правила большого пальца (per-dimension):
    #   silverman: h_j = sigma_j * (4 / ((d + 2) * n)) ** (1 / (d + 4))
    #   scott:     h_j = sigma_j * n ** (-1 / (d + 4))
    bandwidth_rule: str = "silverman"
    fixed_bandwidth: Optional[Union[float, Sequence[float]]] = None
    kernel: str = "gaussian"
    epsilon: float = 1e-12
    normalization_mode: str = "minmax"
    # None -> 2 * размерность признакового пространства
    min_samples_per_class: Optional[int] = None
    cv_folds: int = 5
    cv_grid_size: int = 20
    batch_size: int = 50_000
    max_workers: int = 4
    random_seed: int = 42
    deduplicate_presence: bool = False

    def __post_init__(self):
        # ruleOfThumb -> rule_of_thumb и т.п.
        for name in ("bandwidth_mode", "bandwidth_rule", "kernel", "normalization_mode"):
            value = getattr(self, name)
            if isinstance(value, str):
                object.__setattr__(self, name, _to_snake(value.strip()))

        if self.bandwidth_mode not in BANDWIDTH_MODES:
            raise ValueError(f"bandwidth_mode должен быть одним из {BANDWIDTH_MODES}, получено: {self.bandwidth_mode}")
        if self.bandwidth_rule not in BANDWIDTH_RULES:
            raise ValueError(f"bandwidth_rule должен быть одним из {BANDWIDTH_RULES}, получено: {self.bandwidth_rule}")
        if self.kernel not in KERNELS:
            raise ValueError(f"kernel должен быть одним из {KERNELS}, получено: {self.kernel}")
        if self.normalization_mode not in NORMALIZATION_MODES:
            raise ValueError(f"normalization_mode должен быть одним из {NORMALIZATION_MODES}, получено: {self.normalization_mode}")

        if self.bandwidth_mode == "fixed":
            if self.fixed_bandwidth is None:
                raise ValueError("fixed_bandwidth должен быть задан при bandwidth_mode='fixed'.")
            if isinstance(self.fixed_bandwidth, (list, tuple)):
                object.__setattr__(self, "fixed_bandwidth", tuple(float(h) for h in self.fixed_bandwidth))
                values = self.fixed_bandwidth
            else:
                object.__setattr__(self, "fixed_bandwidth", float(self.fixed_bandwidth))
                values = (self.fixed_bandwidth,)
            if len(values) == 0 or any(not h > 0 for h in values):
                raise ValueError("fixed_bandwidth должен быть положительным числом или вектором положительных чисел.")

        if not self.epsilon > 0:
            raise ValueError("epsilon должен быть > 0.")
        if self.min_samples_per_class is not None and self.min_samples_per_class < 1:
            raise ValueError("min_samples_per_class должен быть >= 1.")
        if self.cv_folds < 2:
            raise ValueError("cv_folds должен быть >= 2.")
        if self.cv_grid_size < 2:
            raise ValueError("cv_grid_size должен быть >= 2.")
        if self.batch_size < 1:
            raise ValueError("batch_size должен быть >= 1.")
        if self.max_workers < 1:
            raise ValueError("max_workers должен быть >= 1.")

    def min_samples_for(self, n_features: int) -> int:
        if self.min_samples_per_class is not None:
            return int(self.min_samples_per_class)
        return 2 * n_features

    @classmethod
    def from_dict(cls, config: dict) -> "SDMConfig":
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in config.items():
            name = _to_snake(key)
            if name not in known:
                raise ValueError(f"Неизвестный параметр конфигурации: {key}")
            kwargs[name] = value
        return cls(**kwargs)

    def to_dict(self) -> dict:
        out = {f.name: getattr(self, f.name) for f in fields(self)}
        if isinstance(out["fixed_bandwidth"], tuple):
            out["fixed_bandwidth"] = list(out["fixed_bandwidth"])
        return out


def load_config(path) -> SDMConfig:
    """Читает конфиг из JSON-файла."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Ожидался JSON-объект в {path}")
    return SDMConfig.from_dict(data)
