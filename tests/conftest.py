"""
Общие фикстуры: синтетические таблицы присутствий, фона и сетки.
"""

import numpy as np
import pandas as pd
import pytest


@pytest.fixture
def rng():
    return np.random.default_rng(42)


@pytest.fixture
def presence_table(rng):
    n = 40
    return pd.DataFrame({
        "id": [f"p{i}" for i in range(n)],
        "bio01": rng.normal(25.0, 1.0, n),
        "bio12": rng.normal(800.0, 40.0, n),
    })


@pytest.fixture
def background_table(rng):
    n = 120
    return pd.DataFrame({
        "id": [f"b{i}" for i in range(n)],
        "bio01": rng.normal(15.0, 2.0, n),
        "bio12": rng.normal(400.0, 80.0, n),
    })


@pytest.fixture
def grid_table(rng):
    n = 250
    return pd.DataFrame({
        "id": np.arange(n),
        "bio01": rng.uniform(10.0, 30.0, n),
        "bio12": rng.uniform(200.0, 1000.0, n),
    })


@pytest.fixture
def fitted_sdm(presence_table, background_table):
    from kdesdm import PythonSDM

    sdm = PythonSDM({"maxWorkers": 2})
    sdm.fit(presence_table, background_table, id_col="id")
    return sdm
