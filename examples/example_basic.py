# examples/example_basic.py

import os
import sys

# эти три строчки нужны для возможности подключить import kdesdm
current_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.abspath(os.path.join(current_dir, '..'))
sys.path.insert(0, project_root)

import logging

import pandas as pd

from kdesdm import PythonSDM

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

# --- Параметры ---
PRESENCE_CSV = 'data/occurrence_env_samples.csv'     # id, bio01, bio12, elevation
BACKGROUND_CSV = 'data/background_env_samples.csv'   # id, bio01, bio12, elevation
GRID_CSV = 'data/grid_env_samples.csv'
OUTPUT_DIR = 'output/suitability'

CONFIG = {
    'bandwidthMode': 'ruleOfThumb',
    'normalizationMode': 'minmax',
    'epsilon': 1e-12,
}

os.makedirs(OUTPUT_DIR, exist_ok=True)

sdm = PythonSDM(CONFIG, run_id=1)
sdm.fit(pd.read_csv(PRESENCE_CSV), pd.read_csv(BACKGROUND_CSV), id_col='id')
sdm.score_training()
print(sdm.evaluate().summary())
print(f"ROC AUC (holdout): {sdm.evaluate_holdout().auc:.3f}")

sdm.save_transform(os.path.join(OUTPUT_DIR, 'predictors_scales.json'))

# нормализация по всей сетке, как suit_final_norm
scores = sdm.predict_table(pd.read_csv(GRID_CSV), id_col='id', reference='batch')
scores.to_csv(os.path.join(OUTPUT_DIR, 'suitability_1.csv'), index=False)
print(f"Оценки сетки сохранены: {len(scores)} точек")
