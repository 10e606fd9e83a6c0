# kdesdm/cli/sdm_cli.py
"""
Командная строка kdesdm.

Пример:
  kdesdm run --presence presence.csv --background background.csv \
      --grid grid.csv --id-col id --config config.json \
      --out output/scores.csv --transform-out output/predictors_scales.json
"""

import argparse
import json
import logging
import os
from typing import List, Optional

import pandas as pd

from kdesdm.core.config import SDMConfig, load_config
from kdesdm.core.errors import SDMError
from kdesdm.core.modeling import run_sdm

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="kdesdm", description="KDE-модель пригодности местообитаний")
    sub = ap.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Обучить модель, посчитать AUC и (опционально) прогноз по сетке")
    run.add_argument("--presence", required=True, help="CSV с предикторами в точках присутствия")
    run.add_argument("--background", required=True, help="CSV с предикторами в фоновых точках")
    run.add_argument("--grid", default=None, help="CSV с точками сетки для прогноза")
    run.add_argument("--id-col", default=None, help="Столбец идентификатора точки")
    run.add_argument("--covariates", default=None, help="Список предикторов через запятую")
    run.add_argument("--sep", default=",", help="Разделитель CSV")
    run.add_argument("--config", default=None, help="JSON с параметрами модели")
    run.add_argument("--holdout", action="store_true", help="Дополнительно AUC на отложенной выборке")
    run.add_argument("--out", default=None, help="Куда сохранить оценки сетки (CSV)")
    run.add_argument("--training-out", default=None, help="Куда сохранить оценки обучающих точек (CSV)")
    run.add_argument("--transform-out", default=None, help="Куда сохранить параметры масштабирования (JSON)")
    run.add_argument("--report-out", default=None, help="Куда сохранить отчёт (JSON)")
    run.add_argument("-v", "--verbose", action="store_true")
    return ap


def _read_csv(path, sep):
    return pd.read_csv(path, sep=sep, index_col=False)


def _write_csv(df, path):
    dir_path = os.path.dirname(path)
    if dir_path:
        os.makedirs(dir_path, exist_ok=True)
    df.to_csv(path, index=False)
    logger.info(f"Сохранено: {path}")


def _handle_run(args: argparse.Namespace) -> int:
    config = load_config(args.config) if args.config else SDMConfig()
    covariates = [c.strip() for c in args.covariates.split(",")] if args.covariates else None

    presence = _read_csv(args.presence, args.sep)
    background = _read_csv(args.background, args.sep)
    grid = _read_csv(args.grid, args.sep) if args.grid else None

    result = run_sdm(
        presence, background, grid=grid, config=config, id_col=args.id_col,
        covariates=covariates, holdout=args.holdout, transform_path=args.transform_out,
    )

    print(result["evaluation"].summary())
    if result["holdout_evaluation"] is not None:
        print(f"ROC AUC (holdout): {result['holdout_evaluation'].auc:.3f}")

    if args.training_out:
        _write_csv(result["training_scores"], args.training_out)
    if result["grid_scores"] is not None and args.out:
        _write_csv(result["grid_scores"], args.out)

    if args.report_out:
        report = {
            "auc": result["evaluation"].auc,
            "n_presence": result["evaluation"].n_presence,
            "n_background": result["evaluation"].n_background,
            "holdout_auc": result["holdout_evaluation"].auc if result["holdout_evaluation"] else None,
            "grid_summary": result["grid_summary"],
            "config": config.to_dict(),
        }
        dir_path = os.path.dirname(args.report_out)
        if dir_path:
            os.makedirs(dir_path, exist_ok=True)
        with open(args.report_out, "w", encoding="utf-8") as f:
            json.dump(report, f, ensure_ascii=False, indent=4)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if getattr(args, "verbose", False) else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
    )

    handlers = {
        "run": _handle_run,
    }
    handler = handlers.get(args.command)
    if handler is None:
        raise SystemExit(f"Unknown command: {args.command}")

    try:
        return handler(args)
    except SDMError as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
