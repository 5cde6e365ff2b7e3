from __future__ import annotations

import argparse
import itertools
import json
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from time import perf_counter
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

import pandas as pd
import yaml
from loguru import logger

from strategy_lab.backtest.engine import BacktestEngine, BacktestResult
from strategy_lab.core.exceptions import ConfigError, OptimizationCombinationError
from strategy_lab.core.models import BacktestConfig
from strategy_lab.data.provider import SyntheticDataProvider
from strategy_lab.logging_utils import setup_logging
from strategy_lab.settings import get_backtest_settings, get_optimizer_settings

FITNESS_WEIGHTS = {
    "total_return": 0.30,
    "win_rate": 0.25,
    "sharpe_ratio": 0.20,
    "max_drawdown": 0.15,
    "profit_factor": 0.10,
}


@dataclass
class OptimizationResult:
    parameters: Dict[str, Any]
    result: BacktestResult
    fitness: float

    def to_record(self) -> Dict[str, Any]:
        return {
            "parameters": self.parameters,
            "fitness": self.fitness,
            "summary": asdict(self.result.summary),
            "metrics": asdict(self.result.risk_metrics),
        }


def _clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, value))


def calculate_fitness(result: BacktestResult) -> float:
    """Weighted sum of normalized return, win rate, Sharpe, drawdown and profit factor."""
    s = result.summary
    w = FITNESS_WEIGHTS
    return (
        w["total_return"] * _clamp(s.total_return_percent / 100.0)
        + w["win_rate"] * (s.win_rate / 100.0)
        + w["sharpe_ratio"] * _clamp(s.sharpe_ratio / 3.0)
        + w["max_drawdown"] * max(1.0 - s.max_drawdown / 50.0, 0.0)
        + w["profit_factor"] * _clamp(s.profit_factor / 3.0)
    )


def _expand_param_grid(grid: Mapping[str, Iterable[Any]]) -> List[Dict[str, Any]]:
    if not grid:
        return [{}]
    keys = list(grid.keys())
    combos = []
    for values in itertools.product(*(list(grid[k]) for k in keys)):
        combos.append(dict(zip(keys, values, strict=True)))
    return combos


def _evaluate(
    engine: BacktestEngine, config: BacktestConfig, params: Dict[str, Any]
) -> OptimizationResult:
    try:
        result = engine.run_backtest(config.with_parameters(params))
    except Exception as exc:
        raise OptimizationCombinationError(params, exc) from exc
    return OptimizationResult(
        parameters=dict(params), result=result, fitness=calculate_fitness(result)
    )


def optimize_parameters(
    engine: BacktestEngine,
    config: BacktestConfig,
    ranges: Mapping[str, Iterable[Any]],
    *,
    max_workers: int | None = None,
    cancel_event: threading.Event | None = None,
) -> List[OptimizationResult]:
    """
    Run one backtest per combination of ``ranges`` and rank them by fitness.

    Combinations run on a thread pool with at most ``max_workers`` in flight.
    A failing combination is logged and left out. Once ``cancel_event`` is set
    no further combinations are started; those already running finish and are
    ranked with the rest. Equal fitness keeps enumeration order.
    """
    combos = _expand_param_grid(ranges)
    if not combos:
        logger.warning("[optimizer] symbol={} empty parameter range, nothing to run", config.symbol)
        return []
    workers = max(1, int(max_workers or get_optimizer_settings().max_workers))
    workers = min(workers, len(combos))
    pending: Iterator[Tuple[int, Dict[str, Any]]] = iter(enumerate(combos))
    ranked: List[Tuple[int, OptimizationResult]] = []

    logger.info(
        "[optimizer] symbol={} combinations={} workers={}",
        config.symbol,
        len(combos),
        workers,
    )
    started = perf_counter()
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="optimizer") as executor:
        in_flight: Dict[Future, Tuple[int, Dict[str, Any]]] = {}

        def _submit_next() -> bool:
            if cancel_event is not None and cancel_event.is_set():
                return False
            try:
                idx, params = next(pending)
            except StopIteration:
                return False
            in_flight[executor.submit(_evaluate, engine, config, params)] = (idx, params)
            return True

        for _ in range(workers):
            if not _submit_next():
                break

        while in_flight:
            done, _ = wait(list(in_flight), return_when=FIRST_COMPLETED)
            for future in done:
                idx, params = in_flight.pop(future)
                try:
                    ranked.append((idx, future.result()))
                except OptimizationCombinationError as exc:
                    logger.warning("[optimizer] combination {} skipped: {}", idx, exc)
                _submit_next()

    if cancel_event is not None and cancel_event.is_set():
        logger.warning(
            "[optimizer] cancelled after {}/{} combinations", len(ranked), len(combos)
        )
    ranked.sort(key=lambda item: (-item[1].fitness, item[0]))
    logger.info(
        "[optimizer] completed succeeded={} elapsed_ms={:.1f}",
        len(ranked),
        (perf_counter() - started) * 1000.0,
    )
    return [res for _, res in ranked]


# -------- YAML sweep CLI --------
def _load_config(path: Path) -> Dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid sweep YAML {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError("Sweep config must be a mapping")
    if "symbol" not in data:
        raise ConfigError("Sweep config requires 'symbol'")
    params = data.get("params") or {}
    if not isinstance(params, dict) or not all(
        isinstance(v, (list, tuple)) for v in params.values()
    ):
        raise ConfigError("'params' must map parameter names to lists of values")
    return data


def _as_utc(value: Any) -> datetime:
    ts = pd.Timestamp(value)
    ts = ts.tz_localize("UTC") if ts.tzinfo is None else ts.tz_convert("UTC")
    return ts.to_pydatetime()


def _base_config(cfg: Dict[str, Any]) -> BacktestConfig:
    end = _as_utc(cfg.get("end") or datetime.now(timezone.utc))
    start = _as_utc(cfg.get("start") or (end - timedelta(days=365)))
    return BacktestConfig(
        symbol=cfg["symbol"],
        strategy=cfg.get("strategy", "consensus"),
        start_date=start,
        end_date=end,
        initial_capital=cfg.get("initial_capital", get_backtest_settings().initial_capital),
    )


def ranked_table(results: List[OptimizationResult]) -> pd.DataFrame:
    rows = []
    for rank, res in enumerate(results, start=1):
        s = res.result.summary
        rows.append(
            {
                "rank": rank,
                **res.parameters,
                "fitness": round(res.fitness, 4),
                "trades": s.total_trades,
                "return_pct": round(s.total_return_percent, 4),
                "win_rate": round(s.win_rate, 2),
                "sharpe": round(s.sharpe_ratio, 3),
                "max_dd_pct": round(s.max_drawdown, 4),
            }
        )
    return pd.DataFrame(rows)


def run_sweep(
    config_path: Path,
    *,
    output: Path | None = None,
    engine: BacktestEngine | None = None,
    cancel_event: threading.Event | None = None,
) -> List[OptimizationResult]:
    cfg = _load_config(config_path)
    base = _base_config(cfg)
    if engine is None:
        end = base.end_date
        provider = SyntheticDataProvider(
            [base.symbol],
            seed=cfg.get("seed"),
            days=max(1, (end - base.start_date).days),
            end=end,
        )
        engine = BacktestEngine(provider)

    results = optimize_parameters(
        engine,
        base,
        cfg.get("params") or {},
        max_workers=cfg.get("max_workers"),
        cancel_event=cancel_event,
    )

    target = output or (Path(cfg["output"]) if cfg.get("output") else None)
    if target is not None:
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("w") as handle:
            for record in results:
                handle.write(json.dumps(record.to_record(), default=str) + "\n")
        logger.info("[optimizer] wrote {} results to {}", len(results), target)
    return results


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Run a parameter sweep for a backtest")
    parser.add_argument("--config", required=True, help="Path to YAML sweep definition")
    parser.add_argument("--output", default=None, help="Optional JSONL summary path")
    parser.add_argument("--top", type=int, default=10, help="Rows of the ranked table to print")
    args = parser.parse_args(argv)

    setup_logging()
    results = run_sweep(
        Path(args.config), output=Path(args.output) if args.output else None
    )
    table = ranked_table(results[: args.top])
    print(table.to_string(index=False) if not table.empty else "No successful combinations")


if __name__ == "__main__":
    main()
