from __future__ import annotations

import argparse
import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional

from loguru import logger

from strategy_lab.backtest.engine import BacktestEngine
from strategy_lab.backtest.report import generate_backtest_report
from strategy_lab.core.models import BacktestConfig
from strategy_lab.data.provider import DEFAULT_SYMBOLS, SyntheticDataProvider
from strategy_lab.logging_utils import logging_context, setup_logging
from strategy_lab.settings import get_backtest_settings


def _parse_param(raw: str) -> tuple[str, str]:
    key, sep, value = raw.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got {raw!r}")
    return key.strip(), value.strip()


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Run one backtest on synthetic daily bars")
    p.add_argument("--symbol", default="BTC/USD", help=f"One of {', '.join(DEFAULT_SYMBOLS)}")
    p.add_argument(
        "--strategy",
        default="consensus",
        help="'consensus' for every strategy, or a comma list such as technical,ml",
    )
    p.add_argument("--days", type=int, default=365, help="Length of generated history")
    p.add_argument("--capital", type=float, default=None, help="Initial capital")
    p.add_argument("--seed", type=int, default=None, help="Seed for the synthetic data")
    p.add_argument(
        "--param",
        action="append",
        type=_parse_param,
        default=[],
        help="Strategy parameter override KEY=VALUE (repeatable)",
    )
    p.add_argument("--json", dest="json_out", default=None, help="Write the full result as JSON")
    return p


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    setup_logging()

    end = datetime.now(timezone.utc)
    start = end - timedelta(days=args.days)
    provider = SyntheticDataProvider([args.symbol], seed=args.seed, days=args.days, end=end)
    engine = BacktestEngine(provider)
    config = BacktestConfig(
        symbol=args.symbol,
        strategy=args.strategy,
        start_date=start,
        end_date=end,
        initial_capital=args.capital or get_backtest_settings().initial_capital,
        parameters=dict(args.param),
    )

    with logging_context(run_id=f"cli-{args.symbol}"):
        result = engine.run_backtest(config)

    if args.json_out:
        out = Path(args.json_out)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(json.dumps(result.to_dict(), default=str, indent=2))
        logger.info("[backtest] wrote result to {}", out)
    print(generate_backtest_report(result))


if __name__ == "__main__":
    main()
