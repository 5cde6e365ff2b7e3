from __future__ import annotations

import pandas as pd
from loguru import logger

from strategy_lab.core.models import Action, Signal
from strategy_lab.features.indicators import macd_with_history, rsi, sma
from strategy_lab.strats.base import Strategy
from strategy_lab.strats.common import pick_col


class TechnicalAnalysisStrategy(Strategy):
    """
    Three-vote indicator strategy.

    Bullish votes: RSI below oversold, MACD above its signal line with a
    positive histogram, short SMA above long SMA. Bearish votes mirror them.
    Two or more votes on one side decide the action.
    """

    name = "technical"

    def generate_signal(self, df: pd.DataFrame, symbol: str) -> Signal:
        p = self.parameters
        closes = pick_col(df, "close").astype(float)

        rsi_val = rsi(closes, p.rsi_period)
        m = macd_with_history(closes, p.macd_fast, p.macd_slow, p.macd_signal)
        sma_short = sma(closes, p.sma_short)
        sma_long = sma(closes, p.sma_long)
        # the cross only votes once the long average has a full window
        sma_ready = len(closes) >= p.sma_long

        bullish = [
            rsi_val < p.rsi_oversold,
            m.macd > m.signal and m.histogram > 0,
            sma_ready and sma_short > sma_long,
        ]
        bearish = [
            rsi_val > p.rsi_overbought,
            m.macd < m.signal and m.histogram < 0,
            sma_ready and sma_short < sma_long,
        ]
        buy_votes = sum(bullish)
        sell_votes = sum(bearish)

        logger.trace(
            "[strategy] technical {} rsi={:.1f} macd={:.4f}/{:.4f} sma={:.4f}/{:.4f} votes={}/{}",
            symbol,
            rsi_val,
            m.macd,
            m.signal,
            sma_short,
            sma_long,
            buy_votes,
            sell_votes,
        )

        if buy_votes >= 2:
            return self.directional_signal(
                df,
                symbol,
                Action.BUY,
                strength=min(buy_votes * 33, 100),
                confidence=min(buy_votes / 3 * 100, 100),
                reason=(
                    f"Multiple bullish signals: RSI({rsi_val:.1f}), "
                    "MACD bullish crossover, SMA bullish"
                ),
            )
        if sell_votes >= 2:
            return self.directional_signal(
                df,
                symbol,
                Action.SELL,
                strength=min(sell_votes * 33, 100),
                confidence=min(sell_votes / 3 * 100, 100),
                reason=(
                    f"Multiple bearish signals: RSI({rsi_val:.1f}), "
                    "MACD bearish crossover, SMA bearish"
                ),
            )
        return self.hold_signal(df, symbol, "No indicator majority")


__all__ = ["TechnicalAnalysisStrategy"]
