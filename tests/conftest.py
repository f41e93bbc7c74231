#!/usr/bin/env python3
"""
Shared fixtures: timeframe contexts, an option candidate, a structured
brief and fakes for the data source, indicators and LLM provider.
"""
import sys
from datetime import datetime
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from brain.context import build_brief
from brain.types import LLMResponse
from errors import DataSourceError, ReasoningError
from market_data import Candle, OptionChain, OptionQuote
from pipeline.market import IST
from pipeline.types import OptionCandidate, Status, TimeframeContext


# 2026-10-16 is a Friday; 11:30 IST is mid-session
SESSION_NOW = datetime(2026, 10, 16, 11, 30, tzinfo=IST)
SESSION_START = int(datetime(2026, 10, 16, 9, 15, tzinfo=IST).timestamp())


# =============================================================================
# Fakes
# =============================================================================

class StubIndicators:
    """Indicator module stand-in with pinned values."""

    def __init__(self, ema=None, adx=(28.0, 30.0, 12.0), atr=10.0, vwap=100.0):
        self.ema_values = ema if ema is not None else {9: 105.0, 21: 100.0}
        self.adx_value = adx
        self.atr_value = atr
        self.vwap_value = vwap

    def ema(self, prices, period):
        return self.ema_values.get(period)

    def adx(self, highs, lows, closes, period=14):
        return self.adx_value

    def atr(self, highs, lows, closes, period=14):
        return self.atr_value

    def vwap(self, highs, lows, closes, volumes):
        return self.vwap_value


class FakeDataSource:
    """In-memory broker with call recording and injectable failures."""

    def __init__(self, candles=None, chain=None, vix=14.0, fail=()):
        self.candles = candles or {}
        self.chain = chain
        self.vix = vix
        self.fail = set(fail)
        self.calls = []

    def fetch_candles(self, symbol, timeframe, from_date, to_date):
        self.calls.append(("candles", timeframe))
        if timeframe in self.fail:
            raise DataSourceError(f"{timeframe}m candles unavailable")
        return list(self.candles.get(timeframe, []))

    def fetch_option_chain(self, symbol):
        self.calls.append(("chain", symbol))
        if "chain" in self.fail:
            raise DataSourceError("option chain unavailable")
        return self.chain

    def fetch_quote(self, symbol):
        self.calls.append(("quote", symbol))
        if "quote" in self.fail:
            raise DataSourceError("quote unavailable")
        return self.vix

    @property
    def fetch_count(self):
        return len(self.calls)


class ScriptedProvider:
    """LLM provider that replays canned responses and records requests."""

    provider_name = "scripted"
    model_name = "scripted-1"

    def __init__(self, responses, repeat_last=True):
        self.responses = list(responses)
        self.repeat_last = repeat_last
        self.calls = []

    def chat(self, messages, tools=None):
        self.calls.append({"messages": [dict(m) for m in messages], "tools": tools})
        item = self.responses.pop(0) if len(self.responses) > 1 or not self.repeat_last else self.responses[0]
        if isinstance(item, Exception):
            raise item
        return item


class FailingProvider(ScriptedProvider):
    def __init__(self, message="connection refused"):
        super().__init__([ReasoningError(message)])


def bar(minute, open_, high, low, close, volume=0.0, start=SESSION_START, step=60):
    return Candle(timestamp=start + minute * step, open=open_, high=high, low=low, close=close, volume=volume)


# Last-bar shapes as (open, high, low, close); StubIndicators pins EMA9 at 105
PULLBACK_5M = (104.0, 106.5, 104.5, 106.0)
BREAKOUT_5M = (106.0, 109.5, 105.8, 109.0)
WEAK_CLOSE_5M = (107.0, 107.5, 104.5, 106.0)

# Previous 1m bar is (104, 105.5, 103.5, 105)
RANGE_BREAK_1M = (105.0, 107.0, 104.8, 106.8)
FORMING_1M = (105.0, 105.4, 104.9, 105.3)
NOT_CONFIRMED_1M = (105.2, 105.3, 104.7, 104.9)


def trend_bars_15m(count=10, close=105.0):
    return [bar(i, close - 1, close + 1, close - 2, close, volume=1000.0, step=900) for i in range(count)]


def setup_bars_5m(last=PULLBACK_5M):
    prior = [bar(i, 103.0, 108.0, 100.0, 104.0, volume=500.0, step=300) for i in range(20)]
    return prior + [bar(20, *last, volume=500.0, step=300)]


def trigger_bars_1m(last=RANGE_BREAK_1M):
    return [bar(0, 104.0, 105.5, 103.5, 105.0, volume=100.0), bar(1, *last, volume=100.0)]


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def tf_15m_bullish():
    return TimeframeContext(
        timeframe="15m",
        status=Status.COMPLETE,
        bias="bullish",
        strength="strong",
        signal="bullish",
        gate=True,
        indicators={
            "ema_9": 105.0,
            "ema_21": 100.0,
            "adx": 28.0,
            "plus_di": 30.0,
            "minus_di": 12.0,
            "di_diff": 18.0,
            "atr": 10.0,
            "atr_trend": "expanding",
            "vwap": 100.0,
            "vwap_position": "above",
            "vwap_distance_pct": 0.42,
        },
        latest_close=105.0,
    )


@pytest.fixture
def tf_5m_pullback():
    return TimeframeContext(
        timeframe="5m",
        status=Status.COMPLETE,
        bias="bullish",
        strength="high",
        signal="pullback",
        gate=True,
        indicators={
            "ema_9": 105.0,
            "momentum_alignment": True,
            "close_strength": "strong",
            "body_pct": 66.7,
            "upper_wick_pct": 16.7,
        },
        latest_close=106.0,
    )


@pytest.fixture
def tf_1m_confirmed():
    return TimeframeContext(
        timeframe="1m",
        status=Status.COMPLETE,
        bias="bullish",
        strength="strong",
        signal="confirmed",
        gate=True,
        indicators={
            "trigger_type": "range_break",
            "atr_spike": False,
            "range_expansion_pct": -78.0,
            "consecutive_strong_closes": 2,
            "higher_low": True,
            "lower_high": False,
        },
        latest_close=100.0,
        entry_zone=(98.0, 102.0),
    )


@pytest.fixture
def candidate():
    """22500 CE: delta 0.42, gamma 0.012, spread 0.6%, OI +8% -> score 6."""
    return OptionCandidate(
        symbol="NIFTY",
        strike=22500.0,
        option_type="CE",
        moneyness="ATM",
        bid=119.64,
        ask=120.36,
        ltp=120.0,
        spread_pct=0.6,
        delta=0.42,
        gamma=0.012,
        theta=-5.0,
        vega=12.0,
        iv=14.5,
        oi_change=0.08,
        oi_trend="building",
        expiry="2026-10-20",
        score=6.0,
    )


@pytest.fixture
def market_conditions():
    return {
        "session_phase": "mid",
        "volatility_regime": "normal",
        "vix": 14.0,
        "event_risk": [],
        "no_trade_reason": None,
    }


@pytest.fixture
def brief(tf_15m_bullish, tf_5m_pullback, tf_1m_confirmed, candidate, market_conditions):
    return build_brief("NIFTY", tf_15m_bullish, tf_5m_pullback, tf_1m_confirmed, [candidate], market_conditions)


@pytest.fixture
def liquid_chain():
    return OptionChain(
        symbol="NIFTY",
        spot=22510.0,
        expiry="2026-10-20",
        expiries=["2026-10-20", "2026-10-27"],
        quotes=[
            OptionQuote(
                strike=22500.0, option_type="CE", bid=119.64, ask=120.36, ltp=120.0,
                delta=0.42, gamma=0.012, theta=-5.0, vega=12.0, iv=14.5,
                oi=108000.0, previous_oi=100000.0,
            ),
        ],
    )
