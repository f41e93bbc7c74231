#!/usr/bin/env python3
"""
TA Agent Pipeline: Timeframe Analysis

Builds one TimeframeContext per timeframe from broker candles.

- 15m = CONTEXT (bias, trend strength, volatility)
- 5m  = SETUP (breakout / pullback / trend continuation)
- 1m  = TIMING (entry trigger)

Each builder performs exactly one candle fetch. A DataSourceError becomes
an `error` context and empty data a `no_data` context; both fail the gate.
"""
import logging
from datetime import date, datetime, timedelta
from typing import Callable, List, Optional, Sequence

import indicators as default_indicators
from brain.context import strength_label, trading_permission
from errors import DataSourceError
from market_data import Candle
from .market import IST, now_ist
from .types import Status, TimeframeContext


logger = logging.getLogger(__name__)


LOOKBACK_DAYS = {"15m": 30, "5m": 7, "1m": 4}
INTERVALS = {"15m": "15", "5m": "5", "1m": "1"}

FAST_EMA = 9
SLOW_EMA = 21

ATR_TREND_BARS = 5
ATR_TREND_BAND = 0.10
VWAP_INSIDE_PCT = 0.1

BREAKOUT_LOOKBACK = 20
MIN_5M_BARS = FAST_EMA + 1
MOMENTUM_BURST_ATR = 1.5
ENTRY_ZONE_PCT = 0.02
STRONG_BODY_RATIO = 0.5


def _closes(candles: Sequence[Candle]) -> List[float]:
    return [c.close for c in candles]


def _session(candles: Sequence[Candle]) -> List[Candle]:
    """Bars from the same exchange-time trading date as the latest bar."""
    if not candles:
        return []
    last_day = datetime.fromtimestamp(candles[-1].timestamp, IST).date()
    return [c for c in candles if datetime.fromtimestamp(c.timestamp, IST).date() == last_day]


def _bullish(bias: str) -> bool:
    return bias == "bullish"


def _closes_with_bias(candle: Candle, bias: str) -> bool:
    if bias == "bullish":
        return candle.close > candle.open
    if bias == "bearish":
        return candle.close < candle.open
    return False


def _body_ratio(candle: Candle) -> float:
    rng = candle.high - candle.low
    return abs(candle.close - candle.open) / rng if rng > 0 else 0.0


class TimeframeAnalyzer:
    """
    Builds the 15m / 5m / 1m contexts for one symbol.

    Usage:
        analyzer = TimeframeAnalyzer(client)
        tf_15m = analyzer.build_15m("NIFTY")
        tf_5m = analyzer.build_5m("NIFTY", tf_15m.bias)
    """

    def __init__(
        self,
        data_source,
        indicators=default_indicators,
        clock: Callable[[], datetime] = now_ist,
    ):
        """
        Args:
            data_source: Object with fetch_candles(symbol, timeframe, from, to)
            indicators: Module-like object with ema, atr, adx, vwap
            clock: Returns the current exchange time
        """
        self._source = data_source
        self._ind = indicators
        self._clock = clock

    def _fetch(self, symbol: str, timeframe: str) -> List[Candle]:
        to_date: date = self._clock().date()
        from_date = to_date - timedelta(days=LOOKBACK_DAYS[timeframe])
        return list(self._source.fetch_candles(symbol, INTERVALS[timeframe], from_date, to_date))

    def _load(self, symbol: str, timeframe: str):
        """Fetch candles, or return the failed context to hand back instead."""
        try:
            candles = self._fetch(symbol, timeframe)
        except DataSourceError as e:
            logger.warning(f"{timeframe} fetch failed for {symbol}: {e}")
            return None, TimeframeContext.failed(timeframe, str(e))
        if not candles:
            logger.warning(f"{timeframe}: no candles for {symbol}")
            return None, TimeframeContext.no_data(timeframe)
        return candles, None

    # -------------------------------------------------------------------------
    # 15m: market context
    # -------------------------------------------------------------------------

    def build_15m(self, symbol: str) -> TimeframeContext:
        candles, failed = self._load(symbol, "15m")
        if failed:
            return failed

        highs = [c.high for c in candles]
        lows = [c.low for c in candles]
        closes = _closes(candles)
        latest = closes[-1]

        ema_fast = self._ind.ema(closes, FAST_EMA)
        ema_slow = self._ind.ema(closes, SLOW_EMA)
        if ema_fast is None or ema_slow is None:
            return TimeframeContext.no_data("15m", f"need at least {SLOW_EMA} bars, got {len(closes)}")

        if ema_fast > ema_slow:
            bias = "bullish"
        elif ema_fast < ema_slow:
            bias = "bearish"
        else:
            bias = "neutral"

        adx_value = plus_di = minus_di = None
        adx_result = self._ind.adx(highs, lows, closes)
        if adx_result is not None:
            adx_value, plus_di, minus_di = adx_result

        atr_now = self._ind.atr(highs, lows, closes)
        atr_prev = None
        if len(closes) > ATR_TREND_BARS:
            cut = -ATR_TREND_BARS
            atr_prev = self._ind.atr(highs[:cut], lows[:cut], closes[:cut])
        atr_trend = "unknown"
        if atr_now is not None and atr_prev:
            ratio = atr_now / atr_prev
            if ratio > 1 + ATR_TREND_BAND:
                atr_trend = "expanding"
            elif ratio < 1 - ATR_TREND_BAND:
                atr_trend = "contracting"
            else:
                atr_trend = "stable"

        session = _session(candles)
        session_vwap = self._ind.vwap(
            [c.high for c in session], [c.low for c in session],
            _closes(session), [c.volume for c in session],
        )
        vwap_position = "unknown"
        vwap_distance = None
        if session_vwap:
            vwap_distance = (latest - session_vwap) / session_vwap * 100.0
            if abs(vwap_distance) <= VWAP_INSIDE_PCT:
                vwap_position = "inside"
            else:
                vwap_position = "above" if vwap_distance > 0 else "below"

        allowed = trading_permission(Status.COMPLETE, bias, adx_value)
        ctx = TimeframeContext(
            timeframe="15m",
            status=Status.COMPLETE,
            bias=bias,
            strength=strength_label(adx_value),
            signal=bias if bias != "neutral" else "mixed",
            gate=allowed,
            indicators={
                "ema_9": ema_fast,
                "ema_21": ema_slow,
                "adx": adx_value,
                "plus_di": plus_di,
                "minus_di": minus_di,
                "di_diff": (plus_di - minus_di) if plus_di is not None else None,
                "atr": atr_now,
                "atr_trend": atr_trend,
                "vwap": session_vwap,
                "vwap_position": vwap_position,
                "vwap_distance_pct": vwap_distance,
            },
            invalidations=() if allowed else ("trade_not_allowed",),
            latest_close=latest,
        )
        logger.info(
            f"15m {symbol}: bias={bias} strength={ctx.strength} "
            f"adx={adx_value if adx_value is None else round(adx_value, 1)} trade_allowed={allowed}"
        )
        return ctx

    # -------------------------------------------------------------------------
    # 5m: setup validation
    # -------------------------------------------------------------------------

    def build_5m(self, symbol: str, bias: str) -> TimeframeContext:
        candles, failed = self._load(symbol, "5m")
        if failed:
            return failed
        if len(candles) < MIN_5M_BARS:
            return TimeframeContext.no_data("5m", f"need at least {MIN_5M_BARS} bars, got {len(candles)}")

        closes = _closes(candles)
        last = candles[-1]
        ema_fast = self._ind.ema(closes, FAST_EMA)
        prior = candles[-(BREAKOUT_LOOKBACK + 1):-1]
        range_high = max(c.high for c in prior)
        range_low = min(c.low for c in prior)

        setup = "none"
        aligned = False
        if bias in ("bullish", "bearish") and ema_fast is not None:
            long_side = _bullish(bias)
            aligned = last.close > ema_fast if long_side else last.close < ema_fast
            if (long_side and last.close > range_high) or (not long_side and last.close < range_low):
                setup = "breakout"
            elif long_side and last.low <= ema_fast < last.close:
                setup = "pullback"
            elif not long_side and last.high >= ema_fast > last.close:
                setup = "pullback"
            else:
                setup = "trend_continuation"

        invalidations = []
        weak_close = setup != "none" and not _closes_with_bias(last, bias)
        if weak_close:
            invalidations.append("weak_close")
        if setup != "none" and not aligned:
            invalidations.append("momentum_misaligned")

        points = sum((aligned, not invalidations, setup in ("breakout", "pullback")))
        quality = {3: "high", 2: "medium"}.get(points, "low")

        rng = last.high - last.low
        upper_wick = last.high - max(last.open, last.close)
        proceed = setup != "none" and not invalidations

        ctx = TimeframeContext(
            timeframe="5m",
            status=Status.COMPLETE,
            bias=bias,
            strength=quality,
            signal=setup,
            gate=proceed,
            indicators={
                "ema_9": ema_fast,
                "range_high": range_high,
                "range_low": range_low,
                "momentum_alignment": aligned,
                "close_strength": "weak" if weak_close else "strong",
                "body_pct": _body_ratio(last) * 100.0,
                "upper_wick_pct": (upper_wick / rng * 100.0) if rng > 0 else 0.0,
            },
            invalidations=tuple(invalidations),
            latest_close=last.close,
        )
        logger.info(
            f"5m {symbol}: setup={setup} quality={quality} "
            f"invalidations={invalidations or 'none'} proceed_to_entry={proceed}"
        )
        return ctx

    # -------------------------------------------------------------------------
    # 1m: entry timing
    # -------------------------------------------------------------------------

    def build_1m(self, symbol: str, bias: str) -> TimeframeContext:
        candles, failed = self._load(symbol, "1m")
        if failed:
            return failed

        session = _session(candles)
        if len(session) < 2:
            return TimeframeContext.no_data("1m", "need at least 2 bars in the latest session")

        highs = [c.high for c in session]
        lows = [c.low for c in session]
        closes = _closes(session)
        last, prev = session[-1], session[-2]
        long_side = _bullish(bias)

        atr_value = self._ind.atr(highs, lows, closes)
        session_vwap = self._ind.vwap(highs, lows, closes, [c.volume for c in session])
        bar_range = last.high - last.low

        trigger = "none"
        if bias in ("bullish", "bearish"):
            if (long_side and last.close > prev.high) or (not long_side and last.close < prev.low):
                trigger = "range_break"
            elif session_vwap is not None and (
                (long_side and prev.close <= session_vwap < last.close)
                or (not long_side and prev.close >= session_vwap > last.close)
            ):
                trigger = "vwap_reclaim"
            elif atr_value and bar_range >= MOMENTUM_BURST_ATR * atr_value and _closes_with_bias(last, bias):
                trigger = "momentum_burst"

        if trigger != "none":
            entry_signal = "confirmed"
        elif _closes_with_bias(last, bias):
            entry_signal = "forming"
        else:
            entry_signal = "not_confirmed"

        strong_closes = 0
        for candle in reversed(session):
            if not (_closes_with_bias(candle, bias) and _body_ratio(candle) >= STRONG_BODY_RATIO):
                break
            strong_closes += 1

        zone = (round(last.close * (1 - ENTRY_ZONE_PCT), 2), round(last.close * (1 + ENTRY_ZONE_PCT), 2))
        ctx = TimeframeContext(
            timeframe="1m",
            status=Status.COMPLETE,
            bias=bias,
            strength="strong" if strong_closes >= 2 else "weak",
            signal=entry_signal,
            gate=entry_signal == "confirmed",
            indicators={
                "trigger_type": trigger,
                "atr": atr_value,
                "vwap": session_vwap,
                "atr_spike": bool(atr_value and bar_range >= MOMENTUM_BURST_ATR * atr_value),
                "range_expansion_pct": (bar_range / atr_value - 1.0) * 100.0 if atr_value else None,
                "consecutive_strong_closes": strong_closes,
                "higher_low": last.low > prev.low,
                "lower_high": last.high < prev.high,
            },
            invalidations=() if entry_signal == "confirmed" else ("trigger_not_confirmed",),
            latest_close=last.close,
            entry_zone=zone,
        )
        logger.info(f"1m {symbol}: trigger={trigger} entry_signal={entry_signal}")
        return ctx
