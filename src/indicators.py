#!/usr/bin/env python3
"""
TA Agent: Indicators

Pure indicator arithmetic over price series. Every function returns the
latest value only, or None when the series is too short to produce one.
"""
from typing import Optional, Sequence, Tuple

import numpy as np


DEFAULT_ATR_PERIOD = 14
DEFAULT_ADX_PERIOD = 14


def ema_series(prices: Sequence[float], period: int) -> np.ndarray:
    """
    Exponential moving average seeded with the simple average of the
    first `period` prices. Entries before the seed are NaN.
    """
    values = np.asarray(prices, dtype=float)
    out = np.full(values.shape, np.nan)
    if period < 1 or len(values) < period:
        return out

    multiplier = 2.0 / (period + 1.0)
    out[period - 1] = values[:period].mean()
    for i in range(period, len(values)):
        out[i] = (values[i] - out[i - 1]) * multiplier + out[i - 1]
    return out


def ema(prices: Sequence[float], period: int) -> Optional[float]:
    """Latest EMA value."""
    series = ema_series(prices, period)
    if len(series) == 0 or np.isnan(series[-1]):
        return None
    return float(series[-1])


def _true_range(highs: np.ndarray, lows: np.ndarray, closes: np.ndarray) -> np.ndarray:
    prev_close = np.roll(closes, 1)
    prev_close[0] = closes[0]
    return np.maximum.reduce([
        highs - lows,
        np.abs(highs - prev_close),
        np.abs(lows - prev_close),
    ])


def _wilder(values: np.ndarray, period: int) -> np.ndarray:
    """Wilder smoothing. Seed is the sum of the first `period` values."""
    out = np.full(values.shape, np.nan)
    if len(values) < period:
        return out
    out[period - 1] = values[:period].sum()
    for i in range(period, len(values)):
        out[i] = out[i - 1] - out[i - 1] / period + values[i]
    return out


def atr_series(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = DEFAULT_ATR_PERIOD,
) -> np.ndarray:
    """Average true range series (Wilder), NaN until `period` bars exist."""
    h = np.asarray(highs, dtype=float)
    l = np.asarray(lows, dtype=float)
    c = np.asarray(closes, dtype=float)
    out = np.full(c.shape, np.nan)
    if len(c) < period + 1:
        return out

    tr = _true_range(h, l, c)[1:]
    out[period] = tr[:period].mean()
    for i in range(period + 1, len(c)):
        out[i] = (out[i - 1] * (period - 1) + tr[i - 1]) / period
    return out


def atr(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = DEFAULT_ATR_PERIOD,
) -> Optional[float]:
    """Latest ATR value."""
    series = atr_series(highs, lows, closes, period)
    if len(series) == 0 or np.isnan(series[-1]):
        return None
    return float(series[-1])


def adx(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = DEFAULT_ADX_PERIOD,
) -> Optional[Tuple[float, float, float]]:
    """
    Average directional index.

    Returns:
        (adx, plus_di, minus_di) or None if fewer than 2*period+1 bars
    """
    h = np.asarray(highs, dtype=float)
    l = np.asarray(lows, dtype=float)
    c = np.asarray(closes, dtype=float)
    if len(c) < 2 * period + 1:
        return None

    up_move = h[1:] - h[:-1]
    down_move = l[:-1] - l[1:]
    plus_dm = np.where((up_move > down_move) & (up_move > 0), up_move, 0.0)
    minus_dm = np.where((down_move > up_move) & (down_move > 0), down_move, 0.0)
    tr = _true_range(h, l, c)[1:]

    tr_s = _wilder(tr, period)
    plus_s = _wilder(plus_dm, period)
    minus_s = _wilder(minus_dm, period)

    with np.errstate(divide="ignore", invalid="ignore"):
        plus_di = np.where(tr_s > 0, 100.0 * plus_s / tr_s, 0.0)
        minus_di = np.where(tr_s > 0, 100.0 * minus_s / tr_s, 0.0)
        di_sum = plus_di + minus_di
        dx = np.where(di_sum > 0, 100.0 * np.abs(plus_di - minus_di) / di_sum, 0.0)

    dx = dx[period - 1:]
    adx_value = dx[:period].mean()
    for value in dx[period:]:
        adx_value = (adx_value * (period - 1) + value) / period

    return float(adx_value), float(plus_di[-1]), float(minus_di[-1])


def vwap(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    volumes: Sequence[float],
) -> Optional[float]:
    """Volume weighted average of the typical price over the given bars."""
    h = np.asarray(highs, dtype=float)
    l = np.asarray(lows, dtype=float)
    c = np.asarray(closes, dtype=float)
    v = np.asarray(volumes, dtype=float)
    if len(c) == 0:
        return None

    total_volume = v.sum()
    typical = (h + l + c) / 3.0
    if total_volume <= 0:
        # Index candles carry no volume; fall back to the plain typical price mean
        return float(typical.mean())
    return float((typical * v).sum() / total_volume)
