#!/usr/bin/env python3
"""
TA Agent Pipeline: Strike Scoring

Additive, model-free ranking of option candidates. Same input, same score.
"""
from typing import Optional


# Spread percentage reported when a quote side is missing
MISSING_SPREAD_PCT = 100.0


def spread_pct(bid: Optional[float], ask: Optional[float]) -> float:
    """|ask - bid| as a percentage of the midpoint."""
    if bid is None or ask is None:
        return MISSING_SPREAD_PCT
    mid = (bid + ask) / 2.0
    if mid <= 0:
        return MISSING_SPREAD_PCT
    return abs(ask - bid) / mid * 100.0


def _delta_points(delta: Optional[float]) -> float:
    if delta is None:
        return 0.0
    d = abs(delta)
    if 0.3 <= d <= 0.5:
        return 3.0
    if 0.2 <= d <= 0.6:
        return 2.0
    if 0.1 <= d <= 0.7:
        return 1.0
    return 0.0


def _gamma_points(gamma: Optional[float]) -> float:
    if gamma is None:
        return 0.0
    if gamma > 0.01:
        return 2.0
    if gamma > 0.005:
        return 1.0
    return 0.0


def _spread_points(spread: float) -> float:
    if spread > 2.0:
        return -2.0
    if spread > 1.0:
        return -1.0
    if spread < 0.5:
        return 0.5
    return 0.0


def _iv_points(iv_change: Optional[float]) -> float:
    if iv_change is None:
        return 0.0
    if iv_change > 0.05:
        return 1.5
    if iv_change > 0.02:
        return 1.0
    if iv_change < -0.05:
        return -1.0
    return 0.0


def _oi_points(oi_change: Optional[float]) -> float:
    if oi_change is None:
        return 0.0
    if oi_change > 0.10:
        return 1.5
    if oi_change > 0.05:
        return 1.0
    return 0.0


def _theta_points(theta: Optional[float]) -> float:
    if theta is not None and abs(theta) > 10:
        return -1.0
    return 0.0


def score(candidate) -> float:
    """
    Score one candidate.

    Reads `delta`, `gamma`, `spread_pct`, `iv_change`, `oi_change` and
    `theta` from the candidate. PE deltas are scored by magnitude.

    Returns:
        Score, never below 0
    """
    total = (
        _delta_points(candidate.delta)
        + _gamma_points(candidate.gamma)
        + _spread_points(candidate.spread_pct)
        + _iv_points(candidate.iv_change)
        + _oi_points(candidate.oi_change)
        + _theta_points(candidate.theta)
    )
    return max(total, 0.0)
