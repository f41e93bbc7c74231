#!/usr/bin/env python3
"""
TA Agent Brain Module: Structured Context

Pure transforms that turn the pipeline's timeframe contexts, option
candidates and market conditions into the StructuredBrief, the only
payload the reasoning loop may hand to the model.

The brief carries labels and a handful of scalar facts. It never carries
price series or per-candle data; build_brief() checks that before
returning.
"""
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from pipeline.scoring import spread_pct
from pipeline.types import OptionCandidate, Status, TimeframeContext


# Trend strength ladder (ADX)
ADX_STRONG = 25.0
ADX_MODERATE = 20.0
MIN_PERMISSION_ADX = 20.0

THETA_RISK_LIMIT = 10.0
GOOD_LIQUIDITY_SPREAD_PCT = 1.0

# A numeric list longer than this looks like a series, not a fact
MAX_NUMERIC_LIST = 8
CANDLE_KEYS = frozenset(("open", "high", "low", "close"))


# =============================================================================
# Labels and permission rules
# =============================================================================

def strength_label(adx: Optional[float]) -> str:
    """strong / moderate / weak from ADX; unknown when ADX is absent."""
    if adx is None:
        return "unknown"
    if adx >= ADX_STRONG:
        return "strong"
    if adx >= ADX_MODERATE:
        return "moderate"
    return "weak"


def trading_permission(status: Status, bias: str, adx: Optional[float]) -> bool:
    """Options buying is allowed only on complete data with a directional bias and enough trend."""
    if status is not Status.COMPLETE:
        return False
    if bias not in ("bullish", "bearish"):
        return False
    if adx is not None and adx < MIN_PERMISSION_ADX:
        return False
    return True


def allowed_direction(bias: str) -> str:
    return {"bullish": "CE", "bearish": "PE"}.get(bias, "none")


def _direction(bias: str) -> str:
    return bias if bias in ("bullish", "bearish") else "sideways"


def _num(value: Any, digits: int = 2) -> Optional[float]:
    if value is None:
        return None
    try:
        return round(float(value), digits)
    except (TypeError, ValueError):
        return None


# =============================================================================
# Timeframe transforms
# =============================================================================

def transform_15m(ctx: TimeframeContext) -> Dict[str, Any]:
    """15m: should we look for a trade at all?"""
    ind = ctx.indicators
    adx = ind.get("adx")
    return {
        "status": ctx.status.value,
        "trend": {
            "direction": _direction(ctx.bias),
            "strength": strength_label(adx),
            "adx": _num(adx),
            "di_diff": _num(ind.get("di_diff")),
        },
        "volatility": {
            "atr_trend": ind.get("atr_trend") or "unknown",
        },
        "key_levels": {
            "ema_stack": ctx.signal if ctx.signal in ("bullish", "bearish") else "mixed",
            "vwap_position": ind.get("vwap_position") or "unknown",
            "distance_from_vwap_pct": _num(ind.get("vwap_distance_pct")),
        },
        "permission": {
            "options_buying_allowed": trading_permission(ctx.status, ctx.bias, adx),
            "allowed_direction": allowed_direction(ctx.bias),
        },
    }


def transform_5m(ctx: TimeframeContext) -> Dict[str, Any]:
    """5m: is a tradable setup forming?"""
    ind = ctx.indicators
    complete = ctx.status is Status.COMPLETE
    return {
        "status": ctx.status.value,
        "setup": {
            "type": ctx.signal if complete else "none",
            "quality": ctx.strength if complete else "low",
        },
        "momentum": {
            "aligned": bool(ind.get("momentum_alignment", False)),
        },
        "price_behavior": {
            "last_close": ind.get("close_strength") or "unknown",
            "upper_wick_pct": _num(ind.get("upper_wick_pct")),
            "body_pct": _num(ind.get("body_pct")),
        },
        "invalidations": list(ctx.invalidations),
        "proceed_to_entry": complete and ctx.gate,
    }


def transform_1m(ctx: TimeframeContext) -> Dict[str, Any]:
    """1m: now or wait?"""
    ind = ctx.indicators
    complete = ctx.status is Status.COMPLETE
    zone = None
    if ctx.entry_zone:
        zone = {"price_from": _num(ctx.entry_zone[0]), "price_to": _num(ctx.entry_zone[1])}
    return {
        "status": ctx.status.value,
        "trigger": {
            "status": ctx.signal if complete else "none",
            "type": ind.get("trigger_type") or "none",
        },
        "momentum_ignition": {
            "range_expansion_pct": _num(ind.get("range_expansion_pct")),
            "atr_spike": bool(ind.get("atr_spike", False)),
            "consecutive_strong_closes": int(ind.get("consecutive_strong_closes") or 0),
        },
        "micro_structure": {
            "higher_low": bool(ind.get("higher_low", False)),
            "lower_high": bool(ind.get("lower_high", False)),
        },
        "entry_zone": zone,
    }


# =============================================================================
# Option and market transforms
# =============================================================================

def theta_risk(theta: Optional[float]) -> bool:
    return theta is not None and abs(theta) > THETA_RISK_LIMIT


def liquidity_label(spread: float) -> str:
    return "good" if spread < GOOD_LIQUIDITY_SPREAD_PCT else "poor"


def transform_option(candidate: OptionCandidate) -> Dict[str, Any]:
    spread = spread_pct(candidate.bid, candidate.ask)
    return {
        "symbol": candidate.symbol,
        "strike": candidate.strike,
        "option_type": candidate.option_type,
        "moneyness": candidate.moneyness,
        "pricing": {
            "ltp": candidate.ltp,
            "bid": candidate.bid,
            "ask": candidate.ask,
            "spread_pct": _num(spread, 3),
        },
        "greeks": {
            "delta": candidate.delta,
            "gamma": candidate.gamma,
            "theta": candidate.theta,
            "vega": candidate.vega,
        },
        "iv": {"current": candidate.iv, "trend": candidate.iv_trend},
        "oi": {"trend": candidate.oi_trend},
        "risk_flags": {
            "theta_risk": theta_risk(candidate.theta),
            "liquidity": liquidity_label(spread),
        },
        "score": candidate.score,
    }


def transform_market(conditions: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    conditions = conditions or {}
    return {
        "session_phase": conditions.get("session_phase", "unknown"),
        "volatility_regime": conditions.get("volatility_regime", "unknown"),
        "vix": _num(conditions.get("vix")),
        "event_risk": list(conditions.get("event_risk", [])),
        "no_trade_reason": conditions.get("no_trade_reason"),
    }


# =============================================================================
# Structured brief
# =============================================================================

def assert_no_raw_series(payload: Any, path: str = "brief") -> None:
    """
    Raise ValueError if the payload contains anything that looks like raw
    market data: a long numeric list or a candle-shaped mapping.
    """
    if isinstance(payload, Mapping):
        if CANDLE_KEYS.issubset(payload.keys()):
            raise ValueError(f"{path} contains a candle-shaped record")
        for key, value in payload.items():
            assert_no_raw_series(value, f"{path}.{key}")
    elif isinstance(payload, (list, tuple)):
        numeric = [v for v in payload if isinstance(v, (int, float)) and not isinstance(v, bool)]
        if len(numeric) > MAX_NUMERIC_LIST:
            raise ValueError(f"{path} contains a numeric series of {len(numeric)} values")
        for i, value in enumerate(payload):
            assert_no_raw_series(value, f"{path}[{i}]")


@dataclass(frozen=True)
class StructuredBrief:
    """Decision-ready facts for one symbol. Everything the model may see."""
    symbol: str
    tf_15m: Dict[str, Any]
    tf_5m: Dict[str, Any]
    tf_1m: Dict[str, Any]
    option_strikes: Tuple[Dict[str, Any], ...] = ()
    market_conditions: Dict[str, Any] = field(default_factory=dict)

    def timeframe(self, name: str) -> Optional[Dict[str, Any]]:
        return {"15m": self.tf_15m, "5m": self.tf_5m, "1m": self.tf_1m}.get(name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "tf_15m": self.tf_15m,
            "tf_5m": self.tf_5m,
            "tf_1m": self.tf_1m,
            "option_strikes": list(self.option_strikes),
            "market_conditions": self.market_conditions,
        }

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, default=str)


def build_brief(
    symbol: str,
    tf_15m: TimeframeContext,
    tf_5m: TimeframeContext,
    tf_1m: TimeframeContext,
    candidates: Iterable[OptionCandidate] = (),
    market: Optional[Mapping[str, Any]] = None,
) -> StructuredBrief:
    """
    Build the structured brief.

    Raises:
        ValueError: If any section would leak raw series data
    """
    brief = StructuredBrief(
        symbol=symbol,
        tf_15m=transform_15m(tf_15m),
        tf_5m=transform_5m(tf_5m),
        tf_1m=transform_1m(tf_1m),
        option_strikes=tuple(transform_option(c) for c in candidates),
        market_conditions=transform_market(market),
    )
    assert_no_raw_series(brief.to_dict())
    return brief


def summarize_brief(brief: StructuredBrief) -> List[str]:
    """One line per section, for logs and console output."""
    t15 = brief.tf_15m["trend"]
    lines = [
        f"15m: {t15['direction']} ({t15['strength']}), "
        f"allowed={brief.tf_15m['permission']['options_buying_allowed']}",
        f"5m: {brief.tf_5m['setup']['type']} ({brief.tf_5m['setup']['quality']})",
        f"1m: {brief.tf_1m['trigger']['status']} via {brief.tf_1m['trigger']['type']}",
    ]
    for option in brief.option_strikes:
        lines.append(
            f"{option['strike']:g} {option['option_type']} score={option['score']:.1f} "
            f"spread={option['pricing']['spread_pct']}% liquidity={option['risk_flags']['liquidity']}"
        )
    return lines
