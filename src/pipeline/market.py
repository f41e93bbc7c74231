#!/usr/bin/env python3
"""
TA Agent Pipeline: Market Conditions

Session phase, volatility regime and event risk for the brief. These are
informational: they colour the recommendation but do not add a gate.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, Dict, List, Optional, Sequence
from zoneinfo import ZoneInfo


IST = ZoneInfo("Asia/Kolkata")

MARKET_OPEN = time(9, 15)
OPENING_PHASE_END = time(11, 0)
MID_PHASE_END = time(14, 0)
LAST_HALF_HOUR = time(15, 0)
MARKET_CLOSE = time(15, 30)

LOW_VIX = 12.0
HIGH_VIX = 20.0


def now_ist() -> datetime:
    return datetime.now(IST)


def session_phase(now: datetime) -> str:
    """pre_open, open, mid, close or closed for an exchange-time moment."""
    if now.tzinfo is not None:
        now = now.astimezone(IST)
    t = now.time()
    if t < MARKET_OPEN:
        return "pre_open"
    if t < OPENING_PHASE_END:
        return "open"
    if t < MID_PHASE_END:
        return "mid"
    if t < MARKET_CLOSE:
        return "close"
    return "closed"


def volatility_regime(vix: Optional[float]) -> str:
    if vix is None:
        return "unknown"
    if vix < LOW_VIX:
        return "low"
    if vix <= HIGH_VIX:
        return "normal"
    return "high"


def _is_today(expiry: Optional[str], today: date) -> bool:
    if not expiry:
        return False
    try:
        return date.fromisoformat(expiry[:10]) == today
    except ValueError:
        return False


@dataclass
class MarketConditions:
    session_phase: str
    volatility_regime: str
    vix: Optional[float] = None
    expiry: Optional[str] = None
    event_risk: List[str] = field(default_factory=list)
    no_trade_reasons: List[str] = field(default_factory=list)

    @property
    def no_trade_reason(self) -> Optional[str]:
        return "; ".join(self.no_trade_reasons) or None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_phase": self.session_phase,
            "volatility_regime": self.volatility_regime,
            "vix": self.vix,
            "expiry": self.expiry,
            "event_risk": list(self.event_risk),
            "no_trade_reason": self.no_trade_reason,
        }


def assess_market(
    now: datetime,
    vix: Optional[float] = None,
    expiry: Optional[str] = None,
    bias: str = "neutral",
    events: Sequence[str] = (),
) -> MarketConditions:
    """
    Assess the market backdrop.

    Args:
        now: Current exchange time
        vix: India VIX level, if known
        expiry: Selected option expiry (YYYY-MM-DD)
        bias: 15m bias
        events: Scheduled events the caller knows about (e.g., "RBI policy")
    """
    local = now.astimezone(IST) if now.tzinfo is not None else now
    conditions = MarketConditions(
        session_phase=session_phase(local),
        volatility_regime=volatility_regime(vix),
        vix=vix,
        expiry=expiry,
    )

    if _is_today(expiry, local.date()):
        conditions.event_risk.append("expiry_day")
        conditions.no_trade_reasons.append("expiry day")
    for event in events:
        conditions.event_risk.append(event)
        conditions.no_trade_reasons.append(f"major event: {event}")

    if LAST_HALF_HOUR <= local.time() < MARKET_CLOSE:
        conditions.no_trade_reasons.append("last 30 minutes of session")
    if conditions.volatility_regime == "low" and bias not in ("bullish", "bearish"):
        conditions.no_trade_reasons.append("low VIX with sideways bias")

    return conditions
