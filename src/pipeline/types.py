#!/usr/bin/env python3
"""
TA Agent Pipeline: Type Definitions

Records produced by one pipeline run: per-timeframe contexts, option
candidates, the final recommendation and the run result.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple


class Status(str, Enum):
    """Outcome of building one timeframe context."""
    COMPLETE = "complete"
    NO_DATA = "no_data"
    ERROR = "error"


class Decision(str, Enum):
    """Recommendation decision band."""
    ENTER = "enter"
    WAIT = "wait"
    NO_TRADE = "no_trade"


# Confidence bands
ENTER_THRESHOLD = 0.7
WAIT_THRESHOLD = 0.5

GATE_15M = "15m"
GATE_5M = "5m"
GATE_OPTIONS = "options"
GATE_1M = "1m"
GATE_ORDER = (GATE_15M, GATE_5M, GATE_OPTIONS, GATE_1M)


def decision_for(confidence: float) -> Decision:
    """Map a confidence value onto its decision band."""
    if confidence >= ENTER_THRESHOLD:
        return Decision.ENTER
    if confidence >= WAIT_THRESHOLD:
        return Decision.WAIT
    return Decision.NO_TRADE


@dataclass(frozen=True)
class TimeframeContext:
    """
    Facts derived from one timeframe's candles.

    `signal` is the categorical outcome for the timeframe: the EMA stack on
    15m, the setup type on 5m and the entry signal on 1m. `gate` is the
    boolean the orchestrator checks before moving on.
    """
    timeframe: str                      # "15m", "5m" or "1m"
    status: Status
    bias: str = "neutral"               # bullish, bearish, neutral
    strength: str = "unknown"           # strength / quality label
    signal: str = "none"
    gate: bool = False
    indicators: Mapping[str, Any] = field(default_factory=dict)
    invalidations: Tuple[str, ...] = ()
    latest_close: Optional[float] = None
    entry_zone: Optional[Tuple[float, float]] = None
    error: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return self.status is Status.COMPLETE

    @classmethod
    def no_data(cls, timeframe: str, reason: str = "no candles returned") -> "TimeframeContext":
        return cls(
            timeframe=timeframe,
            status=Status.NO_DATA,
            invalidations=("no_data",),
            error=reason,
        )

    @classmethod
    def failed(cls, timeframe: str, error: str) -> "TimeframeContext":
        return cls(
            timeframe=timeframe,
            status=Status.ERROR,
            invalidations=("error",),
            error=error,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timeframe": self.timeframe,
            "status": self.status.value,
            "bias": self.bias,
            "strength": self.strength,
            "signal": self.signal,
            "gate": self.gate,
            "indicators": dict(self.indicators),
            "invalidations": list(self.invalidations),
            "latest_close": self.latest_close,
            "entry_zone": list(self.entry_zone) if self.entry_zone else None,
            "error": self.error,
        }


@dataclass(frozen=True)
class OptionCandidate:
    """An option contract that survived the chain filter."""
    symbol: str
    strike: float
    option_type: str                    # "CE" or "PE"
    moneyness: str                      # "ATM", "ITM+1", "OTM+1"
    bid: Optional[float]
    ask: Optional[float]
    ltp: Optional[float]
    spread_pct: float
    delta: Optional[float] = None
    gamma: Optional[float] = None
    theta: Optional[float] = None
    vega: Optional[float] = None
    iv: Optional[float] = None
    iv_change: Optional[float] = None
    iv_trend: str = "stable"
    oi_change: Optional[float] = None
    oi_trend: str = "stable"
    expiry: Optional[str] = None
    score: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "strike": self.strike,
            "option_type": self.option_type,
            "moneyness": self.moneyness,
            "bid": self.bid,
            "ask": self.ask,
            "ltp": self.ltp,
            "spread_pct": round(self.spread_pct, 4),
            "delta": self.delta,
            "gamma": self.gamma,
            "theta": self.theta,
            "vega": self.vega,
            "iv": self.iv,
            "iv_trend": self.iv_trend,
            "oi_change": self.oi_change,
            "oi_trend": self.oi_trend,
            "expiry": self.expiry,
            "score": self.score,
        }


@dataclass(frozen=True)
class Recommendation:
    """
    Terminal artifact of one pipeline run.

    Construction enforces the decision band: `enter` needs confidence of
    at least 0.7 and a strike, `wait` sits in [0.5, 0.7), anything lower
    is `no_trade`.
    """
    decision: Decision
    confidence: float
    rationale: str
    direction: Optional[str] = None     # "CE" or "PE"
    strike: Optional[float] = None
    entry_zone: Optional[Tuple[float, float]] = None
    stop_loss: Optional[float] = None
    targets: Tuple[float, ...] = ()
    gates_passed: Tuple[str, ...] = ()
    source: str = "deterministic"       # deterministic, llm, gate

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")
        if decision_for(self.confidence) is not self.decision:
            raise ValueError(
                f"decision '{self.decision.value}' inconsistent with confidence {self.confidence}"
            )
        if self.decision is Decision.ENTER and self.strike is None:
            raise ValueError("an 'enter' recommendation must reference a candidate strike")

    @classmethod
    def no_trade(cls, reason: str, gates_passed: Tuple[str, ...] = ()) -> "Recommendation":
        return cls(
            decision=Decision.NO_TRADE,
            confidence=0.0,
            rationale=reason,
            gates_passed=tuple(gates_passed),
            source="gate",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "decision": self.decision.value,
            "direction": self.direction,
            "strike": self.strike,
            "entry_zone": list(self.entry_zone) if self.entry_zone else None,
            "stop_loss": self.stop_loss,
            "targets": list(self.targets),
            "confidence": self.confidence,
            "rationale": self.rationale,
            "gates_passed": list(self.gates_passed),
            "source": self.source,
        }


@dataclass
class PipelineResult:
    """Everything one `TradingPipeline.run()` call produced."""
    symbol: str
    recommendation: Recommendation
    timeframes: Dict[str, TimeframeContext] = field(default_factory=dict)
    candidates: List[OptionCandidate] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    gates_passed: List[str] = field(default_factory=list)
    market: Optional[Dict[str, Any]] = None
    brief: Optional[Dict[str, Any]] = None
    reasoning: Optional[Dict[str, Any]] = None
    order_intents: List[Dict[str, Any]] = field(default_factory=list)
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def all_gates_passed(self) -> bool:
        return tuple(self.gates_passed) == GATE_ORDER

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "symbol": self.symbol,
            "timestamp": self.timestamp.isoformat(),
            "recommendation": self.recommendation.to_dict(),
            "timeframes": {k: v.to_dict() for k, v in self.timeframes.items()},
            "candidates": [c.to_dict() for c in self.candidates],
            "errors": list(self.errors),
            "gates_passed": list(self.gates_passed),
            "market": self.market,
            "reasoning": self.reasoning,
            "order_intents": list(self.order_intents),
        }
