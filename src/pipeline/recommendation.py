#!/usr/bin/env python3
"""
TA Agent Pipeline: Recommendation

Turns gate-passing contexts into a Recommendation, either directly
(deterministic fallback) or by adjudicating the reasoning loop's answer.
"""
import logging
import re
from typing import Optional, Sequence, Tuple

from .types import (
    Decision,
    OptionCandidate,
    Recommendation,
    TimeframeContext,
    decision_for,
)


logger = logging.getLogger(__name__)


DETERMINISTIC_CONFIDENCE = 0.6

# Offsets from the latest 1m close
STOP_OFFSET = 0.08
TARGET_OFFSETS = (0.25, 0.45)

STRIKE_PATTERN = re.compile(r"\bstrike\D{0,12}(\d{3,6}(?:\.\d+)?)", re.IGNORECASE)


def _levels(close: Optional[float], direction: str) -> Tuple[Optional[float], Tuple[float, ...]]:
    if not close:
        return None, ()
    sign = 1.0 if direction == "CE" else -1.0
    stop = round(close * (1 - sign * STOP_OFFSET), 2)
    targets = tuple(round(close * (1 + sign * offset), 2) for offset in TARGET_OFFSETS)
    return stop, targets


def deterministic_recommendation(
    tf_15m: TimeframeContext,
    tf_5m: TimeframeContext,
    tf_1m: TimeframeContext,
    candidates: Sequence[OptionCandidate],
    gates_passed: Sequence[str],
) -> Recommendation:
    """
    Recommendation without the model: direction from the 15m bias, strike
    from the best candidate, stop and targets offset from the latest close.
    """
    direction = "CE" if tf_15m.bias == "bullish" else "PE"
    best = candidates[0] if candidates else None
    stop, targets = _levels(tf_1m.latest_close, direction)
    trigger = tf_1m.indicators.get("trigger_type", "none")

    return Recommendation(
        decision=decision_for(DETERMINISTIC_CONFIDENCE),
        confidence=DETERMINISTIC_CONFIDENCE,
        rationale=(
            f"Deterministic analysis: {tf_15m.bias} trend ({tf_15m.strength}), "
            f"{tf_5m.signal} setup, {trigger} trigger"
        ),
        direction=direction,
        strike=best.strike if best else None,
        entry_zone=tf_1m.entry_zone,
        stop_loss=stop,
        targets=targets,
        gates_passed=tuple(gates_passed),
        source="deterministic",
    )


def _pick_strike(answer: str, candidates: Sequence[OptionCandidate], default: Optional[float]) -> Optional[float]:
    """The strike the answer names, if it is one of the candidates; else the default."""
    known = {c.strike for c in candidates}
    for match in STRIKE_PATTERN.finditer(answer or ""):
        value = float(match.group(1))
        if value in known:
            return value
    return default


def adjudicate(
    base: Recommendation,
    answer: str,
    confidence: Optional[float],
    candidates: Sequence[OptionCandidate],
) -> Recommendation:
    """
    Fold the reasoning loop's answer into the deterministic base.

    The model may move the confidence (and therefore the decision band) and
    choose between surviving candidates. It cannot introduce a strike that
    did not pass the filter, nor change the direction set by the 15m bias.
    """
    value = base.confidence if confidence is None else min(max(confidence, 0.0), 1.0)
    strike = _pick_strike(answer, candidates, base.strike)
    decision = decision_for(value)
    if decision is Decision.ENTER and strike is None:
        # No filtered candidate to enter on
        value = min(value, 0.69)
        decision = decision_for(value)

    logger.info(f"LLM adjudication: confidence {base.confidence} -> {value}, decision={decision.value}")
    return Recommendation(
        decision=decision,
        confidence=value,
        rationale=answer.strip() or base.rationale,
        direction=base.direction,
        strike=strike,
        entry_zone=base.entry_zone,
        stop_loss=base.stop_loss,
        targets=base.targets,
        gates_passed=base.gates_passed,
        source="llm",
    )
