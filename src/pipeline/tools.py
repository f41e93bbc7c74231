#!/usr/bin/env python3
"""
TA Agent Pipeline: Tool Catalog

Tools the reasoning loop may call during one run. Handlers close over that
run's StructuredBrief and never see candles or the raw option chain.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from brain.context import StructuredBrief
from brain.tools import ToolMode, ToolRegistry
from errors import ToolExecutionError, ValidationError


logger = logging.getLogger(__name__)


# Tool names as constants
TOOL_TIMEFRAME_CONTEXT = "get_timeframe_context"
TOOL_OPTION_CANDIDATES = "get_option_candidates"
TOOL_SIGNAL_ALIGNMENT = "validate_signal_alignment"
TOOL_MARKET_CONDITIONS = "check_market_conditions"
TOOL_CONTRADICTIONS = "detect_contradictions"
TOOL_RISK_WINDOW = "check_risk_window"
TOOL_PLACE_ORDER = "place_order"

ANALYSIS_TOOLS = [
    TOOL_TIMEFRAME_CONTEXT,
    TOOL_OPTION_CANDIDATES,
    TOOL_SIGNAL_ALIGNMENT,
    TOOL_MARKET_CONDITIONS,
    TOOL_CONTRADICTIONS,
    TOOL_RISK_WINDOW,
]
EXECUTION_TOOLS = [TOOL_PLACE_ORDER]

MIN_LIQUIDITY_SCORE = 5.0


def _section(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


# =============================================================================
# Signal readers
#
# The model may pass back brief sections as-is or a flattened form, so
# each reader accepts both shapes.
# =============================================================================

def _bias(tf_15m: Mapping[str, Any]) -> str:
    if "bias" in tf_15m:
        return str(tf_15m["bias"])
    return str(_section(tf_15m.get("trend")).get("direction", "unknown"))


def _setup_type(tf_5m: Mapping[str, Any]) -> str:
    if "setup_type" in tf_5m:
        return str(tf_5m["setup_type"])
    return str(_section(tf_5m.get("setup")).get("type", "none"))


def _momentum_aligned(tf_5m: Mapping[str, Any]) -> bool:
    if "momentum_alignment" in tf_5m:
        return bool(tf_5m["momentum_alignment"])
    return bool(_section(tf_5m.get("momentum")).get("aligned", False))


def _entry_signal(tf_1m: Mapping[str, Any]) -> str:
    if "entry_signal" in tf_1m:
        return str(tf_1m["entry_signal"])
    return str(_section(tf_1m.get("trigger")).get("status", "none"))


def _brief_signals(brief: StructuredBrief) -> Dict[str, Any]:
    micro = brief.tf_1m["micro_structure"]
    return {
        "tf_15m_bias": _bias(brief.tf_15m),
        "tf_15m_vwap_position": brief.tf_15m["key_levels"]["vwap_position"],
        "tf_5m_setup": _setup_type(brief.tf_5m),
        "tf_5m_momentum_aligned": _momentum_aligned(brief.tf_5m),
        "tf_1m_entry_signal": _entry_signal(brief.tf_1m),
        "tf_1m_higher_low": micro["higher_low"],
        "tf_1m_lower_high": micro["lower_high"],
    }


# =============================================================================
# Handlers
# =============================================================================

def check_alignment(tf_15m: Mapping[str, Any], tf_5m: Mapping[str, Any], tf_1m: Mapping[str, Any]) -> Dict[str, Any]:
    """Are the three timeframes telling the same story?"""
    contradictions = []
    bias = _bias(tf_15m)

    if bias not in ("bullish", "bearish"):
        contradictions.append(f"15m has no directional bias ({bias})")
    if _setup_type(tf_5m) == "none":
        contradictions.append("5m has no setup")
    if not _momentum_aligned(tf_5m):
        contradictions.append("5m momentum not aligned with 15m")
    if _entry_signal(tf_1m) != "confirmed":
        contradictions.append("1m entry signal not confirmed")

    aligned = not contradictions
    return {
        "aligned": aligned,
        "contradictions": contradictions,
        "recommendation": "proceed" if aligned else "wait",
    }


def check_conditions(volatility: str, trend_strength: str, liquidity_score: float) -> Dict[str, Any]:
    """Volatility, trend strength and liquidity suitability for buying options."""
    suitable = True
    warnings = []

    if volatility == "contracting":
        suitable = False
        warnings.append("Volatility contracting - poor for options buying")
    if trend_strength == "weak":
        warnings.append("Weak trend - lower confidence")
    elif trend_strength == "unknown":
        warnings.append("Trend strength unknown")
    if liquidity_score < MIN_LIQUIDITY_SCORE:
        suitable = False
        warnings.append("Low liquidity - avoid trading")

    return {
        "suitable": suitable,
        "warnings": warnings,
        "recommendation": "proceed" if suitable else "avoid",
    }


def find_contradictions(signals: Mapping[str, Any]) -> Dict[str, Any]:
    contradictions = []
    bias = signals.get("tf_15m_bias")
    setup = signals.get("tf_5m_setup")
    vwap_position = signals.get("tf_15m_vwap_position")

    if bias in ("bullish", "bearish") and setup == "none":
        contradictions.append(f"15m {bias} bias but no 5m setup")
    if bias == "bullish" and vwap_position == "below" or bias == "bearish" and vwap_position == "above":
        contradictions.append(f"15m {bias} bias with price {vwap_position} VWAP")
    if signals.get("tf_5m_momentum_aligned") is False:
        contradictions.append("5m momentum against the 15m bias")
    if bias == "bullish" and signals.get("tf_1m_lower_high"):
        contradictions.append("1m printing lower highs against a bullish bias")
    if bias == "bearish" and signals.get("tf_1m_higher_low"):
        contradictions.append("1m printing higher lows against a bearish bias")

    return {
        "contradictions": contradictions,
        "has_contradictions": bool(contradictions),
        "recommendation": "signals_conflicting" if contradictions else "signals_consistent",
    }


def build_tool_registry(
    brief: StructuredBrief,
    mode: ToolMode = ToolMode.ALERT,
    order_intents: Optional[List[Dict[str, Any]]] = None,
) -> ToolRegistry:
    """
    Register the analysis and execution tools for one run.

    Args:
        brief: The run's StructuredBrief; every handler reads from it only
        mode: ALERT (read-only) or LIVE
        order_intents: Receives place_order intents in LIVE mode

    Returns:
        ToolRegistry
    """
    registry = ToolRegistry(mode=mode)
    intents = order_intents if order_intents is not None else []
    strikes = {o["strike"] for o in brief.option_strikes}

    def get_timeframe_context(args):
        section = brief.timeframe(args["timeframe"])
        if not section:
            raise ToolExecutionError(f"no {args['timeframe']} context in this brief")
        return section

    def get_option_candidates(args):
        return {"count": len(brief.option_strikes), "candidates": list(brief.option_strikes)}

    def validate_signal_alignment(args):
        return check_alignment(_section(args["tf_15m"]), _section(args["tf_5m"]), _section(args["tf_1m"]))

    def check_market_conditions(args):
        return check_conditions(args["volatility"], args["trend_strength"], float(args["liquidity_score"]))

    def detect_contradictions(args):
        # Fill whatever the model left out from the brief
        signals = {**_brief_signals(brief), **_section(args["signals"])}
        return find_contradictions(signals)

    def check_risk_window(args):
        market = brief.market_conditions
        reason = market.get("no_trade_reason")
        return {
            "session_phase": market.get("session_phase", "unknown"),
            "volatility_regime": market.get("volatility_regime", "unknown"),
            "event_risk": list(market.get("event_risk", [])),
            "no_trade_reason": reason,
            "safe_to_trade": reason is None,
        }

    def place_order(args):
        if args["qty"] <= 0:
            raise ValidationError("qty must be positive")
        if float(args["strike"]) not in strikes:
            raise ValidationError(f"strike {args['strike']} is not a filtered candidate")
        intent = {
            "symbol": args["symbol"],
            "side": args["side"],
            "qty": args["qty"],
            "strike": float(args["strike"]),
            "option_type": args["option_type"],
            "price": args.get("price"),
            "recorded_at": datetime.now().isoformat(),
        }
        intents.append(intent)
        logger.info(f"Order intent recorded: {intent}")
        return {"status": "recorded", "intent": intent}

    registry.register(
        TOOL_TIMEFRAME_CONTEXT,
        "Get the structured context for one timeframe (15m trend, 5m setup or 1m trigger).",
        {"timeframe": {"type": "string", "required": True, "enum": ["15m", "5m", "1m"],
                       "description": "Timeframe to read"}},
        get_timeframe_context,
    )
    registry.register(
        TOOL_OPTION_CANDIDATES,
        "List the option strikes that passed the liquidity filter, best score first.",
        {},
        get_option_candidates,
    )
    registry.register(
        TOOL_SIGNAL_ALIGNMENT,
        """Check whether the 15m, 5m and 1m signals are aligned and consistent.

Pass the tf_15m, tf_5m and tf_1m sections of the brief.""",
        {
            "tf_15m": {"type": "object", "required": True, "description": "15m context with trend direction"},
            "tf_5m": {"type": "object", "required": True, "description": "5m context with setup and momentum"},
            "tf_1m": {"type": "object", "required": True, "description": "1m context with trigger status"},
        },
        validate_signal_alignment,
    )
    registry.register(
        TOOL_MARKET_CONDITIONS,
        "Check that volatility, trend strength and liquidity suit options buying.",
        {
            "volatility": {"type": "string", "required": True,
                           "description": "ATR trend: expanding, contracting, stable"},
            "trend_strength": {"type": "string", "required": True,
                               "description": "strong, moderate, weak or unknown"},
            "liquidity_score": {"type": "number", "required": True, "description": "Liquidity score 0-10"},
        },
        check_market_conditions,
    )
    registry.register(
        TOOL_CONTRADICTIONS,
        "Look for contradictions between timeframe signals that point to a false signal.",
        {"signals": {"type": "object", "required": True,
                     "description": "Signals keyed tf_15m_bias, tf_5m_setup, tf_1m_entry_signal, ..."}},
        detect_contradictions,
    )
    registry.register(
        TOOL_RISK_WINDOW,
        "Check session phase, event risk and no-trade windows (expiry day, last 30 minutes).",
        {},
        check_risk_window,
    )
    registry.register(
        TOOL_PLACE_ORDER,
        """Record an order intent for a filtered strike. Live mode only.

DO NOT USE unless the analysis supports an entry. Nothing is sent to the
exchange; the intent is handed back to the caller.""",
        {
            "symbol": {"type": "string", "required": True},
            "side": {"type": "string", "required": True, "enum": ["buy", "sell"]},
            "qty": {"type": "integer", "required": True},
            "strike": {"type": "number", "required": True},
            "option_type": {"type": "string", "required": True, "enum": ["CE", "PE"]},
            "price": {"type": "number", "required": False},
        },
        place_order,
        execution=True,
    )

    logger.debug(f"Tool registry ready ({mode.value}): {registry.names()}")
    return registry
