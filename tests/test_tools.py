#!/usr/bin/env python3
"""
Tool Registry Unit Tests

Registration, schema export, argument validation, the alert/live safety
gate and the per-run tool catalog.
"""
import sys
import pytest
from pathlib import Path
from unittest.mock import Mock

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from brain.context import StructuredBrief
from brain.tools import DISABLED_IN_ALERT_MODE, ToolMode, ToolRegistry
from brain.types import (
    ERROR_DISABLED,
    ERROR_EXECUTION,
    ERROR_UNKNOWN_TOOL,
    ERROR_VALIDATION,
    ToolResult,
)
from errors import ToolExecutionError, ValidationError
from pipeline.tools import (
    ANALYSIS_TOOLS,
    TOOL_PLACE_ORDER,
    build_tool_registry,
    check_alignment,
    check_conditions,
    find_contradictions,
)


# =============================================================================
# Fixtures
# =============================================================================

LOOKUP_PARAMS = {
    "symbol": {"type": "string", "required": True, "description": "Underlying"},
    "count": {"type": "integer", "required": False},
    "side": {"type": "string", "required": False, "enum": ["CE", "PE"]},
}

ORDER_ARGS = {"symbol": "NIFTY", "side": "buy", "qty": 50, "strike": 22500, "option_type": "CE"}


@pytest.fixture
def handler():
    return Mock(return_value={"ok": True})


@pytest.fixture
def registry(handler):
    reg = ToolRegistry(mode=ToolMode.ALERT)
    reg.register("lookup", "Look something up", LOOKUP_PARAMS, handler)
    return reg


# =============================================================================
# Registration and schema
# =============================================================================

class TestRegistration:

    def test_duplicate_name_rejected(self, registry, handler):
        with pytest.raises(ValueError, match="already registered"):
            registry.register("lookup", "again", {}, handler)

    def test_unsupported_type_rejected(self, handler):
        with pytest.raises(ValueError, match="unsupported type"):
            ToolRegistry().register("bad", "bad", {"flag": {"type": "boolean"}}, handler)

    def test_schema_format(self, registry):
        [schema] = registry.to_schema()
        assert schema["type"] == "function"
        fn = schema["function"]
        assert fn["name"] == "lookup"
        assert fn["parameters"]["type"] == "object"
        assert fn["parameters"]["required"] == ["symbol"]
        assert fn["parameters"]["properties"]["side"] == {"type": "string", "enum": ["CE", "PE"]}
        assert fn["parameters"]["properties"]["symbol"]["description"] == "Underlying"


# =============================================================================
# Validation
# =============================================================================

class TestValidation:

    def test_valid_call(self, registry, handler):
        result = registry.execute("lookup", {"symbol": "NIFTY", "count": 2})
        assert result.success
        assert result.data == {"ok": True}
        handler.assert_called_once_with({"symbol": "NIFTY", "count": 2})

    def test_missing_required(self, registry, handler):
        result = registry.execute("lookup", {})
        assert not result.success
        assert result.error_kind == ERROR_VALIDATION
        assert "MISSING_REQUIRED_FIELD: symbol is required" in result.error
        handler.assert_not_called()

    def test_none_counts_as_missing(self, registry):
        result = registry.execute("lookup", {"symbol": None})
        assert "MISSING_REQUIRED_FIELD" in result.error

    def test_type_mismatch(self, registry):
        result = registry.execute("lookup", {"symbol": 13})
        assert result.error_kind == ERROR_VALIDATION
        assert "INVALID_TYPE: symbol must be string" in result.error

    def test_bool_is_not_an_integer(self, registry):
        result = registry.execute("lookup", {"symbol": "NIFTY", "count": True})
        assert "INVALID_TYPE: count must be integer" in result.error

    def test_enum(self, registry):
        result = registry.execute("lookup", {"symbol": "NIFTY", "side": "XX"})
        assert "INVALID_VALUE" in result.error

    def test_none_arguments_treated_as_empty(self, registry):
        result = registry.execute("lookup", None)
        assert result.error_kind == ERROR_VALIDATION


# =============================================================================
# Execution
# =============================================================================

class TestExecution:

    def test_unknown_tool(self, registry):
        result = registry.execute("nope", {})
        assert result.error_kind == ERROR_UNKNOWN_TOOL

    def test_handler_exception_is_captured(self):
        reg = ToolRegistry()
        reg.register("boom", "raises", {}, Mock(side_effect=RuntimeError("kaput")))
        result = reg.execute("boom", {})
        assert not result.success
        assert result.error_kind == ERROR_EXECUTION
        assert "kaput" in result.error

    def test_handler_validation_error(self):
        reg = ToolRegistry()
        reg.register("strict", "rejects", {}, Mock(side_effect=ValidationError("qty must be positive")))
        result = reg.execute("strict", {})
        assert result.error == "qty must be positive"
        assert result.error_kind == ERROR_VALIDATION

    def test_handler_tool_execution_error(self):
        reg = ToolRegistry()
        reg.register("empty", "fails", {}, Mock(side_effect=ToolExecutionError("nothing to read")))
        result = reg.execute("empty", {})
        assert result.error == "nothing to read"
        assert result.error_kind == ERROR_EXECUTION

    def test_handler_tool_result_passes_through(self):
        reg = ToolRegistry()
        reg.register("soft_fail", "fails", {}, lambda args: ToolResult.fail("not today"))
        result = reg.execute("soft_fail", {})
        assert result.error == "not today"

    def test_execution_tool_blocked_in_alert_mode(self):
        order = Mock()
        reg = ToolRegistry(mode=ToolMode.ALERT)
        reg.register("place_order", "orders", {}, order, execution=True)

        result = reg.execute("place_order", {})

        assert result.error == DISABLED_IN_ALERT_MODE
        assert result.error_kind == ERROR_DISABLED
        order.assert_not_called()
        assert reg.to_schema() == []
        assert not reg.is_enabled("place_order")
        assert reg.names(enabled_only=False) == ["place_order"]

    def test_execution_tool_runs_in_live_mode(self):
        order = Mock(return_value="sent")
        reg = ToolRegistry(mode=ToolMode.LIVE)
        reg.register("place_order", "orders", {}, order, execution=True)

        assert reg.execute("place_order", {}).data == "sent"
        assert len(reg.to_schema()) == 1


# =============================================================================
# Per-run catalog
# =============================================================================

class TestToolCatalog:

    def test_alert_mode_exposes_analysis_tools_only(self, brief):
        registry = build_tool_registry(brief)
        assert registry.names() == ANALYSIS_TOOLS
        assert TOOL_PLACE_ORDER in registry.names(enabled_only=False)

    def test_get_timeframe_context(self, brief):
        result = build_tool_registry(brief).execute("get_timeframe_context", {"timeframe": "15m"})
        assert result.data["trend"]["direction"] == "bullish"

    def test_get_timeframe_context_rejects_unknown_timeframe(self, brief):
        result = build_tool_registry(brief).execute("get_timeframe_context", {"timeframe": "4h"})
        assert result.error_kind == ERROR_VALIDATION

    def test_get_timeframe_context_empty_section(self):
        empty = StructuredBrief(symbol="NIFTY", tf_15m={}, tf_5m={}, tf_1m={})
        result = build_tool_registry(empty).execute("get_timeframe_context", {"timeframe": "5m"})
        assert result.error == "no 5m context in this brief"
        assert result.error_kind == ERROR_EXECUTION

    def test_get_option_candidates(self, brief):
        result = build_tool_registry(brief).execute("get_option_candidates", {})
        assert result.data["count"] == 1
        assert result.data["candidates"][0]["strike"] == 22500.0

    def test_validate_signal_alignment_with_brief_sections(self, brief):
        result = build_tool_registry(brief).execute("validate_signal_alignment", {
            "tf_15m": brief.tf_15m, "tf_5m": brief.tf_5m, "tf_1m": brief.tf_1m,
        })
        assert result.data == {"aligned": True, "contradictions": [], "recommendation": "proceed"}

    def test_check_market_conditions(self, brief):
        result = build_tool_registry(brief).execute("check_market_conditions", {
            "volatility": "contracting", "trend_strength": "strong", "liquidity_score": 8,
        })
        assert result.data["suitable"] is False
        assert result.data["recommendation"] == "avoid"

    def test_detect_contradictions_fills_from_brief(self, brief):
        result = build_tool_registry(brief).execute("detect_contradictions", {
            "signals": {"tf_1m_lower_high": True},
        })
        assert result.data["has_contradictions"] is True
        assert any("lower highs" in c for c in result.data["contradictions"])

    def test_check_risk_window(self, brief):
        result = build_tool_registry(brief).execute("check_risk_window", {})
        assert result.data["safe_to_trade"] is True
        assert result.data["session_phase"] == "mid"

    def test_place_order_disabled_in_alert_mode(self, brief):
        intents = []
        result = build_tool_registry(brief, ToolMode.ALERT, intents).execute(TOOL_PLACE_ORDER, ORDER_ARGS)
        assert result.error == DISABLED_IN_ALERT_MODE
        assert intents == []

    def test_place_order_records_intent_in_live_mode(self, brief):
        intents = []
        result = build_tool_registry(brief, ToolMode.LIVE, intents).execute(TOOL_PLACE_ORDER, ORDER_ARGS)
        assert result.success
        assert result.data["status"] == "recorded"
        assert intents[0]["strike"] == 22500.0
        assert intents[0]["price"] is None

    def test_place_order_rejects_unfiltered_strike(self, brief):
        intents = []
        registry = build_tool_registry(brief, ToolMode.LIVE, intents)
        result = registry.execute(TOOL_PLACE_ORDER, dict(ORDER_ARGS, strike=23000))
        assert result.error_kind == ERROR_VALIDATION
        assert result.error == "strike 23000 is not a filtered candidate"
        assert intents == []

    def test_place_order_rejects_zero_qty(self, brief):
        intents = []
        registry = build_tool_registry(brief, ToolMode.LIVE, intents)
        result = registry.execute(TOOL_PLACE_ORDER, dict(ORDER_ARGS, qty=0))
        assert result.error == "qty must be positive"
        assert intents == []


class TestAnalysisRules:

    def test_alignment_flags_each_problem(self):
        result = check_alignment(
            {"bias": "bullish"},
            {"setup_type": "none", "momentum_alignment": False},
            {"entry_signal": "forming"},
        )
        assert result["aligned"] is False
        assert len(result["contradictions"]) == 3
        assert result["recommendation"] == "wait"

    def test_breakout_with_bullish_bias_is_aligned(self):
        result = check_alignment(
            {"bias": "bullish"},
            {"setup_type": "breakout", "momentum_alignment": True},
            {"entry_signal": "confirmed"},
        )
        assert result["aligned"] is True

    def test_contradictions_bias_without_setup(self):
        result = find_contradictions({"tf_15m_bias": "bearish", "tf_5m_setup": "none"})
        assert result["contradictions"] == ["15m bearish bias but no 5m setup"]

    def test_conditions_warn_without_failing_on_weak_trend(self):
        result = check_conditions("expanding", "weak", 7.0)
        assert result["suitable"] is True
        assert result["warnings"] == ["Weak trend - lower confidence"]

    def test_conditions_low_liquidity(self):
        assert check_conditions("stable", "strong", 3.0)["suitable"] is False

    def test_contradictions_bias_against_vwap(self):
        result = find_contradictions({"tf_15m_bias": "bearish", "tf_15m_vwap_position": "above"})
        assert result["recommendation"] == "signals_conflicting"

    def test_consistent_signals(self):
        result = find_contradictions({"tf_15m_bias": "bullish", "tf_5m_setup": "pullback"})
        assert result == {"contradictions": [], "has_contradictions": False, "recommendation": "signals_consistent"}
