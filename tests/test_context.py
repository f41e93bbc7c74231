#!/usr/bin/env python3
"""
Structured Context Unit Tests

Labels, permission rules, per-section transforms and the raw-data guard
on the StructuredBrief.
"""
import json
import sys
import pytest
from dataclasses import replace
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from brain.context import (
    assert_no_raw_series,
    build_brief,
    liquidity_label,
    strength_label,
    summarize_brief,
    theta_risk,
    trading_permission,
    transform_15m,
    transform_1m,
    transform_5m,
    transform_market,
    transform_option,
)
from pipeline.types import Status, TimeframeContext


# =============================================================================
# Rules
# =============================================================================

class TestStrengthLabel:

    @pytest.mark.parametrize("adx,label", [
        (28.0, "strong"), (25.0, "strong"), (22.0, "moderate"), (20.0, "moderate"), (12.0, "weak"), (None, "unknown"),
    ])
    def test_ladder(self, adx, label):
        assert strength_label(adx) == label


class TestTradingPermission:

    def test_complete_directional_trending(self):
        assert trading_permission(Status.COMPLETE, "bullish", 28.0)

    def test_neutral_bias(self):
        assert not trading_permission(Status.COMPLETE, "neutral", 28.0)

    def test_weak_trend(self):
        assert not trading_permission(Status.COMPLETE, "bearish", 15.0)

    def test_missing_adx_does_not_block(self):
        assert trading_permission(Status.COMPLETE, "bearish", None)

    @pytest.mark.parametrize("status", [Status.NO_DATA, Status.ERROR])
    def test_incomplete_status(self, status):
        assert not trading_permission(status, "bullish", 30.0)


# =============================================================================
# Transforms
# =============================================================================

class TestTimeframeTransforms:

    def test_15m(self, tf_15m_bullish):
        safe = transform_15m(tf_15m_bullish)
        assert safe["trend"] == {"direction": "bullish", "strength": "strong", "adx": 28.0, "di_diff": 18.0}
        assert safe["permission"] == {"options_buying_allowed": True, "allowed_direction": "CE"}
        assert safe["key_levels"]["ema_stack"] == "bullish"
        assert safe["key_levels"]["vwap_position"] == "above"

    def test_15m_missing_indicators_degrade_to_unknown(self):
        bare = TimeframeContext(timeframe="15m", status=Status.COMPLETE, bias="neutral")
        safe = transform_15m(bare)
        assert safe["trend"]["direction"] == "sideways"
        assert safe["trend"]["strength"] == "unknown"
        assert safe["volatility"]["atr_trend"] == "unknown"
        assert safe["key_levels"]["vwap_position"] == "unknown"
        assert safe["permission"]["options_buying_allowed"] is False
        assert safe["permission"]["allowed_direction"] == "none"

    def test_15m_error_status(self):
        safe = transform_15m(TimeframeContext.failed("15m", "timeout"))
        assert safe["status"] == "error"
        assert safe["permission"]["options_buying_allowed"] is False

    def test_5m(self, tf_5m_pullback):
        safe = transform_5m(tf_5m_pullback)
        assert safe["setup"] == {"type": "pullback", "quality": "high"}
        assert safe["momentum"]["aligned"] is True
        assert safe["invalidations"] == []
        assert safe["proceed_to_entry"] is True

    def test_5m_no_data(self):
        safe = transform_5m(TimeframeContext.no_data("5m"))
        assert safe["setup"]["type"] == "none"
        assert safe["invalidations"] == ["no_data"]
        assert safe["proceed_to_entry"] is False

    def test_1m(self, tf_1m_confirmed):
        safe = transform_1m(tf_1m_confirmed)
        assert safe["trigger"] == {"status": "confirmed", "type": "range_break"}
        assert safe["entry_zone"] == {"price_from": 98.0, "price_to": 102.0}
        assert safe["momentum_ignition"]["consecutive_strong_closes"] == 2
        assert safe["micro_structure"]["higher_low"] is True


class TestOptionTransform:

    def test_pricing_and_flags(self, candidate):
        safe = transform_option(candidate)
        assert safe["pricing"]["spread_pct"] == pytest.approx(0.6, abs=1e-3)
        assert safe["risk_flags"] == {"theta_risk": False, "liquidity": "good"}
        assert safe["greeks"]["delta"] == 0.42
        assert safe["oi"]["trend"] == "building"
        assert safe["score"] == 6.0

    def test_poor_liquidity_and_theta_risk(self, candidate):
        safe = transform_option(replace(candidate, bid=100.0, ask=102.0, theta=-12.5))
        assert safe["risk_flags"] == {"theta_risk": True, "liquidity": "poor"}

    def test_helpers(self):
        assert theta_risk(-10.5)
        assert not theta_risk(-10.0)
        assert not theta_risk(None)
        assert liquidity_label(0.99) == "good"
        assert liquidity_label(1.0) == "poor"


class TestMarketTransform:

    def test_defaults(self):
        assert transform_market(None) == {
            "session_phase": "unknown",
            "volatility_regime": "unknown",
            "vix": None,
            "event_risk": [],
            "no_trade_reason": None,
        }


# =============================================================================
# Brief
# =============================================================================

class TestStructuredBrief:

    def test_sections(self, brief):
        data = brief.to_dict()
        assert set(data) == {"symbol", "tf_15m", "tf_5m", "tf_1m", "option_strikes", "market_conditions"}
        assert data["symbol"] == "NIFTY"
        assert len(data["option_strikes"]) == 1
        assert brief.timeframe("5m") is brief.tf_5m
        assert brief.timeframe("4h") is None

    def test_serializes_to_json(self, brief):
        assert json.loads(brief.to_json())["tf_1m"]["trigger"]["status"] == "confirmed"

    def test_no_candle_data_leaks(self, brief):
        text = brief.to_json()
        assert '"open"' not in text
        assert '"close"' not in text
        assert "ema_9" not in text

    def test_summary(self, brief):
        lines = summarize_brief(brief)
        assert lines[0].startswith("15m: bullish (strong)")
        assert "22500 CE" in lines[-1]

    def test_empty_candidates(self, tf_15m_bullish, tf_5m_pullback, tf_1m_confirmed):
        brief = build_brief("NIFTY", tf_15m_bullish, tf_5m_pullback, tf_1m_confirmed)
        assert brief.option_strikes == ()
        assert brief.market_conditions["session_phase"] == "unknown"


class TestRawSeriesGuard:

    def test_long_numeric_list_rejected(self):
        with pytest.raises(ValueError, match="numeric series"):
            assert_no_raw_series({"tf_15m": {"closes": [float(i) for i in range(20)]}})

    def test_candle_record_rejected(self):
        with pytest.raises(ValueError, match="candle"):
            assert_no_raw_series({"last": {"open": 1, "high": 2, "low": 0.5, "close": 1.5}})

    def test_short_lists_allowed(self):
        assert_no_raw_series({"event_risk": ["expiry_day"], "zone": [98.0, 102.0]})
