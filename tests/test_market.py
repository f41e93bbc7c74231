#!/usr/bin/env python3
"""
Market Conditions Unit Tests
"""
import sys
import pytest
from datetime import datetime, timezone
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from pipeline.market import IST, assess_market, session_phase, volatility_regime

from conftest import SESSION_NOW


def at(hour, minute):
    return datetime(2026, 10, 16, hour, minute, tzinfo=IST)


class TestSessionPhase:

    @pytest.mark.parametrize("hour,minute,phase", [
        (9, 0, "pre_open"),
        (9, 15, "open"),
        (10, 59, "open"),
        (11, 0, "mid"),
        (13, 59, "mid"),
        (14, 0, "close"),
        (15, 29, "close"),
        (15, 30, "closed"),
    ])
    def test_boundaries(self, hour, minute, phase):
        assert session_phase(at(hour, minute)) == phase

    def test_converts_to_exchange_time(self):
        # 06:00 UTC is 11:30 IST
        assert session_phase(datetime(2026, 10, 16, 6, 0, tzinfo=timezone.utc)) == "mid"


class TestVolatilityRegime:

    @pytest.mark.parametrize("vix,regime", [
        (11.9, "low"), (12.0, "normal"), (20.0, "normal"), (20.1, "high"), (None, "unknown"),
    ])
    def test_bands(self, vix, regime):
        assert volatility_regime(vix) == regime


class TestAssessMarket:

    def test_quiet_session(self):
        market = assess_market(SESSION_NOW, vix=14.0, expiry="2026-10-20", bias="bullish")
        assert market.session_phase == "mid"
        assert market.volatility_regime == "normal"
        assert market.event_risk == []
        assert market.no_trade_reason is None

    def test_expiry_day(self):
        market = assess_market(SESSION_NOW, vix=14.0, expiry="2026-10-16", bias="bullish")
        assert market.event_risk == ["expiry_day"]
        assert market.no_trade_reason == "expiry day"

    def test_malformed_expiry_is_ignored(self):
        assert assess_market(SESSION_NOW, expiry="soon", bias="bullish").event_risk == []

    def test_major_event(self):
        market = assess_market(SESSION_NOW, vix=14.0, bias="bullish", events=["RBI policy"])
        assert market.event_risk == ["RBI policy"]
        assert market.no_trade_reason == "major event: RBI policy"

    def test_last_half_hour(self):
        market = assess_market(at(15, 10), vix=14.0, bias="bearish")
        assert market.session_phase == "close"
        assert market.no_trade_reason == "last 30 minutes of session"

    def test_low_vix_sideways(self):
        assert assess_market(SESSION_NOW, vix=11.0, bias="neutral").no_trade_reason == "low VIX with sideways bias"
        assert assess_market(SESSION_NOW, vix=11.0, bias="bullish").no_trade_reason is None

    def test_reasons_are_joined(self):
        market = assess_market(at(15, 10), vix=11.0, expiry="2026-10-16", bias="neutral")
        assert market.no_trade_reasons == [
            "expiry day", "last 30 minutes of session", "low VIX with sideways bias",
        ]
        assert market.no_trade_reason.count("; ") == 2

    def test_to_dict(self):
        data = assess_market(SESSION_NOW, vix=None, expiry="2026-10-20").to_dict()
        assert data == {
            "session_phase": "mid",
            "volatility_regime": "unknown",
            "vix": None,
            "expiry": "2026-10-20",
            "event_risk": [],
            "no_trade_reason": None,
        }
