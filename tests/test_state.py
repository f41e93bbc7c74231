#!/usr/bin/env python3
"""
Loop State Unit Tests

Immutable transitions, bounded history and memory, the tool-result cache
and the stop conditions.
"""
import sys
import pytest
from dataclasses import FrozenInstanceError
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from brain.state import LoopLimits, LoopState, evaluate_stop
from brain.types import LLMResponse, ParsedResponse, ResponseKind, ToolResult


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def state():
    return LoopState(goal="Analyse NIFTY")


@pytest.fixture
def limits():
    return LoopLimits(max_steps=3, extra_steps=2, min_confidence=0.3, max_tool_errors=5)


def text(content, confidence=None):
    return ParsedResponse(kind=ResponseKind.TEXT, content=content, confidence=confidence)


# =============================================================================
# Transitions
# =============================================================================

class TestTransitions:

    def test_state_is_frozen(self, state):
        with pytest.raises(FrozenInstanceError):
            state.step_count = 4

    def test_model_response_returns_new_state(self, state):
        after = state.append_model_response(LLMResponse(content="Looking at 15m"))

        assert state.step_count == 0
        assert state.history == ()
        assert after.step_count == 1
        assert after.history == ({"role": "assistant", "content": "Looking at 15m"},)

    def test_tool_calls_kept_on_assistant_message(self, state):
        call = {"name": "check_risk_window", "arguments": {}}
        after = state.append_model_response(LLMResponse(tool_calls=[call]))
        assert after.history[0]["tool_calls"] == [call]
        assert after.history[0]["content"] == ""

    def test_tool_result_updates_memory_and_errors(self, state):
        after = state.append_tool_result("check_risk_window", ToolResult.ok({"safe_to_trade": True}))
        after = after.append_tool_result("nope", ToolResult.fail("Unknown tool 'nope'", "unknown_tool"))

        assert after.tools_used == ("check_risk_window", "nope")
        assert after.tool_errors == 1
        assert after.last_tool_result.error == "Unknown tool 'nope'"
        assert after.history[0]["role"] == "tool"
        assert after.history[0]["name"] == "check_risk_window"
        assert after.step_count == 0
        assert state.memory == ()

    def test_history_is_bounded(self):
        state = LoopState(goal="g", max_history_items=3)
        for i in range(5):
            state = state.append_model_response(LLMResponse(content=f"reply {i}"))

        assert len(state.history) == 3
        assert [m["content"] for m in state.history] == ["reply 2", "reply 3", "reply 4"]
        assert state.step_count == 5

    def test_memory_is_bounded(self):
        state = LoopState(goal="g", max_memory_items=2)
        for name in ("a", "b", "c"):
            state = state.append_tool_result(name, ToolResult.ok())
        assert state.tools_used == ("b", "c")

    def test_assistant_messages(self, state):
        after = state.append_model_response(LLMResponse(content="one"))
        after = after.append_tool_result("t", ToolResult.ok())
        assert [m["content"] for m in after.assistant_messages()] == ["one"]


# =============================================================================
# Cache
# =============================================================================

class TestCache:

    def test_symbol_case_shares_key(self):
        assert LoopState.cache_key("t", {"symbol": "nifty"}) == LoopState.cache_key("t", {"symbol": "NIFTY"})

    def test_argument_order_does_not_matter(self):
        assert LoopState.cache_key("t", {"a": 1, "b": "x"}) == LoopState.cache_key("t", {"b": "x", "a": 1})

    def test_non_alphanumeric_strings_untouched(self):
        assert LoopState.cache_key("t", {"note": "a-b"}) != LoopState.cache_key("t", {"note": "A-B"})

    def test_tool_name_is_part_of_key(self):
        assert LoopState.cache_key("a", {}) != LoopState.cache_key("b", {})
        assert LoopState.cache_key("a", None) == LoopState.cache_key("a", {})

    def test_put_cached_returns_new_state(self, state):
        result = ToolResult.ok({"count": 1})
        after = state.put_cached("get_option_candidates", {}, result)

        assert after.get_cached("get_option_candidates", {}) is result
        assert state.get_cached("get_option_candidates", {}) is None


# =============================================================================
# Stop conditions
# =============================================================================

class TestEvaluateStop:

    def test_final_answer(self, state, limits):
        decision = evaluate_stop(state, ParsedResponse(kind=ResponseKind.FINAL, content="done"), limits)
        assert decision.stop
        assert decision.reason == "final answer"

    def test_tool_error_threshold(self, limits):
        state = LoopState(goal="g", tool_errors=5, step_count=1)
        decision = evaluate_stop(state, text("retrying"), limits)
        assert decision.stop
        assert decision.reason == "too many tool errors (5)"

    def test_low_confidence(self, limits):
        state = LoopState(goal="g", step_count=1)
        decision = evaluate_stop(state, text("unsure", confidence=0.2), limits)
        assert decision.reason == "confidence too low (0.20)"

    def test_continues_below_step_limit(self, limits):
        state = LoopState(goal="g", step_count=2)
        assert not evaluate_stop(state, text("Still thinking about it."), limits).stop

    def test_step_limit(self, limits):
        state = LoopState(goal="g", step_count=3)
        decision = evaluate_stop(state, text("Still thinking about it."), limits)
        assert decision.stop
        assert decision.reason == "step limit reached (3)"

    def test_continue_request_extends_limit(self, limits):
        wants_more = text("I need more data, let me continue.")
        assert not evaluate_stop(LoopState(goal="g", step_count=3), wants_more, limits).stop
        assert not evaluate_stop(LoopState(goal="g", step_count=4), wants_more, limits).stop

        decision = evaluate_stop(LoopState(goal="g", step_count=5), wants_more, limits)
        assert decision.stop
        assert decision.reason == "extended step limit reached (5)"

    def test_from_config(self):
        class Config:
            max_steps = 4
            extra_steps = 1
            min_confidence = 0.4
            max_tool_errors = 2

        assert LoopLimits.from_config(Config()) == LoopLimits(4, 1, 0.4, 2)
