#!/usr/bin/env python3
"""
TA Agent Brain Module: Loop State

Immutable state for one reasoning loop run. Every update returns a new
LoopState; nothing is mutated in place.
"""
import json
import re
import time
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional, Tuple

from .types import LLMResponse, ParsedResponse, ToolResult


DEFAULT_MAX_MEMORY_ITEMS = 50
DEFAULT_MAX_HISTORY_ITEMS = 10

_ALNUM = re.compile(r"^[A-Za-z0-9]+$")
CONTINUE_PATTERN = re.compile(r"continue|need more|still missing|one more", re.IGNORECASE)


@dataclass(frozen=True)
class LoopLimits:
    """Stop-condition bounds."""
    max_steps: int = 3
    extra_steps: int = 2
    min_confidence: float = 0.3
    max_tool_errors: int = 5

    @classmethod
    def from_config(cls, config) -> "LoopLimits":
        return cls(
            max_steps=config.max_steps,
            extra_steps=config.extra_steps,
            min_confidence=config.min_confidence,
            max_tool_errors=config.max_tool_errors,
        )


@dataclass(frozen=True)
class MemoryEntry:
    tool: str
    result: ToolResult
    timestamp: float


@dataclass(frozen=True)
class StopDecision:
    stop: bool
    reason: Optional[str] = None


@dataclass(frozen=True)
class LoopState:
    """
    Single source of truth for one loop run.

    history holds role-tagged messages (assistant and tool) after the
    system and user prompts; memory holds tool invocations and results.
    Both are bounded.
    """
    goal: str
    mode: str = "alert"
    step_count: int = 0
    history: Tuple[Dict[str, Any], ...] = ()
    memory: Tuple[MemoryEntry, ...] = ()
    cache: Mapping[str, ToolResult] = field(default_factory=dict)
    tool_errors: int = 0
    max_memory_items: int = DEFAULT_MAX_MEMORY_ITEMS
    max_history_items: int = DEFAULT_MAX_HISTORY_ITEMS

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def append_model_response(self, response: LLMResponse) -> "LoopState":
        message = {"role": "assistant", "content": response.content or ""}
        if response.tool_calls:
            message["tool_calls"] = [dict(c) for c in response.tool_calls]
        return replace(
            self,
            step_count=self.step_count + 1,
            history=self._trim_history(self.history + (message,)),
        )

    def append_tool_result(self, tool_name: str, result: ToolResult) -> "LoopState":
        message = {"role": "tool", "name": tool_name, "content": result.to_message()}
        entry = MemoryEntry(tool=tool_name, result=result, timestamp=time.time())
        memory = (self.memory + (entry,))[-self.max_memory_items:]
        return replace(
            self,
            history=self._trim_history(self.history + (message,)),
            memory=memory,
            tool_errors=self.tool_errors + (0 if result.success else 1),
        )

    def _trim_history(self, history: Tuple[Dict[str, Any], ...]) -> Tuple[Dict[str, Any], ...]:
        return history[-self.max_history_items:]

    # -------------------------------------------------------------------------
    # Cache
    # -------------------------------------------------------------------------

    @staticmethod
    def cache_key(tool_name: str, arguments: Optional[Mapping[str, Any]]) -> str:
        """
        Canonical key for (tool, arguments).

        Keys become strings, alphanumeric string values are upper-cased and
        the mapping is serialized with sorted keys, so {"symbol": "nifty"}
        and {"symbol": "NIFTY"} share a key.
        """
        normalized = {}
        for key, value in (arguments or {}).items():
            if isinstance(value, str) and _ALNUM.match(value):
                value = value.upper()
            normalized[str(key)] = value
        return f"{tool_name}:{json.dumps(normalized, sort_keys=True, default=str)}"

    def get_cached(self, tool_name: str, arguments: Optional[Mapping[str, Any]]) -> Optional[ToolResult]:
        return self.cache.get(self.cache_key(tool_name, arguments))

    def put_cached(self, tool_name: str, arguments: Optional[Mapping[str, Any]], result: ToolResult) -> "LoopState":
        cache = dict(self.cache)
        cache[self.cache_key(tool_name, arguments)] = result
        return replace(self, cache=cache)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def last_tool_result(self) -> Optional[ToolResult]:
        return self.memory[-1].result if self.memory else None

    @property
    def tools_used(self) -> Tuple[str, ...]:
        return tuple(m.tool for m in self.memory)

    def assistant_messages(self) -> Tuple[Dict[str, Any], ...]:
        return tuple(m for m in self.history if m["role"] == "assistant")


def evaluate_stop(state: LoopState, parsed: ParsedResponse, limits: LoopLimits) -> StopDecision:
    """
    Decide whether the loop stops after the latest response.

    Order: explicit final answer, tool error threshold, low reported
    confidence, then the step limit. Past max_steps the loop may run up to
    extra_steps more only while the model says it needs to continue.
    """
    if parsed.is_final:
        return StopDecision(True, "final answer")

    if state.tool_errors >= limits.max_tool_errors:
        return StopDecision(True, f"too many tool errors ({state.tool_errors})")

    if parsed.confidence is not None and parsed.confidence < limits.min_confidence:
        return StopDecision(True, f"confidence too low ({parsed.confidence:.2f})")

    if state.step_count >= limits.max_steps:
        hard_limit = limits.max_steps + limits.extra_steps
        wants_more = bool(CONTINUE_PATTERN.search(parsed.content or ""))
        if not wants_more:
            return StopDecision(True, f"step limit reached ({limits.max_steps})")
        if state.step_count >= hard_limit:
            return StopDecision(True, f"extended step limit reached ({hard_limit})")

    return StopDecision(False)
