#!/usr/bin/env python3
"""
TA Agent Brain Module

Bounded, tool-calling reasoning over a structured brief.

Main Components:
- ReasoningLoop: ReAct loop over an LLM provider
- ToolRegistry: schema-checked tool catalog with alert/live safety mode
- LoopState: immutable loop state, cache and stop conditions
- ResponseParser: tool-call extraction chain
- StructuredBrief: the only payload the model ever sees

Usage:
    from brain import ReasoningLoop, ToolRegistry, LoopLimits

    loop = ReasoningLoop(provider, registry, LoopLimits())
    result = loop.run(goal, brief.to_dict())
"""
from .types import LLMResponse, ParsedResponse, ResponseKind, ToolResult, LoopResult
from .tools import ToolRegistry, ToolMode, ToolDefinition
from .state import LoopState, LoopLimits, evaluate_stop
from .parser import ResponseParser, extract_confidence
from .context import StructuredBrief, build_brief
from .loop import ReasoningLoop
from .prompts import get_system_prompt, get_system_prompt_version


__all__ = [
    # Main class
    "ReasoningLoop",
    # Types
    "LLMResponse",
    "ParsedResponse",
    "ResponseKind",
    "ToolResult",
    "LoopResult",
    # Tools
    "ToolRegistry",
    "ToolMode",
    "ToolDefinition",
    # State
    "LoopState",
    "LoopLimits",
    "evaluate_stop",
    # Components
    "ResponseParser",
    "extract_confidence",
    "StructuredBrief",
    "build_brief",
    # Prompts
    "get_system_prompt",
    "get_system_prompt_version",
]
