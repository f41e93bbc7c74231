#!/usr/bin/env python3
"""
TA Agent Brain Module: Reasoning Loop

ReAct-style loop: ask the model, parse the reply, run at most one tool,
feed the result back, repeat until a stop condition fires.

    awaiting model --> tool call --> (cache | registry) --> awaiting model
                   --> text      --> awaiting model
                   --> final     --> done

The loop never raises for model or tool failures. A model failure ends the
run with LoopResult(success=False); the caller falls back to its
deterministic path.
"""
import logging
import re
from typing import Any, Dict, List, Mapping, Optional

from errors import ReasoningError
from .parser import ResponseParser, extract_confidence
from .prompts import build_user_message, get_system_prompt
from .providers.base import LLMProvider
from .state import LoopLimits, LoopState, evaluate_stop
from .tools import ToolRegistry
from .types import LoopResult, ParsedResponse


logger = logging.getLogger(__name__)


# Replies that only describe a tool call are not answers
TOOL_CALL_SHAPED = re.compile(
    r'^\s*\{\s*"(?:name|tool_calls|function)"|```json\s*\{\s*"name"', re.IGNORECASE
)
TOOL_DESCRIPTION = re.compile(r"would recommend calling|i should call|need to call|i will call", re.IGNORECASE)
MIN_ANSWER_LENGTH = 30


class ReasoningLoop:
    """
    Drives one model conversation over a StructuredBrief.

    Usage:
        loop = ReasoningLoop(provider, registry, LoopLimits.from_config(config))
        result = loop.run(goal, brief.to_dict())
    """

    def __init__(
        self,
        provider: LLMProvider,
        registry: ToolRegistry,
        limits: Optional[LoopLimits] = None,
        max_memory_items: int = 50,
        max_history_items: int = 10,
    ):
        self._provider = provider
        self._registry = registry
        self._limits = limits or LoopLimits()
        self._parser = ResponseParser(tool_names=registry.names())
        self._max_memory_items = max_memory_items
        self._max_history_items = max_history_items
        self.state: Optional[LoopState] = None

    def _messages(self, state: LoopState, system_prompt: str, user_message: str) -> List[Dict[str, Any]]:
        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_message},
            *state.history,
        ]

    def run(self, goal: str, brief: Mapping[str, Any]) -> LoopResult:
        """
        Run the loop to completion.

        Args:
            goal: What the model is asked to decide
            brief: StructuredBrief as a dict

        Returns:
            LoopResult
        """
        state = LoopState(
            goal=goal,
            mode=self._registry.mode.value,
            max_memory_items=self._max_memory_items,
            max_history_items=self._max_history_items,
        )
        tools = self._registry.to_schema()
        system_prompt = get_system_prompt(tools, self._registry.mode.value, self._limits.max_steps)
        user_message = build_user_message(goal, brief)

        logger.info(f"Reasoning loop starting ({self._provider.provider_name}/{self._provider.model_name})")
        logger.info(f"Goal: {goal}")

        while True:
            step = state.step_count + 1
            try:
                response = self._provider.chat(self._messages(state, system_prompt, user_message), tools)
            except ReasoningError as e:
                logger.error(f"Step {step}: model call failed: {e}")
                self.state = state
                return LoopResult.failure(str(e), steps=state.step_count)

            parsed = self._parser.parse(response)
            state = state.append_model_response(response)
            logger.info(f"Step {step}: {parsed.kind.value}" + (f" -> {parsed.tool_name}" if parsed.is_tool_call else ""))
            if parsed.content:
                logger.debug(f"Step {step} content: {parsed.content[:200]}")

            if parsed.is_tool_call:
                state = self._dispatch(state, parsed)

            decision = evaluate_stop(state, parsed, self._limits)
            if decision.stop:
                self.state = state
                return self._finish(state, decision.reason)

    def _dispatch(self, state: LoopState, parsed: ParsedResponse) -> LoopState:
        name, arguments = parsed.tool_name, parsed.arguments
        cached = state.get_cached(name, arguments)
        if cached is not None:
            logger.info(f"Using cached result for {name}")
            return state.append_tool_result(name, cached)

        logger.info(f"Executing tool: {name} {arguments}")
        result = self._registry.execute(name, arguments)
        if not result.success:
            logger.warning(f"Tool '{name}' failed ({result.error_kind}): {result.error}")
        return state.put_cached(name, arguments, result).append_tool_result(name, result)

    def _finish(self, state: LoopState, reason: str) -> LoopResult:
        answer = self.extract_answer(state)
        confidence = extract_confidence(answer)
        logger.info(
            f"Reasoning loop done: {reason} | steps={state.step_count} "
            f"tools={list(state.tools_used) or 'none'} errors={state.tool_errors}"
        )
        return LoopResult(
            success=True,
            answer=answer,
            stop_reason=reason,
            steps=state.step_count,
            confidence=confidence,
            tools_used=list(state.tools_used),
            tool_errors=state.tool_errors,
        )

    @staticmethod
    def extract_answer(state: LoopState) -> str:
        """
        The last substantive assistant message that is not a tool call; a
        summary of tool activity when there is none.
        """
        for message in reversed(state.assistant_messages()):
            content = (message.get("content") or "").strip()
            if not content or message.get("tool_calls"):
                continue
            if TOOL_CALL_SHAPED.search(content) or TOOL_DESCRIPTION.search(content):
                continue
            if len(content) < MIN_ANSWER_LENGTH:
                continue
            return content

        if state.memory:
            summary = ", ".join(
                f"{m.tool}: {'success' if m.result.success else 'error'}" for m in state.memory
            )
            return f"No final analysis was given. Tools executed: {summary}."
        return "No final answer provided."
