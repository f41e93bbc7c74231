#!/usr/bin/env python3
"""
TA Agent Brain Module: Prompts

System prompt for the reasoning loop and the user message that carries
the structured brief.
"""
import json
from typing import Any, Dict, List, Mapping

# Version identifier for tracking prompt changes
SYSTEM_PROMPT_VERSION = "1.2.0"


SYSTEM_PROMPT_BASE = """You are an options analyst for Indian index markets (NIFTY, BANKNIFTY, SENSEX).

You are a VALIDATOR, not a trader. Every hard gate has already passed:
- 15m context allowed options buying
- 5m setup is valid with no invalidations
- the option chain produced liquid, pre-scored strikes
- the 1m entry trigger is confirmed

The brief below contains pre-computed facts only. Never ask for candles,
never compute indicators. All math is done; your job is judgement.

## AVAILABLE TOOLS
{tools}

## HOW TO WORK
1. OBSERVE: read the brief. Most answers need no tools at all.
2. ACT: call ONE tool at a time, only if a fact you need is not in the brief.
3. DECIDE: stop as soon as you can judge the trade.

Never call the same tool twice with the same arguments; results are cached
and you will receive the same answer.

You have a soft limit of {max_steps} steps. If you truly need more, say
"need more" and explain what is missing.

## FINAL ANSWER FORMAT
Start with "Final answer:" and include:
- Decision: enter / wait / no trade
- Strike: one of the candidate strikes
- Confidence: a number between 0 and 1
- Reasoning: what aligns, what conflicts, what would invalidate the trade

## GUIDING PRINCIPLES
- If signals conflict: lower your confidence
- Wide spreads, theta risk and event days are reasons to wait
- Missing a trade costs nothing; a bad entry costs money"""


MODE_NOTES = {
    "alert": "Current mode: alert. Execution tools are DISABLED; analysis only.",
    "live": "Current mode: live. Execution tools are ENABLED; use only when explicitly authorized.",
}


def format_tool_list(tool_schema: List[Dict[str, Any]]) -> str:
    lines = []
    for tool in tool_schema:
        fn = tool["function"]
        props = fn.get("parameters", {}).get("properties", {})
        params = ", ".join(f"{k}: {v.get('type')}" for k, v in props.items())
        lines.append(f"- {fn['name']}({params}): {fn['description']}")
    return "\n".join(lines) or "- (none)"


def get_system_prompt(tool_schema: List[Dict[str, Any]], mode: str = "alert", max_steps: int = 3) -> str:
    """Return the complete system prompt for a run."""
    prompt = SYSTEM_PROMPT_BASE.format(tools=format_tool_list(tool_schema), max_steps=max_steps)
    return f"{prompt}\n\n{MODE_NOTES.get(mode, MODE_NOTES['alert'])}"


def get_system_prompt_version() -> str:
    """Return the system prompt version identifier."""
    return SYSTEM_PROMPT_VERSION


def build_user_message(goal: str, brief: Mapping[str, Any]) -> str:
    return (
        f"GOAL: {goal}\n\n"
        f"STRUCTURED BRIEF:\n{json.dumps(brief, indent=2, default=str)}\n\n"
        "What would you like to do next? Call a tool or give your final answer."
    )
