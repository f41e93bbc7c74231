#!/usr/bin/env python3
"""
TA Agent: Reporting

Console and JSON rendering of a PipelineResult.
"""
import json

from colorama import Fore, Style

from pipeline.types import GATE_ORDER, Decision, PipelineResult


WIDTH = 60

DECISION_COLORS = {
    Decision.ENTER: Fore.GREEN,
    Decision.WAIT: Fore.YELLOW,
    Decision.NO_TRADE: Fore.RED,
}


def _price(value) -> str:
    return "-" if value is None else f"{value:,.2f}"


def _gates_line(passed) -> str:
    marks = []
    for gate in GATE_ORDER:
        if gate in passed:
            marks.append(f"{Fore.GREEN}{gate} ✓{Style.RESET_ALL}")
        else:
            marks.append(f"{Fore.RED}{gate} ✗{Style.RESET_ALL}")
    return "  ".join(marks)


def render_console(result: PipelineResult) -> str:
    """Human-readable, colored summary of one run."""
    rec = result.recommendation
    color = DECISION_COLORS[rec.decision]
    lines = [
        "=" * WIDTH,
        f"{Fore.CYAN}  {result.symbol}  {result.timestamp:%Y-%m-%d %H:%M:%S}{Style.RESET_ALL}",
        "=" * WIDTH,
        f"  Gates: {_gates_line(result.gates_passed)}",
    ]

    headline = f"{color}{rec.decision.value.upper()}{Style.RESET_ALL}"
    if rec.direction:
        strike = f" {rec.strike:g}" if rec.strike is not None else ""
        headline += f" {rec.direction}{strike}"
    lines.append(f"  Decision: {headline} | confidence {rec.confidence:.2f} ({rec.source})")

    if rec.entry_zone or rec.stop_loss is not None:
        zone = f"{_price(rec.entry_zone[0])} - {_price(rec.entry_zone[1])}" if rec.entry_zone else "-"
        targets = ", ".join(_price(t) for t in rec.targets) or "-"
        lines.append(f"  Entry: {zone} | Stop: {_price(rec.stop_loss)} | Targets: {targets}")
    lines.append(f"  Rationale: {rec.rationale}")

    if result.candidates:
        lines.append("-" * WIDTH)
        lines.append("  Candidates:")
        for c in result.candidates:
            lines.append(
                f"    {c.strike:g} {c.option_type} {c.moneyness:<5} score={c.score:4.1f} "
                f"spread={c.spread_pct:.2f}% ltp={_price(c.ltp)} delta={c.delta}"
            )

    if result.market:
        market = result.market
        lines.append("-" * WIDTH)
        lines.append(
            f"  Market: {market['session_phase']} session, VIX {market['volatility_regime']}"
            + (f" ({market['vix']:.2f})" if market.get("vix") is not None else "")
        )
        if market.get("no_trade_reason"):
            lines.append(f"  {Fore.YELLOW}Caution: {market['no_trade_reason']}{Style.RESET_ALL}")

    if result.reasoning:
        r = result.reasoning
        lines.append(
            f"  Reasoning: {r['steps']} steps, stop: {r['stop_reason']}, "
            f"tools: {', '.join(r['tools_used']) or 'none'}"
        )
        for intent in r.get("order_intents", []):
            lines.append(
                f"  {Fore.MAGENTA}Order intent: {intent['side']} {intent['qty']} x "
                f"{intent['strike']:g} {intent['option_type']}{Style.RESET_ALL}"
            )

    if result.errors:
        lines.append("-" * WIDTH)
        for error in result.errors:
            lines.append(f"  {Fore.RED}Error: {error}{Style.RESET_ALL}")

    lines.append("=" * WIDTH)
    return "\n".join(lines)


def render_json(result: PipelineResult, indent: int = 2) -> str:
    return json.dumps(result.to_dict(), indent=indent, default=str)
