#!/usr/bin/env python3
"""
TA Agent Pipeline: Orchestrator

Runs the four-stage gate for one symbol and produces exactly one
Recommendation:

    15m context -> 5m setup -> option chain -> 1m trigger -> brief
                                                        -> reasoning loop | deterministic

Each stage fetches once and is an early exit. run() never raises; any
failure ends as a no-trade recommendation with the reason in `errors`.
"""
import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from brain.context import build_brief, summarize_brief
from brain.loop import ReasoningLoop
from brain.providers.base import LLMProvider
from brain.state import LoopLimits
from brain.tools import ToolMode
from config import AgentConfig
from errors import DataSourceError
from .market import assess_market, now_ist
from .options import screen_chain
from .recommendation import adjudicate, deterministic_recommendation
from .timeframes import TimeframeAnalyzer
from .tools import build_tool_registry
from .types import (
    GATE_15M,
    GATE_1M,
    GATE_5M,
    GATE_OPTIONS,
    PipelineResult,
    Recommendation,
    Status,
)


logger = logging.getLogger(__name__)


VIX_SYMBOL = "INDIAVIX"

REASON_15M = "15m: trade not allowed"
REASON_5M = "5m: setup not ready"
REASON_OPTIONS = "options: no liquid strikes"
REASON_1M = "1m: entry not confirmed"


class TradingPipeline:
    """
    Gate pipeline for one symbol per run.

    Usage:
        pipeline = TradingPipeline(config, DhanClient(...), provider)
        result = pipeline.run("NIFTY")
        print(result.recommendation.decision)
    """

    def __init__(
        self,
        config: AgentConfig,
        data_source,
        provider: Optional[LLMProvider] = None,
        analyzer: Optional[TimeframeAnalyzer] = None,
        clock: Callable[[], datetime] = now_ist,
        use_llm: bool = True,
        events: Sequence[str] = (),
    ):
        """
        Args:
            config: Agent configuration
            data_source: fetch_candles / fetch_option_chain / fetch_quote collaborator
            provider: LLM provider; None runs the deterministic path
            analyzer: Timeframe analyzer (built over data_source if None)
            clock: Returns the current exchange time
            use_llm: False forces the deterministic path
            events: Scheduled major events for today (e.g., "RBI policy")
        """
        self._config = config
        self._source = data_source
        self._provider = provider if use_llm else None
        self._analyzer = analyzer or TimeframeAnalyzer(data_source, clock=clock)
        self._clock = clock
        self._events = tuple(events)

    def run(self, symbol: str) -> PipelineResult:
        """
        Run all gates for a symbol.

        Returns:
            PipelineResult; recommendation is no_trade when any gate fails
        """
        symbol = symbol.upper()
        result = PipelineResult(symbol=symbol, recommendation=Recommendation.no_trade("run did not complete"))
        logger.info(f"{'=' * 20} {symbol} {'=' * 20}")
        try:
            result.timestamp = self._clock()
            self._run(symbol, result)
        except Exception as e:
            logger.error(f"Pipeline failed for {symbol}: {e}", exc_info=True)
            result.errors.append(f"unexpected error: {type(e).__name__}: {e}")
            result.recommendation = Recommendation.no_trade(
                f"pipeline error: {e}", tuple(result.gates_passed)
            )

        rec = result.recommendation
        logger.info(
            f"{symbol}: {rec.decision.value.upper()} (confidence {rec.confidence:.2f}, "
            f"gates {result.gates_passed or 'none'})"
        )
        return result

    def _stop(self, result: PipelineResult, reason: str) -> None:
        logger.info(f"Gate failed -> {reason}")
        result.recommendation = Recommendation.no_trade(reason, tuple(result.gates_passed))

    def _pass(self, result: PipelineResult, gate: str) -> None:
        logger.info(f"Gate passed: {gate}")
        result.gates_passed.append(gate)

    def _record(self, result: PipelineResult, ctx) -> None:
        result.timeframes[ctx.timeframe] = ctx
        if ctx.status is Status.ERROR:
            result.errors.append(f"{ctx.timeframe}: {ctx.error}")

    def _run(self, symbol: str, result: PipelineResult) -> None:
        # 15m: context
        tf_15m = self._analyzer.build_15m(symbol)
        self._record(result, tf_15m)
        logger.info(f"15m: {tf_15m.status.value} bias={tf_15m.bias} strength={tf_15m.strength}")
        if not (tf_15m.is_complete and tf_15m.gate):
            return self._stop(result, REASON_15M)
        self._pass(result, GATE_15M)

        # 5m: setup
        tf_5m = self._analyzer.build_5m(symbol, tf_15m.bias)
        self._record(result, tf_5m)
        logger.info(f"5m: {tf_5m.status.value} setup={tf_5m.signal} invalidations={list(tf_5m.invalidations)}")
        if not (tf_5m.is_complete and tf_5m.gate):
            return self._stop(result, REASON_5M)
        self._pass(result, GATE_5M)

        # Options: feasibility
        try:
            chain = self._source.fetch_option_chain(symbol)
        except DataSourceError as e:
            logger.warning(f"Option chain fetch failed for {symbol}: {e}")
            result.errors.append(f"options: {e}")
            return self._stop(result, REASON_OPTIONS)
        screen = screen_chain(chain, tf_15m.bias, self._config.max_spread_pct)
        result.candidates = list(screen.candidates)
        if not screen.candidates:
            return self._stop(result, REASON_OPTIONS)
        self._pass(result, GATE_OPTIONS)

        # 1m: trigger
        tf_1m = self._analyzer.build_1m(symbol, tf_15m.bias)
        self._record(result, tf_1m)
        logger.info(f"1m: {tf_1m.status.value} signal={tf_1m.signal}")
        if not (tf_1m.is_complete and tf_1m.gate):
            return self._stop(result, REASON_1M)
        self._pass(result, GATE_1M)

        # All gates passed
        market = assess_market(
            self._clock(),
            vix=self._fetch_vix(),
            expiry=screen.expiry,
            bias=tf_15m.bias,
            events=self._events,
        )
        result.market = market.to_dict()
        brief = build_brief(symbol, tf_15m, tf_5m, tf_1m, result.candidates, result.market)
        result.brief = brief.to_dict()
        for line in summarize_brief(brief):
            logger.info(f"  {line}")

        base = deterministic_recommendation(
            tf_15m, tf_5m, tf_1m, result.candidates, tuple(result.gates_passed)
        )
        if market.no_trade_reason:
            base = replace(base, rationale=f"{base.rationale}; caution: {market.no_trade_reason}")

        if self._provider is None:
            logger.info("Reasoning disabled, using deterministic recommendation")
            result.recommendation = base
            return

        result.recommendation = self._reason(symbol, brief, base, result)

    def _fetch_vix(self) -> Optional[float]:
        fetch_quote = getattr(self._source, "fetch_quote", None)
        if fetch_quote is None:
            return None
        try:
            return fetch_quote(VIX_SYMBOL)
        except DataSourceError as e:
            logger.warning(f"VIX unavailable: {e}")
            return None

    def _reason(self, symbol, brief, base: Recommendation, result: PipelineResult) -> Recommendation:
        mode = ToolMode(self._config.tool_mode)
        # Intents belong to this run only
        intents: List[Dict[str, Any]] = []
        registry = build_tool_registry(brief, mode, intents)
        loop = ReasoningLoop(
            self._provider,
            registry,
            LoopLimits.from_config(self._config),
            max_memory_items=self._config.max_memory_items,
            max_history_items=self._config.max_history_items,
        )
        goal = (
            f"All gates passed for {symbol} ({base.direction}). Decide whether to enter now, "
            f"wait, or stand aside, choose one of the listed strikes and state your confidence."
        )
        outcome = loop.run(goal, brief.to_dict())
        result.order_intents = intents
        result.reasoning = {**outcome.to_dict(), "order_intents": list(intents)}

        if not outcome.success:
            logger.warning(f"Reasoning failed, using deterministic recommendation: {outcome.error}")
            result.errors.append(f"reasoning: {outcome.error}")
            return base
        return adjudicate(base, outcome.answer, outcome.confidence, result.candidates)
