#!/usr/bin/env python3
"""
TA Agent Pipeline: Option Chain Feasibility

Filters a raw chain down to the one or two contracts worth showing the
reasoning loop. Only ATM and one strike either side, on the side that
matches the 15m bias, with a two-sided quote and a tolerable spread.
"""
import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional

from market_data import OptionChain, OptionQuote
from .scoring import score, spread_pct
from .types import OptionCandidate


logger = logging.getLogger(__name__)


MAX_CANDIDATES = 2
IV_TREND_THRESHOLD = 0.02
OI_TREND_THRESHOLD = 0.05


@dataclass
class OptionScreen:
    """Result of screening one option chain."""
    candidates: List[OptionCandidate] = field(default_factory=list)
    considered: int = 0
    expiry: Optional[str] = None
    spot: Optional[float] = None
    status: str = "complete"            # complete, no_data, error
    error: Optional[str] = None

    @property
    def filtered_count(self) -> int:
        return self.considered - len(self.candidates)


def side_for_bias(bias: str) -> Optional[str]:
    if bias == "bullish":
        return "CE"
    if bias == "bearish":
        return "PE"
    return None


def iv_trend(iv_change: Optional[float]) -> str:
    if iv_change is None:
        return "stable"
    if iv_change > IV_TREND_THRESHOLD:
        return "rising"
    if iv_change < -IV_TREND_THRESHOLD:
        return "falling"
    return "stable"


def oi_trend(oi_change: Optional[float]) -> str:
    if oi_change is None:
        return "stable"
    if oi_change > OI_TREND_THRESHOLD:
        return "building"
    if oi_change < -OI_TREND_THRESHOLD:
        return "unwinding"
    return "stable"


def moneyness(strike: float, atm: float, option_type: str) -> str:
    if strike == atm:
        return "ATM"
    below = strike < atm
    # A CE below spot is in the money; a PE below spot is out of it
    in_the_money = below if option_type == "CE" else not below
    return "ITM+1" if in_the_money else "OTM+1"


def _nearby_strikes(strikes: List[float], spot: float) -> List[float]:
    """ATM strike plus one step on each side."""
    atm_index = min(range(len(strikes)), key=lambda i: (abs(strikes[i] - spot), strikes[i]))
    return strikes[max(atm_index - 1, 0):atm_index + 2]


def _to_candidate(quote: OptionQuote, atm: float, chain: OptionChain) -> OptionCandidate:
    candidate = OptionCandidate(
        symbol=chain.symbol,
        strike=quote.strike,
        option_type=quote.option_type,
        moneyness=moneyness(quote.strike, atm, quote.option_type),
        bid=quote.bid,
        ask=quote.ask,
        ltp=quote.ltp,
        spread_pct=spread_pct(quote.bid, quote.ask),
        delta=quote.delta,
        gamma=quote.gamma,
        theta=quote.theta,
        vega=quote.vega,
        iv=quote.iv,
        iv_change=quote.iv_change,
        iv_trend=iv_trend(quote.iv_change),
        oi_change=quote.oi_change,
        oi_trend=oi_trend(quote.oi_change),
        expiry=chain.expiry,
    )
    return replace(candidate, score=score(candidate))


def screen_chain(chain: OptionChain, bias: str, max_spread_pct: float) -> OptionScreen:
    """
    Filter and score an option chain.

    Args:
        chain: Normalized option chain
        bias: 15m bias ("bullish" / "bearish")
        max_spread_pct: Widest acceptable bid/ask spread in percent

    Returns:
        OptionScreen with at most MAX_CANDIDATES candidates, best first
    """
    side = side_for_bias(bias)
    screen = OptionScreen(expiry=chain.expiry, spot=chain.spot)

    if not chain.quotes or chain.spot is None:
        screen.status = "no_data"
        screen.error = "option chain is empty or has no spot price"
        return screen
    if side is None:
        screen.error = f"no option side for bias '{bias}'"
        return screen

    strikes = chain.strikes
    nearby = _nearby_strikes(strikes, chain.spot)
    atm = min(strikes, key=lambda s: (abs(s - chain.spot), s))

    survivors = []
    for quote in chain.quotes:
        if quote.option_type != side or quote.strike not in nearby:
            continue
        screen.considered += 1
        if not quote.bid or not quote.ask:
            logger.debug(f"Skip {quote.strike} {side}: one-sided quote")
            continue
        spread = spread_pct(quote.bid, quote.ask)
        if spread > max_spread_pct:
            logger.debug(f"Skip {quote.strike} {side}: spread {spread:.2f}% > {max_spread_pct}%")
            continue
        survivors.append(_to_candidate(quote, atm, chain))

    survivors.sort(key=lambda c: (-c.score, c.spread_pct, c.strike))
    screen.candidates = survivors[:MAX_CANDIDATES]

    logger.info(
        f"Option screen {chain.symbol} {side}: ATM={atm:g}, "
        f"{screen.considered} considered, {len(screen.candidates)} kept"
    )
    return screen
