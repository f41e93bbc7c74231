#!/usr/bin/env python3
"""
TA Agent: Market Data

DhanHQ v2 REST collaborator for the pipeline.

Features:
- Intraday OHLCV candles (1m / 5m / 15m)
- Option chain for the nearest expiry, with greeks and OI
- Last traded price (used for India VIX)

All failures surface as DataSourceError. There are no retries here.
"""
import time
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence, Union

import httpx

from errors import DataSourceError


logger = logging.getLogger(__name__)


DHAN_API_BASE = "https://api.dhan.co/v2"

# Index underlyings: symbol -> (security id, exchange segment)
INDEX_INSTRUMENTS = {
    "NIFTY": ("13", "IDX_I"),
    "BANKNIFTY": ("25", "IDX_I"),
    "FINNIFTY": ("27", "IDX_I"),
    "MIDCPNIFTY": ("442", "IDX_I"),
    "SENSEX": ("51", "IDX_I"),
    "INDIAVIX": ("21", "IDX_I"),
}

VALID_INTERVALS = ("1", "5", "15", "25", "60")

DateLike = Union[date, datetime, str]


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class Candle:
    """One OHLCV bar."""
    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


@dataclass(frozen=True)
class OptionQuote:
    """One side (CE or PE) of one strike in an option chain."""
    strike: float
    option_type: str            # "CE" or "PE"
    bid: Optional[float]
    ask: Optional[float]
    ltp: Optional[float]
    delta: Optional[float] = None
    gamma: Optional[float] = None
    theta: Optional[float] = None
    vega: Optional[float] = None
    iv: Optional[float] = None
    iv_change: Optional[float] = None   # fractional change vs previous session
    oi: Optional[float] = None
    previous_oi: Optional[float] = None
    volume: Optional[float] = None

    @property
    def oi_change(self) -> Optional[float]:
        """Fractional OI change vs previous session."""
        if self.oi is None or not self.previous_oi:
            return None
        return (self.oi - self.previous_oi) / self.previous_oi


@dataclass(frozen=True)
class OptionChain:
    """Normalized option chain for one expiry."""
    symbol: str
    spot: Optional[float]
    expiry: Optional[str]
    expiries: List[str] = field(default_factory=list)
    quotes: List[OptionQuote] = field(default_factory=list)

    @property
    def strikes(self) -> List[float]:
        return sorted({q.strike for q in self.quotes})


# =============================================================================
# CLIENT
# =============================================================================

class DhanClient:
    """
    Thin DhanHQ v2 client.

    Usage:
        client = DhanClient(client_id="...", access_token="...")
        candles = client.fetch_candles("NIFTY", "15", from_date, to_date)
        chain = client.fetch_option_chain("NIFTY")
    """

    def __init__(
        self,
        client_id: str,
        access_token: str,
        base_url: str = DHAN_API_BASE,
        timeout: float = 10.0,
        connect_timeout: float = 5.0,
        security_ids: Optional[Dict[str, Sequence[str]]] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            client_id: Dhan client id
            access_token: Dhan access token
            base_url: API base URL
            timeout: Overall request timeout in seconds
            connect_timeout: Connect timeout in seconds
            security_ids: Extra symbol -> (security id, segment) mappings
            transport: Optional httpx transport (tests)
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = httpx.Timeout(timeout, connect=connect_timeout)
        self._headers = {
            "access-token": access_token,
            "client-id": client_id,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        self._transport = transport
        self._instruments = dict(INDEX_INSTRUMENTS)
        for symbol, ids in (security_ids or {}).items():
            self._instruments[symbol.upper()] = tuple(ids)

        # Sync client (created on first use)
        self._client: Optional[httpx.Client] = None

    def _get_client(self) -> httpx.Client:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.Client(
                base_url=self._base_url,
                headers=self._headers,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    def close(self):
        """Close the HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def _instrument(self, symbol: str):
        instrument = self._instruments.get(symbol.upper())
        if instrument is None:
            raise DataSourceError(f"Instrument not found for symbol: {symbol}")
        return instrument

    def _post(self, path: str, payload: Dict[str, Any]) -> Any:
        start_time = time.time()
        try:
            response = self._get_client().post(path, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise DataSourceError(
                f"Dhan API error on {path}: {e.response.status_code} - {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise DataSourceError(f"Dhan request to {path} failed: {e}") from e
        except ValueError as e:
            raise DataSourceError(f"Dhan returned invalid JSON on {path}: {e}") from e

        logger.debug(f"POST {path} took {(time.time() - start_time) * 1000:.0f}ms")
        return data

    # -------------------------------------------------------------------------
    # Candles
    # -------------------------------------------------------------------------

    def fetch_candles(
        self,
        symbol: str,
        timeframe: str,
        from_date: DateLike,
        to_date: DateLike,
    ) -> List[Candle]:
        """
        Fetch intraday OHLCV candles.

        Args:
            symbol: Underlying symbol (e.g., "NIFTY")
            timeframe: Interval in minutes ("1", "5", "15", ...)
            from_date: Start date
            to_date: End date

        Returns:
            Candles ordered oldest first

        Raises:
            DataSourceError: On any fetch or decode failure
        """
        interval = str(timeframe)
        if interval not in VALID_INTERVALS:
            raise DataSourceError(f"Unsupported timeframe '{timeframe}'")

        security_id, segment = self._instrument(symbol)
        payload = {
            "securityId": security_id,
            "exchangeSegment": segment,
            "instrument": "INDEX" if segment == "IDX_I" else "EQUITY",
            "interval": interval,
            "fromDate": _normalize_date(from_date),
            "toDate": _normalize_date(to_date),
        }
        data = self._post("/charts/intraday", payload)
        candles = transform_candles(data)
        logger.info(f"Fetched {len(candles)} {interval}m candles for {symbol.upper()}")
        return candles

    # -------------------------------------------------------------------------
    # Option chain
    # -------------------------------------------------------------------------

    def fetch_expiries(self, symbol: str) -> List[str]:
        """List option expiries for an underlying, nearest first."""
        security_id, segment = self._instrument(symbol)
        data = self._post("/optionchain/expirylist", {
            "UnderlyingScrip": int(security_id),
            "UnderlyingSeg": segment,
        })
        expiries = data.get("data") if isinstance(data, dict) else None
        if not isinstance(expiries, list):
            raise DataSourceError(f"Malformed expiry list for {symbol}")
        return sorted(str(e) for e in expiries)

    def fetch_option_chain(self, symbol: str, expiry: Optional[str] = None) -> OptionChain:
        """
        Fetch the option chain for an expiry (nearest when omitted).

        Raises:
            DataSourceError: On any fetch or decode failure
        """
        security_id, segment = self._instrument(symbol)
        expiries = self.fetch_expiries(symbol)
        selected = expiry or (expiries[0] if expiries else None)
        if selected is None:
            return OptionChain(symbol=symbol.upper(), spot=None, expiry=None, expiries=[])

        data = self._post("/optionchain", {
            "UnderlyingScrip": int(security_id),
            "UnderlyingSeg": segment,
            "Expiry": selected,
        })
        chain = transform_option_chain(symbol.upper(), selected, expiries, data)
        logger.info(
            f"Fetched option chain for {chain.symbol} {selected}: "
            f"{len(chain.quotes)} quotes, spot={chain.spot}"
        )
        return chain

    # -------------------------------------------------------------------------
    # Quotes
    # -------------------------------------------------------------------------

    def fetch_quote(self, symbol: str) -> Optional[float]:
        """Last traded price for a symbol, or None when the feed has none."""
        security_id, segment = self._instrument(symbol)
        data = self._post("/marketfeed/ltp", {segment: [int(security_id)]})
        try:
            entry = data["data"][segment][str(security_id)]
            return float(entry["last_price"])
        except (KeyError, TypeError, ValueError):
            return None


# =============================================================================
# TRANSFORMS
# =============================================================================

def _normalize_date(value: DateLike) -> str:
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, str):
        return value
    raise DataSourceError(f"Invalid date value: {value!r}")


def _float_or_none(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def transform_candles(data: Any) -> List[Candle]:
    """
    Convert Dhan's columnar candle payload into Candle rows.

    The shortest column decides the row count.
    """
    if not isinstance(data, dict):
        raise DataSourceError("Malformed candle payload")

    columns = [data.get(k) or [] for k in ("timestamp", "open", "high", "low", "close")]
    volumes = data.get("volume") or []
    length = min(len(c) for c in columns)

    candles = []
    for i in range(length):
        try:
            candles.append(Candle(
                timestamp=int(columns[0][i]),
                open=float(columns[1][i]),
                high=float(columns[2][i]),
                low=float(columns[3][i]),
                close=float(columns[4][i]),
                volume=float(volumes[i]) if i < len(volumes) and volumes[i] is not None else 0.0,
            ))
        except (TypeError, ValueError) as e:
            raise DataSourceError(f"Malformed candle at row {i}: {e}") from e
    return candles


def _quote_from_side(strike: float, option_type: str, side: Dict[str, Any]) -> OptionQuote:
    greeks = side.get("greeks") or {}
    return OptionQuote(
        strike=strike,
        option_type=option_type,
        bid=_float_or_none(side.get("top_bid_price")),
        ask=_float_or_none(side.get("top_ask_price")),
        ltp=_float_or_none(side.get("last_price")),
        delta=_float_or_none(greeks.get("delta")),
        gamma=_float_or_none(greeks.get("gamma")),
        theta=_float_or_none(greeks.get("theta")),
        vega=_float_or_none(greeks.get("vega")),
        iv=_float_or_none(side.get("implied_volatility")),
        iv_change=_float_or_none(side.get("iv_change")),
        oi=_float_or_none(side.get("oi")),
        previous_oi=_float_or_none(side.get("previous_oi")),
        volume=_float_or_none(side.get("volume")),
    )


def transform_option_chain(
    symbol: str,
    expiry: str,
    expiries: List[str],
    data: Any,
) -> OptionChain:
    """Convert Dhan's option chain payload into an OptionChain."""
    body = data.get("data") if isinstance(data, dict) else None
    if not isinstance(body, dict):
        raise DataSourceError(f"Malformed option chain payload for {symbol}")

    quotes: List[OptionQuote] = []
    for strike_key, sides in (body.get("oc") or {}).items():
        strike = _float_or_none(strike_key)
        if strike is None or not isinstance(sides, dict):
            continue
        for key, option_type in (("ce", "CE"), ("pe", "PE")):
            if isinstance(sides.get(key), dict):
                quotes.append(_quote_from_side(strike, option_type, sides[key]))

    quotes.sort(key=lambda q: (q.strike, q.option_type))
    return OptionChain(
        symbol=symbol,
        spot=_float_or_none(body.get("last_price")),
        expiry=expiry,
        expiries=list(expiries),
        quotes=quotes,
    )
