"""
Market Data Relay Module

Stateless REST client for the public Binance market-data API. Responses are
relayed to callers as-is (klines) or reshaped into a compact ticker view
(markets). Nothing here touches the ledger.
"""

import httpx
import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from .errors import MarketDataUnavailable

logger = logging.getLogger("trading_ledger.market_data")


DEFAULT_SYMBOLS = [
    "BTCUSDT", "ETHUSDT", "BNBUSDT", "XRPUSDT", "ADAUSDT",
    "SOLUSDT", "DOGEUSDT", "TRXUSDT", "LTCUSDT", "DOTUSDT",
]


class MarketDataClient:
    """REST client for candle and 24h ticker data"""

    def __init__(
        self,
        base_url: str = "https://api.binance.com",
        timeout: float = 10.0,
        default_symbols: Optional[Sequence[str]] = None,
        transport: Optional[httpx.BaseTransport] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.default_symbols = list(default_symbols or DEFAULT_SYMBOLS)
        self._client = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)

    def get_klines(self, symbol: Optional[str] = None, interval: Optional[str] = None,
                   limit: Optional[int] = None) -> List[Any]:
        """Candles for a symbol, relayed unchanged"""
        params = {
            "symbol": symbol or "BTCUSDT",
            "interval": interval or "1m",
            "limit": limit or 100,
        }
        return self._get("/api/v3/klines", params, "klines_fetch_failed")

    def get_markets(self, symbols: Optional[Sequence[str]] = None) -> List[Dict[str, Any]]:
        """
        24h ticker summary for a list of symbols

        Returns:
            [{symbol, price, changePercent, high, low, volume}, ...]
        """
        symbols = list(symbols or self.default_symbols)
        params = {"symbols": json.dumps(symbols, separators=(",", ":"))}
        data = self._get("/api/v3/ticker/24hr", params, "market_fetch_failed")

        try:
            return [
                {
                    "symbol": m["symbol"],
                    "price": m["lastPrice"],
                    "changePercent": m["priceChangePercent"],
                    "high": m["highPrice"],
                    "low": m["lowPrice"],
                    "volume": m["volume"],
                }
                for m in data
            ]
        except (KeyError, TypeError) as e:
            logger.error(f"Unexpected ticker payload: {e}")
            raise MarketDataUnavailable("market_fetch_failed")

    def _get(self, path: str, params: Dict[str, Any], failure: str) -> Any:
        try:
            response = self._client.get(path, params=params)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Market data request {path} failed: {e}")
            raise MarketDataUnavailable(failure)

    def close(self):
        """Close the HTTP client"""
        self._client.close()
