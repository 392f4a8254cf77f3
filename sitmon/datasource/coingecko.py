"""
CoinGecko API data source for cryptocurrency prices.

API Documentation: https://www.coingecko.com/en/api/documentation
Free tier: 10-30 calls/minute (no API key required)
"""

from datetime import datetime, timezone
from typing import Any

import httpx
from dateutil import parser as date_parser
from loguru import logger

from sitmon.analysis.types import MarketQuote, PricePoint, utcnow
from sitmon.datasource.base import MarketSource

# Default cryptocurrencies to track
CRYPTO_ASSETS = [
    {"id": "bitcoin", "symbol": "BTC", "name": "Bitcoin"},
    {"id": "ethereum", "symbol": "ETH", "name": "Ethereum"},
    {"id": "solana", "symbol": "SOL", "name": "Solana"},
    {"id": "ripple", "symbol": "XRP", "name": "XRP"},
    {"id": "cardano", "symbol": "ADA", "name": "Cardano"},
    {"id": "dogecoin", "symbol": "DOGE", "name": "Dogecoin"},
    {"id": "polkadot", "symbol": "DOT", "name": "Polkadot"},
    {"id": "avalanche-2", "symbol": "AVAX", "name": "Avalanche"},
    {"id": "chainlink", "symbol": "LINK", "name": "Chainlink"},
]


def _from_millis(ms: float) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).replace(tzinfo=None)


class CoinGeckoMarketSource(MarketSource):
    """
    CoinGecko API data source.

    Fetches 24h market snapshots and daily history using the free API.
    """

    BASE_URL = "https://api.coingecko.com/api/v3"
    SERVICE_ID = "coingecko"

    def __init__(
        self,
        assets: list[dict[str, str]] | None = None,
        history_days: int = 7,
        timeout: float = 20,
        client: httpx.AsyncClient | None = None,
    ):
        self.assets = assets or CRYPTO_ASSETS
        self.history_days = history_days
        self.timeout = timeout
        self._client = client

    @property
    def service_id(self) -> str:
        return self.SERVICE_ID

    async def _get(self, path: str, params: dict[str, Any]) -> Any:
        if self._client is not None:
            response = await self._client.get(f"{self.BASE_URL}{path}", params=params)
            response.raise_for_status()
            return response.json()

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(f"{self.BASE_URL}{path}", params=params)
            response.raise_for_status()
            return response.json()

    async def fetch(self) -> list[MarketQuote]:
        """
        Fetch market snapshots from CoinGecko.

        Returns:
            List of MarketQuote objects, empty when the request fails
        """
        try:
            data = await self._get(
                "/coins/markets",
                {
                    "vs_currency": "usd",
                    "ids": ",".join(asset["id"] for asset in self.assets),
                    "price_change_percentage": "24h",
                },
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Failed to fetch crypto prices: {e}")
            return []

        return self._transform_response(data)

    def _transform_response(self, data: list[dict[str, Any]]) -> list[MarketQuote]:
        """Transform CoinGecko response to MarketQuote models."""
        by_id = {row.get("id"): row for row in data}
        quotes = []

        for asset in self.assets:
            row = by_id.get(asset["id"])
            if not row or row.get("current_price") is None:
                continue

            updated = row.get("last_updated")
            timestamp = utcnow()
            if updated:
                timestamp = date_parser.parse(updated).astimezone(timezone.utc).replace(tzinfo=None)

            price = float(row["current_price"])
            change = float(row.get("price_change_24h") or 0)
            quotes.append(
                MarketQuote(
                    symbol=asset["symbol"],
                    name=asset["name"],
                    asset_type="crypto",
                    price=price,
                    change=change,
                    change_percent=float(row.get("price_change_percentage_24h") or 0),
                    volume=float(row.get("total_volume") or 0),
                    high_24h=row.get("high_24h"),
                    low_24h=row.get("low_24h"),
                    open_24h=price - change if change else None,
                    timestamp=timestamp,
                    source=self.SERVICE_ID,
                )
            )

        logger.info(f"Fetched {len(quotes)} crypto prices")
        return quotes

    async def fetch_history(self, symbols: list[str]) -> dict[str, list[PricePoint]]:
        """Daily close history for the tracked symbols among ``symbols``."""
        history: dict[str, list[PricePoint]] = {}
        wanted = {s.upper() for s in symbols}

        for asset in self.assets:
            if asset["symbol"] not in wanted:
                continue
            try:
                data = await self._get(
                    f"/coins/{asset['id']}/market_chart",
                    {"vs_currency": "usd", "days": self.history_days, "interval": "daily"},
                )
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(f"Failed to fetch history for {asset['symbol']}: {e}")
                continue

            volumes = {ts: vol for ts, vol in data.get("total_volumes", [])}
            history[asset["symbol"]] = [
                PricePoint(
                    timestamp=_from_millis(ts),
                    open=price,
                    high=price,
                    low=price,
                    close=price,
                    volume=volumes.get(ts, 0.0),
                )
                for ts, price in data.get("prices", [])
            ]

        logger.info(f"Fetched price history for {len(history)} symbols")
        return history
