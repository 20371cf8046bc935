"""CoinGecko price provider: current and historical USD prices."""

import logging
from datetime import UTC, date, datetime
from decimal import Decimal

from walletfeed.domain.enums import Network
from walletfeed.exceptions import ExternalServiceError
from walletfeed.infra.http.rate_limited_client import RateLimitedClient

logger = logging.getLogger(__name__)

# Symbol → CoinGecko ID mapping
SYMBOL_TO_COINGECKO: dict[str, str] = {
    # Polkadot ecosystem
    "DOT": "polkadot",
    "KSM": "kusama",
    "GLMR": "moonbeam",
    "MOVR": "moonriver",
    "ASTR": "astar",
    "ACA": "acala",
    "AUSD": "acala-dollar",
    # Ethereum and stablecoins
    "ETH": "ethereum",
    "WETH": "weth",
    "USDC": "usd-coin",
    "USDT": "tether",
    "DAI": "dai",
    "BUSD": "binance-usd",
    # Others
    "BTC": "bitcoin",
    "WBTC": "wrapped-bitcoin",
    "MATIC": "matic-network",
    "BNB": "binancecoin",
    "SOL": "solana",
    "AVAX": "avalanche-2",
    "ATOM": "cosmos",
    "NEAR": "near",
    "FTM": "fantom",
    "ARB": "arbitrum",
    "OP": "optimism",
}

# L2s pay gas in ETH
NETWORK_NATIVE_COINS: dict[Network, str] = {
    Network.POLKADOT: "polkadot",
    Network.KUSAMA: "kusama",
    Network.MOONBEAM: "moonbeam",
    Network.MOONRIVER: "moonriver",
    Network.ASTAR: "astar",
    Network.ACALA: "acala",
    Network.ETHEREUM: "ethereum",
    Network.POLYGON: "matic-network",
    Network.ARBITRUM: "ethereum",
    Network.OPTIMISM: "ethereum",
    Network.BASE: "ethereum",
    Network.BSC: "binancecoin",
    Network.AVALANCHE: "avalanche-2",
    Network.BITCOIN: "bitcoin",
}

BASE_URL = "https://api.coingecko.com/api/v3"

DATE_FORMAT = "%d-%m-%Y"


def get_coingecko_id(symbol: str) -> str | None:
    return SYMBOL_TO_COINGECKO.get(symbol.upper())


def get_network_coingecko_id(network: Network) -> str | None:
    return NETWORK_NATIVE_COINS.get(network)


def to_coingecko_date(value: datetime | date | int | float) -> str:
    """Format as DD-MM-YYYY in UTC. Ints and floats are Unix seconds."""
    if isinstance(value, (int, float)):
        value = datetime.fromtimestamp(value, tz=UTC)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        value = value.astimezone(UTC).date()
    return value.strftime(DATE_FORMAT)


def parse_coingecko_date(text: str) -> datetime:
    """DD-MM-YYYY → midnight UTC of that day."""
    return datetime.strptime(text, DATE_FORMAT).replace(tzinfo=UTC)


class CoinGeckoProvider:
    """Fetch USD prices from the CoinGecko API.

    HTTP 429 back-off happens in the shared RateLimitedClient; anything else
    surfaces as ExternalServiceError.
    """

    def __init__(self, http_client: RateLimitedClient, api_key: str = "") -> None:
        self._http = http_client
        self._api_key = api_key

    def _params(self, **params: str) -> dict[str, str]:
        if self._api_key:
            params["x_cg_demo_api_key"] = self._api_key
        return params

    async def _get(self, path: str, params: dict[str, str]) -> dict:
        response = await self._http.get(f"{BASE_URL}{path}", params=params)
        if response.status_code != 200:
            raise ExternalServiceError(f"CoinGecko returned {response.status_code} for {path}")
        try:
            return response.json()
        except ValueError as e:
            raise ExternalServiceError(f"Invalid JSON from CoinGecko for {path}") from e

    async def get_current_prices(self, coin_ids: list[str], vs_currency: str = "usd") -> dict[str, Decimal]:
        """Current prices for several coins in one call; unknown ids are absent from the result."""
        if not coin_ids:
            return {}
        data = await self._get(
            "/simple/price", self._params(ids=",".join(coin_ids), vs_currencies=vs_currency)
        )
        prices: dict[str, Decimal] = {}
        for coin_id in coin_ids:
            value = (data.get(coin_id) or {}).get(vs_currency)
            if value is not None:
                prices[coin_id] = Decimal(str(value))
        return prices

    async def get_current_price(self, coin_id: str, vs_currency: str = "usd") -> Decimal:
        prices = await self.get_current_prices([coin_id], vs_currency)
        if coin_id not in prices:
            raise ExternalServiceError(f"No {vs_currency} price for {coin_id}")
        return prices[coin_id]

    async def get_historical_price(self, coin_id: str, date_str: str, vs_currency: str = "usd") -> Decimal:
        """Price on a calendar day (DD-MM-YYYY), from /coins/{id}/history."""
        data = await self._get(
            f"/coins/{coin_id}/history", self._params(date=date_str, localization="false")
        )
        value = ((data.get("market_data") or {}).get("current_price") or {}).get(vs_currency)
        if value is None:
            raise ExternalServiceError(f"No {vs_currency} price for {coin_id} on {date_str}")
        return Decimal(str(value))

    async def get_batch_historical_prices(
        self, coin_ids: list[str], date_str: str, vs_currency: str = "usd"
    ) -> dict[str, Decimal | None]:
        """Historical prices for several coins on one day.

        CoinGecko has no multi-coin history endpoint, so this issues one request
        per coin. A failed coin maps to None without failing the others.
        """
        prices: dict[str, Decimal | None] = {}
        for coin_id in coin_ids:
            try:
                prices[coin_id] = await self.get_historical_price(coin_id, date_str, vs_currency)
            except Exception:
                logger.warning("No historical price for %s on %s", coin_id, date_str, exc_info=True)
                prices[coin_id] = None
        return prices
