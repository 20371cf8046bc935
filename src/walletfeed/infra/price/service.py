"""PriceEnrichmentEngine: historical USD values for canonical transactions, batched per day."""

import logging
from collections import defaultdict
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel

from walletfeed.domain.models.transaction import CanonicalTransaction
from walletfeed.infra.price.coingecko import CoinGeckoProvider, get_coingecko_id, to_coingecko_date

logger = logging.getLogger(__name__)


class PricingItem(BaseModel):
    """An amount already scaled to whole tokens (DOT, not planck)."""

    amount: Decimal
    token_symbol: str
    timestamp: datetime


class PriceEnrichmentEngine:
    """Price orchestrator: group by (date, coin) → one batch lookup per date → multiply."""

    def __init__(self, provider: CoinGeckoProvider) -> None:
        self._provider = provider

    @property
    def provider(self) -> CoinGeckoProvider:
        return self._provider

    async def calculate_usd_value(self, item: PricingItem) -> Decimal | None:
        coin_id = get_coingecko_id(item.token_symbol)
        if coin_id is None:
            logger.warning("No CoinGecko ID found for %s", item.token_symbol)
            return None
        try:
            price = await self._provider.get_historical_price(coin_id, to_coingecko_date(item.timestamp))
        except Exception:
            logger.warning("Failed to price %s at %s", item.token_symbol, item.timestamp, exc_info=True)
            return None
        return item.amount * price

    async def batch_calculate_usd_values(self, items: list[PricingItem]) -> list[Decimal | None]:
        """USD value per item, in input order; None where no price could be resolved."""
        results: list[Decimal | None] = [None] * len(items)
        if not items:
            return results

        # date → coin id → item indices
        groups: dict[str, dict[str, list[int]]] = defaultdict(lambda: defaultdict(list))
        for index, item in enumerate(items):
            coin_id = get_coingecko_id(item.token_symbol)
            if coin_id is None:
                continue
            groups[to_coingecko_date(item.timestamp)][coin_id].append(index)

        for date_str, by_coin in groups.items():
            prices = await self._provider.get_batch_historical_prices(list(by_coin), date_str)
            for coin_id, indices in by_coin.items():
                price = prices.get(coin_id)
                if price is None:
                    continue
                for index in indices:
                    results[index] = items[index].amount * price

        priced = sum(1 for value in results if value is not None)
        logger.info("Priced %d/%d items across %d dates", priced, len(items), len(groups))
        return results

    async def enrich(self, records: list[CanonicalTransaction]) -> list[CanonicalTransaction]:
        """Set usd_value on each record whose asset and date resolve to a price."""
        items = [
            PricingItem(amount=tx.amount, token_symbol=tx.asset_symbol, timestamp=tx.timestamp)
            for tx in records
        ]
        values = await self.batch_calculate_usd_values(items)
        for tx, value in zip(records, values):
            tx.usd_value = value
        return records
