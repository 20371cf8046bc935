from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from walletfeed.domain.models.transaction import CanonicalTransaction


class TransactionList(BaseModel):
    network: str
    address: str
    transactions: list[CanonicalTransaction]
    total: int
    limit: int


class PricingItemRequest(BaseModel):
    amount: Decimal
    token_symbol: str
    timestamp: datetime


class UsdValuesRequest(BaseModel):
    items: list[PricingItemRequest]


class UsdValuesResponse(BaseModel):
    values: list[Optional[Decimal]]


class HistoricalPriceResponse(BaseModel):
    coin_id: str
    price: Decimal
    currency: str
    date: str
