from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query

from walletfeed.api.deps import get_price_engine
from walletfeed.api.schemas.transactions import HistoricalPriceResponse, UsdValuesRequest, UsdValuesResponse
from walletfeed.infra.price.coingecko import parse_coingecko_date
from walletfeed.infra.price.service import PriceEnrichmentEngine, PricingItem

router = APIRouter(prefix="/api/prices", tags=["prices"])

EngineDep = Annotated[PriceEnrichmentEngine, Depends(get_price_engine)]


@router.post("/usd-values", response_model=UsdValuesResponse)
async def usd_values(body: UsdValuesRequest, engine: EngineDep) -> UsdValuesResponse:
    items = [PricingItem(**item.model_dump()) for item in body.items]
    values = await engine.batch_calculate_usd_values(items)
    return UsdValuesResponse(values=values)


@router.get("/{coin_id}/history", response_model=HistoricalPriceResponse)
async def historical_price(
    coin_id: str,
    engine: EngineDep,
    date: str = Query(..., description="DD-MM-YYYY"),
) -> HistoricalPriceResponse:
    try:
        parse_coingecko_date(date)
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Invalid date {date!r}, expected DD-MM-YYYY")
    price = await engine.provider.get_historical_price(coin_id, date)
    return HistoricalPriceResponse(coin_id=coin_id, price=price, currency="usd", date=date)
