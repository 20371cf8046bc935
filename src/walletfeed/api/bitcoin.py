from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query

from walletfeed.api.deps import get_registry
from walletfeed.api.schemas.bitcoin import AddressBalance, XpubBalancesResponse
from walletfeed.domain.enums import AddressType
from walletfeed.infra.sources.utxo.xpub import XpubInfo, XpubPortfolio, derive_addresses, parse_xpub
from walletfeed.pipeline.registry import AdapterRegistry

router = APIRouter(prefix="/api/bitcoin", tags=["bitcoin"])

RegistryDep = Annotated[AdapterRegistry, Depends(get_registry)]


@router.get("/xpub/{xpub}", response_model=XpubInfo)
async def xpub_info(xpub: str) -> XpubInfo:
    return parse_xpub(xpub)


@router.get("/xpub/{xpub}/addresses", response_model=XpubPortfolio)
async def xpub_addresses(
    xpub: str,
    receiving_count: int = Query(20, ge=0, le=200),
    change_count: int = Query(10, ge=0, le=200),
    address_type: AddressType | None = Query(None, description="Override, e.g. taproot for an xpub"),
) -> XpubPortfolio:
    return derive_addresses(xpub, receiving_count, change_count, address_type=address_type)


@router.get("/xpub/{xpub}/balances", response_model=XpubBalancesResponse)
async def xpub_balances(xpub: str, registry: RegistryDep) -> XpubBalancesResponse:
    info = parse_xpub(xpub)
    utxo = registry.utxo_for(info.network)
    if utxo is None:
        raise HTTPException(status_code=503, detail=f"No UTXO source configured for {info.network.value}")
    results = await utxo.fetch_xpub_balances(xpub)
    return XpubBalancesResponse(
        xpub=xpub,
        addresses=[AddressBalance(address=derived, balance=balance) for derived, balance in results],
        total_balance=sum(balance.balance for _, balance in results),
    )
