from typing import Annotated

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from walletfeed.api.deps import get_orchestrator
from walletfeed.api.schemas.transactions import TransactionList
from walletfeed.config import settings
from walletfeed.domain.enums import Network
from walletfeed.pipeline.orchestrator import TransactionOrchestrator

router = APIRouter(prefix="/api/wallets", tags=["wallets"])

OrchestratorDep = Annotated[TransactionOrchestrator, Depends(get_orchestrator)]


@router.get("/{network}/{address}/transactions", response_model=TransactionList)
async def list_transactions(
    network: Network,
    address: str,
    orchestrator: OrchestratorDep,
    limit: int = Query(settings.default_limit, ge=1, le=1000),
    enrich: bool = Query(False, description="Attach historical USD values"),
) -> TransactionList:
    records = await orchestrator.fetch_all_transactions(network, address, limit=limit, enrich=enrich)
    return TransactionList(
        network=network.value,
        address=address,
        transactions=records,
        total=len(records),
        limit=limit,
    )


@router.get("/{network}/{address}/sync")
async def sync_wallet(
    network: Network,
    address: str,
    orchestrator: OrchestratorDep,
    limit: int = Query(settings.default_limit, ge=1, le=1000),
    enrich: bool = Query(False),
) -> StreamingResponse:
    """Newline-delimited JSON progress events; the final COMPLETE event carries the transactions."""

    async def events():
        async for event in orchestrator.stream(network, address, limit=limit, enrich=enrich):
            yield event.model_dump_json() + "\n"

    return StreamingResponse(events(), media_type="application/x-ndjson")
