from dependency_injector.wiring import Provide, inject
from fastapi import Depends, HTTPException

from walletfeed.container import Container
from walletfeed.infra.price.service import PriceEnrichmentEngine
from walletfeed.pipeline.orchestrator import TransactionOrchestrator
from walletfeed.pipeline.registry import AdapterRegistry


@inject
def get_registry(
    registry: AdapterRegistry = Depends(Provide[Container.registry]),
) -> AdapterRegistry:
    return registry


@inject
def get_orchestrator(
    orchestrator: TransactionOrchestrator = Depends(Provide[Container.orchestrator]),
) -> TransactionOrchestrator:
    return orchestrator


def get_price_engine(registry: AdapterRegistry = Depends(get_registry)) -> PriceEnrichmentEngine:
    if registry.price_engine is None:
        raise HTTPException(status_code=503, detail="Price provider not configured")
    return registry.price_engine
