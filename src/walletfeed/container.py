from dependency_injector import containers, providers

from walletfeed.config import Settings
from walletfeed.pipeline.orchestrator import TransactionOrchestrator
from walletfeed.pipeline.registry import AdapterRegistry


class Container(containers.DeclarativeContainer):
    wiring_config = containers.WiringConfiguration(modules=["walletfeed.api.deps"])

    settings = providers.Singleton(Settings)

    registry = providers.Singleton(
        AdapterRegistry.from_settings,
        settings=settings,
    )

    orchestrator = providers.Singleton(
        TransactionOrchestrator,
        registry=registry,
    )
