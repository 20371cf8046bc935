"""TransactionOrchestrator: route a wallet to its sources, merge, price, report progress."""

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from decimal import Decimal

from walletfeed.domain.enums import Network, SyncStage
from walletfeed.domain.enums.network import UTXO_NETWORKS
from walletfeed.domain.models.progress import SyncProgress
from walletfeed.domain.models.source_batch import SourceBatch
from walletfeed.domain.models.transaction import CanonicalTransaction
from walletfeed.exceptions import UnsupportedNetworkError
from walletfeed.infra.price.service import PriceEnrichmentEngine, PricingItem
from walletfeed.infra.sources.base import ProgressCallback, is_evm_address
from walletfeed.pipeline.dedup import dedupe_batch
from walletfeed.pipeline.registry import AdapterRegistry

logger = logging.getLogger(__name__)


class TransactionOrchestrator:
    """Single-flow pipeline per wallet: adapter calls run sequentially.

    Stages: connecting → fetching (per adapter call) → processing → saving → complete.
    Nothing is persisted here; "saving" marks the hand-off to the caller.
    """

    def __init__(self, registry: AdapterRegistry, price_engine: PriceEnrichmentEngine | None = None) -> None:
        self._registry = registry
        self._price_engine = price_engine or registry.price_engine

    async def fetch_all_transactions(
        self,
        network: Network,
        address: str,
        limit: int = 100,
        on_progress: ProgressCallback | None = None,
        enrich: bool = False,
    ) -> list[CanonicalTransaction]:
        def report(event: SyncProgress) -> None:
            if on_progress is not None:
                on_progress(event)

        address = address.strip()
        report(SyncProgress(stage=SyncStage.CONNECTING, message=f"Connecting to {network.value}"))

        batch = await self._fetch(network, address, limit, on_progress)

        records = dedupe_batch(batch, limit=limit)
        report(SyncProgress(
            stage=SyncStage.PROCESSING,
            transactions_found=len(records),
            message=f"Processing {len(records)} unique transactions ({batch.total} fetched)",
        ))

        if enrich and self._price_engine is not None:
            await self._price_engine.enrich(records)

        report(SyncProgress(stage=SyncStage.SAVING, transactions_found=len(records), message="Handing off results"))
        report(SyncProgress(
            stage=SyncStage.COMPLETE,
            transactions_found=len(records),
            message=f"Synced {len(records)} transactions",
            transactions=records,
        ))
        logger.info("Synced %d transactions for %s on %s", len(records), address, network.value)
        return records

    async def _fetch(
        self, network: Network, address: str, limit: int, on_progress: ProgressCallback | None
    ) -> SourceBatch:
        registry = self._registry

        if network in UTXO_NETWORKS:
            utxo = registry.utxo_for(network)
            if utxo is None:
                raise UnsupportedNetworkError(f"No UTXO source configured for {network.value}")
            return await utxo.fetch(network, address, limit=limit, on_progress=on_progress)

        explorer = registry.explorer_for(network)
        if explorer is not None and is_evm_address(address):
            # No fallback on this path: explorer failures reach the caller
            return await explorer.fetch(network, address, limit=limit, on_progress=on_progress)

        indexer = registry.indexer_for(network)
        if indexer is not None:
            try:
                return await indexer.fetch(network, address, limit=limit, on_progress=on_progress)
            except Exception as indexer_error:
                # The RPC scan matches H160 from/to fields, so SS58 accounts can never be found there
                rpc = registry.rpc_for(network) if is_evm_address(address) else None
                if rpc is None:
                    raise
                logger.warning(
                    "Indexer failed for %s on %s (%s), falling back to RPC block scan",
                    address, network.value, indexer_error,
                )
                try:
                    return await rpc.fetch(network, address, limit=limit, on_progress=on_progress)
                except Exception as rpc_error:
                    raise rpc_error from indexer_error

        raise UnsupportedNetworkError(f"Unsupported network/address combination: {network.value} {address}")

    async def stream(
        self,
        network: Network,
        address: str,
        limit: int = 100,
        enrich: bool = False,
    ) -> AsyncIterator[SyncProgress]:
        """Same run as fetch_all_transactions, delivered as an async stream of progress events.

        The last event is COMPLETE and carries the transactions. A failed run
        raises from the iterator after the events emitted so far.
        """
        queue: asyncio.Queue[SyncProgress | None] = asyncio.Queue()

        async def run() -> None:
            try:
                await self.fetch_all_transactions(
                    network, address, limit, on_progress=queue.put_nowait, enrich=enrich
                )
            finally:
                queue.put_nowait(None)

        task = asyncio.create_task(run())
        try:
            while True:
                event = await queue.get()
                if event is None:
                    break
                yield event
            await task
        finally:
            if not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

    async def batch_calculate_usd_values(self, items: list[PricingItem]) -> list[Decimal | None]:
        if self._price_engine is None:
            return [None] * len(items)
        return await self._price_engine.batch_calculate_usd_values(items)
