"""Tests for TransactionOrchestrator routing, fallback, merge and progress."""

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from walletfeed.domain.enums import DedupKey, Network, SyncStage
from walletfeed.domain.models.progress import SyncProgress
from walletfeed.domain.models.source_batch import SourceBatch
from walletfeed.exceptions import ExternalServiceError, MissingApiKeyError, UnsupportedNetworkError
from walletfeed.infra.price.service import PriceEnrichmentEngine, PricingItem
from walletfeed.infra.sources.base import is_evm_address
from walletfeed.infra.sources.etherscan.adapter import EtherscanAdapter
from walletfeed.infra.sources.rpc.adapter import RpcAdapter
from walletfeed.infra.sources.rpc.client import EvmRpcClient
from walletfeed.infra.sources.subscan.adapter import SubscanAdapter
from walletfeed.infra.sources.subscan.client import SubscanClient
from walletfeed.infra.sources.utxo.adapter import UtxoAdapter
from walletfeed.pipeline.orchestrator import TransactionOrchestrator
from walletfeed.pipeline.registry import AdapterRegistry

DOT_ADDRESS = "13UVJyLnbVp9RBZYFwFGyDvVd1y27Tt8tkntv6Q7JVPhFsTB"
EVM_ADDRESS = "0x" + "ab" * 20
BTC_ADDRESS = "bc1qcr8te4kr609gcawutmrza0j4xv80jy8z306fyu"


def _adapter(cls, networks: set[Network], batch: SourceBatch | None = None, error: Exception | None = None):
    adapter = MagicMock(spec=cls)
    adapter.supports.side_effect = lambda network: network in networks
    adapter.fetch = AsyncMock(return_value=batch or SourceBatch(), side_effect=error)
    return adapter


@pytest.fixture()
def batch(make_tx):
    return SourceBatch(
        primary=[make_tx("10-1", 10), make_tx("12-0", 12)],
        supplementary=[[make_tx("12-0", 12), make_tx("11-3", 11)]],
        dedup_key=DedupKey.ID,
    )


class TestIsEvmAddress:
    def test_evm(self):
        assert is_evm_address(EVM_ADDRESS)

    def test_substrate(self):
        assert not is_evm_address(DOT_ADDRESS)

    def test_short_hex(self):
        assert not is_evm_address("0x1234")


class TestRouting:
    async def test_substrate_uses_indexer(self, batch):
        indexer = _adapter(SubscanAdapter, {Network.POLKADOT}, batch)
        orchestrator = TransactionOrchestrator(AdapterRegistry(indexer=indexer))

        records = await orchestrator.fetch_all_transactions(Network.POLKADOT, DOT_ADDRESS)

        assert [tx.id for tx in records] == ["12-0", "11-3", "10-1"]
        indexer.fetch.assert_called_once()

    async def test_evm_address_on_explorer_chain(self, batch):
        indexer = _adapter(SubscanAdapter, {Network.MOONBEAM})
        explorer = _adapter(EtherscanAdapter, {Network.MOONBEAM}, batch)
        orchestrator = TransactionOrchestrator(AdapterRegistry(indexer=indexer, explorer=explorer))

        await orchestrator.fetch_all_transactions(Network.MOONBEAM, EVM_ADDRESS)

        explorer.fetch.assert_called_once()
        indexer.fetch.assert_not_called()

    async def test_non_evm_address_on_parachain_uses_indexer(self, batch):
        indexer = _adapter(SubscanAdapter, {Network.MOONBEAM}, batch)
        explorer = _adapter(EtherscanAdapter, {Network.MOONBEAM})
        orchestrator = TransactionOrchestrator(AdapterRegistry(indexer=indexer, explorer=explorer))

        await orchestrator.fetch_all_transactions(Network.MOONBEAM, "5Gxyz")

        indexer.fetch.assert_called_once()
        explorer.fetch.assert_not_called()

    async def test_explorer_failure_does_not_fall_back(self):
        explorer = _adapter(EtherscanAdapter, {Network.ETHEREUM}, error=ExternalServiceError("boom"))
        rpc = _adapter(RpcAdapter, {Network.ETHEREUM})
        orchestrator = TransactionOrchestrator(AdapterRegistry(explorer=explorer, rpc=rpc))

        with pytest.raises(ExternalServiceError):
            await orchestrator.fetch_all_transactions(Network.ETHEREUM, EVM_ADDRESS)

        rpc.fetch.assert_not_called()

    async def test_missing_explorer_key_reaches_caller(self):
        explorer = _adapter(EtherscanAdapter, {Network.ETHEREUM}, error=MissingApiKeyError("Etherscan", "set a key"))
        orchestrator = TransactionOrchestrator(AdapterRegistry(explorer=explorer))

        with pytest.raises(MissingApiKeyError):
            await orchestrator.fetch_all_transactions(Network.ETHEREUM, EVM_ADDRESS)

    async def test_bitcoin_uses_utxo(self, batch):
        utxo = _adapter(UtxoAdapter, {Network.BITCOIN}, batch)
        orchestrator = TransactionOrchestrator(AdapterRegistry(utxo=utxo))

        await orchestrator.fetch_all_transactions(Network.BITCOIN, BTC_ADDRESS, limit=5)

        utxo.fetch.assert_called_once()
        assert utxo.fetch.call_args.kwargs["limit"] == 5

    async def test_bitcoin_without_utxo_source(self):
        orchestrator = TransactionOrchestrator(AdapterRegistry())

        with pytest.raises(UnsupportedNetworkError):
            await orchestrator.fetch_all_transactions(Network.BITCOIN, BTC_ADDRESS)

    async def test_no_source_for_network(self):
        indexer = _adapter(SubscanAdapter, {Network.POLKADOT})
        orchestrator = TransactionOrchestrator(AdapterRegistry(indexer=indexer))

        with pytest.raises(UnsupportedNetworkError):
            await orchestrator.fetch_all_transactions(Network.POLYGON, EVM_ADDRESS)


class TestFallback:
    async def test_indexer_failure_falls_back_to_rpc(self, batch):
        indexer = _adapter(SubscanAdapter, {Network.ASTAR}, error=ExternalServiceError("subscan down"))
        rpc = _adapter(RpcAdapter, {Network.ASTAR}, batch)
        orchestrator = TransactionOrchestrator(AdapterRegistry(indexer=indexer, rpc=rpc))

        records = await orchestrator.fetch_all_transactions(Network.ASTAR, EVM_ADDRESS)

        assert len(records) == 3
        rpc.fetch.assert_called_once()

    async def test_both_fail_chains_errors(self):
        indexer_error = ExternalServiceError("subscan down")
        rpc_error = ExternalServiceError("rpc down")
        indexer = _adapter(SubscanAdapter, {Network.ASTAR}, error=indexer_error)
        rpc = _adapter(RpcAdapter, {Network.ASTAR}, error=rpc_error)
        orchestrator = TransactionOrchestrator(AdapterRegistry(indexer=indexer, rpc=rpc))

        with pytest.raises(ExternalServiceError, match="rpc down") as exc_info:
            await orchestrator.fetch_all_transactions(Network.ASTAR, EVM_ADDRESS)

        assert exc_info.value.__cause__ is indexer_error

    async def test_no_rpc_reraises_indexer_error(self):
        indexer = _adapter(SubscanAdapter, {Network.POLKADOT}, error=ExternalServiceError("subscan down"))
        rpc = _adapter(RpcAdapter, {Network.ETHEREUM})
        orchestrator = TransactionOrchestrator(AdapterRegistry(indexer=indexer, rpc=rpc))

        with pytest.raises(ExternalServiceError, match="subscan down"):
            await orchestrator.fetch_all_transactions(Network.POLKADOT, DOT_ADDRESS)

        rpc.fetch.assert_not_called()

    async def test_substrate_address_skips_rpc(self):
        indexer = _adapter(SubscanAdapter, {Network.ASTAR}, error=ExternalServiceError("subscan down"))
        rpc = _adapter(RpcAdapter, {Network.ASTAR})
        orchestrator = TransactionOrchestrator(AdapterRegistry(indexer=indexer, rpc=rpc))

        with pytest.raises(ExternalServiceError, match="subscan down"):
            await orchestrator.fetch_all_transactions(Network.ASTAR, DOT_ADDRESS)

        rpc.fetch.assert_not_called()


class TestIndexerRpcEndToEnd:
    """Real SubscanAdapter and RpcAdapter behind the orchestrator, with mocked clients."""

    @staticmethod
    def _rpc_client(txs: list[dict]) -> MagicMock:
        client = MagicMock(spec=EvmRpcClient)
        client.get_block_number = AsyncMock(return_value=10)
        client.get_blocks = AsyncMock(side_effect=lambda numbers: [
            {"number": hex(n), "timestamp": hex(1700000000 + n), "transactions": txs if n == 10 else []}
            for n in numbers
        ])
        client.get_transaction_receipt = AsyncMock(return_value={"status": "0x1", "gasUsed": hex(21000)})
        return client

    def _orchestrator(self, rpc_client) -> TransactionOrchestrator:
        subscan = AsyncMock(spec=SubscanClient)
        subscan.get_transfers.side_effect = ExternalServiceError("subscan down")
        indexer = SubscanAdapter({Network.ASTAR: subscan})
        rpc = RpcAdapter({"astar": "https://evm.astar.example"}, lambda url: rpc_client)
        return TransactionOrchestrator(AdapterRegistry(indexer=indexer, rpc=rpc))

    async def test_substrate_account_gets_indexer_error(self):
        rpc_client = self._rpc_client([])

        with pytest.raises(ExternalServiceError, match="subscan down"):
            await self._orchestrator(rpc_client).fetch_all_transactions(Network.ASTAR, DOT_ADDRESS)

        rpc_client.get_block_number.assert_not_called()
        rpc_client.get_blocks.assert_not_called()

    async def test_evm_account_scanned_over_rpc(self):
        tx = {
            "hash": "0xfeed",
            "blockNumber": hex(10),
            "transactionIndex": hex(0),
            "from": EVM_ADDRESS,
            "to": "0x" + "cd" * 20,
            "value": hex(5),
            "gasPrice": hex(1),
            "input": "0x",
        }
        rpc_client = self._rpc_client([tx])

        records = await self._orchestrator(rpc_client).fetch_all_transactions(Network.ASTAR, EVM_ADDRESS)

        assert [r.id for r in records] == ["10-0"]
        assert records[0].hash == "0xfeed"


class TestProgressAndMerge:
    async def test_stage_order(self, batch):
        indexer = _adapter(SubscanAdapter, {Network.POLKADOT}, batch)
        orchestrator = TransactionOrchestrator(AdapterRegistry(indexer=indexer))
        events: list[SyncProgress] = []

        await orchestrator.fetch_all_transactions(Network.POLKADOT, DOT_ADDRESS, on_progress=events.append)

        assert [e.stage for e in events] == [
            SyncStage.CONNECTING,
            SyncStage.PROCESSING,
            SyncStage.SAVING,
            SyncStage.COMPLETE,
        ]
        assert events[-1].transactions_found == 3
        assert [tx.id for tx in events[-1].transactions] == ["12-0", "11-3", "10-1"]
        assert all(e.transactions is None for e in events[:-1])

    async def test_adapter_progress_forwarded(self, batch):
        async def fetch(network, address, limit=100, page=0, on_progress=None):
            on_progress(SyncProgress(stage=SyncStage.FETCHING, transactions_found=2))
            return batch

        indexer = _adapter(SubscanAdapter, {Network.POLKADOT})
        indexer.fetch = AsyncMock(side_effect=fetch)
        orchestrator = TransactionOrchestrator(AdapterRegistry(indexer=indexer))
        events: list[SyncProgress] = []

        await orchestrator.fetch_all_transactions(Network.POLKADOT, DOT_ADDRESS, on_progress=events.append)

        assert events[1].stage == SyncStage.FETCHING

    async def test_limit_after_merge(self, batch):
        indexer = _adapter(SubscanAdapter, {Network.POLKADOT}, batch)
        orchestrator = TransactionOrchestrator(AdapterRegistry(indexer=indexer))

        records = await orchestrator.fetch_all_transactions(Network.POLKADOT, DOT_ADDRESS, limit=2)

        assert [tx.id for tx in records] == ["12-0", "11-3"]

    async def test_address_trimmed(self, batch):
        indexer = _adapter(SubscanAdapter, {Network.POLKADOT}, batch)
        orchestrator = TransactionOrchestrator(AdapterRegistry(indexer=indexer))

        await orchestrator.fetch_all_transactions(Network.POLKADOT, f"  {DOT_ADDRESS} ")

        assert indexer.fetch.call_args.args[1] == DOT_ADDRESS

    async def test_failure_before_complete(self):
        indexer = _adapter(SubscanAdapter, {Network.POLKADOT}, error=ExternalServiceError("down"))
        orchestrator = TransactionOrchestrator(AdapterRegistry(indexer=indexer))
        events: list[SyncProgress] = []

        with pytest.raises(ExternalServiceError):
            await orchestrator.fetch_all_transactions(Network.POLKADOT, DOT_ADDRESS, on_progress=events.append)

        assert [e.stage for e in events] == [SyncStage.CONNECTING]


class TestEnrichment:
    async def test_enrich_flag(self, batch):
        indexer = _adapter(SubscanAdapter, {Network.POLKADOT}, batch)
        engine = MagicMock(spec=PriceEnrichmentEngine)
        engine.enrich = AsyncMock(side_effect=lambda records: records)
        orchestrator = TransactionOrchestrator(AdapterRegistry(indexer=indexer), price_engine=engine)

        await orchestrator.fetch_all_transactions(Network.POLKADOT, DOT_ADDRESS)
        engine.enrich.assert_not_called()

        await orchestrator.fetch_all_transactions(Network.POLKADOT, DOT_ADDRESS, enrich=True)
        engine.enrich.assert_called_once()
        assert len(engine.enrich.call_args.args[0]) == 3

    async def test_engine_from_registry(self):
        engine = MagicMock(spec=PriceEnrichmentEngine)
        engine.batch_calculate_usd_values = AsyncMock(return_value=[Decimal("5")])
        orchestrator = TransactionOrchestrator(AdapterRegistry(price_engine=engine))

        values = await orchestrator.batch_calculate_usd_values(
            [PricingItem(amount=Decimal(1), token_symbol="DOT", timestamp="2024-03-01T00:00:00Z")]
        )

        assert values == [Decimal("5")]

    async def test_no_engine(self):
        orchestrator = TransactionOrchestrator(AdapterRegistry())

        values = await orchestrator.batch_calculate_usd_values(
            [PricingItem(amount=Decimal(1), token_symbol="DOT", timestamp="2024-03-01T00:00:00Z")]
        )

        assert values == [None]


class TestStream:
    async def test_yields_events_in_order(self, batch):
        indexer = _adapter(SubscanAdapter, {Network.POLKADOT}, batch)
        orchestrator = TransactionOrchestrator(AdapterRegistry(indexer=indexer))

        events = [event async for event in orchestrator.stream(Network.POLKADOT, DOT_ADDRESS)]

        assert events[0].stage == SyncStage.CONNECTING
        assert events[-1].stage == SyncStage.COMPLETE
        assert len(events[-1].transactions) == 3

    async def test_failure_raised_after_emitted_events(self):
        indexer = _adapter(SubscanAdapter, {Network.POLKADOT}, error=ExternalServiceError("down"))
        orchestrator = TransactionOrchestrator(AdapterRegistry(indexer=indexer))
        events: list[SyncProgress] = []

        with pytest.raises(ExternalServiceError):
            async for event in orchestrator.stream(Network.POLKADOT, DOT_ADDRESS):
                events.append(event)

        assert [e.stage for e in events] == [SyncStage.CONNECTING]

    async def test_early_close_cancels_fetch(self):
        cancelled = False

        async def fetch(network, address, limit=100, page=0, on_progress=None):
            nonlocal cancelled
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                cancelled = True
                raise

        indexer = _adapter(SubscanAdapter, {Network.POLKADOT})
        indexer.fetch = AsyncMock(side_effect=fetch)
        orchestrator = TransactionOrchestrator(AdapterRegistry(indexer=indexer))

        gen = orchestrator.stream(Network.POLKADOT, DOT_ADDRESS)
        first = await gen.__anext__()
        await gen.aclose()

        assert first.stage == SyncStage.CONNECTING
        assert cancelled


class TestExplorerEndToEnd:
    """Real EtherscanAdapter behind the orchestrator, with a mocked explorer client."""

    @staticmethod
    def _raw(block: int, index: int, tx_hash: str, **extra) -> dict:
        return {
            "blockNumber": str(block),
            "transactionIndex": str(index),
            "timeStamp": "1700000000",
            "hash": tx_hash,
            "from": EVM_ADDRESS,
            "to": "0x" + "cd" * 20,
            "value": "1",
            "gasUsed": "21000",
            "gasPrice": "1",
            "isError": "0",
            **extra,
        }

    def _orchestrator(self, client) -> TransactionOrchestrator:
        explorer = EtherscanAdapter("KEY", lambda api_key, chain: client)
        return TransactionOrchestrator(AdapterRegistry(explorer=explorer))

    async def test_token_failure_still_returns_native(self):
        client = MagicMock()
        client.get_transactions = AsyncMock(return_value=[self._raw(5, 0, "0xa"), self._raw(4, 0, "0xb")])
        client.get_token_transfers = AsyncMock(side_effect=ExternalServiceError("tokentx down"))

        records = await self._orchestrator(client).fetch_all_transactions(Network.ETHEREUM, EVM_ADDRESS)

        assert [tx.hash for tx in records] == ["0xa", "0xb"]

    async def test_token_sharing_hash_with_native_is_merged(self):
        token = {"tokenSymbol": "USDC", "tokenName": "USD Coin", "tokenDecimal": "6", "contractAddress": "0xc"}
        client = MagicMock()
        client.get_transactions = AsyncMock(return_value=[
            self._raw(30, 0, "0x3"),
            self._raw(20, 0, "0x2"),
            self._raw(10, 0, "0x1"),
        ])
        client.get_token_transfers = AsyncMock(return_value=[
            self._raw(20, 0, "0x2", **token),
            self._raw(25, 1, "0x25", **token),
        ])

        records = await self._orchestrator(client).fetch_all_transactions(Network.ETHEREUM, EVM_ADDRESS)

        assert [tx.hash for tx in records] == ["0x3", "0x25", "0x2", "0x1"]
        assert [tx.block_number for tx in records] == [30, 25, 20, 10]
        # the native record keeps the shared hash
        assert records[2].id == "20-0"

    async def test_missing_key_before_network_call(self):
        factory = MagicMock()
        orchestrator = TransactionOrchestrator(AdapterRegistry(explorer=EtherscanAdapter("", factory)))

        with pytest.raises(MissingApiKeyError, match="API key"):
            await orchestrator.fetch_all_transactions(Network.ETHEREUM, EVM_ADDRESS)

        factory.assert_not_called()
