"""RPC adapter: scans recent blocks directly when the indexer cannot serve a wallet."""

import logging
from collections.abc import Callable

from walletfeed.domain.enums import DedupKey, Network, TxStatus
from walletfeed.domain.models.source_batch import SourceBatch
from walletfeed.domain.models.transaction import CanonicalTransaction, timestamp_from_unix
from walletfeed.exceptions import InvalidAddressError
from walletfeed.infra.sources.base import (
    ProgressCallback,
    SourceAdapter,
    is_evm_address,
    raw_int,
    report_fetching,
)
from walletfeed.infra.sources.rpc.client import EvmRpcClient
from walletfeed.pipeline.classifier import classify_evm

logger = logging.getLogger(__name__)

MAX_BLOCKS = 1000
BATCH_SIZE = 20

ClientFactory = Callable[[str], EvmRpcClient]


def receipt_fee(tx: dict, receipt: dict | None) -> str:
    if not receipt:
        return "0"
    gas_used = int(raw_int(receipt.get("gasUsed")))
    gas_price = int(raw_int(receipt.get("effectiveGasPrice") or tx.get("gasPrice")))
    return str(gas_used * gas_price)


def receipt_status(receipt: dict | None) -> TxStatus:
    if receipt is None:
        return TxStatus.SUCCESS
    return TxStatus.SUCCESS if receipt.get("status") == "0x1" else TxStatus.FAILED


def touches(tx: dict, address: str) -> bool:
    target = address.lower()
    return (tx.get("from") or "").lower() == target or (tx.get("to") or "").lower() == target


class RpcAdapter(SourceAdapter):
    """Fallback source: bounded scan of the newest blocks over JSON-RPC.

    One client per chain, created on first use and reused afterwards.
    """

    name = "rpc"

    def __init__(self, rpc_urls: dict[str, str], client_factory: ClientFactory) -> None:
        self._rpc_urls = {k: v for k, v in rpc_urls.items() if v}
        self._client_factory = client_factory
        self._clients: dict[Network, EvmRpcClient] = {}

    @property
    def networks(self) -> list[str]:
        return sorted(self._rpc_urls)

    def supports(self, network: Network) -> bool:
        return network.value in self._rpc_urls

    def client_for(self, network: Network) -> EvmRpcClient:
        client = self._clients.get(network)
        if client is None:
            url = self._rpc_urls.get(network.value)
            if not url:
                raise ValueError(f"No RPC endpoint configured for {network.value}")
            client = self._client_factory(url)
            self._clients[network] = client
        return client

    async def fetch(
        self,
        network: Network,
        address: str,
        limit: int = 100,
        page: int = 0,
        on_progress: ProgressCallback | None = None,
    ) -> SourceBatch:
        if not is_evm_address(address):
            raise InvalidAddressError(f"RPC block scan needs a 0x account, got {address}")
        client = self.client_for(network)
        latest = await client.get_block_number()
        lowest = max(latest - MAX_BLOCKS + 1, 0)
        total_blocks = latest - lowest + 1
        logger.info("Scanning blocks %d..%d on %s for %s", lowest, latest, network.value, address)

        found: list[CanonicalTransaction] = []
        scanned = 0
        top = latest
        while top >= lowest and len(found) < limit:
            numbers = list(range(top, max(top - BATCH_SIZE, lowest - 1), -1))
            blocks = await client.get_blocks(numbers)
            for block in blocks:
                for tx in block.get("transactions") or []:
                    if not isinstance(tx, dict) or not touches(tx, address):
                        continue
                    receipt = await client.get_transaction_receipt(tx["hash"])
                    found.append(self._map_transaction(tx, block, receipt, network))
                    if len(found) >= limit:
                        break
                if len(found) >= limit:
                    break

            scanned += len(numbers)
            top -= len(numbers)
            report_fetching(
                on_progress,
                f"Scanned {scanned}/{total_blocks} blocks",
                len(found),
                current_block=numbers[-1],
                total_blocks=total_blocks,
                blocks_scanned=scanned,
            )

        logger.info("RPC scan found %d transactions for %s on %s", len(found), address, network.value)
        return SourceBatch(primary=found, dedup_key=DedupKey.ID)

    @staticmethod
    def _map_transaction(tx: dict, block: dict, receipt: dict | None, network: Network) -> CanonicalTransaction:
        action = classify_evm(tx)
        block_num = int(raw_int(tx.get("blockNumber") or block.get("number")))
        return CanonicalTransaction(
            id=f"{block_num}-{raw_int(tx.get('transactionIndex'))}",
            hash=tx.get("hash") or "",
            block_number=block_num,
            timestamp=timestamp_from_unix(int(raw_int(block.get("timestamp")))),
            from_addr=tx.get("from") or "",
            to_addr=tx.get("to") or "",
            value=raw_int(tx.get("value")),
            fee=receipt_fee(tx, receipt),
            status=receipt_status(receipt),
            network=network,
            type=action.type,
            method=action.method,
            section=action.section,
            is_signed=True,
        )
