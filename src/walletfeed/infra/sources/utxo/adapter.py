"""UTXO adapter: Bitcoin history for a single address or every address under an xPub."""

import logging
import math

from walletfeed.domain.enums import DedupKey, Network, TxStatus, TxType
from walletfeed.domain.enums.network import UTXO_NETWORKS
from walletfeed.domain.models.source_batch import SourceBatch
from walletfeed.domain.models.transaction import CanonicalTransaction, timestamp_from_unix
from walletfeed.exceptions import InvalidXpubError
from walletfeed.infra.sources.base import ProgressCallback, SourceAdapter, report_fetching
from walletfeed.infra.sources.utxo.mempool_client import TXS_PER_PAGE, MempoolClient
from walletfeed.infra.sources.utxo.models import BitcoinBalance, BitcoinTransaction
from walletfeed.infra.sources.utxo.xpub import DerivedAddress, derive_addresses, is_xpub, validate_bitcoin_address

logger = logging.getLogger(__name__)

DEFAULT_PAGES_PER_ADDRESS = 2


def net_flow(tx: BitcoinTransaction, wallet: set[str]) -> int:
    """Satoshis received by the wallet minus satoshis it spent."""
    received = sum(o.value for o in tx.outputs if o.address in wallet)
    spent = sum(i.value for i in tx.inputs if i.address in wallet)
    return received - spent


def to_canonical(tx: BitcoinTransaction, wallet: set[str], network: Network) -> CanonicalTransaction:
    flow = net_flow(tx, wallet)
    if flow >= 0:
        method = "receive"
        value = flow
        from_addr = "coinbase" if tx.is_coinbase else next((i.address for i in tx.inputs if i.address), "")
        to_addr = next((o.address for o in tx.outputs if o.address in wallet), "")
    else:
        method = "send"
        # The outflow includes the fee; value is what reached other parties
        value = max(-flow - tx.fee, 0)
        from_addr = next((i.address for i in tx.inputs if i.address in wallet), "")
        to_addr = next((o.address for o in tx.outputs if o.address and o.address not in wallet), "")
    return CanonicalTransaction(
        id=tx.txid,
        hash=tx.txid,
        block_number=tx.block_height or 0,
        timestamp=timestamp_from_unix(tx.timestamp),
        from_addr=from_addr or "",
        to_addr=to_addr or "",
        value=str(value),
        fee=str(tx.fee),
        status=TxStatus.SUCCESS,
        network=network,
        type=TxType.TRANSFER,
        method=method,
        section="bitcoin",
        is_signed=not tx.is_coinbase,
    )


class UtxoAdapter(SourceAdapter):
    name = "mempool"

    def __init__(
        self,
        clients: dict[Network, MempoolClient],
        receiving_count: int = 20,
        change_count: int = 10,
    ) -> None:
        self._clients = clients
        self._receiving_count = receiving_count
        self._change_count = change_count

    def supports(self, network: Network) -> bool:
        return network in UTXO_NETWORKS and network in self._clients

    def _client(self, network: Network) -> MempoolClient:
        client = self._clients.get(network)
        if client is None:
            raise ValueError(f"No mempool.space endpoint configured for {network.value}")
        return client

    def _portfolio_addresses(self, xpub: str, network: Network | None) -> tuple[Network, list[DerivedAddress]]:
        portfolio = derive_addresses(xpub, self._receiving_count, self._change_count)
        key_network = portfolio.info.network
        if network is not None and network != key_network:
            raise InvalidXpubError(f"{xpub[:4]} key belongs to {key_network.value}, not {network.value}")
        return key_network, portfolio.all_addresses

    async def fetch_xpub_balances(
        self, xpub: str, network: Network | None = None
    ) -> list[tuple[DerivedAddress, BitcoinBalance]]:
        """Balances of derived addresses that have ever been used."""
        key_network, addresses = self._portfolio_addresses(xpub, network)
        client = self._client(key_network)
        results = []
        for derived in addresses:
            try:
                balance = await client.get_balance(derived.address)
            except Exception:
                logger.warning("Failed to fetch balance for %s", derived.address, exc_info=True)
                continue
            if balance.has_activity:
                results.append((derived, balance))
        return results

    async def fetch_xpub_transactions(
        self,
        xpub: str,
        network: Network | None = None,
        max_pages_per_address: int = DEFAULT_PAGES_PER_ADDRESS,
        on_progress: ProgressCallback | None = None,
    ) -> list[tuple[DerivedAddress, list[BitcoinTransaction]]]:
        key_network, addresses = self._portfolio_addresses(xpub, network)
        return await self._collect(self._client(key_network), addresses, max_pages_per_address, on_progress)

    async def _collect(
        self,
        client: MempoolClient,
        addresses: list[DerivedAddress],
        max_pages: int,
        on_progress: ProgressCallback | None,
    ) -> list[tuple[DerivedAddress, list[BitcoinTransaction]]]:
        height = await self._tip_height(client)
        results = []
        found = 0
        for n, derived in enumerate(addresses, start=1):
            try:
                raw = await client.get_address_transactions(derived.address, max_pages=max_pages)
            except Exception:
                logger.warning("Failed to fetch transactions for %s", derived.address, exc_info=True)
                continue
            if raw:
                txs = [tx.normalize(height) for tx in raw]
                results.append((derived, txs))
                found += len(txs)
            report_fetching(on_progress, f"Checked {n}/{len(addresses)} derived addresses", found)
        return results

    @staticmethod
    async def _tip_height(client: MempoolClient) -> int | None:
        try:
            return await client.get_block_height()
        except Exception:
            logger.warning("Could not read the chain tip; confirmations will be reported as 0", exc_info=True)
            return None

    async def fetch(
        self,
        network: Network,
        address: str,
        limit: int = 100,
        page: int = 0,
        on_progress: ProgressCallback | None = None,
    ) -> SourceBatch:
        pages = max(math.ceil(limit * (page + 1) / TXS_PER_PAGE), 1)

        if is_xpub(address):
            key_network, addresses = self._portfolio_addresses(address, network)
            per_address = await self._collect(self._client(key_network), addresses, pages, on_progress)
            wallet = {derived.address for derived in addresses}
            txs = [tx for _, group in per_address for tx in group]
        else:
            validate_bitcoin_address(address, network)
            client = self._client(network)
            raw = await client.get_address_transactions(address.strip(), max_pages=pages)
            txs = [tx.normalize() for tx in raw]
            wallet = {address.strip()}
            report_fetching(on_progress, f"Fetched {len(txs)} transactions from mempool.space", len(txs))

        records: list[CanonicalTransaction] = []
        for tx in txs:
            if not tx.confirmed:
                continue
            records.append(to_canonical(tx, wallet, network))
        logger.info("mempool.space returned %d confirmed transactions for %s", len(records), address[:12])
        return SourceBatch(primary=records, dedup_key=DedupKey.HASH)
