"""Indexer adapter for Subscan: transfers, extrinsics and staking rewards."""

import logging

from walletfeed.domain.enums import DedupKey, Network, TxStatus, TxType
from walletfeed.domain.models.source_batch import SourceBatch
from walletfeed.domain.models.transaction import CanonicalTransaction, timestamp_from_unix
from walletfeed.infra.sources.base import ProgressCallback, SourceAdapter, raw_int, report_fetching
from walletfeed.infra.sources.subscan.client import MAX_REWARD_ROWS, SubscanClient
from walletfeed.pipeline.classifier import classify, classify_module

logger = logging.getLogger(__name__)

# Networks whose Subscan instance exposes the reward_slash endpoint
REWARD_NETWORKS = frozenset({Network.POLKADOT, Network.KUSAMA})


def _intra_block_index(index: str | int | None) -> str:
    """Subscan reports "12345-2"; keep only the position inside the block."""
    text = str(index if index is not None else 0)
    return text.rsplit("-", 1)[-1]


def record_id(block_num: int, index: str | int | None, suffix: str = "") -> str:
    base = f"{block_num}-{_intra_block_index(index)}"
    return f"{base}-{suffix}" if suffix else base


def _is_transfer_extrinsic(tx: CanonicalTransaction) -> bool:
    return tx.section == "balances" and "transfer" in tx.method


class SubscanAdapter(SourceAdapter):
    name = "subscan"

    def __init__(self, clients: dict[Network, SubscanClient]) -> None:
        self._clients = clients

    def supports(self, network: Network) -> bool:
        return network in self._clients

    def _client(self, network: Network) -> SubscanClient:
        client = self._clients.get(network)
        if client is None:
            raise ValueError(f"Subscan not configured for {network.value}")
        return client

    async def fetch(
        self,
        network: Network,
        address: str,
        limit: int = 100,
        page: int = 0,
        on_progress: ProgressCallback | None = None,
    ) -> SourceBatch:
        client = self._client(network)

        # 1. Transfers: required
        raw_transfers, total = await client.get_transfers(address, row=limit, page=page)
        transfers = [self._map_transfer(raw, network) for raw in raw_transfers]
        logger.info("Subscan returned %d/%d transfers for %s on %s", len(transfers), total, address, network.value)
        report_fetching(on_progress, f"Fetched {len(transfers)} transfers from Subscan", len(transfers))

        # 2. Extrinsics: best-effort, backfills method/section
        extrinsics = await self._fetch_extrinsics(client, network, address, limit, page)
        report_fetching(on_progress, f"Fetched {len(extrinsics)} extrinsics", len(transfers) + len(extrinsics))

        by_id = {ext.id: ext for ext in extrinsics}
        for tx in transfers:
            ext = by_id.get(tx.id)
            if ext is not None:
                tx.method = ext.method
                tx.section = ext.section
                tx.type = ext.type

        non_transfer = [ext for ext in extrinsics if not _is_transfer_extrinsic(ext)]

        # 3. Staking rewards: best-effort, relay chains only
        rewards: list[CanonicalTransaction] = []
        if network in REWARD_NETWORKS:
            rewards = await self._fetch_rewards(client, network, address, limit, page)
            found = len(transfers) + len(non_transfer) + len(rewards)
            report_fetching(on_progress, f"Fetched {len(rewards)} staking rewards", found)

        return SourceBatch(primary=transfers, supplementary=[non_transfer, rewards], dedup_key=DedupKey.ID)

    async def _fetch_extrinsics(
        self, client: SubscanClient, network: Network, address: str, limit: int, page: int
    ) -> list[CanonicalTransaction]:
        try:
            raw = await client.get_extrinsics(address, row=limit, page=page)
        except Exception:
            logger.warning(
                "Failed to fetch extrinsics for %s on %s, using transfer data only",
                address, network.value, exc_info=True,
            )
            return []
        return [self._map_extrinsic(item, network) for item in raw]

    async def _fetch_rewards(
        self, client: SubscanClient, network: Network, address: str, limit: int, page: int
    ) -> list[CanonicalTransaction]:
        try:
            raw = await client.get_rewards(address, row=min(limit, MAX_REWARD_ROWS), page=page)
        except Exception:
            logger.warning("Failed to fetch staking rewards for %s on %s", address, network.value, exc_info=True)
            return []
        return [self._map_reward(item, network, address) for item in raw]

    @staticmethod
    def _map_transfer(raw: dict, network: Network) -> CanonicalTransaction:
        action = classify(raw)
        block_num = int(raw.get("block_num") or 0)
        return CanonicalTransaction(
            id=record_id(block_num, raw.get("extrinsic_index")),
            hash=raw.get("hash") or "",
            block_number=block_num,
            timestamp=timestamp_from_unix(raw.get("block_timestamp")),
            from_addr=raw.get("from") or "",
            to_addr=raw.get("to") or "",
            value=raw_int(raw.get("amount_v2")),
            fee=raw_int(raw.get("fee")),
            status=TxStatus.SUCCESS if raw.get("success") else TxStatus.FAILED,
            network=network,
            type=action.type,
            method=action.method,
            section=action.section,
            is_signed=True,
        )

    @staticmethod
    def _map_extrinsic(raw: dict, network: Network) -> CanonicalTransaction:
        module = raw.get("call_module") or ""
        function = raw.get("call_module_function") or ""
        block_num = int(raw.get("block_num") or 0)
        return CanonicalTransaction(
            id=record_id(block_num, raw.get("extrinsic_index")),
            hash=raw.get("extrinsic_hash") or raw.get("hash") or "",
            block_number=block_num,
            timestamp=timestamp_from_unix(raw.get("block_timestamp")),
            from_addr=raw.get("account_id") or "",
            to_addr="",
            value="0",
            fee=raw_int(raw.get("fee")),
            status=TxStatus.SUCCESS if raw.get("success") else TxStatus.FAILED,
            network=network,
            type=classify_module(module),
            method=function or "transfer",
            section=module or "balances",
            is_signed=True,
        )

    @staticmethod
    def _map_reward(raw: dict, network: Network, address: str) -> CanonicalTransaction:
        block_num = int(raw.get("block_num") or 0)
        return CanonicalTransaction(
            id=record_id(block_num, raw.get("event_index"), suffix="reward"),
            hash="",
            block_number=block_num,
            timestamp=timestamp_from_unix(raw.get("block_timestamp")),
            from_addr="Staking Rewards",
            to_addr=address,
            value=raw_int(raw.get("amount")),
            fee="0",
            status=TxStatus.SUCCESS,
            network=network,
            type=TxType.STAKING,
            method="Rewarded",
            section="staking",
            is_signed=False,
        )

