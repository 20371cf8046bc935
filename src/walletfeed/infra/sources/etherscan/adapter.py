"""Explorer adapter for Etherscan v2: native transactions and token transfers."""

import logging
from collections.abc import Callable

from walletfeed.domain.enums import DedupKey, Network, TxStatus
from walletfeed.domain.models.source_batch import SourceBatch
from walletfeed.domain.models.transaction import CanonicalTransaction, TxEvent, timestamp_from_unix
from walletfeed.exceptions import MissingApiKeyError
from walletfeed.infra.sources.base import ProgressCallback, SourceAdapter, raw_int, report_fetching
from walletfeed.infra.sources.etherscan.client import CHAIN_IDS, EtherscanClient
from walletfeed.pipeline.classifier import classify_evm

logger = logging.getLogger(__name__)

API_KEY_HINT = "Get a free key at https://etherscan.io/myapikey and set ETHERSCAN_API_KEY."

ClientFactory = Callable[[str, str], EtherscanClient]


def gas_fee(raw: dict) -> str:
    """gasUsed × gasPrice, for sources that do not report the fee directly."""
    return str(int(raw_int(raw.get("gasUsed"))) * int(raw_int(raw.get("gasPrice"))))


class EtherscanAdapter(SourceAdapter):
    name = "etherscan"

    def __init__(self, api_key: str, client_factory: ClientFactory) -> None:
        self._api_key = api_key
        self._client_factory = client_factory

    @property
    def has_api_key(self) -> bool:
        return bool(self._api_key)

    def supports(self, network: Network) -> bool:
        return network.value in CHAIN_IDS

    async def fetch(
        self,
        network: Network,
        address: str,
        limit: int = 100,
        page: int = 0,
        on_progress: ProgressCallback | None = None,
    ) -> SourceBatch:
        if not self._api_key:
            raise MissingApiKeyError("Etherscan", API_KEY_HINT)
        if not self.supports(network):
            raise ValueError(f"Unsupported chain: {network.value}")

        client = self._client_factory(self._api_key, network.value)

        # Native transactions: required
        raw_txs = await client.get_transactions(address, page=page + 1, offset=limit)
        native = [self._map_transaction(raw, network) for raw in raw_txs]
        report_fetching(on_progress, f"Fetched {len(native)} transactions from Etherscan", len(native))

        # Token transfers: best-effort
        tokens = await self._fetch_token_transfers(client, network, address, limit, page)
        report_fetching(on_progress, f"Fetched {len(tokens)} token transfers", len(native) + len(tokens))

        return SourceBatch(primary=native, supplementary=[tokens], dedup_key=DedupKey.HASH)

    async def _fetch_token_transfers(
        self, client: EtherscanClient, network: Network, address: str, limit: int, page: int
    ) -> list[CanonicalTransaction]:
        try:
            raw = await client.get_token_transfers(address, page=page + 1, offset=limit)
        except Exception:
            logger.warning("Failed to fetch token transfers for %s on %s", address, network.value, exc_info=True)
            return []
        return [self._map_token_transfer(item, network) for item in raw]

    @staticmethod
    def _map_transaction(raw: dict, network: Network) -> CanonicalTransaction:
        action = classify_evm(raw)
        block_num = int(raw.get("blockNumber") or 0)
        return CanonicalTransaction(
            id=f"{block_num}-{raw.get('transactionIndex', 0)}",
            hash=raw.get("hash") or "",
            block_number=block_num,
            timestamp=timestamp_from_unix(raw.get("timeStamp")),
            from_addr=raw.get("from") or "",
            to_addr=raw.get("to") or raw.get("contractAddress") or "",
            value=raw_int(raw.get("value")),
            fee=gas_fee(raw),
            status=TxStatus.SUCCESS if raw.get("isError", "0") == "0" else TxStatus.FAILED,
            network=network,
            type=action.type,
            method=action.method,
            section=action.section,
            is_signed=True,
        )

    @staticmethod
    def _map_token_transfer(raw: dict, network: Network) -> CanonicalTransaction:
        action = classify_evm(raw)
        block_num = int(raw.get("blockNumber") or 0)
        symbol = raw.get("tokenSymbol") or ""
        return CanonicalTransaction(
            id=f"{block_num}-{raw.get('transactionIndex', 0)}-token",
            hash=raw.get("hash") or "",
            block_number=block_num,
            timestamp=timestamp_from_unix(raw.get("timeStamp")),
            from_addr=raw.get("from") or "",
            to_addr=raw.get("to") or "",
            value=raw_int(raw.get("value")),
            fee=gas_fee(raw),
            # tokentx has no isError field; listed transfers executed
            status=TxStatus.SUCCESS,
            network=network,
            type=action.type,
            method=action.method,
            section=action.section,
            events=[
                TxEvent(
                    method="Transfer",
                    section=symbol,
                    data={
                        "token_name": raw.get("tokenName") or "",
                        "token_symbol": symbol,
                        "token_decimals": int(raw.get("tokenDecimal") or 18),
                        "contract_address": raw.get("contractAddress") or "",
                    },
                )
            ],
            is_signed=True,
        )

