"""mempool.space (Esplora) REST client for Bitcoin mainnet/testnet."""

import logging

import httpx

from walletfeed.domain.enums import Network
from walletfeed.exceptions import ExternalServiceError, InvalidAddressError
from walletfeed.infra.http.rate_limited_client import RateLimitedClient
from walletfeed.infra.sources.utxo.models import (
    BitcoinBalance,
    BitcoinUtxo,
    MempoolAddressInfo,
    MempoolTransaction,
)
from walletfeed.infra.sources.utxo.xpub import validate_bitcoin_address

logger = logging.getLogger(__name__)

TXS_PER_PAGE = 25


class MempoolClient:
    def __init__(self, base_url: str, http_client: RateLimitedClient, network: Network = Network.BITCOIN) -> None:
        self._base_url = base_url.rstrip("/")
        self._http = http_client
        self._network = network

    @property
    def network(self) -> Network:
        return self._network

    async def _get(self, path: str, address: str | None = None) -> httpx.Response:
        resp = await self._http.get(f"{self._base_url}{path}")
        if resp.status_code == 404 and address is not None:
            raise InvalidAddressError(f"Address not found: {address}")
        if resp.status_code != 200:
            raise ExternalServiceError(f"mempool.space returned status {resp.status_code} for {path}")
        return resp

    async def _get_json(self, path: str, address: str | None = None):
        resp = await self._get(path, address)
        try:
            return resp.json()
        except ValueError as e:
            raise ExternalServiceError(f"Invalid JSON from mempool.space for {path}") from e

    async def get_block_height(self) -> int:
        resp = await self._get("/blocks/tip/height")
        try:
            return int(resp.text.strip())
        except ValueError as e:
            raise ExternalServiceError(f"Invalid block height: {resp.text[:50]}") from e

    async def get_address_info(self, address: str) -> MempoolAddressInfo:
        validate_bitcoin_address(address, self._network)
        return MempoolAddressInfo.model_validate(await self._get_json(f"/address/{address}", address))

    async def get_address_utxos(self, address: str) -> list[BitcoinUtxo]:
        validate_bitcoin_address(address, self._network)
        data = await self._get_json(f"/address/{address}/utxo", address)
        return [BitcoinUtxo.model_validate(item) for item in data]

    async def get_balance(self, address: str) -> BitcoinBalance:
        info = await self.get_address_info(address)
        utxos = await self.get_address_utxos(address)
        return BitcoinBalance.from_address_info(info, len(utxos))

    async def _get_txs_page(self, address: str, after_txid: str | None) -> list[MempoolTransaction]:
        if after_txid:
            path = f"/address/{address}/txs/chain/{after_txid}"
        else:
            path = f"/address/{address}/txs"
        data = await self._get_json(path, address)
        return [MempoolTransaction.model_validate(item) for item in data]

    async def get_address_transactions(self, address: str, max_pages: int | None = None) -> list[MempoolTransaction]:
        """Newest first. Each page holds up to 25 transactions; the cursor is the last txid seen."""
        validate_bitcoin_address(address, self._network)
        all_txs: list[MempoolTransaction] = []
        after_txid: str | None = None
        page = 0
        while True:
            txs = await self._get_txs_page(address, after_txid)
            if not txs:
                break
            all_txs.extend(txs)
            after_txid = txs[-1].txid
            page += 1
            if max_pages is not None and page >= max_pages:
                break
            if len(txs) < TXS_PER_PAGE:
                break
        logger.debug("Fetched %d transactions for %s in %d pages", len(all_txs), address, page)
        return all_txs

