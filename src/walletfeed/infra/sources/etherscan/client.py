"""Etherscan v2 unified API client for all EVM chains."""

from typing import Any

from walletfeed.exceptions import ExternalServiceError
from walletfeed.infra.http.rate_limited_client import RateLimitedClient

# Etherscan v2 uses a single base URL + chainid param
BASE_URL = "https://api.etherscan.io/v2/api"

CHAIN_IDS: dict[str, int] = {
    "ethereum": 1,
    "optimism": 10,
    "bsc": 56,
    "polygon": 137,
    "moonbeam": 1284,
    "moonriver": 1285,
    "base": 8453,
    "arbitrum": 42161,
    "avalanche": 43114,
}

EMPTY_RESULT_MESSAGES = ("No transactions found", "No records found")


def is_empty_result(data: dict) -> bool:
    """Distinguish "this address has no history" from a real API failure."""
    message = data.get("message", "")
    result = data.get("result")
    if message in EMPTY_RESULT_MESSAGES:
        return True
    if message == "OK" and isinstance(result, str) and "No transactions" in result:
        return True
    return data.get("status") == "0" and result == []


class EtherscanClient:
    def __init__(self, api_key: str, chain: str, http_client: RateLimitedClient) -> None:
        if chain not in CHAIN_IDS:
            raise ValueError(f"Unsupported chain: {chain}")
        self._api_key = api_key
        self._chain = chain
        self._chain_id = CHAIN_IDS[chain]
        self._http = http_client

    @property
    def chain_id(self) -> int:
        return self._chain_id

    async def _call(self, params: dict[str, Any]) -> list[dict]:
        params = {"chainid": self._chain_id, **params, "apikey": self._api_key}
        resp = await self._http.get(BASE_URL, params=params)
        try:
            data = resp.json()
        except ValueError as e:
            raise ExternalServiceError(f"Invalid JSON response from Etherscan API: {resp.text[:200]}") from e

        if data.get("status") != "1":
            if is_empty_result(data):
                return []
            result = data.get("result")
            error_msg = result if isinstance(result, str) and result else data.get("message", "unknown error")
            raise ExternalServiceError(f"Etherscan API error: {error_msg}")

        result = data.get("result")
        if not isinstance(result, list):
            return []
        return result

    async def _account_list(
        self,
        action: str,
        address: str,
        page: int,
        offset: int,
        start_block: int,
        end_block: int,
        sort: str,
    ) -> list[dict]:
        return await self._call({
            "module": "account",
            "action": action,
            "address": address,
            "startblock": start_block,
            "endblock": end_block,
            "page": page,
            "offset": offset,
            "sort": sort,
        })

    async def get_transactions(
        self,
        address: str,
        page: int = 1,
        offset: int = 100,
        start_block: int = 0,
        end_block: int = 99999999,
        sort: str = "desc",
    ) -> list[dict]:
        """Native-asset transactions (action=txlist)."""
        return await self._account_list("txlist", address, page, offset, start_block, end_block, sort)

    async def get_token_transfers(
        self,
        address: str,
        page: int = 1,
        offset: int = 100,
        start_block: int = 0,
        end_block: int = 99999999,
        sort: str = "desc",
    ) -> list[dict]:
        """ERC-20 transfers (action=tokentx)."""
        return await self._account_list("tokentx", address, page, offset, start_block, end_block, sort)

