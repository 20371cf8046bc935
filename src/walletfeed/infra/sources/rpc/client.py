"""EVM JSON-RPC client: block scans and receipts for chains without an explorer key."""

import logging

from walletfeed.exceptions import ExternalServiceError
from walletfeed.infra.http.rate_limited_client import RateLimitedClient

logger = logging.getLogger(__name__)


def _payload(method: str, params: list, request_id: int = 1) -> dict:
    return {"jsonrpc": "2.0", "id": request_id, "method": method, "params": params}


class EvmRpcClient:
    """Minimal Ethereum-compatible JSON-RPC client."""

    def __init__(self, rpc_url: str, http_client: RateLimitedClient) -> None:
        self._rpc_url = rpc_url
        self._http = http_client

    @property
    def rpc_url(self) -> str:
        return self._rpc_url

    async def _call(self, method: str, params: list) -> dict | list | str | None:
        """Execute a JSON-RPC call and return the result field."""
        resp = await self._http.post(self._rpc_url, json=_payload(method, params))
        try:
            data = resp.json()
        except ValueError as e:
            raise ExternalServiceError(f"Invalid JSON response from RPC ({method})") from e

        if "error" in data:
            error = data["error"]
            msg = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            raise ExternalServiceError(f"RPC error ({method}): {msg}")

        return data.get("result")

    async def get_block_number(self) -> int:
        result = await self._call("eth_blockNumber", [])
        return int(str(result or "0x0"), 16)

    async def get_blocks(self, numbers: list[int]) -> list[dict]:
        """Fetch several blocks with full transaction objects in one batch request.

        Blocks the node does not know (null results) are skipped; results come
        back in the order of `numbers`.
        """
        if not numbers:
            return []
        batch = [
            _payload("eth_getBlockByNumber", [hex(number), True], request_id=i)
            for i, number in enumerate(numbers)
        ]
        resp = await self._http.post(self._rpc_url, json=batch)
        try:
            data = resp.json()
        except ValueError as e:
            raise ExternalServiceError("Invalid JSON response from RPC (eth_getBlockByNumber)") from e

        if isinstance(data, dict):
            # Some nodes answer a whole batch with one error object
            error = data.get("error") or {}
            msg = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            raise ExternalServiceError(f"RPC batch error: {msg}")

        by_id = {item.get("id"): item for item in data if isinstance(item, dict)}
        blocks: list[dict] = []
        for i, number in enumerate(numbers):
            item = by_id.get(i)
            if item is None:
                continue
            if "error" in item:
                logger.warning("RPC could not return block %d: %s", number, item["error"])
                continue
            if item.get("result"):
                blocks.append(item["result"])
        return blocks

    async def get_transaction_receipt(self, tx_hash: str) -> dict | None:
        result = await self._call("eth_getTransactionReceipt", [tx_hash])
        return result  # type: ignore[return-value]
