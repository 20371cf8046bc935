"""Subscan indexer API client for Substrate networks."""

from typing import Any

from walletfeed.exceptions import ExternalServiceError
from walletfeed.infra.http.rate_limited_client import RateLimitedClient

BASE_URLS: dict[str, str] = {
    "polkadot": "https://polkadot.api.subscan.io",
    "kusama": "https://kusama.api.subscan.io",
    "moonbeam": "https://moonbeam.api.subscan.io",
    "moonriver": "https://moonriver.api.subscan.io",
    "astar": "https://astar.api.subscan.io",
    "acala": "https://acala.api.subscan.io",
}

MAX_ROWS = 100  # Subscan max rows per page
MAX_REWARD_ROWS = 50


class SubscanClient:
    def __init__(self, network: str, http_client: RateLimitedClient, api_key: str = "") -> None:
        if network not in BASE_URLS:
            raise ValueError(f"Subscan not configured for {network}")
        self._network = network
        self._base_url = BASE_URLS[network]
        self._http = http_client
        self._api_key = api_key

    async def _call(self, endpoint: str, body: dict[str, Any]) -> dict:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["X-API-Key"] = self._api_key

        resp = await self._http.post(f"{self._base_url}{endpoint}", json=body, headers=headers)
        if resp.status_code != 200:
            raise ExternalServiceError(
                f"Subscan API error: {resp.status_code} - {resp.text[:200]}"
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise ExternalServiceError(f"Invalid JSON response from Subscan: {resp.text[:200]}") from e

        code = data.get("code")
        if code != 0:
            raise ExternalServiceError(f"Subscan API error {code}: {data.get('message', '')}")

        return data.get("data") or {}

    async def get_transfers(self, address: str, row: int = MAX_ROWS, page: int = 0) -> tuple[list[dict], int]:
        """POST /api/v2/scan/transfers. Returns (records, total count)."""
        data = await self._call(
            "/api/v2/scan/transfers",
            {"address": address, "row": min(row, MAX_ROWS), "page": page},
        )
        transfers = data.get("transfers") or data.get("list") or []
        return transfers, int(data.get("count") or 0)

    async def get_extrinsics(self, address: str, row: int = MAX_ROWS, page: int = 0) -> list[dict]:
        data = await self._call(
            "/api/scan/extrinsics",
            {"address": address, "row": min(row, MAX_ROWS), "page": page},
        )
        return data.get("extrinsics") or data.get("list") or []

    async def get_rewards(self, address: str, row: int = MAX_REWARD_ROWS, page: int = 0) -> list[dict]:
        data = await self._call(
            "/api/scan/account/reward_slash",
            {"address": address, "row": min(row, MAX_REWARD_ROWS), "page": page, "is_stash": True},
        )
        return data.get("list") or []

