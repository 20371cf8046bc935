import asyncio
import logging
import time

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from walletfeed.exceptions import RateLimitedError, SourceTransportError

logger = logging.getLogger(__name__)


class RateLimitedClient:
    """Async HTTP client with interval-based spacing between consecutive calls.

    One instance per provider, so the spacing applies to calls against the same
    provider only. Transport failures surface as SourceTransportError and HTTP
    429 answers as RateLimitedError (retried with back-off, then re-raised).
    """

    def __init__(
        self,
        rate_per_second: float = 4.0,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        name: str = "http",
    ) -> None:
        self._min_interval = 1.0 / rate_per_second
        self._last_request_time = 0.0
        self._lock = asyncio.Lock()
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self.name = name

    @property
    def min_interval(self) -> float:
        return self._min_interval

    async def _wait_for_slot(self) -> None:
        async with self._lock:
            now = time.monotonic()
            elapsed = now - self._last_request_time
            if elapsed < self._min_interval:
                await asyncio.sleep(self._min_interval - elapsed)
            self._last_request_time = time.monotonic()

    @retry(
        retry=retry_if_exception_type(RateLimitedError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        await self._wait_for_slot()
        try:
            resp = await self._client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            logger.error("Network error reaching %s (%s %s): %s", self.name, method, url, e)
            raise SourceTransportError(f"{self.name} unreachable: {e}") from e

        if resp.status_code == 429:
            logger.info("%s answered 429, backing off", self.name)
            raise RateLimitedError(f"{self.name} rate limit exceeded")
        return resp

    async def get(self, url: str, params: dict | None = None, headers: dict | None = None) -> httpx.Response:
        return await self._send("GET", url, params=params, headers=headers)

    async def post(
        self, url: str, json: dict | list | None = None, headers: dict | None = None
    ) -> httpx.Response:
        return await self._send("POST", url, json=json, headers=headers)

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "RateLimitedClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
