"""HTTP provider adapter — shared httpx client, retry with backoff, error mapping."""

import asyncio
import logging
from typing import Any

import httpx

from tripcompare.clock import utcnow
from tripcompare.errors import AdapterError
from tripcompare.schemas.provider import ProviderDescriptor
from tripcompare.services.adapters.base import CancellationToken, ProviderAdapter

logger = logging.getLogger(__name__)


class HttpProviderAdapter(ProviderAdapter):
    """Base for adapters that talk JSON over HTTP.

    The client is created lazily and reused. 429 responses and transport errors
    are retried with exponential backoff; 401/403 map to ``auth`` errors, other
    4xx/5xx to ``network`` errors, undecodable bodies to ``parse`` errors.
    """

    max_attempts = 3

    def __init__(
        self,
        descriptor: ProviderDescriptor,
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        backoff_base: float = 1.0,
        max_concurrency: int = 10,
        clock=utcnow,
    ):
        super().__init__(descriptor, clock)
        self._timeout = timeout
        self._transport = transport
        self._backoff_base = backoff_base
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.descriptor.base_url,
                timeout=self._timeout,
                transport=self._transport,
                auth=self._basic_auth(),
            )
        return self._client

    def _basic_auth(self) -> httpx.BasicAuth | None:
        auth = self.descriptor.auth
        if auth.type != "basic":
            return None
        return httpx.BasicAuth(auth.secret("username"), auth.secret("password"))

    async def _auth_headers(self) -> dict[str, str]:
        """Per-request auth headers; API-key providers override the header name."""
        return {}

    async def _request(self, method: str, path: str, token: CancellationToken, **kwargs) -> Any:
        client = await self._get_client()
        extra_headers = kwargs.pop("headers", {})

        async with self._semaphore:
            for attempt in range(self.max_attempts):
                token.raise_if_cancelled(self.provider_id)
                last = attempt == self.max_attempts - 1
                headers = {"Accept": "application/json", **await self._auth_headers(), **extra_headers}

                try:
                    resp = await client.request(method, path, headers=headers, **kwargs)
                except httpx.RequestError as e:
                    logger.warning(f"[{self.provider_id}] request error (attempt {attempt + 1}): {e}")
                    if not last:
                        await self._backoff(attempt)
                        continue
                    raise AdapterError(self.provider_id, f"request failed: {e}", kind="network") from e

                if resp.status_code == 429 and not last:
                    logger.warning(f"[{self.provider_id}] rate limited, retrying")
                    await self._backoff(attempt)
                    continue
                if resp.status_code in (401, 403):
                    raise AdapterError(self.provider_id, f"HTTP {resp.status_code}", kind="auth")
                if resp.status_code >= 400:
                    raise AdapterError(self.provider_id, f"HTTP {resp.status_code}", kind="network")

                try:
                    return resp.json()
                except ValueError as e:
                    raise AdapterError(self.provider_id, f"invalid JSON body: {e}", kind="parse") from e

        raise AdapterError(self.provider_id, "retries exhausted", kind="network")

    async def _backoff(self, attempt: int):
        await asyncio.sleep(self._backoff_base * 2 ** attempt)

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None
