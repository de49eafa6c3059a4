import asyncio
import json
import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from quote_engine.core.cache import CacheService, read_model
from quote_engine.core.config import settings
from quote_engine.core.errors import PricingServiceError
from quote_engine.core.metrics import track_pricing_call
from quote_engine.schemas.quote import PricingRequest, PricingResponse
from quote_engine.utils.hashing import payload_hash

logger = logging.getLogger(__name__)


class RemotePricingClient:
    """Price oracle backed by the remote pricing service.

    Every failure mode (transport error, non-2xx, unparseable body, running
    past ``timeout`` across all retries) surfaces as ``PricingServiceError``.
    """

    def __init__(
        self,
        url: str,
        timeout: Optional[float] = None,
        retries: Optional[int] = None,
        cache: Optional[CacheService] = None,
        client: Optional[httpx.AsyncClient] = None,
        backoff: float = 0.2,
    ):
        self.url = url
        self.timeout = timeout if timeout is not None else settings.PRICING_TIMEOUT
        self.retries = max(1, retries if retries is not None else settings.PRICING_RETRIES)
        self.cache = cache
        self.backoff = backoff
        self._client = client

    async def price(self, req: PricingRequest) -> PricingResponse:
        payload = req.model_dump(mode="json", by_alias=True)
        cache_key = payload_hash(payload)

        if self.cache is not None:
            cached = await read_model(self.cache, cache_key, PricingResponse)
            if cached is not None:
                return cached

        result = await self._request(payload)

        if self.cache is not None:
            try:
                await self.cache.set(
                    cache_key,
                    json.dumps(result.model_dump(mode="json", by_alias=True)),
                )
            except Exception as e:
                logger.warning(f"Cache write failed: {e}")

        return result

    @track_pricing_call
    async def _request(self, payload: dict) -> PricingResponse:
        try:
            return await asyncio.wait_for(self._post_with_retries(payload), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Pricing service timed out after {self.timeout}s")
            raise PricingServiceError(f"pricing service timed out after {self.timeout}s")

    async def _post_with_retries(self, payload: dict) -> PricingResponse:
        backoff = self.backoff
        last_error = "no attempt made"

        for attempt in range(1, self.retries + 1):
            try:
                response = await self._post(payload)
            except httpx.HTTPError as e:
                last_error = f"{type(e).__name__}: {e}"
                logger.warning(
                    f"Pricing request error (attempt {attempt}/{self.retries}): {last_error}"
                )
            else:
                if 200 <= response.status_code < 300:
                    return self._parse(response)
                last_error = f"status {response.status_code}"
                logger.warning(
                    f"Pricing request failed (attempt {attempt}/{self.retries}): {last_error}"
                )
                if response.status_code < 500:
                    break

            if attempt < self.retries:
                await asyncio.sleep(backoff)
                backoff *= 2.0

        raise PricingServiceError(f"pricing service unavailable ({last_error})")

    async def _post(self, payload: dict) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(self.url, json=payload)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(self.url, json=payload)

    @staticmethod
    def _parse(response: httpx.Response) -> PricingResponse:
        try:
            return PricingResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise PricingServiceError(f"malformed pricing response: {e}") from e

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
