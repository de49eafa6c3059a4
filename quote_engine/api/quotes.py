"""Price oracle and one-shot quote endpoints with response caching"""
import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from quote_engine.core.cache import CacheService, read_model
from quote_engine.core.errors import InvalidInputError
from quote_engine.schemas.quote import BookingForm, PricingRequest, PricingResponse, Quote
from quote_engine.services.pricing import calculate_quote, default_oracle
from quote_engine.services.rate_card import price_request
from quote_engine.utils.hashing import payload_hash

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/quotes", tags=["quotes"])


def get_quote_cache(request: Request) -> Optional[CacheService]:
    return getattr(request.app.state, "quote_cache", None)


def _generate_cache_key(req: PricingRequest) -> str:
    return payload_hash(req.model_dump(mode="json", by_alias=True), namespace="calc")


@router.post("/calc", response_model=PricingResponse)
async def calc_quote(
    req: PricingRequest,
    cache: Optional[CacheService] = Depends(get_quote_cache),
):
    cache_key = _generate_cache_key(req)

    if cache is not None:
        cached = await read_model(cache, cache_key, PricingResponse)
        if cached is not None:
            return cached

    result = price_request(req)

    if cache is not None:
        try:
            await cache.set(cache_key, json.dumps(result.model_dump(mode="json", by_alias=True)))
        except Exception as e:
            logger.warning(f"Cache write failed: {e}")

    return result


@router.post("/estimate", response_model=Quote)
async def estimate_quote(
    form: BookingForm,
    cache: Optional[CacheService] = Depends(get_quote_cache),
):
    oracle = default_oracle(cache=cache)
    try:
        return await calculate_quote(form, oracle)
    except InvalidInputError as e:
        raise HTTPException(status_code=422, detail=str(e))
    finally:
        await oracle.aclose()
