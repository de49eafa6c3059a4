import logging
from datetime import datetime, timezone
from typing import Optional, Protocol

from quote_engine.core.cache import CacheService
from quote_engine.core.config import settings
from quote_engine.core.errors import InvalidInputError, InvariantViolationError, PricingServiceError
from quote_engine.schemas.quote import BookingForm, PricingRequest, PricingResponse, Quote
from quote_engine.services.composer import compose_breakdown, fallback_breakdown
from quote_engine.services.distance import DistanceEstimate, estimate_distance
from quote_engine.services.items import aggregate_items
from quote_engine.services.pricing_client import RemotePricingClient
from quote_engine.services.rate_card import RateCardOracle, vehicle_for
from quote_engine.services.surcharges import access_surcharge, special_item_surcharge, worker_surcharge

logger = logging.getLogger(__name__)


class PricingOracle(Protocol):
    async def price(self, req: PricingRequest) -> PricingResponse: ...

    async def aclose(self) -> None: ...


def default_oracle(cache: Optional[CacheService] = None) -> PricingOracle:
    """Remote pricing service when one is configured, local rate card otherwise."""
    if settings.PRICING_SERVICE_URL:
        return RemotePricingClient(settings.PRICING_SERVICE_URL, cache=cache)
    return RateCardOracle()


def build_pricing_request(form: BookingForm, distance: DistanceEstimate) -> PricingRequest:
    return PricingRequest(
        pickup_coordinates=form.pickup_address.coordinates,
        dropoff_coordinates=form.dropoff_address.coordinates,
        items=form.items,
        scheduled_time=form.scheduled_time,
        service_type=form.service_type,
        vehicle_type=vehicle_for(form.service_type),
        distance_km=distance.distance_km,
        duration_minutes=distance.duration_minutes,
    )


async def _ask_oracle(oracle: PricingOracle, req: PricingRequest) -> PricingResponse:
    try:
        return await oracle.price(req)
    except (PricingServiceError, InvariantViolationError):
        raise
    except Exception as e:
        # Any other oracle failure (bad URL, buggy adapter) still ends in the fallback price
        raise PricingServiceError(f"price oracle failed: {type(e).__name__}: {e}") from e


async def calculate_quote(form: BookingForm, oracle: PricingOracle, generation: int = 0) -> Quote:
    """Price one form snapshot.

    The oracle supplies base, service and distance fees; volume, surcharges
    and VAT are always computed here so the lines stay consistent whatever
    shape the oracle's own breakdown has. If the oracle fails, the flat
    fallback price is returned with ``is_fallback`` set.
    """
    if not form.is_computable:
        raise InvalidInputError("both addresses need coordinates and at least one item is required")

    summary = aggregate_items(form.items)
    distance = estimate_distance(form.pickup_address.coordinates, form.dropoff_address.coordinates)
    crew = form.crew_override or summary.required_workers

    is_fallback = False
    try:
        prices = await _ask_oracle(oracle, build_pricing_request(form, distance))
    except PricingServiceError as e:
        logger.warning(f"Pricing service unavailable, using fallback price: {e}")
        breakdown = fallback_breakdown(summary.total_volume, distance.distance_miles)
        is_fallback = True
    else:
        breakdown = compose_breakdown(
            base_fee=prices.base_price,
            distance_fee=prices.breakdown["distance"],
            volume_fee=summary.total_volume * settings.VOLUME_RATE_PER_M3,
            service_fee=prices.service_price,
            additional_fees=(
                access_surcharge(form.pickup_property, form.dropoff_property)
                + worker_surcharge(crew)
                + special_item_surcharge(form.items)
            ),
            distance_miles=distance.distance_miles,
        )

    return Quote(
        breakdown=breakdown,
        distance_km=distance.distance_km,
        duration_minutes=distance.duration_minutes,
        is_fallback=is_fallback,
        computed_at=datetime.now(timezone.utc),
        generation=generation,
        crew_size=crew,
    )
