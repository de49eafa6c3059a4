"""Local rate card. Backs the /quotes/calc oracle endpoint and can price
directly when no remote pricing service is configured."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from quote_engine.core.config import settings
from quote_engine.core.enums import ServiceType, VehicleType
from quote_engine.schemas.quote import PricingRequest, PricingResponse
from quote_engine.utils.money import round2


@dataclass(frozen=True)
class ServiceRate:
    service_price: float
    price_per_km: float
    vehicle: VehicleType


RATE_CARD = {
    ServiceType.MAN_AND_VAN: ServiceRate(45.0, 1.5, VehicleType.VAN),
    ServiceType.VAN_ONLY: ServiceRate(35.0, 1.2, VehicleType.VAN),
    ServiceType.LARGE_VAN: ServiceRate(65.0, 2.0, VehicleType.LUTON),
    ServiceType.MULTIPLE_TRIPS: ServiceRate(55.0, 1.75, VehicleType.MULTI_VAN),
    ServiceType.PREMIUM: ServiceRate(85.0, 2.5, VehicleType.PREMIUM_VAN),
}


def vehicle_for(service_type: ServiceType) -> VehicleType:
    return RATE_CARD[service_type].vehicle


def distance_cost(distance_km: float, price_per_km: float) -> float:
    chargeable = max(0.0, distance_km - settings.FREE_DISTANCE_KM)
    cost = chargeable * price_per_km
    if distance_km > settings.LONG_DISTANCE_THRESHOLD_KM:
        long_leg = distance_km - settings.LONG_DISTANCE_THRESHOLD_KM
        cost += long_leg * settings.LONG_DISTANCE_SURCHARGE_PER_KM
    return round2(cost)


def seasonal_multiplier(when: Optional[datetime]) -> float:
    if when is None:
        return 1.0
    if when.month in settings.PEAK_SEASON_MONTHS:
        return settings.PEAK_SEASON_MULTIPLIER
    if when.month in settings.HIGH_SEASON_MONTHS:
        return settings.HIGH_SEASON_MULTIPLIER
    return 1.0


def demand_multiplier(when: Optional[datetime]) -> float:
    if when is not None and when.weekday() >= 5:
        return settings.WEEKEND_DEMAND_MULTIPLIER
    return 1.0


def price_request(req: PricingRequest) -> PricingResponse:
    """Rate-card price for one request.

    Season and weekend multipliers scale the base, service and distance lines
    only; an unscheduled move is priced at the plain rate.
    """
    rate = RATE_CARD[req.service_type]
    season = seasonal_multiplier(req.scheduled_time)
    demand = demand_multiplier(req.scheduled_time)
    factor = season * demand
    breakdown = {
        "base": round2(settings.BASE_FEE * factor),
        "service": round2(rate.service_price * factor),
        "distance": round2(distance_cost(req.distance_km, rate.price_per_km) * factor),
        "seasonalMultiplier": season,
        "demandMultiplier": demand,
    }
    return PricingResponse(
        base_price=breakdown["base"],
        service_price=breakdown["service"],
        breakdown=breakdown,
        distance=round2(req.distance_km),
    )


class RateCardOracle:
    """Price oracle that never leaves the process."""

    async def price(self, req: PricingRequest) -> PricingResponse:
        return price_request(req)

    async def aclose(self) -> None:
        return None
