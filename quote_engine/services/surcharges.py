"""Access, crew and special-item surcharges.

All of them land in ``additional_fees`` on the breakdown.
"""

from typing import Iterable, Mapping, Optional

from quote_engine.core.config import settings
from quote_engine.schemas.quote import Item, PropertyAccess
from quote_engine.utils.money import round2


def floor_cost(
    access: PropertyAccess,
    type_factors: Optional[Mapping[str, float]] = None,
) -> float:
    if access.floors == 0:
        return 0.0
    rate = settings.FLOOR_RATE_WITH_LIFT if access.has_lift else settings.FLOOR_RATE_NO_LIFT
    factors = type_factors if type_factors is not None else settings.BUILDING_TYPE_ACCESS_FACTORS
    return access.floors * rate * factors.get(str(access.type), 1.0)


def access_surcharge(
    pickup: PropertyAccess,
    dropoff: PropertyAccess,
    type_factors: Optional[Mapping[str, float]] = None,
) -> float:
    return round2(floor_cost(pickup, type_factors) + floor_cost(dropoff, type_factors))


def worker_surcharge(crew_size: int) -> float:
    extra = max(0, crew_size - settings.BASELINE_CREW)
    return round2(extra * settings.EXTRA_WORKER_RATE)


def special_item_surcharge(items: Iterable[Item]) -> float:
    """Per-unit handling charge for pianos, fragile and heavy items; charges stack."""
    total = 0.0
    for item in items:
        per_unit = 0.0
        if "piano" in item.canonical_name.lower():
            per_unit += settings.PIANO_SURCHARGE
        if item.is_fragile:
            per_unit += settings.FRAGILE_ITEM_SURCHARGE
        if item.weight > settings.HEAVY_ITEM_WEIGHT_KG:
            per_unit += settings.HEAVY_ITEM_SURCHARGE
        total += per_unit * item.quantity
    return round2(total)
