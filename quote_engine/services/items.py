from dataclasses import dataclass
from typing import Iterable

from quote_engine.schemas.quote import Item

# (upper bound in m3, crew) checked in order; anything larger gets MAX_CREW
CREW_THRESHOLDS = (
    (5.0, 1),
    (15.0, 2),
    (25.0, 3),
)
MAX_CREW = 4


@dataclass(frozen=True)
class ItemSummary:
    total_volume: float
    total_weight: float
    required_workers: int
    item_count: int
    has_fragile: bool
    needs_disassembly: bool
    needs_two_person: bool


def recommend_crew(total_volume: float) -> int:
    """The one crew-size table. Anything that needs a crew size calls this."""
    for limit, crew in CREW_THRESHOLDS:
        if total_volume <= limit:
            return crew
    return MAX_CREW


def aggregate_items(items: Iterable[Item]) -> ItemSummary:
    total_volume = 0.0
    total_weight = 0.0
    count = 0
    fragile = disassembly = two_person = False

    for item in items:
        total_volume += item.volume_factor * item.quantity
        total_weight += item.weight * item.quantity
        count += item.quantity
        fragile = fragile or item.is_fragile
        disassembly = disassembly or item.requires_disassembly
        two_person = two_person or item.requires_two_person

    return ItemSummary(
        total_volume=total_volume,
        total_weight=total_weight,
        required_workers=recommend_crew(total_volume),
        item_count=count,
        has_fragile=fragile,
        needs_disassembly=disassembly,
        needs_two_person=two_person,
    )
