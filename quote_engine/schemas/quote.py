from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel

from quote_engine.core.enums import PropertyType, ServiceType, VehicleType
from quote_engine.utils.money import round2


class EngineModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class Coordinates(EngineModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)

    @property
    def is_sentinel(self) -> bool:
        # (0, 0) is what the address form holds before a suggestion is picked
        return self.lat == 0 and self.lng == 0


class Address(EngineModel):
    free_text: str = ""
    city: str = ""
    postcode: str = ""
    coordinates: Optional[Coordinates] = None

    @property
    def is_located(self) -> bool:
        return self.coordinates is not None and not self.coordinates.is_sentinel


class Item(EngineModel):
    id: str
    canonical_name: str
    quantity: int = Field(1, ge=1)
    volume_factor: float = Field(0.0, ge=0)
    weight: float = Field(0.0, ge=0)
    requires_two_person: bool = False
    is_fragile: bool = False
    requires_disassembly: bool = False


class PropertyAccess(EngineModel):
    type: PropertyType = PropertyType.HOUSE
    floors: int = Field(0, ge=0)
    has_lift: bool = False
    has_parking: bool = True
    requires_permit: bool = False


class BookingForm(EngineModel):
    """Raw form state handed over by the booking wizard on every edit."""

    pickup_address: Optional[Address] = None
    dropoff_address: Optional[Address] = None
    items: List[Item] = Field(default_factory=list)
    pickup_property: PropertyAccess = Field(default_factory=PropertyAccess)
    dropoff_property: PropertyAccess = Field(default_factory=PropertyAccess)
    service_type: ServiceType = ServiceType.MAN_AND_VAN
    crew_override: Optional[int] = Field(None, ge=1)
    scheduled_time: Optional[datetime] = None

    @property
    def is_computable(self) -> bool:
        return (
            self.pickup_address is not None
            and self.dropoff_address is not None
            and self.pickup_address.is_located
            and self.dropoff_address.is_located
            and len(self.items) > 0
        )


class PriceBreakdown(EngineModel):
    base_fee: float = Field(ge=0)
    distance_fee: float = Field(ge=0)
    volume_fee: float = Field(ge=0)
    service_fee: float = Field(ge=0)
    additional_fees: float = Field(ge=0)
    vat: float = Field(ge=0)
    total: float = Field(ge=0)
    distance_miles: float = Field(0.0, ge=0)

    @computed_field
    @property
    def subtotal(self) -> float:
        return round2(
            self.base_fee
            + self.distance_fee
            + self.volume_fee
            + self.service_fee
            + self.additional_fees
        )


class Quote(EngineModel):
    breakdown: PriceBreakdown
    distance_km: float = Field(ge=0)
    duration_minutes: int = Field(ge=0)
    is_fallback: bool = False
    computed_at: datetime
    generation: int = 0
    crew_size: int = Field(1, ge=1)


class PricingRequest(EngineModel):
    pickup_coordinates: Coordinates
    dropoff_coordinates: Coordinates
    items: List[Item]
    scheduled_time: Optional[datetime] = None
    service_type: ServiceType = ServiceType.MAN_AND_VAN
    vehicle_type: VehicleType = VehicleType.VAN
    distance_km: float = Field(ge=0)
    duration_minutes: int = Field(ge=0)


class PricingResponse(EngineModel):
    base_price: float = Field(ge=0)
    service_price: float = Field(ge=0)
    # Only "distance" is read; other lines are the oracle's business
    breakdown: Dict[str, Any]
    distance: float = Field(0.0, ge=0)

    @field_validator("breakdown")
    @classmethod
    def _has_distance_line(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        if "distance" not in v:
            raise ValueError("breakdown must contain a 'distance' line")
        distance = v["distance"]
        if isinstance(distance, bool) or not isinstance(distance, (int, float)):
            raise ValueError("breakdown distance must be a number")
        if distance < 0:
            raise ValueError("breakdown distance must be non-negative")
        return {**v, "distance": float(distance)}
