from enum import Enum


class ServiceType(str, Enum):
    MAN_AND_VAN = "man-and-van"
    VAN_ONLY = "van-only"
    LARGE_VAN = "large-van"
    MULTIPLE_TRIPS = "multiple-trips"
    PREMIUM = "premium"

    def __str__(self):
        return self.value


class VehicleType(str, Enum):
    VAN = "van"
    LUTON = "luton"
    MULTI_VAN = "multi-van"
    PREMIUM_VAN = "premium-van"

    def __str__(self):
        return self.value


class PropertyType(str, Enum):
    HOUSE = "house"
    APARTMENT = "apartment"
    OFFICE = "office"
    WAREHOUSE = "warehouse"
    OTHER = "other"

    def __str__(self):
        return self.value


class RecalcState(str, Enum):
    IDLE = "idle"
    PENDING_VALIDATE = "pending_validate"
    DEBOUNCING = "debouncing"
    COMPUTING = "computing"
    SETTLED = "settled"
    ERROR_FALLBACK = "error_fallback"

    def __str__(self):
        return self.value


class RecalcOutcome(str, Enum):
    PUBLISHED = "published"
    FALLBACK = "fallback"
    UNCHANGED = "unchanged"
    STALE = "stale"
    REJECTED = "rejected"

    def __str__(self):
        return self.value
