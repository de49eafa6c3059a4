from typing import Dict, List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    REDIS_URL: str = "redis://localhost:6379/0"
    PRICE_CACHE_TTL: int = 60   # 60 seconds
    QUOTE_CACHE_MAX_ENTRIES: int = 512

    # Empty means "price with the local rate card"
    PRICING_SERVICE_URL: str = ""
    PRICING_TIMEOUT: float = 3.0
    PRICING_RETRIES: int = 2

    DEBOUNCE_MS: int = 100

    VAT_RATE: float = 0.20
    BASE_FEE: float = 25.0
    VOLUME_RATE_PER_M3: float = 8.0
    FREE_DISTANCE_KM: float = 5.0
    LONG_DISTANCE_THRESHOLD_KM: float = 50.0
    LONG_DISTANCE_SURCHARGE_PER_KM: float = 0.25

    FALLBACK_BASE_FEE: float = 25.0
    FALLBACK_SERVICE_FEE: float = 10.0
    FALLBACK_VOLUME_RATE_PER_M3: float = 10.0

    FLOOR_RATE_WITH_LIFT: float = 2.0
    FLOOR_RATE_NO_LIFT: float = 5.0
    # Per-building-type multiplier on floor cost; neutral until pricing confirms values
    BUILDING_TYPE_ACCESS_FACTORS: Dict[str, float] = {
        "house": 1.0,
        "apartment": 1.0,
        "office": 1.0,
        "warehouse": 1.0,
        "other": 1.0,
    }

    BASELINE_CREW: int = 2
    EXTRA_WORKER_RATE: float = 15.0

    # Scheduled-date pricing on the rate card's base, service and distance lines
    PEAK_SEASON_MONTHS: List[int] = [6, 7, 8, 12]
    HIGH_SEASON_MONTHS: List[int] = [3, 4, 5, 9, 10, 11]
    PEAK_SEASON_MULTIPLIER: float = 1.2
    HIGH_SEASON_MULTIPLIER: float = 1.1
    WEEKEND_DEMAND_MULTIPLIER: float = 1.15

    PIANO_SURCHARGE: float = 50.0
    FRAGILE_ITEM_SURCHARGE: float = 15.0
    HEAVY_ITEM_SURCHARGE: float = 10.0
    HEAVY_ITEM_WEIGHT_KG: float = 50.0

    STRICT_INVARIANTS: bool = False

    API_TITLE: str = "Move Quote Pricing Engine"
    API_DESCRIPTION: str = "Price oracle and quote estimates for move bookings"
    API_VERSION: str = "1.0.0"

    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
