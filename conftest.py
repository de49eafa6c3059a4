import asyncio
from typing import Callable, List, Optional

import pytest
from httpx import ASGITransport, AsyncClient

from quote_engine.core.cache import MemoryCache
from quote_engine.core.errors import PricingServiceError
from quote_engine.core.scheduling import ScheduledTask, Scheduler
from quote_engine.main import app
from quote_engine.schemas.quote import (
    Address,
    BookingForm,
    Coordinates,
    Item,
    PricingRequest,
    PricingResponse,
    PropertyAccess,
)
from quote_engine.services.rate_card import price_request


LONDON_CHARING_CROSS = Coordinates(lat=51.5074, lng=-0.1278)
LONDON_OXFORD_CIRCUS = Coordinates(lat=51.5155, lng=-0.1419)


def make_address(coords: Optional[Coordinates], text: str = "1 Test Street") -> Address:
    return Address(free_text=text, city="London", postcode="W1A 1AA", coordinates=coords)


def make_item(item_id: str = "sofa", quantity: int = 1, volume: float = 1.0, weight: float = 10.0, **flags) -> Item:
    return Item(
        id=item_id,
        canonical_name=item_id.replace("-", " ").title(),
        quantity=quantity,
        volume_factor=volume,
        weight=weight,
        **flags,
    )


def make_form(
    items: Optional[List[Item]] = None,
    pickup: Optional[Coordinates] = LONDON_CHARING_CROSS,
    dropoff: Optional[Coordinates] = LONDON_OXFORD_CIRCUS,
    **kwargs,
) -> BookingForm:
    return BookingForm(
        pickup_address=make_address(pickup),
        dropoff_address=make_address(dropoff, "2 Test Road"),
        items=[make_item()] if items is None else items,
        **kwargs,
    )


class ManualTask(ScheduledTask):
    def __init__(self, due: float, callback: Callable[[], None]):
        self.due = due
        self.callback = callback
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    def cancelled(self) -> bool:
        return self._cancelled


class ManualScheduler(Scheduler):
    """Scheduler driven by the test: nothing fires until ``advance()``."""

    def __init__(self):
        self.now = 0.0
        self.tasks: List[ManualTask] = []

    def call_later(self, delay, callback):
        task = ManualTask(self.now + delay, callback)
        self.tasks.append(task)
        return task

    @property
    def pending(self) -> List[ManualTask]:
        return [t for t in self.tasks if not t.cancelled()]

    def advance(self, seconds: float) -> int:
        self.now += seconds
        due = [t for t in self.pending if t.due <= self.now]
        for task in due:
            self.tasks.remove(task)
            task.callback()
        return len(due)


class CountingOracle:
    """Rate-card oracle that records every request it prices."""

    def __init__(self):
        self.requests: List[PricingRequest] = []

    async def price(self, req: PricingRequest) -> PricingResponse:
        self.requests.append(req)
        return price_request(req)

    async def aclose(self) -> None:
        return None


class FailingOracle:
    def __init__(self):
        self.calls = 0

    async def price(self, req: PricingRequest) -> PricingResponse:
        self.calls += 1
        raise PricingServiceError("pricing service timed out after 3.0s")

    async def aclose(self) -> None:
        return None


class GatedOracle:
    """Oracle whose answers are released by the test, one gate per call."""

    def __init__(self):
        self.gates: List[asyncio.Event] = []
        self.requests: List[PricingRequest] = []

    async def price(self, req: PricingRequest) -> PricingResponse:
        gate = asyncio.Event()
        self.gates.append(gate)
        self.requests.append(req)
        await gate.wait()
        return price_request(req)

    async def aclose(self) -> None:
        return None


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def counting_oracle():
    return CountingOracle()


@pytest.fixture
def failing_oracle():
    return FailingOracle()


@pytest.fixture
def gated_oracle():
    return GatedOracle()


@pytest.fixture
def memory_cache():
    return MemoryCache(ttl=60, max_entries=16)


@pytest.fixture
async def test_client(memory_cache):
    app.state.quote_cache = memory_cache
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.state.quote_cache = None
