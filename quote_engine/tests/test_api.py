import httpx
import pytest

from quote_engine.api import quotes
from quote_engine.core.config import settings
from quote_engine.core.errors import PricingServiceError
from quote_engine.services.pricing_client import RemotePricingClient
from quote_engine.services.rate_card import price_request

CHARING_CROSS = {"lat": 51.5074, "lng": -0.1278}
OXFORD_CIRCUS = {"lat": 51.5155, "lng": -0.1419}

SOFA = {
    "id": "sofa",
    "canonicalName": "Sofa",
    "quantity": 1,
    "volumeFactor": 1.0,
    "weight": 40.0,
}


def _calc_body(**overrides):
    body = {
        "pickupCoordinates": CHARING_CROSS,
        "dropoffCoordinates": OXFORD_CIRCUS,
        "items": [SOFA],
        "serviceType": "man-and-van",
        "vehicleType": "van",
        "distanceKm": 12.0,
        "durationMinutes": 30,
    }
    body.update(overrides)
    return body


def _form_body(pickup=CHARING_CROSS, dropoff=OXFORD_CIRCUS, items=None, **overrides):
    body = {
        "pickupAddress": {"freeText": "1 Strand", "city": "London", "postcode": "WC2N 5DN", "coordinates": pickup},
        "dropoffAddress": {"freeText": "1 Oxford St", "city": "London", "postcode": "W1D 1AN", "coordinates": dropoff},
        "items": [SOFA] if items is None else items,
    }
    body.update(overrides)
    return body


class TestCalcEndpoint:

    @pytest.mark.asyncio
    async def test_prices_request(self, test_client):
        response = await test_client.post("/quotes/calc", json=_calc_body())
        assert response.status_code == 200
        data = response.json()
        assert data["basePrice"] == 25.0
        assert data["servicePrice"] == 45.0
        # 7 km charged after the free 5 km
        assert data["breakdown"]["distance"] == 10.5
        assert data["distance"] == 12.0

    @pytest.mark.asyncio
    async def test_repeat_request_served_from_cache(self, test_client, memory_cache):
        first = await test_client.post("/quotes/calc", json=_calc_body())
        second = await test_client.post("/quotes/calc", json=_calc_body())

        assert first.json() == second.json()
        assert len(memory_cache) == 1

        await test_client.post("/quotes/calc", json=_calc_body(serviceType="premium"))
        assert len(memory_cache) == 2

    @pytest.mark.asyncio
    async def test_rejects_bad_coordinates(self, test_client):
        response = await test_client.post(
            "/quotes/calc", json=_calc_body(pickupCoordinates={"lat": 123.0, "lng": 0.0})
        )
        assert response.status_code == 422


class TestEstimateEndpoint:

    @pytest.mark.asyncio
    async def test_full_quote(self, test_client):
        response = await test_client.post("/quotes/estimate", json=_form_body())
        assert response.status_code == 200
        data = response.json()

        assert data["isFallback"] is False
        assert data["durationMinutes"] == 30
        assert data["crewSize"] == 1
        b = data["breakdown"]
        assert b["subtotal"] == 78.0
        assert b["vat"] == 15.6
        assert b["total"] == 93.6
        assert "computedAt" in data

    @pytest.mark.asyncio
    async def test_service_type_changes_price(self, test_client):
        response = await test_client.post("/quotes/estimate", json=_form_body(serviceType="premium"))
        assert response.status_code == 200
        assert response.json()["breakdown"]["serviceFee"] == 85.0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        _form_body(items=[]),
        _form_body(dropoff={"lat": 0.0, "lng": 0.0}),
        _form_body(pickup=None),
    ])
    async def test_incomplete_form_is_unprocessable(self, test_client, body):
        response = await test_client.post("/quotes/estimate", json=body)
        assert response.status_code == 422


class RecordingOracle:
    """Stands in for whatever ``default_oracle`` would build."""

    def __init__(self, fail=False):
        self.fail = fail
        self.cache = None
        self.closed = False

    async def price(self, req):
        if self.fail:
            raise PricingServiceError("pricing service unavailable (status 503)")
        return price_request(req)

    async def aclose(self):
        self.closed = True


class TestEstimateOracleSelection:

    @pytest.mark.asyncio
    async def test_configured_oracle_used_and_closed(self, test_client, memory_cache, monkeypatch):
        oracle = RecordingOracle(fail=True)

        def fake_default_oracle(cache=None):
            oracle.cache = cache
            return oracle

        monkeypatch.setattr(quotes, "default_oracle", fake_default_oracle)
        response = await test_client.post("/quotes/estimate", json=_form_body())

        assert response.status_code == 200
        assert response.json()["isFallback"] is True
        assert response.json()["breakdown"]["total"] == 54.0
        assert oracle.cache is memory_cache
        assert oracle.closed is True

    @pytest.mark.asyncio
    async def test_oracle_closed_on_invalid_form(self, test_client, monkeypatch):
        oracle = RecordingOracle()
        monkeypatch.setattr(quotes, "default_oracle", lambda cache=None: oracle)
        response = await test_client.post("/quotes/estimate", json=_form_body(items=[]))

        assert response.status_code == 422
        assert oracle.closed is True

    @pytest.mark.asyncio
    async def test_remote_url_reaches_remote_client(self, test_client, monkeypatch):
        seen = []

        async def fake_post(self, payload):
            seen.append((self.url, payload))
            return httpx.Response(
                200,
                json={"basePrice": 30.0, "servicePrice": 50.0, "breakdown": {"distance": 0.0}, "distance": 1.33},
                request=httpx.Request("POST", self.url),
            )

        monkeypatch.setattr(settings, "PRICING_SERVICE_URL", "http://pricing.test/quotes/calc")
        monkeypatch.setattr(RemotePricingClient, "_post", fake_post)
        response = await test_client.post("/quotes/estimate", json=_form_body())

        assert response.status_code == 200
        assert seen[0][0] == "http://pricing.test/quotes/calc"
        b = response.json()["breakdown"]
        assert b["baseFee"] == 30.0
        assert b["serviceFee"] == 50.0


class TestMonitoring:

    @pytest.mark.asyncio
    async def test_health_endpoint(self, test_client):
        response = await test_client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["dependencies"]["cache"] == "memory"
        assert data["dependencies"]["pricing"] in ("remote", "rate-card")

    @pytest.mark.asyncio
    async def test_readiness_endpoint(self, test_client):
        response = await test_client.get("/readiness")
        assert response.status_code == 200
        assert response.json()["ready"] is True

    @pytest.mark.asyncio
    async def test_metrics_endpoint(self, test_client):
        await test_client.get("/health")
        response = await test_client.get("/metrics")
        assert response.status_code == 200
        assert "http_requests_total" in response.text

    @pytest.mark.asyncio
    async def test_root(self, test_client):
        response = await test_client.get("/")
        assert response.status_code == 200
        assert response.json()["docs"] == "/docs"
