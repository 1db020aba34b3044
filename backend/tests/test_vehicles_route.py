"""Tests for the vehicle lookup API endpoints."""
from unittest import mock
from unittest.mock import patch, AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

import platecheck.db as db_mod
from platecheck.clients.base import ProviderError
from platecheck.db import close_db
from platecheck.main import app
from platecheck.services.enhanced_vehicle import EnhancedVehicleService, VALUATION_UNAVAILABLE


@pytest_asyncio.fixture(autouse=True)
async def temp_db(tmp_path):
    """Use a temp database for each test."""
    db_mod._db = None
    temp_path = tmp_path / "test.db"
    with mock.patch.object(db_mod, "DB_PATH", temp_path):
        yield temp_path
        await close_db()


@pytest.fixture
def fake_service(vehicle_payload, history_payload, mot_payload, valuation_payload):
    specs_client = MagicMock()
    specs_client.get_vehicle_data = AsyncMock(return_value=vehicle_payload)
    specs_client.get_vehicle_history = AsyncMock(return_value=history_payload)
    specs_client.get_mot_history = AsyncMock(return_value=mot_payload)
    valuation_client = MagicMock()
    valuation_client.get_valuation = AsyncMock(return_value=valuation_payload)

    service = EnhancedVehicleService(specs_client, valuation_client)
    with patch("platecheck.api.routes.vehicles.get_enhanced_vehicle_service", return_value=service):
        yield service


async def _get(path, **params):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        return await client.get(path, params=params)


async def _delete(path):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        return await client.delete(path)


@pytest.mark.asyncio
async def test_health():
    response = await _get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


@pytest.mark.asyncio
async def test_lookup_returns_merged_record(fake_service):
    response = await _get("/vehicles/ab12cde", use_cache="false", mileage=50000)
    assert response.status_code == 200

    data = response.json()
    assert data["success"] is True
    assert data["warnings"] == []
    record = data["data"]
    assert record["plate"] == "AB12CDE"
    assert record["make"] == {"value": "BMW", "source": "checkcardetails"}
    assert record["valuation"]["value"]["estimated_value"]["private"] == 12000
    assert record["valuation"]["source"] == "valuation"
    assert record["data_sources"] == {"specs": True, "valuation": True}


@pytest.mark.asyncio
async def test_lookup_reports_missing_valuation(fake_service):
    fake_service.valuation_client.get_valuation.side_effect = ProviderError(
        "limit", code=ProviderError.RATE_LIMIT_EXCEEDED, provider="valuation"
    )
    response = await _get("/vehicles/AB12CDE")
    data = response.json()

    assert response.status_code == 200
    assert data["success"] is True
    assert data["warnings"] == [VALUATION_UNAVAILABLE]
    assert data["data"]["valuation"] == {"value": None, "source": None}


@pytest.mark.asyncio
async def test_lookup_second_call_served_from_cache(fake_service):
    await _get("/vehicles/AB12CDE")
    response = await _get("/vehicles/AB12CDE")
    assert response.json()["data"]["from_cache"] is True
    assert fake_service.specs_client.get_vehicle_data.await_count == 1


@pytest.mark.asyncio
async def test_lookup_invalid_plate(fake_service):
    response = await _get("/vehicles/AB12CDEFGH")
    assert response.status_code == 400
    assert "2-8 letters or digits" in response.json()["detail"]


@pytest.mark.asyncio
async def test_lookup_invalid_mileage(fake_service):
    response = await _get("/vehicles/AB12CDE", mileage=0)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_cached_row(fake_service):
    await _get("/vehicles/AB12CDE", use_cache="false")

    response = await _get("/vehicles/AB12CDE/cache")
    assert response.status_code == 200
    data = response.json()
    assert data["plate"] == "AB12CDE"
    assert data["make"] == "BMW"
    assert data["private_price"] == 12000
    assert data["rows"] == 1


@pytest.mark.asyncio
async def test_cached_row_missing(fake_service):
    response = await _get("/vehicles/AB12CDE/cache")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_clear_cache(fake_service):
    await _get("/vehicles/AB12CDE", use_cache="false")

    response = await _delete("/vehicles/AB12CDE/cache")
    assert response.json() == {"plate": "AB12CDE", "cleared": True}

    response = await _get("/vehicles/AB12CDE/cache")
    assert response.status_code == 404

    response = await _delete("/vehicles/AB12CDE/cache")
    assert response.json() == {"plate": "AB12CDE", "cleared": False}


@pytest.mark.asyncio
async def test_lookup_unexpected_failure(fake_service):
    fake_service.specs_client.get_vehicle_data.side_effect = RuntimeError("boom")
    response = await _get("/vehicles/AB12CDE")
    assert response.status_code == 500
    assert response.json()["detail"] == "boom"


@pytest.mark.asyncio
async def test_lookup_forwards_use_cache(fake_service):
    await _get("/vehicles/AB12CDE")
    response = await _get("/vehicles/AB12CDE", use_cache="false")
    assert response.json()["data"]["from_cache"] is False
    assert fake_service.specs_client.get_vehicle_data.await_count == 2
