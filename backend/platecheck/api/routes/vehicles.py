"""
Vehicle lookup API routes.

Provides registration plate -> merged vehicle data (specs, history, MOT, valuation)
plus cache inspection and clearing.
"""

import logging

from fastapi import APIRouter, HTTPException, Query

from platecheck.schemas.vehicle import LookupResult
from platecheck.services.cache_store import count_cached_lookups, get_cached_lookup
from platecheck.services.enhanced_vehicle import get_enhanced_vehicle_service
from platecheck.utils.plates import normalize_plate, validate_plate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/vehicles", tags=["vehicles"])


def _checked_plate(plate: str) -> str:
    error = validate_plate(plate)
    if error:
        raise HTTPException(status_code=400, detail=error)
    return normalize_plate(plate)


@router.get("/{plate}", response_model=LookupResult)
async def lookup_vehicle(
    plate: str,
    use_cache: bool = Query(True, description="Serve a fresh cached record when one exists"),
    mileage: int | None = Query(None, ge=1, description="Current mileage used for the valuation"),
):
    """Look up a plate. Missing providers produce warnings, not errors."""
    plate = _checked_plate(plate)

    result = await get_enhanced_vehicle_service().lookup_with_fallback(plate, mileage=mileage, use_cache=use_cache)
    if not result.success:
        raise HTTPException(status_code=500, detail=result.error or "Vehicle lookup failed")
    return result


@router.get("/{plate}/cache")
async def cached_vehicle(plate: str):
    """Return the cached row for a plate (404 when missing or expired)."""
    plate = _checked_plate(plate)
    cached = await get_cached_lookup(plate)
    if cached is None:
        raise HTTPException(status_code=404, detail=f"No cached lookup for {plate}")

    return {
        "plate": cached.plate,
        "id": cached.id,
        "checked_at": cached.checked_at,
        "check_status": cached.check_status,
        "api_provider": cached.api_provider,
        "test_mode": cached.test_mode,
        "make": cached.make,
        "model": cached.model,
        "fuel_type": cached.fuel_type,
        "private_price": cached.private_price,
        "retail_price": cached.retail_price,
        "trade_price": cached.trade_price,
        "rows": await count_cached_lookups(plate),
    }


@router.delete("/{plate}/cache")
async def clear_vehicle_cache(plate: str):
    """Forget the cached record so the next lookup goes upstream."""
    plate = _checked_plate(plate)
    cleared = await get_enhanced_vehicle_service().clear_cache(plate)
    logger.info(f"Cache clear for {plate}: {cleared}")
    return {"plate": plate, "cleared": cleared}
