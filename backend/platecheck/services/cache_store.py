"""
Vehicle-data cache store.

One row per normalized plate in vehicle_lookups, holding the flattened primitive
fields plus the full source-tagged record as JSON so a hit rebuilds the record
without losing provenance. Rows older than the TTL read as a miss.

The cache is best-effort: every database error is logged and swallowed here.
"""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from platecheck.config import settings
from platecheck.db import get_db
from platecheck.schemas.vehicle import CachedLookup, CanonicalVehicleRecord
from platecheck.utils.plates import normalize_plate

logger = logging.getLogger(__name__)

API_PROVIDER = "enhanced-vehicle-service"

_COLUMNS = (
    "plate",
    "make",
    "model",
    "variant",
    "colour",
    "fuel_type",
    "year",
    "engine_size",
    "body_type",
    "transmission",
    "doors",
    "seats",
    "co2_emissions",
    "annual_tax",
    "insurance_group",
    "urban_mpg",
    "extra_urban_mpg",
    "combined_mpg",
    "previous_owners",
    "is_written_off",
    "write_off_category",
    "is_stolen",
    "has_outstanding_finance",
    "private_price",
    "retail_price",
    "trade_price",
    "mileage",
    "record_json",
    "checked_at",
    "check_status",
    "api_provider",
    "test_mode",
)

_BOOL_COLUMNS = ("is_written_off", "is_stolen", "has_outstanding_finance", "test_mode")


def _as_int_flag(value: Any) -> int | None:
    if value is None:
        return None
    return int(bool(value))


def flatten_record(plate: str, record: CanonicalVehicleRecord, checked_at: datetime) -> dict[str, Any]:
    """Primitive column values for one cache row."""
    valuation = record.value_of("valuation") or {}
    estimated = valuation.get("estimated_value") or {}

    return {
        "plate": plate,
        "make": record.value_of("make"),
        "model": record.value_of("model"),
        "variant": record.value_of("variant"),
        "colour": record.value_of("color"),
        "fuel_type": record.value_of("fuel_type"),
        "year": record.value_of("year"),
        "engine_size": record.value_of("engine_size"),
        "body_type": record.value_of("body_type"),
        "transmission": record.value_of("transmission"),
        "doors": record.value_of("doors"),
        "seats": record.value_of("seats"),
        "co2_emissions": record.value_of("co2_emissions"),
        "annual_tax": record.value_of("annual_tax"),
        "insurance_group": record.value_of("insurance_group"),
        "urban_mpg": record.value_of("urban_mpg"),
        "extra_urban_mpg": record.value_of("extra_urban_mpg"),
        "combined_mpg": record.value_of("combined_mpg"),
        "previous_owners": record.value_of("previous_owners"),
        "is_written_off": _as_int_flag(record.value_of("is_written_off")),
        "write_off_category": record.value_of("write_off_category"),
        "is_stolen": _as_int_flag(record.value_of("is_stolen")),
        "has_outstanding_finance": _as_int_flag(record.value_of("has_outstanding_finance")),
        "private_price": estimated.get("private"),
        "retail_price": estimated.get("retail"),
        "trade_price": estimated.get("trade"),
        "mileage": record.value_of("mileage"),
        "record_json": record.model_dump_json(),
        "checked_at": checked_at.isoformat(),
        "check_status": "success",
        "api_provider": API_PROVIDER,
        "test_mode": int(settings.test_mode),
    }


def _row_to_lookup(row) -> CachedLookup:
    data = dict(row)
    for column in _BOOL_COLUMNS:
        if data.get(column) is not None:
            data[column] = bool(data[column])
    data["checked_at"] = _parse_timestamp(data["checked_at"])
    data["record"] = CanonicalVehicleRecord.model_validate_json(data.pop("record_json"))
    return CachedLookup(**data)


def _parse_timestamp(value: str) -> datetime:
    checked_at = datetime.fromisoformat(value)
    if checked_at.tzinfo is None:
        checked_at = checked_at.replace(tzinfo=UTC)
    return checked_at


async def get_cached_lookup(plate: str, ttl_days: int | None = None) -> CachedLookup | None:
    """Return the cached lookup for a plate, or None when missing or older than the TTL."""
    plate = normalize_plate(plate)
    ttl = timedelta(days=settings.cache_ttl_days if ttl_days is None else ttl_days)

    try:
        db = await get_db()
        cursor = await db.execute(
            "SELECT * FROM vehicle_lookups WHERE plate = ? ORDER BY checked_at DESC LIMIT 1",
            (plate,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        lookup = _row_to_lookup(row)
    except Exception as e:
        logger.warning(f"Cache read error for {plate}: {e}")
        return None

    age = datetime.now(UTC) - lookup.checked_at
    if age > ttl:
        logger.info(f"Cache expired for {plate} (age: {age.days} days)")
        return None

    logger.debug(f"Cache hit for {plate} (age: {age})")
    return lookup


async def save_cached_lookup(plate: str, record: CanonicalVehicleRecord) -> CachedLookup | None:
    """
    Replace the cached row for a plate: delete existing rows then insert one,
    inside a single transaction. Returns the stored row or None on failure.
    """
    plate = normalize_plate(plate)
    checked_at = record.checked_at or datetime.now(UTC)
    values = flatten_record(plate, record, checked_at)

    placeholders = ", ".join("?" for _ in _COLUMNS)
    try:
        db = await get_db()
        try:
            await db.execute("DELETE FROM vehicle_lookups WHERE plate = ?", (plate,))
            cursor = await db.execute(
                f"INSERT INTO vehicle_lookups ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
                tuple(values[column] for column in _COLUMNS),
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        row_id = cursor.lastrowid
    except Exception as e:
        logger.error(f"Cache storage error for {plate}: {e}")
        return None

    logger.info(f"Cached vehicle data for {plate} with id {row_id}")
    values.pop("record_json")
    for column in _BOOL_COLUMNS:
        if values[column] is not None:
            values[column] = bool(values[column])
    values["checked_at"] = checked_at
    return CachedLookup(id=row_id, record=record, **values)


async def clear_cached_lookup(plate: str) -> bool:
    """Delete every cached row for a plate. True if anything was deleted."""
    plate = normalize_plate(plate)
    try:
        db = await get_db()
        cursor = await db.execute("DELETE FROM vehicle_lookups WHERE plate = ?", (plate,))
        await db.commit()
    except Exception as e:
        logger.error(f"Cache clear error for {plate}: {e}")
        return False
    return cursor.rowcount > 0


async def count_cached_lookups(plate: str) -> int:
    plate = normalize_plate(plate)
    try:
        db = await get_db()
        cursor = await db.execute("SELECT COUNT(*) FROM vehicle_lookups WHERE plate = ?", (plate,))
        return (await cursor.fetchone())[0]
    except Exception as e:
        logger.warning(f"Cache count error for {plate}: {e}")
        return 0
