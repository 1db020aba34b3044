"""
Enhanced vehicle data service.

Coordinates the specification/history provider and the valuation provider for
one registration plate, merges both payloads into a source-tagged record and
persists it to the cache store.

Per lookup:
    START -> cache read (when use_cache) -> CACHE_HIT (return)
          -> CACHE_MISS -> specs (three sub-calls in parallel)
          -> mileage = explicit, else latest MOT reading, else default
          -> valuation -> merge -> persist -> DONE

Provider failures never fail a lookup; they produce absent fields and a
warning. Only errors in this module's own control flow propagate.
"""

import asyncio
import logging
from datetime import UTC, datetime

from platecheck.clients.base import ProviderError
from platecheck.clients.specs import VehicleSpecsClient
from platecheck.clients.valuation import ValuationClient
from platecheck.config import settings
from platecheck.schemas.vehicle import (
    CanonicalVehicleRecord,
    LookupResult,
    SpecPayload,
    ValuationPayload,
)
from platecheck.services import cache_store
from platecheck.services.merger import merge, merge_valuation
from platecheck.services.plate_lock import plate_lock
from platecheck.utils.plates import normalize_plate, validate_plate

logger = logging.getLogger(__name__)

SPECS_UNAVAILABLE = "Vehicle specification data unavailable"
VALUATION_UNAVAILABLE = "Valuation data unavailable"


class EnhancedVehicleService:
    """Multi-provider vehicle lookup with a TTL-bounded cache."""

    def __init__(
        self,
        specs_client: VehicleSpecsClient,
        valuation_client: ValuationClient,
        default_mileage: int = 50000,
        read_through: bool = True,
        cache_ttl_days: int = 30,
    ):
        self.specs_client = specs_client
        self.valuation_client = valuation_client
        self.default_mileage = default_mileage
        self.read_through = read_through
        self.cache_ttl_days = cache_ttl_days

    async def lookup(
        self,
        plate: str,
        use_cache: bool = True,
        mileage: int | None = None,
    ) -> CanonicalVehicleRecord:
        """
        Return the canonical record for a plate.

        Raises ValueError for an invalid plate or mileage. Provider and cache
        failures are absorbed into the returned record.
        """
        error = validate_plate(plate)
        if error:
            raise ValueError(error)
        if mileage is not None and mileage <= 0:
            raise ValueError("Mileage must be a positive integer")
        plate = normalize_plate(plate)

        logger.info(f"Enhanced vehicle lookup for {plate} (use_cache={use_cache}, mileage={mileage})")
        check_cache = use_cache and self.read_through

        if check_cache:
            cached = await self._cached_record(plate, mileage)
            if cached is not None:
                return cached

        async with plate_lock(plate):
            # Another request may have finished building this plate while we waited
            if check_cache:
                cached = await self._cached_record(plate, mileage)
                if cached is not None:
                    return cached
            return await self._build(plate, mileage)

    async def _build(self, plate: str, mileage: int | None) -> CanonicalVehicleRecord:
        logger.info(f"Cache miss for {plate} - calling providers")

        spec_payload = await self.fetch_spec_payload(plate)

        valuation_mileage = mileage or (spec_payload.mileage if spec_payload else None) or self.default_mileage
        valuation_payload = await self.fetch_valuation(plate, valuation_mileage)

        record = merge(spec_payload, valuation_payload)
        logger.info(
            f"Provider results for {plate}: specs={'ok' if record.data_sources.specs else 'failed'}, "
            f"valuation={'ok' if record.data_sources.valuation else 'failed'}"
        )
        return await self._persist(plate, record)

    async def _persist(self, plate: str, record: CanonicalVehicleRecord) -> CanonicalVehicleRecord:
        record = record.model_copy(update={"plate": plate, "checked_at": datetime.now(UTC), "from_cache": False})
        saved = await cache_store.save_cached_lookup(plate, record)
        if saved is not None:
            record = record.model_copy(update={"cache_id": saved.id})
        return record

    async def _cached_record(self, plate: str, mileage: int | None) -> CanonicalVehicleRecord | None:
        cached = await cache_store.get_cached_lookup(plate, ttl_days=self.cache_ttl_days)
        if cached is None or cached.record is None:
            return None
        if not cached.record.data_sources.specs:
            # Built while the spec provider was down
            logger.info(f"Cached record for {plate} has no specification data - treating as a miss")
            return None

        record = cached.record.model_copy(update={"cache_id": cached.id, "from_cache": True})
        if record.valuation.present:
            logger.info(f"Cache hit for {plate} (checked {cached.checked_at.isoformat()})")
            return record

        # Cached vehicle data is fine but valuation was missing; top it up
        logger.info(f"Cache hit for {plate} without valuation - fetching valuation only")
        valuation_mileage = mileage or record.value_of("mileage") or self.default_mileage
        valuation_payload = await self.fetch_valuation(plate, valuation_mileage)
        if valuation_payload is None:
            return record

        return await self._persist(plate, merge_valuation(record, valuation_payload))

    async def fetch_spec_payload(self, plate: str) -> SpecPayload | None:
        """
        Fan out the three spec/history sub-calls and keep whichever succeed.
        None only when all three fail.
        """
        results = await asyncio.gather(
            self.specs_client.get_vehicle_data(plate),
            self.specs_client.get_vehicle_history(plate),
            self.specs_client.get_mot_history(plate),
            return_exceptions=True,
        )

        parts = []
        for name, result in zip(("vehicle data", "history", "MOT history"), results):
            if isinstance(result, ProviderError):
                logger.error(f"Specs {name} failed for {plate}: [{result.code}] {result}")
                parts.append(None)
            elif isinstance(result, Exception):
                raise result
            else:
                parts.append(result)

        vehicle, history, mot = parts
        if vehicle is None and history is None and mot is None:
            return None

        return SpecPayload.from_parts(vehicle=vehicle, history=history, mot=mot)

    async def fetch_valuation(self, plate: str, mileage: int) -> ValuationPayload | None:
        try:
            return await self.valuation_client.get_valuation(plate, int(mileage))
        except ProviderError as e:
            logger.error(f"Valuation failed for {plate}: [{e.code}] {e}")
            return None

    async def lookup_with_fallback(
        self,
        plate: str,
        mileage: int | None = None,
        use_cache: bool = True,
    ) -> LookupResult:
        """Best-effort lookup with human-readable warnings for missing providers."""
        try:
            record = await self.lookup(plate, use_cache=use_cache, mileage=mileage)
        except ValueError as e:
            return LookupResult(success=False, error=str(e))
        except Exception as e:
            logger.exception(f"Enhanced vehicle lookup failed for {plate}: {e}")
            return LookupResult(success=False, error=str(e))

        return LookupResult(success=True, data=record, warnings=self.generate_warnings(record))

    @staticmethod
    def generate_warnings(record: CanonicalVehicleRecord) -> list[str]:
        warnings = []
        if not record.data_sources.specs:
            warnings.append(SPECS_UNAVAILABLE)
        if not record.data_sources.valuation:
            warnings.append(VALUATION_UNAVAILABLE)
        return warnings

    async def clear_cache(self, plate: str) -> bool:
        return await cache_store.clear_cached_lookup(plate)


_service: EnhancedVehicleService | None = None


def get_enhanced_vehicle_service() -> EnhancedVehicleService:
    """Get or create the service configured from settings."""
    global _service
    if _service is None:
        _service = EnhancedVehicleService(
            specs_client=VehicleSpecsClient(
                api_key=settings.checkcard_api_key,
                base_url=settings.checkcard_api_base_url,
                test_mode=settings.test_mode,
                timeout=settings.specs_timeout,
            ),
            valuation_client=ValuationClient(
                api_key=settings.checkcard_api_key,
                base_url=settings.checkcard_api_base_url,
                test_mode=settings.test_mode,
                timeout=settings.valuation_timeout,
            ),
            default_mileage=settings.default_mileage,
            read_through=settings.cache_read_through,
            cache_ttl_days=settings.cache_ttl_days,
        )
    return _service
