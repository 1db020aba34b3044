"""
Merge specification/history and valuation payloads into a CanonicalVehicleRecord.

Rules:
- For every canonical field the spec/history value wins when present, else
  the valuation value is used. The winner is tagged with its provider.
- Fields neither payload defines stay absent. The one named fallback is the
  electric vehicle rule: zero CO2 and zero annual tax.
- A spec model that is only an engine size ("2.0L") counts as absent.
- Pure: no clock and no I/O, so identical inputs give identical records.
"""

import logging
from typing import Any

from pydantic import BaseModel

from platecheck.schemas.vehicle import (
    CANONICAL_FIELDS,
    CanonicalVehicleRecord,
    DataSources,
    DataSource,
    EstimatedValue,
    SourcedValue,
    SpecPayload,
    Valuation,
    ValuationPayload,
)
from platecheck.utils.parsing import is_engine_size_only, parse_vehicle_description

logger = logging.getLogger(__name__)

ELECTRIC_FUEL_TYPE = "Electric"


def is_present(value: Any) -> bool:
    """None, blank strings and empty containers count as absent."""
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, dict)):
        return len(value) > 0
    return True


def _plain(value: Any) -> Any:
    """Convert nested pydantic models to JSON-native values so records survive a cache round trip."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [_plain(item) for item in value]
    return value


def has_useful_spec_data(payload: SpecPayload | None) -> bool:
    if payload is None:
        return False
    return any(is_present(getattr(payload, name, None)) for name in CANONICAL_FIELDS)


def has_useful_valuation_data(payload: ValuationPayload | None) -> bool:
    if payload is None:
        return False
    return any(
        price is not None and price > 0
        for price in (payload.private_price, payload.retail_price, payload.trade_price)
    )


def spec_candidates(payload: SpecPayload | None) -> dict[str, Any]:
    """Canonical field -> value offered by the spec/history payload."""
    if not has_useful_spec_data(payload):
        return {}

    candidates = {}
    for name in CANONICAL_FIELDS:
        value = getattr(payload, name, None)
        if name == "model" and is_engine_size_only(value):
            logger.info(f"Rejecting model value {value!r} (engine size, not a model)")
            continue
        if is_present(value):
            candidates[name] = _plain(value)
    return candidates


def valuation_candidates(payload: ValuationPayload | None) -> dict[str, Any]:
    """Canonical field -> value offered by the valuation payload."""
    if not has_useful_valuation_data(payload):
        return {}

    candidates: dict[str, Any] = {
        "valuation": Valuation(
            estimated_value=EstimatedValue(
                private=payload.private_price,
                retail=payload.retail_price,
                trade=payload.trade_price,
            ),
            part_exchange=payload.part_exchange_price,
            confidence=payload.confidence,
            mileage=payload.mileage,
        ).model_dump(mode="json"),
    }
    if payload.mileage:
        candidates["mileage"] = payload.mileage

    make, model, fuel_type = parse_vehicle_description(payload.vehicle_description)
    for name, value in (("make", make), ("model", model), ("fuel_type", fuel_type)):
        if is_present(value):
            candidates[name] = value
    return candidates


def _apply_electric_rule(fields: dict[str, SourcedValue]) -> None:
    if fields["fuel_type"].value != ELECTRIC_FUEL_TYPE:
        return
    for name in ("co2_emissions", "annual_tax"):
        if not fields[name].present:
            fields[name] = SourcedValue(value=0, source=DataSource.ELECTRIC_RULE)


def merge(
    spec_payload: SpecPayload | None,
    valuation_payload: ValuationPayload | None = None,
) -> CanonicalVehicleRecord:
    """Combine at most one spec/history payload and one valuation payload."""
    from_specs = spec_candidates(spec_payload)
    from_valuation = valuation_candidates(valuation_payload)

    fields: dict[str, SourcedValue] = {}
    for name in CANONICAL_FIELDS:
        if name in from_specs:
            fields[name] = SourcedValue(value=from_specs[name], source=DataSource.SPECS)
        elif name in from_valuation:
            fields[name] = SourcedValue(value=from_valuation[name], source=DataSource.VALUATION)
        else:
            fields[name] = SourcedValue()

    _apply_electric_rule(fields)

    return CanonicalVehicleRecord(
        **fields,
        data_sources=DataSources(specs=bool(from_specs), valuation=bool(from_valuation)),
    )


def merge_valuation(
    record: CanonicalVehicleRecord,
    valuation_payload: ValuationPayload | None,
) -> CanonicalVehicleRecord:
    """
    Return a new record with valuation-derived fields filled where the record
    has them absent. Existing fields, whatever their source, are kept.
    """
    from_valuation = valuation_candidates(valuation_payload)
    if not from_valuation:
        return record

    updates: dict[str, Any] = {}
    for name, value in from_valuation.items():
        if not getattr(record, name).present:
            updates[name] = SourcedValue(value=value, source=DataSource.VALUATION)

    fields = {name: updates.get(name, getattr(record, name)) for name in CANONICAL_FIELDS}
    _apply_electric_rule(fields)
    updates.update({name: fields[name] for name in ("co2_emissions", "annual_tax")})

    updates["data_sources"] = DataSources(specs=record.data_sources.specs, valuation=True)
    return record.model_copy(update=updates)
