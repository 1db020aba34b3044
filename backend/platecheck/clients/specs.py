"""
Vehicle specification / history client (CheckCarDetails).

Three logically separate resources per plate:
- vehicle data: vehiclespecs + ukvehicledata (specs, running costs, colour)
- history: carhistorycheck (keepers, write-off, stolen, finance)
- MOT: mot (test history, odometer readings)
"""

import asyncio
import logging
from datetime import datetime
from typing import Any

from platecheck.clients.base import ProviderClient, ProviderError
from platecheck.schemas.vehicle import (
    MileageReading,
    MotHistoryPayload,
    MotTest,
    VehicleDataPayload,
    VehicleHistoryPayload,
    WriteOffDetails,
)
from platecheck.utils.parsing import (
    as_dict,
    as_list,
    clean_text,
    extract_number,
    first_present,
    normalize_fuel_type,
    normalize_transmission,
    parse_write_off_category,
)

logger = logging.getLogger(__name__)


class VehicleSpecsClient(ProviderClient):
    """Client for the specification/history datapoints."""

    provider_name = "checkcardetails"

    async def get_vehicle_data(self, plate: str) -> VehicleDataPayload:
        """Fetch vehiclespecs and ukvehicledata in parallel; fails only if both fail."""
        plate = self._check_request(plate)

        specs_result, uk_result = await asyncio.gather(
            self.request_datapoint("vehiclespecs", plate),
            self.request_datapoint("ukvehicledata", plate),
            return_exceptions=True,
        )

        specs = None if isinstance(specs_result, Exception) else specs_result
        uk_data = None if isinstance(uk_result, Exception) else uk_result

        if specs is None and uk_data is None:
            # Surface the specs failure; it carries the more useful code
            raise specs_result

        if specs is None:
            logger.warning(f"vehiclespecs failed for {plate}, using ukvehicledata only: {specs_result}")
        if uk_data is None:
            logger.warning(f"ukvehicledata failed for {plate}, using vehiclespecs only: {uk_result}")

        return self.parse_body("vehiclespecs", parse_vehicle_data, specs or {}, uk_data or {})

    async def get_vehicle_history(self, plate: str) -> VehicleHistoryPayload:
        plate = self._check_request(plate)
        data = await self.request_datapoint("carhistorycheck", plate)
        return self.parse_body("carhistorycheck", parse_history, data)

    async def get_mot_history(self, plate: str) -> MotHistoryPayload:
        plate = self._check_request(plate)
        data = await self.request_datapoint("mot", plate)
        return self.parse_body("mot", parse_mot_history, data)


# ─── Response parsers ────────────────────────────────────────────────


def parse_vehicle_data(specs: dict[str, Any], uk_data: dict[str, Any]) -> VehicleDataPayload:
    """Combine a vehiclespecs body and a ukvehicledata body into one payload."""
    vehicle_id = as_dict(specs.get("VehicleIdentification"))
    body = as_dict(specs.get("BodyDetails"))
    performance = as_dict(specs.get("Performance"))
    fuel_economy = as_dict(performance.get("FuelEconomy"))
    model_data = as_dict(specs.get("ModelData"))
    transmission = as_dict(specs.get("Transmission"))
    dvla_tech = as_dict(specs.get("DvlaTechnicalDetails"))
    emissions = as_dict(specs.get("Emissions"))
    smmt = as_dict(specs.get("SmmtDetails"))
    power = as_dict(performance.get("Power"))
    torque = as_dict(performance.get("Torque"))
    statistics = as_dict(performance.get("Statistics"))

    uk_registration = as_dict(uk_data.get("VehicleRegistration"))
    uk_general = as_dict(uk_data.get("General"))

    engine_cc = extract_number(first_present(dvla_tech.get("EngineCapacityCc"), smmt.get("EngineCapacity"), uk_registration.get("EngineCapacity")))
    engine_size = round(engine_cc / 1000, 1) if engine_cc else None

    euro_status = first_present(model_data.get("EuroStatus"), uk_general.get("EuroStatus"))

    if not specs and not uk_registration:
        raise ProviderError(
            "Vehicle data response contained no vehicle details",
            code=ProviderError.MALFORMED_RESPONSE,
            provider=VehicleSpecsClient.provider_name,
        )

    return VehicleDataPayload(
        make=clean_text(first_present(vehicle_id.get("DvlaMake"), model_data.get("Make"), uk_registration.get("Make"))),
        model=clean_text(first_present(vehicle_id.get("DvlaModel"), model_data.get("Model"), uk_registration.get("Model"))),
        variant=clean_text(first_present(model_data.get("Range"), model_data.get("ModelVariant"), smmt.get("Range"))),
        year=extract_number(first_present(vehicle_id.get("YearOfManufacture"), uk_registration.get("YearOfManufacture"))),
        color=clean_text(first_present(uk_registration.get("Colour"), vehicle_id.get("DvlaColour"))),
        fuel_type=normalize_fuel_type(first_present(model_data.get("FuelType"), vehicle_id.get("DvlaFuelType"), uk_registration.get("FuelType"))),
        transmission=normalize_transmission(first_present(transmission.get("TransmissionType"), smmt.get("Transmission"), uk_registration.get("Transmission"))),
        engine_size=engine_size,
        body_type=clean_text(first_present(body.get("BodyStyle"), vehicle_id.get("DvlaBodyType"), smmt.get("BodyStyle"))),
        doors=extract_number(first_present(body.get("NumberOfDoors"), smmt.get("NumberOfDoors"))),
        seats=extract_number(first_present(body.get("NumberOfSeats"), dvla_tech.get("SeatCountIncludingDriver"), smmt.get("NumberOfSeats"))),
        gearbox=extract_number(first_present(transmission.get("NumberOfGears"), uk_registration.get("GearCount"))),
        emission_class=f"Euro {euro_status}" if euro_status else None,
        co2_emissions=extract_number(first_present(smmt.get("Co2"), emissions.get("ManufacturerCo2"), vehicle_id.get("DvlaCo2"), uk_registration.get("Co2Emissions"))),
        annual_tax=extract_number(first_present(model_data.get("AnnualTax"), model_data.get("VehicleTax"))),
        insurance_group=clean_text(first_present(smmt.get("InsuranceGroup"), model_data.get("InsuranceGroup"))),
        urban_mpg=extract_number(first_present(smmt.get("UrbanColdMpg"), fuel_economy.get("UrbanColdMpg"))),
        extra_urban_mpg=extract_number(first_present(smmt.get("ExtraUrbanMpg"), fuel_economy.get("ExtraUrbanMpg"))),
        combined_mpg=extract_number(first_present(smmt.get("CombinedMpg"), fuel_economy.get("CombinedMpg"))),
        power_bhp=extract_number(first_present(power.get("Bhp"), smmt.get("PowerBhp"))),
        torque_nm=extract_number(first_present(torque.get("Nm"), smmt.get("TorqueNm"))),
        acceleration=extract_number(first_present(statistics.get("ZeroToOneHundredKph"), statistics.get("ZeroToSixtyMph"))),
        top_speed_mph=extract_number(first_present(statistics.get("MaxSpeedMph"), smmt.get("MaxSpeedMph"))),
    )


def _write_off_details(history: dict[str, Any]) -> WriteOffDetails | None:
    raw = first_present(history.get("writeoff"), history.get("writeOffData"), history.get("WriteOff"))
    if isinstance(raw, list):
        raw = raw[0] if raw else None
    if not isinstance(raw, dict):
        return None

    category = parse_write_off_category(
        first_present(raw.get("category"), raw.get("Category"), raw.get("insuranceCategory"))
    ) or parse_write_off_category(raw.get("status") or raw.get("Status"))

    return WriteOffDetails(
        category=category,
        date=clean_text(first_present(raw.get("lossdate"), raw.get("date"), raw.get("Date"))),
        status=clean_text(raw.get("status") or raw.get("Status")),
        description=clean_text(raw.get("description") or raw.get("Description")),
    )


def parse_history(data: dict[str, Any]) -> VehicleHistoryPayload:
    """Parse a carhistorycheck body."""
    history = data.get("VehicleHistory")
    if not isinstance(history, dict):
        raise ProviderError(
            "carhistorycheck response missing VehicleHistory",
            code=ProviderError.MALFORMED_RESPONSE,
            provider=VehicleSpecsClient.provider_name,
        )
    registration = as_dict(data.get("VehicleRegistration"))

    written_off = bool(history.get("writeOffRecord"))
    details = _write_off_details(history) if written_off else None

    return VehicleHistoryPayload(
        previous_owners=extract_number(history.get("NumberOfPreviousKeepers")) or 0,
        v5c_certificate_count=extract_number(history.get("V5CCertificateCount")) or 0,
        plate_changes=extract_number(history.get("PlateChangeCount")) or 0,
        colour_changes=extract_number(history.get("ColourChangeCount")) or 0,
        is_stolen=bool(history.get("stolenRecord")),
        is_written_off=written_off,
        write_off_category=details.category if details else None,
        write_off_details=details,
        has_outstanding_finance=bool(history.get("financeRecord")),
        is_scrapped=bool(registration.get("Scrapped")),
        is_imported=bool(registration.get("Imported") or registration.get("ImportNonEu")),
        is_exported=bool(registration.get("Exported")),
    )


def _defect_texts(defects: list[dict[str, Any]], types: set[str]) -> list[str]:
    return [d.get("text", "") for d in defects if isinstance(d, dict) and d.get("type") in types]


def parse_mot_history(data: dict[str, Any]) -> MotHistoryPayload:
    """Parse a mot body; mileage history is derived from odometer readings, oldest first."""
    raw_tests = as_list(first_present(data.get("motHistory"), data.get("MotHistory"), data.get("motTests")))
    mot_summary = as_dict(data.get("mot"))

    tests: list[MotTest] = []
    readings: list[tuple[datetime, MileageReading]] = []

    for raw in raw_tests:
        if not isinstance(raw, dict):
            continue
        defects = as_list(raw.get("defects"))
        test_date = clean_text(first_present(raw.get("completedDate"), raw.get("testDate")))
        odometer = extract_number(first_present(raw.get("odometerValue"), raw.get("OdometerValue")))
        odometer = int(odometer) if odometer is not None else None

        tests.append(
            MotTest(
                test_date=test_date,
                result=clean_text(first_present(raw.get("testResult"), raw.get("result"))),
                odometer=odometer,
                odometer_unit=clean_text(raw.get("odometerUnit")) or "mi",
                expiry_date=clean_text(raw.get("expiryDate")),
                test_number=clean_text(first_present(raw.get("motTestNumber"), raw.get("testNumber"))),
                advisories=_defect_texts(defects, {"ADVISORY"}),
                failures=_defect_texts(defects, {"PRS", "FAIL", "MAJOR", "DANGEROUS"}),
            )
        )

        parsed_date = _parse_date(test_date)
        if odometer and parsed_date:
            readings.append((parsed_date, MileageReading(date=parsed_date.date().isoformat(), mileage=odometer)))

    readings.sort(key=lambda item: item[0])

    return MotHistoryPayload(
        mot_status=clean_text(mot_summary.get("motStatus")),
        mot_due_date=clean_text(mot_summary.get("motDueDate")),
        mot_history=tests,
        mileage_history=[reading for _, reading in readings],
    )


def _parse_date(value: str | None) -> datetime | None:
    if not value:
        return None
    for candidate in (value, value.replace("Z", "+00:00"), value.replace(".", "-")):
        try:
            return datetime.fromisoformat(candidate)
        except ValueError:
            continue
    return None
