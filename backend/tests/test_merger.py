"""Tests for the data merger."""
import pytest
from platecheck.schemas.vehicle import (
    CANONICAL_FIELDS,
    DataSource,
    MotHistoryPayload,
    SpecPayload,
    ValuationPayload,
    VehicleDataPayload,
)
from platecheck.services.merger import (
    has_useful_spec_data,
    has_useful_valuation_data,
    is_present,
    merge,
    merge_valuation,
)


@pytest.fixture
def spec(vehicle_payload, history_payload, mot_payload):
    return SpecPayload.from_parts(vehicle=vehicle_payload, history=history_payload, mot=mot_payload)


class TestPresence:
    @pytest.mark.parametrize("value", [None, "", "   ", [], {}])
    def test_absent(self, value):
        assert is_present(value) is False

    @pytest.mark.parametrize("value", [0, False, "BMW", [1], 0.0])
    def test_present(self, value):
        assert is_present(value) is True

    def test_useful_payloads(self, spec, valuation_payload):
        assert has_useful_spec_data(spec) is True
        assert has_useful_spec_data(SpecPayload()) is False
        assert has_useful_spec_data(None) is False
        assert has_useful_valuation_data(valuation_payload) is True
        assert has_useful_valuation_data(ValuationPayload(mileage=50000)) is False


class TestMerge:
    def test_deterministic(self, spec, valuation_payload):
        first = merge(spec, valuation_payload)
        second = merge(spec, valuation_payload)
        assert first.model_dump_json() == second.model_dump_json()
        assert first.checked_at is None

    def test_spec_wins_overlapping_fields(self, spec, valuation_payload):
        record = merge(spec, valuation_payload)

        assert record.make.value == "BMW"
        assert record.make.source == DataSource.SPECS
        assert record.model.value == "3 Series"
        assert record.model.source == DataSource.SPECS
        assert record.fuel_type.source == DataSource.SPECS
        # MOT-derived mileage beats the valuation mileage
        assert record.mileage.value == 48210
        assert record.mileage.source == DataSource.SPECS

    def test_valuation_fills_gaps(self, valuation_payload):
        record = merge(None, valuation_payload)

        assert record.make.value == "BMW"
        assert record.make.source == DataSource.VALUATION
        assert record.model.value == "3 Series 320d M Sport"
        assert record.fuel_type.value == "Diesel"
        assert record.mileage.value == 50000
        assert record.year.present is False

    def test_valuation_shape(self, spec, valuation_payload):
        record = merge(spec, valuation_payload)

        valuation = record.valuation.value
        assert record.valuation.source == DataSource.VALUATION
        assert valuation["estimated_value"] == {"private": 12000, "retail": 14000, "trade": 10500}
        assert valuation["part_exchange"] == 11000
        assert valuation["confidence"] == "medium"
        assert valuation["mileage"] == 50000

    def test_every_present_field_is_tagged(self, spec, valuation_payload):
        record = merge(spec, valuation_payload)
        for name in CANONICAL_FIELDS:
            field = getattr(record, name)
            if field.present:
                assert field.source in (DataSource.SPECS, DataSource.VALUATION)
            else:
                assert field.source is None

    def test_data_sources(self, spec, valuation_payload):
        assert merge(spec, valuation_payload).data_sources.model_dump() == {"specs": True, "valuation": True}
        assert merge(spec, None).data_sources.model_dump() == {"specs": True, "valuation": False}
        assert merge(None, valuation_payload).data_sources.model_dump() == {"specs": False, "valuation": True}

    def test_both_absent(self):
        record = merge(None, None)
        assert all(not getattr(record, name).present for name in CANONICAL_FIELDS)
        assert record.field_sources() == {}
        assert record.data_sources.specs is False
        assert record.data_sources.valuation is False

    def test_engine_size_model_rejected(self, valuation_payload):
        spec = SpecPayload.from_parts(vehicle=VehicleDataPayload(make="BMW", model="2.0L"))
        record = merge(spec, valuation_payload)

        assert record.model.value == "3 Series 320d M Sport"
        assert record.model.source == DataSource.VALUATION

    def test_engine_size_model_without_valuation(self):
        spec = SpecPayload.from_parts(vehicle=VehicleDataPayload(make="BMW", model="1.6"))
        record = merge(spec, None)
        assert record.model.present is False
        assert record.make.value == "BMW"

    def test_nested_values_are_plain(self, spec):
        record = merge(spec, None)
        history = record.mileage_history.value
        assert history == [
            {"date": "2022-05-18", "mileage": 39120, "source": "MOT"},
            {"date": "2023-05-20", "mileage": 48210, "source": "MOT"},
        ]

    def test_field_sources(self, spec, valuation_payload):
        sources = merge(spec, valuation_payload).field_sources()
        assert sources["make"] == "checkcardetails"
        assert sources["valuation"] == "valuation"
        assert "engine_size" not in sources


class TestElectricRule:
    def test_electric_gets_zero_co2_and_tax(self):
        spec = SpecPayload.from_parts(vehicle=VehicleDataPayload(make="Tesla", model="Model 3", fuel_type="Electric"))
        record = merge(spec, None)

        assert record.co2_emissions.value == 0
        assert record.co2_emissions.source == DataSource.ELECTRIC_RULE
        assert record.annual_tax.value == 0
        assert record.annual_tax.source == DataSource.ELECTRIC_RULE

    def test_reported_values_kept(self):
        spec = SpecPayload.from_parts(
            vehicle=VehicleDataPayload(make="Tesla", fuel_type="Electric", annual_tax=10)
        )
        record = merge(spec, None)
        assert record.annual_tax.value == 10
        assert record.annual_tax.source == DataSource.SPECS
        assert record.co2_emissions.source == DataSource.ELECTRIC_RULE

    def test_not_applied_to_diesel(self, spec):
        record = merge(spec, None)
        assert record.co2_emissions.present is False
        assert record.annual_tax.present is False

    def test_electric_from_valuation_description(self):
        valuation = ValuationPayload(private_price=20000, vehicle_description="Nissan Leaf Tekna [Electric / Automatic]")
        record = merge(None, valuation)
        assert record.fuel_type.value == "Electric"
        assert record.co2_emissions.source == DataSource.ELECTRIC_RULE


class TestMergeValuation:
    def test_fills_missing_valuation(self, spec, valuation_payload):
        record = merge(spec, None)
        topped_up = merge_valuation(record, valuation_payload)

        assert topped_up.valuation.source == DataSource.VALUATION
        assert topped_up.data_sources.valuation is True
        assert topped_up.data_sources.specs is True
        assert topped_up.make.source == DataSource.SPECS
        assert topped_up.mileage.value == 48210
        # original record untouched
        assert record.valuation.present is False

    def test_no_useful_valuation(self, spec):
        record = merge(spec, None)
        assert merge_valuation(record, ValuationPayload()) is record

    def test_mot_only_spec(self, valuation_payload):
        spec = SpecPayload.from_parts(mot=MotHistoryPayload(mot_status="Valid"))
        record = merge_valuation(merge(spec, None), valuation_payload)
        assert record.mot_status.source == DataSource.SPECS
        assert record.make.source == DataSource.VALUATION
