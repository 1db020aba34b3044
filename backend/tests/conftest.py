"""
Shared fixtures for PlateCheck backend tests.
"""
import pytest
import sys
import os
from unittest.mock import patch, AsyncMock

# Ensure the backend package is importable
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Force env vars so Settings doesn't pick up a developer .env
os.environ.setdefault("CHECKCARD_API_KEY", "test-key")
os.environ.setdefault("API_ENVIRONMENT", "test")
os.environ.setdefault("CACHE_READ_THROUGH", "true")

from platecheck.schemas.vehicle import (  # noqa: E402
    MileageReading,
    MotHistoryPayload,
    MotTest,
    VehicleDataPayload,
    VehicleHistoryPayload,
    ValuationPayload,
)

BASE_URL = "https://api.checkcardetails.co.uk"


@pytest.fixture(autouse=True)
def no_redis():
    """Make Redis unreachable so plate locks fall back to in-process locks."""
    with patch(
        "platecheck.services.plate_lock.get_redis_client",
        new_callable=AsyncMock,
        side_effect=ConnectionError("redis disabled in tests"),
    ):
        yield


@pytest.fixture(autouse=True)
def reset_local_plate_locks():
    """Each test runs on its own event loop; don't carry asyncio.Locks between them."""
    from platecheck.services import plate_lock

    plate_lock._local_locks.clear()
    yield
    plate_lock._local_locks.clear()


@pytest.fixture
def sample_vehiclespecs():
    """vehiclespecs body for a diesel 3 Series."""
    return {
        "VehicleIdentification": {
            "DvlaMake": "BMW",
            "DvlaModel": "3 Series",
            "YearOfManufacture": 2018,
            "DvlaFuelType": "DIESEL",
            "DvlaBodyType": "Saloon",
        },
        "ModelData": {"Range": "320d M Sport", "EuroStatus": "6", "AnnualTax": "£165"},
        "BodyDetails": {"BodyStyle": "Saloon", "NumberOfDoors": 4, "NumberOfSeats": 5},
        "Transmission": {"TransmissionType": "Automatic", "NumberOfGears": 8},
        "DvlaTechnicalDetails": {"EngineCapacityCc": 1995},
        "SmmtDetails": {"Co2": "124 g/km", "InsuranceGroup": "30E", "CombinedMpg": "60.1"},
        "Performance": {
            "Power": {"Bhp": 188},
            "Torque": {"Nm": 400},
            "Statistics": {"ZeroToSixtyMph": 7.1, "MaxSpeedMph": 146},
        },
    }


@pytest.fixture
def sample_ukvehicledata():
    return {
        "VehicleRegistration": {
            "Make": "BMW",
            "Model": "320D M SPORT",
            "Colour": "BLUE",
            "YearOfManufacture": "2018",
            "EngineCapacity": "1995",
        }
    }


@pytest.fixture
def sample_carhistorycheck():
    return {
        "VehicleRegistration": {"Scrapped": False, "Imported": False, "Exported": False},
        "VehicleHistory": {
            "NumberOfPreviousKeepers": 2,
            "V5CCertificateCount": 3,
            "PlateChangeCount": 0,
            "ColourChangeCount": 0,
            "writeOffRecord": True,
            "writeoff": [{"category": "CAT S", "lossdate": "2020-03-14", "status": "Structural damage"}],
            "stolenRecord": False,
            "financeRecord": False,
        },
    }


@pytest.fixture
def sample_mot():
    return {
        "mot": {"motStatus": "Valid", "motDueDate": "2025-06-01"},
        "motHistory": [
            {
                "completedDate": "2023-05-20T10:12:00.000Z",
                "testResult": "PASSED",
                "odometerValue": "48210",
                "odometerUnit": "mi",
                "expiryDate": "2024-05-19",
                "motTestNumber": "123456789012",
                "defects": [{"text": "Nearside front tyre worn close to limit", "type": "ADVISORY"}],
            },
            {
                "completedDate": "2022-05-18T09:01:00.000Z",
                "testResult": "FAILED",
                "odometerValue": "39120",
                "odometerUnit": "mi",
                "defects": [{"text": "Headlamp aim too high", "type": "MAJOR"}],
            },
        ],
    }


@pytest.fixture
def sample_valuation():
    return {
        "Vrm": "AB12CDE",
        "Mileage": 50000,
        "VehicleDescription": "BMW 3 Series 320d M Sport [Diesel / Automatic]",
        "ValuationList": {
            "PrivateClean": 12000,
            "DealerForecourt": 14000,
            "TradeAverage": 10500,
            "PartExchange": 11000,
        },
    }


@pytest.fixture
def vehicle_payload():
    return VehicleDataPayload(make="BMW", model="3 Series", fuel_type="Diesel", year=2018, color="BLUE")


@pytest.fixture
def history_payload():
    return VehicleHistoryPayload(previous_owners=2, is_written_off=False, is_stolen=False)


@pytest.fixture
def mot_payload():
    return MotHistoryPayload(
        mot_status="Valid",
        mot_history=[MotTest(test_date="2023-05-20", result="PASSED", odometer=48210)],
        mileage_history=[
            MileageReading(date="2022-05-18", mileage=39120),
            MileageReading(date="2023-05-20", mileage=48210),
        ],
    )


@pytest.fixture
def valuation_payload():
    return ValuationPayload(
        plate="AB12CDE",
        mileage=50000,
        private_price=12000,
        retail_price=14000,
        trade_price=10500,
        part_exchange_price=11000,
        vehicle_description="BMW 3 Series 320d M Sport [Diesel / Automatic]",
    )
