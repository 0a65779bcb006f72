"""Pytest configuration and common fixtures."""

import os
import sys
import warnings
from datetime import date, datetime, time, timezone
from pathlib import Path

from dotenv import load_dotenv

# Try to load test-specific environment file if it exists
test_env_file = Path(__file__).parent / ".env.test"
if test_env_file.exists():
    load_dotenv(test_env_file)

# Set before any src imports so the settings singleton never sees production
os.environ.setdefault("ENV", "testing")

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from typing import Any, Dict, List
from unittest.mock import AsyncMock, MagicMock

# NOW it's safe to import from src
import pytest
from loguru import logger

from src.core.enums import WizardStep
from src.models import (
    BookingDraft,
    Coordinates,
    FixedRoute,
    PaymentSession,
    PricingExtra,
    ReferenceData,
    RouteResult,
    Vehicle,
)

# Fixed "today" for date rules
TODAY = date(2030, 1, 10)
PICKUP_DATE = date(2030, 2, 14)
BLOCKED_DATE = date(2030, 2, 15)
FIXED_NOW = datetime(2030, 1, 10, 9, 30, tzinfo=timezone.utc)

WESTMINSTER = Coordinates(51.5007, -0.1246)
HEATHROW = Coordinates(51.4700, -0.4543)

# Environment variables read by BookingSettings that tests must not inherit
_SETTINGS_ENV_VARS = (
    "WAIT_RATE_PER_HOUR",
    "BOOKING_REFERENCE_PREFIX",
    "ROUTING_BASE_URL",
    "ROUTING_PROFILE",
    "ROUTING_TIMEOUT_SECONDS",
    "ROUTING_FAILURE_THRESHOLD",
    "ROUTING_RECOVERY_SECONDS",
    "SMTP_HOST",
    "SMTP_PORT",
    "SMTP_USERNAME",
    "SMTP_PASSWORD",
    "SMTP_USE_TLS",
    "ENQUIRY_SENDER",
    "ENQUIRY_RECIPIENT",
    "LOG_LEVEL",
    "LOG_JSON",
)


def pytest_configure(config):
    """Configure pytest environment before tests run."""
    warnings.filterwarnings("ignore", message="coroutine.*was never awaited")


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch):
    """Automatically set up test environment for all tests."""
    for name in _SETTINGS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("ENV", "testing")

    # Reset settings singleton so each test gets fresh settings
    from src.core.config.settings import reset_settings

    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def log_messages():
    """Capture Loguru records as ``(level, message)`` tuples."""
    records: List[tuple] = []
    handler_id = logger.add(
        lambda message: records.append(
            (message.record["level"].name, message.record["message"])
        ),
        level="DEBUG",
    )
    yield records
    logger.remove(handler_id)


@pytest.fixture
def vehicles() -> List[Vehicle]:
    """Active fleet plus one retired vehicle."""
    return [
        Vehicle(
            id="s-class",
            name="Mercedes S-Class",
            category="Executive Saloon",
            capacity=3,
            luggage_capacity=2,
            price_per_mile=9.0,
            overnight_surcharge=150.0,
        ),
        Vehicle(
            id="v-class",
            name="Mercedes V-Class",
            category="Executive MPV",
            capacity=7,
            luggage_capacity=7,
            price_per_mile=7.5,
            overnight_surcharge=120.0,
        ),
        Vehicle(
            id="phantom",
            name="Rolls-Royce Phantom",
            category="Luxury",
            capacity=3,
            luggage_capacity=2,
            price_per_mile=15.0,
            overnight_surcharge=300.0,
            is_active=False,
        ),
    ]


@pytest.fixture
def extras() -> List[PricingExtra]:
    return [
        PricingExtra(id="child-seat", name="Child seat", price=15.0),
        PricingExtra(id="meet-greet", name="Meet & greet", price=35.5),
        PricingExtra(id="champagne", name="Champagne", price=80.0, is_active=False),
    ]


@pytest.fixture
def fixed_routes() -> List[FixedRoute]:
    return [
        FixedRoute(
            id="lhr",
            route_name="Central London to Heathrow",
            pickup_location="Central London, Westminster",
            dropoff_location="Heathrow Airport Terminal 5",
            fixed_price=120.0,
        )
    ]


@pytest.fixture
def reference_data(vehicles, extras, fixed_routes) -> ReferenceData:
    return ReferenceData(
        vehicles=vehicles,
        extras=extras,
        blocked_dates=frozenset({BLOCKED_DATE}),
        fixed_routes=fixed_routes,
    )


@pytest.fixture
def journey_draft() -> BookingDraft:
    """Draft with a complete, valid step 1."""
    return BookingDraft(
        pickup_location="10 Downing Street, London",
        dropoff_location="Heathrow Terminal 5, Hounslow",
        pickup_coordinates=WESTMINSTER,
        dropoff_coordinates=HEATHROW,
        pickup_date=PICKUP_DATE,
        pickup_time=time(14, 30),
        passengers=2,
        luggage=1,
        estimated_miles=16.2,
    )


@pytest.fixture
def complete_draft(journey_draft) -> BookingDraft:
    """Draft ready for submission on step 3."""
    journey_draft.vehicle_id = "s-class"
    journey_draft.customer_name = "Jane O'Neill"
    journey_draft.customer_email = "jane@example.com"
    journey_draft.customer_phone = "+44 7700 900123"
    journey_draft.step = WizardStep.DETAILS
    return journey_draft


@pytest.fixture
def reference_store(vehicles, extras, fixed_routes):
    """Reference data store returning the test fleet."""
    store = MagicMock()
    store.list_active_vehicles = AsyncMock(return_value=vehicles)
    store.list_active_extras = AsyncMock(return_value=extras)
    store.list_blocked_dates = AsyncMock(return_value=[BLOCKED_DATE])
    store.list_fixed_routes = AsyncMock(return_value=fixed_routes)
    return store


@pytest.fixture
def booking_store():
    store = MagicMock()
    store.create_booking = AsyncMock(return_value={"id": "7f3c2a9e-booking"})
    return store


@pytest.fixture
def payment_service():
    service = MagicMock()
    service.create_session = AsyncMock(
        return_value=PaymentSession(
            redirect_url="https://checkout.example.com/pay/cs_test_123", session_id="cs_test_123"
        )
    )
    return service


@pytest.fixture
def notifier():
    dispatcher = MagicMock()
    dispatcher.send_enquiry = AsyncMock(return_value=None)
    return dispatcher


@pytest.fixture
def routing_service():
    """Routing service answering 25 km / 40 min."""
    service = MagicMock()
    service.route = AsyncMock(
        return_value=RouteResult(distance_meters=25_000.0, duration_seconds=2_400.0)
    )
    return service


@pytest.fixture
def unavailable_routing_service():
    service = MagicMock()
    service.route = AsyncMock(side_effect=ConnectionError("routing service unavailable"))
    return service


@pytest.fixture
def protection_form() -> Dict[str, Any]:
    """Valid close protection sub-form values."""
    return {
        "name": "Jane O'Neill",
        "email": "jane@example.com",
        "phone": "+44 7700 900123",
        "threat_level": "Medium",
        "requirements": "Two officers, discreet arrival",
    }
