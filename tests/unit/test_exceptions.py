"""Tests for custom exceptions."""

from datetime import datetime, timezone

import pytest

from src.core.exceptions import (
    BookingCoreError,
    CircuitBreakerOpenError,
    CollaboratorError,
    ConfigurationError,
    InvalidTransitionError,
    NoRouteFoundError,
    NotificationError,
    PaymentSessionError,
    PersistenceError,
    ReferenceDataError,
    RoutingError,
    ValidationError,
)


def test_booking_core_error():
    """Test base exception carries message, recoverability and details."""
    error = BookingCoreError("Something broke", recoverable=False, details={"key": "value"})

    assert str(error) == "Something broke"
    assert error.recoverable is False
    assert error.details == {"key": "value"}


def test_to_dict():
    error = RoutingError("Routing service returned 503", status=503)
    data = error.to_dict()

    assert data["error"] == "RoutingError"
    assert data["message"] == "Routing service returned 503"
    assert data["recoverable"] is True
    assert data["details"] == {"status": 503}
    assert "timestamp" in data


def test_configuration_error_is_not_recoverable():
    assert ConfigurationError().recoverable is False


def test_validation_error_with_field():
    error = ValidationError("Unknown extra", field="extras")

    assert error.field == "extras"
    assert "'extras'" in str(error)
    assert error.details == {"field": "extras"}


def test_validation_error_without_field():
    error = ValidationError("Bad input")

    assert error.field is None
    assert str(error) == "Bad input"
    assert error.details == {}


def test_invalid_transition_error():
    error = InvalidTransitionError("wizard", 3, "next")

    assert "wizard" in str(error)
    assert error.current == 3
    assert error.details == {"machine": "wizard", "current": "3", "target": "next"}
    assert error.recoverable is False


@pytest.mark.parametrize(
    "error_class",
    [ReferenceDataError, RoutingError, PersistenceError, PaymentSessionError, NotificationError],
)
def test_collaborator_errors(error_class):
    error = error_class()

    assert isinstance(error, CollaboratorError)
    assert isinstance(error, BookingCoreError)
    assert error.recoverable is True


def test_no_route_is_a_routing_error():
    error = NoRouteFoundError()

    assert isinstance(error, RoutingError)
    assert error.status is None


def test_circuit_breaker_open_error():
    reset_time = datetime(2030, 1, 10, 9, 31, tzinfo=timezone.utc)
    error = CircuitBreakerOpenError("Circuit 'routing' is open", reset_time=reset_time)

    assert error.reset_time == reset_time
    assert error.details["reset_time"] == reset_time.isoformat()


def test_exceptions_can_be_caught_as_base():
    with pytest.raises(BookingCoreError):
        raise PersistenceError("insert failed")
