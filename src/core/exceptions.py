"""Custom exception classes for the booking core."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional


class BookingCoreError(Exception):
    """Base exception for the booking core."""

    def __init__(
        self, message: str, recoverable: bool = True, details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize booking core error.

        Args:
            message: Error message
            recoverable: Whether the user can retry the operation
            details: Additional error details
        """
        self.message = message
        self.recoverable = recoverable
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "recoverable": self.recoverable,
            "details": self.details,
            "timestamp": self.timestamp,
        }


# Configuration Errors
class ConfigurationError(BookingCoreError):
    """Configuration error occurred."""

    def __init__(
        self,
        message: str = "Configuration error",
        recoverable: bool = False,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, recoverable, details)


# Validation Errors
class ValidationError(BookingCoreError):
    """Input validation error."""

    def __init__(self, message: str = "Validation error", field: Optional[str] = None):
        """
        Initialize validation error.

        Args:
            message: Error message
            field: Field name that failed validation
        """
        self.field = field
        if field:
            message = f"Validation error for field '{field}': {message}"
        super().__init__(message, recoverable=True, details={"field": field} if field else {})


class InvalidTransitionError(BookingCoreError):
    """A state machine was asked to move along an edge it does not have."""

    def __init__(self, machine: str, current: Any, target: Any):
        self.machine = machine
        self.current = current
        self.target = target
        super().__init__(
            f"Invalid {machine} transition: {current} → {target}",
            recoverable=False,
            details={"machine": machine, "current": str(current), "target": str(target)},
        )


# Collaborator Errors
class CollaboratorError(BookingCoreError):
    """Base class for failures reported by an external collaborator."""

    def __init__(
        self,
        message: str = "External service error",
        recoverable: bool = True,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, recoverable, details)


class ReferenceDataError(CollaboratorError):
    """Reference data (vehicles, extras, blocked dates) could not be loaded."""

    def __init__(self, message: str = "Failed to load reference data"):
        super().__init__(message, recoverable=True)


class RoutingError(CollaboratorError):
    """Routing service call failed or returned an unusable response."""

    def __init__(self, message: str = "Routing service error", status: Optional[int] = None):
        self.status = status
        super().__init__(message, recoverable=True, details={"status": status} if status else {})


class NoRouteFoundError(RoutingError):
    """Routing service answered but found no route between the two points."""

    def __init__(self, message: str = "No route found between pickup and dropoff"):
        super().__init__(message)


class PersistenceError(CollaboratorError):
    """Booking store rejected or failed to create the booking."""

    def __init__(self, message: str = "Failed to save booking"):
        super().__init__(message, recoverable=True)


class PaymentSessionError(CollaboratorError):
    """Payment session service failed to create a checkout session."""

    def __init__(self, message: str = "Failed to create payment session"):
        super().__init__(message, recoverable=True)


class NotificationError(CollaboratorError):
    """Notification dispatch failed."""

    def __init__(self, message: str = "Failed to send notification"):
        super().__init__(message, recoverable=True)


class CircuitBreakerOpenError(BookingCoreError):
    """Circuit breaker is open."""

    def __init__(
        self, message: str = "Circuit breaker is open", reset_time: Optional[datetime] = None
    ):
        """
        Initialize circuit breaker error.

        Args:
            message: Error message
            reset_time: Time when circuit breaker will allow a trial call
        """
        self.reset_time = reset_time
        details = {"reset_time": reset_time.isoformat() if reset_time else None}
        super().__init__(message, recoverable=True, details=details)
