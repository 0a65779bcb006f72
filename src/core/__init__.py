"""Core infrastructure module."""

from .circuit_breaker import CircuitBreaker, CircuitState
from .config.settings import BookingSettings, get_settings, reset_settings
from .enums import (
    DistanceSource,
    ProtectionState,
    SubmissionStage,
    ThreatLevel,
    WizardEvent,
    WizardStep,
)
from .exceptions import (
    # Base exception
    BookingCoreError,
    # Configuration
    ConfigurationError,
    # Validation & state machines
    ValidationError,
    InvalidTransitionError,
    # Collaborators
    CollaboratorError,
    ReferenceDataError,
    RoutingError,
    NoRouteFoundError,
    PersistenceError,
    PaymentSessionError,
    NotificationError,
    # Circuit breaker
    CircuitBreakerOpenError,
)
from .logger import setup_structured_logging
from .retry import get_notification_retry

__all__ = [
    "CircuitBreaker",
    "CircuitState",
    "BookingSettings",
    "get_settings",
    "reset_settings",
    "DistanceSource",
    "ProtectionState",
    "SubmissionStage",
    "ThreatLevel",
    "WizardEvent",
    "WizardStep",
    "BookingCoreError",
    "ConfigurationError",
    "ValidationError",
    "InvalidTransitionError",
    "CollaboratorError",
    "ReferenceDataError",
    "RoutingError",
    "NoRouteFoundError",
    "PersistenceError",
    "PaymentSessionError",
    "NotificationError",
    "CircuitBreakerOpenError",
    "setup_structured_logging",
    "get_notification_retry",
]
