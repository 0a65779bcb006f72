"""Chauffeur booking core - reservation wizard, pricing and distance estimation."""

import importlib as _importlib
from typing import TYPE_CHECKING, Any

__version__ = "1.0.0"
__license__ = "MIT"

if TYPE_CHECKING:
    from .core.config.settings import get_settings as get_settings
    from .core.logger import setup_structured_logging as setup_structured_logging
    from .services.booking.pricing import compute_breakdown as compute_breakdown
    from .services.booking.protection import ProtectionCoordinator as ProtectionCoordinator
    from .services.booking.validation import validate_field as validate_field
    from .services.booking.validation import validate_step as validate_step
    from .services.booking.wizard import BookingWizard as BookingWizard
    from .services.notification.smtp_dispatcher import (
        SmtpEnquiryDispatcher as SmtpEnquiryDispatcher,
    )
    from .services.routing.estimator import DistanceEstimator as DistanceEstimator
    from .services.routing.osrm_client import OsrmRoutingClient as OsrmRoutingClient

# Explicit lazy-loading map: name -> (module_path, attribute_name)
_LAZY_MODULE_MAP = {
    # Core
    "get_settings": ("src.core.config.settings", "get_settings"),
    "setup_structured_logging": ("src.core.logger", "setup_structured_logging"),
    # Booking
    "BookingWizard": ("src.services.booking.wizard", "BookingWizard"),
    "ProtectionCoordinator": ("src.services.booking.protection", "ProtectionCoordinator"),
    "compute_breakdown": ("src.services.booking.pricing", "compute_breakdown"),
    "validate_field": ("src.services.booking.validation", "validate_field"),
    "validate_step": ("src.services.booking.validation", "validate_step"),
    # Routing
    "DistanceEstimator": ("src.services.routing.estimator", "DistanceEstimator"),
    "OsrmRoutingClient": ("src.services.routing.osrm_client", "OsrmRoutingClient"),
    # Notification
    "SmtpEnquiryDispatcher": ("src.services.notification.smtp_dispatcher", "SmtpEnquiryDispatcher"),
}

# Auto-derive __all__ from _LAZY_MODULE_MAP to prevent manual sync issues
__all__ = list(_LAZY_MODULE_MAP.keys())


def __getattr__(name: str) -> Any:
    """Lazy import with explicit mapping - importlib based."""
    if name in _LAZY_MODULE_MAP:
        module_path, attr_name = _LAZY_MODULE_MAP[name]
        module = _importlib.import_module(module_path)
        attr = getattr(module, attr_name)
        # Cache in module globals to avoid repeated imports
        globals()[name] = attr
        return attr
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
