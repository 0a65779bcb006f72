"""Business logic services module."""

import importlib as _importlib
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .booking import BookingWizard as BookingWizard
    from .booking import ProtectionCoordinator as ProtectionCoordinator
    from .notification import SmtpEnquiryDispatcher as SmtpEnquiryDispatcher
    from .routing import DistanceEstimator as DistanceEstimator
    from .routing import OsrmRoutingClient as OsrmRoutingClient

_LAZY_MODULE_MAP = {
    "BookingWizard": ("src.services.booking", "BookingWizard"),
    "ProtectionCoordinator": ("src.services.booking", "ProtectionCoordinator"),
    "SmtpEnquiryDispatcher": ("src.services.notification", "SmtpEnquiryDispatcher"),
    "DistanceEstimator": ("src.services.routing", "DistanceEstimator"),
    "OsrmRoutingClient": ("src.services.routing", "OsrmRoutingClient"),
}

__all__ = list(_LAZY_MODULE_MAP.keys())


def __getattr__(name: str):
    """Lazy import with explicit mapping - importlib based."""
    if name in _LAZY_MODULE_MAP:
        module_path, attr_name = _LAZY_MODULE_MAP[name]
        module = _importlib.import_module(module_path)
        attr = getattr(module, attr_name)
        globals()[name] = attr
        return attr
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
