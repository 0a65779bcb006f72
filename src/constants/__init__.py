"""Unified constants for the booking core.

All classes can be imported directly from this package:
    from src.constants import Pricing, FieldLimits, Routing
"""

from .pricing import Pricing
from .routing import Routing
from .validation import REQUIRED_FIELDS, STEP_FIELDS, FieldLimits, FieldNames

__all__ = [
    "Pricing",
    "Routing",
    "FieldLimits",
    "FieldNames",
    "STEP_FIELDS",
    "REQUIRED_FIELDS",
]
