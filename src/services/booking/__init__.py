"""Booking Package - validation, pricing, close protection and the wizard.

This package provides the booking composition and pricing engine,
split into specialized components:

- validation: field and step rules
- pricing: price breakdown of a draft
- protection: close protection add-on sub-flow
- submission: booking persistence and payment session
- wizard: step state machine owning the draft
"""

from .pricing import compute_breakdown, extras_total, match_fixed_route
from .protection import ProtectionCoordinator
from .submission import BookingSubmissionService, build_booking_payload, generate_reference
from .validation import (
    ValidationContext,
    validate_field,
    validate_protection_form,
    validate_step,
)
from .wizard import BookingWizard

__all__ = [
    # Main service
    "BookingWizard",
    # Components
    "ProtectionCoordinator",
    "BookingSubmissionService",
    # Pricing
    "compute_breakdown",
    "extras_total",
    "match_fixed_route",
    # Validation
    "ValidationContext",
    "validate_field",
    "validate_step",
    "validate_protection_form",
    # Submission helpers
    "build_booking_payload",
    "generate_reference",
]
