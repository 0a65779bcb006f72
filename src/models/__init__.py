"""Booking data model module."""

from .booking import (
    BookingConfirmation,
    BookingDraft,
    PriceBreakdown,
    ProtectionDetails,
    StepValidation,
    SubmissionResult,
)
from .payloads import (
    BookingPayload,
    CreatedBooking,
    EnquiryPayload,
    PaymentSession,
    PaymentSessionRequest,
)
from .reference import FixedRoute, PricingExtra, ReferenceData, Vehicle
from .routing import Coordinates, DistanceEstimate, RouteResult

__all__ = [
    "BookingConfirmation",
    "BookingDraft",
    "PriceBreakdown",
    "ProtectionDetails",
    "StepValidation",
    "SubmissionResult",
    "BookingPayload",
    "CreatedBooking",
    "EnquiryPayload",
    "PaymentSession",
    "PaymentSessionRequest",
    "FixedRoute",
    "PricingExtra",
    "ReferenceData",
    "Vehicle",
    "Coordinates",
    "DistanceEstimate",
    "RouteResult",
]
