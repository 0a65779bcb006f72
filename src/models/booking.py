"""Booking draft aggregate and the values derived from it."""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, Dict, Optional, Set, Tuple

from ..constants import Pricing
from ..core.enums import DistanceSource, SubmissionStage, ThreatLevel, WizardStep
from .routing import Coordinates


@dataclass(frozen=True)
class ProtectionDetails:
    """Close protection enquiry merged into a booking."""

    threat_level: ThreatLevel
    requirements: str
    submitted_at: datetime
    contact_name: str = ""
    contact_email: str = ""
    contact_phone: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for the booking payload."""
        return {
            "threat_level": self.threat_level.value,
            "requirements": self.requirements,
            "submitted_at": self.submitted_at.isoformat(),
            "contact_name": self.contact_name,
            "contact_email": self.contact_email,
            "contact_phone": self.contact_phone,
        }


@dataclass(frozen=True)
class PriceBreakdown:
    """Itemized price. Always recomputed from the draft, never mutated."""

    mileage: float = 0.0
    wait_time: float = 0.0
    overnight: float = 0.0
    extras: float = 0.0
    total: float = 0.0
    # Fixed-route price; mileage, wait and overnight are zero when set
    base: float = 0.0
    is_fixed_route: bool = False
    route_name: Optional[str] = None

    @classmethod
    def zero(cls) -> "PriceBreakdown":
        """Breakdown shown before a vehicle is selected."""
        return cls()

    @property
    def formatted_total(self) -> str:
        return f"{self.total:.{Pricing.DECIMAL_PLACES}f}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mileage": self.mileage,
            "wait_time": self.wait_time,
            "overnight": self.overnight,
            "extras": self.extras,
            "base": self.base,
            "total": self.total,
            "is_fixed_route": self.is_fixed_route,
            "route_name": self.route_name,
        }


@dataclass
class BookingDraft:
    """
    The single mutable aggregate for one in-progress reservation.

    Only the wizard mutates a draft. Numeric fields hold parsed values that
    already passed validation, so the bounds (miles >= 0, wait in [0, 24],
    passengers >= 1, luggage >= 0) hold at all times. ``protection_interest``
    is derived from ``protection_details`` so the two can never disagree.
    """

    pickup_location: str = ""
    dropoff_location: str = ""
    pickup_coordinates: Optional[Coordinates] = None
    dropoff_coordinates: Optional[Coordinates] = None
    pickup_date: Optional[date] = None
    pickup_time: Optional[time] = None
    passengers: Optional[int] = None
    luggage: Optional[int] = None
    special_requirements: str = ""
    vehicle_id: Optional[str] = None
    selected_extras: Set[str] = field(default_factory=set)
    estimated_miles: float = 0.0
    miles_source: Optional[DistanceSource] = None
    wait_time_hours: float = 0.0
    is_long_drive: bool = False
    has_overnight_stop: bool = False
    customer_name: str = ""
    customer_email: str = ""
    customer_phone: str = ""
    protection_details: Optional[ProtectionDetails] = None
    step: WizardStep = WizardStep.JOURNEY
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def protection_interest(self) -> bool:
        """True once a close protection enquiry has been merged."""
        return self.protection_details is not None

    @property
    def miles_overridden(self) -> bool:
        """True when the user typed the mileage by hand."""
        return self.miles_source == DistanceSource.MANUAL

    def coordinates_key(self) -> Optional[Tuple[Coordinates, Coordinates]]:
        """Both coordinate pairs, or None while either is unresolved."""
        if self.pickup_coordinates is None or self.dropoff_coordinates is None:
            return None
        return (self.pickup_coordinates, self.dropoff_coordinates)

    def contact(self) -> Dict[str, str]:
        """Customer contact fields already captured."""
        return {
            "name": self.customer_name,
            "email": self.customer_email,
            "phone": self.customer_phone,
        }


@dataclass
class StepValidation:
    """Outcome of a step gate: every problem at once, not just the first."""

    valid: bool
    errors: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_errors(cls, errors: Dict[str, str]) -> "StepValidation":
        return cls(valid=not errors, errors=dict(errors))


@dataclass(frozen=True)
class BookingConfirmation:
    """Summary shown after a successful submission."""

    reference: str
    booking_id: str
    pickup_location: str
    dropoff_location: str
    pickup_date: str
    pickup_time: str
    vehicle_name: str
    total_price: str
    customer_name: str
    customer_email: str
    redirect_url: str
    has_protection: bool = False


@dataclass(frozen=True)
class SubmissionResult:
    """Outcome of final submission."""

    success: bool
    stage: SubmissionStage
    reference: Optional[str] = None
    booking_id: Optional[str] = None
    redirect_url: Optional[str] = None
    reason: Optional[str] = None
    retryable: bool = False
    confirmation: Optional[BookingConfirmation] = None
