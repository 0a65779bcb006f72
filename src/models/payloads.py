"""Request/response shapes exchanged with external collaborators."""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, TypedDict


class BookingPayload(TypedDict):
    """Row sent to the booking store."""

    pickup_location: str
    dropoff_location: str
    pickup_latitude: Optional[float]
    pickup_longitude: Optional[float]
    dropoff_latitude: Optional[float]
    dropoff_longitude: Optional[float]
    pickup_date: Optional[str]
    pickup_time: Optional[str]
    passengers: Optional[int]
    luggage: Optional[int]
    additional_requirements: str
    vehicle_id: Optional[str]
    extras: List[str]
    estimated_miles: Optional[float]
    distance_source: Optional[str]
    wait_time_hours: float
    is_long_drive: bool
    has_overnight_stop: bool
    price_breakdown: Dict[str, Any]
    total_price: float
    customer_name: str
    customer_email: str
    customer_phone: str
    protection_interest: bool
    protection_details: Optional[Dict[str, Any]]


class CreatedBooking(TypedDict):
    """Booking store answer."""

    id: str


class EnquiryPayload(TypedDict):
    """Close protection enquiry sent to the notification dispatcher."""

    name: str
    email: str
    phone: str
    threat_level: str
    requirements: str
    booking_context: str
    submitted_at: str


@dataclass(frozen=True)
class PaymentSessionRequest:
    """Checkout session request for a persisted booking."""

    booking_id: str
    customer_email: str
    customer_name: str
    total_amount: float
    booking_reference: str = ""

    @property
    def amount_minor_units(self) -> int:
        """Total in pence, as card processors expect."""
        return int(round(self.total_amount * 100))


@dataclass(frozen=True)
class PaymentSession:
    """Payment session service answer."""

    redirect_url: str
    session_id: Optional[str] = None
