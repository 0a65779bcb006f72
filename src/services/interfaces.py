"""Contracts of the external collaborators consumed by the booking core."""

from datetime import date
from typing import Protocol, Sequence, runtime_checkable

from ..models.payloads import (
    BookingPayload,
    CreatedBooking,
    EnquiryPayload,
    PaymentSession,
    PaymentSessionRequest,
)
from ..models.reference import FixedRoute, PricingExtra, Vehicle
from ..models.routing import Coordinates, RouteResult


@runtime_checkable
class ReferenceDataStore(Protocol):
    """Read-only reference data, called once per wizard session."""

    async def list_active_vehicles(self) -> Sequence[Vehicle]: ...

    async def list_active_extras(self) -> Sequence[PricingExtra]: ...

    async def list_blocked_dates(self) -> Sequence[date]: ...

    async def list_fixed_routes(self) -> Sequence[FixedRoute]: ...


@runtime_checkable
class RoutingService(Protocol):
    """Turn-by-turn routing. Raises on failure or when no route exists."""

    async def route(self, pickup: Coordinates, dropoff: Coordinates) -> RouteResult: ...


@runtime_checkable
class BookingStore(Protocol):
    """Booking persistence."""

    async def create_booking(self, payload: BookingPayload) -> CreatedBooking: ...


@runtime_checkable
class PaymentSessionService(Protocol):
    """Checkout session creation."""

    async def create_session(self, request: PaymentSessionRequest) -> PaymentSession: ...


@runtime_checkable
class NotificationDispatcher(Protocol):
    """Best-effort enquiry delivery."""

    async def send_enquiry(self, payload: EnquiryPayload) -> None: ...
