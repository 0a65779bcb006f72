"""Final submission: persist the booking, then open a payment session."""

import hashlib
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from loguru import logger

from ...constants import Pricing
from ...core.enums import SubmissionStage
from ...core.exceptions import PaymentSessionError, PersistenceError
from ...models.booking import (
    BookingConfirmation,
    BookingDraft,
    PriceBreakdown,
    SubmissionResult,
)
from ...models.payloads import BookingPayload, PaymentSession, PaymentSessionRequest
from ...models.reference import Vehicle
from ...utils.masking import mask_email, mask_payload
from ..interfaces import BookingStore, PaymentSessionService

GENERIC_FAILURE_MESSAGE = (
    "We couldn't complete your booking right now. Your details are saved, please try again."
)

_BASE36_DIGITS = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_base36(number: int) -> str:
    if number < 0:
        raise ValueError("number must be non-negative")
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


def generate_reference(now: datetime, prefix: str = Pricing.REFERENCE_PREFIX) -> str:
    """Human-readable booking reference, e.g. ``SDS-LXY3K2P1``."""
    epoch_ms = int(now.timestamp() * 1000)
    return f"{prefix}-{to_base36(epoch_ms)}"


def build_booking_payload(draft: BookingDraft, breakdown: PriceBreakdown) -> BookingPayload:
    """Serialize a draft and its breakdown for the booking store."""
    pickup = draft.pickup_coordinates
    dropoff = draft.dropoff_coordinates
    details = draft.protection_details
    return BookingPayload(
        pickup_location=draft.pickup_location.strip(),
        dropoff_location=draft.dropoff_location.strip(),
        pickup_latitude=pickup.latitude if pickup else None,
        pickup_longitude=pickup.longitude if pickup else None,
        dropoff_latitude=dropoff.latitude if dropoff else None,
        dropoff_longitude=dropoff.longitude if dropoff else None,
        pickup_date=draft.pickup_date.isoformat() if draft.pickup_date else None,
        pickup_time=draft.pickup_time.strftime("%H:%M") if draft.pickup_time else None,
        passengers=draft.passengers,
        luggage=draft.luggage,
        additional_requirements=draft.special_requirements.strip(),
        vehicle_id=draft.vehicle_id,
        extras=sorted(draft.selected_extras),
        estimated_miles=draft.estimated_miles,
        distance_source=draft.miles_source.value if draft.miles_source else None,
        wait_time_hours=draft.wait_time_hours,
        is_long_drive=draft.is_long_drive,
        has_overnight_stop=draft.has_overnight_stop,
        price_breakdown=breakdown.to_dict(),
        total_price=breakdown.total,
        customer_name=draft.customer_name.strip(),
        customer_email=draft.customer_email.strip(),
        customer_phone=draft.customer_phone.strip(),
        protection_interest=draft.protection_interest,
        protection_details=details.to_dict() if details else None,
    )


def payload_fingerprint(payload: BookingPayload) -> str:
    """Stable hash of a booking payload."""
    raw = json.dumps(payload, sort_keys=True, default=str)
    return hashlib.sha256(raw.encode()).hexdigest()


@dataclass
class _PersistedBooking:
    fingerprint: str
    booking_id: str
    reference: str


class BookingSubmissionService:
    """
    Two-stage submission against the booking store and payment service.

    Collaborator errors are turned into a retryable ``SubmissionResult``; they
    never propagate. A booking persisted by a failed attempt is reused on the
    next attempt as long as the payload is unchanged, so a payment retry does
    not store the booking twice.
    """

    def __init__(
        self,
        booking_store: BookingStore,
        payment_service: PaymentSessionService,
        reference_prefix: str = Pricing.REFERENCE_PREFIX,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._store = booking_store
        self._payments = payment_service
        self.reference_prefix = reference_prefix
        self._clock = clock
        self._persisted: Optional[_PersistedBooking] = None

    @property
    def has_unpaid_booking(self) -> bool:
        """True when a previous attempt stored a booking but payment failed."""
        return self._persisted is not None

    def forget(self) -> None:
        """Drop the remembered booking of a failed attempt."""
        self._persisted = None

    async def submit(
        self, draft: BookingDraft, breakdown: PriceBreakdown, vehicle: Optional[Vehicle] = None
    ) -> SubmissionResult:
        """
        Persist the draft and create a payment session.

        Args:
            draft: Validated draft on step 3
            breakdown: Breakdown computed from the draft
            vehicle: Selected vehicle, for the confirmation summary

        Returns:
            SubmissionResult; ``retryable`` is True on any failure
        """
        payload = build_booking_payload(draft, breakdown)
        fingerprint = payload_fingerprint(payload)

        persisted = self._persisted
        if persisted is not None and persisted.fingerprint == fingerprint:
            logger.info(f"Reusing booking {persisted.booking_id} stored by a previous attempt")
        else:
            try:
                persisted = await self._persist(payload, fingerprint)
            except Exception as e:
                logger.opt(exception=e).error(
                    f"Booking persistence failed for {mask_email(payload['customer_email'])}: {e}"
                )
                return SubmissionResult(
                    success=False,
                    stage=SubmissionStage.PERSISTENCE,
                    reason=GENERIC_FAILURE_MESSAGE,
                    retryable=True,
                )
            self._persisted = persisted

        request = PaymentSessionRequest(
            booking_id=persisted.booking_id,
            customer_email=payload["customer_email"],
            customer_name=payload["customer_name"],
            total_amount=breakdown.total,
            booking_reference=persisted.reference,
        )
        try:
            session = await self._create_session(request)
        except Exception as e:
            logger.opt(exception=e).error(
                f"Payment session failed for booking {persisted.booking_id}: {e}"
            )
            return SubmissionResult(
                success=False,
                stage=SubmissionStage.PAYMENT,
                reference=persisted.reference,
                booking_id=persisted.booking_id,
                reason=GENERIC_FAILURE_MESSAGE,
                retryable=True,
            )

        self._persisted = None
        logger.info(
            f"Booking {persisted.reference} submitted, total {breakdown.formatted_total} "
            f"{Pricing.CURRENCY}"
        )
        return SubmissionResult(
            success=True,
            stage=SubmissionStage.COMPLETED,
            reference=persisted.reference,
            booking_id=persisted.booking_id,
            redirect_url=session.redirect_url,
            confirmation=self._confirmation(
                draft, breakdown, vehicle, persisted, session.redirect_url
            ),
        )

    async def _persist(self, payload: BookingPayload, fingerprint: str) -> _PersistedBooking:
        logger.debug(f"Storing booking payload: {mask_payload(dict(payload))}")
        created = await self._store.create_booking(payload)
        booking_id = created.get("id") if isinstance(created, dict) else None
        if not booking_id:
            raise PersistenceError("Booking store returned no booking id")
        reference = generate_reference(self._clock(), self.reference_prefix)
        logger.info(f"Booking stored with id {booking_id}, reference {reference}")
        return _PersistedBooking(fingerprint, str(booking_id), reference)

    async def _create_session(self, request: PaymentSessionRequest) -> PaymentSession:
        session = await self._payments.create_session(request)
        if session is None or not getattr(session, "redirect_url", None):
            raise PaymentSessionError("Payment service returned no redirect URL")
        return session

    @staticmethod
    def _confirmation(
        draft: BookingDraft,
        breakdown: PriceBreakdown,
        vehicle: Optional[Vehicle],
        persisted: _PersistedBooking,
        redirect_url: str,
    ) -> BookingConfirmation:
        return BookingConfirmation(
            reference=persisted.reference,
            booking_id=persisted.booking_id,
            pickup_location=draft.pickup_location.strip(),
            dropoff_location=draft.dropoff_location.strip(),
            pickup_date=draft.pickup_date.isoformat() if draft.pickup_date else "",
            pickup_time=draft.pickup_time.strftime("%H:%M") if draft.pickup_time else "",
            vehicle_name=vehicle.name if vehicle else (draft.vehicle_id or ""),
            total_price=breakdown.formatted_total,
            customer_name=draft.customer_name.strip(),
            customer_email=draft.customer_email.strip(),
            redirect_url=redirect_url,
            has_protection=draft.protection_interest,
        )
