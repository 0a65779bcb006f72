"""Tests for booking persistence and payment session creation."""

from datetime import datetime, timezone

import pytest

from src.core.enums import SubmissionStage, ThreatLevel
from src.core.exceptions import PaymentSessionError, PersistenceError
from src.models import PaymentSession, PriceBreakdown, ProtectionDetails
from src.services.booking.submission import (
    GENERIC_FAILURE_MESSAGE,
    BookingSubmissionService,
    build_booking_payload,
    generate_reference,
    payload_fingerprint,
    to_base36,
)

from tests.conftest import FIXED_NOW

BREAKDOWN = PriceBreakdown(mileage=145.8, total=145.8)


@pytest.fixture
def service(booking_store, payment_service):
    return BookingSubmissionService(booking_store, payment_service, clock=lambda: FIXED_NOW)


class TestReference:
    def test_base36(self):
        assert to_base36(0) == "0"
        assert to_base36(35) == "Z"
        assert to_base36(36) == "10"
        assert to_base36(1_295) == "ZZ"

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            to_base36(-1)

    def test_reference_format(self):
        now = datetime(2024, 5, 1, tzinfo=timezone.utc)
        reference = generate_reference(now, "SDS")

        assert reference == "SDS-" + to_base36(1_714_521_600_000)
        assert reference.isupper()

    def test_later_timestamp_gives_different_reference(self):
        first = generate_reference(datetime(2024, 5, 1, tzinfo=timezone.utc))
        second = generate_reference(datetime(2024, 5, 1, 0, 0, 1, tzinfo=timezone.utc))
        assert first != second


class TestPayload:
    def test_includes_draft_fields_and_total(self, complete_draft):
        complete_draft.selected_extras = {"meet-greet", "child-seat"}

        payload = build_booking_payload(complete_draft, BREAKDOWN)

        assert payload["pickup_location"] == "10 Downing Street, London"
        assert payload["pickup_latitude"] == 51.5007
        assert payload["dropoff_longitude"] == -0.4543
        assert payload["pickup_date"] == "2030-02-14"
        assert payload["pickup_time"] == "14:30"
        assert payload["extras"] == ["child-seat", "meet-greet"]
        assert payload["total_price"] == 145.8
        assert payload["price_breakdown"]["mileage"] == 145.8
        assert payload["protection_interest"] is False
        assert payload["protection_details"] is None

    def test_serializes_protection_details(self, complete_draft):
        complete_draft.protection_details = ProtectionDetails(
            threat_level=ThreatLevel.NOT_SURE,
            requirements="",
            submitted_at=FIXED_NOW,
        )

        payload = build_booking_payload(complete_draft, BREAKDOWN)

        assert payload["protection_interest"] is True
        assert payload["protection_details"]["threat_level"] == "NotSure"
        assert payload["protection_details"]["submitted_at"] == FIXED_NOW.isoformat()

    def test_fingerprint_tracks_changes(self, complete_draft):
        before = payload_fingerprint(build_booking_payload(complete_draft, BREAKDOWN))
        complete_draft.customer_phone = "+44 7700 900999"
        after = payload_fingerprint(build_booking_payload(complete_draft, BREAKDOWN))

        assert before != after


@pytest.mark.asyncio
async def test_successful_submission(service, complete_draft, booking_store, payment_service):
    result = await service.submit(complete_draft, BREAKDOWN)

    assert result.success is True
    assert result.stage == SubmissionStage.COMPLETED
    assert result.booking_id == "7f3c2a9e-booking"
    assert result.reference == generate_reference(FIXED_NOW)
    assert result.redirect_url == "https://checkout.example.com/pay/cs_test_123"

    request = payment_service.create_session.await_args.args[0]
    assert request.booking_id == "7f3c2a9e-booking"
    assert request.customer_email == "jane@example.com"
    assert request.customer_name == "Jane O'Neill"
    assert request.total_amount == 145.8
    assert request.amount_minor_units == 14580
    assert service.has_unpaid_booking is False


@pytest.mark.asyncio
async def test_confirmation_summary(service, complete_draft, vehicles):
    result = await service.submit(complete_draft, BREAKDOWN, vehicles[0])
    confirmation = result.confirmation

    assert confirmation.vehicle_name == "Mercedes S-Class"
    assert confirmation.total_price == "145.80"
    assert confirmation.pickup_date == "2030-02-14"
    assert confirmation.pickup_time == "14:30"
    assert confirmation.reference == result.reference
    assert confirmation.has_protection is False


@pytest.mark.asyncio
async def test_persistence_failure_is_retryable(
    service, complete_draft, booking_store, payment_service, log_messages
):
    booking_store.create_booking.side_effect = PersistenceError("connection reset")

    result = await service.submit(complete_draft, BREAKDOWN)

    assert result.success is False
    assert result.stage == SubmissionStage.PERSISTENCE
    assert result.retryable is True
    assert result.reason == GENERIC_FAILURE_MESSAGE
    payment_service.create_session.assert_not_called()
    assert any(level == "ERROR" for level, _ in log_messages)
    assert not any("jane@example.com" in message for _, message in log_messages)


@pytest.mark.asyncio
async def test_missing_booking_id_is_a_failure(service, complete_draft, booking_store):
    booking_store.create_booking.return_value = {}

    result = await service.submit(complete_draft, BREAKDOWN)

    assert result.success is False
    assert result.stage == SubmissionStage.PERSISTENCE


@pytest.mark.asyncio
async def test_payment_failure_is_retryable(service, complete_draft, payment_service):
    payment_service.create_session.side_effect = PaymentSessionError("card processor down")

    result = await service.submit(complete_draft, BREAKDOWN)

    assert result.success is False
    assert result.stage == SubmissionStage.PAYMENT
    assert result.retryable is True
    assert result.booking_id == "7f3c2a9e-booking"
    assert service.has_unpaid_booking is True


@pytest.mark.asyncio
async def test_empty_redirect_is_a_payment_failure(service, complete_draft, payment_service):
    payment_service.create_session.return_value = PaymentSession(redirect_url="")

    result = await service.submit(complete_draft, BREAKDOWN)

    assert result.success is False
    assert result.stage == SubmissionStage.PAYMENT


@pytest.mark.asyncio
async def test_retry_after_payment_failure_reuses_booking(
    service, complete_draft, booking_store, payment_service
):
    payment_service.create_session.side_effect = [
        PaymentSessionError("timeout"),
        PaymentSession(redirect_url="https://checkout.example.com/pay/cs_test_456"),
    ]

    first = await service.submit(complete_draft, BREAKDOWN)
    second = await service.submit(complete_draft, BREAKDOWN)

    assert first.success is False
    assert second.success is True
    assert second.reference == first.reference
    assert booking_store.create_booking.await_count == 1


@pytest.mark.asyncio
async def test_retry_with_changed_draft_stores_again(
    service, complete_draft, booking_store, payment_service
):
    payment_service.create_session.side_effect = [
        PaymentSessionError("timeout"),
        PaymentSession(redirect_url="https://checkout.example.com/pay/cs_test_456"),
    ]

    await service.submit(complete_draft, BREAKDOWN)
    complete_draft.customer_name = "Jane Smith"
    result = await service.submit(complete_draft, BREAKDOWN)

    assert result.success is True
    assert booking_store.create_booking.await_count == 2


@pytest.mark.asyncio
async def test_unexpected_exception_is_converted(service, complete_draft, booking_store):
    booking_store.create_booking.side_effect = RuntimeError("boom")

    result = await service.submit(complete_draft, BREAKDOWN)

    assert result.success is False
    assert result.retryable is True


@pytest.mark.asyncio
async def test_stored_payload_is_logged_masked(service, complete_draft, log_messages):
    await service.submit(complete_draft, BREAKDOWN)

    payload_lines = [
        message
        for _, message in log_messages
        if message.startswith("Storing booking payload")
    ]
    assert len(payload_lines) == 1
    assert "jane@example.com" not in payload_lines[0]
    assert "j***@e***.com" in payload_lines[0]
