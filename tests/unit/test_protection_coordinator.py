"""Tests for the close protection add-on sub-flow."""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from src.core.enums import ProtectionState, ThreatLevel
from src.core.exceptions import InvalidTransitionError, NotificationError
from src.models import BookingDraft
from src.services.booking.protection import ProtectionCoordinator, build_booking_context

SUBMITTED_AT = datetime(2030, 1, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def coordinator(notifier):
    return ProtectionCoordinator(notifier, clock=lambda: SUBMITTED_AT)


@pytest.fixture
def draft(complete_draft):
    return complete_draft


def fill(coordinator, form):
    for name, value in form.items():
        coordinator.update_form(name, value)


class TestOpen:
    def test_prefills_contact_details(self, coordinator, draft):
        form = coordinator.open(draft)

        assert coordinator.state == ProtectionState.PENDING_ENTRY
        assert form == {
            "name": "Jane O'Neill",
            "email": "jane@example.com",
            "phone": "+44 7700 900123",
        }
        assert draft.protection_interest is False

    def test_prefill_keeps_user_edits(self, coordinator, draft):
        coordinator.open(draft)
        coordinator.update_form("email", "security@example.org")

        draft.customer_email = "other@example.com"
        draft.customer_name = "Jane Smith"
        coordinator.sync_contact(draft)

        assert coordinator.form["email"] == "security@example.org"
        assert coordinator.form["name"] == "Jane O'Neill"

    def test_prefill_fills_fields_entered_later(self, coordinator):
        draft = BookingDraft()
        coordinator.open(draft)
        assert coordinator.form == {}

        draft.customer_phone = "07700 900123"
        coordinator.sync_contact(draft)

        assert coordinator.form["phone"] == "07700 900123"

    def test_cannot_open_twice(self, coordinator, draft):
        coordinator.open(draft)

        with pytest.raises(InvalidTransitionError):
            coordinator.open(draft)


class TestFormValidation:
    def test_inline_errors(self, coordinator, draft):
        coordinator.open(draft)

        assert coordinator.update_form("phone", "12") is not None
        assert "phone" in coordinator.errors
        assert coordinator.update_form("phone", "+44 20 7946 0958") is None
        assert "phone" not in coordinator.errors

    def test_not_submittable_until_threat_level_chosen(self, coordinator, draft):
        coordinator.open(draft)
        assert coordinator.can_submit is False

        coordinator.update_form("threat_level", "Low")

        assert coordinator.can_submit is True

    def test_unknown_field(self, coordinator, draft):
        coordinator.open(draft)
        with pytest.raises(ValueError):
            coordinator.update_form("budget", "lots")

    def test_update_requires_open_form(self, coordinator):
        with pytest.raises(InvalidTransitionError):
            coordinator.update_form("name", "Jane")

    @pytest.mark.asyncio
    async def test_invalid_submit_keeps_state(self, coordinator, draft, notifier):
        coordinator.open(draft)
        coordinator.update_form("email", "broken")

        result = await coordinator.submit(draft)

        assert result.valid is False
        assert set(result.errors) == {"email", "threat_level"}
        assert coordinator.state == ProtectionState.PENDING_ENTRY
        assert draft.protection_details is None
        notifier.send_enquiry.assert_not_called()


class TestSubmit:
    @pytest.mark.asyncio
    async def test_merges_details_and_sends_enquiry(
        self, coordinator, draft, notifier, protection_form
    ):
        coordinator.open(draft)
        fill(coordinator, protection_form)

        result = await coordinator.submit(draft)
        await coordinator.drain()

        assert result.valid is True
        assert coordinator.state == ProtectionState.MERGED
        assert draft.protection_interest is True
        details = draft.protection_details
        assert details.threat_level == ThreatLevel.MEDIUM
        assert details.requirements == "Two officers, discreet arrival"
        assert details.submitted_at == SUBMITTED_AT

        notifier.send_enquiry.assert_awaited_once()
        payload = notifier.send_enquiry.await_args.args[0]
        assert payload["email"] == "jane@example.com"
        assert payload["threat_level"] == "Medium"
        assert payload["submitted_at"] == SUBMITTED_AT.isoformat()
        assert "Pickup: 10 Downing Street, London" in payload["booking_context"]

    @pytest.mark.asyncio
    async def test_dispatch_failure_does_not_block_merge(
        self, draft, protection_form, log_messages
    ):
        failing = AsyncMock()
        failing.send_enquiry = AsyncMock(side_effect=NotificationError("SMTP down"))
        coordinator = ProtectionCoordinator(failing)
        coordinator.open(draft)
        fill(coordinator, protection_form)

        result = await coordinator.submit(draft)
        await coordinator.drain()

        assert result.valid is True
        assert coordinator.state == ProtectionState.MERGED
        assert draft.protection_interest is True
        assert any(
            level == "WARNING" and "could not be sent" in message
            for level, message in log_messages
        )

    @pytest.mark.asyncio
    async def test_slow_dispatch_does_not_delay_merge(self, draft, protection_form):
        release = asyncio.Event()

        async def slow_send(payload):
            await release.wait()

        notifier = AsyncMock()
        notifier.send_enquiry = AsyncMock(side_effect=slow_send)
        coordinator = ProtectionCoordinator(notifier)
        coordinator.open(draft)
        fill(coordinator, protection_form)

        await coordinator.submit(draft)

        assert coordinator.state == ProtectionState.MERGED
        release.set()
        await coordinator.drain()
        notifier.send_enquiry.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_without_dispatcher(self, draft, protection_form):
        coordinator = ProtectionCoordinator()
        coordinator.open(draft)
        fill(coordinator, protection_form)

        await coordinator.submit(draft)

        assert coordinator.state == ProtectionState.MERGED
        assert coordinator.enquiry_sent is True


class TestCancel:
    def test_cancel_first_entry_discards_everything(self, coordinator, draft, notifier):
        """Opening and closing without submitting leaves no trace on the draft."""
        coordinator.open(draft)
        coordinator.update_form("threat_level", "High")

        state = coordinator.cancel(draft)

        assert state == ProtectionState.OFF
        assert draft.protection_interest is False
        assert draft.protection_details is None
        assert draft.customer_email == "jane@example.com"
        assert coordinator.form == {}
        notifier.send_enquiry.assert_not_called()

    def test_cancel_requires_open_form(self, coordinator, draft):
        with pytest.raises(InvalidTransitionError):
            coordinator.cancel(draft)

    @pytest.mark.asyncio
    async def test_cancel_edit_keeps_merged_details(self, coordinator, draft, protection_form):
        coordinator.open(draft)
        fill(coordinator, protection_form)
        await coordinator.submit(draft)
        merged = draft.protection_details

        form = coordinator.open(draft)
        assert coordinator.is_editing is True
        assert form["threat_level"] == "Medium"
        coordinator.update_form("threat_level", "High")

        state = coordinator.cancel(draft)

        assert state == ProtectionState.MERGED
        assert draft.protection_details is merged
        assert coordinator.form["threat_level"] == "Medium"


class TestReentry:
    @pytest.mark.asyncio
    async def test_resubmit_updates_without_new_enquiry(
        self, coordinator, draft, notifier, protection_form
    ):
        coordinator.open(draft)
        fill(coordinator, protection_form)
        await coordinator.submit(draft)

        coordinator.open(draft)
        coordinator.update_form("threat_level", "High")
        await coordinator.submit(draft)
        await coordinator.drain()

        assert notifier.send_enquiry.await_count == 1
        assert draft.protection_details.threat_level == ThreatLevel.HIGH
        assert coordinator.state == ProtectionState.MERGED

    @pytest.mark.asyncio
    async def test_identical_resubmit_is_idempotent(
        self, coordinator, draft, notifier, protection_form
    ):
        coordinator.open(draft)
        fill(coordinator, protection_form)
        await coordinator.submit(draft)
        first = draft.protection_details

        coordinator.open(draft)
        await coordinator.submit(draft)
        await coordinator.drain()

        assert draft.protection_details == first
        assert notifier.send_enquiry.await_count == 1

    @pytest.mark.asyncio
    async def test_remove_then_add_again_does_not_resend(
        self, coordinator, draft, notifier, protection_form
    ):
        coordinator.open(draft)
        fill(coordinator, protection_form)
        await coordinator.submit(draft)

        coordinator.remove(draft)
        assert draft.protection_interest is False
        assert coordinator.state == ProtectionState.OFF

        coordinator.open(draft)
        assert coordinator.is_editing is False
        fill(coordinator, protection_form)
        await coordinator.submit(draft)
        await coordinator.drain()

        assert draft.protection_interest is True
        assert notifier.send_enquiry.await_count == 1

    def test_remove_when_off(self, coordinator, draft):
        with pytest.raises(InvalidTransitionError):
            coordinator.remove(draft)

    @pytest.mark.asyncio
    async def test_reset_starts_new_session(self, coordinator, draft, notifier, protection_form):
        coordinator.open(draft)
        fill(coordinator, protection_form)
        await coordinator.submit(draft)

        coordinator.reset()
        fresh = BookingDraft()
        coordinator.open(fresh)
        fill(coordinator, protection_form)
        await coordinator.submit(fresh)
        await coordinator.drain()

        assert notifier.send_enquiry.await_count == 2


def test_booking_context_with_empty_draft():
    context = build_booking_context(BookingDraft())
    assert context.startswith("Pickup: n/a | Dropoff: n/a")
