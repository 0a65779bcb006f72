"""Close protection add-on sub-flow."""

import asyncio
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Set

from loguru import logger

from ...constants import FieldNames
from ...core.enums import ProtectionState
from ...core.exceptions import InvalidTransitionError
from ...models.booking import BookingDraft, ProtectionDetails, StepValidation
from ...models.payloads import EnquiryPayload
from ...utils.masking import mask_email
from ..interfaces import NotificationDispatcher
from .validation import parse_threat_level, validate_field, validate_protection_form

FORM_FIELDS = (
    FieldNames.PROTECTION_NAME,
    FieldNames.PROTECTION_EMAIL,
    FieldNames.PROTECTION_PHONE,
    FieldNames.THREAT_LEVEL,
    FieldNames.REQUIREMENTS,
)

# Sub-form field -> draft attribute used to prefill it
CONTACT_PREFILL = {
    FieldNames.PROTECTION_NAME: FieldNames.CUSTOMER_NAME,
    FieldNames.PROTECTION_EMAIL: FieldNames.CUSTOMER_EMAIL,
    FieldNames.PROTECTION_PHONE: FieldNames.CUSTOMER_PHONE,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_booking_context(draft: BookingDraft) -> str:
    """One-line journey summary attached to the enquiry."""
    parts = [
        f"Pickup: {draft.pickup_location or 'n/a'}",
        f"Dropoff: {draft.dropoff_location or 'n/a'}",
        f"Date: {draft.pickup_date.isoformat() if draft.pickup_date else 'n/a'}",
        f"Time: {draft.pickup_time.strftime('%H:%M') if draft.pickup_time else 'n/a'}",
        f"Vehicle: {draft.vehicle_id or 'n/a'}",
    ]
    return " | ".join(parts)


class ProtectionCoordinator:
    """
    Three-state machine for the close protection enquiry.

    ``OFF -> PENDING_ENTRY`` opens the sub-form. A valid submit merges
    ``ProtectionDetails`` into the draft and moves to ``MERGED``; cancel goes
    back where the sub-form was opened from. The enquiry is dispatched once
    per session: re-opening after a merge is an edit and only updates the
    details held by the draft.
    """

    def __init__(
        self,
        dispatcher: Optional[NotificationDispatcher] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Initialize coordinator.

        Args:
            dispatcher: Enquiry delivery collaborator; enquiries are only logged if None
            clock: Source of submission timestamps
        """
        self._dispatcher = dispatcher
        self._clock = clock

        self._state = ProtectionState.OFF
        self._form: Dict[str, str] = {}
        self._errors: Dict[str, str] = {}
        self._touched: Set[str] = set()
        self._merged_form: Dict[str, str] = {}
        self._editing = False
        self._enquiry_sent = False
        self._pending: Set["asyncio.Task[None]"] = set()

    @property
    def state(self) -> ProtectionState:
        return self._state

    @property
    def is_open(self) -> bool:
        """True while the sub-form is on screen."""
        return self._state == ProtectionState.PENDING_ENTRY

    @property
    def is_editing(self) -> bool:
        """True when the open sub-form edits an already merged enquiry."""
        return self.is_open and self._editing

    @property
    def enquiry_sent(self) -> bool:
        """True once this session dispatched an enquiry."""
        return self._enquiry_sent

    @property
    def form(self) -> Dict[str, str]:
        return dict(self._form)

    @property
    def errors(self) -> Dict[str, str]:
        return dict(self._errors)

    @property
    def can_submit(self) -> bool:
        """True when the open sub-form passes every rule."""
        return self.is_open and self.validate_form().valid

    def _require_open(self, action: str) -> None:
        if not self.is_open:
            raise InvalidTransitionError("protection", self._state.value, action)

    def open(self, draft: BookingDraft) -> Dict[str, str]:
        """
        Toggle the add-on on and open the sub-form.

        Contact fields are prefilled from the draft. Re-opening a merged
        enquiry shows the submitted values.

        Returns:
            The sub-form values
        """
        if self.is_open:
            raise InvalidTransitionError("protection", self._state.value, "open")

        self._editing = self._state == ProtectionState.MERGED
        self._form = dict(self._merged_form) if self._editing else {}
        self._touched = set()
        self._errors = {}
        self._state = ProtectionState.PENDING_ENTRY
        self.sync_contact(draft)

        logger.info(f"Close protection form opened ({'edit' if self._editing else 'new'})")
        return self.form

    def sync_contact(self, draft: BookingDraft) -> None:
        """Copy draft contact details into sub-form fields the user has not edited."""
        if not self.is_open:
            return
        for form_field, draft_field in CONTACT_PREFILL.items():
            if form_field in self._touched:
                continue
            value = getattr(draft, draft_field) or ""
            if value and not self._form.get(form_field):
                self._form[form_field] = value

    def update_form(self, name: str, value: Any) -> Optional[str]:
        """
        Set one sub-form field and validate it inline.

        Returns:
            Error message for the field, or None
        """
        self._require_open("update")
        if name not in FORM_FIELDS:
            raise ValueError(f"Unknown close protection field: {name}")

        self._form[name] = "" if value is None else str(value)
        self._touched.add(name)

        error = validate_field(name, self._form[name])
        if error:
            self._errors[name] = error
        else:
            self._errors.pop(name, None)
        return error

    def validate_form(self) -> StepValidation:
        return validate_protection_form(self._form)

    async def submit(self, draft: BookingDraft) -> StepValidation:
        """
        Submit the sub-form.

        On success the enquiry is handed to the dispatcher in the background
        (first submission of the session only) and the details are merged
        into the draft. Dispatch failures never affect the merge.

        Returns:
            Validation result; the state only changes when it is valid
        """
        self._require_open("submit")

        result = self.validate_form()
        if not result.valid:
            self._errors = dict(result.errors)
            logger.info(f"Close protection form rejected: {sorted(result.errors)}")
            return result

        threat_level = parse_threat_level(self._form[FieldNames.THREAT_LEVEL])
        assert threat_level is not None
        details = ProtectionDetails(
            threat_level=threat_level,
            requirements=self._form.get(FieldNames.REQUIREMENTS, "").strip(),
            submitted_at=self._clock(),
            contact_name=self._form[FieldNames.PROTECTION_NAME].strip(),
            contact_email=self._form[FieldNames.PROTECTION_EMAIL].strip(),
            contact_phone=self._form[FieldNames.PROTECTION_PHONE].strip(),
        )

        if self._enquiry_sent:
            logger.info("Close protection details updated, enquiry already sent this session")
        else:
            self._dispatch(self._build_enquiry(draft, details))
            self._enquiry_sent = True

        draft.protection_details = details
        self._merged_form = dict(self._form)
        self._errors = {}
        self._editing = False
        self._state = ProtectionState.MERGED
        logger.info(f"Close protection merged (threat level: {details.threat_level.value})")
        return result

    def cancel(self, draft: BookingDraft) -> ProtectionState:
        """
        Close the sub-form without submitting.

        A first entry goes back to ``OFF`` and drops anything typed; an edit
        goes back to ``MERGED`` with the previously merged details intact.
        """
        self._require_open("cancel")

        if self._editing:
            self._form = dict(self._merged_form)
            self._state = ProtectionState.MERGED
        else:
            self._form = {}
            draft.protection_details = None
            self._state = ProtectionState.OFF

        self._errors = {}
        self._touched = set()
        self._editing = False
        logger.info(f"Close protection form cancelled, state: {self._state.value}")
        return self._state

    def remove(self, draft: BookingDraft) -> None:
        """Toggle the add-on off, dropping merged details from the draft."""
        if self._state == ProtectionState.OFF:
            raise InvalidTransitionError("protection", self._state.value, "remove")

        draft.protection_details = None
        self._form = {}
        self._merged_form = {}
        self._errors = {}
        self._touched = set()
        self._editing = False
        self._state = ProtectionState.OFF
        logger.info("Close protection removed from booking")

    def reset(self) -> None:
        """Start a new session (after a booking was submitted)."""
        self._state = ProtectionState.OFF
        self._form = {}
        self._merged_form = {}
        self._errors = {}
        self._touched = set()
        self._editing = False
        self._enquiry_sent = False

    async def drain(self) -> None:
        """Wait for background enquiry deliveries to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    @staticmethod
    def _build_enquiry(draft: BookingDraft, details: ProtectionDetails) -> EnquiryPayload:
        return EnquiryPayload(
            name=details.contact_name,
            email=details.contact_email,
            phone=details.contact_phone,
            threat_level=details.threat_level.value,
            requirements=details.requirements,
            booking_context=build_booking_context(draft),
            submitted_at=details.submitted_at.isoformat(),
        )

    def _dispatch(self, payload: EnquiryPayload) -> None:
        if self._dispatcher is None:
            logger.warning("No notification dispatcher configured, enquiry not sent")
            return
        task = asyncio.create_task(self._send(payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _send(self, payload: EnquiryPayload) -> None:
        assert self._dispatcher is not None
        try:
            await self._dispatcher.send_enquiry(payload)
            logger.info(f"Close protection enquiry sent for {mask_email(payload['email'])}")
        except Exception as e:
            logger.warning(f"Close protection enquiry could not be sent: {type(e).__name__}: {e}")
