"""Three-step booking wizard."""

import asyncio
import uuid
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from loguru import logger

from ...constants import STEP_FIELDS, FieldNames
from ...core.config.settings import BookingSettings, get_settings
from ...core.enums import (
    DistanceSource,
    ProtectionState,
    SubmissionStage,
    WizardEvent,
    WizardStep,
)
from ...core.exceptions import (
    ConfigurationError,
    InvalidTransitionError,
    ReferenceDataError,
    ValidationError,
)
from ...core.logger import log_session
from ...models.booking import BookingDraft, PriceBreakdown, StepValidation, SubmissionResult
from ...models.reference import ReferenceData, Vehicle
from ...models.routing import Coordinates, DistanceEstimate
from ..interfaces import (
    BookingStore,
    NotificationDispatcher,
    PaymentSessionService,
    ReferenceDataStore,
)
from ..routing.estimator import DistanceEstimator
from .pricing import compute_breakdown
from .protection import ProtectionCoordinator
from .submission import BookingSubmissionService
from .validation import (
    ValidationContext,
    is_empty,
    parse_date,
    parse_int,
    parse_number,
    parse_time,
    validate_field,
    validate_step,
)

Listener = Callable[[WizardEvent, Any], None]
CoordinatesKey = Tuple[Coordinates, Coordinates]

TEXT_FIELDS = (
    FieldNames.PICKUP_LOCATION,
    FieldNames.DROPOFF_LOCATION,
    FieldNames.SPECIAL_REQUIREMENTS,
    FieldNames.CUSTOMER_NAME,
    FieldNames.CUSTOMER_EMAIL,
    FieldNames.CUSTOMER_PHONE,
)
CONTACT_FIELDS = (
    FieldNames.CUSTOMER_NAME,
    FieldNames.CUSTOMER_EMAIL,
    FieldNames.CUSTOMER_PHONE,
)
EDITABLE_FIELDS = TEXT_FIELDS + (
    FieldNames.PICKUP_DATE,
    FieldNames.PICKUP_TIME,
    FieldNames.PASSENGERS,
    FieldNames.LUGGAGE,
    FieldNames.ESTIMATED_MILES,
    FieldNames.WAIT_TIME_HOURS,
)

PROTECTION_OPEN_MESSAGE = "Please submit or close the close protection form before booking"


class BookingWizard:
    """
    Owns the booking draft and walks it through the three steps.

    Every mutation goes through a wizard method, which validates the field
    inline, stores the typed value and publishes the recomputed breakdown.
    Listeners registered with ``subscribe`` receive ``(WizardEvent, payload)``:

    - ``STEP_CHANGED``: the new ``WizardStep``
    - ``BREAKDOWN_CHANGED``: the new ``PriceBreakdown``
    - ``DISTANCE_RESOLVED``: the ``DistanceEstimate``
    - ``VALIDATION_FAILED``: ``(step, errors)``
    - ``SUBMISSION_SUCCEEDED``: the booking reference
    - ``SUBMISSION_FAILED``: the user-facing reason
    """

    def __init__(
        self,
        reference_store: Optional[ReferenceDataStore] = None,
        estimator: Optional[DistanceEstimator] = None,
        booking_store: Optional[BookingStore] = None,
        payment_service: Optional[PaymentSessionService] = None,
        notifier: Optional[NotificationDispatcher] = None,
        settings: Optional[BookingSettings] = None,
        reference_data: Optional[ReferenceData] = None,
        today: Callable[[], date] = date.today,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize wizard.

        Args:
            reference_store: Source of vehicles, extras, blocked dates and fixed routes
            estimator: Distance estimator; straight-line only if None
            booking_store: Booking persistence collaborator
            payment_service: Payment session collaborator
            notifier: Close protection enquiry dispatcher
            settings: Booking settings, defaults to ``get_settings()``
            reference_data: Preloaded reference data (skips ``load_reference_data``)
            today: Current date provider for the pickup date rule
            clock: Timestamp provider for references and enquiries
        """
        settings = settings or get_settings()
        self.wait_rate = settings.wait_rate_per_hour
        self._today = today

        self._reference_store = reference_store
        self._estimator = estimator or DistanceEstimator()

        self._submission: Optional[BookingSubmissionService] = None
        if booking_store is not None and payment_service is not None:
            kwargs = {"clock": clock} if clock else {}
            self._submission = BookingSubmissionService(
                booking_store,
                payment_service,
                reference_prefix=settings.booking_reference_prefix,
                **kwargs,
            )

        protection_kwargs = {"clock": clock} if clock else {}
        self.protection = ProtectionCoordinator(notifier, **protection_kwargs)

        self.reference = reference_data or ReferenceData()
        self.session_id = uuid.uuid4().hex[:12]
        self.draft = BookingDraft()
        self.last_estimate: Optional[DistanceEstimate] = None
        self.last_result: Optional[SubmissionResult] = None

        self._listeners: List[Listener] = []
        self._last_breakdown = PriceBreakdown.zero()
        self._distance_task: Optional["asyncio.Task[Optional[DistanceEstimate]]"] = None
        self._distance_key: Optional[CoordinatesKey] = None
        self._resolved_key: Optional[CoordinatesKey] = None
        self._submitting = False
        # Raw entries rejected inline that the draft does not hold
        self._rejected: Dict[str, Any] = {}

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener.

        Returns:
            Callable that unregisters the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: WizardEvent, payload: Any = None) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, payload)
            except Exception:
                logger.exception(f"Wizard listener failed on {event.value}")

    def _publish_breakdown(self) -> PriceBreakdown:
        breakdown = self.breakdown
        if breakdown != self._last_breakdown:
            self._last_breakdown = breakdown
            self._emit(WizardEvent.BREAKDOWN_CHANGED, breakdown)
        return breakdown

    # ------------------------------------------------------------------
    # Reference data and derived values
    # ------------------------------------------------------------------

    async def load_reference_data(self) -> ReferenceData:
        """
        Load vehicles, extras, blocked dates and fixed routes once at mount.

        Raises:
            ConfigurationError: No reference store configured
            ReferenceDataError: The store failed
        """
        store = self._reference_store
        if store is None:
            raise ConfigurationError("No reference data store configured")

        try:
            vehicles, extras, blocked_dates, fixed_routes = await asyncio.gather(
                store.list_active_vehicles(),
                store.list_active_extras(),
                store.list_blocked_dates(),
                store.list_fixed_routes(),
            )
        except Exception as e:
            logger.error(f"Failed to load reference data: {e}")
            raise ReferenceDataError(f"Failed to load reference data: {e}") from e

        self.reference = ReferenceData(
            vehicles=list(vehicles),
            extras=list(extras),
            blocked_dates=frozenset(blocked_dates),
            fixed_routes=list(fixed_routes),
        )
        logger.info(
            f"Reference data loaded: {len(self.reference.vehicles)} vehicles, "
            f"{len(self.reference.extras)} extras, {len(self.reference.blocked_dates)} "
            f"blocked dates, {len(self.reference.fixed_routes)} fixed routes"
        )
        self._publish_breakdown()
        return self.reference

    @property
    def step(self) -> WizardStep:
        return self.draft.step

    @property
    def selected_vehicle(self) -> Optional[Vehicle]:
        return self.reference.vehicle(self.draft.vehicle_id)

    @property
    def breakdown(self) -> PriceBreakdown:
        """Price breakdown of the current draft, computed on every access."""
        return compute_breakdown(
            self.draft,
            self.selected_vehicle,
            self.reference.extras_by_id,
            self.reference.fixed_routes,
            wait_rate=self.wait_rate,
        )

    def validation_context(self) -> ValidationContext:
        return ValidationContext(
            blocked_dates=self.reference.blocked_dates,
            vehicle_ids=self.reference.vehicle_ids,
            today=self._today(),
        )

    def suitable_vehicles(self) -> List[Vehicle]:
        """Active vehicles that can carry the draft's passengers and luggage."""
        return [
            vehicle
            for vehicle in self.reference.vehicles
            if vehicle.is_active and vehicle.fits(self.draft.passengers, self.draft.luggage)
        ]

    # ------------------------------------------------------------------
    # Field edits
    # ------------------------------------------------------------------

    def _record(self, name: str, error: Optional[str]) -> Optional[str]:
        if error:
            self.draft.errors[name] = error
        else:
            self.draft.errors.pop(name, None)
        return error

    def update(self, name: str, value: Any) -> Optional[str]:
        """
        Apply one form edit to the draft.

        Text, date and time fields are stored as entered (parsed where
        possible) so the step gate can report them. Numeric fields only
        change the draft when the value passes validation; a refused entry
        keeps failing the step gate until it is corrected or cleared.

        Returns:
            Inline error for the field, or None
        """
        if name not in EDITABLE_FIELDS:
            raise ValueError(f"Field cannot be edited directly: {name}")

        error = validate_field(name, value, self.validation_context())
        draft = self.draft

        if name in TEXT_FIELDS:
            setattr(draft, name, "" if value is None else str(value))
            if name in CONTACT_FIELDS:
                self.protection.sync_contact(draft)
        elif name == FieldNames.PICKUP_DATE:
            draft.pickup_date = None if is_empty(value) else parse_date(value)
        elif name == FieldNames.PICKUP_TIME:
            draft.pickup_time = None if is_empty(value) else parse_time(value)
        elif name in (FieldNames.PASSENGERS, FieldNames.LUGGAGE):
            if is_empty(value):
                setattr(draft, name, None)
            elif error is None:
                setattr(draft, name, parse_int(value))
        elif name == FieldNames.ESTIMATED_MILES:
            self._apply_manual_miles(value, error)
        elif name == FieldNames.WAIT_TIME_HOURS:
            if is_empty(value):
                draft.wait_time_hours = 0.0
            elif error is None:
                draft.wait_time_hours = parse_number(value)

        if error and name not in TEXT_FIELDS and not is_empty(value):
            self._rejected[name] = value
        else:
            self._rejected.pop(name, None)
        self._record(name, error)
        self._publish_breakdown()
        return error

    def _apply_manual_miles(self, value: Any, error: Optional[str]) -> None:
        draft = self.draft
        if is_empty(value):
            # Clearing the field hands the mileage back to the estimator
            estimate = self.last_estimate if self._resolved_key == draft.coordinates_key() else None
            draft.estimated_miles = estimate.miles if estimate else 0.0
            draft.miles_source = estimate.source if estimate else None
        elif error is None:
            draft.estimated_miles = parse_number(value)
            draft.miles_source = DistanceSource.MANUAL
            logger.info(f"Mileage set manually to {draft.estimated_miles}")

    def set_long_drive(self, enabled: bool) -> None:
        self.draft.is_long_drive = bool(enabled)
        self._publish_breakdown()

    def set_overnight_stop(self, enabled: bool) -> None:
        self.draft.has_overnight_stop = bool(enabled)
        self._publish_breakdown()

    def set_pickup(self, address: str, coordinates: Optional[Coordinates]) -> Optional[str]:
        """Set the pickup address and its geocoded point."""
        return self._set_location(
            FieldNames.PICKUP_LOCATION, "pickup_coordinates", address, coordinates
        )

    def set_dropoff(self, address: str, coordinates: Optional[Coordinates]) -> Optional[str]:
        """Set the drop-off address and its geocoded point."""
        return self._set_location(
            FieldNames.DROPOFF_LOCATION, "dropoff_coordinates", address, coordinates
        )

    def _set_location(
        self, field_name: str, coords_attr: str, address: str, coordinates: Optional[Coordinates]
    ) -> Optional[str]:
        error = self.update(field_name, address)
        if getattr(self.draft, coords_attr) != coordinates:
            setattr(self.draft, coords_attr, coordinates)
            self._resolved_key = None
            if self.draft.miles_overridden:
                logger.info("Route changed, dropping manual mileage")
                self.draft.estimated_miles = 0.0
                self.draft.miles_source = None
                self._publish_breakdown()
            self._schedule_distance()
        return error

    # ------------------------------------------------------------------
    # Distance
    # ------------------------------------------------------------------

    def _schedule_distance(self) -> None:
        key = self.draft.coordinates_key()
        if key is None or key == self._resolved_key or key == self._distance_key:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, distance estimate deferred")
            return
        with log_session(self.session_id):
            self._distance_task = loop.create_task(self.refresh_distance())

    async def refresh_distance(self, force: bool = False) -> Optional[DistanceEstimate]:
        """
        Estimate miles for the current coordinates and apply the result.

        A result that arrives after the coordinates changed again is
        discarded. A manual mileage for the same coordinates is kept.

        Args:
            force: Re-estimate even if these coordinates were already resolved

        Returns:
            The applied estimate, or None when nothing was applied
        """
        key = self.draft.coordinates_key()
        if key is None:
            return None
        if not force and key == self._resolved_key:
            return self.last_estimate

        self._distance_key = key
        try:
            estimate = await self._estimator.estimate(*key)
        finally:
            if self._distance_key == key:
                self._distance_key = None

        if self.draft.coordinates_key() != key:
            logger.debug("Discarding distance estimate for superseded coordinates")
            return None

        self._resolved_key = key
        self.last_estimate = estimate
        if self.draft.miles_overridden:
            logger.info(
                f"Keeping manual mileage, {estimate.source.value} estimate was {estimate.miles}"
            )
        else:
            self.draft.estimated_miles = estimate.miles
            self.draft.miles_source = estimate.source
            self.draft.errors.pop(FieldNames.ESTIMATED_MILES, None)
            self._rejected.pop(FieldNames.ESTIMATED_MILES, None)
            logger.info(f"Distance resolved: {estimate.miles} miles ({estimate.source.value})")

        self._emit(WizardEvent.DISTANCE_RESOLVED, estimate)
        self._publish_breakdown()
        return estimate

    async def wait_for_distance(self) -> Optional[DistanceEstimate]:
        """Await the background estimate scheduled by the last coordinate change."""
        task = self._distance_task
        if task is None:
            return None
        return await task

    # ------------------------------------------------------------------
    # Vehicle and extras
    # ------------------------------------------------------------------

    def select_vehicle(self, vehicle_id: Optional[str]) -> Optional[str]:
        """
        Select a vehicle; unknown or inactive ids are refused.

        Returns:
            Error message, or None once selected
        """
        error = validate_field(FieldNames.VEHICLE_ID, vehicle_id, self.validation_context())
        if error is None:
            self.draft.vehicle_id = str(vehicle_id)
            logger.info(f"Vehicle selected: {vehicle_id}")
        self._record(FieldNames.VEHICLE_ID, error)
        self._publish_breakdown()
        return error

    def toggle_extra(self, extra_id: str) -> bool:
        """
        Add or remove an extra.

        Returns:
            True if the extra is now selected

        Raises:
            ValidationError: Unknown or inactive extra
        """
        if extra_id not in self.reference.extras_by_id:
            raise ValidationError(f"Unknown extra: {extra_id}", field="extras")

        selected = self.draft.selected_extras
        if extra_id in selected:
            selected.discard(extra_id)
        else:
            selected.add(extra_id)
        self._publish_breakdown()
        return extra_id in selected

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    @property
    def rejected_entries(self) -> Dict[str, Any]:
        """Raw values refused inline and not corrected since, by field."""
        return dict(self._rejected)

    def _gate(
        self, step: WizardStep, context: Optional[ValidationContext] = None
    ) -> StepValidation:
        """
        Run the step rules against the draft.

        A field whose last entry was refused still fails with that entry's
        message: the draft only holds the previous accepted value.
        """
        context = context or self.validation_context()
        errors = dict(validate_step(step, self.draft, context).errors)
        for name in STEP_FIELDS[int(step)]:
            if name in self._rejected:
                error = validate_field(name, self._rejected[name], context)
                if error:
                    errors[name] = error
        return StepValidation.from_errors(errors)

    def _clear_step_errors(self, step: WizardStep) -> None:
        for name in STEP_FIELDS[int(step)]:
            self.draft.errors.pop(name, None)

    def _change_step(self, step: WizardStep) -> None:
        previous = self.draft.step
        self.draft.step = step
        logger.info(f"Wizard step {int(previous)} -> {int(step)} ({step.label})")
        self._emit(WizardEvent.STEP_CHANGED, step)

    def next_step(self) -> StepValidation:
        """
        Advance one step if the current step's gate passes.

        Returns:
            Gate result; on failure every error is stored on the draft

        Raises:
            InvalidTransitionError: Already on the last step
        """
        current = self.draft.step
        if current == WizardStep.DETAILS:
            raise InvalidTransitionError("wizard", int(current), int(current) + 1)

        result = self._gate(current)
        if not result.valid:
            self._clear_step_errors(current)
            self.draft.errors.update(result.errors)
            logger.info(f"Step {int(current)} gate failed: {sorted(result.errors)}")
            self._emit(WizardEvent.VALIDATION_FAILED, (current, result.errors))
            return result

        self._clear_step_errors(current)
        self._change_step(WizardStep(int(current) + 1))
        return result

    def previous_step(self) -> WizardStep:
        """Go back one step. Never validates."""
        current = self.draft.step
        if current == WizardStep.JOURNEY:
            raise InvalidTransitionError("wizard", int(current), int(current) - 1)
        self._change_step(WizardStep(int(current) - 1))
        return self.draft.step

    def go_to(self, step: int) -> WizardStep:
        """
        Jump to a step: any earlier step, or the next one through its gate.

        Raises:
            InvalidTransitionError: Skipping ahead more than one step
        """
        target = WizardStep(step)
        current = self.draft.step
        if target < current:
            self._change_step(target)
        elif target == current + 1:
            self.next_step()
        elif target != current:
            raise InvalidTransitionError("wizard", int(current), int(target))
        return self.draft.step

    # ------------------------------------------------------------------
    # Close protection
    # ------------------------------------------------------------------

    def _require_details_step(self, action: str) -> None:
        if self.draft.step != WizardStep.DETAILS:
            raise InvalidTransitionError("wizard", int(self.draft.step), action)

    def open_protection(self) -> Dict[str, str]:
        self._require_details_step("open_protection")
        return self.protection.open(self.draft)

    def update_protection(self, name: str, value: Any) -> Optional[str]:
        return self.protection.update_form(name, value)

    async def submit_protection(self) -> StepValidation:
        with log_session(self.session_id):
            return await self.protection.submit(self.draft)

    def cancel_protection(self) -> ProtectionState:
        return self.protection.cancel(self.draft)

    def remove_protection(self) -> None:
        self.protection.remove(self.draft)

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def _final_gate(self) -> StepValidation:
        context = self.validation_context()
        errors: Dict[str, str] = {}
        for step in WizardStep:
            errors.update(self._gate(step, context).errors)
        if self.protection.is_open:
            errors[FieldNames.PROTECTION] = PROTECTION_OPEN_MESSAGE
        return StepValidation.from_errors(errors)

    async def submit(self) -> SubmissionResult:
        """
        Submit the booking from step 3.

        On success the draft is replaced by a fresh one. On failure the
        wizard stays on step 3 with the draft untouched.

        Raises:
            InvalidTransitionError: Not on step 3, or a submission is already running
            ConfigurationError: Booking store or payment service not configured
        """
        self._require_details_step("submit")
        if self._submitting:
            raise InvalidTransitionError("wizard", "submitting", "submit")
        if self._submission is None:
            raise ConfigurationError("Booking store and payment service are required to submit")

        gate = self._final_gate()
        if not gate.valid:
            self.draft.errors.update(gate.errors)
            logger.info(f"Submission blocked: {sorted(gate.errors)}")
            self._emit(WizardEvent.VALIDATION_FAILED, (self.draft.step, gate.errors))
            return SubmissionResult(
                success=False,
                stage=SubmissionStage.VALIDATION,
                reason="Please correct the highlighted fields",
                retryable=False,
            )

        self._submitting = True
        try:
            with log_session(self.session_id):
                result = await self._submission.submit(
                    self.draft, self.breakdown, self.selected_vehicle
                )
        finally:
            self._submitting = False

        self.last_result = result
        if result.success:
            self._emit(WizardEvent.SUBMISSION_SUCCEEDED, result.reference)
            self.reset()
        else:
            self._emit(WizardEvent.SUBMISSION_FAILED, result.reason)
        return result

    def reset(self) -> None:
        """Discard the draft and start over on step 1."""
        self.draft = BookingDraft()
        self.protection.reset()
        if self._submission is not None:
            self._submission.forget()
        self.last_estimate = None
        self._resolved_key = None
        self._distance_key = None
        self._distance_task = None
        self._rejected = {}
        self.session_id = uuid.uuid4().hex[:12]
        logger.info("Wizard reset")
        self._emit(WizardEvent.STEP_CHANGED, self.draft.step)
        self._publish_breakdown()
