"""Centralized enum definitions for the booking core."""

from enum import Enum, IntEnum


class WizardStep(IntEnum):
    """Steps of the reservation wizard."""

    JOURNEY = 1
    VEHICLE = 2
    DETAILS = 3

    @property
    def label(self) -> str:
        """Short label shown in the progress indicator."""
        return {1: "Journey", 2: "Vehicle", 3: "Details"}[self.value]


class ProtectionState(str, Enum):
    """States of the close protection sub-flow."""

    OFF = "off"
    PENDING_ENTRY = "pending_entry"
    MERGED = "merged"


class ThreatLevel(str, Enum):
    """Threat level selected in the close protection enquiry."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    NOT_SURE = "NotSure"

    @classmethod
    def values(cls) -> list:
        """Return list of all enum values."""
        return [e.value for e in cls]


class DistanceSource(str, Enum):
    """Where a mileage estimate came from."""

    ROUTED = "routed"
    STRAIGHT_LINE = "straight-line"
    MANUAL = "manual"


class WizardEvent(str, Enum):
    """Notifications the wizard publishes to the surrounding UI."""

    STEP_CHANGED = "stepChanged"
    BREAKDOWN_CHANGED = "breakdownChanged"
    DISTANCE_RESOLVED = "distanceResolved"
    VALIDATION_FAILED = "validationFailed"
    SUBMISSION_SUCCEEDED = "submissionSucceeded"
    SUBMISSION_FAILED = "submissionFailed"


class SubmissionStage(str, Enum):
    """Stage of final submission that produced a result."""

    VALIDATION = "validation"
    PERSISTENCE = "persistence"
    PAYMENT = "payment"
    COMPLETED = "completed"
