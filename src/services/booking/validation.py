"""Field and step validation for the booking wizard.

One validator per field serves both inline (as-you-type) checks and the
full step gate. Validators never raise: they return an error message or
None, and ``validate_step`` returns every error for the step at once.
"""

import math
import re
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Callable, Dict, FrozenSet, Optional, Union

from ...constants import REQUIRED_FIELDS, STEP_FIELDS, FieldLimits, FieldNames
from ...core.enums import ThreatLevel
from ...models.booking import BookingDraft, StepValidation

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
NAME_PATTERN = re.compile(r"^(?:[^\W\d_]|[\s'\-])+$")
PHONE_SEPARATORS = re.compile(r"[\s\-()]")
PHONE_PATTERN = re.compile(r"^\+?\d+$")
# Whole text made of one short chunk repeated ("aaaaa", "asdasdasd")
REPEATED_CHUNK = re.compile(r"^([^\W\d_]{1,3})\1+$")

FIELD_LABELS: Dict[str, str] = {
    FieldNames.PICKUP_LOCATION: "Pickup location",
    FieldNames.DROPOFF_LOCATION: "Drop-off location",
    FieldNames.PICKUP_DATE: "Pickup date",
    FieldNames.PICKUP_TIME: "Pickup time",
    FieldNames.PASSENGERS: "Passengers",
    FieldNames.LUGGAGE: "Luggage",
    FieldNames.SPECIAL_REQUIREMENTS: "Special requirements",
    FieldNames.ESTIMATED_MILES: "Estimated miles",
    FieldNames.WAIT_TIME_HOURS: "Wait time",
    FieldNames.VEHICLE_ID: "Vehicle",
    FieldNames.CUSTOMER_NAME: "Full name",
    FieldNames.CUSTOMER_EMAIL: "Email",
    FieldNames.CUSTOMER_PHONE: "Phone number",
    FieldNames.PROTECTION_NAME: "Full name",
    FieldNames.PROTECTION_EMAIL: "Email",
    FieldNames.PROTECTION_PHONE: "Phone number",
    FieldNames.THREAT_LEVEL: "Threat level",
    FieldNames.REQUIREMENTS: "Requirements",
}


@dataclass(frozen=True)
class ValidationContext:
    """Reference data some rules need (blocked dates, known vehicles, today)."""

    blocked_dates: FrozenSet[date] = frozenset()
    vehicle_ids: Optional[FrozenSet[str]] = None
    today: Optional[date] = None

    def current_date(self) -> date:
        return self.today or date.today()


Number = Union[int, float]


def is_empty(value: Any) -> bool:
    """None, or a string holding only whitespace."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def _label(name: str) -> str:
    return FIELD_LABELS.get(name, name.replace("_", " ").capitalize())


# ---------------------------------------------------------------------------
# Parsers: return the typed value or None when the raw value does not parse
# ---------------------------------------------------------------------------


def parse_number(value: Any) -> Optional[float]:
    """Parse a form value into a finite float."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(str(value).strip())
        except ValueError:
            return None
    return number if math.isfinite(number) else None


def parse_int(value: Any) -> Optional[int]:
    """Parse a form value into an int; fractional numbers do not parse."""
    number = parse_number(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


def parse_date(value: Any) -> Optional[date]:
    """Parse ``YYYY-MM-DD`` (or pass a date through)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip(), "%Y-%m-%d").date()
    except ValueError:
        return None


def parse_time(value: Any) -> Optional[time]:
    """Parse ``HH:MM`` or ``HH:MM:SS`` (or pass a time through)."""
    if isinstance(value, time):
        return value
    text = str(value).strip()
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(text, fmt).time()
        except ValueError:
            continue
    return None


def parse_threat_level(value: Any) -> Optional[ThreatLevel]:
    """Accept a ThreatLevel, its value, or the "Not Sure" display label."""
    if isinstance(value, ThreatLevel):
        return value
    text = str(value).strip().replace(" ", "").lower()
    for level in ThreatLevel:
        if level.value.lower() == text:
            return level
    return None


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


def validate_name(value: Any, label: str = "Full name") -> Optional[str]:
    """Letters, spaces, hyphens and apostrophes; at least 2 letters."""
    text = str(value).strip()
    if len(text) < FieldLimits.NAME_MIN_LENGTH:
        return f"{label} must be at least {FieldLimits.NAME_MIN_LENGTH} characters"
    if len(text) > FieldLimits.NAME_MAX_LENGTH:
        return f"{label} must be at most {FieldLimits.NAME_MAX_LENGTH} characters"
    if not NAME_PATTERN.match(text):
        return f"{label} can only contain letters, spaces, hyphens and apostrophes"
    if sum(1 for ch in text if ch.isalpha()) < FieldLimits.NAME_MIN_LETTERS:
        return f"{label} must contain at least {FieldLimits.NAME_MIN_LETTERS} letters"
    return None


def validate_email(value: Any, label: str = "Email") -> Optional[str]:
    """RFC-light ``local@domain.tld``."""
    text = str(value).strip()
    if len(text) > FieldLimits.EMAIL_MAX_LENGTH or not EMAIL_PATTERN.match(text):
        return "Please enter a valid email address"
    return None


def validate_phone(value: Any, label: str = "Phone number") -> Optional[str]:
    """7-15 digits once spaces, hyphens and parentheses are removed; optional leading +."""
    compact = PHONE_SEPARATORS.sub("", str(value).strip())
    if not PHONE_PATTERN.match(compact):
        return f"{label} can only contain digits and an optional leading +"
    digits = len(compact.lstrip("+"))
    if not FieldLimits.PHONE_MIN_DIGITS <= digits <= FieldLimits.PHONE_MAX_DIGITS:
        return (
            f"{label} must contain {FieldLimits.PHONE_MIN_DIGITS} to "
            f"{FieldLimits.PHONE_MAX_DIGITS} digits"
        )
    return None


def validate_address(value: Any, label: str = "Address") -> Optional[str]:
    """Reject too-short, punctuation-only, gibberish and single-word addresses."""
    text = str(value).strip()
    if len(text) < FieldLimits.ADDRESS_MIN_LENGTH:
        return f"{label} must be at least {FieldLimits.ADDRESS_MIN_LENGTH} characters"
    if len(text) > FieldLimits.ADDRESS_MAX_LENGTH:
        return f"{label} must be at most {FieldLimits.ADDRESS_MAX_LENGTH} characters"
    if not any(ch.isalnum() for ch in text):
        return f"{label} cannot consist only of punctuation"
    if sum(1 for ch in text if ch.isalpha()) < FieldLimits.ADDRESS_MIN_LETTERS:
        return f"{label} must contain at least {FieldLimits.ADDRESS_MIN_LETTERS} letters"
    compact = re.sub(r"\s+", "", text.lower())
    if REPEATED_CHUNK.match(compact):
        return f"{label} does not look like a real address"
    if not (any(ch.isdigit() for ch in text) or "," in text or len(text.split()) >= 2):
        return f"{label} looks incomplete, please include a street, town or postcode"
    return None


def validate_number(
    value: Any,
    label: str,
    minimum: Number,
    maximum: Number,
    integer: bool = False,
) -> Optional[str]:
    """Must parse, must not be negative, must lie in ``[minimum, maximum]``."""
    number = parse_number(value)
    if number is None:
        return f"{label} must be a number"
    if integer and not number.is_integer():
        return f"{label} must be a whole number"
    if number < 0:
        return f"{label} cannot be negative"
    if number < minimum or number > maximum:
        return f"{label} must be between {minimum:g} and {maximum:g}"
    return None


def validate_pickup_date(value: Any, context: ValidationContext) -> Optional[str]:
    """ISO date, not in the past, not a blocked date."""
    parsed = parse_date(value)
    if parsed is None:
        return "Pickup date must be a valid date (YYYY-MM-DD)"
    if parsed < context.current_date():
        return "Pickup date cannot be in the past"
    if parsed in context.blocked_dates:
        return "We are fully booked on this date, please choose another"
    return None


def validate_pickup_time(value: Any) -> Optional[str]:
    if parse_time(value) is None:
        return "Pickup time must be a valid time (HH:MM)"
    return None


def validate_free_text(value: Any, label: str) -> Optional[str]:
    if len(str(value)) > FieldLimits.FREE_TEXT_MAX_LENGTH:
        return f"{label} must be at most {FieldLimits.FREE_TEXT_MAX_LENGTH} characters"
    return None


def validate_vehicle(value: Any, context: ValidationContext) -> Optional[str]:
    if context.vehicle_ids is not None and str(value) not in context.vehicle_ids:
        return "Selected vehicle is no longer available"
    return None


def validate_threat_level(value: Any) -> Optional[str]:
    if parse_threat_level(value) is None:
        return "Please select a threat level"
    return None


Rule = Callable[[Any, ValidationContext], Optional[str]]

_RULES: Dict[str, Rule] = {
    FieldNames.PICKUP_LOCATION: lambda v, c: validate_address(v, _label(FieldNames.PICKUP_LOCATION)),
    FieldNames.DROPOFF_LOCATION: lambda v, c: validate_address(
        v, _label(FieldNames.DROPOFF_LOCATION)
    ),
    FieldNames.PICKUP_DATE: validate_pickup_date,
    FieldNames.PICKUP_TIME: lambda v, c: validate_pickup_time(v),
    FieldNames.PASSENGERS: lambda v, c: validate_number(
        v, "Passengers", FieldLimits.PASSENGERS_MIN, FieldLimits.PASSENGERS_MAX, integer=True
    ),
    FieldNames.LUGGAGE: lambda v, c: validate_number(
        v, "Luggage", FieldLimits.LUGGAGE_MIN, FieldLimits.LUGGAGE_MAX, integer=True
    ),
    FieldNames.SPECIAL_REQUIREMENTS: lambda v, c: validate_free_text(v, "Special requirements"),
    FieldNames.ESTIMATED_MILES: lambda v, c: validate_number(
        v, "Estimated miles", FieldLimits.MILES_MIN, FieldLimits.MILES_MAX
    ),
    FieldNames.WAIT_TIME_HOURS: lambda v, c: validate_number(
        v, "Wait time", FieldLimits.WAIT_HOURS_MIN, FieldLimits.WAIT_HOURS_MAX
    ),
    FieldNames.VEHICLE_ID: validate_vehicle,
    FieldNames.CUSTOMER_NAME: lambda v, c: validate_name(v, "Full name"),
    FieldNames.CUSTOMER_EMAIL: lambda v, c: validate_email(v),
    FieldNames.CUSTOMER_PHONE: lambda v, c: validate_phone(v),
    # Close protection sub-form
    FieldNames.PROTECTION_NAME: lambda v, c: validate_name(v, "Full name"),
    FieldNames.PROTECTION_EMAIL: lambda v, c: validate_email(v),
    FieldNames.PROTECTION_PHONE: lambda v, c: validate_phone(v),
    FieldNames.THREAT_LEVEL: lambda v, c: validate_threat_level(v),
    FieldNames.REQUIREMENTS: lambda v, c: validate_free_text(v, "Requirements"),
}

PROTECTION_REQUIRED_FIELDS = (
    FieldNames.PROTECTION_NAME,
    FieldNames.PROTECTION_EMAIL,
    FieldNames.PROTECTION_PHONE,
    FieldNames.THREAT_LEVEL,
)


def validate_field(
    name: str,
    value: Any,
    context: Optional[ValidationContext] = None,
    required: Optional[bool] = None,
) -> Optional[str]:
    """
    Validate a single field.

    Args:
        name: Field name (see ``FieldNames``)
        value: Raw form value or the typed value held by the draft
        context: Reference data for date and vehicle rules
        required: Override whether an empty value is an error; defaults to
            the field's own requirement

    Returns:
        Error message, or None when the value is acceptable
    """
    context = context or ValidationContext()
    if required is None:
        required = name in REQUIRED_FIELDS or name in PROTECTION_REQUIRED_FIELDS
    if is_empty(value):
        return f"{_label(name)} is required" if required else None
    rule = _RULES.get(name)
    if rule is None:
        return None
    return rule(value, context)


def validate_step(
    step: int, draft: BookingDraft, context: Optional[ValidationContext] = None
) -> StepValidation:
    """
    Run every field rule of a wizard step against the draft.

    Args:
        step: Wizard step number (1-3)
        draft: Draft to check
        context: Reference data for date and vehicle rules

    Returns:
        StepValidation holding all errors for the step
    """
    fields = STEP_FIELDS.get(int(step))
    if fields is None:
        return StepValidation.from_errors({"step": f"Unknown step: {step}"})

    errors: Dict[str, str] = {}
    for name in fields:
        error = validate_field(name, getattr(draft, name), context)
        if error:
            errors[name] = error
    return StepValidation.from_errors(errors)


def validate_protection_form(form: Dict[str, Any]) -> StepValidation:
    """Validate the close protection sub-form as a whole."""
    errors: Dict[str, str] = {}
    for name in (*PROTECTION_REQUIRED_FIELDS, FieldNames.REQUIREMENTS):
        error = validate_field(name, form.get(name))
        if error:
            errors[name] = error
    return StepValidation.from_errors(errors)
