"""Field names, bounds and step membership for booking validation."""

from typing import Dict, Final, Tuple


class FieldNames:
    """Canonical draft field names shared by validators and the wizard."""

    PICKUP_LOCATION: Final[str] = "pickup_location"
    DROPOFF_LOCATION: Final[str] = "dropoff_location"
    PICKUP_DATE: Final[str] = "pickup_date"
    PICKUP_TIME: Final[str] = "pickup_time"
    PASSENGERS: Final[str] = "passengers"
    LUGGAGE: Final[str] = "luggage"
    SPECIAL_REQUIREMENTS: Final[str] = "special_requirements"
    ESTIMATED_MILES: Final[str] = "estimated_miles"
    WAIT_TIME_HOURS: Final[str] = "wait_time_hours"
    VEHICLE_ID: Final[str] = "vehicle_id"
    CUSTOMER_NAME: Final[str] = "customer_name"
    CUSTOMER_EMAIL: Final[str] = "customer_email"
    CUSTOMER_PHONE: Final[str] = "customer_phone"
    PROTECTION: Final[str] = "protection"

    # Close protection sub-form
    PROTECTION_NAME: Final[str] = "name"
    PROTECTION_EMAIL: Final[str] = "email"
    PROTECTION_PHONE: Final[str] = "phone"
    THREAT_LEVEL: Final[str] = "threat_level"
    REQUIREMENTS: Final[str] = "requirements"


class FieldLimits:
    """Numeric and length bounds for user-entered fields."""

    NAME_MIN_LENGTH: Final[int] = 2
    NAME_MAX_LENGTH: Final[int] = 100
    NAME_MIN_LETTERS: Final[int] = 2

    ADDRESS_MIN_LENGTH: Final[int] = 5
    ADDRESS_MAX_LENGTH: Final[int] = 500
    ADDRESS_MIN_LETTERS: Final[int] = 3

    EMAIL_MAX_LENGTH: Final[int] = 254

    PHONE_MIN_DIGITS: Final[int] = 7
    PHONE_MAX_DIGITS: Final[int] = 15

    FREE_TEXT_MAX_LENGTH: Final[int] = 1000

    MILES_MIN: Final[float] = 0.0
    MILES_MAX: Final[float] = 2000.0
    WAIT_HOURS_MIN: Final[float] = 0.0
    WAIT_HOURS_MAX: Final[float] = 24.0
    PASSENGERS_MIN: Final[int] = 1
    PASSENGERS_MAX: Final[int] = 16
    LUGGAGE_MIN: Final[int] = 0
    LUGGAGE_MAX: Final[int] = 20


# Fields checked by each step gate
STEP_FIELDS: Final[Dict[int, Tuple[str, ...]]] = {
    1: (
        FieldNames.PICKUP_LOCATION,
        FieldNames.DROPOFF_LOCATION,
        FieldNames.PICKUP_DATE,
        FieldNames.PICKUP_TIME,
        FieldNames.PASSENGERS,
        FieldNames.LUGGAGE,
        FieldNames.ESTIMATED_MILES,
        FieldNames.WAIT_TIME_HOURS,
        FieldNames.SPECIAL_REQUIREMENTS,
    ),
    2: (FieldNames.VEHICLE_ID,),
    3: (
        FieldNames.CUSTOMER_NAME,
        FieldNames.CUSTOMER_EMAIL,
        FieldNames.CUSTOMER_PHONE,
    ),
}

# Fields that must be non-empty for their step gate to pass
REQUIRED_FIELDS: Final[Tuple[str, ...]] = (
    FieldNames.PICKUP_LOCATION,
    FieldNames.DROPOFF_LOCATION,
    FieldNames.PICKUP_DATE,
    FieldNames.PICKUP_TIME,
    FieldNames.PASSENGERS,
    FieldNames.LUGGAGE,
    FieldNames.VEHICLE_ID,
    FieldNames.CUSTOMER_NAME,
    FieldNames.CUSTOMER_EMAIL,
    FieldNames.CUSTOMER_PHONE,
)
