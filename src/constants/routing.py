"""Distance estimation constants."""

from typing import Final


class Routing:
    """Routing service and great-circle fallback configuration."""

    EARTH_RADIUS_MILES: Final[float] = 3958.8
    METERS_PER_MILE: Final[float] = 1609.344
    MILES_DECIMAL_PLACES: Final[int] = 1

    DEFAULT_BASE_URL: Final[str] = "https://router.project-osrm.org"
    DEFAULT_PROFILE: Final[str] = "driving"
    TIMEOUT_SECONDS: Final[float] = 8.0

    # Circuit breaker around the routing service
    FAILURE_THRESHOLD: Final[int] = 3
    RECOVERY_SECONDS: Final[float] = 120.0
