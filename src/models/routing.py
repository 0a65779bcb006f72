"""Coordinates, routing responses and distance estimates."""

import math
from dataclasses import dataclass
from typing import Optional, Tuple

from ..core.enums import DistanceSource


@dataclass(frozen=True)
class Coordinates:
    """A geocoded point in decimal degrees."""

    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.latitude) and -90.0 <= self.latitude <= 90.0):
            raise ValueError(f"Latitude out of range: {self.latitude}")
        if not (math.isfinite(self.longitude) and -180.0 <= self.longitude <= 180.0):
            raise ValueError(f"Longitude out of range: {self.longitude}")

    @classmethod
    def parse(cls, text: str) -> "Coordinates":
        """Parse ``"LAT,LON"``."""
        lat, _, lon = text.partition(",")
        return cls(float(lat.strip()), float(lon.strip()))

    def as_tuple(self) -> Tuple[float, float]:
        """Return ``(latitude, longitude)``."""
        return (self.latitude, self.longitude)


@dataclass(frozen=True)
class RouteResult:
    """Raw answer of the routing service."""

    distance_meters: float
    duration_seconds: Optional[float] = None


@dataclass(frozen=True)
class DistanceEstimate:
    """Mileage estimate and where it came from. Never persisted."""

    miles: float
    source: DistanceSource
    duration_minutes: Optional[int] = None

    @property
    def is_precise(self) -> bool:
        """True when the figure comes from a routed query."""
        return self.source == DistanceSource.ROUTED

    def to_dict(self) -> dict:
        return {
            "miles": self.miles,
            "source": self.source.value,
            "duration_minutes": self.duration_minutes,
        }
