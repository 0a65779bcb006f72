"""Read-only reference data supplied by the data store."""

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, FrozenSet, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class Vehicle(BaseModel):
    """Bookable vehicle. Accepts store rows (``base_price_per_mile``) or field names."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    category: str = ""
    capacity: int = Field(default=4, ge=1)
    luggage_capacity: int = Field(default=0, ge=0)
    price_per_mile: float = Field(
        ge=0, validation_alias=AliasChoices("price_per_mile", "base_price_per_mile")
    )
    overnight_surcharge: float = Field(default=0.0, ge=0)
    is_active: bool = Field(default=True, validation_alias=AliasChoices("is_active", "active"))

    def fits(self, passengers: Optional[int], luggage: Optional[int]) -> bool:
        """Check whether this vehicle can carry the given party."""
        if passengers is not None and passengers > self.capacity:
            return False
        if luggage is not None and luggage > self.luggage_capacity:
            return False
        return True


class PricingExtra(BaseModel):
    """Optional paid extra (child seat, meet and greet, ...)."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = Field(validation_alias=AliasChoices("name", "extra_name"))
    price: float = Field(ge=0)
    description: Optional[str] = None
    is_active: bool = True


class FixedRoute(BaseModel):
    """Pre-priced journey that replaces mileage pricing when it matches."""

    model_config = ConfigDict(frozen=True)

    id: str
    route_name: str
    pickup_location: str
    dropoff_location: str
    fixed_price: float = Field(ge=0)
    vehicle_id: Optional[str] = None
    is_active: bool = True

    def matches(self, pickup: str, dropoff: str, vehicle_id: Optional[str]) -> bool:
        """
        Check whether a journey is covered by this route.

        The route's location texts must contain the entered pickup and dropoff
        (case-insensitive), and a vehicle-specific route only applies to that vehicle.
        """
        pickup = pickup.strip().lower()
        dropoff = dropoff.strip().lower()
        if not pickup or not dropoff or not self.is_active:
            return False
        if self.vehicle_id and self.vehicle_id != vehicle_id:
            return False
        return pickup in self.pickup_location.lower() and dropoff in self.dropoff_location.lower()


@dataclass
class ReferenceData:
    """Everything the wizard loads once at mount."""

    vehicles: List[Vehicle] = field(default_factory=list)
    extras: List[PricingExtra] = field(default_factory=list)
    blocked_dates: FrozenSet[date] = frozenset()
    fixed_routes: List[FixedRoute] = field(default_factory=list)

    def vehicle(self, vehicle_id: Optional[str]) -> Optional[Vehicle]:
        """Look up an active vehicle by id."""
        if not vehicle_id:
            return None
        for vehicle in self.vehicles:
            if vehicle.id == vehicle_id and vehicle.is_active:
                return vehicle
        return None

    @property
    def extras_by_id(self) -> Dict[str, PricingExtra]:
        """Active extras keyed by id."""
        return {extra.id: extra for extra in self.extras if extra.is_active}

    @property
    def vehicle_ids(self) -> FrozenSet[str]:
        """Ids of active vehicles."""
        return frozenset(v.id for v in self.vehicles if v.is_active)
