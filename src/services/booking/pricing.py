"""Price breakdown for a booking draft.

``compute_breakdown`` is a pure function: no I/O, no mutation, safe to call
on every keystroke. Every term is derived from the draft and reference data
passed in, so there is nothing to invalidate.
"""

from typing import Iterable, Mapping, Optional

from ...constants import Pricing
from ...models.booking import BookingDraft, PriceBreakdown
from ...models.reference import FixedRoute, PricingExtra, Vehicle


def _money(amount: float) -> float:
    return round(amount, Pricing.DECIMAL_PLACES)


def extras_total(selected: Iterable[str], extras_catalog: Mapping[str, PricingExtra]) -> float:
    """Sum the prices of selected extras; ids missing from the catalog count as zero."""
    return sum(extras_catalog[extra_id].price for extra_id in selected if extra_id in extras_catalog)


def match_fixed_route(
    draft: BookingDraft, fixed_routes: Iterable[FixedRoute]
) -> Optional[FixedRoute]:
    """Return the first fixed route covering the draft's journey, if any."""
    for route in fixed_routes:
        if route.matches(draft.pickup_location, draft.dropoff_location, draft.vehicle_id):
            return route
    return None


def compute_breakdown(
    draft: BookingDraft,
    vehicle: Optional[Vehicle],
    extras_catalog: Mapping[str, PricingExtra],
    fixed_routes: Iterable[FixedRoute] = (),
    wait_rate: float = Pricing.WAIT_RATE_PER_HOUR,
) -> PriceBreakdown:
    """
    Compute the itemized price of a draft.

    Args:
        draft: Current booking draft
        vehicle: Selected vehicle, or None before step 2
        extras_catalog: Active extras keyed by id
        fixed_routes: Fixed-price routes that replace mileage pricing
        wait_rate: Price per hour of wait time

    Returns:
        PriceBreakdown; all zeros when no vehicle is selected
    """
    if vehicle is None:
        return PriceBreakdown.zero()

    extras = _money(extras_total(draft.selected_extras, extras_catalog))

    route = match_fixed_route(draft, fixed_routes)
    if route is not None:
        base = _money(route.fixed_price)
        return PriceBreakdown(
            extras=extras,
            base=base,
            total=_money(base + extras),
            is_fixed_route=True,
            route_name=route.route_name,
        )

    mileage = _money(vehicle.price_per_mile * draft.estimated_miles)
    wait_time = _money(draft.wait_time_hours * wait_rate)
    overnight = _money(vehicle.overnight_surcharge if draft.has_overnight_stop else 0.0)

    return PriceBreakdown(
        mileage=mileage,
        wait_time=wait_time,
        overnight=overnight,
        extras=extras,
        total=_money(mileage + wait_time + overnight + extras),
    )
