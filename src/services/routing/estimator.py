"""Mileage estimation with a straight-line fallback."""

import asyncio
import math
from typing import Dict, Optional, Tuple

from loguru import logger

from ...constants import Routing
from ...core.circuit_breaker import CircuitBreaker
from ...core.enums import DistanceSource
from ...core.exceptions import CircuitBreakerOpenError, NoRouteFoundError, RoutingError
from ...models.routing import Coordinates, DistanceEstimate, RouteResult
from ..interfaces import RoutingService


def haversine_miles(pickup: Coordinates, dropoff: Coordinates) -> float:
    """Great-circle distance in miles, unrounded."""
    lat1, lon1 = map(math.radians, pickup.as_tuple())
    lat2, lon2 = map(math.radians, dropoff.as_tuple())
    dlat = lat2 - lat1
    dlon = lon2 - lon1

    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return Routing.EARTH_RADIUS_MILES * c


def round_miles(miles: float) -> float:
    return round(miles, Routing.MILES_DECIMAL_PLACES)


class DistanceEstimator:
    """
    Produce a mileage estimate for a pickup/dropoff pair.

    Asks the routing service first. Any routing failure (timeout, error,
    no route, open circuit, nonsense distance) degrades to the great-circle
    distance instead of surfacing an error. Concurrent requests for the same
    pair share one routing call.
    """

    def __init__(
        self,
        routing_service: Optional[RoutingService] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        timeout_seconds: float = Routing.TIMEOUT_SECONDS,
    ):
        """
        Initialize estimator.

        Args:
            routing_service: Routed-distance collaborator; straight line only if None
            circuit_breaker: Breaker wrapping the routing call
            timeout_seconds: Upper bound on a single routing call
        """
        self._routing = routing_service
        self._breaker = circuit_breaker
        self.timeout_seconds = timeout_seconds
        self._in_flight: Dict[
            Tuple[Coordinates, Coordinates], "asyncio.Task[DistanceEstimate]"
        ] = {}

    @staticmethod
    def straight_line(pickup: Coordinates, dropoff: Coordinates) -> DistanceEstimate:
        return DistanceEstimate(
            miles=round_miles(haversine_miles(pickup, dropoff)),
            source=DistanceSource.STRAIGHT_LINE,
        )

    async def estimate(self, pickup: Coordinates, dropoff: Coordinates) -> DistanceEstimate:
        """
        Estimate miles between two points, rounded to one decimal place.

        Never raises for routing problems.
        """
        if self._routing is None:
            return self.straight_line(pickup, dropoff)

        key = (pickup, dropoff)
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._estimate(pickup, dropoff))
            self._in_flight[key] = task
            task.add_done_callback(lambda _: self._in_flight.pop(key, None))
        else:
            logger.debug("Distance request already in flight, sharing result")
        return await asyncio.shield(task)

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    async def _estimate(self, pickup: Coordinates, dropoff: Coordinates) -> DistanceEstimate:
        try:
            if self._breaker is not None:
                result = await self._breaker.call(self._timed_route, pickup, dropoff)
            else:
                result = await self._timed_route(pickup, dropoff)
            return self._from_route(result)
        except CircuitBreakerOpenError:
            logger.info("Routing circuit open, using straight-line distance")
        except NoRouteFoundError as e:
            logger.warning(f"No route found ({e}), using straight-line distance")
        except asyncio.TimeoutError:
            logger.warning(
                f"Routing timed out after {self.timeout_seconds}s, using straight-line distance"
            )
        except Exception as e:
            logger.warning(
                f"Routing failed ({type(e).__name__}: {e}), using straight-line distance"
            )
        return self.straight_line(pickup, dropoff)

    async def _timed_route(self, pickup: Coordinates, dropoff: Coordinates) -> RouteResult:
        assert self._routing is not None
        result = await asyncio.wait_for(
            self._routing.route(pickup, dropoff), timeout=self.timeout_seconds
        )
        distance = getattr(result, "distance_meters", None)
        if (
            not isinstance(distance, (int, float))
            or isinstance(distance, bool)
            or not math.isfinite(distance)
            or distance < 0
        ):
            raise RoutingError(f"Unusable routed distance: {distance!r}")
        return result

    @staticmethod
    def _from_route(result: RouteResult) -> DistanceEstimate:
        duration = None
        if result.duration_seconds is not None:
            duration = int(round(result.duration_seconds / 60))
        return DistanceEstimate(
            miles=round_miles(result.distance_meters / Routing.METERS_PER_MILE),
            source=DistanceSource.ROUTED,
            duration_minutes=duration,
        )
