"""OSRM routing client."""

import asyncio
import math
from typing import Any, Dict, Optional

import aiohttp
from loguru import logger

from ...core.config.settings import get_settings
from ...core.exceptions import NoRouteFoundError, RoutingError
from ...models.routing import Coordinates, RouteResult

# OSRM response codes meaning "the query was fine but there is no way through"
NO_ROUTE_CODES = frozenset({"NoRoute", "NoSegment"})


class OsrmRoutingClient:
    """
    Routed distance between two points via an OSRM ``/route`` endpoint.

    Implements the ``RoutingService`` contract: returns a ``RouteResult`` or
    raises ``RoutingError`` (``NoRouteFoundError`` when OSRM finds no route).
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        profile: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initialize OSRM client.

        Args:
            base_url: OSRM server, defaults to ``routing_base_url`` setting
            profile: Routing profile, defaults to ``routing_profile`` setting
            timeout: Request timeout in seconds, defaults to ``routing_timeout_seconds``
            session: Shared aiohttp session; the client creates and owns one if omitted
        """
        settings = get_settings()
        self.base_url = (base_url or settings.routing_base_url).rstrip("/")
        self.profile = profile or settings.routing_profile
        self.timeout = timeout if timeout is not None else settings.routing_timeout_seconds

        self._http_session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "OsrmRoutingClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._http_session is None or self._http_session.closed:
            self._http_session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={"Accept": "application/json"},
            )
            self._owns_session = True
        return self._http_session

    async def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._owns_session and self._http_session is not None:
            await self._http_session.close()
        self._http_session = None

    def build_url(self, pickup: Coordinates, dropoff: Coordinates) -> str:
        """OSRM expects ``lon,lat`` pairs separated by ``;``."""
        return (
            f"{self.base_url}/route/v1/{self.profile}/"
            f"{pickup.longitude},{pickup.latitude};{dropoff.longitude},{dropoff.latitude}"
        )

    async def route(self, pickup: Coordinates, dropoff: Coordinates) -> RouteResult:
        """
        Query the routed distance between two points.

        Raises:
            NoRouteFoundError: OSRM found no route
            RoutingError: Network error, timeout, HTTP error or malformed response
        """
        url = self.build_url(pickup, dropoff)
        params = {"overview": "false", "alternatives": "false", "steps": "false"}
        session = self._get_session()

        try:
            async with session.get(
                url, params=params, timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as response:
                status = response.status
                data = await response.json(content_type=None)
        except asyncio.TimeoutError as e:
            raise RoutingError(f"Routing request timed out after {self.timeout}s") from e
        except aiohttp.ClientError as e:
            raise RoutingError(f"Routing request failed: {e}") from e
        except ValueError as e:
            raise RoutingError(f"Routing response is not valid JSON: {e}") from e

        return self.parse_response(data, status)

    @staticmethod
    def parse_response(data: Any, status: int = 200) -> RouteResult:
        """
        Turn an OSRM JSON body into a ``RouteResult``.

        Raises:
            NoRouteFoundError: ``NoRoute``/``NoSegment`` code or an empty route list
            RoutingError: Any other error code or a malformed body
        """
        if not isinstance(data, dict):
            raise RoutingError("Malformed routing response", status=status)

        code = data.get("code")
        if code in NO_ROUTE_CODES:
            raise NoRouteFoundError(data.get("message") or "No route found")
        if code != "Ok" or status >= 400:
            raise RoutingError(
                f"Routing service returned {code or 'no code'}: {data.get('message', '')}".strip(),
                status=status,
            )

        routes = data.get("routes") or []
        if not routes:
            raise NoRouteFoundError()

        first: Dict[str, Any] = routes[0] if isinstance(routes[0], dict) else {}
        distance = first.get("distance")
        duration = first.get("duration")
        if not _is_non_negative_number(distance):
            raise RoutingError("Routing response has no usable distance", status=status)

        logger.debug(f"OSRM route: {distance:.0f} m, {duration} s")
        return RouteResult(
            distance_meters=float(distance),
            duration_seconds=float(duration) if _is_non_negative_number(duration) else None,
        )


def _is_non_negative_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
        and value >= 0
    )
