"""Routed distance and the straight-line fallback."""

from .estimator import DistanceEstimator, haversine_miles, round_miles
from .osrm_client import OsrmRoutingClient

__all__ = ["DistanceEstimator", "OsrmRoutingClient", "haversine_miles", "round_miles"]
