#!/usr/bin/env python3
"""
Chauffeur booking core - command line quote tool.

Estimates the distance between two points and prints the price breakdown.
"""

import argparse
import asyncio
import json
import sys
from typing import List, Optional

from loguru import logger

from src.core.circuit_breaker import CircuitBreaker
from src.core.config import get_settings
from src.core.exceptions import BookingCoreError
from src.core.logger import setup_structured_logging
from src.models import BookingDraft, Coordinates, DistanceEstimate, PriceBreakdown, Vehicle
from src.services.booking.pricing import compute_breakdown
from src.services.routing import DistanceEstimator, OsrmRoutingClient


def parse_coordinates(value: str) -> Coordinates:
    """argparse type for ``LAT,LON``."""
    try:
        return Coordinates.parse(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid coordinates {value!r}: {e}") from e


async def run_quote(args: argparse.Namespace) -> dict:
    """Estimate the distance and compute the breakdown for one journey."""
    settings = get_settings()

    estimate: DistanceEstimate
    if args.no_routing:
        estimate = DistanceEstimator.straight_line(args.pickup, args.dropoff)
    else:
        breaker = CircuitBreaker(
            name="routing",
            failure_threshold=settings.routing_failure_threshold,
            recovery_seconds=settings.routing_recovery_seconds,
        )
        async with OsrmRoutingClient() as client:
            estimator = DistanceEstimator(
                client, breaker, timeout_seconds=settings.routing_timeout_seconds
            )
            estimate = await estimator.estimate(args.pickup, args.dropoff)

    vehicle = Vehicle(
        id="quote",
        name="Quote",
        price_per_mile=args.rate,
        overnight_surcharge=args.overnight or 0.0,
    )
    draft = BookingDraft(
        vehicle_id=vehicle.id,
        estimated_miles=estimate.miles,
        miles_source=estimate.source,
        wait_time_hours=args.wait,
        has_overnight_stop=args.overnight is not None,
    )
    breakdown: PriceBreakdown = compute_breakdown(
        draft, vehicle, {}, wait_rate=settings.wait_rate_per_hour
    )
    return {"distance": estimate.to_dict(), "breakdown": breakdown.to_dict()}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Chauffeur booking core")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (defaults to LOG_LEVEL setting)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    quote = subparsers.add_parser("quote", help="Estimate distance and price for a journey")
    quote.add_argument("--pickup", required=True, type=parse_coordinates, help="LAT,LON")
    quote.add_argument("--dropoff", required=True, type=parse_coordinates, help="LAT,LON")
    quote.add_argument("--rate", required=True, type=float, help="Vehicle price per mile")
    quote.add_argument("--wait", default=0.0, type=float, help="Wait time in hours (0-24)")
    quote.add_argument(
        "--overnight", default=None, type=float, help="Overnight surcharge; implies an overnight stop"
    )
    quote.add_argument(
        "--no-routing", action="store_true", help="Skip the routing service, use straight line"
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    setup_structured_logging(args.log_level or settings.log_level)

    if args.rate < 0:
        parser.error("--rate cannot be negative")
    if not 0 <= args.wait <= 24:
        parser.error("--wait must be between 0 and 24")
    if args.overnight is not None and args.overnight < 0:
        parser.error("--overnight cannot be negative")

    try:
        result = asyncio.run(run_quote(args))
    except BookingCoreError as e:
        logger.error(f"Quote failed: {e}")
        return 1

    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
