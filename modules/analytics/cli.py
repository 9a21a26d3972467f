#!/usr/bin/env python3
"""
CLI Interface for Fleet Level Analytics

This module provides a command-line interface to the analytics service,
backed by the SQL reading store. Every command prints the JSON response.

Usage:
    # Trend of one tank over the last 24 hours
    python -m modules.analytics trend tank TANK_ID --hours 24

    # Depletion prediction of one generator
    python -m modules.analytics predict generator GEN_ID

    # Bulk trends and predictions for every entity
    python -m modules.analytics bulk

    # Weekly aggregated KPIs for two tanks over 90 days
    python -m modules.analytics aggregate --granularity weekly --days 90 --tank t1 --tank t2

    # Fleet summary and consumption KPIs
    python -m modules.analytics summary --days 7
    python -m modules.analytics kpis --days 7
"""

import argparse
import json
import sys
from typing import Any, Dict, List, Optional

from modules.database.models import create_tables
from modules.database.queries import EntityNotFoundError
from utils.config import settings
from utils.logging_config import setup_logging

from .records import EntityType, Granularity
from .service import FleetAnalyticsService, build_service


def _add_selection_arguments(parser: argparse.ArgumentParser, default_days: int) -> None:
    parser.add_argument(
        "--days",
        type=int,
        default=default_days,
        help=f"Time range in days (default: {default_days})"
    )
    parser.add_argument(
        "--tank",
        action="append",
        default=[],
        dest="tank_ids",
        help="Tank id to include (repeatable, default: all tanks)"
    )
    parser.add_argument(
        "--generator",
        action="append",
        default=[],
        dest="generator_ids",
        help="Generator id to include (repeatable, default: all generators)"
    )


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command line arguments for the analytics CLI.

    Returns:
        argparse.Namespace: Parsed command line arguments
    """
    parser = argparse.ArgumentParser(
        description="Fleet Level Analytics - CLI Interface",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s trend tank main-fuel --hours 48
  %(prog)s predict generator gen-1
  %(prog)s aggregate --granularity monthly --days 180
        """
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose output"
    )
    parser.add_argument(
        "--indent",
        type=int,
        default=2,
        help="JSON indentation (default: 2)"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    entity_types = [t.value for t in EntityType]

    trend = subparsers.add_parser("trend", help="Trend of one tank or generator")
    trend.add_argument("entity_type", choices=entity_types)
    trend.add_argument("entity_id")
    trend.add_argument(
        "--hours",
        type=int,
        default=settings.trend_lookback_hours,
        help=f"Lookback window in hours (default: {settings.trend_lookback_hours})"
    )

    predict = subparsers.add_parser("predict", help="Depletion prediction of one tank or generator")
    predict.add_argument("entity_type", choices=entity_types)
    predict.add_argument("entity_id")

    bulk = subparsers.add_parser("bulk", help="Trends and predictions for many entities")
    bulk.add_argument(
        "--hours",
        type=int,
        default=settings.trend_lookback_hours,
        help=f"Trend lookback window in hours (default: {settings.trend_lookback_hours})"
    )
    bulk.add_argument("--tank", action="append", default=[], dest="tank_ids")
    bulk.add_argument("--generator", action="append", default=[], dest="generator_ids")

    aggregate = subparsers.add_parser("aggregate", help="Aggregated KPIs per calendar period")
    aggregate.add_argument(
        "--granularity",
        choices=[g.value for g in Granularity],
        default=Granularity.DAILY.value,
        help="Aggregation period (default: daily)"
    )
    _add_selection_arguments(aggregate, default_days=30)

    summary = subparsers.add_parser("summary", help="Fleet KPI summary")
    _add_selection_arguments(summary, default_days=7)

    kpis = subparsers.add_parser("kpis", help="Consumption KPIs with per-entity trends")
    _add_selection_arguments(kpis, default_days=7)

    return parser.parse_args(argv)


def run_command(service: FleetAnalyticsService, args: argparse.Namespace) -> Dict[str, Any]:
    """
    Dispatch a parsed command to the analytics service.

    Args:
        service: Analytics service
        args: Parsed command line arguments

    Returns:
        Response dictionary
    """
    if args.command == "trend":
        return service.get_entity_trend(args.entity_type, args.entity_id, args.hours)
    if args.command == "predict":
        return service.get_entity_prediction(args.entity_type, args.entity_id)
    if args.command == "bulk":
        return service.get_bulk_analytics(args.tank_ids, args.generator_ids, args.hours)
    if args.command == "aggregate":
        return service.get_aggregated_kpis(args.granularity, args.days, args.tank_ids, args.generator_ids)
    if args.command == "summary":
        return service.get_fleet_summary(args.days, args.tank_ids, args.generator_ids)
    if args.command == "kpis":
        return service.get_consumption_kpis(args.days, args.tank_ids, args.generator_ids)
    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    args = parse_arguments(argv)

    setup_logging(log_level="DEBUG" if args.verbose else "WARNING")
    create_tables()

    try:
        response = run_command(build_service(), args)
    except EntityNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(json.dumps(response, indent=args.indent, ensure_ascii=False, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
