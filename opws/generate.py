"""
Synthetic sensor data seeding for OPWS.

Usage:
    python -m opws.generate --days 30 --station 1 --clean
    python -m opws.generate --days 7 --all-stations --clean
    python -m opws.generate --days 60 --interval 5 --all-stations --seed 42
"""

import argparse
import asyncio
import sys
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from opws.config import settings
from opws.database.engine import close_db, get_db_session
from opws.exceptions import TelemetryError
from opws.logger import get_logger
from opws.services.generator import GenerationReport, TelemetryGenerator
from opws.utils import format_timestamp, parse_timestamp

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate realistic synthetic sensor history (tropical climate)",
        epilog=(
            "Generated data: air temperature 20-32 °C, relative humidity 60-95 %, "
            "soil moisture 40-80 %, luminosity 0-100,000 lx, afternoon rain events"
        ),
    )
    target = parser.add_mutually_exclusive_group()
    target.add_argument("--station", type=int, default=1, help="Station ID (default: 1)")
    target.add_argument("--all-stations", action="store_true", help="Generate for every active station")
    parser.add_argument("--days", type=int, default=30, help="Number of days to generate (default: 30)")
    parser.add_argument("--end", type=str, default=None, help="End of the range, ISO-8601 (default: now)")
    parser.add_argument(
        "--interval",
        type=int,
        default=settings.GENERATOR_STEP_MINUTES,
        help=f"Step in minutes (default: {settings.GENERATOR_STEP_MINUTES})",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=settings.GENERATOR_BATCH_SIZE,
        help=f"Rows per committed batch (default: {settings.GENERATOR_BATCH_SIZE})",
    )
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible runs")
    parser.add_argument("--clean", action="store_true", help="Delete existing measurements of the station(s) first")
    return parser


def resolve_window(days: int, interval: int, end: Optional[str] = None):
    """[end - days, end) with end aligned down to the step."""
    if days <= 0:
        raise ValueError("--days must be a positive number")
    if interval <= 0:
        raise ValueError("--interval must be a positive number")
    end_at = parse_timestamp(end) if end else datetime.now(timezone.utc)
    end_at = end_at.replace(second=0, microsecond=0)
    end_at -= timedelta(minutes=end_at.minute % interval)
    return end_at - timedelta(days=days), end_at


async def run(args: argparse.Namespace) -> List[GenerationReport]:
    start, end = resolve_window(args.days, args.interval, args.end)
    logger.info(f"Generating {format_timestamp(start)} -> {format_timestamp(end)} every {args.interval} min")

    async with get_db_session() as session:
        generator = TelemetryGenerator(
            session,
            batch_size=args.batch_size,
            step_minutes=args.interval,
            seed=args.seed,
        )
        if args.all_stations:
            return await generator.run_all_active(start, end, clean=args.clean)
        return [await generator.run(args.station, start, end, clean=args.clean)]


def print_summary(reports: List[GenerationReport]) -> None:
    print("\n" + "=" * 60)
    print("Generated data summary")
    print("=" * 60)
    for report in reports:
        print(f"Station {report.station_id}:")
        print(f"  Period:       {format_timestamp(report.start)} -> {format_timestamp(report.end)}")
        print(f"  Timesteps:    {report.timesteps:,}")
        print(f"  Rows staged:  {report.rows_staged:,}")
        print(f"  Rows written: {report.rows_inserted:,} ({report.batches} batches)")
        print(f"  Rain events:  {len(report.rain_events)}")


async def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        reports = await run(args)
    except (TelemetryError, ValueError) as e:
        logger.error(f"Generation failed: {e}")
        return 1
    finally:
        await close_db()
    print_summary(reports)
    return 0


def cli() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
