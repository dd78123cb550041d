"""Command line entry point for the HeelLife Free Food Tracker."""
import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

from exporter.calendar_export import format_display_date, generate_batch_ics
from processor.event_normalizer import EventNormalizer
from processor.llm_adapters import GeminiAdapter
from processor.models import ScanResult, ScanStatus
from scheduler.scan_scheduler import SUNDAY, ScanScheduler
from scraper.heellife_discovery import HeelLifeDiscoveryFetcher
from storage.activity_log import ActivityLog
from storage.event_store import EventStore

logger = logging.getLogger(__name__)

# Attributes every LogRecord carries; anything else arrived through extra=
RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord('', logging.INFO, '', 0, '', None, None))
) | {'message', 'asctime'}


class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        for field_name, value in vars(record).items():
            if field_name not in RESERVED_ATTRS and not field_name.startswith('_'):
                log_data[field_name] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


@dataclass
class TrackerConfig:
    """Settings read from the environment."""
    api_key: Optional[str]
    log_level: str = 'INFO'
    timeout_seconds: int = 30
    normalizer_model: str = 'gemini-2.5-pro'
    reset_weekday: int = SUNDAY
    display_timezone: str = 'America/New_York'


def _int_env(environ: Dict[str, str], name: str, default: int) -> int:
    value = environ.get(name)
    if value is None or value == '':
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Invalid integer for {name}: {value!r}, using {default}")
        return default


def load_config(environ: Optional[Dict[str, str]] = None) -> TrackerConfig:
    """
    Read configuration from environment variables.

    Args:
        environ: Mapping to read from (default: os.environ)

    Returns:
        TrackerConfig
    """
    environ = os.environ if environ is None else environ
    reset_weekday = _int_env(environ, 'RESET_WEEKDAY', SUNDAY)
    if not 0 <= reset_weekday <= 6:
        logger.warning(f"RESET_WEEKDAY out of range: {reset_weekday}, using Sunday")
        reset_weekday = SUNDAY

    return TrackerConfig(
        api_key=environ.get('GEMINI_API_KEY') or None,
        log_level=environ.get('LOG_LEVEL', 'INFO'),
        timeout_seconds=_int_env(environ, 'TIMEOUT_SECONDS', 30),
        normalizer_model=environ.get('NORMALIZER_MODEL', 'gemini-2.5-pro'),
        reset_weekday=reset_weekday,
        display_timezone=environ.get('DISPLAY_TIMEZONE', 'America/New_York')
    )


def build_scheduler(config: TrackerConfig) -> ScanScheduler:
    """Wire fetcher, normalizer, store and log into a scheduler."""
    fetcher = HeelLifeDiscoveryFetcher(timeout=config.timeout_seconds)
    adapter = GeminiAdapter(model=config.normalizer_model, timeout=config.timeout_seconds)
    normalizer = EventNormalizer(adapter, display_timezone=config.display_timezone)
    return ScanScheduler(
        fetcher=fetcher,
        normalizer=normalizer,
        store=EventStore(),
        activity_log=ActivityLog(),
        api_key=config.api_key,
        reset_weekday=config.reset_weekday
    )


def format_report(scheduler: ScanScheduler, display_timezone: str) -> List[str]:
    """Human-readable lines describing the activity log and stored events."""
    tz = ZoneInfo(display_timezone)
    lines = [f"Status: {scheduler.status.value}"]
    if scheduler.next_scan_at:
        lines.append(f"Next scan: {scheduler.next_scan_at:%Y-%m-%d %H:%M}")

    lines.append("")
    lines.append("Activity log:")
    for entry in reversed(scheduler.activity_log.entries):
        lines.append(f"  [{entry.timestamp}] {entry.severity.value.upper():7} {entry.message}")

    lines.append("")
    lines.append(f"Events ({len(scheduler.store)} found):")
    for event in scheduler.store:
        lines.append(f"  - {event.title}")
        lines.append(f"    {format_display_date(event.start_date.astimezone(tz))} @ {event.location}")
        if event.source_url:
            lines.append(f"    {event.source_url}")
    return lines


def events_as_json(scheduler: ScanScheduler) -> List[Dict[str, Any]]:
    return [
        {
            'id': event.id,
            'title': event.title,
            'location': event.location,
            'description': event.description,
            'startDate': event.start_date.isoformat(),
            'endDate': event.end_date.isoformat(),
            'sourceUrl': event.source_url,
            'foundAt': event.found_at.isoformat()
        }
        for event in scheduler.store
    ]


async def run_scan(scheduler: ScanScheduler) -> ScanResult:
    result = await scheduler.trigger_manual()
    await scheduler.close()
    return result


async def run_watch(scheduler: ScanScheduler, scan_now: bool = False) -> None:
    """Enable auto mode and keep ticking until cancelled."""
    scheduler.set_auto_enabled(True)
    logger.info(
        "Watching for free food events",
        extra={'next_scan_at': scheduler.next_scan_at.isoformat() if scheduler.next_scan_at else None}
    )
    try:
        if scan_now:
            await scheduler.trigger_manual()
        while True:
            await asyncio.sleep(3600)
    finally:
        scheduler.set_auto_enabled(False)
        await scheduler.close()


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog='heellife-tracker',
        description='Discover free food events on HeelLife and export them to calendars'
    )
    subparsers = parser.add_subparsers(dest='command', required=True)

    scan_parser = subparsers.add_parser('scan', help='Run a single scan and print the results')
    scan_parser.add_argument('--ics', metavar='PATH', help='Write found events to an .ics file')
    scan_parser.add_argument('--json', action='store_true', help='Print events as JSON')

    watch_parser = subparsers.add_parser('watch', help='Scan weekly until interrupted')
    watch_parser.add_argument('--scan-now', action='store_true', help='Run a scan immediately as well')

    args = parser.parse_args(argv)

    config = load_config()
    setup_logging(config.log_level)
    scheduler = build_scheduler(config)

    if args.command == 'watch':
        try:
            asyncio.run(run_watch(scheduler, scan_now=args.scan_now))
        except KeyboardInterrupt:
            logger.info("Watch interrupted")
        return 0

    result = asyncio.run(run_scan(scheduler))

    if args.json:
        print(json.dumps(events_as_json(scheduler), indent=2))
    else:
        print('\n'.join(format_report(scheduler, config.display_timezone)))

    if args.ics and len(scheduler.store):
        with open(args.ics, 'w', encoding='utf-8', newline='') as ics_file:
            ics_file.write(generate_batch_ics(scheduler.store.events))
        logger.info(f"Wrote {len(scheduler.store)} events to {args.ics}")

    return 1 if result.status == ScanStatus.ERROR else 0


if __name__ == '__main__':
    sys.exit(main())
