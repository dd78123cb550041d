"""Scheduler deciding when discovery scans run, manually or weekly."""
import asyncio
import contextlib
import logging
import math
import time
from datetime import datetime, timedelta
from typing import Callable, Optional

from processor.errors import MissingCredential
from processor.models import ScanResult, ScanStatus, ScheduleState, Severity
from storage.activity_log import ActivityLog
from storage.event_store import EventStore

logger = logging.getLogger(__name__)

SUNDAY = 6
SCAN_WINDOW = timedelta(days=7)


def days_until_weekday(now: datetime, weekday: int = SUNDAY) -> int:
    """
    Whole days from now until the next occurrence of weekday.

    On the weekday itself the answer is 7, never 0, so a scan scheduled
    on reset day does not fire immediately.

    Args:
        now: Current local wall-clock moment
        weekday: Target weekday, 0=Monday .. 6=Sunday

    Returns:
        Offset in days, in the range [1, 7]
    """
    if not 0 <= weekday <= 6:
        raise ValueError(f"weekday must be between 0 and 6, got {weekday}")
    return (weekday - now.weekday()) % 7 or 7


def next_weekly_boundary(now: datetime, weekday: int = SUNDAY) -> datetime:
    """Moment of the next weekly scan, whole days after now."""
    return now + timedelta(days=days_until_weekday(now, weekday))


class ScanScheduler:
    """
    Owns scan status, the auto-scan flag and the next scan time.

    Only one scan runs at a time: the SCANNING status is set before the
    pipeline first suspends, and both triggers refuse to start while it
    is set. A one-second ticker, alive only while auto mode is enabled,
    counts down to next_scan_at and launches the automatic scan.
    """

    TICK_SECONDS = 1.0

    def __init__(
        self,
        fetcher,
        normalizer,
        store: EventStore,
        activity_log: ActivityLog,
        api_key: Optional[str] = None,
        reset_weekday: int = SUNDAY,
        clock: Callable[[], datetime] = datetime.now,
        tick_seconds: float = TICK_SECONDS
    ):
        """
        Initialize the scheduler.

        Args:
            fetcher: Object with fetch(now) -> raw text
            normalizer: Object with normalize(raw, now, window_end, api_key)
            store: Deduplicating event store to merge results into
            activity_log: Log receiving scan lifecycle messages
            api_key: Bearer credential for the extraction service
            reset_weekday: Weekday automatic scans run on (0=Monday)
            clock: Source of the current local time
            tick_seconds: Interval of the countdown ticker
        """
        if not 0 <= reset_weekday <= 6:
            raise ValueError(f"reset_weekday must be between 0 and 6, got {reset_weekday}")
        self.fetcher = fetcher
        self.normalizer = normalizer
        self.store = store
        self.activity_log = activity_log
        self.api_key = api_key
        self.reset_weekday = reset_weekday
        self.tick_seconds = tick_seconds
        self._clock = clock

        self.status = ScanStatus.IDLE
        self.auto_enabled = False
        self.next_scan_at: Optional[datetime] = None
        self.seconds_until_next: Optional[int] = None

        self._ticker: Optional[asyncio.Task] = None
        self._scan_task: Optional[asyncio.Task] = None

    @property
    def is_scanning(self) -> bool:
        return self.status == ScanStatus.SCANNING

    @property
    def schedule_state(self) -> ScheduleState:
        return ScheduleState(
            auto_enabled=self.auto_enabled,
            next_scan_at=self.next_scan_at
        )

    async def trigger_manual(self) -> Optional[ScanResult]:
        """
        Run a scan now on user request.

        Returns:
            ScanResult, or None when a scan was already running
        """
        if self.is_scanning:
            logger.info("Manual scan ignored: a scan is already running")
            return None
        self._begin_scan('manual')
        return await self._run_pipeline()

    def set_auto_enabled(self, enabled: bool) -> None:
        """
        Turn weekly automatic scanning on or off.

        Disabling clears the pending scan time regardless of scan state.
        Enabling schedules the next weekly boundary right away unless a
        scan is running or a time is already set.
        """
        self.auto_enabled = enabled

        if not enabled:
            self.next_scan_at = None
            self.seconds_until_next = None
            self._stop_ticker()
            logger.info("Auto scan disabled")
            return

        if not self.is_scanning and self.next_scan_at is None:
            self.next_scan_at = next_weekly_boundary(self._clock(), self.reset_weekday)
        logger.info(
            "Auto scan enabled",
            extra={'next_scan_at': self.next_scan_at.isoformat() if self.next_scan_at else None}
        )
        self._start_ticker()

    async def tick(self) -> None:
        """Update the countdown and launch the automatic scan when due."""
        if not self.auto_enabled or self.next_scan_at is None:
            self.seconds_until_next = None
            return

        remaining = math.ceil((self.next_scan_at - self._clock()).total_seconds())
        self.seconds_until_next = max(0, remaining)

        if self.seconds_until_next == 0 and not self.is_scanning:
            self._begin_scan('automatic')
            self._scan_task = asyncio.create_task(self._run_pipeline())

    async def wait_for_scan(self) -> Optional[ScanResult]:
        """Wait for an automatically launched scan, if any, to finish."""
        if self._scan_task is None:
            return None
        return await self._scan_task

    async def start(self) -> None:
        """Start the ticker if auto mode was enabled outside a running loop."""
        if self.auto_enabled:
            self._start_ticker()

    async def stop(self) -> None:
        """Stop the ticker; an in-flight scan keeps running."""
        ticker, self._ticker = self._ticker, None
        if ticker is not None:
            ticker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await ticker

    async def close(self) -> None:
        """Stop the ticker and let any in-flight scan finish."""
        await self.stop()
        await self.wait_for_scan()

    def _start_ticker(self) -> None:
        if self._ticker is not None and not self._ticker.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; ticker will start with start()")
            return
        self._ticker = loop.create_task(self._tick_loop())

    def _stop_ticker(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    async def _tick_loop(self) -> None:
        while True:
            await asyncio.sleep(self.tick_seconds)
            await self.tick()

    def _begin_scan(self, trigger: str) -> None:
        self.next_scan_at = None
        self.seconds_until_next = None
        self.status = ScanStatus.SCANNING
        logger.info(f"Starting {trigger} scan")

    async def _run_pipeline(self) -> ScanResult:
        """Run fetch, normalize and merge; never raises."""
        start_time = time.monotonic()
        try:
            result = await self._scan()
        except MissingCredential as e:
            self.activity_log.append(str(e), Severity.ERROR)
            result = ScanResult(status=ScanStatus.ERROR, error=str(e))
        except Exception as e:
            logger.error(f"Scan failed: {e}", extra={'error_type': type(e).__name__}, exc_info=True)
            self.activity_log.append(f"Scan failed: {e}", Severity.ERROR)
            result = ScanResult(status=ScanStatus.ERROR, error=str(e))

        self.status = result.status
        logger.info(
            f"Scan finished with status {result.status.value}",
            extra={
                'events_added': result.added_count,
                'duration_seconds': round(time.monotonic() - start_time, 2)
            }
        )
        if self.auto_enabled:
            self.next_scan_at = next_weekly_boundary(self._clock(), self.reset_weekday)
            logger.info(f"Next automatic scan at {self.next_scan_at.isoformat()}")
        return result

    async def _scan(self) -> ScanResult:
        if not self.api_key:
            raise MissingCredential()

        self.activity_log.append('Connecting to HeelLife Discovery API...', Severity.INFO)
        now = self._clock()

        raw_text = await asyncio.to_thread(self.fetcher.fetch, now)
        events = await asyncio.to_thread(
            self.normalizer.normalize, raw_text, now, now + SCAN_WINDOW, self.api_key
        )
        added = self.store.merge(events)

        if not events:
            self.activity_log.append(
                'Analysis complete. No matching free food events found for the coming week.',
                Severity.INFO
            )
        elif added:
            self.activity_log.append(
                f'Success! Found {added} new events from API data.',
                Severity.SUCCESS
            )
        else:
            self.activity_log.append(
                'Analysis complete. No new unique events found in the API data.',
                Severity.INFO
            )

        return ScanResult(
            status=ScanStatus.SUCCESS,
            normalized_count=len(events),
            added_count=added,
            added_events=self.store.events[:added]
        )
