"""Bounded activity log of scan lifecycle events."""
import logging
import uuid
from datetime import datetime
from typing import Callable, List

from processor.models import LogEntry, Severity

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.SUCCESS: logging.INFO,
    Severity.ERROR: logging.ERROR,
}


def format_local_time(moment: datetime) -> str:
    """Human-readable wall-clock time, e.g. '6:05:09 PM'."""
    return moment.strftime('%I:%M:%S %p').lstrip('0')


class ActivityLog:
    """Newest-first log holding at most CAPACITY entries."""

    CAPACITY = 50

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self._clock = clock
        self._entries: List[LogEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> List[LogEntry]:
        return list(self._entries)

    def append(self, message: str, severity: Severity = Severity.INFO) -> LogEntry:
        """
        Record a message, evicting the oldest entry when over capacity.

        Args:
            message: Human-readable message
            severity: info, success or error

        Returns:
            The new LogEntry
        """
        severity = Severity(severity)
        entry = LogEntry(
            id=str(uuid.uuid4()),
            timestamp=format_local_time(self._clock()),
            message=message,
            severity=severity
        )
        self._entries = [entry] + self._entries[:self.CAPACITY - 1]
        logger.log(_LOG_LEVELS[severity], message, extra={'severity': severity.value})
        return entry
