"""Data models for free food event discovery."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class ScanStatus(str, Enum):
    """Outcome of the most recent scan attempt."""
    IDLE = 'IDLE'
    SCANNING = 'SCANNING'
    SUCCESS = 'SUCCESS'
    ERROR = 'ERROR'


class Severity(str, Enum):
    """Severity of an activity log entry."""
    INFO = 'info'
    SUCCESS = 'success'
    ERROR = 'error'


@dataclass(frozen=True)
class NormalizedEvent:
    """Event extracted by the normalizer, not yet known to the store."""
    title: str
    location: str
    description: str
    start_date: datetime
    end_date: datetime
    source_url: Optional[str]

    @property
    def dedup_key(self) -> tuple[str, datetime]:
        return (self.title, self.start_date)


@dataclass(frozen=True)
class CampusEvent:
    """Discovered event held by the store."""
    id: str
    title: str
    location: str
    description: str
    start_date: datetime
    end_date: datetime
    source_url: Optional[str]
    found_at: datetime

    @property
    def dedup_key(self) -> tuple[str, datetime]:
        return (self.title, self.start_date)


@dataclass(frozen=True)
class LogEntry:
    """Single activity log record."""
    id: str
    timestamp: str
    message: str
    severity: Severity


@dataclass(frozen=True)
class ScheduleState:
    """Snapshot of the auto-scan schedule."""
    auto_enabled: bool
    next_scan_at: Optional[datetime]


@dataclass
class ScanResult:
    """Result of one scan pipeline invocation."""
    status: ScanStatus
    normalized_count: int = 0
    added_count: int = 0
    error: Optional[str] = None
    added_events: list[CampusEvent] = field(default_factory=list)
