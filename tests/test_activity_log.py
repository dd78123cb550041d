"""Unit tests for ActivityLog."""
import logging
from datetime import datetime

from processor.models import Severity
from storage.activity_log import ActivityLog, format_local_time


class TestActivityLog:
    """Test cases for ActivityLog class."""

    def test_append_stamps_entry(self):
        log = ActivityLog(clock=lambda: datetime(2025, 5, 1, 18, 5, 9))

        entry = log.append('Connecting to HeelLife Discovery API...')

        assert entry.timestamp == '6:05:09 PM'
        assert entry.severity == Severity.INFO
        assert entry.message == 'Connecting to HeelLife Discovery API...'
        assert log.entries == [entry]

    def test_newest_first(self):
        log = ActivityLog()

        log.append('first')
        log.append('second', Severity.SUCCESS)
        log.append('third', Severity.ERROR)

        assert [entry.message for entry in log.entries] == ['third', 'second', 'first']

    def test_capacity_evicts_oldest(self):
        log = ActivityLog()

        for i in range(ActivityLog.CAPACITY + 25):
            log.append(f'message {i}')
            assert len(log) <= 50

        messages = [entry.message for entry in log.entries]
        assert len(messages) == 50
        assert messages[0] == 'message 74'
        assert messages[-1] == 'message 25'

    def test_severity_accepts_plain_strings(self):
        log = ActivityLog()

        entry = log.append('Scan failed: boom', 'error')

        assert entry.severity is Severity.ERROR

    def test_entries_are_mirrored_to_logging(self, caplog):
        log = ActivityLog()

        with caplog.at_level(logging.INFO, logger='storage.activity_log'):
            log.append('Success! Found 2 new events from API data.', Severity.SUCCESS)
            log.append('Scan failed: boom', Severity.ERROR)

        levels = [(record.levelno, record.getMessage()) for record in caplog.records]
        assert (logging.INFO, 'Success! Found 2 new events from API data.') in levels
        assert (logging.ERROR, 'Scan failed: boom') in levels

    def test_format_local_time_morning(self):
        assert format_local_time(datetime(2025, 5, 1, 9, 30, 0)) == '9:30:00 AM'
        assert format_local_time(datetime(2025, 5, 1, 0, 0, 0)) == '12:00:00 AM'
