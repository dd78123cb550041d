"""Calendar exports for discovered events: iCalendar files and quick-add links."""
from datetime import datetime, timezone
from typing import Iterable, List, Optional
from urllib.parse import quote, urlencode

from processor.models import CampusEvent

PRODID = '-//HeelLife//FreeFoodTracker//EN'
UID_DOMAIN = 'heellife-tracker'
GOOGLE_CALENDAR_URL = 'https://calendar.google.com/calendar/render'
# Unreserved characters left unescaped in data URIs
URI_SAFE_CHARS = "-_.!~*'()"


def format_calendar_date(moment: datetime) -> str:
    """Format a moment as a UTC calendar timestamp (YYYYMMDDTHHMMSSZ)."""
    return moment.astimezone(timezone.utc).strftime('%Y%m%dT%H%M%SZ')


def escape_text(value: str) -> str:
    """Escape a value for an iCalendar TEXT property (RFC 5545 3.3.11)."""
    return (
        value.replace('\\', '\\\\')
        .replace(';', '\\;')
        .replace(',', '\\,')
        .replace('\r\n', '\\n')
        .replace('\n', '\\n')
        .replace('\r', '\\n')
    )


def _vevent_lines(event: CampusEvent, stamp: str) -> List[str]:
    return [
        'BEGIN:VEVENT',
        f'UID:{event.id}@{UID_DOMAIN}',
        f'DTSTAMP:{stamp}',
        f'DTSTART:{format_calendar_date(event.start_date)}',
        f'DTEND:{format_calendar_date(event.end_date)}',
        f'SUMMARY:{escape_text(event.title)}',
        f'DESCRIPTION:{escape_text(event.description)}',
        f'LOCATION:{escape_text(event.location)}',
        'END:VEVENT'
    ]


def generate_batch_ics(events: Iterable[CampusEvent], now: Optional[datetime] = None) -> str:
    """
    Build an iCalendar document holding one VEVENT per event.

    Args:
        events: Events to export
        now: DTSTAMP moment (default: current time)

    Returns:
        CRLF-joined iCalendar text
    """
    stamp = format_calendar_date(now or datetime.now(timezone.utc))
    lines = ['BEGIN:VCALENDAR', 'VERSION:2.0', f'PRODID:{PRODID}']
    for event in events:
        lines.extend(_vevent_lines(event, stamp))
    lines.append('END:VCALENDAR')
    return '\r\n'.join(lines)


def generate_ics(event: CampusEvent, now: Optional[datetime] = None) -> str:
    """iCalendar document for a single event."""
    return generate_batch_ics([event], now=now)


def ics_data_uri(content: str) -> str:
    """Wrap iCalendar text as a downloadable data URI."""
    return f"data:text/calendar;charset=utf8,{quote(content, safe=URI_SAFE_CHARS)}"


def google_calendar_link(event: CampusEvent) -> str:
    """Google Calendar quick-add link prefilled with the event."""
    details = f"{event.description}\n\nSource: {event.source_url or 'HeelLife Tracker'}"
    params = {
        'action': 'TEMPLATE',
        'text': event.title,
        'dates': f"{format_calendar_date(event.start_date)}/{format_calendar_date(event.end_date)}",
        'details': details,
        'location': event.location,
        'trp': 'true'
    }
    return f"{GOOGLE_CALENDAR_URL}?{urlencode(params)}"


def format_display_date(moment: datetime) -> str:
    """Short display form, e.g. 'Mon, Oct 25 • 2:00 PM'."""
    hour = moment.strftime('%I').lstrip('0')
    return f"{moment:%a, %b} {moment.day} • {hour}:{moment:%M %p}"
