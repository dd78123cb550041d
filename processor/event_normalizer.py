"""Normalizer client turning raw Discovery API data into typed events."""
import json
import logging
from datetime import datetime, timezone
from typing import Any, List, Optional
from zoneinfo import ZoneInfo

import requests
from bs4 import BeautifulSoup

from processor.errors import NormalizationFailed
from processor.llm_adapters import BaseAdapter
from processor.models import NormalizedEvent

logger = logging.getLogger(__name__)


RESPONSE_SCHEMA = {
    'type': 'ARRAY',
    'items': {
        'type': 'OBJECT',
        'properties': {
            'title': {'type': 'STRING'},
            'location': {'type': 'STRING'},
            'description': {'type': 'STRING'},
            'startDate': {'type': 'STRING'},
            'endDate': {'type': 'STRING'},
            'sourceUrl': {'type': 'STRING'}
        },
        'required': ['title', 'startDate', 'endDate']
    }
}

PROMPT_TEMPLATE = """
Context: Today is {today} ({timezone_label}).
Target Time Frame: The coming week (from now until {window_end}).

Task: Analyze the provided JSON data from the HeelLife Event API and extract events that offer "Free Food".

Instructions:
1. The INPUT is a JSON response containing a list of events.
2. Parse the JSON and extract the following for each relevant event:
   - Title
   - Location (Venue name or address)
   - Description (Summarize if too long)
   - Start Time (ISO string)
   - End Time (ISO string)
   - Source URL (Combine "{event_base_url}" + the event ID)
3. FILTERING RULES:
   - STRICTLY include only events between {today} and {window_end}.
   - The event MUST match the "Free Food" intent (e.g., mentions food, pizza, snacks, lunch, dinner, or has "Free Food" perk).
4. Return a clean JSON array of event objects.

INPUT JSON DATA:
{raw_data}
"""


def format_prompt_date(moment: datetime, tz: ZoneInfo) -> str:
    """Format a moment like 'Sunday, October 18, 2026' in the given zone."""
    local = moment.astimezone(tz)
    return f"{local:%A, %B} {local.day}, {local.year}"


def parse_iso_datetime(value: Any) -> Optional[datetime]:
    """
    Parse an ISO 8601 timestamp into an aware datetime.

    Args:
        value: Candidate timestamp, usually a string

    Returns:
        Aware datetime (UTC assumed when no offset is given) or None
    """
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _text(record: dict, key: str) -> str:
    value = record.get(key)
    return value.strip() if isinstance(value, str) else ''


def strip_markup(text: str) -> str:
    """Reduce an HTML fragment to its visible text."""
    if '<' not in text:
        return text.strip()
    return BeautifulSoup(text, 'html.parser').get_text(' ', strip=True)


class EventNormalizer:
    """Client for the extraction service that normalizes raw event data."""

    MAX_INPUT_CHARS = 900_000
    MAX_TITLE_LENGTH = 200
    MAX_DESCRIPTION_LENGTH = 2000
    EVENT_BASE_URL = "https://heellife.unc.edu/event/"

    DEFAULT_TITLE = "Untitled Event"
    DEFAULT_LOCATION = "TBD"
    DEFAULT_DESCRIPTION = "Free food event found via HeelLife API."
    DEFAULT_SOURCE_URL = "https://heellife.unc.edu/events"

    def __init__(self, adapter: BaseAdapter, display_timezone: str = 'America/New_York'):
        """
        Initialize the normalizer.

        Args:
            adapter: Extraction service adapter
            display_timezone: IANA zone used to phrase dates in the prompt
        """
        self.adapter = adapter
        self.display_timezone = ZoneInfo(display_timezone)

    def build_prompt(self, raw_text: str, now: datetime, window_end: datetime) -> str:
        """Build the extraction instruction, truncating oversized input."""
        if len(raw_text) > self.MAX_INPUT_CHARS:
            logger.warning(
                f"Raw input of {len(raw_text)} characters truncated to "
                f"{self.MAX_INPUT_CHARS}"
            )
        return PROMPT_TEMPLATE.format(
            today=format_prompt_date(now, self.display_timezone),
            window_end=format_prompt_date(window_end, self.display_timezone),
            timezone_label=self.display_timezone.key,
            event_base_url=self.EVENT_BASE_URL,
            raw_data=raw_text[:self.MAX_INPUT_CHARS]
        )

    def normalize(
        self,
        raw_text: str,
        now: datetime,
        window_end: datetime,
        api_key: str
    ) -> List[NormalizedEvent]:
        """
        Extract free food events within the window from raw source data.

        Args:
            raw_text: Raw Discovery API response body
            now: Start of the window
            window_end: End of the window
            api_key: Bearer credential for the extraction service

        Returns:
            List of NormalizedEvent objects, empty when nothing matched

        Raises:
            NormalizationFailed: If the service errors or returns unparsable output
        """
        prompt = self.build_prompt(raw_text, now, window_end)

        try:
            response_text = self.adapter.generate(prompt, RESPONSE_SCHEMA, api_key)
        except (requests.RequestException, ValueError, AttributeError, TypeError) as e:
            raise NormalizationFailed(f"Extraction service error: {e}") from e

        if not response_text or not response_text.strip():
            logger.info("Extraction service returned no content")
            return []

        try:
            records = json.loads(response_text)
        except json.JSONDecodeError as e:
            raise NormalizationFailed(
                f"Extraction service returned malformed JSON: {e}"
            ) from e

        if not isinstance(records, list):
            raise NormalizationFailed(
                f"Expected a JSON array, got {type(records).__name__}"
            )

        events = []
        for record in records:
            event = self._normalize_record(record)
            if event:
                events.append(event)

        logger.info(
            f"Normalized {len(events)} events out of {len(records)} records"
        )
        return events

    def _normalize_record(self, record: Any) -> Optional[NormalizedEvent]:
        """
        Map one extracted record to a NormalizedEvent, filling defaults.

        Returns:
            NormalizedEvent or None if the record has no usable start/end
        """
        if not isinstance(record, dict):
            logger.warning(f"Skipping non-object record: {record!r}")
            return None

        title = _text(record, 'title') or self.DEFAULT_TITLE

        start_date = parse_iso_datetime(record.get('startDate'))
        end_date = parse_iso_datetime(record.get('endDate'))
        if start_date is None or end_date is None:
            logger.warning(
                f"Skipping event '{title}' with missing or invalid dates: "
                f"{record.get('startDate')!r} - {record.get('endDate')!r}"
            )
            return None

        description = strip_markup(_text(record, 'description'))

        return NormalizedEvent(
            title=title[:self.MAX_TITLE_LENGTH],
            location=_text(record, 'location') or self.DEFAULT_LOCATION,
            description=(description or self.DEFAULT_DESCRIPTION)[:self.MAX_DESCRIPTION_LENGTH],
            start_date=start_date,
            end_date=end_date,
            source_url=_text(record, 'sourceUrl') or self.DEFAULT_SOURCE_URL
        )
