"""In-memory deduplicating store for discovered events."""
import logging
import uuid
from datetime import datetime, timezone
from typing import Iterable, Iterator, List, Optional, Set

from processor.models import CampusEvent, NormalizedEvent

logger = logging.getLogger(__name__)


class EventStore:
    """
    Holds discovered events, most recently found first.

    Events are identified for deduplication by (title, start_date); the
    opaque id assigned on merge is only used for selection and export.
    """

    def __init__(self):
        self._events: List[CampusEvent] = []
        self._selected_ids: Set[str] = set()

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[CampusEvent]:
        return iter(list(self._events))

    @property
    def events(self) -> List[CampusEvent]:
        return list(self._events)

    def get(self, event_id: str) -> Optional[CampusEvent]:
        for event in self._events:
            if event.id == event_id:
                return event
        return None

    def merge(
        self,
        batch: Iterable[NormalizedEvent],
        found_at: Optional[datetime] = None
    ) -> int:
        """
        Merge a batch of normalized events, dropping already-known ones.

        New events are prepended ahead of existing ones, keeping their
        batch order.

        Args:
            batch: Candidate events from the normalizer
            found_at: Discovery timestamp (default: now, UTC)

        Returns:
            Count of events actually added
        """
        found_at = found_at or datetime.now(timezone.utc)
        known_keys = {event.dedup_key for event in self._events}
        added = []

        for candidate in batch:
            key = candidate.dedup_key
            if key in known_keys:
                logger.debug(f"Skipping duplicate event '{candidate.title}'")
                continue
            known_keys.add(key)
            added.append(CampusEvent(
                id=str(uuid.uuid4()),
                title=candidate.title,
                location=candidate.location,
                description=candidate.description,
                start_date=candidate.start_date,
                end_date=candidate.end_date,
                source_url=candidate.source_url,
                found_at=found_at
            ))

        if added:
            self._events = added + self._events

        logger.info(f"Merged {len(added)} new events; store holds {len(self._events)}")
        return len(added)

    def reset(self) -> None:
        """Remove every event."""
        self._events = []
        self._purge_selection()

    # Selection

    @property
    def selected_ids(self) -> Set[str]:
        return set(self._selected_ids)

    def toggle_selection(self, event_id: str) -> bool:
        """
        Flip selection of one event.

        Returns:
            True if the event is selected afterwards
        """
        if event_id in self._selected_ids:
            self._selected_ids.discard(event_id)
            return False
        if self.get(event_id) is None:
            logger.warning(f"Cannot select unknown event id: {event_id}")
            return False
        self._selected_ids.add(event_id)
        return True

    def select_all(self) -> None:
        """Select every event, or deselect all when all are already selected."""
        all_ids = {event.id for event in self._events}
        if all_ids and self._selected_ids == all_ids:
            self._selected_ids = set()
        else:
            self._selected_ids = all_ids

    def clear_selection(self) -> None:
        self._selected_ids = set()

    def selected_events(self) -> List[CampusEvent]:
        """Selected events in store order."""
        return [event for event in self._events if event.id in self._selected_ids]

    def _purge_selection(self) -> None:
        self._selected_ids &= {event.id for event in self._events}
