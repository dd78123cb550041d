"""Unit tests for EventStore."""
from datetime import datetime, timedelta, timezone

import pytest

from processor.models import NormalizedEvent
from storage.event_store import EventStore


def make_event(title, start_hour=18, day=1, location='Student Union'):
    start = datetime(2025, 5, day, start_hour, 0, tzinfo=timezone.utc)
    return NormalizedEvent(
        title=title,
        location=location,
        description=f'{title} description',
        start_date=start,
        end_date=start + timedelta(hours=2),
        source_url=None
    )


@pytest.fixture
def store():
    return EventStore()


class TestMerge:
    """Test cases for merging normalized batches."""

    def test_merge_into_empty_store(self, store):
        found_at = datetime(2025, 4, 28, 12, 0, tzinfo=timezone.utc)

        added = store.merge([make_event('Pizza Night'), make_event('Bagel Brunch', 10)], found_at=found_at)

        assert added == 2
        assert len(store) == 2
        assert [event.title for event in store] == ['Pizza Night', 'Bagel Brunch']
        assert all(event.found_at == found_at for event in store)
        assert len({event.id for event in store}) == 2

    def test_remerging_same_events_adds_nothing(self, store):
        """Test that dedup is idempotent under repeated fetches."""
        batch = [make_event('Pizza Night'), make_event('Bagel Brunch', 10)]
        store.merge(batch)
        ids_before = [event.id for event in store]

        assert store.merge(batch) == 0
        assert [event.id for event in store] == ids_before

    def test_duplicate_key_ignores_other_fields(self, store):
        """Test that identity is (title, start_date), not location or id."""
        store.merge([make_event('Pizza Night', location='Student Union')])

        added = store.merge([make_event('Pizza Night', location='Lenoir Hall')])

        assert added == 0
        assert store.events[0].location == 'Student Union'

    def test_same_title_different_start_is_new(self, store):
        store.merge([make_event('Pizza Night', day=1)])

        assert store.merge([make_event('Pizza Night', day=8)]) == 1
        assert len(store) == 2

    def test_duplicates_within_one_batch_collapse(self, store):
        added = store.merge([make_event('Pizza Night'), make_event('Pizza Night')])

        assert added == 1
        assert len(store) == 1

    def test_new_events_are_prepended(self, store):
        store.merge([make_event('Old One'), make_event('Old Two', 10)])

        store.merge([make_event('New One', 12), make_event('Old One'), make_event('New Two', 14)])

        assert [event.title for event in store] == ['New One', 'New Two', 'Old One', 'Old Two']

    def test_empty_batch_changes_nothing(self, store):
        store.merge([make_event('Pizza Night'), make_event('Bagel Brunch', 10)])
        before = store.events

        assert store.merge([]) == 0
        assert store.events == before

    def test_events_are_read_only_copies(self, store):
        store.merge([make_event('Pizza Night')])

        store.events.clear()

        assert len(store) == 1


class TestSelection:
    """Test cases for selection handling."""

    @pytest.fixture
    def filled_store(self, store):
        store.merge([make_event('Pizza Night'), make_event('Bagel Brunch', 10), make_event('Taco Tuesday', 12)])
        return store

    def test_toggle_selection(self, filled_store):
        event_id = filled_store.events[1].id

        assert filled_store.toggle_selection(event_id) is True
        assert filled_store.selected_ids == {event_id}
        assert filled_store.toggle_selection(event_id) is False
        assert filled_store.selected_ids == set()

    def test_toggle_unknown_id_is_ignored(self, filled_store):
        assert filled_store.toggle_selection('no-such-id') is False
        assert filled_store.selected_ids == set()

    def test_select_all_then_deselect_all(self, filled_store):
        filled_store.select_all()
        assert filled_store.selected_ids == {event.id for event in filled_store}

        filled_store.select_all()
        assert filled_store.selected_ids == set()

    def test_select_all_completes_partial_selection(self, filled_store):
        filled_store.toggle_selection(filled_store.events[0].id)

        filled_store.select_all()

        assert len(filled_store.selected_ids) == 3

    def test_select_all_on_empty_store(self, store):
        store.select_all()
        assert store.selected_ids == set()

    def test_selected_events_follow_store_order(self, filled_store):
        first, _, last = filled_store.events
        filled_store.toggle_selection(last.id)
        filled_store.toggle_selection(first.id)

        assert filled_store.selected_events() == [first, last]

    def test_clear_selection(self, filled_store):
        filled_store.select_all()

        filled_store.clear_selection()

        assert filled_store.selected_events() == []

    def test_reset_purges_selection(self, filled_store):
        filled_store.select_all()

        filled_store.reset()

        assert len(filled_store) == 0
        assert filled_store.selected_ids == set()
