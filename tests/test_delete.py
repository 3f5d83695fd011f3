# tests/test_delete.py
from __future__ import annotations

import pytest

from massaction import actions
from massaction.run_batch import run_batch
from models import DeletionCommand
from stores.deletion import InMemoryDeletionQueue
from tests.conftest import COURSE_ID, pick, section_of, shuffle, snapshot


def test_delete_flags_items_and_enqueues_in_section_order(store):
    shuffle(store)
    queue = InMemoryDeletionQueue()

    result = run_batch(
        {"action": "delete", "itemIds": [11, 3, 7]},
        store=store, course_id=COURSE_ID, deletion_queue=queue,
    )

    assert result.enqueued_deletions == [3, 7, 11]
    assert queue.pending == [
        DeletionCommand(COURSE_ID, 3),
        DeletionCommand(COURSE_ID, 7),
        DeletionCommand(COURSE_ID, 11),
    ]
    # still present until the queue is drained
    assert store.get_item(3).deletion_in_progress is True
    assert 3 in section_of(store, COURSE_ID, 0)


def test_drain_purges_queued_items(store):
    queue = InMemoryDeletionQueue()
    actions.delete(store, COURSE_ID, pick(store, [1, 8]), queue)

    counters = queue.drain(store)

    assert counters == {"deleted": 2, "failed": 0}
    assert len(queue) == 0
    assert store.get_item(1) is None
    assert section_of(store, COURSE_ID, 0) == [2, 3, 4, 5, 6]
    assert section_of(store, COURSE_ID, 1) == [7, 9, 10, 11, 12]


def test_items_already_being_deleted_are_not_enqueued_twice(store):
    queue = InMemoryDeletionQueue()
    run_batch({"action": "delete", "itemIds": [5]}, store=store, course_id=COURSE_ID, deletion_queue=queue)

    result = run_batch({"action": "delete", "itemIds": [5, 6]}, store=store, course_id=COURSE_ID, deletion_queue=queue)

    assert result.enqueued_deletions == [6]
    assert [c.item_id for c in queue.pending] == [5, 6]


def test_failed_deletion_does_not_stop_the_drain(store):
    queue = InMemoryDeletionQueue()
    queue.enqueue(DeletionCommand(COURSE_ID, 9999))
    queue.enqueue(DeletionCommand(COURSE_ID, 2))

    counters = queue.drain(store)

    assert counters == {"deleted": 1, "failed": 1}
    assert store.get_item(2) is None


def test_delete_without_a_queue_is_refused_before_writing(store):
    before = snapshot(store)

    with pytest.raises(ValueError, match="deletion queue"):
        run_batch({"action": "delete", "itemIds": [1]}, store=store, course_id=COURSE_ID)

    assert snapshot(store) == before
