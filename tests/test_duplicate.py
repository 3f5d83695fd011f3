# tests/test_duplicate.py
from __future__ import annotations

from dataclasses import replace

import pytest

from massaction import actions
from massaction.errors import InvalidTarget, StoreWriteFailure
from massaction.run_batch import run_batch
from models import CourseMeta
from stores.memory_store import MemoryStore
from tests.conftest import (
    COURSE_ID,
    OTHER_COURSE_ID,
    FailingStore,
    build_course,
    pick,
    section_of,
    shuffle,
    snapshot,
)


def test_duplicate_appends_copies_to_each_source_section(store):
    result = actions.duplicate(store, COURSE_ID, pick(store, [9, 2]))

    assert result.created_items == [31, 32]
    assert section_of(store, COURSE_ID, 0)[-1] == 31
    assert section_of(store, COURSE_ID, 1)[-1] == 32
    assert store.get_item(31).name == "Label 1 (copy)"
    assert store.get_item(32).name == "Page 3 (copy)"


def test_copies_keep_type_indent_and_visibility(store):
    store.update_item(replace(store.get_item(4), indent=2, visible=False, visible_on_page=False))

    run_batch({"action": "duplicate", "itemIds": [4]}, store=store, course_id=COURSE_ID)

    copy = store.get_item(31)
    assert copy.type == "Assignment"
    assert copy.indent == 2
    assert copy.visible is False
    assert copy.section == 0
    # source untouched
    assert store.get_item(4).name == "Assignment 2"


def test_duplicate_to_same_course_in_section_order(store):
    shuffle(store)

    result = run_batch(
        {"action": "duplicate-to", "itemIds": [23, 7], "target": 5},
        store=store, course_id=COURSE_ID,
    )

    assert section_of(store, COURSE_ID, 5) == [31, 32]
    assert store.get_item(31).name == "Assignment 3 (copy)"
    assert store.get_item(32).name == "Label 8 (copy)"
    assert result.created_sections == []


def test_duplicate_to_past_last_section_creates_one(store):
    result = run_batch(
        {"action": "duplicate-to", "itemIds": [1], "target": 40},
        store=store, course_id=COURSE_ID,
    )

    assert result.created_sections == [6]
    assert section_of(store, COURSE_ID, 6) == [31]


def test_duplicate_to_vetoed_section_fails_without_writing(store):
    before = snapshot(store)

    with pytest.raises(InvalidTarget):
        run_batch(
            {"action": "duplicate-to", "itemIds": [1], "target": 2},
            store=store, course_id=COURSE_ID, filters=[lambda hook: hook.remove_section(2)],
        )

    assert snapshot(store) == before


def test_duplicate_to_another_course(two_courses):
    result = run_batch(
        {"action": "duplicate-to", "itemIds": [8, 2], "target": 1, "targetCourseId": OTHER_COURSE_ID},
        store=two_courses, course_id=COURSE_ID,
    )

    assert section_of(two_courses, OTHER_COURSE_ID, 1) == [9002, 9003, 9004]
    assert two_courses.get_item(9003).course_id == OTHER_COURSE_ID
    assert two_courses.get_item(9003).name == "Label 1 (copy)"
    assert two_courses.get_item(9004).name == "Label 3 (copy)"
    assert result.created_items == [9003, 9004]
    # originals stay where they were
    assert 2 in section_of(two_courses, COURSE_ID, 0)


def test_keep_original_section_in_another_course_creates_missing_sections(two_courses):
    result = run_batch(
        {"action": "duplicate-to", "itemIds": [20, 2], "keepOriginalSection": True, "targetCourseId": OTHER_COURSE_ID},
        store=two_courses, course_id=COURSE_ID,
    )

    assert result.created_sections == [2, 3]
    assert section_of(two_courses, OTHER_COURSE_ID, 0) == [9001, 9003]
    assert section_of(two_courses, OTHER_COURSE_ID, 3) == [9004]
    assert section_of(two_courses, OTHER_COURSE_ID, 2) == []


def test_keep_original_section_disabled_by_filter(two_courses):
    before = snapshot(two_courses, OTHER_COURSE_ID)

    with pytest.raises(InvalidTarget, match="original section"):
        run_batch(
            {"action": "duplicate-to", "itemIds": [2], "keepOriginalSection": True, "targetCourseId": OTHER_COURSE_ID},
            store=two_courses, course_id=COURSE_ID,
            filters=[lambda hook: hook.disable_keep_original_section()],
        )

    assert snapshot(two_courses, OTHER_COURSE_ID) == before


def test_creating_section_disabled_by_filter(two_courses):
    before = snapshot(two_courses, OTHER_COURSE_ID)

    with pytest.raises(InvalidTarget):
        run_batch(
            {"action": "duplicate-to", "itemIds": [2], "target": 5, "targetCourseId": OTHER_COURSE_ID},
            store=two_courses, course_id=COURSE_ID,
            filters=[lambda hook: hook.disable_create_new_section()],
        )

    assert snapshot(two_courses, OTHER_COURSE_ID) == before


def test_keep_original_section_in_same_course_is_plain_duplicate(store):
    result = run_batch(
        {"action": "duplicate-to", "itemIds": [14], "keepOriginalSection": True},
        store=store, course_id=COURSE_ID,
    )

    assert result.created_items == [31]
    assert store.get_item(31).section == 2


def test_unknown_target_course_is_invalid(store):
    with pytest.raises(InvalidTarget, match="target course"):
        run_batch(
            {"action": "duplicate-to", "itemIds": [1], "target": 0, "targetCourseId": 303},
            store=store, course_id=COURSE_ID,
        )


def test_failure_mid_batch_reports_applied_and_pending():
    store = build_course(FailingStore(fail_on=9))

    with pytest.raises(StoreWriteFailure) as excinfo:
        run_batch({"action": "duplicate", "itemIds": [14, 9, 2]}, store=store, course_id=COURSE_ID)

    err = excinfo.value
    assert err.item_id == 9
    assert err.applied == [2]
    assert err.pending == [14]
    # the copy made before the failure stays
    assert section_of(store, COURSE_ID, 0)[-1] == 31
    assert store.get_item(32) is None


def test_duplicate_to_entry_point_accepts_stale_records(two_courses):
    stale = pick(two_courses, [3])
    two_courses.update_item(replace(stale[0], name="Renamed"))

    result = actions.duplicate_to(two_courses, COURSE_ID, stale, 0, target_course_id=OTHER_COURSE_ID)

    assert result.created_items == [9003]
    assert two_courses.get_item(9003).name == "Renamed (copy)"


def _stealth_course_and_plain_course():
    store = build_course(MemoryStore(), allow_stealth=True)
    store.add_course(CourseMeta(OTHER_COURSE_ID, "Other course"), ["General", "Topic 1"])
    run_batch({"action": "hide", "itemIds": [2]}, store=store, course_id=COURSE_ID)
    run_batch({"action": "make-available", "itemIds": [2]}, store=store, course_id=COURSE_ID)
    return store


def test_copy_into_course_without_stealth_is_shown_on_page():
    store = _stealth_course_and_plain_course()

    result = run_batch(
        {"action": "duplicate-to", "itemIds": [2], "target": 0, "targetCourseId": OTHER_COURSE_ID},
        store=store, course_id=COURSE_ID,
    )

    copy = store.get_item(result.created_items[0])
    assert copy.course_id == OTHER_COURSE_ID
    assert (copy.visible, copy.visible_on_page) == (True, True)
    source = store.get_item(2)
    assert (source.visible, source.visible_on_page) == (True, False)


def test_copy_inside_stealth_course_stays_off_page():
    store = _stealth_course_and_plain_course()

    result = run_batch({"action": "duplicate", "itemIds": [2]}, store=store, course_id=COURSE_ID)

    copy = store.get_item(result.created_items[0])
    assert (copy.visible, copy.visible_on_page) == (True, False)


@pytest.mark.parametrize("payload, filters", [
    ({"action": "duplicate-to", "itemIds": [], "target": 1}, []),
    ({"action": "duplicate-to", "itemIds": [999], "target": 0, "targetCourseId": 303}, []),
    ({"action": "duplicate-to", "itemIds": [999], "target": 2}, [lambda hook: hook.remove_section(2)]),
    ({"action": "duplicate-to", "itemIds": [999], "keepOriginalSection": True, "targetCourseId": OTHER_COURSE_ID},
     [lambda hook: hook.disable_keep_original_section()]),
])
def test_empty_selection_never_writes_or_fails(two_courses, payload, filters):
    before = snapshot(two_courses), snapshot(two_courses, OTHER_COURSE_ID)

    result = run_batch(payload, store=two_courses, course_id=COURSE_ID, filters=filters)

    assert result.item_ids == []
    assert result.steps == 0
    assert result.created_items == []
    assert (snapshot(two_courses), snapshot(two_courses, OTHER_COURSE_ID)) == before
