# tests/test_canvas_store.py
from __future__ import annotations

from dataclasses import replace

import pytest

from massaction.errors import StoreError, StoreWriteFailure
from massaction.run_batch import run_batch
from stores.canvas_store import CanvasStore, item_from_canvas, make_item_payload
from stores.deletion import InMemoryDeletionQueue
from utils.api import CanvasAPI

BASE = "https://canvas.test/api/v1"
COURSE = 101


@pytest.fixture(autouse=True)
def _no_sleep_and_no_jitter(monkeypatch):
    monkeypatch.setattr("utils.api.time.sleep", lambda *_: None)
    monkeypatch.setattr("utils.api.random.uniform", lambda *_: 0.0)


@pytest.fixture
def canvas(requests_mock):
    requests_mock.get(f"{BASE}/courses/{COURSE}", json={"id": COURSE, "name": "Biology"})
    requests_mock.get(f"{BASE}/courses/{COURSE}/modules", json=[
        {"id": 12, "name": "Week 1", "position": 2},
        {"id": 11, "name": "Intro", "position": 1},
    ])
    requests_mock.get(f"{BASE}/courses/{COURSE}/modules/11/items", json=[
        {"id": 502, "title": "Quiz", "type": "Quiz", "position": 2, "content_id": 77, "published": False},
        {"id": 501, "title": "Welcome", "type": "Page", "position": 1, "page_url": "welcome", "published": True},
    ])
    requests_mock.get(f"{BASE}/courses/{COURSE}/modules/12/items", json=[
        {"id": 503, "title": "Reading", "type": "File", "position": 1, "content_id": 88, "indent": 1,
         "published": True},
    ])
    return CanvasStore(CanvasAPI("https://canvas.test", "tkn"))


def _writes(requests_mock):
    return [(r.method, r.path, r.json() if r.body else None)
            for r in requests_mock.request_history if r.method != "GET"]


def test_modules_become_sections_in_position_order(canvas):
    sections = canvas.list_sections(COURSE)

    assert [(s.number, s.name, s.item_ids) for s in sections] == [
        (0, "Intro", (501, 502)),
        (1, "Week 1", (503,)),
    ]
    items = canvas.list_items(COURSE)
    assert items[502].visible is False
    assert items[502].visible_on_page is False
    assert items[503].indent == 1
    assert items[501].url == "welcome"
    assert canvas.get_course(COURSE).allow_stealth is False


def test_move_to_puts_module_and_position(canvas, requests_mock):
    requests_mock.put(f"{BASE}/courses/{COURSE}/modules/11/items/501", json={})
    requests_mock.put(f"{BASE}/courses/{COURSE}/modules/11/items/502", json={})
    requests_mock.put(f"{BASE}/courses/{COURSE}/modules/12/items/501", json={})

    run_batch({"action": "move-to", "itemIds": [501], "target": 1}, store=canvas, course_id=COURSE)

    writes = _writes(requests_mock)
    assert writes[0] == ("PUT", f"/api/v1/courses/{COURSE}/modules/11/items/501", {"module_item": {"module_id": 12}})
    assert writes[-1] == (
        "PUT", f"/api/v1/courses/{COURSE}/modules/12/items/501", {"module_item": {"module_id": 12, "position": 2}},
    )


def test_hide_unpublishes(canvas, requests_mock):
    requests_mock.put(f"{BASE}/courses/{COURSE}/modules/11/items/501", json={})

    result = run_batch({"action": "hide", "itemIds": [501, 502]}, store=canvas, course_id=COURSE)

    # 502 is already unpublished
    assert result.steps == 1
    assert _writes(requests_mock) == [
        ("PUT", f"/api/v1/courses/{COURSE}/modules/11/items/501", {"module_item": {"published": False}}),
    ]


def test_duplicate_to_posts_a_new_module_item(canvas, requests_mock):
    requests_mock.post(
        f"{BASE}/courses/{COURSE}/modules/11/items",
        json={"id": 601, "position": 3},
        headers={"Content-Type": "application/json"},
    )

    result = run_batch({"action": "duplicate-to", "itemIds": [503], "target": 0}, store=canvas, course_id=COURSE)

    assert result.created_items == [601]
    assert _writes(requests_mock) == [(
        "POST",
        f"/api/v1/courses/{COURSE}/modules/11/items",
        {"module_item": {"type": "File", "title": "Reading (copy)", "indent": 1, "published": True, "content_id": 88}},
    )]


def test_delete_is_deferred_until_drain(canvas, requests_mock):
    requests_mock.delete(f"{BASE}/courses/{COURSE}/modules/11/items/501", status_code=204)
    queue = InMemoryDeletionQueue()

    run_batch({"action": "delete", "itemIds": [501]}, store=canvas, course_id=COURSE, deletion_queue=queue)

    assert _writes(requests_mock) == []
    assert canvas.list_items(COURSE)[501].deletion_in_progress is True

    assert queue.drain(canvas) == {"deleted": 1, "failed": 0}
    assert _writes(requests_mock) == [("DELETE", f"/api/v1/courses/{COURSE}/modules/11/items/501", None)]


def test_http_errors_become_write_failures(canvas, requests_mock):
    requests_mock.put(f"{BASE}/courses/{COURSE}/modules/11/items/501", status_code=403, json={"errors": "nope"})

    with pytest.raises(StoreWriteFailure) as excinfo:
        run_batch({"action": "move-right", "itemIds": [501]}, store=canvas, course_id=COURSE)

    assert excinfo.value.item_id == 501
    assert excinfo.value.applied == []


def test_unknown_course_is_a_store_error(requests_mock):
    requests_mock.get(f"{BASE}/courses/999", status_code=404, json={"errors": "not found"})
    store = CanvasStore(CanvasAPI("https://canvas.test", "tkn"))

    with pytest.raises(StoreError, match="status=404"):
        store.get_course(999)


def test_stealth_state_cannot_be_written(canvas):
    item = canvas.list_items(COURSE)[501]
    with pytest.raises(StoreError):
        canvas.update_item(replace(item, visible_on_page=False))


def test_item_conversion_helpers():
    item = item_from_canvas(COURSE, 0, {"id": "7", "title": "Site", "type": "ExternalUrl",
                                        "external_url": "https://x.test"})
    assert item.id == 7
    assert item.url == "https://x.test"

    assert make_item_payload(item) == {"module_item": {
        "type": "ExternalUrl", "title": "Site", "indent": 0, "published": True, "external_url": "https://x.test",
    }}


def test_copy_into_another_course_is_refused_before_posting(canvas, requests_mock):
    canvas.list_sections(COURSE)
    source = canvas.list_items(COURSE)[503]

    with pytest.raises(StoreError, match="into course 202"):
        canvas.create_item(replace(source, course_id=202, section=0))

    assert _writes(requests_mock) == []
