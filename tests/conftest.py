# tests/conftest.py
from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pytest

# ---------- import helpers ----------
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from models import CourseMeta, ItemMeta  # noqa: E402
from massaction.errors import StoreError  # noqa: E402
from stores.memory_store import MemoryStore  # noqa: E402

COURSE_ID = 101
OTHER_COURSE_ID = 202
ITEM_KINDS = (("Assignment", "Assignment"), ("Label", "Label"), ("Page", "Page"))


def build_course(store: MemoryStore, course_id: int = COURSE_ID, *, sections: int = 6,
                 rounds: int = 10, allow_stealth: bool = False, first_id: int = 1) -> MemoryStore:
    """
    Sections 0..sections-1; `rounds` rounds of (assignment, label, page),
    two rounds per section. With the defaults section n holds ids
    6n+1 .. 6n+6 for n in 0..4 and section 5 is empty.
    """
    store.add_course(
        CourseMeta(course_id, f"Course {course_id}", allow_stealth=allow_stealth),
        [("General" if n == 0 else f"Topic {n}") for n in range(sections)],
    )
    next_id = first_id
    for i in range(rounds):
        for type_, label in ITEM_KINDS:
            store.add_item(ItemMeta(
                id=next_id,
                course_id=course_id,
                section=i // 2,
                name=f"{label} {i + 1}",
                type=type_,
            ))
            next_id += 1
    return store


def section_of(store: MemoryStore, course_id: int, number: int) -> List[int]:
    return list(store.sequence(course_id, number))


def move_to_end(store: MemoryStore, course_id: int, number: int, position: int) -> None:
    """Move the item at `position` of a section to that section's end."""
    seq = section_of(store, course_id, number)
    item_id = seq.pop(position)
    store.write_sequence(course_id, number, seq + [item_id])


def shuffle(store: MemoryStore, course_id: int = COURSE_ID) -> None:
    """Break the id == display order coincidence in sections 1 and 3."""
    move_to_end(store, course_id, 1, 0)
    move_to_end(store, course_id, 1, 3)
    move_to_end(store, course_id, 3, 0)
    move_to_end(store, course_id, 3, 3)


def snapshot(store: MemoryStore, course_id: int = COURSE_ID) -> Dict[str, object]:
    return {
        "sections": [(s.number, s.item_ids) for s in store.list_sections(course_id)],
        "items": dict(store.list_items(course_id)),
    }


def pick(store: MemoryStore, ids: Sequence[int], course_id: int = COURSE_ID) -> List[ItemMeta]:
    items = store.list_items(course_id)
    return [items[i] for i in ids]


class FailingStore(MemoryStore):
    """MemoryStore whose writes touching `fail_on` item id raise StoreError."""

    def __init__(self, fail_on: Optional[int]) -> None:
        super().__init__()
        self.fail_on = fail_on

    def update_item(self, item: ItemMeta) -> None:
        if item.id == self.fail_on:
            raise StoreError(f"simulated write failure for item {item.id}")
        super().update_item(item)

    def create_item(self, template: ItemMeta) -> ItemMeta:
        if template.id == self.fail_on:
            raise StoreError(f"simulated create failure for copy of {template.id}")
        return super().create_item(template)


# ---------- common fixtures ----------
@pytest.fixture
def store() -> MemoryStore:
    return build_course(MemoryStore())


@pytest.fixture
def two_courses() -> MemoryStore:
    s = build_course(MemoryStore())
    s.add_course(CourseMeta(OTHER_COURSE_ID, "Other course"), ["General", "Topic 1"])
    s.add_item(ItemMeta(id=9001, course_id=OTHER_COURSE_ID, section=0, name="Welcome"))
    s.add_item(ItemMeta(id=9002, course_id=OTHER_COURSE_ID, section=1, name="Reading"))
    return s


@pytest.fixture
def store_file(tmp_path: Path) -> Path:
    data = {
        "courses": [
            {
                "id": 7,
                "name": "Store file course",
                "allow_stealth": False,
                "sections": [
                    {"number": 0, "name": "General", "items": [{"id": 1, "name": "Forum", "type": "Discussion"}]},
                    {"number": 1, "name": "Week 1", "items": [
                        {"id": 2, "name": "A", "type": "Page"},
                        {"id": 3, "name": "B", "type": "Page"},
                        {"id": 4, "name": "C", "type": "Page"},
                        {"id": 5, "name": "D", "type": "Page"},
                    ]},
                    {"number": 2, "name": "Week 2", "items": [
                        {"id": 6, "name": "X", "type": "Quiz"},
                        {"id": 7, "name": "Y", "type": "Quiz"},
                    ]},
                ],
            }
        ]
    }
    p = tmp_path / "store.json"
    p.write_text(json.dumps(data, indent=2), encoding="utf-8")
    return p
