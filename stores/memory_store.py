# stores/memory_store.py
from __future__ import annotations

from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Sequence

from models import CourseMeta, ItemMeta, SectionMeta
from massaction.errors import StoreError


class MemoryStore:
    """
    In-process store holding any number of courses.

    Every write is validated against the placement invariants: a section
    sequence may only list items of that course that claim that section, no
    id twice, no id already listed by another section, and it may not drop
    an item that still claims the section.
    """

    def __init__(self) -> None:
        self._courses: Dict[int, CourseMeta] = {}
        self._sections: Dict[int, Dict[int, SectionMeta]] = {}
        self._items: Dict[int, ItemMeta] = {}
        self._next_item_id = 1

    # ----- seeding -----
    def add_course(self, course: CourseMeta, section_names: Iterable[str] = ("General",)) -> CourseMeta:
        if course.id in self._courses:
            raise StoreError(f"course {course.id} already exists")
        self._courses[course.id] = course
        self._sections[course.id] = {}
        for number, name in enumerate(section_names):
            self._sections[course.id][number] = SectionMeta(course.id, number, name)
        return course

    def add_item(self, item: ItemMeta) -> ItemMeta:
        """Place a pre-built record at the end of its section (ids are kept)."""
        if item.id in self._items:
            raise StoreError(f"item {item.id} already exists")
        section = self._section(item.course_id, item.section)
        self._items[item.id] = item
        self._sections[item.course_id][section.number] = replace(section, item_ids=section.item_ids + (item.id,))
        self._next_item_id = max(self._next_item_id, item.id + 1)
        return item

    def set_allow_stealth(self, course_id: int, allowed: bool) -> None:
        self._courses[course_id] = replace(self.get_course(course_id), allow_stealth=allowed)

    # ----- reads -----
    def get_course(self, course_id: int) -> CourseMeta:
        course = self._courses.get(course_id)
        if course is None:
            raise StoreError(f"unknown course {course_id}")
        return course

    def list_courses(self) -> List[CourseMeta]:
        return [self._courses[cid] for cid in sorted(self._courses)]

    def list_sections(self, course_id: int) -> List[SectionMeta]:
        self.get_course(course_id)
        sections = self._sections[course_id]
        return [sections[n] for n in sorted(sections)]

    def list_items(self, course_id: int) -> Dict[int, ItemMeta]:
        self.get_course(course_id)
        return {iid: it for iid, it in self._items.items() if it.course_id == course_id}

    def get_item(self, item_id: int) -> Optional[ItemMeta]:
        return self._items.get(item_id)

    def sequence(self, course_id: int, section: int) -> tuple:
        return self._section(course_id, section).item_ids

    # ----- writes -----
    def write_sequence(self, course_id: int, section: int, item_ids: Sequence[int]) -> None:
        current = self._section(course_id, section)
        new_ids = tuple(item_ids)
        if len(set(new_ids)) != len(new_ids):
            raise StoreError(f"duplicate item ids in section {section}: {list(new_ids)}")

        for iid in new_ids:
            item = self._items.get(iid)
            if item is None or item.course_id != course_id:
                raise StoreError(f"item {iid} does not belong to course {course_id}")
            if item.section != section:
                raise StoreError(f"item {iid} belongs to section {item.section}, not {section}")
            for other in self._sections[course_id].values():
                if other.number != section and iid in other.item_ids:
                    raise StoreError(f"item {iid} is still listed in section {other.number}")

        claimed = {iid for iid in current.item_ids if self._items[iid].section == section}
        missing = claimed - set(new_ids)
        if missing:
            raise StoreError(f"sequence for section {section} drops items {sorted(missing)}")

        self._sections[course_id][section] = replace(current, item_ids=new_ids)

    def update_item(self, item: ItemMeta) -> None:
        current = self._items.get(item.id)
        if current is None:
            raise StoreError(f"unknown item {item.id}")
        if current.course_id != item.course_id:
            raise StoreError(f"item {item.id} cannot change course")
        self._section(item.course_id, item.section)
        self._items[item.id] = item

    def create_item(self, template: ItemMeta) -> ItemMeta:
        section = self._section(template.course_id, template.section)
        item = replace(template, id=self._next_item_id, deletion_in_progress=False)
        self._next_item_id += 1
        self._items[item.id] = item
        self._sections[item.course_id][section.number] = replace(section, item_ids=section.item_ids + (item.id,))
        return item

    def create_section(self, course_id: int, number: int, name: str = "") -> SectionMeta:
        self.get_course(course_id)
        sections = self._sections[course_id]
        expected = (max(sections) + 1) if sections else 0
        if number != expected:
            raise StoreError(f"sections are contiguous; next section is {expected}, not {number}")
        created = SectionMeta(course_id, number, name or f"Section {number}")
        sections[number] = created
        return created

    def mark_deleting(self, course_id: int, item_id: int) -> None:
        item = self._items.get(item_id)
        if item is None or item.course_id != course_id:
            raise StoreError(f"unknown item {item_id} in course {course_id}")
        self._items[item_id] = replace(item, deletion_in_progress=True)

    def delete_item(self, course_id: int, item_id: int) -> None:
        item = self._items.get(item_id)
        if item is None or item.course_id != course_id:
            raise StoreError(f"unknown item {item_id} in course {course_id}")
        section = self._section(course_id, item.section)
        self._sections[course_id][section.number] = replace(
            section, item_ids=tuple(i for i in section.item_ids if i != item_id)
        )
        del self._items[item_id]

    # ----- helpers -----
    def _section(self, course_id: int, number: int) -> SectionMeta:
        self.get_course(course_id)
        section = self._sections[course_id].get(number)
        if section is None:
            raise StoreError(f"course {course_id} has no section {number}")
        return section
