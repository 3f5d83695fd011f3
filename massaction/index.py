# massaction/index.py
from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Iterable, List, Mapping, Optional, Tuple

from models import CourseMeta, ItemMeta
from stores.base import Store


@dataclass(frozen=True)
class SectionIndex:
    """
    Read-only snapshot of one course: section numbers in ascending order, the
    ordered item ids of each section, and every item record.

    Built once per batch. Planners never splice a sequence in place; they
    compute the replacement tuple and hand it to the applier.
    """
    course: CourseMeta
    sections: Tuple[int, ...]
    sequences: Mapping[int, Tuple[int, ...]]
    items: Mapping[int, ItemMeta]
    section_names: Mapping[int, str]

    @property
    def course_id(self) -> int:
        return self.course.id

    def has_section(self, number: int) -> bool:
        return number in self.sequences

    def sequence(self, number: int) -> Tuple[int, ...]:
        return self.sequences.get(number, ())

    def next_section_number(self) -> int:
        return (max(self.sections) + 1) if self.sections else 0

    def position(self, item_id: int) -> Optional[Tuple[int, int]]:
        """(section number, index in that section) or None when the item is not placed."""
        item = self.items.get(item_id)
        if item is None:
            return None
        seq = self.sequences.get(item.section, ())
        try:
            return (item.section, seq.index(item_id))
        except ValueError:
            return None

    def order_key(self, item: ItemMeta) -> Tuple[int, int, int]:
        pos = self.position(item.id)
        if pos is None:
            # unplaced records sort after the placed ones of their section
            return (item.section, sys.maxsize, item.id)
        return (pos[0], pos[1], item.id)

    def order_items(self, items: Iterable[ItemMeta]) -> List[ItemMeta]:
        """
        Sort a selection into section order: ascending section number, then
        the item's index in that section's stored sequence. Caller order,
        id order and creation order are all ignored.
        """
        return sorted(items, key=self.order_key)

    def item_names(self) -> List[Tuple[int, str]]:
        """(item id, name) for every placed item, in section order."""
        out: List[Tuple[int, str]] = []
        for number in self.sections:
            for item_id in self.sequences[number]:
                item = self.items.get(item_id)
                if item is not None:
                    out.append((item_id, item.name))
        return out


def build_index(store: Store, course_id: int) -> SectionIndex:
    course = store.get_course(course_id)
    sections = sorted(store.list_sections(course_id), key=lambda s: s.number)
    items = store.list_items(course_id)
    return SectionIndex(
        course=course,
        sections=tuple(s.number for s in sections),
        sequences={s.number: tuple(s.item_ids) for s in sections},
        items=dict(items),
        section_names={s.number: s.name for s in sections},
    )
