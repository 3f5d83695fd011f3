# stores/base.py
from __future__ import annotations

from typing import Dict, List, Protocol, Sequence

from models import CourseMeta, DeletionCommand, ItemMeta, SectionMeta


class Store(Protocol):
    """
    Authoritative course/section/item records.

    Writes are whole replacements: a section's order is always written as the
    full tuple of item ids, an item as its full updated record.
    Implementations raise massaction.errors.StoreError when a write is refused.
    """

    def get_course(self, course_id: int) -> CourseMeta: ...
    def list_sections(self, course_id: int) -> List[SectionMeta]: ...
    def list_items(self, course_id: int) -> Dict[int, ItemMeta]: ...
    def write_sequence(self, course_id: int, section: int, item_ids: Sequence[int]) -> None: ...
    def update_item(self, item: ItemMeta) -> None: ...
    def create_item(self, template: ItemMeta) -> ItemMeta: ...
    def create_section(self, course_id: int, number: int, name: str = "") -> SectionMeta: ...
    def mark_deleting(self, course_id: int, item_id: int) -> None: ...
    def delete_item(self, course_id: int, item_id: int) -> None: ...


class DeletionQueue(Protocol):
    """One-way sink for asynchronous deletions; enqueue never waits for completion."""

    def enqueue(self, command: DeletionCommand) -> None: ...
