# stores/json_store.py
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

from models import CourseMeta, ItemMeta
from massaction.errors import StoreError
from stores.memory_store import MemoryStore
from utils.fs import atomic_write, json_dumps_stable, read_json


class JsonFileStore(MemoryStore):
    """
    MemoryStore persisted as one JSON document:

        {"courses": [{"id": 101, "name": "...", "allow_stealth": false,
                      "sections": [{"number": 0, "name": "General",
                                    "items": [{"id": 1, "name": "...", ...}]}]}]}

    Item order inside "items" is the section sequence. Nothing is written
    until save() is called.
    """

    def __init__(self, path: Path) -> None:
        super().__init__()
        self.path = Path(path)

    @classmethod
    def load(cls, path: Path) -> "JsonFileStore":
        store = cls(path)
        try:
            data = read_json(store.path)
        except (OSError, ValueError) as e:
            raise StoreError(f"cannot read store file {store.path}: {e}") from e
        try:
            store._load(data)
        except (KeyError, TypeError, ValueError) as e:
            raise StoreError(f"{store.path}: malformed record: {e!r}") from e
        return store

    def _load(self, data: Any) -> None:
        if not isinstance(data, dict) or not isinstance(data.get("courses"), list):
            raise StoreError(f"{self.path}: expected an object with a 'courses' list")
        for c in data["courses"]:
            course = CourseMeta(
                id=int(c["id"]),
                name=str(c.get("name") or f"Course {c['id']}"),
                allow_stealth=bool(c.get("allow_stealth", False)),
            )
            sections = sorted(c.get("sections") or [], key=lambda s: int(s.get("number", 0)))
            numbers = [int(s.get("number", 0)) for s in sections]
            if numbers != list(range(len(numbers))):
                raise StoreError(f"{self.path}: course {course.id} section numbers must be 0..N, got {numbers}")
            self.add_course(course, [s.get("name") or f"Section {n}" for n, s in zip(numbers, sections)])
            for number, s in zip(numbers, sections):
                for it in s.get("items") or []:
                    self.add_item(ItemMeta(
                        id=int(it["id"]),
                        course_id=course.id,
                        section=number,
                        name=str(it.get("name") or ""),
                        type=str(it.get("type") or "Page"),
                        indent=int(it.get("indent", 0)),
                        visible=bool(it.get("visible", True)),
                        visible_on_page=bool(it.get("visible_on_page", it.get("visible", True))),
                        deletion_in_progress=bool(it.get("deletion_in_progress", False)),
                        content_id=it.get("content_id"),
                        url=it.get("url"),
                    ))

    def to_dict(self) -> Dict[str, Any]:
        courses: List[Dict[str, Any]] = []
        for course in self.list_courses():
            items = self.list_items(course.id)
            sections = [
                {
                    "number": s.number,
                    "name": s.name,
                    "items": [items[iid].to_dict() for iid in s.item_ids],
                }
                for s in self.list_sections(course.id)
            ]
            courses.append({
                "id": course.id,
                "name": course.name,
                "allow_stealth": course.allow_stealth,
                "sections": sections,
            })
        return {"courses": courses}

    def save(self) -> None:
        atomic_write(self.path, json_dumps_stable(self.to_dict()))
