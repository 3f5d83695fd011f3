# stores/canvas_store.py
from __future__ import annotations

from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import requests

from logging_setup import get_logger
from models import CourseMeta, ItemMeta, SectionMeta
from massaction.errors import StoreError
from utils.api import CanvasAPI
from utils.pagination import get_course, list_module_items, list_modules

URL_TYPES = {"Page": "page_url", "ExternalUrl": "external_url", "ExternalTool": "external_url"}


def item_from_canvas(course_id: int, section: int, it: Dict[str, Any]) -> ItemMeta:
    published = bool(it.get("published", True))
    item_type = it.get("type") or "Page"
    return ItemMeta(
        id=int(it["id"]),
        course_id=course_id,
        section=section,
        name=it.get("title") or "",
        type=item_type,
        indent=int(it.get("indent") or 0),
        visible=published,
        visible_on_page=published,
        content_id=it.get("content_id"),
        url=it.get("page_url") or it.get("external_url"),
    )


def make_item_payload(item: ItemMeta) -> Dict[str, Any]:
    """Build {"module_item": {...}} to create a copy of `item`."""
    body: Dict[str, Any] = {
        "type": item.type,
        "title": item.name,
        "indent": item.indent,
        "published": item.visible,
    }
    url_key = URL_TYPES.get(item.type)
    if url_key:
        body[url_key] = item.url
    elif item.type != "SubHeader":
        body["content_id"] = item.content_id
    return {"module_item": body}


class CanvasStore:
    """
    Store over the Canvas REST API.

    Sections are the course's modules numbered from 0 in position order;
    items are module items (`published` is the visibility flag, `indent` the
    depth). Canvas has no "available but hidden on the course page" state,
    so courses never allow stealth. Deletion-in-progress is tracked locally
    until the deletion queue issues the DELETE.
    """

    def __init__(self, api: CanvasAPI) -> None:
        self.api = api
        self._module_ids: Dict[int, List[int]] = {}            # course -> module id per section number
        self._items: Dict[int, Dict[int, ItemMeta]] = {}       # course -> item id -> record
        self._placement: Dict[int, Tuple[int, int]] = {}       # item id -> (module id, position)
        self._deleting: set[int] = set()

    # ----- helpers -----
    def _call(self, what: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except requests.RequestException as e:
            status = getattr(getattr(e, "response", None), "status_code", None)
            raise StoreError(f"{what} failed (status={status}): {e}") from e

    def _module_id(self, course_id: int, section: int) -> int:
        if course_id not in self._module_ids:
            self.list_sections(course_id)
        modules = self._module_ids[course_id]
        if not 0 <= section < len(modules):
            raise StoreError(f"course {course_id} has no section {section}")
        return modules[section]

    def _item_url(self, course_id: int, module_id: int, item_id: int) -> str:
        return f"/courses/{course_id}/modules/{module_id}/items/{item_id}"

    def _cached_item(self, course_id: int, item_id: int) -> ItemMeta:
        item = self._items.get(course_id, {}).get(item_id)
        if item is None:
            raise StoreError(f"unknown item {item_id} in course {course_id}")
        return item

    # ----- reads -----
    def get_course(self, course_id: int) -> CourseMeta:
        body = self._call(f"GET course {course_id}", get_course, self.api, course_id)
        if not body or body.get("id") is None:
            raise StoreError(f"unknown course {course_id}")
        return CourseMeta(id=int(body["id"]), name=body.get("name") or "", allow_stealth=False)

    def list_sections(self, course_id: int) -> List[SectionMeta]:
        log = get_logger(action="read", course_id=course_id)
        modules = self._call(f"GET modules of course {course_id}", list_modules, self.api, course_id)

        sections: List[SectionMeta] = []
        module_ids: List[int] = []
        items: Dict[int, ItemMeta] = {}
        for number, m in enumerate(modules):
            module_id = int(m["id"])
            raw_items = self._call(
                f"GET items of module {module_id}", list_module_items, self.api, course_id, module_id
            )
            ids: List[int] = []
            for pos, it in enumerate(raw_items, start=1):
                item = item_from_canvas(course_id, number, it)
                if item.id in self._deleting:
                    item = replace(item, deletion_in_progress=True)
                items[item.id] = item
                self._placement[item.id] = (module_id, pos)
                ids.append(item.id)
            module_ids.append(module_id)
            sections.append(SectionMeta(course_id, number, m.get("name") or "", tuple(ids)))

        self._module_ids[course_id] = module_ids
        self._items[course_id] = items
        log.debug("read %d module(s), %d item(s)", len(sections), len(items))
        return sections

    def list_items(self, course_id: int) -> Dict[int, ItemMeta]:
        if course_id not in self._items:
            self.list_sections(course_id)
        return dict(self._items[course_id])

    # ----- writes -----
    def write_sequence(self, course_id: int, section: int, item_ids: Sequence[int]) -> None:
        module_id = self._module_id(course_id, section)
        for pos, iid in enumerate(item_ids, start=1):
            current_module, current_pos = self._placement.get(iid, (module_id, -1))
            if (current_module, current_pos) == (module_id, pos):
                continue
            self._call(
                f"PUT position of item {iid}",
                self.api.put,
                self._item_url(course_id, current_module, iid),
                json={"module_item": {"module_id": module_id, "position": pos}},
            )
            self._placement[iid] = (module_id, pos)

    def update_item(self, item: ItemMeta) -> None:
        current = self._cached_item(item.course_id, item.id)
        if item.visible_on_page != item.visible:
            raise StoreError("Canvas module items cannot be available but hidden on the course page")

        changes: Dict[str, Any] = {}
        if item.indent != current.indent:
            changes["indent"] = item.indent
        if item.visible != current.visible:
            changes["published"] = item.visible
        if item.name != current.name:
            changes["title"] = item.name
        module_id, _ = self._placement.get(item.id, (self._module_id(item.course_id, current.section), 0))
        if item.section != current.section:
            changes["module_id"] = self._module_id(item.course_id, item.section)

        if changes:
            self._call(
                f"PUT item {item.id}",
                self.api.put,
                self._item_url(item.course_id, module_id, item.id),
                json={"module_item": changes},
            )
            if "module_id" in changes:
                # Canvas appends a moved item; the following sequence write fixes its position
                self._placement[item.id] = (changes["module_id"], 0)
        self._items[item.course_id][item.id] = item

    def create_item(self, template: ItemMeta) -> ItemMeta:
        source_course = next((c for c, items in self._items.items() if template.id in items), template.course_id)
        if source_course != template.course_id:
            # module items point at course content by id; copying that content is not supported
            raise StoreError(
                f"cannot copy item {template.id} of course {source_course} into course {template.course_id}"
            )
        module_id = self._module_id(template.course_id, template.section)
        body = self._call(
            f"POST copy of item {template.id}",
            self.api.post_json,
            f"/courses/{template.course_id}/modules/{module_id}/items",
            payload=make_item_payload(template),
        )
        new_id = body.get("id")
        if not isinstance(new_id, int):
            raise StoreError(f"Canvas did not return an id for the copy of item {template.id}")
        created = replace(template, id=new_id, deletion_in_progress=False)
        self._items.setdefault(template.course_id, {})[new_id] = created
        self._placement[new_id] = (module_id, int(body.get("position") or 0))
        return created

    def create_section(self, course_id: int, number: int, name: str = "") -> SectionMeta:
        if course_id not in self._module_ids:
            self.list_sections(course_id)
        modules = self._module_ids[course_id]
        if number != len(modules):
            raise StoreError(f"sections are contiguous; next section is {len(modules)}, not {number}")
        name = name or f"Section {number}"
        body = self._call(
            f"POST module {name!r}",
            self.api.post_json,
            f"/courses/{course_id}/modules",
            payload={"module": {"name": name, "position": number + 1}},
        )
        new_id = body.get("id")
        if not isinstance(new_id, int):
            raise StoreError(f"Canvas did not return an id for module {name!r}")
        modules.append(new_id)
        return SectionMeta(course_id, number, name)

    def mark_deleting(self, course_id: int, item_id: int) -> None:
        item = self._cached_item(course_id, item_id)
        self._deleting.add(item_id)
        self._items[course_id][item_id] = replace(item, deletion_in_progress=True)

    def delete_item(self, course_id: int, item_id: int) -> None:
        module_id: Optional[int] = self._placement.get(item_id, (None, 0))[0]
        if module_id is None:
            module_id = self._module_id(course_id, self._cached_item(course_id, item_id).section)
        self._call(f"DELETE item {item_id}", self.api.delete, self._item_url(course_id, module_id, item_id))
        self._deleting.discard(item_id)
        self._items.get(course_id, {}).pop(item_id, None)
        self._placement.pop(item_id, None)
