#models.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

ACTIONS: Tuple[str, ...] = (
    "move-left",
    "move-right",
    "move-to",
    "hide",
    "show",
    "make-available",
    "duplicate",
    "duplicate-to",
    "delete",
)

MAX_INDENT = 16
COPY_SUFFIX = " (copy)"


@dataclass(frozen=True, slots=True)
class CourseMeta:
    id: int
    name: str
    allow_stealth: bool = False  # course allows "available but not shown on course page"


@dataclass(frozen=True, slots=True)
class SectionMeta:
    course_id: int
    number: int  # order key, 0 is the default section
    name: str
    item_ids: Tuple[int, ...] = ()  # authoritative order


@dataclass(frozen=True, slots=True)
class ItemMeta:
    id: int
    course_id: int
    section: int
    name: str
    type: str = "Page"
    indent: int = 0
    visible: bool = True
    visible_on_page: bool = True
    deletion_in_progress: bool = False
    content_id: Optional[int] = None
    url: Optional[str] = None  # page slug or external url if applicable

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "indent": self.indent,
            "visible": self.visible,
            "visible_on_page": self.visible_on_page,
            "deletion_in_progress": self.deletion_in_progress,
            "content_id": self.content_id,
            "url": self.url,
        }


# ---- batch requests ---------------------------------------------------------

@dataclass(frozen=True, slots=True)
class BatchRequest:
    action: str
    item_ids: Tuple[Union[int, str], ...]
    target: Optional[int] = None
    target_course_id: Optional[int] = None
    keep_original_section: bool = False
    visible_on_page: Optional[bool] = None
    amount: Optional[int] = None


@dataclass(frozen=True, slots=True)
class ResolvedSelection:
    request: BatchRequest
    items: Tuple[ItemMeta, ...]
    dropped: Tuple[Union[int, str], ...] = ()

    @property
    def dropped_count(self) -> int:
        return len(self.dropped)


# ---- plan steps -------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class UpdateItem:
    item_id: int
    changes: Dict[str, Any]


@dataclass(frozen=True, slots=True)
class WriteSequence:
    course_id: int
    section: int
    item_ids: Tuple[int, ...]
    touched: Tuple[int, ...] = ()  # selected items whose placement this write settles


@dataclass(frozen=True, slots=True)
class CopyItem:
    source_item_id: int
    course_id: int
    section: int
    name: str
    changes: Dict[str, Any] = field(default_factory=dict)  # field overrides for the copy


@dataclass(frozen=True, slots=True)
class CreateSection:
    course_id: int
    number: int
    name: str = ""


@dataclass(frozen=True, slots=True)
class DeleteItem:
    item_id: int
    course_id: int


PlanStep = Union[UpdateItem, WriteSequence, CopyItem, CreateSection, DeleteItem]


@dataclass(frozen=True, slots=True)
class Plan:
    action: str
    course_id: int
    item_ids: Tuple[int, ...] = ()  # selection in section order
    steps: Tuple[PlanStep, ...] = ()
    target_course_id: Optional[int] = None

    @property
    def is_noop(self) -> bool:
        return not self.steps


@dataclass(frozen=True, slots=True)
class DeletionCommand:
    course_id: int
    item_id: int


@dataclass(slots=True)
class BatchResult:
    action: str
    course_id: int
    item_ids: List[int] = field(default_factory=list)
    dropped: List[Union[int, str]] = field(default_factory=list)
    applied: List[int] = field(default_factory=list)
    created_items: List[int] = field(default_factory=list)
    created_sections: List[int] = field(default_factory=list)
    enqueued_deletions: List[int] = field(default_factory=list)
    steps: int = 0

    @property
    def dropped_count(self) -> int:
        return len(self.dropped)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "course_id": self.course_id,
            "item_ids": list(self.item_ids),
            "dropped": list(self.dropped),
            "dropped_count": self.dropped_count,
            "applied": list(self.applied),
            "created_items": list(self.created_items),
            "created_sections": list(self.created_sections),
            "enqueued_deletions": list(self.enqueued_deletions),
            "steps": self.steps,
        }
