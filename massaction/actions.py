# massaction/actions.py
"""
Programmatic entry points, one per bulk action.

Each call takes a fresh snapshot of the course, plans against it and applies
the plan. Item records passed in are re-read from that snapshot by id, so
stale copies are fine; records that no longer exist in the course are
ignored.
"""
from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

from logging_setup import get_logger
from models import BatchResult, ItemMeta, Plan
from massaction import planner
from massaction.applier import apply_plan
from massaction.errors import InvalidTarget, StoreError
from massaction.index import SectionIndex, build_index
from massaction.section_filter import SectionFilter
from stores.base import DeletionQueue, Store

INDENT_DEFAULTS = {"move-left": -1, "move-right": 1}


def _current(index: SectionIndex, items: Iterable[ItemMeta]) -> List[ItemMeta]:
    out: List[ItemMeta] = []
    for item in items:
        fresh = index.items.get(getattr(item, "id", None))  # type: ignore[arg-type]
        if fresh is not None and fresh not in out:
            out.append(fresh)
    return out


def build_plan(
    store: Store,
    course_id: int,
    action: str,
    items: Iterable[ItemMeta],
    *,
    target: Optional[int] = None,
    target_course_id: Optional[int] = None,
    keep_original_section: bool = False,
    visible_on_page: Optional[bool] = None,
    amount: Optional[int] = None,
    filters: Sequence[SectionFilter] = (),
) -> Tuple[Plan, SectionIndex]:
    """Snapshot `course_id` and plan `action`; no store writes happen here."""
    index = build_index(store, course_id)
    selected = _current(index, items)

    if action in INDENT_DEFAULTS:
        plan = planner.plan_indent(
            index, selected, INDENT_DEFAULTS[action] if amount is None else amount, action=action
        )
    elif action == "hide":
        plan = planner.plan_visibility(index, selected, False, action=action)
    elif action == "show":
        plan = planner.plan_visibility(index, selected, True, visible_on_page, action=action)
    elif action == "make-available":
        plan = planner.plan_visibility(index, selected, True, False, action=action)
    elif action == "move-to":
        plan = planner.plan_move_to(index, selected, target, filters=filters, action=action)
    elif action == "duplicate":
        plan = planner.plan_duplicate(index, selected, action=action)
    elif action == "duplicate-to":
        target_index = None
        if target_course_id is not None and target_course_id != course_id and selected:
            try:
                target_index = build_index(store, target_course_id)
            except StoreError as e:
                raise InvalidTarget(f"target course {target_course_id} is not available: {e}", action=action) from e
        plan = planner.plan_duplicate_to(
            index,
            selected,
            target,
            target_index=target_index,
            keep_original_section=keep_original_section,
            filters=filters,
            action=action,
        )
    elif action == "delete":
        plan = planner.plan_delete(index, selected, action=action)
    else:
        raise ValueError(f"unknown action {action!r}")

    get_logger(action=action, course_id=course_id).debug(
        "planned %d step(s) for %d item(s)", len(plan.steps), len(plan.item_ids)
    )
    return plan, index


def execute(
    store: Store,
    plan: Plan,
    index: SectionIndex,
    *,
    deletion_queue: Optional[DeletionQueue] = None,
    result: Optional[BatchResult] = None,
) -> BatchResult:
    return apply_plan(plan, store, index=index, deletion_queue=deletion_queue, result=result)


# ----------------------- one function per action -----------------------

def adjust_indentation(store: Store, course_id: int, items: Iterable[ItemMeta], amount: int) -> BatchResult:
    action = "move-left" if amount < 0 else "move-right"
    plan, index = build_plan(store, course_id, action, items, amount=amount)
    return execute(store, plan, index)


def set_visibility(
    store: Store,
    course_id: int,
    items: Iterable[ItemMeta],
    visible: bool,
    visible_on_page: Optional[bool] = None,
) -> BatchResult:
    action = "show" if visible else "hide"
    plan, index = build_plan(store, course_id, action, items, visible_on_page=visible_on_page)
    return execute(store, plan, index)


def move_to(
    store: Store,
    course_id: int,
    items: Iterable[ItemMeta],
    target: int,
    *,
    filters: Sequence[SectionFilter] = (),
) -> BatchResult:
    plan, index = build_plan(store, course_id, "move-to", items, target=target, filters=filters)
    return execute(store, plan, index)


def duplicate(store: Store, course_id: int, items: Iterable[ItemMeta]) -> BatchResult:
    plan, index = build_plan(store, course_id, "duplicate", items)
    return execute(store, plan, index)


def duplicate_to(
    store: Store,
    course_id: int,
    items: Iterable[ItemMeta],
    target: Optional[int] = None,
    *,
    target_course_id: Optional[int] = None,
    keep_original_section: bool = False,
    filters: Sequence[SectionFilter] = (),
) -> BatchResult:
    plan, index = build_plan(
        store,
        course_id,
        "duplicate-to",
        items,
        target=target,
        target_course_id=target_course_id,
        keep_original_section=keep_original_section,
        filters=filters,
    )
    return execute(store, plan, index)


def delete(store: Store, course_id: int, items: Iterable[ItemMeta], deletion_queue: DeletionQueue) -> BatchResult:
    plan, index = build_plan(store, course_id, "delete", items)
    return execute(store, plan, index, deletion_queue=deletion_queue)
