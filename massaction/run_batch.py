# massaction/run_batch.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from logging_setup import get_logger
from models import BatchResult, Plan, ResolvedSelection
from massaction.actions import build_plan, execute
from massaction.decoder import Payload, decode
from massaction.errors import MassActionError
from massaction.index import SectionIndex
from massaction.section_filter import SectionFilter
from stores.base import DeletionQueue, Store


@dataclass(frozen=True)
class PreparedBatch:
    selection: ResolvedSelection
    plan: Plan
    index: SectionIndex


def prepare_batch(
    payload: Payload,
    *,
    store: Store,
    course_id: int,
    filters: Sequence[SectionFilter] = (),
) -> PreparedBatch:
    """Decode, resolve and plan a batch without writing anything."""
    selection = decode(payload, store, course_id)
    req = selection.request
    log = get_logger(action=req.action, course_id=course_id)
    if selection.dropped:
        log.warning(
            "dropped %d unresolvable item id(s): %s",
            selection.dropped_count, list(selection.dropped),
            extra={"dropped": selection.dropped_count},
        )

    plan, index = build_plan(
        store,
        course_id,
        req.action,
        selection.items,
        target=req.target,
        target_course_id=req.target_course_id,
        keep_original_section=req.keep_original_section,
        visible_on_page=req.visible_on_page,
        amount=req.amount,
        filters=filters,
    )
    return PreparedBatch(selection=selection, plan=plan, index=index)


def run_batch(
    payload: Payload,
    *,
    store: Store,
    course_id: int,
    filters: Sequence[SectionFilter] = (),
    deletion_queue: Optional[DeletionQueue] = None,
) -> BatchResult:
    """
    One operator request end to end: decode the payload, snapshot the course,
    plan in section order and apply step by step.

    MalformedPayload and InvalidTarget leave the store untouched;
    StoreWriteFailure leaves the steps before the failure applied.
    """
    log = get_logger(action="batch", course_id=course_id)
    try:
        prepared = prepare_batch(payload, store=store, course_id=course_id, filters=filters)
    except MassActionError as e:
        log.error("batch rejected: %s", e)
        raise

    plan = prepared.plan
    result = BatchResult(
        action=plan.action,
        course_id=course_id,
        item_ids=list(plan.item_ids),
        dropped=list(prepared.selection.dropped),
    )
    log = get_logger(action=plan.action, course_id=course_id)
    if plan.is_noop:
        log.info("nothing to do for %d item(s)", len(plan.item_ids))
        return result

    try:
        execute(store, plan, prepared.index, deletion_queue=deletion_queue, result=result)
    except MassActionError:
        log.error("batch aborted after %d applied item(s)", len(result.applied))
        raise

    log.info(
        "batch complete. items=%d steps=%d created_items=%d created_sections=%d enqueued_deletions=%d dropped=%d",
        len(result.item_ids),
        result.steps,
        len(result.created_items),
        len(result.created_sections),
        len(result.enqueued_deletions),
        result.dropped_count,
    )
    return result
