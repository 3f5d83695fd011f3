# massaction/applier.py
from __future__ import annotations

from dataclasses import replace
from typing import List, Optional, Tuple

from logging_setup import get_logger
from models import (
    BatchResult,
    CopyItem,
    CreateSection,
    DeleteItem,
    DeletionCommand,
    Plan,
    PlanStep,
    UpdateItem,
    WriteSequence,
)
from massaction.errors import StoreError, StoreWriteFailure
from massaction.index import SectionIndex
from stores.base import DeletionQueue, Store


def step_item_ids(step: PlanStep) -> Tuple[int, ...]:
    """Selected item ids a step mutates (empty for section creation)."""
    if isinstance(step, UpdateItem):
        return (step.item_id,)
    if isinstance(step, WriteSequence):
        return step.touched
    if isinstance(step, CopyItem):
        return (step.source_item_id,)
    if isinstance(step, DeleteItem):
        return (step.item_id,)
    return ()


def is_section_change(step: PlanStep) -> bool:
    """A move is only done once the target sequence lists the item."""
    return isinstance(step, UpdateItem) and "section" in step.changes


def describe_step(step: PlanStep) -> str:
    if isinstance(step, UpdateItem):
        return f"update item={step.item_id} changes={step.changes}"
    if isinstance(step, WriteSequence):
        return f"write section={step.section} sequence={list(step.item_ids)}"
    if isinstance(step, CopyItem):
        text = f"copy item={step.source_item_id} to course={step.course_id} section={step.section}"
        return f"{text} changes={step.changes}" if step.changes else text
    if isinstance(step, CreateSection):
        return f"create section={step.number} in course={step.course_id}"
    return f"delete item={step.item_id}"


def apply_plan(
    plan: Plan,
    store: Store,
    *,
    index: SectionIndex,
    deletion_queue: Optional[DeletionQueue] = None,
    result: Optional[BatchResult] = None,
) -> BatchResult:
    """
    Execute `plan` step by step, in plan order.

    Stops at the first store failure and raises StoreWriteFailure naming the
    failing item, the items already mutated and the ones never attempted.
    Applied steps are not rolled back. A moved item counts as applied only
    after the write listing it in its target section.
    """
    log = get_logger(action=plan.action, course_id=plan.course_id)
    result = result or BatchResult(action=plan.action, course_id=plan.course_id, item_ids=list(plan.item_ids))
    if any(isinstance(s, DeleteItem) for s in plan.steps) and deletion_queue is None:
        raise ValueError("deletion steps need a deletion queue")

    applied: List[int] = []
    moving: Optional[int] = None

    def _mark(ids: Tuple[int, ...]) -> None:
        for iid in ids:
            if iid not in applied:
                applied.append(iid)

    for n, step in enumerate(plan.steps, start=1):
        log.debug("step %d/%d: %s", n, len(plan.steps), describe_step(step))
        try:
            if isinstance(step, UpdateItem):
                store.update_item(replace(index.items[step.item_id], **step.changes))
            elif isinstance(step, WriteSequence):
                store.write_sequence(step.course_id, step.section, step.item_ids)
            elif isinstance(step, CopyItem):
                source = index.items[step.source_item_id]
                created = store.create_item(replace(
                    source,
                    course_id=step.course_id,
                    section=step.section,
                    name=step.name,
                    deletion_in_progress=False,
                    **step.changes,
                ))
                result.created_items.append(created.id)
            elif isinstance(step, CreateSection):
                section = store.create_section(step.course_id, step.number, step.name)
                result.created_sections.append(section.number)
            elif isinstance(step, DeleteItem):
                store.mark_deleting(step.course_id, step.item_id)
                deletion_queue.enqueue(DeletionCommand(step.course_id, step.item_id))  # type: ignore[union-attr]
                result.enqueued_deletions.append(step.item_id)
        except StoreError as e:
            ids = step_item_ids(step)
            failing = ids[0] if ids else moving
            pending = [iid for iid in plan.item_ids if iid not in applied and iid not in ids and iid != failing]
            result.applied = list(applied)
            result.steps = n - 1
            log.for_item(failing).error(
                "store write failed at step %d/%d (%s): %s; applied=%s pending=%s",
                n, len(plan.steps), describe_step(step), e, applied, pending,
            )
            raise StoreWriteFailure(
                f"{plan.action} failed at step {n}: {e}",
                action=plan.action,
                item_id=failing,
                applied=applied,
                pending=pending,
            ) from e

        if is_section_change(step):
            moving = step.item_id  # type: ignore[union-attr]
            continue
        done = step_item_ids(step)
        if moving in done:
            moving = None
        _mark(done)

    result.applied = list(applied)
    result.steps = len(plan.steps)
    return result
