# massaction/planner.py
"""
Mutation planner.

Every planner first puts the selection into section order (ascending section
number, then position inside the section's stored sequence) and only then
applies its own logic. The output is a Plan: an ordered tuple of steps the
applier executes one by one. Planning never writes to the store, so target
validation errors (InvalidTarget) always surface before any mutation.
"""
from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

from models import (
    COPY_SUFFIX,
    CopyItem,
    CreateSection,
    DeleteItem,
    ItemMeta,
    Plan,
    PlanStep,
    UpdateItem,
    WriteSequence,
)
from massaction.errors import InvalidTarget
from massaction.index import SectionIndex
from massaction.indentation import adjust_indentation
from massaction.section_filter import (
    ANOTHER_COURSE,
    SAME_COURSE,
    SectionFilter,
    SectionFilterHook,
    filter_sections,
)


def _plan(action: str, index: SectionIndex, ordered: Sequence[ItemMeta], steps: Iterable[PlanStep],
          target_course_id: Optional[int] = None) -> Plan:
    return Plan(
        action=action,
        course_id=index.course_id,
        item_ids=tuple(i.id for i in ordered),
        steps=tuple(steps),
        target_course_id=target_course_id,
    )


def copy_name(item: ItemMeta) -> str:
    return f"{item.name}{COPY_SUFFIX}"


def copy_item(item: ItemMeta, dest: SectionIndex, section: int) -> CopyItem:
    """A copy into a course without stealth cannot stay off the course page."""
    changes = {}
    if item.visible and not item.visible_on_page and not dest.course.allow_stealth:
        changes["visible_on_page"] = True
    return CopyItem(item.id, dest.course_id, section, copy_name(item), changes)


def resolve_target_section(
    hook: SectionFilterHook,
    dest: SectionIndex,
    target: Optional[int],
    *,
    action: str,
    allow_create: bool,
) -> Tuple[int, List[CreateSection]]:
    """
    Check `target` against the filtered candidates of `dest`.

    Returns the section number the items land in plus any section that has to
    be created first. A number past the last section means "new section" and
    resolves to the next free number.
    """
    if target is None or target < 0:
        raise InvalidTarget(f"invalid target section {target!r}", action=action)
    if target in hook.sections:
        return target, []
    if dest.has_section(target):
        raise InvalidTarget(
            f"section {target} of course {dest.course_id} is not available as a target",
            action=action,
        )
    if not allow_create or not hook.create_new_section_allowed:
        raise InvalidTarget(
            f"course {dest.course_id} has no section {target} and creating one is not allowed",
            action=action,
        )
    number = dest.next_section_number()
    return number, [CreateSection(dest.course_id, number)]


# ----------------------- per action -----------------------

def plan_indent(index: SectionIndex, items: Iterable[ItemMeta], amount: int, *, action: str = "move-right") -> Plan:
    ordered = index.order_items(items)
    steps = [
        UpdateItem(updated.id, {"indent": updated.indent})
        for updated, applied in adjust_indentation(ordered, amount)
        if applied
    ]
    return _plan(action, index, ordered, steps)


def plan_visibility(
    index: SectionIndex,
    items: Iterable[ItemMeta],
    visible: bool,
    visible_on_page: Optional[bool] = None,
    *,
    action: str = "show",
) -> Plan:
    """
    Hidden always means hidden on the course page too. Available but not shown
    on the page is only kept when the course allows stealth; otherwise the
    item is shown on the page. Items already in the resulting state get no step.
    """
    ordered = index.order_items(items)
    allow_stealth = index.course.allow_stealth
    if not visible:
        on_page = False
    elif visible_on_page is False and allow_stealth:
        on_page = False
    else:
        on_page = True

    steps: List[PlanStep] = []
    for item in ordered:
        changes = {}
        if item.visible != visible:
            changes["visible"] = visible
        if item.visible_on_page != on_page:
            changes["visible_on_page"] = on_page
        if changes:
            steps.append(UpdateItem(item.id, changes))
    return _plan(action, index, ordered, steps)


def plan_move_to(
    index: SectionIndex,
    items: Iterable[ItemMeta],
    target: Optional[int],
    *,
    filters: Sequence[SectionFilter] = (),
    action: str = "move-to",
) -> Plan:
    """
    Items are moved one at a time: section update, source sequence without the
    item, target sequence with the item at its tail. Selected items already in
    the target section are moved to its tail with a single write. A failure
    between items leaves every earlier move complete.
    """
    ordered = index.order_items(items)
    if not ordered:
        return _plan(action, index, ordered, ())

    hook = filter_sections(index.course_id, index.sections, SAME_COURSE, filters)
    number, _ = resolve_target_section(hook, index, target, action=action, allow_create=False)

    staying = tuple(i.id for i in ordered if i.section == number)
    sequences = {n: index.sequence(n) for n in {i.section for i in ordered} | {number}}
    steps: List[PlanStep] = []
    for item in ordered:
        target_seq = sequences[number]
        if item.section == number:
            if item.id != staying[0]:
                continue
            new_target = tuple(i for i in target_seq if i not in staying) + staying
            if new_target != target_seq:
                steps.append(WriteSequence(index.course_id, number, new_target, touched=staying))
                sequences[number] = new_target
            continue
        sequences[item.section] = tuple(i for i in sequences[item.section] if i != item.id)
        sequences[number] = target_seq + (item.id,)
        steps.append(UpdateItem(item.id, {"section": number}))
        steps.append(WriteSequence(index.course_id, item.section, sequences[item.section]))
        steps.append(WriteSequence(index.course_id, number, sequences[number], touched=(item.id,)))

    return _plan(action, index, ordered, steps)


def plan_duplicate(index: SectionIndex, items: Iterable[ItemMeta], *, action: str = "duplicate") -> Plan:
    ordered = index.order_items(items)
    steps = [copy_item(item, index, item.section) for item in ordered]
    return _plan(action, index, ordered, steps)


def plan_duplicate_to(
    index: SectionIndex,
    items: Iterable[ItemMeta],
    target: Optional[int],
    *,
    target_index: Optional[SectionIndex] = None,
    keep_original_section: bool = False,
    filters: Sequence[SectionFilter] = (),
    action: str = "duplicate-to",
) -> Plan:
    """
    Copies land at the tail of the target section in section order of their
    sources. With `target_index` set to another course the filter scope is
    ANOTHER_COURSE, which is where `keep_original_section` applies: each copy
    goes to the section number of its source, missing sections being created.
    """
    ordered = index.order_items(items)
    dest = target_index or index
    if not ordered:
        return _plan(action, index, ordered, (), target_course_id=dest.course_id)

    scope = SAME_COURSE if dest.course_id == index.course_id else ANOTHER_COURSE
    hook = filter_sections(dest.course_id, dest.sections, scope, filters)

    if keep_original_section and scope == SAME_COURSE:
        # own section in own course is plain duplication
        return _plan(action, index, ordered, plan_duplicate(index, ordered).steps)

    steps: List[PlanStep] = []
    if keep_original_section:
        if not hook.keep_original_section_allowed:
            raise InvalidTarget(
                f"keeping the original section is not allowed for course {dest.course_id}",
                action=action,
            )
        needed = sorted({i.section for i in ordered})
        next_number = dest.next_section_number()
        for n in needed:
            if dest.has_section(n) and n not in hook.sections:
                raise InvalidTarget(
                    f"section {n} of course {dest.course_id} is not available as a target",
                    action=action,
                )
        if needed[-1] >= next_number:
            if not hook.create_new_section_allowed:
                raise InvalidTarget(
                    f"course {dest.course_id} lacks section {needed[-1]} and creating one is not allowed",
                    action=action,
                )
            steps.extend(CreateSection(dest.course_id, n) for n in range(next_number, needed[-1] + 1))
        steps.extend(copy_item(item, dest, item.section) for item in ordered)
    else:
        number, created = resolve_target_section(hook, dest, target, action=action, allow_create=True)
        steps.extend(created)
        steps.extend(copy_item(item, dest, number) for item in ordered)

    return _plan(action, index, ordered, steps, target_course_id=dest.course_id)


def plan_delete(index: SectionIndex, items: Iterable[ItemMeta], *, action: str = "delete") -> Plan:
    """Items already flagged for deletion are not enqueued a second time."""
    ordered = index.order_items(items)
    steps = [DeleteItem(item.id, index.course_id) for item in ordered if not item.deletion_in_progress]
    return _plan(action, index, ordered, steps)
