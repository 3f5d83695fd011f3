# massaction/section_filter.py
"""
Section filter gate.

Before a batch moves or duplicates items into another section, the candidate
target sections are handed through a chain of filters. Each filter receives a
`SectionFilterHook` and returns a (possibly narrowed) one:

    def hide_last_section(hook):
        return hook.remove_section(max(hook.sections))

    result = filter_sections(101, [0, 1, 2, 3], SAME_COURSE, [hide_last_section])
    result.sections  # (0, 1, 2)

When the target course differs from the one holding the selected items,
filters may also switch off two options: keeping each item's original section
number, and creating a new section. Both switches are meaningless inside the
same course and raise PolicyViolation there.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable, Iterable, Sequence, Tuple

from logging_setup import get_logger
from massaction.errors import PolicyViolation

SAME_COURSE = "samecourse"
ANOTHER_COURSE = "anothercourse"
SCOPES = (SAME_COURSE, ANOTHER_COURSE)


@dataclass(frozen=True)
class SectionFilterHook:
    course_id: int
    original_sections: Tuple[int, ...]
    sections: Tuple[int, ...]
    scope: str
    keep_original_section_allowed: bool = True
    create_new_section_allowed: bool = True

    @classmethod
    def create(cls, course_id: int, section_numbers: Iterable[int], scope: str) -> "SectionFilterHook":
        if scope not in SCOPES:
            raise ValueError(f"scope must be one of {SCOPES}, got {scope!r}")
        nums = tuple(section_numbers)
        return cls(course_id=course_id, original_sections=nums, sections=nums, scope=scope)

    @property
    def is_another_course(self) -> bool:
        return self.scope == ANOTHER_COURSE

    def remove_section(self, number: int) -> "SectionFilterHook":
        if number not in self.sections:
            return self
        return replace(self, sections=tuple(n for n in self.sections if n != number))

    def disable_keep_original_section(self) -> "SectionFilterHook":
        if not self.is_another_course:
            raise PolicyViolation(
                "keeping the original section can only be disabled when the target course "
                "differs from the course holding the items"
            )
        return replace(self, keep_original_section_allowed=False)

    def disable_create_new_section(self) -> "SectionFilterHook":
        if not self.is_another_course:
            raise PolicyViolation(
                "creating a new section can only be disabled when the target course "
                "differs from the course holding the items"
            )
        return replace(self, create_new_section_allowed=False)


SectionFilter = Callable[[SectionFilterHook], SectionFilterHook]


def filter_sections(
    course_id: int,
    section_numbers: Sequence[int],
    scope: str,
    filters: Iterable[SectionFilter] = (),
) -> SectionFilterHook:
    """Fold `filters` left to right over the candidate sections of `course_id`."""
    log = get_logger(action="filter-sections", course_id=course_id)
    hook = SectionFilterHook.create(course_id, section_numbers, scope)
    for f in filters:
        before = hook
        hook = f(before)
        if not isinstance(hook, SectionFilterHook):
            raise PolicyViolation(f"section filter {f!r} did not return a SectionFilterHook")
        added = set(hook.sections) - set(before.sections)
        if added or hook.original_sections != before.original_sections or hook.scope != before.scope:
            raise PolicyViolation(
                f"section filter {f!r} may only remove sections (added {sorted(added)})"
            )
        if (hook.keep_original_section_allowed and not before.keep_original_section_allowed) or (
            hook.create_new_section_allowed and not before.create_new_section_allowed
        ):
            raise PolicyViolation(f"section filter {f!r} re-enabled a disabled option")

    removed = [n for n in hook.original_sections if n not in hook.sections]
    if removed:
        log.debug("sections vetoed by filters: %s", removed)
    return hook
