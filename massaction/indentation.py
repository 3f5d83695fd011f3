# massaction/indentation.py
from __future__ import annotations

from dataclasses import replace
from typing import Iterable, List, Tuple

from models import ItemMeta, MAX_INDENT

VALID_AMOUNTS = (1, -1)


def clamp_indent(current: int, amount: int, *, max_indent: int = MAX_INDENT) -> int:
    """New depth for `current + amount`, kept inside [0, max_indent]."""
    if amount not in VALID_AMOUNTS:
        return current
    return max(0, min(max_indent, current + amount))


def adjust_indentation(
    items: Iterable[ItemMeta],
    amount: int,
    *,
    max_indent: int = MAX_INDENT,
) -> List[Tuple[ItemMeta, bool]]:
    """
    Shift every item one level left (-1) or right (+1).

    Returns (item, applied) pairs in input order; `item` is the updated record
    when applied, else the untouched one. Any amount other than +1/-1 leaves
    the whole set alone, as does a shift that would leave the depth range.
    """
    out: List[Tuple[ItemMeta, bool]] = []
    for item in items:
        new_indent = clamp_indent(item.indent, amount, max_indent=max_indent)
        if new_indent == item.indent:
            out.append((item, False))
        else:
            out.append((replace(item, indent=new_indent), True))
    return out
