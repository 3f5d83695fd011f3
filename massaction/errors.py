# massaction/errors.py
from __future__ import annotations

from typing import Any, Dict, Optional, Sequence


class MassActionError(Exception):
    """Base for every error a batch reports back to its caller."""

    def __init__(self, message: str, *, action: Optional[str] = None, item_id: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.action = action
        self.item_id = item_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "action": self.action,
            "item_id": self.item_id,
        }


class MalformedPayload(MassActionError):
    """The request payload could not be decoded; nothing was applied."""


class InvalidTarget(MassActionError):
    """Target section/course was filtered out, is missing, or may not be created."""


class PolicyViolation(MassActionError):
    """A section filter broke the filter contract (added sections, disabled a same-course flag)."""


class StoreWriteFailure(MassActionError):
    """
    A store write failed mid-batch. Steps before the failure stay applied.
    `applied` lists item ids already mutated, `pending` the ones never attempted.
    """

    def __init__(
        self,
        message: str,
        *,
        action: Optional[str] = None,
        item_id: Optional[int] = None,
        applied: Sequence[int] = (),
        pending: Sequence[int] = (),
    ) -> None:
        super().__init__(message, action=action, item_id=item_id)
        self.applied = list(applied)
        self.pending = list(pending)

    def to_dict(self) -> Dict[str, Any]:
        out = super().to_dict()
        out["applied"] = list(self.applied)
        out["pending"] = list(self.pending)
        return out


class StoreError(RuntimeError):
    """Raised by store implementations when a read or write cannot be honoured."""
