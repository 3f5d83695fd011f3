# stores/deletion.py
from __future__ import annotations

from collections import deque
from typing import Deque, Dict, List

from logging_setup import get_logger
from models import DeletionCommand
from massaction.errors import StoreError
from stores.base import Store


class InMemoryDeletionQueue:
    """
    FIFO of pending deletions.

    The batch only enqueues; purging happens later, when whoever owns the
    queue calls drain(). Items stay flagged deletion_in_progress until then.
    """

    def __init__(self) -> None:
        self._pending: Deque[DeletionCommand] = deque()

    def enqueue(self, command: DeletionCommand) -> None:
        self._pending.append(command)

    @property
    def pending(self) -> List[DeletionCommand]:
        return list(self._pending)

    def __len__(self) -> int:
        return len(self._pending)

    def drain(self, store: Store) -> Dict[str, int]:
        """
        Purge every queued item through store.delete_item().
        A failing command is logged and dropped; the rest still run.
        """
        counters = {"deleted": 0, "failed": 0}
        while self._pending:
            cmd = self._pending.popleft()
            log = get_logger(action="delete", course_id=cmd.course_id, item_id=cmd.item_id)
            try:
                store.delete_item(cmd.course_id, cmd.item_id)
            except StoreError as e:
                counters["failed"] += 1
                log.error("delete failed: %s", e)
                continue
            counters["deleted"] += 1
            log.debug("deleted")
        return counters
