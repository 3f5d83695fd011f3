# logging_setup.py
from __future__ import annotations

import logging
import logging.config
from typing import Any, Optional

LOGGER_NAME = "massaction"

# context every batch record carries; "-" when not bound
CONTEXT_KEYS = ("course_id", "action", "item_id")


class DefaultContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        for key in CONTEXT_KEYS:
            if getattr(record, key, None) is None:
                setattr(record, key, "-")
        return True


def setup_logging(verbosity: int = 1) -> None:
    """
    Configure the batch logger.
    - INFO by default, DEBUG when verbosity >= 2
    - Every line names the course, the action and (when bound) the item, so a
      failed batch can be traced to the item that stopped it.
    """
    level = logging.DEBUG if verbosity >= 2 else logging.INFO

    fmt = (
        "%(asctime)s %(levelname)s "
        "course=%(course_id)s action=%(action)s item=%(item_id)s "
        "%(message)s"
    )

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"batch": {"format": fmt}},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "batch",
                "level": level,
                "filters": ["batch_context"],
            }
        },
        "loggers": {
            LOGGER_NAME: {"handlers": ["console"], "level": level, "propagate": False}
        },
        "filters": {
            "batch_context": {"()": "logging_setup.DefaultContextFilter"}
        },
    })


class BatchLogger(logging.LoggerAdapter):
    """
    Adapter bound to one batch (action + course). Caller extras never clobber
    the bound context; keys that collide with LogRecord attributes are renamed
    to meta_<key>.
    """

    _RESERVED = {
        "name", "msg", "args", "levelname", "levelno", "pathname", "filename", "module", "lineno", "funcName",
        "created", "asctime", "msecs", "relativeCreated", "thread", "threadName", "processName", "process",
        "exc_info", "exc_text", "stack_info", "stacklevel", "message", "taskName",
    }

    def process(self, msg: str, kwargs: Any):
        extra = dict(self.extra)
        for k, v in (kwargs.get("extra") or {}).items():
            key = f"meta_{k}" if k in self._RESERVED else k
            if key not in extra:
                extra[key] = v
        kwargs["extra"] = extra
        return msg, kwargs

    def for_item(self, item_id: Optional[int]) -> "BatchLogger":
        """Same batch context, narrowed to one item."""
        return BatchLogger(self.logger, extra={**self.extra, "item_id": item_id})



def get_logger(*, action: str, course_id: Any, item_id: Optional[int] = None) -> BatchLogger:
    """
    Create a logger bound to action + course_id (and optionally one item).
    Usage:
        log = get_logger(action="move-to", course_id=101)
        log.info("planned batch", extra={"item_ids": [2, 5]})
        log.for_item(5).error("write failed")
    """
    base = logging.getLogger(LOGGER_NAME)
    return BatchLogger(base, extra={"action": action, "course_id": course_id, "item_id": item_id})
