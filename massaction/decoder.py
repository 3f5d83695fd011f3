# massaction/decoder.py
from __future__ import annotations

import json
from typing import Any, Dict, List, Mapping, Optional, Union

from models import ACTIONS, BatchRequest, ItemMeta, ResolvedSelection
from massaction.errors import MalformedPayload
from stores.base import Store

Payload = Union[str, bytes, bytearray, Mapping[str, Any]]


def _parse(payload: Payload) -> Dict[str, Any]:
    if isinstance(payload, Mapping):
        data: Any = dict(payload)
    else:
        if isinstance(payload, (bytes, bytearray)):
            try:
                payload = payload.decode("utf-8")
            except UnicodeDecodeError as e:
                raise MalformedPayload(f"payload is not UTF-8: {e}") from e
        if not isinstance(payload, str) or not payload.strip():
            raise MalformedPayload("empty payload")
        try:
            data = json.loads(payload)
        except ValueError as e:
            raise MalformedPayload(f"payload is not valid JSON: {e}") from e

    if not isinstance(data, dict) or not data:
        raise MalformedPayload("payload must be a non-empty JSON object")
    return data


def _optional_int(data: Dict[str, Any], key: str, action: str) -> Optional[int]:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool):
        raise MalformedPayload(f"{key} must be an integer", action=action)
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise MalformedPayload(f"{key} must be an integer, got {value!r}", action=action)


def _optional_bool(data: Dict[str, Any], key: str, action: str) -> Optional[bool]:
    value = data.get(key)
    if value is None or isinstance(value, bool):
        return value
    if value in (0, 1):
        return bool(value)
    raise MalformedPayload(f"{key} must be a boolean, got {value!r}", action=action)


def decode_payload(payload: Payload) -> BatchRequest:
    """
    Parse {"action": ..., "itemIds": [...], ...} into a BatchRequest.

    Optional keys: target, targetCourseId, keepOriginalSection, visibleOnPage,
    amount. Raises MalformedPayload; never touches a store.
    """
    data = _parse(payload)

    action = data.get("action")
    if not isinstance(action, str) or action not in ACTIONS:
        raise MalformedPayload(f"unknown action {action!r}; expected one of {', '.join(ACTIONS)}")

    if "itemIds" not in data:
        raise MalformedPayload("itemIds is missing", action=action)
    raw_ids = data["itemIds"]
    if not isinstance(raw_ids, list):
        raise MalformedPayload("itemIds must be a list", action=action)
    for raw in raw_ids:
        if isinstance(raw, bool) or not isinstance(raw, (int, str)):
            raise MalformedPayload(f"item id {raw!r} is neither an integer nor a string", action=action)

    target = _optional_int(data, "target", action)
    keep_original = bool(_optional_bool(data, "keepOriginalSection", action))
    if action == "move-to" and target is None:
        raise MalformedPayload("move-to needs a target section", action=action)
    if action == "duplicate-to" and target is None and not keep_original:
        raise MalformedPayload("duplicate-to needs a target section or keepOriginalSection", action=action)

    return BatchRequest(
        action=action,
        item_ids=tuple(raw_ids),
        target=target,
        target_course_id=_optional_int(data, "targetCourseId", action),
        keep_original_section=keep_original,
        visible_on_page=_optional_bool(data, "visibleOnPage", action),
        amount=_optional_int(data, "amount", action),
    )


def coerce_item_id(raw: Union[int, str]) -> Optional[int]:
    if isinstance(raw, int):
        return raw
    text = raw.strip()
    return int(text) if text.isdigit() else None


def resolve_items(request: BatchRequest, store: Store, course_id: int) -> ResolvedSelection:
    """
    Look every requested id up among the items of `course_id`.

    Ids that do not resolve (unknown, not numeric, another course) are dropped
    without failing the batch; they are reported back in `dropped`. Repeated
    ids are collapsed to their first occurrence.
    """
    known = store.list_items(course_id)
    items: List[ItemMeta] = []
    dropped: List[Union[int, str]] = []
    seen = set()
    for raw in request.item_ids:
        iid = coerce_item_id(raw)
        item = known.get(iid) if iid is not None else None
        if item is None:
            dropped.append(raw)
            continue
        if iid in seen:
            continue
        seen.add(iid)
        items.append(item)
    return ResolvedSelection(request=request, items=tuple(items), dropped=tuple(dropped))


def decode(payload: Payload, store: Store, course_id: int) -> ResolvedSelection:
    return resolve_items(decode_payload(payload), store, course_id)
