# utils/pagination.py
from __future__ import annotations
from typing import Any, Dict, List

from utils.api import CanvasAPI


def get_list(api: CanvasAPI, endpoint: str) -> List[Dict[str, Any]]:
    """
    Thin wrapper that defers pagination to CanvasAPI.get().
    Returns a list (empty if server returned an object by mistake).
    """
    data = api.get(endpoint)
    return data if isinstance(data, list) else []


def get_object(api: CanvasAPI, endpoint: str) -> Dict[str, Any]:
    """
    Return a single JSON object, or {} if server returned a list.
    """
    data = api.get(endpoint)
    return data if isinstance(data, dict) else {}


def _position_key(obj: Dict[str, Any]):
    pos = obj.get("position") if obj.get("position") is not None else 999_999
    return (pos, obj.get("id") or 0)


def list_modules(api: CanvasAPI, course_id: int) -> List[Dict[str, Any]]:
    """Course modules in display order (position, then id)."""
    return sorted(get_list(api, f"/courses/{course_id}/modules"), key=_position_key)


def list_module_items(api: CanvasAPI, course_id: int, module_id: int) -> List[Dict[str, Any]]:
    """Items of one module in display order (position, then id)."""
    return sorted(get_list(api, f"/courses/{course_id}/modules/{module_id}/items"), key=_position_key)


def get_course(api: CanvasAPI, course_id: int) -> Dict[str, Any]:
    return get_object(api, f"/courses/{course_id}")
