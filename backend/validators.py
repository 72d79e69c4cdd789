"""
Pure request-body validation helpers for the JSON endpoints.
No Flask imports. Validators return (error_code, message) on invalid input
and (None, None) on success.
"""

import math
from typing import Optional, Tuple

VALID_ROLES = ("user", "assistant")
MAX_SNAP_SIBLINGS = 500
MAX_MESSAGES = 2000

_RECT_FIELDS = ("x", "y", "width", "height")

Validation = Tuple[Optional[str], Optional[str]]


def _is_number(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def parse_rect(raw) -> Optional[dict]:
    """
    Returns {"x", "y", "width", "height"} as numbers, or None when `raw` is not
    a mapping of four finite numbers with non-negative width and height.
    """
    if not isinstance(raw, dict):
        return None
    rect = {}
    for field in _RECT_FIELDS:
        value = raw.get(field)
        if not _is_number(value):
            return None
        rect[field] = value
    if rect["width"] < 0 or rect["height"] < 0:
        return None
    return rect


def validate_snap_body(body) -> Validation:
    if not isinstance(body, dict):
        return "INVALID_INPUT", "Request body must be valid JSON."
    if parse_rect(body.get("current")) is None:
        return "INVALID_INPUT", (
            "'current' must have numeric x, y, width and height "
            "(width and height >= 0)."
        )
    others = body.get("others", [])
    if not isinstance(others, list):
        return "INVALID_INPUT", "'others' must be a list of rectangles."
    if len(others) > MAX_SNAP_SIBLINGS:
        return "INVALID_INPUT", f"'others' may hold at most {MAX_SNAP_SIBLINGS} rectangles."
    for i, other in enumerate(others):
        if parse_rect(other) is None:
            return "INVALID_INPUT", f"others[{i}] is not a valid rectangle."
    threshold = body.get("threshold")
    if threshold is not None and (not _is_number(threshold) or threshold < 0):
        return "INVALID_INPUT", "'threshold' must be a non-negative number."
    return None, None


def validate_messages(raw) -> Validation:
    if not isinstance(raw, list):
        return "INVALID_INPUT", "'messages' must be a list."
    if len(raw) > MAX_MESSAGES:
        return "INVALID_INPUT", f"'messages' may hold at most {MAX_MESSAGES} entries."
    for i, message in enumerate(raw):
        if not isinstance(message, dict):
            return "INVALID_INPUT", f"messages[{i}] must be an object."
        if message.get("role") not in VALID_ROLES:
            return "INVALID_INPUT", f"messages[{i}].role must be 'user' or 'assistant'."
        if not isinstance(message.get("content"), str):
            return "INVALID_INPUT", f"messages[{i}].content must be a string."
    return None, None


def validate_search_body(body) -> Validation:
    if not isinstance(body, dict):
        return "INVALID_INPUT", "Request body must be valid JSON."
    code, msg = validate_messages(body.get("messages", []))
    if code:
        return code, msg
    if not isinstance(body.get("query", ""), str):
        return "INVALID_INPUT", "'query' must be a string."
    active_index = body.get("active_index", 0)
    if isinstance(active_index, bool) or not isinstance(active_index, int) or active_index < 0:
        return "INVALID_INPUT", "'active_index' must be a non-negative integer."
    if body.get("step") not in (None, "", "next", "prev"):
        return "INVALID_INPUT", "'step' must be 'next' or 'prev'."
    return None, None


def validate_export_body(body) -> Validation:
    if not isinstance(body, dict):
        return "INVALID_INPUT", "Request body must be valid JSON."
    code, msg = validate_messages(body.get("messages", []))
    if code:
        return code, msg
    for i, message in enumerate(body.get("messages", [])):
        timestamp = message.get("timestamp")
        if not timestamp:
            return "INVALID_INPUT", f"messages[{i}].timestamp is required for export."
        if not isinstance(timestamp, str):
            return "INVALID_INPUT", f"messages[{i}].timestamp must be an ISO-8601 string."
    title = body.get("title")
    if title is not None and not isinstance(title, str):
        return "INVALID_INPUT", "'title' must be a string."
    return None, None
