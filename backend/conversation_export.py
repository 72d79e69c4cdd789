import json
import re
from datetime import datetime, timezone

import pandas as pd

from link_sanitizer import clean_markdown, strip_plan_markers
from normalizer import normalize_format

ASSISTANT_NAME = "hubAI"
FILENAME_TITLE_MAX = 50

_FORMATS = {
    "markdown": ("md", "text/markdown"),
    "text": ("txt", "text/plain"),
    "json": ("json", "application/json"),
}
_UNSAFE_FILENAME_CHARS = re.compile(r'[^a-z0-9]', re.IGNORECASE)


class ExportFormatError(ValueError):
    pass


def _to_utc(value) -> datetime:
    """
    Accepts datetime, pandas Timestamp or ISO-8601 string and returns an
    aware UTC datetime. Naive values are taken to already be UTC.
    """
    ts = pd.Timestamp(value)
    if ts.tzinfo is None:
        ts = ts.tz_localize("UTC")
    else:
        ts = ts.tz_convert("UTC")
    return ts.to_pydatetime()


def _now_utc(now: datetime | None) -> datetime:
    return _to_utc(now) if now is not None else datetime.now(timezone.utc)


def _iso_utc(dt: datetime) -> str:
    # Millisecond precision with a 'Z' suffix: '2026-10-19T09:03:00.000Z'
    return f"{dt:%Y-%m-%dT%H:%M:%S}.{dt.microsecond // 1000:03d}Z"


def _clock(dt: datetime) -> str:
    # 12-hour clock without a leading zero: '9:05 AM'
    hour = dt.hour % 12 or 12
    suffix = "AM" if dt.hour < 12 else "PM"
    return f"{hour}:{dt.minute:02d} {suffix}"


def _long_date(dt: datetime) -> str:
    return f"{dt:%B} {dt.day}, {dt.year} at {_clock(dt)}"


def default_title(now: datetime) -> str:
    return f"AI Conversation - {now:%Y-%m-%d %H:%M}"


def export_as_markdown(messages: list[dict], title: str | None = None, now: datetime | None = None) -> str:
    now = _now_utc(now)
    conversation_title = title or default_title(now)

    parts = [
        f"# {conversation_title}\n\n",
        f"*Exported on {_long_date(now)}*\n\n",
        "---\n\n",
    ]
    for message in messages:
        role = "👤 **You**" if message["role"] == "user" else f"🤖 **{ASSISTANT_NAME}**"
        time = _clock(_to_utc(message["timestamp"]))
        parts.append(f"### {role} *{time}*\n\n")
        parts.append(f"{clean_markdown(message['content'])}\n\n")
        parts.append("---\n\n")

    return "".join(parts)


def export_as_text(messages: list[dict], title: str | None = None, now: datetime | None = None) -> str:
    now = _now_utc(now)
    conversation_title = title or default_title(now)

    parts = [
        f"{conversation_title}\n",
        f"{'=' * len(conversation_title)}\n\n",
        f"Exported on {_long_date(now)}\n\n",
    ]
    for message in messages:
        role = "You" if message["role"] == "user" else ASSISTANT_NAME
        time = _clock(_to_utc(message["timestamp"]))
        parts.append(f"[{time}] {role}:\n")
        parts.append(f"{strip_plan_markers(message['content'])}\n\n")

    return "".join(parts)


def export_as_json(messages: list[dict], title: str | None = None, now: datetime | None = None) -> str:
    """Full-fidelity export: content is kept verbatim, timestamps as UTC ISO-8601."""
    now = _now_utc(now)
    data = {
        "title": title or default_title(now),
        "exportedAt": _iso_utc(now),
        "messageCount": len(messages),
        "messages": [
            {
                "role": m["role"],
                "content": m["content"],
                "timestamp": _iso_utc(_to_utc(m["timestamp"])),
            }
            for m in messages
        ],
    }
    return json.dumps(data, indent=2, ensure_ascii=False)


def export_filename(fmt: str, title: str | None = None, now: datetime | None = None) -> str:
    """
    Builds a download filename such as 'Thesis_planning_2026-10-19.md'.
    Non-alphanumeric title characters become '_' and the title part is capped
    at FILENAME_TITLE_MAX characters.
    """
    canonical = normalize_format(fmt)
    if canonical is None:
        raise ExportFormatError(f"Unsupported export format: {fmt!r}")
    now = _now_utc(now)
    safe_title = _UNSAFE_FILENAME_CHARS.sub("_", title or "conversation")[:FILENAME_TITLE_MAX]
    extension, _ = _FORMATS[canonical]
    return f"{safe_title}_{now.date().isoformat()}.{extension}"


def export_conversation(
    messages: list[dict],
    fmt: str,
    title: str | None = None,
    now: datetime | None = None,
) -> tuple[str, str, str]:
    """
    Renders a conversation for download.

    Returns: (body, filename, mime_type)
    Raises ExportFormatError for anything other than markdown, text or json
    (aliases such as 'md' and 'txt' are accepted).
    """
    canonical = normalize_format(fmt)
    if canonical is None:
        raise ExportFormatError(f"Unsupported export format: {fmt!r}")
    now = _now_utc(now)

    if canonical == "markdown":
        body = export_as_markdown(messages, title, now)
    elif canonical == "text":
        body = export_as_text(messages, title, now)
    else:
        body = export_as_json(messages, title, now)

    _, mime_type = _FORMATS[canonical]
    return body, export_filename(canonical, title, now), mime_type
