import json
from datetime import datetime, timedelta, timezone

import pytest
from conversation_export import (
    ExportFormatError,
    export_as_json,
    export_as_markdown,
    export_as_text,
    export_conversation,
    export_filename,
)

NOW = datetime(2026, 10, 19, 14, 5)


@pytest.fixture
def messages():
    return [
        {"id": "1", "role": "user", "content": "Hi", "timestamp": "2026-10-19T09:03:00"},
        {"id": "2", "role": "assistant", "content": "Hello", "timestamp": datetime(2026, 10, 19, 13, 30)},
    ]


class TestExportAsMarkdown:
    def test_layout(self, messages):
        expected = (
            "# Plan\n\n"
            "*Exported on October 19, 2026 at 2:05 PM*\n\n"
            "---\n\n"
            "### 👤 **You** *9:03 AM*\n\n"
            "Hi\n\n"
            "---\n\n"
            "### 🤖 **hubAI** *1:30 PM*\n\n"
            "Hello\n\n"
            "---\n\n"
        )
        assert export_as_markdown(messages, "Plan", now=NOW) == expected

    def test_default_title(self, messages):
        out = export_as_markdown(messages, now=NOW)
        assert out.startswith("# AI Conversation - 2026-10-19 14:05\n\n")

    def test_unsafe_links_and_plan_markers_removed(self):
        msgs = [{
            "role": "assistant",
            "content": "Open [this](javascript:steal)\n<!--SEMESTERPLAN:{}-->",
            "timestamp": "2026-10-19T10:00:00",
        }]
        out = export_as_markdown(msgs, "t", now=NOW)
        assert "[this](#)" in out
        assert "SEMESTERPLAN" not in out

    def test_midnight_and_noon_clock(self):
        msgs = [
            {"role": "user", "content": "a", "timestamp": "2026-10-19T00:07:00"},
            {"role": "user", "content": "b", "timestamp": "2026-10-19T12:00:00"},
        ]
        out = export_as_markdown(msgs, "t", now=NOW)
        assert "*12:07 AM*" in out
        assert "*12:00 PM*" in out

    def test_clock_uses_utc_for_aware_timestamps(self):
        msgs = [
            {"role": "user", "content": "a", "timestamp": "2026-10-19T09:03:00"},
            {"role": "user", "content": "b", "timestamp": "2026-10-19T11:03:00+02:00"},
        ]
        out = export_as_markdown(msgs, "t", now=NOW)
        assert out.count("*9:03 AM*") == 2


class TestExportAsText:
    def test_layout(self, messages):
        expected = (
            "Plan\n"
            "====\n\n"
            "Exported on October 19, 2026 at 2:05 PM\n\n"
            "[9:03 AM] You:\n"
            "Hi\n\n"
            "[1:30 PM] hubAI:\n"
            "Hello\n\n"
        )
        assert export_as_text(messages, "Plan", now=NOW) == expected

    def test_underline_matches_default_title(self, messages):
        lines = export_as_text(messages, now=NOW).splitlines()
        assert lines[0] == "AI Conversation - 2026-10-19 14:05"
        assert lines[1] == "=" * len(lines[0])


class TestExportAsJson:
    def test_fields(self, messages):
        data = json.loads(export_as_json(messages, "Plan", now=NOW))
        assert data["title"] == "Plan"
        assert data["exportedAt"] == "2026-10-19T14:05:00.000Z"
        assert data["messageCount"] == 2
        assert data["messages"][0] == {
            "role": "user",
            "content": "Hi",
            "timestamp": "2026-10-19T09:03:00.000Z",
        }
        assert data["messages"][1]["timestamp"] == "2026-10-19T13:30:00.000Z"

    def test_mixed_naive_and_aware_timestamps_normalized_to_utc(self):
        msgs = [
            {"role": "user", "content": "a", "timestamp": "2026-10-19T09:03:00"},
            {"role": "user", "content": "b", "timestamp": "2026-10-19T11:03:00+02:00"},
            {"role": "user", "content": "c", "timestamp": "2026-10-19T09:03:00.250Z"},
            {"role": "user", "content": "d", "timestamp": datetime(2026, 10, 19, 4, 3, tzinfo=timezone(timedelta(hours=-5)))},
        ]
        data = json.loads(export_as_json(msgs, "t", now=datetime(2026, 10, 19, 16, 5, tzinfo=timezone(timedelta(hours=2)))))
        assert data["exportedAt"] == "2026-10-19T14:05:00.000Z"
        assert [m["timestamp"] for m in data["messages"]] == [
            "2026-10-19T09:03:00.000Z",
            "2026-10-19T09:03:00.000Z",
            "2026-10-19T09:03:00.250Z",
            "2026-10-19T09:03:00.000Z",
        ]

    def test_content_verbatim(self):
        msgs = [{"role": "assistant", "content": "Ünïcode <!--SEMESTERPLAN:{}-->", "timestamp": "2026-10-19T10:00:00"}]
        out = export_as_json(msgs, "t", now=NOW)
        assert "Ünïcode" in out
        assert json.loads(out)["messages"][0]["content"] == "Ünïcode <!--SEMESTERPLAN:{}-->"

    def test_empty_conversation(self):
        data = json.loads(export_as_json([], now=NOW))
        assert data["messageCount"] == 0
        assert data["messages"] == []


class TestExportFilename:
    def test_unsafe_characters_replaced(self):
        assert export_filename("markdown", "My plan: fall/2026!", now=NOW) == "My_plan__fall_2026__2026-10-19.md"

    def test_default_title(self):
        assert export_filename("text", now=NOW) == "conversation_2026-10-19.txt"

    def test_title_truncated(self):
        name = export_filename("json", "a" * 80, now=NOW)
        assert name == "a" * 50 + "_2026-10-19.json"

    def test_date_taken_in_utc(self):
        late_evening_in_new_york = datetime(2026, 10, 19, 21, 0, tzinfo=timezone(timedelta(hours=-4)))
        assert export_filename("text", "Plan", now=late_evening_in_new_york) == "Plan_2026-10-20.txt"

    def test_unknown_format(self):
        with pytest.raises(ExportFormatError):
            export_filename("pdf", now=NOW)


class TestExportConversation:
    @pytest.mark.parametrize("fmt,extension,mime", [
        ("markdown", "md", "text/markdown"),
        ("md", "md", "text/markdown"),
        ("text", "txt", "text/plain"),
        ("json", "json", "application/json"),
    ])
    def test_formats(self, messages, fmt, extension, mime):
        body, filename, mime_type = export_conversation(messages, fmt, "Plan", now=NOW)
        assert filename == f"Plan_2026-10-19.{extension}"
        assert mime_type == mime
        assert "Hello" in body

    def test_unknown_format_raises(self, messages):
        with pytest.raises(ExportFormatError):
            export_conversation(messages, "docx", now=NOW)

    def test_bad_timestamp_raises_value_error(self):
        msgs = [{"role": "user", "content": "x", "timestamp": "not a date"}]
        with pytest.raises(ValueError):
            export_conversation(msgs, "text", now=NOW)
