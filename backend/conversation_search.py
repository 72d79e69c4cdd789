"""
In-conversation search for the AI advisor chat.

search_messages() is a pure scan over a message snapshot. SearchSession holds
the caller's query, results and focused match, and keeps the focused index in
range after every operation.
"""

from normalizer import is_searchable

SNIPPET_CONTEXT_CHARS = 50
ELLIPSIS = "..."
PREVIEW_LIMIT = 10


def _snippet_for(content: str, match_pos: int, match_len: int) -> tuple[str, int, int]:
    start = max(0, match_pos - SNIPPET_CONTEXT_CHARS)
    end = min(len(content), match_pos + match_len + SNIPPET_CONTEXT_CHARS)
    snippet = content[start:end]
    offset = match_pos - start

    if start > 0:
        snippet = ELLIPSIS + snippet
        offset += len(ELLIPSIS)
    if end < len(content):
        snippet = snippet + ELLIPSIS

    return snippet, offset, offset + match_len


def search_messages(messages: list[dict], query: str) -> list[dict]:
    """
    Finds every case-insensitive occurrence of `query` across message contents.

    The scan advances one character past each hit, so overlapping matches are
    all reported ("aa" in "aaa" -> offsets 0 and 1).

    Returns one dict per match, ordered by message then position:
      {
        "message_id":    "m-2",
        "message_index": 1,
        "role":          "assistant",
        "snippet":       "...like machine learning and...",
        "match_start":   8,     # offsets into snippet, not into content
        "match_end":     15
      }

    Offsets count Python code points. A character outside the BMP (most emoji)
    counts as 1 here but as 2 UTF-16 units in a browser string, so JavaScript
    callers must slice with Array.from(snippet) rather than snippet.slice().

    Queries shorter than MIN_QUERY_LENGTH once trimmed return [].
    """
    if not is_searchable(query):
        return []

    needle = query.lower()
    results: list[dict] = []

    for index, message in enumerate(messages):
        content = message.get("content") or ""
        haystack = content.lower()
        pos = haystack.find(needle)
        while pos != -1:
            snippet, match_start, match_end = _snippet_for(content, pos, len(needle))
            results.append({
                "message_id": message.get("id"),
                "message_index": index,
                "role": message.get("role"),
                "snippet": snippet,
                "match_start": match_start,
                "match_end": match_end,
            })
            pos = haystack.find(needle, pos + 1)

    return results


def highlight_parts(result: dict) -> tuple[str, str, str]:
    """Splits a result snippet into (before, match, after) for rendering."""
    snippet = result["snippet"]
    start = result["match_start"]
    end = result["match_end"]
    return snippet[:start], snippet[start:end], snippet[end:]


class SearchSession:
    """Caller-owned search state over one conversation."""

    def __init__(self, messages: list[dict] | None = None):
        self.messages: list[dict] = list(messages or [])
        self.is_open = False
        self.query = ""
        self.results: list[dict] = []
        self.active_index = 0

    def open(self) -> None:
        if self.is_open:
            self.active_index = 0
            return
        self.is_open = True
        self.query = ""
        self.results = []
        self.active_index = 0

    def close(self) -> None:
        self.is_open = False
        self.query = ""
        self.results = []
        self.active_index = 0

    def set_query(self, query: str) -> None:
        self.query = query
        self.results = search_messages(self.messages, query)
        self.active_index = 0

    def set_messages(self, messages: list[dict]) -> None:
        """Replaces the snapshot and recomputes; keeps focus if still in range."""
        self.messages = list(messages)
        self.results = search_messages(self.messages, self.query)
        if self.active_index >= len(self.results):
            self.active_index = 0

    def next_match(self) -> None:
        if not self.results:
            return
        self.active_index = (self.active_index + 1) % len(self.results)

    def prev_match(self) -> None:
        if not self.results:
            return
        self.active_index = (self.active_index - 1 + len(self.results)) % len(self.results)

    def go_to(self, index: int) -> None:
        if 0 <= index < len(self.results):
            self.active_index = index

    @property
    def result_count(self) -> int:
        return len(self.results)

    @property
    def has_results(self) -> bool:
        return bool(self.results)

    @property
    def active_result(self) -> dict | None:
        if not self.results:
            return None
        return self.results[self.active_index]

    def counter_label(self) -> str:
        if not self.results:
            return ""
        return f"{self.active_index + 1}/{len(self.results)}"

    def preview(self, limit: int = PREVIEW_LIMIT) -> tuple[list[dict], int]:
        """First `limit` results plus how many were left out."""
        shown = self.results[:limit]
        return shown, len(self.results) - len(shown)

