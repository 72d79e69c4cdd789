MIN_QUERY_LENGTH = 2

_FORMAT_ALIASES = {
    "markdown": "markdown",
    "md": "markdown",
    "text": "text",
    "txt": "text",
    "plain": "text",
    "json": "json",
}


def normalize_query(raw) -> str | None:
    """
    Trims a user-typed search query.
    Returns None if the query is missing or shorter than MIN_QUERY_LENGTH
    after trimming: '  ml ' -> 'ml', ' a ' -> None.
    """
    if not isinstance(raw, str):
        return None
    trimmed = raw.strip()
    if len(trimmed) < MIN_QUERY_LENGTH:
        return None
    return trimmed


def is_searchable(raw) -> bool:
    return normalize_query(raw) is not None


def normalize_format(raw) -> str | None:
    """
    Normalizes an export format name to one of: markdown, text, json.
    Handles: 'md', 'Markdown', ' TXT ', 'plain'.
    Returns None if the name is not a known export format.
    """
    if not raw or not str(raw).strip():
        return None
    return _FORMAT_ALIASES.get(str(raw).strip().lower())
