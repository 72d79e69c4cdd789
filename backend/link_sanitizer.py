import re
from urllib.parse import urlsplit

SAFE_URL = "#"
ALLOWED_SCHEMES = {"http", "https", "mailto", "tel"}

_HAS_SCHEME = re.compile(r'^[a-zA-Z][a-zA-Z0-9+.-]*:')
# URL parsers drop tab and newline anywhere and C0 controls or spaces at the ends.
_TAB_OR_NEWLINE = re.compile(r'[\t\r\n]')
_C0_OR_SPACE = "".join(chr(code) for code in range(0x21))
_C0_CONTROL = re.compile(r'[\x00-\x1f\x7f]')
_MARKDOWN_LINK = re.compile(r'\[([^\]]+)\]\(([^)]+)\)')
# Hidden plan payload the advisor appends to replies; never shown to students.
_PLAN_MARKER = re.compile(r'<!--SEMESTERPLAN:.*?-->', re.DOTALL)


def sanitize_url(raw: str) -> str:
    """
    Returns the URL unchanged when it is relative or uses an allowed scheme
    (http, https, mailto, tel). Anything else, e.g. 'javascript:alert(1)',
    becomes '#'. Blank input also becomes '#'.

    Tabs and newlines are removed and surrounding control characters trimmed
    before the scheme is read, the same way a browser would, so
    'java\tscript:alert(1)' is still caught.
    """
    url = _TAB_OR_NEWLINE.sub("", raw or "").strip(_C0_OR_SPACE)
    if not url or _C0_CONTROL.search(url):
        return SAFE_URL
    if not _HAS_SCHEME.match(url):
        return url
    try:
        scheme = urlsplit(url).scheme.lower()
    except ValueError:
        return SAFE_URL
    if scheme in ALLOWED_SCHEMES:
        return url
    return SAFE_URL


def strip_plan_markers(text: str) -> str:
    return _PLAN_MARKER.sub("", text or "").strip()


def sanitize_markdown_links(text: str) -> str:
    """Rewrites every [label](url) so its target passes sanitize_url()."""
    return _MARKDOWN_LINK.sub(
        lambda m: f"[{m.group(1)}]({sanitize_url(m.group(2))})",
        text or "",
    )


def clean_markdown(text: str) -> str:
    return sanitize_markdown_links(strip_plan_markers(text))
