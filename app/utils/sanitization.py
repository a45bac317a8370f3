import re
from typing import Optional

import bleach

# Markdown stays markdown; any raw HTML is reduced to this safe subset
ALLOWED_RICH_TEXT_TAGS = [
    "p",
    "br",
    "strong",
    "em",
    "u",
    "a",
    "ul",
    "ol",
    "li",
    "h1",
    "h2",
    "h3",
    "h4",
    "blockquote",
    "code",
    "pre",
]
ALLOWED_RICH_TEXT_ATTRIBUTES = {"a": ["href", "title"]}

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


def strip_control_chars(value: Optional[str]) -> Optional[str]:
    """Remove non-printable control characters, keeping tabs and newlines"""
    if value is None or not isinstance(value, str):
        return value
    return _CONTROL_CHARS.sub("", value)


def sanitize_rich_text(value: Optional[str]) -> Optional[str]:
    """Clean user-authored markdown/HTML with bleach before it is stored"""
    if value is None:
        return None
    cleaned = bleach.clean(
        strip_control_chars(value),
        tags=ALLOWED_RICH_TEXT_TAGS,
        attributes=ALLOWED_RICH_TEXT_ATTRIBUTES,
        protocols=["http", "https", "mailto"],
        strip=True,
    )
    # bleach escapes markdown blockquote markers; restore them
    return cleaned.replace("&gt;", ">").replace("&amp;", "&")
