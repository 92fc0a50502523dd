"""
Free-text sanitization for user-supplied notes, comments and names.

Both functions are pure and total over strings. Output is a fixed point:
sanitizing an already-sanitized string returns it unchanged, so edits can be
re-sanitized safely.
"""
from __future__ import annotations

import re

import bleach

RICH_TEXT_TAGS = frozenset({"b", "i", "em", "strong", "a", "p", "br", "ul", "ol", "li"})
RICH_TEXT_ATTRIBUTES = ("href", "target")
RICH_TEXT_PROTOCOLS = frozenset({"https"})

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
# Content of these elements is never meaningful text.
_NON_TEXT_BLOCKS = re.compile(r"<(script|style|iframe|noscript)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
# Attribute values that would need quoting or escaping are dropped, so re-serializing a value never changes it.
_UNSAFE_ATTR_VALUE = re.compile(r"""[\s"'<>&`]""")
_MAX_PASSES = 8


def _allow_rich_attribute(tag: str, name: str, value: str) -> bool:
    return tag == "a" and name in RICH_TEXT_ATTRIBUTES and bool(value) and not _UNSAFE_ATTR_VALUE.search(value)


_plain_cleaner = bleach.Cleaner(tags=frozenset(), attributes={}, strip=True, strip_comments=True)
_rich_cleaner = bleach.Cleaner(
    tags=RICH_TEXT_TAGS,
    attributes=_allow_rich_attribute,
    protocols=RICH_TEXT_PROTOCOLS,
    strip=True,
    strip_comments=True,
)


def _settle(cleaner: bleach.Cleaner, text: str) -> str:
    # Stripping a tag can expose a new one ("<scr<b>ipt>"), so run to a fixed point.
    out = text
    for _ in range(_MAX_PASSES):
        nxt = cleaner.clean(_NON_TEXT_BLOCKS.sub("", _CONTROL_CHARS.sub("", out)))
        if nxt == out:
            break
        out = nxt
    return out


def sanitize_input(text: str) -> str:
    """Remove all markup. For titles, names, notes and comments."""
    if not text:
        return ""
    return _settle(_plain_cleaner, text)


def sanitize_rich_text(text: str) -> str:
    """Keep a small set of formatting tags; links must be https."""
    if not text:
        return ""
    return _settle(_rich_cleaner, text)
