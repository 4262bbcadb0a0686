"""
Text helpers for values stored by the admin tooling.

Names in cdb_* tables are stored with a handful of HTML entities already
applied (the admin forms escaped on input). Only this fixed set is ever
produced, so decoding is a literal replacement rather than a full HTML
unescape; a name that legitimately contains "&copy;" stays untouched.
"""
from typing import Optional

# Order matters for decoding: &amp; last so "&amp;quot;" decodes one level only.
_ENTITIES = [
    ("&#39;", "'"),
    ("&#x27;", "'"),
    ("&quot;", '"'),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&nbsp;", " "),
    ("&#x2F;", "/"),
    ("&amp;", "&"),
]

_ENCODE = [
    ("&", "&amp;"),
    ("'", "&#39;"),
    ('"', "&quot;"),
    ("<", "&lt;"),
    (">", "&gt;"),
]


def decode_html_entities(text: Optional[str]) -> str:
    if not text:
        return ""
    for entity, char in _ENTITIES:
        text = text.replace(entity, char)
    return text


def encode_html_entities(text: Optional[str]) -> str:
    """Inverse of decode_html_entities for the characters the admin forms escape."""
    if not text:
        return ""
    for char, entity in _ENCODE:
        text = text.replace(char, entity)
    return text


def format_issue_number(number) -> str:
    """1.0 -> "1", 1.5 -> "1.5", None -> ""."""
    if number is None:
        return ""
    try:
        value = float(number)
    except (TypeError, ValueError):
        return str(number)
    if value.is_integer():
        return str(int(value))
    return f"{value:g}"
