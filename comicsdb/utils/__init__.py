"""
Utility modules for Comics DB.
"""
from comicsdb.utils.text import (
    decode_html_entities,
    encode_html_entities,
    format_issue_number,
)

__all__ = [
    "decode_html_entities",
    "encode_html_entities",
    "format_issue_number",
]
