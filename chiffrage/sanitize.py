# chiffrage/sanitize.py
"""Light clean-up of user entered text before it is stored."""

import re

from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE

TITLE_MAX = 500
DESCRIPTION_MAX = 1000

_UNSAFE = re.compile(r'[<>"\'`]')
_SPACES = re.compile(r'\s+')


def strip_control(value) -> str:
    """Drop C0 control characters (other than tab/newline/CR), which no worksheet can hold."""
    return ILLEGAL_CHARACTERS_RE.sub('', str(value)) if value else ''


def sanitize_text(value, max_length: int = TITLE_MAX) -> str:
    """Strip tag/script delimiters and control characters, collapse whitespace, trim and cap the length."""
    if not value:
        return ''
    cleaned = _UNSAFE.sub('', strip_control(value))
    cleaned = _SPACES.sub(' ', cleaned).strip()
    return cleaned[:max_length]
