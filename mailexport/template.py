"""
File name patterns.

A pattern is literal text with ``%Name%`` or ``%Name|Format%`` placeholders::

    "%ReceivedTime|yyyy-MM-dd% %SenderName% - %Subject|40%"

``Format`` is either a number, the maximum length of the value (leading
whitespace removed first, trailing whitespace removed after the cut), or a
format specification for the field's type. Since ``%`` delimits
placeholders, dates take a token layout (``yyyy MM dd HH mm ss`` and
friends) that is translated to ``strftime``; other values go through
``format()``, e.g. ``%Size|,%``. Enumerated fields expand to their short
symbolic name, so ``%Class%`` gives ``Mail`` and ``%Sensitivity%`` gives
``Private``.
"""

import re
from typing import Set

from .enums import symbolic_name
from .validation import get_field

DEFAULT_PATTERN = "%SenderName% - %Subject%"

PLACEHOLDER_RE = re.compile(r"%([A-Za-z_][A-Za-z0-9_]*)(?:\|([^%]*))?%")
LENGTH_FORMAT_RE = re.compile(r"[0-9]+")

DATE_TOKENS = {
    'yyyy': '%Y', 'yy': '%y',
    'MMMM': '%B', 'MMM': '%b', 'MM': '%m',
    'dddd': '%A', 'ddd': '%a', 'dd': '%d',
    'HH': '%H', 'hh': '%I', 'mm': '%M', 'ss': '%S', 'tt': '%p',
}
DATE_TOKEN_RE = re.compile('|'.join(sorted(DATE_TOKENS, key=len, reverse=True)))


def referenced_fields(pattern: str) -> Set[str]:
    """Return the names of all fields a pattern refers to"""
    return {match.group(1) for match in PLACEHOLDER_RE.finditer(pattern)}


def expand(pattern: str, record) -> str:
    """
    Expand every placeholder of ``pattern`` against ``record``.

    Placeholders are replaced left to right; a ``%`` that does not open a
    complete placeholder stays in the output. Raises MissingFieldError if a
    referenced field is absent, callers validate the record against
    referenced_fields() first.
    """
    def replace(match):
        field, fmt = match.group(1), match.group(2)
        return format_value(field, get_field(record, field), fmt)
    return PLACEHOLDER_RE.sub(replace, pattern)


def format_value(field: str, value, fmt: str = None) -> str:
    """Render a single field value the way a placeholder does"""
    if value is None:
        return ""
    name = symbolic_name(field, value)
    if name is not None:
        value = name
    elif isinstance(value, bytes):
        value = value.decode('utf-8', errors='replace')

    if not fmt:
        return str(value)
    if LENGTH_FORMAT_RE.fullmatch(fmt):
        return str(value).lstrip()[:int(fmt)].rstrip()
    if hasattr(value, 'strftime'):
        return value.strftime(date_layout_to_strftime(fmt))
    try:
        return format(value, fmt)
    except (TypeError, ValueError):
        return str(value)


def date_layout_to_strftime(layout: str) -> str:
    """Translate a ``yyyy-MM-dd HH.mm`` style layout to strftime codes"""
    return DATE_TOKEN_RE.sub(lambda m: DATE_TOKENS[m.group(0)], layout)
