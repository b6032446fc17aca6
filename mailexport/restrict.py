"""
Client-side restriction expressions.

Local stores (Maildir, mbox, in-memory folders) have no server to narrow a
folder's items, so the same kind of restriction string a mail client accepts
is evaluated here::

    [SenderEmailAddress] = 'bob@example.com' AND [ReceivedTime] >= '2024-01-01'
    NOT ([Importance] = 'Low' OR [UnRead] = True)

Comparisons on text are case-insensitive. Dates accept ISO and US layouts.
Enumerated fields compare by short name (``'High'``) or number.
"""

import re
from datetime import datetime
from typing import Callable, List, Tuple

from .enums import PREFIX_LENGTH, enum_for_field, symbolic_name
from .errors import RestrictionError
from .validation import get_field, has_field

TOKEN_RE = re.compile(r"""
    \s*(?:
      (?P<field>\[[^\]]+\])
    | (?P<op><>|<=|>=|=|<|>)
    | (?P<string>'(?:[^']|'')*'|"(?:[^"]|"")*")
    | (?P<number>-?\d+(?:\.\d+)?(?![\w.]))
    | (?P<paren>[()])
    | (?P<word>[A-Za-z_]+)
    )""", re.VERBOSE)

DATE_FORMATS = [
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%m/%d/%Y %I:%M %p",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y",
    "%d %b %Y",
]

OPERATORS = {
    '=': lambda a, b: a == b,
    '<>': lambda a, b: a != b,
    '<': lambda a, b: a < b,
    '>': lambda a, b: a > b,
    '<=': lambda a, b: a <= b,
    '>=': lambda a, b: a >= b,
}

Predicate = Callable[[object], bool]


def tokenize(expression: str) -> List[Tuple[str, str]]:
    tokens = []
    pos = 0
    expression = expression.rstrip()
    while pos < len(expression):
        match = TOKEN_RE.match(expression, pos)
        if not match or match.end() == pos:
            raise RestrictionError(f"Unexpected text at position {pos}: '{expression[pos:pos + 20]}'")
        kind = match.lastgroup
        tokens.append((kind, match.group(kind)))
        pos = match.end()
    return tokens


def compile_restriction(expression: str) -> Predicate:
    """Parse ``expression`` into a predicate over items"""
    parser = _Parser(tokenize(expression), expression)
    predicate = parser.parse_or()
    if parser.peek() is not None:
        raise RestrictionError(f"Unexpected '{parser.peek()[1]}' in restriction '{expression}'")
    return predicate


def parse_date(text: str) -> datetime:
    """Parse a date literal, trying each supported layout"""
    text = text.strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        raise ValueError(f"Could not parse date: '{text}'") from None


class _Parser:
    def __init__(self, tokens, expression):
        self.tokens = tokens
        self.expression = expression
        self.pos = 0

    def peek(self):
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def next(self):
        token = self.peek()
        if token is None:
            raise RestrictionError(f"Unexpected end of restriction '{self.expression}'")
        self.pos += 1
        return token

    def _keyword(self, word):
        token = self.peek()
        return token is not None and token[0] == 'word' and token[1].upper() == word

    def parse_or(self) -> Predicate:
        terms = [self.parse_and()]
        while self._keyword('OR'):
            self.next()
            terms.append(self.parse_and())
        if len(terms) == 1:
            return terms[0]
        return lambda item: any(term(item) for term in terms)

    def parse_and(self) -> Predicate:
        factors = [self.parse_not()]
        while self._keyword('AND'):
            self.next()
            factors.append(self.parse_not())
        if len(factors) == 1:
            return factors[0]
        return lambda item: all(factor(item) for factor in factors)

    def parse_not(self) -> Predicate:
        if self._keyword('NOT'):
            self.next()
            inner = self.parse_not()
            return lambda item: not inner(item)
        token = self.peek()
        if token is not None and token == ('paren', '('):
            self.next()
            inner = self.parse_or()
            if self.next() != ('paren', ')'):
                raise RestrictionError(f"Missing ')' in restriction '{self.expression}'")
            return inner
        return self.parse_comparison()

    def parse_comparison(self) -> Predicate:
        kind, text = self.next()
        if kind != 'field':
            raise RestrictionError(f"Expected [Field] but found '{text}' in restriction '{self.expression}'")
        field = text[1:-1].strip()

        kind, op = self.next()
        if kind != 'op':
            raise RestrictionError(f"Expected an operator after [{field}] but found '{op}'")

        kind, text = self.next()
        if kind == 'string':
            quote = text[0]
            literal = text[1:-1].replace(quote * 2, quote)
        elif kind == 'number':
            literal = float(text) if '.' in text else int(text)
        elif kind == 'word' and text.lower() in ('true', 'false'):
            literal = text.lower() == 'true'
        else:
            raise RestrictionError(f"Expected a value after [{field}] {op} but found '{text}'")

        return _Comparison(field, OPERATORS[op], literal)


class _Comparison:
    """A single ``[Field] op value`` test"""

    def __init__(self, field, compare, literal):
        self.field = field
        self.compare = compare
        self.literal = literal

    def __call__(self, item) -> bool:
        if not has_field(item, self.field):
            return False
        value = get_field(item, self.field)
        if value is None:
            return False
        try:
            left, right = self._coerce(value, self.literal)
            return self.compare(left, right)
        except (TypeError, ValueError):
            return False

    def _coerce(self, value, literal):
        enum = enum_for_field(self.field)
        if enum is not None and symbolic_name(self.field, value) is not None:
            if isinstance(literal, str):
                literal = _enum_value(enum, self.field, literal)
            return int(value), int(literal)
        if isinstance(value, bool):
            if isinstance(literal, str):
                literal = literal.strip().lower() in ('true', 'yes', '1')
            return value, bool(literal)
        if isinstance(value, datetime):
            right = literal if isinstance(literal, datetime) else parse_date(str(literal))
            # Compare naive datetimes, as the mail client does with local times
            return value.replace(tzinfo=None), right.replace(tzinfo=None)
        if isinstance(value, (int, float)):
            return value, float(literal)
        return str(value).lower(), str(literal).lower()


def _enum_value(enum, field: str, text: str) -> int:
    """
    Look up an enumeration member by name: ``olImportanceHigh``,
    ``ImportanceHigh`` and ``High`` all name the same member of [Importance].
    """
    wanted = text.strip().lower()
    for member in enum:
        short = member.name[PREFIX_LENGTH:]
        names = {member.name.lower(), short.lower()}
        if short.startswith(field):
            names.add(short[len(field):].lower())
        if wanted in names:
            return int(member)
    return int(wanted)
