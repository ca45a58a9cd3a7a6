"""
Parsers for the two string mini-languages of the query builder.

Projection (``select``):

    *
    id, username, avatar_url
    *, users:user_id(id, username, avatar_url)

    Items are separated by top-level commas; whitespace and newlines are
    ignored. At most one ``relation:foreign_key(fields)`` item is honoured.

Disjunction (``or_``):

    email.eq.alice@example.com,username.eq.alice
    id.in.(u1,u2),status.neq.banned

    Clauses are ``field.op.value`` with op one of eq, neq, in. Values are
    raw strings; a value that opens with a double quote runs to the quote
    closing it before a comma, so it may embed commas. Quotes elsewhere in
    a value are literal.
    ``in`` takes a parenthesized list. Unrecognized clauses are dropped.
"""

import logging
import re
from typing import List, Optional, Sequence, Union

from .ast import Projection, RelationSpec
from .expr import Or, Predicate, condition

logger = logging.getLogger(__name__)

_RELATION_RE = re.compile(r'^(\w+)\s*:\s*(\w+)\s*\((.*)\)$', re.DOTALL)
_CLAUSE_RE = re.compile(r'^(\w+)\.(eq|neq|in)\.(.+)$', re.DOTALL)
_CLAUSE_HEAD_RE = re.compile(r'\s*(\w+)\.(eq|neq|in)\.\s*')
_LIST_SEP_RE = re.compile(r'[,)]')


def split_top_level(s: str, sep: str = ',') -> List[str]:
    """Split on ``sep`` outside parentheses and double quotes."""
    items = []
    current = []
    depth = 0
    in_quotes = False

    for char in s:
        if char == '"':
            in_quotes = not in_quotes
            current.append(char)
        elif in_quotes:
            current.append(char)
        elif char == '(':
            depth += 1
            current.append(char)
        elif char == ')':
            depth = max(depth - 1, 0)
            current.append(char)
        elif char == sep and depth == 0:
            items.append(''.join(current).strip())
            current = []
        else:
            current.append(char)

    if current:
        items.append(''.join(current).strip())

    return [item for item in items if item]


def _unquote(s: str) -> str:
    s = s.strip()
    if len(s) >= 2 and s.startswith('"') and s.endswith('"'):
        return s[1:-1]
    return s


def _group_end(s: str, pos: int, close: str, followers: str) -> int:
    """
    Index just past the ``close`` character that ends a grouped value.

    Only a ``close`` followed (after whitespace) by the end of the string or
    one of ``followers`` counts. Returns -1 when there is none, in which case
    the opening character is taken literally.
    """
    end = s.find(close, pos)
    while end != -1:
        rest = s[end + 1:].lstrip()
        if not rest or rest[0] in followers:
            return end + 1
        end = s.find(close, end + 1)
    return -1


def _skip_space(s: str, pos: int) -> int:
    while pos < len(s) and s[pos].isspace():
        pos += 1
    return pos


def _list_end(s: str, pos: int) -> int:
    """Index just past the ``)`` closing an in-list whose body starts at ``pos``, else -1."""
    while pos < len(s):
        pos = _skip_space(s, pos)
        if s.startswith('"', pos):
            end = _group_end(s, pos + 1, '"', ',)')
            if end != -1:
                pos = end
        match = _LIST_SEP_RE.search(s, pos)
        if match is None:
            return -1
        pos = match.end()
        if match.group() == ')':
            rest = s[pos:].lstrip()
            if not rest or rest.startswith(','):
                return pos
    return -1


def split_values(s: str) -> List[str]:
    """Split an in-list body on commas; a value opening with a quote may embed commas."""
    items = []
    pos = 0
    while pos <= len(s):
        start = pos
        pos = _skip_space(s, pos)
        if s.startswith('"', pos):
            end = _group_end(s, pos + 1, '"', ',')
            if end != -1:
                pos = end
        comma = s.find(',', pos)
        if comma == -1:
            comma = len(s)
        items.append(s[start:comma].strip())
        pos = comma + 1
    return [item for item in items if item]


def split_clauses(s: str) -> List[str]:
    """
    Split an ``or_`` argument into clauses.

    Quotes and parentheses group only where they open a clause value, so a
    stray ``"`` or ``(`` inside a raw value never swallows later clauses.
    """
    items = []
    pos = 0
    while pos <= len(s):
        start = pos
        head = _CLAUSE_HEAD_RE.match(s, pos)
        if head:
            pos = head.end()
            end = -1
            if head.group(2) == 'in' and s.startswith('(', pos):
                end = _list_end(s, pos + 1)
            elif s.startswith('"', pos):
                end = _group_end(s, pos + 1, '"', ',')
            if end != -1:
                pos = end
        comma = s.find(',', pos)
        if comma == -1:
            comma = len(s)
        items.append(s[start:comma].strip())
        pos = comma + 1
    return [item for item in items if item]


# =============================================================================
# Projection
# =============================================================================

def parse_relation(item: str) -> Optional[RelationSpec]:
    """Parse ``table:fk(f1, f2)``; None if the item is not of that form."""
    match = _RELATION_RE.match(item.strip())
    if not match:
        return None
    table, fk, inner = match.groups()
    fields = [f.strip() for f in inner.split(',') if f.strip()]
    return RelationSpec(table=table, foreign_key=fk, fields=fields or ['*'])


def parse_projection(columns: Union[str, Sequence[str], None] = '*') -> Projection:
    """
    Parse a ``select`` argument into a Projection.

    A string with both ``(`` and ``:`` carries a relation expansion;
    anything else is a plain field list or ``*``. A projection that only
    names a relation keeps all base fields.
    """
    if columns is None:
        return Projection()
    if not isinstance(columns, str):
        columns = ','.join(columns)

    text = ' '.join(columns.split())
    if not text:
        return Projection()

    if '(' not in text or ':' not in text:
        fields = [f.strip() for f in text.split(',') if f.strip()]
        return Projection(fields=fields or ['*'])

    fields = []
    relation: Optional[RelationSpec] = None

    for item in split_top_level(text):
        if '(' in item:
            parsed = parse_relation(item)
            if parsed is None:
                logger.debug(f"Dropping unsupported projection item: {item!r}")
            elif relation is not None:
                logger.debug(f"Only one relation expansion is supported, dropping {item!r}")
            else:
                relation = parsed
        else:
            fields.append(item)

    return Projection(fields=fields or ['*'], relation=relation)


# =============================================================================
# Disjunction
# =============================================================================

def parse_clause(clause: str) -> Optional[Predicate]:
    """Parse one ``field.op.value`` clause; None if malformed."""
    match = _CLAUSE_RE.match(clause.strip())
    if not match:
        return None

    field_name, op, raw = match.groups()

    if op == 'in':
        raw = raw.strip()
        if raw.startswith('(') and raw.endswith(')'):
            raw = raw[1:-1]
        values = [_unquote(v) for v in split_values(raw)]
        return condition(field_name, op, values)

    return condition(field_name, op, _unquote(raw))


def parse_or(conditions: str) -> Optional[Or]:
    """
    Parse an ``or_`` argument into an Or group.

    Returns None when no clause could be parsed, in which case the call is
    ignored altogether.
    """
    parsed = []
    for clause in split_clauses(conditions or ''):
        pred = parse_clause(clause)
        if pred is None:
            logger.debug(f"Dropping malformed or() clause: {clause!r}")
            continue
        parsed.append(pred)

    if not parsed:
        return None
    return Or(conditions=parsed)
