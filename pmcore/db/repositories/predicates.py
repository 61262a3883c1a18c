"""
WHERE-clause builder with owned placeholder numbering.

The builder hands out numbered named binds (``:p1``, ``:p2``, ...) and keeps
the bound values in the same order, so the placeholder ``:pN`` always refers
to ``params[N - start]``. Search predicates, exact-match filters and trailing
LIMIT/OFFSET values are all allocated from one builder; callers never do
index arithmetic themselves.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple

from sqlalchemy import bindparam
from sqlalchemy.sql.elements import BindParameter
from sqlalchemy.types import TypeEngine

from pmcore.db.errors import ValidationError

ALLOWED_OPERATORS = frozenset({"=", "!=", "<", "<=", ">", ">="})
LIKE_ESCAPE = "\\"

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")


def is_absent(value: Any) -> bool:
    """A filter value is absent when it is None or the empty string.

    Falsy but meaningful values (``0``, ``"0"``, ``False``) are present.
    """
    return value is None or (isinstance(value, str) and value == "")


def check_identifier(name: str) -> str:
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise ValidationError(f"Invalid column identifier: {name!r}")
    return name


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so the term matches literally."""
    return (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


@dataclass(frozen=True)
class BoundValue:
    name: str
    value: Any
    type_: Optional[TypeEngine] = None

    def as_bindparam(self) -> BindParameter:
        return bindparam(self.name, self.value, type_=self.type_)


@dataclass(frozen=True)
class Predicate:
    """A composed boolean fragment (without the WHERE keyword) and its values."""

    sql: str
    params: Tuple[BoundValue, ...] = ()
    next_index: int = 1

    @property
    def where(self) -> str:
        return f"WHERE {self.sql}" if self.sql else ""

    @property
    def values(self) -> List[Any]:
        return [p.value for p in self.params]

    def bindparams(self) -> List[BindParameter]:
        return [p.as_bindparam() for p in self.params]


@dataclass
class PredicateBuilder:
    start: int = 1
    prefix: str = "p"
    _fragments: List[str] = field(default_factory=list, init=False)
    _params: List[BoundValue] = field(default_factory=list, init=False)

    @property
    def next_index(self) -> int:
        return self.start + len(self._params)

    @property
    def params(self) -> Tuple[BoundValue, ...]:
        return tuple(self._params)

    def bind(self, value: Any, type_: Optional[TypeEngine] = None) -> str:
        """Append one bound value and return its placeholder text."""
        name = f"{self.prefix}{self.next_index}"
        self._params.append(BoundValue(name, value, type_))
        return f":{name}"

    def add_predicate(self, column: str, op: str, value: Any, type_: Optional[TypeEngine] = None) -> bool:
        """AND a ``column op value`` comparison; absent values add nothing."""
        check_identifier(column)
        if op not in ALLOWED_OPERATORS:
            raise ValidationError(f"Unsupported operator: {op!r}")
        if is_absent(value):
            return False
        placeholder = self.bind(value, type_)
        self._fragments.append(f"{column} {op} {placeholder}")
        return True

    def add_search(self, columns: Sequence[str], term: Optional[str]) -> bool:
        """AND a case-insensitive substring match ORed across ``columns``."""
        if is_absent(term) or not columns:
            return False
        # Both sides are folded by the database so they share one notion of case
        pattern = f"%{escape_like(str(term))}%"
        clauses = []
        for column in columns:
            check_identifier(column)
            placeholder = self.bind(pattern)
            clauses.append(f"LOWER({column}) LIKE LOWER({placeholder}) ESCAPE '{LIKE_ESCAPE}'")
        self._fragments.append("(" + " OR ".join(clauses) + ")")
        return True

    def build(self) -> Predicate:
        return Predicate(
            sql=" AND ".join(self._fragments),
            params=tuple(self._params),
            next_index=self.next_index,
        )
