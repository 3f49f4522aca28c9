"""
Structured predicates over ORM models.

A filter is an explicit list of ``Predicate`` objects combined with AND, so
any number of conditions can be chained and compiled into one SQLAlchemy
clause.
"""
import enum
from dataclasses import dataclass
from typing import Any, List, Tuple

from sqlalchemy import and_, true


class Operator(str, enum.Enum):
    EQ = "eq"
    NEQ = "neq"
    IS_NULL = "is_null"
    NOT_NULL = "not_null"
    IN = "in"
    NOT_IN = "not_in"
    LT = "lt"
    LTE = "lte"
    GT = "gt"
    GTE = "gte"


@dataclass(frozen=True)
class Predicate:
    field: str
    operator: Operator
    value: Any = None

    def compile(self, model):
        column = getattr(model, self.field, None)
        if column is None or not hasattr(column, "property"):
            raise ValueError(f"Unknown field '{self.field}' for {model.__name__}")

        op = Operator(self.operator)
        if op is Operator.EQ:
            return column == self.value
        if op is Operator.NEQ:
            return column != self.value
        if op is Operator.IS_NULL:
            return column.is_(None)
        if op is Operator.NOT_NULL:
            return column.is_not(None)
        if op is Operator.IN:
            return column.in_(list(self.value))
        if op is Operator.NOT_IN:
            return column.not_in(list(self.value))
        if op is Operator.LT:
            return column < self.value
        if op is Operator.LTE:
            return column <= self.value
        if op is Operator.GT:
            return column > self.value
        return column >= self.value


class DocumentFilter:
    """Chainable builder over a list of predicates.

    >>> DocumentFilter().eq("status", "pending").is_null("provider_file_handle")
    """

    def __init__(self, predicates: List[Predicate] | None = None):
        self._predicates: List[Predicate] = list(predicates or [])

    def where(self, field: str, operator: Operator | str, value: Any = None) -> "DocumentFilter":
        self._predicates.append(Predicate(field, Operator(operator), value))
        return self

    def eq(self, field: str, value: Any) -> "DocumentFilter":
        return self.where(field, Operator.EQ, value)

    def is_null(self, field: str) -> "DocumentFilter":
        return self.where(field, Operator.IS_NULL)

    def in_(self, field: str, values) -> "DocumentFilter":
        return self.where(field, Operator.IN, tuple(values))

    @property
    def predicates(self) -> Tuple[Predicate, ...]:
        return tuple(self._predicates)

    def compile(self, model):
        """Compile all predicates into a single AND clause."""
        if not self._predicates:
            return true()
        return and_(*(p.compile(model) for p in self._predicates))

    def __repr__(self) -> str:
        parts = [f"{p.field} {p.operator.value} {p.value!r}" for p in self._predicates]
        return f"DocumentFilter({' AND '.join(parts) or 'all'})"
