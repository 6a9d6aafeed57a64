"""Expression tree for rule-table predicates and value expressions.

Column references may leave their role (table alias) unbound; the emitter
binds them to whichever copy of the rule table is being rendered, so one
restriction can be applied to the grouping scan, the primary row and the
duplicate row alike.
"""

from dataclasses import dataclass
from typing import Any, Optional


class Expr:
    """Base class for expression nodes."""

    def bind(self, role: str) -> "Expr":
        """Return a copy with every unbound column attached to ``role``."""
        return self


@dataclass(frozen=True)
class Field(Expr):
    name: str
    role: Optional[str] = None

    def bind(self, role: str) -> "Field":
        if self.role is not None:
            return self
        return Field(self.name, role)


@dataclass(frozen=True)
class Param(Expr):
    """A literal value, always emitted as a bound placeholder."""

    value: Any
    sql_type: Optional[str] = None


@dataclass(frozen=True)
class Prefix(Expr):
    """First ``length`` characters of ``expr``."""

    expr: Expr
    length: int

    def bind(self, role: str) -> "Prefix":
        return Prefix(self.expr.bind(role), self.length)


@dataclass(frozen=True)
class AsText(Expr):
    """``expr`` compared as text, whatever the column type."""

    expr: Expr

    def bind(self, role: str) -> "AsText":
        return AsText(self.expr.bind(role))


@dataclass(frozen=True)
class Compare(Expr):
    op: str
    left: Expr
    right: Expr

    def bind(self, role: str) -> "Compare":
        return Compare(self.op, self.left.bind(role), self.right.bind(role))


@dataclass(frozen=True)
class And(Expr):
    items: tuple[Expr, ...]

    def bind(self, role: str) -> "And":
        return And(tuple(item.bind(role) for item in self.items))


@dataclass(frozen=True)
class InList(Expr):
    expr: Expr
    values: tuple[Any, ...]

    def bind(self, role: str) -> "InList":
        return InList(self.expr.bind(role), self.values)


@dataclass(frozen=True)
class NotEmpty(Expr):
    """Value is neither NULL nor the empty string."""

    expr: Expr

    def bind(self, role: str) -> "NotEmpty":
        return NotEmpty(self.expr.bind(role))


@dataclass(frozen=True)
class DateAfter(Expr):
    """Value parses as a date strictly after ``sentinel``."""

    expr: Expr
    sentinel: Any

    def bind(self, role: str) -> "DateAfter":
        return DateAfter(self.expr.bind(role), self.sentinel)


@dataclass(frozen=True)
class Func(Expr):
    name: str
    args: tuple[Expr, ...]

    def bind(self, role: str) -> "Func":
        return Func(self.name, tuple(arg.bind(role) for arg in self.args))


@dataclass(frozen=True)
class CountAll(Expr):
    pass


@dataclass(frozen=True)
class CountWhere(Expr):
    """Number of grouped rows satisfying ``predicate``."""

    predicate: Expr

    def bind(self, role: str) -> "CountWhere":
        return CountWhere(self.predicate.bind(role))


def _wrap(value: Any) -> Expr:
    return value if isinstance(value, Expr) else Param(value)


def eq(left: Any, right: Any) -> Compare:
    return Compare("=", _wrap(left), _wrap(right))


def ne(left: Any, right: Any) -> Compare:
    return Compare("<>", _wrap(left), _wrap(right))


def gt(left: Any, right: Any) -> Compare:
    return Compare(">", _wrap(left), _wrap(right))


def and_(*items: Optional[Expr]) -> Optional[Expr]:
    """Conjunction of the non-empty items, flattening nested ANDs."""
    flat: list[Expr] = []
    for item in items:
        if item is None:
            continue
        if isinstance(item, And):
            flat.extend(item.items)
        else:
            flat.append(item)
    if not flat:
        return None
    if len(flat) == 1:
        return flat[0]
    return And(tuple(flat))
