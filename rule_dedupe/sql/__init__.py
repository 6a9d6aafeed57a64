"""Structured SQL expressions and their DuckDB rendering."""

from .emitter import DuckDBEmitter, Fragment
from .expressions import (
    And,
    AsText,
    Compare,
    CountAll,
    CountWhere,
    DateAfter,
    Expr,
    Field,
    Func,
    InList,
    NotEmpty,
    Param,
    Prefix,
    and_,
    eq,
    gt,
    ne,
)

__all__ = [
    "And",
    "AsText",
    "Compare",
    "CountAll",
    "CountWhere",
    "DateAfter",
    "DuckDBEmitter",
    "Expr",
    "Field",
    "Fragment",
    "Func",
    "InList",
    "NotEmpty",
    "Param",
    "Prefix",
    "and_",
    "eq",
    "gt",
    "ne",
]
