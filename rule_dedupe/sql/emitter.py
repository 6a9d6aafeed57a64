"""Render expression trees to parameterized DuckDB SQL."""

from typing import Any, NamedTuple, Optional

from rule_dedupe.utils.sql_utils import check_identifier, in_clause, quote_identifier

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
)

COMPARISON_OPS = frozenset({"=", "<>", ">", ">=", "<", "<="})
FUNCTIONS = frozenset({"LEAST", "GREATEST"})


class Fragment(NamedTuple):
    """SQL text plus the values for its placeholders, in order."""

    sql: str
    params: list[Any]

    def __add__(self, other: "Fragment") -> "Fragment":  # type: ignore[override]
        return Fragment(self.sql + other.sql, self.params + other.params)


def text(sql: str) -> Fragment:
    return Fragment(sql, [])


def join(fragments: list[Fragment], separator: str) -> Fragment:
    params: list[Any] = []
    for fragment in fragments:
        params.extend(fragment.params)
    return Fragment(separator.join(f.sql for f in fragments), params)


class DuckDBEmitter:
    """Emits DuckDB SQL with `?` placeholders.

    Every literal becomes a placeholder; identifiers are validated and
    quoted, never interpolated raw.
    """

    def emit(self, expr: Expr, role: Optional[str] = None) -> Fragment:
        if role is not None:
            expr = expr.bind(role)
        method = getattr(self, "_emit_" + type(expr).__name__.lower(), None)
        if method is None:
            raise TypeError(f"Cannot emit expression of type {type(expr).__name__}")
        return method(expr)

    def table(self, name: str, alias: str) -> Fragment:
        return text(quote_identifier(name) + " " + check_identifier(alias, "alias"))

    def _emit_field(self, expr: Field) -> Fragment:
        column = quote_identifier(expr.name)
        if expr.role is None:
            return text(column)
        return text(check_identifier(expr.role, "alias") + "." + column)

    def _emit_param(self, expr: Param) -> Fragment:
        if expr.sql_type:
            return Fragment("CAST(? AS " + check_identifier(expr.sql_type, "type") + ")", [expr.value])
        return Fragment("?", [expr.value])

    def _emit_prefix(self, expr: Prefix) -> Fragment:
        # DuckDB SUBSTR counts characters, not bytes
        return (
            text("SUBSTR(CAST(")
            + self.emit(expr.expr)
            + text(" AS VARCHAR), 1, ")
            + self.emit(Param(int(expr.length)))
            + text(")")
        )

    def _emit_astext(self, expr: AsText) -> Fragment:
        # SUBSTR already yields VARCHAR
        if isinstance(expr.expr, Prefix):
            return self.emit(expr.expr)
        return text("CAST(") + self.emit(expr.expr) + text(" AS VARCHAR)")

    def _emit_compare(self, expr: Compare) -> Fragment:
        if expr.op not in COMPARISON_OPS:
            raise ValueError(f"Unsupported comparison operator {expr.op!r}")
        return self.emit(expr.left) + text(f" {expr.op} ") + self.emit(expr.right)

    def _emit_and(self, expr: And) -> Fragment:
        return join([text("(") + self.emit(item) + text(")") for item in expr.items], " AND ")

    def _emit_inlist(self, expr: InList) -> Fragment:
        clause, params = in_clause(list(expr.values))
        return self.emit(expr.expr) + Fragment(" " + clause, params)

    def _emit_notempty(self, expr: NotEmpty) -> Fragment:
        value = self.emit(expr.expr)
        return (
            value
            + text(" IS NOT NULL AND CAST(")
            + value
            + text(" AS VARCHAR) <> ")
            + self.emit(Param(""))
        )

    def _emit_dateafter(self, expr: DateAfter) -> Fragment:
        # TRY_CAST turns unparseable zero dates into NULL, which never passes
        return (
            text("TRY_CAST(")
            + self.emit(expr.expr)
            + text(" AS DATE) > ")
            + self.emit(Param(expr.sentinel))
        )

    def _emit_func(self, expr: Func) -> Fragment:
        if expr.name not in FUNCTIONS:
            raise ValueError(f"Unsupported function {expr.name!r}")
        return text(expr.name + "(") + join([self.emit(arg) for arg in expr.args], ", ") + text(")")

    def _emit_countall(self, expr: CountAll) -> Fragment:
        return text("COUNT(*)")

    def _emit_countwhere(self, expr: CountWhere) -> Fragment:
        return text("SUM(CASE WHEN ") + self.emit(expr.predicate) + text(" THEN 1 ELSE 0 END)")
