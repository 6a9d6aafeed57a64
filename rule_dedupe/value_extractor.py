"""Comparison values for rule fields.

The same extraction must be applied to every row compared under a rule, and
to a probe value, so both sides of each equality see identical prefixes.
"""

from typing import Any, Optional

from rule_dedupe.sql.expressions import Expr, Field, Prefix


def value_expression(field: str, length: Optional[int] = None, role: Optional[str] = None) -> Expr:
    """Expression for the comparison value of ``field``.

    Args:
        field: Column holding the rule value
        length: Number of leading characters to compare (None or 0 for the whole value)
        role: Table alias to bind, or None to leave it for the emitter

    Returns:
        The raw column, or its first ``length`` characters

    """
    expr: Expr = Field(field, role)
    if length:
        expr = Prefix(expr, int(length))
    return expr


def truncate_value(value: Any, length: Optional[int] = None) -> Any:
    """Python-side twin of :func:`value_expression` for probe values.

    Slices by code point, never by byte.

    Examples:
        >>> truncate_value("ABCDEF", 3)
        'ABC'
        >>> truncate_value("Zoë Ångström", 3)
        'Zoë'
        >>> truncate_value(42)
        42

    """
    if not length or value is None:
        return value
    return str(value)[: int(length)]
