"""SQL utility functions for safe query building.

Identifiers cannot be bound as parameters, so table and column names are
validated and quoted here; every value goes through a `?` placeholder.
"""

import re
from typing import List, Tuple

from rule_dedupe.errors import ConfigurationError

IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def in_clause(values: List) -> Tuple[str, List]:
    """Return 'IN (?,?,...)' and corresponding params, for DuckDB.

    Args:
        values: List of values to include in the IN clause

    Returns:
        Tuple of (sql_fragment, parameter_list)

    Examples:
        >>> in_clause([3, 1, 2])
        ('IN (?,?,?)', [3, 1, 2])
        >>> in_clause([])
        ('IN (NULL)', [])

    """
    if not values:
        return "IN (NULL)", []  # empty never matches
    placeholders = ",".join(["?"] * len(values))
    return "IN (" + placeholders + ")", list(values)


def check_identifier(name: str, kind: str = "identifier") -> str:
    """Return ``name`` unchanged if it is a plain SQL identifier.

    Raises:
        ConfigurationError: If the name contains anything but letters,
            digits and underscores, or starts with a digit

    """
    if not isinstance(name, str) or not IDENTIFIER_RE.match(name):
        raise ConfigurationError(f"Invalid {kind} {name!r}")
    return name


def quote_identifier(name: str) -> str:
    """Quote a validated identifier for DuckDB.

    Examples:
        >>> quote_identifier("contact")
        '"contact"'

    """
    return '"' + check_identifier(name) + '"'


__all__ = ["check_identifier", "in_clause", "quote_identifier"]
