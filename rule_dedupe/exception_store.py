"""Pairs confirmed as not duplicates.

Pairs are stored ordered (``contact_id1 < contact_id2``) so a lookup is
symmetric in its arguments.
"""

from typing import TYPE_CHECKING, Any, Optional

import pandas as pd

from rule_dedupe.models import ID1, ID2
from rule_dedupe.utils.logging_utils import get_logger
from rule_dedupe.utils.sql_utils import check_identifier, quote_identifier

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

logger = get_logger(__name__)

IS_EXCEPTION = "is_exception"


def ordered_pair(a: Any, b: Any) -> Optional[tuple[int, int]]:
    """Return ``(min, max)`` of two positive ids, or None for degenerate input.

    Examples:
        >>> ordered_pair(9, 4)
        (4, 9)
        >>> ordered_pair(0, 4) is None
        True

    """
    try:
        a, b = int(a), int(b)
    except (TypeError, ValueError):
        return None
    if a <= 0 or b <= 0:
        return None
    return (a, b) if a < b else (b, a)


class ExceptionStore:
    """Lookup of pairs previously confirmed as non-duplicates."""

    def __init__(self, con: "DuckDBPyConnection", table: str = "dedupe_exception"):
        self.con = con
        self.table = check_identifier(table, "table")
        self._quoted = quote_identifier(self.table)
        self.con.execute(
            "CREATE TABLE IF NOT EXISTS "
            + self._quoted
            + " (contact_id1 BIGINT NOT NULL, contact_id2 BIGINT NOT NULL, "
            "PRIMARY KEY (contact_id1, contact_id2), CHECK (contact_id1 < contact_id2))",
        )

    def add_exception(self, a: Any, b: Any) -> bool:
        """Record ``(a, b)`` as not a duplicate; idempotent.

        Returns:
            False if the ids are degenerate and nothing was recorded

        """
        pair = ordered_pair(a, b)
        if pair is None or pair[0] == pair[1]:
            logger.warning(f"exception_store | invalid_pair | a={a} | b={b}")
            return False
        self.con.execute("INSERT OR IGNORE INTO " + self._quoted + " VALUES (?, ?)", list(pair))
        logger.debug(f"exception_store | added | id1={pair[0]} | id2={pair[1]}")
        return True

    def remove_exception(self, a: Any, b: Any) -> None:
        pair = ordered_pair(a, b)
        if pair is None:
            return
        self.con.execute(
            "DELETE FROM " + self._quoted + " WHERE contact_id1 = ? AND contact_id2 = ?",
            list(pair),
        )

    def validate_pair(self, a: Any, b: Any) -> Optional[bool]:
        """Whether ``(a, b)`` may still be proposed as a duplicate.

        Returns:
            True when the pair is not recorded, False when it was confirmed
            as a non-duplicate, None for missing or non-positive ids

        """
        pair = ordered_pair(a, b)
        if pair is None:
            return None
        row = self.con.execute(
            "SELECT 1 FROM " + self._quoted + " WHERE contact_id1 = ? AND contact_id2 = ? LIMIT 1",
            list(pair),
        ).fetchone()
        return row is None

    def count(self) -> int:
        return int(self.con.execute("SELECT COUNT(*) FROM " + self._quoted).fetchone()[0])

    def annotate(self, pairs: pd.DataFrame) -> pd.DataFrame:
        """Copy of ``pairs`` with a boolean ``is_exception`` column."""
        result = pairs.copy()
        if result.empty:
            result[IS_EXCEPTION] = pd.Series(dtype=bool)
            return result
        exceptions = self.con.execute(
            "SELECT contact_id1, contact_id2 FROM " + self._quoted,
        ).fetchall()
        recorded = {(int(x), int(y)) for x, y in exceptions}
        result[IS_EXCEPTION] = [
            (int(x), int(y)) in recorded for x, y in zip(result[ID1], result[ID2])
        ]
        return result

    def filter_pairs(self, pairs: pd.DataFrame) -> pd.DataFrame:
        """Drop pairs recorded as non-duplicates."""
        annotated = self.annotate(pairs)
        kept = annotated[~annotated[IS_EXCEPTION]].drop(columns=[IS_EXCEPTION])
        dropped = len(pairs) - len(kept)
        if dropped:
            logger.info(f"exception_store | filtered | dropped={dropped} | kept={len(kept)}")
        return kept.reset_index(drop=True)
