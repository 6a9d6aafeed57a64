"""Field type lookup used to pick a rule's validity predicate.

Custom value tables store fields under generated column names; those are
mapped to a canonical ``custom_<id>`` field before the type is looked up.
"""

import threading
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Optional, Protocol

import duckdb

from rule_dedupe.entity_types import is_custom_table
from rule_dedupe.errors import ConfigurationError
from rule_dedupe.utils.logging_utils import get_logger
from rule_dedupe.utils.sql_utils import check_identifier, quote_identifier

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

logger = get_logger(__name__)

DATE_TYPES = frozenset({"date", "datetime", "timestamp", "timestamp with time zone"})


def is_date_type(type_name: Optional[str]) -> bool:
    """Whether a schema or engine type name denotes a date.

    Examples:
        >>> is_date_type("DATE")
        True
        >>> is_date_type("TIMESTAMP_NS")
        True
        >>> is_date_type("VARCHAR")
        False

    """
    if not type_name:
        return False
    normalized = str(type_name).strip().lower()
    return normalized in DATE_TYPES or normalized.startswith("timestamp")


def custom_field_key(field_id: Any) -> str:
    return f"custom_{field_id}"


class FieldTypeResolver(Protocol):
    """Answers whether a rule field holds dates."""

    def is_date_field(self, table: str, field: str) -> bool:
        ...


class SchemaFieldTypeResolver:
    """Field types from configured schema mappings.

    Args:
        fields: ``{table: {field: type}}`` for core tables
        custom_fields: ``{column_name: field_id}`` for custom value tables
        custom_field_types: ``{"custom_<id>": type}``

    """

    def __init__(
        self,
        fields: Optional[Mapping[str, Mapping[str, str]]] = None,
        custom_fields: Optional[Mapping[str, Any]] = None,
        custom_field_types: Optional[Mapping[str, str]] = None,
    ):
        self.fields = dict(fields or {})
        self.custom_fields = dict(custom_fields or {})
        self.custom_field_types = dict(custom_field_types or {})

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any]) -> "SchemaFieldTypeResolver":
        schema = settings.get("schema", {})
        return cls(
            fields=schema.get("fields"),
            custom_fields=schema.get("custom_fields"),
            custom_field_types=schema.get("custom_field_types"),
        )

    def field_type(self, table: str, field: str) -> Optional[str]:
        if table not in self.fields and is_custom_table(table):
            field_id = self.custom_fields.get(field)
            if field_id is None:
                logger.debug(f"field_types | unknown_custom_column | table={table} | field={field}")
                return None
            return self.custom_field_types.get(custom_field_key(field_id))
        return self.fields.get(table, {}).get(field)

    def is_date_field(self, table: str, field: str) -> bool:
        return is_date_type(self.field_type(table, field))


class CatalogFieldTypeResolver:
    """Field types read from the DuckDB catalog.

    Core tables are described directly; custom value columns are resolved
    through the ``custom_field`` metadata table (``id``, ``column_name``,
    ``data_type``) when it is loaded, and described like any other column
    otherwise.

    Lookups run on a cursor of their own, so the rule tables must be native
    tables (see :func:`~rule_dedupe.utils.duckdb_utils.materialize_tables`)
    rather than DataFrames registered on ``con``.
    """

    def __init__(self, con: "DuckDBPyConnection", custom_field_table: str = "custom_field"):
        self.con = con.cursor()
        self.custom_field_table = check_identifier(custom_field_table, "table")
        self._columns: dict[str, dict[str, str]] = {}
        self._has_custom_fields: Optional[bool] = None
        # rules are planned on worker threads sharing this cursor
        self._lock = threading.Lock()

    def _describe(self, table: str) -> dict[str, str]:
        if table not in self._columns:
            try:
                rows = self.con.execute("DESCRIBE " + quote_identifier(table)).fetchall()
            except duckdb.CatalogException as e:
                raise ConfigurationError(f"Rule table {table!r} is not loaded") from e
            self._columns[table] = {row[0]: row[1] for row in rows}
        return self._columns[table]

    def _custom_field_type(self, field: str) -> Optional[str]:
        if self._has_custom_fields is None:
            row = self.con.execute(
                "SELECT COUNT(*) FROM information_schema.tables WHERE table_name = ?",
                [self.custom_field_table],
            ).fetchone()
            self._has_custom_fields = bool(row[0])
            if not self._has_custom_fields:
                logger.info(f"field_types | no_custom_field_table | table={self.custom_field_table}")
        if not self._has_custom_fields:
            return None

        row = self.con.execute(
            "SELECT id, data_type FROM "
            + quote_identifier(self.custom_field_table)
            + " WHERE column_name = ? LIMIT 1",
            [field],
        ).fetchone()
        if row is None:
            return None
        logger.debug(f"field_types | custom_field_resolved | column={field} | field={custom_field_key(row[0])}")
        return row[1]

    def field_type(self, table: str, field: str) -> Optional[str]:
        with self._lock:
            if is_custom_table(table):
                custom_type = self._custom_field_type(field)
                if custom_type is not None:
                    return custom_type
            return self._describe(table).get(field)

    def is_date_field(self, table: str, field: str) -> bool:
        return is_date_type(self.field_type(table, field))
