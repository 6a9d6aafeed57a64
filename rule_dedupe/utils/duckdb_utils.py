from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Optional

import duckdb
import pandas as pd

from rule_dedupe.utils.logging_utils import get_logger
from rule_dedupe.utils.sql_utils import quote_identifier

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

logger = get_logger(__name__)


def create_connection(
    threads: Optional[int] = None,
    memory_limit: Optional[str] = None,
    database: str = ":memory:",
) -> "DuckDBPyConnection":
    """Create and configure a DuckDB connection."""
    con = duckdb.connect(database)
    if threads is not None:
        con.execute(f"PRAGMA threads={int(threads)}")
    if memory_limit:
        # SET does not accept a bound parameter
        con.execute("SET memory_limit='" + str(memory_limit).replace("'", "") + "'")
    # deterministic ordering where needed
    con.execute("PRAGMA preserve_insertion_order=true")
    logger.debug(
        f"duckdb | connection_created | threads={threads} | memory_limit={memory_limit}",
    )
    return con


def connection_from_settings(settings: Mapping[str, Any]) -> "DuckDBPyConnection":
    duckdb_config = settings.get("engine", {}).get("duckdb", {})
    threads = duckdb_config.get("threads")
    if threads == "auto":
        threads = None
    return create_connection(
        threads=threads,
        memory_limit=duckdb_config.get("memory_limit"),
        database=duckdb_config.get("database", ":memory:"),
    )


@contextmanager
def connect(threads: int | None = None) -> Iterator["DuckDBPyConnection"]:
    con = create_connection(threads=threads)
    try:
        yield con
    finally:
        con.close()


def register_tables(con: "DuckDBPyConnection", **tables: pd.DataFrame) -> None:
    # registers provided DataFrames as views named by keyword
    for name, df in tables.items():
        con.register(name, df)


def materialize_tables(con: "DuckDBPyConnection", **tables: pd.DataFrame) -> None:
    """Copy DataFrames into native tables, visible to every cursor."""
    for name, df in tables.items():
        view = "__load_" + name
        con.register(view, df)
        try:
            con.execute(
                "CREATE OR REPLACE TABLE " + quote_identifier(name) + " AS SELECT * FROM " + quote_identifier(view),
            )
        finally:
            con.unregister(view)
        logger.debug(f"duckdb | table_materialized | name={name} | rows={len(df)}")
