"""Utility modules for the rule dedupe engine.
"""

from .io_utils import (
    list_data_files,
    load_settings,
    load_tables,
    read_table_file,
    reload_settings,
    validate_settings,
)
from .logging_utils import get_logger, setup_logging
from .path_utils import get_config_path, get_project_root
from .sql_utils import check_identifier, in_clause, quote_identifier

__all__ = [
    # Logging utilities
    "get_logger",
    "setup_logging",
    # Path utilities
    "get_config_path",
    "get_project_root",
    # I/O utilities
    "list_data_files",
    "load_settings",
    "load_tables",
    "read_table_file",
    "reload_settings",
    "validate_settings",
    # SQL utilities
    "check_identifier",
    "in_clause",
    "quote_identifier",
]
