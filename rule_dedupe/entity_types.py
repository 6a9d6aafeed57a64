"""Identity semantics of the tables a dedupe rule can target.

Each table class knows which column identifies the owning entity and which
extra restrictions apply when its rows are compared. Tables are looked up in
a registry by exact name, then by name pattern; new tables are added with
:func:`register_table` or :func:`register_pattern`.
"""

import re
from dataclasses import dataclass
from typing import Any, Optional

from rule_dedupe.errors import ConfigurationError, UnsupportedRuleTable
from rule_dedupe.models import MatchParams
from rule_dedupe.sql.expressions import Expr, Field, eq
from rule_dedupe.utils.logging_utils import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class TableClass:
    """Identity column and restriction strategy for one kind of table."""

    identity_column: str
    discriminator: Optional[str] = None
    kind: str = "table"

    def restriction(self, contact_type: str) -> Optional[Expr]:
        """Predicate every compared row must satisfy, unbound."""
        return None

    def probe_restriction(self, table: str, match_params: Optional[MatchParams]) -> Optional[Expr]:
        """Extra predicate on the base row in probe mode."""
        if not self.discriminator or not match_params:
            return None
        value = match_params.get(table, {}).get(self.discriminator)
        if not value:
            return None
        try:
            return eq(Field(self.discriminator), int(value))
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid {self.discriminator} {value!r} for table {table!r}") from e


@dataclass(frozen=True)
class BaseEntityTable(TableClass):
    identity_column: str = "id"
    contact_type_column: str = "contact_type"
    kind: str = "base_entity"

    def restriction(self, contact_type: str) -> Optional[Expr]:
        return eq(Field(self.contact_type_column), contact_type)


@dataclass(frozen=True)
class AttachedSingleValueTable(TableClass):
    identity_column: str = "contact_id"
    kind: str = "attached_single_value"


@dataclass(frozen=True)
class NoteTable(TableClass):
    identity_column: str = "entity_id"
    kind: str = "note"


@dataclass(frozen=True)
class CustomValueTable(TableClass):
    identity_column: str = "entity_id"
    kind: str = "custom_value"


TABLE_REGISTRY: dict[str, TableClass] = {
    "contact": BaseEntityTable(),
    "address": AttachedSingleValueTable(discriminator="location_type_id"),
    "email": AttachedSingleValueTable(),
    "im": AttachedSingleValueTable(),
    "openid": AttachedSingleValueTable(),
    "phone": AttachedSingleValueTable(),
    "note": NoteTable(),
}

CUSTOM_TABLE_PATTERN = re.compile(r"^(custom|extension)_value_")

TABLE_PATTERNS: list[tuple[re.Pattern, TableClass]] = [
    (CUSTOM_TABLE_PATTERN, CustomValueTable()),
]


def register_table(name: str, table_class: TableClass) -> None:
    if name in TABLE_REGISTRY:
        logger.warning(f"entity_types | replacing_table_class | table={name}")
    TABLE_REGISTRY[name] = table_class


def register_pattern(pattern: str, table_class: TableClass) -> None:
    TABLE_PATTERNS.append((re.compile(pattern), table_class))


def is_custom_table(name: str) -> bool:
    return bool(CUSTOM_TABLE_PATTERN.match(name))


def resolve_table(name: str, rule_id: Any = None) -> TableClass:
    """Resolve the table class for a rule table.

    Raises:
        UnsupportedRuleTable: If neither the registry nor a pattern knows the table

    """
    table_class = TABLE_REGISTRY.get(name)
    if table_class is not None:
        return table_class
    for pattern, pattern_class in TABLE_PATTERNS:
        if pattern.match(name):
            return pattern_class
    raise UnsupportedRuleTable(name, rule_id)


def identity_column_for(name: str) -> str:
    return resolve_table(name).identity_column
