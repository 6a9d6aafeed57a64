"""Read-only rule configuration and the rule field lookup.

Rule groups and their rules are kept in two DuckDB tables,
``dedupe_rule_group`` and ``dedupe_rule``, loaded from YAML or dicts. The
engine never writes to them once loaded.
"""

from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

import yaml

from rule_dedupe.errors import ConfigurationError
from rule_dedupe.models import CONTACT_TYPES, USED_SELECTORS, RuleGroup, RuleSpec
from rule_dedupe.utils.logging_utils import get_logger

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

logger = get_logger(__name__)

# Composite field aliases and the field name they are exposed as
FIELD_ALIASES = {"phone_numeric": "phone"}

_GROUP_COLUMNS = "id, name, contact_type, used, threshold"
_RULE_COLUMNS = "id, dedupe_rule_group_id, rule_table, rule_field, rule_length, rule_weight"


def load_rule_config(path: str) -> list[dict[str, Any]]:
    """Read rule group definitions from a YAML file.

    The file holds a top-level ``rule_groups`` list; each group carries its
    ``rules`` inline.

    Raises:
        ConfigurationError: If the file has no ``rule_groups`` list

    """
    with open(Path(path), encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}
    groups = config.get("rule_groups") if isinstance(config, dict) else None
    if not isinstance(groups, list):
        raise ConfigurationError(f"Rule config {path} has no 'rule_groups' list")
    return groups


class RuleStore:
    """DuckDB-backed store of rule groups and rules."""

    def __init__(self, con: "DuckDBPyConnection"):
        self.con = con
        self.con.execute(
            "CREATE TABLE IF NOT EXISTS dedupe_rule_group ("
            "id INTEGER PRIMARY KEY, name VARCHAR, contact_type VARCHAR, "
            "used VARCHAR, threshold INTEGER)",
        )
        self.con.execute(
            "CREATE TABLE IF NOT EXISTS dedupe_rule ("
            "id INTEGER PRIMARY KEY, dedupe_rule_group_id INTEGER NOT NULL, "
            "rule_table VARCHAR NOT NULL, rule_field VARCHAR NOT NULL, "
            "rule_length INTEGER, rule_weight INTEGER NOT NULL)",
        )

    @classmethod
    def from_yaml(cls, con: "DuckDBPyConnection", path: str) -> "RuleStore":
        store = cls(con)
        store.load(load_rule_config(path))
        return store

    def _next_id(self, table: str) -> int:
        query = {
            "dedupe_rule_group": "SELECT COALESCE(MAX(id), 0) + 1 FROM dedupe_rule_group",
            "dedupe_rule": "SELECT COALESCE(MAX(id), 0) + 1 FROM dedupe_rule",
        }[table]
        return int(self.con.execute(query).fetchone()[0])

    def load(self, groups: Iterable[Mapping[str, Any]]) -> None:
        """Insert rule group definitions (with inline ``rules``)."""
        n_groups = n_rules = 0
        for group in groups:
            contact_type = group.get("contact_type")
            used = group.get("used", "Unsupervised")
            if contact_type not in CONTACT_TYPES:
                raise ConfigurationError(f"Invalid contact type {contact_type!r} in rule group {group}")
            if used not in USED_SELECTORS:
                raise ConfigurationError(f"Invalid used selector {used!r} in rule group {group}")

            group_id = group.get("id") or self._next_id("dedupe_rule_group")
            self.con.execute(
                "INSERT INTO dedupe_rule_group (" + _GROUP_COLUMNS + ") VALUES (?, ?, ?, ?, ?)",
                [group_id, group.get("name"), contact_type, used, int(group.get("threshold", 0))],
            )
            n_groups += 1

            for rule_data in group.get("rules", []):
                rule = RuleSpec.from_dict(rule_data)
                self.con.execute(
                    "INSERT INTO dedupe_rule (" + _RULE_COLUMNS + ") VALUES (?, ?, ?, ?, ?, ?)",
                    [
                        rule.id or self._next_id("dedupe_rule"),
                        group_id,
                        rule.rule_table,
                        rule.rule_field,
                        rule.rule_length,
                        rule.rule_weight,
                    ],
                )
                n_rules += 1

        logger.info(f"rule_store | loaded | groups={n_groups} | rules={n_rules}")

    def contact_type_for(self, group_id: Any) -> Optional[str]:
        """Scalar lookup of a rule group's contact type."""
        row = self.con.execute(
            "SELECT contact_type FROM dedupe_rule_group WHERE id = ?", [group_id],
        ).fetchone()
        return row[0] if row else None

    def rules_for(self, group_id: Any) -> list[RuleSpec]:
        rows = self.con.execute(
            "SELECT " + _RULE_COLUMNS + " FROM dedupe_rule WHERE dedupe_rule_group_id = ? ORDER BY id",
            [group_id],
        ).fetchall()
        return [
            RuleSpec(
                id=row[0],
                rule_group_id=row[1],
                rule_table=row[2],
                rule_field=row[3],
                rule_length=row[4],
                rule_weight=row[5],
            )
            for row in rows
        ]

    def _group_from_row(self, row: tuple) -> RuleGroup:
        return RuleGroup(
            id=row[0],
            name=row[1],
            contact_type=row[2],
            used=row[3],
            threshold=row[4] or 0,
            rules=tuple(self.rules_for(row[0])),
        )

    def get_group(self, group_id: Any) -> RuleGroup:
        row = self.con.execute(
            "SELECT " + _GROUP_COLUMNS + " FROM dedupe_rule_group WHERE id = ?", [group_id],
        ).fetchone()
        if row is None:
            raise ConfigurationError(f"No dedupe rule group with id {group_id}")
        return self._group_from_row(row)

    def find_group(self, contact_type: str, used: str) -> RuleGroup:
        """The first rule group for ``contact_type`` with the given ``used`` selector.

        Raises:
            ConfigurationError: If no group matches

        """
        row = self.con.execute(
            "SELECT " + _GROUP_COLUMNS + " FROM dedupe_rule_group "
            "WHERE contact_type = ? AND used = ? ORDER BY id LIMIT 1",
            [contact_type, used],
        ).fetchone()
        if row is None:
            raise ConfigurationError(f"No {used} dedupe rule group for contact type {contact_type!r}")
        return self._group_from_row(row)

    def groups(self) -> list[RuleGroup]:
        rows = self.con.execute(
            "SELECT " + _GROUP_COLUMNS + " FROM dedupe_rule_group ORDER BY id",
        ).fetchall()
        return [self._group_from_row(row) for row in rows]


def dedupe_rule_fields(store: RuleStore, contact_type: str, used: str) -> list[str]:
    """Distinct field names referenced by the matching rule group.

    Internal composite aliases are translated to their visible field names
    (``phone_numeric`` is reported as ``phone``).
    """
    group = store.find_group(contact_type, used)
    fields: list[str] = []
    for rule in group.rules:
        name = FIELD_ALIASES.get(rule.rule_field, rule.rule_field)
        if name not in fields:
            fields.append(name)
    return fields
