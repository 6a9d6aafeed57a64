"""Candidate query planning for a single dedupe rule.

A naive self-join of the rule table costs n² comparisons: 10 rows joined to
themselves is 100 comparisons, 10k rows is 100M. The plan instead runs in
two stages:

- Stage A scans the table once, groups valid rows by comparison value (and
  discriminator, for address rules) and keeps only values shared by more
  than one row.
- Stage B joins the table to those values and then to a second copy of
  itself, so only rows inside a duplicated group are ever paired.

Cost is bounded by the sum of squared group sizes instead of the square of
the table size.
"""

import datetime
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

import pandas as pd

from rule_dedupe.entity_types import TableClass, resolve_table
from rule_dedupe.errors import ConfigurationError
from rule_dedupe.field_types import FieldTypeResolver
from rule_dedupe.models import (
    CONTACT_TYPES,
    ID1,
    ID2,
    PAIR_COLUMNS,
    WEIGHT,
    CandidatePair,
    MatchParams,
    RuleSpec,
    normalize_contact_ids,
)
from rule_dedupe.sql.emitter import DuckDBEmitter, Fragment, join, text
from rule_dedupe.sql.expressions import (
    AsText,
    CountAll,
    CountWhere,
    DateAfter,
    Expr,
    Field,
    Func,
    InList,
    NotEmpty,
    Param,
    and_,
    eq,
    gt,
    ne,
)
from rule_dedupe.utils.logging_utils import get_logger
from rule_dedupe.utils.sql_utils import check_identifier, quote_identifier
from rule_dedupe.value_extractor import truncate_value, value_expression

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

logger = get_logger(__name__)

# Dates at or below this never take part in a match (covers 0000-00-00)
ZERO_DATE_SENTINEL = datetime.date(1000, 1, 1)

VALUES_ROLE = "vals_with_dupes"
VALUES_SUBQUERY = "values_with_dupes"
PRIMARY_ROLE = "pri"
DUPES_ROLE = "dupes"
VALUE_COLUMN = "value"


@dataclass(frozen=True)
class CandidatePlan:
    """Executable two-stage plan producing candidate pairs for one rule.

    The plan only describes the computation; nothing runs until
    :meth:`execute` is called with a connection.
    """

    rule: RuleSpec
    table_class: TableClass
    value: Expr
    row_filter: Optional[Expr]
    primary_filter: Optional[Expr]
    validity: Optional[Expr] = None
    contact_ids: tuple[int, ...] = ()
    emitter: DuckDBEmitter = field(default_factory=DuckDBEmitter, compare=False, repr=False)

    @property
    def table(self) -> str:
        return self.rule.rule_table

    @property
    def identity(self) -> str:
        return self.table_class.identity_column

    @property
    def discriminator(self) -> Optional[str]:
        return self.table_class.discriminator

    def _where(self, predicate: Optional[Expr], role: str, keyword: str) -> Fragment:
        if predicate is None:
            return text("")
        return text(f" {keyword} ") + self.emitter.emit(predicate, role)

    def stage_a(self) -> Fragment:
        """Values (and discriminators) shared by more than one valid row."""
        columns = [self.emitter.emit(self.value, VALUES_ROLE) + text(" AS " + quote_identifier(VALUE_COLUMN))]
        group_by = "1"
        if self.discriminator:
            columns.append(self.emitter.emit(Field(self.discriminator), VALUES_ROLE))
            group_by = "1, 2"

        having = gt(CountAll(), 1)
        if self.contact_ids:
            # at least one member of the group must be in the subset
            having = and_(
                having,
                gt(CountWhere(InList(Field(self.identity), self.contact_ids)), 0),
            )

        return (
            text("SELECT ")
            + join(columns, ", ")
            + text(" FROM ")
            + self.emitter.table(self.table, VALUES_ROLE)
            + self._where(self.primary_filter, VALUES_ROLE, "WHERE")
            + text(" GROUP BY " + group_by)
            + self._where(having, VALUES_ROLE, "HAVING")
        )

    def _values_join(self) -> Expr:
        predicate = eq(Field(VALUE_COLUMN, VALUES_SUBQUERY), self.value.bind(PRIMARY_ROLE))
        if self.discriminator:
            predicate = and_(
                predicate,
                eq(Field(self.discriminator, VALUES_SUBQUERY), Field(self.discriminator, PRIMARY_ROLE)),
            )
        return predicate

    def _dupes_join(self) -> Expr:
        identity = self.identity
        predicate = and_(
            self.row_filter.bind(DUPES_ROLE) if self.row_filter is not None else None,
            self.validity.bind(DUPES_ROLE) if self.validity is not None else None,
            ne(Field(identity, DUPES_ROLE), Field(identity, PRIMARY_ROLE)),
            eq(self.value.bind(PRIMARY_ROLE), self.value.bind(DUPES_ROLE)),
        )
        if self.discriminator:
            predicate = and_(
                predicate,
                eq(Field(self.discriminator, PRIMARY_ROLE), Field(self.discriminator, DUPES_ROLE)),
            )
        return predicate

    def stage_b(self) -> Fragment:
        """Distinct ordered pairs expanded from the duplicated groups."""
        pri_id = Field(self.identity, PRIMARY_ROLE)
        dupe_id = Field(self.identity, DUPES_ROLE)
        return (
            text("SELECT DISTINCT ")
            + self.emitter.emit(Func("LEAST", (pri_id, dupe_id)))
            + text(f" AS {ID1}, ")
            + self.emitter.emit(Func("GREATEST", (pri_id, dupe_id)))
            + text(f" AS {ID2}, ")
            + self.emitter.emit(Param(int(self.rule.rule_weight), "INTEGER"))
            + text(f" AS {WEIGHT} FROM ")
            + self.emitter.table(self.table, PRIMARY_ROLE)
            + text(" INNER JOIN (")
            + self.stage_a()
            + text(") " + VALUES_SUBQUERY + " ON ")
            + self.emitter.emit(self._values_join())
            + text(" INNER JOIN ")
            + self.emitter.table(self.table, DUPES_ROLE)
            + text(" ON ")
            + self.emitter.emit(self._dupes_join())
            + self._where(self.primary_filter, PRIMARY_ROLE, "WHERE")
        )

    def to_sql(self) -> tuple[str, list[Any]]:
        """Full query text and its parameters, in placeholder order."""
        fragment = (
            text(f"SELECT {ID1}, {ID2}, {WEIGHT} FROM (")
            + self.stage_b()
            + text(f") t1 ORDER BY {ID1}, {ID2}")
        )
        return fragment.sql, fragment.params

    def stage_a_sql(self) -> tuple[str, list[Any]]:
        fragment = self.stage_a()
        return fragment.sql, fragment.params

    def execute(self, con: "DuckDBPyConnection") -> pd.DataFrame:
        """Run the plan, returning a frame of ``id1, id2, weight``."""
        sql, params = self.to_sql()
        logger.debug(f"planner | execute | rule_id={self.rule.id} | table={self.table} | params={len(params)}")
        df = con.execute(sql, params).df()
        return df[PAIR_COLUMNS]

    def duplicated_values(self, con: "DuckDBPyConnection") -> pd.DataFrame:
        """Run only the grouping stage, for diagnostics."""
        sql, params = self.stage_a_sql()
        return con.execute(sql, params).df()

    def pairs(self, con: "DuckDBPyConnection") -> list[CandidatePair]:
        return [
            CandidatePair(int(row[0]), int(row[1]), int(row[2]))
            for row in self.execute(con).itertuples(index=False)
        ]


class CandidateQueryPlanner:
    """Builds :class:`CandidatePlan` objects for dedupe rules.

    Args:
        field_types: Answers whether a rule field is date-typed
        contact_type_lookup: Resolves a rule group id to its contact type,
            used when :meth:`plan` is not given one explicitly

    """

    def __init__(
        self,
        field_types: FieldTypeResolver,
        contact_type_lookup: Optional[Callable[[Any], Optional[str]]] = None,
    ):
        self.field_types = field_types
        self.contact_type_lookup = contact_type_lookup

    def _resolve_contact_type(self, rule: RuleSpec, contact_type: Optional[str]) -> str:
        if contact_type is None and self.contact_type_lookup is not None:
            contact_type = self.contact_type_lookup(rule.rule_group_id)
        if contact_type not in CONTACT_TYPES:
            raise ConfigurationError(
                f"Invalid contact type {contact_type!r} for dedupe rule group {rule.rule_group_id}",
            )
        return contact_type

    def _validity(self, rule: RuleSpec) -> Expr:
        column = Field(rule.rule_field)
        if self.field_types.is_date_field(rule.rule_table, rule.rule_field):
            return DateAfter(column, ZERO_DATE_SENTINEL)
        # rules out NULL and empty values
        return NotEmpty(column)

    def plan(
        self,
        rule: RuleSpec,
        contact_type: Optional[str] = None,
        match_params: Optional[MatchParams] = None,
        contact_ids: Optional[Iterable[Any]] = None,
    ) -> Optional[CandidatePlan]:
        """Build the plan for one rule, or None when the rule contributes nothing.

        Args:
            rule: The rule to evaluate
            contact_type: The rule group's contact type
            match_params: ``{table: {field: value}}`` of a probe record; when
                given, only rows matching the probe value are considered
            contact_ids: Only groups containing at least one of these ids qualify

        Returns:
            The plan, or None for a zero-weight rule or a probe record
            without a value for this rule's table and field

        Raises:
            ConfigurationError: If the contact type or an identifier is invalid
            UnsupportedRuleTable: If the rule's table has no known identity column

        """
        if int(rule.rule_weight) == 0:
            logger.debug(f"planner | short_circuit | rule_id={rule.id} | reason=zero_weight")
            return None

        probe_value = None
        if match_params:
            probe_value = match_params.get(rule.rule_table, {}).get(rule.rule_field)
            if probe_value is None or probe_value == "":
                logger.debug(
                    f"planner | short_circuit | rule_id={rule.id} | reason=no_probe_value | "
                    f"table={rule.rule_table} | field={rule.rule_field}",
                )
                return None

        contact_type = self._resolve_contact_type(rule, contact_type)
        check_identifier(rule.rule_table, "rule_table")
        check_identifier(rule.rule_field, "rule_field")
        table_class = resolve_table(rule.rule_table, rule.id)

        value = value_expression(rule.rule_field, rule.rule_length)
        row_filter = table_class.restriction(contact_type)

        probe_filter = None
        if probe_value is not None:
            # probe values arrive untyped; both sides are compared as text
            probe_filter = eq(AsText(value), str(truncate_value(probe_value, rule.rule_length)))

        validity = self._validity(rule)
        primary_filter = and_(
            row_filter,
            table_class.probe_restriction(rule.rule_table, match_params),
            probe_filter,
            validity,
        )

        plan = CandidatePlan(
            rule=rule,
            table_class=table_class,
            value=value,
            row_filter=row_filter,
            primary_filter=primary_filter,
            validity=validity,
            contact_ids=tuple(normalize_contact_ids(contact_ids)),
        )
        logger.debug(
            f"planner | plan_built | rule_id={rule.id} | table={rule.rule_table} | "
            f"field={rule.rule_field} | length={rule.rule_length} | kind={table_class.kind} | "
            f"probe={probe_value is not None} | subset={len(plan.contact_ids)}",
        )
        return plan
