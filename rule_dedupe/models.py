"""Data model for dedupe rules and candidate pairs."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, NamedTuple, Optional

CONTACT_TYPES = ("Individual", "Organization", "Household")
USED_SELECTORS = ("Unsupervised", "Supervised", "General")

# Result frame columns
ID1 = "id1"
ID2 = "id2"
WEIGHT = "weight"
RULE_ID = "rule_id"
PAIR_COLUMNS = [ID1, ID2, WEIGHT]

MatchParams = Mapping[str, Mapping[str, Any]]


@dataclass(frozen=True)
class RuleSpec:
    """One field-level comparison with a weight and optional truncation."""

    rule_table: str
    rule_field: str
    rule_weight: int
    rule_length: Optional[int] = None
    rule_group_id: Optional[int] = None
    id: Optional[int] = None

    @property
    def is_active(self) -> bool:
        return int(self.rule_weight) != 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RuleSpec":
        length = data.get("rule_length")
        return cls(
            rule_table=data["rule_table"],
            rule_field=data["rule_field"],
            rule_weight=int(data.get("rule_weight", 0)),
            rule_length=int(length) if length else None,
            rule_group_id=data.get("dedupe_rule_group_id", data.get("rule_group_id")),
            id=data.get("id"),
        )


@dataclass(frozen=True)
class RuleGroup:
    """A set of rules sharing a target contact type."""

    contact_type: str
    used: str = "Unsupervised"
    id: Optional[int] = None
    name: Optional[str] = None
    threshold: int = 0
    rules: tuple[RuleSpec, ...] = field(default_factory=tuple)

    def active_rules(self) -> list[RuleSpec]:
        return [rule for rule in self.rules if rule.is_active]


class CandidatePair(NamedTuple):
    """Two entity ids proposed as duplicates by one rule (id1 < id2)."""

    id1: int
    id2: int
    weight: int


def normalize_contact_ids(contact_ids: Optional[Iterable[Any]]) -> list[int]:
    """Coerce a contact id subset to sorted distinct ints.

    Examples:
        >>> normalize_contact_ids(["3", 1, 3])
        [1, 3]

    """
    if not contact_ids:
        return []
    return sorted({int(cid) for cid in contact_ids})
