"""Rule-based duplicate candidate discovery.

Evaluates weighted matching rules over field values and proposes candidate
duplicate pairs without a full self-join of the rule table.
"""

from rule_dedupe.errors import (
    ConfigurationError,
    DedupeError,
    RuleTimeoutError,
    UnsupportedRuleTable,
)
from rule_dedupe.models import CandidatePair, RuleGroup, RuleSpec
from rule_dedupe.planner import CandidatePlan, CandidateQueryPlanner

__version__ = "0.4.0"

__all__ = [
    "CandidatePair",
    "CandidatePlan",
    "CandidateQueryPlanner",
    "ConfigurationError",
    "DedupeError",
    "RuleGroup",
    "RuleSpec",
    "RuleTimeoutError",
    "UnsupportedRuleTable",
]
