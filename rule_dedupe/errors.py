"""Exception types raised while planning and running dedupe rules."""


class DedupeError(Exception):
    """Base class for rule dedupe errors."""


class ConfigurationError(DedupeError):
    """A rule or rule group cannot be evaluated as configured.

    Fatal to the single rule's evaluation; never retried.
    """


class UnsupportedRuleTable(ConfigurationError):
    """The rule's table has no known identity column."""

    def __init__(self, table: str, rule_id: object = None):
        self.table = table
        self.rule_id = rule_id
        super().__init__(f"Unsupported rule_table {table!r} for dedupe rule id {rule_id}")


class RuleTimeoutError(DedupeError):
    """A rule's plan did not finish within its time budget."""

    def __init__(self, rule_id: object, timeout: float):
        self.rule_id = rule_id
        self.timeout = timeout
        super().__init__(f"Dedupe rule id {rule_id} exceeded {timeout}s")
