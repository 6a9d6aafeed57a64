"""Evaluate every rule of a rule group and collect the per-rule pairs.

Rules are independent: each one gets its own plan and its own cursor, so
they can run concurrently against the same read-mostly database. Weights
are not summed here; callers aggregate the returned frame themselves.
"""

import threading
import time
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any, Optional

import duckdb
import pandas as pd

from rule_dedupe.errors import ConfigurationError, RuleTimeoutError
from rule_dedupe.models import ID1, ID2, PAIR_COLUMNS, RULE_ID, MatchParams, RuleGroup, RuleSpec
from rule_dedupe.planner import CandidatePlan, CandidateQueryPlanner
from rule_dedupe.rule_store import RuleStore
from rule_dedupe.utils.logging_utils import get_logger
from rule_dedupe.utils.parallel_utils import get_optimal_workers, parallel_map

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

logger = get_logger(__name__)

RESULT_COLUMNS = [RULE_ID] + PAIR_COLUMNS


def empty_result() -> pd.DataFrame:
    return pd.DataFrame({column: pd.Series(dtype="int64") for column in RESULT_COLUMNS})


def execute_plan(
    con: "DuckDBPyConnection",
    plan: CandidatePlan,
    timeout: Optional[float] = None,
) -> pd.DataFrame:
    """Execute a plan, interrupting it after ``timeout`` seconds.

    Raises:
        RuleTimeoutError: If the query was interrupted by the time budget
        ConfigurationError: If the rule's table or field is not loaded

    """
    timer = None
    if timeout:
        timer = threading.Timer(timeout, con.interrupt)
        timer.daemon = True
        timer.start()
    try:
        return plan.execute(con)
    except duckdb.InterruptException as e:
        raise RuleTimeoutError(plan.rule.id, timeout) from e
    except (duckdb.CatalogException, duckdb.BinderException) as e:
        raise ConfigurationError(f"Dedupe rule id {plan.rule.id} references a missing table or field: {e}") from e
    finally:
        if timer is not None:
            timer.cancel()


class RuleGroupRunner:
    """Runs the rules of a group and concatenates their candidate pairs.

    Args:
        con: DuckDB connection holding the rule tables
        planner: Planner used for every rule
        settings: Loaded settings; reads ``runner.*`` and
            ``engine.rule_timeout_seconds``

    """

    def __init__(
        self,
        con: "DuckDBPyConnection",
        planner: CandidateQueryPlanner,
        settings: Optional[Mapping[str, Any]] = None,
    ):
        settings = settings or {}
        runner_settings = settings.get("runner", {})
        self.con = con
        self.planner = planner
        self.workers = get_optimal_workers(runner_settings.get("workers", 1))
        self.backend = runner_settings.get("backend", "threading")
        self.on_rule_error = runner_settings.get("on_rule_error", "skip")
        self.timeout = settings.get("engine", {}).get("rule_timeout_seconds")
        if self.on_rule_error not in ("skip", "abort"):
            raise ConfigurationError(f"runner.on_rule_error must be 'skip' or 'abort', got {self.on_rule_error!r}")

    def evaluate_rule(
        self,
        rule: RuleSpec,
        contact_type: Optional[str] = None,
        match_params: Optional[MatchParams] = None,
        contact_ids: Optional[Iterable[Any]] = None,
    ) -> pd.DataFrame:
        """Candidate pairs of one rule, tagged with its ``rule_id``."""
        start_time = time.time()
        try:
            plan = self.planner.plan(rule, contact_type, match_params, contact_ids)
            if plan is None:
                return empty_result()

            parallel = self.backend != "sequential" and self.workers > 1
            con = self.con.cursor() if parallel else self.con
            try:
                pairs = execute_plan(con, plan, self.timeout)
            finally:
                if parallel:
                    con.close()
        except (ConfigurationError, RuleTimeoutError) as e:
            if self.on_rule_error == "abort":
                raise
            logger.error(f"runner | rule_skipped | rule_id={rule.id} | error={e}")
            return empty_result()

        pairs.insert(0, RULE_ID, rule.id if rule.id is not None else -1)
        logger.info(
            f"runner | rule_done | rule_id={rule.id} | table={rule.rule_table} | "
            f"field={rule.rule_field} | pairs={len(pairs)} | elapsed={time.time() - start_time:.3f}s",
        )
        return pairs

    def run(
        self,
        group: RuleGroup,
        rules: Optional[Iterable[RuleSpec]] = None,
        match_params: Optional[MatchParams] = None,
        contact_ids: Optional[Iterable[Any]] = None,
    ) -> pd.DataFrame:
        """Evaluate the group's rules (or ``rules``) and concatenate the pairs."""
        rule_list = list(group.rules if rules is None else rules)
        subset = list(contact_ids) if contact_ids is not None else None
        logger.info(
            f"runner | START | group_id={group.id} | contact_type={group.contact_type} | "
            f"rules={len(rule_list)} | workers={self.workers} | backend={self.backend}",
        )

        frames = parallel_map(
            lambda rule: self.evaluate_rule(rule, group.contact_type, match_params, subset),
            rule_list,
            workers=self.workers,
            backend=self.backend,
        )
        frames = [frame for frame in frames if not frame.empty]
        if not frames:
            logger.info(f"runner | DONE | group_id={group.id} | pairs=0")
            return empty_result()

        result = pd.concat(frames, ignore_index=True)
        result = result.sort_values([RULE_ID, ID1, ID2]).reset_index(drop=True)
        logger.info(f"runner | DONE | group_id={group.id} | pairs={len(result)}")
        return result

    def run_for(
        self,
        store: RuleStore,
        contact_type: str,
        used: str = "Unsupervised",
        match_params: Optional[MatchParams] = None,
        contact_ids: Optional[Iterable[Any]] = None,
    ) -> pd.DataFrame:
        """Look up the rule group for ``contact_type``/``used`` and run it."""
        group = store.find_group(contact_type, used)
        return self.run(group, match_params=match_params, contact_ids=contact_ids)
