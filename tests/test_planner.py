"""Tests for candidate query planning (no execution)."""

import pytest

from rule_dedupe.errors import ConfigurationError, UnsupportedRuleTable
from rule_dedupe.models import RuleSpec
from rule_dedupe.planner import ZERO_DATE_SENTINEL, CandidateQueryPlanner


class TestShortCircuits:
    """Rules that contribute nothing produce no plan."""

    def test_zero_weight(self, planner):
        rule = RuleSpec("contact", "last_name", rule_weight=0)

        assert planner.plan(rule, contact_type="Individual") is None

    def test_zero_weight_skips_validation(self, planner):
        """A disabled rule is not checked at all."""
        rule = RuleSpec("activity", "subject", rule_weight=0)

        assert planner.plan(rule, contact_type="Robot") is None

    @pytest.mark.parametrize(
        "params",
        [
            {"email": {"email": "a@example.org"}},
            {"contact": {"first_name": "Ann"}},
            {"contact": {"last_name": ""}},
            {"contact": {"last_name": None}},
        ],
    )
    def test_probe_without_value(self, planner, params):
        rule = RuleSpec("contact", "last_name", rule_weight=5)

        assert planner.plan(rule, contact_type="Individual", match_params=params) is None

    def test_empty_params_mean_all_pairs_mode(self, planner):
        rule = RuleSpec("contact", "last_name", rule_weight=5)

        assert planner.plan(rule, contact_type="Individual", match_params={}) is not None


class TestFatalChecks:
    """Configuration problems abort the rule."""

    def test_invalid_contact_type(self, planner):
        with pytest.raises(ConfigurationError, match="Invalid contact type"):
            planner.plan(RuleSpec("contact", "last_name", rule_weight=5), contact_type="Robot")

    def test_missing_contact_type(self, planner):
        with pytest.raises(ConfigurationError):
            planner.plan(RuleSpec("contact", "last_name", rule_weight=5))

    def test_contact_type_lookup(self, field_types):
        planner = CandidateQueryPlanner(field_types, {7: "Household"}.get)
        plan = planner.plan(RuleSpec("contact", "household_name", rule_weight=5, rule_group_id=7))

        assert "Household" in plan.to_sql()[1]

    def test_unsupported_table(self, planner):
        with pytest.raises(UnsupportedRuleTable):
            planner.plan(RuleSpec("activity", "subject", rule_weight=5), contact_type="Individual")

    def test_bad_field_identifier(self, planner):
        with pytest.raises(ConfigurationError):
            planner.plan(RuleSpec("contact", "last_name OR 1=1", rule_weight=5), contact_type="Individual")


class TestPlanShape:
    """Structure of the generated SQL."""

    def test_two_stages(self, planner):
        plan = planner.plan(RuleSpec("contact", "last_name", rule_weight=5), contact_type="Individual")
        sql, params = plan.to_sql()

        assert "GROUP BY 1 HAVING COUNT(*) > ?" in sql
        assert "SELECT DISTINCT LEAST(" in sql
        assert 'dupes."id" <> pri."id"' in sql
        assert sql.count('"contact"') == 3
        assert sql.count("?") == len(params)

    def test_weight_is_bound(self, planner):
        plan = planner.plan(RuleSpec("contact", "last_name", rule_weight=13), contact_type="Individual")
        sql, params = plan.to_sql()

        assert "CAST(? AS INTEGER) AS weight" in sql
        assert params[0] == 13

    def test_probe_value_never_in_sql_text(self, planner):
        params = {"contact": {"last_name": "Robert'); DROP TABLE contact;--"}}
        plan = planner.plan(RuleSpec("contact", "last_name", rule_weight=5), "Individual", params)
        sql, bound = plan.to_sql()

        assert "DROP" not in sql
        assert params["contact"]["last_name"] in bound

    def test_truncated_probe_value_is_bound(self, planner):
        params = {"contact": {"last_name": "Smithson"}}
        plan = planner.plan(RuleSpec("contact", "last_name", rule_weight=5, rule_length=3), "Individual", params)

        assert "Smi" in plan.to_sql()[1]
        assert "Smithson" not in plan.to_sql()[1]

    def test_address_groups_by_discriminator(self, planner):
        plan = planner.plan(RuleSpec("address", "street_address", rule_weight=5), contact_type="Individual")
        sql, _ = plan.stage_a_sql()

        assert "GROUP BY 1, 2" in sql
        assert 'pri."location_type_id" = dupes."location_type_id"' in plan.to_sql()[0]

    def test_subset_goes_into_having(self, planner):
        plan = planner.plan(
            RuleSpec("email", "email", rule_weight=5), contact_type="Individual", contact_ids=["9", 4, 9],
        )
        sql, params = plan.stage_a_sql()

        assert plan.contact_ids == (4, 9)
        assert 'SUM(CASE WHEN vals_with_dupes."contact_id" IN (?,?) THEN 1 ELSE 0 END) > ?' in sql
        assert params[-3:] == [4, 9, 0]

    def test_date_fields_use_sentinel(self, planner):
        plan = planner.plan(RuleSpec("contact", "birth_date", rule_weight=5), contact_type="Individual")
        sql, params = plan.to_sql()

        assert "TRY_CAST(" in sql
        assert ZERO_DATE_SENTINEL in params
        assert "IS NOT NULL" not in sql

    def test_plans_are_immutable_and_comparable(self, planner):
        rule = RuleSpec("contact", "last_name", rule_weight=5)

        assert planner.plan(rule, "Individual") == planner.plan(rule, "Individual")
        with pytest.raises(AttributeError):
            planner.plan(rule, "Individual").contact_ids = (1,)

    def test_probe_value_is_bound_as_text(self, planner):
        params = {"contact": {"last_name": 44}}
        plan = planner.plan(RuleSpec("contact", "last_name", rule_weight=5), "Individual", params)
        sql, bound = plan.to_sql()

        assert 'CAST(vals_with_dupes."last_name" AS VARCHAR) = ?' in sql
        assert "44" in bound
        assert 44 not in bound
