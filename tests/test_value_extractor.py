"""Tests for comparison value extraction."""

from hypothesis import given
from hypothesis import strategies as st

from rule_dedupe.sql.emitter import DuckDBEmitter
from rule_dedupe.sql.expressions import Field, Prefix
from rule_dedupe.value_extractor import truncate_value, value_expression


class TestValueExpression:
    """Test the SQL side of value extraction."""

    def test_untruncated_is_raw_field(self):
        assert value_expression("email") == Field("email")

    def test_zero_length_means_untruncated(self):
        assert value_expression("email", 0) == Field("email")

    def test_truncated_is_prefix(self):
        expr = value_expression("last_name", 3, role="pri")

        assert expr == Prefix(Field("last_name", "pri"), 3)

    def test_truncated_renders_substr_with_bound_length(self):
        sql, params = DuckDBEmitter().emit(value_expression("last_name", 3), "dupes")

        assert sql == 'SUBSTR(CAST(dupes."last_name" AS VARCHAR), 1, ?)'
        assert params == [3]


class TestTruncateValue:
    """Test the probe-value side of value extraction."""

    def test_multibyte_prefix_is_character_wise(self):
        assert truncate_value("Ångström", 2) == "Ån"
        assert truncate_value("日本語テキスト", 3) == "日本語"

    def test_none_passes_through(self):
        assert truncate_value(None, 3) is None

    def test_non_strings_are_stringified_when_truncated(self):
        assert truncate_value(123456, 3) == "123"

    @given(text=st.text(), length=st.integers(min_value=1, max_value=20))
    def test_prefix_length_never_exceeds_limit(self, text, length):
        result = truncate_value(text, length)

        assert len(result) == min(len(text), length)
        assert text.startswith(result)
