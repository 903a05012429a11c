"""Tests for parameter-name heuristics."""

import pytest

from qrest.catalog.operators import (
    infer_operators,
    is_limit_param,
    is_offset_param,
    is_pagination_param,
    is_sort_param,
    operator_suffix,
    param_matches_operator,
    strip_operator_suffix,
)


class TestSuffixes:
    """Tests for suffix detection and stripping."""

    @pytest.mark.parametrize("name,column", [
        ("age_gt", "age"),
        ("price_min", "price"),
        ("created_at_lte", "created_at"),
        ("Name_Like", "Name"),
        ("status", "status"),
        ("gt", "gt"),
        ("_gt", "_gt"),
    ])
    def test_strip_operator_suffix(self, name, column):
        assert strip_operator_suffix(name) == column

    def test_unknown_suffix_is_not_stripped(self):
        assert operator_suffix("user_id") is None
        assert strip_operator_suffix("user_id") == "user_id"


class TestInferOperators:
    """Tests for operator inference from name and type."""

    def test_equality_always_present(self):
        assert infer_operators("status", "string")[0] == "="
        assert infer_operators("flag", "boolean") == ("=",)

    def test_numeric_suffix_implies_single_range_operator(self):
        assert infer_operators("age_gt", "integer") == ("=", ">")
        assert infer_operators("price_max", "number") == ("=", "<=")

    def test_numeric_without_suffix_gets_all_ranges(self):
        assert set(infer_operators("age", "integer")) == {"=", ">", ">=", "<", "<="}

    def test_date_like_string_gets_ranges(self):
        operators = infer_operators("created_date", "string")
        assert ">" in operators and "<=" in operators

    def test_search_suffix_implies_like(self):
        operators = infer_operators("title_search", "string")
        assert "LIKE" in operators
        assert "ILIKE" in operators

    def test_name_hint_implies_like(self):
        assert "LIKE" in infer_operators("username", "string")

    def test_in_and_not_equal_suffixes(self):
        assert "IN" in infer_operators("status_in", "string")
        operators = infer_operators("status_ne", "string")
        assert "!=" in operators and "<>" in operators

    def test_between_suffix(self):
        assert "BETWEEN" in infer_operators("score_between", "number")


class TestPaginationDetection:
    """Tests for pagination and sort parameter detection."""

    @pytest.mark.parametrize("name", ["limit", "page_size", "per_page", "pageSize"])
    def test_limit_params(self, name):
        assert is_limit_param(name)
        assert not is_offset_param(name)
        assert is_pagination_param(name)

    @pytest.mark.parametrize("name", ["offset", "page", "startOffset"])
    def test_offset_params(self, name):
        assert is_offset_param(name)
        assert is_pagination_param(name)

    def test_filter_is_not_pagination(self):
        assert not is_pagination_param("status")

    def test_sort_params(self):
        assert is_sort_param("sort_by")
        assert is_sort_param("order")
        assert not is_sort_param("status")


class TestParamMatchesOperator:
    """Tests for pattern matching of column + operator onto parameter names."""

    def test_matches_suffix_for_operator(self):
        assert param_matches_operator("age_gt", "age", ">")
        assert param_matches_operator("age_min", "age", ">=")
        assert param_matches_operator("AGE_LT", "age", "<")

    def test_wrong_operator_does_not_match(self):
        assert not param_matches_operator("age_gt", "age", "<")

    def test_other_column_does_not_match(self):
        assert not param_matches_operator("height_gt", "age", ">")

    def test_equivalent_operators(self):
        assert param_matches_operator("status_ne", "status", "<>")
        assert param_matches_operator("name_like", "name", "ILIKE")
