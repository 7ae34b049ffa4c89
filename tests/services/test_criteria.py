"""
Tests for sharing rule criteria evaluation.

Conditions compare one record field against a literal. Comparisons are
type-strict: no coercion between booleans, numbers and text.
"""

from decimal import Decimal

import pytest

from backend.schemas.sharing import SharingCriteria, SharingCriteriaCondition
from backend.services.record_sharing import evaluate_condition, evaluate_criteria


def cond(field, operator, value=None) -> SharingCriteriaCondition:
    return SharingCriteriaCondition(field=field, operator=operator, value=value)


class TestEquality:

    def test_equals_same_text(self):
        assert evaluate_condition(cond("status", "equals", "active"), {"status": "active"}) is True

    def test_equals_is_case_sensitive(self):
        assert evaluate_condition(cond("status", "equals", "Active"), {"status": "active"}) is False

    def test_equals_int_and_float(self):
        assert evaluate_condition(cond("amount", "equals", 50.0), {"amount": 50}) is True

    def test_equals_decimal_is_a_number(self):
        assert evaluate_condition(cond("amount", "equals", 50), {"amount": Decimal("50")}) is True

    def test_equals_does_not_coerce_text_to_number(self):
        assert evaluate_condition(cond("amount", "equals", "50"), {"amount": 50}) is False

    def test_equals_does_not_coerce_bool_to_number(self):
        """True and 1 are different values."""
        assert evaluate_condition(cond("flag", "equals", 1), {"flag": True}) is False
        assert evaluate_condition(cond("flag", "equals", True), {"flag": 1}) is False
        assert evaluate_condition(cond("flag", "equals", True), {"flag": True}) is True

    def test_equals_null_matches_missing_field(self):
        assert evaluate_condition(cond("doula_id", "equals", None), {}) is True

    def test_equals_lists_structurally(self):
        field_values = {"tags": ["vbac", "twins"]}
        assert evaluate_condition(cond("tags", "equals", ["vbac", "twins"]), field_values) is True
        assert evaluate_condition(cond("tags", "equals", ["twins", "vbac"]), field_values) is False

    def test_not_equals(self):
        assert evaluate_condition(cond("status", "not_equals", "closed"), {"status": "active"}) is True
        assert evaluate_condition(cond("status", "not_equals", "active"), {"status": "active"}) is False

    def test_not_equals_across_types(self):
        assert evaluate_condition(cond("amount", "not_equals", "50"), {"amount": 50}) is True


class TestContains:

    def test_contains_text_ignores_case(self):
        assert evaluate_condition(cond("city", "contains", "PORT"), {"city": "Portland"}) is True

    def test_contains_text_no_match(self):
        assert evaluate_condition(cond("city", "contains", "salem"), {"city": "Portland"}) is False

    def test_contains_list_membership(self):
        field_values = {"tags": ["vbac", "twins"]}
        assert evaluate_condition(cond("tags", "contains", "twins"), field_values) is True
        assert evaluate_condition(cond("tags", "contains", "TWINS"), field_values) is False

    def test_contains_on_number_is_false(self):
        assert evaluate_condition(cond("amount", "contains", "5"), {"amount": 50}) is False

    def test_contains_on_missing_field_is_false(self):
        assert evaluate_condition(cond("notes", "contains", "x"), {}) is False

    def test_not_contains_text(self):
        assert evaluate_condition(cond("city", "not_contains", "salem"), {"city": "Portland"}) is True
        assert evaluate_condition(cond("city", "not_contains", "land"), {"city": "Portland"}) is False

    def test_not_contains_list(self):
        field_values = {"tags": ["vbac"]}
        assert evaluate_condition(cond("tags", "not_contains", "twins"), field_values) is True
        assert evaluate_condition(cond("tags", "not_contains", "vbac"), field_values) is False

    def test_not_contains_type_mismatch_matches(self):
        """Unlike every other operator, a type mismatch here counts as a match."""
        assert evaluate_condition(cond("amount", "not_contains", "5"), {"amount": 50}) is True
        assert evaluate_condition(cond("notes", "not_contains", "x"), {}) is True


class TestStartsWith:

    def test_prefix_ignores_case(self):
        assert evaluate_condition(cond("name", "starts_with", "mar"), {"name": "Maria Lopez"}) is True

    def test_not_a_prefix(self):
        assert evaluate_condition(cond("name", "starts_with", "lopez"), {"name": "Maria Lopez"}) is False

    def test_non_text_is_false(self):
        assert evaluate_condition(cond("amount", "starts_with", "5"), {"amount": 50}) is False


class TestOrdering:

    def test_greater_than_numbers(self):
        assert evaluate_condition(cond("amount", "greater_than", 40), {"amount": 50}) is True
        assert evaluate_condition(cond("amount", "greater_than", 50), {"amount": 50}) is False

    def test_less_than_numbers(self):
        assert evaluate_condition(cond("amount", "less_than", 50.5), {"amount": 50}) is True
        assert evaluate_condition(cond("amount", "less_than", 50), {"amount": 50}) is False

    def test_text_compares_lexicographically(self):
        field_values = {"due_date": "2025-07-15"}
        assert evaluate_condition(cond("due_date", "greater_than", "2025-07-01"), field_values) is True
        assert evaluate_condition(cond("due_date", "less_than", "2025-07-01"), field_values) is False

    def test_mixed_types_are_false(self):
        assert evaluate_condition(cond("amount", "greater_than", "40"), {"amount": 50}) is False
        assert evaluate_condition(cond("amount", "less_than", "60"), {"amount": 50}) is False

    def test_booleans_are_not_ordered(self):
        assert evaluate_condition(cond("flag", "greater_than", 0), {"flag": True}) is False

    def test_missing_field_is_false(self):
        assert evaluate_condition(cond("amount", "greater_than", 0), {}) is False

    def test_decimal_amounts_are_ordered(self):
        assert evaluate_condition(cond("amount", "greater_than", 100), {"amount": Decimal("150.25")}) is True

    @pytest.mark.parametrize("nan", [Decimal("NaN"), Decimal("sNaN")])
    def test_nan_decimal_is_false_not_an_error(self, nan):
        """A NaN amount fails the condition instead of raising."""
        assert evaluate_condition(cond("amount", "greater_than", 100), {"amount": nan}) is False
        assert evaluate_condition(cond("amount", "less_than", 100), {"amount": nan}) is False
        assert evaluate_condition(cond("amount", "greater_than", nan), {"amount": 5}) is False

    @pytest.mark.parametrize("nan", [Decimal("NaN"), Decimal("sNaN")])
    def test_nan_decimal_equals_nothing(self, nan):
        assert evaluate_condition(cond("amount", "equals", nan), {"amount": nan}) is False
        assert evaluate_condition(cond("amount", "equals", 100), {"amount": nan}) is False
        assert evaluate_condition(cond("amount", "in", [nan, 100]), {"amount": nan}) is False
        assert evaluate_condition(cond("amount", "not_equals", 100), {"amount": nan}) is True


class TestNullChecks:

    @pytest.mark.parametrize("field_values,expected", [
        ({}, True),
        ({"doula_id": None}, True),
        ({"doula_id": ""}, False),
        ({"doula_id": 0}, False),
        ({"doula_id": False}, False),
    ])
    def test_is_null(self, field_values, expected):
        assert evaluate_condition(cond("doula_id", "is_null"), field_values) is expected

    @pytest.mark.parametrize("field_values,expected", [
        ({}, False),
        ({"doula_id": None}, False),
        ({"doula_id": "doula-ana"}, True),
        ({"doula_id": 0}, True),
    ])
    def test_is_not_null(self, field_values, expected):
        assert evaluate_condition(cond("doula_id", "is_not_null"), field_values) is expected


class TestIn:

    def test_value_in_list(self):
        condition = cond("status", "in", ["active", "prenatal"])
        assert evaluate_condition(condition, {"status": "prenatal"}) is True
        assert evaluate_condition(condition, {"status": "closed"}) is False

    def test_membership_is_type_strict(self):
        assert evaluate_condition(cond("amount", "in", ["50", 60]), {"amount": 50}) is False
        assert evaluate_condition(cond("flag", "in", [1]), {"flag": True}) is False

    def test_non_list_target_is_false(self):
        assert evaluate_condition(cond("status", "in", "active"), {"status": "active"}) is False


def test_unknown_operator_is_false():
    assert evaluate_condition(cond("status", "matches", "active"), {"status": "active"}) is False


class TestEvaluateCriteria:
    """AND/OR combination of conditions."""

    STATUS_ACTIVE = {"field": "status", "operator": "equals", "value": "active"}
    AMOUNT_OVER_100 = {"field": "amount", "operator": "greater_than", "value": 100}

    def criteria(self, match_type, *conditions) -> SharingCriteria:
        return SharingCriteria.model_validate({"match_type": match_type, "conditions": list(conditions)})

    def test_all_requires_every_condition(self, record_context):
        criteria = self.criteria("all", self.STATUS_ACTIVE, self.AMOUNT_OVER_100)
        assert evaluate_criteria(criteria, record_context.field_values) is False

    def test_any_requires_one_condition(self, record_context):
        criteria = self.criteria("any", self.STATUS_ACTIVE, self.AMOUNT_OVER_100)
        assert evaluate_criteria(criteria, record_context.field_values) is True

    def test_any_with_no_match(self):
        criteria = self.criteria("any", self.STATUS_ACTIVE, self.AMOUNT_OVER_100)
        assert evaluate_criteria(criteria, {"status": "closed", "amount": 20}) is False

    @pytest.mark.parametrize("match_type", ["all", "any"])
    def test_no_conditions_always_match(self, match_type):
        assert evaluate_criteria(self.criteria(match_type), {}) is True

    def test_unknown_operator_fails_all(self):
        criteria = self.criteria(
            "all",
            self.STATUS_ACTIVE,
            {"field": "status", "operator": "regex", "value": "^act"},
        )
        assert evaluate_criteria(criteria, {"status": "active"}) is False

    def test_match_type_defaults_to_all(self):
        criteria = SharingCriteria.model_validate({"conditions": [self.STATUS_ACTIVE, self.AMOUNT_OVER_100]})
        assert evaluate_criteria(criteria, {"status": "active", "amount": 20}) is False
