"""Tests for rule condition evaluation."""

import pytest

from app.application.use_cases.notifications import evaluate_condition
from app.domain.entities import ConditionOperator, RuleCondition


def _condition(operator, threshold, field="stock"):
    return RuleCondition(field=field, operator=operator, threshold=threshold)


@pytest.mark.parametrize(
    ("stock", "expected"),
    [(9, True), (10, False), (11, False)],
)
def test_less_than_is_strict(stock, expected):
    condition = _condition(ConditionOperator.LESS_THAN, 10)

    assert evaluate_condition(condition, {"stock": stock}) is expected


@pytest.mark.parametrize(
    ("amount", "expected"),
    [(1000, False), (1000.01, True)],
)
def test_greater_than_is_strict(amount, expected):
    condition = _condition(ConditionOperator.GREATER_THAN, 1000, field="overdue_amount")

    assert evaluate_condition(condition, {"overdue_amount": amount}) is expected


def test_equal_to_compares_values():
    condition = _condition(ConditionOperator.EQUAL_TO, 0)

    assert evaluate_condition(condition, {"stock": 0}) is True
    assert evaluate_condition(condition, {"stock": 1}) is False


def test_condition_without_field_always_holds():
    assert evaluate_condition(RuleCondition(), {}) is True


def test_missing_or_null_field_is_not_met():
    condition = _condition(ConditionOperator.LESS_THAN, 10)

    assert evaluate_condition(condition, {}) is False
    assert evaluate_condition(condition, {"stock": None}) is False


def test_incomparable_values_are_not_met():
    condition = _condition(ConditionOperator.LESS_THAN, 10)

    assert evaluate_condition(condition, {"stock": "many"}) is False


def test_unknown_operator_fails_closed(caplog):
    condition = RuleCondition(field="stock", operator="between", threshold=10)

    assert evaluate_condition(condition, {"stock": 1}) is False
    assert "Unknown condition operator" in caplog.text
