"""Evaluation of rule trigger conditions against a data record."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from app.domain.entities import ConditionOperator, RuleCondition

logger = logging.getLogger(__name__)


def evaluate_condition(condition: RuleCondition, record: Mapping[str, Any]) -> bool:
    """Return whether ``record`` satisfies ``condition``.

    A condition without a field always holds. Comparisons are strict, a
    missing field or values that cannot be compared do not satisfy the
    condition, and an unrecognized operator fails closed.
    """

    if not condition.field:
        return True

    if condition.field not in record:
        return False
    value = record[condition.field]
    if value is None:
        return False

    try:
        operator = ConditionOperator(condition.operator)
    except ValueError:
        logger.warning(
            "Unknown condition operator %r on field '%s'; treating condition as not met",
            condition.operator,
            condition.field,
        )
        return False

    threshold = condition.threshold
    try:
        if operator is ConditionOperator.GREATER_THAN:
            return value > threshold
        if operator is ConditionOperator.LESS_THAN:
            return value < threshold
        return value == threshold
    except TypeError:
        logger.debug(
            "Cannot compare %r with %r for field '%s'",
            value,
            threshold,
            condition.field,
        )
        return False


__all__ = ["evaluate_condition"]
