# chatflow/core/conditions.py
"""
Evaluation of variable-mode condition rules.

All functions here are pure: the result depends only on the rules and the
variables passed in.
"""

from typing import Callable, Dict, Iterable, Mapping, Union
import logging
import math
import re

from chatflow.models.flow_models import ConditionOperator, ConditionRule, LogicOperator

logger = logging.getLogger(__name__)

# Leading decimal number, the way browsers' parseFloat reads "20 anos" as 20
_FLOAT_PREFIX = re.compile(r"[+-]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def parse_number(value: str) -> float:
    """Parse the numeric prefix of ``value``; NaN when there is none."""
    match = _FLOAT_PREFIX.match(value.lstrip())
    if not match:
        return math.nan
    return float(match.group(0))


def _is_blank(value: str) -> bool:
    return not value or value.strip() == ""


_OPERATORS: Dict[str, Callable[[str, str], bool]] = {
    ConditionOperator.EQUALS.value: lambda left, right: left.lower() == right.lower(),
    ConditionOperator.NOT_EQUALS.value: lambda left, right: left.lower() != right.lower(),
    ConditionOperator.CONTAINS.value: lambda left, right: right.lower() in left.lower(),
    ConditionOperator.NOT_CONTAINS.value: lambda left, right: right.lower() not in left.lower(),
    ConditionOperator.STARTS_WITH.value: lambda left, right: left.lower().startswith(right.lower()),
    ConditionOperator.ENDS_WITH.value: lambda left, right: left.lower().endswith(right.lower()),
    ConditionOperator.IS_EMPTY.value: lambda left, right: _is_blank(left),
    ConditionOperator.IS_NOT_EMPTY.value: lambda left, right: not _is_blank(left),
    # NaN on either side makes both comparisons False
    ConditionOperator.GREATER_THAN.value: lambda left, right: parse_number(left) > parse_number(right),
    ConditionOperator.LESS_THAN.value: lambda left, right: parse_number(left) < parse_number(right),
}


def evaluate_condition(rule: ConditionRule, variables: Mapping[str, str]) -> bool:
    """
    Evaluate one rule against the variables. Unset variables read as "".
    Unknown operators evaluate to False.
    """
    operator = _OPERATORS.get(rule.operator)
    if operator is None:
        logger.warning(f"Unknown condition operator: {rule.operator}")
        return False

    return operator(variables.get(rule.variable) or "", rule.value)


def evaluate_conditions(
    rules: Iterable[ConditionRule],
    logic_operator: Union[LogicOperator, str],
    variables: Mapping[str, str],
) -> bool:
    """
    Combine the rules with ``and`` (all true) or ``or`` (at least one true).
    """
    results = [evaluate_condition(rule, variables) for rule in rules]

    if LogicOperator(logic_operator) is LogicOperator.AND:
        return all(results)
    return any(results)
