"""
Three-valued evaluation of condition trees. Every function here returns True, False, or None,
where None means "unknown": the attributes did not contain enough usable information to decide.
Nothing in this module raises for bad attribute or condition data.
"""

from typing import Any, Callable, Optional

from expclient.impl.model.condition import (CUSTOM_ATTRIBUTE_CONDITION_TYPE,
                                            AndCondition, ConditionLeaf,
                                            ConditionNode, NotCondition,
                                            OrCondition)
from expclient.impl.semantic_version import compare_versions
from expclient.impl.util import is_finite_number, is_number, log

EXACT_MATCH_TYPE = 'exact'
EXISTS_MATCH_TYPE = 'exists'
GREATER_THAN_MATCH_TYPE = 'gt'
GREATER_THAN_OR_EQUAL_MATCH_TYPE = 'ge'
LESS_THAN_MATCH_TYPE = 'lt'
LESS_THAN_OR_EQUAL_MATCH_TYPE = 'le'
SUBSTRING_MATCH_TYPE = 'substring'
SEMVER_EQ_MATCH_TYPE = 'semver_eq'
SEMVER_GT_MATCH_TYPE = 'semver_gt'
SEMVER_GE_MATCH_TYPE = 'semver_ge'
SEMVER_LT_MATCH_TYPE = 'semver_lt'
SEMVER_LE_MATCH_TYPE = 'semver_le'


def negate(value: Optional[bool]) -> Optional[bool]:
    return None if value is None else not value


def evaluate_tree(node: Optional[ConditionNode], evaluate_leaf: Callable[[ConditionNode], Optional[bool]]) -> Optional[bool]:
    """
    Combines leaf results with Kleene logic. ``evaluate_leaf`` is called for every node that is
    not an and/or/not operator, so the same walk serves attribute conditions and audience
    references alike.
    """
    if node is None:
        return None
    if isinstance(node, AndCondition):
        saw_unknown = False
        for child in node.children:
            result = evaluate_tree(child, evaluate_leaf)
            if result is False:
                return False
            if result is None:
                saw_unknown = True
        return None if saw_unknown else True
    if isinstance(node, OrCondition):
        saw_unknown = False
        for child in node.children:
            result = evaluate_tree(child, evaluate_leaf)
            if result is True:
                return True
            if result is None:
                saw_unknown = True
        return None if saw_unknown else False
    if isinstance(node, NotCondition):
        return negate(evaluate_tree(node.child, evaluate_leaf))
    return evaluate_leaf(node)


def _is_exact_comparable(value: Any) -> bool:
    return isinstance(value, (str, bool)) or is_number(value)


def _value_type_of(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return 'boolean'
    if is_number(value):
        return 'number'
    if isinstance(value, str):
        return 'string'
    return None


def _exact(leaf: ConditionLeaf, user_value: Any) -> Optional[bool]:
    condition_value = leaf.value
    if not _is_exact_comparable(condition_value) or (is_number(condition_value) and not is_finite_number(condition_value)):
        log.warning('Audience condition %s has an unsupported condition value' % leaf)
        return None
    if not _is_exact_comparable(user_value) or leaf.value_type != _value_type_of(user_value):
        log.warning('Audience condition %s evaluated to UNKNOWN because a value of type %s was passed for user attribute "%s"'
                    % (leaf, user_value.__class__.__name__, leaf.attribute_name))
        return None
    if is_number(user_value) and not is_finite_number(user_value):
        log.warning('Audience condition %s evaluated to UNKNOWN because the number value for user attribute "%s" is not in the range [-2^53, +2^53]'
                    % (leaf, leaf.attribute_name))
        return None
    return condition_value == user_value


def _numeric(fn: Callable[[Any, Any], bool]) -> Callable[[ConditionLeaf, Any], Optional[bool]]:
    def evaluate(leaf: ConditionLeaf, user_value: Any) -> Optional[bool]:
        if not is_finite_number(leaf.value):
            log.warning('Audience condition %s has an unsupported condition value' % leaf)
            return None
        if not is_number(user_value):
            log.warning('Audience condition %s evaluated to UNKNOWN because a value of type %s was passed for user attribute "%s"'
                        % (leaf, user_value.__class__.__name__, leaf.attribute_name))
            return None
        if not is_finite_number(user_value):
            log.warning('Audience condition %s evaluated to UNKNOWN because the number value for user attribute "%s" is not in the range [-2^53, +2^53]'
                        % (leaf, leaf.attribute_name))
            return None
        return fn(user_value, leaf.value)
    return evaluate


def _substring(leaf: ConditionLeaf, user_value: Any) -> Optional[bool]:
    if not isinstance(leaf.value, str):
        log.warning('Audience condition %s has an unsupported condition value' % leaf)
        return None
    if not isinstance(user_value, str):
        log.warning('Audience condition %s evaluated to UNKNOWN because a value of type %s was passed for user attribute "%s"'
                    % (leaf, user_value.__class__.__name__, leaf.attribute_name))
        return None
    return leaf.value in user_value


def _semver(fn: Callable[[int], bool]) -> Callable[[ConditionLeaf, Any], Optional[bool]]:
    def evaluate(leaf: ConditionLeaf, user_value: Any) -> Optional[bool]:
        if not isinstance(leaf.value, str):
            log.warning('Audience condition %s has an unsupported condition value' % leaf)
            return None
        if not isinstance(user_value, str):
            log.warning('Audience condition %s evaluated to UNKNOWN because a value of type %s was passed for user attribute "%s"'
                        % (leaf, user_value.__class__.__name__, leaf.attribute_name))
            return None
        result = compare_versions(leaf.value, user_value)
        return None if result is None else fn(result)
    return evaluate


ops = {
    EXACT_MATCH_TYPE: _exact,
    GREATER_THAN_MATCH_TYPE: _numeric(lambda a, b: a > b),
    GREATER_THAN_OR_EQUAL_MATCH_TYPE: _numeric(lambda a, b: a >= b),
    LESS_THAN_MATCH_TYPE: _numeric(lambda a, b: a < b),
    LESS_THAN_OR_EQUAL_MATCH_TYPE: _numeric(lambda a, b: a <= b),
    SUBSTRING_MATCH_TYPE: _substring,
    SEMVER_EQ_MATCH_TYPE: _semver(lambda c: c == 0),
    SEMVER_GT_MATCH_TYPE: _semver(lambda c: c > 0),
    SEMVER_GE_MATCH_TYPE: _semver(lambda c: c >= 0),
    SEMVER_LT_MATCH_TYPE: _semver(lambda c: c < 0),
    SEMVER_LE_MATCH_TYPE: _semver(lambda c: c <= 0),
}


def evaluate_leaf(leaf: ConditionNode, attributes: Optional[dict]) -> Optional[bool]:
    if not isinstance(leaf, ConditionLeaf):
        log.warning('Unexpected condition node %r' % (leaf,))
        return None
    if leaf.condition_type != CUSTOM_ATTRIBUTE_CONDITION_TYPE:
        log.warning('Audience condition %s uses an unknown condition type. You may need to upgrade to a newer release of the SDK.' % leaf)
        return None
    match_type = leaf.match_type or EXACT_MATCH_TYPE
    if match_type != EXISTS_MATCH_TYPE and match_type not in ops:
        log.warning('Audience condition %s uses an unknown match type. You may need to upgrade to a newer release of the SDK.' % leaf)
        return None

    attributes = attributes or {}
    if match_type == EXISTS_MATCH_TYPE:
        return attributes.get(leaf.attribute_name) is not None
    if leaf.attribute_name not in attributes:
        log.debug('Audience condition %s evaluated to UNKNOWN because no value was passed for user attribute "%s"' % (leaf, leaf.attribute_name))
        return None
    user_value = attributes[leaf.attribute_name]
    if user_value is None:
        log.debug('Audience condition %s evaluated to UNKNOWN because a null value was passed for user attribute "%s"' % (leaf, leaf.attribute_name))
        return None
    return ops[match_type](leaf, user_value)


def evaluate(node: Optional[ConditionNode], attributes: Optional[dict]) -> Optional[bool]:
    """
    Evaluates an audience's condition tree against a user's attributes.

    :return: True, False, or None for unknown
    """
    return evaluate_tree(node, lambda leaf: evaluate_leaf(leaf, attributes))
