from typing import Any, Callable, List, Optional

from expclient.impl.model.entity import *
from expclient.impl.util import is_number

# Condition trees arrive as nested arrays: ["and", child, ...], ["or", ...], ["not", child],
# where a list with no leading operator is treated as "or". They are decoded once, when the
# configuration is built, into the node classes below; evaluation only ever walks these
# objects.

AND_OPERATOR = 'and'
OR_OPERATOR = 'or'
NOT_OPERATOR = 'not'
DEFAULT_OPERATOR = OR_OPERATOR
_OPERATORS = (AND_OPERATOR, OR_OPERATOR, NOT_OPERATOR)

CUSTOM_ATTRIBUTE_CONDITION_TYPE = 'custom_attribute'


class ConditionNode:
    __slots__ = []  # type: List[str]


class AndCondition(ConditionNode):
    __slots__ = ['_children']

    def __init__(self, children: List[ConditionNode]):
        self._children = tuple(children)

    @property
    def children(self) -> tuple:
        return self._children

    def __repr__(self) -> str:
        return 'And%r' % (list(self._children),)


class OrCondition(ConditionNode):
    __slots__ = ['_children']

    def __init__(self, children: List[ConditionNode]):
        self._children = tuple(children)

    @property
    def children(self) -> tuple:
        return self._children

    def __repr__(self) -> str:
        return 'Or%r' % (list(self._children),)


class NotCondition(ConditionNode):
    __slots__ = ['_child']

    def __init__(self, child: Optional[ConditionNode]):
        self._child = child

    @property
    def child(self) -> Optional[ConditionNode]:
        """None when the encoded "not" had no operand; such a node always evaluates to unknown."""
        return self._child

    def __repr__(self) -> str:
        return 'Not(%r)' % (self._child,)


def _value_type(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return 'boolean'
    if is_number(value):
        return 'number'
    if isinstance(value, str):
        return 'string'
    return None


class ConditionLeaf(ConditionNode):
    """
    A single attribute test, such as ``{"name": "age", "type": "custom_attribute", "match": "gt", "value": 21}``.
    """

    __slots__ = ['_attribute_name', '_condition_type', '_match_type', '_value', '_value_type']

    def __init__(self, data: dict):
        self._attribute_name = req_str(data, 'name')
        self._condition_type = opt_str(data, 'type')
        self._match_type = opt_str(data, 'match')
        self._value = data.get('value')
        self._value_type = _value_type(self._value)

    @property
    def attribute_name(self) -> str:
        return self._attribute_name

    @property
    def condition_type(self) -> Optional[str]:
        return self._condition_type

    @property
    def match_type(self) -> Optional[str]:
        """The match operator; None means "exact"."""
        return self._match_type

    @property
    def value(self) -> Any:
        return self._value

    @property
    def value_type(self) -> Optional[str]:
        """One of "string", "number", "boolean", or None if the comparison value is none of these."""
        return self._value_type

    def to_json_dict(self) -> dict:
        out = {'name': self._attribute_name, 'value': self._value}
        if self._condition_type is not None:
            out['type'] = self._condition_type
        if self._match_type is not None:
            out['match'] = self._match_type
        return out

    def __repr__(self) -> str:
        return 'Leaf(%r)' % (self.to_json_dict(),)


class AudienceReference(ConditionNode):
    """A leaf of an experiment's targeting expression: a reference to an audience by id."""

    __slots__ = ['_audience_id']

    def __init__(self, audience_id: str):
        self._audience_id = audience_id

    @property
    def audience_id(self) -> str:
        return self._audience_id

    def __repr__(self) -> str:
        return 'Audience(%s)' % self._audience_id


def parse_condition_tree(raw: Any, parse_leaf: Callable[[Any], ConditionNode]) -> ConditionNode:
    if isinstance(raw, list):
        if len(raw) > 0 and isinstance(raw[0], str) and raw[0] in _OPERATORS:
            operator = raw[0]
            operands = raw[1:]
        else:
            operator = DEFAULT_OPERATOR
            operands = raw
        children = [parse_condition_tree(item, parse_leaf) for item in operands]
        if operator == AND_OPERATOR:
            return AndCondition(children)
        if operator == NOT_OPERATOR:
            return NotCondition(children[0] if len(children) > 0 else None)
        return OrCondition(children)
    return parse_leaf(raw)


def _parse_attribute_leaf(raw: Any) -> ConditionNode:
    if not isinstance(raw, dict):
        raise ValueError('error in configuration data: audience condition should be an object but was %s' % raw.__class__)
    return ConditionLeaf(raw)


def _parse_audience_reference(raw: Any) -> ConditionNode:
    if not isinstance(raw, str):
        raise ValueError('error in configuration data: audience reference should be a string but was %s' % raw.__class__)
    return AudienceReference(raw)


def parse_audience_conditions(raw: Any) -> ConditionNode:
    return parse_condition_tree(raw, _parse_attribute_leaf)


def parse_targeting_expression(audience_conditions: Optional[list], audience_ids: List[str]) -> Optional[ConditionNode]:
    """
    Decodes an experiment's targeting expression. ``audienceConditions`` wins when present; otherwise
    the legacy ``audienceIds`` list is read as an implicit AND. Returns None when the experiment
    targets everyone.
    """
    if audience_conditions is not None:
        if len(audience_conditions) == 0:
            return None
        return parse_condition_tree(audience_conditions, _parse_audience_reference)
    if len(audience_ids) == 0:
        return None
    return AndCondition([AudienceReference(audience_id) for audience_id in audience_ids])
