import pytest

from expclient.impl.condition_evaluator import evaluate, negate
from expclient.impl.model.condition import (AndCondition, NotCondition,
                                            OrCondition,
                                            parse_audience_conditions)
from expclient.testing.builders import leaf

TRUE_LEAF = leaf('s', 'yes')
FALSE_LEAF = leaf('s', 'no')
UNKNOWN_LEAF = leaf('missing', 'x')
ATTRS = {'s': 'yes'}


def eval_conditions(conditions, attributes=ATTRS):
    return evaluate(parse_audience_conditions(conditions), attributes)


class TestThreeValuedLogic:
    @pytest.mark.parametrize("child,expected", [
        (TRUE_LEAF, True),
        (FALSE_LEAF, False),
        (UNKNOWN_LEAF, None),
    ])
    def test_singleton_and_is_its_child(self, child, expected):
        assert eval_conditions(['and', child]) is expected
        assert eval_conditions(['and', child]) is eval_conditions(child)

    @pytest.mark.parametrize("child", [TRUE_LEAF, FALSE_LEAF, UNKNOWN_LEAF])
    def test_not_negates_child(self, child):
        assert eval_conditions(['not', child]) is negate(eval_conditions(child))

    def test_unknown_is_fixed_under_negation(self):
        assert negate(None) is None
        assert eval_conditions(['not', UNKNOWN_LEAF]) is None

    @pytest.mark.parametrize("children,expected", [
        ([TRUE_LEAF, TRUE_LEAF], True),
        ([TRUE_LEAF, UNKNOWN_LEAF], None),
        ([UNKNOWN_LEAF, FALSE_LEAF], False),
        ([FALSE_LEAF, UNKNOWN_LEAF], False),
        ([], True),
    ])
    def test_and(self, children, expected):
        assert eval_conditions(['and'] + children) is expected

    @pytest.mark.parametrize("children,expected", [
        ([FALSE_LEAF, FALSE_LEAF], False),
        ([FALSE_LEAF, UNKNOWN_LEAF], None),
        ([UNKNOWN_LEAF, TRUE_LEAF], True),
        ([], False),
    ])
    def test_or(self, children, expected):
        assert eval_conditions(['or'] + children) is expected

    def test_list_without_operator_is_or(self):
        assert eval_conditions([FALSE_LEAF, TRUE_LEAF]) is True
        assert eval_conditions([FALSE_LEAF, FALSE_LEAF]) is False

    def test_not_uses_first_child_only(self):
        assert eval_conditions(['not', FALSE_LEAF, TRUE_LEAF]) is True

    def test_empty_not_is_unknown(self):
        node = parse_audience_conditions(['not'])
        assert isinstance(node, NotCondition)
        assert node.child is None
        assert evaluate(node, ATTRS) is None

    def test_nested_tree_is_decoded(self):
        node = parse_audience_conditions(['and', ['or', TRUE_LEAF], ['not', FALSE_LEAF]])
        assert isinstance(node, AndCondition)
        assert isinstance(node.children[0], OrCondition)
        assert isinstance(node.children[1], NotCondition)
        assert evaluate(node, ATTRS) is True

    def test_none_tree_is_unknown(self):
        assert evaluate(None, ATTRS) is None


class TestLeafEvaluation:
    @pytest.mark.parametrize("condition,attributes,expected", [
        # exact
        (leaf('a', 'firefox', 'exact'), {'a': 'firefox'}, True),
        (leaf('a', 'firefox'), {'a': 'firefox'}, True),
        (leaf('a', 'firefox', 'exact'), {'a': 'chrome'}, False),
        (leaf('a', 'firefox', 'exact'), {'a': 1}, None),
        (leaf('a', 1, 'exact'), {'a': 1.0}, True),
        (leaf('a', 1, 'exact'), {'a': True}, None),
        (leaf('a', True, 'exact'), {'a': True}, True),
        (leaf('a', True, 'exact'), {'a': 1}, None),
        (leaf('a', 1, 'exact'), {'a': 2 ** 54}, None),
        (leaf('a', {'x': 1}, 'exact'), {'a': 'x'}, None),
        # exists
        (leaf('a', None, 'exists'), {'a': 'anything'}, True),
        (leaf('a', None, 'exists'), {'a': False}, True),
        (leaf('a', None, 'exists'), {'a': None}, False),
        (leaf('a', None, 'exists'), {}, False),
        # numeric
        (leaf('a', 10, 'gt'), {'a': 11}, True),
        (leaf('a', 10, 'gt'), {'a': 10}, False),
        (leaf('a', 10, 'ge'), {'a': 10}, True),
        (leaf('a', 10, 'lt'), {'a': 9.5}, True),
        (leaf('a', 10, 'le'), {'a': 10}, True),
        (leaf('a', 10, 'le'), {'a': 10.1}, False),
        (leaf('a', 10, 'gt'), {'a': '11'}, None),
        (leaf('a', 10, 'gt'), {'a': True}, None),
        (leaf('a', 10, 'gt'), {'a': float('inf')}, None),
        (leaf('a', 10, 'gt'), {'a': float('nan')}, None),
        (leaf('a', 10, 'gt'), {'a': -(2 ** 53) - 2}, None),
        (leaf('a', '10', 'gt'), {'a': 11}, None),
        # substring
        (leaf('a', 'fire', 'substring'), {'a': 'firefox'}, True),
        (leaf('a', 'chrome', 'substring'), {'a': 'firefox'}, False),
        (leaf('a', 'fire', 'substring'), {'a': 5}, None),
        (leaf('a', 5, 'substring'), {'a': 'firefox'}, None),
        # semver
        (leaf('a', '2.1', 'semver_eq'), {'a': '2.1.9'}, True),
        (leaf('a', '2.1.0', 'semver_lt'), {'a': '2.0.9'}, True),
        (leaf('a', '2.1.0', 'semver_ge'), {'a': '2.1.0'}, True),
        (leaf('a', '2.1.0', 'semver_gt'), {'a': '2.1.0'}, False),
        (leaf('a', '2.1.0', 'semver_le'), {'a': '2.1.0-beta'}, True),
        (leaf('a', '2.1', 'semver_eq'), {'a': '2.1.0-beta'}, False),
        (leaf('a', '2.1', 'semver_lt'), {'a': '2.1.0-beta'}, True),
        (leaf('a', '2.1.0', 'semver_eq'), {'a': 2}, None),
        (leaf('a', '2.1.0', 'semver_eq'), {'a': 'not a version'}, None),
        # missing and null values
        (leaf('a', 'x', 'exact'), {}, None),
        (leaf('a', 'x', 'exact'), {'a': None}, None),
        (leaf('a', 'x', 'exact'), None, None),
        # unknown match and condition types
        (leaf('a', 'x', 'regex'), {'a': 'x'}, None),
        (leaf('a', 'x', 'exact', type='third_party_dimension'), {'a': 'x'}, None),
    ])
    def test_leaf(self, condition, attributes, expected):
        assert eval_conditions(condition, attributes) is expected

    def test_leaf_without_name_is_rejected(self):
        with pytest.raises(ValueError):
            parse_audience_conditions({'type': 'custom_attribute', 'value': 'x'})

    def test_non_object_leaf_is_rejected(self):
        with pytest.raises(ValueError):
            parse_audience_conditions(['and', 'not an object'])
