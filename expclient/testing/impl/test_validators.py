import pytest

from expclient.decision import DecideOption
from expclient.errors import InputValidationError
from expclient.impl.validators import (is_attribute_valid,
                                       validate_attributes,
                                       validate_decide_options,
                                       validate_event_tags,
                                       validate_flag_keys,
                                       validate_non_empty_string,
                                       validate_user_id)


def test_user_id():
    assert validate_user_id('user') == 'user'
    assert validate_user_id('') == ''
    for bad in [None, 5, b'user', ['user']]:
        with pytest.raises(InputValidationError):
            validate_user_id(bad)


def test_non_empty_string():
    assert validate_non_empty_string('key', 'experiment key') == 'key'
    with pytest.raises(InputValidationError) as e:
        validate_non_empty_string('', 'experiment key')
    assert 'experiment key' in str(e.value)
    with pytest.raises(InputValidationError):
        validate_non_empty_string(None, 'experiment key')


def test_attributes():
    assert validate_attributes(None) == {}
    attrs = {'a': 1}
    assert validate_attributes(attrs) is attrs
    for bad in ['a', ['a'], {1: 'a'}]:
        with pytest.raises(InputValidationError):
            validate_attributes(bad)


def test_event_tags():
    assert validate_event_tags(None) == {}
    assert validate_event_tags({'revenue': 1}) == {'revenue': 1}
    with pytest.raises(InputValidationError):
        validate_event_tags('revenue')


def test_decide_options():
    assert validate_decide_options(None) == []
    assert validate_decide_options([DecideOption.INCLUDE_REASONS, 'EXCLUDE_VARIABLES']) == \
        [DecideOption.INCLUDE_REASONS, DecideOption.EXCLUDE_VARIABLES]
    for bad in ['INCLUDE_REASONS', ['NOT_AN_OPTION'], [5], {'INCLUDE_REASONS': True}]:
        with pytest.raises(InputValidationError):
            validate_decide_options(bad)


@pytest.mark.parametrize("key,value,expected", [
    ('a', 'x', True),
    ('a', True, True),
    ('a', 1, True),
    ('a', -1.5, True),
    ('a', 2 ** 53, True),
    ('a', 2 ** 53 + 1, False),
    ('a', float('nan'), False),
    ('a', None, False),
    ('a', {'x': 1}, False),
    (1, 'x', False),
])
def test_is_attribute_valid(key, value, expected):
    assert is_attribute_valid(key, value) is expected


def test_flag_keys():
    assert validate_flag_keys(['a', 'b']) == ['a', 'b']
    assert validate_flag_keys(('a',)) == ['a']
    assert validate_flag_keys([]) == []
    for bad in [None, 'a', {'a': 1}, ['a', None], ['a', 5]]:
        with pytest.raises(InputValidationError):
            validate_flag_keys(bad)
