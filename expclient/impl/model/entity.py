import json
from typing import Any, List, Optional, Union

# Support for the datafile model classes.
#
# Each entity (Experiment, FeatureFlag, Audience, ...) is built from the dict that corresponds to
# its JSON representation, and its constructor reads every property it uses through the opt_ and
# req_ functions below. A property of the wrong JSON type, or a required property that is absent,
# raises ValueError at construction, so a malformed datafile is rejected as a whole instead of
# failing later inside a decision.

_JSON_TYPE_NAMES = {
    bool: 'a boolean',
    dict: 'an object',
    int: 'an integer',
    list: 'an array',
    str: 'a string',
}


def _describe(value: Any) -> str:
    if value is None:
        return 'null'
    if isinstance(value, float):
        return 'a number'
    return _JSON_TYPE_NAMES.get(type(value), value.__class__.__name__)


def _bad_type(name: str, expected: str, value: Any) -> ValueError:
    return ValueError('invalid datafile: "%s" should be %s but was %s' % (name, expected, _describe(value)))


def _missing(name: str) -> ValueError:
    return ValueError('invalid datafile: required property "%s" is missing' % name)


def opt_type(data: dict, name: str, desired_type) -> Any:
    value = data.get(name)
    # bool is a subclass of int, but a JSON boolean is never accepted where an integer is expected
    if value is not None and (not isinstance(value, desired_type) or (desired_type is int and isinstance(value, bool))):
        raise _bad_type(name, _JSON_TYPE_NAMES.get(desired_type, desired_type.__name__), value)
    return value


def req_type(data: dict, name: str, desired_type) -> Any:
    value = opt_type(data, name, desired_type)
    if value is None:
        raise _missing(name)
    return value


def opt_bool(data: dict, name: str) -> bool:
    return opt_type(data, name, bool) is True


def opt_dict(data: dict, name: str) -> Optional[dict]:
    return opt_type(data, name, dict)


def opt_int(data: dict, name: str) -> Optional[int]:
    return opt_type(data, name, int)


def req_int(data: dict, name: str) -> int:
    return req_type(data, name, int)


def opt_number(data: dict, name: str) -> Optional[Union[int, float]]:
    value = data.get(name)
    if value is not None and (isinstance(value, bool) or not isinstance(value, (int, float))):
        raise _bad_type(name, 'a number', value)
    return value


def opt_str(data: dict, name: str) -> Optional[str]:
    return opt_type(data, name, str)


def req_str(data: dict, name: str) -> str:
    return req_type(data, name, str)


def opt_list(data: dict, name: str) -> list:
    return opt_type(data, name, list) or []


def req_list(data: dict, name: str) -> list:
    return req_type(data, name, list)


def opt_dict_list(data: dict, name: str) -> list:
    return validate_list_type(opt_list(data, name), name, dict)


def req_dict_list(data: dict, name: str) -> list:
    return validate_list_type(req_list(data, name), name, dict)


def opt_str_list(data: dict, name: str) -> List[str]:
    return validate_list_type(opt_list(data, name), name, str)


def req_str_list(data: dict, name: str) -> List[str]:
    return validate_list_type(req_list(data, name), name, str)


def validate_list_type(items: list, name: str, desired_type) -> list:
    for i, item in enumerate(items):
        if not isinstance(item, desired_type):
            raise _bad_type('%s[%d]' % (name, i), _JSON_TYPE_NAMES.get(desired_type, desired_type.__name__), item)
    return items


class ModelEntity:
    """
    Base class of the datafile entities. Holds a private copy of the entity's JSON data.
    """

    def __init__(self, data: dict):
        if not isinstance(data, dict):
            raise ValueError('invalid datafile: expected an object but got %s' % _describe(data))
        # a JSON round trip both copies the data and rejects anything that is not plain JSON
        self._data = json.loads(json.dumps(data))

    def to_json_dict(self) -> dict:
        return self._data

    def get(self, attribute, default=None) -> Any:
        return self._data.get(attribute, default)

    def __getitem__(self, attribute) -> Any:
        return self._data[attribute]

    def __contains__(self, attribute) -> bool:
        return attribute in self._data

    def __eq__(self, other) -> bool:
        return self.__class__ == other.__class__ and self._data == other._data

    def __hash__(self) -> int:
        return hash((self.__class__, self.get('id'), self.get('key')))

    def __repr__(self) -> str:
        return '%s(%s)' % (self.__class__.__name__, json.dumps(self._data, separators=(',', ':')))
