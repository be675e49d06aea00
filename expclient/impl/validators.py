"""
Validation of values passed to the public client methods. Each check raises
:class:`expclient.errors.InputValidationError`; the client catches it and returns a safe default.
"""

from typing import Any, Iterable, List, Optional

from expclient.decision import DecideOption
from expclient.errors import InputValidationError
from expclient.impl.util import is_finite_number, is_number


def validate_user_id(user_id: Any) -> str:
    if not isinstance(user_id, str):
        raise InputValidationError('Provided user ID is in an invalid format.')
    return user_id


def validate_non_empty_string(value: Any, name: str) -> str:
    if not isinstance(value, str) or value == '':
        raise InputValidationError('Provided %s is in an invalid format.' % name)
    return value


def validate_attributes(attributes: Any) -> dict:
    """
    Returns the attributes to evaluate against. None is accepted and means no attributes.
    """
    if attributes is None:
        return {}
    if not isinstance(attributes, dict):
        raise InputValidationError('Provided attributes are in an invalid format.')
    for key in attributes:
        if not isinstance(key, str):
            raise InputValidationError('Provided attributes are in an invalid format.')
    return attributes


def validate_event_tags(event_tags: Any) -> dict:
    if event_tags is None:
        return {}
    if not isinstance(event_tags, dict):
        raise InputValidationError('Provided event tags are in an invalid format.')
    return event_tags


def validate_flag_keys(flag_keys: Any) -> List[str]:
    if not isinstance(flag_keys, (list, tuple)) or not all(isinstance(k, str) for k in flag_keys):
        raise InputValidationError('Provided flag keys are in an invalid format.')
    return list(flag_keys)


def validate_decide_options(options: Optional[Iterable[Any]]) -> List[DecideOption]:
    if options is None:
        return []
    if isinstance(options, (str, bytes, dict)):
        raise InputValidationError('Provided decide options are in an invalid format.')
    out = []
    for option in options:
        if isinstance(option, DecideOption):
            out.append(option)
            continue
        parsed = DecideOption.from_str(option) if isinstance(option, str) else None
        if parsed is None:
            raise InputValidationError('Provided decide option "%s" is not valid.' % option)
        out.append(parsed)
    return out


def is_attribute_valid(key: Any, value: Any) -> bool:
    """
    Whether an attribute may be included in an event payload: a string key with a string, boolean
    or finite numeric value.
    """
    if not isinstance(key, str):
        return False
    if isinstance(value, (str, bool)):
        return True
    return is_number(value) and is_finite_number(value)
