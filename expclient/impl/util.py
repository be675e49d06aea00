import logging
import math
import time
import uuid
from numbers import Number
from typing import Any, Optional

log = logging.getLogger('expclient')

# Largest integer that every SDK sharing a datafile can represent exactly.
MAX_SAFE_INTEGER = 2 ** 53


def current_time_millis() -> int:
    return int(time.time() * 1000)


def new_uuid() -> str:
    return str(uuid.uuid4())


def is_number(input: Any) -> bool:
    # bool is a subtype of int, and we don't want to try and treat it as a number.
    return isinstance(input, Number) and not isinstance(input, bool)


def is_finite_number(input: Any) -> bool:
    """
    True for an int or float that is not NaN/infinite and whose magnitude does not exceed 2^53.
    """
    if not is_number(input) or isinstance(input, complex):
        return False
    if isinstance(input, float) and (math.isnan(input) or math.isinf(input)):
        return False
    return abs(input) <= MAX_SAFE_INTEGER


class Result:
    """
    The outcome of an operation that can fail without raising, such as converting a feature
    variable's string value to its declared type.

    Build one with :func:`success` or :func:`fail`. A failed result carries a description of the
    problem and, when the failure came from an exception, that exception.
    """

    __slots__ = ['__value', '__error', '__exception']

    def __init__(self, value: Optional[Any], error: Optional[str], exception: Optional[Exception]):
        self.__value = value
        self.__error = error
        self.__exception = exception

    @staticmethod
    def success(value: Any) -> 'Result':
        return Result(value, None, None)

    @staticmethod
    def fail(error: str, exception: Optional[Exception] = None) -> 'Result':
        return Result(None, error, exception)

    def is_success(self) -> bool:
        return self.__error is None

    @property
    def value(self) -> Optional[Any]:
        """The value of a successful result; None for a failure."""
        return self.__value

    @property
    def error(self) -> Optional[str]:
        return self.__error

    @property
    def exception(self) -> Optional[Exception]:
        return self.__exception

    def __repr__(self) -> str:
        if self.is_success():
            return 'Result.success(%r)' % (self.__value,)
        return 'Result.fail(%r)' % (self.__error,)
