import re
from typing import Any, Optional, Tuple

from semver import VersionInfo

from expclient.impl.util import log

_NUMERIC_PART = re.compile(r'^[0-9]+$')


class ParsedVersion:
    """
    A dot-separated version with one to three numeric parts, an optional pre-release suffix
    (after "-") and optional build metadata (after "+"). Missing trailing parts are allowed,
    which is what lets "2.1" act as a prefix of "2.1.9".
    """

    __slots__ = ['_parts', '_prerelease', '_build']

    def __init__(self, parts: Tuple[int, ...], prerelease: Optional[str], build: Optional[str]):
        self._parts = parts
        self._prerelease = prerelease
        self._build = build

    @property
    def parts(self) -> Tuple[int, ...]:
        return self._parts

    @property
    def prerelease(self) -> Optional[str]:
        return self._prerelease

    @property
    def build(self) -> Optional[str]:
        return self._build

    def __repr__(self) -> str:
        return 'ParsedVersion(%r, %r, %r)' % (self._parts, self._prerelease, self._build)


def parse_version(input: Any) -> Optional[ParsedVersion]:
    if not isinstance(input, str) or input == '':
        return None
    if any(c.isspace() for c in input):
        log.warning('Version "%s" contains whitespace and cannot be compared' % input)
        return None
    core, plus, build = input.partition('+')
    core, dash, prerelease = core.partition('-')
    if (plus and build == '') or (dash and prerelease == ''):
        return None
    pieces = core.split('.')
    if len(pieces) > 3:
        log.warning('Version "%s" has too many parts and cannot be compared' % input)
        return None
    if not all(_NUMERIC_PART.match(p) for p in pieces):
        return None
    return ParsedVersion(tuple(int(p) for p in pieces), prerelease or None, build or None)


def _compare_prerelease(a: str, b: str) -> int:
    return VersionInfo(0, 0, 0, prerelease=a).compare(VersionInfo(0, 0, 0, prerelease=b))


def compare_versions(condition_version: Any, user_version: Any) -> Optional[int]:
    """
    Compares a user-supplied version against the version in a condition.

    Only as many numeric parts as the condition specifies are compared. A user pre-release sorts
    before any condition version without a pre-release, including a partial one, so "2.1.0-beta" is
    less than "2.1". Build metadata never affects the result.

    :return: a negative number, zero or a positive number as the user version is less than,
        equal to or greater than the condition version; None if either version is invalid
    """
    condition = parse_version(condition_version)
    user = parse_version(user_version)
    if condition is None or user is None:
        return None

    for idx, condition_part in enumerate(condition.parts):
        if idx >= len(user.parts):
            return -1
        if user.parts[idx] != condition_part:
            return 1 if user.parts[idx] > condition_part else -1

    if condition.prerelease is None:
        return -1 if user.prerelease is not None else 0
    if user.prerelease is None:
        return 1
    return _compare_prerelease(user.prerelease, condition.prerelease)
