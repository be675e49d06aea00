"""
This submodule contains the exception types raised by the SDK.

Only configuration construction and input validation at the public API boundary produce errors
that callers can see; everything inside the decision pipeline resolves failures to a safe
default instead of raising.
"""

from typing import Optional


class ExpClientError(Exception):
    """Base class for all errors raised by the SDK."""


class ConfigError(ExpClientError):
    """The configuration document is not structurally valid and cannot be indexed."""


class InputValidationError(ExpClientError):
    """A user id, attribute map, event tag map or option passed to the client was malformed."""


class ProfileStoreError(ExpClientError):
    """A user profile store failed to look up or save a profile."""

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message)
        self.cause = cause


class DispatchError(ExpClientError):
    """An event batch could not be delivered. Delivery is never retried."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status
