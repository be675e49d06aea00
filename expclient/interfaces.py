"""
This submodule contains interfaces for the components that the SDK consumes but that the host
application may supply itself.

They may be useful in writing new implementations of these components, or for testing.
"""

from abc import ABC, abstractmethod
from concurrent.futures import Future
from typing import Any, Callable, Optional


class ConfigSource(ABC):
    """
    Interface for the component that owns the current configuration snapshot. Implementations
    are responsible for obtaining configuration documents; the SDK only reads whatever snapshot
    :func:`get` currently reports.

    Snapshots are immutable. An update must build a new snapshot and swap it in as a whole, so
    that a decision in progress keeps a consistent view.
    """

    @abstractmethod
    def get(self) -> Optional[Any]:
        """
        Returns the current :class:`expclient.impl.project_config.ProjectConfig`, or None if no
        valid configuration has been obtained yet.
        """

    @abstractmethod
    def on_update(self, callback: Callable[[Any], None]) -> Callable[[], None]:
        """
        Registers a callback that receives each new snapshot after it becomes current.

        :param callback: a function taking the new snapshot
        :return: a function that unregisters the callback
        """

    @abstractmethod
    def start(self):
        """
        Starts obtaining configuration, if the implementation does so in the background.
        """

    @abstractmethod
    def stop(self):
        """
        Stops any background activity and releases resources.
        """


class UserProfileStore(ABC):
    """
    Interface for a store that remembers which variation each user was bucketed into, so that a
    user keeps the same variation even if traffic allocation later changes ("sticky bucketing").

    Profiles are dicts of the form
    ``{"user_id": "...", "experiment_bucket_map": {"<experiment id>": {"variation_id": "..."}}}``.

    Any exception raised by an implementation is caught by the SDK and logged; the decision then
    proceeds as if no profile existed.
    """

    @abstractmethod
    def lookup(self, user_id: str) -> Optional[dict]:
        """
        Returns the stored profile for a user, or None if there is none.

        :param user_id: the user id
        """

    @abstractmethod
    def save(self, user_profile: dict):
        """
        Stores a profile, replacing any previous profile for the same user.

        :param user_profile: the profile dict
        """


class EventDispatcher(ABC):
    """
    Interface for the transport that delivers batches of analytics events. Delivery failures are
    reported to whoever flushed the batch and are never retried.
    """

    @abstractmethod
    def dispatch_event(self, log_event) -> Optional[Future]:
        """
        Delivers one batch.

        A synchronous implementation returns None on success and raises
        :class:`expclient.errors.DispatchError` on failure. An asynchronous implementation returns
        a ``Future`` that completes, or fails with the error, when delivery has finished.

        :param log_event: the :class:`expclient.impl.events.log_event.LogEvent` to deliver
        """


class EventProcessor(ABC):
    """
    Interface for the component that buffers impression and conversion records and hands them to
    an :class:`EventDispatcher` in batches. The default implementation can be replaced for testing
    purposes.
    """

    @abstractmethod
    def process(self, event):
        """
        Queues one record for delivery. Never blocks on delivery.
        """

    @abstractmethod
    def flush(self) -> Future:
        """
        Specifies that any buffered records should be sent as soon as possible.

        :return: a ``Future`` that completes when the flushed batch has been delivered, or fails
            with :class:`expclient.errors.DispatchError`
        """

    @abstractmethod
    def close(self) -> Future:
        """
        Delivers any pending records and shuts down. Calling this more than once has no further
        effect.

        :return: a ``Future`` that completes when the final batch has been delivered, or fails with
            :class:`expclient.errors.DispatchError`
        """


class ErrorHandler(ABC):
    """
    Interface for a sink that receives errors which the SDK resolved to a safe default, such as
    invalid input passed to a public method or a failing user profile store.
    """

    @abstractmethod
    def handle_error(self, error: Exception):
        """
        Receives an error. Must not raise.
        """
