"""
This submodule contains the notification center, through which applications can observe decisions,
conversions, delivered event batches and configuration updates.
"""

from enum import Enum
from itertools import count
from typing import Any, Callable, Dict

from expclient.impl.listeners import Listeners
from expclient.impl.util import log


class NotificationType(Enum):
    """
    The kinds of notification. Each listener receives one payload dict per notification.
    """

    ACTIVATE = "ACTIVATE:experiment, user_id, attributes, variation, event"
    """
    An impression was recorded for an experiment. Payload keys: ``experiment``, ``user_id``,
    ``attributes``, ``variation``, ``event`` (the impression record).
    """

    DECISION = "DECISION:type, user_id, attributes, decision_info"
    """
    A decision was made. Payload keys: ``type`` (such as ``"ab-test"``, ``"feature"``, ``"flag"``),
    ``user_id``, ``attributes``, ``decision_info``.
    """

    TRACK = "TRACK:event_key, user_id, attributes, event_tags, event"
    """
    A conversion was recorded. Payload keys: ``event_key``, ``user_id``, ``attributes``, ``event_tags``,
    ``event`` (the conversion record).
    """

    LOG_EVENT = "LOG_EVENT:log_event"
    """
    An event batch is about to be handed to the dispatcher. Payload key: ``log_event``.
    """

    CONFIG_UPDATE = "CONFIG_UPDATE"
    """
    A new configuration snapshot became current. Payload key: ``revision``.
    """


class NotificationCenter:
    """
    Routes notifications to listeners. Listeners are called synchronously on the thread that
    produced the notification; an exception raised by a listener is logged and otherwise ignored.
    """

    def __init__(self):
        ids = count(1)
        self._listeners = dict(
            (t, Listeners(ids, '%s notification listener' % t.name)) for t in NotificationType
        )  # type: Dict[NotificationType, Listeners]

    def add_notification_listener(self, notification_type: NotificationType, listener: Callable[[dict], Any]) -> int:
        """
        Registers a listener.

        :return: an id that can be passed to :func:`remove_notification_listener`, or -1 if the
            listener is already registered for this type
        """
        listener_id = self._listeners[notification_type].add(listener)
        if listener_id == -1:
            log.warning('Listener is already registered for %s' % notification_type.name)
        return listener_id

    def remove_notification_listener(self, listener_id: int) -> bool:
        return any(listeners.remove(listener_id) for listeners in self._listeners.values())

    def clear_notification_listeners(self, notification_type: NotificationType):
        self._listeners[notification_type].clear()

    def clear_all_notification_listeners(self):
        for listeners in self._listeners.values():
            listeners.clear()

    def has_listeners(self, notification_type: NotificationType) -> bool:
        return self._listeners[notification_type].has_listeners()

    def send_notifications(self, notification_type: NotificationType, payload: dict):
        self._listeners[notification_type].notify(payload)
