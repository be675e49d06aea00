from collections import OrderedDict
from itertools import count
from threading import RLock
from typing import Any, Callable, Iterator, Optional

from expclient.impl.util import log


class Listeners:
    """
    Callbacks that each receive a single value, keyed by an integer registration id and called in
    the order they were added. Callbacks are made synchronously on the caller's thread.

    Several instances can share one id sequence so that ids stay unique across them.
    """

    def __init__(self, ids: Optional[Iterator[int]] = None, name: str = 'listener'):
        self.__ids = ids if ids is not None else count(1)
        self.__name = name
        self.__listeners = OrderedDict()  # type: OrderedDict[int, Callable]
        self.__lock = RLock()

    def has_listeners(self) -> bool:
        with self.__lock:
            return len(self.__listeners) > 0

    def add(self, listener: Callable) -> int:
        """
        :return: the registration id, or -1 if an equal callback is already registered
        """
        with self.__lock:
            if listener in self.__listeners.values():
                return -1
            listener_id = next(self.__ids)
            self.__listeners[listener_id] = listener
            return listener_id

    def remove(self, listener_id: int) -> bool:
        with self.__lock:
            return self.__listeners.pop(listener_id, None) is not None

    def clear(self):
        with self.__lock:
            self.__listeners.clear()

    def notify(self, value: Any):
        with self.__lock:
            listeners_copy = list(self.__listeners.values())
        for listener in listeners_copy:
            try:
                listener(value)
            except Exception as e:
                log.exception("Unexpected error in %s: %s" % (self.__name, e))
