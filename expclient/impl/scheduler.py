"""
Timer scheduling for components that need to run a callback after a delay, such as the event
processor's flush timer. Production code uses :class:`ThreadScheduler`; tests inject a fake
implementation whose clock they advance by hand.
"""

from abc import ABC, abstractmethod
from threading import Event, Lock, Thread
from typing import Callable

from expclient.impl.util import log


class ScheduledTask:
    """
    Handle for one pending callback. Cancelling is idempotent and a task runs at most once.
    """

    def __init__(self, action: Callable[[], None]):
        self._action = action
        self._lock = Lock()
        self._done = False

    def cancel(self) -> bool:
        """
        Prevents the callback from running. Returns True only for the call that actually cancelled
        a task which had neither run nor been cancelled before.
        """
        with self._lock:
            if self._done:
                return False
            self._done = True
            return True

    @property
    def done(self) -> bool:
        with self._lock:
            return self._done

    def run(self):
        with self._lock:
            if self._done:
                return
            self._done = True
        try:
            self._action()
        except Exception as e:
            log.exception("Unexpected exception in scheduled task: %s" % e)


class Scheduler(ABC):
    """
    Interface for something that can run a callback once after a delay.
    """

    @abstractmethod
    def schedule(self, delay: float, action: Callable[[], None]) -> ScheduledTask:
        """
        Arranges for ``action`` to be called once, ``delay`` seconds from now.

        :param delay: time in seconds before the callback runs
        :param action: the callback
        :return: a handle that can cancel the callback
        """


class _ThreadScheduledTask(ScheduledTask):
    def __init__(self, label: str, delay: float, action: Callable[[], None]):
        super().__init__(action)
        self.__delay = delay
        self.__wakeup = Event()
        self.__thread = Thread(target=self._wait_and_run, name=label)
        self.__thread.daemon = True

    def start(self):
        self.__thread.start()

    def cancel(self) -> bool:
        cancelled = super().cancel()
        self.__wakeup.set()
        return cancelled

    def _wait_and_run(self):
        if self.__wakeup.wait(self.__delay):
            return
        self.run()


class ThreadScheduler(Scheduler):
    """
    Runs each scheduled callback on its own daemon thread.
    """

    def __init__(self, label: str = "expclient.scheduler"):
        self.__label = label

    def schedule(self, delay: float, action: Callable[[], None]) -> ScheduledTask:
        task = _ThreadScheduledTask(self.__label, max(delay, 0), action)
        task.start()
        return task
