import threading
from contextlib import contextmanager


class ReadWriteLock:
    """A lock that allows many simultaneous readers or a single writer.

    Writers take priority: once a writer is waiting, new readers block until it has finished.
    Configuration swaps are therefore not starved by a steady stream of decisions reading the
    current snapshot. The lock is not reentrant.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writers_waiting = 0
        self._writing = False

    def rlock(self):
        """Acquire a read lock. Blocks while a writer holds or is waiting for the lock."""
        with self._cond:
            while self._writing or self._writers_waiting > 0:
                self._cond.wait()
            self._readers += 1

    def runlock(self):
        """Release a read lock."""
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def lock(self):
        """Acquire the write lock. Blocks until there are no readers or writers."""
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writing or self._readers > 0:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writing = True

    def unlock(self):
        """Release the write lock."""
        with self._cond:
            self._writing = False
            self._cond.notify_all()

    @contextmanager
    def read(self):
        self.rlock()
        try:
            yield self
        finally:
            self.runlock()

    @contextmanager
    def write(self):
        self.lock()
        try:
            yield self
        finally:
            self.unlock()
