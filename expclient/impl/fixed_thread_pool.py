import queue
from concurrent.futures import Future
from threading import Condition, Thread
from typing import Any, Callable, Optional

from expclient.impl.util import log

_STOP = object()


class FixedThreadPool:
    """
    A fixed number of daemon worker threads taking jobs from a shared queue. Jobs submitted while
    every worker is busy wait in the queue and start in submission order. Each job's outcome is
    delivered through the :class:`concurrent.futures.Future` returned by :func:`submit`.
    """

    def __init__(self, size: int, name: str):
        self._size = size
        self._cond = Condition()
        self._pending = 0
        self._stopped = False
        self._job_queue = queue.Queue()  # type: queue.Queue
        for i in range(size):
            Thread(target=self._run_worker, name="%s.%d" % (name, i + 1), daemon=True).start()

    def submit(self, fn: Callable[..., Any], *args) -> Optional[Future]:
        """
        Queues ``fn(*args)``. Returns a future for its result, or None if the pool has been stopped.
        """
        with self._cond:
            if self._stopped:
                return None
            self._pending += 1
        future = Future()  # type: Future
        self._job_queue.put((future, fn, args))
        return future

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Waits until every submitted job has completed. Returns False on timeout.
        """
        with self._cond:
            return self._cond.wait_for(lambda: self._pending == 0, timeout)

    def stop(self):
        """
        Lets the workers finish the jobs already queued, then terminate. Further submissions are
        rejected.
        """
        with self._cond:
            if self._stopped:
                return
            self._stopped = True
        for _ in range(self._size):
            self._job_queue.put(_STOP)

    def _run_worker(self):
        while True:
            job = self._job_queue.get(block=True)
            if job is _STOP:
                return
            future, fn, args = job
            if future.set_running_or_notify_cancel():
                try:
                    future.set_result(fn(*args))
                except BaseException as e:
                    log.debug('Job in worker thread raised %r' % e)
                    future.set_exception(e)
            with self._cond:
                self._pending -= 1
                self._cond.notify_all()
