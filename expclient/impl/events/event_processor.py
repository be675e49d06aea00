"""
Implementation details of the analytics event delivery component.
"""

from concurrent.futures import Future
from threading import Lock
from typing import Callable, List, Optional

from expclient.errors import DispatchError
from expclient.impl.events.log_event import LogEvent, build_log_event
from expclient.impl.events.types import AnyEventRecord
from expclient.impl.fixed_thread_pool import FixedThreadPool
from expclient.impl.scheduler import ScheduledTask, Scheduler, ThreadScheduler
from expclient.impl.util import log
from expclient.interfaces import EventDispatcher, EventProcessor

__MAX_DISPATCH_THREADS__ = 5


def _completed_future(value=None) -> Future:
    future = Future()  # type: Future
    future.set_result(value)
    return future


def _failed_future(error: Exception) -> Future:
    future = Future()  # type: Future
    future.set_exception(error)
    return future


def _when_all(futures: List[Future], result_from: Optional[Future] = None, target: Optional[Future] = None) -> Future:
    """
    Completes ``target`` (a new future if not given) once all of ``futures`` are done. It fails with
    the first failure among them; otherwise its result is that of ``result_from``, or None.
    """
    combined = target if target is not None else Future()  # type: Future
    if len(futures) == 0:
        combined.set_result(None)
        return combined
    lock = Lock()
    remaining = [len(futures)]

    def on_done(_):
        with lock:
            remaining[0] -= 1
            if remaining[0] > 0:
                return
        for f in futures:
            if f.exception() is not None:
                combined.set_exception(f.exception())
                return
        combined.set_result(None if result_from is None else result_from.result())

    for future in futures:
        future.add_done_callback(on_done)
    return combined


def _send(dispatcher: EventDispatcher, log_event: LogEvent) -> LogEvent:
    try:
        result = dispatcher.dispatch_event(log_event)
        if isinstance(result, Future):
            result.result()
    except DispatchError as e:
        log.error('Error dispatching event batch of %d visitors: %s' % (log_event.visitor_count, e))
        raise
    except Exception as e:
        log.error('Unexpected error dispatching event batch: %s' % e, exc_info=True)
        raise DispatchError(str(e)) from e
    return log_event


class _Dispatching:
    """
    Hands batches to the dispatcher on a worker pool so that callers never wait on the transport.

    A batch taken from a buffer is counted in ``_taken`` under ``_lock`` until it has been
    submitted to the pool. The pool is stopped only when close has been requested and no taken
    batch is still waiting to be submitted, so a batch taken concurrently with :func:`close` is
    still delivered and is part of the close outcome.
    """

    def __init__(self, config, dispatcher: EventDispatcher, on_dispatch: Optional[Callable[[LogEvent], None]], pool_size: int):
        self._events_uri = config.events_uri
        self._dispatcher = dispatcher
        self._on_dispatch = on_dispatch
        self._workers = FixedThreadPool(pool_size, "expclient.events.dispatch")
        self._lock = Lock()
        self._taken = 0
        self._in_flight = []  # type: List[Future]
        self._close_future = None  # type: Optional[Future]
        self._final = None  # type: Optional[Future]
        self._stopped = False

    def _dispatch(self, records: List[AnyEventRecord]) -> Future:
        try:
            log_event = build_log_event(records, self._events_uri)
        except Exception as e:
            log.error('Unable to build event batch: %s' % e, exc_info=True)
            return _failed_future(DispatchError('unable to build event batch: %s' % e))
        if self._on_dispatch is not None:
            try:
                self._on_dispatch(log_event)
            except Exception as e:
                log.warning('Error in event dispatch listener: %s' % e)
        future = self._workers.submit(_send, self._dispatcher, log_event)
        if future is None:
            return _failed_future(DispatchError('event processor has been closed'))
        return future

    def _send_taken(self, batch: List[AnyEventRecord], final: bool = False) -> Future:
        # the caller has counted the batch in self._taken while holding self._lock
        future = self._dispatch(batch)
        with self._lock:
            self._taken -= 1
            self._in_flight = [f for f in self._in_flight if not f.done()]
            self._in_flight.append(future)
            if final:
                self._final = future
            stop = self._should_stop()
        if stop:
            self._stop()
        return future

    def _should_stop(self) -> bool:
        # must hold self._lock
        if self._close_future is None or self._stopped or self._taken > 0:
            return False
        self._stopped = True
        return True

    def _stop(self):
        self._workers.stop()
        with self._lock:
            in_flight = list(self._in_flight)
            final = self._final
        _when_all(in_flight, final, self._close_future)

    def _close(self, take_final_batch: Callable[[], List[AnyEventRecord]]) -> Future:
        with self._lock:
            if self._close_future is not None:
                return self._close_future
            close_future = Future()  # type: Future
            self._close_future = close_future
            batch = take_final_batch()
            if len(batch) > 0:
                self._taken += 1
            stop = len(batch) == 0 and self._should_stop()
        log.info('Closing event processor')
        if len(batch) > 0:
            self._send_taken(batch, final=True)
        elif stop:
            self._stop()
        return close_future

    def _wait_until_inactive(self, timeout: Optional[float] = None) -> bool:
        # used only in tests
        return self._workers.wait(timeout)


class BatchEventProcessor(_Dispatching, EventProcessor):
    """
    Buffers records and delivers them in batches. A batch is sent when the buffer reaches
    ``event_batch_size`` records, when ``flush_interval`` seconds have passed since the first
    record of the batch was buffered, when :func:`flush` is called, or on :func:`close`.

    Records are only batched with records that share their dispatch context. A record with a
    different context first causes the buffered records to be sent.
    """

    def __init__(self, config, dispatcher: EventDispatcher, scheduler: Optional[Scheduler] = None,
                 on_dispatch: Optional[Callable[[LogEvent], None]] = None):
        super().__init__(config, dispatcher, on_dispatch, __MAX_DISPATCH_THREADS__)
        self._batch_size = config.event_batch_size
        self._flush_interval = config.flush_interval
        self._scheduler = scheduler or ThreadScheduler("expclient.events.flush")
        self._buffer = []  # type: List[AnyEventRecord]
        self._timer = None  # type: Optional[ScheduledTask]
        self._timer_generation = 0

    def process(self, event: AnyEventRecord):
        batches = []
        with self._lock:
            if self._close_future is not None:
                log.warning('Event processor has been closed; dropping event.')
                return
            if len(self._buffer) > 0 and self._buffer[0].context != event.context:
                batches.append(self._take_batch())
            if len(self._buffer) == 0:
                self._start_timer()
            self._buffer.append(event)
            if len(self._buffer) >= self._batch_size:
                batches.append(self._take_batch())
            self._taken += len(batches)
        for batch in batches:
            self._send_taken(batch)

    def flush(self) -> Future:
        with self._lock:
            batch = self._take_batch()
            if len(batch) > 0:
                self._taken += 1
        if len(batch) == 0:
            return _completed_future()
        return self._send_taken(batch)

    def close(self) -> Future:
        return self._close(self._take_batch)

    def _start_timer(self):
        # must hold self._lock
        self._timer_generation += 1
        generation = self._timer_generation
        self._timer = self._scheduler.schedule(self._flush_interval, lambda: self._flush_from_timer(generation))

    def _take_batch(self) -> List[AnyEventRecord]:
        # must hold self._lock; cancels the pending timer, which exists only while the buffer is non-empty
        batch = self._buffer
        self._buffer = []
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        return batch

    def _flush_from_timer(self, generation: int):
        with self._lock:
            if generation != self._timer_generation or self._timer is None:
                return
            self._timer = None
            batch = self._buffer
            self._buffer = []
            if len(batch) > 0:
                self._taken += 1
        if len(batch) > 0:
            log.debug('Flushing %d buffered events after flush interval' % len(batch))
            self._send_taken(batch)


class ForwardingEventProcessor(_Dispatching, EventProcessor):
    """
    Sends every record as its own batch as soon as it is processed.
    """

    def __init__(self, config, dispatcher: EventDispatcher, on_dispatch: Optional[Callable[[LogEvent], None]] = None):
        super().__init__(config, dispatcher, on_dispatch, 1)

    def process(self, event: AnyEventRecord):
        with self._lock:
            if self._close_future is not None:
                log.warning('Event processor has been closed; dropping event.')
                return
            self._taken += 1
        self._send_taken([event])

    def flush(self) -> Future:
        with self._lock:
            in_flight = list(self._in_flight)
        return _when_all(in_flight, in_flight[-1] if len(in_flight) > 0 else None)

    def close(self) -> Future:
        return self._close(lambda: [])
