from itertools import count
from queue import Queue

from expclient.impl.listeners import Listeners


def test_notify_with_no_listeners_does_not_throw_exception():
    listeners = Listeners()
    assert listeners.has_listeners() is False
    listeners.notify("hi")


def test_notify_calls_listeners_in_order():
    q = Queue()
    listeners = Listeners()
    listeners.add(lambda v: q.put(('first', v)))
    listeners.add(lambda v: q.put(('second', v)))
    listeners.notify("hi")
    assert q.get() == ('first', "hi")
    assert q.get() == ('second', "hi")
    assert q.empty() is True


def test_add_returns_increasing_ids():
    listeners = Listeners()
    assert listeners.add(lambda v: None) == 1
    assert listeners.add(lambda v: None) == 2


def test_equal_listener_is_not_added_twice():
    received = []
    listeners = Listeners()
    assert listeners.add(received.append) == 1
    assert listeners.add(received.append) == -1
    listeners.notify("hi")
    assert received == ["hi"]


def test_shared_id_sequence():
    ids = count(1)
    a = Listeners(ids)
    b = Listeners(ids)
    assert a.add(lambda v: None) == 1
    assert b.add(lambda v: None) == 2
    assert a.remove(2) is False
    assert b.remove(2) is True


def test_remove_listener():
    q1 = Queue()
    q2 = Queue()
    listeners = Listeners()
    id1 = listeners.add(q1.put)
    listeners.add(q2.put)
    assert listeners.remove(id1) is True
    assert listeners.remove(id1) is False
    assert listeners.remove(99) is False
    listeners.notify("hi")
    assert q1.empty() is True
    assert q2.get() == "hi"
    assert q2.empty() is True


def test_clear_removes_all_listeners():
    q = Queue()
    listeners = Listeners()
    listeners.add(q.put)
    listeners.clear()
    assert listeners.has_listeners() is False
    listeners.notify("hi")
    assert q.empty() is True


def test_exception_from_listener_is_caught_and_other_listeners_are_still_called():
    def fail(v):
        raise Exception("deliberate error")

    q = Queue()
    listeners = Listeners(name='test listener')
    listeners.add(fail)
    listeners.add(q.put)
    listeners.notify("hi")
    assert q.get() == "hi"
    assert q.empty() is True
