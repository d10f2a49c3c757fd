import itertools

import pytest

from slipiter import new, from_seq, as_seq
from slipiter.slipiter_datatypes import (
    Val, Iterator, BOOL_TYPE, DYN_TYPE, Err, Int, String, SlipList, TRUE, FALSE,
)


VALUES = ["test", "example", "sample"]


def tracked(values, log):
    """A generator that records when it is closed."""
    try:
        for v in values:
            yield v
    finally:
        log.append("closed")


def counting(produced):
    for i in itertools.count():
        produced.append(i)
        yield i


# --- Import from Python iterables ---

def test_round_trip_generator():
    def gen():
        yield from VALUES
    assert list(as_seq(from_seq(gen()))) == VALUES

def test_round_trip_list_with_convert():
    v = from_seq(VALUES, String)
    assert list(as_seq(v)) == VALUES

def test_from_seq_capability_scenarios():
    assert from_seq(iter(VALUES), String).get(Int(0)) == String("test")
    assert from_seq(iter(VALUES), String).size() == Int(3)
    assert from_seq(iter(VALUES), String).contains(String("sample")) is TRUE
    assert from_seq(iter(VALUES), String).contains(String("blah")) is FALSE

def test_from_seq_is_lazy():
    produced = []
    v = from_seq(counting(produced), Int)
    assert v.get(Int(10)) == Int(10)
    assert produced == list(range(11))

def test_generator_closed_on_exhaustion():
    log = []
    v = from_seq(tracked(VALUES, log))
    assert v.size() == Int(3)
    assert log == ["closed"]
    assert v.has_next() is FALSE

def test_release_closes_generator_early():
    log = []
    v = from_seq(tracked(VALUES, log))
    assert v.has_next() is TRUE
    assert v.next() == String("test")
    assert v.releasable
    v.release()
    assert log == ["closed"]
    assert v.has_next() is FALSE
    # A second release is harmless
    v.release()

def test_generator_error_surfaces_from_has_next():
    def gen():
        yield "one"
        raise ValueError("broken feed")
    v = from_seq(gen())
    assert v.has_next() is TRUE
    assert v.next() == String("one")
    res = v.has_next()
    assert isinstance(res, Err)
    assert res.message == "error checking for next element: broken feed"
    assert v.has_next() is FALSE

def test_from_seq_rejects_other_values():
    with pytest.raises(TypeError):
        from_seq(42)


# --- Import from push-style producers ---

def test_push_producer_round_trip():
    def push(yield_):
        for v in VALUES:
            if not yield_(v):
                return
    assert list(as_seq(from_seq(push))) == VALUES

def test_push_producer_advances_one_element_per_pull():
    produced = []

    def push(yield_):
        for v in VALUES:
            produced.append(v)
            if not yield_(v):
                return

    v = from_seq(push, String)
    assert produced == []
    assert v.has_next() is TRUE
    assert produced == ["test"]
    assert v.next() == String("test")
    assert v.get(Int(1)) == String("example")
    assert produced == ["test", "example"]
    v.release()

def test_push_producer_is_stopped_by_release():
    state = {"stopped": False, "last": None}

    def push(yield_):
        for i in itertools.count():
            if not yield_(i):
                state["stopped"] = True
                state["last"] = i
                return

    v = from_seq(push, Int)
    assert v.get(Int(3)) == Int(3)
    v.release()
    assert state["stopped"]
    assert state["last"] == 3
    assert v.has_next() is FALSE

def test_push_producer_error():
    def push(yield_):
        yield_(1)
        raise ValueError("bad")

    v = from_seq(push, Int)
    assert v.has_next() is TRUE
    assert v.next() == Int(1)
    res = v.has_next()
    assert res.message == "error checking for next element: bad"

def test_push_producer_never_started_releases_cleanly():
    calls = []
    v = from_seq(lambda yield_: calls.append("ran"))
    v.release()
    assert calls == []
    assert v.has_next() is FALSE


# --- Export ---

def test_as_seq_non_iterable_is_empty():
    assert list(as_seq(String("abc"))) == []
    assert list(as_seq(Int(1))) == []

def test_as_seq_iterable_uses_fresh_iterator():
    lst = SlipList([1, 2, 3])
    assert list(as_seq(lst)) == [1, 2, 3]
    assert list(as_seq(lst)) == [1, 2, 3]

def test_as_seq_custom_convert():
    v = from_seq(VALUES, String)
    assert list(as_seq(v, lambda s: s.value().upper())) == ["TEST", "EXAMPLE", "SAMPLE"]

def test_as_seq_stops_on_producer_error():
    state = {"pos": 0}

    def has_next():
        if state["pos"] >= 2:
            raise RuntimeError("lost connection")
        return True

    def get_next():
        state["pos"] += 1
        return state["pos"]

    assert list(as_seq(new(has_next, get_next, Int))) == [1, 2]

def test_as_seq_stops_on_advance_error():
    def get_next():
        raise RuntimeError("nope")
    assert list(as_seq(new(lambda: True, get_next))) == []

def test_as_seq_early_close_releases_producer():
    log = []
    seq = as_seq(from_seq(tracked(VALUES, log)))
    assert next(seq) == "test"
    assert log == []
    seq.close()
    assert log == ["closed"]

def test_as_seq_break_on_infinite_producer():
    produced = []
    out = []
    for i in as_seq(from_seq(counting(produced), Int)):
        if i == 4:
            break
        out.append(i)
    assert out == [0, 1, 2, 3]
    assert produced == [0, 1, 2, 3, 4]

def test_as_seq_early_close_ends_imported_cursor():
    v = from_seq(iter(VALUES), String)
    seq = as_seq(v)
    assert next(seq) == "test"
    seq.close()
    assert v.has_next() is FALSE

def test_as_seq_early_close_keeps_callback_cursor_usable():
    state = {"pos": 0}

    def get_next():
        state["pos"] += 1
        return VALUES[state["pos"] - 1]

    v = new(lambda: state["pos"] < len(VALUES), get_next, String)
    seq = as_seq(v)
    assert next(seq) == "test"
    seq.close()
    assert v.has_next() is TRUE
    assert v.next() == String("example")


class Flag(Val):
    """A boolean-like host value that is not the built-in Bool."""
    def __init__(self, flag):
        self.flag = flag

    def type(self):
        return BOOL_TYPE

    def value(self):
        return self.flag


class FlagIterator(Iterator):
    def __init__(self, items):
        self.items = list(items)

    def type(self):
        return DYN_TYPE

    def value(self):
        return self.items

    def has_next(self):
        return Flag(bool(self.items))

    def next(self):
        return Int(self.items.pop(0))


def test_as_seq_reads_foreign_boolean_values():
    assert list(as_seq(FlagIterator([1, 2]))) == [1, 2]

def test_push_producer_stop_iteration_is_an_error():
    def push(yield_):
        yield_(1)
        raise StopIteration("oops")

    v = from_seq(push, Int)
    assert v.has_next() is TRUE
    assert v.next() == Int(1)
    res = v.has_next()
    assert isinstance(res, Err)
    assert "raised StopIteration" in res.message

class Abort(BaseException):
    pass

def test_push_producer_base_exception_reaches_consumer():
    def push(yield_):
        yield_(1)
        raise Abort()

    v = from_seq(push, Int)
    assert v.has_next() is TRUE
    v.next()
    with pytest.raises(Abort):
        v.has_next()
