"""
Bridges between Python sequences and iterable values.

`from_seq` turns a Python iterable, generator, or push-style producer into
an `IterValue`; `as_seq` turns an iterable value back into a Python
generator.
"""
from __future__ import annotations

import collections.abc
import queue
import threading
from typing import Any, Callable, Generator, Optional

from slipiter.slipiter_datatypes import Val, Iterator, Iterable, Err
from slipiter.slipiter_printer import Printer
from slipiter.slipiter_value import IterValue, Convert, _default_convert, _dbg

# A push-style producer calls `yield_(elem)` once per element and stops
# early when it returns False.
PushSeq = Callable[[Callable[[Any], bool]], None]

_ITEM = "item"
_DONE = "done"
_ERROR = "error"


class _PushPull:
    """Runs a push-style producer in a background thread, one element per pull.

    The producer only runs between a `pull()` and the element it hands back,
    so each pull advances it by exactly one element.
    """
    def __init__(self, seq: PushSeq):
        self._seq = seq
        self._resume = threading.Semaphore(0)
        self._handoff: queue.Queue = queue.Queue(maxsize=1)
        self._thread: Optional[threading.Thread] = None
        self._stopping = False
        self._finished = False

    def _run(self):
        self._resume.acquire()
        if self._stopping:
            self._handoff.put((_DONE, None))
            return
        try:
            self._seq(self._yield)
        except StopIteration as e:
            # Re-raised by pull(), a bare StopIteration would read as a clean end.
            err = RuntimeError(f"push-style producer raised StopIteration: {e}")
            err.__cause__ = e
            self._handoff.put((_ERROR, err))
            return
        except BaseException as e:
            # Any exit must be handed off or the consumer blocks forever.
            self._handoff.put((_ERROR, e))
            return
        self._handoff.put((_DONE, None))

    def _yield(self, elem: Any) -> bool:
        if self._stopping:
            return False
        self._handoff.put((_ITEM, elem))
        self._resume.acquire()
        return not self._stopping

    def _start(self):
        self._thread = threading.Thread(target=self._run, name="slipiter-push-seq", daemon=True)
        self._thread.start()

    def pull(self) -> Any:
        """Returns the next element, raising StopIteration once the producer is done."""
        if self._finished:
            raise StopIteration
        if self._thread is None:
            self._start()
        self._resume.release()
        kind, payload = self._handoff.get()
        if kind == _ITEM:
            return payload
        self._finished = True
        self._thread.join()
        if kind == _ERROR:
            raise payload
        raise StopIteration

    def stop(self):
        """Asks the producer to stop and waits for its thread to exit."""
        if self._finished:
            return
        self._finished = True
        if self._thread is None:
            return
        self._stopping = True
        self._resume.release()
        # Further yields return False without handing off, so the next
        # message is the producer's exit.
        kind, payload = self._handoff.get()
        self._thread.join()
        if kind == _ERROR:
            raise payload


def _pull_iterable(seq: collections.abc.Iterable):
    it = iter(seq)

    def stop():
        close = getattr(it, "close", None)
        if close is not None:
            close()

    return it.__next__, stop


def from_seq(seq, convert: Optional[Convert] = None) -> IterValue:
    """Creates an iterable value from a Python sequence of elements.

    `seq` may be any iterable (a generator is consumed lazily and closed
    once exhausted) or a push-style callable `seq(yield_)`. The returned
    value's `release()` frees the producer early.

    Note: the cursor's advance returns the element fetched by the preceding
    availability check, so the two must be called in turn.
    """
    if isinstance(seq, collections.abc.Iterable):
        pull, stop = _pull_iterable(seq)
    elif callable(seq):
        pp = _PushPull(seq)
        pull, stop = pp.pull, pp.stop
    else:
        raise TypeError(f"from_seq expects an iterable or a push-style callable, not {type(seq).__name__}")

    cur = None
    done = False

    def release():
        nonlocal done
        done = True
        stop()

    def has_next() -> bool:
        nonlocal cur
        if done:
            return False
        try:
            cur = pull()
        except StopIteration:
            value.release()
            return False
        except Exception:
            value.release()
            raise
        return True

    def get_next():
        return cur

    value = IterValue(has_next, get_next, convert or _default_convert, release=release)
    return value


def _empty_seq():
    return
    yield


def _is_available(printer: Printer, avail: Any) -> bool:
    # Read generically so any boolean-like host value works.
    if isinstance(avail, Err):
        return False
    if isinstance(avail, Val) and avail.value() is True:
        return True
    return printer.pformat(avail) == "true"


def _drain(it: Iterator, convert: Callable[[Val], Any]):
    printer = Printer()
    try:
        while True:
            if not _is_available(printer, it.has_next()):
                break
            elem = it.next()
            if isinstance(elem, Err):
                _dbg("as_seq", "stopping on error:", elem.message)
                break
            yield convert(elem)
    finally:
        release = getattr(it, "release", None)
        if release is not None:
            release()


def as_seq(val: Val, convert: Optional[Callable[[Val], Any]] = None) -> Generator[Any, None, None]:
    """Converts an iterable value into a Python generator.

    Values without the iterator capability produce an empty generator. The
    generator stops at the first producer error. Closing it early releases
    the producer of a value built by `from_seq`.

    This is meant for tests, debugging and REPL-like tooling; errors are
    truncation points rather than exceptions.
    """
    if convert is None:
        def convert(v: Val) -> Any:
            return v.value()

    if isinstance(val, Iterator):
        it = val
    elif isinstance(val, Iterable):
        it = val.iterator()
    else:
        return _empty_seq()
    return _drain(it, convert)


__all__ = ["PushSeq", "from_seq", "as_seq"]
