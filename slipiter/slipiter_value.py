"""
Iterable values backed by lazy producers.

An `IterValue` wraps two producer callbacks, one that reports whether
another element is available and one that returns it, and exposes them to
the evaluator as an iterator that can also be indexed, sized and searched.
Nothing is buffered: indexing, sizing and containment all advance the
single underlying cursor.
"""

import os
import sys
from typing import Any, Callable, Generic, Optional, TypeVar

from slipiter.slipiter_datatypes import (
    Val, Iterator, Iterable, Indexer, Sizer, Container,
    SlipType, Trait, DYN_TYPE, INT_TYPE,
    Bool, Int, Err, FALSE, SlipError, NoCurrentElement,
    new_err, is_true, native_to_value,
)

T = TypeVar("T")

HasNext = Callable[[], bool]
Next = Callable[[], T]
Convert = Callable[[T], Val]

# The type of iterable values. Use this when declaring host functions that
# accept or return them.
ITERABLE_TYPE = DYN_TYPE.with_traits(
    Trait.ITERABLE | Trait.ITERATOR | Trait.INDEXER | Trait.SIZER | Trait.CONTAINER
)


def _dbg(*parts):
    if os.environ.get("SLIPITER_DEBUG"):
        try:
            print("[DBG]", *parts, file=sys.stderr)
        except Exception:
            pass


# --- Callback defaults ---

def _never_has_next() -> bool:
    return False


def _no_next_element():
    raise SlipError("no next element")


def _default_convert(elem: Any) -> Val:
    return native_to_value(elem)


class IterValue(Iterator, Iterable, Indexer, Sizer, Container, Generic[T]):
    """A forward-only cursor over a lazy producer.

    `index` starts at -1 and only ever grows. Every capability operation
    advances the same cursor, so an instance must not be shared between two
    independent enumerations.
    """
    def __init__(self, has_next: HasNext, get_next: Next, convert: Convert,
                 release: Optional[Callable[[], None]] = None):
        self.index = -1
        self._cur: Optional[T] = None
        self._has_next = has_next
        self._next = get_next
        self._convert = convert
        self._release = release

    # --- Val ---

    def type(self) -> SlipType:
        return ITERABLE_TYPE

    def value(self) -> Any:
        return self._cur

    def convert_to_native(self, typ: type) -> Any:
        if self.index < 0:
            raise NoCurrentElement("iterable has no current element; it has not been advanced")
        if isinstance(self._cur, typ):
            return self._cur
        raise TypeError(f"unable to convert {self.type().type_name()} to native type {typ.__name__}")

    def convert_to_type(self, typ: SlipType) -> Val:
        return new_err("unable to convert %s to type %s", self.type().type_name(), typ.type_name())

    def equal(self, other: Val) -> Val:
        if isinstance(other, IterValue):
            return Bool(self is other)
        return FALSE

    # --- Iterator / Iterable ---

    def has_next(self) -> Val:
        try:
            ok = self._has_next()
        except Exception as e:
            return new_err("error checking for next element: %s", e)
        if not ok:
            _dbg("iter", "exhausted at index", self.index)
        return Bool(ok)

    def next(self) -> Val:
        try:
            elem = self._next()
        except Exception as e:
            return new_err("error getting next element: %s", e)
        self._cur = elem
        self.index += 1
        return self._convert_current()

    def _convert_current(self) -> Val:
        try:
            return self._convert(self._cur)
        except Exception as e:
            return new_err("error converting element: %s", e)

    def iterator(self) -> Iterator:
        return self

    # --- Indexer ---

    def get(self, key: Val) -> Val:
        """Returns the element at `key`, advancing the cursor up to it.

        Only the current element and those ahead of it are reachable; an
        index behind the cursor is an error since nothing is retained.
        """
        if not isinstance(key, Val) or key.type() != INT_TYPE:
            key_type = key.type() if isinstance(key, Val) else type(key).__name__
            return new_err("invalid key type for iterable: %s, must be int", key_type)

        target = key.value()
        if target < 0:
            return new_err("index cannot be negative")
        if target < self.index:
            return new_err("index already passed")

        _dbg("iter", "seek", self.index, "->", target)
        while self.index < target:
            avail = self.has_next()
            if isinstance(avail, Err):
                return avail
            if not is_true(avail):
                return new_err("index out of bounds during iterable access")
            res = self.next()
            if isinstance(res, Err):
                return res

        return self._convert_current()

    # --- Sizer ---

    def size(self) -> Val:
        """Counts the remaining elements. This drains the cursor."""
        count = 0
        while True:
            avail = self.has_next()
            if isinstance(avail, Err):
                return avail
            if not is_true(avail):
                break
            res = self.next()
            if isinstance(res, Err):
                return res
            count += 1
        return Int(count)

    # --- Container ---

    def contains(self, val: Val) -> Val:
        """Consumes elements up to and including the first one equal to `val`."""
        while True:
            avail = self.has_next()
            if isinstance(avail, Err):
                return avail
            if not is_true(avail):
                return FALSE
            res = self.next()
            if isinstance(res, Err):
                return res
            eq = res.equal(val)
            if isinstance(eq, Err):
                return eq
            if is_true(eq):
                return Bool(True)

    # --- Resources ---

    @property
    def releasable(self) -> bool:
        return self._release is not None

    def release(self):
        """Frees the producer's execution context, if it has one.

        Safe to call more than once. The cursor reports no further elements
        afterwards.
        """
        if self._release is None:
            return
        release, self._release = self._release, None
        _dbg("iter", "release at index", self.index)
        release()


def new(has_next: Optional[HasNext] = None,
        get_next: Optional[Next] = None,
        convert: Optional[Convert] = None) -> IterValue:
    """Creates an iterable value from producer callbacks.

    `has_next()` returns whether another element is available, `get_next()`
    returns it, and `convert(elem)` turns an element into a host value. A
    callback reports failure by raising. Missing callbacks fall back to an
    empty producer and the default host adapter.
    """
    if has_next is None:
        has_next = _never_has_next
    if get_next is None:
        get_next = _no_next_element
    if convert is None:
        convert = _default_convert
    return IterValue(has_next, get_next, convert)


__all__ = ["ITERABLE_TYPE", "IterValue", "new"]
