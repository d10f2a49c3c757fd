"""
Defines the host value model that iterable values plug into.

This module provides the type descriptors, capability traits, value
wrappers and error values that the evaluator works with. Every value the
evaluator sees is a `Val`; capabilities such as iteration or indexing are
expressed both as trait bits on the value's `SlipType` and as the abstract
base classes below.
"""

import collections.abc
import enum
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class NoCurrentElement(LookupError):
    """Raised when a cursor is asked for its element before it has advanced."""
    pass


class SlipError(Exception):
    """The Python-side exception carried by an `Err` value."""
    pass


# =================================================================
# Type Descriptors
# =================================================================

class Trait(enum.IntFlag):
    """Capability bits carried by a type descriptor."""
    NONE = 0
    ITERABLE = 1
    ITERATOR = 2
    INDEXER = 4
    SIZER = 8
    CONTAINER = 16
    COMPARER = 32


class SlipType:
    """A named type descriptor with a set of capability traits.

    Two descriptors are the same type when their names match; traits are
    descriptive and do not take part in equality.
    """
    def __init__(self, name: str, traits: Trait = Trait.NONE):
        self.name = name
        self.traits = Trait(traits)

    def type_name(self) -> str:
        return self.name

    def has_trait(self, trait: Trait) -> bool:
        return (self.traits & trait) == trait

    def with_traits(self, traits: Trait) -> 'SlipType':
        """Returns a new descriptor with the same name and the given traits."""
        return SlipType(self.name, traits)

    def __eq__(self, other):
        if not isinstance(other, SlipType):
            return NotImplemented
        return self.name == other.name

    def __hash__(self):
        return hash(self.name)

    def __repr__(self) -> str:
        return f"<SlipType {self.name} traits={int(self.traits)}>"

    def __str__(self) -> str:
        return self.name


DYN_TYPE = SlipType("dyn")
BOOL_TYPE = SlipType("bool", Trait.COMPARER)
INT_TYPE = SlipType("int", Trait.COMPARER)
DOUBLE_TYPE = SlipType("double", Trait.COMPARER)
STRING_TYPE = SlipType("string", Trait.COMPARER | Trait.SIZER)
BYTES_TYPE = SlipType("bytes", Trait.COMPARER | Trait.SIZER)
NULL_TYPE = SlipType("null_type")
LIST_TYPE = SlipType("list", Trait.ITERABLE | Trait.INDEXER | Trait.SIZER | Trait.CONTAINER)
MAP_TYPE = SlipType("map", Trait.ITERABLE | Trait.INDEXER | Trait.SIZER | Trait.CONTAINER)
ERROR_TYPE = SlipType("error")


# =================================================================
# Abstract Base Classes
# =================================================================

class Val(ABC):
    """Abstract base class for every value handled by the evaluator."""

    @abstractmethod
    def type(self) -> SlipType:
        raise NotImplementedError

    @abstractmethod
    def value(self) -> Any:
        raise NotImplementedError

    def equal(self, other: 'Val') -> 'Val':
        if isinstance(other, Err):
            return other
        return Bool(self is other)

    def convert_to_native(self, typ: type) -> Any:
        native = self.value()
        if isinstance(native, typ):
            return native
        raise TypeError(f"unable to convert {self.type().type_name()} to native type {typ.__name__}")

    def convert_to_type(self, typ: SlipType) -> 'Val':
        if typ == self.type():
            return self
        return new_err("unable to convert %s to type %s", self.type().type_name(), typ.type_name())

    def __repr__(self) -> str:
        from slipiter.slipiter_printer import Printer
        return Printer().pformat(self)


class Iterator(Val):
    """A value that can be advanced element by element."""

    @abstractmethod
    def has_next(self) -> Val:
        raise NotImplementedError

    @abstractmethod
    def next(self) -> Val:
        raise NotImplementedError


class Iterable(Val):
    """A value that can hand out an `Iterator` over its elements."""

    @abstractmethod
    def iterator(self) -> Iterator:
        raise NotImplementedError


class Indexer(Val):
    """A value supporting `value[key]` lookups."""

    @abstractmethod
    def get(self, key: Val) -> Val:
        raise NotImplementedError


class Sizer(Val):
    """A value with a size."""

    @abstractmethod
    def size(self) -> Val:
        raise NotImplementedError


class Container(Val):
    """A value supporting `x in value` tests."""

    @abstractmethod
    def contains(self, val: Val) -> Val:
        raise NotImplementedError


# =================================================================
# Core Value Types
# =================================================================

class Err(Val):
    """An error value, returned in place of a result when an operation fails.

    The evaluator surfaces an `Err` as an evaluation failure. The
    originating Python exception, if any, is kept as `cause`.
    """
    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.message = message
        self.cause = cause

    def type(self) -> SlipType:
        return ERROR_TYPE

    def value(self) -> SlipError:
        err = SlipError(self.message)
        err.__cause__ = self.cause
        return err

    def equal(self, other: Val) -> Val:
        return self

    def convert_to_type(self, typ: SlipType) -> Val:
        return self

    def __eq__(self, other):
        return isinstance(other, Err) and self.message == other.message

    def __hash__(self):
        return hash(self.message)

    def __str__(self) -> str:
        return self.message


class _Primitive(Val):
    """Shared behaviour for scalar wrappers around a single native value."""
    _slip_type: SlipType = DYN_TYPE

    def __init__(self, value: Any):
        self._value = value

    def type(self) -> SlipType:
        return self._slip_type

    def value(self) -> Any:
        return self._value

    def equal(self, other: Val) -> Val:
        if isinstance(other, Err):
            return other
        if isinstance(other, _Primitive) and other.type() == self.type():
            return Bool(self._value == other._value)
        return FALSE

    def convert_to_type(self, typ: SlipType) -> Val:
        if typ == self.type():
            return self
        if typ == STRING_TYPE:
            return String(str(self._value))
        return new_err("unable to convert %s to type %s", self.type().type_name(), typ.type_name())

    def __eq__(self, other):
        if isinstance(other, _Primitive):
            return type(self) is type(other) and self._value == other._value
        return NotImplemented

    def __hash__(self):
        return hash((type(self).__name__, self._value))


class Bool(_Primitive):
    """A boolean value. `Bool(x)` always returns one of the `TRUE`/`FALSE` singletons."""
    _slip_type = BOOL_TYPE
    _instances: Dict[bool, 'Bool'] = {}

    def __new__(cls, value: Any):
        flag = bool(value)
        inst = cls._instances.get(flag)
        if inst is None:
            inst = super().__new__(cls)
            inst._value = flag
            cls._instances[flag] = inst
        return inst

    def __init__(self, value: Any):
        # State is fixed in __new__.
        pass

    def __bool__(self):
        return self._value


class Int(_Primitive):
    """A 64-bit style integer value."""
    _slip_type = INT_TYPE

    def __init__(self, value: int):
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"Int requires an int, not {type(value).__name__}")
        super().__init__(value)

    def __int__(self):
        return self._value

    def __index__(self):
        return self._value


class Double(_Primitive):
    _slip_type = DOUBLE_TYPE

    def __init__(self, value: float):
        super().__init__(float(value))


class String(_Primitive, Sizer):
    """A string value."""
    _slip_type = STRING_TYPE

    def __init__(self, value: str):
        if not isinstance(value, str):
            raise TypeError(f"String requires a str, not {type(value).__name__}")
        super().__init__(value)

    def size(self) -> Val:
        return Int(len(self._value))

    def __str__(self) -> str:
        return self._value


class Bytes(_Primitive, Sizer):
    _slip_type = BYTES_TYPE

    def __init__(self, value: bytes):
        super().__init__(bytes(value))

    def size(self) -> Val:
        return Int(len(self._value))


class _Null(_Primitive):
    _slip_type = NULL_TYPE

    def __init__(self):
        super().__init__(None)


class NativeValue(Val):
    """Wraps an arbitrary Python object that has no dedicated host type.

    Equality is delegated to the wrapped object's `==`.
    """
    def __init__(self, obj: Any):
        self.obj = obj

    def type(self) -> SlipType:
        return DYN_TYPE

    def value(self) -> Any:
        return self.obj

    def equal(self, other: Val) -> Val:
        if isinstance(other, Err):
            return other
        if isinstance(other, NativeValue):
            return Bool(self.obj == other.obj)
        return FALSE


TRUE = Bool(True)
FALSE = Bool(False)
NULL = _Null()


# =================================================================
# Collection Types
# =================================================================

class _ListIterator(Iterator):
    """A fresh, independent iterator over a `SlipList`."""
    def __init__(self, items: List[Any]):
        self._items = items
        self._pos = 0

    def type(self) -> SlipType:
        return DYN_TYPE.with_traits(Trait.ITERATOR)

    def value(self) -> Any:
        return self._items

    def has_next(self) -> Val:
        return Bool(self._pos < len(self._items))

    def next(self) -> Val:
        if self._pos >= len(self._items):
            return new_err("no next element")
        item = self._items[self._pos]
        self._pos += 1
        return native_to_value(item)


class SlipList(Iterable, Indexer, Sizer, Container):
    """A finite, fully materialized list of native elements.

    Elements are stored natively and wrapped on access, so the same list
    can be iterated any number of times.
    """
    def __init__(self, items: collections.abc.Iterable):
        self.items = list(items)

    def type(self) -> SlipType:
        return LIST_TYPE

    def value(self) -> List[Any]:
        return self.items

    def iterator(self) -> Iterator:
        return _ListIterator(self.items)

    def get(self, key: Val) -> Val:
        if not isinstance(key, Int):
            return new_err("invalid key type for list: %s, must be int", key.type())
        idx = key.value()
        if idx < 0 or idx >= len(self.items):
            return new_err("index out of bounds: %d", idx)
        return native_to_value(self.items[idx])

    def size(self) -> Val:
        return Int(len(self.items))

    def contains(self, val: Val) -> Val:
        for item in self.items:
            res = native_to_value(item).equal(val)
            if isinstance(res, Err):
                return res
            if res is TRUE:
                return TRUE
        return FALSE

    def equal(self, other: Val) -> Val:
        if isinstance(other, Err):
            return other
        if not isinstance(other, SlipList) or len(other.items) != len(self.items):
            return FALSE
        for a, b in zip(self.items, other.items):
            res = native_to_value(a).equal(native_to_value(b))
            if res is not TRUE:
                return res if isinstance(res, Err) else FALSE
        return TRUE

    def __eq__(self, other):
        if not isinstance(other, SlipList):
            return NotImplemented
        return self.items == other.items

    def __len__(self) -> int:
        return len(self.items)


class SlipMap(Iterable, Indexer, Sizer, Container):
    """A mapping value; iteration and containment work over its keys."""
    def __init__(self, data: collections.abc.Mapping):
        self.data = dict(data)

    def type(self) -> SlipType:
        return MAP_TYPE

    def value(self) -> Dict[Any, Any]:
        return self.data

    def iterator(self) -> Iterator:
        return _ListIterator(list(self.data.keys()))

    def get(self, key: Val) -> Val:
        if isinstance(key, Err):
            return key
        native = key.value()
        try:
            if native not in self.data:
                return new_err("no such key: %s", native)
        except TypeError as e:
            return new_err("invalid key for map: %s", e, cause=e)
        return native_to_value(self.data[native])

    def size(self) -> Val:
        return Int(len(self.data))

    def contains(self, val: Val) -> Val:
        if isinstance(val, Err):
            return val
        try:
            return Bool(val.value() in self.data)
        except TypeError as e:
            # Unhashable keys cannot be present.
            return new_err("invalid key for map: %s", e, cause=e)

    def equal(self, other: Val) -> Val:
        if isinstance(other, Err):
            return other
        return Bool(isinstance(other, SlipMap) and self.data == other.data)

    def __eq__(self, other):
        if not isinstance(other, SlipMap):
            return NotImplemented
        return self.data == other.data


# =================================================================
# Helpers
# =================================================================

def new_err(fmt: str, *args: Any, cause: Optional[BaseException] = None) -> Err:
    """Builds an `Err` from a %-style format string.

    If no explicit `cause` is given, the first exception among `args` is
    kept as the cause so the original failure stays reachable.
    """
    if cause is None:
        for a in args:
            if isinstance(a, BaseException):
                cause = a
                break
    message = fmt % args if args else fmt
    return Err(message, cause)


def is_error(val: Any) -> bool:
    return isinstance(val, Err)


def is_true(val: Any) -> bool:
    """True only for the host `TRUE` value (or a native `True`)."""
    return val is TRUE or val is True


def native_to_value(obj: Any) -> Val:
    """Default adapter from Python objects to host values."""
    if isinstance(obj, Val):
        return obj
    if obj is None:
        return NULL
    if isinstance(obj, bool):
        return Bool(obj)
    if isinstance(obj, int):
        return Int(obj)
    if isinstance(obj, float):
        return Double(obj)
    if isinstance(obj, str):
        return String(obj)
    if isinstance(obj, (bytes, bytearray)):
        return Bytes(obj)
    if isinstance(obj, (list, tuple)):
        return SlipList(obj)
    if isinstance(obj, collections.abc.Mapping):
        return SlipMap(obj)
    return NativeValue(obj)


__all__ = [
    "NoCurrentElement", "SlipError",
    "Trait", "SlipType",
    "DYN_TYPE", "BOOL_TYPE", "INT_TYPE", "DOUBLE_TYPE", "STRING_TYPE",
    "BYTES_TYPE", "NULL_TYPE", "LIST_TYPE", "MAP_TYPE", "ERROR_TYPE",
    "Val", "Iterator", "Iterable", "Indexer", "Sizer", "Container",
    "Err", "Bool", "Int", "Double", "String", "Bytes", "NativeValue",
    "SlipList", "SlipMap", "TRUE", "FALSE", "NULL",
    "new_err", "is_error", "is_true", "native_to_value",
]
