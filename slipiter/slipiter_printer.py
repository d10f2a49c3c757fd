"""
A pretty-printer for host values.
"""
import collections.abc

from slipiter.slipiter_datatypes import (
    Val, Bool, Int, Double, String, Bytes, NativeValue, Err,
    SlipList, SlipMap, Iterator, NULL,
)


class Printer:
    """Formats host values (and plain Python values) into readable strings.

    Lazy values are never advanced by printing; they show their position
    instead of their contents.
    """

    def __init__(self, indent_width=2):
        self._indent_char = " " * indent_width
        self._handlers = self._create_handlers()

    def pformat(self, obj, level=0):
        """Public entry point to format an object."""
        handler = self._get_handler(obj)
        return handler(obj, level)

    def _get_handler(self, obj):
        """Dispatcher to find the correct formatting method."""
        if obj is NULL: return self._pformat_none

        if isinstance(obj, Iterator): return self._pformat_iterator
        # Subclasses format like their nearest known base
        for klass in type(obj).__mro__:
            if klass in self._handlers:
                return self._handlers[klass]
        if isinstance(obj, Val): return self._pformat_val
        if isinstance(obj, collections.abc.Mapping): return self._pformat_dict
        if isinstance(obj, (list, tuple)): return self._pformat_list
        # Default to Python's repr for unknown types
        return lambda o, l: repr(o)

    def _create_handlers(self):
        return {
            str: self._pformat_str,
            int: self._pformat_primitive,
            float: self._pformat_primitive,
            bool: self._pformat_bool,
            type(None): self._pformat_none,
            Bool: lambda o, l: self._pformat_bool(o.value(), l),
            Int: lambda o, l: self._pformat_primitive(o.value(), l),
            Double: lambda o, l: self._pformat_primitive(o.value(), l),
            String: lambda o, l: self._pformat_str(o.value(), l),
            Bytes: lambda o, l: repr(o.value()),
            NativeValue: lambda o, l: f"native({o.value()!r})",
            Err: self._pformat_err,
            SlipList: lambda o, l: self._pformat_list(o.value(), l),
            SlipMap: lambda o, l: self._pformat_dict(o.value(), l),
        }

    def _pformat_primitive(self, obj, level):
        return str(obj)

    def _pformat_str(self, obj, level):
        # Basic string formatting, does not handle complex escapes
        return f"'{obj}'"

    def _pformat_bool(self, obj, level):
        return 'true' if obj else 'false'

    def _pformat_none(self, obj, level):
        return 'none'

    def _pformat_err(self, obj, level):
        return f"error {self._pformat_str(obj.message, level)}"

    def _pformat_val(self, obj, level):
        # Unknown host values print as their native payload; Val.__repr__
        # routes back here, so never fall through to repr(obj).
        native = obj.value()
        if isinstance(native, Val):
            return f"<{obj.type().type_name()}>"
        return self.pformat(native, level)

    def _pformat_iterator(self, obj, level):
        index = getattr(obj, "index", None)
        type_name = obj.type().type_name() if isinstance(obj, Val) else type(obj).__name__
        if index is None:
            return f"<{type_name} iterator>"
        return f"<{type_name} iterator at {index}>"

    def _pformat_block(self, items, level, open_char, close_char):
        if not items:
            return f"{open_char}{close_char}"

        outer_indent = self._indent_char * level
        inner_indent = self._indent_char * (level + 1)

        parts = [self.pformat(item, level + 1) for item in items]
        flat = f"{open_char}{', '.join(parts)}{close_char}"
        if '\n' not in flat and len(flat) <= 80:
            return flat

        lines = [inner_indent + p for p in parts]
        return f"{open_char}\n" + ",\n".join(lines) + f"\n{outer_indent}{close_char}"

    def _pformat_list(self, obj, level):
        return self._pformat_block(list(obj), level, '#[', ']')

    def _pformat_dict(self, obj, level):
        entries = [_Entry(k, v, self) for k, v in obj.items()]
        return self._pformat_block(entries, level, '#{', '}')


class _Entry:
    """A single `key: value` pair inside a formatted mapping."""
    __slots__ = ("key", "value", "printer")

    def __init__(self, key, value, printer):
        self.key = key
        self.value = value
        self.printer = printer

    def __repr__(self):
        return f"{self.key}: {self.printer.pformat(self.value)}"
