"""Lazy iterable values for the SLIP host value model."""

from slipiter.slipiter_value import ITERABLE_TYPE, IterValue, new
from slipiter.slipiter_seq import from_seq, as_seq
from slipiter.slipiter_printer import Printer
from slipiter.slipiter_runtime import StdLib, Runner, ExecutionResult
from slipiter.slipiter_serialize import serialize

__all__ = [
    "ITERABLE_TYPE",
    "IterValue",
    "new",
    "from_seq",
    "as_seq",
    "Printer",
    "StdLib",
    "Runner",
    "ExecutionResult",
    "serialize",
]
