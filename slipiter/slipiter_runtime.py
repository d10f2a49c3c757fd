# slipiter_runtime.py

import inspect
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Literal, Optional

from slipiter.slipiter_datatypes import (
    Val, Iterator, Iterable, Indexer, Sizer, Container,
    Bool, Int, Err, SlipList, TRUE, FALSE,
    new_err, is_true, native_to_value,
)
from slipiter.slipiter_value import _dbg

# ===================================================================
# 1. Configuration
# ===================================================================

def _max_drain() -> Optional[int]:
    """Optional cap on elements consumed by one draining operation.

    Read from SLIPITER_MAX_DRAIN on every call; unset or invalid means no cap.
    """
    raw = os.environ.get("SLIPITER_MAX_DRAIN")
    if raw is None:
        return None
    try:
        limit = int(raw)
    except ValueError:
        return None
    return limit if limit > 0 else None


# ===================================================================
# 2. Iteration helpers
# ===================================================================

def _iterator_of(op: str, val: Any):
    val = native_to_value(val)
    if isinstance(val, Err):
        return val
    if isinstance(val, Iterator):
        return val
    if isinstance(val, Iterable):
        return val.iterator()
    return new_err("%s: value of type %s is not iterable", op, val.type())


def _elements(op: str, val: Any):
    """Yields the host elements of `val` in order.

    An error is yielded as the final element; callers stop on it.
    """
    it = _iterator_of(op, val)
    if isinstance(it, Err):
        yield it
        return
    limit = _max_drain()
    count = 0
    while True:
        avail = it.has_next()
        if isinstance(avail, Err):
            yield avail
            return
        if not is_true(avail):
            return
        if limit is not None and count >= limit:
            yield new_err("%s: iteration limit exceeded", op)
            return
        elem = it.next()
        yield elem
        if isinstance(elem, Err):
            return
        count += 1


def _as_bool(op: str, res: Any) -> Val:
    res = native_to_value(res)
    if isinstance(res, (Bool, Err)):
        return res
    return new_err("%s: predicate must return bool, got %s", op, res.type())


# ===================================================================
# 3. Host operations
# ===================================================================

class StdLib:
    """Operations the evaluator applies to capability values.

    Every method takes and returns host values; failures come back as `Err`
    values rather than exceptions. Plain Python collections are accepted and
    adapted with `native_to_value`.
    """

    def __init__(self, runner: Optional['Runner'] = None):
        self.runner = runner

    def _size(self, val):
        val = native_to_value(val)
        if isinstance(val, Err):
            return val
        if isinstance(val, Iterator) and _max_drain() is not None:
            count = 0
            for elem in _elements("size", val):
                if isinstance(elem, Err):
                    return elem
                count += 1
            return Int(count)
        if isinstance(val, Sizer):
            return val.size()
        return new_err("size: value of type %s has no size", val.type())

    def _index(self, val, key):
        val = native_to_value(val)
        if isinstance(val, Err):
            return val
        if not isinstance(val, Indexer):
            return new_err("index: value of type %s is not indexable", val.type())
        return val.get(native_to_value(key))

    def _in(self, elem, val):
        elem = native_to_value(elem)
        val = native_to_value(val)
        if isinstance(val, Err):
            return val
        if isinstance(val, Iterator) and _max_drain() is not None:
            for item in _elements("in", val):
                if isinstance(item, Err):
                    return item
                eq = item.equal(elem)
                if isinstance(eq, Err) or is_true(eq):
                    return eq
            return FALSE
        if not isinstance(val, Container):
            return new_err("in: value of type %s is not a container", val.type())
        return val.contains(elem)

    def _exists(self, val, pred: Callable):
        for elem in _elements("exists", val):
            if isinstance(elem, Err):
                return elem
            res = _as_bool("exists", pred(elem))
            if isinstance(res, Err) or is_true(res):
                return res
        return FALSE

    def _all(self, val, pred: Callable):
        for elem in _elements("all", val):
            if isinstance(elem, Err):
                return elem
            res = _as_bool("all", pred(elem))
            if isinstance(res, Err):
                return res
            if not is_true(res):
                return FALSE
        return TRUE

    def _exists_one(self, val, pred: Callable):
        matches = 0
        for elem in _elements("exists-one", val):
            if isinstance(elem, Err):
                return elem
            res = _as_bool("exists-one", pred(elem))
            if isinstance(res, Err):
                return res
            if is_true(res):
                matches += 1
        return Bool(matches == 1)

    def _map(self, val, fn: Callable):
        out: List[Val] = []
        for elem in _elements("map", val):
            if isinstance(elem, Err):
                return elem
            res = native_to_value(fn(elem))
            if isinstance(res, Err):
                return res
            out.append(res)
        return SlipList(out)

    def _filter(self, val, pred: Callable):
        out: List[Val] = []
        for elem in _elements("filter", val):
            if isinstance(elem, Err):
                return elem
            res = _as_bool("filter", pred(elem))
            if isinstance(res, Err):
                return res
            if is_true(res):
                out.append(elem)
        return SlipList(out)

    def _take(self, val, n):
        """Collects at most `n` elements; nothing past the n-th is consumed."""
        n = native_to_value(n)
        if not isinstance(n, Int):
            return new_err("take: count must be int, got %s", n.type())
        out: List[Val] = []
        if n.value() <= 0:
            return SlipList(out)
        for elem in _elements("take", val):
            if isinstance(elem, Err):
                return elem
            out.append(elem)
            if len(out) >= n.value():
                break
        return SlipList(out)

    # --- Side Effects ---
    def _emit(self, topic_or_topics, *message_parts):
        """Generates a side-effect event for the host application."""
        topics = topic_or_topics if isinstance(topic_or_topics, list) else [topic_or_topics]
        message = " ".join(map(str, message_parts))
        event = {"topics": topics, "message": message}
        if self.runner:
            self.runner.side_effects.append(event)
        return None


# ===================================================================
# 4. Execution
# ===================================================================

@dataclass
class ExecutionResult:
    """The structured result of evaluating a call or expression."""
    status: Literal['success', 'error']
    value: Any = None
    error_message: Optional[str] = None
    side_effects: List[Dict] = field(default_factory=list)

    def format_error(self) -> str:
        if self.status != 'error':
            return ""
        return str(self.error_message or "Unknown error")


class Runner:
    """Binds host functions and evaluates calls against them.

    Functions are exposed under kebab-case names next to the standard
    operations (`size`, `index`, `in`, `exists`, `all`, `exists-one`, `map`,
    `filter`, `take`, `emit`). Host bindings shadow standard ones.
    """

    def __init__(self, host_functions: Optional[Dict[str, Callable]] = None):
        self.root_scope: Dict[str, Callable] = {}
        self.side_effects: List[Dict] = []

        stdlib = StdLib(self)
        for name, member in inspect.getmembers(stdlib):
            if name.startswith('_') and not name.startswith('__') and callable(member):
                self.root_scope[name[1:].replace('_', '-')] = member

        for name, fn in (host_functions or {}).items():
            self.bind(name, fn)

    def bind(self, name: str, fn: Callable):
        """Registers a host function; returns nothing."""
        if not callable(fn):
            raise TypeError(f"cannot bind {name!r}: {type(fn).__name__} is not callable")
        self.root_scope[name.replace('_', '-')] = fn

    def __getitem__(self, name: str) -> Callable:
        return self.root_scope[name]

    async def call(self, name: str, *args) -> Any:
        """Calls a bound function by name, awaiting it if needed."""
        try:
            fn = self.root_scope[name]
        except KeyError:
            raise NameError(f"unknown function: {name}") from None
        _dbg("call", name, "argc", len(args))
        res = fn(*args)
        if inspect.isawaitable(res):
            res = await res
        return res

    async def handle_call(self, name: str, *args) -> ExecutionResult:
        """Calls `name` and packages the outcome as an ExecutionResult."""
        return await self._execute(lambda: self.call(name, *args))

    async def evaluate(self, expr: Callable[['Runner'], Any]) -> ExecutionResult:
        """Evaluates a compiled expression: a callable receiving this runner.

        The expression looks functions up by name (`r['size'](...)`) and may
        be a coroutine function.
        """
        async def run():
            res = expr(self)
            if inspect.isawaitable(res):
                res = await res
            return res
        return await self._execute(run)

    async def _execute(self, thunk) -> ExecutionResult:
        start = len(self.side_effects)
        try:
            value = await thunk()
        except Exception as e:
            _dbg("execute", "error", type(e).__name__, e)
            return ExecutionResult(
                status='error',
                error_message=f"{type(e).__name__}: {e}",
                side_effects=self.side_effects[start:],
            )
        if isinstance(value, Err):
            return ExecutionResult(
                status='error',
                value=value,
                error_message=value.message,
                side_effects=self.side_effects[start:],
            )
        return ExecutionResult(status='success', value=value, side_effects=self.side_effects[start:])


__all__ = ["StdLib", "ExecutionResult", "Runner"]
