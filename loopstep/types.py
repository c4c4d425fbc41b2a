"""Runtime values and deferred-work records for loopstep.

This module defines the values the interpreter computes with (numbers,
strings, booleans, `null`, `UNDEFINED`, functions, promises and arrays),
the records handlers use to defer work to the scheduler, and the
JavaScript-flavoured coercions used by operators and by the console
handler.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple, TYPE_CHECKING
import json
import math

if TYPE_CHECKING:
    from .ast import Node, Block
    from .scope import Scope


class UndefinedType:
    """Marker object for the script `undefined` value."""
    _instance: Optional['UndefinedType'] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return 'undefined'

    def __bool__(self) -> bool:
        return False


UNDEFINED = UndefinedType()

FULFILLED = 'fulfilled'
REJECTED = 'rejected'
PENDING = 'pending'


@dataclass(frozen=True)
class FunctionValue:
    """A user function paired with the scope it was declared in."""
    name: str
    params: Tuple[str, ...]
    body: 'Node'
    closure: 'Scope' = field(repr=False, compare=False)
    is_async: bool = False
    expression_body: bool = False
    line: Optional[int] = None

    def __str__(self) -> str:
        return f"[Function: {self.name}]"


@dataclass
class PromiseValue:
    """A promise as far as the step generator can know it.

    Promises created by `Promise.*` are settled immediately. The promise
    returned by an async call stays pending while its body is suspended;
    microtasks waiting on it are parked in `waiters` and enqueued when the
    body finishes.
    """
    state: str
    value: Any = UNDEFINED
    waiters: List['DeferredMicrotask'] = field(default_factory=list, repr=False, compare=False)

    def __str__(self) -> str:
        return '[object Promise]'


@dataclass
class Continuation:
    """The rest of a suspended function body.

    `binding` receives the settled value of the awaited promise when the
    continuation runs: `('declare', name)` for `let x = await ...`,
    `('assign', name, op)` for `x = await ...` or `('return',)` for
    `return await ...`. `promise` is the pending result of the async call
    that owns the body.
    """
    statements: List['Node']
    scope: 'Scope'
    function: FunctionValue
    binding: Optional[tuple] = None
    promise: Optional[PromiseValue] = None


@dataclass
class DeferredMicrotask:
    microtask_id: int
    callback_node: Optional['Node']
    kind: str  # 'then', 'catch', 'finally', 'await' or 'settle'
    scope: 'Scope'
    state: str = FULFILLED
    value: Any = UNDEFINED
    continuation: Optional[Continuation] = None
    name: str = 'Promise.then'
    # Promise returned by a link parked on a pending receiver
    derived: Optional[PromiseValue] = None


@dataclass
class DeferredCallback:
    timer_id: int
    callback_node: Optional['Node']
    delay: int
    kind: str  # 'timeout', 'interval' or 'raf'
    scope: 'Scope'
    due: int = 0


###############################################################################
# Coercions
###############################################################################


def type_name(value: Any) -> str:
    if value is UNDEFINED:
        return 'undefined'
    if value is None:
        return 'object'
    if isinstance(value, bool):
        return 'boolean'
    if isinstance(value, (int, float)):
        return 'number'
    if isinstance(value, str):
        return 'string'
    if isinstance(value, FunctionValue):
        return 'function'
    return 'object'


def normalize_number(value: float) -> Any:
    """Collapse integral floats to ints so that 6 / 2 prints as 3."""
    if isinstance(value, float) and value.is_integer() and abs(value) < 2 ** 53:
        return int(value)
    return value


def to_number(value: Any) -> Any:
    if isinstance(value, bool):
        return 1 if value else 0
    if isinstance(value, (int, float)):
        return value
    if value is None:
        return 0
    if isinstance(value, str):
        text = value.strip()
        if text == '':
            return 0
        try:
            return normalize_number(float(text))
        except ValueError:
            return math.nan
    return math.nan


def number_to_string(value: Any) -> str:
    if isinstance(value, float):
        if math.isnan(value):
            return 'NaN'
        if math.isinf(value):
            return 'Infinity' if value > 0 else '-Infinity'
        if value.is_integer() and abs(value) < 1e21:
            return str(int(value))
        return repr(value)
    return str(value)


def to_string(value: Any) -> str:
    if value is UNDEFINED:
        return 'undefined'
    if value is None:
        return 'null'
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (int, float)):
        return number_to_string(value)
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return ','.join('' if v is None or v is UNDEFINED else to_string(v) for v in value)
    return str(value)


def is_truthy(value: Any) -> bool:
    if value is UNDEFINED or value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return not (value == 0 or (isinstance(value, float) and math.isnan(value)))
    if isinstance(value, str):
        return len(value) > 0
    return True


def render_literal(value: Any) -> str:
    """Render a literal argument the way a call-stack frame label shows it."""
    if isinstance(value, str):
        return json.dumps(value)
    return to_string(value)


def settled_value(value: Any) -> Any:
    """The value a promise-aware consumer sees for `value`."""
    if isinstance(value, PromiseValue):
        return value.value
    return value
