"""Call-site classification.

Every call expression is mapped onto one member of the closed `CallShape`
enumeration before it is evaluated; the interpreter then dispatches through
a table keyed by shape (see `loopstep.std.populate_call_table`). Promise
chains are inspected statically by `walk_chain`.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional, Tuple

from .ast import Node, Call, Member, Ident, Literal, ArrowFunction
from .types import FULFILLED, REJECTED, render_literal

MAX_CHAIN_HOPS = 20


class CallShape(Enum):
    TIMEOUT = 'timeout'
    INTERVAL = 'interval'
    ANIMATION_FRAME = 'animation_frame'
    CLEAR_TIMER = 'clear_timer'
    CONSOLE = 'console'
    PROMISE_RESOLVE = 'promise_resolve'
    PROMISE_REJECT = 'promise_reject'
    PROMISE_ALL = 'promise_all'
    PROMISE_THEN = 'promise_then'
    PROMISE_CATCH = 'promise_catch'
    PROMISE_FINALLY = 'promise_finally'
    USER_FUNCTION = 'user_function'
    METHOD = 'method'
    UNRECOGNIZED = 'unrecognized'


GLOBAL_CALLS = {
    'setTimeout': CallShape.TIMEOUT,
    'setInterval': CallShape.INTERVAL,
    'requestAnimationFrame': CallShape.ANIMATION_FRAME,
    'clearTimeout': CallShape.CLEAR_TIMER,
    'clearInterval': CallShape.CLEAR_TIMER,
    'cancelAnimationFrame': CallShape.CLEAR_TIMER,
}

CONSOLE_METHODS = ('log', 'info', 'warn', 'error')

PROMISE_STATICS = {
    'resolve': CallShape.PROMISE_RESOLVE,
    'reject': CallShape.PROMISE_REJECT,
    'all': CallShape.PROMISE_ALL,
}

CHAIN_METHODS = {
    'then': CallShape.PROMISE_THEN,
    'catch': CallShape.PROMISE_CATCH,
    'finally': CallShape.PROMISE_FINALLY,
}

PROMISE_ROOTS = (CallShape.PROMISE_RESOLVE, CallShape.PROMISE_REJECT, CallShape.PROMISE_ALL)
CHAIN_LINKS = (CallShape.PROMISE_THEN, CallShape.PROMISE_CATCH, CallShape.PROMISE_FINALLY)


def classify_call(call: Call) -> CallShape:
    callee = call.callee
    if isinstance(callee, Ident):
        return GLOBAL_CALLS.get(callee.name, CallShape.USER_FUNCTION)
    if isinstance(callee, Member):
        target = callee.target
        if isinstance(target, Ident):
            if target.name == 'console' and callee.name in CONSOLE_METHODS:
                return CallShape.CONSOLE
            if target.name == 'Promise' and callee.name in PROMISE_STATICS:
                return PROMISE_STATICS[callee.name]
        if callee.name in CHAIN_METHODS:
            return CHAIN_METHODS[callee.name]
        return CallShape.METHOD
    if isinstance(callee, (ArrowFunction, Call)):
        # IIFEs and calls of returned closures
        return CallShape.USER_FUNCTION
    return CallShape.UNRECOGNIZED


def callee_name(node: Node) -> str:
    """Dotted display name of a callee expression."""
    if isinstance(node, Ident):
        return node.name
    if isinstance(node, Member):
        return f"{callee_name(node.target)}.{node.name}"
    if isinstance(node, Call):
        return callee_name(node.callee)
    if isinstance(node, ArrowFunction) and node.name:
        return node.name
    return 'anonymous'


def call_label(name: str, args: List[Node]) -> str:
    """Call-stack frame label: `name(args)`.

    Literal arguments are rendered as JSON, identifiers by name and
    anything else as `...`.
    """
    parts = []
    for arg in args:
        if isinstance(arg, Literal):
            parts.append(render_literal(arg.value))
        elif isinstance(arg, Ident):
            parts.append(arg.name)
        else:
            parts.append('...')
    return f"{name}({', '.join(parts)})"


def walk_chain(call: Call, max_hops: int = MAX_CHAIN_HOPS) -> Tuple[Optional[Call], List[CallShape]]:
    """Find the root `Promise.*` call under a `.then/.catch/.finally` call.

    Returns the root call (or None when the receiver chain does not start
    at a `Promise.*` call within `max_hops` links) and the shapes of the
    links between the root and `call`, root side first.
    """
    links: List[CallShape] = []
    node = call.callee.target if isinstance(call.callee, Member) else None
    for _ in range(max_hops):
        if not isinstance(node, Call):
            break
        shape = classify_call(node)
        if shape in PROMISE_ROOTS:
            links.reverse()
            return node, links
        if shape not in CHAIN_LINKS:
            break
        links.append(shape)
        node = node.callee.target
    return None, []


def chain_state(root_state: str, links: List[CallShape]) -> str:
    """Replay a chain's links over the state of its root promise.

    A `.catch` reached in the rejected state recovers the chain; `.then`
    and `.finally` pass the state through.
    """
    state = root_state
    for link in links:
        if link is CallShape.PROMISE_CATCH and state == REJECTED:
            state = FULFILLED
    return state


def branch_runs(shape: CallShape, state: str) -> bool:
    """Whether the callback of a chain link runs for a promise in `state`."""
    if shape is CallShape.PROMISE_THEN:
        return state == FULFILLED
    if shape is CallShape.PROMISE_CATCH:
        return state == REJECTED
    return True
