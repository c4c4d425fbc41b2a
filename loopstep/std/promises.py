"""Promise built-ins.

`Promise.resolve`, `Promise.reject` and `Promise.all` produce promises
that are settled on the spot. `.then`, `.catch` and `.finally` decide
statically, by walking the call chain down to its root `Promise.*` call,
whether their callback runs; only a matching link shows a call frame and
enqueues a microtask. Each link returns a pending promise settled once its
callback has run, so the next link in a chain waits one microtask tick.
"""

from typing import Any, Dict, TYPE_CHECKING

from loopstep.ast import Call
from loopstep.dispatch import CallShape, walk_chain, chain_state, branch_runs
from loopstep.steps import highlight, stack_push, stack_pop
from loopstep.types import (
    UNDEFINED, FULFILLED, REJECTED, PENDING,
    PromiseValue, DeferredMicrotask, settled_value,
)

if TYPE_CHECKING:
    from loopstep.interpreter import Interpreter


class PromiseHandler:
    def __init__(self, interpreter: 'Interpreter'):
        self.interpreter = interpreter
        # settled state of each evaluated Promise.* call, by node identity
        self.root_states: Dict[int, str] = {}

    # Promise.resolve / reject / all

    def resolve(self, call: Call) -> PromiseValue:
        return self.settled(call, CallShape.PROMISE_RESOLVE)

    def reject(self, call: Call) -> PromiseValue:
        return self.settled(call, CallShape.PROMISE_REJECT)

    def all(self, call: Call) -> PromiseValue:
        return self.settled(call, CallShape.PROMISE_ALL)

    def settled(self, call: Call, shape: CallShape) -> PromiseValue:
        interp = self.interpreter
        # Checked before the arguments run; they may hold chains of their own
        chained = interp.take_chained(call)
        values = [interp.evaluate(arg) for arg in call.args]
        method = call.callee.name
        interp.emit(highlight(call.line))
        interp.emit(stack_push(f"Promise.{method}()"))
        interp.emit(stack_pop())

        first = values[0] if values else UNDEFINED
        if shape is CallShape.PROMISE_REJECT:
            promise = PromiseValue(REJECTED, first)
        elif shape is CallShape.PROMISE_ALL:
            promise = self.combine(first)
        elif isinstance(first, PromiseValue):
            promise = first
        else:
            promise = PromiseValue(FULFILLED, first)

        self.root_states[id(call)] = promise.state
        if not chained and promise.state != PENDING:
            task = DeferredMicrotask(0, None, 'settle', interp.state.scope, name=f"Promise.{method}")
            interp.enqueue_microtask(task, promise.state, promise.value)
        return promise

    def combine(self, items: Any) -> PromiseValue:
        if not isinstance(items, list):
            return PromiseValue(FULFILLED, [])
        for item in items:
            if isinstance(item, PromiseValue) and item.state == REJECTED:
                return PromiseValue(REJECTED, item.value)
        return PromiseValue(FULFILLED, [settled_value(item) for item in items])

    # .then / .catch / .finally

    def then(self, call: Call) -> Any:
        return self.link(call, CallShape.PROMISE_THEN)

    def catch(self, call: Call) -> Any:
        return self.link(call, CallShape.PROMISE_CATCH)

    def final(self, call: Call) -> Any:
        return self.link(call, CallShape.PROMISE_FINALLY)

    def link(self, call: Call, shape: CallShape) -> Any:
        interp = self.interpreter
        receiver = interp.evaluate_receiver(call.callee.target)
        method = call.callee.name
        callback = call.args[0] if call.args else None

        root, links = walk_chain(call)
        if root is not None:
            state = chain_state(self.root_states.get(id(root), FULFILLED), links)
        elif isinstance(receiver, PromiseValue):
            state = receiver.state
        else:
            state = FULFILLED

        if state != PENDING and not branch_runs(shape, state):
            interp.debug(f"Promise.{method} skipped ({state})", 2)
            return receiver

        interp.emit(highlight(call.line))
        interp.emit(stack_push(f"Promise.{method}()"))
        interp.emit(stack_pop())
        task = DeferredMicrotask(0, callback, method, interp.state.scope, name=f"Promise.{method}")
        # settled when the callback has run
        task.derived = PromiseValue(PENDING)

        if isinstance(receiver, PromiseValue) and receiver.state == PENDING:
            # an earlier link or async call has not settled yet
            receiver.waiters.append(task)
            interp.debug(f"Promise.{method} parked on pending promise", 2)
            return task.derived

        interp.enqueue_microtask(task, state, settled_value(receiver))
        return task.derived
