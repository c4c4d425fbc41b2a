from typing import Any, List, Optional, TYPE_CHECKING

from loopstep.ast import Call, FuncDecl, Ident
from loopstep.dispatch import call_label, callee_name
from loopstep.errors import ComplexityError, ReturnSignal, SUSPEND
from loopstep.scope import Scope
from loopstep.steps import highlight, stack_push, stack_pop
from loopstep.types import (
    UNDEFINED, FULFILLED, PENDING,
    FunctionValue, PromiseValue, settled_value,
)

if TYPE_CHECKING:
    from loopstep.interpreter import Interpreter


MAX_CALL_DEPTH = 400


class FunctionHandler:
    """User-defined functions: declaration, calls and callback invocation."""
    def __init__(self, interpreter: 'Interpreter'):
        self.interpreter = interpreter

    def declare(self, node: FuncDecl, emit: bool = True) -> FunctionValue:
        """Bind a function declaration in the current scope.

        Hoisting calls this with `emit=False`; the declaration itself, when
        reached in statement order, shows a short highlight.
        """
        interp = self.interpreter
        state = interp.state
        func = interp.make_function(node)
        state.scope.set(node.name, func)
        if state.scope is state.global_scope:
            state.functions[node.name] = func
        if emit:
            interp.emit(highlight(node.line, 300))
            interp.debug(f"define function {node.name}", 2)
        return func

    def call(self, call: Call) -> Any:
        interp = self.interpreter
        callee = call.callee
        if isinstance(callee, Ident):
            func = interp.lookup(callee.name)
        else:
            func = interp.evaluate(callee)
        args = [interp.evaluate(arg) for arg in call.args]
        if not isinstance(func, FunctionValue):
            return self.unrecognized(call)
        name = callee.name if isinstance(callee, Ident) else func.name
        return self.invoke(func, args, call_label(name, call.args), call.line)

    def invoke(self, func: FunctionValue, args: List[Any], label: str, line: Optional[int]) -> Any:
        """Run `func` inside its own call-stack frame.

        Parameters bind positionally in a child of the closure scope; extra
        arguments are ignored and missing ones are `undefined`. An async
        function returns a promise, pending when its body suspended.
        """
        interp = self.interpreter
        state = interp.state
        interp.emit(highlight(line))
        interp.emit(stack_push(label))
        interp.debug(f"call {label}", 2)

        call_scope = Scope(parent=func.closure)
        for i, param in enumerate(func.params):
            call_scope.set(param, args[i] if i < len(args) else UNDEFINED)
        promise = PromiseValue(PENDING) if func.is_async else None

        if len(state.frames) >= MAX_CALL_DEPTH:
            raise ComplexityError('Maximum call stack size exceeded')
        caller_scope = state.scope
        state.scope = call_scope
        interp.push_frame(func, promise)
        try:
            if func.expression_body:
                outcome = ReturnSignal(interp.evaluate(func.body))
            else:
                interp.hoist(func.body.statements)
                outcome = interp.run_statements(func.body.statements)
        finally:
            interp.pop_frame()
            state.scope = caller_scope
        interp.emit(stack_pop())

        value = outcome.value if isinstance(outcome, ReturnSignal) else UNDEFINED
        if promise is None:
            return value
        if outcome is not SUSPEND:
            interp.settle(promise, FULFILLED, settled_value(value))
        return promise

    def method(self, call: Call) -> Any:
        """Method calls on values (`list.push(x)`); others are unrecognized."""
        interp = self.interpreter
        receiver = interp.evaluate_receiver(call.callee.target)
        args = [interp.evaluate(arg) for arg in call.args]
        if isinstance(receiver, list) and call.callee.name == 'push':
            receiver.extend(args)
            interp.emit(highlight(call.line, 300))
            return len(receiver)
        return self.unrecognized(call)

    def unrecognized(self, call: Call) -> Any:
        name = callee_name(call.callee)
        self.interpreter.emit(highlight(call.line, 300))
        self.interpreter.debug(f"unrecognized call {name}", 2)
        return UNDEFINED
