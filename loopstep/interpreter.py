"""Step-emitting evaluator for loopstep scripts.

The interpreter walks the AST produced by `loopstep.parser` and, instead
of performing side effects, appends micro-steps to the `StepSequence` of
its `ExecutionState` and records deferred work (timers, microtasks) for
the scheduler to linearize.

Statement execution has three outcomes: `None` for normal completion, a
`ReturnSignal` carrying the returned value, or `SUSPEND` when an `await`
in an async function deferred the rest of the body. A suspended body is
represented by an explicit `Continuation` (statement list plus captured
scope); every enclosing block or loop appends its own remaining work to
the same continuation before passing `SUSPEND` on.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional
import math

from .ast import (
    Program, Block, ExprStmt, VarDecl, FuncDecl, IfStmt, ForStmt,
    ReturnStmt, Literal, Ident, TemplateLiteral, ArrayLit, BinaryOp,
    UnaryOp, Assign, Update, Member, Call, ArrowFunction, Await, Node,
)
from .debug import DebugLog
from .dispatch import CallShape, classify_call, callee_name, branch_runs
from .errors import AnalysisError, ReturnSignal, SUSPEND
from .scope import Scope
from .std import ConsoleHandler, TimerHandler, PromiseHandler, FunctionHandler, populate_call_table
from .steps import MicroStep, StepSequence, stack_push, stack_pop
from .types import (
    UNDEFINED, FULFILLED, REJECTED,
    FunctionValue, PromiseValue, Continuation, DeferredMicrotask, DeferredCallback,
    type_name, normalize_number, to_number, to_string, is_truthy, settled_value,
)

MAX_LOOP_ITERATIONS = 1000

GLOBAL_CONSTANTS = {
    'undefined': UNDEFINED,
    'Infinity': math.inf,
    'NaN': math.nan,
}

LINK_SHAPES = {
    'then': CallShape.PROMISE_THEN,
    'catch': CallShape.PROMISE_CATCH,
    'finally': CallShape.PROMISE_FINALLY,
}

CALLBACK_LABELS = {
    'timeout': 'setTimeout callback',
    'interval': 'setInterval callback',
    'raf': 'rAF callback',
}


@dataclass
class Frame:
    """An active function invocation; `promise` is set for async functions."""
    function: FunctionValue
    promise: Optional[PromiseValue] = None


@dataclass
class ExecutionState:
    """Everything one generation run mutates."""
    global_scope: Scope = field(default_factory=Scope)
    scope: Optional[Scope] = None
    functions: Dict[str, FunctionValue] = field(default_factory=dict)
    steps: StepSequence = field(default_factory=StepSequence)
    microtasks: List[DeferredMicrotask] = field(default_factory=list)
    microtask_cursor: int = 0
    processed_microtasks: int = 0
    callbacks: List[DeferredCallback] = field(default_factory=list)
    frames: List[Frame] = field(default_factory=list)
    pending: Optional[Continuation] = None
    clock: int = 0
    timer_counter: int = 0
    microtask_counter: int = 0
    phase: Any = None
    warnings: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.scope is None:
            self.scope = self.global_scope

    def next_timer_id(self) -> int:
        self.timer_counter += 1
        return self.timer_counter

    def next_microtask_id(self) -> int:
        self.microtask_counter += 1
        return self.microtask_counter


class Interpreter:
    """Evaluates loopstep ASTs against an `ExecutionState`."""
    def __init__(self, state: Optional[ExecutionState] = None, log: Optional[DebugLog] = None):
        self.state = state if state is not None else ExecutionState()
        self.log = log if log is not None else DebugLog()
        self.console = ConsoleHandler(self)
        self.timers = TimerHandler(self)
        self.promises = PromiseHandler(self)
        self.functions = FunctionHandler(self)
        self.calls = populate_call_table(self)
        self._chained: Optional[Call] = None

    def debug(self, msg: str, level: int = 1):
        self.log.write(msg, level)

    def emit(self, step: MicroStep):
        self.state.steps.append(step)
        if self.log.level >= 3:
            self.debug(f"step {step.describe()}", 3)

    def warn(self, msg: str):
        self.state.warnings.append(msg)
        self.debug(f"warning: {msg}", 1)

    # Public API
    def run_program(self, program: Program) -> Any:
        self.hoist(program.body)
        return self.run_statements(program.body)

    def hoist(self, statements: List[Node]):
        """Bind function declarations before the statements run."""
        for stmt in statements:
            if isinstance(stmt, FuncDecl):
                self.functions.declare(stmt, emit=False)

    def run_statements(self, statements: List[Node]) -> Any:
        for index, stmt in enumerate(statements):
            result = self.execute(stmt)
            if result is SUSPEND:
                # trailing siblings run when the continuation resumes
                self.state.pending.statements.extend(statements[index + 1:])
                return SUSPEND
            if isinstance(result, ReturnSignal):
                return result
        return None

    def execute(self, node: Node) -> Any:
        if isinstance(node, ExprStmt):
            expr = node.expr
            if isinstance(expr, Await) and self.in_async_function():
                return self.suspend(expr.operand)
            if isinstance(expr, Assign) and isinstance(expr.value, Await) and self.in_async_function():
                return self.suspend(expr.value.operand, ('assign', expr.name, expr.op))
            self.evaluate(expr)
            return None
        if isinstance(node, VarDecl):
            for index, decl in enumerate(node.declarations):
                if isinstance(decl.init, Await) and self.in_async_function():
                    result = self.suspend(decl.init.operand, ('declare', decl.name))
                    rest = node.declarations[index + 1:]
                    if rest:
                        self.state.pending.statements.append(VarDecl(node.kind, rest, line=node.line))
                    return result
                value = self.evaluate(decl.init) if decl.init is not None else UNDEFINED
                self.state.scope.set(decl.name, value)
                self.debug(f"declare {decl.name}: {type_name(value)} = {to_string(value)}", 2)
            return None
        if isinstance(node, FuncDecl):
            self.functions.declare(node)
            return None
        if isinstance(node, Block):
            outer = self.state.scope
            self.state.scope = Scope(parent=outer)
            try:
                return self.run_statements(node.statements)
            finally:
                self.state.scope = outer
        if isinstance(node, IfStmt):
            cond = self.evaluate(node.condition)
            truthy = is_truthy(cond)
            self.debug(f"if condition {to_string(cond)} -> {truthy}", 3)
            branch = node.then_block if truthy else node.else_block
            if branch is None:
                return None
            return self.execute(branch)
        if isinstance(node, ForStmt):
            return self.execute_for(node)
        if isinstance(node, ReturnStmt):
            if isinstance(node.value, Await) and self.in_async_function():
                return self.suspend(node.value.operand, ('return',))
            value = self.evaluate(node.value) if node.value is not None else UNDEFINED
            return ReturnSignal(value)
        raise AnalysisError(f"Unsupported statement: {type(node).__name__}")

    def execute_for(self, node: ForStmt) -> Any:
        state = self.state
        outer = state.scope
        state.scope = Scope(parent=outer)
        try:
            if isinstance(node.init, VarDecl):
                self.execute(node.init)
            elif node.init is not None:
                self.evaluate(node.init)
            # let/const loop variables get a fresh binding per iteration
            per_iteration = isinstance(node.init, VarDecl) and node.init.kind != 'var'
            iterations = 0
            while True:
                if node.condition is not None and not is_truthy(self.evaluate(node.condition)):
                    break
                if iterations >= MAX_LOOP_ITERATIONS:
                    self.warn(f"Loop at line {node.line} stopped after {MAX_LOOP_ITERATIONS} iterations")
                    break
                iterations += 1
                result = self.execute(node.body)
                if result is SUSPEND:
                    cont = state.pending
                    if node.update is not None:
                        cont.statements.append(ExprStmt(node.update, line=node.line))
                    cont.statements.append(replace(node, init=None))
                    return SUSPEND
                if isinstance(result, ReturnSignal):
                    return result
                if per_iteration:
                    fresh = Scope(parent=outer)
                    fresh.values = dict(state.scope.values)
                    state.scope = fresh
                if node.update is not None:
                    self.evaluate(node.update)
            return None
        finally:
            state.scope = outer

    def evaluate(self, node: Node) -> Any:
        if isinstance(node, Literal):
            return node.value
        if isinstance(node, Ident):
            return self.lookup(node.name)
        if isinstance(node, TemplateLiteral):
            parts = [node.quasis[0]]
            for expr, quasi in zip(node.expressions, node.quasis[1:]):
                parts.append(to_string(self.evaluate(expr)))
                parts.append(quasi)
            return ''.join(parts)
        if isinstance(node, ArrayLit):
            return [self.evaluate(el) for el in node.elements]
        if isinstance(node, BinaryOp):
            left = self.evaluate(node.left)
            if node.op == '&&':
                return self.evaluate(node.right) if is_truthy(left) else left
            if node.op == '||':
                return left if is_truthy(left) else self.evaluate(node.right)
            right = self.evaluate(node.right)
            return self.apply_binary_op(node.op, left, right)
        if isinstance(node, UnaryOp):
            value = self.evaluate(node.operand)
            if node.op == '!':
                return not is_truthy(value)
            if node.op == '-':
                return normalize_number(-to_number(value))
            return to_number(value)
        if isinstance(node, Assign):
            value = self.evaluate(node.value)
            if node.op != '=':
                value = self.apply_binary_op(node.op[:-1], self.lookup(node.name), value)
            self.state.scope.assign(node.name, value)
            return value
        if isinstance(node, Update):
            old = to_number(self.lookup(node.name))
            new = normalize_number(old + 1 if node.op == '++' else old - 1)
            self.state.scope.assign(node.name, new)
            return new if node.prefix else old
        if isinstance(node, Member):
            target = self.evaluate(node.target)
            if node.name == 'length' and isinstance(target, (list, str)):
                return len(target)
            return UNDEFINED
        if isinstance(node, Call):
            return self.evaluate_call(node)
        if isinstance(node, ArrowFunction):
            return self.make_function(node)
        if isinstance(node, Await):
            # nested in a larger expression or outside async code: no suspension
            return settled_value(self.evaluate_receiver(node.operand))
        raise AnalysisError(f"Unsupported expression: {type(node).__name__}")

    def evaluate_call(self, call: Call, chained: bool = False) -> Any:
        shape = classify_call(call)
        self.debug(f"call {callee_name(call.callee)} -> {shape.name}", 3)
        if chained:
            self._chained = call
        return self.calls[shape](call)

    def evaluate_receiver(self, node: Node) -> Any:
        """Evaluate the receiver of a promise chain or the operand of `await`.

        A `Promise.*` call in this position hands its microtask to the
        consumer instead of enqueueing a settle microtask of its own.
        """
        if isinstance(node, Call):
            return self.evaluate_call(node, chained=True)
        return self.evaluate(node)

    def take_chained(self, call: Call) -> bool:
        if self._chained is call:
            self._chained = None
            return True
        return False

    # Bindings and functions
    def lookup(self, name: str) -> Any:
        scope = self.state.scope
        if scope.has(name):
            return scope.get(name)
        if name in self.state.functions:
            return self.state.functions[name]
        return GLOBAL_CONSTANTS.get(name, UNDEFINED)

    def is_bound(self, name: str) -> bool:
        return (self.state.scope.has(name) or name in self.state.functions
                or name in GLOBAL_CONSTANTS)

    def make_function(self, node: Node, scope: Optional[Scope] = None) -> FunctionValue:
        closure = scope if scope is not None else self.state.scope
        if isinstance(node, FuncDecl):
            return FunctionValue(node.name, tuple(node.params), node.body, closure,
                                 is_async=node.is_async, line=node.line)
        return FunctionValue(node.name or 'anonymous', tuple(node.params), node.body, closure,
                             is_async=node.is_async, expression_body=node.expression_body,
                             line=node.line)

    def resolve_callable(self, node: Optional[Node], scope: Scope) -> Optional[FunctionValue]:
        """The function a deferred callback node denotes in its captured scope."""
        if node is None:
            return None
        if isinstance(node, ArrowFunction):
            return self.make_function(node, scope)
        outer = self.state.scope
        self.state.scope = scope
        try:
            value = self.evaluate(node)
        finally:
            self.state.scope = outer
        return value if isinstance(value, FunctionValue) else None

    def push_frame(self, function: FunctionValue, promise: Optional[PromiseValue] = None):
        self.state.frames.append(Frame(function, promise))

    def pop_frame(self):
        self.state.frames.pop()

    def in_async_function(self) -> bool:
        frames = self.state.frames
        return bool(frames) and frames[-1].function.is_async

    # Suspension and microtasks
    def suspend(self, operand: Node, binding: Optional[tuple] = None) -> Any:
        """Defer the rest of the current async body behind `await operand`."""
        value = self.evaluate_receiver(operand)
        frame = self.state.frames[-1]
        cont = Continuation(
            statements=[],
            scope=self.state.scope,
            function=frame.function,
            binding=binding,
            promise=frame.promise,
        )
        task = DeferredMicrotask(0, None, 'await', self.state.scope,
                                 continuation=cont, name=f"await {frame.function.name}")
        if isinstance(value, PromiseValue) and value.state not in (FULFILLED, REJECTED):
            value.waiters.append(task)
            self.debug(f"await in {frame.function.name} parked on pending promise", 2)
        elif isinstance(value, PromiseValue):
            self.enqueue_microtask(task, value.state, value.value)
        else:
            self.enqueue_microtask(task, FULFILLED, value)
        self.state.pending = cont
        return SUSPEND

    def enqueue_microtask(self, task: DeferredMicrotask, state: str, value: Any):
        task.microtask_id = self.state.next_microtask_id()
        task.state = state
        task.value = value
        self.state.microtasks.append(task)
        self.debug(f"enqueue microtask #{task.microtask_id} {task.name} ({state})", 2)

    def settle(self, promise: PromiseValue, state: str, value: Any):
        """Settle a pending promise and release the microtasks parked on it."""
        promise.state = state
        promise.value = value
        waiters, promise.waiters = promise.waiters, []
        for task in waiters:
            if task.kind == 'await' or branch_runs(LINK_SHAPES[task.kind], state):
                self.enqueue_microtask(task, state, value)
            elif task.derived is not None:
                self.settle(task.derived, state, value)

    def run_microtask(self, task: DeferredMicrotask):
        """Execute one drained microtask (its steps follow microtask_remove)."""
        if task.continuation is not None:
            self.resume(task)
            return
        func = None
        if task.callback_node is not None:
            func = self.resolve_callable(task.callback_node, task.scope)
            if func is None:
                self.debug(f"{task.name}: callback is not a function", 1)
        # without a handler, and for finally, the settlement passes through
        state, value = task.state, task.value
        if func is not None:
            args = [] if task.kind == 'finally' else [task.value]
            label = self.callback_label(task.callback_node, f"{task.name} callback")
            result = self.functions.invoke(func, args, label, func.line)
            if task.kind != 'finally':
                state, value = FULFILLED, settled_value(result)
        if task.derived is not None:
            self.settle(task.derived, state, value)

    def run_callback(self, callback: DeferredCallback):
        """Execute a timer or animation-frame callback taken off its queue."""
        func = self.resolve_callable(callback.callback_node, callback.scope)
        if func is None:
            self.debug(f"timer #{callback.timer_id}: callback is not a function", 1)
            return
        label = self.callback_label(callback.callback_node, CALLBACK_LABELS[callback.kind])
        self.functions.invoke(func, [], label, func.line)

    def callback_label(self, node: Node, default: str) -> str:
        if isinstance(node, Ident):
            return f"{node.name}()"
        return default

    def resume(self, task: DeferredMicrotask):
        """Run the continuation of an async function after its await settled."""
        cont = task.continuation
        if task.state == REJECTED:
            # no try/catch in the subset: the rest of the body never runs
            self.debug(f"await in {cont.function.name} rejected; body abandoned", 2)
            if cont.promise is not None:
                self.settle(cont.promise, REJECTED, task.value)
            return
        state = self.state
        outer = state.scope
        state.scope = cont.scope
        self.push_frame(cont.function, cont.promise)
        self.emit(stack_push(f"{cont.function.name}()"))
        try:
            value = settled_value(task.value)
            result = None
            binding = cont.binding or ()
            if binding and binding[0] == 'declare':
                state.scope.set(binding[1], value)
            elif binding and binding[0] == 'assign':
                _, name, op = binding
                if op != '=':
                    value = self.apply_binary_op(op[:-1], self.lookup(name), value)
                state.scope.assign(name, value)
            elif binding and binding[0] == 'return':
                result = ReturnSignal(value)
            if result is None:
                result = self.run_statements(cont.statements)
        finally:
            self.pop_frame()
            state.scope = outer
        self.emit(stack_pop())
        if result is not SUSPEND and cont.promise is not None:
            returned = result.value if isinstance(result, ReturnSignal) else UNDEFINED
            self.settle(cont.promise, FULFILLED, settled_value(returned))

    # Operators
    def apply_binary_op(self, op: str, a: Any, b: Any) -> Any:
        if op == '+':
            if not (is_primitive_number(a) and is_primitive_number(b)):
                return to_string(a) + to_string(b)
            return normalize_number(to_number(a) + to_number(b))
        if op in ('-', '*', '/', '%'):
            x, y = to_number(a), to_number(b)
            if op == '-':
                return normalize_number(x - y)
            if op == '*':
                return normalize_number(x * y)
            if op == '/':
                if y == 0:
                    if x == 0 or math.isnan(x):
                        return math.nan
                    return math.inf if x > 0 else -math.inf
                return normalize_number(x / y)
            if y == 0 or math.isnan(x) or math.isnan(y) or math.isinf(x):
                return math.nan
            if math.isinf(y):
                return x
            return normalize_number(math.fmod(x, y))
        if op == '===':
            return strict_equals(a, b)
        if op == '!==':
            return not strict_equals(a, b)
        if op == '==':
            return loose_equals(a, b)
        if op == '!=':
            return not loose_equals(a, b)
        if op in ('<', '>', '<=', '>='):
            if isinstance(a, str) and isinstance(b, str):
                x, y = a, b
            else:
                x, y = to_number(a), to_number(b)
                if math.isnan(x) or math.isnan(y):
                    return False
            if op == '<':
                return x < y
            if op == '>':
                return x > y
            if op == '<=':
                return x <= y
            return x >= y
        raise AnalysisError(f"Unsupported operator: {op}")


def is_primitive_number(value: Any) -> bool:
    """Operands that `+` adds numerically rather than concatenating."""
    return value is None or value is UNDEFINED or isinstance(value, (bool, int, float))


def strict_equals(a: Any, b: Any) -> bool:
    if type_name(a) != type_name(b):
        return False
    if isinstance(a, (int, float)) and not isinstance(a, bool):
        return a == b
    if isinstance(a, (str, bool)):
        return a == b
    return a is b


def loose_equals(a: Any, b: Any) -> bool:
    a_nullish = a is None or a is UNDEFINED
    b_nullish = b is None or b is UNDEFINED
    if a_nullish or b_nullish:
        return a_nullish and b_nullish
    if type_name(a) == type_name(b):
        return strict_equals(a, b)
    scalar = ('number', 'string', 'boolean')
    if type_name(a) in scalar and type_name(b) in scalar:
        return to_number(a) == to_number(b)
    return False
