from typing import Any, TYPE_CHECKING

from loopstep.ast import Call, Node, Literal, Ident, BinaryOp, UnaryOp, TemplateLiteral
from loopstep.steps import highlight, stack_push, stack_pop, console_output
from loopstep.types import UNDEFINED, to_string

if TYPE_CHECKING:
    from loopstep.interpreter import Interpreter


class ConsoleHandler:
    """`console.log` and its `info`, `warn` and `error` siblings."""
    def __init__(self, interpreter: 'Interpreter'):
        self.interpreter = interpreter

    def log(self, call: Call) -> Any:
        message = ' '.join(self.stringify(arg) for arg in call.args)
        method = call.callee.name
        emit = self.interpreter.emit
        emit(highlight(call.line))
        emit(stack_push(f"console.{method}({message})"))
        emit(console_output(message))
        emit(stack_pop())
        self.interpreter.debug(f"console.{method}: {message}", 2)
        return UNDEFINED

    def stringify(self, node: Node) -> str:
        if isinstance(node, Literal):
            return to_string(node.value)
        if isinstance(node, Ident):
            # an unbound name prints as itself
            if not self.interpreter.is_bound(node.name):
                return node.name
            return to_string(self.interpreter.lookup(node.name))
        if isinstance(node, (BinaryOp, UnaryOp, TemplateLiteral)):
            return to_string(self.interpreter.evaluate(node))
        return '[complex expression]'
