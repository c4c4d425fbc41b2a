from .console import ConsoleHandler
from .timers import TimerHandler
from .promises import PromiseHandler
from .functions import FunctionHandler
from loopstep.dispatch import CallShape
from typing import Any, Callable, Dict, TYPE_CHECKING

if TYPE_CHECKING:
    from loopstep.interpreter import Interpreter

__all__ = [
    'ConsoleHandler',
    'TimerHandler',
    'PromiseHandler',
    'FunctionHandler',
    'populate_call_table',
]


def populate_call_table(interpreter: 'Interpreter') -> Dict[CallShape, Callable[..., Any]]:
    """Map every `CallShape` onto the handler method that evaluates it."""
    timers = interpreter.timers
    promises = interpreter.promises
    functions = interpreter.functions
    return {
        CallShape.TIMEOUT: timers.set_timeout,
        CallShape.INTERVAL: timers.set_interval,
        CallShape.ANIMATION_FRAME: timers.request_animation_frame,
        CallShape.CLEAR_TIMER: timers.clear,
        CallShape.CONSOLE: interpreter.console.log,
        CallShape.PROMISE_RESOLVE: promises.resolve,
        CallShape.PROMISE_REJECT: promises.reject,
        CallShape.PROMISE_ALL: promises.all,
        CallShape.PROMISE_THEN: promises.then,
        CallShape.PROMISE_CATCH: promises.catch,
        CallShape.PROMISE_FINALLY: promises.final,
        CallShape.USER_FUNCTION: functions.call,
        CallShape.METHOD: functions.method,
        CallShape.UNRECOGNIZED: functions.unrecognized,
    }
