from typing import Any, Optional, TYPE_CHECKING

from loopstep.ast import Call, Literal
from loopstep.dispatch import call_label
from loopstep.steps import highlight, stack_push, stack_pop, webapi_add, webapi_remove
from loopstep.types import UNDEFINED, DeferredCallback

if TYPE_CHECKING:
    from loopstep.interpreter import Interpreter


def declared_delay(call: Call) -> int:
    """The delay of a timer call: a numeric literal second argument, else 0."""
    if len(call.args) > 1:
        arg = call.args[1]
        if isinstance(arg, Literal) and isinstance(arg.value, (int, float)) and not isinstance(arg.value, bool):
            return max(0, int(arg.value))
    return 0


class TimerHandler:
    """Registers timer and animation-frame callbacks with the Web APIs.

    Each registration shows up as highlight, frame push, `webapi_add` and
    frame pop, and leaves a `DeferredCallback` for the scheduler. Interval
    callbacks are registered but never fire.
    """
    def __init__(self, interpreter: 'Interpreter'):
        self.interpreter = interpreter

    def set_timeout(self, call: Call) -> int:
        return self.register(call, 'setTimeout', 'timeout', declared_delay(call))

    def set_interval(self, call: Call) -> int:
        return self.register(call, 'setInterval', 'interval', declared_delay(call))

    def request_animation_frame(self, call: Call) -> int:
        return self.register(call, 'requestAnimationFrame', 'raf', 0)

    def register(self, call: Call, api: str, kind: str, delay: int) -> int:
        interp = self.interpreter
        state = interp.state
        callback = call.args[0] if call.args else None
        timer_id = state.next_timer_id()
        interp.emit(highlight(call.line))
        interp.emit(stack_push(f"{api}(fn, {delay})" if kind != 'raf' else f"{api}(fn)"))
        interp.emit(webapi_add(timer_id, api, delay))
        interp.emit(stack_pop())
        state.callbacks.append(DeferredCallback(
            timer_id=timer_id,
            callback_node=callback,
            delay=delay,
            kind=kind,
            scope=state.scope,
            due=state.clock + delay,
        ))
        interp.debug(f"{api} #{timer_id} delay={delay} due={state.clock + delay}", 2)
        return timer_id

    def clear(self, call: Call) -> Any:
        """`clearTimeout`, `clearInterval` and `cancelAnimationFrame`."""
        interp = self.interpreter
        state = interp.state
        timer_id = interp.evaluate(call.args[0]) if call.args else UNDEFINED
        interp.emit(highlight(call.line))
        interp.emit(stack_push(call_label(call.callee.name, call.args)))
        pending = self.find_pending(timer_id)
        if pending is not None:
            state.callbacks.remove(pending)
            interp.emit(webapi_remove(pending.timer_id))
            interp.debug(f"{call.callee.name} #{pending.timer_id}", 2)
        interp.emit(stack_pop())
        return UNDEFINED

    def find_pending(self, timer_id: Any) -> Optional[DeferredCallback]:
        for callback in self.interpreter.state.callbacks:
            if callback.timer_id == timer_id:
                return callback
        return None
