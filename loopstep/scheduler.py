"""Step generation: parse, walk synchronously, then drain deferred work.

`StepGenerator.generate` runs one program through the phases

    PARSE -> SYNCHRONOUS_WALK -> DRAIN_MICROTASKS
          -> DRAIN_ANIMATION_FRAMES -> DRAIN_TASKS -> DONE

and returns a `GenerationResult`. Any failure moves to the absorbing
`ERROR` phase and is reported in the result; `generate` never raises.

Ordering rules: microtasks drain as a true queue (work enqueued while
draining is visited in the same drain); timers fire by virtual due time,
ties broken by registration order; every task and animation-frame
callback is followed by a microtask checkpoint.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional
import sys
import traceback

from .debug import DebugLog
from .errors import LoopstepError, ScriptSyntaxError, ComplexityError, AnalysisError
from .interpreter import Interpreter, ExecutionState
from .parser import parse_program
from .steps import (
    MAX_STEPS, MicroStep, StepSequence,
    microtask_add, microtask_remove, webapi_remove,
    taskqueue_add, taskqueue_remove, rafqueue_add, rafqueue_remove,
)
from .ast import Program

MAX_CODE_LENGTH = 50000
MAX_MICROTASKS = 1000
# Python frames available while walking nested user calls
RECURSION_LIMIT = 10000


class Phase(Enum):
    PARSE = 'parse'
    SYNCHRONOUS_WALK = 'synchronous_walk'
    DRAIN_MICROTASKS = 'drain_microtasks'
    DRAIN_ANIMATION_FRAMES = 'drain_animation_frames'
    DRAIN_TASKS = 'drain_tasks'
    DONE = 'done'
    ERROR = 'error'


@dataclass
class GenerationResult:
    success: bool
    steps: List[MicroStep] = field(default_factory=list)
    error: Optional[LoopstepError] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def message(self) -> Optional[str]:
        return self.error.message if self.error is not None else None


class StepGenerator:
    """Turns program source into a replayable micro-step sequence.

    One generator owns one `ExecutionState`; it is rebuilt at the start of
    every generation and by `reset()`. Generation is not reentrant.
    """
    def __init__(self, debug_level: int = 0, debug_file: str = 'debug.txt',
                 log: Optional[DebugLog] = None, max_steps: int = MAX_STEPS):
        self.log = log if log is not None else DebugLog(debug_level, debug_file)
        self.max_steps = max_steps
        self._active = False
        self.reset()

    def debug(self, msg: str, level: int = 1):
        self.log.write(msg, level)

    def reset(self):
        self.state = ExecutionState(steps=StepSequence(self.max_steps))
        self.interpreter = Interpreter(self.state, self.log)

    @property
    def phase(self) -> Optional[Phase]:
        return self.state.phase

    def enter(self, phase: Phase):
        self.state.phase = phase
        self.debug(f"phase {phase.value}", 1)

    def generate(self, source: str) -> GenerationResult:
        if self._active:
            error = AnalysisError('Generation already in progress')
            self.debug(f"refused: {error}", 1)
            return GenerationResult(False, [], error)
        self._active = True
        old_limit = sys.getrecursionlimit()
        sys.setrecursionlimit(max(old_limit, RECURSION_LIMIT))
        try:
            return self._generate(source)
        finally:
            sys.setrecursionlimit(old_limit)
            self._active = False

    def _generate(self, source: str) -> GenerationResult:
        self.reset()
        try:
            self.enter(Phase.PARSE)
            program = self.parse(source)
            self.enter(Phase.SYNCHRONOUS_WALK)
            self.interpreter.run_program(program)
            self.enter(Phase.DRAIN_MICROTASKS)
            self.drain_microtasks()
            self.enter(Phase.DRAIN_ANIMATION_FRAMES)
            self.drain_animation_frames()
            self.enter(Phase.DRAIN_TASKS)
            self.drain_tasks()
            self.enter(Phase.DONE)
        except LoopstepError as e:
            return self.fail(e)
        except RecursionError:
            return self.fail(ComplexityError('Maximum call stack size exceeded'))
        except Exception:
            self.debug(traceback.format_exc(), 1)
            return self.fail(AnalysisError('Error analyzing code'))
        steps = self.state.steps.to_list()
        self.debug(f"generated {len(steps)} steps", 1)
        return GenerationResult(True, steps, None, list(self.state.warnings))

    def fail(self, error: LoopstepError) -> GenerationResult:
        self.state.phase = Phase.ERROR
        self.debug(f"error: {error}", 1)
        return GenerationResult(False, [], error, list(self.state.warnings))

    def parse(self, source: str) -> Program:
        if not isinstance(source, str) or not source.strip():
            raise ScriptSyntaxError('Invalid code input')
        if len(source) > MAX_CODE_LENGTH:
            raise ComplexityError('Code exceeds maximum length')
        try:
            return parse_program(source)
        except ScriptSyntaxError as e:
            self.debug(f"parse error: {e.detail}", 1)
            raise

    # Drains
    def drain_microtasks(self):
        """Process microtasks until the queue is empty, including new ones."""
        state = self.state
        emit = self.interpreter.emit
        while state.microtask_cursor < len(state.microtasks):
            task = state.microtasks[state.microtask_cursor]
            state.microtask_cursor += 1
            state.processed_microtasks += 1
            if state.processed_microtasks > MAX_MICROTASKS:
                raise ComplexityError('Too many microtasks')
            emit(microtask_add(task.microtask_id, task.name))
            emit(microtask_remove(task.microtask_id))
            self.interpreter.run_microtask(task)

    def drain_animation_frames(self):
        state = self.state
        emit = self.interpreter.emit
        frames = [cb for cb in state.callbacks if cb.kind == 'raf']
        for callback in frames:
            state.callbacks.remove(callback)
            emit(webapi_remove(callback.timer_id))
            emit(rafqueue_add(callback.timer_id, 'rAF callback'))
            emit(rafqueue_remove(callback.timer_id))
            self.interpreter.run_callback(callback)
            self.drain_microtasks()

    def drain_tasks(self):
        state = self.state
        emit = self.interpreter.emit
        while True:
            timeouts = [cb for cb in state.callbacks if cb.kind == 'timeout']
            if not timeouts:
                break
            callback = min(timeouts, key=lambda cb: (cb.due, cb.timer_id))
            state.callbacks.remove(callback)
            state.clock = max(state.clock, callback.due)
            self.debug(f"task #{callback.timer_id} at t={state.clock}", 2)
            emit(webapi_remove(callback.timer_id))
            emit(taskqueue_add(callback.timer_id, 'setTimeout callback'))
            emit(taskqueue_remove(callback.timer_id))
            self.interpreter.run_callback(callback)
            # microtask checkpoint, then a rendering opportunity
            self.drain_microtasks()
            self.drain_animation_frames()
