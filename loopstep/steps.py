"""Micro-steps: the replayable unit of visible effect.

A generation run produces one `StepSequence`. Each `MicroStep` carries only
the payload needed to replay it against a presentation store (line, display
name, console message, queue item id, declared delay) plus a nominal
duration in milliseconds that the replay engine scales by its speed.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional

from .errors import ComplexityError

MAX_STEPS = 10000


class StepKind(str, Enum):
    HIGHLIGHT = 'highlight'
    CALLSTACK_PUSH = 'callstack_push'
    CALLSTACK_POP = 'callstack_pop'
    CONSOLE_OUTPUT = 'console_output'
    WEBAPI_ADD = 'webapi_add'
    WEBAPI_REMOVE = 'webapi_remove'
    TASKQUEUE_ADD = 'taskqueue_add'
    TASKQUEUE_REMOVE = 'taskqueue_remove'
    MICROTASK_ADD = 'microtask_add'
    MICROTASK_REMOVE = 'microtask_remove'
    RAFQUEUE_ADD = 'rafqueue_add'
    RAFQUEUE_REMOVE = 'rafqueue_remove'


@dataclass(frozen=True)
class MicroStep:
    kind: StepKind
    duration: int
    line: Optional[int] = None
    name: Optional[str] = None
    message: Optional[str] = None
    item_id: Optional[int] = None
    delay: Optional[int] = None

    def describe(self) -> str:
        kind = self.kind.value
        if self.kind is StepKind.HIGHLIGHT:
            return f"{kind} line {self.line}"
        if self.kind is StepKind.CONSOLE_OUTPUT:
            return f"{kind} {self.message}"
        if self.kind in (StepKind.CALLSTACK_POP, StepKind.MICROTASK_REMOVE,
                         StepKind.TASKQUEUE_REMOVE, StepKind.RAFQUEUE_REMOVE,
                         StepKind.WEBAPI_REMOVE):
            return f"{kind} #{self.item_id}" if self.item_id is not None else kind
        if self.kind is StepKind.WEBAPI_ADD:
            return f"{kind} #{self.item_id} {self.name}({self.delay})"
        if self.item_id is not None:
            return f"{kind} #{self.item_id} {self.name}"
        return f"{kind} {self.name}"


class StepSequence:
    """Ordered, append-only collection of micro-steps with a size ceiling."""
    def __init__(self, limit: int = MAX_STEPS):
        self.limit = limit
        self._steps: List[MicroStep] = []

    def append(self, step: MicroStep):
        if len(self._steps) >= self.limit:
            raise ComplexityError('Code complexity exceeds limit')
        self._steps.append(step)

    def extend(self, steps):
        for step in steps:
            self.append(step)

    def to_list(self) -> List[MicroStep]:
        return list(self._steps)

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self) -> Iterator[MicroStep]:
        return iter(self._steps)

    def __getitem__(self, index):
        return self._steps[index]


###############################################################################
# Constructors
###############################################################################


def highlight(line: Optional[int], duration: int = 400) -> MicroStep:
    return MicroStep(StepKind.HIGHLIGHT, duration, line=line)


def stack_push(name: str) -> MicroStep:
    return MicroStep(StepKind.CALLSTACK_PUSH, 300, name=name)


def stack_pop() -> MicroStep:
    return MicroStep(StepKind.CALLSTACK_POP, 300)


def console_output(message: str) -> MicroStep:
    return MicroStep(StepKind.CONSOLE_OUTPUT, 200, message=message)


def webapi_add(item_id: int, name: str, delay: int) -> MicroStep:
    return MicroStep(StepKind.WEBAPI_ADD, 300, name=name, item_id=item_id, delay=delay)


def webapi_remove(item_id: int) -> MicroStep:
    return MicroStep(StepKind.WEBAPI_REMOVE, 200, item_id=item_id)


def taskqueue_add(item_id: int, name: str) -> MicroStep:
    return MicroStep(StepKind.TASKQUEUE_ADD, 300, name=name, item_id=item_id)


def taskqueue_remove(item_id: int) -> MicroStep:
    return MicroStep(StepKind.TASKQUEUE_REMOVE, 200, item_id=item_id)


def microtask_add(item_id: int, name: str) -> MicroStep:
    return MicroStep(StepKind.MICROTASK_ADD, 300, name=name, item_id=item_id)


def microtask_remove(item_id: int) -> MicroStep:
    return MicroStep(StepKind.MICROTASK_REMOVE, 200, item_id=item_id)


def rafqueue_add(item_id: int, name: str) -> MicroStep:
    return MicroStep(StepKind.RAFQUEUE_ADD, 300, name=name, item_id=item_id)


def rafqueue_remove(item_id: int) -> MicroStep:
    return MicroStep(StepKind.RAFQUEUE_REMOVE, 200, item_id=item_id)


def console_lines(steps) -> List[str]:
    """The console messages of a step sequence, in order."""
    return [s.message for s in steps if s.kind is StepKind.CONSOLE_OUTPUT]
