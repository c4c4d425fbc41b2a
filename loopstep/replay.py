"""Replay of a generated micro-step sequence against a presentation store.

Each step mutates the store and then waits `duration * speed / 500`
milliseconds on the running asyncio loop, so `speed` is the number of
real milliseconds per nominal 500 ms unit (0 replays instantly). Every
real timer the engine schedules is tracked so that `stop()` and `reset()`
can cancel it.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Callable, List, Optional, Set

from .debug import DebugLog
from .errors import RuntimeReplayError
from .steps import MicroStep, StepKind
from .store import PresentationStore, QueueItem

SPEED_UNIT = 500
PAUSE_POLL_MS = 50


@dataclass
class ReplayProgress:
    done: bool
    step: Optional[MicroStep] = None


def _wake(future: asyncio.Future):
    if not future.done():
        future.set_result(None)


class ReplayEngine:
    def __init__(self, store: PresentationStore, log: Optional[DebugLog] = None,
                 on_step: Optional[Callable[[MicroStep], None]] = None):
        self.store = store
        self.log = log if log is not None else DebugLog()
        self.on_step = on_step
        self.steps: List[MicroStep] = []
        self.cursor = 0
        self.running = False
        self.paused = False
        self.stopped = False
        self._epoch = 0
        self._futures: Set[asyncio.Future] = set()
        self._handles: Set[asyncio.TimerHandle] = set()

    def debug(self, msg: str, level: int = 1):
        self.log.write(msg, level)

    def load(self, steps):
        self.steps = list(steps)
        self.cursor = 0

    @property
    def done(self) -> bool:
        return self.cursor >= len(self.steps)

    async def delay(self, ms: float):
        """Wait `ms` milliseconds; returns early when the engine is stopped."""
        if ms <= 0:
            await asyncio.sleep(0)
            return
        epoch = self._epoch
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        handle = loop.call_later(ms / 1000, _wake, future)
        self._futures.add(future)
        self._handles.add(handle)
        try:
            await future
        except asyncio.CancelledError:
            # cancelled by stop() or reset(): the caller checks the flags
            if self._epoch == epoch:
                raise
        finally:
            self._futures.discard(future)
            self._handles.discard(handle)

    def apply(self, step: MicroStep):
        store = self.store
        kind = step.kind
        if kind is StepKind.HIGHLIGHT:
            store.set_current_line(step.line)
        elif kind is StepKind.CALLSTACK_PUSH:
            store.push_to_call_stack(step.name)
        elif kind is StepKind.CALLSTACK_POP:
            store.pop_from_call_stack()
        elif kind is StepKind.CONSOLE_OUTPUT:
            store.add_to_console(step.message)
        elif kind is StepKind.WEBAPI_ADD:
            store.add_to_web_apis(QueueItem(step.item_id, step.name, step.delay))
        elif kind is StepKind.WEBAPI_REMOVE:
            store.remove_from_web_apis(step.item_id)
        elif kind is StepKind.TASKQUEUE_ADD:
            store.add_to_task_queue(QueueItem(step.item_id, step.name))
        elif kind is StepKind.TASKQUEUE_REMOVE:
            store.remove_from_task_queue(step.item_id)
        elif kind is StepKind.MICROTASK_ADD:
            store.add_to_microtask_queue(QueueItem(step.item_id, step.name))
        elif kind is StepKind.MICROTASK_REMOVE:
            store.remove_from_microtask_queue(step.item_id)
        elif kind is StepKind.RAFQUEUE_ADD:
            store.add_to_raf_queue(QueueItem(step.item_id, step.name))
        elif kind is StepKind.RAFQUEUE_REMOVE:
            store.remove_from_raf_queue(step.item_id)
        else:
            raise RuntimeReplayError(f"Unknown step type: {kind}")
        self.debug(f"apply {step.describe()}", 3)
        if self.on_step is not None:
            self.on_step(step)

    async def advance(self, speed: float = 0) -> ReplayProgress:
        """Apply the next step and wait out its scaled duration."""
        if self.done:
            return ReplayProgress(True)
        step = self.steps[self.cursor]
        self.cursor += 1
        self.apply(step)
        await self.delay(step.duration * speed / SPEED_UNIT)
        return ReplayProgress(self.done, step)

    async def run(self, speed: float = 0) -> bool:
        """Replay the remaining steps; True when the sequence was finished."""
        if self.running:
            self.debug("replay already running; run refused", 1)
            return False
        self.running = True
        self.stopped = False
        epoch = self._epoch
        self.store.set_running(True)
        try:
            while not self.done:
                if not await self.wait_while_paused(epoch):
                    return False
                await self.advance(speed)
                if self.stopped or self._epoch != epoch:
                    return False
            return True
        except Exception as e:
            error = e if isinstance(e, RuntimeReplayError) else RuntimeReplayError(str(e))
            self.debug(f"replay error: {error}", 1)
            self.store.add_to_console(f"Error: {error.message}")
            return False
        finally:
            if self._epoch == epoch or self.stopped:
                self.running = False
                self.paused = False
                self.store.set_running(False)
                self.store.set_paused(False)

    async def wait_while_paused(self, epoch: int) -> bool:
        """Hold while paused; False once this run was stopped or reset."""
        while self.paused:
            if self.stopped or self._epoch != epoch:
                return False
            await self.delay(PAUSE_POLL_MS)
        return not self.stopped and self._epoch == epoch

    def pause(self):
        self.paused = True
        self.store.set_paused(True)

    def resume(self):
        self.paused = False
        self.store.set_paused(False)

    def stop(self):
        self.stopped = True
        self._epoch += 1
        self.cancel_timers()

    def cancel_timers(self):
        for handle in list(self._handles):
            handle.cancel()
        for future in list(self._futures):
            if not future.done():
                future.cancel()
        self._handles.clear()
        self._futures.clear()

    def reset(self):
        self.stop()
        self.steps = []
        self.cursor = 0
        self.running = False
        self.paused = False
        self.stopped = False
        self.store.reset()
