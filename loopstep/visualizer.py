from typing import Callable, Optional

from .debug import DebugLog
from .replay import ReplayEngine, ReplayProgress
from .scheduler import StepGenerator, GenerationResult
from .steps import MicroStep
from .store import PresentationStore, VisualizerStore


class Visualizer:
    """Run / step / reset controls over a generator, an engine and a store.

    Generation errors are written to the store console as `Error: ...`
    instead of being raised.
    """
    def __init__(self, store: Optional[PresentationStore] = None, debug_level: int = 0,
                 debug_file: str = 'debug.txt', log: Optional[DebugLog] = None,
                 on_step: Optional[Callable[[MicroStep], None]] = None):
        self.log = log if log is not None else DebugLog(debug_level, debug_file)
        self.store = store if store is not None else VisualizerStore()
        self.generator = StepGenerator(log=self.log)
        self.engine = ReplayEngine(self.store, self.log, on_step)
        self.result: Optional[GenerationResult] = None
        self._source: Optional[str] = None

    def prepare(self, source: str) -> GenerationResult:
        result = self.generator.generate(source)
        self.result = result
        self._source = source
        if result.success:
            self.engine.load(result.steps)
        else:
            self.store.add_to_console(f"Error: {result.message}")
        return result

    async def run(self, source: str, speed: float = 0) -> GenerationResult:
        self.reset()
        result = self.prepare(source)
        if result.success:
            await self.engine.run(speed)
        return result

    async def step(self, source: str, speed: float = 0) -> ReplayProgress:
        """Advance one step, generating first when `source` is new."""
        if self.result is None or source != self._source:
            self.reset()
            if not self.prepare(source).success:
                return ReplayProgress(True)
        return await self.engine.advance(speed)

    def pause(self):
        self.engine.pause()

    def resume(self):
        self.engine.resume()

    def stop(self):
        self.engine.stop()

    def reset(self):
        self.engine.reset()
        self.generator.reset()
        self.result = None
        self._source = None
