# loopstep package
# This package turns small JavaScript-like programs into event-loop micro-steps and replays them.
from .errors import LoopstepError, ScriptSyntaxError, ComplexityError, AnalysisError, RuntimeReplayError
from .parser import parse_program
from .presets import PRESETS, get_preset
from .replay import ReplayEngine
from .scheduler import StepGenerator, GenerationResult, Phase
from .steps import MicroStep, StepKind
from .store import PresentationStore, VisualizerStore
from .visualizer import Visualizer

__all__ = [
    'LoopstepError',
    'ScriptSyntaxError',
    'ComplexityError',
    'AnalysisError',
    'RuntimeReplayError',
    'parse_program',
    'PRESETS',
    'get_preset',
    'ReplayEngine',
    'StepGenerator',
    'GenerationResult',
    'Phase',
    'MicroStep',
    'StepKind',
    'PresentationStore',
    'VisualizerStore',
    'Visualizer',
]
