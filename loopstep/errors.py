from typing import Any


class LoopstepError(Exception):
    """Base class for failures reported to loopstep callers.

    `message` is the user-facing text. It never echoes parser or Python
    internals; those go to the debug log only.
    """
    kind = 'Error'

    def __init__(self, message: str):
        super().__init__(f"{self.kind}: {message}")
        self.message = message


class ScriptSyntaxError(LoopstepError):
    """The source text could not be parsed."""
    kind = 'SyntaxError'

    def __init__(self, message: str = 'Syntax error in code', detail: str = ''):
        super().__init__(message)
        self.detail = detail


class ComplexityError(LoopstepError):
    """A step, length or microtask ceiling was exceeded."""
    kind = 'ComplexityError'


class AnalysisError(LoopstepError):
    """Unexpected failure while walking a valid AST."""
    kind = 'AnalysisError'


class RuntimeReplayError(LoopstepError):
    """Failure while applying an otherwise valid step sequence."""
    kind = 'RuntimeReplayError'


class ReturnSignal(Exception):
    """Internal signal to handle return statements in functions."""
    def __init__(self, value: Any):
        super().__init__('return')
        self.value = value


class SuspendSignal:
    """Returned by block execution when the rest of the block was deferred."""
    def __repr__(self) -> str:
        return 'SUSPEND'


SUSPEND = SuspendSignal()
