from typing import Any, Dict, Optional

from loopstep.types import UNDEFINED


class Scope:
    """A lexical scope mapping identifiers to values.

    One scope exists for the program run and one per function invocation;
    closures keep their declaring scope alive through `parent` links.
    Missing bindings never raise: reads yield `UNDEFINED`.
    """
    def __init__(self, parent: Optional['Scope'] = None):
        self.parent = parent
        self.values: Dict[str, Any] = {}

    def get(self, name: str) -> Any:
        if name in self.values:
            return self.values[name]
        if self.parent:
            return self.parent.get(name)
        return UNDEFINED

    def set(self, name: str, value: Any):
        # Always the current scope; declarations and parameter binding.
        self.values[name] = value

    def has(self, name: str) -> bool:
        if name in self.values:
            return True
        if self.parent:
            return self.parent.has(name)
        return False

    def assign(self, name: str, value: Any):
        """Update the nearest existing binding of `name`.

        An undeclared name becomes a new binding in this scope rather than
        a global.
        """
        scope: Optional[Scope] = self
        while scope is not None:
            if name in scope.values:
                scope.values[name] = value
                return
            scope = scope.parent
        self.values[name] = value
