"""
Closure-context tracking.

Each function visit gets its own ClosureContext:

    not-closure-factory --(closure literal / Closure::* call)--> closure-factory

A function whose name matches the entry-point heuristic starts as a
closure factory. The flag never goes back to False within the function.
Nested function items push a fresh context and restore the outer one on
exit.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Set

from statesync.rules import is_closure_factory_name


@dataclass
class ClosureContext:
    """Per-function analysis state"""
    current_function: Optional[str] = None
    creates_closures: bool = False
    local_handles: Set[str] = field(default_factory=set)

    @classmethod
    def for_function(cls, name: str) -> 'ClosureContext':
        return cls(
            current_function=name,
            creates_closures=is_closure_factory_name(name),
        )

    @property
    def function_label(self) -> str:
        return self.current_function or "<unknown>"

    def upgrade(self) -> None:
        self.creates_closures = True

    def track(self, name: str) -> None:
        self.local_handles.add(name)

    def is_tracked(self, name: str) -> bool:
        return name in self.local_handles


class ContextTracker:
    """Stack of ClosureContexts; the top is the innermost function"""

    def __init__(self):
        # Bottom entry covers code outside any function
        self._stack: List[ClosureContext] = [ClosureContext()]

    @property
    def current(self) -> ClosureContext:
        return self._stack[-1]

    @property
    def depth(self) -> int:
        return len(self._stack) - 1

    def enter_function(self, name: str) -> ClosureContext:
        ctx = ClosureContext.for_function(name)
        self._stack.append(ctx)
        return ctx

    def exit_function(self) -> None:
        if len(self._stack) > 1:
            self._stack.pop()

    def observe_closure(self) -> None:
        self.current.upgrade()
