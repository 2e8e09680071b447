"""Scope Stack — lexical lifetime boundaries.

Closing a scope releases the borrows created in it, then tears down its
bindings in reverse introduction order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from borrowck.bindings import Binding, BindingState, BindingTable, ValueKind
from borrowck.errors import CheckError, SourceLocation, scope_underflow

logger = logging.getLogger(__name__)


@dataclass
class Scope:
    scope_id: int
    bindings_introduced: list[int] = field(default_factory=list)


class ScopeStack:
    """Nesting order of open scopes over a shared BindingTable."""

    def __init__(self, table: BindingTable):
        self.table = table
        self._scopes: list[Scope] = []
        self._next_id = 0

    @property
    def depth(self) -> int:
        return len(self._scopes)

    @property
    def is_open(self) -> bool:
        return bool(self._scopes)

    def current(self, location: Optional[SourceLocation] = None) -> Scope:
        if not self._scopes:
            raise CheckError(scope_underflow(location))
        return self._scopes[-1]

    def open_scope(self) -> int:
        scope = Scope(scope_id=self._next_id)
        self._next_id += 1
        self._scopes.append(scope)
        return scope.scope_id

    def declare(
        self,
        name: str,
        kind: ValueKind,
        mutable: bool = True,
        location: Optional[SourceLocation] = None,
    ) -> int:
        """Declare a binding in the innermost scope."""
        scope = self.current(location)
        binding_id = self.table.declare(name, kind, scope.scope_id, mutable=mutable, location=location)
        scope.bindings_introduced.append(binding_id)
        return binding_id

    def close_scope(self, location: Optional[SourceLocation] = None) -> list[Binding]:
        """Pop the innermost scope.

        Every binding it introduced becomes unresolvable; the ones still
        Owned are dropped. Returns the dropped bindings in drop order
        (reverse of introduction).
        """
        scope = self.current(location)
        self._scopes.pop()

        released = self.table.release_borrows(scope.scope_id)
        if released:
            logger.debug("scope %d: released %d borrow(s)", scope.scope_id, len(released))

        dropped: list[Binding] = []
        for binding_id in reversed(scope.bindings_introduced):
            binding = self.table.get(binding_id)
            if binding.state == BindingState.OWNED:
                self.table.set_state(binding_id, BindingState.DROPPED, location)
                dropped.append(binding)
            self.table.retire(binding_id)
        logger.debug(
            "scope %d closed, dropped: %s",
            scope.scope_id, ", ".join(b.name for b in dropped) or "-",
        )
        return dropped
