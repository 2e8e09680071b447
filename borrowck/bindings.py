"""Binding Table.

Tracks the ownership/borrow state of every named binding. Names map to a
small stack of binding ids so that shadowing is representable: declaring a
name pushes, tearing down the owning scope pops. Borrows refer to their
target by binding id, never by holding the record itself.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from borrowck.errors import CheckError, SourceLocation, unbound_name


class ValueKind(Enum):
    VALUE = "value"          # trivially duplicable; copied, never moved
    RESOURCE = "resource"    # single owner; duplicated only by clone


class BindingState(Enum):
    OWNED = "owned"
    MOVED_OUT = "moved_out"
    DROPPED = "dropped"


class BorrowMode(Enum):
    SHARED = "shared"
    EXCLUSIVE = "exclusive"


@dataclass
class Binding:
    id: int
    name: str
    kind: ValueKind
    scope_id: int
    mutable: bool = True
    state: BindingState = BindingState.OWNED
    shared_borrows: int = 0
    exclusive_borrow: bool = False
    defined_at: Optional[SourceLocation] = None
    moved_at: Optional[SourceLocation] = None
    dropped_at: Optional[SourceLocation] = None

    @property
    def is_borrowed(self) -> bool:
        return self.exclusive_borrow or self.shared_borrows > 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "kind": self.kind.value,
            "scope_id": self.scope_id,
            "mutable": self.mutable,
            "state": self.state.value,
            "shared_borrows": self.shared_borrows,
            "exclusive_borrow": self.exclusive_borrow,
        }


@dataclass
class Borrow:
    id: int
    target: int
    mode: BorrowMode
    scope_id: int
    location: Optional[SourceLocation] = None


class BindingTable:
    """All bindings of one analysis, indexed by id, resolvable by name."""

    def __init__(self):
        self._bindings: list[Binding] = []
        self._by_name: dict[str, list[int]] = {}
        self._borrows: dict[int, Borrow] = {}
        self._next_borrow = 0

    def __len__(self) -> int:
        return len(self._bindings)

    def declare(
        self,
        name: str,
        kind: ValueKind,
        scope_id: int,
        mutable: bool = True,
        location: Optional[SourceLocation] = None,
    ) -> int:
        binding_id = len(self._bindings)
        self._bindings.append(Binding(
            id=binding_id, name=name, kind=kind, scope_id=scope_id,
            mutable=mutable, defined_at=location,
        ))
        self._by_name.setdefault(name, []).append(binding_id)
        return binding_id

    def resolve(self, name: str, location: Optional[SourceLocation] = None) -> int:
        stack = self._by_name.get(name)
        if not stack:
            raise CheckError(unbound_name(name, location))
        return stack[-1]

    def get(self, binding_id: int) -> Binding:
        return self._bindings[binding_id]

    def get_state(self, binding_id: int) -> BindingState:
        return self._bindings[binding_id].state

    def set_state(
        self,
        binding_id: int,
        state: BindingState,
        location: Optional[SourceLocation] = None,
    ) -> None:
        binding = self._bindings[binding_id]
        if binding.state == state:
            return
        if binding.state != BindingState.OWNED:
            raise ValueError(
                f"binding '{binding.name}' (#{binding_id}) cannot leave state "
                f"{binding.state.value}"
            )
        binding.state = state
        if state == BindingState.MOVED_OUT:
            binding.moved_at = location
        elif state == BindingState.DROPPED:
            binding.dropped_at = location

    def retire(self, binding_id: int) -> None:
        """Make a binding unresolvable, uncovering whatever it shadowed."""
        name = self._bindings[binding_id].name
        self._by_name[name].remove(binding_id)

    # -------------------------------------------------------------------
    # Borrows
    # -------------------------------------------------------------------

    def add_borrow(
        self,
        binding_id: int,
        mode: BorrowMode,
        scope_id: int,
        location: Optional[SourceLocation] = None,
    ) -> Borrow:
        binding = self._bindings[binding_id]
        if mode == BorrowMode.EXCLUSIVE:
            binding.exclusive_borrow = True
        else:
            binding.shared_borrows += 1
        borrow = Borrow(
            id=self._next_borrow, target=binding_id, mode=mode,
            scope_id=scope_id, location=location,
        )
        self._borrows[borrow.id] = borrow
        self._next_borrow += 1
        return borrow

    def release_borrows(self, scope_id: int) -> list[Borrow]:
        released = [b for b in self._borrows.values() if b.scope_id == scope_id]
        for borrow in released:
            target = self._bindings[borrow.target]
            if borrow.mode == BorrowMode.EXCLUSIVE:
                target.exclusive_borrow = False
            else:
                target.shared_borrows -= 1
            del self._borrows[borrow.id]
        return released

    def borrows_of(self, binding_id: int) -> list[Borrow]:
        return [b for b in self._borrows.values() if b.target == binding_id]

    # -------------------------------------------------------------------
    # Diagnostics
    # -------------------------------------------------------------------

    def live_bindings(self) -> list[Binding]:
        return [self._bindings[stack[-1]] for stack in self._by_name.values() if stack]

    def snapshot(self) -> dict[str, BindingState]:
        """Name -> state of its innermost live binding, or of its latest
        binding once none is live. Ordered by first declaration."""
        snap: dict[str, BindingState] = {}
        for binding in self._bindings:
            snap[binding.name] = binding.state
        for name, stack in self._by_name.items():
            if stack:
                snap[name] = self._bindings[stack[-1]].state
        return snap
