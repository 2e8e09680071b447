"""Ownership & borrow legality checker.

Single-owner model: resources have exactly one owning binding until moved,
values are copied. Borrows are either one exclusive or any number of shared,
never both, and live until the scope that created them closes.

The checker is a synchronous state transition function: each instruction is
validated against the current Binding Table / Scope Stack and either applied
or rejected with exactly one error. A rejected instruction leaves the model
untouched, so callers may keep feeding instructions for batch diagnostics.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from borrowck.bindings import (
    Binding, BindingState, BindingTable, BorrowMode, ValueKind,
)
from borrowck.errors import (
    BorrowError, CheckError, SourceLocation,
    use_after_move, use_after_drop, move_while_borrowed, move_of_value_type,
    copy_of_resource, shared_borrow_conflict, exclusive_borrow_conflict,
    exclusive_borrow_of_immutable, assign_to_immutable, assign_while_borrowed,
    drop_while_borrowed, scope_underflow,
)
from borrowck.instructions import (
    Instruction, OpenScope, EndScope, Declare, Use, Move, Copy, Clone,
    Assign, Consume, Drop, BorrowShared, BorrowExclusive, format_instruction,
)
from borrowck.scopes import ScopeStack

logger = logging.getLogger(__name__)


@dataclass
class Verdict:
    """Outcome of applying one instruction."""
    instruction: Instruction
    error: Optional[BorrowError] = None
    borrow_id: Optional[int] = None
    dropped: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "instruction": format_instruction(self.instruction),
            "ok": self.ok,
        }
        if self.error:
            d["error"] = self.error.to_dict()
        if self.borrow_id is not None:
            d["borrow_id"] = self.borrow_id
        if self.dropped:
            d["dropped"] = list(self.dropped)
        return d


class OwnershipChecker:
    """Checks ownership and borrow rules for one instruction sequence."""

    def __init__(self):
        self.table = BindingTable()
        self.scopes = ScopeStack(self.table)
        self.scopes.open_scope()
        self.errors: list[BorrowError] = []
        self.drop_log: list[str] = []
        self.finished = False

    # -------------------------------------------------------------------
    # Public interface
    # -------------------------------------------------------------------

    def apply(self, instr: Instruction) -> Verdict:
        verdict = Verdict(instruction=instr)
        try:
            self._check_instruction(instr, verdict)
        except CheckError as e:
            verdict.error = e.first
            verdict.borrow_id = None
            verdict.dropped = []
            self.errors.append(e.first)
            logger.info("rejected %s: %s", format_instruction(instr), e.first)
        else:
            logger.debug("applied %s", format_instruction(instr))
        return verdict

    def finish(self) -> Optional[BorrowError]:
        """Close every remaining scope; return the first violation seen."""
        while self.scopes.is_open:
            self._end_scope(None)
        self.finished = True
        if self.errors:
            return self.errors[0]
        return None

    def snapshot(self) -> dict[str, BindingState]:
        return self.table.snapshot()

    def check(self, instructions: Iterable[Instruction], halt_on_error: bool = False) -> list[BorrowError]:
        """Apply a whole sequence, then finish. Returns all violations."""
        for instr in instructions:
            verdict = self.apply(instr)
            if halt_on_error and not verdict.ok:
                break
        self.finish()
        return list(self.errors)

    # -------------------------------------------------------------------
    # Rule checks
    # -------------------------------------------------------------------

    def _lookup(self, name: str, location: Optional[SourceLocation]) -> Binding:
        """Resolve a name to a binding that still holds its value."""
        binding = self.table.get(self.table.resolve(name, location))
        if binding.state == BindingState.MOVED_OUT:
            raise CheckError(use_after_move(name, location, binding.moved_at))
        if binding.state == BindingState.DROPPED:
            raise CheckError(use_after_drop(name, location, binding.dropped_at))
        return binding

    def _declare(self, name: str, kind: ValueKind, mutable: bool, location: Optional[SourceLocation]) -> None:
        self.scopes.declare(name, kind, mutable=mutable, location=location)

    def check_use(self, name: str, location: Optional[SourceLocation] = None) -> None:
        self._lookup(name, location)

    def check_move(self, src: str, dst: str, mutable: bool = True,
                   location: Optional[SourceLocation] = None) -> None:
        binding = self._lookup(src, location)
        if binding.kind == ValueKind.VALUE:
            raise CheckError(move_of_value_type(src, location))
        if binding.is_borrowed:
            raise CheckError(move_while_borrowed(
                src, binding.shared_borrows, binding.exclusive_borrow, location,
            ))
        self.table.set_state(binding.id, BindingState.MOVED_OUT, location)
        self._declare(dst, binding.kind, mutable, location)

    def check_copy(self, src: str, dst: str, mutable: bool = True,
                   location: Optional[SourceLocation] = None) -> None:
        binding = self._lookup(src, location)
        if binding.kind == ValueKind.RESOURCE:
            raise CheckError(copy_of_resource(src, location))
        self._declare(dst, ValueKind.VALUE, mutable, location)

    def check_clone(self, src: str, dst: str, mutable: bool = True,
                    location: Optional[SourceLocation] = None) -> None:
        binding = self._lookup(src, location)
        self._declare(dst, binding.kind, mutable, location)

    def check_borrow(self, name: str, mode: BorrowMode,
                     location: Optional[SourceLocation] = None) -> int:
        binding = self._lookup(name, location)
        if mode == BorrowMode.EXCLUSIVE and not binding.mutable:
            raise CheckError(exclusive_borrow_of_immutable(name, location))
        if binding.exclusive_borrow:
            raise CheckError(exclusive_borrow_conflict(name, mode.value, location))
        if mode == BorrowMode.EXCLUSIVE and binding.shared_borrows > 0:
            raise CheckError(shared_borrow_conflict(name, binding.shared_borrows, location))
        scope = self.scopes.current(location)
        borrow = self.table.add_borrow(binding.id, mode, scope.scope_id, location)
        return borrow.id

    def check_assign(self, name: str, location: Optional[SourceLocation] = None) -> None:
        binding = self._lookup(name, location)
        if not binding.mutable:
            raise CheckError(assign_to_immutable(name, location))
        if binding.is_borrowed:
            raise CheckError(assign_while_borrowed(
                name, binding.shared_borrows, binding.exclusive_borrow, location,
            ))

    def check_consume(self, name: str, location: Optional[SourceLocation] = None) -> None:
        binding = self._lookup(name, location)
        if binding.kind == ValueKind.VALUE:
            return
        if binding.is_borrowed:
            raise CheckError(move_while_borrowed(
                name, binding.shared_borrows, binding.exclusive_borrow, location,
            ))
        self.table.set_state(binding.id, BindingState.MOVED_OUT, location)

    def check_drop(self, name: str, location: Optional[SourceLocation] = None) -> list[str]:
        binding = self._lookup(name, location)
        if binding.is_borrowed:
            raise CheckError(drop_while_borrowed(
                name, binding.shared_borrows, binding.exclusive_borrow, location,
            ))
        self.table.set_state(binding.id, BindingState.DROPPED, location)
        self.drop_log.append(name)
        return [name]

    def _end_scope(self, location: Optional[SourceLocation]) -> list[str]:
        dropped = [b.name for b in self.scopes.close_scope(location)]
        self.drop_log.extend(dropped)
        return dropped

    # -------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------

    def _check_instruction(self, instr: Instruction, verdict: Verdict) -> None:
        location = getattr(instr, "location", None)
        if self.finished or not (self.scopes.is_open or isinstance(instr, OpenScope)):
            raise CheckError(scope_underflow(location))

        if isinstance(instr, Declare):
            self._declare(instr.name, instr.kind, instr.mutable, location)

        elif isinstance(instr, Use):
            self.check_use(instr.name, location)

        elif isinstance(instr, Move):
            self.check_move(instr.src, instr.dst, instr.mutable, location)

        elif isinstance(instr, Copy):
            self.check_copy(instr.src, instr.dst, instr.mutable, location)

        elif isinstance(instr, Clone):
            self.check_clone(instr.src, instr.dst, instr.mutable, location)

        elif isinstance(instr, BorrowShared):
            verdict.borrow_id = self.check_borrow(instr.name, BorrowMode.SHARED, location)

        elif isinstance(instr, BorrowExclusive):
            verdict.borrow_id = self.check_borrow(instr.name, BorrowMode.EXCLUSIVE, location)

        elif isinstance(instr, Assign):
            self.check_assign(instr.name, location)

        elif isinstance(instr, Consume):
            self.check_consume(instr.name, location)

        elif isinstance(instr, Drop):
            verdict.dropped = self.check_drop(instr.name, location)

        elif isinstance(instr, OpenScope):
            self.scopes.open_scope()

        elif isinstance(instr, EndScope):
            verdict.dropped = self._end_scope(location)

        else:
            raise TypeError(f"not an instruction: {instr!r}")


def new_checker() -> OwnershipChecker:
    """Fresh checker with the root scope open."""
    return OwnershipChecker()


def check(instructions: Iterable[Instruction], halt_on_error: bool = False) -> list[BorrowError]:
    """Check an instruction sequence with a fresh checker."""
    return new_checker().check(instructions, halt_on_error=halt_on_error)


def assert_valid(instructions: Iterable[Instruction]) -> None:
    """Raise CheckError carrying every violation, if any."""
    errors = check(instructions)
    if errors:
        raise CheckError(errors)
