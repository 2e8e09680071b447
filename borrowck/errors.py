"""Structured error objects for the borrow checker.

Every violation is a machine-readable record, never a raw string. The set of
error kinds is closed: a verdict on an instruction is either success or
exactly one of these kinds.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class ErrorKind(Enum):
    UNBOUND_NAME = "unbound_name"
    USE_AFTER_MOVE = "use_after_move"
    USE_AFTER_DROP = "use_after_drop"
    MOVE_WHILE_BORROWED = "move_while_borrowed"
    MOVE_OF_VALUE_TYPE = "move_of_value_type"
    COPY_OF_RESOURCE = "copy_of_resource"
    SHARED_BORROW_CONFLICT = "shared_borrow_conflict"
    EXCLUSIVE_BORROW_CONFLICT = "exclusive_borrow_conflict"
    EXCLUSIVE_BORROW_OF_IMMUTABLE = "exclusive_borrow_of_immutable"
    ASSIGN_TO_IMMUTABLE = "assign_to_immutable"
    ASSIGN_WHILE_BORROWED = "assign_while_borrowed"
    DROP_WHILE_BORROWED = "drop_while_borrowed"
    SCOPE_UNDERFLOW = "scope_underflow"


@dataclass
class SourceLocation:
    line: int
    column: int
    file: str = "<stdin>"

    def __str__(self) -> str:
        return f"{self.file}:{self.line}:{self.column}"

    def to_dict(self) -> dict[str, Any]:
        return {"file": self.file, "line": self.line, "column": self.column}


@dataclass
class BorrowError:
    kind: ErrorKind
    message: str
    location: Optional[SourceLocation] = None
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def is_contract_violation(self) -> bool:
        """True when the error reports caller misuse rather than a finding
        about the analyzed program."""
        return self.kind == ErrorKind.SCOPE_UNDERFLOW

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "kind": self.kind.value,
            "message": self.message,
        }
        if self.location:
            d["location"] = self.location.to_dict()
        if self.details:
            d["details"] = self.details
        return d

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def __str__(self) -> str:
        loc = f" at {self.location}" if self.location else ""
        return f"[{self.kind.value}]{loc}: {self.message}"


def unbound_name(name: str, location: Optional[SourceLocation] = None) -> BorrowError:
    return BorrowError(
        kind=ErrorKind.UNBOUND_NAME,
        message=f"Cannot find binding '{name}' in any open scope",
        location=location,
        details={"name": name},
    )


def use_after_move(
    name: str,
    location: Optional[SourceLocation] = None,
    moved_at: Optional[SourceLocation] = None,
) -> BorrowError:
    details: dict[str, Any] = {"name": name}
    if moved_at:
        details["moved_at"] = str(moved_at)
    return BorrowError(
        kind=ErrorKind.USE_AFTER_MOVE,
        message=f"Use of moved value '{name}'",
        location=location,
        details=details,
    )


def use_after_drop(
    name: str,
    location: Optional[SourceLocation] = None,
    dropped_at: Optional[SourceLocation] = None,
) -> BorrowError:
    details: dict[str, Any] = {"name": name}
    if dropped_at:
        details["dropped_at"] = str(dropped_at)
    return BorrowError(
        kind=ErrorKind.USE_AFTER_DROP,
        message=f"Use of dropped value '{name}'",
        location=location,
        details=details,
    )


def move_while_borrowed(
    name: str,
    shared: int,
    exclusive: bool,
    location: Optional[SourceLocation] = None,
) -> BorrowError:
    return BorrowError(
        kind=ErrorKind.MOVE_WHILE_BORROWED,
        message=f"Cannot move out of '{name}' because it is borrowed",
        location=location,
        details={"name": name, "shared_borrows": shared, "exclusive_borrow": exclusive},
    )


def move_of_value_type(name: str, location: Optional[SourceLocation] = None) -> BorrowError:
    return BorrowError(
        kind=ErrorKind.MOVE_OF_VALUE_TYPE,
        message=f"'{name}' is a value type; values are copied, not moved",
        location=location,
        details={"name": name},
    )


def copy_of_resource(name: str, location: Optional[SourceLocation] = None) -> BorrowError:
    return BorrowError(
        kind=ErrorKind.COPY_OF_RESOURCE,
        message=f"'{name}' is a resource and cannot be copied; use an explicit clone",
        location=location,
        details={"name": name},
    )


def shared_borrow_conflict(
    name: str,
    shared: int,
    location: Optional[SourceLocation] = None,
) -> BorrowError:
    return BorrowError(
        kind=ErrorKind.SHARED_BORROW_CONFLICT,
        message=f"Cannot borrow '{name}' exclusively because it is also borrowed as shared",
        location=location,
        details={"name": name, "shared_borrows": shared},
    )


def exclusive_borrow_conflict(
    name: str,
    requested: str,
    location: Optional[SourceLocation] = None,
) -> BorrowError:
    return BorrowError(
        kind=ErrorKind.EXCLUSIVE_BORROW_CONFLICT,
        message=f"Cannot borrow '{name}' as {requested} because it is already borrowed exclusively",
        location=location,
        details={"name": name, "requested": requested},
    )


def exclusive_borrow_of_immutable(name: str, location: Optional[SourceLocation] = None) -> BorrowError:
    return BorrowError(
        kind=ErrorKind.EXCLUSIVE_BORROW_OF_IMMUTABLE,
        message=f"Cannot borrow '{name}' exclusively, as it is not declared mutable",
        location=location,
        details={"name": name},
    )


def assign_to_immutable(name: str, location: Optional[SourceLocation] = None) -> BorrowError:
    return BorrowError(
        kind=ErrorKind.ASSIGN_TO_IMMUTABLE,
        message=f"Cannot assign twice to immutable binding '{name}'",
        location=location,
        details={"name": name},
    )


def assign_while_borrowed(
    name: str,
    shared: int,
    exclusive: bool,
    location: Optional[SourceLocation] = None,
) -> BorrowError:
    return BorrowError(
        kind=ErrorKind.ASSIGN_WHILE_BORROWED,
        message=f"Cannot assign to '{name}' because it is borrowed",
        location=location,
        details={"name": name, "shared_borrows": shared, "exclusive_borrow": exclusive},
    )


def drop_while_borrowed(
    name: str,
    shared: int,
    exclusive: bool,
    location: Optional[SourceLocation] = None,
) -> BorrowError:
    return BorrowError(
        kind=ErrorKind.DROP_WHILE_BORROWED,
        message=f"Cannot drop '{name}' because it is borrowed",
        location=location,
        details={"name": name, "shared_borrows": shared, "exclusive_borrow": exclusive},
    )


def scope_underflow(location: Optional[SourceLocation] = None) -> BorrowError:
    return BorrowError(
        kind=ErrorKind.SCOPE_UNDERFLOW,
        message="No open scope",
        location=location,
    )


class CheckError(Exception):
    """Exception wrapping one or more BorrowErrors."""

    def __init__(self, errors: list[BorrowError] | BorrowError):
        if isinstance(errors, BorrowError):
            errors = [errors]
        self.errors = errors
        super().__init__(self._format())

    @property
    def first(self) -> BorrowError:
        return self.errors[0]

    def _format(self) -> str:
        return "\n".join(str(e) for e in self.errors)

    def to_json(self, indent: int = 2) -> str:
        return json.dumps([e.to_dict() for e in self.errors], indent=indent)


class ProgramFormatError(ValueError):
    """Raised when an instruction file cannot be decoded."""
