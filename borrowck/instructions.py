"""Instruction vocabulary of the checked language.

A closed set of instruction types; the checker dispatches over exactly these.
Instructions are produced by a front end (not part of this package) or
loaded from a JSON instruction file:

    [
      {"op": "declare", "name": "s", "kind": "resource"},
      {"op": "move", "src": "s", "dst": "t", "location": {"line": 2, "column": 5}},
      {"op": "use", "name": "s"}
    ]
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, ClassVar, Optional, Union

from borrowck.bindings import ValueKind
from borrowck.errors import ProgramFormatError, SourceLocation


# ---------------------------------------------------------------------------
# Scopes
# ---------------------------------------------------------------------------

@dataclass
class OpenScope:
    location: Optional[SourceLocation] = None
    opcode: ClassVar[str] = "open_scope"


@dataclass
class EndScope:
    location: Optional[SourceLocation] = None
    opcode: ClassVar[str] = "end_scope"


# ---------------------------------------------------------------------------
# Bindings
# ---------------------------------------------------------------------------

@dataclass
class Declare:
    name: str
    kind: ValueKind
    mutable: bool = True
    location: Optional[SourceLocation] = None
    opcode: ClassVar[str] = "declare"


@dataclass
class Use:
    """Read of a binding's value."""
    name: str
    location: Optional[SourceLocation] = None
    opcode: ClassVar[str] = "use"


@dataclass
class Move:
    src: str
    dst: str
    mutable: bool = True
    location: Optional[SourceLocation] = None
    opcode: ClassVar[str] = "move"


@dataclass
class Copy:
    src: str
    dst: str
    mutable: bool = True
    location: Optional[SourceLocation] = None
    opcode: ClassVar[str] = "copy"


@dataclass
class Clone:
    src: str
    dst: str
    mutable: bool = True
    location: Optional[SourceLocation] = None
    opcode: ClassVar[str] = "clone"


@dataclass
class Assign:
    """In-place write through the owning binding."""
    name: str
    location: Optional[SourceLocation] = None
    opcode: ClassVar[str] = "assign"


@dataclass
class Consume:
    """Pass by value to a callee: resources move, values copy."""
    name: str
    location: Optional[SourceLocation] = None
    opcode: ClassVar[str] = "consume"


@dataclass
class Drop:
    """Explicit early drop."""
    name: str
    location: Optional[SourceLocation] = None
    opcode: ClassVar[str] = "drop"


# ---------------------------------------------------------------------------
# Borrows
# ---------------------------------------------------------------------------

@dataclass
class BorrowShared:
    name: str
    location: Optional[SourceLocation] = None
    opcode: ClassVar[str] = "borrow_shared"


@dataclass
class BorrowExclusive:
    name: str
    location: Optional[SourceLocation] = None
    opcode: ClassVar[str] = "borrow_exclusive"


Instruction = Union[
    OpenScope, EndScope, Declare, Use, Move, Copy, Clone,
    Assign, Consume, Drop, BorrowShared, BorrowExclusive,
]

INSTRUCTION_TYPES: dict[str, type] = {
    cls.opcode: cls
    for cls in (
        OpenScope, EndScope, Declare, Use, Move, Copy, Clone,
        Assign, Consume, Drop, BorrowShared, BorrowExclusive,
    )
}

# Required operand fields per opcode; everything else is optional.
_OPERANDS: dict[str, tuple[str, ...]] = {
    "open_scope": (),
    "end_scope": (),
    "declare": ("name", "kind"),
    "use": ("name",),
    "move": ("src", "dst"),
    "copy": ("src", "dst"),
    "clone": ("src", "dst"),
    "assign": ("name",),
    "consume": ("name",),
    "drop": ("name",),
    "borrow_shared": ("name",),
    "borrow_exclusive": ("name",),
}


def format_instruction(instr: Instruction) -> str:
    """Short human-readable rendering, e.g. ``move(s -> t)``."""
    if isinstance(instr, (Move, Copy, Clone)):
        return f"{instr.opcode}({instr.src} -> {instr.dst})"
    if isinstance(instr, Declare):
        mut = "mut " if instr.mutable else ""
        return f"declare({mut}{instr.name}: {instr.kind.value})"
    name = getattr(instr, "name", None)
    if name is not None:
        return f"{instr.opcode}({name})"
    return instr.opcode


# ---------------------------------------------------------------------------
# JSON encoding
# ---------------------------------------------------------------------------

def instruction_to_dict(instr: Instruction) -> dict[str, Any]:
    d: dict[str, Any] = {"op": instr.opcode}
    for name in _OPERANDS[instr.opcode]:
        value = getattr(instr, name)
        d[name] = value.value if isinstance(value, ValueKind) else value
    if hasattr(instr, "mutable"):
        d["mutable"] = instr.mutable
    if instr.location:
        d["location"] = instr.location.to_dict()
    return d


def instruction_from_dict(
    data: Any,
    default_location: Optional[SourceLocation] = None,
) -> Instruction:
    if not isinstance(data, dict):
        raise ProgramFormatError(f"instruction must be an object, got {type(data).__name__}")
    op = data.get("op")
    cls = INSTRUCTION_TYPES.get(op) if isinstance(op, str) else None
    if cls is None:
        raise ProgramFormatError(f"unknown instruction op {op!r}")

    kwargs: dict[str, Any] = {}
    for name in _OPERANDS[op]:
        if name not in data:
            raise ProgramFormatError(f"'{op}' instruction is missing '{name}'")
        value = data[name]
        if name == "kind":
            try:
                value = ValueKind(value)
            except ValueError:
                raise ProgramFormatError(f"unknown value kind {value!r}") from None
        elif not isinstance(value, str) or not value:
            raise ProgramFormatError(f"'{op}.{name}' must be a non-empty string")
        kwargs[name] = value
    if "mutable" in data and op in ("declare", "move", "copy", "clone"):
        if not isinstance(data["mutable"], bool):
            raise ProgramFormatError(f"'{op}.mutable' must be true or false")
        kwargs["mutable"] = data["mutable"]

    loc = data.get("location")
    if isinstance(loc, dict):
        try:
            kwargs["location"] = SourceLocation(
                line=int(loc["line"]),
                column=int(loc.get("column", 1)),
                file=str(loc.get("file", default_location.file if default_location else "<stdin>")),
            )
        except (KeyError, TypeError, ValueError):
            raise ProgramFormatError(f"malformed location {loc!r}") from None
    else:
        kwargs["location"] = default_location
    return cls(**kwargs)


def load_program(source: str, filename: str = "<stdin>") -> list[Instruction]:
    """Decode a JSON instruction list. Instructions without an explicit
    location get line = position in the list (1-based)."""
    try:
        data = json.loads(source)
    except json.JSONDecodeError as e:
        raise ProgramFormatError(f"{filename}: invalid JSON: {e}") from e
    if isinstance(data, dict):
        data = data.get("instructions")
    if not isinstance(data, list):
        raise ProgramFormatError(f"{filename}: expected a list of instructions")

    program: list[Instruction] = []
    for index, item in enumerate(data):
        try:
            program.append(instruction_from_dict(item, SourceLocation(index + 1, 1, filename)))
        except ProgramFormatError as e:
            raise ProgramFormatError(f"{filename}: instruction {index + 1}: {e}") from e
    return program


def load_program_file(path: str) -> list[Instruction]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            source = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise ProgramFormatError(f"{path}: cannot read instruction file: {e}") from e
    return load_program(source, filename=path)


def dump_program(program: list[Instruction], indent: int = 2) -> str:
    return json.dumps([instruction_to_dict(i) for i in program], indent=indent)
