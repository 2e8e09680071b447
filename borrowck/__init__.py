"""borrowck — ownership and borrow legality checker for a small instruction language."""

__version__ = "0.1.0"

from borrowck.errors import (
    BorrowError, CheckError, ErrorKind, ProgramFormatError, SourceLocation,
)
from borrowck.bindings import (
    Binding, BindingState, BindingTable, Borrow, BorrowMode, ValueKind,
)
from borrowck.scopes import Scope, ScopeStack
from borrowck.instructions import (
    Instruction, OpenScope, EndScope, Declare, Use, Move, Copy, Clone,
    Assign, Consume, Drop, BorrowShared, BorrowExclusive,
    load_program, load_program_file, dump_program,
)
from borrowck.ownership import OwnershipChecker, Verdict, new_checker, check, assert_valid
