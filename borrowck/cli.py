"""borrowck CLI — command-line driver for the ownership checker.

Commands:
  borrowck check <program.json>      — Check an instruction file
  borrowck snapshot <program.json>   — Binding states at the end of the program (JSON)
  borrowck prove                     — Prove the borrow invariants with Z3 (JSON)

Exit codes: 0 clean, 1 ownership/borrow violations, 2 malformed input or
caller-contract violations (scope underflow).
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Any, Optional

from borrowck import __version__
from borrowck.config import FORMATS, BorrowckConfig, load_config
from borrowck.errors import ProgramFormatError
from borrowck.formatters import format_report
from borrowck.instructions import Instruction, load_program_file
from borrowck.ownership import OwnershipChecker
from borrowck.proofs import failed_obligations, prove_transition_system

EXIT_OK = 0
EXIT_VIOLATIONS = 1
EXIT_USAGE = 2


def _load(path: str) -> Optional[list[Instruction]]:
    if not os.path.exists(path):
        print(json.dumps({"error": f"File not found: {path}"}))
        return None
    try:
        return load_program_file(path)
    except ProgramFormatError as e:
        print(json.dumps({"error": str(e)}))
        return None


def _config_for(args: argparse.Namespace) -> BorrowckConfig:
    config = load_config(getattr(args, "config", None), start_dir=os.path.dirname(os.path.abspath(args.file)))
    if getattr(args, "format", None):
        config.format = args.format
    if getattr(args, "halt", False):
        config.halt_on_error = True
    if getattr(args, "snapshot", False):
        config.show_snapshot = True
    return config


def run_check(program: list[Instruction], filename: str, config: BorrowckConfig) -> dict[str, Any]:
    """Run the checker over a program and build a report dict."""
    checker = OwnershipChecker()
    applied = 0
    for instr in program:
        applied += 1
        if not checker.apply(instr).ok and config.halt_on_error:
            break
    snapshot = checker.snapshot() if config.show_snapshot else None
    checker.finish()
    return {
        "file": filename,
        "passed": not checker.errors,
        "instructions": applied,
        "errors": [e.to_dict() for e in checker.errors],
        "contract_violation": any(e.is_contract_violation for e in checker.errors),
        "snapshot": {name: state.value for name, state in snapshot.items()} if snapshot is not None else None,
    }


def cmd_check(args: argparse.Namespace) -> int:
    """Check an instruction file for ownership and borrow violations."""
    program = _load(args.file)
    if program is None:
        return EXIT_USAGE
    config = _config_for(args)
    _configure_logging(args, config)

    report = run_check(program, args.file, config)
    print(format_report(report, config.format))

    if report["contract_violation"]:
        return EXIT_USAGE
    return EXIT_OK if report["passed"] else EXIT_VIOLATIONS


def cmd_snapshot(args: argparse.Namespace) -> int:
    """Print the binding states reached at the end of the program."""
    program = _load(args.file)
    if program is None:
        return EXIT_USAGE
    checker = OwnershipChecker()
    for instr in program:
        checker.apply(instr)
    print(json.dumps({
        "file": args.file,
        "snapshot": {name: state.value for name, state in checker.snapshot().items()},
        "errors": [e.to_dict() for e in checker.errors],
    }, indent=2))
    return EXIT_OK if not checker.errors else EXIT_VIOLATIONS


def cmd_prove(args: argparse.Namespace) -> int:
    """Discharge the transition-system proof obligations with Z3."""
    obligations = prove_transition_system(timeout_ms=args.timeout)
    failed = failed_obligations(obligations)
    print(json.dumps({
        "proven": not failed,
        "obligations": [o.to_dict() for o in obligations],
    }, indent=2))
    return EXIT_OK if not failed else EXIT_VIOLATIONS


def _configure_logging(args: argparse.Namespace, config: Optional[BorrowckConfig] = None) -> None:
    if getattr(args, "verbose", False):
        level = logging.DEBUG
    elif config is not None:
        level = getattr(logging, config.log_level, logging.WARNING)
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        prog="borrowck",
        description="borrowck — ownership and borrow legality checker",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every applied instruction")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # check
    p_check = subparsers.add_parser("check", help="Check a JSON instruction file")
    p_check.add_argument("file", help="Instruction file (.json)")
    p_check.add_argument("--format", choices=list(FORMATS), help="Output format (default: pretty)")
    p_check.add_argument("--halt", action="store_true", help="Stop at the first violation")
    p_check.add_argument("--snapshot", action="store_true", help="Include binding states before scope teardown")
    p_check.add_argument("--config", default=None, help="Path to a .borrowckrc file")
    p_check.set_defaults(func=cmd_check)

    # snapshot
    p_snap = subparsers.add_parser("snapshot", help="Print binding states at the end of a program")
    p_snap.add_argument("file", help="Instruction file (.json)")
    p_snap.set_defaults(func=cmd_snapshot)

    # prove
    p_prove = subparsers.add_parser("prove", help="Prove the borrow invariants with Z3")
    p_prove.add_argument("--timeout", type=int, default=5000, help="Solver timeout per obligation (ms)")
    p_prove.set_defaults(func=cmd_prove)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command != "check":
        _configure_logging(args)
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
