"""borrowck Output Formatters — human-friendly terminal output.

Output modes:
    pretty   — colored, one line per violation (default)
    summary  — one-line pass/fail
    markdown — for pasting into PRs / docs
    json     — machine-readable

All formatters take a report dict:
    {"file": str, "passed": bool, "instructions": int,
     "errors": [BorrowError.to_dict(), ...], "snapshot": {name: state} | None}
"""

from __future__ import annotations

import json
import os
import sys
from typing import Any, Dict, List


# ── ANSI color helpers ───────────────────────────────────────────────────

_NO_COLOR = os.environ.get("NO_COLOR") is not None or not sys.stdout.isatty()


def _c(code: str, text: str) -> str:
    if _NO_COLOR:
        return text
    return f"\033[{code}m{text}\033[0m"


def red(t: str) -> str:
    return _c("31", t)


def green(t: str) -> str:
    return _c("32", t)


def bold(t: str) -> str:
    return _c("1", t)


def dim(t: str) -> str:
    return _c("2", t)


ICON_ERROR = red("✖")
ICON_OK = green("✔")


def _format_location(err: Dict[str, Any]) -> str:
    loc = err.get("location")
    if not loc:
        return ""
    return f"{loc.get('file', '<stdin>')}:{loc.get('line', 0)}:{loc.get('column', 0)}"


# ── Pretty formatter (default) ──────────────────────────────────────────

def format_pretty(report: Dict[str, Any]) -> str:
    lines: List[str] = []
    errors = report.get("errors", [])
    header = bold(report.get("file", "<stdin>"))

    if report.get("passed"):
        lines.append(f"{ICON_OK} {header}: {report.get('instructions', 0)} instruction(s), no violations")
    else:
        lines.append(f"{ICON_ERROR} {header}: {len(errors)} violation(s)")
        for err in errors:
            where = _format_location(err)
            prefix = f"{dim(where)} " if where else ""
            lines.append(f"  {prefix}{red(err['kind'])}: {err['message']}")

    snapshot = report.get("snapshot")
    if snapshot:
        lines.append("")
        lines.append(bold("Bindings:"))
        width = max(len(name) for name in snapshot)
        for name, state in snapshot.items():
            lines.append(f"  {name.ljust(width)}  {state}")

    return "\n".join(lines)


# ── Summary formatter ───────────────────────────────────────────────────

def format_summary(report: Dict[str, Any]) -> str:
    errors = report.get("errors", [])
    status = "PASS" if report.get("passed") else "FAIL"
    return f"{status} {report.get('file', '<stdin>')} ({len(errors)} violation(s))"


# ── Markdown formatter ──────────────────────────────────────────────────

def format_markdown(report: Dict[str, Any]) -> str:
    lines: List[str] = [f"### Borrow check: `{report.get('file', '<stdin>')}`", ""]
    errors = report.get("errors", [])
    if not errors:
        lines.append("No ownership or borrow violations.")
    else:
        lines.append("| Location | Kind | Message |")
        lines.append("|---|---|---|")
        for err in errors:
            where = _format_location(err) or "-"
            lines.append(f"| `{where}` | `{err['kind']}` | {err['message']} |")
    snapshot = report.get("snapshot")
    if snapshot:
        lines.append("")
        lines.append("| Binding | State |")
        lines.append("|---|---|")
        for name, state in snapshot.items():
            lines.append(f"| `{name}` | {state} |")
    return "\n".join(lines)


def format_json(report: Dict[str, Any]) -> str:
    return json.dumps(report, indent=2)


_FORMATTERS = {
    "pretty": format_pretty,
    "summary": format_summary,
    "markdown": format_markdown,
    "json": format_json,
}


def format_report(report: Dict[str, Any], fmt: str = "pretty") -> str:
    formatter = _FORMATTERS.get(fmt)
    if formatter is None:
        raise ValueError(f"unknown output format {fmt!r}")
    return formatter(report)
