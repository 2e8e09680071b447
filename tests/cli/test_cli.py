"""CLI, Config & Formatter Tests — CLI-001 through CLI-005."""

import json
from pathlib import Path

import pytest

from borrowck.cli import main, run_check, EXIT_OK, EXIT_VIOLATIONS, EXIT_USAGE
from borrowck.config import BorrowckConfig, load_config, find_config
from borrowck.formatters import format_report
from borrowck.instructions import load_program_file

EXAMPLES = Path(__file__).resolve().parents[2] / "examples"


def run(argv):
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return exc_info.value.code


class TestCLI001:
    """CLI-001: example programs."""

    def test_ownership_tour_passes(self, capsys):
        code = run(["check", str(EXAMPLES / "ownership_tour.json"), "--format", "summary"])
        assert code == EXIT_OK
        assert capsys.readouterr().out.startswith("PASS")

    def test_borrow_conflicts_fail(self, capsys):
        code = run(["check", str(EXAMPLES / "borrow_conflicts.json"), "--format", "json"])
        assert code == EXIT_VIOLATIONS
        report = json.loads(capsys.readouterr().out)
        assert [e["kind"] for e in report["errors"]] == [
            "exclusive_borrow_conflict",
            "exclusive_borrow_conflict",
            "move_while_borrowed",
            "assign_to_immutable",
            "move_of_value_type",
            "unbound_name",
        ]
        assert report["errors"][0]["location"]["line"] == 3

    def test_halt(self, capsys):
        code = run(["check", str(EXAMPLES / "borrow_conflicts.json"), "--format", "json", "--halt"])
        assert code == EXIT_VIOLATIONS
        report = json.loads(capsys.readouterr().out)
        assert len(report["errors"]) == 1
        assert report["instructions"] == 3


class TestCLI002:
    """CLI-002: malformed input and contract violations exit with 2."""

    def test_missing_file(self, tmp_path, capsys):
        assert run(["check", str(tmp_path / "nope.json")]) == EXIT_USAGE
        assert "File not found" in capsys.readouterr().out

    def test_malformed_file(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text('[{"op": "declare"}]')
        assert run(["check", str(path)]) == EXIT_USAGE

    def test_undecodable_file(self, tmp_path, capsys):
        path = tmp_path / "latin1.json"
        path.write_bytes(b'[{"op": "use", "name": "\xff"}]')
        assert run(["check", str(path)]) == EXIT_USAGE
        assert "cannot read" in capsys.readouterr().out

    def test_directory_instead_of_file(self, tmp_path, capsys):
        assert run(["check", str(tmp_path)]) == EXIT_USAGE
        assert "cannot read" in capsys.readouterr().out

    def test_scope_underflow(self, tmp_path):
        path = tmp_path / "underflow.json"
        path.write_text('[{"op": "end_scope"}, {"op": "end_scope"}]')
        assert run(["check", str(path), "--format", "summary"]) == EXIT_USAGE


class TestCLI003:
    """CLI-003: snapshot and prove commands."""

    def test_snapshot(self, tmp_path, capsys):
        path = tmp_path / "p.json"
        path.write_text(json.dumps([
            {"op": "declare", "name": "s", "kind": "resource"},
            {"op": "move", "src": "s", "dst": "t"},
            {"op": "declare", "name": "d", "kind": "value"},
            {"op": "drop", "name": "d"},
        ]))
        assert run(["snapshot", str(path)]) == EXIT_OK
        out = json.loads(capsys.readouterr().out)
        assert out["snapshot"] == {"s": "moved_out", "t": "owned", "d": "dropped"}

    def test_prove(self, capsys):
        assert run(["prove"]) == EXIT_OK
        assert json.loads(capsys.readouterr().out)["proven"] is True


class TestCLI004:
    """CLI-004: configuration files."""

    def test_yaml_config(self, tmp_path):
        (tmp_path / ".borrowckrc.yml").write_text(
            "halt_on_error: true\nformat: markdown\nlog_level: info\nshow_snapshot: yes\n"
        )
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        assert find_config(str(nested)) == str(tmp_path / ".borrowckrc.yml")
        config = load_config(start_dir=str(nested))
        assert config == BorrowckConfig(halt_on_error=True, format="markdown",
                                        log_level="INFO", show_snapshot=True)

    def test_json_config(self, tmp_path):
        path = tmp_path / ".borrowckrc.json"
        path.write_text('{"format": "json", "unknown": 1}')
        assert load_config(str(path)).format == "json"

    def test_bad_values_fall_back(self, tmp_path):
        path = tmp_path / ".borrowckrc.yml"
        path.write_text("format: xml\n")
        assert load_config(str(path)).format == "pretty"
        path.write_text("- just\n- a list\n")
        assert load_config(str(path)) == BorrowckConfig()

    def test_string_flags_ignored(self, tmp_path):
        path = tmp_path / ".borrowckrc.json"
        path.write_text('{"halt_on_error": "false", "show_snapshot": "yes"}')
        config = load_config(str(path))
        assert config.halt_on_error is False
        assert config.show_snapshot is False

    def test_config_drives_check(self, tmp_path, capsys):
        (tmp_path / ".borrowckrc.yml").write_text("format: json\n")
        program = tmp_path / "p.json"
        program.write_text('[{"op": "use", "name": "x"}]')
        assert run(["check", str(program)]) == EXIT_VIOLATIONS
        assert json.loads(capsys.readouterr().out)["passed"] is False


class TestCLI005:
    """CLI-005: report formatting."""

    def _report(self, **config):
        program = load_program_file(str(EXAMPLES / "borrow_conflicts.json"))
        return run_check(program, "borrow_conflicts.json", BorrowckConfig(**config))

    def test_snapshot_before_teardown(self):
        report = self._report(show_snapshot=True)
        assert report["snapshot"]["s"] == "owned"
        assert report["snapshot"]["n"] == "owned"

    @pytest.mark.parametrize("fmt", ["pretty", "summary", "markdown", "json"])
    def test_every_format_renders(self, fmt):
        text = format_report(self._report(show_snapshot=True), fmt)
        assert "borrow_conflicts.json" in text

    def test_markdown_table(self):
        text = format_report(self._report(), "markdown")
        assert "borrow_conflicts.json:9:5` | `unbound_name` |" in text

    def test_unknown_format(self):
        with pytest.raises(ValueError):
            format_report({}, "xml")
