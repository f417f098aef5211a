"""Tests for the command line entry point."""

from pathlib import Path
from unittest.mock import patch

import pytest

from ai_code_tutor.__main__ import main, parse_args
from ai_code_tutor.adapters.storage.memory import MemoryStore
from ai_code_tutor.utils.async_helpers import StorageError


@pytest.fixture
def offline_config(tmp_path: Path) -> Path:
    """A configuration with no sandbox and no model gateway."""
    path = tmp_path / "config.yaml"
    path.write_text("sandbox:\n  enabled: false\nllm:\n  provider: none\n")
    return path


def write_source(tmp_path: Path, name: str, text: str) -> Path:
    path = tmp_path / name
    path.write_text(text)
    return path


class TestParseArgs:
    """Test argument parsing."""

    def test_run_with_stdin(self) -> None:
        """Test repeated --stdin values are collected in order."""
        args = parse_args(["run", "Main.java", "-i", "5", "-i", "Ada", "--explain"])
        assert args.command == "run"
        assert args.file == Path("Main.java")
        assert args.stdin == ["5", "Ada"]
        assert args.explain is True
        assert args.fix is False

    def test_translate_requires_language(self) -> None:
        with pytest.raises(SystemExit):
            parse_args(["translate", "main.py"])

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit):
            parse_args([])

    def test_log_format_defaults_to_config(self) -> None:
        """Test the log format is left to the configuration unless given."""
        assert parse_args(["history"]).log_format is None
        assert parse_args(["--log-format", "json", "history"]).log_format == "json"


class TestMain:
    """Test subcommands end to end on the local tier."""

    def test_run(self, tmp_path, offline_config, hello_world, capsys) -> None:
        """Test running a clean program prints its output."""
        source = write_source(tmp_path, "Main.java", hello_world)

        code = main(["-c", str(offline_config), "--no-persist", "run", str(source)])

        assert code == 0
        assert "Hello, World!" in capsys.readouterr().out

    def test_scan(self, tmp_path, offline_config, off_by_one_program, capsys) -> None:
        """Test scan prints file-addressed diagnostics and fails when any exist."""
        source = write_source(tmp_path, "OffByOne.java", off_by_one_program)

        code = main(["-c", str(offline_config), "--no-persist", "scan", str(source)])

        assert code == 1
        assert "OffByOne.java:4: " in capsys.readouterr().out

    def test_run_fix(self, tmp_path, offline_config, missing_semicolon_program, capsys) -> None:
        """Test --fix rewrites the file with the proposed patch."""
        source = write_source(tmp_path, "Main.java", missing_semicolon_program)

        main(["-c", str(offline_config), "--no-persist", "run", str(source), "--fix"])

        assert "println(total);" in source.read_text()
        assert "Patched lines: 4" in capsys.readouterr().out

    def test_translate_offline(self, tmp_path, offline_config, python_program, capsys) -> None:
        """Test translation without a gateway prints the skeleton."""
        source = write_source(tmp_path, "main.py", python_program)

        code = main(
            ["-c", str(offline_config), "--no-persist", "translate", str(source), "--from", "Python"]
        )

        assert code == 0
        assert "public class Main" in capsys.readouterr().out

    def test_mistakes_empty(self, offline_config, capsys) -> None:
        code = main(["-c", str(offline_config), "--no-persist", "mistakes"])
        assert code == 0
        assert capsys.readouterr().out == ""

    def test_metrics_flag(self, tmp_path, offline_config, hello_world, capsys) -> None:
        """Test --metrics dumps counters to stderr after the command."""
        source = write_source(tmp_path, "Main.java", hello_world)

        main(["-c", str(offline_config), "--no-persist", "--metrics", "run", str(source)])

        captured = capsys.readouterr()
        assert "ai_code_tutor_runs_total" in captured.err
        assert "ai_code_tutor_runs_total" not in captured.out

    def test_missing_config(self, tmp_path) -> None:
        """Test a missing configuration file exits with 1."""
        code = main(["-c", str(tmp_path / "nope.yaml"), "history"])
        assert code == 1

    def test_missing_source(self, tmp_path, offline_config) -> None:
        """Test an unreadable source file exits with 1."""
        missing = tmp_path / "Gone.java"
        code = main(["-c", str(offline_config), "--no-persist", "scan", str(missing)])
        assert code == 1

    def test_storage_failure_exits_cleanly(self, offline_config, capsys) -> None:
        """Test a store that cannot persist ends the command with 1, not a traceback."""
        with patch.object(MemoryStore, "remove", side_effect=StorageError("disk full")):
            code = main(["-c", str(offline_config), "--no-persist", "history", "--clear"])

        assert code == 1
        captured = capsys.readouterr()
        assert "command_failed" in captured.err
        assert "Traceback" not in captured.err
