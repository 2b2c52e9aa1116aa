"""Integration tests for CLI functionality."""

import json
import subprocess
import sys


def run_cli(*args, stdin=None):
    return subprocess.run(
        [sys.executable, "-m", "mathpad_pkg.cli", *args],
        input=stdin,
        capture_output=True,
        text=True,
        timeout=30,
    )


def test_cli_version():
    """Test --version flag."""
    result = run_cli("--version")
    assert result.returncode == 0
    assert result.stdout.strip() != ""


def test_cli_health_check():
    """Test --health-check command."""
    result = run_cli("--health-check")
    assert result.returncode in [0, 1]
    assert "health check" in result.stdout.lower()
    assert "Results:" in result.stdout


def test_cli_eval_json():
    """Test CLI evaluation with JSON output."""
    result = run_cli("--eval", "2+2", "--output-format", "json")
    assert result.returncode == 0
    data = json.loads(result.stdout.strip())
    assert data["ok"] is True
    assert data["result"] == "4"


def test_cli_eval_human():
    """Test CLI evaluation with human output."""
    result = run_cli("-e", "sqrt(16) * 2")
    assert result.returncode == 0
    assert result.stdout.strip() == "8"


def test_cli_eval_error():
    """Test CLI evaluation error exit code."""
    result = run_cli("-e", "1/0")
    assert result.returncode == 1
    assert "Division by zero" in result.stdout


def test_cli_solve_stdin():
    """Test solving a document read from stdin."""
    result = run_cli(stdin="a: 2\nb: 3\na + b->\n")
    assert result.returncode == 0
    assert "a + b-> 5" in result.stdout


def test_cli_solve_file_with_constants(tmp_path):
    """Test solving a file against a constants file."""
    doc = tmp_path / "notes.txt"
    doc.write_text("f->\nf = g * 2\n", encoding="utf-8")
    constants = tmp_path / "constants.txt"
    constants.write_text("g: 9.8\n", encoding="utf-8")
    result = run_cli(str(doc), "--constants", str(constants))
    assert result.returncode == 0
    assert result.stdout.splitlines()[0] == "f-> 19.6"


def test_cli_solve_json():
    """Test solve output as JSON."""
    result = run_cli("--output-format", "json", stdin="x[0:10]:\nx**2 = 9")
    assert result.returncode == 0
    data = json.loads(result.stdout)
    assert data["ok"] is True
    assert data["solved"] == 1
    assert data["text"] == "x[0:10]: 3\nx**2 = 9"


def test_cli_solve_errors():
    """Test errors go to stderr with a failing exit code."""
    result = run_cli(stdin="q->")
    assert result.returncode == 1
    assert "Line 1: Variable 'q' has no value to output" in result.stderr


def test_cli_places():
    """Test --places flag."""
    result = run_cli("--places", "2", stdin="x->\nx = 1/3")
    assert result.stdout.splitlines()[0] == "x-> 0.33"


def test_cli_clear(tmp_path):
    """Test --clear flag."""
    doc = tmp_path / "notes.txt"
    doc.write_text("a: 1\nb-> 2", encoding="utf-8")
    result = run_cli("--clear", "output", str(doc))
    assert result.returncode == 0
    assert result.stdout.rstrip("\n") == "a: 1\nb->"


def test_cli_missing_file():
    """Test a missing document file."""
    result = run_cli("does-not-exist.txt")
    assert result.returncode == 1
    assert "Error" in result.stdout
