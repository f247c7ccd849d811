"""
Integration Tests for cli.py.

Runs the CLI as a subprocess from the project root.
"""

import subprocess
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent.parent


def run_cli(*args: str) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, "cli.py", *args],
        cwd=PROJECT_ROOT,
        capture_output=True,
        text=True,
    )


class TestCLI:
    """Integration tests for the command-line interface."""

    def test_help_lists_actions(self):
        result = run_cli("--help")

        assert result.returncode == 0
        assert "--action" in result.stdout
        assert "watch" in result.stdout

    def test_config_action_displays_yaml_settings(self):
        result = run_cli("--action", "config")

        assert result.returncode == 0
        assert "Remote Settings (from YAML):" in result.stdout
        assert "pull_policy: guarded" in result.stdout

    def test_unknown_action_is_rejected(self):
        result = run_cli("--action", "explode")

        assert result.returncode == 2
        assert "Invalid value" in result.stderr
