"""Unit tests for CLI interface."""

import logging
from pathlib import Path

import pytest
import structlog
import typer
import yaml
from typer.testing import CliRunner

from opgraph.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers bound to the runner's captured streams."""
    yield
    structlog.reset_defaults()
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)


@pytest.fixture
def unordered_file(tmp_path: Path) -> Path:
    """Three unconstrained operations, not in alphabetical order."""
    path = tmp_path / "unordered.yaml"
    path.write_text(yaml.safe_dump([{"id": "zeta"}, {"id": "alpha"}, {"id": "mid"}]))
    return path


class TestCLI:
    """Test CLI interface."""

    def test_cli_app_structure(self):
        """Test CLI app structure."""
        assert isinstance(app, typer.Typer)

    def test_check_valid(self, chain_file: Path):
        """A valid graph passes with counts."""
        result = runner.invoke(app, ["check", str(chain_file)])

        assert result.exit_code == 0
        assert "PASS: Graph is valid!" in result.stdout
        assert "Operations: 3" in result.stdout
        assert "Edges: 2" in result.stdout

    def test_check_cycle(self, cyclic_file: Path):
        """A cyclic graph fails and prints the graph description."""
        result = runner.invoke(app, ["check", str(cyclic_file)])

        assert result.exit_code == 1
        assert "ERROR: Check failed" in result.stdout
        assert "not a valid graph" in result.stdout
        assert "'A' -> 'B' (y)" in result.stdout

    def test_check_unresolved_prerequisite(self, unresolved_file: Path):
        """Unknown prerequisites fail by default."""
        result = runner.invoke(app, ["check", str(unresolved_file)])

        assert result.exit_code == 1
        assert "unresolved" in result.stdout

    def test_check_unresolved_ignored_by_config(
        self, unresolved_file: Path, ignore_config_file: Path
    ):
        """The config file can downgrade unknown prerequisites to a warning."""
        result = runner.invoke(
            app, ["check", str(unresolved_file), "--config", str(ignore_config_file)]
        )

        assert result.exit_code == 0
        assert "PASS: Graph is valid!" in result.stdout
        assert "Ignored 1 unresolved prerequisites" in result.stdout

    def test_check_missing_config(self, chain_file: Path, tmp_path: Path):
        """A missing config file is an error."""
        result = runner.invoke(
            app, ["check", str(chain_file), "--config", str(tmp_path / "missing.yaml")]
        )

        assert result.exit_code == 1
        assert "Configuration file not found" in result.stdout

    def test_check_invalid_definition(self, tmp_path: Path):
        """Malformed definitions fail with the entry position."""
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.safe_dump([{"id": "a", "needs": ["b"]}]))

        result = runner.invoke(app, ["check", str(path)])

        assert result.exit_code == 1
        assert "Operation #0" in result.stdout

    def test_missing_definition_file(self, tmp_path: Path):
        """Typer rejects a path that does not exist."""
        result = runner.invoke(app, ["check", str(tmp_path / "missing.yaml")])

        assert result.exit_code == 2

    def test_plan_order(self, chain_file: Path):
        """Operations are listed predecessors first."""
        result = runner.invoke(app, ["plan", str(chain_file), "--log-level", "ERROR"])

        assert result.exit_code == 0
        out = result.stdout
        assert out.index("build") < out.index("test") < out.index("deploy")

    def test_plan_lexicographic(self, unordered_file: Path):
        """The tie-break option changes the order of unconstrained operations."""
        insertion = runner.invoke(app, ["plan", str(unordered_file), "--log-level", "ERROR"])
        lexicographic = runner.invoke(
            app,
            ["plan", str(unordered_file), "--tie-break", "lexicographic", "--log-level", "ERROR"],
        )

        assert insertion.exit_code == 0
        assert lexicographic.exit_code == 0
        out = insertion.stdout
        assert out.index("zeta") < out.index("alpha") < out.index("mid")
        out = lexicographic.stdout
        assert out.index("alpha") < out.index("mid") < out.index("zeta")

    def test_plan_cycle(self, cyclic_file: Path):
        """Planning an invalid graph fails."""
        result = runner.invoke(app, ["plan", str(cyclic_file)])

        assert result.exit_code == 1
        assert "ERROR: Planning failed" in result.stdout

    def test_batches(self, chain_file: Path):
        """Each level is printed with its operations."""
        result = runner.invoke(app, ["batches", str(chain_file), "--log-level", "ERROR"])

        assert result.exit_code == 0
        out = result.stdout
        assert out.index("build") < out.index("test") < out.index("deploy")

    def test_graph_describe(self, cyclic_file: Path):
        """graph works on invalid graphs and warns about them."""
        result = runner.invoke(app, ["graph", str(cyclic_file)])

        assert result.exit_code == 0
        assert "Solver: 2 operations, 2 edges" in result.stdout
        assert "WARNING: Graph is not valid" in result.stdout

    def test_graph_dot(self, chain_file: Path, tmp_path: Path):
        """--dot writes a Graphviz file."""
        dot_file = tmp_path / "out" / "chain.dot"

        result = runner.invoke(app, ["graph", str(chain_file), "--dot", str(dot_file)])

        assert result.exit_code == 0
        assert "Wrote DOT graph" in result.stdout
        text = dot_file.read_text()
        assert text.startswith("digraph OperationGraph {")
        assert '"build" -> "test"' in text
