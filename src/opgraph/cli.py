"""Command-line interface for opgraph."""

from pathlib import Path

import structlog
import typer
from rich.console import Console
from rich.table import Table
from structlog.contextvars import bound_contextvars

from .config import OpGraphConfig, TieBreak, load_config
from .dependency.solver import Solver
from .execution.traversal import Traversal
from .loader import load_operations
from .observability import configure_logging
from .utils.exceptions import GraphInvalid, OpGraphError

app = typer.Typer(
    name="opgraph",
    help="opgraph - resolve an execution order for interdependent operations",
    add_completion=False,
)

console = Console()
logger = structlog.get_logger(__name__)


def _setup(config_file: Path | None, log_level: str | None, json_logs: bool) -> OpGraphConfig:
    """Load configuration and configure logging, CLI flags winning over the file."""
    config = load_config(config_file)
    configure_logging(
        level=log_level or config.logging.level,
        json_logs=json_logs or config.logging.json_logs,
        log_file=config.logging.file,
    )
    return config


def _build_solver(definition_file: Path, config: OpGraphConfig) -> Solver:
    with bound_contextvars(definition=str(definition_file)):
        operations = load_operations(definition_file)
        return Solver(operations, unknown_prerequisites=config.traversal.unknown_prerequisites)


def _fail(message: str, error: Exception, solver: Solver | None = None) -> typer.Exit:
    console.print(f"\n[red]ERROR: {message}:[/red] {error}")
    if solver is not None and isinstance(error, GraphInvalid):
        console.print("\n[dim]Graph:[/dim]")
        console.print(solver.describe(), markup=False, highlight=False)
    return typer.Exit(code=1)


ConfigOption = typer.Option(None, "--config", "-c", help="Configuration file")
LogLevelOption = typer.Option(
    None, "--log-level", help="Log verbosity: DEBUG, INFO, WARNING, ERROR"
)
JsonLogsOption = typer.Option(False, "--json-logs", help="Emit logs as JSON")


@app.command()
def check(
    definition_file: Path = typer.Argument(..., help="Operation definition file", exists=True),
    config_file: Path | None = ConfigOption,
    log_level: str | None = LogLevelOption,
    json_logs: bool = JsonLogsOption,
) -> None:
    """
    Validate that a valid execution order exists.

    Examples:
        opgraph check ops.yaml
        opgraph check ops.json --config opgraph.yaml
    """
    console.print(f"\n[bold blue]Checking:[/bold blue] {definition_file}\n")

    solver = None
    try:
        config = _setup(config_file, log_level, json_logs)
        solver = _build_solver(definition_file, config)
        solver.validate()
    except (OpGraphError, ValueError, FileNotFoundError) as e:
        raise _fail("Check failed", e, solver) from e

    console.print("[green]PASS: Graph is valid![/green]")
    console.print(f"  Operations: {len(solver)}")
    console.print(f"  Edges: {len(solver.edges())}")
    if solver.overridden_edges():
        console.print(f"  Overridden by prerequisites: {len(solver.overridden_edges())}")
    unresolved = solver.unresolved_prerequisites()
    if unresolved:
        console.print(
            f"[yellow]WARNING: Ignored {sum(len(v) for v in unresolved.values())}"
            " unresolved prerequisites[/yellow]"
        )


@app.command()
def plan(
    definition_file: Path = typer.Argument(..., help="Operation definition file", exists=True),
    tie_break: TieBreak | None = typer.Option(
        None, "--tie-break", help="Order among unconstrained operations"
    ),
    seed: int | None = typer.Option(None, "--seed", help="Seed for the random tie-break"),
    config_file: Path | None = ConfigOption,
    log_level: str | None = LogLevelOption,
    json_logs: bool = JsonLogsOption,
) -> None:
    """
    Print one valid execution order (dry run).

    Examples:
        opgraph plan ops.yaml
        opgraph plan ops.yaml --tie-break lexicographic
        opgraph plan ops.yaml --tie-break random --seed 7
    """
    solver = None
    try:
        config = _setup(config_file, log_level, json_logs)
        solver = _build_solver(definition_file, config)
        traversal = Traversal(
            solver,
            tie_break=tie_break or config.traversal.tie_break,
            seed=seed if seed is not None else config.traversal.seed,
        )
        ordered = traversal.dry_run()
    except (OpGraphError, ValueError, FileNotFoundError) as e:
        raise _fail("Planning failed", e, solver) from e

    table = Table(title=f"Execution Order ({traversal.tie_break.value} tie-break)")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Operation", style="cyan")
    table.add_column("After", style="green")

    for position, operation in enumerate(ordered, start=1):
        after = ", ".join(str(op.id) for op in solver.predecessors(operation.id))
        table.add_row(str(position), str(operation.id), after or "-")

    console.print(table)


@app.command()
def batches(
    definition_file: Path = typer.Argument(..., help="Operation definition file", exists=True),
    config_file: Path | None = ConfigOption,
    log_level: str | None = LogLevelOption,
    json_logs: bool = JsonLogsOption,
) -> None:
    """
    Print operations grouped into levels that may run concurrently.

    Examples:
        opgraph batches ops.yaml
    """
    solver = None
    try:
        config = _setup(config_file, log_level, json_logs)
        solver = _build_solver(definition_file, config)
        levels = Traversal.from_config(solver, config.traversal).batches()
    except (OpGraphError, ValueError, FileNotFoundError) as e:
        raise _fail("Batching failed", e, solver) from e

    table = Table(title="Execution Batches")
    table.add_column("Batch", justify="right", style="dim")
    table.add_column("Size", justify="right", style="green")
    table.add_column("Operations", style="cyan")

    for level, batch in enumerate(levels):
        table.add_row(str(level), str(len(batch)), ", ".join(str(op.id) for op in batch))

    console.print(table)


@app.command()
def graph(
    definition_file: Path = typer.Argument(..., help="Operation definition file", exists=True),
    dot: Path | None = typer.Option(
        None, "--dot", help="Write the graph as a DOT file (for Graphviz) instead of printing"
    ),
    config_file: Path | None = ConfigOption,
    log_level: str | None = LogLevelOption,
    json_logs: bool = JsonLogsOption,
) -> None:
    """
    Show the derived graph. Works on invalid graphs too.

    Examples:
        opgraph graph ops.yaml
        opgraph graph ops.yaml --dot ops.dot
    """
    try:
        config = _setup(config_file, log_level, json_logs)
        solver = _build_solver(definition_file, config)
    except (OpGraphError, ValueError, FileNotFoundError) as e:
        raise _fail("Could not build graph", e) from e

    if dot:
        dot.parent.mkdir(parents=True, exist_ok=True)
        dot.write_text(solver.to_dot() + "\n", encoding="utf-8")
        console.print(f"[green]Wrote DOT graph to {dot}[/green]")
        return

    console.print(solver.describe(), markup=False, highlight=False)
    if not solver.is_valid():
        console.print("\n[yellow]WARNING: Graph is not valid (see 'opgraph check')[/yellow]")


if __name__ == "__main__":
    app()
