"""
CLI interface for Case Critique.

Operator access to analysis, usage inspection and connection checks. Usage
commands always read and write the SQLite store so counters persist between
invocations.
"""

import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from case_critique.config.loader import (
    CritiqueConfig,
    StorageBackend,
    default_config,
    load_config,
)
from case_critique.core.criteria import MAX_SCORE, MAX_TOTAL_SCORE, ComprehensiveResult, CriterionKey
from case_critique.core.errors import CaseCritiqueError, http_status_for
from case_critique.core.prompts import SAMPLE_CASE_NOTES
from case_critique.core.usage_ledger import UsageLedger, UsageStats
from case_critique.service import build_analyzer, build_gateway, build_ledger
from case_critique.storage.repository import initialize_schema

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

_state = {"config_path": None}


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to YAML configuration file"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    """Case Critique CLI."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )
    _state["config_path"] = config
    if ctx.invoked_subcommand is None:
        console.print("Case Critique - Use --help to see available commands")


def _load_cli_config() -> CritiqueConfig:
    path = _state["config_path"]
    config = load_config(str(path)) if path else default_config()
    return replace(config, storage=replace(config.storage, backend=StorageBackend.SQLITE))


def _cli_ledger() -> UsageLedger:
    return build_ledger(_load_cli_config())


@app.command()
def init():
    """Initialize the usage database."""
    try:
        config = _load_cli_config()
        initialize_schema(config.storage.db_path)
        console.print(f"[green]✓[/] Database initialized at {config.storage.db_path}")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def sample(name: str = typer.Argument("good", help="Sample name: good or poor")):
    """Print one of the bundled sample case notes."""
    if name not in SAMPLE_CASE_NOTES:
        console.print(f"[red]Unknown sample:[/] {name}. Choose from: {', '.join(SAMPLE_CASE_NOTES)}")
        sys.exit(EXIT_CODE_FAIL)
    console.print(SAMPLE_CASE_NOTES[name], markup=False)


@app.command()
def analyze(
    case_file: Optional[Path] = typer.Argument(
        None,
        help="File containing the case note"
    ),
    sample_name: Optional[str] = typer.Option(
        None,
        "--sample",
        "-s",
        help="Analyze a bundled sample (good or poor) instead of a file"
    ),
    criterion: Optional[str] = typer.Option(
        None,
        "--criterion",
        "-k",
        help="Score a single criterion; all four are scored otherwise"
    ),
    identity: Optional[str] = typer.Option(
        None,
        "--identity",
        "-i",
        help="Identity to account usage against"
    ),
):
    """Critique a case note against the rubric."""
    try:
        if sample_name is not None:
            if sample_name not in SAMPLE_CASE_NOTES:
                raise ValueError(f"Unknown sample: {sample_name}")
            case_text = SAMPLE_CASE_NOTES[sample_name]
        elif case_file is not None:
            case_text = case_file.read_text(encoding="utf-8")
        else:
            raise ValueError("Provide a case note file or --sample")

        analyzer = build_analyzer(_load_cli_config())
        if criterion:
            result = analyzer.analyze_criterion(case_text, criterion, identity=identity)
            _display_criterion_result(CriterionKey.parse(criterion), result)
        else:
            _display_comprehensive_result(analyzer.analyze_comprehensive(case_text, identity=identity))
        sys.exit(EXIT_CODE_PASS)

    except CaseCritiqueError as e:
        console.print(
            f"[red]{type(e).__name__}[/] (HTTP {http_status_for(e)}): {str(e)}"
        )
        sys.exit(EXIT_CODE_FAIL)
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def usage(identity: str = typer.Argument("default", help="Identity to inspect")):
    """Show usage counters and remaining quota for an identity."""
    try:
        _display_usage(_cli_ledger().stats(identity))
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def simulate(
    identity: str = typer.Argument("default", help="Identity to charge"),
    requests: int = typer.Option(1, "--requests", "-n", min=0, help="Number of requests to record"),
):
    """Record synthetic requests against an identity (testing only)."""
    try:
        ledger = _cli_ledger()
        ledger.simulate(identity, requests)
        console.print(f"Simulated {requests} requests for {identity}")
        _display_usage(ledger.stats(identity))
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def clear(identity: str = typer.Argument("default", help="Identity to reset")):
    """Reset usage counters for an identity (testing only)."""
    try:
        ledger = _cli_ledger()
        ledger.clear(identity)
        console.print(f"Cleared usage data for {identity}")
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def check():
    """Test the connection to the model endpoint."""
    try:
        result = build_gateway(_load_cli_config()).check_connection()
    except CaseCritiqueError as e:
        console.print(f"[red]✗[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    if result.success:
        console.print(f"[green]✓[/] {result.message}")
        sys.exit(EXIT_CODE_PASS)
    console.print(f"[red]✗[/] {result.message}: {result.error}")
    sys.exit(EXIT_CODE_FAIL)


def _score_style(score: int, max_score: int) -> str:
    percentage = score / max_score * 100
    if percentage >= 80:
        return "green"
    if percentage >= 60:
        return "yellow"
    return "red"


def _score_label(score: int, max_score: int = MAX_TOTAL_SCORE) -> str:
    percentage = score / max_score * 100
    if percentage >= 80:
        return "Excellent"
    if percentage >= 60:
        return "Good"
    if percentage >= 40:
        return "Fair"
    return "Needs Improvement"


def _display_criterion_result(criterion: CriterionKey, result):
    style = _score_style(result.score, MAX_SCORE)
    console.print(f"\n[bold]{criterion.label}[/bold]: [{style}]{result.score}/{MAX_SCORE}[/]")
    console.print("-" * 40)
    console.print(result.feedback, markup=False)
    if result.strengths:
        console.print("\n[bold]Strengths[/bold]")
        for item in result.strengths:
            console.print(f"  + {item}", markup=False)
    if result.improvements:
        console.print("\n[bold]Improvements[/bold]")
        for item in result.improvements:
            console.print(f"  - {item}", markup=False)
    if result.evidence:
        console.print(f"\n[bold]Evidence:[/bold] {result.evidence}")


def _display_comprehensive_result(result: ComprehensiveResult):
    table = Table(title="Case Critique")
    table.add_column("Criterion")
    table.add_column("Score", justify="right")
    table.add_column("Feedback")
    for key in CriterionKey:
        entry = result.criterion(key)
        style = _score_style(entry.score, MAX_SCORE)
        table.add_row(key.label, f"[{style}]{entry.score}/{MAX_SCORE}[/]", entry.feedback)
    console.print(table)

    style = _score_style(result.total_score, MAX_TOTAL_SCORE)
    console.print(
        f"\n[bold]Total:[/bold] [{style}]{result.total_score}/{MAX_TOTAL_SCORE}[/] "
        f"({_score_label(result.total_score)})"
    )
    if result.total_score != result.computed_total:
        console.print(f"[yellow]Criterion scores sum to {result.computed_total}[/]")
    if result.overall_feedback:
        console.print(f"\n{result.overall_feedback}", markup=False)


def _display_usage(stats: UsageStats):
    table = Table(title=f"Usage for {stats.identity}")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Total requests", f"{stats.total_requests:,}")
    table.add_row("Total tokens (approx.)", f"{stats.total_tokens:,}")
    table.add_row("Requests today", f"{stats.daily_requests:,}")
    table.add_row("Requests this minute", f"{stats.minute_requests:,}")
    table.add_row("Daily remaining", f"{stats.daily_remaining:,}")
    table.add_row("Minute remaining", f"{stats.minute_remaining:,}")
    table.add_row("Can proceed", "yes" if stats.can_proceed else "no")
    table.add_row("Next minute reset", stats.next_minute_reset.isoformat(timespec="seconds"))
    console.print(table)


if __name__ == "__main__":
    app()
