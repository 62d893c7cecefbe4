"""Terminal reporting with rich."""

import json
from typing import Iterable, List, Optional, Sequence, Tuple

from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table
from rich.text import Text

from .baseline import BaselineVerdict
from .models import CheckCounts, CheckStatus, ConformanceCheck, ScenarioRun, ScenarioUrls
from .runner.results import checks_to_json

STATUS_STYLES = {
    CheckStatus.SUCCESS: "green",
    CheckStatus.FAILURE: "red",
    CheckStatus.WARNING: "yellow",
    CheckStatus.INFO: "cyan",
    CheckStatus.SKIPPED: "dim",
}


def format_check(check: ConformanceCheck, id_width: int = 0, status_width: int = 0) -> Text:
    """``<timestamp> [<id>] <STATUS> <description>`` with a colored status."""
    line = Text()
    line.append(check.timestamp, style="dim")
    line.append(f" [{check.id.ljust(id_width)}] ")
    line.append(check.status.value.ljust(status_width), style=STATUS_STYLES.get(check.status, ""))
    line.append(f" {check.description}")
    return line


def format_checks(checks: Sequence[ConformanceCheck]) -> List[Text]:
    if not checks:
        return []
    id_width = max(len(check.id) for check in checks)
    status_width = max(len(check.status.value) for check in checks)
    return [format_check(check, id_width, status_width) for check in checks]


def summary_line(counts: CheckCounts) -> str:
    return f"Passed: {counts.passed}/{counts.denominator}, {counts.failed} failed, {counts.warnings} warnings"


class ConsoleReporter:
    """Prints runs to the terminal.

    Human-readable output goes to stderr. In verbose mode the raw checks
    JSON goes to stdout so it can be piped to jq.
    """

    def __init__(
        self,
        console: Optional[Console] = None,
        out: Optional[Console] = None,
        verbose: bool = False,
    ):
        self.console = console or Console(stderr=True)
        self.out = out or Console()
        self.verbose = verbose

    def print_checks(self, checks: Sequence[ConformanceCheck]) -> None:
        if self.verbose:
            self.out.print_json(checks_to_json(list(checks)))
            return
        self.console.print("[bold]Checks:[/bold]")
        for check, line in zip(checks, format_checks(checks)):
            self.console.print(line, highlight=False, soft_wrap=True)
            if "outgoing" in check.id and "response" in check.id:
                self.console.print()

    def _print_problem_checks(self, checks: Sequence[ConformanceCheck], status: CheckStatus, title: str) -> None:
        matching = [check for check in checks if check.status == status]
        if not matching:
            return
        color = STATUS_STYLES[status]
        label = "Error" if status == CheckStatus.FAILURE else "Warning"
        self.console.print()
        self.console.print(f"[bold {color}]{title}:[/bold {color}]")
        for check in matching:
            self.console.print(Text(f"  - {check.name}: {check.description}"), soft_wrap=True)
            if check.error_message:
                self.console.print(Text(f"    {label}: {check.error_message}"), soft_wrap=True)

    def _print_verdict(self, verdict: Optional[BaselineVerdict], passed: bool) -> None:
        if verdict is not None and verdict.expected_failures:
            self.console.print(
                f"\n[yellow]Expected failures (baseline): {', '.join(verdict.expected_failures)}[/yellow]"
            )
        if verdict is not None and verdict.stale_entries:
            self.console.print(
                f"[dim]Baseline entries no longer failing: {', '.join(verdict.stale_entries)}[/dim]"
            )
        if passed:
            self.console.print("\n[bold green]✅ OVERALL: PASSED[/bold green]")
        else:
            self.console.print("\n[bold red]❌ OVERALL: FAILED[/bold red]")

    def print_client_run(self, run: ScenarioRun, verdict: Optional[BaselineVerdict] = None) -> None:
        outcome = run.outcome
        if outcome is not None and not outcome.succeeded:
            self.console.print(f"\n[yellow]{outcome.describe().capitalize()}[/yellow]")
            if outcome.stdout:
                self.console.print(Text(f"\nStdout:\n{outcome.stdout}"))
            if outcome.stderr:
                self.console.print(Text(f"\nStderr:\n{outcome.stderr}"))

        self.print_checks(run.checks)
        self.console.print("\n[bold]Test Results:[/bold]")
        self.console.print(summary_line(run.counts))

        if run.error:
            self.console.print(f"\n[red]⚠️  SCENARIO ERROR - {run.error}[/red]")
        if outcome is not None and outcome.timed_out:
            self.console.print("\n[yellow]⚠️  CLIENT TIMED OUT - Test incomplete[/yellow]")
        elif outcome is not None and (outcome.exit_code != 0 or outcome.error):
            note = " (allowed for this scenario)" if run.allow_client_error else " - Test may be incomplete"
            self.console.print(
                f"\n[yellow]⚠️  CLIENT EXITED WITH ERROR (code {outcome.exit_code}){note}[/yellow]"
            )

        self._print_problem_checks(run.checks, CheckStatus.FAILURE, "Failed Checks")
        self._print_problem_checks(run.checks, CheckStatus.WARNING, "Warning Checks")
        if run.result_dir:
            self.console.print(f"\n[dim]Results saved to {run.result_dir}[/dim]")
        self._print_verdict(verdict, verdict.passed if verdict is not None else not run.failing_ids(True))

    def print_server_run(self, run: ScenarioRun, verdict: Optional[BaselineVerdict] = None) -> None:
        self.print_checks(run.checks)
        self.console.print("\n[bold]Test Results:[/bold]")
        self.console.print(summary_line(run.counts))
        if any(check.is_failure for check in run.checks):
            self._print_problem_checks(run.checks, CheckStatus.FAILURE, "Failed Checks")
            self.console.print()
            self.console.print(Markdown(run.description))
        if run.result_dir:
            self.console.print(f"\n[dim]Results saved to {run.result_dir}[/dim]")
        self._print_verdict(verdict, verdict.passed if verdict is not None else not run.failing_ids(False))

    def print_suite_summary(self, runs: Sequence[ScenarioRun], verdicts: Sequence[BaselineVerdict]) -> None:
        """Table with one row per scenario plus totals."""
        table = Table(title="Summary")
        table.add_column("", width=2)
        table.add_column("Scenario", style="cyan")
        table.add_column("Passed", justify="right", style="green")
        table.add_column("Failed", justify="right", style="red")
        table.add_column("Warnings", justify="right", style="yellow")
        table.add_column("Notes", style="dim")

        total = CheckCounts()
        for run, verdict in zip(runs, verdicts):
            counts = run.counts
            total.passed += counts.passed
            total.failed += counts.failed
            total.warnings += counts.warnings

            notes = []
            if run.error:
                notes.append(run.error)
            elif run.outcome is not None and not run.outcome.succeeded:
                notes.append(run.outcome.describe())
            if verdict.expected_failures:
                notes.append(f"expected: {', '.join(verdict.expected_failures)}")
            icon = "[green]✓[/green]" if verdict.passed else "[red]✗[/red]"
            table.add_row(icon, run.scenario, str(counts.passed), str(counts.failed), str(counts.warnings), "; ".join(notes))

        self.console.print()
        self.console.print(table)
        self.console.print(
            f"\nTotal: {total.passed} passed, {total.failed} failed, {total.warnings} warnings "
            f"across {len(runs)} scenario(s)"
        )
        failed = [verdict.scenario for verdict in verdicts if not verdict.passed]
        self._print_verdict(None, not failed)

    def print_interactive_ready(self, name: str, urls: ScenarioUrls) -> None:
        self.console.print(f"Starting scenario: [cyan]{name}[/cyan]")
        self.console.print(f"Server URL: [bold]{urls.server_url}[/bold]")
        if urls.context:
            self.console.print(Text(f"Context: {json.dumps(urls.context)}"))
        self.console.print("[dim]Press Ctrl+C to stop and save checks...[/dim]")

    def print_scenario_list(self, title: str, rows: Iterable[Tuple[str, str]], suites: Sequence[Tuple[str, List[str]]] = ()) -> None:
        table = Table(title=title)
        table.add_column("Scenario", style="cyan")
        table.add_column("Description")
        for name, description in rows:
            table.add_row(name, Text(description))
        self.out.print(table)
        for suite, names in suites:
            self.out.print(f"[bold]{suite}[/bold] [dim]({len(names)})[/dim]: {', '.join(names)}")
