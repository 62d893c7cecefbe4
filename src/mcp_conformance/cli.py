"""Command-line interface for the MCP conformance engine.

Examples:

    mcp-conformance client --command "python my_client.py" --scenario auth/basic-dcr
    mcp-conformance client --command "node client.js" --suite auth --expected-failures baseline.yml
    mcp-conformance client --scenario auth/scope-step-up
    mcp-conformance server --url http://localhost:3000/mcp --suite active
    mcp-conformance list --client
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape

from . import __version__
from .adapters import SubprocessClientAdapter
from .baseline import BaselineVerdict, ExpectedFailures
from .errors import ConformanceError
from .models import ScenarioRun
from .registry import ScenarioRegistry, build_client_registry, build_default_registry, build_server_registry
from .reporting import ConsoleReporter
from .runner import ClientRunner, ResultWriter, ServerRunner, evaluate_run, exit_code
from .shared.config import Settings, get_settings
from .shared.logger import setup_logging

logger = logging.getLogger(__name__)

err_console = Console(stderr=True)


class ConformanceCLIError(click.ClickException):
    """ClickException rendered in red through rich."""

    def show(self, file=None):
        err_console.print(f"[red]Error: {escape(self.format_message())}[/red]")


def load_env_config() -> None:
    """Load configuration from .env file."""
    env_file = Path(".env")
    if env_file.exists():
        load_dotenv(env_file)
        logger.debug(f"Loaded configuration from {env_file}")


def _configure(verbose: bool) -> Settings:
    settings = get_settings()
    setup_logging("DEBUG" if verbose else settings.log_level)
    return settings


def _load_baseline(path: Optional[str]) -> Optional[ExpectedFailures]:
    return ExpectedFailures.load(path) if path else None


def _check_selection(registry: ScenarioRegistry, scenario: Optional[str], suite: Optional[str]) -> None:
    if scenario and suite:
        raise ConformanceCLIError("Use either --scenario or --suite, not both")
    if scenario and scenario not in registry:
        raise ConformanceCLIError(
            f"Unknown {registry.kind} scenario: {scenario}\n"
            f"Available scenarios: {', '.join(registry.names())}"
        )
    if suite and suite not in registry.suites():
        raise ConformanceCLIError(
            f"Unknown {registry.kind} suite: {suite}\nAvailable suites: {', '.join(registry.suites())}"
        )


def _finish(reporter: ConsoleReporter, runs: List[ScenarioRun], verdicts: List[BaselineVerdict], suite_mode: bool) -> None:
    if suite_mode:
        reporter.print_suite_summary(runs, verdicts)
    sys.exit(exit_code(verdicts))


@click.group()
@click.version_option(version=__version__, prog_name="mcp-conformance")
def cli():
    """MCP conformance - check MCP clients and servers against the OAuth authorization spec."""
    load_env_config()


@cli.command()
@click.option("--command", "-c", "command", help="Client command; the server URL is appended as the last argument")
@click.option("--scenario", "-s", help="Scenario to run")
@click.option("--suite", help="Suite to run (core, extensions, auth, all)")
@click.option("--timeout", type=int, help="Client timeout in milliseconds")
@click.option(
    "--expected-failures",
    type=click.Path(dir_okay=False),
    help="YAML or JSON file of check ids allowed to fail",
)
@click.option("--output-dir", "-o", type=click.Path(file_okay=False), help="Directory for results")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging and JSON checks on stdout")
def client(command, scenario, suite, timeout, expected_failures, output_dir, verbose):
    """Run client scenarios against a client-under-test.

    Without --command the scenario's servers stay up (interactive mode)
    until Ctrl+C, then the checks are saved and printed.
    """
    settings = _configure(verbose)
    registry = build_client_registry()
    _check_selection(registry, scenario, suite)
    reporter = ConsoleReporter(verbose=verbose)
    writer = ResultWriter(output_dir or settings.results_dir)
    runner = ClientRunner(registry, settings, writer)

    try:
        baseline = _load_baseline(expected_failures)

        if command is None:
            if not scenario:
                raise ConformanceCLIError("Interactive mode needs --scenario")
            run = asyncio.run(runner.run_interactive(scenario, on_ready=reporter.print_interactive_ready))
            reporter.print_checks(run.checks)
            if run.result_dir:
                err_console.print(f"\n[dim]Checks saved to {run.result_dir}[/dim]")
            return

        if not scenario and not suite:
            raise ConformanceCLIError("Either --scenario or --suite is required")

        default_ms = settings.suite_timeout_ms if suite else settings.client_timeout_ms
        adapter = SubprocessClientAdapter(command, timeout=(timeout or default_ms) / 1000)

        if suite:
            runs = asyncio.run(runner.run_suite(suite, adapter))
        else:
            runs = [asyncio.run(runner.run_scenario(scenario, adapter))]
    except ConformanceError as e:
        raise ConformanceCLIError(str(e)) from e
    except ValueError as e:
        raise ConformanceCLIError(str(e)) from e

    verdicts = []
    for run in runs:
        verdict = evaluate_run(run, baseline)
        verdicts.append(verdict)
        if suite:
            err_console.rule(f"[bold]{run.scenario}[/bold]")
        reporter.print_client_run(run, verdict)
    _finish(reporter, runs, verdicts, suite_mode=bool(suite))


@cli.command()
@click.option("--url", required=True, help="URL of the MCP server under test")
@click.option("--scenario", "-s", help="Scenario to run")
@click.option("--suite", help="Suite to run (active, all, pending); default active")
@click.option(
    "--expected-failures",
    type=click.Path(dir_okay=False),
    help="YAML or JSON file of check ids allowed to fail",
)
@click.option("--output-dir", "-o", type=click.Path(file_okay=False), help="Directory for results")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging and JSON checks on stdout")
def server(url, scenario, suite, expected_failures, output_dir, verbose):
    """Run server scenarios against a live MCP server."""
    settings = _configure(verbose)
    registry = build_server_registry()
    _check_selection(registry, scenario, suite)
    if not scenario and not suite:
        suite = "active"

    reporter = ConsoleReporter(verbose=verbose)
    runner = ServerRunner(registry, settings, ResultWriter(output_dir or settings.results_dir, prefix="server"))

    try:
        baseline = _load_baseline(expected_failures)
        if suite:
            runs = asyncio.run(runner.run_suite(url, suite))
        else:
            runs = [asyncio.run(runner.run_scenario(url, scenario))]
    except ConformanceError as e:
        raise ConformanceCLIError(str(e)) from e

    verdicts = []
    for run in runs:
        verdict = evaluate_run(run, baseline)
        verdicts.append(verdict)
        if suite:
            err_console.rule(f"[bold]{run.scenario}[/bold]")
        reporter.print_server_run(run, verdict)
    _finish(reporter, runs, verdicts, suite_mode=bool(suite))


@cli.command("list")
@click.option("--client", "show_client", is_flag=True, help="List client scenarios")
@click.option("--server", "show_server", is_flag=True, help="List server scenarios")
def list_scenarios(show_client, show_server):
    """List available scenarios and suites."""
    if not show_client and not show_server:
        show_client = show_server = True

    reporter = ConsoleReporter()
    client_registry, server_registry = build_default_registry()
    registries = []
    if show_client:
        registries.append(("Client scenarios", client_registry))
    if show_server:
        registries.append(("Server scenarios", server_registry))

    for title, registry in registries:
        suites = [(suite, registry.suite(suite)) for suite in registry.suites()]
        reporter.print_scenario_list(title, registry.describe(), suites)


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
