"""Scenario runners, result persistence and pass/fail policy."""

from .client import ClientRunner
from .policy import evaluate_run, exit_code
from .results import ResultWriter, result_dir_name, scenario_slug
from .server import ServerRunner

__all__ = [
    "ClientRunner",
    "ServerRunner",
    "ResultWriter",
    "evaluate_run",
    "exit_code",
    "result_dir_name",
    "scenario_slug",
]
