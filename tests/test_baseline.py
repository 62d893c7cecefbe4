"""Tests for the expected-failures baseline and the pass/fail policy."""

import json

import pytest

from mcp_conformance.baseline import CLIENT_EXIT_ERROR_ID, CLIENT_TIMEOUT_ID, ExpectedFailures
from mcp_conformance.errors import BaselineError
from mcp_conformance.models import CheckStatus, ClientOutcome, ConformanceCheck, ScenarioRun
from mcp_conformance.runner.policy import SCENARIO_ERROR_ID, evaluate_run, exit_code


def run_with(statuses, scenario="auth/scope-step-up", mode="client", **kwargs) -> ScenarioRun:
    checks = [
        ConformanceCheck(id=check_id, name=check_id, description="d", status=status)
        for check_id, status in statuses
    ]
    return ScenarioRun(scenario=scenario, mode=mode, checks=checks, **kwargs)


class TestLoading:
    """Test baseline file parsing."""

    def test_flat_yaml(self, tmp_path):
        """Test a flat file applies to both modes."""
        path = tmp_path / "baseline.yml"
        path.write_text("auth/scope-step-up:\n  - scope-step-up-escalation\n")
        baseline = ExpectedFailures.load(path)

        assert baseline.allowed("auth/scope-step-up") == ["scope-step-up-escalation"]
        assert baseline.allowed("auth/scope-step-up", "server") == ["scope-step-up-escalation"]
        assert baseline.source == str(path)

    def test_sectioned_json(self, tmp_path):
        """Test client and server sections, string values and null wildcards."""
        path = tmp_path / "baseline.json"
        path.write_text(json.dumps({
            "client": {"auth/basic-dcr": "pkce-s256-method-used"},
            "server": {"tools-call-simple-text": None},
        }))
        baseline = ExpectedFailures.load(path)

        assert baseline.allowed("auth/basic-dcr", "client") == ["pkce-s256-method-used"]
        assert baseline.allowed("auth/basic-dcr", "server") == []
        assert baseline.allowed("tools-call-simple-text", "server") == ["*"]
        assert baseline.scenario_count() == 2

    def test_empty_file(self, tmp_path):
        """Test an empty file allows nothing."""
        path = tmp_path / "empty.yml"
        path.write_text("")
        assert ExpectedFailures.load(path).scenario_count() == 0

    @pytest.mark.parametrize(
        "content",
        [
            "- a\n- b\n",
            "client:\n  s: [a]\nother:\n  s: [b]\n",
            "s:\n  nested: true\n",
            "s: [1, 2]\n",
            "s: [unclosed\n",
        ],
    )
    def test_malformed(self, tmp_path, content):
        """Test shape and syntax errors raise BaselineError."""
        path = tmp_path / "bad.yml"
        path.write_text(content)
        with pytest.raises(BaselineError):
            ExpectedFailures.load(path)

    def test_missing_file(self, tmp_path):
        """Test an unreadable file raises BaselineError."""
        with pytest.raises(BaselineError):
            ExpectedFailures.load(tmp_path / "nope.yml")


class TestEvaluation:
    """Test classifying failures against the baseline."""

    def test_expected_unexpected_and_stale(self):
        """Test each failing id lands in exactly one bucket."""
        baseline = ExpectedFailures.from_data({"auth/scope-step-up": ["a", "gone"]})
        run = run_with([("a", CheckStatus.FAILURE), ("b", CheckStatus.FAILURE), ("c", CheckStatus.SUCCESS)])
        verdict = baseline.evaluate(run)

        assert verdict.expected_failures == ["a"]
        assert verdict.unexpected_failures == ["b"]
        assert verdict.stale_entries == ["gone"]
        assert not verdict.passed

    def test_stale_entries_do_not_fail(self):
        """Test a baseline entry that now passes is reported but harmless."""
        baseline = ExpectedFailures.from_data({"auth/scope-step-up": ["a"]})
        verdict = baseline.evaluate(run_with([("a", CheckStatus.SUCCESS)]))

        assert verdict.passed
        assert verdict.stale_entries == ["a"]

    def test_wildcard(self):
        """Test * excuses every failure of the scenario only."""
        baseline = ExpectedFailures.from_data({"auth/scope-step-up": "*"})
        verdict = baseline.evaluate(run_with([("a", CheckStatus.FAILURE), ("b", CheckStatus.WARNING)]))
        assert verdict.passed
        assert verdict.expected_failures == ["a", "b"]

        other = baseline.evaluate(run_with([("a", CheckStatus.FAILURE)], scenario="auth/basic-dcr"))
        assert not other.passed

    def test_warnings_count_in_client_mode_only(self):
        """Test WARNING fails client runs but not server runs."""
        baseline = ExpectedFailures()
        assert not baseline.evaluate(run_with([("w", CheckStatus.WARNING)], mode="client")).passed
        assert baseline.evaluate(run_with([("w", CheckStatus.WARNING)], mode="server")).passed
        assert not baseline.evaluate(run_with([("w", CheckStatus.WARNING)], mode="server"), count_warnings=True).passed

    def test_adapter_pseudo_ids(self):
        """Test timeouts and exit errors map onto pseudo-ids."""
        baseline = ExpectedFailures.from_data({"auth/scope-step-up": [CLIENT_TIMEOUT_ID]})
        timed_out = run_with([], outcome=ClientOutcome(exit_code=-1, timed_out=True))
        crashed = run_with([], outcome=ClientOutcome(exit_code=2))

        assert baseline.evaluate(timed_out).passed
        verdict = baseline.evaluate(crashed)
        assert verdict.unexpected_failures == [CLIENT_EXIT_ERROR_ID]

    def test_allowed_client_error(self):
        """Test scenarios that expect the client to abort are not penalized."""
        run = run_with([], outcome=ClientOutcome(exit_code=1), allow_client_error=True)
        assert ExpectedFailures().evaluate(run).passed

    def test_checks_are_not_modified(self):
        """Test evaluation never rewrites statuses."""
        run = run_with([("a", CheckStatus.FAILURE)])
        ExpectedFailures.from_data({"auth/scope-step-up": ["a"]}).evaluate(run)
        assert run.checks[0].status == CheckStatus.FAILURE


class TestPolicy:
    """Test the run-level policy and exit codes."""

    def test_engine_error_is_never_excused(self):
        """Test a scenario error fails even under a wildcard baseline."""
        baseline = ExpectedFailures.from_data({"auth/scope-step-up": "*"})
        verdict = evaluate_run(run_with([], error="bind failed"), baseline)
        assert verdict.unexpected_failures == [SCENARIO_ERROR_ID]
        assert not verdict.passed

    def test_passes_without_baseline(self):
        """Test a clean run passes and a failing one does not."""
        assert evaluate_run(run_with([("a", CheckStatus.SUCCESS), ("i", CheckStatus.INFO)])).passed
        assert not evaluate_run(run_with([("a", CheckStatus.FAILURE)])).passed

    def test_exit_code(self):
        """Test exit code 0 only when every verdict passed."""
        good = evaluate_run(run_with([("a", CheckStatus.SUCCESS)]))
        bad = evaluate_run(run_with([("a", CheckStatus.FAILURE)]))
        assert exit_code([good, good]) == 0
        assert exit_code([good, bad]) == 1
        assert exit_code([]) == 0
