"""Tests for the check ledger and the check/run models."""

import threading

import pytest

from mcp_conformance import spec_references as refs
from mcp_conformance.ledger import CheckLedger
from mcp_conformance.models import (
    CheckCounts,
    CheckStatus,
    ClientOutcome,
    ConformanceCheck,
    ScenarioRun,
)


def make_check(check_id: str, status: CheckStatus) -> ConformanceCheck:
    return ConformanceCheck(id=check_id, name=check_id, description="observed", status=status)


class TestCheckLedger:
    """Test the append-only ledger."""

    def test_record_preserves_order(self, ledger):
        """Test checks come back in the order they were recorded."""
        ledger.record("a", "A", "first", CheckStatus.SUCCESS)
        ledger.record("b", "B", "second", CheckStatus.FAILURE)
        ledger.record("a", "A", "third", CheckStatus.WARNING)

        assert [c.description for c in ledger.snapshot()] == ["first", "second", "third"]
        assert [c.id for c in ledger.snapshot()] == ["a", "b", "a"]
        assert len(ledger) == 3

    def test_snapshot_is_a_copy(self, ledger):
        """Test mutating a snapshot does not touch the ledger."""
        ledger.record("a", "A", "first", CheckStatus.SUCCESS)
        snapshot = ledger.snapshot()
        snapshot.clear()
        assert len(ledger) == 1

    def test_find_returns_first_match(self, ledger):
        """Test find and has look up by id."""
        ledger.record("a", "A", "first", CheckStatus.SUCCESS)
        ledger.record("a", "A", "second", CheckStatus.FAILURE)

        assert ledger.find("a").description == "first"
        assert ledger.has("a")
        assert not ledger.has("missing")
        assert ledger.find("missing") is None

    def test_record_keeps_explicit_timestamp(self, ledger):
        """Test a handler-provided timestamp is used verbatim."""
        check = ledger.record("a", "A", "x", CheckStatus.INFO, timestamp="2025-01-01T00:00:00.000Z")
        assert check.timestamp == "2025-01-01T00:00:00.000Z"

    def test_concurrent_appends(self):
        """Test appends from many threads are all kept."""
        ledger = CheckLedger("threads")

        def worker(n):
            for i in range(100):
                ledger.record(f"t{n}", "T", str(i), CheckStatus.INFO)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(ledger) == 800
        # Per-thread order survives interleaving
        t0 = [c.description for c in ledger if c.id == "t0"]
        assert t0 == [str(i) for i in range(100)]


class TestConformanceCheck:
    """Test check serialization."""

    def test_to_dict_uses_camel_case(self):
        """Test specReferences and errorMessage keys in JSON output."""
        check = ConformanceCheck(
            id="pkce-code-challenge-sent",
            name="PKCE Code Challenge",
            description="missing",
            status=CheckStatus.FAILURE,
            spec_references=[refs.MCP_PKCE],
            error_message="no code_challenge",
        )
        data = check.to_dict()
        assert data["status"] == "FAILURE"
        assert data["specReferences"][0]["id"] == refs.MCP_PKCE.id
        assert data["errorMessage"] == "no code_challenge"
        assert "details" not in data
        assert data["timestamp"].endswith("Z")

    def test_alias_population(self):
        """Test checks can be built from their JSON form."""
        check = ConformanceCheck(
            id="x", name="X", description="d", status="SUCCESS",
            specReferences=[{"id": "RFC-1", "url": "https://example.com"}],
        )
        assert check.status == CheckStatus.SUCCESS
        assert check.spec_references[0].id == "RFC-1"


class TestCheckCounts:
    """Test tallies."""

    def test_from_checks(self):
        """Test each status lands in its own bucket."""
        checks = [
            make_check("a", CheckStatus.SUCCESS),
            make_check("b", CheckStatus.SUCCESS),
            make_check("c", CheckStatus.FAILURE),
            make_check("d", CheckStatus.WARNING),
            make_check("e", CheckStatus.INFO),
            make_check("f", CheckStatus.SKIPPED),
        ]
        counts = CheckCounts.from_checks(checks)
        assert (counts.passed, counts.failed, counts.warnings, counts.info, counts.skipped) == (2, 1, 1, 1, 1)
        assert counts.denominator == 3


class TestScenarioRun:
    """Test run-level helpers."""

    def test_failing_ids_distinct_in_order(self):
        """Test duplicate failures collapse to one id."""
        run = ScenarioRun(
            scenario="s",
            checks=[
                make_check("b", CheckStatus.FAILURE),
                make_check("w", CheckStatus.WARNING),
                make_check("b", CheckStatus.FAILURE),
                make_check("a", CheckStatus.FAILURE),
            ],
        )
        assert run.failing_ids(count_warnings=False) == ["b", "a"]
        assert run.failing_ids(count_warnings=True) == ["b", "w", "a"]

    @pytest.mark.parametrize(
        "outcome,allowed,expected",
        [
            (ClientOutcome(exit_code=0), False, False),
            (ClientOutcome(exit_code=1), False, True),
            (ClientOutcome(exit_code=1), True, False),
            (ClientOutcome(exit_code=-1, timed_out=True), False, True),
        ],
    )
    def test_client_failed(self, outcome, allowed, expected):
        """Test adapter failures only count when the scenario does not allow them."""
        run = ScenarioRun(scenario="s", outcome=outcome, allow_client_error=allowed)
        assert run.client_failed is expected

    def test_outcome_describe(self):
        """Test human-readable outcome text."""
        assert ClientOutcome(timed_out=True, exit_code=-1).describe() == "client timed out"
        assert ClientOutcome(exit_code=3).describe() == "client exited with code 3"
        assert ClientOutcome(error="ValueError: x", exit_code=1).describe() == "client raised: ValueError: x"
        assert ClientOutcome().succeeded
