"""Pytest configuration for conformance engine tests."""

from typing import Callable, List, Optional, Tuple

import httpx
import pytest

from mcp_conformance.adapters import InProcessClientAdapter
from mcp_conformance.ledger import CheckLedger
from mcp_conformance.models import CheckStatus, ClientOutcome, ConformanceCheck
from mcp_conformance.shared.config import Settings

TEST_BASE_URL = "http://testserver"


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings with short shutdown timeouts and results under tmp_path."""
    return Settings(
        results_dir=str(tmp_path / "results"),
        graceful_timeout=0.1,
        shutdown_timeout=2.0,
        server_request_timeout=5.0,
    )


@pytest.fixture
def ledger() -> CheckLedger:
    """Create an empty ledger."""
    return CheckLedger("test")


@pytest.fixture
def base_url() -> Callable[[], str]:
    """Deferred URL accessor matching the ASGI test client's base URL."""
    return lambda: TEST_BASE_URL


@pytest.fixture
def asgi_client():
    """Factory for an httpx client talking to an ASGI app in-process."""

    def make(app) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url=TEST_BASE_URL)

    return make


@pytest.fixture
def drive():
    """Run one client against a started scenario and return (outcome, checks)."""

    async def run(scenario, client, timeout: float = 15.0) -> Tuple[ClientOutcome, List[ConformanceCheck]]:
        urls = await scenario.start()
        try:
            adapter = InProcessClientAdapter(client, timeout=timeout)
            outcome = await adapter.run(urls.server_url, context=urls.context, scenario_name=scenario.name)
        finally:
            await scenario.stop()
        return outcome, scenario.get_checks()

    return run


def statuses(checks: List[ConformanceCheck], check_id: str) -> List[CheckStatus]:
    return [check.status for check in checks if check.id == check_id]


def first(checks: List[ConformanceCheck], check_id: str) -> Optional[ConformanceCheck]:
    return next((check for check in checks if check.id == check_id), None)


@pytest.fixture
def check_status():
    """Status list lookup by id."""
    return statuses


@pytest.fixture
def find_check():
    """First check with an id, or None."""
    return first
