"""Tests for the ephemeral server lifecycle."""

import socket

import httpx
import pytest
from fastapi import FastAPI

from mcp_conformance.errors import ScenarioStateError, ServerStartError
from mcp_conformance.models import CheckStatus, ConformanceCheck, ScenarioState, ScenarioUrls
from mcp_conformance.scenarios.base import Scenario
from mcp_conformance.servers.lifecycle import ServerLifecycle


def hello_app() -> FastAPI:
    app = FastAPI()

    @app.get("/hello")
    async def hello():
        return {"hello": "world"}

    return app


class TestServerLifecycle:
    """Test binding, serving and stopping a mock server."""

    def test_get_url_before_start(self, settings):
        """Test the URL accessor raises until the socket is bound."""
        server = ServerLifecycle("unbound", settings)
        with pytest.raises(ScenarioStateError):
            server.get_url()

    @pytest.mark.asyncio
    async def test_serves_on_ephemeral_port(self, settings):
        """Test the returned URL is reachable and uses an OS-assigned port."""
        server = ServerLifecycle("hello", settings)
        url = await server.start(hello_app())
        try:
            assert url == server.get_url()
            assert server.port and server.port > 0
            async with httpx.AsyncClient() as client:
                response = await client.get(f"{url}/hello")
            assert response.status_code == 200
            assert response.json() == {"hello": "world"}
        finally:
            await server.stop()
        assert not server.is_running

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, settings):
        """Test stopping twice, and stopping a never-started server, are no-ops."""
        server = ServerLifecycle("twice", settings)
        await server.stop()
        await server.start(hello_app())
        await server.stop()
        await server.stop()
        assert not server.is_running

    @pytest.mark.asyncio
    async def test_start_twice_raises(self, settings):
        """Test a running lifecycle refuses a second start."""
        server = ServerLifecycle("busy", settings)
        await server.start(hello_app())
        try:
            with pytest.raises(ScenarioStateError):
                await server.start(hello_app())
        finally:
            await server.stop()

    @pytest.mark.asyncio
    async def test_two_servers_get_distinct_ports(self, settings):
        """Test independent lifecycles never collide."""
        first = ServerLifecycle("one", settings)
        second = ServerLifecycle("two", settings)
        await first.start(hello_app())
        await second.start(hello_app())
        try:
            assert first.port != second.port
        finally:
            await second.stop()
            await first.stop()


class HalfStartedScenario(Scenario):
    """Binds one server, then fails while starting the second."""

    name = "half-started"

    async def setup(self) -> ScenarioUrls:
        self.first = self.new_server("first")
        await self.first.start(hello_app())
        self.second = self.new_server("second")
        raise ServerStartError("second server could not bind")


class TestScenarioPartialStart:
    """Test a scenario whose setup fails after binding some servers."""

    @pytest.mark.asyncio
    async def test_failed_start_releases_bound_servers(self, settings):
        """Test the already-bound socket is closed and the scenario is stopped."""
        scenario = HalfStartedScenario(settings)
        with pytest.raises(ServerStartError):
            await scenario.start()

        assert scenario.state == ScenarioState.STOPPED
        assert not scenario.first.is_running
        assert not scenario.second.is_running

        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind((settings.bind_host, scenario.first.port))

        await scenario.stop()
        assert scenario.state == ScenarioState.STOPPED


class AttemptCountingScenario(Scenario):
    """Reports a counter that changes without new ledger entries."""

    name = "attempt-counting"

    def __init__(self, settings=None):
        super().__init__(settings)
        self.attempts = 0

    async def setup(self) -> ScenarioUrls:
        return ScenarioUrls(server_url="http://127.0.0.1:9/mcp")

    def post_hoc_checks(self, checks):
        return [
            ConformanceCheck(
                id="attempt-count",
                name="AttemptCount",
                description=f"{self.attempts} attempt(s) observed",
                status=CheckStatus.INFO,
                details={"attempts": self.attempts},
            )
        ]


class TestScenarioChecks:
    """Test when get_checks re-reads post-hoc state."""

    @pytest.mark.asyncio
    async def test_running_reads_are_fresh(self, settings, find_check):
        """Test post-hoc state is re-evaluated while running and frozen after stop."""
        scenario = AttemptCountingScenario(settings)
        await scenario.start()
        assert find_check(scenario.get_checks(), "attempt-count").details["attempts"] == 0

        scenario.attempts = 2
        assert find_check(scenario.get_checks(), "attempt-count").details["attempts"] == 2

        await scenario.stop()
        final = scenario.get_checks()
        scenario.attempts = 5
        assert scenario.get_checks() == final
        assert find_check(final, "attempt-count").details["attempts"] == 2
