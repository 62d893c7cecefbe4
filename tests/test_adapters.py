"""Tests for the client adapters."""

import asyncio
import json
import shlex
import sys

import pytest

from mcp_conformance.adapters import (
    CONTEXT_ENV,
    SCENARIO_ENV,
    InProcessClientAdapter,
    SubprocessClientAdapter,
)


def python_command(code: str) -> str:
    return f"{shlex.quote(sys.executable)} -c {shlex.quote(code)}"


class TestSubprocessClientAdapter:
    """Test running the client-under-test as a process."""

    @pytest.mark.asyncio
    async def test_url_and_environment(self):
        """Test the URL is the last argument and context arrives via the environment."""
        code = (
            "import json, os, sys; "
            f"print(json.dumps([sys.argv[-1], os.environ.get('{SCENARIO_ENV}'), "
            f"json.loads(os.environ.get('{CONTEXT_ENV}', 'null'))]))"
        )
        adapter = SubprocessClientAdapter(python_command(code), timeout=20)
        outcome = await adapter.run("http://127.0.0.1:1/mcp", context={"client_id": "x"}, scenario_name="auth/basic-dcr")

        assert outcome.succeeded, outcome.stderr
        assert json.loads(outcome.stdout) == ["http://127.0.0.1:1/mcp", "auth/basic-dcr", {"client_id": "x"}]
        assert outcome.duration_ms > 0

    @pytest.mark.asyncio
    async def test_nonzero_exit(self):
        """Test exit codes and stderr are captured."""
        code = "import sys; sys.stderr.write('boom'); sys.exit(3)"
        outcome = await SubprocessClientAdapter(python_command(code), timeout=20).run("http://x/mcp")

        assert outcome.exit_code == 3
        assert outcome.stderr == "boom"
        assert not outcome.succeeded
        assert not outcome.timed_out

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self):
        """Test a hanging client is killed and reported as timed out."""
        code = "import time; print('started', flush=True); time.sleep(60)"
        outcome = await SubprocessClientAdapter(python_command(code), timeout=1.0).run("http://x/mcp")

        assert outcome.timed_out
        assert not outcome.succeeded
        assert outcome.duration_ms < 30000

    @pytest.mark.asyncio
    async def test_spawn_error(self):
        """Test a missing executable is an outcome, not an exception."""
        outcome = await SubprocessClientAdapter("/nonexistent/mcp-client", timeout=5).run("http://x/mcp")

        assert outcome.exit_code == -1
        assert outcome.stderr.startswith("Process error:")

    def test_empty_command(self):
        """Test an empty command is rejected up front."""
        with pytest.raises(ValueError):
            SubprocessClientAdapter("   ")


class TestInProcessClientAdapter:
    """Test calling a Python client directly."""

    @pytest.mark.asyncio
    async def test_async_client(self):
        """Test coroutine functions receive URL, context and scenario name."""
        calls = []

        async def client(server_url, context=None, scenario_name=None):
            calls.append((server_url, context, scenario_name))

        outcome = await InProcessClientAdapter(client).run("http://x/mcp", {"a": 1}, "initialize")

        assert outcome.succeeded
        assert calls == [("http://x/mcp", {"a": 1}, "initialize")]

    @pytest.mark.asyncio
    async def test_sync_client_runs_in_thread(self):
        """Test plain functions are supported."""
        calls = []

        def client(server_url, context=None, scenario_name=None):
            calls.append(server_url)

        outcome = await InProcessClientAdapter(client).run("http://x/mcp")
        assert outcome.succeeded
        assert calls == ["http://x/mcp"]

    @pytest.mark.asyncio
    async def test_exception_becomes_outcome(self):
        """Test a raising client yields exit code 1 with the error text."""

        async def client(server_url, context=None, scenario_name=None):
            raise RuntimeError("no token")

        outcome = await InProcessClientAdapter(client).run("http://x/mcp")
        assert outcome.exit_code == 1
        assert outcome.error == "RuntimeError: no token"

    @pytest.mark.asyncio
    async def test_raise_errors(self):
        """Test errors propagate when asked to."""

        async def client(server_url, context=None, scenario_name=None):
            raise RuntimeError("no token")

        with pytest.raises(RuntimeError):
            await InProcessClientAdapter(client, raise_errors=True).run("http://x/mcp")

    @pytest.mark.asyncio
    async def test_timeout(self):
        """Test a slow client is cancelled."""

        async def client(server_url, context=None, scenario_name=None):
            await asyncio.sleep(10)

        outcome = await InProcessClientAdapter(client, timeout=0.1).run("http://x/mcp")
        assert outcome.timed_out
        assert outcome.describe() == "client timed out"
