"""Ways of running the client-under-test against a started scenario."""

import asyncio
import json
import logging
import os
import shlex
import signal
import sys
import time
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from .models import ClientOutcome

logger = logging.getLogger(__name__)

SCENARIO_ENV = "MCP_CONFORMANCE_SCENARIO"
CONTEXT_ENV = "MCP_CONFORMANCE_CONTEXT"

ClientCallable = Callable[..., Union[Any, Awaitable[Any]]]


class ClientAdapter(ABC):
    """Executes one client run with a bounded timeout."""

    def __init__(self, timeout: float):
        self.timeout = timeout

    @abstractmethod
    async def run(
        self,
        server_url: str,
        context: Optional[Dict[str, Any]] = None,
        scenario_name: Optional[str] = None,
    ) -> ClientOutcome:
        """Run the client against ``server_url`` and report how it ended."""

    def describe(self) -> str:
        return type(self).__name__


def client_environment(context: Optional[Dict[str, Any]], scenario_name: Optional[str]) -> Dict[str, str]:
    env = dict(os.environ)
    if scenario_name:
        env[SCENARIO_ENV] = scenario_name
    if context:
        env[CONTEXT_ENV] = json.dumps(context)
    return env


class SubprocessClientAdapter(ClientAdapter):
    """Run a command line with the server URL appended as the last argument.

    The process is started in its own process group so the whole tree can
    be killed when the timeout expires.
    """

    def __init__(self, command: str, timeout: float = 30.0):
        super().__init__(timeout)
        self.command = command
        self.argv = shlex.split(command)
        if not self.argv:
            raise ValueError("Client command is empty")

    def describe(self) -> str:
        return self.command

    @staticmethod
    def _kill(process: asyncio.subprocess.Process) -> None:
        try:
            if sys.platform != "win32":
                os.killpg(process.pid, signal.SIGKILL)
            else:
                process.kill()
        except ProcessLookupError:
            logger.debug(f"Client process {process.pid} already exited")

    async def run(self, server_url, context=None, scenario_name=None) -> ClientOutcome:
        argv = [*self.argv, server_url]
        logger.info(f"Executing client: {' '.join(argv)}")
        started = time.monotonic()

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=client_environment(context, scenario_name),
                start_new_session=sys.platform != "win32",
            )
        except OSError as e:
            logger.error(f"Failed to start client {argv[0]}: {e}")
            return ClientOutcome(
                exit_code=-1,
                stderr=f"Process error: {e}",
                duration_ms=(time.monotonic() - started) * 1000,
            )

        timed_out = False
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            timed_out = True
            logger.warning(f"Client timed out after {self.timeout}s, killing process group {process.pid}")
            self._kill(process)
            stdout, stderr = await process.communicate()

        outcome = ClientOutcome(
            exit_code=process.returncode if process.returncode is not None else -1,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
            timed_out=timed_out,
            duration_ms=(time.monotonic() - started) * 1000,
        )
        logger.debug(f"Client finished: {outcome.describe()} in {outcome.duration_ms:.0f}ms")
        return outcome


class InProcessClientAdapter(ClientAdapter):
    """Call a Python client directly.

    The callable receives ``(server_url, context=..., scenario_name=...)``.
    Coroutine functions are awaited; plain functions run in a worker thread
    so they cannot block the mock servers sharing this event loop.
    """

    def __init__(self, fn: ClientCallable, timeout: float = 30.0, raise_errors: bool = False):
        super().__init__(timeout)
        self.fn = fn
        self.raise_errors = raise_errors

    def describe(self) -> str:
        return getattr(self.fn, "__qualname__", repr(self.fn))

    async def _invoke(self, server_url, context, scenario_name):
        kwargs = {"context": context, "scenario_name": scenario_name}
        if asyncio.iscoroutinefunction(self.fn):
            return await self.fn(server_url, **kwargs)
        result = await asyncio.to_thread(self.fn, server_url, **kwargs)
        if asyncio.iscoroutine(result):
            return await result
        return result

    async def run(self, server_url, context=None, scenario_name=None) -> ClientOutcome:
        started = time.monotonic()
        try:
            await asyncio.wait_for(self._invoke(server_url, context, scenario_name), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"In-process client timed out after {self.timeout}s")
            return ClientOutcome(exit_code=-1, timed_out=True, duration_ms=(time.monotonic() - started) * 1000)
        except Exception as e:
            if self.raise_errors:
                raise
            logger.info(f"In-process client raised {type(e).__name__}: {e}")
            return ClientOutcome(
                exit_code=1,
                error=f"{type(e).__name__}: {e}",
                stderr=str(e),
                duration_ms=(time.monotonic() - started) * 1000,
            )
        return ClientOutcome(exit_code=0, duration_ms=(time.monotonic() - started) * 1000)
