"""Run client scenarios: mock servers up, client-under-test in, checks out."""

import asyncio
import logging
import signal
import sys
from typing import Callable, List, Optional

from ..adapters import ClientAdapter
from ..errors import ServerStartError
from ..models import ScenarioRun, ScenarioUrls
from ..registry import ScenarioRegistry
from ..shared.config import Settings, get_settings
from .results import ResultWriter

logger = logging.getLogger(__name__)

ReadyCallback = Callable[[str, ScenarioUrls], None]


class ClientRunner:
    """Drives client scenarios from a registry.

    Every run builds a fresh scenario from the registry, so concurrent
    suite members never share servers or ledgers.
    """

    def __init__(
        self,
        registry: ScenarioRegistry,
        settings: Optional[Settings] = None,
        writer: Optional[ResultWriter] = None,
    ):
        self.registry = registry
        self.settings = settings or get_settings()
        self.writer = writer or ResultWriter()

    async def run_scenario(self, name: str, adapter: ClientAdapter) -> ScenarioRun:
        """Start the scenario, run the client once, collect checks, stop.

        Args:
            name: Registered scenario name
            adapter: How to execute the client-under-test

        Returns:
            The completed run. A mock server that fails to start is reported
            in ``error`` rather than raised, so a suite keeps going.

        Raises:
            ScenarioNotFoundError: If the name is not registered
        """
        scenario = self.registry.get(name, self.settings)
        run = ScenarioRun(
            scenario=name,
            mode="client",
            description=scenario.description,
            allow_client_error=scenario.allow_client_error,
        )

        try:
            urls = await scenario.start()
        except ServerStartError as e:
            logger.error(f"Scenario {name} failed to start: {e}")
            run.error = str(e)
            return run

        try:
            logger.debug(f"Executing client for {name} against {urls.server_url}")
            if urls.context:
                logger.debug(f"With context: {urls.context}")
            run.outcome = await adapter.run(urls.server_url, context=urls.context, scenario_name=name)
        finally:
            await scenario.stop()

        if not run.outcome.succeeded:
            level = logging.INFO if scenario.allow_client_error else logging.WARNING
            logger.log(level, f"{name}: {run.outcome.describe()}")

        run.checks = scenario.get_checks()
        result_dir = self.writer.write(name, run.checks, run.outcome)
        run.result_dir = str(result_dir) if result_dir else None
        return run

    async def run_suite(self, suite: str, adapter: ClientAdapter) -> List[ScenarioRun]:
        """Run every scenario of a suite concurrently, bounded by max_parallel_scenarios.

        Results come back in registration order.
        """
        names = self.registry.suite(suite)
        logger.info(f"Running {len(names)} scenario(s) from suite '{suite}'")
        semaphore = asyncio.Semaphore(self.settings.max_parallel_scenarios)

        async def bounded(name: str) -> ScenarioRun:
            async with semaphore:
                return await self.run_scenario(name, adapter)

        results = await asyncio.gather(*(bounded(name) for name in names), return_exceptions=True)

        runs = []
        for name, result in zip(names, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.error(f"Scenario {name} raised {type(result).__name__}: {result}")
                runs.append(ScenarioRun(scenario=name, mode="client", error=f"{type(result).__name__}: {result}"))
            else:
                runs.append(result)
        return runs

    async def run_interactive(
        self,
        name: str,
        on_ready: Optional[ReadyCallback] = None,
        shutdown_event: Optional[asyncio.Event] = None,
    ) -> ScenarioRun:
        """Keep the scenario's servers up until shutdown, then collect checks.

        Without an explicit ``shutdown_event``, SIGINT and SIGTERM end the
        session.
        """
        scenario = self.registry.get(name, self.settings)
        run = ScenarioRun(scenario=name, mode="client", description=scenario.description)
        urls = await scenario.start()

        event = shutdown_event or asyncio.Event()
        installed = []
        if shutdown_event is None and sys.platform != "win32":
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, event.set)
                installed.append(sig)

        try:
            logger.info(f"Scenario {name} listening at {urls.server_url}")
            if on_ready is not None:
                on_ready(name, urls)
            await event.wait()
            logger.info("Shutting down interactive scenario")
        finally:
            loop = asyncio.get_running_loop()
            for sig in installed:
                loop.remove_signal_handler(sig)
            await scenario.stop()

        run.checks = scenario.get_checks()
        result_dir = self.writer.write(name, run.checks)
        run.result_dir = str(result_dir) if result_dir else None
        return run
