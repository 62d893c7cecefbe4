"""Run server scenarios against a live MCP server."""

import logging
from typing import List, Optional

from ..models import ScenarioRun
from ..registry import ScenarioRegistry
from ..shared.config import Settings, get_settings
from .results import ResultWriter

logger = logging.getLogger(__name__)


class ServerRunner:
    """Exercises one live server with registered server scenarios, one at a time."""

    def __init__(
        self,
        registry: ScenarioRegistry,
        settings: Optional[Settings] = None,
        writer: Optional[ResultWriter] = None,
    ):
        self.registry = registry
        self.settings = settings or get_settings()
        self.writer = writer or ResultWriter(prefix="server")

    async def run_scenario(self, server_url: str, name: str) -> ScenarioRun:
        scenario = self.registry.get(name, self.settings)
        logger.info(f"Running server scenario '{name}' against {server_url}")

        checks = await scenario.run(server_url)
        run = ScenarioRun(scenario=name, mode="server", description=scenario.description, checks=checks)
        result_dir = self.writer.write(name, checks)
        run.result_dir = str(result_dir) if result_dir else None
        return run

    async def run_suite(self, server_url: str, suite: str) -> List[ScenarioRun]:
        """Scenarios run sequentially so the server sees one conversation at a time."""
        names = self.registry.suite(suite)
        logger.info(f"Running {len(names)} server scenario(s) from suite '{suite}'")
        return [await self.run_scenario(server_url, name) for name in names]
