"""Server scenarios: the engine plays client against a live MCP server."""

from .dns_rebinding import DNSRebindingProtectionScenario
from .lifecycle import ServerInitializeScenario
from .resources_prompts import PromptsListScenario, ResourcesListScenario
from .tools import ToolsCallSimpleTextScenario, ToolsListScenario
from .utils import LoggingSetLevelScenario, PingScenario

__all__ = [
    "DNSRebindingProtectionScenario",
    "LoggingSetLevelScenario",
    "PingScenario",
    "PromptsListScenario",
    "ResourcesListScenario",
    "ServerInitializeScenario",
    "ToolsCallSimpleTextScenario",
    "ToolsListScenario",
]
