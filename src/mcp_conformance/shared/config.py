"""Configuration for the conformance engine.

Values come from the environment (prefix ``MCP_CONFORMANCE_``) or a local
``.env`` file.
"""

from functools import lru_cache

from pydantic import ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Runtime settings shared by the runner, adapters and mock servers."""

    # Results
    results_dir: str = Field(default="results", description="Directory for checks.json and client output")

    # Client execution
    client_timeout_ms: int = Field(default=30000, description="Client timeout for a single CLI invocation")
    suite_timeout_ms: int = Field(default=10000, description="Per-scenario client timeout in suite mode")
    max_parallel_scenarios: int = Field(default=8, description="Upper bound on concurrently running scenarios")

    # Mock servers
    bind_host: str = Field(default="127.0.0.1", description="Interface mock servers listen on")
    public_host: str = Field(default="127.0.0.1", description="Host name used in advertised URLs")
    graceful_timeout: float = Field(default=0.5, description="Seconds hypercorn waits for open connections on stop")
    shutdown_timeout: float = Field(default=5.0, description="Seconds to wait for a mock server task to exit")

    # Server mode
    server_request_timeout: float = Field(default=15.0, description="HTTP timeout when testing a live server")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = ConfigDict(
        env_prefix="MCP_CONFORMANCE_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("client_timeout_ms", "suite_timeout_ms", "max_parallel_scenarios")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be greater than zero")
        return value


@lru_cache()
def get_settings() -> Settings:
    """Get the cached settings instance."""
    return Settings()
