"""Exception types raised by the conformance engine."""


class ConformanceError(Exception):
    """Base class for conformance engine errors."""


class ScenarioNotFoundError(ConformanceError):
    """Raised when a scenario or suite name is not registered."""

    def __init__(self, name: str, available=None):
        self.name = name
        self.available = list(available or [])
        message = f"Unknown scenario or suite: {name}"
        super().__init__(message)


class ScenarioStateError(ConformanceError):
    """Raised on an illegal lifecycle transition or an unbound URL lookup."""


class ServerStartError(ConformanceError):
    """Raised when a mock server cannot bind or fails while starting."""


class BaselineError(ConformanceError):
    """Raised when an expected-failures file cannot be read or is malformed."""


class McpSessionError(ConformanceError):
    """Raised when a server under test answers outside the JSON-RPC contract."""

    def __init__(self, message: str, code=None, status_code=None):
        self.code = code
        self.status_code = status_code
        super().__init__(message)
