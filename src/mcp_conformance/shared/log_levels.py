"""Custom logging levels for the conformance engine.

TRACE sits below DEBUG and is used for per-request and per-check chatter
emitted by the mock servers.
"""

import logging

TRACE = 5


def setup_trace_logging() -> int:
    """Register the TRACE level and a ``Logger.trace`` helper."""
    logging.addLevelName(TRACE, "TRACE")

    def trace(self, message, *args, **kwargs):
        if self.isEnabledFor(TRACE):
            self._log(TRACE, message, args, **kwargs)

    logging.Logger.trace = trace
    return TRACE


def resolve_level(name: str) -> int:
    """Translate a level name (including TRACE) into a logging constant."""
    name = (name or "INFO").upper()
    if name == "TRACE":
        return TRACE
    return getattr(logging, name, logging.INFO)


TRACE_LEVEL = setup_trace_logging()
