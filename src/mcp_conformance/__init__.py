"""MCP OAuth conformance engine.

Stands up disposable mock authorization and protected-resource servers,
drives a client-under-test through an OAuth flow, and records a ledger of
conformance checks tied to specification clauses.
"""

__version__ = "0.1.0"
