"""Conformance scenarios.

Client scenarios (``Scenario``) stand up mock servers for a client-under-test;
server scenarios (``ClientScenario``) drive a live server as a client.
"""

from .base import ClientScenario, ExpectedCheck, Scenario, expect

__all__ = ["ClientScenario", "ExpectedCheck", "Scenario", "expect"]
