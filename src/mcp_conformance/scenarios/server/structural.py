"""Shared shape for server scenarios that call one method and inspect the reply."""

from abc import abstractmethod
from typing import Any, Dict, List, Sequence, Tuple

import httpx

from ...errors import McpSessionError
from ...ledger import CheckLedger
from ...models import CheckStatus, ConformanceCheck, SpecReference
from ..base import ClientScenario
from .session import connect

Inspection = Tuple[List[str], Dict[str, Any]]


class StructuralCheckScenario(ClientScenario):
    """Connect, exercise one method, and record a single check.

    Every structural violation found by ``exercise()`` is listed in the
    check's error message; a connection or protocol error fails the check.
    """

    check_id: str = ""
    check_name: str = ""
    check_description: str = ""
    spec_references: Sequence[SpecReference] = ()

    @abstractmethod
    async def exercise(self, session) -> Inspection:
        """Return (violations, details) for the server's reply."""

    async def run(self, server_url: str) -> List[ConformanceCheck]:
        ledger = CheckLedger(self.name)
        try:
            session = await connect(server_url, self.settings.server_request_timeout)
            try:
                errors, details = await self.exercise(session)
            finally:
                await session.close()
        except (McpSessionError, httpx.HTTPError) as e:
            ledger.record(
                id=self.check_id,
                name=self.check_name,
                description=self.check_description,
                status=CheckStatus.FAILURE,
                spec_references=self.spec_references,
                error_message=f"Failed: {e}",
            )
            return ledger.snapshot()

        ledger.record(
            id=self.check_id,
            name=self.check_name,
            description=self.check_description,
            status=CheckStatus.FAILURE if errors else CheckStatus.SUCCESS,
            spec_references=self.spec_references,
            details=details,
            error_message="; ".join(errors) if errors else None,
        )
        return ledger.snapshot()
