"""DNS rebinding protection for localhost servers.

A localhost server reachable without authentication must validate the Host
or Origin header, otherwise a page on an attacker-controlled domain that
resolves to 127.0.0.1 can drive it from the user's browser.
"""

from typing import Any, Dict, List, Tuple
from urllib.parse import urlsplit

import httpx

from ... import spec_references as refs
from ...ledger import CheckLedger
from ...models import CheckStatus, ConformanceCheck
from ..base import ClientScenario
from .session import CLIENT_INFO

LOCALHOST_NAMES = ("localhost", "127.0.0.1", "::1", "[::1]")
ATTACKER_HOST = "evil.example.com"
SPEC_REFERENCES = [refs.MCP_DNS_REBINDING_PROTECTION, refs.MCP_TRANSPORT_SECURITY]

REJECTED = ("localhost-host-rebinding-rejected", "DNSRebindingRejected",
            "Server rejects requests with non-localhost Host/Origin headers")
ACCEPTED = ("localhost-host-valid-accepted", "LocalhostHostAccepted",
            "Server accepts requests with valid localhost Host/Origin headers")


def is_localhost_url(server_url: str) -> bool:
    return (urlsplit(server_url).hostname or "").lower() in LOCALHOST_NAMES


class DNSRebindingProtectionScenario(ClientScenario):
    name = "dns-rebinding-protection"
    description = """Test DNS rebinding protection for localhost servers.

**Scope:** localhost MCP servers running without HTTPS and without authentication.

**Requirements:**
- Server **MUST** validate the Host or Origin header on incoming requests
- Server **MUST** reject requests with non-localhost Host/Origin headers (HTTP 4xx)
- Server **MUST** accept requests with valid localhost Host/Origin headers

**Valid localhost values:** `localhost`, `127.0.0.1`, `[::1]` (with optional port)

**Note:** This test requires a localhost server URL. Non-localhost URLs will fail."""

    async def _send(self, client: httpx.AsyncClient, server_url: str, host: str) -> Tuple[int, Any]:
        # Host and Origin carry the same value so servers checking either one are exercised
        response = await client.post(
            server_url,
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json, text/event-stream",
                "Host": host,
                "Origin": f"http://{host}",
            },
            json={
                "jsonrpc": "2.0",
                "id": 1,
                "method": "initialize",
                "params": {
                    "protocolVersion": "2025-11-25",
                    "capabilities": {},
                    "clientInfo": {**CLIENT_INFO, "name": "conformance-dns-rebinding-test"},
                },
            },
        )
        try:
            body = response.json()
        except ValueError:
            body = None
        return response.status_code, body

    async def _probe(self, ledger, client, server_url: str, host: str, check, accept_range, expectation) -> None:
        check_id, name, description = check
        details: Dict[str, Any] = {"hostHeader": host, "originHeader": f"http://{host}"}
        try:
            status_code, body = await self._send(client, server_url, host)
        except httpx.HTTPError as e:
            ledger.record(
                id=check_id, name=name, description=description, status=CheckStatus.FAILURE,
                spec_references=SPEC_REFERENCES, details=details, error_message=f"Request failed: {e}",
            )
            return

        details.update(statusCode=status_code, body=body)
        ok = status_code in accept_range
        ledger.record(
            id=check_id,
            name=name,
            description=description,
            status=CheckStatus.SUCCESS if ok else CheckStatus.FAILURE,
            spec_references=SPEC_REFERENCES,
            details=details,
            error_message=None if ok else f"Expected HTTP {expectation} for {host} Host/Origin headers, got {status_code}",
        )

    async def run(self, server_url: str) -> List[ConformanceCheck]:
        ledger = CheckLedger(self.name)

        if not is_localhost_url(server_url):
            message = "DNS rebinding tests require a localhost server URL (localhost, 127.0.0.1, or [::1])"
            for check_id, name, description in (REJECTED, ACCEPTED):
                ledger.record(
                    id=check_id, name=name, description=description, status=CheckStatus.FAILURE,
                    spec_references=SPEC_REFERENCES, error_message=message,
                    details={"serverUrl": server_url, "reason": "non-localhost-url"},
                )
            return ledger.snapshot()

        valid_host = urlsplit(server_url).netloc
        async with httpx.AsyncClient(timeout=self.settings.server_request_timeout) as client:
            await self._probe(ledger, client, server_url, ATTACKER_HOST, REJECTED, range(400, 500), "4xx")
            await self._probe(ledger, client, server_url, valid_host, ACCEPTED, range(200, 300), "2xx")
        return ledger.snapshot()
