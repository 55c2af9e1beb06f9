"""HTTP client for the game-server orchestration panel's client API.

OrchestratorClient is stateless: it holds the shared httpx.AsyncClient and
the panel base URL, never a per-user credential or a response cache. Every
call takes the caller's bearer credential and fails with
MissingCredentialError before any network attempt when it is empty.

No retries are performed here. Timeouts, connection failures and non-2xx
responses all surface as TransportError.
"""

import logging
from typing import Any

import httpx

from nexora.config import settings
from nexora.errors import MissingCredentialError, TransportError
from nexora.schemas.orchestrator import Ack, RemoteUsage

log = logging.getLogger(__name__)


class OrchestratorClient:
    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str | None = None,
        timeout: float | None = None,
        error_body_max_chars: int | None = None,
    ) -> None:
        self._client = http_client
        self._base_url = (base_url or settings.ORCHESTRATOR_URL).rstrip("/")
        self._timeout = timeout if timeout is not None else settings.ORCHESTRATOR_TIMEOUT_SECONDS
        self._max_body = (
            error_body_max_chars
            if error_body_max_chars is not None
            else settings.ERROR_BODY_MAX_CHARS
        )

    # ── internal helpers ───────────────────────────────────────────────────

    async def _request(
        self,
        method: str,
        path: str,
        credential: str,
        json: dict | None = None,
    ) -> httpx.Response:
        if not credential:
            raise MissingCredentialError(
                "Orchestrator API key not set. Please set it in your profile settings."
            )

        url = f"{self._base_url}/api/client{path}"
        try:
            resp = await self._client.request(
                method,
                url,
                headers={
                    "Authorization": f"Bearer {credential}",
                    "Accept": "application/json",
                },
                json=json,
                timeout=self._timeout,
            )
        except httpx.TimeoutException as exc:
            raise TransportError(f"Orchestrator {method} {path} timed out", body=str(exc)) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Orchestrator {method} {path} failed: {exc}", body=str(exc)) from exc

        if not resp.is_success:
            body = resp.text[: self._max_body]
            log.warning("Orchestrator %s %s returned %s", method, path, resp.status_code)
            raise TransportError(
                f"Orchestrator API error: {resp.status_code}",
                status=resp.status_code,
                body=body,
            )
        return resp

    def _json(self, resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError as exc:
            raise TransportError(
                "Orchestrator returned a non-JSON body",
                status=resp.status_code,
                body=resp.text[: self._max_body],
            ) from exc

    # ── public interface ───────────────────────────────────────────────────

    async def list_servers(self, credential: str) -> list[Any]:
        """Return the raw server objects visible to the credential.

        Items are not parsed here so that one malformed entry can be isolated
        by the reconciler instead of failing the whole list.
        """
        body = self._json(await self._request("GET", "", credential))
        data = body.get("data") if isinstance(body, dict) else None
        if data is None:
            raise TransportError("Orchestrator list response has no data", status=200)
        return data if isinstance(data, list) else [data]

    async def get_server(self, external_id: str, credential: str) -> Any:
        body = self._json(await self._request("GET", f"/servers/{external_id}", credential))
        if isinstance(body, dict) and isinstance(body.get("data"), list):
            if not body["data"]:
                raise TransportError("Orchestrator returned an empty server object", status=200)
            return body["data"][0]
        return body

    async def get_usage(self, external_id: str, credential: str) -> RemoteUsage:
        body = self._json(
            await self._request("GET", f"/servers/{external_id}/resources", credential)
        )
        try:
            return RemoteUsage.from_payload(body)
        except ValueError as exc:
            raise TransportError(
                f"Malformed usage payload for server {external_id}",
                status=200,
                body=str(body)[: self._max_body],
            ) from exc

    async def send_power(self, external_id: str, credential: str, action: str) -> Ack:
        await self._request(
            "POST", f"/servers/{external_id}/power", credential, json={"signal": action}
        )
        return Ack()

    async def send_command(self, external_id: str, credential: str, text: str) -> Ack:
        await self._request(
            "POST", f"/servers/{external_id}/command", credential, json={"command": text}
        )
        return Ack()
