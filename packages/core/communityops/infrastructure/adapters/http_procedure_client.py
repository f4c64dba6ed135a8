"""HTTP client for remote procedures hosted as serverless functions."""

from typing import Any

import httpx

from communityops.domain.interfaces.remote_procedure import (
    RemoteProcedureClient,
    RemoteProcedureError,
)
from communityops.domain.models.invocation import InvocationResponse


class HttpRemoteProcedureClient(RemoteProcedureClient):
    """Calls remote procedures over HTTP.

    Each procedure is a POST endpoint at ``{base_url}/functions/v1/{procedure_id}``
    that accepts the flat payload as JSON and answers with a
    ``{success, message | error, data}`` envelope.

    Transport failures (httpx.TimeoutException, httpx.NetworkError) propagate
    unchanged. The client sets no deadline of its own beyond ``transport_timeout``;
    the action deadline is enforced by ResilientInvoker.
    """

    FUNCTIONS_PATH = "/functions/v1"

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        transport_timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize HttpRemoteProcedureClient.

        Args:
            base_url: Base URL of the procedure host.
            api_key: Optional bearer token sent with every call.
            transport_timeout: Optional httpx timeout. None leaves the call unbounded.
            client: Optional preconfigured httpx.AsyncClient (for testing).
        """
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=transport_timeout)

    def url_for(self, procedure_id: str) -> str:
        return f"{self.base_url}{self.FUNCTIONS_PATH}/{procedure_id}"

    async def call(self, procedure_id: str, payload: dict[str, Any]) -> InvocationResponse:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        response = await self._client.post(
            self.url_for(procedure_id),
            json=payload,
            headers=headers,
        )

        body = self._parse_body(response)
        if response.is_error:
            raise RemoteProcedureError(
                body.get("error") or body.get("message") or response.reason_phrase or "Request failed",
                status_code=response.status_code,
            )
        if "success" not in body:
            raise RemoteProcedureError(
                "Malformed response from remote procedure",
                status_code=response.status_code,
            )
        return InvocationResponse.model_validate(body)

    @staticmethod
    def _parse_body(response: httpx.Response) -> dict[str, Any]:
        """Parse the JSON envelope, falling back to the raw text as the error."""
        try:
            data = response.json()
        except ValueError:
            return {"error": response.text} if response.text else {}
        if isinstance(data, dict):
            return data
        return {"error": str(data)}

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
