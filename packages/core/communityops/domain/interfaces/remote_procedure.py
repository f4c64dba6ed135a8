"""RemoteProcedureClient interface for server-side side effects."""

from abc import ABC, abstractmethod
from typing import Any

from communityops.domain.models.invocation import InvocationResponse


class RemoteProcedureClient(ABC):
    """Abstract client for remote side-effecting procedures.

    Implementations perform the call without any deadline of their own;
    bounding latency and classifying failures is the job of
    ResilientInvoker.
    """

    @abstractmethod
    async def call(self, procedure_id: str, payload: dict[str, Any]) -> InvocationResponse:
        """Call a remote procedure.

        Args:
            procedure_id: Procedure identifier (e.g., "approve-sticker").
            payload: Flat key-value payload specific to the action.

        Returns:
            The procedure's response envelope (which may report failure).

        Raises:
            RemoteProcedureError: If the remote side answered with an error status.
            httpx.HTTPError: For transport failures in HTTP implementations.
        """

    async def close(self) -> None:
        """Release client resources."""
        return None


class RemoteProcedureError(Exception):
    """Raised when a remote procedure answers with an error status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"[{self.status_code}] {self.message}"
        return self.message
