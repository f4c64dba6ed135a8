"""Tests for ResilientInvoker component."""

import asyncio
import time

import httpx
import pytest

from communityops.domain.components.resilient_invoker import (
    ResilientInvoker,
    classify_error,
    classify_message,
)
from communityops.domain.interfaces.remote_procedure import RemoteProcedureError
from communityops.domain.models.invocation import InvocationResponse
from communityops.domain.models.system_error import InvocationErrorKind, RemoteInvocationError
from fixtures.test_data import MockObservabilityManager, MockRemoteProcedureClient


class TestClassification:
    """Tests for error classification."""

    @pytest.mark.parametrize(
        ("message", "kind"),
        [
            ("JWT expired", InvocationErrorKind.Unauthorized),
            ("Access token expired", InvocationErrorKind.Unauthorized),
            ("Sticker has expired", InvocationErrorKind.Generic),
            ("Permit expired before approval", InvocationErrorKind.Generic),
            ("403 Forbidden", InvocationErrorKind.Unauthorized),
            ("503 Service Unavailable", InvocationErrorKind.ServiceUnavailable),
            ("Failed to fetch", InvocationErrorKind.NetworkUnavailable),
            ("Sticker already processed", InvocationErrorKind.Generic),
            (None, InvocationErrorKind.Generic),
        ],
    )
    def test_classify_message(self, message: str | None, kind: InvocationErrorKind) -> None:
        assert classify_message(message) == kind

    def test_classify_transport_errors(self) -> None:
        request = httpx.Request("POST", "https://remote.test/functions/v1/approve-sticker")

        assert classify_error(httpx.ReadTimeout("slow", request=request)) == InvocationErrorKind.Timeout
        assert classify_error(asyncio.TimeoutError()) == InvocationErrorKind.Timeout
        assert classify_error(httpx.ConnectError("refused", request=request)) == InvocationErrorKind.NetworkUnavailable
        assert classify_error(ConnectionResetError()) == InvocationErrorKind.NetworkUnavailable

    def test_classify_status_codes(self) -> None:
        assert classify_error(RemoteProcedureError("nope", status_code=401)) == InvocationErrorKind.Unauthorized
        assert classify_error(RemoteProcedureError("boom", status_code=502)) == InvocationErrorKind.ServiceUnavailable
        assert classify_error(RemoteProcedureError("Bad input", status_code=400)) == InvocationErrorKind.Generic


class TestResilientInvoker:
    """Tests for ResilientInvoker component."""

    def setup_method(self) -> None:
        """Set up test environment."""
        self.observability = MockObservabilityManager()

    def make_invoker(self, client: MockRemoteProcedureClient, **kwargs) -> ResilientInvoker:
        kwargs.setdefault("default_timeout", 1.0)
        return ResilientInvoker(client=client, observability_manager=self.observability, **kwargs)

    @pytest.mark.asyncio
    async def test_invoke_returns_successful_envelope(self) -> None:
        client = MockRemoteProcedureClient(
            response=InvocationResponse(success=True, message="Sticker approved", data={"id": "s1"})
        )
        invoker = self.make_invoker(client)

        response = await invoker.invoke("approve-sticker", {"sticker_id": "s1", "action": "approve"})

        assert response.data == {"id": "s1"}
        assert client.calls == [("approve-sticker", {"sticker_id": "s1", "action": "approve"})]
        assert self.observability.events == []

    @pytest.mark.asyncio
    async def test_timeout_is_reported_within_deadline(self) -> None:
        client = MockRemoteProcedureClient(hang=True)
        invoker = self.make_invoker(client, default_timeout=0.05)

        started = time.monotonic()
        with pytest.raises(RemoteInvocationError) as exc_info:
            await invoker.invoke("approve-sticker", {"sticker_id": "s1"})
        elapsed = time.monotonic() - started

        assert exc_info.value.kind == InvocationErrorKind.Timeout
        assert exc_info.value.outcome_unknown
        assert elapsed < 1.0
        assert invoker.abandoned_count == 1
        assert self.observability.events_of("remote_invocation_abandoned")

        await invoker.close()
        assert invoker.abandoned_count == 0
        assert client.closed

    @pytest.mark.asyncio
    async def test_abandoned_call_is_not_cancelled(self) -> None:
        client = MockRemoteProcedureClient(delay=0.1)
        invoker = self.make_invoker(client, default_timeout=0.02)

        with pytest.raises(RemoteInvocationError):
            await invoker.invoke("approve-sticker", {"sticker_id": "s1"})
        await asyncio.sleep(0.2)

        assert client.completed == 1
        assert invoker.abandoned_count == 0

    @pytest.mark.asyncio
    async def test_per_procedure_timeout_overrides_default(self) -> None:
        invoker = self.make_invoker(
            MockRemoteProcedureClient(),
            default_timeout=15.0,
            procedure_timeouts={"process-construction-permit": 30.0},
        )

        assert invoker.timeout_for("process-construction-permit") == 30.0
        assert invoker.timeout_for("approve-sticker") == 15.0
        assert invoker.timeout_for("approve-sticker", timeout=2.0) == 2.0

    def test_rejects_non_positive_default_timeout(self) -> None:
        with pytest.raises(ValueError):
            ResilientInvoker(MockRemoteProcedureClient(), self.observability, default_timeout=0)

    @pytest.mark.asyncio
    async def test_network_failure_is_classified(self) -> None:
        request = httpx.Request("POST", "https://remote.test/functions/v1/approve-sticker")
        client = MockRemoteProcedureClient(error=httpx.ConnectError("connection refused", request=request))
        invoker = self.make_invoker(client)

        with pytest.raises(RemoteInvocationError) as exc_info:
            await invoker.invoke("approve-sticker", {})

        assert exc_info.value.kind == InvocationErrorKind.NetworkUnavailable
        assert exc_info.value.message == "Unable to connect to server"
        assert exc_info.value.retryable
        assert self.observability.events_of("remote_invocation_failed")[0]["payload"]["kind"] == "network_unavailable"

    @pytest.mark.asyncio
    async def test_failed_envelope_is_classified_from_message(self) -> None:
        client = MockRemoteProcedureClient(response=InvocationResponse(success=False, message="JWT expired"))
        invoker = self.make_invoker(client)

        with pytest.raises(RemoteInvocationError) as exc_info:
            await invoker.invoke("approve-sticker", {})

        assert exc_info.value.kind == InvocationErrorKind.Unauthorized
        assert exc_info.value.message == "Your session has expired"
        assert exc_info.value.technical == "JWT expired"

    @pytest.mark.asyncio
    async def test_generic_failure_keeps_remote_message(self) -> None:
        client = MockRemoteProcedureClient(
            response=InvocationResponse(success=False, message="Sticker already processed")
        )
        invoker = self.make_invoker(client)

        with pytest.raises(RemoteInvocationError) as exc_info:
            await invoker.invoke("approve-sticker", {})

        assert exc_info.value.kind == InvocationErrorKind.Generic
        assert exc_info.value.message == "Sticker already processed"

    @pytest.mark.asyncio
    async def test_event_emission_failure_does_not_mask_error(self) -> None:
        self.observability.emit_error = RuntimeError("sink down")
        client = MockRemoteProcedureClient(error=RemoteProcedureError("boom", status_code=503))
        invoker = self.make_invoker(client)

        with pytest.raises(RemoteInvocationError) as exc_info:
            await invoker.invoke("approve-sticker", {})

        assert exc_info.value.kind == InvocationErrorKind.ServiceUnavailable
        assert self.observability.logs[-1]["level"] == "WARNING"
