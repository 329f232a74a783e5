"""
Unit tests for the token registration service.

Covers the behaviour of a token rotation callback:
- No signed-in user means no outbound call
- A signed-in user means exactly one call with {userId, fcmToken}
- The callback never waits for the gateway and never raises
"""

import logging
import time

import httpx
import pytest

from devicepush.schemas.registration import RegistrationOutcome
from devicepush.services.background_tasks import BackgroundDispatcher
from devicepush.services.identity import (
    InMemoryIdentityStore,
    JsonFileIdentityStore,
    StoreIdentityResolver,
)
from devicepush.services.push_gateway import PushGatewayClient
from devicepush.services.token_registration import TokenRegistrationService
from devicepush.testing import RecordingGatewayTransport

pytestmark = pytest.mark.unit

GATEWAY_URL = "http://gateway.test"


def _make_service(
    transport: RecordingGatewayTransport,
    dispatcher: BackgroundDispatcher,
    store=None,
) -> TokenRegistrationService:
    if store is None:
        store = InMemoryIdentityStore({"current_user_id": "user-42"})
    gateway = PushGatewayClient(GATEWAY_URL, timeout=2.0, connect_timeout=1.0, transport=transport)
    return TokenRegistrationService(StoreIdentityResolver(store), gateway, dispatcher)


class TestIdentityAbsent:
    """Rotations before sign-in are dropped without touching the network."""

    def test_no_identity_makes_no_call(self, gateway_transport, dispatcher):
        service = _make_service(gateway_transport, dispatcher, store=InMemoryIdentityStore())

        outcome = service.on_token_rotated("fcm-token-abc")

        assert outcome is RegistrationOutcome.skipped_no_identity
        assert dispatcher.drain(timeout=2.0)
        assert gateway_transport.requests == []

    def test_blank_stored_identity_counts_as_absent(self, gateway_transport, dispatcher):
        store = InMemoryIdentityStore({"current_user_id": "   "})
        service = _make_service(gateway_transport, dispatcher, store=store)

        assert service.on_token_rotated("fcm-token-abc") is RegistrationOutcome.skipped_no_identity
        assert gateway_transport.requests == []

    def test_unreadable_identity_is_reported_not_raised(self, gateway_transport, dispatcher, tmp_path):
        prefs = tmp_path / "CapacitorStorage.json"
        prefs.write_text("{not json", encoding="utf-8")
        service = _make_service(gateway_transport, dispatcher, store=JsonFileIdentityStore(prefs))

        outcome = service.on_token_rotated("fcm-token-abc")

        assert outcome is RegistrationOutcome.identity_unavailable
        assert gateway_transport.requests == []


class TestIdentityPresent:
    def test_sends_exactly_one_registration(self, gateway_transport, dispatcher):
        service = _make_service(gateway_transport, dispatcher)

        outcome = service.on_token_rotated("fcm-token-abc")

        assert outcome is RegistrationOutcome.submitted
        assert dispatcher.drain(timeout=2.0)
        assert len(gateway_transport.requests) == 1
        request = gateway_transport.requests[0]
        assert request.method == "POST"
        assert str(request.url) == f"{GATEWAY_URL}/register-token"
        assert request.headers["content-type"] == "application/json"
        assert gateway_transport.bodies == [{"userId": "user-42", "fcmToken": "fcm-token-abc"}]

    def test_token_whitespace_is_trimmed(self, gateway_transport, dispatcher):
        service = _make_service(gateway_transport, dispatcher)

        service.on_token_rotated("  fcm-token-abc\n")

        assert dispatcher.drain(timeout=2.0)
        assert gateway_transport.bodies == [{"userId": "user-42", "fcmToken": "fcm-token-abc"}]

    @pytest.mark.parametrize("token", ["", "   ", None])
    def test_empty_token_is_rejected_without_call(self, gateway_transport, dispatcher, token):
        service = _make_service(gateway_transport, dispatcher)

        assert service.on_token_rotated(token) is RegistrationOutcome.invalid_token
        assert dispatcher.drain(timeout=2.0)
        assert gateway_transport.requests == []

    def test_each_rotation_is_independent(self, gateway_transport, dispatcher):
        service = _make_service(gateway_transport, dispatcher)

        service.on_token_rotated("first-token")
        service.on_token_rotated("second-token")

        assert dispatcher.drain(timeout=2.0)
        tokens = sorted(body["fcmToken"] for body in gateway_transport.bodies)
        assert tokens == ["first-token", "second-token"]


class TestFireAndForget:
    def test_callback_returns_before_gateway_responds(self, gateway_transport, dispatcher):
        gateway_transport.release.clear()
        service = _make_service(gateway_transport, dispatcher)

        started = time.monotonic()
        outcome = service.on_token_rotated("fcm-token-abc")
        elapsed = time.monotonic() - started

        assert outcome is RegistrationOutcome.submitted
        assert elapsed < 1.0
        assert not gateway_transport.completed.is_set()

        # The stalled call still runs to completion on its own
        gateway_transport.release.set()
        assert dispatcher.drain(timeout=2.0)
        assert gateway_transport.completed.is_set()
        assert len(gateway_transport.requests) == 1

    def test_gateway_rejection_is_swallowed_and_logged(self, dispatcher, caplog):
        caplog.set_level(logging.INFO)
        transport = RecordingGatewayTransport(status_code=500, json_body={"error": "boom"})
        service = _make_service(transport, dispatcher)

        outcome = service.on_token_rotated("fcm-token-abc")

        assert outcome is RegistrationOutcome.submitted
        assert dispatcher.drain(timeout=2.0)
        assert "GatewayRejected" in caplog.text
        assert "500" in caplog.text

    def test_network_failure_is_swallowed_and_logged(self, dispatcher, caplog):
        caplog.set_level(logging.INFO)
        transport = RecordingGatewayTransport(
            error=lambda request: httpx.ConnectError("connection refused", request=request)
        )
        service = _make_service(transport, dispatcher)

        outcome = service.on_token_rotated("fcm-token-abc")

        assert outcome is RegistrationOutcome.submitted
        assert dispatcher.drain(timeout=2.0)
        assert "NetworkFailure" in caplog.text

    def test_dispatch_failure_is_reported(self, gateway_transport):
        class RefusingDispatcher(BackgroundDispatcher):
            def submit(self, coro):
                coro.close()
                raise RuntimeError("worker unavailable")

        service = _make_service(gateway_transport, RefusingDispatcher())

        assert service.on_token_rotated("fcm-token-abc") is RegistrationOutcome.dispatch_failed
        assert gateway_transport.requests == []


class TestExplicitRegistration:
    def test_register_for_user_bypasses_store(self, gateway_transport, dispatcher):
        service = _make_service(gateway_transport, dispatcher, store=InMemoryIdentityStore())

        outcome = service.register_for_user("fcm-token-abc", "user-7")

        assert outcome is RegistrationOutcome.submitted
        assert dispatcher.drain(timeout=2.0)
        assert gateway_transport.bodies == [{"userId": "user-7", "fcmToken": "fcm-token-abc"}]

    @pytest.mark.parametrize("user_id", ["", "   ", None])
    def test_register_for_user_without_user_is_skipped(self, gateway_transport, dispatcher, user_id):
        service = _make_service(gateway_transport, dispatcher)

        assert service.register_for_user("fcm-token-abc", user_id) is RegistrationOutcome.skipped_no_identity
        assert dispatcher.drain(timeout=2.0)
        assert gateway_transport.requests == []

    def test_register_for_user_accepts_numeric_id(self, gateway_transport, dispatcher):
        service = _make_service(gateway_transport, dispatcher, store=InMemoryIdentityStore())

        outcome = service.register_for_user("fcm-token-abc", 42)

        assert outcome is RegistrationOutcome.submitted
        assert dispatcher.drain(timeout=2.0)
        assert gateway_transport.bodies == [{"userId": "42", "fcmToken": "fcm-token-abc"}]
