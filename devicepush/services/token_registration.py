import logging
from typing import Optional

from pydantic import ValidationError

from devicepush.schemas.registration import (
    DeviceToken,
    RegistrationOutcome,
    RegistrationRequest,
)
from devicepush.services.background_tasks import BackgroundDispatcher
from devicepush.services.identity import IdentityResolver
from devicepush.services.push_gateway import PushGatewayClient, RegistrationResult

logger = logging.getLogger(__name__)


class TokenRegistrationService:
    """Forwards rotated push tokens to the gateway without blocking the caller.

    Every public method decides synchronously whether a registration is due,
    hands at most one gateway call to the dispatcher and returns a
    ``RegistrationOutcome``. Nothing raised downstream reaches the caller; the
    result of the network call is only logged.
    """

    def __init__(
        self,
        identity_resolver: IdentityResolver,
        gateway: PushGatewayClient,
        dispatcher: Optional[BackgroundDispatcher] = None,
    ) -> None:
        self._identity_resolver = identity_resolver
        self._gateway = gateway
        self._dispatcher = dispatcher or BackgroundDispatcher()

    @property
    def gateway(self) -> PushGatewayClient:
        return self._gateway

    @property
    def dispatcher(self) -> BackgroundDispatcher:
        return self._dispatcher

    def on_token_rotated(self, token: str) -> RegistrationOutcome:
        device_token = self._parse_token(token)
        if device_token is None:
            return RegistrationOutcome.invalid_token

        try:
            identity = self._identity_resolver.resolve()
        except Exception as exc:
            logger.error(f"Failed to resolve signed-in user for token registration: {exc}", exc_info=True)
            return RegistrationOutcome.identity_unavailable

        if identity is None:
            # TODO: queue the token and register it from the sign-in flow instead
            # of relying on the host to call register_for_user.
            logger.info(f"No signed-in user, skipping registration of token {device_token.preview}")
            return RegistrationOutcome.skipped_no_identity

        return self._submit(identity.user_id, device_token)

    def register_for_user(self, token: str, user_id: str | int | None) -> RegistrationOutcome:
        """Register ``token`` for a user the caller already knows, e.g. right after sign-in."""
        device_token = self._parse_token(token)
        if device_token is None:
            return RegistrationOutcome.invalid_token
        user_id = str(user_id).strip() if user_id is not None else ""
        if not user_id:
            logger.info(f"No user id given, skipping registration of token {device_token.preview}")
            return RegistrationOutcome.skipped_no_identity
        return self._submit(user_id, device_token)

    def _parse_token(self, token: str) -> Optional[DeviceToken]:
        try:
            return DeviceToken(value=token)
        except ValidationError:
            logger.warning("Ignoring token rotation with an empty push token")
            return None

    def _submit(self, user_id: str, device_token: DeviceToken) -> RegistrationOutcome:
        request = RegistrationRequest(user_id=user_id, fcm_token=device_token.value)
        try:
            self._dispatcher.submit(self._register(request, device_token))
        except Exception as exc:
            logger.error(f"Could not schedule token registration: {exc}", exc_info=True)
            return RegistrationOutcome.dispatch_failed
        return RegistrationOutcome.submitted

    async def _register(self, request: RegistrationRequest, device_token: DeviceToken) -> RegistrationResult:
        result = await self._gateway.register(request)
        if result.ok:
            logger.info(
                f"Token registration response: {result.status_code} "
                f"(user {request.user_id}, token {device_token.preview})"
            )
        else:
            logger.warning(
                f"Failed to register token {device_token.preview} for user {request.user_id}: "
                f"{type(result.error).__name__}: {result.error}"
            )
        return result
