"""Entry points a host messaging service forwards its two callbacks to."""

import logging
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from devicepush.core.config import Settings, settings as default_settings
from devicepush.schemas.notification import DisplayCommand, NotificationChannel, RemoteMessage
from devicepush.schemas.registration import RegistrationOutcome
from devicepush.services.background_tasks import BackgroundDispatcher
from devicepush.services.identity import LocalIdentityStore, StoreIdentityResolver
from devicepush.services.notification_presenter import NotificationPresenter, NotificationSink
from devicepush.services.push_gateway import PushGatewayClient
from devicepush.services.token_registration import TokenRegistrationService

logger = logging.getLogger(__name__)


class PushMessagingHandler:
    def __init__(self, presenter: NotificationPresenter, registration: TokenRegistrationService) -> None:
        self.presenter = presenter
        self.registration = registration

    def on_message_received(self, message: Mapping[str, Any]) -> DisplayCommand:
        try:
            remote = RemoteMessage.model_validate(message)
        except ValidationError as exc:
            # Still show something rather than dropping the push
            logger.warning(f"Malformed push message, showing defaults: {exc}")
            remote = RemoteMessage()
        return self.presenter.present(remote.to_display_payload())

    def on_new_token(self, token: str) -> RegistrationOutcome:
        return self.registration.on_token_rotated(token)


def create_messaging_handler(
    store: LocalIdentityStore,
    sink: NotificationSink,
    settings: Optional[Settings] = None,
    *,
    gateway: Optional[PushGatewayClient] = None,
    dispatcher: Optional[BackgroundDispatcher] = None,
) -> PushMessagingHandler:
    settings = settings or default_settings
    channel = NotificationChannel(
        id=settings.NOTIFICATION_CHANNEL_ID,
        name=settings.NOTIFICATION_CHANNEL_NAME,
        description=settings.NOTIFICATION_CHANNEL_DESCRIPTION,
        light_color=settings.NOTIFICATION_LIGHT_COLOR,
    )
    presenter = NotificationPresenter(
        sink,
        channel=channel,
        default_title=settings.NOTIFICATION_DEFAULT_TITLE,
        default_body=settings.NOTIFICATION_DEFAULT_BODY,
        small_icon=settings.NOTIFICATION_SMALL_ICON,
        fallback_icon=settings.APP_ICON,
        launch_package=settings.APP_PACKAGE,
    )
    gateway = gateway or PushGatewayClient(
        settings.GATEWAY_BASE_URL,
        timeout=settings.REGISTRATION_TIMEOUT_SECONDS,
        connect_timeout=settings.REGISTRATION_CONNECT_TIMEOUT_SECONDS,
    )
    registration = TokenRegistrationService(
        StoreIdentityResolver(store, key=settings.IDENTITY_STORE_KEY),
        gateway,
        dispatcher,
    )
    return PushMessagingHandler(presenter, registration)
