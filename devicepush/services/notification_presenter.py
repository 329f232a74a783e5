import logging
import threading
import time
from typing import Callable, Optional, Protocol

from devicepush.schemas.notification import DisplayCommand, DisplayPayload, NotificationChannel

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New Task Assigned"
DEFAULT_BODY = "You have a new task!"

# Notification ids are platform ints; keep them positive and 31-bit.
_ID_MASK = 0x7FFFFFFF


class NotificationSink(Protocol):
    """Host-side surface that actually talks to the OS notification service."""

    def create_notification_channel(self, channel: NotificationChannel) -> None:
        ...

    def has_drawable(self, name: str) -> bool:
        ...

    def notify(self, command: DisplayCommand) -> None:
        ...


class NotificationIdGenerator:
    """Millisecond-clock ids that never repeat back to back."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._last: Optional[int] = None

    def next_id(self) -> int:
        with self._lock:
            candidate = int(self._clock() * 1000) & _ID_MASK
            if self._last is not None and candidate <= self._last:
                candidate = (self._last + 1) & _ID_MASK
            self._last = candidate
            return candidate


class NotificationPresenter:
    def __init__(
        self,
        sink: NotificationSink,
        *,
        channel: NotificationChannel,
        default_title: str = DEFAULT_TITLE,
        default_body: str = DEFAULT_BODY,
        small_icon: str = "ic_notification",
        fallback_icon: str = "ic_launcher",
        launch_package: Optional[str] = None,
        id_generator: Optional[NotificationIdGenerator] = None,
    ) -> None:
        self._sink = sink
        self.channel = channel
        self._default_title = default_title
        self._default_body = default_body
        self._small_icon = small_icon
        self._fallback_icon = fallback_icon
        self._launch_package = launch_package
        self._ids = id_generator or NotificationIdGenerator()
        self._channel_lock = threading.Lock()
        self._channel_ready = False

    def ensure_channel(self) -> bool:
        """Create the delivery channel once. Returns True only on the call that created it."""
        with self._channel_lock:
            if self._channel_ready:
                return False
            self._sink.create_notification_channel(self.channel)
            self._channel_ready = True
            logger.debug("Created notification channel %s", self.channel.id)
            return True

    def on_message_display_requested(self, payload: DisplayPayload) -> DisplayCommand:
        title = payload.title if payload.title is not None else self._default_title
        body = payload.body if payload.body is not None else self._default_body
        return DisplayCommand(
            notification_id=self._ids.next_id(),
            channel_id=self.channel.id,
            title=title,
            body=body,
            small_icon=self._resolve_small_icon(),
            auto_cancel=True,
            launch_package=self._launch_package,
            data=dict(payload.data),
        )

    def present(self, payload: DisplayPayload) -> DisplayCommand:
        self.ensure_channel()
        command = self.on_message_display_requested(payload)
        self._sink.notify(command)
        return command

    def _resolve_small_icon(self) -> str:
        try:
            if self._sink.has_drawable(self._small_icon):
                return self._small_icon
        except Exception as exc:
            logger.warning(f"Icon lookup for {self._small_icon} failed, using app icon: {exc}")
        return self._fallback_icon
