"""
Test doubles for the host-side collaborators of the push client.

The real implementations live in the host application (OS notification
service, gateway backend); these record what they were asked to do.
"""

import asyncio
import json
import threading
from typing import Any, Callable, Optional

import httpx

from devicepush.schemas.notification import DisplayCommand, NotificationChannel


class RecordingNotificationSink:
    """In-memory stand-in for the OS notification service.

    Channel creation overwrites by id like the platform API does, so calling
    it twice never produces duplicates.
    """

    def __init__(self, drawables: Optional[set[str]] = None) -> None:
        self.drawables = set(drawables or ())
        self.channels: dict[str, NotificationChannel] = {}
        self.channel_create_calls = 0
        self.shown: list[DisplayCommand] = []

    def create_notification_channel(self, channel: NotificationChannel) -> None:
        self.channel_create_calls += 1
        self.channels[channel.id] = channel

    def has_drawable(self, name: str) -> bool:
        return name in self.drawables

    def notify(self, command: DisplayCommand) -> None:
        self.shown.append(command)


class RecordingGatewayTransport(httpx.AsyncBaseTransport):
    """httpx transport that records requests and answers with a fixed status.

    ``release`` can be cleared to stall responses until the test sets it,
    which makes "the caller did not wait" observable.
    """

    def __init__(
        self,
        status_code: int = 200,
        *,
        json_body: Optional[dict[str, Any]] = None,
        error: Optional[Callable[[httpx.Request], Exception]] = None,
    ) -> None:
        self.status_code = status_code
        self.json_body = json_body if json_body is not None else {"ok": True, "persisted": True}
        self.error = error
        self.requests: list[httpx.Request] = []
        self.completed = threading.Event()
        self.release = threading.Event()
        self.release.set()

    @property
    def bodies(self) -> list[dict[str, Any]]:
        return [json.loads(request.content) for request in self.requests]

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        await request.aread()
        self.requests.append(request)
        try:
            while not self.release.is_set():
                await asyncio.sleep(0.01)
            if self.error is not None:
                raise self.error(request)
            return httpx.Response(self.status_code, json=self.json_body, request=request)
        finally:
            self.completed.set()
