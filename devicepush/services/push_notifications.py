import asyncio
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Optional

import httpx
from google.auth.transport.requests import Request
from google.oauth2 import service_account
from sqlmodel.ext.asyncio.session import AsyncSession

from devicepush.core.config import settings
from devicepush.services import user_devices

logger = logging.getLogger(__name__)

# FCM API endpoint
FCM_API_URL = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"

# OAuth2 scopes required for FCM
FCM_SCOPES = ["https://www.googleapis.com/auth/firebase.messaging"]

TASK_ASSIGNED_TITLE = "New Task Assigned"
TASK_ASSIGNED_TYPE = "task_assigned"


class PushNotConfiguredError(RuntimeError):
    """FCM credentials or project id are missing."""


class DeliveryStatus(str, Enum):
    sent = "sent"
    invalid_token = "invalid_token"
    failed = "failed"


@dataclass
class DeliveryReport:
    sent: int = 0
    failed: int = 0
    removed_tokens: int = 0


def fcm_configured() -> bool:
    return bool(settings.FCM_ENABLED and settings.FCM_PROJECT_ID and settings.FCM_SERVICE_ACCOUNT_JSON)


def _get_fcm_access_token() -> Optional[str]:
    """Get OAuth2 access token from service account credentials.

    Returns None if FCM is not configured or credentials are invalid.
    """
    if not settings.FCM_ENABLED or not settings.FCM_SERVICE_ACCOUNT_JSON:
        return None

    try:
        service_account_info = json.loads(settings.FCM_SERVICE_ACCOUNT_JSON)
        credentials = service_account.Credentials.from_service_account_info(
            service_account_info,
            scopes=FCM_SCOPES,
        )
        credentials.refresh(Request())
        return credentials.token
    except Exception as exc:
        logger.error(f"Failed to get FCM access token: {exc}", exc_info=True)
        return None


def build_task_assigned_message(
    *,
    task_name: Optional[str],
    task_id: Any = None,
    project_name: Optional[str] = None,
) -> Dict[str, Any]:
    """Notification and data parts shared by every device of a task assignment."""
    body = f"You have a new task: {task_name}" if task_name else "You have a new task!"
    return {
        "notification": {"title": TASK_ASSIGNED_TITLE, "body": body},
        "data": {
            "type": TASK_ASSIGNED_TYPE,
            "taskId": str(task_id if task_id is not None else ""),
            "taskName": str(task_name or ""),
            "projectName": str(project_name or ""),
        },
    }


async def _send_to_fcm(
    token: str,
    title: str,
    body: str,
    access_token: str,
    data: Optional[Dict[str, Any]] = None,
    channel_id: Optional[str] = None,
) -> DeliveryStatus:
    """Send a push notification via FCM HTTP v1 API.

    Error handling:
        - 404/410: Token invalid, caller should delete from database
        - 401: Credentials issue, logged as error
        - 5xx: Server error, logged as error
        - Network errors: Logged as warning
    """
    message: Dict[str, Any] = {
        "message": {
            "token": token,
            "notification": {
                "title": title,
                "body": body,
            },
        }
    }

    # Route to the device-side notification channel
    if channel_id:
        message["message"]["android"] = {
            "notification": {
                "channel_id": channel_id,
            }
        }

    # FCM data values must be strings
    if data:
        message["message"]["data"] = {k: str(v) for k, v in data.items()}

    url = FCM_API_URL.format(project_id=settings.FCM_PROJECT_ID)
    headers = {
        "Authorization": f"Bearer {access_token}",
        "Content-Type": "application/json",
    }

    try:
        async with httpx.AsyncClient() as client:
            response = await client.post(url, json=message, headers=headers, timeout=10.0)
    except httpx.TimeoutException:
        logger.warning(f"FCM request timed out for token: {token[:20]}...")
        return DeliveryStatus.failed
    except Exception as exc:
        logger.error(f"Failed to send FCM notification: {exc}", exc_info=True)
        return DeliveryStatus.failed

    if response.status_code == 200:
        logger.info(f"Push notification sent successfully to token: {token[:20]}...")
        return DeliveryStatus.sent
    if response.status_code in (404, 410):
        logger.warning(f"FCM token invalid (status {response.status_code}): {token[:20]}...")
        return DeliveryStatus.invalid_token
    if response.status_code == 401:
        logger.error(f"FCM authentication failed (status {response.status_code}): {response.text}")
        return DeliveryStatus.failed
    logger.error(f"FCM request failed (status {response.status_code}): {response.text}")
    return DeliveryStatus.failed


async def send_task_assigned(
    session: AsyncSession,
    *,
    worker_ids: Iterable[str],
    task_name: Optional[str],
    task_id: Any = None,
    project_name: Optional[str] = None,
) -> DeliveryReport:
    """Notify every registered device of the assigned workers.

    Raises:
        PushNotConfiguredError: FCM is disabled or no access token could be obtained.
    """
    devices = await user_devices.get_tokens_for_users(session, user_ids=worker_ids)
    report = DeliveryReport()
    if not devices:
        logger.debug("No device tokens registered for assigned workers")
        return report

    if not fcm_configured():
        raise PushNotConfiguredError("FCM is not enabled")

    # Refreshing the credentials is a blocking HTTP call
    access_token = await asyncio.to_thread(_get_fcm_access_token)
    if not access_token:
        raise PushNotConfiguredError("Failed to get FCM access token")

    payload = build_task_assigned_message(
        task_name=task_name,
        task_id=task_id,
        project_name=project_name,
    )
    # The same token may be registered for more than one worker on a shared device
    tokens = list(dict.fromkeys(device.fcm_token for device in devices))
    invalid_tokens = []

    for token in tokens:
        status = await _send_to_fcm(
            token,
            payload["notification"]["title"],
            payload["notification"]["body"],
            access_token,
            data=payload["data"],
            channel_id=settings.NOTIFICATION_CHANNEL_ID,
        )
        if status is DeliveryStatus.sent:
            report.sent += 1
            await user_devices.update_last_used(session, fcm_token=token)
        else:
            report.failed += 1
            if status is DeliveryStatus.invalid_token:
                invalid_tokens.append(token)

    for invalid_token in invalid_tokens:
        logger.info(f"Deleting invalid device token: {invalid_token[:20]}...")
        if await user_devices.delete_device_token(session, fcm_token=invalid_token):
            report.removed_tokens += 1

    logger.info(
        f'Notification sent to {report.sent} device(s) for task: "{task_name}" '
        f"({report.failed} failed)"
    )
    return report
