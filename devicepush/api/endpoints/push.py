import logging

from fastapi import APIRouter, HTTPException, status

from devicepush.api.deps import SessionDep
from devicepush.schemas.notification import TaskAssignedNotifyRequest, TaskAssignedNotifyResponse
from devicepush.schemas.registration import (
    RegisterTokenBody,
    RegisterTokenResponse,
    UnregisterTokenBody,
    UnregisterTokenResponse,
)
from devicepush.services import push_notifications, user_devices

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/register-token", response_model=RegisterTokenResponse)
async def register_token(
    session: SessionDep,
    request: RegisterTokenBody,
) -> RegisterTokenResponse:
    """Store the mapping from a user to one of their device push tokens.

    Registering the same pair again only refreshes its timestamp.
    """
    user_id = str(request.user_id).strip() if request.user_id is not None else ""
    fcm_token = (request.fcm_token or "").strip()
    if not user_id or not fcm_token:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="userId and fcmToken are required",
        )

    try:
        await user_devices.register_device_token(session, user_id=user_id, fcm_token=fcm_token)
    except Exception as exc:
        logger.error(f"register-token failed: {exc}", exc_info=True)
        await session.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to register token",
        ) from exc
    return RegisterTokenResponse(ok=True, persisted=True)


@router.delete("/register-token", response_model=UnregisterTokenResponse)
async def unregister_token(
    session: SessionDep,
    request: UnregisterTokenBody,
) -> UnregisterTokenResponse:
    """Forget a device token for every user it was registered to."""
    fcm_token = (request.fcm_token or "").strip()
    if not fcm_token:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="fcmToken is required",
        )
    deleted = await user_devices.delete_device_token(session, fcm_token=fcm_token)
    return UnregisterTokenResponse(ok=True, deleted=deleted)


@router.post(
    "/notify-task-assigned",
    response_model=TaskAssignedNotifyResponse,
    response_model_exclude_none=True,
)
async def notify_task_assigned(
    session: SessionDep,
    request: TaskAssignedNotifyRequest,
) -> TaskAssignedNotifyResponse:
    """Push a "New Task Assigned" notification to every device of the assigned workers."""
    worker_ids = [str(worker_id).strip() for worker_id in request.assigned_worker_ids or []]
    worker_ids = [worker_id for worker_id in worker_ids if worker_id]
    if not worker_ids:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="assignedWorkerIds array is required",
        )

    try:
        report = await push_notifications.send_task_assigned(
            session,
            worker_ids=worker_ids,
            task_name=request.task_name,
            task_id=request.task_id,
            project_name=request.project_name,
        )
    except push_notifications.PushNotConfiguredError as exc:
        logger.error(f"notify-task-assigned unavailable: {exc}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Push notifications are not configured",
        ) from exc

    if report.sent == 0 and report.failed == 0:
        return TaskAssignedNotifyResponse(sent=0, message="No tokens registered for assigned workers")
    return TaskAssignedNotifyResponse(sent=report.sent, failed=report.failed)
