from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ChannelImportance(str, Enum):
    low = "low"
    default = "default"
    high = "high"


class NotificationChannel(BaseModel):
    """OS-level grouping that controls how task notifications are presented."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str
    description: str = ""
    importance: ChannelImportance = ChannelImportance.default
    enable_lights: bool = True
    light_color: str = "#0000FF"


class DisplayPayload(BaseModel):
    title: Optional[str] = None
    body: Optional[str] = None
    data: dict[str, str] = Field(default_factory=dict)


class DisplayCommand(BaseModel):
    """Everything the host needs to put one notification on screen."""
    model_config = ConfigDict(frozen=True)

    notification_id: int
    channel_id: str
    title: str
    body: str
    small_icon: str
    auto_cancel: bool = True
    launch_package: Optional[str] = None
    data: dict[str, str] = Field(default_factory=dict)


class RemoteNotification(BaseModel):
    title: Optional[str] = None
    body: Optional[str] = None


class RemoteMessage(BaseModel):
    """Message as delivered by the push transport to the device."""
    model_config = ConfigDict(extra="ignore")

    notification: Optional[RemoteNotification] = None
    data: dict[str, str] = Field(default_factory=dict)

    def to_display_payload(self) -> DisplayPayload:
        if self.notification is None:
            return DisplayPayload(data=self.data)
        return DisplayPayload(
            title=self.notification.title,
            body=self.notification.body,
            data=self.data,
        )


class TaskAssignedNotifyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    assigned_worker_ids: Optional[list[str | int]] = Field(default=None, alias="assignedWorkerIds")
    task_name: Optional[str] = Field(default=None, alias="taskName")
    task_id: Optional[str | int] = Field(default=None, alias="taskId")
    project_name: Optional[str] = Field(default=None, alias="projectName")


class TaskAssignedNotifyResponse(BaseModel):
    sent: int
    failed: int = 0
    message: Optional[str] = None
