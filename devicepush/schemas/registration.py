from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DeviceToken(BaseModel):
    """Push token issued by the messaging SDK on rotation."""

    value: str = Field(min_length=1)
    issued_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("value", mode="before")
    @classmethod
    def strip_value(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip()
        return value

    @property
    def preview(self) -> str:
        return f"{self.value[:20]}..."


class UserIdentity(BaseModel):
    user_id: str = Field(min_length=1)


class RegistrationRequest(BaseModel):
    """Body sent to the gateway's register-token endpoint."""
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(min_length=1, alias="userId")
    fcm_token: str = Field(min_length=1, alias="fcmToken")

    def to_wire(self) -> dict[str, str]:
        return self.model_dump(by_alias=True)


class RegistrationOutcome(str, Enum):
    """What a token-rotation callback did, decided before any network I/O."""

    submitted = "submitted"
    skipped_no_identity = "skipped_no_identity"
    invalid_token = "invalid_token"
    identity_unavailable = "identity_unavailable"
    dispatch_failed = "dispatch_failed"


# Gateway-side request/response bodies. Fields are optional here so the
# endpoint can answer with a 400 and a readable message instead of a 422.


class RegisterTokenBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Numeric user ids are accepted and stored as their string form
    user_id: Optional[str | int] = Field(default=None, alias="userId")
    fcm_token: Optional[str] = Field(default=None, alias="fcmToken")


class UnregisterTokenBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    fcm_token: Optional[str] = Field(default=None, alias="fcmToken")


class RegisterTokenResponse(BaseModel):
    model_config = ConfigDict(json_schema_serialization_defaults_required=True)

    ok: bool
    persisted: bool


class UnregisterTokenResponse(BaseModel):
    model_config = ConfigDict(json_schema_serialization_defaults_required=True)

    ok: bool
    deleted: bool
