"""Import all models for Alembic or metadata creation."""

from devicepush.models.user_device import UserDevice

__all__ = [
    "UserDevice",
]
