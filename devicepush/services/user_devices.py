from datetime import datetime, timezone
from typing import Iterable, List

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlmodel import select, delete
from sqlmodel.ext.asyncio.session import AsyncSession

from devicepush.models.user_device import UserDevice


def _insert_for(session: AsyncSession):
    dialect = session.get_bind().dialect.name
    if dialect == "sqlite":
        return sqlite_insert
    return pg_insert


async def register_device_token(
    session: AsyncSession,
    *,
    user_id: str,
    fcm_token: str,
) -> UserDevice:
    """Record that ``fcm_token`` addresses a device of ``user_id``.

    Upserts on (user_id, fcm_token) so a token re-sent after rotation or a
    retry only refreshes ``updated_at``; concurrent registrations settle on
    whichever write lands last.
    """
    now = datetime.now(timezone.utc)
    insert = _insert_for(session)
    stmt = (
        insert(UserDevice)
        .values(
            user_id=user_id,
            fcm_token=fcm_token,
            created_at=now,
            updated_at=now,
        )
        .on_conflict_do_update(
            index_elements=["user_id", "fcm_token"],
            set_=dict(updated_at=now),
        )
        .returning(UserDevice)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    device = result.scalars().one()
    await session.commit()
    return device


async def get_tokens_for_users(
    session: AsyncSession,
    *,
    user_ids: Iterable[str],
) -> List[UserDevice]:
    """Get every registered device for the given users, newest first."""
    ids = list(dict.fromkeys(user_ids))
    if not ids:
        return []
    stmt = select(UserDevice).where(
        UserDevice.user_id.in_(ids),  # type: ignore[attr-defined]
    ).order_by(UserDevice.updated_at.desc())  # type: ignore[attr-defined]
    result = await session.exec(stmt)
    return list(result.all())


async def delete_device_token(
    session: AsyncSession,
    *,
    fcm_token: str,
) -> bool:
    """Remove a token for every user (on unregister or invalid token error).

    Returns True if a token was deleted, False otherwise.
    """
    stmt = delete(UserDevice).where(UserDevice.fcm_token == fcm_token)
    result = await session.exec(stmt)
    await session.commit()
    return result.rowcount > 0  # type: ignore


async def update_last_used(
    session: AsyncSession,
    *,
    fcm_token: str,
) -> None:
    """Track successful delivery by updating last_used_at timestamp."""
    stmt = select(UserDevice).where(UserDevice.fcm_token == fcm_token)
    result = await session.exec(stmt)
    now = datetime.now(timezone.utc)
    changed = False
    for device in result.all():
        device.last_used_at = now
        session.add(device)
        changed = True
    if changed:
        await session.commit()
