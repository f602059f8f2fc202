"""In-app notifications written by the workflows."""
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from shibr.core.exceptions import NotFoundError
from shibr.models.chat import Notification, NotificationType


async def notify(
    db: AsyncSession,
    user_id: int,
    type: NotificationType,
    title: str,
    message: str,
    rental_request_id: Optional[int] = None,
    conversation_id: Optional[int] = None,
    action_url: Optional[str] = None,
) -> Notification:
    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        rental_request_id=rental_request_id,
        conversation_id=conversation_id,
        action_url=action_url,
        is_read=False,
    )
    db.add(notification)
    await db.flush()
    return notification


def _user_filter(user_id: int, exclude_messages: bool):
    criteria = [Notification.user_id == user_id]
    if exclude_messages:
        criteria.append(Notification.type != NotificationType.NEW_MESSAGE)
    return criteria


async def list_for_user(
    db: AsyncSession,
    user_id: int,
    limit: int = 50,
    exclude_messages: bool = False,
) -> list[Notification]:
    result = await db.execute(
        select(Notification)
        .where(*_user_filter(user_id, exclude_messages))
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def unread_count(db: AsyncSession, user_id: int, exclude_messages: bool = False) -> int:
    count = await db.scalar(
        select(func.count(Notification.id)).where(
            *_user_filter(user_id, exclude_messages),
            Notification.is_read.is_(False),
        )
    )
    return count or 0


async def get_own(db: AsyncSession, notification_id: int, user_id: int) -> Notification:
    notification = await db.get(Notification, notification_id)
    if notification is None or notification.user_id != user_id:
        raise NotFoundError("Notification not found")
    return notification


async def mark_read(db: AsyncSession, notification_id: int, user_id: int) -> Notification:
    notification = await get_own(db, notification_id, user_id)
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = datetime.utcnow()
    await db.flush()
    return notification


async def mark_all_read(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True, read_at=datetime.utcnow())
    )
    return result.rowcount or 0


async def delete_notification(db: AsyncSession, notification_id: int, user_id: int) -> None:
    notification = await get_own(db, notification_id, user_id)
    await db.delete(notification)
    await db.flush()


async def purge_old(db: AsyncSession, days: int = 30) -> int:
    """Delete read notifications older than `days`."""
    cutoff = datetime.utcnow() - timedelta(days=days)
    result = await db.execute(
        delete(Notification).where(
            Notification.is_read.is_(True),
            Notification.created_at < cutoff,
        )
    )
    return result.rowcount or 0
