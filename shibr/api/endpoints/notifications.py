"""Notification inbox endpoints."""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from shibr.core.database import get_db
from shibr.core.security import get_current_user
from shibr.models.user import User
from shibr.schemas.chat import NotificationResponse, ReadResult, UnreadCount
from shibr.services import notifications

router = APIRouter()


@router.get("/", response_model=list[NotificationResponse])
async def list_notifications(
    limit: int = Query(50, ge=1, le=200),
    exclude_messages: bool = False,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await notifications.list_for_user(db, user.id, limit, exclude_messages)


@router.get("/unread-count", response_model=UnreadCount)
async def unread_count(
    exclude_messages: bool = False,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return UnreadCount(count=await notifications.unread_count(db, user.id, exclude_messages))


@router.post("/read-all", response_model=ReadResult)
async def mark_all_read(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return ReadResult(marked=await notifications.mark_all_read(db, user.id))


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await notifications.mark_read(db, notification_id, user.id)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await notifications.delete_notification(db, notification_id, user.id)
