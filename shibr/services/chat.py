"""Conversations between the two parties of a rental request."""
from datetime import datetime

import structlog
from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from shibr.core.exceptions import BusinessRuleError, NotFoundError, PermissionDeniedError
from shibr.models.chat import (
    Conversation, ConversationStatus, Message, MessageType, NotificationType,
)
from shibr.models.user import User
from shibr.services.notifications import notify

logger = structlog.get_logger()

PREVIEW_LENGTH = 100


def preview(text: str) -> str:
    if len(text) <= PREVIEW_LENGTH:
        return text
    return text[:PREVIEW_LENGTH] + "..."


async def open_conversation(
    db: AsyncSession,
    brand_owner_id: int,
    store_owner_id: int,
    shelf_id: int,
) -> Conversation:
    conversation = Conversation(
        brand_owner_id=brand_owner_id,
        store_owner_id=store_owner_id,
        shelf_id=shelf_id,
        status=ConversationStatus.ACTIVE,
        brand_owner_unread_count=0,
        store_owner_unread_count=0,
    )
    db.add(conversation)
    await db.flush()
    return conversation


async def get_conversation(db: AsyncSession, conversation_id: int) -> Conversation:
    conversation = await db.get(Conversation, conversation_id)
    if conversation is None:
        raise NotFoundError("Conversation not found")
    return conversation


def check_participant(conversation: Conversation, user_id: int) -> None:
    if user_id not in (conversation.brand_owner_id, conversation.store_owner_id):
        raise PermissionDeniedError("You are not part of this conversation")


def _bump_unread(conversation: Conversation, recipient_id: int) -> None:
    if recipient_id == conversation.brand_owner_id:
        conversation.brand_owner_unread_count = (conversation.brand_owner_unread_count or 0) + 1
    else:
        conversation.store_owner_unread_count = (conversation.store_owner_unread_count or 0) + 1


async def _append(
    db: AsyncSession,
    conversation: Conversation,
    sender_id: int,
    text: str,
    message_type: MessageType,
) -> Message:
    now = datetime.utcnow()
    message = Message(
        conversation_id=conversation.id,
        sender_id=sender_id,
        text=text,
        message_type=message_type,
        is_read=False,
        created_at=now,
    )
    db.add(message)
    conversation.last_message_text = text
    conversation.last_message_at = now
    conversation.last_message_sender_id = sender_id
    await db.flush()
    return message


async def send_message(
    db: AsyncSession,
    conversation_id: int,
    sender: User,
    text: str,
    message_type: MessageType = MessageType.TEXT,
) -> Message:
    """Post a message and bump the other party's unread counter."""
    text = (text or "").strip()
    if not text:
        raise BusinessRuleError("Message text is required")

    conversation = await get_conversation(db, conversation_id)
    if conversation.status == ConversationStatus.ARCHIVED:
        raise BusinessRuleError("This conversation is archived")
    check_participant(conversation, sender.id)

    message = await _append(db, conversation, sender.id, text, message_type)
    recipient_id = conversation.other_party(sender.id)
    _bump_unread(conversation, recipient_id)

    await notify(
        db,
        user_id=recipient_id,
        type=NotificationType.NEW_MESSAGE,
        title=f"New message from {sender.display_name}",
        message=preview(text),
        conversation_id=conversation.id,
        action_url=f"/messages/{conversation.id}",
    )
    logger.info("message_sent", conversation_id=conversation.id, sender_id=sender.id)
    return message


async def post_system_message(
    db: AsyncSession,
    conversation: Conversation,
    sender_id: int,
    text: str,
    message_type: MessageType = MessageType.SYSTEM,
) -> Message:
    """Workflow message; the party that did not trigger it gets an unread mark."""
    message = await _append(db, conversation, sender_id, text, message_type)
    _bump_unread(conversation, conversation.other_party(sender_id))
    await db.flush()
    return message


async def list_messages(
    db: AsyncSession,
    conversation_id: int,
    user_id: int,
    limit: int = 100,
) -> list[dict]:
    conversation = await get_conversation(db, conversation_id)
    check_participant(conversation, user_id)

    result = await db.execute(
        select(Message, User)
        .join(User, Message.sender_id == User.id)
        .where(Message.conversation_id == conversation_id)
        .order_by(Message.created_at, Message.id)
        .limit(limit)
    )
    return [
        {
            "id": message.id,
            "conversation_id": message.conversation_id,
            "sender_id": message.sender_id,
            "sender_name": sender.display_name,
            "text": message.text,
            "message_type": message.message_type,
            "is_read": message.is_read,
            "created_at": message.created_at,
        }
        for message, sender in result.all()
    ]


async def mark_read(db: AsyncSession, conversation_id: int, user_id: int) -> int:
    """Mark the other party's messages read and reset the caller's counter."""
    conversation = await get_conversation(db, conversation_id)
    check_participant(conversation, user_id)

    result = await db.execute(
        update(Message)
        .where(
            Message.conversation_id == conversation_id,
            Message.sender_id != user_id,
            Message.is_read.is_(False),
        )
        .values(is_read=True, read_at=datetime.utcnow())
    )
    if user_id == conversation.brand_owner_id:
        conversation.brand_owner_unread_count = 0
    else:
        conversation.store_owner_unread_count = 0
    await db.flush()
    return result.rowcount or 0


async def list_conversations(db: AsyncSession, user_id: int) -> list[Conversation]:
    result = await db.execute(
        select(Conversation).where(
            or_(
                Conversation.brand_owner_id == user_id,
                Conversation.store_owner_id == user_id,
            )
        )
    )
    conversations = list(result.scalars().all())
    conversations.sort(
        key=lambda c: c.last_message_at or c.updated_at or c.created_at or datetime.min,
        reverse=True,
    )
    return conversations


def unread_for(conversation: Conversation, user_id: int) -> int:
    if user_id == conversation.brand_owner_id:
        return conversation.brand_owner_unread_count or 0
    return conversation.store_owner_unread_count or 0


async def archive(db: AsyncSession, conversation_id: int | None) -> None:
    if conversation_id is None:
        return
    conversation = await db.get(Conversation, conversation_id)
    if conversation is not None:
        conversation.status = ConversationStatus.ARCHIVED
        await db.flush()
