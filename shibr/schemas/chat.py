"""Conversation, message and notification schemas."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict

from shibr.models.chat import ConversationStatus, MessageType, NotificationType


class MessageCreate(BaseModel):
    text: str = Field(..., min_length=1, max_length=5000)


class MessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    conversation_id: int
    sender_id: int
    sender_name: Optional[str] = None
    text: str
    message_type: MessageType
    is_read: bool
    created_at: datetime


class ConversationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    brand_owner_id: int
    store_owner_id: int
    shelf_id: int
    status: ConversationStatus
    unread_count: int = 0
    last_message_text: Optional[str] = None
    last_message_at: Optional[datetime] = None
    last_message_sender_id: Optional[int] = None
    created_at: datetime


class ReadResult(BaseModel):
    marked: int


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    message: str
    type: NotificationType
    rental_request_id: Optional[int] = None
    conversation_id: Optional[int] = None
    action_url: Optional[str] = None
    is_read: bool
    created_at: datetime
    read_at: Optional[datetime] = None


class UnreadCount(BaseModel):
    count: int
