"""Conversation, message and notification models."""
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Text, Boolean,
    DateTime, ForeignKey, Enum as SQLEnum, Index, CheckConstraint
)
import enum

from shibr.core.database import Base


class ConversationStatus(str, enum.Enum):
    """Conversation status."""
    ACTIVE = "active"
    ARCHIVED = "archived"


class MessageType(str, enum.Enum):
    """Message type."""
    TEXT = "text"
    IMAGE = "image"
    RENTAL_REQUEST = "rental_request"
    RENTAL_ACCEPTED = "rental_accepted"
    RENTAL_REJECTED = "rental_rejected"
    SYSTEM = "system"


class NotificationType(str, enum.Enum):
    """Notification type."""
    RENTAL_REQUEST = "rental_request"
    RENTAL_ACCEPTED = "rental_accepted"
    RENTAL_REJECTED = "rental_rejected"
    RENTAL_EXPIRED = "rental_expired"
    RENTAL_ACTIVATED = "rental_activated"
    RENTAL_COMPLETED = "rental_completed"
    RENTAL_ENDING_SOON = "rental_ending_soon"
    CLEARANCE_UPDATE = "clearance_update"
    NEW_MESSAGE = "new_message"
    NEW_ORDER = "new_order"


class Conversation(Base):
    """Chat thread between a brand owner and a store owner about one shelf rental."""

    __tablename__ = "conversations"

    id = Column(Integer, primary_key=True, index=True)
    brand_owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    store_owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    shelf_id = Column(Integer, ForeignKey("shelves.id"), nullable=False, index=True)
    status = Column(SQLEnum(ConversationStatus), default=ConversationStatus.ACTIVE, index=True)

    # Unread counters
    brand_owner_unread_count = Column(Integer, default=0, nullable=False)
    store_owner_unread_count = Column(Integer, default=0, nullable=False)

    # Last message
    last_message_text = Column(Text)
    last_message_at = Column(DateTime)
    last_message_sender_id = Column(Integer, ForeignKey("users.id"))

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint('brand_owner_id != store_owner_id', name='conversation_parties_different'),
    )

    def other_party(self, user_id: int) -> int:
        return self.store_owner_id if user_id == self.brand_owner_id else self.brand_owner_id

    def __repr__(self):
        return f"<Conversation {self.id}>"


class Message(Base):
    """Message model for chat between rental parties."""

    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, index=True)
    conversation_id = Column(Integer, ForeignKey("conversations.id"), nullable=False, index=True)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Message content
    text = Column(Text, nullable=False)
    message_type = Column(SQLEnum(MessageType), default=MessageType.TEXT)
    is_read = Column(Boolean, default=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    read_at = Column(DateTime)

    __table_args__ = (
        Index('idx_message_conversation_created', 'conversation_id', 'created_at'),
    )

    def __repr__(self):
        return f"<Message {self.id}>"


class Notification(Base):
    """In-app notification."""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(SQLEnum(NotificationType), nullable=False, index=True)

    rental_request_id = Column(Integer, ForeignKey("rental_requests.id"))
    conversation_id = Column(Integer, ForeignKey("conversations.id"))
    action_url = Column(String(300))

    is_read = Column(Boolean, default=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    read_at = Column(DateTime)

    def __repr__(self):
        return f"<Notification {self.id} {self.type}>"
