"""Chat endpoints."""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from shibr.core.database import get_db
from shibr.core.security import get_current_user
from shibr.models.user import User
from shibr.schemas.chat import ConversationResponse, MessageCreate, MessageResponse, ReadResult
from shibr.services import chat

router = APIRouter()


def _conversation_response(conversation, user_id: int) -> ConversationResponse:
    response = ConversationResponse.model_validate(conversation)
    response.unread_count = chat.unread_for(conversation, user_id)
    return response


@router.get("/", response_model=list[ConversationResponse])
async def list_conversations(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The current user's conversations, most recent activity first."""
    conversations = await chat.list_conversations(db, user.id)
    return [_conversation_response(c, user.id) for c in conversations]


@router.get("/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(
    conversation_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    conversation = await chat.get_conversation(db, conversation_id)
    chat.check_participant(conversation, user.id)
    return _conversation_response(conversation, user.id)


@router.get("/{conversation_id}/messages", response_model=list[MessageResponse])
async def list_messages(
    conversation_id: int,
    limit: int = Query(100, ge=1, le=500),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Messages in a conversation, oldest first, with sender names."""
    return await chat.list_messages(db, conversation_id, user.id, limit)


@router.post(
    "/{conversation_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    conversation_id: int,
    body: MessageCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Send a message to the other party."""
    message = await chat.send_message(db, conversation_id, user, body.text)
    response = MessageResponse.model_validate(message)
    response.sender_name = user.display_name
    return response


@router.post("/{conversation_id}/read", response_model=ReadResult)
async def mark_conversation_read(
    conversation_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Mark the other party's messages as read."""
    return ReadResult(marked=await chat.mark_read(db, conversation_id, user.id))
