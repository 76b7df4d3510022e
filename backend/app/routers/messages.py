from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.pagination import PageParams, get_page_params
from app.core.security import get_current_user
from app.models.user import User
from app.schemas.common import StatusMessage, build_pagination
from app.schemas.message import (
    ConversationPage,
    ConversationSummary,
    MessageCreate,
    MessagePage,
    MessageRead,
    MessageSent,
    UnreadCount,
)
from app.services import messaging_service
from app.services.notifications import background_notifier

router = APIRouter(prefix="/api/messages", tags=["messages"])


@router.post("/", response_model=MessageSent, status_code=status.HTTP_201_CREATED)
def send_message(
    body: MessageCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    message = messaging_service.send_message(
        db,
        sender=current_user,
        receiver_id=body.receiver_id,
        content=body.content,
        listing_id=body.listing_id,
        conversation_id=body.conversation_id,
        notifier=background_notifier(background_tasks),
    )
    return MessageSent(message=MessageRead.model_validate(message))


@router.get("/conversations", response_model=ConversationPage)
def list_conversations(
    paging: PageParams = Depends(get_page_params),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    items, total = messaging_service.list_conversations(
        db, current_user.id, offset=paging.offset, limit=paging.limit
    )
    return ConversationPage(
        conversations=[ConversationSummary.model_validate(item, from_attributes=True) for item in items],
        pagination=build_pagination(total, paging.page, paging.limit),
    )


@router.get("/unread/count", response_model=UnreadCount)
def get_unread_count(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return UnreadCount(count=messaging_service.unread_count(db, current_user.id))


@router.get("/conversation/{other_user_id}", response_model=MessagePage)
def get_conversation(
    other_user_id: int,
    paging: PageParams = Depends(get_page_params),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    messages, total = messaging_service.get_conversation_messages(
        db, current_user.id, other_user_id, offset=paging.offset, limit=paging.limit
    )
    return MessagePage(
        messages=[MessageRead.model_validate(m) for m in messages],
        pagination=build_pagination(total, paging.page, paging.limit),
    )


@router.put("/{message_id}/read", response_model=StatusMessage)
def mark_as_read(
    message_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    messaging_service.mark_as_read(db, message_id, current_user.id)
    return StatusMessage(message="Message marked as read")
