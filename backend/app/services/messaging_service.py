import logging
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import func, or_, and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.core.constants import EVENT_NEW_MESSAGE
from app.core.errors import Forbidden, InvalidOperation, NotFound
from app.models.conversation import Conversation
from app.models.listing import Listing
from app.models.message import Message
from app.models.user import User
from app.services.notifications import Notifier, null_notifier

logger = logging.getLogger(__name__)


def _ordered_pair(a: int, b: int) -> Tuple[int, int]:
    return (a, b) if a < b else (b, a)


def find_conversation(db: Session, user_a: int, user_b: int) -> Optional[Conversation]:
    low, high = _ordered_pair(user_a, user_b)
    return (
        db.query(Conversation)
        .filter(Conversation.user_low_id == low, Conversation.user_high_id == high)
        .first()
    )


def get_or_create_conversation(db: Session, user_a: int, user_b: int) -> Conversation:
    """Return the single conversation for the pair, creating it on first use."""
    conversation = find_conversation(db, user_a, user_b)
    if conversation:
        return conversation

    low, high = _ordered_pair(user_a, user_b)
    conversation = Conversation(user_low_id=low, user_high_id=high)
    db.add(conversation)
    try:
        db.flush()
    except IntegrityError:
        # another request created it first; nothing else is pending yet
        db.rollback()
        conversation = find_conversation(db, user_a, user_b)
    return conversation


def send_message(
    db: Session,
    sender: User,
    receiver_id: int,
    content: str,
    listing_id: Optional[int] = None,
    conversation_id: Optional[int] = None,
    notifier: Notifier = null_notifier,
) -> Message:
    receiver = db.get(User, receiver_id)
    if not receiver:
        raise NotFound("Receiver not found")
    if receiver.id == sender.id:
        raise InvalidOperation("You cannot send a message to yourself")

    if listing_id is not None and not db.get(Listing, listing_id):
        raise NotFound("Listing not found")

    if conversation_id is not None:
        conversation = db.get(Conversation, conversation_id)
        if not conversation:
            raise NotFound("Conversation not found")
        if not (conversation.includes(sender.id) and conversation.includes(receiver.id)):
            raise Forbidden("Not a participant of this conversation")
    else:
        conversation = get_or_create_conversation(db, sender.id, receiver.id)

    now = datetime.utcnow()
    message = Message(
        conversation_id=conversation.id,
        sender_id=sender.id,
        receiver_id=receiver.id,
        listing_id=listing_id,
        content=content,
        read=False,
        created_at=now,
    )
    db.add(message)
    conversation.last_message_at = now
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(message)

    logger.info("messages: %s -> %s in conversation %s", sender.id, receiver.id, conversation.id)
    try:
        notifier(receiver.id, EVENT_NEW_MESSAGE, {
            "messageId": message.id,
            "conversationId": conversation.id,
            "senderId": sender.id,
            "content": content,
            "listingId": listing_id,
        })
    except Exception:
        logger.warning("messages: notify failed for message %s", message.id, exc_info=True)
    return message


def _between(user_id: int, other_user_id: int):
    return or_(
        and_(Message.sender_id == user_id, Message.receiver_id == other_user_id),
        and_(Message.sender_id == other_user_id, Message.receiver_id == user_id),
    )


def get_conversation_messages(
    db: Session,
    user_id: int,
    other_user_id: int,
    offset: int,
    limit: int,
) -> Tuple[Sequence[Message], int]:
    query = db.query(Message).filter(_between(user_id, other_user_id))
    total = query.with_entities(func.count(Message.id)).scalar() or 0
    messages = (
        query.options(selectinload(Message.sender))
        .order_by(Message.created_at.desc(), Message.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return messages, total


def mark_as_read(db: Session, message_id: int, user_id: int) -> Message:
    message = (
        db.query(Message)
        .filter(Message.id == message_id, Message.receiver_id == user_id)
        .first()
    )
    if not message:
        raise NotFound("Message not found")
    message.read = True
    db.commit()
    return message


def unread_count(db: Session, user_id: int) -> int:
    return (
        db.query(func.count(Message.id))
        .filter(Message.receiver_id == user_id, Message.read.is_(False))
        .scalar()
        or 0
    )


def list_conversations(
    db: Session,
    user_id: int,
    offset: int,
    limit: int,
) -> Tuple[List[dict], int]:
    query = db.query(Conversation).filter(
        or_(Conversation.user_low_id == user_id, Conversation.user_high_id == user_id)
    )
    total = query.with_entities(func.count(Conversation.id)).scalar() or 0
    conversations = (
        query.options(
            selectinload(Conversation.user_low),
            selectinload(Conversation.user_high),
        )
        .order_by(Conversation.last_message_at.desc(), Conversation.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )

    items = []
    for conv in conversations:
        other = conv.user_high if conv.user_low_id == user_id else conv.user_low
        last = (
            db.query(Message)
            .filter(Message.conversation_id == conv.id)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .first()
        )
        items.append({
            "id": conv.id,
            "otherUser": other,
            "lastMessage": last,
            "lastMessageTime": conv.last_message_at,
        })
    return items, total
