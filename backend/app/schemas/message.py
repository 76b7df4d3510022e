from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.common import Pagination
from app.schemas.user import UserSummary


class MessageCreate(BaseModel):
    receiver_id: int
    content: str = Field(min_length=1, max_length=5000)
    conversation_id: Optional[int] = None
    listing_id: Optional[int] = None


class MessageRead(BaseModel):
    id: int
    conversation_id: int
    sender_id: int
    receiver_id: int
    listing_id: Optional[int] = None
    content: str
    read: bool
    created_at: datetime
    sender: Optional[UserSummary] = None

    model_config = ConfigDict(from_attributes=True)


class MessageSent(BaseModel):
    status: str = "success"
    message: MessageRead


class MessagePage(BaseModel):
    status: str = "success"
    messages: List[MessageRead]
    pagination: Pagination


class LastMessage(BaseModel):
    content: str
    created_at: datetime
    read: bool

    model_config = ConfigDict(from_attributes=True)


class ConversationSummary(BaseModel):
    id: int
    otherUser: Optional[UserSummary] = None
    lastMessage: Optional[LastMessage] = None
    lastMessageTime: datetime


class ConversationPage(BaseModel):
    status: str = "success"
    conversations: List[ConversationSummary]
    pagination: Pagination


class UnreadCount(BaseModel):
    status: str = "success"
    count: int
