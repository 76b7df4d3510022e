from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import relationship

from app.core.database import Base


class Conversation(Base):
    __tablename__ = "conversations"
    __table_args__ = (
        UniqueConstraint("user_low_id", "user_high_id", name="uq_conversation_pair"),
    )

    id = Column(Integer, primary_key=True, index=True)

    # participants stored ordered so each pair maps to a single row
    user_low_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    user_high_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_message_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    user_low = relationship("User", foreign_keys=[user_low_id])
    user_high = relationship("User", foreign_keys=[user_high_id])

    messages = relationship(
        "Message",
        back_populates="conversation",
        order_by="Message.created_at.desc()",
    )

    def other_participant_id(self, user_id: int) -> int:
        return self.user_high_id if user_id == self.user_low_id else self.user_low_id

    def includes(self, user_id: int) -> bool:
        return user_id in (self.user_low_id, self.user_high_id)
