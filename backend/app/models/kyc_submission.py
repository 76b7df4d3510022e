from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from app.core.constants import KYC_PENDING
from app.core.database import Base


class KycSubmission(Base):
    __tablename__ = "kyc_submissions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    document_type = Column(String(50), nullable=False)  # passport, national_id, drivers_license
    document_number = Column(String(100), nullable=False)

    status = Column(String(20), nullable=False, default=KYC_PENDING)
    reviewer_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    reviewer_note = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    reviewed_at = Column(DateTime, nullable=True)

    user = relationship("User", foreign_keys=[user_id])
