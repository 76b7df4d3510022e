from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from app.core.constants import ROLE_USER
from app.core.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)

    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    phone = Column(String(32), nullable=True)
    profile_image = Column(String(500), nullable=True)

    role = Column(String(20), nullable=False, default=ROLE_USER)  # USER, MODERATOR, ADMIN
    is_vendor = Column(Boolean, nullable=False, default=False)
    points = Column(Integer, nullable=False, default=0)

    email_verified = Column(Boolean, nullable=False, default=False)
    phone_verified = Column(Boolean, nullable=False, default=False)
    kyc_verified = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    listings = relationship("Listing", back_populates="owner")
