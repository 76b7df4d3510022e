from datetime import datetime

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.orm import relationship

from app.core.constants import OFFER_PENDING
from app.core.database import Base


class Offer(Base):
    __tablename__ = "offers"
    __table_args__ = (
        Index("ix_offers_listing_status", "listing_id", "status"),
        # at most one PENDING offer per buyer and listing
        Index(
            "uq_offers_pending_buyer",
            "listing_id",
            "buyer_id",
            unique=True,
            sqlite_where=text(f"status = '{OFFER_PENDING}'"),
            postgresql_where=text(f"status = '{OFFER_PENDING}'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    listing_id = Column(Integer, ForeignKey("listings.id"), nullable=False, index=True)
    buyer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    # copy of listing.owner_id when the offer was made
    seller_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    price = Column(Numeric(10, 2), nullable=False)
    message = Column(Text, nullable=True)

    status = Column(String(20), nullable=False, default=OFFER_PENDING)  # PENDING, ACCEPTED, REJECTED, COMPLETED

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    listing = relationship("Listing", back_populates="offers")
    buyer = relationship("User", foreign_keys=[buyer_id])
    seller = relationship("User", foreign_keys=[seller_id])
