"""
SQLAlchemy-backed storage for the offer lifecycle.

``OfferLifecycleManager`` only talks to storage through this class, so tests
and other entry points can hand it any object with the same methods.
"""
from contextlib import contextmanager
from typing import Iterator, List, Optional, Sequence, Tuple

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session, selectinload

from app.core.constants import LISTING_SOLD, OFFER_PENDING, OFFER_REJECTED
from app.models.listing import Listing
from app.models.offer import Offer
from app.models.points_transaction import PointsTransaction
from app.models.user import User


class SqlAlchemyOfferRepository:
    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def unit_of_work(self) -> Iterator[None]:
        """Commit everything done inside the block, or roll all of it back."""
        try:
            yield
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    # --- reads ---

    def get_listing(self, listing_id: int) -> Optional[Listing]:
        return self.db.get(Listing, listing_id)

    def get_offer(self, offer_id: int, for_update: bool = False) -> Optional[Offer]:
        stmt = select(Offer).where(Offer.id == offer_id)
        if for_update:
            stmt = stmt.with_for_update()
        # re-read even if the row is already in the identity map
        stmt = stmt.execution_options(populate_existing=True)
        return self.db.execute(stmt).scalar_one_or_none()

    def find_pending_offer(self, listing_id: int, buyer_id: int) -> Optional[Offer]:
        return (
            self.db.query(Offer)
            .filter(
                Offer.listing_id == listing_id,
                Offer.buyer_id == buyer_id,
                Offer.status == OFFER_PENDING,
            )
            .first()
        )

    def pending_siblings(self, listing_id: int, exclude_offer_id: int) -> List[Offer]:
        return (
            self.db.query(Offer)
            .filter(
                Offer.listing_id == listing_id,
                Offer.id != exclude_offer_id,
                Offer.status == OFFER_PENDING,
            )
            .all()
        )

    def list_offers(
        self,
        user_id: int,
        role: str,
        offset: int,
        limit: int,
        status: Optional[str] = None,
    ) -> Tuple[Sequence[Offer], int]:
        query = self.db.query(Offer)
        if role == "buyer":
            query = query.filter(Offer.buyer_id == user_id)
        elif role == "seller":
            query = query.filter(Offer.seller_id == user_id)
        else:
            query = query.filter(or_(Offer.buyer_id == user_id, Offer.seller_id == user_id))
        if status:
            query = query.filter(Offer.status == status)

        total = query.with_entities(func.count(Offer.id)).scalar() or 0
        offers = (
            query.options(
                selectinload(Offer.listing),
                selectinload(Offer.buyer),
                selectinload(Offer.seller),
            )
            .order_by(Offer.created_at.desc(), Offer.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return offers, total

    # --- writes ---

    def add_offer(self, offer: Offer) -> Offer:
        self.db.add(offer)
        self.db.flush()
        return offer

    def compare_and_set_status(self, offer_id: int, expected: str, new_status: str) -> bool:
        """
        Move ``offer_id`` from ``expected`` to ``new_status``.

        Returns False when the row was no longer in ``expected``, i.e. a
        concurrent request changed it first.
        """
        result = self.db.execute(
            update(Offer)
            .where(Offer.id == offer_id, Offer.status == expected)
            .values(status=new_status)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def reject_pending_siblings(self, listing_id: int, exclude_offer_id: int) -> int:
        result = self.db.execute(
            update(Offer)
            .where(
                Offer.listing_id == listing_id,
                Offer.id != exclude_offer_id,
                Offer.status == OFFER_PENDING,
            )
            .values(status=OFFER_REJECTED)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def mark_listing_sold(self, listing_id: int) -> bool:
        result = self.db.execute(
            update(Listing)
            .where(Listing.id == listing_id, Listing.status != LISTING_SOLD)
            .values(status=LISTING_SOLD)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def award_points(self, user_id: int, amount: int, reason: str):
        self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(points=User.points + amount)
            .execution_options(synchronize_session=False)
        )
        self.db.add(PointsTransaction(user_id=user_id, amount=amount, reason=reason))

    def refresh(self, obj):
        self.db.refresh(obj)
        return obj
