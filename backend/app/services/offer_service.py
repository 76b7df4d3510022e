"""
Offer lifecycle.

An offer moves PENDING -> ACCEPTED | REJECTED, and ACCEPTED -> COMPLETED.
Accepting an offer rejects every other pending offer on the same listing in
the same transaction; completing it marks the listing SOLD in the same
transaction. Notifications are only emitted after the commit.
"""
import logging
from decimal import Decimal
from typing import Callable, Optional, Sequence, Tuple, TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError

from app.core.constants import (
    EVENT_NEW_OFFER,
    EVENT_OFFER_COMPLETED,
    EVENT_OFFER_RESPONSE,
    LISTING_ACTIVE,
    OFFER_ACCEPTED,
    OFFER_COMPLETED,
    OFFER_DECISIONS,
    OFFER_PENDING,
    OFFER_REJECTED,
    OFFER_STATUSES,
)
from app.core.errors import (
    Conflict,
    Forbidden,
    InvalidOperation,
    InvalidState,
    NotFound,
    ValidationFailed,
)
from app.models.offer import Offer
from app.services.notifications import EventOutbox, Notifier, null_notifier

logger = logging.getLogger(__name__)

T = TypeVar("T")

OFFER_ROLES = ("buyer", "seller", "either")

# SQLSTATE codes for serialization failure and deadlock
_CONFLICT_SQLSTATES = {"40001", "40P01"}
_CONFLICT_MARKERS = ("could not serialize", "deadlock", "database is locked", "lock wait timeout")


def is_write_conflict(exc: Exception) -> bool:
    """True for transient concurrency failures reported by the database."""
    if not isinstance(exc, DBAPIError):
        return False
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code in _CONFLICT_SQLSTATES:
        return True
    text = str(orig or exc).lower()
    return any(marker in text for marker in _CONFLICT_MARKERS)


class OfferLifecycleManager:
    def __init__(
        self,
        repository,
        notifier: Notifier = null_notifier,
        points_per_completed_offer: int = 0,
    ):
        self.repo = repository
        self.outbox = EventOutbox(notifier)
        self.points_per_completed_offer = points_per_completed_offer

    # ------------------------------------------------------------------
    # transaction helper
    # ------------------------------------------------------------------
    def _run(self, work: Callable[[], T], retry_on_conflict: bool = False) -> T:
        attempts = 2 if retry_on_conflict else 1
        for attempt in range(1, attempts + 1):
            try:
                with self.repo.unit_of_work():
                    result = work()
            except DBAPIError as exc:
                self.outbox.clear()
                if attempt < attempts and is_write_conflict(exc):
                    logger.warning("offers: write conflict, retrying once: %s", exc.orig)
                    continue
                raise
            except Exception:
                self.outbox.clear()
                raise
            self.outbox.flush()
            return result
        raise AssertionError("unreachable")

    def _load_for_seller(self, offer_id: int, acting_user_id: int) -> Offer:
        offer = self.repo.get_offer(offer_id, for_update=True)
        if offer is None:
            raise NotFound("Offer not found")
        if offer.seller_id != acting_user_id:
            raise Forbidden("Not authorized to modify this offer")
        return offer

    # ------------------------------------------------------------------
    # operations
    # ------------------------------------------------------------------
    def create_offer(
        self,
        listing_id: int,
        buyer_id: int,
        price: Decimal,
        message: Optional[str] = None,
    ) -> Offer:
        if price is None or Decimal(price) < 0:
            raise ValidationFailed("Price must be a non-negative amount")

        def work() -> Offer:
            listing = self.repo.get_listing(listing_id)
            if listing is None:
                raise NotFound("Listing not found")
            if listing.status != LISTING_ACTIVE:
                raise InvalidState("This listing is not available")
            if listing.owner_id == buyer_id:
                raise InvalidOperation("You cannot make an offer on your own listing")
            if self.repo.find_pending_offer(listing_id, buyer_id) is not None:
                raise Conflict("You already have a pending offer for this listing")

            try:
                offer = self.repo.add_offer(
                    Offer(
                        listing_id=listing_id,
                        buyer_id=buyer_id,
                        seller_id=listing.owner_id,
                        price=price,
                        message=message,
                        status=OFFER_PENDING,
                    )
                )
            except IntegrityError:
                # a concurrent request inserted the pending offer after our check
                raise Conflict("You already have a pending offer for this listing")
            self.outbox.add(listing.owner_id, EVENT_NEW_OFFER, {
                "offerId": offer.id,
                "listingId": listing_id,
                "buyerId": buyer_id,
                "price": str(offer.price),
                "message": message,
            })
            return offer

        offer = self._run(work)
        logger.info("offers: buyer %s offered %s on listing %s (offer %s)", buyer_id, price, listing_id, offer.id)
        return offer

    def respond_to_offer(self, offer_id: int, acting_user_id: int, decision: str) -> Offer:
        if decision not in OFFER_DECISIONS:
            raise ValidationFailed(f"Decision must be one of {', '.join(OFFER_DECISIONS)}")

        def work() -> Offer:
            offer = self._load_for_seller(offer_id, acting_user_id)
            if offer.status != OFFER_PENDING:
                raise InvalidState("This offer can no longer be modified")
            siblings = []
            if decision == OFFER_ACCEPTED:
                listing = self.repo.get_listing(offer.listing_id)
                if listing is None or listing.status != LISTING_ACTIVE:
                    raise InvalidState("This listing is not available")
                siblings = self.repo.pending_siblings(offer.listing_id, offer.id)

            if not self.repo.compare_and_set_status(offer.id, OFFER_PENDING, decision):
                raise InvalidState("This offer can no longer be modified")

            rejected_buyers = []
            if decision == OFFER_ACCEPTED:
                swept = self.repo.reject_pending_siblings(offer.listing_id, offer.id)
                # offers created between the read and the sweep still get rejected,
                # they just miss the notification
                rejected_buyers = [(s.id, s.buyer_id) for s in siblings]
                logger.info("offers: accepting %s rejected %d sibling offer(s)", offer.id, swept)

            self.outbox.add(offer.buyer_id, EVENT_OFFER_RESPONSE, {
                "offerId": offer.id,
                "listingId": offer.listing_id,
                "status": decision,
            })
            for sibling_id, buyer_id in rejected_buyers:
                self.outbox.add(buyer_id, EVENT_OFFER_RESPONSE, {
                    "offerId": sibling_id,
                    "listingId": offer.listing_id,
                    "status": OFFER_REJECTED,
                })
            return offer

        offer = self._run(work, retry_on_conflict=decision == OFFER_ACCEPTED)
        logger.info("offers: seller %s set offer %s to %s", acting_user_id, offer_id, decision)
        return self.repo.refresh(offer)

    def mark_completed(self, offer_id: int, acting_user_id: int) -> Offer:
        def work() -> Offer:
            offer = self._load_for_seller(offer_id, acting_user_id)
            if offer.status != OFFER_ACCEPTED:
                raise InvalidState("Only accepted offers can be marked as completed")

            if not self.repo.compare_and_set_status(offer.id, OFFER_ACCEPTED, OFFER_COMPLETED):
                raise InvalidState("Only accepted offers can be marked as completed")
            if not self.repo.mark_listing_sold(offer.listing_id):
                raise InvalidState("This listing has already been sold")

            if self.points_per_completed_offer:
                reason = f"Completed offer #{offer.id}"
                self.repo.award_points(offer.buyer_id, self.points_per_completed_offer, reason)
                self.repo.award_points(offer.seller_id, self.points_per_completed_offer, reason)

            self.outbox.add(offer.buyer_id, EVENT_OFFER_COMPLETED, {
                "offerId": offer.id,
                "listingId": offer.listing_id,
            })
            return offer

        offer = self._run(work, retry_on_conflict=True)
        logger.info("offers: offer %s completed, listing sold", offer_id)
        return self.repo.refresh(offer)

    def get_offer(self, offer_id: int, acting_user_id: int, is_admin: bool = False) -> Offer:
        offer = self.repo.get_offer(offer_id)
        if offer is None:
            raise NotFound("Offer not found")
        if not is_admin and acting_user_id not in (offer.buyer_id, offer.seller_id):
            raise Forbidden("Not authorized to view this offer")
        return offer

    def list_offers(
        self,
        user_id: int,
        role: str = "either",
        page: int = 1,
        page_size: int = 20,
        status: Optional[str] = None,
    ) -> Tuple[Sequence[Offer], int]:
        if role not in OFFER_ROLES:
            raise ValidationFailed(f"Role must be one of {', '.join(OFFER_ROLES)}")
        if status is not None and status not in OFFER_STATUSES:
            raise ValidationFailed(f"Unknown offer status: {status}")
        if page < 1 or page_size < 1:
            raise ValidationFailed("Page and page size must be positive")
        return self.repo.list_offers(
            user_id,
            role,
            offset=(page - 1) * page_size,
            limit=page_size,
            status=status,
        )
