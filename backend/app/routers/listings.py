from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_
from sqlalchemy.orm import Query as OrmQuery, Session, selectinload

from app.core.config import get_settings
from app.core.constants import (
    LISTING_ACTIVE,
    LISTING_DRAFT,
    LISTING_SOLD,
)
from app.core.database import get_db
from app.core.pagination import PageParams, get_page_params
from app.core.security import get_current_user, is_admin
from app.models.listing import Listing
from app.models.offer import Offer
from app.models.user import User
from app.schemas.common import build_pagination
from app.schemas.listing import ListingCreate, ListingPage, ListingRead, ListingUpdate

router = APIRouter(prefix="/api/listings", tags=["listings"])

settings = get_settings()


def _attach_thumbnail(listing: Listing) -> ListingRead:
    """
    Convert a Listing row to ListingRead, using the primary image (or the
    first one) as the thumbnail.
    """
    data = ListingRead.model_validate(listing)

    if listing.images:
        primary = next((img for img in listing.images if img.is_primary), listing.images[0])
        data.thumbnail_url = f"{settings.media_url}/{primary.file_path}"

    return data


def _with_relations(query: OrmQuery) -> OrmQuery:
    return query.options(selectinload(Listing.images), selectinload(Listing.owner))


def _apply_filters(
    query: OrmQuery,
    search: Optional[str],
    listing_type: Optional[str],
    min_price: Optional[Decimal],
    max_price: Optional[Decimal],
) -> OrmQuery:
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Listing.title.ilike(pattern), Listing.description.ilike(pattern)))
    if listing_type:
        query = query.filter(Listing.type == listing_type)
    if min_price is not None:
        query = query.filter(Listing.price >= min_price)
    if max_price is not None:
        query = query.filter(Listing.price <= max_price)
    return query


def _get_listing_or_404(listing_id: int, db: Session) -> Listing:
    listing = (
        _with_relations(db.query(Listing))
        .filter(Listing.id == listing_id)
        .first()
    )
    if not listing:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Listing not found",
        )
    return listing


def _get_managed_listing_or_404(listing_id: int, current_user: User, db: Session) -> Listing:
    """Listing the current user may modify: their own, or any for admins."""
    listing = _get_listing_or_404(listing_id, db)
    if listing.owner_id != current_user.id and not is_admin(current_user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized")
    return listing


@router.get("/", response_model=ListingPage)
def list_listings(
    search: Optional[str] = None,
    type: Optional[str] = None,
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
    paging: PageParams = Depends(get_page_params),
    db: Session = Depends(get_db),
):
    query = _apply_filters(
        db.query(Listing).filter(Listing.status == LISTING_ACTIVE),
        search, type, min_price, max_price,
    )
    total = query.count()
    listings = (
        _with_relations(query)
        .order_by(Listing.created_at.desc(), Listing.id.desc())
        .offset(paging.offset)
        .limit(paging.limit)
        .all()
    )
    return ListingPage(
        listings=[_attach_thumbnail(l) for l in listings],
        pagination=build_pagination(total, paging.page, paging.limit),
    )


@router.get("/search", response_model=List[ListingRead])
def search_listings(
    query: Optional[str] = None,
    type: Optional[str] = None,
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
    status_filter: str = Query(LISTING_ACTIVE, alias="status"),
    db: Session = Depends(get_db),
):
    q = _apply_filters(
        db.query(Listing).filter(Listing.status == status_filter),
        query, type, min_price, max_price,
    )
    listings = _with_relations(q).order_by(Listing.created_at.desc()).all()
    return [_attach_thumbnail(l) for l in listings]


@router.get("/user/me", response_model=List[ListingRead])
def my_listings(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    listings = (
        _with_relations(db.query(Listing))
        .filter(Listing.owner_id == current_user.id)
        .order_by(Listing.created_at.desc())
        .all()
    )
    return [_attach_thumbnail(l) for l in listings]


@router.post("/", response_model=ListingRead, status_code=status.HTTP_201_CREATED)
def create_listing(
    listing_in: ListingCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not current_user.is_vendor:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only vendors can create listings. Please become a vendor first.",
        )

    listing = Listing(
        **listing_in.model_dump(),
        owner_id=current_user.id,
        status=LISTING_DRAFT,
    )
    db.add(listing)
    db.commit()
    db.refresh(listing)
    return _attach_thumbnail(listing)


@router.get("/{listing_id}", response_model=ListingRead)
def get_listing(listing_id: int, db: Session = Depends(get_db)):
    listing = _get_listing_or_404(listing_id, db)
    return _attach_thumbnail(listing)


@router.post("/{listing_id}/publish", response_model=ListingRead)
def publish_listing(
    listing_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    listing = _get_managed_listing_or_404(listing_id, current_user, db)
    if listing.status != LISTING_DRAFT:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Only draft listings can be published")

    listing.status = LISTING_ACTIVE
    db.commit()
    db.refresh(listing)
    return _attach_thumbnail(listing)


@router.put("/{listing_id}", response_model=ListingRead)
def update_listing(
    listing_id: int,
    listing_in: ListingUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    listing = _get_managed_listing_or_404(listing_id, current_user, db)

    # exclude_unset=True: fields not sent are left untouched
    data = listing_in.model_dump(exclude_unset=True)

    new_status = data.get("status")
    if new_status == LISTING_SOLD and listing.status != LISTING_SOLD:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Listings are marked sold by completing an offer",
        )
    if listing.status == LISTING_SOLD and new_status not in (None, LISTING_SOLD):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Sold listings cannot be reopened")

    for field, value in data.items():
        setattr(listing, field, value)

    db.add(listing)
    db.commit()
    db.refresh(listing)
    return _attach_thumbnail(listing)


@router.delete("/{listing_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_listing(
    listing_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    listing = _get_managed_listing_or_404(listing_id, current_user, db)

    # offers are kept as history, so their listing must stay too
    has_offers = db.query(Offer.id).filter(Offer.listing_id == listing.id).first()
    if has_offers:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Listings with offers cannot be deleted; archive it instead",
        )

    db.delete(listing)
    db.commit()
    return None
