from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.database import get_db
from app.core.pagination import PageParams, get_page_params
from app.core.security import get_current_user, is_admin
from app.models.user import User
from app.schemas.common import build_pagination
from app.schemas.offer import OfferCreate, OfferPage, OfferRead, OfferRespond
from app.services.notifications import background_notifier
from app.services.offer_repository import SqlAlchemyOfferRepository
from app.services.offer_service import OfferLifecycleManager

router = APIRouter(prefix="/api/offers", tags=["offers"])

settings = get_settings()


def get_offer_manager(
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
) -> OfferLifecycleManager:
    return OfferLifecycleManager(
        SqlAlchemyOfferRepository(db),
        notifier=background_notifier(background_tasks),
        points_per_completed_offer=settings.points_per_completed_offer,
    )


@router.post("/", response_model=OfferRead, status_code=status.HTTP_201_CREATED)
def create_offer(
    offer_in: OfferCreate,
    manager: OfferLifecycleManager = Depends(get_offer_manager),
    current_user: User = Depends(get_current_user),
):
    return manager.create_offer(
        listing_id=offer_in.listing_id,
        buyer_id=current_user.id,
        price=offer_in.price,
        message=offer_in.message,
    )


@router.get("/", response_model=OfferPage)
def list_my_offers(
    # role and status are checked against the constants by the manager
    role: str = "either",
    status_filter: Optional[str] = Query(None, alias="status"),
    paging: PageParams = Depends(get_page_params),
    manager: OfferLifecycleManager = Depends(get_offer_manager),
    current_user: User = Depends(get_current_user),
):
    offers, total = manager.list_offers(
        current_user.id,
        role=role,
        page=paging.page,
        page_size=paging.limit,
        status=status_filter,
    )
    return OfferPage(
        offers=[OfferRead.model_validate(o) for o in offers],
        pagination=build_pagination(total, paging.page, paging.limit),
    )


@router.get("/{offer_id}", response_model=OfferRead)
def get_offer(
    offer_id: int,
    manager: OfferLifecycleManager = Depends(get_offer_manager),
    current_user: User = Depends(get_current_user),
):
    return manager.get_offer(offer_id, current_user.id, is_admin=is_admin(current_user))


@router.put("/{offer_id}/respond", response_model=OfferRead)
def respond_to_offer(
    offer_id: int,
    body: OfferRespond,
    manager: OfferLifecycleManager = Depends(get_offer_manager),
    current_user: User = Depends(get_current_user),
):
    return manager.respond_to_offer(offer_id, current_user.id, body.status)


@router.put("/{offer_id}/complete", response_model=OfferRead)
def complete_offer(
    offer_id: int,
    manager: OfferLifecycleManager = Depends(get_offer_manager),
    current_user: User = Depends(get_current_user),
):
    return manager.mark_completed(offer_id, current_user.id)
