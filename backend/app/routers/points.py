import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import update
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import get_current_user, require_admin
from app.models.points_transaction import PointsTransaction
from app.models.user import User
from app.schemas.points import PointsAdd, PointsBalance

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/points", tags=["points"])


@router.get("/balance", response_model=PointsBalance)
def get_my_points(current_user: User = Depends(get_current_user)):
    return PointsBalance(points=current_user.points)


@router.get("/user/{user_id}", response_model=PointsBalance)
def get_user_points(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return PointsBalance(points=user.points)


@router.post("/add", response_model=PointsBalance)
def add_points(
    body: PointsAdd,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    if not db.get(User, body.user_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    # single conditional UPDATE so concurrent grants cannot push the balance below zero
    result = db.execute(
        update(User)
        .where(User.id == body.user_id, User.points + body.points >= 0)
        .values(points=User.points + body.points)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        raise HTTPException(status_code=422, detail="Points balance cannot go below zero")

    db.add(PointsTransaction(user_id=body.user_id, amount=body.points, reason=body.reason))
    db.commit()

    user = db.get(User, body.user_id)
    logger.info("points: admin %s granted %s to user %s (%s)", admin.id, body.points, body.user_id, body.reason)
    return PointsBalance(points=user.points)
