from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import get_current_user, get_password_hash, verify_password
from app.models.listing import Listing
from app.models.user import User
from app.schemas.common import StatusMessage
from app.schemas.user import PasswordChange, ProfileUpdate, PublicProfile, UserRead

router = APIRouter(prefix="/api/profile", tags=["profile"])


@router.put("/", response_model=UserRead)
def update_profile(
    profile_in: ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    data = profile_in.model_dump(exclude_unset=True)

    new_email = data.get("email")
    if new_email and new_email != current_user.email:
        taken = db.query(User).filter(User.email == new_email, User.id != current_user.id).first()
        if taken:
            raise HTTPException(status_code=400, detail="Email already registered")
        current_user.email_verified = False

    for field, value in data.items():
        setattr(current_user, field, value)

    db.commit()
    db.refresh(current_user)
    return current_user


@router.put("/password", response_model=StatusMessage)
def change_password(
    body: PasswordChange,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not verify_password(body.current_password, current_user.hashed_password):
        raise HTTPException(status_code=400, detail="Current password is incorrect")

    current_user.hashed_password = get_password_hash(body.new_password)
    db.commit()
    return StatusMessage(message="Password updated successfully")


@router.post("/vendor", response_model=UserRead)
def become_vendor(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    current_user.is_vendor = True
    db.commit()
    db.refresh(current_user)
    return current_user


@router.get("/{user_id}", response_model=PublicProfile)
def get_profile(user_id: int, db: Session = Depends(get_db)):
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    listings_count = (
        db.query(func.count(Listing.id)).filter(Listing.owner_id == user.id).scalar() or 0
    )
    profile = PublicProfile.model_validate(user)
    profile.listings_count = listings_count
    return profile
