import logging
from datetime import datetime
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.core.constants import EVENT_KYC_REVIEWED, KYC_APPROVED, KYC_PENDING
from app.core.database import get_db
from app.core.security import get_current_user, require_moderator
from app.models.kyc_submission import KycSubmission
from app.models.user import User
from app.schemas.kyc import KycRead, KycReview, KycSubmit
from app.services.notifications import background_notifier

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/kyc", tags=["kyc"])


@router.post("/", response_model=KycRead, status_code=status.HTTP_201_CREATED)
def submit_kyc(
    body: KycSubmit,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if current_user.kyc_verified:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Account is already verified")

    pending = (
        db.query(KycSubmission)
        .filter(KycSubmission.user_id == current_user.id, KycSubmission.status == KYC_PENDING)
        .first()
    )
    if pending:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A verification request is already pending")

    submission = KycSubmission(
        user_id=current_user.id,
        document_type=body.document_type,
        document_number=body.document_number,
        status=KYC_PENDING,
    )
    db.add(submission)
    db.commit()
    db.refresh(submission)
    return submission


@router.get("/me", response_model=List[KycRead])
def my_kyc_submissions(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return (
        db.query(KycSubmission)
        .filter(KycSubmission.user_id == current_user.id)
        .order_by(KycSubmission.created_at.desc(), KycSubmission.id.desc())
        .all()
    )


@router.get("/pending", response_model=List[KycRead])
def pending_kyc_submissions(
    db: Session = Depends(get_db),
    reviewer: User = Depends(require_moderator),
):
    return (
        db.query(KycSubmission)
        .filter(KycSubmission.status == KYC_PENDING)
        .order_by(KycSubmission.created_at.asc(), KycSubmission.id.asc())
        .all()
    )


@router.put("/{submission_id}/review", response_model=KycRead)
def review_kyc(
    submission_id: int,
    body: KycReview,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    reviewer: User = Depends(require_moderator),
):
    submission = db.get(KycSubmission, submission_id)
    if not submission:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Submission not found")
    if submission.status != KYC_PENDING:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Submission has already been reviewed")

    submission.status = body.decision
    submission.reviewer_id = reviewer.id
    submission.reviewer_note = body.note
    submission.reviewed_at = datetime.utcnow()
    if body.decision == KYC_APPROVED:
        submission.user.kyc_verified = True

    db.commit()
    db.refresh(submission)
    logger.info("kyc: submission %s %s by %s", submission.id, body.decision, reviewer.id)

    background_notifier(background_tasks)(submission.user_id, EVENT_KYC_REVIEWED, {
        "submissionId": submission.id,
        "status": submission.status,
    })
    return submission
