import logging
import os
from pathlib import Path
from typing import List

from fastapi import APIRouter, Depends, UploadFile, File, HTTPException, status
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.constants import ALLOWED_IMAGE_EXTENSIONS, EVENT_UPLOAD_PROGRESS
from app.core.database import get_db
from app.core.progress_tracker import progress_tracker
from app.core.security import get_current_user, is_admin
from app.models.listing import Listing
from app.models.listing_image import ListingImage
from app.models.user import User
from app.services.notifications import hub

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/listings",
    tags=["listings-images"],
)

settings = get_settings()


async def _stream_to_disk(upload: UploadFile, file_path: Path, job_id: str, user_id: int) -> int:
    """Copy ``upload`` to ``file_path`` chunk by chunk, reporting progress."""
    written = 0
    with open(file_path, "wb") as f:
        while True:
            chunk = await upload.read(settings.upload_chunk_size)
            if not chunk:
                break
            written += len(chunk)
            if written > settings.max_upload_bytes:
                raise HTTPException(
                    status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                    detail=f"{upload.filename} exceeds {settings.max_upload_bytes} bytes",
                )
            f.write(chunk)
            snapshot = progress_tracker.record_bytes(job_id, len(chunk))
            await hub.notify(user_id, EVENT_UPLOAD_PROGRESS, {
                "jobId": job_id,
                "file": upload.filename,
                "bytesWritten": snapshot["bytes_written"],
                "filesDone": snapshot["files_done"],
                "totalFiles": snapshot["total_files"],
            })
    return written


@router.post("/{listing_id}/images", status_code=status.HTTP_201_CREATED)
async def upload_listing_images(
    listing_id: int,
    files: List[UploadFile] = File(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    # 1) listing exists and may be modified by the caller
    listing = db.query(Listing).filter(Listing.id == listing_id).first()
    if not listing:
        raise HTTPException(status_code=404, detail="Listing not found")

    if listing.owner_id != current_user.id and not is_admin(current_user):
        raise HTTPException(status_code=403, detail="Not authorized to modify this listing")

    # reject the whole batch before writing anything
    for upload in files:
        ext = os.path.splitext(upload.filename or "image")[1].lower()
        if ext not in ALLOWED_IMAGE_EXTENSIONS:
            raise HTTPException(status_code=400, detail=f"Unsupported file type: {ext}")

    # 2) target folder: media/listings/<listing_id>/
    listing_dir: Path = settings.media_root / "listings" / str(listing_id)
    listing_dir.mkdir(parents=True, exist_ok=True)

    # continue sort_order after the existing images
    existing_count = (
        db.query(ListingImage)
        .filter(ListingImage.listing_id == listing_id)
        .count()
    )
    sort_order = existing_count

    job_id = progress_tracker.start_job(current_user.id, listing_id, len(files))
    created_images = []
    written_paths = []

    try:
        for upload in files:
            ext = os.path.splitext(upload.filename or "image")[1].lower()
            safe_name = f"{sort_order:03d}{ext}"
            file_path = listing_dir / safe_name
            written_paths.append(file_path)

            await _stream_to_disk(upload, file_path, job_id, current_user.id)
            progress_tracker.file_done(job_id, upload.filename or safe_name)

            # stored relative to media_root: "listings/1/000.jpg"
            relative_path = Path("listings") / str(listing_id) / safe_name

            img = ListingImage(
                listing_id=listing_id,
                file_path=relative_path.as_posix(),
                sort_order=sort_order,
                is_primary=sort_order == 0,
            )
            db.add(img)
            created_images.append(img)

            sort_order += 1

        db.commit()
    except Exception as e:
        db.rollback()
        for path in written_paths:
            path.unlink(missing_ok=True)
        progress_tracker.finish(job_id, "failed", f"Upload failed: {e}", "error")
        logger.warning("images: upload job %s for listing %s failed: %s", job_id, listing_id, e)
        raise

    finished = progress_tracker.finish(job_id, "completed", f"Uploaded {len(created_images)} image(s)", "success")
    await hub.notify(current_user.id, EVENT_UPLOAD_PROGRESS, {
        "jobId": job_id,
        "status": finished["status"],
        "filesDone": finished["files_done"],
        "totalFiles": finished["total_files"],
    })

    return {
        "listing_id": listing_id,
        "job_id": job_id,
        "uploaded": [
            {
                "id": img.id,
                "file_path": img.file_path,
                "is_primary": img.is_primary,
                "url": f"{settings.media_url}/{img.file_path}",
            }
            for img in created_images
        ],
    }


@router.get("/{listing_id}/images/progress/{job_id}")
def get_upload_progress(
    listing_id: int,
    job_id: str,
    current_user: User = Depends(get_current_user),
):
    job = progress_tracker.get_status(job_id)
    if not job or job["listing_id"] != listing_id or job["user_id"] != current_user.id:
        raise HTTPException(status_code=404, detail="Upload job not found")
    return job
