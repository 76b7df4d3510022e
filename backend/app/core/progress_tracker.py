"""
In-memory progress tracker for listing image uploads.
Stores per-job status and progress messages keyed by job_id.

Finished jobs are kept for ``cleanup_interval`` so clients can still poll the
final status, then dropped the next time a job is started.
"""
from typing import Any, Dict, List, Optional
from datetime import datetime, timedelta
import threading
import uuid

# jobs that never finish (client went away mid-upload) are dropped after this many intervals
ABANDONED_AFTER_INTERVALS = 4


class ProgressTracker:
    """Thread-safe upload progress tracker"""

    def __init__(self, cleanup_interval: timedelta = timedelta(minutes=30)):
        self._jobs: Dict[str, Dict[str, Any]] = {}
        self._messages: Dict[str, List[Dict[str, Any]]] = {}
        self._started: Dict[str, datetime] = {}
        self._finished: Dict[str, datetime] = {}
        self._lock = threading.Lock()
        self._cleanup_interval = cleanup_interval

    def start_job(self, user_id: int, listing_id: int, total_files: int) -> str:
        """Register a new upload job and return its id"""
        self.cleanup_old_jobs()
        job_id = uuid.uuid4().hex
        now = datetime.utcnow()
        with self._lock:
            self._jobs[job_id] = {
                "job_id": job_id,
                "user_id": user_id,
                "listing_id": listing_id,
                "status": "pending",
                "total_files": total_files,
                "files_done": 0,
                "bytes_written": 0,
                "started_at": now.isoformat(),
            }
            self._messages[job_id] = []
            self._started[job_id] = now
        return job_id

    def add_message(self, job_id: str, message: str, level: str = "info"):
        """Add a progress message for a job"""
        with self._lock:
            messages = self._messages.get(job_id)
            if messages is None:
                return
            messages.append({
                "message": message,
                "level": level,  # info, warning, error, success
                "timestamp": datetime.utcnow().isoformat(),
            })

    def record_bytes(self, job_id: str, count: int) -> Dict[str, Any]:
        with self._lock:
            job = self._jobs[job_id]
            job["bytes_written"] += count
            job["status"] = "uploading"
            return dict(job)

    def file_done(self, job_id: str, filename: str) -> Dict[str, Any]:
        with self._lock:
            job = self._jobs[job_id]
            job["files_done"] += 1
            snapshot = dict(job)
        self.add_message(job_id, f"Uploaded {filename}", "success")
        return snapshot

    def finish(self, job_id: str, status: str, message: str, level: str = "info") -> Dict[str, Any]:
        """Mark the job completed or failed"""
        now = datetime.utcnow()
        with self._lock:
            job = self._jobs[job_id]
            job["status"] = status
            job["finished_at"] = now.isoformat()
            self._finished[job_id] = now
            snapshot = dict(job)
        self.add_message(job_id, message, level)
        return snapshot

    def get_status(self, job_id: str) -> Optional[Dict[str, Any]]:
        """Get the job status together with its messages"""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            data = dict(job)
            data["messages"] = list(self._messages.get(job_id, []))
            return data

    def clear(self, job_id: str):
        with self._lock:
            self._drop(job_id)

    def cleanup_old_jobs(self, now: Optional[datetime] = None) -> int:
        """Remove finished jobs older than the cleanup interval, and abandoned ones"""
        now = now or datetime.utcnow()
        abandoned_after = self._cleanup_interval * ABANDONED_AFTER_INTERVALS
        with self._lock:
            expired = [
                job_id
                for job_id, started in self._started.items()
                if (job_id in self._finished and now - self._finished[job_id] >= self._cleanup_interval)
                or (job_id not in self._finished and now - started >= abandoned_after)
            ]
            for job_id in expired:
                self._drop(job_id)
        return len(expired)

    def _drop(self, job_id: str):
        self._jobs.pop(job_id, None)
        self._messages.pop(job_id, None)
        self._started.pop(job_id, None)
        self._finished.pop(job_id, None)


# Global instance
progress_tracker = ProgressTracker()
