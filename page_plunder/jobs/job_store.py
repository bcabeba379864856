"""
Thread-safe in-memory store of plunder jobs.
"""

import threading
import uuid
from datetime import datetime
from typing import Dict, List, Optional

from page_plunder.models import (
    IterationResult,
    JobRecord,
    JobStatus,
    RefinementResult,
)

TERMINAL_STATUSES = (JobStatus.COMPLETED, JobStatus.FAILED)


class JobStore:
    """Job id -> JobRecord, guarded by a single lock."""

    def __init__(self):
        self._jobs: Dict[str, JobRecord] = {}
        self._lock = threading.Lock()

    def create_job(self, url: str) -> JobRecord:
        """
        Register a new pending job.

        Args:
            url: Source page URL.

        Returns:
            Snapshot of the created record.
        """
        with self._lock:
            job = JobRecord(id=self._generate_id(), url=url)
            self._jobs[job.id] = job
            return job.model_copy(deep=True)

    def get_job(self, job_id: str) -> Optional[JobRecord]:
        with self._lock:
            job = self._jobs.get(job_id)
            return job.model_copy(deep=True) if job is not None else None

    def list_jobs(self) -> List[JobRecord]:
        with self._lock:
            return [job.model_copy(deep=True) for job in self._jobs.values()]

    def update_status(self, job_id: str, status: JobStatus) -> JobRecord:
        """
        Move a job to ``status``.

        Raises:
            KeyError: If the job is unknown.
            ValueError: If the job already finished.
        """
        with self._lock:
            job = self._jobs[job_id]
            if job.status in TERMINAL_STATUSES:
                raise ValueError(f"Job {job_id} already {job.status.value}")
            job.status = status
            return job.model_copy(deep=True)

    def add_iteration(self, job_id: str, iteration: IterationResult) -> JobRecord:
        with self._lock:
            job = self._jobs[job_id]
            job.iterations.append(iteration)
            return job.model_copy(deep=True)

    def complete_job(self, job_id: str, result: RefinementResult, html_path) -> JobRecord:
        """
        Mark a job completed with its refinement result and final document path.

        Args:
            job_id: Job identifier.
            result: Refinement outcome.
            html_path: Path of the saved final document.

        Returns:
            Snapshot of the updated record.
        """
        with self._lock:
            job = self._jobs[job_id]
            job.status = JobStatus.COMPLETED
            job.result = result
            job.iterations = list(result.history)
            job.html_path = html_path
            job.completed_at = datetime.now()
            return job.model_copy(deep=True)

    def fail_job(self, job_id: str, error: str) -> JobRecord:
        with self._lock:
            job = self._jobs[job_id]
            job.status = JobStatus.FAILED
            job.error = error
            job.completed_at = datetime.now()
            return job.model_copy(deep=True)

    def _generate_id(self) -> str:
        ts = datetime.now().strftime("%Y%m%d%H%M%S")
        return f"job_{ts}_{uuid.uuid4().hex[:8]}"
