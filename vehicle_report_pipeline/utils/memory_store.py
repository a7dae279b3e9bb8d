"""
In-memory record store

Keeps inspections, evidence, jobs and reports in dictionaries. A single
asyncio.Lock serialises claims and terminal writes so the same claim
semantics as the PostgreSQL store hold inside one event loop.
"""

import asyncio
import copy
from datetime import datetime
from typing import Any, Dict, List, Optional, Iterable

from ..models.inspection import Inspection, InspectionStatus
from ..models.job import Job, JobStatus, JobType
from .store import RecordStore
from .logger import get_logger


class InMemoryRecordStore(RecordStore):
    """RecordStore backed by process memory."""

    def __init__(self):
        self.inspections: Dict[str, Inspection] = {}
        self.evidence: Dict[str, Dict[str, List[Dict[str, Any]]]] = {}
        self.jobs: Dict[str, Job] = {}
        self.reports: Dict[str, Dict[str, Any]] = {}
        self.status_history: Dict[str, List[InspectionStatus]] = {}
        self._lock = asyncio.Lock()
        self.logger = get_logger(__name__)

    async def initialize(self) -> None:
        self.logger.debug("In-memory record store ready")

    async def close(self) -> None:
        pass

    async def is_healthy(self) -> bool:
        return True

    # Seeding helpers
    def add_inspection(
        self,
        inspection: Inspection,
        photos: Optional[List[Dict[str, Any]]] = None,
        obd2_codes: Optional[List[Dict[str, Any]]] = None,
        title_images: Optional[List[Dict[str, Any]]] = None
    ) -> Inspection:
        """Register an inspection and its evidence rows."""
        self.inspections[inspection.inspection_id] = inspection
        self.evidence[inspection.inspection_id] = {
            "photos": list(photos or []),
            "obd2_codes": list(obd2_codes or []),
            "title_images": list(title_images or []),
        }
        return inspection

    def jobs_for(self, inspection_id: str) -> List[Job]:
        return sorted(
            (job for job in self.jobs.values() if job.inspection_id == inspection_id),
            key=lambda job: job.sequence_order
        )

    # Inspections
    async def get_inspection(self, inspection_id: str) -> Optional[Inspection]:
        inspection = self.inspections.get(inspection_id)
        return copy.deepcopy(inspection) if inspection else None

    async def update_inspection_status(self, inspection_id: str, status: InspectionStatus) -> None:
        inspection = self.inspections.get(inspection_id)
        if inspection is None:
            return
        inspection.status = status
        inspection.updated_at = datetime.utcnow()
        self.status_history.setdefault(inspection_id, []).append(status)

    async def transition_inspection(
        self,
        inspection_id: str,
        status: InspectionStatus,
        unless: Iterable[InspectionStatus] = ()
    ) -> bool:
        async with self._lock:
            inspection = self.inspections.get(inspection_id)
            if inspection is None or inspection.status in tuple(unless):
                return False
            await self.update_inspection_status(inspection_id, status)
            return True

    async def fetch_evidence(self, inspection_id: str) -> Dict[str, List[Dict[str, Any]]]:
        evidence = self.evidence.get(inspection_id, {})
        return {
            "photos": copy.deepcopy(evidence.get("photos", [])),
            "obd2_codes": copy.deepcopy(evidence.get("obd2_codes", [])),
            "title_images": copy.deepcopy(evidence.get("title_images", [])),
        }

    # Jobs
    async def insert_jobs(self, jobs: List[Job]) -> None:
        async with self._lock:
            for job in jobs:
                self.jobs[job.job_id] = copy.deepcopy(job)

    async def get_job(self, job_id: str) -> Optional[Job]:
        job = self.jobs.get(job_id)
        return copy.deepcopy(job) if job else None

    async def list_jobs(self, inspection_id: str) -> List[Job]:
        return [copy.deepcopy(job) for job in self.jobs_for(inspection_id)]

    async def claim_next_pending_job(
        self,
        inspection_id: str,
        completed_sequence_order: int,
        started_at: datetime
    ) -> Optional[Job]:
        async with self._lock:
            jobs = self.jobs_for(inspection_id)
            if any(job.status == JobStatus.PROCESSING for job in jobs):
                return None

            pending = [job for job in jobs if job.status == JobStatus.PENDING]
            if not pending or pending[0].sequence_order <= completed_sequence_order:
                return None

            job = pending[0]
            job.start_processing(started_at)
            return copy.deepcopy(job)

    async def update_job(self, job: Job) -> bool:
        async with self._lock:
            stored = self.jobs.get(job.job_id)
            if stored is None or stored.status != JobStatus.PROCESSING:
                return False
            self.jobs[job.job_id] = copy.deepcopy(job)
            return True

    async def count_open_jobs(self, inspection_id: str) -> int:
        return sum(
            1 for job in self.jobs_for(inspection_id)
            if job.status in (JobStatus.PENDING, JobStatus.PROCESSING)
        )

    async def get_completed_result(self, inspection_id: str, sequence_order: int) -> Optional[Dict[str, Any]]:
        for job in self.jobs_for(inspection_id):
            if job.sequence_order == sequence_order and job.status == JobStatus.COMPLETED:
                return copy.deepcopy(job.chunk_result)
        return None

    async def get_latest_chunk_result(self, inspection_id: str) -> Optional[Dict[str, Any]]:
        completed = [
            job for job in self.jobs_for(inspection_id)
            if job.job_type == JobType.CHUNK_ANALYSIS and job.status == JobStatus.COMPLETED and job.chunk_result
        ]
        if not completed:
            return None
        return copy.deepcopy(completed[-1].chunk_result)

    async def find_stale_jobs(self, started_before: datetime) -> List[Job]:
        return [
            copy.deepcopy(job) for job in sorted(self.jobs.values(), key=lambda j: j.started_at or datetime.min)
            if job.status == JobStatus.PROCESSING and job.started_at and job.started_at < started_before
        ]

    async def find_stalled_finalizations(self, updated_before: datetime) -> List[str]:
        return [
            inspection_id for inspection_id, inspection in self.inspections.items()
            if inspection.status == InspectionStatus.FINALIZING and inspection.updated_at < updated_before
        ]

    # Reports
    async def upsert_report(self, inspection_id: str, report: Dict[str, Any]) -> None:
        existing = self.reports.get(inspection_id)
        now = datetime.utcnow()
        stored = dict(report)
        stored["inspection_id"] = inspection_id
        stored["created_at"] = existing["created_at"] if existing else now
        stored["updated_at"] = now
        self.reports[inspection_id] = copy.deepcopy(stored)

    async def get_report(self, inspection_id: str) -> Optional[Dict[str, Any]]:
        report = self.reports.get(inspection_id)
        return copy.deepcopy(report) if report else None
