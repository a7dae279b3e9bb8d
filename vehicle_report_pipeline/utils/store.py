"""
Record store interface for the Vehicle Report Pipeline

Every persistence concern of the pipeline goes through RecordStore. The
PostgreSQL implementation lives in utils.database; utils.memory_store holds
an in-process implementation for local dry runs and tests.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Iterable

from ..models.inspection import Inspection, InspectionStatus
from ..models.job import Job


class RecordStore(ABC):
    """Abstract record store for inspections, evidence, jobs and reports."""

    @abstractmethod
    async def initialize(self) -> None:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass

    @abstractmethod
    async def is_healthy(self) -> bool:
        pass

    # Inspections
    @abstractmethod
    async def get_inspection(self, inspection_id: str) -> Optional[Inspection]:
        pass

    @abstractmethod
    async def update_inspection_status(self, inspection_id: str, status: InspectionStatus) -> None:
        pass

    @abstractmethod
    async def transition_inspection(
        self,
        inspection_id: str,
        status: InspectionStatus,
        unless: Iterable[InspectionStatus] = ()
    ) -> bool:
        """
        Set the inspection status unless it currently holds one of ``unless``.

        Returns:
            True if this call changed the status
        """
        pass

    @abstractmethod
    async def fetch_evidence(self, inspection_id: str) -> Dict[str, List[Dict[str, Any]]]:
        """
        Load raw evidence rows for an inspection.

        Returns:
            Mapping with ``photos``, ``obd2_codes`` and ``title_images`` lists
        """
        pass

    # Jobs
    @abstractmethod
    async def insert_jobs(self, jobs: List[Job]) -> None:
        pass

    @abstractmethod
    async def get_job(self, job_id: str) -> Optional[Job]:
        pass

    @abstractmethod
    async def list_jobs(self, inspection_id: str) -> List[Job]:
        """All jobs of an inspection ordered by sequence order."""
        pass

    @abstractmethod
    async def claim_next_pending_job(
        self,
        inspection_id: str,
        completed_sequence_order: int,
        started_at: datetime
    ) -> Optional[Job]:
        """
        Atomically move the next pending job to processing.

        The candidate is the lowest-sequence pending job of the inspection.
        Nothing is claimed when that job is not after
        ``completed_sequence_order`` or when another job of the inspection
        is already processing.

        Returns:
            The claimed job, or None
        """
        pass

    @abstractmethod
    async def update_job(self, job: Job) -> bool:
        """
        Persist a job's terminal state.

        Only a job that is still processing in the store is written.

        Returns:
            True if the row was updated
        """
        pass

    @abstractmethod
    async def count_open_jobs(self, inspection_id: str) -> int:
        """Number of pending or processing jobs for an inspection."""
        pass

    @abstractmethod
    async def get_completed_result(self, inspection_id: str, sequence_order: int) -> Optional[Dict[str, Any]]:
        """chunk_result of the completed job at exactly ``sequence_order``."""
        pass

    @abstractmethod
    async def get_latest_chunk_result(self, inspection_id: str) -> Optional[Dict[str, Any]]:
        """Non-empty chunk_result of the highest-sequence completed chunk_analysis job."""
        pass

    @abstractmethod
    async def find_stale_jobs(self, started_before: datetime) -> List[Job]:
        """Processing jobs whose started_at is older than ``started_before``."""
        pass

    @abstractmethod
    async def find_stalled_finalizations(self, updated_before: datetime) -> List[str]:
        """IDs of inspections left in finalizing since before ``updated_before``."""
        pass

    # Reports
    @abstractmethod
    async def upsert_report(self, inspection_id: str, report: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    async def get_report(self, inspection_id: str) -> Optional[Dict[str, Any]]:
        pass
