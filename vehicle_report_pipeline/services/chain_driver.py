"""
ChainDriver service for the Vehicle Report Pipeline

Moves an inspection's job list forward one job at a time. Each finished
job, completed or failed, signals the driver with its sequence order; the
driver claims the next pending job or, when none is left, finalizes the
inspection exactly once.
"""

from datetime import datetime
from typing import Awaitable, Callable, Optional

from ..models.inspection import InspectionStatus
from ..models.job import Job
from ..utils.logger import get_logger
from ..utils.store import RecordStore
from .job_runner import JobRunner

Finalizer = Callable[[str], Awaitable[object]]

# States from which finalization must not start again
_FINALIZATION_STATES = (
    InspectionStatus.FINALIZING,
    InspectionStatus.DONE,
    InspectionStatus.FAILED,
)


class ChainDriver:
    """Claims and dispatches the jobs of an inspection in sequence order."""

    def __init__(self, store: RecordStore, runner: JobRunner, finalizer: Finalizer):
        """
        Initialize ChainDriver.

        Args:
            store: Record store providing the atomic claim
            runner: Executes claimed jobs
            finalizer: Coroutine building the final report for an inspection
        """
        self.store = store
        self.runner = runner
        self.finalizer = finalizer
        self.logger = get_logger(__name__)

    async def claim(self, inspection_id: str, completed_sequence_order: int) -> Optional[Job]:
        """
        Claim the next job after ``completed_sequence_order`` without running it.

        When nothing is claimable and no job is open any more, the
        inspection is finalized.
        """
        job = await self.store.claim_next_pending_job(
            inspection_id, completed_sequence_order, datetime.utcnow()
        )
        if job is not None:
            self.logger.info("Claimed next job", extra={
                "inspection_id": inspection_id,
                "job_id": job.job_id,
                "sequence_order": job.sequence_order,
                "job_type": job.job_type.value
            })
            return job

        open_jobs = await self.store.count_open_jobs(inspection_id)
        if open_jobs:
            # A job is still processing or the signal is for an earlier position
            self.logger.debug("No job claimed", extra={
                "inspection_id": inspection_id,
                "completed_sequence_order": completed_sequence_order,
                "open_jobs": open_jobs
            })
            return None

        await self.finalize(inspection_id)
        return None

    async def finalize(self, inspection_id: str, resume: bool = False) -> bool:
        """
        Finalize an inspection unless finalization already started.

        If the finalizer raises, the inspection gets its previous status back
        so a later signal or recovery sweep can finalize it again.

        Args:
            inspection_id: Inspection whose jobs are all finished
            resume: Take over an inspection left in finalizing

        Returns:
            True if this call ran the finalizer
        """
        inspection = await self.store.get_inspection(inspection_id)
        if inspection is None:
            self.logger.warning("Cannot finalize unknown inspection", extra={"inspection_id": inspection_id})
            return False

        blocked = _FINALIZATION_STATES
        if resume:
            blocked = tuple(state for state in _FINALIZATION_STATES if state != InspectionStatus.FINALIZING)

        started = await self.store.transition_inspection(
            inspection_id, InspectionStatus.FINALIZING, unless=blocked
        )
        if not started:
            self.logger.debug("Inspection already finalized", extra={"inspection_id": inspection_id})
            return False

        self.logger.info("All jobs finished, finalizing inspection", extra={"inspection_id": inspection_id})
        try:
            await self.finalizer(inspection_id)
        except Exception:
            self.logger.error("Finalization failed; inspection reopened", exc_info=True, extra={
                "inspection_id": inspection_id,
                "restored_status": inspection.status.value
            })
            await self.store.update_inspection_status(inspection_id, inspection.status)
            raise
        return True

    async def advance(self, inspection_id: str, completed_sequence_order: int) -> Optional[Job]:
        """
        Handle a chain advancement signal.

        Claims the next job and runs the rest of the chain from it.

        Args:
            inspection_id: Inspection whose job finished
            completed_sequence_order: Sequence order of the finished job, or 0 to start

        Returns:
            The job claimed by this signal, or None
        """
        job = await self.claim(inspection_id, completed_sequence_order)
        if job is not None:
            await self._run_chain(job)
        return job

    async def drive(self, inspection_id: str) -> int:
        """
        Run an inspection's chain from the beginning until nothing is claimable.

        Returns:
            Number of jobs executed
        """
        job = await self.claim(inspection_id, 0)
        if job is None:
            return 0
        return await self._run_chain(job)

    async def _run_chain(self, job: Job) -> int:
        executed = 0
        while job is not None:
            finished = await self.runner.run_job(job)
            executed += 1
            job = await self.claim(finished.inspection_id, finished.sequence_order)
        return executed
