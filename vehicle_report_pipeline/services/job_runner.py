"""
JobRunner service for the Vehicle Report Pipeline

Executes one claimed job through the processor registered for its job type
and writes exactly one terminal record for it.
"""

from typing import Dict, Optional, Protocol, Tuple

from ..core.exceptions import DatabaseError, PipelineError, error_registry
from ..models.analysis import AnalysisResult
from ..models.inspection import Inspection
from ..models.job import Job, JobStatus, JobType
from ..utils.logger import get_logger, LoggerContext
from ..utils.store import RecordStore


class JobProcessor(Protocol):
    async def process(self, job: Job, inspection: Inspection) -> AnalysisResult:
        ...


class JobRunner:
    """
    Runs claimed jobs.

    Every error raised while processing, whether a PipelineError or any
    other exception, is converted into a failed job. Only errors from the
    record store itself propagate.
    """

    def __init__(self, store: RecordStore, processors: Dict[JobType, JobProcessor]):
        """
        Initialize JobRunner.

        Args:
            store: Record store holding jobs and inspections
            processors: Processor for each job type
        """
        self.store = store
        self.processors = dict(processors)
        self.logger = get_logger(__name__)

    async def run_job(self, job: Job) -> Job:
        """
        Execute a job that is already in processing state.

        Returns:
            The job in its terminal state

        Raises:
            DatabaseError: If the terminal state could not be persisted
        """
        with LoggerContext(
            inspection_id=job.inspection_id,
            job_id=job.job_id,
            sequence_order=job.sequence_order
        ):
            self.logger.info("Running job", extra={
                "job_type": job.job_type.value,
                "chunk_index": job.chunk_index,
                "total_chunks": job.total_chunks
            })

            result, error_message = await self._execute(job)

            if error_message is None:
                job.complete(result.payload, result.usage())
            else:
                job.fail(error_message)

            try:
                written = await self.store.update_job(job)
            except DatabaseError:
                self.logger.error("Failed to persist job result", exc_info=True, extra={
                    "status": job.status.value
                })
                raise

            if not written:
                self.logger.warning("Job was already finalized elsewhere; result discarded", extra={
                    "status": job.status.value
                })
            elif job.status == JobStatus.COMPLETED:
                self.logger.info("Job completed", extra={
                    "cost": job.cost,
                    "total_tokens": job.total_tokens,
                    "duration_seconds": job.get_duration()
                })
            else:
                self.logger.warning("Job failed", extra={"error": job.error_message})

            return job

    async def _execute(self, job: Job) -> Tuple[Optional[AnalysisResult], Optional[str]]:
        """Run the processor and return either a result or an error message."""
        processor = self.processors.get(job.job_type)
        if processor is None:
            return None, f"No processor registered for job type {job.job_type.value}"

        inspection = await self.store.get_inspection(job.inspection_id)
        if inspection is None:
            return None, f"Inspection not found: {job.inspection_id}"

        try:
            return await processor.process(job, inspection), None
        except DatabaseError:
            raise
        except PipelineError as e:
            error_registry.record_error(e)
            self.logger.error("Job processing error", extra={"error": e.to_dict()})
            return None, str(e)
        except Exception as e:
            error_registry.record_error(e)
            self.logger.error("Unexpected error while processing job", exc_info=True)
            return None, f"{e.__class__.__name__}: {e}"

