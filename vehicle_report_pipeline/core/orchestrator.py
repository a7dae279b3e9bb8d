"""
Main InspectionPipeline class that coordinates all services

Provides the primary interface for turning an inspection's evidence into a
job chain, driving that chain to completion and reading back the report.
"""

from datetime import timedelta
from typing import Any, Dict, Iterable, List, Optional, Union

from ..engines.base import AnalysisEngine
from ..engines.gemini_engine import GeminiAnalysisEngine
from ..models.inspection import InspectionStatus
from ..models.job import Job, JobStatus, JobType
from ..services.chain_driver import ChainDriver
from ..services.chunk_builder import plan_chunks
from ..services.job_runner import JobRunner
from ..services.job_sequencer import build_job_sequence, normalize_stages
from ..services.recovery import StaleJobRecovery
from ..services.report_builder import ReportBuilder
from ..services.result_carrier import ResultCarrier
from ..stages import build_processors
from ..utils.config import PipelineConfig
from ..utils.logger import get_logger, LoggerContext
from ..utils.store import RecordStore
from .exceptions import InspectionNotFoundError, JobNotFoundError, JobSubmissionError, PipelineError


class InspectionPipeline:
    """
    Main pipeline class that coordinates all services.

    Provides a unified interface for:
    - Planning chunks and persisting an inspection's job chain
    - Driving the chain one job at a time
    - Handling external chain advancement signals
    - Recovering jobs stuck in processing
    - Job status and report queries
    """

    def __init__(
        self,
        store: RecordStore,
        engine: Optional[AnalysisEngine] = None,
        config: Optional[PipelineConfig] = None
    ):
        """
        Initialize the InspectionPipeline.

        Args:
            store: Record store for inspections, jobs and reports
            engine: Analysis engine; a Gemini engine is built from config when omitted
            config: Pipeline configuration; defaults apply when omitted
        """
        self.config = config or PipelineConfig()
        self.store = store
        self.engine = engine or GeminiAnalysisEngine(self.config)

        self.carrier = ResultCarrier(store)
        self.processors = build_processors(self.engine, self.carrier, store)
        self.runner = JobRunner(store, self.processors)
        self.report_builder = ReportBuilder(store, ai_model=self.config.gemini_model)
        self.driver = ChainDriver(store, self.runner, self.report_builder.finalize)
        self.recovery = StaleJobRecovery(
            store, self.driver, timedelta(seconds=self.config.stale_job_seconds)
        )

        self._is_running = False
        self.logger = get_logger(__name__)

    @property
    def is_running(self) -> bool:
        return self._is_running

    async def start(self):
        """Open the record store and the analysis engine."""
        self.logger.info("Starting InspectionPipeline", extra={
            "engine": self.engine.engine_name,
            "max_chunk_bytes": self.config.max_chunk_bytes,
            "downstream_stages": list(self.config.downstream_stages)
        })

        try:
            await self.store.initialize()
            await self.engine.initialize()
            self._is_running = True
            self.logger.info("InspectionPipeline started successfully")

        except Exception as e:
            self.logger.error("Failed to start InspectionPipeline", exc_info=True)
            await self.stop()
            raise PipelineError(f"Failed to start pipeline: {str(e)}", error_code="PIPELINE_START_FAILED")

    async def stop(self):
        """Close the analysis engine and the record store."""
        self.logger.info("Stopping InspectionPipeline")
        await self.engine.shutdown()
        await self.store.close()
        self._is_running = False
        self.logger.info("InspectionPipeline stopped")

    async def __aenter__(self) -> "InspectionPipeline":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

    # Job chain interface
    async def start_inspection(
        self,
        inspection_id: str,
        downstream_stages: Optional[Iterable[Union[str, JobType]]] = None
    ) -> List[Job]:
        """
        Plan chunks and persist the job chain for an inspection.

        Args:
            inspection_id: Inspection to process
            downstream_stages: Stages to append after the chunk jobs;
                the configured stages are used when omitted

        Returns:
            The persisted jobs in sequence order, or an empty list when the
            inspection has no assessable items and was marked failed

        Raises:
            InspectionNotFoundError: If the inspection does not exist
            JobSubmissionError: If the inspection already has jobs
            ValidationError: If a downstream stage name is invalid
        """
        with LoggerContext(inspection_id=inspection_id):
            inspection = await self.store.get_inspection(inspection_id)
            if inspection is None:
                raise InspectionNotFoundError(inspection_id)

            if await self.store.list_jobs(inspection_id):
                raise JobSubmissionError("Inspection already has jobs", inspection_id=inspection_id)

            stages = normalize_stages(
                self.config.downstream_stages if downstream_stages is None else downstream_stages
            )

            await self.store.update_inspection_status(inspection_id, InspectionStatus.PROCESSING)

            evidence = await self.store.fetch_evidence(inspection_id)
            chunks = plan_chunks(evidence, self.config.max_chunk_bytes)

            if not chunks:
                self.logger.error("No assessable items found for inspection")
                await self.store.update_inspection_status(inspection_id, InspectionStatus.FAILED)
                return []

            await self.store.update_inspection_status(inspection_id, InspectionStatus.ANALYZING)
            self.logger.info("Planned chunks", extra={
                "chunk_count": len(chunks),
                "total_bytes": sum(chunk.total_size for chunk in chunks),
                "item_count": sum(len(chunk) for chunk in chunks)
            })

            await self.store.update_inspection_status(inspection_id, InspectionStatus.CREATING_JOBS)
            jobs = build_job_sequence(inspection_id, chunks, stages)
            await self.store.insert_jobs(jobs)

            self.logger.info("Job chain created", extra={
                "job_count": len(jobs),
                "downstream_stages": [stage.value for stage in stages]
            })
            return jobs

    async def run_inspection(
        self,
        inspection_id: str,
        downstream_stages: Optional[Iterable[Union[str, JobType]]] = None
    ) -> Optional[Dict[str, Any]]:
        """
        Create the job chain for an inspection and drive it to completion.

        Returns:
            The final report, or None when the inspection failed
        """
        jobs = await self.start_inspection(inspection_id, downstream_stages)
        if jobs:
            executed = await self.driver.drive(inspection_id)
            self.logger.info("Inspection chain finished", extra={
                "inspection_id": inspection_id,
                "jobs_executed": executed
            })
        return await self.store.get_report(inspection_id)

    async def advance(self, inspection_id: str, completed_sequence_order: int) -> Optional[Job]:
        """
        Handle a chain advancement signal for an inspection.

        Returns:
            The job claimed by this signal, or None
        """
        return await self.driver.advance(inspection_id, completed_sequence_order)

    async def recover_stale_jobs(self) -> List[Job]:
        """Fail jobs stuck in processing and continue their chains."""
        return await self.recovery.sweep()

    # Query interface
    async def get_job_status(self, inspection_id: str) -> Dict[str, Any]:
        """
        Get the status of an inspection and its jobs.

        Raises:
            InspectionNotFoundError: If the inspection does not exist
        """
        inspection = await self.store.get_inspection(inspection_id)
        if inspection is None:
            raise InspectionNotFoundError(inspection_id)

        jobs = await self.store.list_jobs(inspection_id)
        counts = {status.value: 0 for status in JobStatus}
        for job in jobs:
            counts[job.status.value] += 1

        return {
            "inspection_id": inspection_id,
            "status": inspection.status.value,
            "total_jobs": len(jobs),
            "job_counts": counts,
            "total_cost": sum(job.cost for job in jobs),
            "jobs": [
                {
                    "job_id": job.job_id,
                    "job_type": job.job_type.value,
                    "sequence_order": job.sequence_order,
                    "chunk_index": job.chunk_index,
                    "total_chunks": job.total_chunks,
                    "status": job.status.value,
                    "error_message": job.error_message,
                    "duration_seconds": job.get_duration()
                }
                for job in jobs
            ]
        }

    async def get_report(self, inspection_id: str) -> Optional[Dict[str, Any]]:
        return await self.store.get_report(inspection_id)

    async def get_job(self, job_id: str) -> Job:
        """
        Get a single job by ID.

        Raises:
            JobNotFoundError: If the job does not exist
        """
        job = await self.store.get_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    async def health_check(self) -> bool:
        """
        Check that the pipeline is running and its dependencies are reachable.

        Returns:
            True if the pipeline is healthy
        """
        if not self._is_running:
            return False

        if not await self.store.is_healthy():
            self.logger.warning("Record store health check failed")
            return False

        if not self.engine.is_initialized:
            self.logger.warning("Analysis engine is not initialized", extra={
                "engine": self.engine.engine_name
            })
            return False

        return True
