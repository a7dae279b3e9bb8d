"""
Test suite for JobRunner and the stage processors it dispatches to.

Tests terminal state handling for successes, job-level failures and
persistence failures, plus the context each stage sends to the engine.
"""

from datetime import datetime

import pytest

from vehicle_report_pipeline.core.exceptions import AnalysisEngineError, DatabaseError, error_registry
from vehicle_report_pipeline.models.job import Job, JobStatus, JobType
from vehicle_report_pipeline.services.job_runner import JobRunner
from vehicle_report_pipeline.services.result_carrier import ResultCarrier
from vehicle_report_pipeline.stages import build_processors
from vehicle_report_pipeline.utils.memory_store import InMemoryRecordStore

from conftest import INSPECTION_ID, ScriptedEngine, chunk_report


def make_job(sequence_order: int, job_type=JobType.CHUNK_ANALYSIS, chunk_index=None, **kwargs) -> Job:
    return Job(
        inspection_id=INSPECTION_ID,
        job_type=job_type,
        sequence_order=sequence_order,
        chunk_index=chunk_index or (sequence_order if job_type == JobType.CHUNK_ANALYSIS else 1),
        chunk_data={"images": [{"id": f"p{sequence_order}", "path": "a.jpg", "category": "exterior", "storage": 1}]}
        if job_type == JobType.CHUNK_ANALYSIS else {},
        **kwargs
    )


def make_runner(store, engine) -> JobRunner:
    return JobRunner(store, build_processors(engine, ResultCarrier(store), store))


async def claim(store, completed_sequence_order: int) -> Job:
    job = await store.claim_next_pending_job(INSPECTION_ID, completed_sequence_order, datetime.utcnow())
    assert job is not None
    return job


class TestJobRunnerSuccess:
    """Test suite for completed jobs."""

    @pytest.mark.asyncio
    async def test_first_chunk_completes_with_vehicle_context(self, store, inspection, engine):
        # Arrange
        await store.insert_jobs([make_job(1)])
        runner = make_runner(store, engine)

        # Act
        job = await runner.run_job(await claim(store, 0))

        # Assert
        stored = await store.get_job(job.job_id)
        assert stored.status == JobStatus.COMPLETED
        assert stored.chunk_result["overallConditionScore"] == 7
        assert stored.cost == pytest.approx(0.01)
        assert stored.total_tokens == 100
        assert stored.completed_at is not None

        request = engine.requests[0]
        assert request.context_blocks[0].startswith("DATA_BLOCK: ")
        assert '"vin": "4T1B11HK5JU000001"' in request.context_blocks[0]
        assert "Code: P0420\nDescription: Catalyst efficiency below threshold" in request.context_blocks
        assert [image.item_id for image in request.images] == ["p1"]

    @pytest.mark.asyncio
    async def test_later_chunk_merges_into_predecessor(self, store, inspection, engine):
        # Arrange
        await store.insert_jobs([
            make_job(1, status=JobStatus.COMPLETED, chunk_result=chunk_report(comments="from chunk one")),
            make_job(2),
        ])
        runner = make_runner(store, engine)

        # Act
        await runner.run_job(await claim(store, 1))

        # Assert
        blocks = engine.requests[0].context_blocks
        assert any(block.startswith("PREVIOUS_ANALYSIS: ") and "from chunk one" in block for block in blocks)
        assert not any(block.startswith("DATA_BLOCK") for block in blocks)

    @pytest.mark.asyncio
    async def test_chunk_after_failed_chunk_merges_into_latest_completed(self, store, inspection, engine):
        # Arrange
        await store.insert_jobs([
            make_job(1, status=JobStatus.COMPLETED, chunk_result=chunk_report(comments="from chunk one")),
            make_job(2, status=JobStatus.FAILED, error_message="timed out"),
            make_job(3),
        ])
        runner = make_runner(store, engine)

        # Act
        job = await runner.run_job(await claim(store, 2))

        # Assert
        assert job.status == JobStatus.COMPLETED
        assert await ResultCarrier(store).get_preceding_result(INSPECTION_ID, 3) is None
        blocks = engine.requests[0].context_blocks
        assert any("from chunk one" in block for block in blocks)

    @pytest.mark.asyncio
    async def test_research_stage_strips_own_keys_and_counts_searches(self, store, inspection, engine):
        # Arrange
        previous = chunk_report(finalFairValueUSD="$1", priceAdjustment={"adjustmentUSD": 0})
        await store.insert_jobs([
            make_job(1, status=JobStatus.COMPLETED, chunk_result=previous),
            make_job(2, job_type=JobType.FAIR_MARKET_VALUE),
        ])
        runner = make_runner(store, engine)

        # Act
        job = await runner.run_job(await claim(store, 1))

        # Assert
        assert job.status == JobStatus.COMPLETED
        assert job.chunk_result["finalFairValueUSD"] == "$15,000 - $18,000"
        assert job.web_search_count == 1

        request = engine.requests[0]
        assert request.use_web_search is True
        results_block = next(b for b in request.context_blocks if b.startswith("**COMPLETE INSPECTION RESULTS**"))
        assert "finalFairValueUSD" not in results_block
        assert "priceAdjustment" not in results_block
        terms_block = next(b for b in request.context_blocks if b.startswith("**SEARCH TERMS TO USE**"))
        assert "2018 Toyota Camry" in terms_block


class TestJobRunnerFailures:
    """Test suite for jobs that end failed."""

    @pytest.mark.asyncio
    async def test_missing_dependency_fails_without_calling_engine(self, store, inspection, engine):
        # Arrange
        await store.insert_jobs([
            make_job(1, status=JobStatus.FAILED, error_message="boom"),
            make_job(2, job_type=JobType.OWNERSHIP_COST_FORECAST),
        ])
        runner = make_runner(store, engine)

        # Act
        job = await runner.run_job(await claim(store, 1))

        # Assert
        assert job.status == JobStatus.FAILED
        assert "no completed chunk analysis result" in job.error_message
        assert engine.requests == []
        assert error_registry.error_counts == {"MissingDependencyError": 1}

    @pytest.mark.asyncio
    async def test_malformed_payload_fails_job(self, store, inspection):
        # Arrange
        engine = ScriptedEngine({"chunk_analysis": {"overallConditionScore": 4}})
        await store.insert_jobs([make_job(1)])
        runner = make_runner(store, engine)

        # Act
        job = await runner.run_job(await claim(store, 0))

        # Assert
        stored = await store.get_job(job.job_id)
        assert stored.status == JobStatus.FAILED
        assert "VehicleReport validation failed" in stored.error_message
        assert stored.chunk_result is None

    @pytest.mark.asyncio
    async def test_engine_error_fails_job(self, store, inspection):
        engine = ScriptedEngine({"chunk_analysis": AnalysisEngineError("GeminiAnalysisEngine", "request timed out")})
        await store.insert_jobs([make_job(1)])

        job = await make_runner(store, engine).run_job(await claim(store, 0))

        assert job.status == JobStatus.FAILED
        assert "request timed out" in job.error_message

    @pytest.mark.asyncio
    async def test_unexpected_exception_fails_job(self, store, inspection):
        engine = ScriptedEngine({"chunk_analysis": RuntimeError("boom")})
        await store.insert_jobs([make_job(1)])

        job = await make_runner(store, engine).run_job(await claim(store, 0))

        assert job.status == JobStatus.FAILED
        assert job.error_message == "RuntimeError: boom"
        assert error_registry.error_counts == {"RuntimeError": 1}

    @pytest.mark.asyncio
    async def test_unregistered_job_type_fails_job(self, store, inspection):
        await store.insert_jobs([make_job(1)])

        job = await JobRunner(store, {}).run_job(await claim(store, 0))

        assert job.status == JobStatus.FAILED
        assert "No processor registered" in job.error_message


class TestJobRunnerPersistence:
    """Test suite for terminal writes."""

    @pytest.mark.asyncio
    async def test_result_for_already_finalized_job_is_discarded(self, store, inspection, engine):
        # Arrange
        await store.insert_jobs([make_job(1)])
        job = await claim(store, 0)
        store.jobs[job.job_id].fail("stale")

        # Act
        await make_runner(store, engine).run_job(job)

        # Assert
        stored = await store.get_job(job.job_id)
        assert stored.status == JobStatus.FAILED
        assert stored.error_message == "stale"

    @pytest.mark.asyncio
    async def test_database_error_propagates(self, inspection, engine):
        # Arrange
        class BrokenStore(InMemoryRecordStore):
            async def update_job(self, job):
                raise DatabaseError("update_job", "connection lost", table="processing_jobs")

        broken = BrokenStore()
        broken.add_inspection(inspection)
        await broken.insert_jobs([make_job(1)])
        job = await broken.claim_next_pending_job(INSPECTION_ID, 0, datetime.utcnow())

        # Act / Assert
        with pytest.raises(DatabaseError):
            await make_runner(broken, engine).run_job(job)
        assert (await broken.get_job(job.job_id)).status == JobStatus.PROCESSING
