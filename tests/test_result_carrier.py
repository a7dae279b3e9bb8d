"""
Test suite for ResultCarrier.

Tests the immediate-predecessor and latest-completed-chunk lookups against
the in-memory record store.
"""

import pytest

from vehicle_report_pipeline.models.job import Job, JobStatus, JobType
from vehicle_report_pipeline.services.result_carrier import ResultCarrier

INSPECTION = "inspection-1"


def stored_job(sequence_order: int, status: JobStatus, result=None, job_type=JobType.CHUNK_ANALYSIS) -> Job:
    return Job(
        inspection_id=INSPECTION,
        job_type=job_type,
        sequence_order=sequence_order,
        chunk_index=sequence_order,
        status=status,
        chunk_result=result
    )


@pytest.fixture
def carrier(store) -> ResultCarrier:
    """Provide a carrier over the shared store."""
    return ResultCarrier(store)


class TestGetPrecedingResult:
    """Test suite for the immediate-predecessor lookup."""

    @pytest.mark.asyncio
    async def test_returns_completed_predecessor_result(self, store, carrier):
        # Arrange
        await store.insert_jobs([stored_job(1, JobStatus.COMPLETED, {"score": 7}), stored_job(2, JobStatus.PENDING)])

        # Act
        result = await carrier.get_preceding_result(INSPECTION, 2)

        # Assert
        assert result == {"score": 7}

    @pytest.mark.asyncio
    async def test_first_job_has_no_predecessor(self, store, carrier):
        await store.insert_jobs([stored_job(1, JobStatus.PENDING)])

        assert await carrier.get_preceding_result(INSPECTION, 1) is None

    @pytest.mark.asyncio
    async def test_failed_predecessor_gives_none(self, store, carrier):
        await store.insert_jobs([
            stored_job(1, JobStatus.COMPLETED, {"score": 7}),
            stored_job(2, JobStatus.FAILED),
            stored_job(3, JobStatus.PENDING),
        ])

        assert await carrier.get_preceding_result(INSPECTION, 3) is None

    @pytest.mark.asyncio
    async def test_empty_result_counts_as_none(self, store, carrier):
        await store.insert_jobs([stored_job(1, JobStatus.COMPLETED, {}), stored_job(2, JobStatus.PENDING)])

        assert await carrier.get_preceding_result(INSPECTION, 2) is None


class TestGetLatestChunkAnalysisResult:
    """Test suite for the latest-completed-chunk lookup."""

    @pytest.mark.asyncio
    async def test_skips_failed_chunks(self, store, carrier):
        # Arrange
        await store.insert_jobs([
            stored_job(1, JobStatus.COMPLETED, {"chunk": 1}),
            stored_job(2, JobStatus.FAILED),
            stored_job(3, JobStatus.PENDING, job_type=JobType.EXPERT_ADVICE),
        ])

        # Act
        result = await carrier.get_latest_chunk_analysis_result(INSPECTION)

        # Assert
        assert result == {"chunk": 1}

    @pytest.mark.asyncio
    async def test_ignores_stage_results(self, store, carrier):
        await store.insert_jobs([
            stored_job(1, JobStatus.COMPLETED, {"chunk": 1}),
            stored_job(2, JobStatus.COMPLETED, {"chunk": 2}),
            stored_job(3, JobStatus.COMPLETED, {"advice": "buy"}, job_type=JobType.EXPERT_ADVICE),
        ])

        assert await carrier.get_latest_chunk_analysis_result(INSPECTION) == {"chunk": 2}

    @pytest.mark.asyncio
    async def test_none_when_no_chunk_completed(self, store, carrier):
        await store.insert_jobs([stored_job(1, JobStatus.FAILED)])

        assert await carrier.get_latest_chunk_analysis_result(INSPECTION) is None

    @pytest.mark.asyncio
    async def test_empty_latest_result_falls_back_to_earlier_chunk(self, store, carrier):
        await store.insert_jobs([
            stored_job(1, JobStatus.COMPLETED, {"chunk": 1}),
            stored_job(2, JobStatus.COMPLETED, {}),
        ])

        assert await carrier.get_latest_chunk_analysis_result(INSPECTION) == {"chunk": 1}
