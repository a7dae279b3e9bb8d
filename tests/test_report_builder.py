"""
Test suite for ReportBuilder.

Tests report merging, usage aggregation and the inspection-fatal failure rules.
"""

import pytest

from vehicle_report_pipeline.models.inspection import Inspection, InspectionStatus
from vehicle_report_pipeline.models.job import Job, JobStatus, JobType
from vehicle_report_pipeline.services.report_builder import ReportBuilder, build_summary

from conftest import INSPECTION_ID, chunk_report


def finished(sequence_order, job_type, status=JobStatus.COMPLETED, result=None, chunk_index=1, **usage) -> Job:
    return Job(
        inspection_id=INSPECTION_ID,
        job_type=job_type,
        sequence_order=sequence_order,
        chunk_index=chunk_index,
        status=status,
        chunk_result=result,
        error_message="failed" if status == JobStatus.FAILED else None,
        **usage
    )


@pytest.fixture
def builder(store) -> ReportBuilder:
    """Provide a report builder over the shared store."""
    store.add_inspection(Inspection(inspection_id=INSPECTION_ID, status=InspectionStatus.FINALIZING))
    return ReportBuilder(store, ai_model="gemini-2.5-flash")


class TestFinalize:
    """Test suite for ReportBuilder.finalize."""

    @pytest.mark.asyncio
    async def test_merges_latest_chunk_with_stage_results(self, store, builder):
        # Arrange
        await store.insert_jobs([
            finished(1, JobType.CHUNK_ANALYSIS, result=chunk_report(score=5), cost=0.1, total_tokens=10),
            finished(2, JobType.CHUNK_ANALYSIS, result=chunk_report(score=8, comments="Minor wear"),
                     chunk_index=2, cost=0.2, total_tokens=20),
            finished(3, JobType.OWNERSHIP_COST_FORECAST,
                     result={"ownershipCostForecast": [{"component": "Tires"}], "web_search_results": ["x"]},
                     cost=0.3, total_tokens=30, web_search_count=2, web_search_results=[{"uri": "a"}, {"uri": "b"}]),
            finished(4, JobType.FAIR_MARKET_VALUE, status=JobStatus.FAILED),
            finished(5, JobType.EXPERT_ADVICE, result={"advice": "Buy it", "web_search_results": []},
                     cost=0.4, total_tokens=40, web_search_count=1, web_search_results=[{"uri": "c"}]),
        ])

        # Act
        report = await builder.finalize(INSPECTION_ID)

        # Assert
        summary_json = report["summary_json"]
        assert summary_json["overallConditionScore"] == 8
        assert summary_json["ownershipCostForecast"] == [{"component": "Tires"}]
        assert summary_json["advice"] == "Buy it"
        assert "finalFairValueUSD" not in summary_json
        assert "web_search_results" not in summary_json
        assert report["summary"] == "Overall condition score: 8/10. Minor wear"
        assert report["cost"] == pytest.approx(1.0)
        assert report["total_tokens"] == 100
        assert report["web_search_count"] == 3
        assert report["web_search_results"] == [{"uri": "a"}, {"uri": "b"}, {"uri": "c"}]
        assert report["ai_model"] == "gemini-2.5-flash"

        stored = await store.get_report(INSPECTION_ID)
        assert stored["summary"] == report["summary"]
        assert store.inspections[INSPECTION_ID].status == InspectionStatus.DONE

    @pytest.mark.asyncio
    async def test_first_chunk_failure_fails_inspection(self, store, builder):
        await store.insert_jobs([
            finished(1, JobType.CHUNK_ANALYSIS, status=JobStatus.FAILED),
            finished(2, JobType.CHUNK_ANALYSIS, result=chunk_report(), chunk_index=2),
        ])

        assert await builder.finalize(INSPECTION_ID) is None
        assert store.inspections[INSPECTION_ID].status == InspectionStatus.FAILED
        assert await store.get_report(INSPECTION_ID) is None

    @pytest.mark.asyncio
    async def test_later_chunk_failure_is_not_fatal(self, store, builder):
        await store.insert_jobs([
            finished(1, JobType.CHUNK_ANALYSIS, result=chunk_report()),
            finished(2, JobType.CHUNK_ANALYSIS, status=JobStatus.FAILED, chunk_index=2),
        ])

        report = await builder.finalize(INSPECTION_ID)

        assert report["summary"] == "Overall condition score: 7/10. Clean vehicle"
        assert store.inspections[INSPECTION_ID].status == InspectionStatus.DONE

    @pytest.mark.asyncio
    async def test_stage_only_chain_reports_on_empty_base(self, store, builder):
        await store.insert_jobs([
            finished(1, JobType.FAIR_MARKET_VALUE, result={"finalFairValueUSD": "$9,000 - $10,000"}),
        ])

        report = await builder.finalize(INSPECTION_ID)

        assert report["summary_json"] == {"finalFairValueUSD": "$9,000 - $10,000"}
        assert report["summary"] == "Overall condition score: None/10. "


class TestBuildSummary:
    """Test suite for the summary line."""

    def test_missing_comments_render_empty(self):
        assert build_summary({"overallConditionScore": 6}) == "Overall condition score: 6/10. "

    @pytest.mark.parametrize("score,expected", [(7.0, "7"), (7.5, "7.5")])
    def test_whole_number_scores_render_without_decimal(self, score, expected):
        summary = build_summary({"overallConditionScore": score, "overallComments": "Clean vehicle"})

        assert summary == f"Overall condition score: {expected}/10. Clean vehicle"
