"""
Final report assembly

Runs once per inspection after the last job finishes: merges the latest
chunk analysis with the downstream stage results, totals usage across all
completed jobs and writes the report row.
"""

from typing import Any, Dict, List, Optional

from ..models.inspection import InspectionStatus
from ..models.job import Job, JobStatus, JobType
from ..utils.logger import get_logger
from ..utils.store import RecordStore

# Report keys each downstream stage contributes
STAGE_RESULT_KEYS = {
    JobType.OWNERSHIP_COST_FORECAST: ("ownershipCostForecast",),
    JobType.FAIR_MARKET_VALUE: ("finalFairValueUSD", "finalFairAverageValueUSD", "priceAdjustment"),
    JobType.EXPERT_ADVICE: ("advice",),
}


def build_summary(report: Dict[str, Any]) -> str:
    score = report.get("overallConditionScore")
    if isinstance(score, float) and score.is_integer():
        score = int(score)
    comments = report.get("overallComments") or ""
    return f"Overall condition score: {score}/10. {comments}"


def merge_stage_results(base: Dict[str, Any], jobs: List[Job]) -> Dict[str, Any]:
    """Copy each completed stage's report keys onto the chunk analysis."""
    merged = dict(base)
    for job in jobs:
        keys = STAGE_RESULT_KEYS.get(job.job_type)
        if not keys or job.status != JobStatus.COMPLETED or not job.chunk_result:
            continue
        for key in keys:
            if key in job.chunk_result:
                merged[key] = job.chunk_result[key]
    return merged


def aggregate_usage(jobs: List[Job]) -> Dict[str, Any]:
    """Total cost, tokens and web searches over completed jobs."""
    completed = [job for job in jobs if job.status == JobStatus.COMPLETED]
    results: List[Any] = []
    for job in completed:
        results.extend(job.web_search_results or [])
    return {
        "cost": sum(job.cost for job in completed),
        "total_tokens": sum(job.total_tokens for job in completed),
        "web_search_count": sum(job.web_search_count for job in completed),
        "web_search_results": results,
    }


class ReportBuilder:
    """Finalizes an inspection into a report, or marks it failed."""

    def __init__(self, store: RecordStore, ai_model: Optional[str] = None):
        self.store = store
        self.ai_model = ai_model
        self.logger = get_logger(__name__)

    def failure_reason(self, jobs: List[Job]) -> Optional[str]:
        """
        Why the inspection cannot produce a report, if it cannot.

        The first chunk carries the vehicle context, so its failure is fatal.
        Without any completed chunk analysis there is nothing to report on.
        """
        chunk_jobs = [job for job in jobs if job.job_type == JobType.CHUNK_ANALYSIS]
        if not chunk_jobs:
            return None

        first = next((job for job in chunk_jobs if job.chunk_index == 1), None)
        if first is not None and first.status == JobStatus.FAILED:
            return f"First chunk analysis failed: {first.error_message}"
        if not any(job.status == JobStatus.COMPLETED for job in chunk_jobs):
            return "No chunk analysis completed"
        return None

    async def finalize(self, inspection_id: str) -> Optional[Dict[str, Any]]:
        """
        Build and store the report for an inspection.

        Returns:
            The stored report, or None when the inspection was marked failed
        """
        jobs = await self.store.list_jobs(inspection_id)

        reason = self.failure_reason(jobs)
        if reason is not None:
            self.logger.error("Inspection failed", extra={
                "inspection_id": inspection_id,
                "reason": reason
            })
            await self.store.update_inspection_status(inspection_id, InspectionStatus.FAILED)
            return None

        base = await self.store.get_latest_chunk_result(inspection_id) or {}
        summary_json = merge_stage_results(base, jobs)

        report = {
            "summary_json": summary_json,
            "summary": build_summary(summary_json),
            "ai_model": self.ai_model,
        }
        report.update(aggregate_usage(jobs))

        await self.store.upsert_report(inspection_id, report)
        await self.store.update_inspection_status(inspection_id, InspectionStatus.DONE)

        self.logger.info("Report generated", extra={
            "inspection_id": inspection_id,
            "cost": report["cost"],
            "total_tokens": report["total_tokens"],
            "web_search_count": report["web_search_count"]
        })
        return report
