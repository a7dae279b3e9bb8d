"""
Downstream research stages.

Ownership cost forecast, fair market value and expert advice each read the
latest completed chunk analysis, research the vehicle with web search, and
return one section of the final report.
"""

import json
from dataclasses import asdict
from typing import Callable, List, Tuple

from .base import StageProcessor
from .prompts import (
    OWNERSHIP_COST_PROMPT,
    FAIR_MARKET_VALUE_PROMPT,
    EXPERT_ADVICE_PROMPT,
    ownership_cost_search_terms,
    fair_market_value_search_terms,
    expert_advice_search_terms,
    format_search_terms
)
from .schemas import OwnershipCostForecast, FairMarketValue, ExpertAdvice
from ..core.exceptions import MissingDependencyError
from ..models.analysis import AnalysisRequest, AnalysisResult
from ..models.inspection import Inspection, VehicleInfo
from ..models.job import Job, JobType


class ResearchStageProcessor(StageProcessor):
    """Base for web-grounded stages that depend on the merged chunk analysis."""

    prompt: str
    search_terms: Callable[[VehicleInfo], List[str]]

    # Keys this stage writes into the final report; removed from its input
    result_keys: Tuple[str, ...] = ()

    async def build_request(self, job: Job, inspection: Inspection) -> AnalysisRequest:
        results = await self.carrier.get_latest_chunk_analysis_result(job.inspection_id)
        if results is None:
            raise MissingDependencyError(
                job.job_type.value,
                "no completed chunk analysis result",
                inspection_id=job.inspection_id
            )

        vehicle = VehicleInfo.from_results(results, inspection)
        cleaned = {key: value for key, value in results.items() if key not in self.result_keys}
        terms = self.search_terms(vehicle)

        blocks = [
            f"**VEHICLE**:\n{json.dumps(asdict(vehicle))}",
            f"**COMPLETE INSPECTION RESULTS**:\n{json.dumps(cleaned, indent=2)}",
            f"**SEARCH TERMS TO USE**:\n{format_search_terms(terms)}",
            "Perform the web searches and analyze the results before answering.",
        ]

        return AnalysisRequest(
            prompt=self.prompt,
            context_blocks=blocks,
            response_schema=self.schema,
            use_web_search=True,
            inspection_id=job.inspection_id,
            job_type=job.job_type.value
        )

    def finalize_result(self, payload: dict, analysis: AnalysisResult) -> AnalysisResult:
        """Fill in web search results from the engine when the model left them out."""
        if not payload.get("web_search_results"):
            payload["web_search_results"] = list(analysis.web_search_results)

        result = super().finalize_result(payload, analysis)
        result.web_search_results = list(payload["web_search_results"])
        result.web_search_count = max(analysis.web_search_count, len(result.web_search_results))
        return result


class OwnershipCostForecastProcessor(ResearchStageProcessor):
    job_type = JobType.OWNERSHIP_COST_FORECAST
    response_model = OwnershipCostForecast
    prompt = OWNERSHIP_COST_PROMPT
    search_terms = staticmethod(ownership_cost_search_terms)
    result_keys = ("ownershipCostForecast",)


class FairMarketValueProcessor(ResearchStageProcessor):
    job_type = JobType.FAIR_MARKET_VALUE
    response_model = FairMarketValue
    prompt = FAIR_MARKET_VALUE_PROMPT
    search_terms = staticmethod(fair_market_value_search_terms)
    result_keys = ("finalFairValueUSD", "finalFairAverageValueUSD", "priceAdjustment")


class ExpertAdviceProcessor(ResearchStageProcessor):
    job_type = JobType.EXPERT_ADVICE
    response_model = ExpertAdvice
    prompt = EXPERT_ADVICE_PROMPT
    search_terms = staticmethod(expert_advice_search_terms)
    result_keys = ("advice",)
