"""
Base stage processor.

A stage processor turns one job into an analysis request, runs it through
the engine, and validates the engine's payload against the stage's
response model.
"""

from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Type

from pydantic import BaseModel

from .schemas import response_schema, validate_payload
from ..engines.base import AnalysisEngine
from ..models.analysis import AnalysisRequest, AnalysisResult
from ..models.inspection import Inspection
from ..models.job import Job, JobType
from ..services.result_carrier import ResultCarrier
from ..utils.logger import get_logger
from ..utils.store import RecordStore


class StageProcessor(ABC):
    """Abstract processor for one job type."""

    job_type: JobType
    response_model: Type[BaseModel]

    def __init__(self, engine: AnalysisEngine, carrier: ResultCarrier, store: RecordStore):
        """
        Args:
            engine: External analysis capability
            carrier: Read access to earlier job results
            store: Record store, for inspection-level evidence
        """
        self.engine = engine
        self.carrier = carrier
        self.store = store
        self.logger = get_logger(self.__class__.__module__)

    @property
    def schema(self):
        return response_schema(self.response_model)

    @abstractmethod
    async def build_request(self, job: Job, inspection: Inspection) -> AnalysisRequest:
        """
        Build the analysis request for a job.

        Raises:
            MissingDependencyError: If a required upstream result is absent
        """
        pass

    def finalize_result(self, payload: dict, analysis: AnalysisResult) -> AnalysisResult:
        """Hook for stage-specific adjustments to a validated payload."""
        return replace(analysis, payload=payload)

    async def process(self, job: Job, inspection: Inspection) -> AnalysisResult:
        """
        Run one job through the engine.

        Returns:
            AnalysisResult whose payload passed schema validation

        Raises:
            MissingDependencyError, AnalysisEngineError, MalformedResponseError
        """
        request = await self.build_request(job, inspection)
        analysis = await self.engine.analyze(request)
        payload = validate_payload(self.response_model, analysis.payload)
        return self.finalize_result(payload, analysis)
