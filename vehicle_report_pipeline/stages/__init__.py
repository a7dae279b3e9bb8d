"""
Stage processors for the Vehicle Report Pipeline

One processor per job type. ``build_processors`` wires the standard set
to an engine, result carrier and record store.
"""

from typing import Dict

from .base import StageProcessor
from .chunk_analysis import ChunkAnalysisProcessor
from .research import (
    ResearchStageProcessor,
    OwnershipCostForecastProcessor,
    FairMarketValueProcessor,
    ExpertAdviceProcessor
)
from ..engines.base import AnalysisEngine
from ..models.job import JobType
from ..services.result_carrier import ResultCarrier
from ..utils.store import RecordStore

PROCESSOR_CLASSES = (
    ChunkAnalysisProcessor,
    OwnershipCostForecastProcessor,
    FairMarketValueProcessor,
    ExpertAdviceProcessor,
)


def build_processors(engine: AnalysisEngine, carrier: ResultCarrier, store: RecordStore) -> Dict[JobType, StageProcessor]:
    """Instantiate one processor per job type."""
    return {cls.job_type: cls(engine, carrier, store) for cls in PROCESSOR_CLASSES}


__all__ = [
    "StageProcessor",
    "ChunkAnalysisProcessor",
    "ResearchStageProcessor",
    "OwnershipCostForecastProcessor",
    "FairMarketValueProcessor",
    "ExpertAdviceProcessor",
    "PROCESSOR_CLASSES",
    "build_processors"
]
