"""
Data models for the Vehicle Report Pipeline

Contains all data structures used throughout the pipeline.
"""

# Job models
from .job import (
    Job,
    JobStatus,
    JobType,
    UsageMetrics,
    DOWNSTREAM_STAGES,
    JOB_STATUS_TRANSITIONS,
    can_transition_to,
    get_valid_transitions
)

# Evidence models
from .evidence import (
    AssessableItem,
    Chunk,
    ItemCategory,
    ItemType,
    CATEGORY_PRIORITY,
    category_rank,
    parse_size
)

# Analysis models
from .analysis import AnalysisRequest, AnalysisResult

# Inspection models
from .inspection import (
    Inspection,
    InspectionStatus,
    OBD2Code,
    VehicleContext,
    VehicleInfo
)

__all__ = [
    # Job models
    "Job",
    "JobStatus",
    "JobType",
    "UsageMetrics",
    "DOWNSTREAM_STAGES",
    "JOB_STATUS_TRANSITIONS",
    "can_transition_to",
    "get_valid_transitions",

    # Evidence models
    "AssessableItem",
    "Chunk",
    "ItemCategory",
    "ItemType",
    "CATEGORY_PRIORITY",
    "category_rank",
    "parse_size",

    # Analysis models
    "AnalysisRequest",
    "AnalysisResult",

    # Inspection models
    "Inspection",
    "InspectionStatus",
    "OBD2Code",
    "VehicleContext",
    "VehicleInfo"
]
