"""
Core package for the Vehicle Report Pipeline

Contains the exception hierarchy. The InspectionPipeline facade lives in
core.orchestrator and is re-exported from the package root.
"""

from .exceptions import (
    PipelineError,
    InspectionNotFoundError,
    JobNotFoundError,
    JobSubmissionError,
    InvalidTransitionError,
    MissingDependencyError,
    MalformedResponseError,
    AnalysisEngineError,
    ConfigurationError,
    DatabaseError,
    ValidationError,
    ErrorRegistry,
    error_registry
)

__all__ = [
    "PipelineError",
    "InspectionNotFoundError",
    "JobNotFoundError",
    "JobSubmissionError",
    "InvalidTransitionError",
    "MissingDependencyError",
    "MalformedResponseError",
    "AnalysisEngineError",
    "ConfigurationError",
    "DatabaseError",
    "ValidationError",
    "ErrorRegistry",
    "error_registry"
]
