"""
Exception classes for the Vehicle Report Pipeline

Provides the hierarchy of exceptions raised while building, sequencing and
running inspection jobs. Job-level failures (malformed responses, missing
dependencies, analysis engine errors) are caught by the job runner and
recorded on the job; persistence failures propagate.
"""

from typing import Optional, Dict, Any


class PipelineError(Exception):
    """Base exception for all pipeline errors."""

    def __init__(self, message: str, error_code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON serialization."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details
        }


class InspectionNotFoundError(PipelineError):
    """Raised when a requested inspection cannot be found."""

    def __init__(self, inspection_id: str):
        super().__init__(
            f"Inspection {inspection_id} not found",
            error_code="INSPECTION_NOT_FOUND",
            details={"inspection_id": inspection_id}
        )


class JobNotFoundError(PipelineError):
    """Raised when a requested job cannot be found."""

    def __init__(self, job_id: str):
        super().__init__(
            f"Job {job_id} not found",
            error_code="JOB_NOT_FOUND",
            details={"job_id": job_id}
        )


class JobSubmissionError(PipelineError):
    """Raised when the job list for an inspection cannot be created."""

    def __init__(self, message: str, inspection_id: Optional[str] = None):
        super().__init__(
            f"Job submission failed: {message}",
            error_code="JOB_SUBMISSION_ERROR",
            details={"inspection_id": inspection_id}
        )


class InvalidTransitionError(PipelineError):
    """Raised when a job is moved to a status its current status does not allow."""

    def __init__(self, job_id: str, current_status: str, target_status: str):
        super().__init__(
            f"Job {job_id} cannot move from {current_status} to {target_status}",
            error_code="INVALID_TRANSITION",
            details={"job_id": job_id, "current_status": current_status, "target_status": target_status}
        )


class MissingDependencyError(PipelineError):
    """Raised when a job needs an upstream result that does not exist."""

    def __init__(self, job_type: str, message: str, inspection_id: Optional[str] = None):
        super().__init__(
            f"Missing dependency for {job_type}: {message}",
            error_code="MISSING_DEPENDENCY",
            details={"job_type": job_type, "inspection_id": inspection_id}
        )


class MalformedResponseError(PipelineError):
    """Raised when an analysis response cannot be parsed into the expected shape."""

    def __init__(self, message: str, raw_text: Optional[str] = None):
        super().__init__(
            f"Malformed analysis response: {message}",
            error_code="MALFORMED_RESPONSE",
            details={"raw_text": raw_text[:500] if raw_text else None}
        )


class AnalysisEngineError(PipelineError):
    """Raised when the external analysis capability fails or times out."""

    def __init__(self, engine: str, message: str, status_code: Optional[int] = None):
        super().__init__(
            f"Analysis engine '{engine}' failed: {message}",
            error_code="ANALYSIS_ENGINE_ERROR",
            details={"engine": engine, "status_code": status_code}
        )
        self.status_code = status_code


class ConfigurationError(PipelineError):
    """Raised when there's an error in configuration."""

    def __init__(self, config_key: str, message: str):
        super().__init__(
            f"Configuration error for {config_key}: {message}",
            error_code="CONFIGURATION_ERROR",
            details={"config_key": config_key}
        )


class DatabaseError(PipelineError):
    """Raised when record store operations fail."""

    def __init__(self, operation: str, message: str, table: Optional[str] = None):
        super().__init__(
            f"Database operation '{operation}' failed: {message}",
            error_code="DATABASE_ERROR",
            details={"operation": operation, "table": table}
        )


class ValidationError(PipelineError):
    """Raised when input validation fails."""

    def __init__(self, field: str, message: str, value: Any = None):
        super().__init__(
            f"Validation error for {field}: {message}",
            error_code="VALIDATION_ERROR",
            details={"field": field, "value": str(value) if value is not None else None}
        )


class ErrorRegistry:
    """Registry for tracking and analyzing job failures."""

    def __init__(self):
        self.error_counts = {}

    def record_error(self, error: Exception):
        """Record an error for analysis."""
        error_type = error.__class__.__name__
        self.error_counts[error_type] = self.error_counts.get(error_type, 0) + 1

    def get_error_statistics(self) -> Dict[str, Any]:
        """Get error statistics for monitoring."""
        return {
            "total_errors": sum(self.error_counts.values()),
            "error_counts": self.error_counts,
            "most_common_error": max(self.error_counts.items(), key=lambda x: x[1])[0] if self.error_counts else None
        }

    def reset(self):
        self.error_counts.clear()


# Global error registry instance
error_registry = ErrorRegistry()
