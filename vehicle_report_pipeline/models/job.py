"""
Job-related data models for the Vehicle Report Pipeline

Defines processing jobs, their types and statuses, and the monotonic status
transition table every job obeys.
"""

import json
import uuid
from enum import Enum
from datetime import datetime
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field

from ..core.exceptions import InvalidTransitionError


class JobStatus(Enum):
    """Job execution status enumeration."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class JobType(Enum):
    """Job type enumeration."""
    CHUNK_ANALYSIS = "chunk_analysis"

    # Downstream research stages
    OWNERSHIP_COST_FORECAST = "ownership_cost_forecast"
    FAIR_MARKET_VALUE = "fair_market_value"
    EXPERT_ADVICE = "expert_advice"

    @property
    def is_downstream(self) -> bool:
        return self is not JobType.CHUNK_ANALYSIS


# Downstream stages always run after every chunk job, in this order
DOWNSTREAM_STAGES: List[JobType] = [
    JobType.OWNERSHIP_COST_FORECAST,
    JobType.FAIR_MARKET_VALUE,
    JobType.EXPERT_ADVICE,
]

TERMINAL_STATUSES = (JobStatus.COMPLETED, JobStatus.FAILED)


def _parse_json(value: Any) -> Any:
    if isinstance(value, str):
        return json.loads(value)
    return value


@dataclass
class UsageMetrics:
    """Token and cost counters reported by the analysis engine."""

    cost: float = 0.0
    total_tokens: int = 0
    web_search_count: int = 0
    web_search_results: List[Any] = field(default_factory=list)


@dataclass
class Job:
    """One unit of pipeline work, mirroring a processing_jobs row."""

    # Primary identification
    inspection_id: str
    job_type: JobType
    sequence_order: int
    job_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    # Chunk position; downstream stages carry 1 of 1
    chunk_index: int = 1
    total_chunks: int = 1
    chunk_data: Dict[str, Any] = field(default_factory=dict)

    # Status tracking
    status: JobStatus = JobStatus.PENDING
    chunk_result: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None

    # Usage metrics
    cost: float = 0.0
    total_tokens: int = 0
    web_search_count: int = 0
    web_search_results: List[Any] = field(default_factory=list)

    retry_count: int = 0

    # Timing
    created_at: datetime = field(default_factory=datetime.utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def images(self) -> List[Dict[str, Any]]:
        return list(self.chunk_data.get("images", []))

    def _transition(self, target: JobStatus):
        if not can_transition_to(self.status, target):
            raise InvalidTransitionError(self.job_id, self.status.value, target.value)
        self.status = target

    def start_processing(self, started_at: Optional[datetime] = None):
        """Claim the job: pending -> processing."""
        self._transition(JobStatus.PROCESSING)
        self.started_at = started_at or datetime.utcnow()

    def complete(self, result: Dict[str, Any], usage: Optional[UsageMetrics] = None):
        """Mark job as completed with its parsed result."""
        self._transition(JobStatus.COMPLETED)
        usage = usage or UsageMetrics()
        self.chunk_result = result
        self.error_message = None
        self.cost = usage.cost
        self.total_tokens = usage.total_tokens
        self.web_search_count = usage.web_search_count
        self.web_search_results = list(usage.web_search_results)
        self.completed_at = datetime.utcnow()

    def fail(self, error_message: str):
        """Mark job as failed."""
        self._transition(JobStatus.FAILED)
        self.error_message = error_message
        self.completed_at = datetime.utcnow()

    def get_duration(self) -> Optional[float]:
        """Get job duration in seconds if finished."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert job to dictionary for serialization."""
        return {
            "job_id": self.job_id,
            "inspection_id": self.inspection_id,
            "job_type": self.job_type.value,
            "sequence_order": self.sequence_order,
            "chunk_index": self.chunk_index,
            "total_chunks": self.total_chunks,
            "chunk_data": self.chunk_data,
            "status": self.status.value,
            "chunk_result": self.chunk_result,
            "error_message": self.error_message,
            "cost": self.cost,
            "total_tokens": self.total_tokens,
            "web_search_count": self.web_search_count,
            "web_search_results": self.web_search_results,
            "retry_count": self.retry_count,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Job":
        """Create job from a dictionary or database row."""
        data = dict(data)
        if "id" in data and "job_id" not in data:
            data["job_id"] = data.pop("id")
        data["job_id"] = str(data["job_id"])
        data["inspection_id"] = str(data["inspection_id"])

        # Parse datetime fields
        for field_name in ["created_at", "started_at", "completed_at"]:
            if isinstance(data.get(field_name), str):
                data[field_name] = datetime.fromisoformat(data[field_name])

        # JSON columns may arrive encoded
        data["chunk_data"] = _parse_json(data.get("chunk_data")) or {}
        data["chunk_result"] = _parse_json(data.get("chunk_result"))
        data["web_search_results"] = _parse_json(data.get("web_search_results")) or []

        data["cost"] = float(data.get("cost") or 0)
        data["total_tokens"] = int(data.get("total_tokens") or 0)
        data["web_search_count"] = int(data.get("web_search_count") or 0)
        data["retry_count"] = int(data.get("retry_count") or 0)

        # Parse enum fields
        data["job_type"] = JobType(data["job_type"])
        if "status" in data:
            data["status"] = JobStatus(data["status"])

        known = set(cls.__dataclass_fields__)
        return cls(**{key: value for key, value in data.items() if key in known})


# Monotonic: nothing re-enters pending or processing
JOB_STATUS_TRANSITIONS = {
    JobStatus.PENDING: [JobStatus.PROCESSING],
    JobStatus.PROCESSING: [JobStatus.COMPLETED, JobStatus.FAILED],
    JobStatus.COMPLETED: [],  # Terminal state
    JobStatus.FAILED: [],  # Terminal state
}


def can_transition_to(current_status: JobStatus, target_status: JobStatus) -> bool:
    """Check if a job can transition from current status to target status."""
    return target_status in JOB_STATUS_TRANSITIONS.get(current_status, [])


def get_valid_transitions(current_status: JobStatus) -> List[JobStatus]:
    """Get list of valid status transitions from current status."""
    return JOB_STATUS_TRANSITIONS.get(current_status, [])
