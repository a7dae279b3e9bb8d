"""
Job sequencing for the Vehicle Report Pipeline

Converts ordered chunks plus the downstream research stages into the linear,
gap-free job list persisted for an inspection.
"""

from typing import Iterable, List, Optional, Sequence, Union

from ..core.exceptions import ValidationError
from ..models.evidence import Chunk
from ..models.job import Job, JobStatus, JobType, DOWNSTREAM_STAGES
from ..utils.logger import get_logger

logger = get_logger(__name__)

StageName = Union[str, JobType]


def normalize_stages(stages: Iterable[StageName]) -> List[JobType]:
    """
    Validate downstream stage names and put them in canonical order.

    Stages always run ownership cost forecast, fair market value, then
    expert advice, whatever order the caller lists them in.

    Raises:
        ValidationError: On an unknown, non-downstream or repeated stage
    """
    requested: List[JobType] = []
    for stage in stages:
        try:
            job_type = stage if isinstance(stage, JobType) else JobType(stage)
        except ValueError:
            raise ValidationError("downstream_stages", "unknown stage", stage)
        if not job_type.is_downstream:
            raise ValidationError("downstream_stages", "not a downstream stage", job_type.value)
        if job_type in requested:
            raise ValidationError("downstream_stages", "stage listed twice", job_type.value)
        requested.append(job_type)

    return [stage for stage in DOWNSTREAM_STAGES if stage in requested]


def build_job_sequence(
    inspection_id: str,
    chunks: Sequence[Chunk],
    downstream_stages: Optional[Iterable[StageName]] = None
) -> List[Job]:
    """
    Build the job list for one inspection.

    Chunk jobs come first with sequence order and chunk index ``i + 1`` and
    total chunks ``len(chunks)``. Downstream stages follow, continuing the
    sequence numbering, each with chunk index 1 of 1 and an empty payload.
    With zero chunks the downstream stages start at sequence order 1.

    Args:
        inspection_id: Owning inspection
        chunks: Ordered chunks from the chunk builder
        downstream_stages: Stage names; defaults to every downstream stage

    Returns:
        Pending jobs sorted by sequence order, numbered 1..N
    """
    stages = normalize_stages(DOWNSTREAM_STAGES if downstream_stages is None else downstream_stages)
    total_chunks = len(chunks)
    jobs: List[Job] = []

    for i, chunk in enumerate(chunks):
        jobs.append(Job(
            inspection_id=inspection_id,
            job_type=JobType.CHUNK_ANALYSIS,
            sequence_order=i + 1,
            chunk_index=i + 1,
            total_chunks=total_chunks,
            chunk_data=chunk.to_payload(),
            status=JobStatus.PENDING
        ))

    next_sequence = total_chunks + 1
    for offset, stage in enumerate(stages):
        jobs.append(Job(
            inspection_id=inspection_id,
            job_type=stage,
            sequence_order=next_sequence + offset,
            chunk_index=1,
            total_chunks=1,
            chunk_data={},
            status=JobStatus.PENDING
        ))

    logger.info("Built job sequence", extra={
        "inspection_id": inspection_id,
        "chunk_jobs": total_chunks,
        "downstream_jobs": len(stages),
        "total_jobs": len(jobs)
    })
    return jobs
