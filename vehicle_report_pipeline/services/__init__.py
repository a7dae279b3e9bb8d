"""
Services package for the Vehicle Report Pipeline

Contains chunk planning, job sequencing, result carrying, job execution,
chain driving, report assembly and stale job recovery.
"""

from .chunk_builder import collect_assessable_items, sort_by_category_priority, build_chunks, plan_chunks
from .job_sequencer import normalize_stages, build_job_sequence
from .result_carrier import ResultCarrier
from .job_runner import JobRunner
from .chain_driver import ChainDriver
from .report_builder import ReportBuilder
from .recovery import StaleJobRecovery

__all__ = [
    "collect_assessable_items",
    "sort_by_category_priority",
    "build_chunks",
    "plan_chunks",
    "normalize_stages",
    "build_job_sequence",
    "ResultCarrier",
    "JobRunner",
    "ChainDriver",
    "ReportBuilder",
    "StaleJobRecovery"
]
