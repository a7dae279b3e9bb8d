"""
Utilities package for the Vehicle Report Pipeline

Contains the record stores, configuration loading and logging helpers.
"""

from .store import RecordStore
from .database import DatabaseManager
from .memory_store import InMemoryRecordStore
from .config import PipelineConfig, load_config
from .logger import setup_logger, get_logger, set_log_context, clear_log_context, LoggerContext

__all__ = [
    "RecordStore",
    "DatabaseManager",
    "InMemoryRecordStore",
    "PipelineConfig",
    "load_config",
    "setup_logger",
    "get_logger",
    "set_log_context",
    "clear_log_context",
    "LoggerContext"
]
