"""
CLI package for the Vehicle Report Pipeline

Provides command-line interface for running inspections and managing job chains.
"""

from .main import main, cli

__all__ = ["main", "cli"]
