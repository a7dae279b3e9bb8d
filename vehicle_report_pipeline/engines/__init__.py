"""
Analysis engines for the Vehicle Report Pipeline.

This module contains engines that turn an analysis request into a
structured payload:
- Gemini generateContent with file uploads and web search grounding
- Extensible interface for adding new engines
"""

from .base import AnalysisEngine, parse_json_payload
from .gemini_engine import GeminiAnalysisEngine

__all__ = [
    'AnalysisEngine',
    'GeminiAnalysisEngine',
    'parse_json_payload'
]
