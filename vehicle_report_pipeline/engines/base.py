"""
Base analysis engine interface.

Defines the interface every external analysis capability implements: take
a prompt, context, images and an output schema, and return structured JSON
with usage metrics or raise.
"""

import json
import re
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional

from ..core.exceptions import MalformedResponseError
from ..models.analysis import AnalysisRequest, AnalysisResult

_FENCE_START = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_END = re.compile(r"\s*```\s*$")


def parse_json_payload(text: str) -> Dict[str, Any]:
    """
    Parse model output into a JSON object.

    Markdown code fences around the JSON are stripped first.

    Raises:
        MalformedResponseError: If the text is empty, not JSON, or not an object
    """
    if not text or not text.strip():
        raise MalformedResponseError("empty response text")

    cleaned = _FENCE_END.sub("", _FENCE_START.sub("", text.strip()))
    try:
        payload = json.loads(cleaned)
    except ValueError as e:
        raise MalformedResponseError(f"invalid JSON: {e}", raw_text=text)

    if not isinstance(payload, dict):
        raise MalformedResponseError(
            f"expected a JSON object, got {type(payload).__name__}", raw_text=text
        )
    return payload


class AnalysisEngine(ABC):
    """
    Abstract base class for analysis engines.

    Implementations raise AnalysisEngineError for transport or service
    failures and MalformedResponseError for bodies that cannot be parsed.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize the analysis engine.

        Args:
            config: Engine-specific configuration
        """
        self.config = config or {}
        self._is_initialized = False

    @abstractmethod
    async def initialize(self) -> bool:
        """
        Initialize the engine.

        Returns:
            True if initialization successful
        """
        pass

    @abstractmethod
    async def shutdown(self) -> bool:
        """
        Release engine resources.

        Returns:
            True if shutdown successful
        """
        pass

    @abstractmethod
    async def analyze(self, request: AnalysisRequest) -> AnalysisResult:
        """
        Run one analysis.

        Args:
            request: Prompt, context, images and output schema

        Returns:
            AnalysisResult with the parsed payload and usage
        """
        pass

    @property
    def is_initialized(self) -> bool:
        """Check if engine is initialized."""
        return self._is_initialized

    @property
    def engine_name(self) -> str:
        """Get the name of this engine."""
        return self.__class__.__name__
