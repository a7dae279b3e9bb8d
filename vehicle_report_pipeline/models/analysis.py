"""
Analysis request and result models

The contract between stage processors and analysis engines: what is sent
(prompt, context blocks, images, output schema) and what comes back
(structured payload plus usage metrics).
"""

from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field

from .evidence import AssessableItem
from .job import UsageMetrics


@dataclass
class AnalysisRequest:
    """One call to the external analysis capability."""

    prompt: str
    context_blocks: List[str] = field(default_factory=list)
    images: List[AssessableItem] = field(default_factory=list)
    response_schema: Optional[Dict[str, Any]] = None
    use_web_search: bool = False

    # Labels for logging only
    inspection_id: Optional[str] = None
    job_type: Optional[str] = None


@dataclass
class AnalysisResult:
    """Structured payload plus usage reported by an engine."""

    payload: Dict[str, Any]
    model: Optional[str] = None
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    cost: float = 0.0
    web_search_count: int = 0
    web_search_results: List[Any] = field(default_factory=list)
    uploaded_images: int = 0

    def usage(self) -> UsageMetrics:
        return UsageMetrics(
            cost=self.cost,
            total_tokens=self.total_tokens,
            web_search_count=self.web_search_count,
            web_search_results=list(self.web_search_results)
        )
