"""
Shared test fixtures for the pipeline test suite.

Provides: in-memory record store, scripted analysis engine, seeded inspections
Dependencies: pytest, pytest-asyncio
"""

import copy
from typing import Any, Callable, Dict, List, Optional, Union

import pytest

from vehicle_report_pipeline.core.exceptions import error_registry
from vehicle_report_pipeline.engines.base import AnalysisEngine
from vehicle_report_pipeline.models.analysis import AnalysisRequest, AnalysisResult
from vehicle_report_pipeline.models.inspection import Inspection
from vehicle_report_pipeline.utils.config import PipelineConfig
from vehicle_report_pipeline.utils.memory_store import InMemoryRecordStore

INSPECTION_ID = "3f6c2a1e-8b4d-4c1a-9f2e-7d5b0a9c1e42"

Response = Union[Dict[str, Any], Exception, Callable[[AnalysisRequest], Dict[str, Any]]]


def chunk_report(score: float = 7, comments: str = "Clean vehicle", **extra) -> Dict[str, Any]:
    """Chunk analysis payload that passes VehicleReport validation."""
    report = {
        "vehicle": {"Make": "Toyota", "Model": "Camry", "Year": 2018, "Mileage": 64000},
        "overallConditionScore": score,
        "overallComments": comments,
    }
    report.update(extra)
    return report


DEFAULT_RESPONSES: Dict[str, Response] = {
    "chunk_analysis": lambda request: chunk_report(),
    "ownership_cost_forecast": {
        "ownershipCostForecast": [{"component": "Brakes", "estimatedCostUSD": 350}],
        "web_search_results": [{"uri": "https://example.com/brakes"}],
    },
    "fair_market_value": {
        "finalFairValueUSD": "$15,000 - $18,000",
        "finalFairAverageValueUSD": "$16,500",
        "priceAdjustment": {"baselineBand": "good", "adjustmentUSD": -500},
    },
    "expert_advice": {"advice": "Solid commuter; check the water pump."},
}


class ScriptedEngine(AnalysisEngine):
    """
    Analysis engine returning canned payloads per job type.

    A response may be a payload dict, an exception to raise, or a callable
    building the payload from the request.
    """

    def __init__(self, responses: Optional[Dict[str, Response]] = None, cost: float = 0.01, tokens: int = 100):
        super().__init__()
        self.responses = dict(DEFAULT_RESPONSES)
        self.responses.update(responses or {})
        self.cost = cost
        self.tokens = tokens
        self.requests: List[AnalysisRequest] = []

    async def initialize(self) -> bool:
        self._is_initialized = True
        return True

    async def shutdown(self) -> bool:
        self._is_initialized = False
        return True

    async def analyze(self, request: AnalysisRequest) -> AnalysisResult:
        self.requests.append(request)
        response = self.responses[request.job_type]
        if isinstance(response, Exception):
            raise response
        payload = response(request) if callable(response) else copy.deepcopy(response)
        return AnalysisResult(
            payload=payload,
            model="scripted",
            total_tokens=self.tokens,
            cost=self.cost,
            web_search_count=1 if request.use_web_search else 0,
            uploaded_images=len(request.images)
        )

    def requests_for(self, job_type: str) -> List[AnalysisRequest]:
        return [request for request in self.requests if request.job_type == job_type]


def photo(item_id: str, category: str, size: int) -> Dict[str, Any]:
    return {"id": item_id, "path": f"photos/{item_id}.jpg", "category": category, "storage": size}


@pytest.fixture(autouse=True)
def reset_error_registry():
    """Keep the global error registry isolated between tests."""
    error_registry.reset()
    yield
    error_registry.reset()


@pytest.fixture
def store() -> InMemoryRecordStore:
    """Provide an empty in-memory record store."""
    return InMemoryRecordStore()


@pytest.fixture
def engine() -> ScriptedEngine:
    """Provide a scripted engine with passing default responses."""
    return ScriptedEngine()


@pytest.fixture
def config() -> PipelineConfig:
    """Provide a config with a small chunk budget."""
    return PipelineConfig(max_chunk_bytes=100)


@pytest.fixture
def inspection(store: InMemoryRecordStore) -> Inspection:
    """
    Seed an inspection whose evidence plans into three chunks at 100 bytes.

    Returns:
        Inspection: The stored inspection
    """
    return store.add_inspection(
        Inspection(inspection_id=INSPECTION_ID, vin="4T1B11HK5JU000001", mileage="64000", zip="94107"),
        photos=[
            photo("p1", "exterior", 60),
            photo("p2", "interior", 30),
            photo("p3", "engine", 80),
            photo("p4", "records", 50),
        ],
        obd2_codes=[
            {"id": "o1", "code": "P0420", "description": "Catalyst efficiency below threshold",
             "screenshot_path": "obd/o1.png", "storage": 10},
        ]
    )
