"""
Response schemas for each job type.

Each pydantic model doubles as the JSON schema sent to the analysis engine
and as the validator applied to what comes back. Models allow extra keys:
the engine may return more detail than the pipeline reads.
"""

from typing import Any, Dict, List, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from ..core.exceptions import MalformedResponseError


class _Schema(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class VehicleIdentity(_Schema):
    Make: Optional[str] = None
    Model: Optional[str] = None
    Year: Optional[Union[int, str]] = None
    Engine: Optional[str] = None
    Drivetrain: Optional[str] = None
    VIN: Optional[str] = None
    Mileage: Optional[Union[int, str]] = None
    Location: Optional[str] = None
    Transmission: Optional[str] = None
    Fuel: Optional[str] = None


class CategoryAssessment(_Schema):
    problems: List[str] = Field(default_factory=list)
    score: Optional[float] = Field(default=None, ge=0, le=10)
    estimatedRepairCost: Optional[float] = None
    costExplanation: Optional[str] = None
    incomplete: Optional[bool] = None
    incompletion_reason: Optional[str] = None


class OBDCodeAssessment(CategoryAssessment):
    code: str


class OBDAssessment(_Schema):
    codes: List[OBDCodeAssessment] = Field(default_factory=list)
    overall: Optional[CategoryAssessment] = None


class VehicleReport(_Schema):
    """Merged condition report produced by chunk analysis."""

    vehicle: VehicleIdentity
    exterior: Optional[CategoryAssessment] = None
    interior: Optional[CategoryAssessment] = None
    dashboard: Optional[CategoryAssessment] = None
    paint: Optional[CategoryAssessment] = None
    rust: Optional[CategoryAssessment] = None
    engine: Optional[CategoryAssessment] = None
    undercarriage: Optional[CategoryAssessment] = None
    obd: Optional[OBDAssessment] = None
    title: Optional[CategoryAssessment] = None
    records: Optional[CategoryAssessment] = None
    overallConditionScore: Optional[Union[int, float]] = Field(default=None, ge=0, le=10)
    overallComments: Optional[str] = None


class OwnershipCostItem(_Schema):
    component: str
    expectedIssue: Optional[str] = None
    estimatedCostUSD: Optional[float] = None
    suggestedMileage: Optional[Union[int, str]] = None
    explanation: Optional[str] = None


class OwnershipCostForecast(_Schema):
    ownershipCostForecast: List[OwnershipCostItem]
    web_search_results: Optional[List[Any]] = None


class PriceAdjustment(_Schema):
    baselineBand: Optional[str] = None
    adjustmentUSD: Optional[int] = None
    explanation: Optional[str] = None


class FairMarketValue(_Schema):
    finalFairValueUSD: str
    finalFairAverageValueUSD: Optional[str] = None
    priceAdjustment: Optional[PriceAdjustment] = None
    web_search_results: Optional[List[Any]] = None


class ExpertAdvice(_Schema):
    advice: str
    web_search_results: Optional[List[Any]] = None


def response_schema(model: Type[BaseModel]) -> Dict[str, Any]:
    """JSON schema for a response model."""
    return model.model_json_schema()


def validate_payload(model: Type[BaseModel], payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate a payload against a response model.

    Returns:
        The payload as JSON-ready data, unknown keys preserved and unset
        optional keys left out

    Raises:
        MalformedResponseError: If the payload does not match the model
    """
    try:
        parsed = model.model_validate(payload)
    except PydanticValidationError as e:
        raise MalformedResponseError(
            f"{model.__name__} validation failed: {e.error_count()} error(s): {e.errors()[0]['msg']}"
        )
    return parsed.model_dump(mode="json", exclude_unset=True)
