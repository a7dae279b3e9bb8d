"""
Prompt text and search-term builders for each job type.
"""

from typing import List

from ..models.inspection import VehicleInfo

CHUNK_ANALYSIS_PROMPT = """You are a certified used-vehicle inspector. Assess the attached \
photos and documents category by category (exterior, interior, dashboard, paint, rust, engine, \
undercarriage, obd, title, records).

For every category report the visible problems, a 1-10 condition score, an estimated repair \
cost in USD with a short explanation, and mark the category incomplete with a reason when the \
evidence is insufficient. Identify the vehicle (Make, Model, Year, Engine, Drivetrain, VIN, \
Mileage, Location, Transmission, Fuel) from the DATA_BLOCK and the images.

Finish with overallConditionScore (1-10) and overallComments. Return only JSON matching the schema."""

MERGE_INSTRUCTIONS = """PREVIOUS_ANALYSIS holds the report built from earlier image batches of \
this same vehicle. Merge the new images into it: keep earlier findings unless the new evidence \
contradicts them, fill categories that were incomplete, and recompute scores and costs over all \
evidence seen so far. Return the complete merged report."""

OWNERSHIP_COST_PROMPT = """You are an automotive cost analyst. Using web search, forecast the \
maintenance and repair costs this vehicle is likely to need over the next few years of ownership. \
For each item give the component, the expected issue, estimated cost in USD, the mileage at which \
it is suggested, and a short explanation. Take the inspection findings into account.

Return only a JSON object with an "ownershipCostForecast" array and a "web_search_results" array."""

FAIR_MARKET_VALUE_PROMPT = """You are a vehicle valuation specialist. Using web search across \
pricing guides and local listings, determine the fair market value of this USED vehicle in USD. \
Start from a baseline condition band (concours, excellent, good, fair) and adjust for the \
inspection scores and repair costs.

Return only a JSON object with "finalFairValueUSD" (a range such as "$15,000 - $18,000"), \
"finalFairAverageValueUSD", "priceAdjustment" {baselineBand, adjustmentUSD, explanation} and \
"web_search_results"."""

EXPERT_ADVICE_PROMPT = """You are an automotive consultant. Using web search, gather expert \
opinion on this model and year: common owner-reported issues, recalls and service bulletins, \
strengths, and maintenance tips. Combine them with the inspection findings into practical buying \
advice of at most 60 words, with no links or references in the advice text.

Return only a JSON object with "advice" and "web_search_results"."""


def _vehicle_prefix(vehicle: VehicleInfo) -> str:
    return vehicle.label or "vehicle"


def ownership_cost_search_terms(vehicle: VehicleInfo) -> List[str]:
    v = _vehicle_prefix(vehicle)
    return [
        f"{v} maintenance schedule service intervals official",
        f"{v} common problems typical repairs owner forums",
        f"{v} maintenance costs parts pricing labor",
        f"site:fcpeuro.com {v} parts pricing",
        f"site:ecstuning.com {v} maintenance parts cost",
    ]


def fair_market_value_search_terms(vehicle: VehicleInfo) -> List[str]:
    v = _vehicle_prefix(vehicle)
    mileage = f" {vehicle.mileage}" if vehicle.mileage else ""
    location = f" {vehicle.location}" if vehicle.location else ""
    return [
        f"{v}{mileage} market value KBB",
        f"{v} for sale{location} AutoTrader",
        f"{v} Edmunds value pricing",
        f"{v}{mileage} miles Cars.com CarMax price",
        f"{v} trade-in value NADA blue book pricing",
    ]


def expert_advice_search_terms(vehicle: VehicleInfo) -> List[str]:
    v = _vehicle_prefix(vehicle)
    return [
        f"{v} common problems reliability issues expert review",
        f"{v} buying guide automotive journalist mechanic advice",
        f"{v} recalls TSB technical service bulletins NHTSA",
        f"{v} owner reviews problems complaints CarGurus",
        f"{v} maintenance schedule service intervals expert tips",
    ]


def format_search_terms(terms: List[str]) -> str:
    return "\n".join(f'{index}. "{term}"' for index, term in enumerate(terms, start=1))
